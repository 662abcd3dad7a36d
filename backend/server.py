import os
import sys
import time

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, g, jsonify, request
from dotenv import load_dotenv

from data_loader import compile_rows
from eligibility import (
    build_eligibility_map,
    build_prereq_check_string,
    evaluate_ast,
    referenced_course_ids,
    validate_expression_ids,
)
from expression_cache import ExpressionBook
from grouping import ClauseLimitExceeded, analyze_grouping
from normalizer import normalize_input
from prereq_ast import COURSE_STATUSES, ast_from_dict, ast_to_dict
from prereq_parser import PrereqParserError, parse_expression, stringify_ast
from unlocks import (
    build_reverse_prereq_map,
    compute_chain_depths,
    get_direct_unlocks,
    get_newly_eligible,
)
from validators import find_inconsistent_statuses, validate_graph

load_dotenv()

app = Flask(__name__)

VERSION = "0.1.0"


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


_SLOW_REQUEST_LOG_MS = _env_float("SLOW_REQUEST_LOG_MS", 750.0, minimum=0.0)
_EXPRESSION_CACHE_SIZE = _env_int("EXPRESSION_CACHE_SIZE", 512, minimum=1)
# 0 disables the DNF clause cap
_GROUPING_MAX_CLAUSES = _env_int("GROUPING_MAX_CLAUSES", 0, minimum=0) or None

# Shared parse cache; keys carry the expression text so entries never go stale.
_expression_book = ExpressionBook(max_size=_EXPRESSION_CACHE_SIZE)


def _cached_parse(expression: str):
    if not _cache_enabled():
        return parse_expression(expression)
    return _expression_book.parse("", expression)


def _cache_enabled() -> bool:
    return not app.config.get("TESTING", False)


print(
    f"[INFO] Expression cache size={_EXPRESSION_CACHE_SIZE} "
    f"grouping clause cap={_GROUPING_MAX_CLAUSES or 'none'}"
)


# -- Security headers ------------------------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= _SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({"status": "ok", "version": VERSION})


# -- Error helpers -----------------------------------------------------------
def _error(code: str, message: str, status: int = 400, **extra):
    payload = {"error_code": code, "message": message}
    payload.update(extra)
    return jsonify({"error": payload}), status


def _parse_error_response(exc: PrereqParserError):
    return _error("PARSE_ERROR", exc.message, position=exc.position)


def _grouping_limit_response(exc: ClauseLimitExceeded):
    return _error("GROUPING_LIMIT", str(exc), status=422, limit=exc.limit)


def _json_body():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return None
    return body


def _expression_from(body: dict):
    """Returns (expression, None) or (None, error_message)."""
    expression = body.get("expression", "")
    if expression is None:
        expression = ""
    if not isinstance(expression, str):
        return None, "expression must be a string."
    return expression, None


def _status_from(body: dict, catalog_ids: set):
    """
    Accepts either "status": {id: status} or "completed": [ids] / "a, b".
    Completed ids outside catalog_ids cannot affect the result and are dropped.
    Returns (status, None) or (None, error_message).
    """
    status = body.get("status")
    if status is not None:
        if not isinstance(status, dict):
            return None, "status must be an object of course id to status."
        bad = sorted(str(v) for v in status.values() if v not in COURSE_STATUSES)
        if bad:
            return None, f"Unknown course status: {', '.join(bad)}."
        return status, None

    completed = body.get("completed", [])
    if isinstance(completed, str):
        parsed = normalize_input(completed, catalog_ids)
        if parsed["invalid"]:
            return None, f"Invalid course ids: {', '.join(parsed['invalid'])}."
        return set(parsed["valid"]), None
    if not isinstance(completed, list) or not all(isinstance(c, str) for c in completed):
        return None, "completed must be a list of course ids."
    return {c.strip() for c in completed if c.strip()}, None


# -- Expression endpoints ----------------------------------------------------
@app.route("/api/expression/parse", methods=["POST"])
def parse_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.")
    expression, err = _expression_from(body)
    if err:
        return _error("INVALID_INPUT", err)
    try:
        ast = _cached_parse(expression)
    except PrereqParserError as exc:
        return _parse_error_response(exc)
    return jsonify({
        "ast": ast_to_dict(ast),
        "normalized": stringify_ast(ast),
        "referenced": sorted(referenced_course_ids(ast)),
    })


@app.route("/api/expression/stringify", methods=["POST"])
def stringify_endpoint():
    body = _json_body()
    if body is None or not isinstance(body.get("ast"), dict):
        return _error("INVALID_INPUT", "Request body must contain an ast object.")
    try:
        ast = ast_from_dict(body["ast"])
    except ValueError as exc:
        return _error("INVALID_INPUT", str(exc))
    return jsonify({"expression": stringify_ast(ast)})


@app.route("/api/expression/evaluate", methods=["POST"])
def evaluate_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.")
    expression, err = _expression_from(body)
    if err:
        return _error("INVALID_INPUT", err)
    try:
        ast = _cached_parse(expression)
    except PrereqParserError as exc:
        return _parse_error_response(exc)
    status, err = _status_from(body, referenced_course_ids(ast))
    if err:
        return _error("INVALID_INPUT", err)
    return jsonify({
        "satisfied": evaluate_ast(ast, status),
        "check": build_prereq_check_string(ast, status),
    })


@app.route("/api/expression/grouping", methods=["POST"])
def grouping_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.")
    expression, err = _expression_from(body)
    if err:
        return _error("INVALID_INPUT", err)
    try:
        ast = _cached_parse(expression)
        analysis = analyze_grouping(ast, max_clauses=_GROUPING_MAX_CLAUSES)
    except PrereqParserError as exc:
        return _parse_error_response(exc)
    except ClauseLimitExceeded as exc:
        return _grouping_limit_response(exc)
    return jsonify(analysis.to_dict())


@app.route("/api/expression/validate", methods=["POST"])
def validate_expression_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.")
    expression, err = _expression_from(body)
    if err:
        return _error("INVALID_INPUT", err)
    known_ids = body.get("known_ids", [])
    if not isinstance(known_ids, list):
        return _error("INVALID_INPUT", "known_ids must be a list of course ids.")
    try:
        ast = _cached_parse(expression)
    except PrereqParserError as exc:
        return _parse_error_response(exc)
    return jsonify(validate_expression_ids(ast, known_ids))


# -- Graph endpoints -----------------------------------------------------------
@app.route("/api/graph/compile", methods=["POST"])
def compile_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.")
    rows = body.get("rows")
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        return _error("INVALID_INPUT", "rows must be a list of objects.")
    try:
        result = compile_rows(
            rows,
            graph_id=str(body.get("graph_id") or "temp"),
            max_clauses=_GROUPING_MAX_CLAUSES,
        )
    except ClauseLimitExceeded as exc:
        return _grouping_limit_response(exc)
    if result["diagnostics"]:
        print(f"[WARN] Compiled graph with {len(result['diagnostics'])} diagnostic(s)", file=sys.stderr)
    return jsonify(result)


@app.route("/api/graph/validate", methods=["POST"])
def validate_graph_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.")
    return jsonify(validate_graph(body.get("graph")))


@app.route("/api/graph/eligibility", methods=["POST"])
def eligibility_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.")
    expressions = body.get("expressions")
    if not isinstance(expressions, dict) or not all(
        isinstance(v, str) or v is None for v in expressions.values()
    ):
        return _error("INVALID_INPUT", "expressions must be an object of course id to expression.")
    status, err = _status_from({"status": body.get("status") or {}}, set(expressions))
    if err:
        return _error("INVALID_INPUT", err)
    expressions = {k: v or "" for k, v in expressions.items()}
    try:
        eligibility = build_eligibility_map(expressions, status, parse=_cached_parse)
    except PrereqParserError as exc:
        return _parse_error_response(exc)
    return jsonify({
        "eligibility": eligibility,
        "inconsistent": find_inconsistent_statuses(status, expressions),
    })


@app.route("/api/graph/unlocks", methods=["POST"])
def unlocks_endpoint():
    body = _json_body()
    if body is None:
        return _error("INVALID_INPUT", "Request body must be valid JSON.")
    expressions = body.get("expressions")
    if not isinstance(expressions, dict) or not all(
        isinstance(v, str) or v is None for v in expressions.values()
    ):
        return _error("INVALID_INPUT", "expressions must be an object of course id to expression.")
    course_id = str(body.get("course_id") or "").strip()
    if not course_id:
        return _error("INVALID_INPUT", "course_id is required.")
    completed, err = _status_from({"completed": body.get("completed", [])}, set(expressions))
    if err:
        return _error("INVALID_INPUT", err)
    expressions = {k: v or "" for k, v in expressions.items()}
    try:
        reverse_map = build_reverse_prereq_map(expressions, parse=_cached_parse)
        newly_eligible = get_newly_eligible(
            course_id, reverse_map, expressions, completed, parse=_cached_parse
        )
    except PrereqParserError as exc:
        return _parse_error_response(exc)
    return jsonify({
        "course_id": course_id,
        "direct_unlocks": get_direct_unlocks(course_id, reverse_map, limit=len(expressions)),
        "newly_eligible": newly_eligible,
        "chain_depth": compute_chain_depths(reverse_map).get(course_id, 0),
    })


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
