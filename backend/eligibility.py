from collections.abc import Mapping

import pandas as pd

from prereq_ast import COMPLETED, AndNode, CourseNode, NoneNode, OrNode, PrereqAst
from prereq_parser import WHITESPACE, parse_expression


def _is_completed(course_id: str, status) -> bool:
    """
    status is either a collection of completed ids or a mapping
    id -> course status. Ids missing from either are not completed.
    """
    if isinstance(status, (Mapping, pd.Series)):
        return status.get(course_id) == COMPLETED
    return course_id in status


def evaluate_ast(ast: PrereqAst, status) -> bool:
    """
    Returns True if the expression is satisfied.
    status: set of completed ids, or {id: "completed" | "in_progress" | ...}.
    Only "completed" satisfies a course; unknown ids count as not completed.
    """
    if isinstance(ast, NoneNode):
        return True
    if isinstance(ast, CourseNode):
        return _is_completed(ast.id, status)
    if isinstance(ast, AndNode):
        left = evaluate_ast(ast.left, status)
        right = evaluate_ast(ast.right, status)
        return left and right
    if isinstance(ast, OrNode):
        left = evaluate_ast(ast.left, status)
        right = evaluate_ast(ast.right, status)
        return left or right
    raise TypeError(f"Not a prerequisite AST node: {ast!r}")


def referenced_course_ids(ast: PrereqAst) -> set[str]:
    """All course ids appearing in the expression, without duplicates."""
    if isinstance(ast, CourseNode):
        return {ast.id}
    if isinstance(ast, (AndNode, OrNode)):
        return referenced_course_ids(ast.left) | referenced_course_ids(ast.right)
    return set()


def validate_expression_ids(ast: PrereqAst, known_ids) -> dict:
    """
    Reports referenced ids that are not in known_ids.

    Returns: {"unknown": ["CS999", ...]}  (sorted)
    """
    known = set(known_ids)
    return {"unknown": sorted(c for c in referenced_course_ids(ast) if c not in known)}


def has_meaningful_expression(expression) -> bool:
    """False for empty / whitespace / 'NONE' (any case) expressions."""
    if expression is None or (isinstance(expression, float) and pd.isna(expression)):
        return False
    s = str(expression).strip(WHITESPACE)
    return bool(s) and s.upper() != "NONE"


def build_eligibility_map(expressions: dict[str, str], status_map, parse=parse_expression) -> dict[str, bool]:
    """
    Eligibility of every course in `expressions` given the student's statuses.
    Courses without a meaningful expression are always eligible.

    `parse` lets callers plug in a cached parser (see expression_cache).
    Raises PrereqParserError if any expression is malformed.
    """
    eligibility: dict[str, bool] = {}
    for course_id, expression in expressions.items():
        if not has_meaningful_expression(expression):
            eligibility[course_id] = True
            continue
        eligibility[course_id] = evaluate_ast(parse(expression), status_map)
    return eligibility


def build_prereq_check_string(ast: PrereqAst, status) -> str:
    """
    Returns a human-readable string showing which prereqs are satisfied.
    Examples:
      "CS100 ✓"
      "CS100 ✓ AND (CS101 ✗ OR CS102 ✓)"
    """
    if isinstance(ast, NoneNode):
        return "No prerequisites"

    def render(node: PrereqAst, parent: str | None) -> str:
        if isinstance(node, NoneNode):
            return "NONE"
        if isinstance(node, CourseNode):
            mark = "✓" if _is_completed(node.id, status) else "✗"
            return f"{node.id} {mark}"
        op = node.type
        text = f"{render(node.left, op)} {op} {render(node.right, op)}"
        if parent is not None and parent != op:
            return f"({text})"
        return text

    return render(ast, None)
