"""
Pure validation helpers for compiled graphs and student status input.
No Flask imports.
"""

from typing import Dict, List, Optional, Set

from eligibility import referenced_course_ids
from grouping import analyze_grouping
from prereq_ast import COMPLETED, COURSE_STATUSES
from prereq_parser import PrereqParserError, parse_expression

NODE_TYPES = {"course", "group", "note"}


def _validate_nodes(nodes, errors: List[str]) -> Set[str]:
    node_ids: Set[str] = set()
    for i, node in enumerate(nodes):
        if not isinstance(node, dict):
            errors.append(f"nodes[{i}] must be an object")
            continue
        node_id = node.get("id")
        if not isinstance(node_id, str) or not node_id.strip():
            errors.append(f"nodes[{i}].id must be a non-empty string")
            continue
        if node_id in node_ids:
            errors.append(f"nodes[{i}].id duplicates {node_id}")
        node_ids.add(node_id)

        node_type = node.get("nodeType", "course")
        if node_type not in NODE_TYPES:
            errors.append(f"nodes[{i}].nodeType must be one of {sorted(NODE_TYPES)}")
        credits = node.get("credits")
        if credits is not None and (
            isinstance(credits, bool) or not isinstance(credits, (int, float)) or credits < 0
        ):
            errors.append(f"nodes[{i}].credits must be a non-negative number")
        status = node.get("status")
        if status is not None and status not in COURSE_STATUSES:
            errors.append(f"nodes[{i}].status must be one of {list(COURSE_STATUSES)}")
    return node_ids


def _validate_edges(edges, node_ids: Set[str], errors: List[str]) -> None:
    for i, edge in enumerate(edges):
        if not isinstance(edge, dict):
            errors.append(f"edges[{i}] must be an object")
            continue
        if edge.get("source") not in node_ids:
            errors.append(f"edges[{i}].source must reference an existing node id")
        if edge.get("target") not in node_ids:
            errors.append(f"edges[{i}].target must reference an existing node id")
        if "groupingId" in edge and edge["groupingId"] is not None and not isinstance(edge["groupingId"], str):
            errors.append(f"edges[{i}].groupingId must be a string")


def _validate_expressions(expressions, node_ids: Set[str], errors: List[str]) -> None:
    for i, entry in enumerate(expressions):
        if not isinstance(entry, dict):
            errors.append(f"prereqExpressions[{i}] must be an object")
            continue
        course_id = entry.get("courseId")
        if course_id not in node_ids:
            errors.append(f"prereqExpressions[{i}].courseId must reference an existing node id")
        try:
            ast = parse_expression(entry.get("expression") or "")
        except PrereqParserError as exc:
            errors.append(f"prereqExpressions[{i}].expression is invalid: {exc}")
            continue
        unknown = sorted(referenced_course_ids(ast) - node_ids)
        if unknown:
            errors.append(
                f"prereqExpressions[{i}].expression references unknown course ids: {', '.join(unknown)}"
            )


def validate_graph(graph) -> dict:
    """
    Structural validation of a compiled graph.

    Returns:
      {"valid": bool, "errors": ["edges[0].source must reference an existing node id", ...]}
    """
    errors: List[str] = []
    if not isinstance(graph, dict):
        return {"valid": False, "errors": ["graph must be an object"]}
    if not isinstance(graph.get("id"), str) or not graph.get("id"):
        errors.append("id must be a non-empty string")

    nodes = graph.get("nodes")
    edges = graph.get("edges")
    if not isinstance(nodes, list):
        errors.append("nodes must be an array")
        nodes = []
    if not isinstance(edges, list):
        errors.append("edges must be an array")
        edges = []

    node_ids = _validate_nodes(nodes, errors)
    _validate_edges(edges, node_ids, errors)

    expressions = graph.get("prereqExpressions")
    if expressions is not None:
        if not isinstance(expressions, list):
            errors.append("prereqExpressions must be an array")
        else:
            _validate_expressions(expressions, node_ids, errors)

    return {"valid": not errors, "errors": errors}


def get_all_required_prereqs(
    course_id: str,
    expressions: Dict[str, str],
    visited: Optional[Set[str]] = None,
) -> Set[str]:
    """
    Return all transitively mandatory prerequisites for course_id.

    Only the mandatory part of each expression is followed; alternative
    groups are a choice and never implied. Unknown courses and malformed
    expressions stop the traversal.
    """
    if visited is None:
        visited = set()

    if course_id in visited:
        return set()
    visited.add(course_id)

    try:
        ast = parse_expression(expressions.get(course_id) or "")
    except PrereqParserError:
        return set()

    direct = analyze_grouping(ast).mandatory
    all_required = set(direct)
    for prereq in direct:
        all_required |= get_all_required_prereqs(prereq, expressions, visited)
    return all_required


def find_inconsistent_statuses(
    status_map: Dict[str, str],
    expressions: Dict[str, str],
) -> List[dict]:
    """
    Completed courses whose mandatory prerequisites are not completed.

    Each item:
      {"course_id": str, "prereqs_not_completed": List[str]}
    """
    issues: List[dict] = []
    for course_id in sorted(status_map):
        if status_map[course_id] != COMPLETED:
            continue
        required = get_all_required_prereqs(course_id, expressions)
        missing = sorted(p for p in required if status_map.get(p) != COMPLETED)
        if missing:
            issues.append({"course_id": course_id, "prereqs_not_completed": missing})
    return issues
