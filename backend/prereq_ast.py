"""
Prerequisite expression AST.

Four node kinds, all immutable:
  NoneNode            -> no prerequisite
  CourseNode(id)      -> one course must be completed
  AndNode(left, right)
  OrNode(left, right)

The JSON shape used by the API mirrors the node kinds:
  {"type": "NONE"}
  {"type": "COURSE", "id": "CS100"}
  {"type": "AND", "left": {...}, "right": {...}}
  {"type": "OR",  "left": {...}, "right": {...}}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from normalizer import normalize_course_id


# Course statuses. Only COMPLETED satisfies a COURSE leaf.
COMPLETED = "completed"
IN_PROGRESS = "in_progress"
PLANNED = "planned"
FAILED = "failed"
UNKNOWN = "unknown"

COURSE_STATUSES = (COMPLETED, IN_PROGRESS, PLANNED, FAILED, UNKNOWN)


@dataclass(frozen=True)
class NoneNode:
    type = "NONE"


@dataclass(frozen=True)
class CourseNode:
    id: str
    type = "COURSE"


@dataclass(frozen=True)
class AndNode:
    left: "PrereqAst"
    right: "PrereqAst"
    type = "AND"


@dataclass(frozen=True)
class OrNode:
    left: "PrereqAst"
    right: "PrereqAst"
    type = "OR"


PrereqAst = Union[NoneNode, CourseNode, AndNode, OrNode]

NONE = NoneNode()

# Deepest operator nesting accepted from text or JSON. Tree walkers recurse.
MAX_DEPTH = 128


def ast_to_dict(ast: PrereqAst) -> dict:
    if isinstance(ast, NoneNode):
        return {"type": "NONE"}
    if isinstance(ast, CourseNode):
        return {"type": "COURSE", "id": ast.id}
    if isinstance(ast, (AndNode, OrNode)):
        return {
            "type": ast.type,
            "left": ast_to_dict(ast.left),
            "right": ast_to_dict(ast.right),
        }
    raise TypeError(f"Not a prerequisite AST node: {ast!r}")


def ast_from_dict(data: dict, _depth: int = 0) -> PrereqAst:
    """
    Rebuild an AST from its JSON shape. Raises ValueError on a non-object
    node, an unknown node type, a COURSE id the parser would not accept,
    or nesting deeper than MAX_DEPTH.
    """
    if not isinstance(data, dict):
        raise ValueError("AST node must be an object")
    t = str(data.get("type", "")).upper()
    if t == "NONE":
        return NONE
    if t == "COURSE":
        course_id = data.get("id")
        if not isinstance(course_id, str) or not course_id:
            raise ValueError("COURSE node requires a non-empty string id")
        if normalize_course_id(course_id) != course_id:
            raise ValueError(f"Invalid course id: {course_id!r}")
        return CourseNode(course_id)
    if t in ("AND", "OR"):
        if _depth >= MAX_DEPTH:
            raise ValueError("AST nested too deeply")
        node_cls = AndNode if t == "AND" else OrNode
        return node_cls(
            ast_from_dict(data.get("left"), _depth + 1),
            ast_from_dict(data.get("right"), _depth + 1),
        )
    raise ValueError(f"Unknown AST node type: {t or '(missing)'}")
