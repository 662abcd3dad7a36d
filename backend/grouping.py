"""
Grouping analysis for prerequisite expressions.

Splits an expression into the course ids required on every path
("mandatory") and the remaining alternative clauses ("groups"). Used when
compiling course rows into a graph: mandatory edges carry no grouping id,
edges of the same group share one.

The expression is first expanded to disjunctive normal form. That expansion
is exponential in the number of nested AND-of-OR levels, e.g.
(A OR B) AND (C OR D) AND (E OR F) already yields 8 clauses. Callers that
analyse untrusted input interactively can pass max_clauses.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from prereq_ast import AndNode, CourseNode, NoneNode, OrNode, PrereqAst


class ClauseLimitExceeded(ValueError):
    def __init__(self, limit: int, count: int):
        super().__init__(f"Expression expands to {count} clauses (limit {limit})")
        self.limit = limit
        self.count = count


@dataclass
class GroupingAnalysis:
    mandatory: list[str] = field(default_factory=list)
    groups: list[list[str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"mandatory": list(self.mandatory), "groups": [list(g) for g in self.groups]}


def collect_clauses(ast: PrereqAst, max_clauses: int | None = None) -> list[frozenset[str]]:
    """
    Expand the AST into DNF clauses, each the set of ids needed together.
      NONE       -> [{}]
      COURSE(x)  -> [{x}]
      AND(l, r)  -> every union of one l-clause with one r-clause
      OR(l, r)   -> l-clauses followed by r-clauses
    Duplicates are kept; analyze_grouping removes them.
    """
    if isinstance(ast, NoneNode):
        return [frozenset()]
    if isinstance(ast, CourseNode):
        return [frozenset((ast.id,))]
    if isinstance(ast, AndNode):
        left = collect_clauses(ast.left, max_clauses)
        right = collect_clauses(ast.right, max_clauses)
        _check_limit(len(left) * len(right), max_clauses)
        return [lc | rc for lc in left for rc in right]
    if isinstance(ast, OrNode):
        clauses = collect_clauses(ast.left, max_clauses) + collect_clauses(ast.right, max_clauses)
        _check_limit(len(clauses), max_clauses)
        return clauses
    raise TypeError(f"Not a prerequisite AST node: {ast!r}")


def _check_limit(count: int, max_clauses: int | None) -> None:
    if max_clauses and count > max_clauses:
        raise ClauseLimitExceeded(max_clauses, count)


def analyze_grouping(ast: PrereqAst, max_clauses: int | None = None) -> GroupingAnalysis:
    """
    Returns the mandatory ids and the alternative groups of an expression.

      "A AND B"                 -> mandatory [A, B], groups []
      "A AND (B OR C)"          -> mandatory [A],    groups [[B], [C]]
      "(A AND B) OR (A AND C)"  -> mandatory [A],    groups [[B], [C]]
      "(A OR B) AND (C OR D)"   -> mandatory [],     groups [[A,C],[A,D],[B,C],[B,D]]

    If any clause is empty (some branch needs nothing, e.g. "NONE OR A") the
    whole expression is treated as having no prerequisites and both lists are
    empty, even when other branches are constrained.

    Output is sorted in both dimensions, so logically equivalent inputs
    (commuted, re-associated, duplicated operands) give identical results.
    """
    clauses = collect_clauses(ast, max_clauses)
    if any(not clause for clause in clauses):
        return GroupingAnalysis()

    unique: dict[tuple[str, ...], frozenset[str]] = {}
    for clause in clauses:
        unique.setdefault(tuple(sorted(clause)), clause)
    distinct = list(unique.values())

    mandatory = frozenset.intersection(*distinct)

    residuals = {tuple(sorted(clause - mandatory)) for clause in distinct}
    residuals.discard(())

    return GroupingAnalysis(
        mandatory=sorted(mandatory),
        groups=[list(g) for g in sorted(residuals)],
    )
