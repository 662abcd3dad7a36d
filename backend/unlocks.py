from eligibility import evaluate_ast, referenced_course_ids
from prereq_parser import parse_expression


def build_reverse_prereq_map(
    expressions: dict[str, str],
    parse=parse_expression,
) -> dict[str, list[str]]:
    """
    Builds a reverse prerequisite map: for each course, which courses
    reference it anywhere in their prerequisite expression.

    Returns: {"CS100": ["CS101", "CS102"], ...}  (dependents sorted)

    Only direct prerequisites (one level deep). No transitive graph traversal.
    """
    reverse: dict[str, list[str]] = {}

    for course_id in sorted(expressions):
        for prereq_id in sorted(referenced_course_ids(parse(expressions[course_id] or ""))):
            reverse.setdefault(prereq_id, [])
            if course_id not in reverse[prereq_id]:
                reverse[prereq_id].append(course_id)

    return reverse


def compute_chain_depths(
    reverse_map: dict[str, list[str]],
) -> dict[str, int]:
    """
    Compute the longest downstream prerequisite chain depth for every course.

    A course with no downstream dependents has depth 0.
    CS100 -> CS101 -> CS201 -> CS301 gives CS100 depth 3.

    O(V+E) with memoization.
    """
    memo: dict[str, int] = {}
    in_stack: set[str] = set()

    def _depth(course: str) -> int:
        if course in memo:
            return memo[course]
        if course in in_stack:
            return 0  # cycle guard
        in_stack.add(course)
        children = reverse_map.get(course, [])
        result = (1 + max(_depth(c) for c in children)) if children else 0
        in_stack.discard(course)
        memo[course] = result
        return result

    for course in reverse_map:
        _depth(course)

    return memo


def get_direct_unlocks(
    course_id: str,
    reverse_map: dict[str, list[str]],
    limit: int = 3,
) -> list[str]:
    """
    Returns up to `limit` courses that reference `course_id` as a direct prerequisite.
    """
    return reverse_map.get(course_id, [])[:limit]


def get_newly_eligible(
    course_id: str,
    reverse_map: dict[str, list[str]],
    expressions: dict[str, str],
    completed: set[str],
    parse=parse_expression,
) -> list[str]:
    """
    Dependents of `course_id` that become eligible once it is completed,
    i.e. not satisfied now but satisfied with `course_id` added.
    """
    after = set(completed) | {course_id}
    result = []
    for dependent in reverse_map.get(course_id, []):
        if dependent in completed:
            continue
        ast = parse(expressions.get(dependent) or "")
        if not evaluate_ast(ast, completed) and evaluate_ast(ast, after):
            result.append(dependent)
    return result
