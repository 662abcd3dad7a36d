import threading
from collections import OrderedDict

from eligibility import evaluate_ast, has_meaningful_expression, referenced_course_ids
from prereq_ast import PrereqAst
from prereq_parser import parse_expression


class _LruAstCache:
    """Thread-safe bounded in-memory cache of parsed ASTs."""

    def __init__(self, max_size: int):
        self.max_size = max(1, int(max_size))
        self._lock = threading.Lock()
        self._items: OrderedDict[tuple[str, str], PrereqAst] = OrderedDict()

    def get(self, key: tuple[str, str]):
        with self._lock:
            if key not in self._items:
                return None
            value = self._items.pop(key)
            self._items[key] = value
            return value

    def set(self, key: tuple[str, str], value: PrereqAst) -> None:
        with self._lock:
            if key in self._items:
                self._items.pop(key)
            self._items[key] = value
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def delete(self, key: tuple[str, str]) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ExpressionBook:
    """
    Per-course prerequisite expressions with memoized parsing.

    ASTs are cached under (course_id, expression), so editing a course's
    expression naturally misses the cache. Parse errors are not cached.
    """

    def __init__(self, expressions: dict[str, str] | None = None, max_size: int = 512):
        self.expressions: dict[str, str] = dict(expressions or {})
        self._cache = _LruAstCache(max_size)

    def get_expression(self, course_id: str) -> str:
        return self.expressions.get(course_id) or "NONE"

    def set_expression(self, course_id: str, expression: str) -> None:
        self.invalidate_course(course_id)
        self.expressions[course_id] = expression

    def parse(self, course_id: str, expression: str) -> PrereqAst:
        key = (course_id, expression)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        ast = parse_expression(expression)
        self._cache.set(key, ast)
        return ast

    def get_ast(self, course_id: str) -> PrereqAst:
        return self.parse(course_id, self.get_expression(course_id))

    def get_prerequisite_set(self, course_id: str) -> set[str]:
        if not has_meaningful_expression(self.get_expression(course_id)):
            return set()
        return referenced_course_ids(self.get_ast(course_id))

    def evaluate_course_eligibility(self, course_id: str, status_map) -> bool:
        if not has_meaningful_expression(self.get_expression(course_id)):
            return True
        return evaluate_ast(self.get_ast(course_id), status_map)

    def invalidate_course(self, course_id: str) -> None:
        self._cache.delete((course_id, self.get_expression(course_id)))

    def clear(self) -> None:
        self._cache.clear()

    def cache_size(self) -> int:
        return len(self._cache)
