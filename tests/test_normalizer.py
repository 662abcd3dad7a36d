import pytest
from normalizer import normalize_course_id, normalize_input


class TestNormalizeCourseId:
    def test_plain(self):
        assert normalize_course_id("CS100") == "CS100"

    def test_trimmed(self):
        assert normalize_course_id("  CS100 ") == "CS100"

    def test_case_preserved(self):
        assert normalize_course_id("math-101_b") == "math-101_b"

    def test_invalid_space(self):
        assert normalize_course_id("CS 100") is None

    def test_invalid_symbol(self):
        assert normalize_course_id("CS100+") is None

    @pytest.mark.parametrize("word", ["AND", "or", "None"])
    def test_reserved_words(self, word):
        assert normalize_course_id(word) is None

    def test_invalid_empty(self):
        assert normalize_course_id("") is None

    def test_invalid_none(self):
        assert normalize_course_id(None) is None


class TestNormalizeInput:
    CATALOG = {"CS100", "CS101", "MATH100"}

    def test_split_and_classify(self):
        result = normalize_input("CS100, CS999;bad id\nMATH100", self.CATALOG)
        assert result == {
            "valid": ["CS100", "MATH100"],
            "invalid": ["bad id"],
            "not_in_catalog": ["CS999"],
        }

    def test_dedup(self):
        result = normalize_input("CS100, CS100, CS101", self.CATALOG)
        assert result["valid"] == ["CS100", "CS101"]

    def test_case_sensitive_catalog(self):
        result = normalize_input("cs100", self.CATALOG)
        assert result["not_in_catalog"] == ["cs100"]

    def test_empty(self):
        assert normalize_input("  ", self.CATALOG) == {"valid": [], "invalid": [], "not_in_catalog": []}
