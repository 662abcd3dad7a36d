"""
Tests for the expression and graph endpoints using the Flask test client.
"""

import json

import pytest


@pytest.fixture(scope="module")
def client():
    from server import app
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


def post(client, path, payload):
    resp = client.post(path, data=json.dumps(payload), content_type="application/json")
    return resp.status_code, resp.get_json()


class TestHealth:
    def test_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_security_headers(self, client):
        resp = client.get("/health")
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"


class TestParseEndpoint:
    def test_parse(self, client):
        status, data = post(client, "/api/expression/parse", {"expression": "a or (b and c)"})
        assert status == 200
        assert data["normalized"] == "a OR b AND c"
        assert data["referenced"] == ["a", "b", "c"]
        assert data["ast"]["type"] == "OR"
        assert data["ast"]["left"] == {"type": "COURSE", "id": "a"}

    def test_empty_is_none(self, client):
        status, data = post(client, "/api/expression/parse", {"expression": "  "})
        assert status == 200
        assert data["ast"] == {"type": "NONE"}

    def test_parse_error_position(self, client):
        status, data = post(client, "/api/expression/parse", {"expression": "CS100 + CS101"})
        assert status == 400
        assert data["error"]["error_code"] == "PARSE_ERROR"
        assert data["error"]["position"] == 6

    def test_invalid_json(self, client):
        resp = client.post("/api/expression/parse", data="not-json", content_type="application/json")
        assert resp.status_code == 400
        assert resp.get_json()["error"]["error_code"] == "INVALID_INPUT"

    def test_non_string_expression(self, client):
        status, data = post(client, "/api/expression/parse", {"expression": 5})
        assert status == 400
        assert data["error"]["error_code"] == "INVALID_INPUT"


class TestEvaluateEndpoint:
    def test_completed_list(self, client):
        status, data = post(client, "/api/expression/evaluate", {
            "expression": "CS100 AND (CS101 OR CS102)",
            "completed": ["CS100", "CS102"],
        })
        assert status == 200
        assert data["satisfied"] is True
        assert data["check"] == "CS100 ✓ AND (CS101 ✗ OR CS102 ✓)"

    def test_completed_string(self, client):
        status, data = post(client, "/api/expression/evaluate", {
            "expression": "CS100 AND CS101",
            "completed": "CS100, CS101, ART200",
        })
        assert status == 200
        assert data["satisfied"] is True

    def test_status_map(self, client):
        status, data = post(client, "/api/expression/evaluate", {
            "expression": "CS200 OR CS201",
            "status": {"CS200": "planned", "CS201": "failed"},
        })
        assert status == 200
        assert data["satisfied"] is False

    def test_unknown_status_rejected(self, client):
        status, data = post(client, "/api/expression/evaluate", {
            "expression": "CS200",
            "status": {"CS200": "done"},
        })
        assert status == 400
        assert data["error"]["error_code"] == "INVALID_INPUT"


class TestGroupingEndpoint:
    def test_grouping(self, client):
        status, data = post(client, "/api/expression/grouping", {"expression": "(A AND B) OR (A AND C)"})
        assert status == 200
        assert data == {"mandatory": ["A"], "groups": [["B"], ["C"]]}

    def test_parse_error(self, client):
        status, data = post(client, "/api/expression/grouping", {"expression": "A AND"})
        assert status == 400
        assert data["error"]["error_code"] == "PARSE_ERROR"

    def test_clause_cap(self, client, monkeypatch):
        import server
        monkeypatch.setattr(server, "_GROUPING_MAX_CLAUSES", 2)
        status, data = post(client, "/api/expression/grouping", {"expression": "(A OR B) AND (C OR D)"})
        assert status == 422
        assert data["error"]["error_code"] == "GROUPING_LIMIT"


class TestValidateExpressionEndpoint:
    def test_unknown(self, client):
        status, data = post(client, "/api/expression/validate", {
            "expression": "CS100 AND CS999",
            "known_ids": ["CS100"],
        })
        assert status == 200
        assert data == {"unknown": ["CS999"]}


class TestGraphEndpoints:
    ROWS = [
        {"course_id": "CS100", "course_name": "Intro", "credits": "3", "prereq_expression": "NONE"},
        {"course_id": "CS101", "course_name": "Next", "credits": "3", "prereq_expression": "CS100"},
        {"course_id": "CS102", "course_name": "Alt", "credits": "3", "prereq_expression": "CS100 OR CS101"},
    ]

    def test_compile_then_validate(self, client):
        status, data = post(client, "/api/graph/compile", {"rows": self.ROWS})
        assert status == 200
        assert data["diagnostics"] == []
        grouped = sorted(e["groupingId"] for e in data["graph"]["edges"] if e.get("groupingId"))
        assert grouped == ["CS102::g1", "CS102::g2"]

        status, result = post(client, "/api/graph/validate", {"graph": data["graph"]})
        assert status == 200
        assert result == {"valid": True, "errors": []}

    def test_compile_rejects_bad_rows(self, client):
        status, data = post(client, "/api/graph/compile", {"rows": "CS100"})
        assert status == 400

    def test_validate_empty_graph(self, client):
        status, data = post(client, "/api/graph/validate", {"graph": {"id": "g", "nodes": [], "edges": []}})
        assert status == 200
        assert data["valid"] is True

    def test_eligibility(self, client):
        status, data = post(client, "/api/graph/eligibility", {
            "expressions": {"CS100": "NONE", "CS101": "CS100", "CS102": "CS101"},
            "status": {"CS101": "completed"},
        })
        assert status == 200
        assert data["eligibility"] == {"CS100": True, "CS101": False, "CS102": True}
        assert data["inconsistent"] == [{"course_id": "CS101", "prereqs_not_completed": ["CS100"]}]

    def test_eligibility_parse_error(self, client):
        status, data = post(client, "/api/graph/eligibility", {
            "expressions": {"CS101": "CS100 AND"},
        })
        assert status == 400
        assert data["error"]["error_code"] == "PARSE_ERROR"

    def test_unlocks(self, client):
        status, data = post(client, "/api/graph/unlocks", {
            "expressions": {"CS100": "NONE", "CS101": "CS100", "CS102": "CS100 AND CS101", "CS201": "CS102"},
            "course_id": "CS100",
            "completed": [],
        })
        assert status == 200
        assert data["direct_unlocks"] == ["CS101", "CS102"]
        assert data["newly_eligible"] == ["CS101"]
        assert data["chain_depth"] == 3

    def test_unlocks_requires_course_id(self, client):
        status, data = post(client, "/api/graph/unlocks", {"expressions": {}})
        assert status == 400


class TestStringifyEndpoint:
    def test_stringify(self, client):
        ast = {
            "type": "AND",
            "left": {"type": "OR", "left": {"type": "COURSE", "id": "A"}, "right": {"type": "COURSE", "id": "B"}},
            "right": {"type": "COURSE", "id": "C"},
        }
        status, data = post(client, "/api/expression/stringify", {"ast": ast})
        assert status == 200
        assert data == {"expression": "(A OR B) AND C"}

    def test_bad_ast(self, client):
        status, data = post(client, "/api/expression/stringify", {"ast": {"type": "XOR"}})
        assert status == 400
        assert data["error"]["error_code"] == "INVALID_INPUT"

    def test_non_object_child(self, client):
        ast = {"type": "AND", "left": "A", "right": {"type": "NONE"}}
        status, data = post(client, "/api/expression/stringify", {"ast": ast})
        assert status == 400
        assert data["error"]["error_code"] == "INVALID_INPUT"

    def test_unparseable_course_id(self, client):
        ast = {"type": "OR", "left": {"type": "COURSE", "id": "CS 100"}, "right": {"type": "COURSE", "id": "and"}}
        status, data = post(client, "/api/expression/stringify", {"ast": ast})
        assert status == 400
        assert data["error"]["error_code"] == "INVALID_INPUT"

    def test_deeply_nested_expression_is_parse_error(self, client):
        status, data = post(client, "/api/expression/parse", {"expression": "(" * 400 + "A" + ")" * 400})
        assert status == 400
        assert data["error"]["error_code"] == "PARSE_ERROR"
