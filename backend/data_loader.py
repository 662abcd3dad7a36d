import pandas as pd

from eligibility import referenced_course_ids
from grouping import analyze_grouping
from normalizer import normalize_course_id
from prereq_parser import PrereqParserError, parse_expression


ROW_COLUMNS = ["course_id", "course_name", "credits", "prereq_expression"]


def grouping_id(course_id: str, group_index: int) -> str:
    """Grouping ids are '<target>::g<n>', n counting groups from 1."""
    return f"{course_id}::g{group_index}"


def grouping_label(grouping_id_value: str | None) -> str | None:
    """'CS102::g2' → 'Group g2'. None for mandatory edges."""
    if not grouping_id_value:
        return None
    return f"Group {str(grouping_id_value).split('::')[-1]}"


def _normalize_rows_df(rows) -> pd.DataFrame:
    """Accept a DataFrame or a list of row dicts; blank-fill and strip text columns."""
    df = rows.copy() if isinstance(rows, pd.DataFrame) else pd.DataFrame(list(rows or []))
    for col in ROW_COLUMNS:
        if col not in df.columns:
            df[col] = ""
    for col in ("course_id", "course_name", "prereq_expression"):
        df[col] = df[col].fillna("").astype(str).str.strip()
    df["credits"] = df["credits"].fillna("0").astype(str).str.strip().replace("", "0")
    df["credits"] = pd.to_numeric(df["credits"], errors="coerce")
    return df


def build_prereq_edges(course_id: str, ast, max_clauses: int | None = None) -> list[dict]:
    """
    Edges into `course_id` for one parsed expression.

    Mandatory prerequisites get one edge without a groupingId. Each
    alternative group gets its own groupingId shared by all its edges.
    """
    analysis = analyze_grouping(ast, max_clauses=max_clauses)
    edges: list[dict] = []
    for source in analysis.mandatory:
        edges.append({
            "id": f"{source}->{course_id}",
            "source": source,
            "target": course_id,
        })
    for index, group in enumerate(analysis.groups, start=1):
        gid = grouping_id(course_id, index)
        for source in group:
            edges.append({
                "id": f"{source}->{course_id}::g{index}",
                "source": source,
                "target": course_id,
                "groupingId": gid,
                "label": grouping_label(gid),
            })
    return edges


def compile_rows(rows, graph_id: str = "temp", max_clauses: int | None = None) -> dict:
    """
    Compiles tabular course rows into a prerequisite graph.

    Each row: course_id, course_name, credits, prereq_expression.

    Returns:
      {
        "graph": {"id", "nodes", "edges", "prereqExpressions"},
        "diagnostics": ["Missing course_name for CS100", ...]
      }

    Bad rows and repeated course ids are skipped with a diagnostic. Only ClauseLimitExceeded
    (when max_clauses is set) propagates.
    """
    df = _normalize_rows_df(rows)
    nodes: list[dict] = []
    edges: list[dict] = []
    expressions: list[dict] = []
    diagnostics: list[str] = []
    parsed: list[tuple[str, object]] = []
    # A repeated course_id keeps its first complete row.
    emitted: set[str] = set()

    for _, row in df.iterrows():
        course_id = row["course_id"]
        title = row["course_name"]
        credits = row["credits"]
        bad_credits = pd.isna(credits) or credits < 0

        if not course_id:
            diagnostics.append("Missing course_id")
        elif normalize_course_id(course_id) is None:
            diagnostics.append(f"Invalid course_id {course_id}")
            continue
        elif course_id in emitted:
            diagnostics.append(f"Duplicate course_id {course_id}")
            continue
        if not title:
            diagnostics.append(f"Missing course_name for {course_id or '(unknown id)'}")
        if bad_credits:
            diagnostics.append(f"Invalid credits for {course_id}")
        if not course_id or not title or bad_credits:
            continue

        credits_value = float(credits)
        emitted.add(course_id)
        nodes.append({
            "id": course_id,
            "nodeType": "course",
            "title": title,
            "credits": int(credits_value) if credits_value.is_integer() else credits_value,
        })

        expression = row["prereq_expression"] or "NONE"
        try:
            ast = parse_expression(expression)
        except PrereqParserError as exc:
            diagnostics.append(f"Invalid prereq_expression for {course_id}: {exc.message}")
            continue
        expressions.append({"courseId": course_id, "expression": expression})
        parsed.append((course_id, ast))

    known = {node["id"] for node in nodes}
    for course_id, ast in parsed:
        for ref in sorted(referenced_course_ids(ast) - known):
            diagnostics.append(f"Unknown prerequisite {ref} referenced by {course_id}")
        # Edges from unknown courses would dangle; the diagnostic above covers them.
        edges.extend(
            e for e in build_prereq_edges(course_id, ast, max_clauses=max_clauses)
            if e["source"] in known
        )

    graph = {
        "id": graph_id,
        "nodes": nodes,
        "edges": edges,
        "prereqExpressions": expressions,
    }
    return {"graph": graph, "diagnostics": diagnostics}
