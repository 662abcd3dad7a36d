import re

# Course ids: one run of letters, digits, '_' or '-'. Case is preserved.
COURSE_ID_RE = re.compile(r'^[A-Za-z0-9_-]+$')
RESERVED_WORDS = {"AND", "OR", "NONE"}


def normalize_course_id(raw: str) -> str | None:
    """
    Trims a user-entered course id and checks it is usable in an expression.
    Handles: ' CS100 ', 'math-101', 'CS_200'
    Returns None for blanks, ids with other characters, and reserved words.
    """
    if raw is None:
        return None
    s = str(raw).strip()
    if not s or not COURSE_ID_RE.match(s) or s.upper() in RESERVED_WORDS:
        return None
    return s


def normalize_input(raw_str: str, catalog_ids: set) -> dict:
    """
    Splits comma/newline/semicolon-separated input and normalizes each id.

    Returns:
      {
        "valid":          ["CS100", "MATH100"],   # usable + found in catalog
        "invalid":        ["CS 100!"],            # not a usable id
        "not_in_catalog": ["CS999"]               # usable but unknown course
      }
    """
    if not raw_str or not raw_str.strip():
        return {"valid": [], "invalid": [], "not_in_catalog": []}

    tokens = re.split(r'[,\n;]+', raw_str)
    valid = []
    invalid = []
    not_in_catalog = []
    seen: set[str] = set()

    for token in tokens:
        token = token.strip()
        if not token:
            continue
        normalized = normalize_course_id(token)
        if normalized is None:
            if token not in seen:
                invalid.append(token)
                seen.add(token)
        elif normalized in seen:
            pass  # deduplicate silently
        elif normalized not in catalog_ids:
            not_in_catalog.append(normalized)
            seen.add(normalized)
        else:
            valid.append(normalized)
            seen.add(normalized)

    return {"valid": valid, "invalid": invalid, "not_in_catalog": not_in_catalog}
