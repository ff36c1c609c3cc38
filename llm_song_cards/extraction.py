import json
import os
from typing import Any, Optional

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

SNIPPET_LENGTH = 200


def extract_json(text: str) -> Optional[Any]:
    """
    Pull the JSON object out of a model response.

    The whole string is tried first. Otherwise scan from the first ``{`` and
    track brace depth, ignoring braces inside string literals (a backslash
    escapes the next character), until depth returns to zero; that substring
    is parsed. Returns None when nothing parseable is found.
    """
    if not text:
        print("⚠️ Empty model response, no JSON to extract")
        return None

    try:
        return json.loads(text)
    except ValueError:
        pass

    start_index = text.find("{")
    if start_index == -1:
        print(f"⚠️ No JSON object found in response: {text[:SNIPPET_LENGTH]}")
        return None

    depth = 0
    in_string = False
    escape_next = False
    for i in range(start_index, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                candidate = text[start_index:i + 1]
                try:
                    return json.loads(candidate)
                except ValueError as e:
                    print(f"⚠️ Failed to parse extracted JSON: {candidate[:SNIPPET_LENGTH]} ({e})")
                    return None

    print(f"⚠️ Incomplete JSON in response: {text[start_index:start_index + SNIPPET_LENGTH]}")
    return None


def extract_json_object(text: str, key: str) -> Optional[list]:
    """Extract JSON and return the list stored under ``key``, or None."""
    parsed = extract_json(text)
    if not isinstance(parsed, dict):
        if parsed is not None and DEBUG_MODE:
            print(f"⚠️ Expected a JSON object with '{key}', got {type(parsed).__name__}")
        return None
    value = parsed.get(key, [])
    if not isinstance(value, list):
        if DEBUG_MODE:
            print(f"⚠️ '{key}' in model response is not a list")
        return None
    return value
