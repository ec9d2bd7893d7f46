from __future__ import annotations

import json
import logging
import re
from typing import Any
from uuid import uuid4

from shuguridan.services.testgen.types import GeneratedTest


logger = logging.getLogger(__name__)

_FENCED_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
# Greedy so nested objects stay inside the outermost braces.
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json(text: str) -> str | None:
    """Pull a JSON document out of an LLM reply.

    A fenced code block wins; otherwise the span from the first "{" to the
    last "}" is used.
    """
    fenced = _FENCED_RE.search(text)
    if fenced:
        return fenced.group(1).strip()
    raw = _OBJECT_RE.search(text)
    if raw:
        return raw.group(0)
    return None


def _is_valid_test(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and isinstance(item.get("name"), str)
        and isinstance(item.get("description"), str)
        and item.get("type") in ("unit", "io")
        and isinstance(item.get("assertions"), list)
    )


def parse_llm_tests(text: str) -> list[GeneratedTest] | None:
    """Return the usable tests in a reply, or None when it cannot be parsed."""
    payload = extract_json(text)
    if payload is None:
        logger.warning("testgen_parse_failed reason=no_json")
        return None
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("testgen_parse_failed reason=invalid_json")
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("tests"), list):
        logger.warning("testgen_parse_failed reason=missing_tests")
        return None

    tests: list[GeneratedTest] = []
    for item in parsed["tests"]:
        if not _is_valid_test(item):
            continue
        tests.append(
            GeneratedTest(
                id=str(uuid4()),
                name=item["name"],
                description=item["description"],
                type=item["type"],
                input=str(item.get("input") or ""),
                expected_output=str(item.get("expectedOutput") or ""),
                assertions=[str(assertion) for assertion in item["assertions"]],
            )
        )
    return tests


def normalize_output(output: str) -> str:
    return output.replace("\r\n", "\n").replace("\r", "\n").strip()


def outputs_match(expected: str, actual: str) -> bool:
    return normalize_output(expected) == normalize_output(actual)
