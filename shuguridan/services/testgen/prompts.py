from __future__ import annotations

from shuguridan.services.prompts import OutputLanguage


_RESPONSE_FORMAT = """```json
{
  "tests": [
    {
      "name": "test_name",
      "description": "what the test checks",
      "type": "io",
      "input": "stdin input",
      "expectedOutput": "expected stdout",
      "assertions": ["check 1", "check 2"]
    }
  ]
}
```"""

_TEST_TYPE_DESCRIPTIONS: dict[str, dict[str, str]] = {
    "unit": {"ko": "단위 테스트만", "en": "unit tests only"},
    "io": {"ko": "I/O 테스트만", "en": "I/O tests only"},
    "both": {"ko": "단위 테스트와 I/O 테스트 모두", "en": "both unit and I/O tests"},
}


def generation_system_prompt(language: OutputLanguage) -> str:
    notes = (
        "- Write description and assertions in Korean.\n"
        if language == "ko"
        else "- Write description and assertions in English.\n"
    )
    return (
        "You are a C++ testing expert. Analyze the given C++ code and generate test cases "
        "that verify its behaviour, so the original and modernized versions can be checked "
        "for identical output.\n\n"
        "## Test types\n"
        "1. I/O tests compare stdout for a given stdin.\n"
        "2. Unit tests describe return values or behaviour of specific functions.\n\n"
        "## Response format\n"
        f"Respond ONLY with JSON in this shape:\n{_RESPONSE_FORMAT}\n\n"
        "## Notes\n"
        "- Test names use English snake_case.\n"
        f"{notes}"
        "- Use \\n for newlines inside input and expectedOutput.\n"
        '- Use an empty string ("") when no input is needed.'
    )


def generation_user_prompt(
    *,
    original_code: str,
    modernized_code: str,
    source_version: str,
    target_version: str,
    test_type: str,
    max_test_cases: int,
    language: OutputLanguage,
) -> str:
    type_description = _TEST_TYPE_DESCRIPTIONS[test_type][language]
    return (
        "Generate test cases for the following C++ code.\n\n"
        f"## Original code ({source_version.upper()})\n```cpp\n{original_code}\n```\n\n"
        f"## Modernized code ({target_version.upper()})\n```cpp\n{modernized_code}\n```\n\n"
        "## Requirements\n"
        f"- Test type: {type_description}\n"
        f"- Maximum test cases: {max_test_cases}\n"
        "- Cover normal input, boundary values (empty input, min, max) and edge cases.\n\n"
        "Respond ONLY in JSON format."
    )

