from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal


DocType = Literal["migration_guide", "release_notes", "test_points"]
TargetLevel = Literal["beginner", "intermediate", "senior", "compiler-engineer"]
OutputLanguage = Literal["ko", "en"]
ResponseMode = Literal["short", "detailed"]

LANGUAGE_INSTRUCTIONS: dict[str, str] = {
    "ko": "Respond in Korean.",
    "en": "Respond in English.",
}

LEVEL_DESCRIPTIONS: dict[str, str] = {
    "beginner": "Beginner developers (less than 1 year of C++)",
    "intermediate": "Intermediate developers (1-3 years of C++)",
    "senior": "Senior developers (5+ years of C++)",
    "compiler-engineer": "Compiler and language engineers (standard-wording level)",
}

BASE_SYSTEM_PROMPT = """You are a C++ language expert specializing in C++ standard transitions and modernization.
Your responses must be:
1. Based ONLY on official C++ standard documentation and well-established references
2. Technically accurate with proper citations
3. Explicit about uncertainty: mark anything you cannot verify as "needs verification"

Never make up information. If the provided context is insufficient, say so."""

DOC_TYPE_SYSTEM_PROMPTS: dict[str, str] = {
    "migration_guide": """You are a C++ migration specialist helping teams upgrade their codebase.
Focus on practical migration steps, common pitfalls, compiler compatibility and testing after migration.""",
    "release_notes": """You are a technical writer creating release notes for C++ version upgrades.
Focus on categorized changes, impact per change, before/after code and deprecation timelines.""",
    "test_points": """You are a QA engineer identifying test points for C++ version transitions.
Focus on critical areas, edge cases from language changes, regression tests and behavior-change verification.""",
}


@dataclass(frozen=True)
class PromptContext:
    source_version: str
    target_version: str
    diff_summary: str
    rag_context: str
    output_language: str
    target_level: str


@dataclass(frozen=True)
class ModernizationContext(PromptContext):
    old_code: str = ""
    filename: str | None = None


def get_system_prompt(doc_type: str) -> str:
    return f"{BASE_SYSTEM_PROMPT}\n\n{DOC_TYPE_SYSTEM_PROMPTS[doc_type]}"


def _header(title: str, ctx: PromptContext, source_label: str, target_label: str, data_label: str) -> str:
    return f"""# {title}

## Versions
- {source_label}: {ctx.source_version}
- {target_label}: {ctx.target_version}

## Audience
{LEVEL_DESCRIPTIONS[ctx.target_level]}

## {data_label}
{ctx.diff_summary}

## Reference documents (RAG context)
{ctx.rag_context}

## Instructions
{LANGUAGE_INSTRUCTIONS[ctx.output_language]}
"""


def build_migration_guide_prompt(ctx: PromptContext) -> str:
    return _header("C++ migration guide request", ctx, "Source version", "Target version", "Change summary") + """
Write the migration guide with these sections:

1. **Overview**: goals and benefits of this migration
2. **Prerequisites**: what to check before migrating
3. **Key changes** by category
   - New features (with adoption advice)
   - Behavior changes (with caveats)
   - Deprecated/removed (with replacements)
   - Library changes
4. **Migration steps**: step-by-step guide
5. **Testing strategy**: how to verify after migration
6. **References**: ISO standard sections and cppreference links

Every recommendation must be grounded in the reference documents provided."""


def build_release_notes_prompt(ctx: PromptContext) -> str:
    return _header("C++ release notes request", ctx, "Previous version", "New version", "Change data") + """
Write the release notes with these sections:

1. **Highlights**: the 3-5 most important changes
2. **New features**: name, description, code example, impact (compile-time/runtime)
3. **Behavior changes**: what changed and why, differences, required code edits
4. **Deprecated features**: affected feature, replacement, removal timeline if known
5. **Library updates**: new headers, classes and functions; performance improvements
6. **Known issues and limitations**

Include ISO standard references (for example §5.1.2) for each item."""


def build_test_points_prompt(ctx: PromptContext) -> str:
    return _header("C++ version transition test points request", ctx, "Source version", "Target version", "Change data") + """
Write the test points with these sections:

1. **Scope overview**: number of test areas, grouped by priority
2. **Critical test points** (must test)
   - Regression-prone areas caused by behavior changes
   - Code using removed features
   - Changes related to undefined behavior
3. **High test points** (recommended): new-feature compatibility, compiler differences
4. **Medium test points** (optional): library migration, performance verification
5. **Example test cases** for each category
6. **Test environment**: supported compiler versions and flags"""


def build_code_modernization_prompt(ctx: ModernizationContext) -> str:
    file_line = f"File: {ctx.filename}\n" if ctx.filename else ""
    return f"""# Code modernization request

## Code information
{file_line}Source version: {ctx.source_version}
Target version: {ctx.target_version}

## Original code
```cpp
{ctx.old_code}
```

## Reference documents (RAG context)
{ctx.rag_context}

## Instructions
{LANGUAGE_INSTRUCTIONS[ctx.output_language]}

Answer in this format:

### 1. Why change?
- Deprecation rationale
- Safety and performance benefits

### 2. Modernized code
```cpp
// converted code
```

### 3. Change details
- Explanation for each changed part

### 4. References
- ISO standard sections
- cppreference links

Mark anything not supported by the reference documents as "needs verification"."""


PROMPT_BUILDERS: dict[str, Callable[[PromptContext], str]] = {
    "migration_guide": build_migration_guide_prompt,
    "release_notes": build_release_notes_prompt,
    "test_points": build_test_points_prompt,
}


def get_prompt_builder(doc_type: str) -> Callable[[PromptContext], str]:
    return PROMPT_BUILDERS.get(doc_type, build_migration_guide_prompt)


def build_chat_system_prompt(source_version: str, target_version: str, response_mode: str = "detailed") -> str:
    if response_mode == "short":
        mode_instruction = (
            "Keep the answer concise: 3-5 sentences with only the key points. "
            "Include code only when necessary and keep it minimal."
        )
    else:
        mode_instruction = "Answer in detail with relevant code examples and explanations."
    return f"""You are a C++ expert. You give accurate answers about migrating from {source_version.upper()} to {target_version.upper()}.

Follow these rules:
1. Base your answers on the official C++ standard documentation.
2. {mode_instruction}
3. Mention migration caveats and potential problems.
4. {LANGUAGE_INSTRUCTIONS["ko"]}
5. State clearly when you are uncertain."""


def with_reference_documents(system_prompt: str, context: list[str]) -> str:
    """Append retrieved passages to a chat system prompt."""
    if not context:
        return system_prompt
    joined = "\n\n---\n\n".join(context)
    return f"{system_prompt}\n\nReference documents you may use:\n\n[Reference documents]\n{joined}"
