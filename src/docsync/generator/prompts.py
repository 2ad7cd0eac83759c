"""
Prompt templates for the LLM generator.

Every prompt asks for a single JSON object so responses can be validated
before anything is written.
"""

import json
import posixpath
from datetime import date

from docsync.generator.base import FileDoc, TierContent
from docsync.modules.models import ModuleOverview

TIERS_SYSTEM_PROMPT = """You are an expert technical writer producing source code documentation at
three levels of detail.

Return ONLY a valid JSON object (no code fences, no extra text) with exactly the keys
"micro", "standard" and "expansive".

MICRO: a single paragraph of at most 120 words telling a developer what the file does
and why it matters. Plain English, no code.

STANDARD: at most 500 words of Markdown with the sections Purpose, Behaviour & Flow,
Responsibilities, Inputs / Outputs, Usage Context, Constraints & Error Conditions.

EXPANSIVE: a comprehensive Markdown document. It MUST start with a front matter header:
---
doc_version: 1
doc_tier: expansive
source_path: <path>
commit_sha: <commit>
tags: <comma separated tags>
---
followed by the sections File Purpose, Public API (signatures only), Behaviour Flow,
Key Properties & State, Dependencies, Error Handling and Notes.

Never use placeholders such as "[insert ...]" or "[to be ...]". Describe only what the
code actually does."""

UPDATE_SYSTEM_PROMPT = """You are an expert technical writer keeping source code documentation in
sync with code changes.

You receive the current source, a unified diff of the change and the existing
documentation tiers. For each tier decide whether the change makes it inaccurate.

Return ONLY a valid JSON object with the keys "micro", "standard" and "expansive".
Each value is either the complete updated tier text, or null when that tier is still
accurate and needs no change. Preserve the existing structure and wording where the
change does not affect it. The expansive tier keeps its front matter header.

Never use placeholders such as "[insert ...]" or "[to be ...]"."""

MODULE_SYSTEM_PROMPT = """You are an expert technical writer maintaining the narrative
documentation of a software module.

You receive the current module document and the documentation of files newly added to
the module. Rewrite the document so it covers every file, integrating the new files into
the existing narrative rather than appending a list.

Return ONLY a valid JSON object: {"document": "<markdown>"}. The markdown must contain a
"## Overview" section. Do not include a front matter header; it is managed for you.
Never use placeholders such as "[insert ...]" or "[to be ...]"."""

ASSIGNMENT_SYSTEM_PROMPT = """You organize source files into documentation modules.

You receive a list of unassigned files and the existing modules. For each group of
files, either assign them to an existing module or propose a new module.

Return ONLY a valid JSON object:
{
  "recommendations": [
    {
      "action": "assign_to_existing",
      "files": ["path/one.py"],
      "module": "existing-slug",
      "confidence": 0.9,
      "reasoning": "why"
    },
    {
      "action": "create_new_module",
      "files": ["a.py", "b.py", "c.py"],
      "module_name": "Human Name",
      "module_slug": "kebab-case-slug",
      "description": "what the module covers",
      "confidence": 0.8,
      "reasoning": "why"
    }
  ]
}

Confidence is a number between 0 and 1. Only use slugs of lower-case letters, digits
and hyphens. Every file appears in at most one recommendation."""


def _language(path: str) -> str:
    return posixpath.splitext(path)[1].lstrip(".") or "text"


def build_tiers_prompt(source_text: str, path: str, revision: str) -> str:
    """User prompt for initial generation of all tiers."""
    return f"""# Context
File path: {path}
Current commit: {revision}
Generated on: {date.today().isoformat()}

```{_language(path)}
{source_text}
```
"""


def build_update_prompt(
    source_text: str,
    diff_text: str,
    existing: TierContent,
    path: str,
    revision: str,
) -> str:
    """User prompt for updating existing tiers after a change."""
    existing_json = json.dumps({tier.value: text for tier, text in existing.items()}, indent=2)
    return f"""# Context
File path: {path}
Current commit: {revision}

## Change
```diff
{diff_text}
```

## Current Source
```{_language(path)}
{source_text}
```

## Existing Documentation
{existing_json}
"""


def build_module_prompt(module_name: str, current_document: str, new_file_docs: list[FileDoc]) -> str:
    """User prompt for regenerating a module narrative."""
    sections = "\n\n".join(f"### {doc.path}\n{doc.doc}" for doc in new_file_docs)
    return f"""# Module: {module_name}

## Current Document
{current_document}

## Newly Added Files
{sections}
"""


def build_assignment_prompt(unassigned: list[str], modules: list[ModuleOverview]) -> str:
    """User prompt for assignment recommendations."""
    module_lines = "\n".join(
        f"- {m.label}, {m.file_count} files: {m.summary}" for m in modules
    ) or "(no modules yet)"
    file_lines = "\n".join(f"- {p}" for p in unassigned)
    return f"""## Existing Modules
{module_lines}

## Unassigned Files
{file_lines}
"""
