"""Heuristic: does a GitHub Actions workflow publish to npm?

Plain substring checks over the workflow text. Kept separate so a YAML-aware
check can replace it without touching the assembler.
"""

from __future__ import annotations

from typing import Any

NPM_PUBLISH_SIGNATURES = (
    "npm publish",
    "yarn publish",
    "yarn npm publish",
    "pnpm publish",
    "js-devtools/npm-publish",
    "changesets/action",
    "semantic-release",
    "registry-url: https://registry.npmjs.org",
    "registry-url: 'https://registry.npmjs.org'",
    'registry-url: "https://registry.npmjs.org"',
)

WORKFLOW_SUFFIXES = (".yml", ".yaml")


def is_npm_publish_workflow(text: Any) -> bool:
    if not isinstance(text, str) or not text:
        return False
    lowered = text.lower()
    return any(signature in lowered for signature in NPM_PUBLISH_SIGNATURES)


def is_workflow_file(name: Any) -> bool:
    return isinstance(name, str) and name.lower().endswith(WORKFLOW_SUFFIXES)
