"""Utilities to normalize language ids and file paths for display."""

from __future__ import annotations

import re
from typing import Optional

_LANGUAGE_NAMES: dict[str, str] = {
    "javascript": "JavaScript",
    "typescript": "TypeScript",
    "typescriptreact": "TypeScript React",
    "javascriptreact": "JavaScript React",
    "python": "Python",
    "java": "Java",
    "csharp": "C#",
    "cpp": "C++",
    "c": "C",
    "go": "Go",
    "rust": "Rust",
    "ruby": "Ruby",
    "php": "PHP",
    "swift": "Swift",
    "kotlin": "Kotlin",
    "html": "HTML",
    "css": "CSS",
    "scss": "SCSS",
    "less": "Less",
    "json": "JSON",
    "yaml": "YAML",
    "xml": "XML",
    "markdown": "Markdown",
    "sql": "SQL",
    "shellscript": "Shell Script",
    "powershell": "PowerShell",
    "dockerfile": "Dockerfile",
    "plaintext": "Plain Text",
    "vue": "Vue",
    "svelte": "Svelte",
    "dart": "Dart",
    "lua": "Lua",
    "perl": "Perl",
    "r": "R",
    "scala": "Scala",
    "haskell": "Haskell",
    "elixir": "Elixir",
    "clojure": "Clojure",
    "fsharp": "F#",
    "objective-c": "Objective-C",
    "groovy": "Groovy",
}

# Directories that usually sit directly below a project root.
_PROJECT_CHILD_DIRS = frozenset(
    {"src", "lib", "app", "packages", "node_modules", ".git", "dist", "build", "out"}
)
# Directories whose direct child is usually a project root.
_PROJECT_PARENT_DIRS = frozenset(
    {
        "work_space",
        "workspace",
        "workspaces",
        "projects",
        "repos",
        "repositories",
        "github",
        "code",
        "dev",
        "development",
    }
)
_SKIP_DIRS = frozenset({"home", "users", "user", "c:", "d:", "var", "tmp", "mnt", "volumes"})

_SEPARATOR_PATTERN = re.compile(r"[\\/]+")


def language_display_name(language_id: str) -> str:
    """Return a readable name for an editor language id."""
    name = _LANGUAGE_NAMES.get(language_id)
    if name:
        return name
    return language_id[:1].upper() + language_id[1:]


def path_parts(path: str) -> list[str]:
    return [part for part in _SEPARATOR_PATTERN.split(path.strip()) if part]


def base_name(path: str) -> str:
    """Last component of a POSIX or Windows path."""
    parts = path_parts(path)
    return parts[-1] if parts else path


def extract_project_name(file_path: str) -> str:
    """Guess the project a file belongs to when no workspace was recorded."""
    parts = path_parts(file_path)

    for index, part in enumerate(parts):
        if index > 0 and part in _PROJECT_CHILD_DIRS:
            return parts[index - 1]

    for index, part in enumerate(parts[:-1]):
        if part.lower() in _PROJECT_PARENT_DIRS:
            return parts[index + 1]

    if len(parts) >= 2:
        for part in parts:
            if part.lower() not in _SKIP_DIRS:
                return part

    return parts[0] if parts else "Unknown"


def normalize_language_id(language_id: Optional[str]) -> str:
    if not language_id:
        return "plaintext"
    cleaned = language_id.strip().lower()
    return cleaned or "plaintext"
