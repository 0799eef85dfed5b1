"""Best-effort language tags for syntax highlighting in the review UI."""

from __future__ import annotations

from pathlib import PurePosixPath

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "rb": "ruby",
    "go": "go",
    "rs": "rust",
    "java": "java",
    "c": "c",
    "cpp": "cpp",
    "cs": "csharp",
    "php": "php",
    "swift": "swift",
    "kt": "kotlin",
    "md": "markdown",
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "toml": "toml",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "sql": "sql",
    "sh": "shell",
    "bash": "shell",
}


def language_from_path(path: str) -> str | None:
    """Map a file path to a language tag, falling back to the bare extension."""
    suffix = PurePosixPath(path.replace("\\", "/")).suffix.lower().lstrip(".")
    if not suffix:
        return None
    return LANGUAGE_BY_EXTENSION.get(suffix, suffix)
