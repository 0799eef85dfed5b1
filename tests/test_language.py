"""Tests for language detection from file paths."""

from __future__ import annotations

import pytest

from reagent.language import language_from_path


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("src/index.ts", "typescript"),
        ("App.TSX", "typescript"),
        ("tool.py", "python"),
        ("config.yml", "yaml"),
        ("scripts/run.sh", "shell"),
        ("win\\path\\main.go", "go"),
        ("data.parquet", "parquet"),
        ("Makefile", None),
        (".gitignore", None),
    ],
)
def test_language_from_path(path: str, expected: str | None) -> None:
    assert language_from_path(path) == expected
