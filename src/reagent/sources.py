"""File extraction: turn a review source into the files a session snapshots.

Git is driven through ``asyncio.create_subprocess_exec`` (never a shell) and
commit/branch diffs are parsed with unidiff to learn which paths changed.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from reagent.errors import GitError, InvalidRequest, NoFilesToReview
from reagent.language import language_from_path
from reagent.models import ReviewFile, ReviewInput, ReviewSource

logger = logging.getLogger("reagent")


async def run_git(args: list[str], cwd: str | None = None) -> str:
    """Run a git command and return stdout. Raises GitError on failure."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "git", *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except OSError as exc:
        raise GitError(f"Git command failed: {exc}") from exc
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip()
        raise GitError(f"Git command failed: git {' '.join(args)}: {detail}")
    return stdout.decode("utf-8", errors="replace")


async def is_git_repository(cwd: str | None = None) -> bool:
    try:
        await run_git(["rev-parse", "--git-dir"], cwd=cwd)
    except GitError:
        return False
    return True


async def _file_at_ref(path: str, ref: str, cwd: str | None) -> str | None:
    """Content of ``path`` at ``ref``, or None when it does not exist there."""
    try:
        return await run_git(["show", f"{ref}:{path}"], cwd=cwd)
    except GitError:
        return None


def _working_tree_content(path: str, cwd: str | None) -> str | None:
    full_path = Path(cwd or Path.cwd()) / path
    if not full_path.is_file():
        return None
    try:
        return full_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def should_include_file(path: str, specified: list[str] | None) -> bool:
    """Match an exact path or anything under a directory entry."""
    if not specified:
        return True
    for entry in specified:
        normalized = entry.rstrip("/")
        if not normalized or path == normalized or path.startswith(f"{normalized}/"):
            return True
    return False


def _review_file(path: str, content: str, old_content: str | None) -> ReviewFile:
    return ReviewFile(
        path=path,
        content=content,
        old_content=old_content,
        language=language_from_path(path),
    )


def parse_porcelain_status(output: str) -> list[tuple[str, str]]:
    """Parse ``git status --porcelain=v1 -z`` into (status, path) pairs.

    Renames and copies carry an extra NUL-separated source path, which is
    dropped; the entry is reported under its new path.
    """
    entries: list[tuple[str, str]] = []
    tokens = output.split("\0")
    idx = 0
    while idx < len(tokens):
        token = tokens[idx]
        idx += 1
        if len(token) < 4:
            continue
        status, path = token[:2], token[3:]
        if status[0] in "RC":
            idx += 1
        entries.append((status, path))
    return entries


async def _uncommitted_files(specified: list[str] | None, cwd: str | None) -> list[ReviewFile]:
    output = await run_git(
        ["status", "--porcelain=v1", "-z", "--untracked-files=all"], cwd=cwd
    )
    files: list[ReviewFile] = []
    for status, path in parse_porcelain_status(output):
        if not should_include_file(path, specified):
            continue
        if "D" in status:
            continue
        content = _working_tree_content(path, cwd)
        if content is None:
            continue
        added = "A" in status or "?" in status
        old_content = None if added else await _file_at_ref(path, "HEAD", cwd)
        files.append(_review_file(path, content, old_content))
    return files


async def _diff_files(
    diff_text: str,
    new_ref: str,
    old_ref: str,
    specified: list[str] | None,
    cwd: str | None,
) -> list[ReviewFile]:
    try:
        patch = PatchSet(diff_text)
    except UnidiffParseError as exc:
        raise GitError(f"Unable to parse git diff output: {exc}") from exc

    files: list[ReviewFile] = []
    for patched_file in patch:
        path = patched_file.path
        if not should_include_file(path, specified):
            continue
        if patched_file.is_removed_file:
            continue
        if patched_file.is_binary_file:
            logger.info("extract -> skipping binary file %s", path)
            continue
        content = await _file_at_ref(path, new_ref, cwd)
        if content is None:
            continue
        old_content = None
        if not patched_file.is_added_file:
            old_content = await _file_at_ref(path, old_ref, cwd)
        files.append(_review_file(path, content, old_content))
    return files


async def _commit_files(commit_hash: str, specified: list[str] | None, cwd: str | None) -> list[ReviewFile]:
    diff_text = await run_git(
        [
            "-c", "core.quotePath=false", "diff-tree", "-p", "-r", "--root", "--no-commit-id",
            "--no-renames", "--no-color", "--no-ext-diff", commit_hash,
        ],
        cwd=cwd,
    )
    return await _diff_files(diff_text, commit_hash, f"{commit_hash}^", specified, cwd)


async def _branch_files(base: str, head: str, specified: list[str] | None, cwd: str | None) -> list[ReviewFile]:
    diff_text = await run_git(
        [
            "-c", "core.quotePath=false", "diff",
            "--no-renames", "--no-color", "--no-ext-diff", f"{base}...{head}",
        ],
        cwd=cwd,
    )
    # Three-dot diff compares head against the merge base, not base's tip.
    merge_base = (await run_git(["merge-base", base, head], cwd=cwd)).strip()
    return await _diff_files(diff_text, head, merge_base or base, specified, cwd)


def read_local_files(paths: list[str], cwd: str | None = None) -> list[ReviewFile]:
    """Read explicit files from disk. Missing or non-regular paths are skipped."""
    working_dir = Path(cwd) if cwd else Path.cwd()
    files: list[ReviewFile] = []
    for entry in paths:
        full_path = Path(entry) if Path(entry).is_absolute() else working_dir / entry
        if not full_path.exists():
            logger.warning("extract -> file not found: %s", full_path)
            continue
        if not full_path.is_file():
            logger.warning("extract -> not a file: %s", full_path)
            continue
        try:
            content = full_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("extract -> failed to read %s: %s", full_path, exc)
            continue
        files.append(_review_file(entry, content, None))
    return files


async def extract_review_files(review_input: ReviewInput) -> list[ReviewFile]:
    """Resolve a review source into an ordered file list.

    Raises InvalidRequest for missing source fields, GitError when git fails or
    the directory is not a repository, and NoFilesToReview when a git source has
    no changes matching the filter.
    """
    source = review_input.resolved_source()
    label = str(source) if review_input.source else f"{source} (auto-detected)"
    cwd = review_input.working_directory
    logger.info("extract -> source=%s cwd=%s", label, cwd or ".")

    if source == ReviewSource.LOCAL:
        if not review_input.files:
            raise InvalidRequest("files must be specified for local review")
        return await asyncio.to_thread(read_local_files, review_input.files, cwd)

    if not await is_git_repository(cwd):
        raise GitError("Not a git repository")

    specified = review_input.files
    if source == ReviewSource.UNCOMMITTED:
        files = await _uncommitted_files(specified, cwd)
    elif source == ReviewSource.COMMIT:
        if not review_input.commit_hash:
            raise InvalidRequest("commitHash is required for source: commit")
        files = await _commit_files(review_input.commit_hash, specified, cwd)
    else:
        if not review_input.base or not review_input.head:
            raise InvalidRequest("base and head are required for source: branch")
        files = await _branch_files(review_input.base, review_input.head, specified, cwd)

    if not files:
        raise NoFilesToReview("No changes found for the specified files")
    return files


def default_title(review_input: ReviewInput) -> str:
    source = review_input.resolved_source()
    if source == ReviewSource.COMMIT:
        return f"Commit {(review_input.commit_hash or '')[:7]}"
    if source == ReviewSource.BRANCH:
        return f"{review_input.base}...{review_input.head}"
    if source == ReviewSource.LOCAL:
        return "Local files"
    return "Uncommitted changes"
