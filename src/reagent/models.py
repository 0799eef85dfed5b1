"""Pydantic models and enums for reagent review sessions.

Python attributes are snake_case; the JSON the browser UI and MCP clients see
is camelCase. Every model accepts either spelling on input.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel


class ReviewStatus(StrEnum):
    """Review session lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    CANCELLED = "cancelled"


TERMINAL_STATUSES: frozenset[ReviewStatus] = frozenset(
    {ReviewStatus.APPROVED, ReviewStatus.CHANGES_REQUESTED, ReviewStatus.CANCELLED}
)
COMPLETION_STATUSES: frozenset[ReviewStatus] = frozenset(
    {ReviewStatus.APPROVED, ReviewStatus.CHANGES_REQUESTED}
)


class CommentSide(StrEnum):
    """Which column of the diff a comment range belongs to."""

    OLD = "old"
    NEW = "new"


class ReviewSource(StrEnum):
    UNCOMMITTED = "uncommitted"
    COMMIT = "commit"
    BRANCH = "branch"
    LOCAL = "local"


def utcnow() -> datetime:
    return datetime.now(UTC)


class WireModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ReviewFile(WireModel):
    """One file in the reviewed snapshot."""

    path: str = Field(min_length=1)
    content: str
    old_content: str | None = None
    language: str | None = None


class ReviewComment(WireModel):
    """A review annotation anchored to a line range of one file."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    file_path: str = Field(min_length=1)
    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    side: CommentSide = CommentSide.NEW
    text: str
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("text")
    @classmethod
    def _validate_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Comment text is required")
        return value

    @model_validator(mode="after")
    def _validate_range(self) -> ReviewComment:
        if self.end_line < self.start_line:
            raise ValueError(
                f"endLine ({self.end_line}) must be >= startLine ({self.start_line})"
            )
        return self


class ReviewResult(WireModel):
    """Terminal payload handed to waiters on completion."""

    status: ReviewStatus
    general_feedback: str = ""
    comments: list[ReviewComment] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)


class ReviewInput(WireModel):
    """Source specification: which files a new review session should contain."""

    files: list[str] | None = None
    source: ReviewSource | None = None
    commit_hash: str | None = None
    base: str | None = None
    head: str | None = None
    title: str | None = None
    description: str | None = None
    working_directory: str | None = None

    @field_validator("files")
    @classmethod
    def _validate_files(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and any(not entry.strip() for entry in value):
            raise ValueError("file entries must be non-empty")
        return value

    def resolved_source(self) -> ReviewSource:
        """Explicit source wins; otherwise infer from which fields are present."""
        if self.source is not None:
            return self.source
        if self.commit_hash:
            return ReviewSource.COMMIT
        if self.base or self.head:
            return ReviewSource.BRANCH
        return ReviewSource.UNCOMMITTED

    @model_validator(mode="after")
    def _validate_source_fields(self) -> ReviewInput:
        source = self.resolved_source()
        if source == ReviewSource.COMMIT and not self.commit_hash:
            raise ValueError("commitHash is required when reviewing a commit")
        if source == ReviewSource.BRANCH and (not self.base or not self.head):
            raise ValueError("base and head are required when comparing branches")
        if source == ReviewSource.LOCAL and not self.files:
            raise ValueError("files must be specified for local review")
        return self


class AddCommentRequest(WireModel):
    """Add-comment payload. ``lineNumber`` is shorthand for a one-line range."""

    file_path: str = Field(min_length=1)
    start_line: int | None = Field(default=None, ge=1)
    end_line: int | None = Field(default=None, ge=1)
    line_number: int | None = Field(default=None, ge=1)
    side: CommentSide = CommentSide.NEW
    text: str

    @model_validator(mode="after")
    def _resolve_anchor(self) -> AddCommentRequest:
        if self.start_line is None:
            if self.line_number is None:
                raise ValueError("startLine or lineNumber is required")
            self.start_line = self.line_number
        if self.end_line is None:
            self.end_line = self.start_line
        if self.end_line < self.start_line:
            raise ValueError(
                f"endLine ({self.end_line}) must be >= startLine ({self.start_line})"
            )
        if not self.text.strip():
            raise ValueError("Comment text is required")
        return self


class CompleteReviewRequest(WireModel):
    status: ReviewStatus
    general_feedback: str = ""

    @field_validator("status")
    @classmethod
    def _validate_status(cls, value: ReviewStatus) -> ReviewStatus:
        if value not in COMPLETION_STATUSES:
            raise ValueError("status must be 'approved' or 'changes_requested'")
        return value


class CreateReviewResult(WireModel):
    session_id: str
    review_url: str
    files_count: int
    title: str | None = None


class SessionSummary(WireModel):
    """Lightweight listing entry for a session."""

    id: str
    status: ReviewStatus
    files_count: int
    title: str | None = None
    description: str | None = None
    created_at: datetime


def validation_message(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one readable line."""
    parts = []
    for error in exc.errors():
        message = str(error.get("msg", "invalid value")).removeprefix("Value error, ")
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"
