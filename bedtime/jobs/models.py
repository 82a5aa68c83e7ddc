"""
Data model for story generation jobs.

Rows coming out of the repository are plain dataclasses; the queue
envelope is a Pydantic model because it is parsed from untrusted JSON.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class StoryStatus(str, Enum):
    """Status values for a story job, in pipeline order."""
    QUEUED = "queued"
    GENERATING_TEXT = "generating_text"
    EXTRACTING_META = "extracting_meta"
    GENERATING_COVER = "generating_cover"
    UPLOADING_COVER = "uploading_cover"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StoryStatus.READY, StoryStatus.FAILED)


class StoryMood(str, Enum):
    NYUGODT = "nyugodt"
    VIDAM = "vidam"
    KALANDOS = "kalandos"


class StoryLength(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class OperationType(str, Enum):
    """Kind of provider call recorded in a usage transaction."""
    STORY_GENERATION = "story_generation"
    META_EXTRACTION = "meta_extraction"


@dataclass
class StoryJob:
    id: str
    user_id: str
    child_id: str
    status: StoryStatus
    theme: str
    mood: str
    length: str
    lesson: Optional[str]
    credit_cost: int

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "StoryJob":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            child_id=str(row["child_id"]),
            status=StoryStatus(row["status"]),
            theme=row["theme"],
            mood=row["mood"],
            length=row["length"],
            lesson=row.get("lesson"),
            credit_cost=int(row.get("credit_cost") or 0),
        )


@dataclass
class ChildProfile:
    id: str
    age: int


@dataclass(frozen=True)
class Fingerprint:
    """Narrative summary of an earlier completed story for the same child."""
    setting: Optional[str] = None
    conflict: Optional[str] = None
    tone: Optional[str] = None


@dataclass(frozen=True)
class AvoidPair:
    setting: str
    conflict: str


@dataclass
class TokenUsage:
    """
    Token counts reported by a provider.

    Providers report either input/output or the legacy prompt/completion
    names; total is always present.
    """
    total_tokens: int = 0
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None

    def resolved_input(self) -> int:
        if self.input_tokens is not None:
            return self.input_tokens
        if self.prompt_tokens is not None:
            return self.prompt_tokens
        return 0

    def resolved_output(self) -> int:
        if self.output_tokens is not None:
            return self.output_tokens
        if self.completion_tokens is not None:
            return self.completion_tokens
        return 0


@dataclass
class StoryMeta:
    title: str = ""
    summary: str = ""
    setting: str = ""
    conflict: str = ""
    tone: str = ""

    def missing_fields(self) -> list[str]:
        return [
            name for name in ("title", "summary", "setting", "conflict", "tone")
            if not getattr(self, name)
        ]


@dataclass
class StoryGenerationResult:
    text: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    request_id: Optional[str] = None
    response_id: Optional[str] = None


@dataclass
class StoryMetaResult:
    meta: StoryMeta
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    request_id: Optional[str] = None
    response_id: Optional[str] = None


@dataclass(frozen=True)
class UsageTransaction:
    """Immutable record of one provider call."""
    operation_type: OperationType
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    request_id: Optional[str] = None
    response_id: Optional[str] = None

    @classmethod
    def from_call(
        cls,
        operation_type: OperationType,
        model: str,
        usage: TokenUsage,
        request_id: Optional[str] = None,
        response_id: Optional[str] = None,
    ) -> "UsageTransaction":
        return cls(
            operation_type=operation_type,
            model=model,
            input_tokens=usage.resolved_input(),
            output_tokens=usage.resolved_output(),
            total_tokens=usage.total_tokens,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            request_id=request_id,
            response_id=response_id,
        )


@dataclass
class StoryContent:
    title: str
    summary: str
    text: str
    setting: str
    conflict: str
    tone: str
    model: Optional[str] = None


@dataclass
class StoryPreview:
    preview_url: str
    ready_at: datetime


class StoryJobMessage(BaseModel):
    """Queue envelope: {"storyId": "<id>"}."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    story_id: str = Field(alias="storyId", min_length=1)
