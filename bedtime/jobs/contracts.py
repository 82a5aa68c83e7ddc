"""
Collaborator interfaces used by the story job processor.

Concrete implementations live in bedtime.database, bedtime.storyteller and
bedtime.storage; tests substitute fakes.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

from bedtime.jobs.models import (
    ChildProfile,
    Fingerprint,
    StoryContent,
    StoryGenerationResult,
    StoryJob,
    StoryMetaResult,
    StoryPreview,
    StoryStatus,
    UsageTransaction,
)


class StoryRepository(Protocol):
    async def get_story(self, story_id: str) -> Optional[StoryJob]: ...

    async def get_child(self, child_id: str) -> Optional[ChildProfile]: ...

    async def get_recent_fingerprints(self, child_id: str, limit: int) -> List[Fingerprint]: ...

    async def update_status(
        self,
        story_id: str,
        status: StoryStatus,
        error_message: Optional[str] = None,
    ) -> None: ...

    async def save_story_content(self, story_id: str, content: StoryContent) -> None: ...

    async def save_usage_transaction(self, story_id: str, transaction: UsageTransaction) -> None: ...

    async def save_preview(self, story_id: str, preview: StoryPreview) -> None: ...

    async def refund_credits(self, user_id: str, story_id: str, amount: int) -> None: ...


class StoryTextProvider(Protocol):
    async def generate_story_text(self, prompt: str) -> StoryGenerationResult: ...

    async def extract_story_meta(self, text: str) -> StoryMetaResult: ...


class CoverBuilder(Protocol):
    async def generate_cover_buffer(
        self,
        title: str,
        theme: str,
        mood: str,
        length: str,
    ) -> bytes: ...


class BlobStore(Protocol):
    async def upload_buffer(self, key: str, body: bytes, content_type: str) -> None: ...

    def build_public_url(self, key: str) -> str: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoryProcessorDeps:
    repo: StoryRepository
    provider: StoryTextProvider
    cover: CoverBuilder
    storage: BlobStore
    fingerprint_window: int = 5
    now: Callable[[], datetime] = field(default=utc_now)
