"""
Story Repository

Supabase-backed persistence for the story job processor: story rows,
child profiles, fingerprints, status history, provider usage and refunds.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from bedtime.jobs.models import (
    ChildProfile,
    Fingerprint,
    StoryContent,
    StoryJob,
    StoryPreview,
    StoryStatus,
    UsageTransaction,
)
from .client import get_supabase_admin_client
from .credits import CreditService


STORY_COLUMNS = "id, user_id, child_id, status, theme, mood, length, lesson, credit_cost"


class StoryRepository:
    """
    Repository used by the story worker.

    Status changes are written to the stories row and appended to
    story_status_events; events are never updated or deleted.
    """

    def __init__(self, client: Optional[Client] = None, credits: Optional[CreditService] = None):
        self._client = client
        self._credits = credits

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_admin_client()
        return self._client

    @property
    def credits(self) -> CreditService:
        if self._credits is None:
            self._credits = CreditService(self.client)
        return self._credits

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_story(self, story_id: str) -> Optional[StoryJob]:
        result = (
            self.client.table("stories")
            .select(STORY_COLUMNS)
            .eq("id", story_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return StoryJob.from_row(result.data[0])

    async def get_child(self, child_id: str) -> Optional[ChildProfile]:
        result = (
            self.client.table("children")
            .select("id, age")
            .eq("id", child_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        row = result.data[0]
        return ChildProfile(id=str(row["id"]), age=int(row["age"]))

    async def get_recent_fingerprints(self, child_id: str, limit: int) -> List[Fingerprint]:
        """Settings/conflicts/tones of the child's latest ready stories, newest first."""
        result = (
            self.client.table("stories")
            .select("setting, conflict, tone")
            .eq("child_id", child_id)
            .eq("status", StoryStatus.READY.value)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [
            Fingerprint(
                setting=row.get("setting"),
                conflict=row.get("conflict"),
                tone=row.get("tone"),
            )
            for row in result.data
        ]

    # =========================================================================
    # Writes
    # =========================================================================

    def _append_status_event(self, story_id: str, status: StoryStatus, error_message: Optional[str] = None):
        self.client.table("story_status_events").insert({
            "story_id": story_id,
            "status": status.value,
            "error_message": error_message,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }).execute()

    async def update_status(
        self,
        story_id: str,
        status: StoryStatus,
        error_message: Optional[str] = None,
    ) -> None:
        self.client.table("stories").update({
            "status": status.value,
            "error_message": error_message,
        }).eq("id", story_id).execute()
        self._append_status_event(story_id, status, error_message)

    async def save_story_content(self, story_id: str, content: StoryContent) -> None:
        self.client.table("stories").update({
            "title": content.title,
            "summary": content.summary,
            "text": content.text,
            "setting": content.setting,
            "conflict": content.conflict,
            "tone": content.tone,
            "model": content.model,
        }).eq("id", story_id).execute()

    async def save_usage_transaction(self, story_id: str, transaction: UsageTransaction) -> None:
        row: Dict[str, Any] = {
            "story_id": story_id,
            "operation_type": transaction.operation_type.value,
            "model": transaction.model,
            "input_tokens": transaction.input_tokens,
            "output_tokens": transaction.output_tokens,
            "total_tokens": transaction.total_tokens,
            "prompt_tokens": transaction.prompt_tokens,
            "completion_tokens": transaction.completion_tokens,
            "request_id": transaction.request_id,
            "response_id": transaction.response_id,
        }
        self.client.table("story_transactions").insert(row).execute()

    async def save_preview(self, story_id: str, preview: StoryPreview) -> None:
        self.client.table("stories").update({
            "preview_url": preview.preview_url,
            "ready_at": preview.ready_at.isoformat(),
            "status": StoryStatus.READY.value,
        }).eq("id", story_id).execute()
        self._append_status_event(story_id, StoryStatus.READY)

    async def refund_credits(self, user_id: str, story_id: str, amount: int) -> None:
        await self.credits.refund_for_story(user_id, story_id, amount)
