"""Shared fakes for the story pipeline tests."""

from datetime import datetime, timezone
from typing import List, Optional

import pytest

from bedtime.jobs.contracts import StoryProcessorDeps
from bedtime.jobs.models import (
    ChildProfile,
    Fingerprint,
    StoryGenerationResult,
    StoryJob,
    StoryMeta,
    StoryMetaResult,
    StoryStatus,
    TokenUsage,
)


FIXED_NOW = datetime(2026, 1, 5, 20, 30, tzinfo=timezone.utc)


def make_story(**overrides) -> StoryJob:
    values = dict(
        id="story-1",
        user_id="user-1",
        child_id="child-1",
        status=StoryStatus.QUEUED,
        theme="erdő",
        mood="nyugodt",
        length="short",
        lesson=None,
        credit_cost=25,
    )
    values.update(overrides)
    return StoryJob(**values)


class FakeRepo:
    def __init__(self, story: Optional[StoryJob] = None, child: Optional[ChildProfile] = None,
                 fingerprints: Optional[List[Fingerprint]] = None):
        self.story = story
        self.child = child
        self.fingerprints = fingerprints or []
        self.statuses = []
        self.status_errors = []
        self.contents = []
        self.transactions = []
        self.previews = []
        self.refunds = []
        self.fingerprint_limits = []

    async def get_story(self, story_id):
        return self.story

    async def get_child(self, child_id):
        return self.child

    async def get_recent_fingerprints(self, child_id, limit):
        self.fingerprint_limits.append(limit)
        return self.fingerprints

    async def update_status(self, story_id, status, error_message=None):
        self.statuses.append(status)
        self.status_errors.append(error_message)

    async def save_story_content(self, story_id, content):
        self.contents.append(content)

    async def save_usage_transaction(self, story_id, transaction):
        self.transactions.append(transaction)

    async def save_preview(self, story_id, preview):
        self.previews.append(preview)

    async def refund_credits(self, user_id, story_id, amount):
        self.refunds.append((user_id, story_id, amount))


class FakeProvider:
    def __init__(self, text="Egy nyugodt mese...", meta: Optional[StoryMeta] = None,
                 generation_error: Optional[Exception] = None, meta_error: Optional[Exception] = None):
        self.text = text
        self.meta = meta or StoryMeta(
            title="Csendes erdő",
            summary="Egy békés történet.",
            setting="erdő",
            conflict="félreértés",
            tone="nyugodt",
        )
        self.generation_error = generation_error
        self.meta_error = meta_error
        self.prompts = []
        self.meta_inputs = []

    async def generate_story_text(self, prompt):
        self.prompts.append(prompt)
        if self.generation_error:
            raise self.generation_error
        return StoryGenerationResult(
            text=self.text,
            model="gpt-story",
            usage=TokenUsage(total_tokens=300, input_tokens=100, output_tokens=200),
            request_id="req-1",
            response_id="resp-1",
        )

    async def extract_story_meta(self, text):
        self.meta_inputs.append(text)
        if self.meta_error:
            raise self.meta_error
        return StoryMetaResult(
            meta=self.meta,
            model="gpt-meta",
            usage=TokenUsage(total_tokens=50, prompt_tokens=40, completion_tokens=10),
        )


class FakeCover:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = []

    async def generate_cover_buffer(self, title, theme, mood, length):
        self.calls.append((title, theme, mood, length))
        if self.error:
            raise self.error
        return b"fake-webp"


class FakeStorage:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.uploads = []

    async def upload_buffer(self, key, body, content_type):
        if self.error:
            raise self.error
        self.uploads.append((key, body, content_type))

    def build_public_url(self, key):
        return f"https://assets.test/{key}"


@pytest.fixture
def repo():
    return FakeRepo(
        story=make_story(),
        child=ChildProfile(id="child-1", age=6),
        fingerprints=[Fingerprint(setting="tenger", conflict="vihar", tone="nyugodt")],
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def deps(repo, provider):
    return StoryProcessorDeps(
        repo=repo,
        provider=provider,
        cover=FakeCover(),
        storage=FakeStorage(),
        now=lambda: FIXED_NOW,
    )
