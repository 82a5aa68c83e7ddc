"""
Story job pipeline.

Components:
- models: job, fingerprint and usage records
- fingerprints: avoid-list selection
- errors: typed failures and the user-facing classifier
- contracts: collaborator interfaces
- processor: runs one story through every stage

Usage:
    from bedtime.jobs.processor import process_story_job
    deps = StoryProcessorDeps(repo=repo, provider=provider, cover=cover, storage=storage)
    preview_url = await process_story_job(story_id, deps)
"""

from bedtime.jobs.contracts import StoryProcessorDeps
from bedtime.jobs.errors import (
    StoryJobError,
    MalformedMessageError,
    StoryNotFoundError,
    ChildNotFoundError,
    StoryStateError,
    GenerationFailedError,
    MetadataIncompleteError,
    ProviderError,
    QuotaExceededError,
    AuthInvalidError,
    map_generation_error,
    provider_error_from,
)
from bedtime.jobs.fingerprints import build_avoid_pairs
from bedtime.jobs.models import StoryStatus, StoryJobMessage

__all__ = [
    "StoryProcessorDeps",
    "StoryJobError",
    "MalformedMessageError",
    "StoryNotFoundError",
    "ChildNotFoundError",
    "StoryStateError",
    "GenerationFailedError",
    "MetadataIncompleteError",
    "ProviderError",
    "QuotaExceededError",
    "AuthInvalidError",
    "map_generation_error",
    "provider_error_from",
    "build_avoid_pairs",
    "StoryStatus",
    "StoryJobMessage",
]
