"""
Story job processor.

Advances one story through text generation, metadata extraction, cover
rendering and upload, persisting status and provider usage after each
stage. Any failure after the story is loaded marks it failed, refunds its
full credit cost once, and re-raises so the consumer drops the message.
"""

import time

from bedtime.jobs.contracts import StoryProcessorDeps
from bedtime.jobs.errors import (
    ChildNotFoundError,
    GenerationFailedError,
    MetadataIncompleteError,
    StoryNotFoundError,
    StoryStateError,
    map_generation_error,
)
from bedtime.jobs.fingerprints import build_avoid_pairs
from bedtime.jobs.models import (
    OperationType,
    StoryContent,
    StoryPreview,
    StoryStatus,
    UsageTransaction,
)
from bedtime.storyteller.prompts import build_story_prompt
from bedtime.utils.logging import job_logger as logger


COVER_CONTENT_TYPE = "image/webp"


def preview_key(story_id: str) -> str:
    return f"stories/{story_id}/preview.webp"


async def process_story_job(story_id: str, deps: StoryProcessorDeps) -> str:
    """
    Run the full pipeline for one story.

    Returns:
        Public URL of the uploaded cover preview

    Raises:
        StoryNotFoundError: story row missing (nothing charged here, no refund)
        StoryStateError: story already left the queued state (no refund)
        Exception: whatever failed a stage, after the story was marked
            failed and its credits refunded
    """
    repo = deps.repo

    story = await repo.get_story(story_id)
    if story is None:
        raise StoryNotFoundError(story_id)
    if story.status != StoryStatus.QUEUED:
        raise StoryStateError(story_id, story.status.value)

    start_time = time.monotonic()

    try:
        child = await repo.get_child(story.child_id)
        if child is None:
            raise ChildNotFoundError(story.child_id)

        # Stage 1: text generation
        await repo.update_status(story_id, StoryStatus.GENERATING_TEXT)

        fingerprints = await repo.get_recent_fingerprints(story.child_id, deps.fingerprint_window)
        avoid_pairs = build_avoid_pairs(fingerprints)

        prompt = build_story_prompt(
            child_age=child.age,
            mood=story.mood,
            length=story.length,
            theme=story.theme,
            avoid_pairs=avoid_pairs,
            lesson=story.lesson,
        )

        logger.info(
            "Generating story text",
            story_id=story_id,
            avoid_pairs=len(avoid_pairs),
        )
        story_result = await deps.provider.generate_story_text(prompt)
        if not story_result.text:
            raise GenerationFailedError("Story generation failed")

        await repo.save_usage_transaction(
            story_id,
            UsageTransaction.from_call(
                OperationType.STORY_GENERATION,
                story_result.model,
                story_result.usage,
                request_id=story_result.request_id,
                response_id=story_result.response_id,
            ),
        )

        # Stage 2: metadata extraction
        await repo.update_status(story_id, StoryStatus.EXTRACTING_META)
        meta_result = await deps.provider.extract_story_meta(story_result.text)

        missing = meta_result.meta.missing_fields()
        if missing:
            raise MetadataIncompleteError(missing)

        await repo.save_usage_transaction(
            story_id,
            UsageTransaction.from_call(
                OperationType.META_EXTRACTION,
                meta_result.model,
                meta_result.usage,
                request_id=meta_result.request_id,
                response_id=meta_result.response_id,
            ),
        )

        meta = meta_result.meta
        # The generation model is the one attributed to the story
        await repo.save_story_content(
            story_id,
            StoryContent(
                title=meta.title,
                summary=meta.summary,
                text=story_result.text,
                setting=meta.setting,
                conflict=meta.conflict,
                tone=meta.tone,
                model=story_result.model,
            ),
        )

        # Stage 3: cover
        await repo.update_status(story_id, StoryStatus.GENERATING_COVER)
        cover_buffer = await deps.cover.generate_cover_buffer(
            title=meta.title,
            theme=story.theme,
            mood=story.mood,
            length=story.length,
        )

        # Stage 4: upload
        await repo.update_status(story_id, StoryStatus.UPLOADING_COVER)
        key = preview_key(story_id)
        await deps.storage.upload_buffer(
            key=key,
            body=cover_buffer,
            content_type=COVER_CONTENT_TYPE,
        )
        preview_url = deps.storage.build_public_url(key)

        await repo.save_preview(
            story_id,
            StoryPreview(preview_url=preview_url, ready_at=deps.now()),
        )

    except Exception as exc:
        error_message = map_generation_error(exc)
        logger.error(
            "Story job failed, refunding credits",
            story_id=story_id,
            error=error_message,
            error_type=type(exc).__name__,
            credit_cost=story.credit_cost,
        )
        try:
            await repo.update_status(story_id, StoryStatus.FAILED, error_message)
        finally:
            await repo.refund_credits(story.user_id, story_id, story.credit_cost)
        raise

    logger.info(
        "Story ready",
        story_id=story_id,
        title=meta.title,
        seconds=round(time.monotonic() - start_time, 1),
    )
    return preview_url
