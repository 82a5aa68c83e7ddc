import pytest

from bedtime.jobs.errors import (
    CREDENTIALS_MESSAGE,
    QUOTA_MESSAGE,
    AuthInvalidError,
    ChildNotFoundError,
    GenerationFailedError,
    MetadataIncompleteError,
    QuotaExceededError,
    StoryNotFoundError,
    StoryStateError,
)
from bedtime.jobs.models import OperationType, StoryMeta, StoryStatus
from bedtime.jobs.processor import process_story_job

from .conftest import FIXED_NOW, FakeCover, FakeProvider, FakeStorage, make_story


PIPELINE_STATUSES = [
    StoryStatus.GENERATING_TEXT,
    StoryStatus.EXTRACTING_META,
    StoryStatus.GENERATING_COVER,
    StoryStatus.UPLOADING_COVER,
]


async def test_walks_through_status_transitions_and_sets_preview(deps, repo):
    preview_url = await process_story_job("story-1", deps)

    assert repo.statuses == PIPELINE_STATUSES
    assert preview_url.endswith("preview.webp")
    assert "story-1" in preview_url

    assert len(repo.previews) == 1
    assert repo.previews[0].preview_url == preview_url
    assert repo.previews[0].ready_at == FIXED_NOW
    assert repo.refunds == []


async def test_saves_extracted_content_with_generation_model(deps, repo):
    await process_story_job("story-1", deps)

    assert len(repo.contents) == 1
    content = repo.contents[0]
    assert content.title == "Csendes erdő"
    assert content.summary == "Egy békés történet."
    assert content.text == "Egy nyugodt mese..."
    assert (content.setting, content.conflict, content.tone) == ("erdő", "félreértés", "nyugodt")
    assert content.model == "gpt-story"


async def test_avoid_pairs_reach_the_prompt(deps, repo, provider):
    await process_story_job("story-1", deps)

    assert repo.fingerprint_limits == [5]
    assert "- tenger / vihar" in provider.prompts[0]
    assert "Target age: 6 years." in provider.prompts[0]
    assert provider.meta_inputs == ["Egy nyugodt mese..."]


async def test_records_one_usage_transaction_per_provider_call(deps, repo):
    await process_story_job("story-1", deps)

    generation, extraction = repo.transactions
    assert generation.operation_type == OperationType.STORY_GENERATION
    assert generation.model == "gpt-story"
    assert (generation.input_tokens, generation.output_tokens, generation.total_tokens) == (100, 200, 300)
    assert generation.request_id == "req-1"
    assert generation.response_id == "resp-1"

    # legacy prompt/completion names fill in for missing input/output
    assert extraction.operation_type == OperationType.META_EXTRACTION
    assert extraction.model == "gpt-meta"
    assert (extraction.input_tokens, extraction.output_tokens, extraction.total_tokens) == (40, 10, 50)
    assert extraction.prompt_tokens == 40
    assert extraction.completion_tokens == 10


async def test_uploads_cover_under_story_key(deps):
    await process_story_job("story-1", deps)

    assert deps.cover.calls == [("Csendes erdő", "erdő", "nyugodt", "short")]
    assert deps.storage.uploads == [("stories/story-1/preview.webp", b"fake-webp", "image/webp")]


async def test_missing_story_raises_without_refund(deps, repo):
    repo.story = None

    with pytest.raises(StoryNotFoundError):
        await process_story_job("story-1", deps)

    assert repo.statuses == []
    assert repo.refunds == []


async def test_story_not_queued_is_not_reprocessed(deps, repo, provider):
    repo.story = make_story(status=StoryStatus.FAILED)

    with pytest.raises(StoryStateError):
        await process_story_job("story-1", deps)

    assert repo.statuses == []
    assert repo.refunds == []
    assert provider.prompts == []


async def test_missing_child_fails_and_refunds(deps, repo, provider):
    repo.child = None

    with pytest.raises(ChildNotFoundError):
        await process_story_job("story-1", deps)

    assert repo.statuses == [StoryStatus.FAILED]
    assert repo.status_errors == ["Child not found"]
    assert repo.refunds == [("user-1", "story-1", 25)]
    assert provider.prompts == []


async def test_empty_generation_fails_before_usage_is_recorded(deps, repo):
    deps.provider = FakeProvider(text="")

    with pytest.raises(GenerationFailedError):
        await process_story_job("story-1", deps)

    assert repo.statuses == [StoryStatus.GENERATING_TEXT, StoryStatus.FAILED]
    assert repo.status_errors[-1] == "Story generation failed"
    assert repo.transactions == []
    assert repo.refunds == [("user-1", "story-1", 25)]


async def test_incomplete_metadata_fails(deps, repo):
    deps.provider = FakeProvider(meta=StoryMeta(title="Cím", summary="", setting="erdő", conflict="x", tone="nyugodt"))

    with pytest.raises(MetadataIncompleteError) as excinfo:
        await process_story_job("story-1", deps)

    assert excinfo.value.missing == ["summary"]
    assert repo.statuses[-1] == StoryStatus.FAILED
    assert repo.status_errors[-1] == "Story metadata extraction incomplete"
    assert len(repo.transactions) == 1
    assert repo.contents == []


@pytest.mark.parametrize(
    "error, message",
    [
        (QuotaExceededError("Rate limit reached", status_code=429), QUOTA_MESSAGE),
        (AuthInvalidError("Incorrect API key", status_code=401), CREDENTIALS_MESSAGE),
        (RuntimeError("socket closed"), "socket closed"),
    ],
)
async def test_provider_errors_are_classified_on_failure(deps, repo, error, message):
    deps.provider = FakeProvider(generation_error=error)

    with pytest.raises(type(error)):
        await process_story_job("story-1", deps)

    assert repo.status_errors[-1] == message


@pytest.mark.parametrize("stage", ["generation", "meta", "cover", "upload", "preview"])
async def test_every_failing_stage_marks_failed_and_refunds_once(deps, repo, stage):
    error = RuntimeError(f"{stage} broke")
    if stage == "generation":
        deps.provider = FakeProvider(generation_error=error)
    elif stage == "meta":
        deps.provider = FakeProvider(meta_error=error)
    elif stage == "cover":
        deps.cover = FakeCover(error=error)
    elif stage == "upload":
        deps.storage = FakeStorage(error=error)
    else:
        async def broken_save_preview(story_id, preview):
            raise error
        repo.save_preview = broken_save_preview

    with pytest.raises(RuntimeError) as excinfo:
        await process_story_job("story-1", deps)

    assert excinfo.value is error
    assert repo.statuses.count(StoryStatus.FAILED) == 1
    assert repo.statuses[-1] == StoryStatus.FAILED
    assert repo.refunds == [("user-1", "story-1", 25)]


async def test_refund_uses_original_credit_cost_even_late_in_pipeline(deps, repo):
    repo.story = make_story(credit_cost=50)
    deps.storage = FakeStorage(error=OSError("upload refused"))

    with pytest.raises(OSError):
        await process_story_job("story-1", deps)

    assert repo.statuses == PIPELINE_STATUSES + [StoryStatus.FAILED]
    assert repo.refunds == [("user-1", "story-1", 50)]


async def test_refund_still_runs_when_failed_status_cannot_be_saved(deps, repo):
    deps.cover = FakeCover(error=RuntimeError("cover broke"))
    original_update = repo.update_status

    async def update_status(story_id, status, error_message=None):
        if status == StoryStatus.FAILED:
            raise ConnectionError("database gone")
        await original_update(story_id, status, error_message)

    repo.update_status = update_status

    with pytest.raises(ConnectionError):
        await process_story_job("story-1", deps)

    assert repo.refunds == [("user-1", "story-1", 25)]
