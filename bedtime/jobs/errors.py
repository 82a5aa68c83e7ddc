"""
Story job errors and the user-facing error classifier.

Provider failures are converted into this closed hierarchy where the SDK
call is made, so the classifier only has to match on types.
"""

from typing import Optional


QUOTA_MESSAGE = "OpenAI kvóta elfogyott. Kérlek próbáld később."
CREDENTIALS_MESSAGE = "OpenAI API kulcs érvénytelen vagy hiányzik."
FALLBACK_MESSAGE = "Ismeretlen hiba történt a mesegenerálás során."

QUOTA_ERROR_CODES = frozenset({"insufficient_quota"})


class StoryJobError(Exception):
    """Base class for errors raised while processing a story job."""
    pass


class MalformedMessageError(StoryJobError):
    """Raised when a queue envelope cannot be parsed or lacks storyId."""
    pass


class StoryNotFoundError(StoryJobError):
    """Raised when the story row for a job does not exist."""

    def __init__(self, story_id: str):
        self.story_id = story_id
        super().__init__(f"Story {story_id} not found")


class ChildNotFoundError(StoryJobError):
    """Raised when the child profile owning a story does not exist."""

    def __init__(self, child_id: str):
        self.child_id = child_id
        super().__init__("Child not found")


class StoryStateError(StoryJobError):
    """Raised when a delivered job is no longer in the queued state."""

    def __init__(self, story_id: str, status: str):
        self.story_id = story_id
        self.status = status
        super().__init__(f"Story {story_id} is {status}, expected queued")


class GenerationFailedError(StoryJobError):
    """Provider answered but produced nothing usable."""
    pass


class MetadataIncompleteError(GenerationFailedError):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__("Story metadata extraction incomplete")


class ProviderError(StoryJobError):
    """A text-generation or metadata provider call failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None
    ):
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class QuotaExceededError(ProviderError):
    pass


class AuthInvalidError(ProviderError):
    pass


def provider_error_from(
    status_code: Optional[int],
    code: Optional[str],
    message: str
) -> ProviderError:
    """Build the typed provider error for a failed provider call."""
    if status_code == 429 or code in QUOTA_ERROR_CODES:
        return QuotaExceededError(message, status_code=status_code, code=code)
    if status_code == 401:
        return AuthInvalidError(message, status_code=status_code, code=code)
    return ProviderError(message, status_code=status_code, code=code)


def map_generation_error(error: BaseException) -> str:
    """
    Map a failure to a message that is safe to show to the user.

    Quota and credential failures get fixed messages, anything else with a
    readable message is passed through, and the rest gets a generic text.
    """
    if isinstance(error, QuotaExceededError):
        return QUOTA_MESSAGE
    if isinstance(error, AuthInvalidError):
        return CREDENTIALS_MESSAGE

    message = str(error)
    if message:
        return message
    return FALLBACK_MESSAGE
