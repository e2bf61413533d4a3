"""Exception hierarchy for the tutor core."""


class TutorError(Exception):
    """Base class for all tutor errors."""


class ValidationError(TutorError, ValueError):
    """Malformed input: score or day out of range, unknown topic."""


class TopicNotStarted(ValidationError):
    def __init__(self, topic_id: str):
        super().__init__(f"Topic not started: {topic_id}")
        self.topic_id = topic_id


class StorageUnavailable(TutorError):
    """The backing document store could not be read or written."""


class WriteConflict(StorageUnavailable):
    """A compare-and-swap update found a newer version of the record."""


class GenerationError(TutorError):
    """The content generator failed or returned unusable content."""


class DuplicateQuestionsError(GenerationError):
    def __init__(self, prompts: list[str]):
        super().__init__(f"Duplicate quiz prompts: {prompts}")
        self.prompts = prompts
