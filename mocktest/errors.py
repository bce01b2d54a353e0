"""Exceptions raised by the mock test engine."""


class MockTestError(Exception):
    """Base class for engine errors."""


class PatternValidationError(MockTestError):
    """Exam pattern arithmetic is inconsistent. Carries every violated check."""

    def __init__(self, pattern_name: str, errors: list[str]):
        self.pattern_name = pattern_name
        self.errors = list(errors)
        super().__init__(f"Pattern {pattern_name!r} is invalid: " + "; ".join(self.errors))


class InsufficientQuestions(MockTestError):
    """The question pool cannot satisfy a quota."""

    def __init__(self, subject: str, needed: int, available: int):
        self.subject = subject
        self.needed = needed
        self.available = available
        self.shortfall = needed - available
        super().__init__(
            f"Not enough questions for {subject}: need {needed}, found {available} (short by {self.shortfall})"
        )


class MalformedResponse(MockTestError):
    """A response references a question or option the test does not contain."""


class PersistenceError(MockTestError):
    """Blob store read/write failed."""


class QuestionValidationError(MockTestError):
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid question: " + "; ".join(self.errors))
