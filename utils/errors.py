"""
Error taxonomy for the tutorial pipeline.

Every failure a stage can report derives from TutorialError. Most classes also
derive from the builtin the older code raised (ValueError, RuntimeError,
IndexError) so callers catching those keep working.
"""


class TutorialError(Exception):
    """Base class for all pipeline errors."""


class InputValidationError(TutorialError, ValueError):
    """Bad or missing input detected before any LLM call is made."""


class GeneratorError(TutorialError, RuntimeError):
    """The LLM backend failed: transport, auth, or an empty response."""


class ResponseParseError(TutorialError, ValueError):
    """The LLM response had no usable structured block, or the wrong shape."""

    def __init__(self, message, raw_response=None):
        super().__init__(message)
        self.raw_response = raw_response


class InvalidReferenceError(ResponseParseError):
    """An index reference was neither an int nor an "<int> # comment" string."""

    def __init__(self, value, raw_response=None):
        super().__init__(f"Could not parse index from reference: {value!r}", raw_response)
        self.value = value


class ReferenceOutOfBoundsError(TutorialError, IndexError):
    """A resolved index falls outside the collection it refers to."""

    def __init__(self, value, size, context):
        super().__init__(
            f"Index {value} out of bounds in {context} (valid range 0..{size - 1})"
            if size > 0
            else f"Index {value} out of bounds in {context} (collection is empty)"
        )
        self.value = value
        self.size = size
        self.context = context


class PlanIncompleteError(TutorialError, ValueError):
    """The chapter order is not a permutation of all abstraction indices."""

    def __init__(self, message, missing=()):
        super().__init__(message)
        self.missing = tuple(missing)


class DuplicateIndexError(PlanIncompleteError):
    """The chapter order lists the same abstraction twice."""

    def __init__(self, value, position):
        super().__init__(f"Duplicate index {value} found at position {position} in chapter order")
        self.value = value
        self.position = position


class PipelineStateError(TutorialError, RuntimeError):
    """A stage was started before its input was ready."""


class PipelineFailed(TutorialError):
    """Terminal failure of a run: which stage failed and why."""

    def __init__(self, stage, cause):
        super().__init__(f"Stage '{stage}' failed: {cause}")
        self.stage = stage
        self.cause = cause
