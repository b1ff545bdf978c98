"""Exception types shared across the pipeline and playback packages."""


class ReelforgeError(Exception):
    """Base class for application errors."""


class GenerationError(ReelforgeError):
    """A generation service call failed or returned something unusable.

    These are surfaced to the user with a retry affordance rather than
    treated as fatal.
    """

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class RenderBackendError(ReelforgeError):
    """The cloud render service rejected or failed a render."""


class InvalidMediaSetError(ReelforgeError, ValueError):
    """A media set was built without any images."""


class InvalidAudioReferenceError(ReelforgeError, ValueError):
    """An audio reference cannot be turned into a playable source."""
