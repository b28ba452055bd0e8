"""Error taxonomy shared by the engine and its collaborators.

NotFound and StorageFailure reach the session controller, which turns them
into error events. StorylineClosed is raised when a choice would open a new
branch on a storyline that has already ended. GenerationFailed and
ValidationFailure are raised by scene generators and absorbed by the
generator chain; they never leave it.
"""


class StorylineError(Exception):
    """Base class for recoverable engine errors."""


class NotFound(StorylineError):
    """A storyline, node, choice or character does not exist."""


class StorageFailure(StorylineError):
    """The persistent store could not be read or written."""


class StorylineClosed(StorylineError):
    """A new branch was requested on a storyline that has already ended."""


class GenerationFailed(StorylineError):
    """A scene generator could not produce content."""


class ValidationFailure(GenerationFailed):
    """A scene generator produced content with the wrong shape."""
