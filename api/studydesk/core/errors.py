from __future__ import annotations


class StudyDeskError(Exception):
    """Base class for every error the core raises on purpose."""


class BackendUnconfigured(StudyDeskError):
    """The selected model backend is missing credentials."""


class InsufficientContent(StudyDeskError):
    """Document text is too short to generate anything meaningful."""


class TransportError(StudyDeskError):
    """Network failure, timeout or HTTP error while talking to a model backend."""


class MalformedModelOutput(StudyDeskError):
    """Model output could not be parsed or did not have the expected shape."""


class ExtractionError(StudyDeskError):
    """Text could not be extracted from an uploaded file."""


class ChatError(StudyDeskError):
    """A chat answer could not be produced by the model backend."""


class NotFound(StudyDeskError):
    pass


class InvalidRequest(StudyDeskError):
    pass


class SessionStateError(InvalidRequest):
    """A Feynman step was requested out of order."""
