"""Error taxonomy shared by the store, decoder, orchestrator and routers."""

from enum import Enum


class StudyHelperError(Exception):
    """Base class for every error the service raises on purpose."""


class ValidationError(StudyHelperError):
    """Bad or missing caller input."""


class NotFoundError(StudyHelperError):
    """Requested state does not exist for the session."""


class DecodeFailure(str, Enum):
    NO_JSON_FOUND = "NoJsonFound"
    INVALID_JSON = "InvalidJson"
    UNEXPECTED_FORMAT = "UnexpectedFormat"
    MISSING_FIELD = "MissingField"
    WRONG_FIELD_TYPE = "WrongFieldType"
    SHAPE_MISMATCH = "ShapeMismatch"


class DecodeError(StudyHelperError):
    """A model reply could not be turned into the expected structure.

    ``detail`` is safe to show to clients. ``summary`` is the operation-level
    message set by the orchestrator, e.g. "Failed to generate quiz".
    """

    def __init__(self, reason: DecodeFailure, detail: str, summary: str = "Failed to decode model response"):
        super().__init__(detail)
        self.reason = reason
        self.detail = detail
        self.summary = summary


class TransportError(StudyHelperError):
    """The store or the model call failed below the application layer."""


class StoreError(TransportError):
    pass


class ModelError(TransportError):
    pass
