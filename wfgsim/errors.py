from enum import Enum


class ErrorKind(Enum):
    INVALID_REFERENCE = "InvalidReference"
    INVALID_STATE = "InvalidState"
    EMPTY_INPUT = "EmptyInput"


class DeadlockSimError(Exception):
    """Base class for recoverable simulation errors."""

    kind = None

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InvalidReferenceError(DeadlockSimError):
    """Unknown transaction or resource id."""

    kind = ErrorKind.INVALID_REFERENCE


class InvalidStateError(DeadlockSimError):
    """Operation not valid for the current state of a transaction or resource."""

    kind = ErrorKind.INVALID_STATE


class EmptyInputError(DeadlockSimError, ValueError):
    """An algorithm received an empty input it cannot work on."""

    kind = ErrorKind.EMPTY_INPUT
