"""Typed errors raised by the meeting point core.

Two families matter to callers:

* ``MeetpointValidationError`` (also a ``ValueError``) for malformed input or
  configuration. These are raised before any provider call and are never
  retried; the API maps them to HTTP 400.
* ``CalculationFailedError`` for failures that happen while computing a
  result, typically because the travel-time provider misbehaved. The API maps
  them to HTTP 502.
"""

from __future__ import annotations

from typing import Any


class MeetpointError(Exception):
    """Base class carrying a stable error code and a user-facing message."""

    code = "INTERNAL_ERROR"
    default_user_message = "The meeting point calculation failed."

    def __init__(self, message: str, *, user_message: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.user_message = user_message or self.default_user_message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "user_message": self.user_message,
            "details": self.details,
        }


class MeetpointValidationError(MeetpointError, ValueError):
    code = "VALIDATION_ERROR"
    default_user_message = "The request is invalid."


class EmptyInputError(MeetpointValidationError):
    code = "EMPTY_INPUT"


class InvalidTravelTimeError(MeetpointValidationError):
    code = "INVALID_TRAVEL_TIME"


class InvalidMetricsError(MeetpointValidationError):
    code = "INVALID_METRICS"


class MissingVarianceError(MeetpointValidationError):
    code = "MISSING_VARIANCE"


class UnknownGoalError(MeetpointValidationError):
    code = "UNKNOWN_GOAL"
    default_user_message = "Unknown optimization goal. Use MINIMAX, MEAN or MIN."


class LengthMismatchError(MeetpointValidationError):
    code = "LENGTH_MISMATCH"


class NegativeIndexError(MeetpointValidationError):
    code = "NEGATIVE_INDEX"


class IndexOutOfBoundsError(MeetpointValidationError):
    code = "INDEX_OUT_OF_BOUNDS"

    def __init__(self, message: str, *, origin_index: int, destination_index: int):
        super().__init__(
            message,
            details={"origin_index": origin_index, "destination_index": destination_index},
        )
        self.origin_index = origin_index
        self.destination_index = destination_index


class EmptyMatrixError(MeetpointValidationError):
    code = "EMPTY_MATRIX"


class NoDestinationsError(MeetpointValidationError):
    code = "NO_DESTINATIONS"


class InvalidConfigurationError(MeetpointValidationError):
    code = "INVALID_CONFIGURATION"


class InvalidCoordinateError(MeetpointValidationError):
    code = "INVALID_COORDINATES"
    default_user_message = "One or more locations have invalid coordinates."


class InsufficientLocationsError(MeetpointValidationError):
    code = "INSUFFICIENT_LOCATIONS"
    default_user_message = "Please add at least 2 locations to calculate a fair meeting point."


class TooManyLocationsError(MeetpointValidationError):
    code = "TOO_MANY_LOCATIONS"
    default_user_message = "Too many locations. Please remove some locations and try again."


class CalculationFailedError(MeetpointError):
    code = "CALCULATION_FAILED"
    default_user_message = "The meeting point calculation failed. Please try again later."


class MatrixAcquisitionFailedError(CalculationFailedError):
    code = "MATRIX_ACQUISITION_FAILED"
    default_user_message = "Travel times could not be retrieved. Please try again later."


class NoScorableCandidatesError(CalculationFailedError):
    code = "NO_SCORABLE_CANDIDATES"
    default_user_message = "No candidate meeting point is reachable by every participant."


class MatrixProviderError(CalculationFailedError):
    code = "MATRIX_CALCULATION_FAILED"
    default_user_message = "The travel-time service returned an error."


class MatrixShapeError(MatrixProviderError):
    code = "MATRIX_SHAPE_MISMATCH"


class ProviderRateLimitError(MatrixProviderError):
    code = "API_RATE_LIMIT"
    default_user_message = "Service temporarily unavailable due to rate limits. Please try again in a few minutes."


class ProviderAuthenticationError(MatrixProviderError):
    code = "INVALID_API_KEY"
    default_user_message = "Configuration error: the travel-time service rejected the API key."


class ProviderUnavailableError(MatrixProviderError):
    code = "API_UNAVAILABLE"
    default_user_message = "The travel-time service is temporarily unavailable. Please try again later."
