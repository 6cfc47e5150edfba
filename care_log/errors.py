"""Error types raised by the daily logging engine."""


class CareLogError(Exception):
    """Base class for all care log errors."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(CareLogError):
    """Raised when caller input is missing or malformed. Nothing has been written."""

    status_code = 400


class MissingFieldError(ValidationError):
    """Raised when one or more required fields are blank."""

    def __init__(self, missing: list[str]):
        super().__init__(f"{', '.join(missing)} required", {"missing": missing})
        self.missing = missing


class InvalidDutyReferenceError(ValidationError):
    """Raised when submitted duty ids do not belong to the POC."""

    def __init__(self, poc_id: str, invalid_duty_ids: list[str]):
        super().__init__(
            "Some pocDutyId do not exist or do not belong to this POC",
            {
                "invalidPocDutyIds": invalid_duty_ids,
                "pocId": poc_id,
                "count": len(invalid_duty_ids),
            },
        )
        self.poc_id = poc_id
        self.invalid_duty_ids = invalid_duty_ids


class StatusTransitionError(ValidationError):
    """Raised when a daily log would move backwards (SUBMITTED -> DRAFT)."""

    status_code = 409


class DutyConflictError(ValidationError):
    """Raised when POC duty ids are repeated or already used by another duty."""

    status_code = 409

    def __init__(self, poc_id: str, duty_ids: list[str]):
        super().__init__(
            "Some duty ids are repeated or already in use",
            {"conflictingDutyIds": duty_ids, "pocId": poc_id},
        )
        self.poc_id = poc_id
        self.duty_ids = duty_ids


class NotFoundError(CareLogError):
    """Raised when a referenced POC or daily log does not exist."""

    status_code = 404


class StorageError(CareLogError):
    """Raised when the database fails underneath an operation."""
    pass
