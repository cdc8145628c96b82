"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""


class ReceiptError(Exception):
    """Base exception for all receipt resolution errors."""

    pass


class NotInitializedError(ReceiptError):
    """Raised when a resolution is attempted without receipt data."""

    def __init__(self, message: str = "Receipt data not initialized on receipt service") -> None:
        self.message = message
        super().__init__(message)


class InvalidEnvironmentError(ReceiptError):
    """Raised when the environment is neither production nor sandbox."""

    def __init__(self, environment: object) -> None:
        self.environment = environment
        super().__init__(f"Invalid environment: {environment!r}")


class TransportError(ReceiptError):
    """Raised when Apple's verifyReceipt endpoint cannot be reached or decoded."""

    def __init__(self, endpoint: str, message: str) -> None:
        self.endpoint = endpoint
        self.message = message
        super().__init__(f"Error in the communication with Apple ({endpoint}): {message}")


class ReceiptValidationError(ReceiptError):
    """Raised when Apple answers with a status that is not success or a redirect."""

    def __init__(
        self,
        status_code: int | None,
        message: str,
        is_retryable: bool = False,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.is_retryable = is_retryable
        super().__init__(f"Receipt validation failed (status {status_code}): {message}")


class MissingRequiredFieldError(ReceiptError):
    """Raised when a purchase record lacks a field Apple guarantees."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Purchase record is missing required field: {field_name}")


class MalformedFieldError(ReceiptError):
    """Raised when a purchase record field cannot be interpreted."""

    def __init__(self, field_name: str, value: object) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(f"Purchase record field {field_name} is malformed: {value!r}")
