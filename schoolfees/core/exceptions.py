from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FeeValidationError(ServiceError):
    """Missing field, malformed date or non-positive amount. Nothing was written."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class DuplicateConfigurationError(ServiceError):
    def __init__(
        self,
        message: str = "Fee configuration already exists for this class and academic year",
    ) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class DuplicateGenerationError(ServiceError):
    def __init__(
        self,
        message: str = "Fees already exist for this student in this academic year and class",
    ) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ConfigurationMissingError(ServiceError):
    def __init__(
        self,
        message: str = "Fee configuration not found for this class and academic year",
    ) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class InvalidStartDateError(ServiceError):
    def __init__(self, message: str = "Academic year has an invalid start date") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ConcurrentModificationError(ServiceError):
    """Row changed underneath a read-modify-write; caller should reload and retry."""

    def __init__(
        self,
        message: str = "Fee installment was modified by another request; reload and try again",
    ) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
