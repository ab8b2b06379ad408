"""
Custom Exception Classes for SkillForge Hiring API
"""
from typing import Dict, Any
from fastapi import HTTPException


class SkillForgeBaseException(Exception):
    """Base exception for SkillForge Hiring API"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(SkillForgeBaseException):
    """Raised when request data or a round index is invalid"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, **kwargs)


class ResourceNotFoundError(SkillForgeBaseException):
    """Raised when a job, application or user does not exist"""

    def __init__(self, message: str, resource: str = None, resource_id: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if resource:
            details['resource'] = resource
        if resource_id:
            details['resource_id'] = resource_id
        super().__init__(message, error_code="NOT_FOUND", details=details, **kwargs)


class DatabaseError(SkillForgeBaseException):
    """Raised when a MongoDB operation fails"""

    def __init__(self, message: str, operation: str = None, collection: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if operation:
            details['operation'] = operation
        if collection:
            details['collection'] = collection
        super().__init__(message, error_code="DATABASE_ERROR", details=details, **kwargs)


class ProcessingError(SkillForgeBaseException):
    """Raised when an operation fails for an unexpected reason"""

    def __init__(self, message: str, operation: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if operation:
            details['operation'] = operation
        super().__init__(message, error_code="PROCESSING_ERROR", details=details, **kwargs)


class AuthenticationError(SkillForgeBaseException):
    """Raised when the acting user cannot be identified"""

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, error_code="AUTHENTICATION_ERROR", **kwargs)


class AuthorizationError(SkillForgeBaseException):
    """Raised when a recruiter acts on a job they do not own"""

    def __init__(self, message: str = "Insufficient permissions", resource: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if resource:
            details['resource'] = resource
        super().__init__(message, error_code="AUTHORIZATION_ERROR", details=details, **kwargs)


class BusinessLogicError(SkillForgeBaseException):
    """Raised when a hiring rule forbids the request"""

    def __init__(self, message: str, rule: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if rule:
            details['business_rule'] = rule
        super().__init__(message, error_code="BUSINESS_LOGIC_ERROR", details=details, **kwargs)


class CapacityError(BusinessLogicError):
    """Raised when a hiring round already holds its configured number of applicants"""

    def __init__(self, message: str, round_index: int = None, capacity: int = None, **kwargs):
        details = kwargs.pop('details', {})
        if round_index is not None:
            details['round_index'] = round_index
        if capacity is not None:
            details['capacity'] = capacity
        super().__init__(message, rule="round_capacity", details=details, **kwargs)
        self.error_code = "CAPACITY_EXCEEDED"


class ConflictError(SkillForgeBaseException):
    """Raised when a concurrent update holds the resource"""

    def __init__(self, message: str, resource: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if resource:
            details['resource'] = resource
        super().__init__(message, error_code="CONFLICT", details=details, **kwargs)


class ExternalServiceError(SkillForgeBaseException):
    """Raised when a call to an outside service (SMTP) fails"""

    def __init__(self, message: str, service_name: str = None, status_code: int = None, **kwargs):
        details = kwargs.pop('details', {})
        if service_name:
            details['service_name'] = service_name
        if status_code:
            details['status_code'] = status_code
        super().__init__(message, error_code="EXTERNAL_SERVICE_ERROR", details=details, **kwargs)


class NotificationError(ExternalServiceError):
    """Raised when a hiring-update email cannot be delivered"""

    def __init__(self, message: str, recipient: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if recipient:
            details['recipient'] = recipient
        super().__init__(message, service_name="smtp", details=details, **kwargs)
        self.error_code = "NOTIFICATION_ERROR"


# HTTP Exception Mapping
def map_to_http_exception(exc: SkillForgeBaseException) -> HTTPException:
    """HTTP status and response body for a SkillForge exception"""

    status_code_mapping = {
        ValidationError: 400,
        BusinessLogicError: 400,
        CapacityError: 400,
        AuthenticationError: 401,
        AuthorizationError: 403,
        ResourceNotFoundError: 404,
        ConflictError: 409,
        DatabaseError: 500,
        ProcessingError: 500,
        ExternalServiceError: 502,
        NotificationError: 502
    }

    status_code = status_code_mapping.get(type(exc), 500)

    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }

    return HTTPException(status_code=status_code, detail=detail)


class ExceptionContext:
    """Wraps driver and unexpected errors of a block into SkillForge exceptions, logging the context"""

    def __init__(self, operation: str, logger=None, **context):
        self.operation = operation
        self.logger = logger
        self.context = context

    def __enter__(self):
        if self.logger:
            self.logger.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            # Re-raise custom exceptions as-is
            if isinstance(exc_val, SkillForgeBaseException):
                return False

            if self.logger:
                self.logger.error(
                    f"Operation failed: {self.operation} - {exc_val}",
                    extra={**self.context, "exception_type": exc_type.__name__}
                )

            if "pymongo" in (exc_type.__module__ or "") or "mongo" in str(exc_val).lower():
                wrapped_exc = DatabaseError(
                    f"Database error in {self.operation}: {str(exc_val)}",
                    operation=self.operation,
                    details=dict(self.context),
                    cause=exc_val
                )
                raise wrapped_exc from exc_val
            else:
                wrapped_exc = ProcessingError(
                    f"Processing error in {self.operation}: {str(exc_val)}",
                    operation=self.operation,
                    details=dict(self.context),
                    cause=exc_val
                )
                raise wrapped_exc from exc_val
        else:
            if self.logger:
                self.logger.debug(f"Operation completed: {self.operation}", extra=self.context)

        return False
