from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    APPLICATION_ERROR = "APPLICATION_ERROR"
    AMBIGUOUS_SUCCESS = "AMBIGUOUS_SUCCESS"
    PROTOCOL_VIOLATION = "PROTOCOL_VIOLATION"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    ORDERED_FETCH_IMPOSSIBLE = "ORDERED_FETCH_IMPOSSIBLE"
    UNKNOWN = "UNKNOWN"


class FailureCategory(str, Enum):
    """
    Independently suppressible failure types of a single API call.
    Names are stable; they are also used in settings and serialized state.
    """
    GET_TRANSPORT_ERROR = "GET_TRANSPORT_ERROR"
    GET_BAD_REQUEST = "GET_BAD_REQUEST"
    GET_STRANGE_HTTP_CODE = "GET_STRANGE_HTTP_CODE"
    GET_INVALID_JSON = "GET_INVALID_JSON"
    GET_NON_ARRAY = "GET_NON_ARRAY"
    GET_ERROR_MESSAGE = "GET_ERROR_MESSAGE"
    GET_ENTITY_IS_REMOVED = "GET_ENTITY_IS_REMOVED"
    POST_TRANSPORT_ERROR = "POST_TRANSPORT_ERROR"
    POST_BAD_REQUEST = "POST_BAD_REQUEST"
    POST_STRANGE_HTTP_CODE = "POST_STRANGE_HTTP_CODE"
    POST_NO_ID = "POST_NO_ID"
    PUT_TRANSPORT_ERROR = "PUT_TRANSPORT_ERROR"
    PUT_STRANGE_SEE_OTHER = "PUT_STRANGE_SEE_OTHER"
    PUT_BAD_REQUEST = "PUT_BAD_REQUEST"
    PUT_STRANGE_HTTP_CODE = "PUT_STRANGE_HTTP_CODE"
    DELETE_TRANSPORT_ERROR = "DELETE_TRANSPORT_ERROR"
    DELETE_ALREADY_REMOVED = "DELETE_ALREADY_REMOVED"
    DELETE_BAD_REQUEST = "DELETE_BAD_REQUEST"
    DELETE_STRANGE_HTTP_CODE = "DELETE_STRANGE_HTTP_CODE"

    @property
    def error_code(self) -> ErrorCode:
        if self.name.endswith("_TRANSPORT_ERROR"):
            return ErrorCode.TRANSPORT_FAILURE
        if self is FailureCategory.POST_NO_ID:
            return ErrorCode.AMBIGUOUS_SUCCESS
        return ErrorCode.APPLICATION_ERROR


class ErrorReason(str, Enum):
    """Known messages inside an embedded {"error": {"message": ...}} body."""
    INVALID_ACCESS_TOKEN = "INVALID_ACCESS_TOKEN"
    NO_ENTITY = "NO_ENTITY"
    OTHER = "OTHER"

    @classmethod
    def from_message(cls, message: Optional[str]) -> "ErrorReason":
        if message == "Invalid access token":
            return cls.INVALID_ACCESS_TOKEN
        if message == "No entity with supplied ID":
            return cls.NO_ENTITY
        return cls.OTHER


class CopernicaError(Exception):
    """Base class for all errors raised by this package."""
    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ApiCallError(CopernicaError):
    """
    A classified failure of one API call. Raised only when its category is
    not suppressed; carries the raw response so callers can still inspect it.
    """
    def __init__(
        self,
        message: str,
        category: FailureCategory,
        verb: str,
        resource: str,
        status_code: Optional[int] = None,
        transport_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
        reason: ErrorReason = ErrorReason.OTHER,
    ):
        super().__init__(message, code=category.error_code, details={
            "category": category.value,
            "verb": verb,
            "resource": resource,
            "status_code": status_code,
            "transport_code": transport_code,
        })
        self.category = category
        self.verb = verb
        self.resource = resource
        self.status_code = status_code
        self.transport_code = transport_code
        self.headers = headers or {}
        self.body = body
        self.reason = reason


class ProtocolViolation(CopernicaError):
    """Response shape contradicts the documented envelope. Never suppressible."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, code=ErrorCode.PROTOCOL_VIOLATION, details=details)


class UnknownFieldType(CopernicaError, ValueError):
    def __init__(self, field_type: Any):
        super().__init__(f"Unknown field type '{field_type}'.", code=ErrorCode.INVALID_ARGUMENT,
                         details={"type": field_type})
        self.field_type = field_type


class InvalidCursorState(CopernicaError, ValueError):
    def __init__(self, message: str = "Invalid structure for cursor state.", details: dict = None):
        super().__init__(message, code=ErrorCode.INVALID_ARGUMENT, details=details)


class OrderedFetchIssue(str, Enum):
    """Why the last page of a list cannot be continued by filtering on its ordered field."""
    UNSUPPORTED_QUERY = "UNSUPPORTED_QUERY"
    SAME_VALUE_BATCH = "SAME_VALUE_BATCH"
    ORDER_CONTRADICTED = "ORDER_CONTRADICTED"
    MISSING_ORDER_VALUE = "MISSING_ORDER_VALUE"


class OrderedFetchImpossible(CopernicaError):
    def __init__(self, issue: OrderedFetchIssue, message: str):
        super().__init__(message, code=ErrorCode.ORDERED_FETCH_IMPOSSIBLE, details={"issue": issue.value})
        self.issue = issue
