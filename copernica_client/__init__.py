from copernica_client.client import RestClient
from copernica_client.core.classifier import UNUSABLE, DegradedResponse
from copernica_client.core.cursor_store import CursorStore
from copernica_client.core.envelope import extract_embedded_entities, rekey_entities
from copernica_client.core.normalize import (
    is_boolean_true,
    is_empty,
    normalize,
    normalize_fields,
    normalize_secret,
)
from copernica_client.core.suppression import SuppressionPolicy
from copernica_client.errors import (
    ApiCallError,
    CopernicaError,
    ErrorCode,
    ErrorReason,
    FailureCategory,
    InvalidCursorState,
    OrderedFetchImpossible,
    OrderedFetchIssue,
    ProtocolViolation,
    UnknownFieldType,
)
from copernica_client.schemas import FieldSpec, FieldType, PageCursor, load_field_specs
