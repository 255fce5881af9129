"""
Classifies the outcome of every API call and applies the suppression policy.

An unsuppressed failure raises ApiCallError carrying the category, the
status/transport code and the raw response. A suppressed failure returns a
DegradedResponse, or UNUSABLE when no response was obtained at all.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlsplit

from copernica_client.core.suppression import SuppressionPolicy
from copernica_client.core.transport import (
    CallOutcome,
    HttpError,
    MalformedBody,
    Success,
    Transport,
    TransportFailure,
    build_url,
    encode_params,
    perform_call,
)
from copernica_client.errors import ApiCallError, ErrorReason, FailureCategory as FC, ProtocolViolation

logger = logging.getLogger(__name__)

_CREATED_ID_RE = re.compile(r"^\s?(\d+)")

_ALREADY_REMOVED_MARKERS = (
    " has already been removed",
    " has already been deleted",
    "s already removed",
    "s already deleted",
)

_VERB_CATEGORIES = {
    "GET": (FC.GET_TRANSPORT_ERROR, FC.GET_BAD_REQUEST, FC.GET_STRANGE_HTTP_CODE),
    "POST": (FC.POST_TRANSPORT_ERROR, FC.POST_BAD_REQUEST, FC.POST_STRANGE_HTTP_CODE),
    "PUT": (FC.PUT_TRANSPORT_ERROR, FC.PUT_BAD_REQUEST, FC.PUT_STRANGE_HTTP_CODE),
    "DELETE": (FC.DELETE_TRANSPORT_ERROR, FC.DELETE_BAD_REQUEST, FC.DELETE_STRANGE_HTTP_CODE),
}


@dataclass(frozen=True)
class DegradedResponse:
    """What is left of a response whose failure was suppressed."""
    category: FC
    status_code: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None


class _Unusable:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "UNUSABLE"


UNUSABLE = _Unusable()

Result = Union[Dict[str, Any], List[Any], str, int, bool, DegradedResponse, _Unusable]


def _decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def error_message(body: Any) -> Optional[str]:
    """The message of a ``{"error": {"message": ...}}`` body, if it is one."""
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message")
        if isinstance(message, str):
            return message
    return None


def created_id(headers: Mapping[str, str]) -> Optional[int]:
    m = _CREATED_ID_RE.match(headers.get("X-Created", "") or "")
    return int(m.group(1)) if m else None


def is_already_removed(body: Any) -> bool:
    message = error_message(body)
    return message is not None and any(marker in message for marker in _ALREADY_REMOVED_MARKERS)


def see_other_location(outcome: HttpError) -> Optional[str]:
    """
    Path named by a 303 response to a PUT, without leading slash, host or
    query. None when the response does not look like a plain redirect to
    the affected entity.
    """
    if outcome.status_code != 303 or outcome.raw_body.strip():
        return None
    location = outcome.headers.get("Location")
    # Repeated headers are folded into one comma separated value.
    if not location or "," in location:
        return None
    path = urlsplit(location).path.lstrip("/")
    created = (outcome.headers.get("X-Created") or "").strip()
    if created and not path.endswith(created):
        return None
    return path


class ErrorClassifier:
    def __init__(self, transport: Transport, base_url: str, api_version: int, access_token: str,
                 text_resource_suffixes: Sequence[str] = ()):
        self.transport = transport
        self.base_url = base_url
        self.api_version = api_version
        self.access_token = access_token
        self.text_resource_suffixes = tuple(text_resource_suffixes)

    def call(self, verb: str, resource: str, policy: SuppressionPolicy,
             data: Optional[Any] = None, parameters: Optional[Mapping[str, Any]] = None) -> Result:
        verb = verb.upper()
        if verb not in _VERB_CATEGORIES:
            raise ValueError(f"Unsupported HTTP verb '{verb}'.")
        _, bad_request, _ = _VERB_CATEGORIES[verb]

        if not resource or not isinstance(resource, str):
            # Rejected the way the remote API would, without sending anything.
            return self._fail(policy, bad_request, verb, resource, "Invalid method.",
                              status_code=400, degraded=UNUSABLE)

        logger.debug(f"{verb} {resource}")
        params = encode_params(parameters or {}, self.access_token)
        outcome = perform_call(self.transport, verb, build_url(self.base_url, self.api_version, resource),
                               params, data if verb in ("POST", "PUT") else None)
        return self.classify(verb, resource, outcome, policy)

    def classify(self, verb: str, resource: str, outcome: CallOutcome, policy: SuppressionPolicy) -> Result:
        transport_error, bad_request, strange_code = _VERB_CATEGORIES[verb]

        if isinstance(outcome, TransportFailure):
            return self._fail(policy, transport_error, verb, resource, outcome.message,
                              transport_code=outcome.code, degraded=UNUSABLE)

        if isinstance(outcome, MalformedBody):
            return self._fail_response(policy, FC.GET_INVALID_JSON, verb, resource, outcome,
                                       "Response body is not valid JSON.")

        if isinstance(outcome, HttpError):
            if verb == "PUT" and outcome.status_code == 303:
                path = see_other_location(outcome)
                if path is not None:
                    return path
                return self._fail_response(policy, FC.PUT_STRANGE_SEE_OTHER, verb, resource, outcome,
                                           "Unexpected contents of '303 See Other' response.")
            if outcome.status_code == 400:
                category = bad_request
                if verb == "DELETE" and is_already_removed(_decode_json(outcome.raw_body)):
                    category = FC.DELETE_ALREADY_REMOVED
                return self._fail_response(policy, category, verb, resource, outcome,
                                           f"HTTP {outcome.status_code}.")
            return self._fail_response(policy, strange_code, verb, resource, outcome,
                                       f"Unexpected HTTP status {outcome.status_code}.")

        return self._classify_success(verb, resource, outcome, policy)

    def _classify_success(self, verb: str, resource: str, outcome: Success, policy: SuppressionPolicy) -> Result:
        if verb == "GET":
            body = outcome.body
            if isinstance(body, dict) and "error" in body:
                return self._fail_response(policy, FC.GET_ERROR_MESSAGE, verb, resource, outcome,
                                           "Response contains an error.")
            if isinstance(body, (dict, list)):
                return body
            if isinstance(body, str) and resource.endswith(self.text_resource_suffixes):
                return body
            return self._fail_response(policy, FC.GET_NON_ARRAY, verb, resource, outcome,
                                       "Response body is not a JSON encoded object or list.")

        if verb == "DELETE":
            return True

        new_id = created_id(outcome.headers)
        if verb == "PUT":
            return new_id if new_id is not None else True
        if new_id is None:
            return self._fail_response(policy, FC.POST_NO_ID, verb, resource, outcome,
                                       "Response returned no 'X-Created: ID' header.")
        return new_id

    def check_entity(self, entity: Any, resource: str, policy: SuppressionPolicy) -> Result:
        """Validate a single entity; a removed entity is a (suppressible) failure."""
        if not isinstance(entity, dict) or not (entity.get("id") or entity.get("ID")):
            raise ProtocolViolation(f"Entity returned from {resource} resource does not contain 'id'.",
                                    details={"resource": resource})
        if entity.get("removed"):
            return self._fail(policy, FC.GET_ENTITY_IS_REMOVED, "GET", resource,
                              f"Entity was removed {entity['removed']}.", status_code=200,
                              body=json.dumps(entity), degraded=entity)
        return entity

    def _fail_response(self, policy: SuppressionPolicy, category: FC, verb: str, resource: str,
                       outcome: Union[Success, HttpError, MalformedBody], message: str) -> Result:
        headers = dict(outcome.headers)
        body = outcome.raw_body
        degraded = DegradedResponse(category, outcome.status_code, headers, body)
        return self._fail(policy, category, verb, resource, message, status_code=outcome.status_code,
                          headers=headers, body=body, degraded=degraded)

    def _fail(self, policy: SuppressionPolicy, category: FC, verb: str, resource: str, message: str,
              status_code: Optional[int] = None, transport_code: Optional[int] = None,
              headers: Optional[Dict[str, str]] = None, body: Optional[str] = None,
              degraded: Any = UNUSABLE) -> Result:
        if policy.suppresses(category):
            logger.warning(f"Suppressed {category.value} for {verb} {resource} "
                           f"(status={status_code}, transport_code={transport_code})")
            return degraded

        reason = ErrorReason.OTHER
        if body:
            api_message = error_message(_decode_json(body))
            if api_message is not None:
                reason = ErrorReason.from_message(api_message)
                message = f"Copernica API request failed: {api_message}"
        raise ApiCallError(
            f"{verb} {resource}: {message}", category, verb, resource,
            status_code=status_code, transport_code=transport_code,
            headers=headers, body=body, reason=reason,
        )
