"""
Boundary to the HTTP layer.

A transport performs one request and hands back status, headers and body,
or raises TransportError when no response was obtained at all.
perform_call() turns that into a CallOutcome for the classifier.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, Union
from urllib.parse import quote

import requests
from requests.structures import CaseInsensitiveDict

from copernica_client.config import settings

logger = logging.getLogger(__name__)

# curl-compatible codes, so logs read the same as the remote API's own docs.
TRANSPORT_ERROR_GENERIC = 1
TRANSPORT_ERROR_CONNECT = 7
TRANSPORT_ERROR_TIMEOUT = 28


class TransportError(Exception):
    def __init__(self, code: int, message: str):
        super().__init__(f"Transport error {code}: {message}")
        self.code = code
        self.message = message


@dataclass
class TransportResponse:
    status_code: int
    headers: Mapping[str, str] = field(default_factory=CaseInsensitiveDict)
    body: str = ""

    def __post_init__(self):
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "").split(";")[0].strip().lower()


class Transport(Protocol):
    def request(self, method: str, url: str, params: List[Tuple[str, str]],
                json: Optional[Any] = None) -> TransportResponse:
        ...


class RequestsTransport:
    """Default transport on top of a requests.Session. Redirects are not followed."""

    def __init__(self, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def request(self, method: str, url: str, params: List[Tuple[str, str]],
                json: Optional[Any] = None) -> TransportResponse:
        try:
            response = self.session.request(
                method, url, params=params, json=json,
                timeout=self.timeout, allow_redirects=False,
            )
        except requests.exceptions.ConnectionError as e:
            raise TransportError(TRANSPORT_ERROR_CONNECT, str(e)) from e
        except requests.exceptions.Timeout as e:
            raise TransportError(TRANSPORT_ERROR_TIMEOUT, str(e)) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(TRANSPORT_ERROR_GENERIC, str(e)) from e

        return TransportResponse(
            status_code=response.status_code,
            headers=CaseInsensitiveDict(response.headers),
            body=response.text,
        )


def _param_value(value: Any) -> str:
    if value is True:
        return "1"
    if value is False or value is None:
        return ""
    return str(value)


def encode_params(parameters: Mapping[str, Any], access_token: str = "") -> List[Tuple[str, str]]:
    """
    Flatten query parameters the way the remote API expects them.

    Lists become repeated ``key[]`` pairs; the access token goes last.
    """
    encoded: List[Tuple[str, str]] = []
    for key, value in parameters.items():
        if isinstance(value, (list, tuple)):
            encoded.extend((f"{key}[]", _param_value(v)) for v in value)
        else:
            encoded.append((str(key), _param_value(value)))
    if access_token:
        encoded.append(("access_token", access_token))
    return encoded


def build_url(base_url: str, api_version: int, resource: str) -> str:
    return f"{base_url.rstrip('/')}/v{api_version}/{quote(resource, safe='/')}"


@dataclass
class Success:
    status_code: int
    headers: Mapping[str, str]
    body: Union[Dict[str, Any], List[Any], str, None]
    raw_body: str


@dataclass
class TransportFailure:
    code: int
    message: str


@dataclass
class HttpError:
    status_code: int
    headers: Mapping[str, str]
    raw_body: str


@dataclass
class MalformedBody:
    status_code: int
    headers: Mapping[str, str]
    raw_body: str


CallOutcome = Union[Success, TransportFailure, HttpError, MalformedBody]


def perform_call(transport: Transport, method: str, url: str, params: List[Tuple[str, str]],
                 data: Optional[Any] = None) -> CallOutcome:
    """Run one request and tag the result. Only GET bodies are decoded."""
    try:
        response = transport.request(method, url, params, json=data)
    except TransportError as e:
        return TransportFailure(e.code, e.message)

    if not 200 <= response.status_code < 300:
        return HttpError(response.status_code, response.headers, response.body)

    body: Union[Dict[str, Any], List[Any], str, None] = response.body
    if method == "GET" and response.content_type == "application/json":
        try:
            body = json.loads(response.body)
        except ValueError:
            return MalformedBody(response.status_code, response.headers, response.body)
    return Success(response.status_code, response.headers, body, response.body)
