import json
import operator
import re

import pytest

from copernica_client.client import RestClient
from copernica_client.core.classifier import ErrorClassifier
from copernica_client.core.transport import TransportError, TransportResponse

BASE_URL = "https://api.example.test"
TOKEN = "secret-token"


class FakeTransport:
    """Plays back queued responses and records every request it receives."""

    def __init__(self):
        self.responses = []
        self.requests = []

    def add(self, status_code=200, body="", headers=None):
        self.responses.append(TransportResponse(status_code, headers or {}, body))
        return self

    def add_json(self, body, status_code=200, headers=None):
        headers = {"Content-Type": "application/json; charset=utf-8", **(headers or {})}
        return self.add(status_code, json.dumps(body), headers)

    def add_error(self, code=7, message="Failed to connect"):
        self.responses.append(TransportError(code, message))
        return self

    def request(self, method, url, params, json=None):
        self.requests.append({"method": method, "url": url, "params": list(params), "json": json})
        if not self.responses:
            raise AssertionError(f"Unexpected {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, TransportError):
            raise response
        return response

    @property
    def last_params(self):
        return dict(self.requests[-1]["params"])


class ListServer:
    """
    Answers GET requests for a list resource from a set of records, applying
    a single "fields" filter like "ID>4" or "score>=2" and 'orderby'/'order'.
    Tests may change ``records`` between requests.
    """

    def __init__(self, records, default_limit=100, with_total=True):
        self.records = records
        self.default_limit = default_limit
        self.with_total = with_total
        self.requests = []

    def request(self, method, url, params, json=None):
        query = dict(params)
        self.requests.append(query)
        records = list(self.records)
        if query.get("orderby"):
            records.sort(key=lambda r: int(_value(r, query["orderby"])), reverse=query.get("order") == "desc")
        if query.get("fields[]"):
            records = [r for r in records if _matches(r, query["fields[]"])]

        start = int(query.get("start", 0))
        limit = int(query.get("limit", self.default_limit))
        data = records[start:start + limit]
        body = {"start": start, "limit": limit, "count": len(data), "data": data}
        if self.with_total:
            body["total"] = len(records)
        return TransportResponse(200, {"Content-Type": "application/json"}, _dumps(body))


_CONDITION_RE = re.compile(r"^(\w+)(>=|<=|>|<)(.+)$")
_OPERATORS = {">": operator.gt, ">=": operator.ge, "<": operator.lt, "<=": operator.le}


def _value(record, name):
    source = record if name.lower() in ("id", "modified") else record["fields"]
    return next(v for k, v in source.items() if k.lower() == name.lower())


def _matches(record, condition):
    name, op, target = _CONDITION_RE.match(condition).groups()
    return _OPERATORS[op](int(_value(record, name)), int(target))


def _dumps(body):
    return json.dumps(body)


def make_records(count, key="ID"):
    return [{key: str(i + 1), "fields": {"email": f"user{i + 1}@example.com"}} for i in range(count)]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport):
    return RestClient(access_token=TOKEN, base_url=BASE_URL, transport=transport)


@pytest.fixture
def classifier(transport):
    return ErrorClassifier(transport, BASE_URL, 2, TOKEN, ("/xml", "/csv"))


@pytest.fixture
def transport_factory():
    return FakeTransport


@pytest.fixture
def list_server():
    def factory(records, **kwargs):
        if isinstance(records, int):
            records = make_records(records)
        return ListServer(records, **kwargs)
    return factory
