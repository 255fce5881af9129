from typing import Any, Dict, List, Mapping, Optional, Sequence

from copernica_client.config import settings
from copernica_client.core.classifier import ErrorClassifier, Result
from copernica_client.core.cursor_store import CursorStore
from copernica_client.core.fetcher import PaginatedEntityFetcher
from copernica_client.core.suppression import SuppressionPolicy
from copernica_client.core.transport import RequestsTransport, Transport


class RestClient:
    """
    Client for the Copernica REST API.

    Every call that can fail in a suppressible way takes an optional
    ``suppress`` policy; without one, the client's own policy applies.
    Entity lists are fetched page by page through get_entities() and
    get_entities_next_batch().
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        api_version: Optional[int] = None,
        base_url: Optional[str] = None,
        transport: Optional[Transport] = None,
        suppression_policy: Optional[SuppressionPolicy] = None,
        max_batch_limit: Optional[int] = None,
        text_resource_suffixes: Optional[Sequence[str]] = None,
    ):
        self.access_token = access_token if access_token is not None else settings.ACCESS_TOKEN
        self.api_version = api_version if api_version is not None else settings.API_VERSION
        self.base_url = base_url or settings.BASE_URL
        self.transport = transport or RequestsTransport()
        self._policy = suppression_policy if suppression_policy is not None \
            else SuppressionPolicy.from_names(settings.SUPPRESS_ERRORS)
        self.classifier = ErrorClassifier(
            self.transport, self.base_url, self.api_version, self.access_token,
            text_resource_suffixes if text_resource_suffixes is not None else settings.TEXT_RESOURCE_SUFFIXES,
        )
        self.fetcher = PaginatedEntityFetcher(self.classifier, max_batch_limit)

    def set_suppression_policy(self, policy: SuppressionPolicy):
        self._policy = policy

    def get_suppression_policy(self) -> SuppressionPolicy:
        return self._policy

    def _resolve(self, suppress: Optional[SuppressionPolicy]) -> SuppressionPolicy:
        return self._policy if suppress is None else suppress

    def get(self, resource: str, parameters: Optional[Mapping[str, Any]] = None,
            suppress: Optional[SuppressionPolicy] = None) -> Result:
        return self.classifier.call("GET", resource, self._resolve(suppress), parameters=parameters)

    def get_entity(self, resource: str, parameters: Optional[Mapping[str, Any]] = None,
                   suppress: Optional[SuppressionPolicy] = None) -> Result:
        """
        Fetch a single entity. The call itself always raises on failure;
        ``suppress`` only governs whether a removed entity is returned.
        """
        entity = self.classifier.call("GET", resource, SuppressionPolicy.none(), parameters=parameters)
        return self.classifier.check_entity(entity, resource, self._resolve(suppress))

    def get_entities(self, resource: str, parameters: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """First page of a list resource. Failures are never suppressed here."""
        records, _ = self.fetcher.fetch_page(resource, parameters)
        return records

    def get_entities_next_batch(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Next page of the last list resource; empty once the set is complete."""
        return self.fetcher.fetch_next_page(limit)

    def get_entities_next_batch_ordered(self, limit: Optional[int] = None,
                                        ordered_field_has_unique_values: bool = False,
                                        fall_back_to_unordered: bool = False) -> List[Dict[str, Any]]:
        """
        Next page of the last list resource, continuing after the last fetched
        value of the field the list is ordered by. See
        PaginatedEntityFetcher.fetch_next_page_ordered().
        """
        return self.fetcher.fetch_next_page_ordered(limit, ordered_field_has_unique_values, fall_back_to_unordered)

    def is_complete(self) -> bool:
        return self.fetcher.is_complete()

    @property
    def fetched_count(self) -> int:
        return self.fetcher.fetched_count

    def post(self, resource: str, data: Optional[Mapping[str, Any]] = None,
             suppress: Optional[SuppressionPolicy] = None) -> Result:
        """Create an entity; returns the ID from the response's X-Created header."""
        return self.classifier.call("POST", resource, self._resolve(suppress), data=dict(data or {}))

    def put(self, resource: str, data: Mapping[str, Any], parameters: Optional[Mapping[str, Any]] = None,
            suppress: Optional[SuppressionPolicy] = None) -> Result:
        """
        Update one or more entities. Returns the path of the affected entity
        when the API answers with '303 See Other', otherwise the created ID
        or True.
        """
        return self.classifier.call("PUT", resource, self._resolve(suppress), data=dict(data),
                                    parameters=parameters)

    def delete(self, resource: str, suppress: Optional[SuppressionPolicy] = None) -> Result:
        return self.classifier.call("DELETE", resource, self._resolve(suppress))

    def export_cursor_state(self, include_entities: bool = True) -> Optional[Dict[str, Any]]:
        """JSON-safe cursor state; ``include_entities=False`` keeps entity data out of it."""
        cursor = self.fetcher.export_cursor(include_entities)
        return cursor.model_dump(mode="json") if cursor is not None else None

    def import_cursor_state(self, state: Any):
        self.fetcher.import_cursor(state)

    def save_cursor_state(self, store: Optional[CursorStore] = None):
        cursor = self.fetcher.export_cursor()
        if cursor is not None:
            (store or CursorStore()).save(cursor)

    def restore_cursor_state(self, store: Optional[CursorStore] = None) -> bool:
        """Import the cursor persisted in ``store``; False when there is none."""
        cursor = (store or CursorStore()).load()
        if cursor is None:
            return False
        self.fetcher.import_cursor(cursor)
        return True
