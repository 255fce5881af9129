import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from copernica_client.config import settings
from copernica_client.core.classifier import ErrorClassifier
from copernica_client.core.envelope import check_envelope
from copernica_client.core.normalize import to_int
from copernica_client.core.ordering import entity_order_value, order_context, order_key, trailing_same_value
from copernica_client.core.suppression import SuppressionPolicy
from copernica_client.errors import (
    InvalidCursorState,
    OrderedFetchImpossible,
    OrderedFetchIssue,
    ProtocolViolation,
)
from copernica_client.schemas import EntityListEnvelope, PageCursor

logger = logging.getLogger(__name__)


class PaginatedEntityFetcher:
    """
    Fetches a list resource page by page.

    Progress lives in a PageCursor which can be exported and imported into
    another fetcher (possibly in another process) to continue where this one
    stopped. Instances are not thread safe; use one fetcher per consumer.
    """

    def __init__(self, classifier: ErrorClassifier, max_batch_limit: Optional[int] = None):
        self.classifier = classifier
        self.max_batch_limit = max_batch_limit if max_batch_limit is not None else settings.MAX_BATCH_LIMIT
        self._cursor: Optional[PageCursor] = None

    def fetch_page(self, resource: str, parameters: Optional[Mapping[str, Any]] = None) -> Tuple[List[Dict[str, Any]], PageCursor]:
        """Fetch the first page of a list resource and start a new cursor."""
        parameters = dict(parameters or {})
        # Counting the total is extra work for the remote side; only do it when asked.
        parameters.setdefault("total", False)
        if "limit" in parameters and to_int(parameters["limit"]) > self.max_batch_limit:
            parameters["limit"] = self.max_batch_limit

        envelope = self._get_page(resource, parameters)
        self._advance(resource, parameters, envelope, fetched_count=envelope.count)
        return envelope.data, self._cursor.model_copy(deep=True)

    def fetch_next_page(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Fetch the page after the last one. Returns an empty list, without
        calling the API, once the result set is complete.

        ``limit`` overrides the page size for this page only.

        Advancing 'start' can skip entities when entities before the current
        position are removed while fetching; see fetch_next_page_ordered().
        """
        if self.is_complete():
            return []
        cursor = self._cursor
        parameters = dict(cursor.parameters)
        if limit is not None:
            parameters["limit"] = min(int(limit), self.max_batch_limit)
        parameters["start"] = cursor.next_start
        envelope = self._get_page(cursor.resource, parameters)
        self._advance(cursor.resource, parameters, envelope,
                      fetched_count=cursor.fetched_count + envelope.count,
                      stored_parameters=cursor.parameters)
        return envelope.data

    def fetch_next_page_ordered(self, limit: Optional[int] = None, ordered_field_has_unique_values: bool = False,
                                fall_back_to_unordered: bool = False) -> List[Dict[str, Any]]:
        """
        Fetch the page after the last one by filtering on the field the list
        is ordered by (e.g. "ID>123") instead of advancing 'start', so that
        no entities are skipped when the set changes while fetching.

        When the ordered field is not known to be unique, the filter includes
        the last fetched value and entities already returned are dropped from
        the result; the page then holds fewer than 'limit' new entities. Pass
        ``ordered_field_has_unique_values`` to filter past the last value.

        Raises OrderedFetchImpossible if the query is not ordered by a field
        we can filter on, or if the last page did not allow working out where
        to continue. With ``fall_back_to_unordered``, a last page whose
        entities all had the same ordered value is continued with
        fetch_next_page() instead.
        """
        if self.is_complete():
            return []
        cursor = self._cursor
        if cursor.ordered_fetch_issue is not None:
            if cursor.ordered_fetch_issue is OrderedFetchIssue.SAME_VALUE_BATCH and fall_back_to_unordered:
                return self.fetch_next_page(limit)
            raise OrderedFetchImpossible(
                cursor.ordered_fetch_issue,
                f"The current dataset cannot be retrieved in an 'ordered' way: {cursor.ordered_fetch_reason}")
        if not cursor.last_entities:
            raise InvalidCursorState("Cursor holds no entities to continue an ordered fetch from.")

        context = order_context(cursor.resource, cursor.parameters)
        filter_value = entity_order_value(cursor.last_entities[0], context.field)
        unique = ordered_field_has_unique_values or context.unique
        prefix = context.filter_prefix(unique)

        stored_parameters = {str(k).lower(): v for k, v in cursor.parameters.items() if str(k).lower() != "start"}
        stored_parameters["orderby"] = context.field
        stored_parameters["order"] = context.order
        fields = stored_parameters.get("fields") or []
        fields = [fields] if isinstance(fields, str) else list(fields)
        # Replace the filter added for the previous page, or one equivalent to it.
        if fields and str(fields[-1]).startswith(prefix):
            fields.pop()
        fields.append(f"{prefix}{filter_value}")
        stored_parameters["fields"] = fields

        parameters = dict(stored_parameters)
        if limit is not None:
            parameters["limit"] = min(int(limit), self.max_batch_limit)
        envelope = self._get_page(cursor.resource, parameters)

        if envelope.data:
            first_value = entity_order_value(envelope.data[0], context.field)
            if context.descending:
                out_of_range = order_key(first_value) > order_key(filter_value)
            else:
                out_of_range = order_key(first_value) < order_key(filter_value)
            if out_of_range:
                direction = "descending" if context.descending else "ascending"
                raise ProtocolViolation(
                    f"The dataset was supposedly ordered {direction} by '{context.field}', starting at "
                    f"\"{filter_value}\", but the first returned '{context.field}' value is \"{first_value}\".")

        records = list(envelope.data)
        if not unique:
            # The first entities repeat the end of the previous page.
            records = []
            for index, entity in enumerate(envelope.data):
                if entity in cursor.last_entities:
                    continue
                records.append(entity)
                if entity_order_value(entity, context.field) != filter_value:
                    records.extend(envelope.data[index + 1:])
                    break

        duplicates = envelope.count - len(records)
        self._advance(cursor.resource, parameters, envelope,
                      fetched_count=cursor.fetched_count + envelope.count - duplicates,
                      stored_parameters=stored_parameters)
        return records

    def is_complete(self) -> bool:
        return self._cursor is None or self._cursor.is_complete

    @property
    def fetched_count(self) -> int:
        """Records fetched since the last fetch_page(), counting repeats of ordered fetches once."""
        return self._cursor.fetched_count if self._cursor else 0

    def export_cursor(self, include_entities: bool = True) -> Optional[PageCursor]:
        """
        A copy of the cursor. Without ``include_entities`` the cursor holds no
        entity data; fetch_next_page() still works after importing it but
        fetch_next_page_ordered() does not.
        """
        if self._cursor is None:
            return None
        logger.info(f"Exporting cursor for {self._cursor.resource} at {self._cursor.next_start}")
        cursor = self._cursor.model_copy(deep=True)
        if not include_entities:
            cursor.last_entities = []
        return cursor

    def import_cursor(self, cursor: Any):
        """Continue from a cursor exported earlier, given as a PageCursor or its dict form."""
        if isinstance(cursor, PageCursor):
            cursor = cursor.model_dump()
        if not isinstance(cursor, dict):
            raise InvalidCursorState()
        try:
            self._cursor = PageCursor.model_validate(cursor)
        except ValidationError as e:
            raise InvalidCursorState(details={"errors": e.errors(include_url=False)}) from e
        logger.info(f"Imported cursor for {self._cursor.resource} at {self._cursor.next_start}")

    def _get_page(self, resource: str, parameters: Dict[str, Any]) -> EntityListEnvelope:
        # List integrity is never traded for a degraded result.
        body = self.classifier.call("GET", resource, SuppressionPolicy.none(), parameters=parameters)
        envelope = check_envelope(body, parameters, "response from Copernica API")
        for record in envelope.data:
            if not isinstance(record, dict) or not (record.get("id") or record.get("ID")):
                raise ProtocolViolation(f"One of the entities returned from {resource} resource does not contain 'id'.")
        if envelope.total is not None and envelope.count == 0 and envelope.start < envelope.total:
            raise ProtocolViolation(
                f"Unexpected structure in response from Copernica API: no entities returned at start "
                f"{envelope.start} while 'total' is {envelope.total}.")
        logger.debug(f"Fetched {resource} start={envelope.start} count={envelope.count} total={envelope.total}")
        return envelope

    def _advance(self, resource: str, parameters: Dict[str, Any], envelope: EntityListEnvelope, fetched_count: int,
                 stored_parameters: Optional[Dict[str, Any]] = None):
        """Replace the cursor after a page passed all checks."""
        next_start = envelope.start + envelope.count
        total = envelope.total
        if total is None and (envelope.count == 0 or envelope.count < envelope.limit):
            total = next_start

        last_entities: List[Dict[str, Any]] = []
        issue: Optional[OrderedFetchIssue] = None
        reason = ""
        if envelope.data:
            # Only matters if the caller continues with fetch_next_page_ordered().
            try:
                context = order_context(resource, parameters)
                last_entities = trailing_same_value(envelope.data, context)
            except OrderedFetchImpossible as e:
                issue, reason = e.issue, e.message

        if stored_parameters is None:
            stored_parameters = {k: v for k, v in parameters.items() if k != "start"}
        self._cursor = PageCursor(
            resource=resource,
            parameters=stored_parameters,
            total=total,
            next_start=next_start,
            fetched_count=fetched_count,
            last_entities=last_entities,
            ordered_fetch_issue=issue,
            ordered_fetch_reason=reason,
        )
