"""
Knowledge about how list resources are ordered, for fetching the next page
by filtering on the ordered field instead of advancing 'start'.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from copernica_client.errors import OrderedFetchImpossible, OrderedFetchIssue

# Resource substring -> (field the results are ordered by by default, values are unique).
# Only fields that accept a larger/smaller-than filter belong here.
ORDER_PROPERTIES: Dict[str, Tuple[str, bool]] = {
    # All (sub)profile lists are ordered by ID unless asked otherwise.
    "profiles": ("ID", True),
}

# Entity properties that can be ordered on; anything else is a field inside 'fields'.
_PROPERTIES = ("id", "modified")

_NUMERIC_RE = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[+-]?\d+)?\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class OrderContext:
    field: str
    unique: bool
    order: str = "asc"

    @property
    def descending(self) -> bool:
        return self.order == "desc"

    def filter_prefix(self, unique: bool) -> str:
        """The 'fields' filter for values past the last fetched one, without that value."""
        return self.field + ("<" if self.descending else ">") + ("" if unique else "=")


def order_context(resource: str, parameters: Mapping[str, Any]) -> OrderContext:
    """
    Work out which field a list query is ordered by, from the defaults for the
    resource and any 'orderby'/'order' parameters.

    Raises OrderedFetchImpossible if neither says anything.
    """
    field: Optional[str] = None
    unique = False
    order: Optional[str] = None
    resource = resource.lower()
    for substring, (default_field, default_unique) in ORDER_PROPERTIES.items():
        if substring in resource:
            field, unique, order = default_field, default_unique, "asc"
            break

    parameters = {str(k).lower(): v for k, v in parameters.items()}
    orderby = parameters.get("orderby")
    if orderby:
        if orderby != field:
            # Defaults do not apply; non-unique is the safe assumption.
            field, unique, order = str(orderby), False, None
    elif field is None:
        raise OrderedFetchImpossible(
            OrderedFetchIssue.UNSUPPORTED_QUERY,
            "The current API resource/query is not suitable for querying entities in an 'ordered' way.")

    if parameters.get("order"):
        order = parameters["order"]
    descending = isinstance(order, str) and order.lower() in ("desc", "descending")
    return OrderContext(field=field, unique=unique, order="desc" if descending else "asc")


def entity_order_value(entity: Mapping[str, Any], field: str) -> Any:
    """Value of an ordered property or field of an entity, matching the name case-insensitively."""
    name = field.lower()
    if name in _PROPERTIES:
        source, kind = entity, "property"
    else:
        source, kind = entity.get("fields"), "field"
    if isinstance(source, dict):
        if source.get(name) is not None:
            return source[name]
        for key, value in source.items():
            if str(key).lower() == name and value is not None:
                return value
    raise OrderedFetchImpossible(OrderedFetchIssue.MISSING_ORDER_VALUE,
                                 f"Entity contains no '{name}' {kind}.")


def order_key(value: Any) -> Tuple[int, Any]:
    """Sort key that compares numeric strings (e.g. IDs) as numbers."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, float(value))
    if isinstance(value, str) and _NUMERIC_RE.match(value):
        return (0, float(value))
    return (1, str(value))


def trailing_same_value(entities: List[Dict[str, Any]], context: OrderContext) -> List[Dict[str, Any]]:
    """
    The entities at the end of a page that share the last ordered value,
    last one first. The next ordered page starts at that value.

    Raises OrderedFetchImpossible if the whole page has one value, or if the
    values at the end of the page run against the expected order.
    """
    last_value = entity_order_value(entities[-1], context.field)
    kept = [entities[-1]]
    for entity in reversed(entities[:-1]):
        previous_value = entity_order_value(entity, context.field)
        if previous_value != last_value:
            break
        kept.append(entity)
    else:
        raise OrderedFetchImpossible(
            OrderedFetchIssue.SAME_VALUE_BATCH,
            f"All entities in the previous batch had the same value for '{context.field}'; "
            f"further 'ordered' fetching cannot deal with this.")

    if context.descending:
        in_order = order_key(previous_value) > order_key(last_value)
    else:
        in_order = order_key(previous_value) < order_key(last_value)
    if not in_order:
        direction = "descending" if context.descending else "ascending"
        raise OrderedFetchImpossible(
            OrderedFetchIssue.ORDER_CONTRADICTED,
            f"The dataset was supposedly ordered {direction} by '{context.field}' but the last few "
            f"entities in the previous batch did not follow that order.")
    return kept
