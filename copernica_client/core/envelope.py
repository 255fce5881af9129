"""Validation of the start/limit/count/total/data wrapper around entity lists."""
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from copernica_client.core.normalize import is_boolean_true, to_int
from copernica_client.errors import ProtocolViolation
from copernica_client.schemas import EntityListEnvelope


def check_envelope(struct: Any, parameters: Optional[Mapping[str, Any]], description: str) -> EntityListEnvelope:
    """
    Validate list metadata against the parameters of the request that
    returned it. Any inconsistency is a ProtocolViolation.

    ``total`` is required unless the request declined it with a false 'total'
    parameter.
    """
    parameters = parameters or {}
    if not isinstance(struct, dict):
        raise ProtocolViolation(f"Unexpected structure in {description}: not an object.")
    total_requested = "total" not in parameters or is_boolean_true(parameters["total"])
    if total_requested and struct.get("total") is None:
        raise ProtocolViolation(f"Unexpected structure in {description}: no 'total' value found.")
    try:
        envelope = EntityListEnvelope.model_validate(struct)
    except ValidationError as e:
        raise ProtocolViolation(f"Unexpected structure in {description}: {e}",
                                details={"errors": e.errors(include_url=False)}) from e

    if envelope.count != len(envelope.data):
        raise ProtocolViolation(
            f"Unexpected structure in {description}: 'count' value ({envelope.count}) is not equal "
            f"to number of values in 'data' ({len(envelope.data)}).")
    expected_start = to_int(parameters.get("start", 0))
    if envelope.start != expected_start:
        raise ProtocolViolation(
            f"Unexpected structure in {description}: 'start' value is {envelope.start} "
            f"but is expected to be {expected_start}.")
    if envelope.count > envelope.limit:
        raise ProtocolViolation(
            f"Unexpected structure in {description}: 'count' value ({envelope.count}) is larger "
            f"than 'limit' ({envelope.limit}).")
    if envelope.total is not None and envelope.start + envelope.count > envelope.total:
        raise ProtocolViolation(
            f"Unexpected structure in {description}: 'total' value ({envelope.total}) is smaller "
            f"than start ({envelope.start}) + count ({envelope.count}).")
    return envelope


def extract_embedded_entities(entity: Mapping[str, Any], property_name: str,
                              accept_partial: bool = False) -> List[Any]:
    """
    Unwrap a list of entities embedded in another entity (e.g. the 'fields'
    of a database). Embedded lists have no cursor, so they must start at 0
    and, unless ``accept_partial``, be complete.
    """
    if entity.get(property_name) is None:
        raise ProtocolViolation(f"'{property_name}' property is not set; cannot extract embedded entities.")
    wrapper = entity[property_name]
    if not isinstance(wrapper, dict):
        raise ProtocolViolation(f"'{property_name}' property is not an object; cannot extract embedded entities.")
    envelope = check_envelope(wrapper, {}, f"'{property_name}' property")

    if not accept_partial and envelope.count != envelope.total:
        raise ProtocolViolation(
            f"Cannot return the total set of {envelope.total} entities inside '{property_name}' "
            f"property; only {envelope.count} found.")
    return envelope.data


def rekey_entities(entities: List[Dict[str, Any]], key: str, accept_incomplete: bool = False) -> Dict[Any, Dict[str, Any]]:
    """Index a list of entities by one of their properties, e.g. 'ID' or 'name'."""
    keyed: Dict[Any, Dict[str, Any]] = {}
    for entity in entities:
        value = entity.get(key) if isinstance(entity, dict) else None
        if value is None:
            if not accept_incomplete:
                raise ProtocolViolation(f"Embedded entity has no '{key}' property.")
            continue
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            if not accept_incomplete:
                raise ProtocolViolation(f"Embedded entity's '{key}' property has an invalid type.")
            continue
        if value in keyed and not accept_incomplete:
            raise ProtocolViolation(f"Multiple embedded entities contain the same '{key}' value ({value}).")
        keyed[value] = entity
    return keyed
