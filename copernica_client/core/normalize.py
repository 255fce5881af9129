"""
Value normalization: predicts what the remote CRM stores for an input value.

Callers compare normalized values to decide whether an update is a no-op,
so every rule here mirrors the remote side's coercion, including its
loosely typed scalar conversions.
"""
import logging
import math
import re
from typing import Any, Dict, Mapping, Optional, Union

from copernica_client.config import settings
from copernica_client.core.dates import DateParseError, format_date, format_datetime, parse_datetime
from copernica_client.errors import UnknownFieldType
from copernica_client.schemas import FieldSpec, FieldType

logger = logging.getLogger(__name__)

NormalizedValue = Union[str, int, float, Any]

ZERO_DATE = "0000-00-00"
ZERO_DATETIME = "0000-00-00 00:00:00"

_RTRIM_CHARS = " \t\n\r\0\x0b"
_LEADING_NUMBER_RE = re.compile(r"^[ \t\n\r\x0b\f]*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
_NUMERIC_RE = re.compile(r"^[ \t\n\r\x0b\f]*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?[ \t\n\r\x0b\f]*$")

_DATE_TYPES = {FieldType.DATE, FieldType.DATETIME, FieldType.EMPTY_DATE, FieldType.EMPTY_DATETIME}


def is_scalar(value: Any) -> bool:
    return isinstance(value, (bool, int, float, str))


def stringify(value: Any) -> str:
    """String form of a scalar, as the remote side renders it."""
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    if isinstance(value, float):
        if math.isnan(value):
            return "NAN"
        if math.isinf(value):
            return "INF" if value > 0 else "-INF"
        text = "%.14G" % value
        if "E" in text:
            mantissa, exponent = text.split("E")
            if "." not in mantissa:
                mantissa += ".0"
            sign = exponent[0]
            text = f"{mantissa}E{'-' if sign == '-' else '+'}{int(exponent[1:])}"
        return text
    return str(value)


def to_float(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        m = _LEADING_NUMBER_RE.match(value)
        return float(m.group(1)) if m else 0.0
    if isinstance(value, (list, tuple, dict, set)):
        return 1.0 if value else 0.0
    return 1.0


def to_int(value: Any) -> int:
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return int(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, str):
        m = _LEADING_NUMBER_RE.match(value)
        if not m:
            return 0
        number = m.group(1)
        if any(c in number for c in ".eE"):
            return to_int(float(number))
        return int(number)
    return int(to_float(value))


def _field_type(spec: FieldSpec) -> FieldType:
    try:
        return FieldType(str(spec.type))
    except ValueError:
        raise UnknownFieldType(spec.type)


def _is_date_input_empty(value: Any) -> bool:
    return (value == "" and isinstance(value, str)) or value is False or value is None \
        or not is_scalar(value) or (isinstance(value, str) and value.startswith(ZERO_DATE))


def _normalize_date(value: Any, field_type: FieldType, tz_name: str) -> str:
    if isinstance(value, str):
        value = value.strip()

    result = ""
    negative = False
    if not _is_date_input_empty(value):
        try:
            parts = parse_datetime(stringify(value), tz_name)
        except DateParseError as e:
            logger.debug(f"Date value {value!r} not parseable: {e}")
            parts = None
        if parts is not None:
            negative = parts[0] < 0
            if field_type in (FieldType.DATETIME, FieldType.EMPTY_DATETIME):
                result = format_datetime(parts)
            else:
                result = format_date(parts)

    if result and not negative:
        return result
    # Negative years fold to the zero value, also for the empty_* types.
    if field_type is FieldType.DATE or (negative and field_type is FieldType.EMPTY_DATE):
        return ZERO_DATE
    if field_type is FieldType.DATETIME or (negative and field_type is FieldType.EMPTY_DATETIME):
        return ZERO_DATETIME
    return ""


def normalize(value: Any, spec: FieldSpec, tz_name: Optional[str] = None) -> NormalizedValue:
    """
    Return the value as the remote side would store it for a field of this spec.

    A spec without a type passes the value through unchanged.
    """
    if spec.type is None:
        return value
    field_type = _field_type(spec)

    if field_type in (FieldType.TEXT, FieldType.EMAIL):
        return stringify(value) if is_scalar(value) else ""

    if field_type is FieldType.SELECT:
        choices = [choice.rstrip(_RTRIM_CHARS) for choice in spec.select_choices]
        if is_scalar(value) and stringify(value) in choices:
            return stringify(value)
        return ""

    if field_type is FieldType.INTEGER:
        return to_int(value)

    if field_type is FieldType.FLOAT:
        return to_float(value)

    return _normalize_date(value, field_type, tz_name or settings.TIMEZONE)


def empty_value(spec: FieldSpec) -> NormalizedValue:
    """The canonical empty representation for a field of this spec."""
    field_type = _field_type(spec)
    if field_type is FieldType.DATE:
        return ZERO_DATE
    if field_type is FieldType.DATETIME:
        return ZERO_DATETIME
    if field_type is FieldType.INTEGER:
        return 0
    if field_type is FieldType.FLOAT:
        return 0.0
    return ""


def is_empty(value: Any, spec: FieldSpec, tz_name: Optional[str] = None) -> bool:
    """
    Whether a value counts as empty for a field of this spec.

    Zero is a real value for numeric fields unless the spec declares
    ``zero_is_empty``; a zero read back from the remote side should be
    checked with a spec that declares it.
    """
    if spec.type is None:
        return value is None or value == ""
    normalized = normalize(value, spec, tz_name)
    if _field_type(spec) in (FieldType.INTEGER, FieldType.FLOAT):
        return normalized == 0 and spec.zero_is_empty is not None
    return normalized == empty_value(spec)


def normalize_fields(values: Mapping[str, Any], specs: Mapping[str, FieldSpec],
                     tz_name: Optional[str] = None) -> Dict[str, Any]:
    """Normalize a whole record; fields without a spec are kept as they are."""
    return {
        name: normalize(value, specs[name], tz_name) if name in specs else value
        for name, value in values.items()
    }


def normalize_secret(value: Any) -> str:
    """A value as the remote side stores it in a 'secret' property."""
    if value is None or not is_scalar(value):
        return "1"
    return stringify(value).encode("ascii", errors="replace").decode("ascii")


def is_boolean_true(value: Any) -> bool:
    """How the remote side reads a boolean query parameter."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and not _NUMERIC_RE.match(value):
        # Surrounding whitespace makes the value false.
        return value.lower() in ("yes", "true")
    if is_scalar(value):
        return abs(to_float(value)) >= 1
    return isinstance(value, (list, tuple, dict))
