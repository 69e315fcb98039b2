"""
Server-side validation of submitted cell values.

Client-side input filtering is advisory; every value written by the edit
protocol passes through :func:`validate_value` first.
"""

import math
import re
from typing import Any, Iterable, Optional

from .errors import ValidationError
from .fields import FieldConfig, RelationshipDescriptor
from .query import is_now_marker
from .schema import ColumnDescriptor, SemanticKind
from .widgets import WidgetKind

INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://[^\s/?#]+\S*$")


def _as_number(value: str, label: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise ValidationError(f"{label} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{label} must be a number")
    return number


def _require_member(value: str, allowed: Iterable[str], label: str) -> None:
    if value not in set(allowed):
        raise ValidationError(f"'{value}' is not an allowed value for {label}")


def validate_value(
    kind: WidgetKind,
    column: ColumnDescriptor,
    config: FieldConfig,
    value: Any,
    relationship: Optional[RelationshipDescriptor] = None,
    lookup_keys: Iterable[str] = (),
) -> None:
    """
    Check a submitted value against the widget that edits it.

    Args:
        kind: Widget dispatched for the cell
        column: Column being written
        config: The column's field configuration
        value: Submitted value, as text
        relationship: Foreign-key lookup for relationship widgets
        lookup_keys: Primary keys currently present in the related table

    Raises:
        ValidationError: If the value violates the widget's constraint
    """
    label = config.label or column.name
    text = "" if value is None else str(value)

    if is_now_marker(text):
        return

    if text == "":
        if kind is WidgetKind.RELATIONSHIP and relationship is not None and relationship.required:
            raise ValidationError(f"{label} is required", field=column.name)
        return

    try:
        _validate(kind, column, config, text, label, relationship, lookup_keys)
    except ValidationError as e:
        e.field = column.name
        raise


def _validate(kind, column, config, text, label, relationship, lookup_keys) -> None:
    if kind is WidgetKind.INTEGER:
        if not INTEGER_PATTERN.match(text):
            raise ValidationError(f"{label} must be a whole number")
    elif kind is WidgetKind.DECIMAL:
        _as_number(text, label)
    elif kind is WidgetKind.ENUM_DROPDOWN:
        _require_member(text, column.enum_values, label)
    elif kind is WidgetKind.ALLOWED_VALUES:
        _require_member(text, config.allowed_value_keys(), label)
    elif kind is WidgetKind.RADIO:
        _require_member(text, [str(key) for key in config.radio.options], label)
    elif kind is WidgetKind.RANGE:
        number = _as_number(text, label)
        option = config.range
        if number < option.minimum or number > option.maximum:
            raise ValidationError(f"{label} must be between {option.minimum} and {option.maximum}")
    elif kind in (WidgetKind.CHECKBOX, WidgetKind.TOGGLE):
        _require_member(text, [config.checkbox.value_on, config.checkbox.value_off], label)
    elif kind is WidgetKind.MULTI_SELECT:
        known = [str(key) for key in config.multi_select.options]
        for part in text.split(config.multi_select.separator):
            if part != "":
                _require_member(part, known, label)
    elif kind is WidgetKind.RELATIONSHIP:
        optional = relationship is not None and not relationship.required
        if optional and column.is_numeric and text == "0":
            return
        _require_member(text, lookup_keys, label)
    elif kind is WidgetKind.EMAIL:
        if not EMAIL_PATTERN.match(text):
            raise ValidationError(f"{label} must be an email address")
    elif kind is WidgetKind.URL:
        if not URL_PATTERN.match(text):
            raise ValidationError(f"{label} must be a URL")


def storage_value(column: ColumnDescriptor, value: Any) -> Any:
    """
    Convert a validated submission into the value bound for the column.

    Empty numeric values become NULL when the column allows it and 0
    otherwise; empty dates become NULL when allowed.
    """
    if value is None:
        value = ""
    if is_now_marker(value) or value != "":
        return value
    if column.is_numeric:
        return None if column.nullable else 0
    if column.kind is SemanticKind.DATE and column.nullable:
        return None
    return ""
