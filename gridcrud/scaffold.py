"""
Zero-configuration grids.

``build_dynamic_grid`` inspects a table and produces a ready-to-render
Grid: readable labels, sensible editors guessed from column names, and
whatever overrides the caller passes as options.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .grid import Grid

logger = logging.getLogger(__name__)

_TITLE_PREFIX = re.compile(r"^(tbl|table|t_)", re.IGNORECASE)
_FIELD_PREFIX = re.compile(r"^(fld|field_|col_|f_)", re.IGNORECASE)
_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_DATE_LIKE = re.compile(r"(date|_at|_on)$", re.IGNORECASE)
_BOOLEAN_PREFIX = re.compile(r"^(is_|has_|can_|allow_|enable)", re.IGNORECASE)

BOOLEAN_NAMES = ("active", "enabled", "visible", "published", "fldactive")

DEFAULT_OPTIONS: Dict[str, Any] = {
    "title": None,
    "rows_per_page": 25,
    "omit_pk": True,
    "exclude_fields": [],
    "readonly_fields": [],
    "allow_add": True,
    "allow_delete": True,
    "field_types": {},
    "dropdowns": {},
    "toggles": {},
    "ranges": {},
}


def _words(name: str) -> str:
    name = _CAMEL_BOUNDARY.sub(r"\1 \2", name)
    name = name.replace("_", " ")
    return " ".join(word[:1].upper() + word[1:] for word in name.split())


def generate_title(table: str) -> str:
    """``tblContacts`` -> ``Contacts``, ``order_items`` -> ``Order Items``."""
    return _words(_TITLE_PREFIX.sub("", table))


def generate_display_name(column: str) -> str:
    """``fldFirstName`` -> ``First Name``, ``col_zip_code`` -> ``Zip Code``."""
    return _words(_FIELD_PREFIX.sub("", column))


def guess_input_class(column: str) -> Optional[str]:
    """Input hint implied by a column's name, if any."""
    lower = column.lower()
    if "email" in lower:
        return "email"
    if "phone" in lower or "tel" in lower or "mobile" in lower:
        return "tel"
    if "url" in lower or "website" in lower or "link" in lower:
        return "url"
    return None


def is_audit_timestamp(column: str) -> bool:
    lower = column.lower()
    return bool(_DATE_LIKE.search(lower)) and any(word in lower for word in ("created", "updated", "modified"))


def is_boolean_name(column: str) -> bool:
    return bool(_BOOLEAN_PREFIX.match(column)) or column.lower() in BOOLEAN_NAMES


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def build_dynamic_grid(database, table: str, **options: Any) -> Grid:
    """
    Build a configured Grid for any table.

    Args:
        database: DatabaseInterface holding the table
        table: Table to edit
        **options: Any of ``title``, ``rows_per_page``, ``omit_pk``,
            ``exclude_fields``, ``readonly_fields``, ``allow_add``,
            ``allow_delete``, ``field_types`` (column -> input hint),
            ``dropdowns`` (column -> allowed values), ``toggles``
            (column -> (on, off)), ``ranges`` (column -> (min, max[, step[, show_value]]))
            plus ``authorization``, ``scope`` and ``audit`` passed to the Grid

    Returns:
        Grid ready to render
    """
    unknown = set(options) - set(DEFAULT_OPTIONS) - {"authorization", "scope", "audit", "ajax_url"}
    if unknown:
        raise TypeError(f"Unknown dynamic grid options: {', '.join(sorted(unknown))}")
    settings = {**DEFAULT_OPTIONS, **options}

    grid = Grid(
        settings["title"] or generate_title(table),
        table,
        database=database,
        authorization=options.get("authorization"),
        scope=options.get("scope"),
        audit=options.get("audit"),
        ajax_url=options.get("ajax_url", ""),
    )

    grid.set_limit(settings["rows_per_page"])
    if settings["omit_pk"]:
        grid.omit_primary_key()
    if not settings["allow_add"]:
        grid.disallow_add()
    if not settings["allow_delete"]:
        grid.disallow_delete()

    excluded = set(_as_list(settings["exclude_fields"]))
    readonly = set(_as_list(settings["readonly_fields"]))
    field_types: Dict[str, str] = settings["field_types"]
    dropdowns: Dict[str, Iterable[Any]] = settings["dropdowns"]
    toggles: Dict[str, Sequence[Any]] = settings["toggles"]
    ranges: Dict[str, Sequence[Any]] = settings["ranges"]

    for column in grid.descriptor.column_names:
        if column in excluded:
            grid.omit_field_completely(column)
            continue

        grid.display_as(column, generate_display_name(column))
        if column in readonly:
            grid.disallow_edit(column)
        if column in field_types:
            grid.modify_field_with_class(column, field_types[column])
        if column in dropdowns:
            grid.define_allowable_values(column, dropdowns[column])
        if column in toggles:
            on, off = toggles[column]
            grid.define_toggle(column, on, off)
        if column in ranges:
            bounds = list(ranges[column])
            grid.define_range(
                column,
                bounds[0],
                bounds[1],
                bounds[2] if len(bounds) > 2 else 1,
                bounds[3] if len(bounds) > 3 else False,
            )

    configured = set(field_types) | set(dropdowns) | set(toggles) | set(ranges)
    for column in grid.descriptor.column_names:
        if column in configured or column in excluded or column == grid.primary_key:
            continue
        _auto_configure(grid, column)

    return grid


def _auto_configure(grid: Grid, column: str) -> None:
    hint = guess_input_class(column)
    if hint:
        grid.modify_field_with_class(column, hint)
    elif is_audit_timestamp(column):
        grid.disallow_edit(column)
    elif is_boolean_name(column):
        grid.define_toggle(column, "1", "0")
        logger.debug(f"Treating {grid.table}.{column} as a toggle")
