"""
Widget dispatch for grid cells.

Exactly one editor renders per cell. :func:`select_widget` picks it by a
fixed precedence and :func:`render_cell` emits the display, edit and
saving fragments through the macros in ``templates/widgets.html``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from markupsafe import Markup

from .fields import FieldConfig, RelationshipDescriptor
from .schema import ColumnDescriptor, SemanticKind, is_long_text
from .templating import get_macro

SELECT_SENTINEL = "--Select--"
EMPTY_DISPLAY = "--"
PASSWORD_MASK = "********"

DATE_PLACEHOLDER = "YYYY-mm-dd"

HINTED_INPUTS = ("email", "url", "tel", "color")


class WidgetKind(Enum):
    READ_ONLY = "read_only"
    FILE_UPLOAD = "file_upload"
    RELATIONSHIP = "relationship"
    ALLOWED_VALUES = "allowed_values"
    RADIO = "radio"
    RANGE = "range"
    MULTI_SELECT = "multi_select"
    AUTOCOMPLETE = "autocomplete"
    PASSWORD = "password"
    RICH_TEXT = "rich_text"
    CHECKBOX = "checkbox"
    TOGGLE = "toggle"
    ENUM_DROPDOWN = "enum_dropdown"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    EMAIL = "email"
    URL = "url"
    TEL = "tel"
    COLOR = "color"
    TEXT = "text"
    TEXTAREA = "textarea"


# Kinds edited through a <select>; their update requests carry dropdown_tbl
SELECT_KINDS = (WidgetKind.RELATIONSHIP, WidgetKind.ALLOWED_VALUES, WidgetKind.ENUM_DROPDOWN)

OPTION_KINDS = SELECT_KINDS + (WidgetKind.RADIO, WidgetKind.MULTI_SELECT, WidgetKind.AUTOCOMPLETE)

NUMERIC_STEPS = {
    WidgetKind.INTEGER: "1",
    WidgetKind.DECIMAL: "0.01",
}

MACROS = {
    WidgetKind.READ_ONLY: "read_only",
    WidgetKind.FILE_UPLOAD: "file_upload",
    WidgetKind.RELATIONSHIP: "dropdown",
    WidgetKind.ALLOWED_VALUES: "dropdown",
    WidgetKind.ENUM_DROPDOWN: "dropdown",
    WidgetKind.RADIO: "radio",
    WidgetKind.RANGE: "range_slider",
    WidgetKind.MULTI_SELECT: "multi_select",
    WidgetKind.AUTOCOMPLETE: "autocomplete",
    WidgetKind.PASSWORD: "password",
    WidgetKind.RICH_TEXT: "rich_text",
    WidgetKind.CHECKBOX: "checkbox",
    WidgetKind.TOGGLE: "checkbox",
    WidgetKind.INTEGER: "number",
    WidgetKind.DECIMAL: "number",
    WidgetKind.DATE: "typed_input",
    WidgetKind.DATETIME: "typed_input",
    WidgetKind.TIME: "typed_input",
    WidgetKind.EMAIL: "typed_input",
    WidgetKind.URL: "typed_input",
    WidgetKind.TEL: "typed_input",
    WidgetKind.COLOR: "typed_input",
    WidgetKind.TEXT: "typed_input",
    WidgetKind.TEXTAREA: "textarea",
}

INPUT_TYPES = {
    WidgetKind.DATE: "date",
    WidgetKind.DATETIME: "datetime-local",
    WidgetKind.TIME: "time",
    WidgetKind.EMAIL: "email",
    WidgetKind.URL: "url",
    WidgetKind.TEL: "tel",
    WidgetKind.COLOR: "color",
    WidgetKind.TEXT: "text",
}


@dataclass(frozen=True)
class EditKey:
    """
    Composite identity of one cell: table, column and primary key value.

    The token is embedded in the cell's fragments and echoed back on every
    update, so ``contacts`` / ``fldStatus`` / ``1`` becomes
    ``contactsfldStatus1`` with fragments ``contactsfldStatus1_show``,
    ``_edit`` and ``_save``.
    """
    table: str
    column: str
    row_id: Any

    @property
    def token(self) -> str:
        return f"{self.table}{self.column}{self.row_id}"

    @property
    def show_id(self) -> str:
        return f"{self.token}_show"

    @property
    def edit_id(self) -> str:
        return f"{self.token}_edit"

    @property
    def save_id(self) -> str:
        return f"{self.token}_save"

    def __str__(self) -> str:
        return self.token


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _hinted_input(config: FieldConfig) -> Optional[str]:
    if config.input_type in HINTED_INPUTS:
        return config.input_type
    css = (config.css_class or "").split()
    for hint in HINTED_INPUTS:
        if hint in css:
            return hint
    return None


def select_widget(
    column: ColumnDescriptor,
    config: Optional[FieldConfig] = None,
    relationship: Optional[RelationshipDescriptor] = None,
    editable: bool = True,
    value: Any = None,
    threshold: int = 50,
) -> WidgetKind:
    """
    Pick the editor for one cell.

    Args:
        column: The cell's column
        config: Field overrides; without one the primary key is read-only
        relationship: Foreign-key lookup defined on the column, if any
        editable: False when editing is switched off for the whole grid
        value: The cell's current value, used to split short and long text
        threshold: Length from which plain text edits in a text area

    Returns:
        The WidgetKind to render
    """
    if config is None:
        config = FieldConfig(editable=not column.primary_key)

    if not editable or not config.editable:
        return WidgetKind.FILE_UPLOAD if config.file_upload else WidgetKind.READ_ONLY

    if relationship is not None:
        return WidgetKind.RELATIONSHIP

    if config.allowed_values is not None and not config.text_on_edit:
        return WidgetKind.ALLOWED_VALUES
    if config.radio:
        return WidgetKind.RADIO
    if config.range:
        return WidgetKind.RANGE
    if config.multi_select:
        return WidgetKind.MULTI_SELECT
    if config.autocomplete:
        return WidgetKind.AUTOCOMPLETE
    if config.password:
        return WidgetKind.PASSWORD
    if config.rich_text:
        return WidgetKind.RICH_TEXT
    if config.checkbox:
        return WidgetKind.TOGGLE if config.checkbox.toggle else WidgetKind.CHECKBOX

    if column.kind is SemanticKind.ENUM:
        return WidgetKind.ENUM_DROPDOWN
    if column.kind is SemanticKind.INTEGER:
        return WidgetKind.INTEGER
    if column.kind is SemanticKind.DECIMAL:
        return WidgetKind.DECIMAL
    if config.input_type == "datetime":
        return WidgetKind.DATETIME
    if config.input_type == "time":
        return WidgetKind.TIME
    if column.kind is SemanticKind.DATE:
        return WidgetKind.DATE

    hint = _hinted_input(config)
    if hint:
        return WidgetKind(hint)
    return WidgetKind.TEXTAREA if is_long_text(value, threshold) else WidgetKind.TEXT


def widget_options(
    kind: WidgetKind,
    column: ColumnDescriptor,
    config: FieldConfig,
    lookup: Optional[List[Tuple[str, str]]] = None,
) -> List[Tuple[str, str]]:
    """
    The (value, label) pairs a widget chooses from.

    Relationship and autocomplete options come from another table and are
    passed in as ``lookup``; the rest derive from the column and config.
    """
    if kind in (WidgetKind.RELATIONSHIP, WidgetKind.AUTOCOMPLETE):
        return [(_text(value), _text(label)) for value, label in lookup or []]
    if kind is WidgetKind.ALLOWED_VALUES:
        return [(_text(value), _text(label)) for value, label in config.allowed_values or []]
    if kind is WidgetKind.ENUM_DROPDOWN:
        return [(value, value) for value in column.enum_values]
    if kind is WidgetKind.RADIO:
        return [(_text(value), _text(label)) for value, label in config.radio.options.items()]
    if kind is WidgetKind.MULTI_SELECT:
        return [(_text(value), _text(label)) for value, label in config.multi_select.options.items()]
    return []


def with_sentinel(
    options: List[Tuple[str, str]],
    column: ColumnDescriptor,
    value: Any,
    relationship: Optional[RelationshipDescriptor] = None,
) -> List[Tuple[str, str]]:
    """Prepend a --Select-- option for optional lookups and for cells without a value."""
    optional = relationship is not None and not relationship.required
    if not optional and _text(value) != "":
        return options
    return [("0" if column.is_numeric else "", SELECT_SENTINEL)] + options


def option_label(options: List[Tuple[str, str]], value: Any) -> Optional[str]:
    wanted = _text(value)
    for option_value, label in options:
        if option_value == wanted:
            return label
    return None


def display_text(
    kind: WidgetKind,
    config: FieldConfig,
    value: Any,
    row_id: Any = None,
    options: Optional[List[Tuple[str, str]]] = None,
):
    """
    Text shown in a cell's display fragment.

    Formatters win over everything else. Their output is escaped on render
    unless it is already ``Markup``; rich text is the only raw HTML.
    """
    if config.row_formatter is not None:
        return _formatted(config.row_formatter(value, row_id))
    if config.formatter is not None:
        return _formatted(config.formatter(value))

    raw = _text(value)
    if kind is WidgetKind.PASSWORD:
        return PASSWORD_MASK if raw else ""
    if kind is WidgetKind.RICH_TEXT:
        return Markup(raw)
    if kind in (WidgetKind.CHECKBOX, WidgetKind.TOGGLE):
        return "Yes" if raw == config.checkbox.value_on else "No"
    if kind is WidgetKind.MULTI_SELECT:
        separator = config.multi_select.separator
        chosen = [part for part in raw.split(separator) if part != ""]
        return ", ".join(option_label(options or [], part) or part for part in chosen)
    if kind in OPTION_KINDS or (kind is WidgetKind.READ_ONLY and options):
        label = option_label(options or [], raw)
        return raw if label is None or label == SELECT_SENTINEL else label
    if config.allowed_values is not None:
        label = option_label([(_text(v), _text(l)) for v, l in config.allowed_values], raw)
        return raw if label is None else label
    return raw


def _formatted(result: Any):
    if isinstance(result, Markup):
        return result
    return _text(result)


@dataclass
class Cell:
    """Everything the widget macros need to render one cell."""
    key: EditKey
    kind: WidgetKind
    column: ColumnDescriptor
    config: FieldConfig
    value: Any = None
    display: Any = ""
    options: List[Tuple[str, str]] = field(default_factory=list)
    dropdown_table: Optional[str] = None
    primary_key: str = ""

    @property
    def raw(self) -> str:
        return _text(self.value)

    @property
    def html_display(self) -> bool:
        return isinstance(self.display, Markup)

    @property
    def editable(self) -> bool:
        return self.kind not in (WidgetKind.READ_ONLY, WidgetKind.FILE_UPLOAD)

    @property
    def selectbox(self) -> bool:
        return self.kind in SELECT_KINDS

    @property
    def step(self) -> Optional[str]:
        return NUMERIC_STEPS.get(self.kind)

    @property
    def input_type(self) -> str:
        return INPUT_TYPES.get(self.kind, "text")

    @property
    def input_value(self) -> str:
        """The value as a native input expects it."""
        raw = self.raw
        if self.kind is WidgetKind.DATE:
            return raw[:10]
        if self.kind is WidgetKind.DATETIME:
            return raw.replace(" ", "T")[:16]
        return raw

    @property
    def selected_values(self) -> List[str]:
        if self.kind is not WidgetKind.MULTI_SELECT:
            return [self.raw]
        return [part for part in self.raw.split(self.config.multi_select.separator) if part != ""]

    @property
    def file_url(self) -> str:
        option = self.config.file_upload
        return f"{option.relative_folder}{self.raw}" if option else self.raw


def build_cell(
    table: str,
    primary_key: str,
    row_id: Any,
    column: ColumnDescriptor,
    config: FieldConfig,
    value: Any,
    relationship: Optional[RelationshipDescriptor] = None,
    lookup: Optional[List[Tuple[str, str]]] = None,
    editable: bool = True,
    threshold: int = 50,
) -> Cell:
    kind = select_widget(column, config, relationship, editable, value, threshold)

    options = widget_options(kind, column, config, lookup)
    if kind in SELECT_KINDS:
        options = with_sentinel(options, column, value, relationship)

    display_options = options
    if kind is WidgetKind.READ_ONLY and relationship is not None:
        display_options = widget_options(WidgetKind.RELATIONSHIP, column, config, lookup)

    if kind is WidgetKind.RELATIONSHIP:
        dropdown_table = relationship.foreign_table
    elif kind in SELECT_KINDS:
        dropdown_table = table
    else:
        dropdown_table = None

    return Cell(
        key=EditKey(table, column.name, row_id),
        kind=kind,
        column=column,
        config=config,
        value=value,
        display=display_text(kind, config, value, row_id, display_options),
        options=options,
        dropdown_table=dropdown_table,
        primary_key=primary_key,
    )


def render_cell(cell: Cell) -> Markup:
    """Render a cell's fragments through the macro registered for its kind."""
    return get_macro("widgets.html", MACROS[cell.kind])(cell)
