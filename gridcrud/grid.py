"""
The inline-editable grid.

A Grid is configured for one table, then rendered per request. Every
render introspects nothing further (the descriptor is built once when the
grid is constructed), resolves the security scope once, and runs the
count and page queries under that same scope.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode

from markupsafe import Markup

from .audit import AuditSink, NullAuditSink
from .config import Config
from .database import DatabaseInterface, get_database
from .errors import ValidationError
from .fields import (
    AutocompleteOption,
    CheckboxOption,
    FieldConfig,
    FileUploadOption,
    MultiSelectOption,
    PasswordOption,
    RadioOption,
    RangeOption,
    RelationshipDescriptor,
    RichTextOption,
)
from .pager import PageResult
from .query import ASCENDING, DESCENDING, QueryComposer, QueryPlan, flip_direction, lookup_statement, normalize_direction
from .rbac import AllowAll, AuthorizationProvider, require_capability
from .row_security import NoScope, ScopeClause, SecurityScopeProvider
from .schema import SemanticKind, TableDescriptor, introspect_table
from .templating import render_template
from .widgets import DATE_PLACEHOLDER, SELECT_SENTINEL, Cell, WidgetKind, build_cell, render_cell, select_widget

logger = logging.getLogger(__name__)

DEFAULT_EMPTY_MESSAGE = "No data in this table. Click add button below."

# Request keys that never act as column filters
RESERVED_PARAMS = frozenset({
    "action", "ajaxAction", "table", "pk", "field", "id", "val",
    "dropdown_tbl", "search", "page", "sort", "order", "_",
})

# Add-form inputs are named "add:<column>" so they never collide with filters
ADD_PREFIX = "add:"

HORIZONTAL = "horizontal"
VERTICAL = "vertical"


@dataclass
class RowButton:
    label: str
    url: str
    attach: str = "id"  # "id" appends pk=<id>, "all" appends every displayed field
    callback: Optional[str] = None


@dataclass
class ButtonLink:
    label: str
    url: str


@dataclass
class HeaderView:
    name: str
    label: str
    sortable: bool
    order: Optional[str] = None
    checkbox_all: bool = False
    checkbox_all_label: bool = False


@dataclass
class RowView:
    id: Any
    cells: List[Tuple[str, Markup]]
    buttons: List[Dict[str, str]] = field(default_factory=list)
    selected: bool = False


@dataclass
class AddFieldView:
    name: str
    input_name: str
    label: str
    control: str  # select, checkbox, textarea, number, input
    value: str = ""
    placeholder: str = ""
    options: List[Tuple[str, str]] = field(default_factory=list)
    note: Optional[str] = None
    step: Optional[str] = None
    input_type: str = "text"
    css_class: Optional[str] = None
    height: Optional[int] = None
    checkbox: Optional[CheckboxOption] = None


@dataclass
class RenderState:
    """Request state of one render: search, filters, sort and page."""
    search: str = ""
    filters: Dict[str, Any] = field(default_factory=dict)
    sort: Optional[str] = None
    direction: str = ASCENDING
    sort_requested: bool = False
    page: Any = 1


class Grid:
    """
    An editable view of one database table.

    Args:
        item: Singular name of a row, used in buttons and messages
        table: Table to edit
        primary_key: Primary key column; detected from the schema when omitted
        database: Backend to use; defaults to the process-wide database
        authorization: Capability checks; defaults to allowing everything
        scope: Row security scope; defaults to no scope
        audit: Audit sink; defaults to discarding records
        ajax_url: URL of the edit protocol endpoint for this grid

    Raises:
        SchemaError: If the table does not exist or has no columns
    """

    def __init__(
        self,
        item: str,
        table: str,
        primary_key: Optional[str] = None,
        database: Optional[DatabaseInterface] = None,
        authorization: Optional[AuthorizationProvider] = None,
        scope: Optional[SecurityScopeProvider] = None,
        audit: Optional[AuditSink] = None,
        ajax_url: str = "",
    ):
        self.item = item
        self.database = database or get_database()
        self.descriptor: TableDescriptor = introspect_table(self.database, table, primary_key)
        self.table = self.descriptor.name
        self.primary_key = self.descriptor.primary_key
        self.composer = QueryComposer(self.database, self.descriptor)

        self.authorization = authorization or AllowAll()
        self.scope = scope or NoScope()
        self.audit = audit or NullAuditSink()
        self.ajax_url = ajax_url

        self.fields: Dict[str, FieldConfig] = {name: FieldConfig() for name in self.descriptor.column_names}
        self.fields[self.primary_key].editable = False
        self.relationships: Dict[str, RelationshipDescriptor] = {}
        self.foreign_tables: Dict[str, TableDescriptor] = {}

        self.display_fields: List[str] = list(self.descriptor.column_names)
        self.add_fields: List[str] = list(self.descriptor.column_names)
        self.search_fields: List[str] = []
        self.filter_fields: List[str] = []
        self.sortable_fields: List[str] = list(self.descriptor.column_names)

        self.page_size = Config.get_page_size()
        self.paging = True
        self.textarea_threshold = Config.get_textarea_threshold()
        self.orientation = HORIZONTAL
        self.editing = True
        self.allow_add = True
        self.allow_delete = True
        self.add_form_top = False
        self.show_row_checkbox = False
        self.row_buttons: List[RowButton] = []
        self.buttons: List[ButtonLink] = []
        self.empty_message = DEFAULT_EMPTY_MESSAGE

        self.primary_key_auto_increment = self.descriptor.primary_column.auto_increment
        self.specify_primary_key_on_add = False
        self.add_callbacks: List[Callable[[Dict[str, Any]], Any]] = []

    # Configuration

    def field(self, name: str) -> FieldConfig:
        """The configuration of a column; unknown columns raise ValidationError."""
        return self.fields[self.descriptor.require_column(name)]

    def _columns(self, names: Union[str, Iterable[str]]) -> List[str]:
        if isinstance(names, str):
            names = [part.strip() for part in names.split(",") if part.strip()]
        return [self.descriptor.require_column(name) for name in names]

    def display_as(self, name: str, label: str) -> None:
        self.field(name).label = label

    def label_for(self, name: str) -> str:
        return self.fields[name].label or name

    def disallow_edit(self, *names: str) -> None:
        for name in names:
            self.field(name).editable = False

    def allow_primary_key_edit(self) -> None:
        self.fields[self.primary_key].editable = True

    def turn_off_editing(self) -> None:
        self.editing = False

    def omit_field(self, name: str) -> None:
        name = self.descriptor.require_column(name)
        if name in self.display_fields:
            self.display_fields.remove(name)

    def omit_add_field(self, name: str) -> None:
        name = self.descriptor.require_column(name)
        if name in self.add_fields:
            self.add_fields.remove(name)

    def omit_field_completely(self, name: str) -> None:
        self.omit_field(name)
        self.omit_add_field(name)

    def omit_primary_key(self) -> None:
        self.omit_field(self.primary_key)

    def show_only(self, names: Union[str, Iterable[str]]) -> None:
        """Display and add only the given columns, in the given order."""
        columns = self._columns(names)
        self.display_fields = list(columns)
        self.add_fields = list(columns)

    def order_fields(self, names: Union[str, Iterable[str]]) -> None:
        """Move the given columns to the front; the rest keep their order."""
        ordered = [name for name in self._columns(names) if name in self.display_fields]
        self.display_fields = ordered + [name for name in self.display_fields if name not in ordered]

    def define_relationship(
        self,
        name: str,
        foreign_table: str,
        foreign_key: str,
        display_column: str,
        sort_column: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        required: bool = True,
    ) -> None:
        """
        Edit a column through a dropdown of rows from another table.

        The foreign table is introspected immediately so its key, display,
        sort and filter columns can be validated before any render.
        """
        name = self.descriptor.require_column(name)
        foreign = self._foreign_table(foreign_table, foreign_key)
        foreign.require_column(display_column)
        if sort_column:
            foreign.require_column(sort_column)
        for column in filters or {}:
            foreign.require_column(column)

        self.relationships[name] = RelationshipDescriptor(
            column=name,
            foreign_table=foreign.name,
            foreign_key=foreign_key,
            display_column=display_column,
            sort_column=sort_column,
            filters=dict(filters or {}),
            required=required,
        )

    def _foreign_table(self, table: str, primary_key: Optional[str] = None) -> TableDescriptor:
        descriptor = self.foreign_tables.get(table)
        if descriptor is None:
            descriptor = introspect_table(self.database, table, primary_key)
            self.foreign_tables[table] = descriptor
        if primary_key:
            descriptor.require_column(primary_key)
        return descriptor

    def define_allowable_values(self, name: str, values: Any, text_on_edit: bool = False) -> None:
        """
        Restrict a column to a list of values.

        ``values`` is a dict of value to label, a list of ``(value, label)``
        pairs, or a list of plain values used as their own labels.
        """
        if isinstance(values, dict):
            pairs = [(str(value), str(label)) for value, label in values.items()]
        else:
            pairs = []
            for entry in values:
                if isinstance(entry, (list, tuple)):
                    pairs.append((str(entry[0]), str(entry[1])))
                else:
                    pairs.append((str(entry), str(entry)))
        config = self.field(name)
        config.allowed_values = pairs
        config.text_on_edit = text_on_edit

    def define_checkbox(self, name: str, value_on: str = "1", value_off: str = "0") -> None:
        self.field(name).checkbox = CheckboxOption(str(value_on), str(value_off))

    def define_toggle(self, name: str, value_on: str = "1", value_off: str = "0") -> None:
        self.field(name).checkbox = CheckboxOption(str(value_on), str(value_off), toggle=True)

    def show_checkbox_all(self, name: str, with_label: bool = True) -> None:
        """Put a check-all box in the column header of a checkbox column."""
        config = self.field(name)
        config.checkbox_all = True
        config.checkbox_all_label = with_label

    def define_radio_buttons(self, name: str, options: Dict[Any, Any], inline: bool = True) -> None:
        self.field(name).radio = RadioOption({str(k): str(v) for k, v in options.items()}, inline)

    def define_range(self, name: str, minimum: float = 0, maximum: float = 100, step: float = 1, show_value: bool = True) -> None:
        if minimum > maximum:
            raise ValidationError(f"Range minimum {minimum} exceeds maximum {maximum}", field=name)
        self.field(name).range = RangeOption(minimum, maximum, step, show_value)

    def define_multi_select(self, name: str, options: Dict[Any, Any], separator: str = ",") -> None:
        self.field(name).multi_select = MultiSelectOption({str(k): str(v) for k, v in options.items()}, separator)

    def define_autocomplete(
        self,
        name: str,
        source_table: str,
        display_field: str,
        value_field: Optional[str] = None,
        min_chars: int = 2,
    ) -> None:
        source = self._foreign_table(source_table)
        source.require_column(display_field)
        if value_field:
            source.require_column(value_field)
        self.field(name).autocomplete = AutocompleteOption(source.name, display_field, value_field, min_chars)

    def set_rich_text(self, name: str, toolbar: str = "basic") -> None:
        self.field(name).rich_text = RichTextOption(toolbar)

    def set_password(self, name: str, confirm: bool = False) -> None:
        self.field(name).password = PasswordOption(confirm)

    def set_input_type(self, name: str, input_type: str) -> None:
        if input_type not in ("email", "url", "tel", "color", "datetime", "time"):
            raise ValidationError(f"Unsupported input type: {input_type}", field=name)
        self.field(name).input_type = input_type

    def set_textarea_height(self, name: str, height: int) -> None:
        self.field(name).textarea_height = int(height)

    def set_file_upload(self, name: str, destination_folder: str, relative_folder: str = "", upload_url: Optional[str] = None) -> None:
        """Show a column as a file link; stored file names are not edited inline."""
        config = self.field(name)
        config.file_upload = FileUploadOption(destination_folder, relative_folder, upload_url)
        config.editable = False

    def format_field_with_function(self, name: str, formatter: Callable[[Any], Any]) -> None:
        self.field(name).formatter = formatter

    def format_field_with_function_advanced(self, name: str, formatter: Callable[[Any, Any], Any]) -> None:
        """Like format_field_with_function, but the formatter also receives the row id."""
        self.field(name).row_formatter = formatter

    def modify_field_with_class(self, name: str, css_class: str) -> None:
        self.field(name).css_class = css_class

    def set_add_field_note(self, name: str, note: str) -> None:
        self.field(name).note = note

    def set_initial_add_field_value(self, name: str, value: Any) -> None:
        self.field(name).initial_value = str(value)

    def add_value_on_insert(self, name: str, value: Any) -> None:
        self.field(name).insert_value = value

    def on_add_specify_primary_key(self) -> None:
        self.specify_primary_key_on_add = True

    def primary_key_not_auto_increment(self) -> None:
        self.primary_key_auto_increment = False

    def on_add(self, callback: Callable[[Dict[str, Any]], Any]) -> None:
        self.add_callbacks.append(callback)

    def add_search_fields(self, *names: str) -> None:
        for name in self._columns(names):
            if name not in self.search_fields:
                self.search_fields.append(name)

    def add_filter_box(self, name: str) -> None:
        name = self.descriptor.require_column(name)
        if name not in self.filter_fields:
            self.filter_fields.append(name)

    def add_filter_box_all_fields(self) -> None:
        for name in self.display_fields:
            self.add_filter_box(name)

    def set_sortable_fields(self, *names: str) -> None:
        self.sortable_fields = self._columns(names)

    def set_limit(self, page_size: int) -> None:
        self.page_size = int(page_size)

    def turn_off_paging(self) -> None:
        self.paging = False

    def set_orientation(self, orientation: str) -> None:
        if orientation not in (HORIZONTAL, VERTICAL):
            raise ValidationError(f"Unknown orientation: {orientation}")
        self.orientation = orientation

    def show_checkbox(self) -> None:
        self.show_row_checkbox = True

    def add_button_to_row(self, label: str, url: str, attach: str = "id", callback: Optional[str] = None) -> None:
        self.row_buttons.append(RowButton(label, url, attach, callback))

    def add_button(self, label: str, url: str) -> None:
        self.buttons.append(ButtonLink(label, url))

    def disallow_add(self) -> None:
        self.allow_add = False

    def disallow_delete(self) -> None:
        self.allow_delete = False

    def display_add_form_top(self) -> None:
        self.add_form_top = True

    def set_empty_table_message(self, message: str) -> None:
        self.empty_message = message

    def set_ajax_url(self, url: str) -> None:
        self.ajax_url = url

    # Dispatch

    def is_editable(self, name: str) -> bool:
        return self.editing and self.fields[name].editable

    def widget_for(self, name: str, value: Any = None) -> WidgetKind:
        return select_widget(
            self.descriptor.column(name),
            self.fields[name],
            self.relationships.get(name),
            self.editing,
            value,
            self.textarea_threshold,
        )

    def lookup_options(self, name: str) -> List[Tuple[str, str]]:
        """
        Options sourced from another table: relationship rows or autocomplete suggestions.

        The foreign table's own security scope applies to the lookup.
        """
        relationship = self.relationships.get(name)
        config = self.fields[name]
        if relationship is not None:
            descriptor = self.foreign_tables[relationship.foreign_table]
            statement = lookup_statement(
                self.database,
                descriptor,
                relationship.foreign_key,
                relationship.display_column,
                relationship.sort_column,
                relationship.filters,
                self.scope.resolve(descriptor.name),
            )
            key, label = relationship.foreign_key, relationship.display_column
        elif config.autocomplete is not None:
            option = config.autocomplete
            descriptor = self.foreign_tables[option.source_table]
            key = option.value_field or option.display_field
            label = option.display_field
            statement = lookup_statement(
                self.database,
                descriptor,
                key,
                label,
                scope=self.scope.resolve(descriptor.name),
                distinct=True,
            )
        else:
            return []

        rows = self.database.fetch_all(statement.sql, statement.params)
        return [("" if row[key] is None else str(row[key]), "" if row[label] is None else str(row[label])) for row in rows]

    def build_cell(self, name: str, row_id: Any, value: Any, lookups: Optional[Dict[str, List[Tuple[str, str]]]] = None) -> Cell:
        if lookups is None:
            lookups = {}
        if name not in lookups:
            lookups[name] = self.lookup_options(name)
        return build_cell(
            self.table,
            self.primary_key,
            row_id,
            self.descriptor.column(name),
            self.fields[name],
            value,
            relationship=self.relationships.get(name),
            lookup=lookups[name],
            editable=self.editing,
            threshold=self.textarea_threshold,
        )

    # Rendering

    def parse_state(self, params: Mapping[str, Any], action: Optional[str] = None) -> RenderState:
        """
        Read search, filters, sort and page from request parameters.

        A sort action flips the submitted direction, or starts descending
        when none was submitted; other requests keep the submitted
        direction, ascending by default.
        """
        filters = {}
        for key, value in params.items():
            if key in RESERVED_PARAMS or key.startswith(ADD_PREFIX):
                continue
            if self.descriptor.has_column(key) and value is not None and str(value) != "":
                filters[key] = value

        sort = params.get("sort") or None
        order = params.get("order")
        if action == "sort":
            direction = flip_direction(order) if order else DESCENDING
        else:
            direction = normalize_direction(order, default=ASCENDING)

        return RenderState(
            search=str(params.get("search") or ""),
            filters=filters,
            sort=sort,
            direction=direction,
            sort_requested=bool(sort),
            page=params.get("page") or 1,
        )

    def query(self, state: RenderState, scope: Optional[ScopeClause] = None) -> Tuple[QueryPlan, PageResult]:
        """Run the count and page queries for a render state."""
        if scope is None:
            scope = self.scope.resolve(self.table)
        page_size = self.page_size if self.paging else 0
        plan = self.composer.compose_select(
            scope=scope,
            search=state.search,
            searchable=self.search_fields,
            filters=state.filters,
            sort=state.sort,
            sortable=self.sortable_fields,
            direction=state.direction,
            page=state.page,
            page_size=page_size,
        )
        return self.composer.fetch_page(plan, state.page, page_size)

    def count(self, params: Mapping[str, Any]) -> int:
        """Rows visible under the current scope, search and filters."""
        require_capability(self.authorization, "read", self.table)
        state = self.parse_state(params)
        where, bound = self.composer.compose_where(
            self.scope.resolve(self.table), state.search, self.search_fields, state.filters
        )
        plan = QueryPlan(where=where, params=bound, order_by=self.primary_key, direction=ASCENDING)
        statement = self.composer.count_statement(plan)
        return int(self.database.fetch_value(statement.sql, statement.params) or 0)

    def _row_buttons(self, row_id: Any, row: Mapping[str, Any]) -> List[Dict[str, str]]:
        buttons = []
        for button in self.row_buttons:
            if button.attach == "all":
                query = urlencode([(name, "" if row.get(name) is None else row.get(name)) for name in self.display_fields])
            else:
                query = urlencode({self.primary_key: row_id})
            joiner = "&" if "?" in button.url else "?"
            buttons.append({
                "label": button.label,
                "href": f"{button.url}{joiner}{query}",
                "callback": button.callback or "",
            })
        return buttons

    def _headers(self, state: RenderState, plan: QueryPlan) -> List[HeaderView]:
        headers = []
        for name in self.display_fields:
            config = self.fields[name]
            current = state.sort_requested and plan.order_by == name
            headers.append(HeaderView(
                name=name,
                label=self.label_for(name),
                sortable=name in self.sortable_fields,
                order=plan.direction if current else None,
                checkbox_all=config.checkbox_all and config.checkbox is not None,
                checkbox_all_label=config.checkbox_all_label,
            ))
        return headers

    def table_context(self, params: Mapping[str, Any], action: Optional[str] = None) -> Dict[str, Any]:
        require_capability(self.authorization, "read", self.table)
        state = self.parse_state(params, action)
        plan, result = self.query(state)

        lookups: Dict[str, List[Tuple[str, str]]] = {}
        selected = params.get(self.primary_key)
        rows = []
        for row in result.rows:
            row_id = row[self.primary_key]
            cells = [
                (self.label_for(name), render_cell(self.build_cell(name, row_id, row.get(name), lookups)))
                for name in self.display_fields
            ]
            rows.append(RowView(
                id=row_id,
                cells=cells,
                buttons=self._row_buttons(row_id, row),
                selected=selected is not None and str(selected) == str(row_id),
            ))

        return {
            "grid": self,
            "state": state,
            "plan": plan,
            "result": result,
            "headers": self._headers(state, plan),
            "rows": rows,
            "show_actions": self.allow_delete or bool(self.row_buttons),
            "pages": list(range(1, result.total_pages + 1)),
        }

    def render_table(
        self,
        params: Optional[Mapping[str, Any]] = None,
        action: Optional[str] = None,
        message: Optional[str] = None,
        error: Optional[str] = None,
    ) -> str:
        """Render the table fragment that refresh actions swap into the grid container."""
        context = self.table_context(params or {}, action)
        return render_template("grid_table.html", message=message, error=error, **context)

    def add_form_fields(self) -> List[AddFieldView]:
        if not self.allow_add:
            return []

        lookups: Dict[str, List[Tuple[str, str]]] = {}
        views = []
        for name in self.add_fields:
            if name == self.primary_key and not self.specify_primary_key_on_add:
                continue
            views.append(self._add_field_view(name, lookups))
        return views

    def _add_field_view(self, name: str, lookups: Dict[str, List[Tuple[str, str]]]) -> AddFieldView:
        column = self.descriptor.column(name)
        config = self.fields[name]
        view = AddFieldView(
            name=name,
            input_name=f"{ADD_PREFIX}{name}",
            label=self.label_for(name),
            control="input",
            value=config.initial_value or "",
            note=config.note,
            css_class=config.css_class,
        )

        if config.checkbox is not None:
            view.control = "checkbox"
            view.checkbox = config.checkbox
            return view

        relationship = self.relationships.get(name)
        if relationship is not None:
            view.control = "select"
            options = lookups.setdefault(name, self.lookup_options(name))
            if not relationship.required:
                options = [("0" if column.is_numeric else "", SELECT_SENTINEL)] + options
            view.options = options
            return view

        if config.allowed_values is not None:
            view.control = "select"
            view.options = list(config.allowed_values)
        elif column.kind is SemanticKind.ENUM:
            view.control = "select"
            view.options = [(value, value) for value in column.enum_values]
        elif config.textarea_height:
            view.control = "textarea"
            view.height = config.textarea_height
        elif column.is_numeric:
            view.control = "number"
            view.step = "1" if column.kind is SemanticKind.INTEGER else "0.01"
        else:
            if column.kind is SemanticKind.DATE and not view.value:
                view.placeholder = DATE_PLACEHOLDER
            if config.input_type in ("email", "url", "tel", "color"):
                view.input_type = config.input_type
        return view

    def render(self, params: Optional[Mapping[str, Any]] = None, message: Optional[str] = None) -> str:
        """Render the whole grid: filter boxes, table fragment and add form."""
        params = params or {}
        table_html = Markup(self.render_table(params, message=message))
        return render_template(
            "grid.html",
            grid=self,
            table_html=table_html,
            filters=[(name, self.label_for(name), params.get(name, "")) for name in self.filter_fields],
            search=params.get("search", ""),
            add_fields=self.add_form_fields(),
            add_prefix=ADD_PREFIX,
        )
