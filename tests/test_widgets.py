"""
Tests for widget dispatch, display text and cell rendering.
"""
import pytest
from markupsafe import Markup

from gridcrud.fields import (
    AutocompleteOption,
    CheckboxOption,
    FieldConfig,
    MultiSelectOption,
    PasswordOption,
    RadioOption,
    RangeOption,
    RelationshipDescriptor,
    RichTextOption,
)
from gridcrud.schema import ColumnDescriptor, classify
from gridcrud.widgets import (
    SELECT_SENTINEL,
    EditKey,
    WidgetKind,
    build_cell,
    display_text,
    render_cell,
    select_widget,
    with_sentinel,
)


def column(name="fldName", raw_type="varchar(100)", primary_key=False, nullable=True):
    return ColumnDescriptor(name, raw_type, classify(raw_type), primary_key=primary_key, nullable=nullable)


RELATIONSHIP = RelationshipDescriptor("fldCat", "categories", "catID", "catName")


class TestEditKey:

    def test_token_and_fragment_ids(self):
        key = EditKey("contacts", "fldStatus", 1)
        assert key.token == "contactsfldStatus1"
        assert key.show_id == "contactsfldStatus1_show"
        assert key.edit_id == "contactsfldStatus1_edit"
        assert key.save_id == "contactsfldStatus1_save"
        assert str(key) == key.token


class TestSelectWidget:

    def test_primary_key_without_config_is_read_only(self):
        assert select_widget(column("id", "int", primary_key=True)) is WidgetKind.READ_ONLY

    def test_not_editable(self):
        assert select_widget(column(), FieldConfig(editable=False)) is WidgetKind.READ_ONLY
        assert select_widget(column(), FieldConfig(), editable=False) is WidgetKind.READ_ONLY

    def test_relationship_beats_everything(self):
        config = FieldConfig(allowed_values=[("a", "A")], checkbox=CheckboxOption())
        assert select_widget(column("fldCat", "int"), config, RELATIONSHIP) is WidgetKind.RELATIONSHIP

    def test_allowed_values_unless_text_on_edit(self):
        config = FieldConfig(allowed_values=[("a", "A")], radio=RadioOption({"a": "A"}))
        assert select_widget(column(), config) is WidgetKind.ALLOWED_VALUES
        config.text_on_edit = True
        assert select_widget(column(), config) is WidgetKind.RADIO

    @pytest.mark.parametrize("config,kind", [
        (FieldConfig(range=RangeOption()), WidgetKind.RANGE),
        (FieldConfig(multi_select=MultiSelectOption({"a": "A"})), WidgetKind.MULTI_SELECT),
        (FieldConfig(autocomplete=AutocompleteOption("t", "c")), WidgetKind.AUTOCOMPLETE),
        (FieldConfig(password=PasswordOption()), WidgetKind.PASSWORD),
        (FieldConfig(rich_text=RichTextOption()), WidgetKind.RICH_TEXT),
        (FieldConfig(checkbox=CheckboxOption()), WidgetKind.CHECKBOX),
        (FieldConfig(checkbox=CheckboxOption(toggle=True)), WidgetKind.TOGGLE),
        (FieldConfig(input_type="email"), WidgetKind.EMAIL),
        (FieldConfig(css_class="wide url"), WidgetKind.URL),
        (FieldConfig(input_type="time"), WidgetKind.TIME),
    ])
    def test_configured_widgets(self, config, kind):
        assert select_widget(column(), config) is kind

    @pytest.mark.parametrize("raw_type,kind", [
        ("enum('a','b')", WidgetKind.ENUM_DROPDOWN),
        ("int(11)", WidgetKind.INTEGER),
        ("decimal(10,2)", WidgetKind.DECIMAL),
        ("date", WidgetKind.DATE),
        ("varchar(10)", WidgetKind.TEXT),
    ])
    def test_schema_defaults(self, raw_type, kind):
        assert select_widget(column(raw_type=raw_type), FieldConfig()) is kind

    def test_datetime_hint_on_date_column(self):
        assert select_widget(column(raw_type="datetime"), FieldConfig(input_type="datetime")) is WidgetKind.DATETIME

    def test_long_text_uses_textarea(self):
        assert select_widget(column(), FieldConfig(), value="x" * 60) is WidgetKind.TEXTAREA
        assert select_widget(column(), FieldConfig(), value="x" * 10, threshold=5) is WidgetKind.TEXTAREA


class TestSentinel:

    def test_required_with_value_has_no_sentinel(self):
        options = [("1", "Books")]
        assert with_sentinel(options, column("c", "int"), 1, RELATIONSHIP) == options

    def test_optional_relationship_gets_numeric_sentinel(self):
        optional = RelationshipDescriptor("c", "categories", "catID", "catName", required=False)
        assert with_sentinel([], column("c", "int"), 1, optional) == [("0", SELECT_SENTINEL)]

    def test_blank_text_value_gets_empty_sentinel(self):
        assert with_sentinel([], column(), None) == [("", SELECT_SENTINEL)]


class TestDisplayText:

    def test_formatters_win(self):
        config = FieldConfig(formatter=lambda value: f"${value}")
        assert display_text(WidgetKind.TEXT, config, 5) == "$5"
        config = FieldConfig(row_formatter=lambda value, row_id: f"{row_id}:{value}")
        assert display_text(WidgetKind.TEXT, config, 5, row_id=9) == "9:5"

    def test_password_is_masked(self):
        config = FieldConfig(password=PasswordOption())
        assert display_text(WidgetKind.PASSWORD, config, "hunter2") == "********"
        assert display_text(WidgetKind.PASSWORD, config, "") == ""

    def test_checkbox(self):
        config = FieldConfig(checkbox=CheckboxOption("Y", "N"))
        assert display_text(WidgetKind.CHECKBOX, config, "Y") == "Yes"
        assert display_text(WidgetKind.CHECKBOX, config, "N") == "No"

    def test_option_labels(self):
        options = [("1", "Books"), ("2", "Games")]
        assert display_text(WidgetKind.RELATIONSHIP, FieldConfig(), 2, options=options) == "Games"
        assert display_text(WidgetKind.RELATIONSHIP, FieldConfig(), 9, options=options) == "9"

    def test_multi_select_labels(self):
        config = FieldConfig(multi_select=MultiSelectOption({"r": "Red", "g": "Green"}, ","))
        options = [("r", "Red"), ("g", "Green")]
        assert display_text(WidgetKind.MULTI_SELECT, config, "r,g", options=options) == "Red, Green"

    def test_rich_text_is_markup(self):
        value = display_text(WidgetKind.RICH_TEXT, FieldConfig(rich_text=RichTextOption()), "<b>hi</b>")
        assert isinstance(value, Markup)


class TestRenderCell:

    def test_editable_text_cell_has_three_fragments(self):
        cell = build_cell("contacts", "pkID", 1, column(), FieldConfig(), "Alice")
        html = render_cell(cell)
        assert 'id="contactsfldName1_show"' in html
        assert 'id="contactsfldName1_edit"' in html
        assert 'id="contactsfldName1_save"' in html
        assert 'id="contactsfldName1"' in html
        assert 'value="Alice"' in html
        assert "data-dropdown-tbl" not in html

    def test_empty_value_shows_placeholder(self):
        html = render_cell(build_cell("contacts", "pkID", 1, column(), FieldConfig(), None))
        assert ">--</span>" in html

    def test_formatter_output_is_escaped(self):
        config = FieldConfig(formatter=lambda value: "<b>x</b>")
        html = render_cell(build_cell("contacts", "pkID", 1, column(), config, "x"))
        assert "&lt;b&gt;x&lt;/b&gt;" in html

    def test_markup_formatter_output_is_kept(self):
        config = FieldConfig(formatter=lambda value: Markup("<b>x</b>"))
        html = render_cell(build_cell("contacts", "pkID", 1, column(), config, "x"))
        assert "<b>x</b>" in html
        assert 'data-html="1"' in html

    def test_enum_dropdown_selects_current_value(self):
        status = column("fldStatus", "enum('active','pending')")
        cell = build_cell("contacts", "pkID", 1, status, FieldConfig(), "pending")
        html = render_cell(cell)
        assert cell.dropdown_table == "contacts"
        assert 'data-dropdown-tbl="contacts"' in html
        assert '<option value="pending" selected>pending</option>' in html
        assert SELECT_SENTINEL not in html

    def test_relationship_dropdown(self):
        cell = build_cell(
            "products", "prodID", 1, column("fldCat", "int"), FieldConfig(), 2,
            relationship=RELATIONSHIP, lookup=[("1", "Books"), ("2", "Games")],
        )
        html = render_cell(cell)
        assert cell.display == "Games"
        assert 'data-dropdown-tbl="categories"' in html
        assert '<option value="2" selected>Games</option>' in html

    def test_read_only_relationship_shows_label(self):
        cell = build_cell(
            "products", "prodID", 1, column("fldCat", "int"), FieldConfig(editable=False), 1,
            relationship=RELATIONSHIP, lookup=[("1", "Books")],
        )
        assert cell.kind is WidgetKind.READ_ONLY
        assert render_cell(cell) == '<span class="gc-readonly">Books</span>'

    def test_number_and_date_inputs(self):
        cell = build_cell("contacts", "pkID", 1, column("fldPrice", "decimal(10,2)"), FieldConfig(), 9.5)
        assert 'step="0.01"' in render_cell(cell)
        cell = build_cell("contacts", "pkID", 1, column("fldDay", "date"), FieldConfig(), "2024-02-03 00:00:00")
        html = render_cell(cell)
        assert 'type="date"' in html
        assert 'value="2024-02-03"' in html

    def test_checkbox_commits_on_change(self):
        config = FieldConfig(checkbox=CheckboxOption("1", "0", toggle=True))
        html = render_cell(build_cell("contacts", "pkID", 1, column("fldOn", "int"), config, "1"))
        assert 'data-commit="change"' in html
        assert "gc-toggle" in html
        assert " checked" in html
