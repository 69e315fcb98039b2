"""
Tests for zero-configuration grids and the demo data.
"""
import pytest

from gridcrud.api import GridRegistry
from gridcrud.demo import DEMO_TABLE, register_demo, seed_demo
from gridcrud.scaffold import (
    build_dynamic_grid,
    generate_display_name,
    generate_title,
    guess_input_class,
    is_audit_timestamp,
    is_boolean_name,
)
from gridcrud.widgets import WidgetKind


class TestNames:

    @pytest.mark.parametrize("table,title", [
        ("tblContacts", "Contacts"),
        ("tblOrderItems", "Order Items"),
        ("order_items", "Order Items"),
        ("t_users", "Users"),
    ])
    def test_generate_title(self, table, title):
        assert generate_title(table) == title

    @pytest.mark.parametrize("column,label", [
        ("fldFirstName", "First Name"),
        ("col_zip_code", "Zip Code"),
        ("field_age", "Age"),
        ("email", "Email"),
    ])
    def test_generate_display_name(self, column, label):
        assert generate_display_name(column) == label

    def test_name_patterns(self):
        assert guess_input_class("fldEmail") == "email"
        assert guess_input_class("mobile_number") == "tel"
        assert guess_input_class("website") == "url"
        assert guess_input_class("fldName") is None
        assert is_audit_timestamp("created_at")
        assert is_audit_timestamp("fldModifiedDate")
        assert not is_audit_timestamp("fldBirthday")
        assert is_boolean_name("is_admin")
        assert is_boolean_name("fldActive")
        assert not is_boolean_name("fldName")


class TestBuildDynamicGrid:

    def test_defaults(self, database):
        grid = build_dynamic_grid(database, "contacts")
        assert grid.item == "Contacts"
        assert "pkID" not in grid.display_fields
        assert grid.label_for("fldName") == "Name"
        assert grid.widget_for("fldEmail", "a@b.co") is WidgetKind.EMAIL
        assert grid.page_size == 25

    def test_options(self, database):
        grid = build_dynamic_grid(
            database,
            "contacts",
            title="Person",
            rows_per_page=5,
            omit_pk=False,
            exclude_fields=["fldNotes"],
            readonly_fields=["fldName"],
            allow_delete=False,
            field_types={"fldEmail": "url"},
            dropdowns={"fldBirthday": ["today", "tomorrow"]},
            ranges={"fldAge": (0, 120, 1, True)},
        )
        assert grid.item == "Person"
        assert grid.page_size == 5
        assert "pkID" in grid.display_fields
        assert "fldNotes" not in grid.display_fields
        assert not grid.is_editable("fldName")
        assert not grid.allow_delete
        assert grid.widget_for("fldEmail", "") is WidgetKind.URL
        assert grid.widget_for("fldBirthday", "today") is WidgetKind.ALLOWED_VALUES
        assert grid.widget_for("fldAge", 30) is WidgetKind.RANGE

    def test_unknown_option(self, database):
        with pytest.raises(TypeError):
            build_dynamic_grid(database, "contacts", colour="blue")


class TestDemo:

    def test_seed_and_register(self, database):
        assert seed_demo(database)
        assert not seed_demo(database)
        assert database.fetch_value(f"SELECT COUNT(*) FROM {DEMO_TABLE}") == 3

        registry = GridRegistry()
        register_demo(registry, database)
        grid = registry.create("contacts", None)
        assert grid.ajax_url == "/grids/contacts/ajax"
        assert grid.widget_for("fldPhone", "555") is WidgetKind.TEL
        assert grid.widget_for("fldActive", "1") is WidgetKind.TOGGLE
        assert not grid.is_editable("fldCreatedDate")
        assert grid.widget_for("fldStatus", "active") is WidgetKind.ENUM_DROPDOWN
        assert "Ada Lovelace" in grid.render_table()
