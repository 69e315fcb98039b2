"""
Per-column configuration owned by a grid.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple


@dataclass
class CheckboxOption:
    value_on: str = "1"
    value_off: str = "0"
    toggle: bool = False


@dataclass
class RadioOption:
    options: Dict[str, str] = field(default_factory=dict)
    inline: bool = True


@dataclass
class RangeOption:
    minimum: float = 0
    maximum: float = 100
    step: float = 1
    show_value: bool = True


@dataclass
class MultiSelectOption:
    options: Dict[str, str] = field(default_factory=dict)
    separator: str = ","


@dataclass
class AutocompleteOption:
    source_table: str = ""
    display_field: str = ""
    value_field: Optional[str] = None
    min_chars: int = 2


@dataclass
class PasswordOption:
    confirm: bool = False


@dataclass
class RichTextOption:
    toolbar: str = "basic"  # "basic" or "full"


@dataclass
class FileUploadOption:
    destination_folder: str = ""
    relative_folder: str = ""
    upload_url: Optional[str] = None


@dataclass
class RelationshipDescriptor:
    """A column whose value is the primary key of a row in another table."""
    column: str
    foreign_table: str
    foreign_key: str
    display_column: str
    sort_column: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)
    required: bool = True


@dataclass
class FieldConfig:
    """
    Overrides for one column. Everything defaults to "derive from the schema".
    """
    label: Optional[str] = None
    editable: bool = True
    allowed_values: Optional[List[Tuple[str, str]]] = None
    text_on_edit: bool = False
    checkbox: Optional[CheckboxOption] = None
    radio: Optional[RadioOption] = None
    range: Optional[RangeOption] = None
    multi_select: Optional[MultiSelectOption] = None
    autocomplete: Optional[AutocompleteOption] = None
    password: Optional[PasswordOption] = None
    rich_text: Optional[RichTextOption] = None
    file_upload: Optional[FileUploadOption] = None
    input_type: Optional[str] = None  # email, url, tel, color, datetime, time
    css_class: Optional[str] = None
    textarea_height: Optional[int] = None
    note: Optional[str] = None
    initial_value: Optional[str] = None
    insert_value: Optional[str] = None
    formatter: Optional[Callable[[Any], Any]] = None
    row_formatter: Optional[Callable[[Any, Any], Any]] = None
    checkbox_all: bool = False
    checkbox_all_label: bool = False

    def allowed_value_keys(self) -> List[str]:
        return [str(value) for value, _ in self.allowed_values or []]
