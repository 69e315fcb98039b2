"""
Edit session protocol.

The only component that mutates state after the initial render. Each
request names an action; writes answer pipe-delimited text tokens and
refresh actions answer a freshly rendered table fragment:

    update   ->  <key>|<display>            error|<key>|<previous>
                 validation_error|<key>|<message>   denied|<key>|<message>
    delete   ->  <table>|<id>               error|<table>|<id>   denied|<table>|<id>
    row_count -> <count>
    add, filter, sort, page -> HTML fragment

A write is never undone because a later step (audit logging, an on-add
callback) fails; those failures are logged and dropped.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Mapping, Optional

from .database import Transaction
from .errors import AuthorizationError, NotFoundError, StorageError, ValidationError
from .grid import ADD_PREFIX, Grid
from .rbac import require_capability
from .row_security import ScopeClause
from .schema import require_identifier, sanitize_identifier
from .validation import storage_value, validate_value
from .widgets import EditKey, WidgetKind, select_widget

logger = logging.getLogger(__name__)

SELECTBOX = "{selectbox}"

OK = "ok"
ERROR = "error"
VALIDATION_ERROR = "validation_error"
DENIED = "denied"

REFRESH_ACTIONS = ("filter", "sort", "page")


@dataclass
class ProtocolResult:
    """Outcome of one protocol request; ``to_wire`` gives the response text."""
    status: str
    key: str = ""
    value: str = ""
    body: Optional[str] = None
    media_type: str = "text/plain"

    @property
    def ok(self) -> bool:
        return self.status == OK

    def to_wire(self) -> str:
        if self.body is not None:
            return self.body
        if self.status == OK:
            return f"{self.key}|{self.value}"
        return f"{self.status}|{self.key}|{self.value}"


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class EditSessionProtocol:
    """
    Handles update, delete, add and refresh requests for one grid.

    Args:
        grid: The configured grid the requests target
    """

    def __init__(self, grid: Grid):
        self.grid = grid
        self.database = grid.database
        self.composer = grid.composer

    def handle(self, params: Mapping[str, Any]) -> ProtocolResult:
        action = _text(params.get("action") or params.get("ajaxAction") or "filter").lower()
        handlers: Dict[str, Callable[[Mapping[str, Any]], ProtocolResult]] = {
            "update": self.update,
            "delete": self.delete,
            "add": self.add,
            "row_count": self.row_count,
        }
        if action in handlers:
            return handlers[action](params)
        if action in REFRESH_ACTIONS:
            return self.refresh(params, action)
        logger.warning(f"Unknown protocol action '{action}' for table {self.grid.table}")
        return ProtocolResult(ERROR, self.grid.table, f"Unknown action: {action}")

    def _check_target(self, params: Mapping[str, Any]) -> None:
        table = params.get("table")
        if table not in (None, "") and require_identifier(table, "table name") != self.grid.table:
            raise ValidationError(f"Table '{table}' is not served by this grid")
        pk = params.get("pk")
        if pk not in (None, "") and require_identifier(pk, "primary key") != self.grid.primary_key:
            raise ValidationError(f"'{pk}' is not the primary key of {self.grid.table}")

    def _fetch_row(self, transaction: Transaction, row_id: Any, scope: ScopeClause) -> Dict[str, Any]:
        statement = self.composer.compose_fetch_row(row_id, scope)
        row = transaction.fetch_one(statement.sql, statement.params)
        if row is None:
            raise NotFoundError(f"No visible row {row_id} in {self.grid.table}")
        return row

    def _audit(self, method: Callable[..., None], *args: Any) -> None:
        try:
            method(*args)
        except Exception as e:
            logger.error(f"Audit {method.__name__} failed for {self.grid.table}: {e}")

    def _display(self, column: str, row_id: Any, value: Any) -> str:
        return _text(self.grid.build_cell(column, row_id, value).display)

    def update(self, params: Mapping[str, Any]) -> ProtocolResult:
        """
        Write one cell.

        A row missing entirely is created first with only its primary key,
        so a first edit can create the row. The UPDATE itself, and the
        read of the previous value, are restricted by the security scope.
        The shell insert, the checks and the UPDATE share one transaction,
        so a refused or failed update leaves no shell row behind.
        """
        grid = self.grid
        field = _text(params.get("field"))
        row_id = _text(params.get("id"))
        value = _text(params.get("val"))
        key = EditKey(grid.table, sanitize_identifier(field), sanitize_identifier(row_id)).token

        try:
            self._check_target(params)
            column = grid.descriptor.require_column(field)
            if row_id == "":
                raise ValidationError("A row id is required")
        except ValidationError as e:
            logger.warning(f"Rejected update on {grid.table}: {e}")
            return ProtocolResult(VALIDATION_ERROR, key, str(e))

        key = EditKey(grid.table, column, row_id).token
        if not grid.is_editable(column):
            return ProtocolResult(VALIDATION_ERROR, key, f"{grid.label_for(column)} is not editable")

        try:
            require_capability(grid.authorization, "write", grid.table)
        except AuthorizationError as e:
            return ProtocolResult(DENIED, key, str(e))

        descriptor = grid.descriptor.column(column)
        config = grid.fields[column]
        relationship = grid.relationships.get(column)
        kind = grid.widget_for(column, value)
        try:
            lookup_keys = [option for option, _ in grid.lookup_options(column)] if kind is WidgetKind.RELATIONSHIP else []
            validate_value(kind, descriptor, config, value, relationship, lookup_keys)
        except ValidationError as e:
            return ProtocolResult(VALIDATION_ERROR, key, str(e))
        except StorageError:
            return ProtocolResult(ERROR, key, "")

        scope = grid.scope.resolve(grid.table)
        old: Dict[str, Any] = {}
        try:
            with self.database.transaction() as transaction:
                created = self._ensure_row(transaction, row_id)
                old = self._fetch_row(transaction, row_id, scope)

                if not grid.authorization.can_write(grid.table, old):
                    logger.warning(f"Row-level write refused on {grid.table} row {row_id}")
                    raise AuthorizationError("write", grid.table)

                statement = self.composer.compose_update(column, storage_value(descriptor, value), row_id, scope)
                if transaction.execute(statement.sql, statement.params) == 0:
                    raise NotFoundError(f"Row {row_id} in {grid.table} was not updated")
                new = self._fetch_row(transaction, row_id, scope)
        except AuthorizationError as e:
            return ProtocolResult(DENIED, key, str(e))
        except NotFoundError as e:
            logger.info(str(e))
            return ProtocolResult(ERROR, key, self._display(column, row_id, old.get(column)) if old else "")
        except StorageError:
            return ProtocolResult(ERROR, key, self._display(column, row_id, old.get(column)) if old else "")

        if created:
            logger.info(f"Inserted shell row {row_id} into {grid.table} before update")
            self._audit(grid.audit.log_insert, grid.table, row_id, {grid.primary_key: row_id})
        self._audit(grid.audit.log_update, grid.table, row_id, old, new)

        if "dropdown_tbl" in params:
            return ProtocolResult(OK, key, SELECTBOX)
        return ProtocolResult(OK, key, self._display(column, row_id, new.get(column)))

    def _ensure_row(self, transaction: Transaction, row_id: Any) -> bool:
        """Insert a shell row for ``row_id`` if none exists; True when one was inserted."""
        exists = self.composer.compose_exists(row_id)
        if int(transaction.fetch_value(exists.sql, exists.params) or 0) > 0:
            return False
        shell = self.composer.compose_shell_insert(row_id)
        transaction.execute(shell.sql, shell.params)
        return True

    def delete(self, params: Mapping[str, Any]) -> ProtocolResult:
        """Delete one row; deleting a row that is not there is a no-op."""
        grid = self.grid
        row_id = _text(params.get("id"))

        try:
            self._check_target(params)
            if row_id == "":
                raise ValidationError("A row id is required")
        except ValidationError as e:
            logger.warning(f"Rejected delete on {grid.table}: {e}")
            return ProtocolResult(ERROR, grid.table, sanitize_identifier(row_id))

        try:
            require_capability(grid.authorization, "delete", grid.table)
        except AuthorizationError:
            return ProtocolResult(DENIED, grid.table, row_id)

        scope = grid.scope.resolve(grid.table)
        try:
            with self.database.transaction() as transaction:
                old = self._fetch_row(transaction, row_id, scope)
                if not grid.authorization.can_delete(grid.table, old):
                    logger.warning(f"Row-level delete refused on {grid.table} row {row_id}")
                    raise AuthorizationError("delete", grid.table)
                statement = self.composer.compose_delete(row_id, scope)
                transaction.execute(statement.sql, statement.params)
        except AuthorizationError:
            return ProtocolResult(DENIED, grid.table, row_id)
        except NotFoundError:
            logger.info(f"Delete of absent row {row_id} in {grid.table} ignored")
            return ProtocolResult(OK, grid.table, row_id)
        except StorageError:
            return ProtocolResult(ERROR, grid.table, row_id)

        self._audit(grid.audit.log_delete, grid.table, row_id, old)
        return ProtocolResult(OK, grid.table, row_id)

    def add(self, params: Mapping[str, Any]) -> ProtocolResult:
        """
        Insert one row from the add form, then refresh.

        Without any ``add:<column>`` inputs this is a plain refresh.
        """
        grid = self.grid
        submitted = {
            key[len(ADD_PREFIX):]: value
            for key, value in params.items()
            if key.startswith(ADD_PREFIX)
        }
        if not submitted:
            return self.refresh(params, "add")

        try:
            self._check_target(params)
            require_capability(grid.authorization, "write", grid.table)
        except ValidationError as e:
            return self.refresh(params, "add", error=str(e))
        except AuthorizationError as e:
            return ProtocolResult(DENIED, grid.table, str(e))

        try:
            values = self.collect_add_values(submitted)
            new_id = self._insert(values)
        except ValidationError as e:
            return self.refresh(params, "add", error=str(e))
        except StorageError:
            return self.refresh(params, "add", error=f"{grid.item} could not be added. Please try again.")

        values[grid.primary_key] = new_id
        self._audit(grid.audit.log_insert, grid.table, new_id, dict(values))

        payload = dict(values)
        payload["id"] = new_id
        for callback in grid.add_callbacks:
            try:
                callback(payload)
            except Exception as e:
                logger.error(f"on_add callback failed for {grid.table} row {new_id}: {e}")

        return self.refresh(params, "add", message=f"{grid.item} Added")

    def collect_add_values(self, submitted: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Turn add-form input into validated column values.

        Unchecked checkboxes take their off value, blank fields take the
        configured insert value, and remaining blank numeric fields are 0.
        """
        grid = self.grid
        values: Dict[str, Any] = {}

        for name in grid.add_fields:
            if name == grid.primary_key and not grid.specify_primary_key_on_add:
                continue
            column = grid.descriptor.column(name)
            config = grid.fields[name]
            raw = submitted.get(name)
            if raw is None and config.checkbox is not None:
                raw = config.checkbox.value_off
            raw = _text(raw)
            if raw == "" and config.insert_value is not None:
                raw = _text(config.insert_value)

            relationship = grid.relationships.get(name)
            kind = select_widget(column, replace(config, editable=True), relationship, True, raw, grid.textarea_threshold)
            lookup_keys = [option for option, _ in grid.lookup_options(name)] if kind is WidgetKind.RELATIONSHIP else []
            validate_value(kind, column, config, raw, relationship, lookup_keys)

            if raw == "" and column.is_numeric:
                values[name] = 0
            else:
                values[name] = storage_value(column, raw)

        for name, config in grid.fields.items():
            if config.insert_value is not None and name not in values:
                values[name] = config.insert_value

        if grid.specify_primary_key_on_add and _text(values.get(grid.primary_key)) in ("", "0"):
            raise ValidationError(f"{grid.label_for(grid.primary_key)} is required", field=grid.primary_key)
        return values

    def _insert(self, values: Dict[str, Any]) -> Any:
        grid = self.grid
        primary_key = grid.primary_key

        if grid.specify_primary_key_on_add:
            statement = self.composer.compose_insert(values)
            self.database.insert(statement.sql, statement.params)
            return values[primary_key]

        if not grid.primary_key_auto_increment:
            current = self.composer.compose_max_key()
            highest = self.database.fetch_value(current.sql, current.params)
            try:
                next_id = int(highest) + 1 if highest is not None and int(highest) > 0 else 1
            except (TypeError, ValueError):
                raise ValidationError(f"Cannot derive the next {primary_key} from {highest!r}", field=primary_key)
            values = {primary_key: next_id, **values}
            statement = self.composer.compose_insert(values)
            self.database.insert(statement.sql, statement.params)
            return next_id

        values.pop(primary_key, None)
        statement = self.composer.compose_insert(values)
        return self.database.insert(statement.sql, statement.params, primary_key=primary_key)

    def refresh(
        self,
        params: Mapping[str, Any],
        action: str,
        message: Optional[str] = None,
        error: Optional[str] = None,
    ) -> ProtocolResult:
        try:
            body = self.grid.render_table(params, action=action, message=message, error=error)
        except AuthorizationError as e:
            return ProtocolResult(DENIED, self.grid.table, str(e))
        return ProtocolResult(OK, self.grid.table, body=body, media_type="text/html")

    def row_count(self, params: Mapping[str, Any]) -> ProtocolResult:
        try:
            count = self.grid.count(params)
        except AuthorizationError as e:
            return ProtocolResult(DENIED, self.grid.table, str(e))
        return ProtocolResult(OK, self.grid.table, body=str(count))

