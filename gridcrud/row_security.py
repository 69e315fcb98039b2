"""
Row-level security scoping.

A scope provider turns a table name into a WHERE fragment plus its ordered
bind parameters. The query composer treats both as opaque and applies the
same pair to the count query and the page query of a render.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from .errors import ValidationError
from .schema import require_identifier

OPERATORS = ("=", "!=", "<>", "<", ">", "<=", ">=", "LIKE", "NOT LIKE", "IN", "NOT IN", "IS", "IS NOT")

NEGATED_OPERATORS = ("!=", "<>", "NOT LIKE", "NOT IN", "IS NOT")


class ScopeClause(NamedTuple):
    """A WHERE fragment (without the WHERE keyword) and its bind parameters."""
    where: str
    params: Tuple[Any, ...]

    @property
    def is_empty(self) -> bool:
        return not self.where


EMPTY_SCOPE = ScopeClause("", ())


class SecurityScopeProvider(ABC):
    """Supplies per-table row visibility restrictions."""

    @abstractmethod
    def where_clause(self, table: str) -> str:
        pass

    @abstractmethod
    def parameters(self, table: str) -> List[Any]:
        pass

    def resolve(self, table: str) -> ScopeClause:
        """Resolve the fragment and its parameters for one query plan."""
        return ScopeClause(self.where_clause(table), tuple(self.parameters(table)))


class NoScope(SecurityScopeProvider):
    """Every row is visible."""

    def where_clause(self, table: str) -> str:
        return ""

    def parameters(self, table: str) -> List[Any]:
        return []

    def resolve(self, table: str) -> ScopeClause:
        return EMPTY_SCOPE


@dataclass
class ScopeRule:
    column: str
    value: Any  # literal, list, None, or a zero-argument callable
    operator: str = "="
    except_tables: Tuple[str, ...] = field(default_factory=tuple)


class RowSecurity(SecurityScopeProvider):
    """
    Rule-based scope provider.

    Per-table rules apply to one table; global rules apply to every table
    except the ones they list. Callable values are evaluated on every
    resolution, never cached, so they may read request-scoped state.
    """

    def __init__(self, quote: Optional[Callable[[str], str]] = None):
        self._rules: Dict[str, List[ScopeRule]] = {}
        self._global_rules: List[ScopeRule] = []
        self._enabled = True
        self._quote = quote or (lambda name: name)

    def add_rule(self, table: str, column: str, value: Any, operator: str = "=") -> None:
        """Restrict ``table`` to rows where ``column operator value`` holds."""
        require_identifier(table, "table name")
        self._rules.setdefault(table, []).append(self._make_rule(column, value, operator))

    def add_global_rule(self, column: str, value: Any, operator: str = "=", except_tables: Sequence[str] = ()) -> None:
        """Restrict every table, except those listed, by the same condition."""
        rule = self._make_rule(column, value, operator)
        rule.except_tables = tuple(except_tables)
        self._global_rules.append(rule)

    def clear_rules(self) -> None:
        self._rules = {}
        self._global_rules = []

    def clear_table_rules(self, table: str) -> None:
        self._rules.pop(table, None)

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def is_enabled(self) -> bool:
        return self._enabled

    def rules_for(self, table: str) -> List[ScopeRule]:
        if not self._enabled:
            return []
        rules = list(self._rules.get(table, []))
        rules.extend(rule for rule in self._global_rules if table not in rule.except_tables)
        return rules

    def resolve(self, table: str) -> ScopeClause:
        conditions: List[str] = []
        params: List[Any] = []
        for rule in self.rules_for(table):
            value = rule.value() if callable(rule.value) else rule.value
            condition, rule_params = self._build_condition(rule, value)
            conditions.append(condition)
            params.extend(rule_params)

        if not conditions:
            return EMPTY_SCOPE
        return ScopeClause(" AND ".join(conditions), tuple(params))

    def where_clause(self, table: str) -> str:
        return self.resolve(table).where

    def parameters(self, table: str) -> List[Any]:
        return list(self.resolve(table).params)

    def _make_rule(self, column: str, value: Any, operator: str) -> ScopeRule:
        require_identifier(column, "column name")
        normalized = " ".join(str(operator).upper().split())
        if normalized not in OPERATORS:
            raise ValidationError(f"Unsupported scope operator: {operator}")
        return ScopeRule(column=column, value=value, operator=normalized)

    def _build_condition(self, rule: ScopeRule, value: Any) -> Tuple[str, List[Any]]:
        column = self._quote(rule.column)
        operator = rule.operator

        if value is None:
            return (f"{column} IS NOT NULL" if operator in NEGATED_OPERATORS else f"{column} IS NULL"), []

        if operator in ("IN", "NOT IN"):
            values = list(value) if isinstance(value, (list, tuple, set, frozenset)) else [value]
            if not values:
                # Nothing matches an empty IN list; nothing is excluded by an empty NOT IN
                return ("1 = 0" if operator == "IN" else "1 = 1"), []
            placeholders = ", ".join("?" for _ in values)
            return f"{column} {operator} ({placeholders})", values

        return f"{column} {operator} ?", [value]
