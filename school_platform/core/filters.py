"""
Row predicates used for tenant-scoped listings.

A predicate can be checked against a row dict (in-process filtering) and
rendered for a PostgREST query builder (eq / in_ / or_), so the same filter
the access engine hands out is applied by whichever store serves the list.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple


def _postgrest_value(value: Any) -> str:
    text = str(value)
    if any(ch in text for ch in ',()."'):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


class RowFilter:
    def matches(self, row: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def to_postgrest(self) -> str:
        """Render as a PostgREST logic-tree condition (used inside or=(...))"""
        raise NotImplementedError

    def apply(self, query):
        """Narrow a supabase-py query builder by this predicate"""
        return query.or_(self.to_postgrest())

    def is_empty(self) -> bool:
        """True when the predicate can never match any row"""
        return False


@dataclass(frozen=True)
class Eq(RowFilter):
    field: str
    value: Any

    def matches(self, row: Dict[str, Any]) -> bool:
        return row.get(self.field) == self.value

    def to_postgrest(self) -> str:
        return f"{self.field}.eq.{_postgrest_value(self.value)}"

    def apply(self, query):
        return query.eq(self.field, self.value)


@dataclass(frozen=True)
class In(RowFilter):
    field: str
    values: Tuple[Any, ...]

    def __init__(self, field: str, values: Iterable[Any]):
        object.__setattr__(self, "field", field)
        # Deduplicate while keeping first-seen order for stable rendering
        object.__setattr__(self, "values", tuple(dict.fromkeys(values)))

    def matches(self, row: Dict[str, Any]) -> bool:
        return row.get(self.field) in self.values

    def to_postgrest(self) -> str:
        joined = ",".join(_postgrest_value(v) for v in self.values)
        return f"{self.field}.in.({joined})"

    def apply(self, query):
        return query.in_(self.field, list(self.values))

    def is_empty(self) -> bool:
        return not self.values


@dataclass(frozen=True)
class AnyOf(RowFilter):
    """Disjunction; a row matches if any branch matches"""

    branches: Tuple[RowFilter, ...]

    def __init__(self, *branches: RowFilter):
        object.__setattr__(self, "branches", tuple(b for b in branches if not b.is_empty()))

    def matches(self, row: Dict[str, Any]) -> bool:
        return any(branch.matches(row) for branch in self.branches)

    def to_postgrest(self) -> str:
        return ",".join(branch.to_postgrest() for branch in self.branches)

    def apply(self, query):
        if len(self.branches) == 1:
            return self.branches[0].apply(query)
        return query.or_(self.to_postgrest())

    def is_empty(self) -> bool:
        return not self.branches


@dataclass(frozen=True)
class AllOf(RowFilter):
    """Conjunction; a row matches only if every branch matches"""

    branches: Tuple[RowFilter, ...]

    def __init__(self, *branches: RowFilter):
        object.__setattr__(self, "branches", tuple(branches))

    def matches(self, row: Dict[str, Any]) -> bool:
        return all(branch.matches(row) for branch in self.branches)

    def to_postgrest(self) -> str:
        inner = ",".join(branch.to_postgrest() for branch in self.branches)
        return f"and({inner})"

    def apply(self, query):
        for branch in self.branches:
            query = branch.apply(query)
        return query

    def is_empty(self) -> bool:
        return any(branch.is_empty() for branch in self.branches)


def filter_rows(rows: Iterable[Dict[str, Any]], row_filter: RowFilter = None) -> List[Dict[str, Any]]:
    if row_filter is None:
        return list(rows)
    if row_filter.is_empty():
        return []
    return [row for row in rows if row_filter.matches(row)]
