from __future__ import annotations

import re
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..models.config_models import DEFAULT_OWNERS, AppConfig, OwnerConfig

"""Header → semantic field resolution.

Column headers in the live sheet are hand-edited, so matching is loose:
case-insensitive, whitespace-stripped, substring based. Symbols and emoji
are kept, which keeps "Ownership🐷" and "Ownership🐱" apart.

Each semantic field has an ordered alias list. Aliases are tried in order
and, for each alias, the first header (left to right) that contains it wins.
Fields marked ``exact`` require the whole normalized header to equal the
alias (DueDate must not capture ReferenceDueDate).
"""

__all__ = [
    "TASK",
    "CATEGORY",
    "TIME_SPENT",
    "COMPLETION_DATE",
    "DUE_DATE",
    "REFERENCE_DUE_DATE",
    "INCIDENT_DATE",
    "INCIDENT_OWNER",
    "RECURRENCE",
    "WEEKDAY_OK",
    "PRIORITY_SCORE",
    "IMPORTANCE",
    "DAYS_TILL_DUE",
    "SYNC_TIMESTAMP",
    "FieldSpec",
    "ColumnMap",
    "BASE_FIELD_ALIASES",
    "normalize_header",
    "owner_field",
    "owner_completion_field",
    "default_field_specs",
    "field_specs_for",
    "find_column",
    "find_all_columns",
    "build_column_map",
]

TASK = "task"
CATEGORY = "category"
TIME_SPENT = "time_spent"
COMPLETION_DATE = "completion_date"
DUE_DATE = "due_date"
REFERENCE_DUE_DATE = "reference_due_date"
INCIDENT_DATE = "incident_date"
INCIDENT_OWNER = "incident_owner"
RECURRENCE = "recurrence"
WEEKDAY_OK = "weekday_ok"
PRIORITY_SCORE = "priority_score"
IMPORTANCE = "importance"
DAYS_TILL_DUE = "days_till_due"
SYNC_TIMESTAMP = "sync_timestamp"

BASE_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    TASK: ("Task",),
    CATEGORY: ("Category",),
    TIME_SPENT: ("ECT", "TimeSpent", "Minutes", "Duration"),
    COMPLETION_DATE: ("CompletionDate", "CompletedDate"),
    DUE_DATE: ("DueDate",),
    REFERENCE_DUE_DATE: ("ReferenceDueDate",),
    INCIDENT_DATE: ("IncidentDate",),
    INCIDENT_OWNER: ("IncidentOwner",),
    RECURRENCE: ("Recurrence",),
    WEEKDAY_OK: ("WeekdayOK",),
    PRIORITY_SCORE: ("PriorityScore",),
    IMPORTANCE: ("Importance",),
    DAYS_TILL_DUE: ("DaysTillDue",),
    SYNC_TIMESTAMP: ("Sync Timestamp", "Sync Date"),
}

_EXACT_FIELDS = frozenset({TASK, DUE_DATE, REFERENCE_DUE_DATE, RECURRENCE, INCIDENT_DATE, SYNC_TIMESTAMP})
# 複数列を持ちうるフィールド (オーナー別の完了日列)
_MULTI_FIELDS = frozenset({COMPLETION_DATE})

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class FieldSpec:
    """Alias list for one semantic field."""
    name: str
    aliases: tuple[str, ...]
    exact: bool = False
    multi: bool = False  # collect every matching column, not only the first
    # 他フィールドが確保済みの列は候補から外す
    excludes: tuple[str, ...] = ()


@dataclass(frozen=True)
class ColumnMap:
    """Resolved (semantic name → column index) pairs for one header row.

    ``positions`` holds every matched column per field; single-column fields
    carry exactly one entry. Missing fields are simply absent and report
    index -1.
    """
    headers: tuple[str, ...]
    positions: dict[str, tuple[int, ...]] = field(default_factory=dict)

    @property
    def entries(self) -> list[tuple[str, int]]:
        """Primary (name, index) pairs ordered by column position."""
        pairs = [(name, cols[0]) for name, cols in self.positions.items() if cols]
        return sorted(pairs, key=lambda p: p[1])

    def has(self, name: str) -> bool:
        return bool(self.positions.get(name))

    def index(self, name: str) -> int:
        cols = self.positions.get(name)
        return cols[0] if cols else -1

    def indices(self, name: str) -> tuple[int, ...]:
        return self.positions.get(name, ())

    def value(self, row: Sequence[Any], name: str) -> Any:
        """Cell value of ``name`` in ``row``; None when absent or out of range."""
        idx = self.index(name)
        if idx == -1 or idx >= len(row):
            return None
        return row[idx]

    def values(self, row: Sequence[Any], name: str) -> list[Any]:
        return [row[i] if i < len(row) else None for i in self.indices(name)]


def normalize_header(text: Any) -> str:
    """Lower-case and strip all whitespace; symbols/emoji are preserved."""
    if text is None:
        return ""
    return _WHITESPACE_RE.sub("", str(text).lower())


def owner_field(owner: OwnerConfig) -> str:
    return f"owner:{owner.key}"


def owner_completion_field(owner: OwnerConfig) -> str:
    return f"completion:{owner.key}"


def _owner_specs(owners: Iterable[OwnerConfig]) -> list[FieldSpec]:
    specs: list[FieldSpec] = []
    for owner in owners:
        specs.append(
            FieldSpec(
                name=owner_field(owner),
                aliases=(f"Ownership{owner.name}", f"Ownership{owner.marker}", owner.name, owner.marker),
                excludes=(COMPLETION_DATE,),
            )
        )
        specs.append(
            FieldSpec(
                name=owner_completion_field(owner),
                aliases=(f"CompletionDate{owner.marker}", f"CompletionDate{owner.name}"),
            )
        )
    return specs


def default_field_specs(
    owners: Iterable[OwnerConfig] = DEFAULT_OWNERS,
    overrides: Mapping[str, Sequence[str]] | None = None,
) -> list[FieldSpec]:
    """Build the alias table: base fields, then per-owner fields.

    ``overrides`` replaces the alias list of a field by name (owner fields
    included, e.g. ``"owner:pig"``).
    """
    overrides = overrides or {}
    specs = [
        FieldSpec(name=name, aliases=aliases, exact=name in _EXACT_FIELDS, multi=name in _MULTI_FIELDS)
        for name, aliases in BASE_FIELD_ALIASES.items()
    ]
    specs.extend(_owner_specs(owners))
    resolved: list[FieldSpec] = []
    for spec in specs:
        if spec.name in overrides:
            spec = FieldSpec(
                name=spec.name,
                aliases=tuple(overrides[spec.name]),
                exact=spec.exact,
                multi=spec.multi,
                excludes=spec.excludes,
            )
        resolved.append(spec)
    return resolved


def field_specs_for(config: AppConfig) -> list[FieldSpec]:
    return default_field_specs(config.owners, config.field_aliases)


def find_column(
    headers: Sequence[Any],
    aliases: Sequence[str],
    exact: bool = False,
    skip: Collection[int] = (),
) -> int:
    """Index of the first header matching the first matching alias, else -1.

    Columns listed in ``skip`` are never returned.
    """
    normalized = [normalize_header(h) for h in headers]
    for alias in aliases:
        target = normalize_header(alias)
        if not target:
            continue
        for i, header in enumerate(normalized):
            if i in skip:
                continue
            if header == target if exact else target in header:
                return i
    return -1


def find_all_columns(headers: Sequence[Any], aliases: Sequence[str], exact: bool = False) -> list[int]:
    """Every header index matching any alias, in header order."""
    targets = [t for t in (normalize_header(a) for a in aliases) if t]
    found: list[int] = []
    for i, header in enumerate(normalize_header(h) for h in headers):
        if not header:
            continue
        if any(header == t if exact else t in header for t in targets):
            found.append(i)
    return found


def build_column_map(headers: Sequence[Any], field_specs: Sequence[FieldSpec] | None = None) -> ColumnMap:
    """Resolve every semantic field against a header row (pure)."""
    specs = field_specs if field_specs is not None else default_field_specs()
    positions: dict[str, tuple[int, ...]] = {}
    for spec in specs:
        if spec.multi:
            cols = tuple(find_all_columns(headers, spec.aliases, spec.exact))
        else:
            skip = {i for name in spec.excludes for i in positions.get(name, ())}
            idx = find_column(headers, spec.aliases, spec.exact, skip)
            cols = (idx,) if idx != -1 else ()
        if cols:
            positions[spec.name] = cols
    return ColumnMap(headers=tuple(str(h) for h in headers), positions=positions)
