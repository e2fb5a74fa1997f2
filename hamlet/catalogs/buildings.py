"""Building catalog -- static per-theme building definitions.

A ``BuildingData`` entry says what a structure costs, how long it takes to
build, what it unlocks behind, and what it gives the settlement once it is
complete.  Like terrain, building kinds are string keys defined by the
theme and validated when the theme loads.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from hamlet.errors import UnknownKind


@dataclass(frozen=True)
class Footprint:
    """Size of a structure in whole tiles, before rotation."""

    width: int = 1
    length: int = 1

    def __post_init__(self) -> None:
        if self.width < 1 or self.length < 1:
            msg = f"footprint must be at least 1x1, got {self.width}x{self.length}"
            raise ValueError(msg)


@dataclass(frozen=True)
class BuildingData:
    """Immutable description of one building kind.

    Attributes:
        kind: Catalog key.
        name: Human-readable name.
        description: Flavour text.
        footprint: Unrotated size in tiles.
        cost: Resource amounts debited on placement.
        build_ticks: Construction time; 0 means complete on placement.
        unlock_level: Minimum settlement level for placement.
        income: Added to the income stat on completion.
        upkeep: Added to the upkeep stat on completion.
        provides: Provision name -> amount applied on completion.
        produces: Resource -> amount credited every turn once complete.
        prerequisites: Kinds that need a completed structure first.
        exempt: Marks the kind used for the free starting structure.
    """

    kind: str
    name: str
    description: str = ""
    footprint: Footprint = field(default_factory=Footprint)
    cost: Mapping[str, int] = field(default_factory=dict)
    build_ticks: int = 0
    unlock_level: int = 1
    income: float = 0.0
    upkeep: float = 0.0
    provides: Mapping[str, float] = field(default_factory=dict)
    produces: Mapping[str, int] = field(default_factory=dict)
    prerequisites: frozenset[str] = frozenset()
    exempt: bool = False

    def __post_init__(self) -> None:
        if self.build_ticks < 0:
            msg = f"building {self.kind!r}: build_ticks must be >= 0"
            raise ValueError(msg)
        if any(amount < 0 for amount in self.cost.values()):
            msg = f"building {self.kind!r}: cost amounts must be >= 0"
            raise ValueError(msg)
        for name in ("cost", "provides", "produces"):
            object.__setattr__(
                self,
                name,
                MappingProxyType(dict(getattr(self, name))),
            )
        object.__setattr__(self, "prerequisites", frozenset(self.prerequisites))

    @classmethod
    def from_dict(cls, kind: str, data: Mapping[str, Any]) -> BuildingData:
        """Build building data from one entry of a theme's ``buildings`` table."""
        size = data.get("size") or {}
        return cls(
            kind=kind,
            name=data.get("name", kind.replace("_", " ").title()),
            description=data.get("description", ""),
            footprint=Footprint(
                width=int(size.get("width", 1)),
                length=int(size.get("length", 1)),
            ),
            cost={str(k): int(v) for k, v in (data.get("cost") or {}).items()},
            build_ticks=int(data.get("build_ticks", 0)),
            unlock_level=int(data.get("unlock_level", 1)),
            income=float(data.get("income", 0)),
            upkeep=float(data.get("upkeep", 0)),
            provides={
                str(k): float(v) for k, v in (data.get("provides") or {}).items()
            },
            produces={
                str(k): int(v) for k, v in (data.get("produces") or {}).items()
            },
            prerequisites=frozenset(data.get("requires") or ()),
            exempt=bool(data.get("exempt", False)),
        )


class BuildingCatalog(Mapping[str, BuildingData]):
    """Read-only mapping from building kind to its data."""

    def __init__(self, entries: Mapping[str, BuildingData]) -> None:
        if not entries:
            msg = "building catalog must define at least one kind"
            raise ValueError(msg)
        self._entries = dict(entries)

    def lookup(self, kind: str) -> BuildingData:
        """Return the data for ``kind``.

        Raises:
            UnknownKind: If the kind is not in this catalog.
        """
        try:
            return self._entries[kind]
        except KeyError:
            msg = f"unknown building kind {kind!r}"
            raise UnknownKind(msg) from None

    @property
    def kinds(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def unlocked_at(self, level: int) -> list[BuildingData]:
        """Return the buildings whose unlock level is at or below ``level``."""
        return [b for b in self._entries.values() if b.unlock_level <= level]

    def __getitem__(self, kind: str) -> BuildingData:
        return self._entries[kind]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
