"""Terrain catalog -- static per-theme terrain definitions.

Terrain kinds are plain string keys (``"grass"``, ``"lake"``) whose data
lives in a theme YAML file.  The catalog is a read-only lookup table; it
never changes after the theme is loaded.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from hamlet.errors import UnknownKind


@dataclass(frozen=True)
class TerrainData:
    """Immutable description of one terrain kind.

    Attributes:
        kind: Catalog key.
        name: Human-readable name.
        description: Flavour text for tooltips.
        buildable: Whether ordinary structures may stand on this terrain.
        movement_cost: Traversal cost (positive, lower is faster).
        passive_yield: Resource amounts the tile yields per turn when a
            completed structure covers it.
        display: Rendering hint (a hex colour in the shipped themes).
    """

    kind: str
    name: str
    description: str = ""
    buildable: bool = True
    movement_cost: float = 1.0
    passive_yield: Mapping[str, int] = field(default_factory=dict)
    display: str = "#808080"

    def __post_init__(self) -> None:
        if self.movement_cost <= 0:
            msg = f"terrain {self.kind!r}: movement_cost must be positive"
            raise ValueError(msg)
        object.__setattr__(
            self,
            "passive_yield",
            MappingProxyType(dict(self.passive_yield)),
        )

    @classmethod
    def from_dict(cls, kind: str, data: Mapping[str, Any]) -> TerrainData:
        """Build terrain data from one entry of a theme's ``terrain`` table."""
        return cls(
            kind=kind,
            name=data.get("name", kind.replace("_", " ").title()),
            description=data.get("description", ""),
            buildable=bool(data.get("buildable", True)),
            movement_cost=float(data.get("movement_cost", 1.0)),
            passive_yield={
                str(k): int(v) for k, v in (data.get("yield") or {}).items()
            },
            display=str(data.get("display", "#808080")),
        )


class TerrainCatalog(Mapping[str, TerrainData]):
    """Read-only mapping from terrain kind to its data."""

    def __init__(self, entries: Mapping[str, TerrainData]) -> None:
        if not entries:
            msg = "terrain catalog must define at least one kind"
            raise ValueError(msg)
        self._entries = dict(entries)

    def lookup(self, kind: str) -> TerrainData:
        """Return the data for ``kind``.

        Raises:
            UnknownKind: If the kind is not in this catalog.
        """
        try:
            return self._entries[kind]
        except KeyError:
            msg = f"unknown terrain kind {kind!r}"
            raise UnknownKind(msg) from None

    @property
    def kinds(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __getitem__(self, kind: str) -> TerrainData:
        return self._entries[kind]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
