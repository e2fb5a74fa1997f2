"""Errors -- the rejection taxonomy shared by every engine layer.

Each class corresponds to one reason a single requested operation can be
refused.  Inner layers (grid, ledger, registry) raise these; the engine
facade catches them and hands callers an ``Outcome`` instead, so a UI
never needs a try/except to learn why a placement was refused.
"""

from __future__ import annotations


class HamletError(Exception):
    """Base class for expected, non-fatal rejections.

    Attributes:
        code: Stable machine-readable identifier for the rejection.
    """

    code = "error"


class UnknownKind(HamletError):
    """A terrain, building, resource or stat key is absent from its catalog."""

    code = "unknown_kind"


class OutOfBounds(HamletError):
    """A tile lies outside the grid."""

    code = "out_of_bounds"


class TileOccupied(HamletError):
    code = "tile_occupied"


class TerrainNotBuildable(HamletError):
    code = "terrain_not_buildable"


class BelowUnlockLevel(HamletError):
    code = "below_unlock_level"


class PrerequisiteMissing(HamletError):
    """A required building kind has no completed structure yet."""

    code = "prerequisite_missing"


class InsufficientResources(HamletError):
    code = "insufficient_resources"


class ProtectedStructure(HamletError):
    """The starting structure can never be demolished."""

    code = "protected_structure"


class NotFound(HamletError):
    code = "not_found"


class TickPolicyError(RuntimeError):
    """A tick operation was called on an engine using the other policy."""
