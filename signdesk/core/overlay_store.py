"""
Overlay store: ordered list of signature placements for the open document.

Insertion order is paint order (later placements draw on top). Overlap is
allowed. Every mutation is all-or-nothing.
"""
import logging
from dataclasses import replace
from typing import Dict, Iterator, List, Optional, Tuple

from signdesk.core.types import Placement

logger = logging.getLogger(__name__)

GEOMETRY_FIELDS = ("x", "y", "width", "height")


class PlacementNotFound(KeyError):
    """No placement with the given id."""

    def __init__(self, placement_id: str):
        super().__init__(placement_id)
        self.placement_id = placement_id
        self.message = f"Placement not found: {placement_id}"

    def __str__(self) -> str:
        return self.message


class OverlayStore:
    """Ordered placement list keyed by placement id."""

    def __init__(self):
        self._placements: Dict[str, Placement] = {}

    def add(self, placement: Placement) -> Placement:
        if placement.id in self._placements:
            raise ValueError(f"Duplicate placement id: {placement.id}")
        self._placements[placement.id] = placement
        logger.debug(f"Placement added: {placement.id} ({len(self._placements)} total)")
        return placement

    def update(self, placement_id: str, **patch: float) -> Placement:
        """
        Replace geometry fields of a placement.

        Raises:
            PlacementNotFound: Unknown id
            ValueError: Patch contains a non-geometry field
        """
        current = self.get(placement_id)
        unknown = set(patch) - set(GEOMETRY_FIELDS)
        if unknown:
            raise ValueError(f"Only geometry fields can be updated, got: {sorted(unknown)}")

        updated = replace(current, **{k: float(v) for k, v in patch.items()})
        # Dict assignment keeps the original insertion position
        self._placements[placement_id] = updated
        return updated

    def remove(self, placement_id: str) -> Placement:
        placement = self.get(placement_id)
        del self._placements[placement_id]
        logger.debug(f"Placement removed: {placement_id}")
        return placement

    def remove_all(self) -> int:
        count = len(self._placements)
        self._placements.clear()
        if count:
            logger.info(f"Cleared {count} placement(s)")
        return count

    def get(self, placement_id: str) -> Placement:
        try:
            return self._placements[placement_id]
        except KeyError:
            raise PlacementNotFound(placement_id) from None

    def find(self, placement_id: Optional[str]) -> Optional[Placement]:
        if placement_id is None:
            return None
        return self._placements.get(placement_id)

    def list(self) -> List[Placement]:
        return list(self._placements.values())

    def snapshot(self) -> Tuple[Placement, ...]:
        return tuple(self._placements.values())

    def __len__(self) -> int:
        return len(self._placements)

    def __iter__(self) -> Iterator[Placement]:
        return iter(self.snapshot())

    def __contains__(self, placement_id: object) -> bool:
        return placement_id in self._placements
