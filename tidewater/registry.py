"""
Water body registry.

Keyed collection of WaterBody instances with a nearest-center lookup.
Backend selection via constants.USE_CKDTREE:
- True: scipy.cKDTree over body centers, rebuilt lazily after any change
- False: O(n) scan

"Closest water" means the body whose CENTER is nearest, not the body whose
surface is nearest. Callers that pass no body id depend on that.
"""

import threading
from typing import Dict, Iterable, Iterator, List, Optional

import numpy as np
from scipy.spatial import cKDTree

from .water import WaterBody
from .constants import USE_CKDTREE, CKDTREE_LEAFSIZE


class WaterNotFoundError(KeyError):
    """Raised when an explicit body id is not registered"""
    pass


def find_closest_body(position: np.ndarray, bodies: Iterable[WaterBody]) -> Optional[WaterBody]:
    """
    Find the body whose center is nearest to position.

    O(n) linear search.

    Args:
        position: Query position [x, y, z]
        bodies: Candidate bodies

    Returns:
        Nearest body, or None if there are no bodies

    Tie-breaking:
        Equal distances resolved by lowest body_id
    """
    position = np.asarray(position, dtype=np.float64)
    nearest = None
    min_distance = float('inf')

    for body in bodies:
        offset = body.center - position
        distance = float(np.dot(offset, offset))

        # Squared distances can overflow to inf far from the origin
        if nearest is None or distance < min_distance or (
                distance == min_distance and body.body_id < nearest.body_id):
            min_distance = distance
            nearest = body

    return nearest


class WaterRegistry:
    """
    Registry of water bodies keyed by owning planet id.

    Registration overwrites an existing entry with the same id. Direct
    lookups of unknown ids raise WaterNotFoundError; nearest-center lookups
    on an empty registry return None.

    Thread safety: dictionary and tree access happen under one re-entrant
    lock, and replace_all() swaps the whole dictionary inside it so no
    reader sees a half-replaced registry.
    """

    def __init__(self, use_ckdtree: Optional[bool] = None, leafsize: Optional[int] = None):
        """
        Args:
            use_ckdtree: Override USE_CKDTREE constant (for testing)
            leafsize: Override CKDTREE_LEAFSIZE constant (for testing)
        """
        self._waters: Dict[int, WaterBody] = {}
        self._lock = threading.RLock()
        self._use_ckdtree = use_ckdtree if use_ckdtree is not None else USE_CKDTREE
        self._leafsize = leafsize if leafsize is not None else CKDTREE_LEAFSIZE

        # Tree state (rebuilt lazily when _dirty)
        self._tree: Optional[cKDTree] = None
        self._tree_bodies: List[WaterBody] = []
        self._dirty = True

        # Build sequence counter (incremented on every tree build)
        self._build_seq: int = 0

    # ========================================================================
    # Mutation
    # ========================================================================

    def register(self, body: WaterBody):
        """Insert body by body_id, replacing any existing entry"""
        with self._lock:
            self._waters[body.body_id] = body
            self._dirty = True

    def remove(self, body_id: int) -> Optional[WaterBody]:
        """Remove and return the body for body_id (None if absent)"""
        with self._lock:
            body = self._waters.pop(body_id, None)
            if body is not None:
                self._dirty = True
            return body

    def replace_all(self, bodies: Iterable[WaterBody]):
        """Swap in a complete new set of bodies in one step"""
        new_waters = {body.body_id: body for body in bodies}
        with self._lock:
            self._waters = new_waters
            self._dirty = True

    def clear(self):
        self.replace_all([])

    def mark_moved(self):
        """Invalidate the center index after body centers changed in place"""
        with self._lock:
            self._dirty = True

    # ========================================================================
    # Lookup
    # ========================================================================

    def get(self, body_id: int) -> WaterBody:
        """
        Get body by id.

        Raises:
            WaterNotFoundError: If body_id is not registered
        """
        with self._lock:
            try:
                return self._waters[body_id]
            except KeyError:
                raise WaterNotFoundError(body_id) from None

    def has(self, body_id: int) -> bool:
        with self._lock:
            return body_id in self._waters

    def bodies(self) -> List[WaterBody]:
        """Bodies sorted by body_id"""
        with self._lock:
            return [self._waters[key] for key in sorted(self._waters)]

    def ids(self) -> List[int]:
        with self._lock:
            return sorted(self._waters)

    def closest(self, position: np.ndarray) -> Optional[WaterBody]:
        """
        Body whose center is nearest to position.

        Returns:
            Nearest body, or None if the registry is empty
        """
        position = np.asarray(position, dtype=np.float64)
        with self._lock:
            if not self._waters:
                return None
            if not self._use_ckdtree:
                return find_closest_body(position, self._waters.values())

            if self._dirty:
                self._build_tree()
            return self._closest_ckdtree(position)

    def resolve(self, position: np.ndarray, body_id: Optional[int] = None) -> Optional[WaterBody]:
        """
        Resolve the body a query applies to.

        An explicit body_id (0 included) must exist; None falls back to
        the body with the nearest center.

        Raises:
            WaterNotFoundError: If body_id is given but not registered
        """
        if body_id is None:
            return self.closest(position)
        return self.get(body_id)

    def _build_tree(self):
        self._tree_bodies = list(self._waters.values())
        centers = np.array([body.center for body in self._tree_bodies], dtype=np.float64)
        self._tree = cKDTree(centers, leafsize=self._leafsize)
        self._build_seq += 1
        self._dirty = False

    def _closest_ckdtree(self, position: np.ndarray) -> WaterBody:
        distance, _ = self._tree.query(position, k=1)
        if not np.isfinite(distance):
            return find_closest_body(position, self._tree_bodies)

        # Gather every body at the minimum distance so ties resolve by body_id
        indices = self._tree.query_ball_point(position, r=float(distance))
        if not indices:
            _, index = self._tree.query(position, k=1)
            return self._tree_bodies[int(index)]

        candidates = [self._tree_bodies[i] for i in indices]
        return find_closest_body(position, candidates)

    # ========================================================================
    # Container protocol
    # ========================================================================

    def __len__(self) -> int:
        with self._lock:
            return len(self._waters)

    def __contains__(self, body_id) -> bool:
        return self.has(body_id)

    def __iter__(self) -> Iterator[WaterBody]:
        return iter(self.bodies())
