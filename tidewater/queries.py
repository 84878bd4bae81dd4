"""
Intersection classification and derived queries against one water body.

Lines and spheres are reduced to two sample points and classified by which of
them is submerged:

    first submerged | second submerged | state
    ----------------+------------------+--------------
    no              | no               | OVERWATER
    yes             | no               | EXITS_WATER
    no              | yes              | ENTERS_WATER
    yes             | yes              | UNDERWATER

For spheres the two points are the extremities along the body's local up axis
through the sphere center. This is a two-sample approximation; spheres that dip
below the surface off-axis are not detected.
"""

from typing import Iterable, List

import numpy as np

from .water import WaterBody
from .spatial import normalize_rows
from .data_types import BoundingSphere, LineSegment, SizeClass, IntersectionState
from .constants import (
    BUOYANCY_DEPTH_SCALE,
    BUOYANCY_DIVISOR_LARGE,
    BUOYANCY_DIVISOR_SMALL,
)


def classify(first_submerged: bool, second_submerged: bool) -> IntersectionState:
    """Map a pair of submersion flags to an IntersectionState"""
    if first_submerged:
        if second_submerged:
            return IntersectionState.UNDERWATER
        return IntersectionState.EXITS_WATER
    if second_submerged:
        return IntersectionState.ENTERS_WATER
    return IntersectionState.OVERWATER


def line_intersects(body: WaterBody, line: LineSegment) -> IntersectionState:
    """Classify a segment by whether its start and end are underwater"""
    return classify(body.is_underwater(line.start), body.is_underwater(line.end))


def sphere_intersects(body: WaterBody, sphere: BoundingSphere) -> IntersectionState:
    """
    Classify a sphere by its top and bottom points along the local up axis.

    A zero-radius sphere samples its center twice and can only be
    OVERWATER or UNDERWATER.
    """
    up = body.up_direction(sphere.center) * sphere.radius
    return classify(body.is_underwater(sphere.center + up), body.is_underwater(sphere.center - up))


def underwater_mask(body: WaterBody, positions: np.ndarray) -> np.ndarray:
    """
    Vectorized is_underwater() for an (N, 3) array.

    Returns:
        (N,) bool array
    """
    return body.depths(positions) < 0.0


def lines_intersect(body: WaterBody, lines: Iterable[LineSegment]) -> List[IntersectionState]:
    """
    Order-preserving batch of line_intersects().

    All endpoints are evaluated in two vectorized depth passes.
    """
    lines = list(lines)
    if not lines:
        return []

    starts = np.array([line.start for line in lines], dtype=np.float64)
    ends = np.array([line.end for line in lines], dtype=np.float64)

    start_under = underwater_mask(body, starts)
    end_under = underwater_mask(body, ends)
    return [classify(a, b) for a, b in zip(start_under, end_under)]


def spheres_intersect(body: WaterBody, spheres: Iterable[BoundingSphere]) -> List[IntersectionState]:
    """Order-preserving batch of sphere_intersects(), vectorized like lines_intersect()"""
    spheres = list(spheres)
    if not spheres:
        return []

    centers = np.array([sphere.center for sphere in spheres], dtype=np.float64)
    radii = np.array([sphere.radius for sphere in spheres], dtype=np.float64)
    ups = normalize_rows(centers - body.center) * radii[:, np.newaxis]

    top_under = underwater_mask(body, centers + ups)
    bottom_under = underwater_mask(body, centers - ups)
    return [classify(a, b) for a, b in zip(top_under, bottom_under)]


def buoyancy_multiplier(body: WaterBody, position: np.ndarray, size_class: SizeClass) -> float:
    """
    Depth-adjusted buoyancy scaling for a grid of the given size class.

    Grows linearly with depth below the surface (1 + depth/5000) and is
    divided by 50 for large grids, 20 for small ones.

    Raises:
        ValueError: If size_class is not a SizeClass or one of its values
    """
    size_class = SizeClass(size_class)
    divisor = BUOYANCY_DIVISOR_LARGE if size_class is SizeClass.LARGE else BUOYANCY_DIVISOR_SMALL
    return (1.0 + (-body.depth(position) / BUOYANCY_DEPTH_SCALE)) / divisor * body.buoyancy


def is_crushed(body: WaterBody, position: np.ndarray) -> bool:
    """True when position lies deeper than the body's crush depth"""
    return -body.depth(position) > body.crush_depth
