"""
Data types shared across the water model.

Configuration dataclasses are populated by loader.py from YAML files;
query shapes and accessor records are used by the capability gateway.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, Any, Optional, Tuple

import numpy as np

from .constants import (
    DEFAULT_RADIUS_MULTIPLIER,
    DEFAULT_WAVE_HEIGHT,
    DEFAULT_WAVE_SPEED,
    DEFAULT_WAVE_SCALE,
    DEFAULT_TIDE_HEIGHT,
    DEFAULT_TIDE_SPEED,
    DEFAULT_VISCOSITY,
    DEFAULT_BUOYANCY,
    DEFAULT_CRUSH_DEPTH,
    DEFAULT_COLLECTION_RATE,
    DEFAULT_TEXTURE,
    DEFAULT_FOG_COLOR,
    DEFAULT_SEED,
    TICK_DELTA_SECONDS,
    RADIUS_EASE_RATE,
)


# ============================================================================
# Configuration
# ============================================================================

@dataclass
class WaterSettings:
    """Per-planet water configuration (radius is a multiple of the planet's minimum radius)"""
    radius: float = DEFAULT_RADIUS_MULTIPLIER
    wave_height: float = DEFAULT_WAVE_HEIGHT
    wave_speed: float = DEFAULT_WAVE_SPEED
    wave_scale: float = DEFAULT_WAVE_SCALE
    tide_height: float = DEFAULT_TIDE_HEIGHT
    tide_speed: float = DEFAULT_TIDE_SPEED
    viscosity: float = DEFAULT_VISCOSITY
    buoyancy: float = DEFAULT_BUOYANCY
    crush_depth: int = DEFAULT_CRUSH_DEPTH
    collection_rate: float = DEFAULT_COLLECTION_RATE
    enable_fish: bool = True
    enable_seagulls: bool = True
    player_drag: bool = True
    transparent: bool = True
    lit: bool = True
    texture: str = DEFAULT_TEXTURE
    fog_color: Tuple[float, float, float] = DEFAULT_FOG_COLOR
    seed: int = DEFAULT_SEED


@dataclass
class SimulationConfig:
    """Stepping defaults"""
    tick_delta_seconds: float = TICK_DELTA_SECONDS
    radius_ease_rate: float = RADIUS_EASE_RATE


@dataclass
class PlanetInfo:
    """
    What the host body registry tells us about a planet.

    The water model never owns planets; it keeps the id and asks the
    host for fresh data when it needs it.
    """
    body_id: int
    position: Tuple[float, float, float]
    minimum_radius: float
    name: Optional[str] = None


# ============================================================================
# Query Shapes
# ============================================================================

@dataclass
class BoundingSphere:
    """Sphere tested against the water surface"""
    center: np.ndarray
    radius: float

    def __post_init__(self):
        self.center = np.asarray(self.center, dtype=np.float64)
        self.radius = float(self.radius)


@dataclass
class LineSegment:
    """Segment tested against the water surface (start -> end)"""
    start: np.ndarray
    end: np.ndarray

    def __post_init__(self):
        self.start = np.asarray(self.start, dtype=np.float64)
        self.end = np.asarray(self.end, dtype=np.float64)


class SizeClass(Enum):
    """Grid size class used by the buoyancy multiplier"""
    LARGE = "large"
    SMALL = "small"


class IntersectionState(IntEnum):
    """Result of a line or sphere test: which extremity is submerged"""
    OVERWATER = 0
    EXITS_WATER = 1
    ENTERS_WATER = 2
    UNDERWATER = 3


# ============================================================================
# Accessor Records
# ============================================================================

@dataclass
class PhysicalData:
    """Center, mean radius and the radius band waves and tides can reach"""
    center: np.ndarray
    radius: float
    min_radius: float
    max_radius: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'center': [float(c) for c in self.center],
            'radius': float(self.radius),
            'min_radius': float(self.min_radius),
            'max_radius': float(self.max_radius),
        }


@dataclass
class WaveData:
    height: float
    speed: float
    scale: float
    seed: int


@dataclass
class RenderData:
    fog_color: np.ndarray
    transparent: bool
    lit: bool


@dataclass
class PhysicsData:
    viscosity: float
    buoyancy: float


@dataclass
class TideData:
    height: float
    speed: float


@dataclass(frozen=True)
class Operation:
    """
    One entry of the published capability table.

    Attributes:
        name: Stable string key external callers use
        handler: Callable invoked with the caller's arguments
        inputs: Human-readable input names, in call order
        output: Human-readable output type
    """
    name: str
    handler: Any = field(compare=False)
    inputs: Tuple[str, ...] = ()
    output: str = "None"
