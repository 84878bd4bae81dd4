"""
Water body runtime representation and surface model.

A WaterBody is one deformed water sphere attached to a planet. Its surface is
the sphere of `current_radius` around `center`, displaced radially by seeded
wave noise (animated through `wave_timer`) and a tidal bulge aligned with the
horizontal `tide_direction`.

Depth convention: negative = submerged, positive = above the surface.
"""

import math
import threading
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .noise import NoiseField, noise_for_seed
from .spatial import as_vector, normalize_rows, row_lengths, horizontal_direction
from .constants import (
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
    SNAPSHOT_MAX_STRING_BYTES,
)

# Attributes that travel in snapshots and to_dict(), in field-number order
PERSISTED_FIELDS = (
    'body_id', 'radius', 'current_radius',
    'wave_height', 'wave_speed', 'wave_timer', 'wave_scale',
    'center', 'viscosity', 'buoyancy',
    'enable_fish', 'enable_seagulls', 'texture', 'crush_depth',
    'player_drag', 'transparent', 'lit', 'collection_rate', 'fog_color',
    'tide_height', 'tide_speed', 'tide_timer', 'seed',
)


@dataclass(eq=False)
class WaterBody:
    """
    Water surface attached to one planet.

    Attributes:
        body_id: External id of the owning planet (registry key)
        radius: Mean water radius in meters (> 0)
        center: Planet center [x, y, z]
        current_radius: Effective radius, kept within radius ± (wave + tide height)
        wave_height: Max wave displacement in meters
        wave_speed: Wave timer advance per second
        wave_timer: Wave phase accumulator (shared by replicas)
        wave_scale: Noise coordinate scale
        tide_height: Max tidal displacement in meters
        tide_speed: Tide timer advance rate
        tide_timer: Tide phase accumulator; tide_direction is derived from it
        seed: Noise seed; equal seeds give identical wave fields
        viscosity, buoyancy, crush_depth, collection_rate: Physics parameters
        enable_fish, enable_seagulls, player_drag, transparent, lit: Behavior flags
        texture: Texture name (resolved by the renderer)
        fog_color: Underwater fog RGB
    """
    body_id: int
    radius: float
    center: np.ndarray = None
    current_radius: Optional[float] = None
    wave_height: float = DEFAULT_WAVE_HEIGHT
    wave_speed: float = DEFAULT_WAVE_SPEED
    wave_timer: float = 0.0
    wave_scale: float = DEFAULT_WAVE_SCALE
    tide_height: float = DEFAULT_TIDE_HEIGHT
    tide_speed: float = DEFAULT_TIDE_SPEED
    tide_timer: float = 0.0
    seed: int = DEFAULT_SEED
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
    fog_color: np.ndarray = None
    tide_direction: np.ndarray = field(default=None, init=False, repr=False)
    lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    def __post_init__(self):
        """Coerce vectors to float64, apply defaults and validate invariants"""
        self.body_id = int(self.body_id)
        self.seed = int(self.seed)
        self.crush_depth = int(self.crush_depth)
        self.texture = str(self.texture)

        self.center = np.zeros(3, dtype=np.float64) if self.center is None else as_vector(self.center)
        self.fog_color = as_vector(DEFAULT_FOG_COLOR if self.fog_color is None else self.fog_color)

        if self.current_radius is None:
            self.current_radius = self.radius

        self._validate()
        self.clamp_current_radius()
        self.update_tide_direction()

    def _validate(self):
        floats = {
            'radius': self.radius,
            'current_radius': self.current_radius,
            'wave_height': self.wave_height,
            'wave_speed': self.wave_speed,
            'wave_timer': self.wave_timer,
            'wave_scale': self.wave_scale,
            'tide_height': self.tide_height,
            'tide_speed': self.tide_speed,
            'tide_timer': self.tide_timer,
            'viscosity': self.viscosity,
            'buoyancy': self.buoyancy,
            'collection_rate': self.collection_rate,
        }
        for name, value in floats.items():
            value = float(value)
            if not math.isfinite(value):
                raise ValueError(f"Water {self.body_id}: {name} must be finite, got {value}")
            setattr(self, name, value)

        if not np.all(np.isfinite(self.center)):
            raise ValueError(f"Water {self.body_id}: center must be finite")
        if self.radius <= 0.0:
            raise ValueError(f"Water {self.body_id}: radius must be positive, got {self.radius}")
        if self.wave_height < 0.0 or self.tide_height < 0.0:
            raise ValueError(f"Water {self.body_id}: wave_height and tide_height must be >= 0")
        if self.wave_scale <= 0.0:
            raise ValueError(f"Water {self.body_id}: wave_scale must be positive, got {self.wave_scale}")
        if len(self.texture.encode("utf-8")) > SNAPSHOT_MAX_STRING_BYTES:
            raise ValueError(f"Water {self.body_id}: texture exceeds {SNAPSHOT_MAX_STRING_BYTES} UTF-8 bytes")

    # ========================================================================
    # Derived state
    # ========================================================================

    @property
    def noise(self) -> NoiseField:
        """Noise field rebuilt from seed (shared per seed)"""
        return noise_for_seed(self.seed)

    @property
    def min_radius(self) -> float:
        """Lowest radius the displaced surface can reach"""
        return self.radius - self.wave_height - self.tide_height

    @property
    def max_radius(self) -> float:
        """Highest radius the displaced surface can reach"""
        return self.radius + self.wave_height + self.tide_height

    def clamp_current_radius(self):
        self.current_radius = min(max(self.current_radius, self.min_radius), self.max_radius)

    def update_tide_direction(self):
        """Recompute the tide axis from tide_timer (runtime-only, never persisted)"""
        self.tide_direction = horizontal_direction(self.tide_timer)

    # ========================================================================
    # Surface model
    # ========================================================================

    def wave_height_at(self, position: np.ndarray) -> float:
        """Wave displacement at a world position (sampled at the timer-shifted, scaled point)"""
        scaled = (np.asarray(position, dtype=np.float64) + self.wave_timer) * self.wave_scale
        return self.noise.sample(scaled[0], scaled[1], scaled[2]) * self.wave_height

    def tide_height_at(self, direction: np.ndarray) -> float:
        """
        Tidal displacement along a unit direction from the center.

        Bulges along tide_direction and fades toward the vertical axis.
        """
        horizontal = math.sqrt(direction[0] * direction[0] + direction[2] * direction[2])
        return self.tide_height * horizontal * float(np.dot(direction, self.tide_direction))

    def up_direction(self, position: np.ndarray) -> np.ndarray:
        """Unit vector from the center toward position (zero at the center itself)"""
        offset = np.asarray(position, dtype=np.float64).reshape(1, 3) - self.center
        return normalize_rows(offset)[0]

    def surface_point(self, position: np.ndarray, altitude_offset: float = 0.0) -> np.ndarray:
        """
        Closest surface point along the radial line through position.

        Waves and tides are sampled at the projected sphere point, not at
        the raw query position.
        """
        return self.surface_points(position, altitude_offset)[0]

    def depth(self, position: np.ndarray) -> float:
        """Signed radial distance to the surface (negative = submerged)"""
        return float(self.depths(position)[0])

    def depth_fast(self, position: np.ndarray) -> float:
        """
        Squared-distance variant of depth().

        Same sign as depth(), different magnitude; for cheap rejection tests.
        """
        position = np.asarray(position, dtype=np.float64)
        offset = position - self.center
        surface_offset = self.surface_point(position) - self.center
        return float(np.dot(offset, offset) - np.dot(surface_offset, surface_offset))

    def depth_simple(self, position: np.ndarray) -> float:
        """Distance to the undisturbed sphere of the mean radius (ignores waves and tides)"""
        return float(np.linalg.norm(np.asarray(position, dtype=np.float64) - self.center) - self.radius)

    def is_underwater(self, position: np.ndarray, altitude_offset: float = 0.0) -> bool:
        return self.depth(position) + altitude_offset < 0.0

    # ========================================================================
    # Batched surface model
    # ========================================================================
    # The scalar methods above are one-row calls into these, so a position
    # gets bit-identical results alone or inside a batch.

    def surface_points(self, positions: np.ndarray, altitude_offset: float = 0.0) -> np.ndarray:
        """
        Vectorized surface_point() for an (N, 3) array.

        Returns:
            (N, 3) surface points
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        ups = normalize_rows(positions - self.center)
        bases = self.center + ups * (self.current_radius + altitude_offset)

        waves = self.noise.sample_points((bases + self.wave_timer) * self.wave_scale) * self.wave_height
        horizontal = np.sqrt(ups[:, 0] * ups[:, 0] + ups[:, 2] * ups[:, 2])
        along = (ups[:, 0] * self.tide_direction[0] + ups[:, 1] * self.tide_direction[1]
                 + ups[:, 2] * self.tide_direction[2])
        tides = self.tide_height * horizontal * along

        return bases + ups * (waves + tides)[:, np.newaxis]

    def depths(self, positions: np.ndarray) -> np.ndarray:
        """Vectorized depth() for an (N, 3) array, returning (N,)"""
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        surfaces = self.surface_points(positions)
        return row_lengths(positions - self.center) - row_lengths(surfaces - self.center)

    # ========================================================================
    # Copies and serialization
    # ========================================================================

    def copy(self) -> 'WaterBody':
        """Consistent read-time copy, taken under the body lock"""
        with self.lock:
            return WaterBody.from_dict(self.to_dict())

    def to_dict(self) -> dict:
        """
        Serialize persisted fields to a JSON-compatible dict.

        Returns:
            Dict keyed by PERSISTED_FIELDS
        """
        return {
            'body_id': self.body_id,
            'radius': self.radius,
            'current_radius': self.current_radius,
            'wave_height': self.wave_height,
            'wave_speed': self.wave_speed,
            'wave_timer': self.wave_timer,
            'wave_scale': self.wave_scale,
            'center': self.center.tolist(),
            'viscosity': self.viscosity,
            'buoyancy': self.buoyancy,
            'enable_fish': self.enable_fish,
            'enable_seagulls': self.enable_seagulls,
            'texture': self.texture,
            'crush_depth': self.crush_depth,
            'player_drag': self.player_drag,
            'transparent': self.transparent,
            'lit': self.lit,
            'collection_rate': self.collection_rate,
            'fog_color': self.fog_color.tolist(),
            'tide_height': self.tide_height,
            'tide_speed': self.tide_speed,
            'tide_timer': self.tide_timer,
            'seed': self.seed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'WaterBody':
        """
        Deserialize from dict; missing optional fields take their defaults.

        Args:
            data: Dict with at least body_id and radius

        Returns:
            WaterBody instance
        """
        kwargs = {name: data[name] for name in PERSISTED_FIELDS if name in data}
        return cls(**kwargs)
