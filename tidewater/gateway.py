"""
Capability gateway: the published operation table.

External components built and versioned separately call the water model by
stable string name. The table is built once when the gateway is created,
exposed read-only, and handed to the host's message bus a single time.

Queries that accept an optional body id use None for "unspecified" and
resolve it to the body with the nearest center; 0 is an ordinary id. When
nothing resolves, each query returns its documented default instead of
failing. An explicit id that is not registered raises WaterNotFoundError.
"""

from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Optional, Set

import numpy as np

from .data_types import (
    BoundingSphere,
    LineSegment,
    SizeClass,
    IntersectionState,
    Operation,
    PhysicalData,
    WaveData,
    RenderData,
    PhysicsData,
    TideData,
)
from .registry import WaterRegistry
from .water import WaterBody
from .queries import (
    line_intersects,
    sphere_intersects,
    lines_intersect,
    spheres_intersect,
    buoyancy_multiplier,
)
from .constants import MIN_API_VERSION, MOD_HANDLER_ID, GLOBAL_UP


class UnknownOperationError(KeyError):
    """Raised when invoking a name that is not in the operation table"""
    pass


class CapabilityGateway:
    """
    Versioned name -> operation table over a WaterRegistry.

    Collaborators (all optional, owned by the host):
        effects: object with create_splash(position, radius, audible) and
            create_bubble(position, radius)
        commands: callable taking a command line
        notifier: callable showing a message to the user
        sync: StateSync used by ForceSync
    """

    def __init__(
        self,
        registry: WaterRegistry,
        effects=None,
        commands: Optional[Callable[[str], None]] = None,
        notifier: Optional[Callable[[str], None]] = None,
        sync=None,
        min_version: int = MIN_API_VERSION,
    ):
        self.registry = registry
        self.effects = effects
        self.commands = commands
        self.notifier = notifier
        self.sync = sync
        self.min_version = min_version

        # Callers that passed the version gate
        self.compatible_callers: Set[str] = set()

        self._published = False
        self._operations = MappingProxyType(self._build_table())

    # ========================================================================
    # Table
    # ========================================================================

    def _build_table(self) -> Dict[str, Operation]:
        ops = [
            Operation("VerifyVersion", self.verify_version, ("caller_version", "caller_name"), "bool"),
            Operation("IsUnderwater", self.is_underwater, ("position", "body_id?"), "bool"),
            Operation("GetClosestWater", self.get_closest_water, ("position",), "int?"),
            Operation("SphereIntersectsWater", self.sphere_intersects_water, ("sphere", "body_id?"), "int"),
            Operation("SphereIntersectsWaterList", self.sphere_intersects_water_list,
                      ("spheres", "body_id?"), "int[]"),
            Operation("GetClosestSurfacePoint", self.get_closest_surface_point,
                      ("position", "body_id?"), "vector"),
            Operation("GetClosestSurfacePointList", self.get_closest_surface_point_list,
                      ("positions", "body_id?"), "vector[]"),
            Operation("LineIntersectsWater", self.line_intersects_water, ("line", "body_id?"), "int"),
            Operation("LineIntersectsWaterList", self.line_intersects_water_list, ("lines", "body_id?"), "int[]"),
            Operation("GetDepth", self.get_depth, ("position", "body_id?"), "float?"),
            Operation("GetUpDirection", self.get_up_direction, ("position", "body_id?"), "vector"),
            Operation("HasWater", self.has_water, ("body_id",), "bool"),
            Operation("GetBuoyancyMultiplier", self.get_buoyancy_multiplier,
                      ("position", "size_class", "body_id?"), "float"),
            Operation("GetCrushDepth", self.get_crush_depth, ("body_id",), "int"),
            Operation("GetPhysicalData", self.get_physical_data, ("body_id",), "PhysicalData"),
            Operation("GetWaveData", self.get_wave_data, ("body_id",), "WaveData"),
            Operation("GetRenderData", self.get_render_data, ("body_id",), "RenderData"),
            Operation("GetPhysicsData", self.get_physics_data, ("body_id",), "PhysicsData"),
            Operation("GetTideData", self.get_tide_data, ("body_id",), "TideData"),
            Operation("GetTideDirection", self.get_tide_direction, ("body_id",), "vector"),
            Operation("ForceSync", self.force_sync),
            Operation("CreateSplash", self.create_splash, ("position", "radius", "audible")),
            Operation("CreateBubble", self.create_bubble, ("position", "radius")),
            Operation("RunCommand", self.run_command, ("text",)),
        ]
        return {op.name: op for op in ops}

    @property
    def operations(self) -> MappingProxyType:
        """Read-only name -> Operation mapping"""
        return self._operations

    def invoke(self, name: str, *args, **kwargs):
        """
        Call an operation by name.

        Raises:
            UnknownOperationError: If name is not in the table
        """
        op = self._operations.get(name)
        if op is None:
            raise UnknownOperationError(name)
        return op.handler(*args, **kwargs)

    def publish(self, bus) -> bool:
        """
        Hand the table to the host message bus (once per process).

        Args:
            bus: Object with send_mod_message(handler_id, payload)

        Returns:
            True if published now, False if already published
        """
        if self._published:
            print("[WARN] Water capability table already published, ignoring")
            return False

        bus.send_mod_message(MOD_HANDLER_ID, self._operations)
        self._published = True
        print(f"[OK] Published {len(self._operations)} water operations on channel {MOD_HANDLER_ID}")
        return True

    # ========================================================================
    # Version gate
    # ========================================================================

    def verify_version(self, caller_version: int, caller_name: str) -> bool:
        """
        Soft compatibility check for an external caller.

        Outdated callers get a warning and False; nothing is raised and
        the caller decides whether to continue.
        """
        if caller_version < self.min_version:
            message = (f"The mod '{caller_name}' is using an outdated Water API "
                       f"(version {caller_version}, minimum {self.min_version}), tell the author to update!")
            print(f"[WARN] {message}")
            if self.notifier is not None:
                self.notifier(message)
            return False

        self.compatible_callers.add(caller_name)
        return True

    # ========================================================================
    # Queries
    # ========================================================================

    def _resolve(self, position, body_id: Optional[int]) -> Optional[WaterBody]:
        return self.registry.resolve(position, body_id)

    def is_underwater(self, position, body_id: Optional[int] = None) -> bool:
        body = self._resolve(position, body_id)
        if body is None:
            return False
        with body.lock:
            return body.is_underwater(position)

    def get_closest_water(self, position) -> Optional[int]:
        body = self.registry.closest(position)
        return None if body is None else body.body_id

    def sphere_intersects_water(self, sphere: BoundingSphere, body_id: Optional[int] = None) -> int:
        body = self._resolve(sphere.center, body_id)
        if body is None:
            return int(IntersectionState.OVERWATER)
        with body.lock:
            return int(sphere_intersects(body, sphere))

    def sphere_intersects_water_list(self, spheres: Iterable[BoundingSphere],
                                     body_id: Optional[int] = None) -> List[int]:
        if body_id is None:
            return [self.sphere_intersects_water(sphere) for sphere in spheres]

        body = self.registry.get(body_id)
        with body.lock:
            return [int(state) for state in spheres_intersect(body, spheres)]

    def get_closest_surface_point(self, position, body_id: Optional[int] = None) -> np.ndarray:
        body = self._resolve(position, body_id)
        if body is None:
            return np.array(position, dtype=np.float64)
        with body.lock:
            return body.surface_point(position)

    def get_closest_surface_point_list(self, positions: Iterable,
                                       body_id: Optional[int] = None) -> List[np.ndarray]:
        if body_id is None:
            return [self.get_closest_surface_point(position) for position in positions]

        body = self.registry.get(body_id)
        positions = np.array(list(positions), dtype=np.float64).reshape(-1, 3)
        with body.lock:
            return list(body.surface_points(positions))

    def line_intersects_water(self, line: LineSegment, body_id: Optional[int] = None) -> int:
        body = self._resolve(line.start, body_id)
        if body is None:
            return int(IntersectionState.OVERWATER)
        with body.lock:
            return int(line_intersects(body, line))

    def line_intersects_water_list(self, lines: Iterable[LineSegment],
                                   body_id: Optional[int] = None) -> List[int]:
        if body_id is None:
            return [self.line_intersects_water(line) for line in lines]

        body = self.registry.get(body_id)
        with body.lock:
            return [int(state) for state in lines_intersect(body, lines)]

    def get_depth(self, position, body_id: Optional[int] = None) -> Optional[float]:
        body = self._resolve(position, body_id)
        if body is None:
            return None
        with body.lock:
            return body.depth(position)

    def get_up_direction(self, position, body_id: Optional[int] = None) -> np.ndarray:
        body = self._resolve(position, body_id)
        if body is None:
            return np.array(GLOBAL_UP, dtype=np.float64)
        with body.lock:
            return body.up_direction(position)

    def has_water(self, body_id: int) -> bool:
        return self.registry.has(body_id)

    def get_buoyancy_multiplier(self, position, size_class: SizeClass,
                                body_id: Optional[int] = None) -> float:
        body = self._resolve(position, body_id)
        if body is None:
            return 0.0
        with body.lock:
            return buoyancy_multiplier(body, position, size_class)

    # ========================================================================
    # Accessors (explicit id required)
    # ========================================================================

    def get_crush_depth(self, body_id: int) -> int:
        return self.registry.get(body_id).crush_depth

    def get_physical_data(self, body_id: int) -> PhysicalData:
        body = self.registry.get(body_id)
        with body.lock:
            return PhysicalData(body.center.copy(), body.radius, body.min_radius, body.max_radius)

    def get_wave_data(self, body_id: int) -> WaveData:
        body = self.registry.get(body_id)
        with body.lock:
            return WaveData(body.wave_height, body.wave_speed, body.wave_scale, body.seed)

    def get_render_data(self, body_id: int) -> RenderData:
        body = self.registry.get(body_id)
        with body.lock:
            return RenderData(body.fog_color.copy(), body.transparent, body.lit)

    def get_physics_data(self, body_id: int) -> PhysicsData:
        body = self.registry.get(body_id)
        with body.lock:
            return PhysicsData(body.viscosity, body.buoyancy)

    def get_tide_data(self, body_id: int) -> TideData:
        body = self.registry.get(body_id)
        with body.lock:
            return TideData(body.tide_height, body.tide_speed)

    def get_tide_direction(self, body_id: int) -> np.ndarray:
        body = self.registry.get(body_id)
        with body.lock:
            return body.tide_direction.copy()

    # ========================================================================
    # Forwarded to host collaborators
    # ========================================================================

    def force_sync(self):
        if self.sync is not None:
            self.sync.force_sync()

    def create_splash(self, position, radius: float, audible: bool = True):
        if self.effects is not None:
            self.effects.create_splash(np.asarray(position, dtype=np.float64), radius, audible)

    def create_bubble(self, position, radius: float):
        if self.effects is not None:
            self.effects.create_bubble(np.asarray(position, dtype=np.float64), radius)

    def run_command(self, text: str):
        if self.commands is not None:
            self.commands(text)
