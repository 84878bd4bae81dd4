"""
Water simulation stepping.

The single writer of per-body state: once per tick it advances wave and tide
timers, refreshes the derived tide axis, eases current_radius toward radius,
and follows planets as the host moves or removes them. Every mutation happens
under the body's lock, so gateway queries on other threads never see a
half-updated body.
"""

import time
from typing import Dict, List, Optional

import numpy as np

from .data_types import PlanetInfo, SimulationConfig, WaterSettings
from .loader import create_water
from .registry import WaterRegistry
from .water import WaterBody
from .constants import TIDE_TIMER_SCALE, TICK_TIME_WINDOW


class WaterSimulation:
    """
    Tick loop over a WaterRegistry.

    The optional planet provider is the host body registry. It must offer
    get_planet(body_id) -> Optional[PlanetInfo]; None means the planet is gone.
    """

    def __init__(
        self,
        registry: WaterRegistry,
        planets=None,
        config: Optional[SimulationConfig] = None,
    ):
        """
        Args:
            registry: Registry to step (shared with gateway and sync)
            planets: Host planet provider (None = centers never move)
            config: Stepping configuration
        """
        self.registry = registry
        self.planets = planets
        self.config = config if config is not None else SimulationConfig()
        self.dt: float = self.config.tick_delta_seconds
        self.tick_count: int = 0

        # Performance metrics
        self._tick_times: List[float] = []
        self._tick_time_sum: float = 0.0
        self._tick_time_window: int = TICK_TIME_WINDOW

    def add_planet(self, planet: PlanetInfo, settings: Optional[WaterSettings] = None) -> WaterBody:
        """Create and register water for a planet (replaces any existing water)"""
        body = create_water(planet, settings)
        self.registry.register(body)
        print(f"[OK] Water added to planet {planet.name or planet.body_id}: radius={body.radius:.1f}m")
        return body

    def add_planets(self, planets: List[PlanetInfo], settings_by_name: Dict[str, WaterSettings]) -> int:
        """
        Register water on every planet that has configured settings.

        Returns:
            Number of bodies registered
        """
        added = 0
        for planet in planets:
            settings = settings_by_name.get(planet.name)
            if settings is None:
                continue
            self.add_planet(planet, settings)
            added += 1
        return added

    def step(self, dt: Optional[float] = None):
        """
        Advance every body by one tick.

        Args:
            dt: Tick length in seconds (defaults to config tick)
        """
        tick_start = time.perf_counter()
        dt = self.dt if dt is None else dt

        if self.planets is not None:
            self._follow_planets()

        for body in self.registry.bodies():
            with body.lock:
                self._advance_body(body, dt)

        self.tick_count += 1
        self._record_tick_time(time.perf_counter() - tick_start)

    def _advance_body(self, body: WaterBody, dt: float):
        body.wave_timer += body.wave_speed * dt
        body.tide_timer += body.tide_speed * dt * TIDE_TIMER_SCALE
        body.update_tide_direction()

        max_change = self.config.radius_ease_rate * dt
        delta = body.radius - body.current_radius
        body.current_radius += float(np.clip(delta, -max_change, max_change))
        body.clamp_current_radius()

    def _follow_planets(self):
        """Refresh centers from the host; drop water whose planet no longer exists"""
        moved = False
        for body in self.registry.bodies():
            planet = self.planets.get_planet(body.body_id)
            if planet is None:
                self.registry.remove(body.body_id)
                print(f"[WARN] Planet {body.body_id} no longer exists, water removed")
                continue

            position = np.asarray(planet.position, dtype=np.float64)
            if not np.array_equal(position, body.center):
                with body.lock:
                    body.center = position
                moved = True

        if moved:
            self.registry.mark_moved()

    def _record_tick_time(self, elapsed: float):
        self._tick_times.append(elapsed)
        self._tick_time_sum += elapsed
        if len(self._tick_times) > self._tick_time_window:
            self._tick_time_sum -= self._tick_times.pop(0)

    @property
    def average_tick_ms(self) -> float:
        """Rolling average tick time in milliseconds"""
        if not self._tick_times:
            return 0.0
        return self._tick_time_sum / len(self._tick_times) * 1000.0
