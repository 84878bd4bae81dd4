"""
YAML water configuration loader with schema validation.

Loads per-planet water settings and simulation defaults from a YAML file,
validates against the bundled JSON schema, and builds WaterBody instances
for planets reported by the host.
"""

import yaml
import json
from pathlib import Path
from typing import Dict, Optional
import jsonschema

from .data_types import WaterSettings, SimulationConfig, PlanetInfo
from .water import WaterBody
from .constants import DEFAULT_RADIUS_MULTIPLIER

DATA_DIR = Path(__file__).parent / "data"
DEFAULT_CONFIG_PATH = DATA_DIR / "water.yaml"
DEFAULT_SCHEMA_PATH = DATA_DIR / "water_settings.schema.json"


class DataLoadError(Exception):
    """Raised when data loading or validation fails"""
    pass


def load_yaml(file_path: Path) -> dict:
    """Load YAML file and return parsed dict"""
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise DataLoadError(f"YAML parse error in {file_path}: {e}")


def validate_against_schema(data: dict, schema_path: Path, data_path: Path):
    """Validate data dict against JSON schema"""
    if not schema_path.exists():
        raise DataLoadError(f"Schema not found: {schema_path}")

    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        raise DataLoadError(f"Validation error in {data_path}: {e.message}")
    except json.JSONDecodeError as e:
        raise DataLoadError(f"Invalid JSON schema {schema_path}: {e}")


def parse_settings(data: dict) -> WaterSettings:
    """Build WaterSettings from a validated mapping (missing keys keep defaults)"""
    data = dict(data)
    if 'fog_color' in data:
        data['fog_color'] = tuple(data['fog_color'])
    return WaterSettings(**data)


def load_water_config(file_path: Path = DEFAULT_CONFIG_PATH,
                      schema_path: Optional[Path] = DEFAULT_SCHEMA_PATH) -> dict:
    """
    Load water configuration.

    Args:
        file_path: YAML file with `simulation` and `planets` sections
        schema_path: JSON schema to validate against (None = skip validation)

    Returns:
        Dict with keys: simulation (SimulationConfig), planets (name -> WaterSettings)
    """
    file_path = Path(file_path)
    data = load_yaml(file_path)

    if schema_path is not None:
        validate_against_schema(data, Path(schema_path), file_path)

    simulation = SimulationConfig(**data.get('simulation', {}))
    planets = {
        name: parse_settings(settings or {})
        for name, settings in data.get('planets', {}).items()
    }

    return {
        'simulation': simulation,
        'planets': planets,
    }


def create_water(planet: PlanetInfo, settings: Optional[WaterSettings] = None) -> WaterBody:
    """
    Build a water body for a planet.

    With settings, the water radius is settings.radius times the planet's
    minimum radius and every other parameter comes from settings. Without,
    defaults apply and the radius is the minimum radius times 1.032.
    """
    if settings is None:
        return WaterBody(
            body_id=planet.body_id,
            radius=planet.minimum_radius * DEFAULT_RADIUS_MULTIPLIER,
            center=planet.position,
        )

    return WaterBody(
        body_id=planet.body_id,
        radius=settings.radius * planet.minimum_radius,
        center=planet.position,
        wave_height=settings.wave_height,
        wave_speed=settings.wave_speed,
        wave_scale=settings.wave_scale,
        tide_height=settings.tide_height,
        tide_speed=settings.tide_speed,
        viscosity=settings.viscosity,
        buoyancy=settings.buoyancy,
        crush_depth=settings.crush_depth,
        collection_rate=settings.collection_rate,
        enable_fish=settings.enable_fish,
        enable_seagulls=settings.enable_seagulls,
        player_drag=settings.player_drag,
        transparent=settings.transparent,
        lit=settings.lit,
        texture=settings.texture,
        fog_color=settings.fog_color,
        seed=settings.seed,
    )
