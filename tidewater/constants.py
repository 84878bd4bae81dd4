"""
Central configuration constants for the water surface model.

Defines default values, thresholds, and configuration parameters
used across multiple modules.
"""

# ============================================================================
# Water Body Defaults
# ============================================================================

# Radius multiplier applied to a planet's minimum radius when no settings exist
DEFAULT_RADIUS_MULTIPLIER = 1.032

# Wave defaults
DEFAULT_WAVE_HEIGHT = 0.5     # meters
DEFAULT_WAVE_SPEED = 0.04     # timer units per second
DEFAULT_WAVE_SCALE = 3.0

# Tide defaults
DEFAULT_TIDE_HEIGHT = 2.0     # meters
DEFAULT_TIDE_SPEED = 1.0

# Physical defaults
DEFAULT_VISCOSITY = 0.1
DEFAULT_BUOYANCY = 1.0
DEFAULT_CRUSH_DEPTH = 500     # meters below surface
DEFAULT_COLLECTION_RATE = 1.0

# Appearance defaults
DEFAULT_TEXTURE = "JWater"
DEFAULT_FOG_COLOR = (0.1, 0.125, 0.196)

# Noise seed shared by every body unless configured otherwise
DEFAULT_SEED = 42069


# ============================================================================
# Noise Configuration
# ============================================================================

# Coordinate frequency applied before gradient lookup
NOISE_FREQUENCY = 0.01

# Permutation table size (must be a power of two)
NOISE_TABLE_SIZE = 256

# Number of seeded noise fields kept alive at once
NOISE_CACHE_SIZE = 64


# ============================================================================
# Simulation Configuration
# ============================================================================

# Default tick length (60 ticks per second)
TICK_DELTA_SECONDS = 1.0 / 60.0

# Tide timer advances this much slower than tide_speed suggests
TIDE_TIMER_SCALE = 0.001

# Max change of current_radius per second while easing toward radius
RADIUS_EASE_RATE = 5.0        # meters per second

# Tick timing window for rolling average
TICK_TIME_WINDOW = 100


# ============================================================================
# Spatial Indexing Configuration
# ============================================================================

# Enable scipy.cKDTree for closest-water lookups
# Set to False to use the O(n) scan for comparison
USE_CKDTREE = True

CKDTREE_LEAFSIZE = 16


# ============================================================================
# Query Defaults
# ============================================================================

# Up direction returned when no water body can be resolved
GLOBAL_UP = (0.0, 1.0, 0.0)

# Buoyancy multiplier: (1 + (-depth / BUOYANCY_DEPTH_SCALE)) / divisor * buoyancy
BUOYANCY_DEPTH_SCALE = 5000.0
BUOYANCY_DIVISOR_LARGE = 50.0
BUOYANCY_DIVISOR_SMALL = 20.0


# ============================================================================
# Capability Gateway Configuration
# ============================================================================

# Oldest caller API version still considered compatible
MIN_API_VERSION = 14

# Channel id the operation table is published on
MOD_HANDLER_ID = 50271

# Channel id used for full-registry sync messages
SYNC_HANDLER_ID = 50270


# ============================================================================
# Snapshot Format
# ============================================================================

SNAPSHOT_MAGIC = b"TWSS"
SNAPSHOT_FORMAT_VERSION = 1

# STRING fields carry a uint16 byte length
SNAPSHOT_MAX_STRING_BYTES = 0xFFFF
