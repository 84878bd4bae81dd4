"""
Binary snapshot codec for the full water registry.

Format (little-endian):
- Header: magic (4 bytes), format version (uint16), body count (uint32)
- Per body: record length (uint32), then tagged fields until the record ends
- Per field: field number (uint8), wire type (uint8), payload

Wire types:
- 0 FLOAT64: 8 bytes
- 1 INT64:   8 bytes
- 2 BOOL:    1 byte
- 3 STRING:  uint16 length + UTF-8 bytes
- 4 VEC3:    3 x float64

Field numbers are stable. Readers skip fields they do not know (using the
wire type to find the payload size) and fall back to WaterBody defaults for
fields that are missing, so replicas on different versions stay compatible.
"""

import io
import struct
from typing import Dict, Iterable, List, Tuple

import numpy as np

from .water import WaterBody
from .constants import SNAPSHOT_MAGIC, SNAPSHOT_FORMAT_VERSION, SNAPSHOT_MAX_STRING_BYTES


class SnapshotDecodeError(ValueError):
    """Raised when a snapshot payload is truncated or corrupt"""
    pass


# =============================================================================
# WIRE TYPES
# =============================================================================

WIRE_FLOAT64 = 0
WIRE_INT64 = 1
WIRE_BOOL = 2
WIRE_STRING = 3
WIRE_VEC3 = 4

# Fixed payload sizes; STRING is length-prefixed
_FIXED_SIZES = {
    WIRE_FLOAT64: 8,
    WIRE_INT64: 8,
    WIRE_BOOL: 1,
    WIRE_VEC3: 24,
}

# field number -> (attribute, wire type)
FIELDS: Dict[int, Tuple[str, int]] = {
    5: ('body_id', WIRE_INT64),
    10: ('radius', WIRE_FLOAT64),
    11: ('current_radius', WIRE_FLOAT64),
    15: ('wave_height', WIRE_FLOAT64),
    16: ('wave_speed', WIRE_FLOAT64),
    17: ('wave_timer', WIRE_FLOAT64),
    18: ('wave_scale', WIRE_FLOAT64),
    20: ('center', WIRE_VEC3),
    25: ('viscosity', WIRE_FLOAT64),
    26: ('buoyancy', WIRE_FLOAT64),
    30: ('enable_fish', WIRE_BOOL),
    31: ('enable_seagulls', WIRE_BOOL),
    32: ('texture', WIRE_STRING),
    35: ('crush_depth', WIRE_INT64),
    40: ('player_drag', WIRE_BOOL),
    45: ('transparent', WIRE_BOOL),
    50: ('lit', WIRE_BOOL),
    55: ('collection_rate', WIRE_FLOAT64),
    60: ('fog_color', WIRE_VEC3),
    65: ('tide_height', WIRE_FLOAT64),
    66: ('tide_speed', WIRE_FLOAT64),
    67: ('tide_timer', WIRE_FLOAT64),
    70: ('seed', WIRE_INT64),
}

# Fields a record cannot be rebuilt without
REQUIRED_FIELDS = ('body_id', 'radius')

_HEADER = struct.Struct("<4sHI")
_TAG = struct.Struct("<BB")


# =============================================================================
# ENCODING
# =============================================================================

def _encode_value(wire_type: int, value) -> bytes:
    if wire_type == WIRE_FLOAT64:
        return struct.pack("<d", float(value))
    if wire_type == WIRE_INT64:
        return struct.pack("<q", int(value))
    if wire_type == WIRE_BOOL:
        return struct.pack("<B", 1 if value else 0)
    if wire_type == WIRE_STRING:
        data = str(value).encode("utf-8")
        if len(data) > SNAPSHOT_MAX_STRING_BYTES:
            raise ValueError(f"String field is {len(data)} bytes, limit is {SNAPSHOT_MAX_STRING_BYTES}")
        return struct.pack("<H", len(data)) + data
    if wire_type == WIRE_VEC3:
        x, y, z = (float(v) for v in value)
        return struct.pack("<3d", x, y, z)
    raise ValueError(f"Unknown wire type: {wire_type}")


def encode_body(body: WaterBody) -> bytes:
    """Encode one body's persisted fields as a tagged record (no length prefix)"""
    buffer = io.BytesIO()
    for number, (attribute, wire_type) in FIELDS.items():
        buffer.write(_TAG.pack(number, wire_type))
        buffer.write(_encode_value(wire_type, getattr(body, attribute)))
    return buffer.getvalue()


def encode_snapshot(bodies: Iterable[WaterBody]) -> bytes:
    """
    Encode a full registry snapshot.

    Args:
        bodies: Bodies to include (order is preserved)

    Returns:
        Snapshot bytes
    """
    records = [encode_body(body) for body in bodies]

    buffer = io.BytesIO()
    buffer.write(_HEADER.pack(SNAPSHOT_MAGIC, SNAPSHOT_FORMAT_VERSION, len(records)))
    for record in records:
        buffer.write(struct.pack("<I", len(record)))
        buffer.write(record)
    return buffer.getvalue()


# =============================================================================
# DECODING
# =============================================================================

def _read(reader: io.BytesIO, size: int) -> bytes:
    data = reader.read(size)
    if len(data) != size:
        raise SnapshotDecodeError(f"Truncated snapshot: wanted {size} bytes, got {len(data)}")
    return data


def _decode_value(reader: io.BytesIO, wire_type: int):
    if wire_type == WIRE_FLOAT64:
        return struct.unpack("<d", _read(reader, 8))[0]
    if wire_type == WIRE_INT64:
        return struct.unpack("<q", _read(reader, 8))[0]
    if wire_type == WIRE_BOOL:
        return _read(reader, 1) != b"\x00"
    if wire_type == WIRE_STRING:
        length = struct.unpack("<H", _read(reader, 2))[0]
        try:
            return _read(reader, length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise SnapshotDecodeError(f"Invalid string field: {e}")
    if wire_type == WIRE_VEC3:
        return np.array(struct.unpack("<3d", _read(reader, 24)), dtype=np.float64)
    raise SnapshotDecodeError(f"Unknown wire type: {wire_type}")


def _skip_value(reader: io.BytesIO, wire_type: int):
    if wire_type == WIRE_STRING:
        length = struct.unpack("<H", _read(reader, 2))[0]
        _read(reader, length)
    elif wire_type in _FIXED_SIZES:
        _read(reader, _FIXED_SIZES[wire_type])
    else:
        raise SnapshotDecodeError(f"Cannot skip unknown wire type: {wire_type}")


def decode_body(record: bytes) -> WaterBody:
    """
    Decode one tagged record.

    Raises:
        SnapshotDecodeError: If the record is truncated, mistyped, or
            lacks a required field
    """
    reader = io.BytesIO(record)
    values = {}

    while reader.tell() < len(record):
        number, wire_type = _TAG.unpack(_read(reader, _TAG.size))
        known = FIELDS.get(number)

        if known is None:
            _skip_value(reader, wire_type)
            continue

        attribute, expected_type = known
        if wire_type != expected_type:
            raise SnapshotDecodeError(
                f"Field {number} ({attribute}) has wire type {wire_type}, expected {expected_type}"
            )
        values[attribute] = _decode_value(reader, wire_type)

    missing = [name for name in REQUIRED_FIELDS if name not in values]
    if missing:
        raise SnapshotDecodeError(f"Record missing required fields: {', '.join(missing)}")

    try:
        return WaterBody.from_dict(values)
    except ValueError as e:
        raise SnapshotDecodeError(f"Invalid water record {values.get('body_id')}: {e}")


def decode_snapshot(payload: bytes) -> List[WaterBody]:
    """
    Decode a full registry snapshot.

    Decoding is all-or-nothing: any bad record fails the whole payload.

    Raises:
        SnapshotDecodeError: If the payload is truncated or corrupt
    """
    reader = io.BytesIO(payload)
    magic, version, count = _HEADER.unpack(_read(reader, _HEADER.size))

    if magic != SNAPSHOT_MAGIC:
        raise SnapshotDecodeError(f"Invalid magic number: {magic!r}")
    # Newer format versions only add fields, which decode_body skips
    if version == 0:
        raise SnapshotDecodeError("Invalid format version: 0")

    bodies = []
    for _ in range(count):
        length = struct.unpack("<I", _read(reader, 4))[0]
        bodies.append(decode_body(_read(reader, length)))

    if reader.read(1):
        raise SnapshotDecodeError("Trailing bytes after last record")

    return bodies
