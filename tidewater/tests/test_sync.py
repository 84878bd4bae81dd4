"""
Tests for snapshot encoding and full-registry sync.

Round trips (including the empty registry), forward compatibility with
unknown fields, defaults for missing fields, and rejection of bad payloads
without touching the registry.
"""

import struct

import numpy as np
import pytest

from tidewater.water import WaterBody
from tidewater.registry import WaterRegistry
from tidewater.codec import (
    encode_snapshot,
    encode_body,
    decode_snapshot,
    SnapshotDecodeError,
    WIRE_FLOAT64,
    WIRE_INT64,
    WIRE_STRING,
    WIRE_VEC3,
)
from tidewater.sync import snapshot, apply, StateSync
from tidewater.constants import SNAPSHOT_MAGIC, SNAPSHOT_FORMAT_VERSION, SYNC_HANDLER_ID


class FakeTransport:
    """Records outgoing messages instead of sending them"""

    def __init__(self):
        self.to_others = []
        self.to_server = []

    def send_to_others(self, handler_id, payload):
        self.to_others.append((handler_id, payload))

    def send_to_server(self, handler_id, payload):
        self.to_server.append((handler_id, payload))


def create_populated_registry() -> WaterRegistry:
    registry = WaterRegistry()
    registry.register(WaterBody(
        body_id=0, radius=60000.0, center=[0.0, 0.0, 0.0],
        wave_timer=1234.5678, tide_timer=0.3,
    ))
    registry.register(WaterBody(
        body_id=-9000000000, radius=19000.0, center=[1.5e6, -2.25e5, 3.0e4],
        current_radius=19001.0, wave_height=1.5, wave_speed=0.06, wave_scale=5.0,
        tide_height=4.0, tide_speed=2.0, seed=-17, viscosity=0.4, buoyancy=0.8,
        crush_depth=800, collection_rate=0.25, enable_fish=False, enable_seagulls=False,
        player_drag=False, transparent=False, lit=False, texture="JIceWater é",
        fog_color=[0.05, 0.1, 0.15],
    ))
    return registry


def frame(*records: bytes) -> bytes:
    """Wrap raw records in a snapshot header"""
    payload = struct.pack("<4sHI", SNAPSHOT_MAGIC, SNAPSHOT_FORMAT_VERSION, len(records))
    for record in records:
        payload += struct.pack("<I", len(record)) + record
    return payload


def registry_state(registry: WaterRegistry) -> list:
    return [body.to_dict() for body in registry.bodies()]


def test_round_trip():
    source = create_populated_registry()
    target = WaterRegistry()

    assert apply(target, snapshot(source))
    assert registry_state(target) == registry_state(source)

    print(f"[OK] Snapshot round trip: {len(target)} bodies")


def test_round_trip_rebuilds_runtime_state():
    source = create_populated_registry()
    target = WaterRegistry()
    apply(target, snapshot(source))

    for original in source.bodies():
        restored = target.get(original.body_id)
        assert np.array_equal(restored.tide_direction, original.tide_direction)
        point = original.center + np.array([0.0, original.radius + 0.25, 0.0])
        assert restored.depth(point) == original.depth(point)


def test_empty_registry_round_trip():
    empty = WaterRegistry()
    target = create_populated_registry()

    assert apply(target, snapshot(empty))
    assert len(target) == 0
    assert decode_snapshot(encode_snapshot([])) == []


def test_unknown_fields_are_skipped():
    body = WaterBody(body_id=3, radius=500.0, wave_height=0.7)
    record = encode_body(body)
    record += struct.pack("<BB", 99, WIRE_FLOAT64) + struct.pack("<d", 1.0)
    record += struct.pack("<BB", 98, WIRE_STRING) + struct.pack("<H", 3) + b"new"
    record += struct.pack("<BB", 97, WIRE_VEC3) + struct.pack("<3d", 1.0, 2.0, 3.0)

    bodies = decode_snapshot(frame(record))
    assert len(bodies) == 1
    assert bodies[0].to_dict() == body.to_dict()


def test_missing_fields_take_defaults():
    record = (struct.pack("<BB", 5, WIRE_INT64) + struct.pack("<q", 9)
              + struct.pack("<BB", 10, WIRE_FLOAT64) + struct.pack("<d", 250.0))

    body = decode_snapshot(frame(record))[0]
    assert body.body_id == 9
    assert body.radius == 250.0
    assert body.current_radius == 250.0
    assert body.wave_height == 0.5
    assert body.seed == 42069
    assert body.texture == "JWater"


def test_rejected_payload_keeps_registry():
    registry = create_populated_registry()
    before = registry_state(registry)
    good = snapshot(WaterRegistry())

    bad_payloads = [
        b"",
        b"XXXX" + good[4:],
        good[:5],
        snapshot(create_populated_registry())[:-3],
        frame(struct.pack("<BB", 5, WIRE_INT64) + struct.pack("<q", 1)),  # no radius
        frame(struct.pack("<BB", 10, WIRE_INT64) + struct.pack("<q", 1)),  # wrong wire type
        frame(struct.pack("<BB", 5, WIRE_INT64) + struct.pack("<q", 1)
              + struct.pack("<BB", 10, WIRE_FLOAT64) + struct.pack("<d", -4.0)),  # invalid radius
        snapshot(create_populated_registry()) + b"\x00",
    ]

    for payload in bad_payloads:
        assert not apply(registry, payload)
        assert registry_state(registry) == before


def test_decode_errors_are_value_errors():
    try:
        decode_snapshot(b"TW")
    except SnapshotDecodeError as e:
        assert isinstance(e, ValueError)
    else:
        raise AssertionError("Expected SnapshotDecodeError")


def test_authority_broadcasts_to_mirrors():
    transport = FakeTransport()
    sync = StateSync(create_populated_registry(), transport, is_authority=True)

    sync.force_sync()

    assert len(transport.to_others) == 1
    assert transport.to_server == []
    handler_id, payload = transport.to_others[0]
    assert handler_id == SYNC_HANDLER_ID
    assert sync.last_payload_size == len(payload)


def test_mirror_sends_to_authority():
    transport = FakeTransport()
    sync = StateSync(WaterRegistry(), transport, is_authority=False)

    sync.force_sync()

    assert transport.to_others == []
    assert len(transport.to_server) == 1


def test_on_message_applies_and_counts():
    authority = StateSync(create_populated_registry(), FakeTransport(), is_authority=True)
    mirror = StateSync(WaterRegistry(), FakeTransport(), is_authority=False)

    assert mirror.on_message(SYNC_HANDLER_ID, authority.snapshot())
    assert registry_state(mirror.registry) == registry_state(authority.registry)
    assert mirror.applied_count == 1

    assert not mirror.on_message(SYNC_HANDLER_ID, b"garbage")
    assert mirror.rejected_count == 1

    # Other channels are not ours
    assert not mirror.on_message(SYNC_HANDLER_ID + 1, authority.snapshot())
    assert mirror.applied_count == 1


def test_force_sync_without_transport_is_noop():
    sync = StateSync(create_populated_registry())
    sync.force_sync()
    assert sync.sent_count == 0


def test_rejection_is_reported(capsys):
    apply(WaterRegistry(), b"nope")
    assert "[WARN]" in capsys.readouterr().out


def test_oversized_texture_rejected():
    with pytest.raises(ValueError):
        WaterBody(body_id=1, radius=100.0, texture="x" * 70000)

    # Mutated after construction: encoding fails with a clear error
    body = WaterBody(body_id=1, radius=100.0)
    body.texture = "x" * 70000
    with pytest.raises(ValueError):
        encode_snapshot([body])


def test_texture_at_length_limit_round_trips():
    body = WaterBody(body_id=1, radius=100.0, texture="é" * 32767 + "x")  # 65535 bytes
    restored = decode_snapshot(encode_snapshot([body]))[0]
    assert restored.texture == body.texture
