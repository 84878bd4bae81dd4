"""
Tests for the capability gateway.

Covers the published table, the soft version gate, default results when no
water resolves, explicit-id semantics (0 is a real id), batched operations,
and forwarding to host collaborators.
"""

import numpy as np
import pytest

from tidewater.water import WaterBody
from tidewater.registry import WaterRegistry, WaterNotFoundError
from tidewater.gateway import CapabilityGateway, UnknownOperationError
from tidewater.sync import StateSync
from tidewater.data_types import BoundingSphere, LineSegment, SizeClass
from tidewater.constants import MOD_HANDLER_ID

EXPECTED_OPERATIONS = {
    "VerifyVersion", "IsUnderwater", "GetClosestWater",
    "SphereIntersectsWater", "SphereIntersectsWaterList",
    "GetClosestSurfacePoint", "GetClosestSurfacePointList",
    "LineIntersectsWater", "LineIntersectsWaterList",
    "GetDepth", "GetUpDirection", "HasWater", "GetBuoyancyMultiplier",
    "GetCrushDepth", "GetPhysicalData", "GetWaveData", "GetRenderData",
    "GetPhysicsData", "GetTideData", "GetTideDirection",
    "ForceSync", "CreateSplash", "CreateBubble", "RunCommand",
}


class FakeBus:
    def __init__(self):
        self.messages = []

    def send_mod_message(self, handler_id, payload):
        self.messages.append((handler_id, payload))


class FakeEffects:
    def __init__(self):
        self.splashes = []
        self.bubbles = []

    def create_splash(self, position, radius, audible):
        self.splashes.append((position, radius, audible))

    def create_bubble(self, position, radius):
        self.bubbles.append((position, radius))


class FakeTransport:
    def __init__(self):
        self.sent = []

    def send_to_others(self, handler_id, payload):
        self.sent.append(payload)

    def send_to_server(self, handler_id, payload):
        self.sent.append(payload)


def create_two_body_registry() -> WaterRegistry:
    """Flat body 0 at the origin (radius 600) and flat body 1 far away (radius 1000)"""
    registry = WaterRegistry()
    registry.register(WaterBody(body_id=0, radius=600.0, center=[0.0, 0.0, 0.0],
                                wave_height=0.0, tide_height=0.0, crush_depth=250))
    registry.register(WaterBody(body_id=1, radius=1000.0, center=[100000.0, 0.0, 0.0],
                                wave_height=0.0, tide_height=0.0, buoyancy=2.0))
    return registry


def test_table_contains_every_operation():
    gateway = CapabilityGateway(WaterRegistry())
    assert set(gateway.operations) == EXPECTED_OPERATIONS
    for name, op in gateway.operations.items():
        assert op.name == name
        assert callable(op.handler)

    print(f"[OK] Operation table: {len(gateway.operations)} entries")


def test_table_is_read_only():
    gateway = CapabilityGateway(WaterRegistry())
    with pytest.raises(TypeError):
        gateway.operations["Extra"] = None


def test_publish_once(capsys):
    gateway = CapabilityGateway(WaterRegistry())
    bus = FakeBus()

    assert gateway.publish(bus)
    assert not gateway.publish(bus)

    assert len(bus.messages) == 1
    handler_id, table = bus.messages[0]
    assert handler_id == MOD_HANDLER_ID
    assert table is gateway.operations
    assert "[WARN]" in capsys.readouterr().out


def test_verify_version_rejects_outdated_caller(capsys):
    shown = []
    gateway = CapabilityGateway(WaterRegistry(), notifier=shown.append)

    assert gateway.verify_version(13, "X") is False
    assert "X" not in gateway.compatible_callers
    assert len(shown) == 1 and "'X'" in shown[0]
    assert "[WARN]" in capsys.readouterr().out

    # Caller carries on; the gateway still serves it
    assert gateway.has_water(0) is False


def test_verify_version_accepts_current_caller():
    gateway = CapabilityGateway(WaterRegistry())
    assert gateway.verify_version(14, "Y")
    assert gateway.invoke("VerifyVersion", 20, "Z")
    assert gateway.compatible_callers == {"Y", "Z"}


def test_defaults_without_water():
    gateway = CapabilityGateway(WaterRegistry())
    position = np.array([1.0, 2.0, 3.0])

    assert gateway.is_underwater(position) is False
    assert gateway.get_closest_water(position) is None
    assert gateway.sphere_intersects_water(BoundingSphere(position, 5.0)) == 0
    assert gateway.sphere_intersects_water_list([BoundingSphere(position, 5.0)] * 2) == [0, 0]
    assert np.array_equal(gateway.get_closest_surface_point(position), position)
    points = gateway.get_closest_surface_point_list([position, position * 2])
    assert np.array_equal(points[1], position * 2)
    assert gateway.line_intersects_water(LineSegment(position, -position)) == 0
    assert gateway.line_intersects_water_list([LineSegment(position, -position)]) == [0]
    assert gateway.get_depth(position) is None
    assert np.array_equal(gateway.get_up_direction(position), [0.0, 1.0, 0.0])
    assert gateway.get_buoyancy_multiplier(position, SizeClass.LARGE) == 0.0


def test_closest_resolution_and_explicit_zero_id():
    gateway = CapabilityGateway(create_two_body_registry())
    near_far_body = np.array([100000.0, 0.0, 900.0])  # 100m under body 1

    assert gateway.get_closest_water(near_far_body) == 1
    assert gateway.get_depth(near_far_body) == pytest.approx(-100.0)
    assert gateway.is_underwater(near_far_body)

    # Explicit id 0 is honored even though body 1 is closer
    depth_from_zero = gateway.get_depth(near_far_body, body_id=0)
    assert depth_from_zero == pytest.approx(np.linalg.norm(near_far_body) - 600.0)
    assert not gateway.is_underwater(near_far_body, body_id=0)


def test_explicit_missing_id_raises():
    gateway = CapabilityGateway(create_two_body_registry())
    position = np.zeros(3)

    with pytest.raises(WaterNotFoundError):
        gateway.get_depth(position, body_id=77)
    with pytest.raises(WaterNotFoundError):
        gateway.is_underwater(position, body_id=77)
    with pytest.raises(WaterNotFoundError):
        gateway.line_intersects_water_list([], body_id=77)
    with pytest.raises(WaterNotFoundError):
        gateway.get_crush_depth(77)


def test_intersection_operations():
    gateway = CapabilityGateway(create_two_body_registry())
    under = np.array([0.0, 0.0, 500.0])
    over = np.array([0.0, 0.0, 700.0])

    assert gateway.line_intersects_water(LineSegment(under, over)) == 1
    assert gateway.line_intersects_water(LineSegment(over, under), body_id=0) == 2
    assert gateway.sphere_intersects_water(BoundingSphere([0.0, 0.0, 600.0], 50.0)) == 2
    assert gateway.sphere_intersects_water(BoundingSphere(under, 10.0), body_id=0) == 3

    lines = [LineSegment(over, over), LineSegment(under, over), LineSegment(over, under), LineSegment(under, under)]
    assert gateway.line_intersects_water_list(lines) == [0, 1, 2, 3]
    assert gateway.line_intersects_water_list(lines, body_id=0) == [0, 1, 2, 3]

    spheres = [BoundingSphere(over, 10.0), BoundingSphere(under, 10.0)]
    assert gateway.sphere_intersects_water_list(spheres) == [0, 3]
    assert gateway.sphere_intersects_water_list(spheres, body_id=0) == [0, 3]


def test_list_operations_match_single_at_surface():
    """Endpoints exactly on a wavy surface classify the same in every call shape"""
    registry = WaterRegistry()
    body = WaterBody(body_id=0, radius=800.0, wave_height=4.0, wave_timer=3.0, tide_height=2.0, tide_timer=1.2)
    registry.register(body)
    gateway = CapabilityGateway(registry)

    rng = np.random.Generator(np.random.PCG64(17))
    directions = rng.normal(size=(1000, 3))
    surface = body.surface_points(directions * 800.0)
    lines = [LineSegment(surface[i], surface[i + 1]) for i in range(0, len(surface), 2)]
    spheres = [BoundingSphere(point, 0.0) for point in surface[:200]]

    single = [gateway.line_intersects_water(line, body_id=0) for line in lines]
    assert gateway.line_intersects_water_list(lines, body_id=0) == single
    assert gateway.line_intersects_water_list(lines) == single

    single = [gateway.sphere_intersects_water(sphere, body_id=0) for sphere in spheres]
    assert gateway.sphere_intersects_water_list(spheres, body_id=0) == single
    assert gateway.sphere_intersects_water_list(spheres) == single


def test_surface_point_operations():
    gateway = CapabilityGateway(create_two_body_registry())
    positions = [np.array([0.0, 900.0, 0.0]), np.array([100000.0, -50.0, 0.0])]

    single = [gateway.get_closest_surface_point(p) for p in positions]
    assert np.allclose(single[0], [0.0, 600.0, 0.0])
    assert np.allclose(single[1], [100000.0, -1000.0, 0.0])

    batched = gateway.invoke("GetClosestSurfacePointList", positions)
    assert np.allclose(batched, single)

    explicit = gateway.get_closest_surface_point_list(positions, body_id=0)
    assert np.allclose(explicit[0], [0.0, 600.0, 0.0])


def test_up_direction_and_buoyancy():
    gateway = CapabilityGateway(create_two_body_registry())

    assert np.allclose(gateway.get_up_direction([0.0, 0.0, -5.0]), [0.0, 0.0, -1.0])
    assert np.allclose(gateway.get_up_direction([0.0, 0.0, -5.0], body_id=1), [-1.0, 0.0, 0.0], atol=1e-4)

    position = np.array([100000.0, 900.0, 0.0])  # 100m under body 1, buoyancy 2
    assert gateway.get_buoyancy_multiplier(position, SizeClass.SMALL) == pytest.approx(1.02 / 20.0 * 2.0)
    assert gateway.invoke("GetBuoyancyMultiplier", position, SizeClass.LARGE, 1) == pytest.approx(1.02 / 50.0 * 2.0)


def test_accessors():
    registry = create_two_body_registry()
    registry.register(WaterBody(body_id=5, radius=500.0, center=[1.0, 2.0, 3.0],
                                wave_height=1.0, wave_speed=0.05, wave_scale=4.0, seed=77,
                                tide_height=2.0, tide_speed=3.0, tide_timer=0.0,
                                viscosity=0.3, buoyancy=1.5, fog_color=[0.2, 0.3, 0.4],
                                transparent=False, lit=True, crush_depth=123))
    gateway = CapabilityGateway(registry)

    assert gateway.has_water(5)
    assert not gateway.has_water(6)
    assert gateway.get_crush_depth(5) == 123

    physical = gateway.get_physical_data(5)
    assert np.allclose(physical.center, [1.0, 2.0, 3.0])
    assert (physical.radius, physical.min_radius, physical.max_radius) == (500.0, 497.0, 503.0)
    assert physical.to_dict()['max_radius'] == 503.0

    wave = gateway.get_wave_data(5)
    assert (wave.height, wave.speed, wave.scale, wave.seed) == (1.0, 0.05, 4.0, 77)

    render = gateway.get_render_data(5)
    assert np.allclose(render.fog_color, [0.2, 0.3, 0.4])
    assert (render.transparent, render.lit) == (False, True)

    physics = gateway.get_physics_data(5)
    assert (physics.viscosity, physics.buoyancy) == (0.3, 1.5)

    tide = gateway.get_tide_data(5)
    assert (tide.height, tide.speed) == (2.0, 3.0)

    assert np.allclose(gateway.get_tide_direction(5), [1.0, 0.0, 0.0])


def test_accessor_returns_copies():
    registry = create_two_body_registry()
    gateway = CapabilityGateway(registry)

    data = gateway.get_physical_data(0)
    data.center[0] = 999.0
    assert registry.get(0).center[0] == 0.0


def test_forwarded_collaborators():
    effects = FakeEffects()
    commands = []
    transport = FakeTransport()
    registry = create_two_body_registry()
    gateway = CapabilityGateway(
        registry,
        effects=effects,
        commands=commands.append,
        sync=StateSync(registry, transport, is_authority=True),
    )

    gateway.invoke("CreateSplash", [1.0, 2.0, 3.0], 4.0, False)
    gateway.invoke("CreateBubble", [0.0, 0.0, 0.0], 1.5)
    gateway.invoke("RunCommand", "/wreset")
    gateway.invoke("ForceSync")

    assert len(effects.splashes) == 1 and effects.splashes[0][1:] == (4.0, False)
    assert np.allclose(effects.splashes[0][0], [1.0, 2.0, 3.0])
    assert effects.bubbles[0][1] == 1.5
    assert commands == ["/wreset"]
    assert len(transport.sent) == 1


def test_forwarding_without_collaborators_is_noop():
    gateway = CapabilityGateway(WaterRegistry())
    gateway.create_splash([0.0, 0.0, 0.0], 1.0, True)
    gateway.create_bubble([0.0, 0.0, 0.0], 1.0)
    gateway.run_command("/whelp")
    gateway.force_sync()


def test_invoke_unknown_operation():
    gateway = CapabilityGateway(WaterRegistry())
    with pytest.raises(UnknownOperationError):
        gateway.invoke("GetFish")
