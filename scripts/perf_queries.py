"""
Query throughput for the water gateway.

Times single and batched surface queries against registries of increasing
size, for both closest-body backends, and reports median/p90 per batch.
"""

# Pin threading for stable measurement
import os
os.environ.update({
    'OPENBLAS_NUM_THREADS': '1',
    'MKL_NUM_THREADS': '1',
    'NUMEXPR_NUM_THREADS': '1',
    'OMP_NUM_THREADS': '1'
})

import numpy as np
import time
import gc

from tidewater.water import WaterBody
from tidewater.registry import WaterRegistry
from tidewater.gateway import CapabilityGateway
from tidewater.data_types import LineSegment

BATCH_SIZE = 1000


def create_test_registry(body_count: int, use_ckdtree: bool, seed: int = 42) -> WaterRegistry:
    """Scatter planet-sized bodies through a cube 10,000 km across."""
    rng = np.random.Generator(np.random.PCG64(seed))
    registry = WaterRegistry(use_ckdtree=use_ckdtree)

    for i in range(body_count):
        registry.register(WaterBody(
            body_id=i,
            radius=float(rng.uniform(1e4, 6e4)),
            center=rng.uniform(-5e6, 5e6, size=3),
            seed=int(rng.integers(0, 2**31)),
        ))

    return registry


def sample_positions(registry: WaterRegistry, count: int, seed: int = 7) -> np.ndarray:
    """Positions within a few hundred meters of random bodies' surfaces."""
    rng = np.random.Generator(np.random.PCG64(seed))
    bodies = registry.bodies()
    picks = rng.integers(0, len(bodies), size=count)

    directions = rng.normal(size=(count, 3))
    directions /= np.linalg.norm(directions, axis=1)[:, np.newaxis]
    offsets = rng.uniform(-300.0, 300.0, size=count)

    centers = np.array([bodies[i].center for i in picks])
    radii = np.array([bodies[i].radius for i in picks])
    return centers + directions * (radii + offsets)[:, np.newaxis]


def time_runs(fn, runs: int) -> np.ndarray:
    """Run fn `runs` times with GC disabled, return times in ms."""
    fn()  # warmup

    gc.collect()
    gc.disable()

    times_ns = []
    try:
        for _ in range(runs):
            start = time.perf_counter_ns()
            fn()
            times_ns.append(time.perf_counter_ns() - start)
    finally:
        gc.enable()

    return np.array(times_ns) / 1_000_000


def run_query_perf_test(body_count: int, use_ckdtree: bool, runs: int = 7) -> dict:
    """
    Time one batch of each query kind.

    Returns:
        Dict with p50/p90 per query kind
    """
    registry = create_test_registry(body_count, use_ckdtree)
    gateway = CapabilityGateway(registry)
    positions = sample_positions(registry, BATCH_SIZE)
    lines = [LineSegment(p, p * 1.0001) for p in positions]
    first_id = registry.ids()[0]

    cases = {
        'depth': lambda: [gateway.get_depth(p) for p in positions],
        'surface_list': lambda: gateway.get_closest_surface_point_list(positions),
        'surface_list_id': lambda: gateway.get_closest_surface_point_list(positions, body_id=first_id),
        'lines_id': lambda: gateway.line_intersects_water_list(lines, body_id=first_id),
    }

    result = {'body_count': body_count, 'use_ckdtree': use_ckdtree}
    for name, fn in cases.items():
        times_ms = time_runs(fn, runs)
        result[name] = (np.percentile(times_ms, 50), np.percentile(times_ms, 90))

    return result


def main():
    """Run query throughput measurements."""
    print("=" * 80)
    print(f"Water Query Throughput ({BATCH_SIZE} queries per batch)")
    print("=" * 80)
    print()

    test_sizes = [1, 10, 100, 1000]
    kinds = ['depth', 'surface_list', 'surface_list_id', 'lines_id']

    results = []

    for body_count in test_sizes:
        for use_ckdtree in (True, False):
            backend = "cKDTree" if use_ckdtree else "scan"
            print(f"[Bodies = {body_count}, {backend}]")

            result = run_query_perf_test(body_count, use_ckdtree)
            for kind in kinds:
                p50, p90 = result[kind]
                print(f"  {kind:16s} p50: {p50:8.3f}ms  p90: {p90:8.3f}ms")

            results.append(result)
            print()

    print("=" * 80)
    print("Summary Table (p50 ms)")
    print("=" * 80)
    print()
    print("| Bodies | Backend | depth | surface_list | surface_list_id | lines_id |")
    print("|--------|---------|-------|--------------|-----------------|----------|")
    for r in results:
        backend = "cKDTree" if r['use_ckdtree'] else "scan"
        print(f"| {r['body_count']:6d} | {backend:7s} | {r['depth'][0]:5.1f} | {r['surface_list'][0]:12.1f} "
              f"| {r['surface_list_id'][0]:15.1f} | {r['lines_id'][0]:8.1f} |")

    print()
    print("=" * 80)


if __name__ == '__main__':
    main()
