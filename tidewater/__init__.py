"""
Tidewater

Procedurally deformed spherical water surfaces attached to planets, with
depth, surface-point, intersection and up-direction queries.

Architecture: one WaterRegistry per process, stepped by WaterSimulation,
mirrored between replicas by StateSync, and exposed to separately built
callers through the CapabilityGateway operation table.
"""

__version__ = "0.1.0"
