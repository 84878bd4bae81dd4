"""
Full-registry state sync between replicas.

The authority and its mirrors exchange whole-registry snapshots over a
transport supplied by the host. There is no delta protocol, no ack and no
retry: a receiver replaces its registry with whatever complete snapshot
arrives, and a bad payload is reported and dropped.
"""

from typing import Optional

from .registry import WaterRegistry
from .codec import encode_snapshot, decode_snapshot, SnapshotDecodeError
from .constants import SYNC_HANDLER_ID


def snapshot(registry: WaterRegistry) -> bytes:
    """Serialize every registered body (taken under each body's lock)"""
    return encode_snapshot([body.copy() for body in registry.bodies()])


def apply(registry: WaterRegistry, payload: bytes) -> bool:
    """
    Replace registry contents with a received snapshot.

    The payload is fully decoded before anything is touched; on any decode
    error the registry keeps its last-known-good state.

    Returns:
        True if applied, False if the payload was rejected
    """
    try:
        bodies = decode_snapshot(payload)
    except SnapshotDecodeError as e:
        print(f"[WARN] Rejected water snapshot ({len(payload)} bytes): {e}")
        return False

    registry.replace_all(bodies)
    return True


class StateSync:
    """
    Sends and receives registry snapshots over an external transport.

    The transport is any object providing:
        send_to_others(handler_id: int, payload: bytes)  # authority -> mirrors
        send_to_server(handler_id: int, payload: bytes)  # mirror -> authority
    """

    def __init__(self, registry: WaterRegistry, transport=None, is_authority: bool = True,
                 handler_id: int = SYNC_HANDLER_ID):
        """
        Args:
            registry: Registry to snapshot and replace
            transport: Message channel (None = sync disabled, e.g. single player)
            is_authority: True on the authoritative replica
            handler_id: Channel id messages are sent on
        """
        self.registry = registry
        self.transport = transport
        self.is_authority = is_authority
        self.handler_id = handler_id

        self.sent_count = 0
        self.applied_count = 0
        self.rejected_count = 0
        self.last_payload_size: Optional[int] = None

    def snapshot(self) -> bytes:
        return snapshot(self.registry)

    def apply(self, payload: bytes) -> bool:
        applied = apply(self.registry, payload)
        if applied:
            self.applied_count += 1
        else:
            self.rejected_count += 1
        return applied

    def force_sync(self):
        """Broadcast the full registry (authority) or push it to the authority (mirror)"""
        if self.transport is None:
            return

        payload = self.snapshot()
        if self.is_authority:
            self.transport.send_to_others(self.handler_id, payload)
        else:
            self.transport.send_to_server(self.handler_id, payload)

        self.sent_count += 1
        self.last_payload_size = len(payload)

    def on_message(self, handler_id: int, payload: bytes) -> bool:
        """
        Transport callback for incoming messages.

        Messages on other channels are ignored.
        """
        if handler_id != self.handler_id:
            return False
        return self.apply(payload)
