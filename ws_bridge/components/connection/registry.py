"""
Connection Registry - authoritative client_id -> handle mapping.

Owns the only strong reference the bridge keeps to each live connection,
together with its connect time. Every entry point (connect, disconnect,
error, broadcast, unicast) goes through this class.

Thread Safety:
- All dictionary operations are protected by a threading.Lock, so the
  registry is correct whether events arrive on one event loop or on one
  thread per connection.
- The lock is never held across an await or a handle call.
- all() returns a snapshot; callers iterate it without holding the lock.
"""

from __future__ import annotations

import itertools
import threading
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ws_bridge.components.connection.handle import ConnectionMetadata, is_handle_open

if TYPE_CHECKING:
    from ws_bridge.components.connection.handle import ConnectionHandle


@dataclass(frozen=True, slots=True)
class ConnectionRecord:
    """One registered connection."""

    client_id: str
    connected_at: int  # ms since epoch
    handle: "ConnectionHandle"


class ConnectionRegistry:
    """
    Lock-protected registry of live connections.

    Client ids have the form client_<sequence>_<8 hex chars>. The sequence is
    a per-registry monotonic counter that is never reset (not even by clear()),
    so an id is never handed out twice; the random suffix only keeps ids from
    being guessable.
    """

    def __init__(self) -> None:
        self._records: dict[str, ConnectionRecord] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def register(self, handle: "ConnectionHandle") -> str:
        """
        Register a new connection and return its fresh client id.

        The id and connect time are also attached to handle.metadata so the
        disconnect and error paths can resolve the client from the handle.
        """
        connected_at = int(time.time() * 1000)
        with self._lock:
            client_id = f"client_{next(self._sequence)}_{uuid.uuid4().hex[:8]}"
            handle.metadata = ConnectionMetadata(
                client_id=client_id,
                connected_at=connected_at,
            )
            self._records[client_id] = ConnectionRecord(
                client_id=client_id,
                connected_at=connected_at,
                handle=handle,
            )
        return client_id

    def remove(self, client_id: str) -> bool:
        """
        Remove a connection. Idempotent.

        Returns:
            True if a record was removed, False if the id was not registered.
        """
        with self._lock:
            return self._records.pop(client_id, None) is not None

    def get(self, client_id: str) -> "ConnectionHandle | None":
        """Handle for a client id, or None if not registered."""
        with self._lock:
            record = self._records.get(client_id)
        return record.handle if record is not None else None

    def get_record(self, client_id: str) -> ConnectionRecord | None:
        """Full record for a client id, or None if not registered."""
        with self._lock:
            return self._records.get(client_id)

    def all(self) -> list[tuple[str, "ConnectionHandle"]]:
        """
        Snapshot of (client_id, handle) pairs.

        Copied under the lock, so a concurrent register/remove never tears
        the iteration. Order is insertion order but is not part of the contract.
        """
        with self._lock:
            return [(client_id, record.handle) for client_id, record in self._records.items()]

    def client_ids(self) -> list[str]:
        """Snapshot of registered client ids."""
        with self._lock:
            return list(self._records)

    def size(self) -> int:
        """Number of registered connections."""
        with self._lock:
            return len(self._records)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, client_id: object) -> bool:
        with self._lock:
            return client_id in self._records

    def is_open(self, client_id: str) -> bool:
        """True only if the id is registered AND its handle reports OPEN."""
        handle = self.get(client_id)
        return handle is not None and is_handle_open(handle)

    def clear(self) -> list[ConnectionRecord]:
        """
        Atomically empty the registry.

        Returns:
            The records that were registered, for the caller to close.
        """
        with self._lock:
            records = list(self._records.values())
            self._records.clear()
        return records
