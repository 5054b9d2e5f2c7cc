"""
Cancellation tokens for cooperative abort of running nodes.

A run owns a root token; each node invocation gets a child token that is
cancelled when the run is cancelled or when the node's time box expires.
"""

from __future__ import annotations

import threading
from typing import List, Optional


class NodeCancelledError(Exception):
    """Raised inside a node when its token has been cancelled."""

    def __init__(self, message: str = "Execution cancelled") -> None:
        self.message = message
        super().__init__(message)


class CancellationToken:
    """Thread-safe cancellation flag with parent -> child propagation."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: List["CancellationToken"] = []
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel(reason)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or `timeout` elapses. Returns `cancelled`."""
        return self._event.wait(timeout)

    def child(self) -> "CancellationToken":
        token = CancellationToken()
        with self._lock:
            self._children.append(token)
            already_cancelled = self._event.is_set()
        if already_cancelled:
            token.cancel(self.reason)
        return token

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise NodeCancelledError(self.reason or "Execution cancelled")


__all__ = ["CancellationToken", "NodeCancelledError"]
