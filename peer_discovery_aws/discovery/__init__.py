"""Peer discovery package: backend Protocol and public exports."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import PeerResult


@runtime_checkable
class PeerDiscoveryBackend(Protocol):
    """Protocol that every broker peer discovery backend must satisfy."""

    def init(self) -> None:
        ...

    def list_nodes(self) -> PeerResult:
        """Return the cluster nodes this node should try to join."""
        ...

    def supports_registration(self) -> bool:
        ...

    def register(self) -> None:
        ...

    def unregister(self) -> None:
        ...

    def post_registration(self) -> None:
        ...

    def lock(self, node: str) -> str | None:
        ...

    def unlock(self, data: object) -> None:
        ...
