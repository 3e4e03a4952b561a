# src/banger_bot/core/ports.py

"""
Ports (interfaces) used by the core.

The mention handler and the repost action depend on Protocols instead of the
concrete relay pool / key material. This keeps the transport swappable and
makes testing easier.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

NostrEvent = dict[str, Any]
# NIP-01 event: {"id", "pubkey", "created_at", "kind", "tags", "content", "sig"}.

NostrFilter = dict[str, Any]

EventCallback = Callable[[NostrEvent], Awaitable[None]]


class RelayClient(Protocol):
    """
    Best-effort access to a redundant set of relays.

    publish() succeeds if at least one relay accepted the event.
    fetch_by_id() returns the first copy any relay has, or None.
    subscribe() runs until cancelled and delivers each new event once.
    """

    def publish(self, event: NostrEvent) -> Awaitable[bool]: ...

    def fetch_by_id(self, event_id: str) -> Awaitable[NostrEvent | None]: ...

    def subscribe(self, filters: list[NostrFilter], on_event: EventCallback) -> Awaitable[None]: ...


class EventSigner(Protocol):
    """Turns (kind, content, tags) into a signed event for the bot identity."""

    @property
    def public_key(self) -> str: ...

    def sign(
            self,
            *,
            kind: int,
            content: str,
            tags: list[list[str]],
            created_at: int | None = None,
    ) -> NostrEvent: ...
