# src/banger_bot/connectors/nostr_relays.py

"""
Relay pool (NIP-01 over websockets).

- publish: sends the event to every relay concurrently; succeeds on the first
  relay that answers OK=true, the remaining attempts keep running in the
  background for redundancy.
- fetch_by_id: asks every relay, returns the first verified copy.
- subscribe: one long-lived REQ per relay with reconnects; events are checked
  and delivered once no matter how many relays carry them.

publish/fetch open a short-lived connection per call; only subscriptions keep
connections open.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import secrets
from collections import deque
from collections.abc import Callable
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from ..core.ports import EventCallback, NostrEvent, NostrFilter
from .nostr_keys import verify_event

logger = logging.getLogger(__name__)

_NET_ERRORS = (OSError, TimeoutError, WebSocketException)


class RelayError(RuntimeError):
    """No relay could be reached for a request."""


def _decode(raw: Any) -> list[Any] | None:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        msg = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(msg, list) or not msg or not isinstance(msg[0], str):
        return None
    return msg


def _new_sub_id() -> str:
    return secrets.token_hex(8)


class _SeenIds:
    """Bounded set of recently delivered event ids."""

    def __init__(self, limit: int = 10000) -> None:
        self._order: deque[str] = deque()
        self._ids: set[str] = set()
        self._limit = limit

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._ids

    def add(self, event_id: str) -> bool:
        """Return True if the id was not seen before."""
        if event_id in self._ids:
            return False
        self._ids.add(event_id)
        self._order.append(event_id)
        if len(self._order) > self._limit:
            self._ids.discard(self._order.popleft())
        return True


class RelayPool:
    """Implements the RelayClient port on top of plain websocket connections."""

    def __init__(
        self,
        relays: list[str],
        *,
        publish_timeout: float = 10.0,
        fetch_timeout: float = 10.0,
        reconnect_delay: float = 5.0,
        connect: Callable[[str], Any] | None = None,
        verify: Callable[[Any], bool] = verify_event,
    ) -> None:
        self._relays = [r for r in (r.strip() for r in relays) if r]
        self._publish_timeout = max(0.1, float(publish_timeout))
        self._fetch_timeout = max(0.1, float(fetch_timeout))
        self._reconnect_delay = max(0.0, float(reconnect_delay))
        self._connect = connect or websockets.connect
        self._verify = verify
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def relays(self) -> list[str]:
        return list(self._relays)

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def close(self) -> None:
        pending = list(self._background)
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._background.clear()

    # ---- publish ----

    async def _publish_one(self, url: str, event: NostrEvent) -> bool:
        try:
            async with asyncio.timeout(self._publish_timeout):
                async with self._connect(url) as ws:
                    await ws.send(json.dumps(["EVENT", event], ensure_ascii=False))
                    async for raw in ws:
                        msg = _decode(raw)
                        if msg is None:
                            continue
                        if msg[0] == "OK" and len(msg) >= 3 and msg[1] == event["id"]:
                            if msg[2] is True:
                                return True
                            reason = msg[3] if len(msg) > 3 else ""
                            logger.warning("Relay %s rejected event %s: %s", url, event["id"], reason)
                            return False
                        if msg[0] == "NOTICE" and len(msg) > 1:
                            logger.info("Notice from %s: %s", url, msg[1])
        except _NET_ERRORS as e:
            logger.warning("Publish to %s failed: %r", url, e)
        return False

    async def publish(self, event: NostrEvent) -> bool:
        if not self._relays:
            logger.error("No relays configured; cannot publish %s", event.get("id"))
            return False

        attempts = [
            asyncio.create_task(self._publish_one(url, event), name=f"publish:{url}")
            for url in self._relays
        ]
        for t in attempts:
            self._track(t)

        for fut in asyncio.as_completed(attempts):
            if await fut:
                return True
        logger.error("Event %s was not accepted by any relay", event.get("id"))
        return False

    # ---- fetch ----

    async def _fetch_one(self, url: str, event_id: str) -> NostrEvent | None:
        sub_id = _new_sub_id()
        async with asyncio.timeout(self._fetch_timeout):
            async with self._connect(url) as ws:
                await ws.send(json.dumps(["REQ", sub_id, {"ids": [event_id], "limit": 1}]))
                try:
                    async for raw in ws:
                        msg = _decode(raw)
                        if msg is None or len(msg) < 2 or msg[1] != sub_id:
                            continue
                        if msg[0] == "EVENT" and len(msg) >= 3:
                            ev = msg[2]
                            if isinstance(ev, dict) and ev.get("id") == event_id and self._verify(ev):
                                return ev
                        elif msg[0] in ("EOSE", "CLOSED"):
                            return None
                finally:
                    with contextlib.suppress(*_NET_ERRORS):
                        await ws.send(json.dumps(["CLOSE", sub_id]))
        return None

    async def fetch_by_id(self, event_id: str) -> NostrEvent | None:
        """
        Return the event from the first relay that has it, None if no relay does.

        Raises RelayError when every relay failed.
        """
        if not self._relays:
            raise RelayError("no relays configured")

        attempts = [
            asyncio.create_task(self._fetch_one(url, event_id), name=f"fetch:{url}")
            for url in self._relays
        ]
        failures = 0
        try:
            for fut in asyncio.as_completed(attempts):
                try:
                    ev = await fut
                except _NET_ERRORS as e:
                    failures += 1
                    logger.debug("Fetch %s failed on a relay: %r", event_id, e)
                    continue
                if ev is not None:
                    return ev
        finally:
            for t in attempts:
                t.cancel()
            await asyncio.gather(*attempts, return_exceptions=True)

        if failures == len(attempts):
            raise RelayError(f"all relays failed while fetching {event_id}")
        return None

    # ---- subscribe ----

    async def _subscribe_one(
        self,
        url: str,
        filters: list[NostrFilter],
        on_event: EventCallback,
        seen: _SeenIds,
    ) -> None:
        while True:
            sub_id = _new_sub_id()
            try:
                async with self._connect(url) as ws:
                    await ws.send(json.dumps(["REQ", sub_id, *filters]))
                    logger.info("Subscribed on %s (sub=%s)", url, sub_id)
                    async for raw in ws:
                        msg = _decode(raw)
                        if msg is None:
                            continue
                        kind = msg[0]
                        if kind == "EVENT" and len(msg) >= 3 and msg[1] == sub_id:
                            self._deliver(url, msg[2], on_event, seen)
                        elif kind == "NOTICE" and len(msg) > 1:
                            logger.info("Notice from %s: %s", url, msg[1])
                        elif kind == "CLOSED" and len(msg) > 1 and msg[1] == sub_id:
                            logger.info("Subscription closed by %s: %s", url, msg[2] if len(msg) > 2 else "")
                            break
            except _NET_ERRORS as e:
                logger.warning("Relay %s connection lost: %r", url, e)

            await asyncio.sleep(self._reconnect_delay)

    def _deliver(self, url: str, ev: Any, on_event: EventCallback, seen: _SeenIds) -> None:
        if not isinstance(ev, dict) or not isinstance(ev.get("id"), str):
            return
        if ev["id"] in seen:
            return
        if not self._verify(ev):
            logger.debug("Dropping event with bad signature from %s: %s", url, ev.get("id"))
            return
        # Only verified ids are remembered.
        seen.add(ev["id"])
        self._track(asyncio.create_task(self._run_handler(on_event, ev), name=f"event:{ev['id']}"))

    @staticmethod
    async def _run_handler(on_event: EventCallback, ev: NostrEvent) -> None:
        try:
            await on_event(ev)
        except Exception:
            logger.exception("Event handler failed for %s", ev.get("id"))

    async def subscribe(self, filters: list[NostrFilter], on_event: EventCallback) -> None:
        """Run subscriptions on all relays until cancelled."""
        if not self._relays:
            raise RelayError("no relays configured")
        seen = _SeenIds()
        await asyncio.gather(
            *(self._subscribe_one(url, filters, on_event, seen) for url in self._relays)
        )
