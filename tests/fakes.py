# tests/fakes.py

from __future__ import annotations

import asyncio
import itertools
import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import bech32

from banger_bot.core.ports import EventCallback, NostrEvent, NostrFilter
from banger_bot.connectors.nostr_relays import RelayError
from banger_bot.tasks.task_models import IntervalClass, RepostTask

START_MS = 1_700_000_000_000


class FakeClock:
    """
    Virtual epoch-ms clock with a matching sleep().

    sleep() advances the clock by the requested amount and yields once.
    After `max_sleeps` calls it blocks forever, which parks a scheduler driver
    so a test can inspect state mid-schedule.
    """

    def __init__(self, now: int = START_MS, *, max_sleeps: int | None = None) -> None:
        self.now = now
        self.sleeps: list[float] = []
        self.max_sleeps = max_sleeps

    def __call__(self) -> int:
        return self.now

    async def sleep(self, seconds: float) -> None:
        if self.max_sleeps is not None and len(self.sleeps) >= self.max_sleeps:
            await asyncio.Future()
        self.sleeps.append(seconds)
        self.now += int(round(seconds * 1000))
        await asyncio.sleep(0)


class RecordingAction:
    """
    Fire action for the scheduler. Records synchronously at call time so the
    recorded clock value is the firing instant.
    """

    def __init__(self, clock: Callable[[], int], *, fail: bool = False) -> None:
        self.clock = clock
        self.fail = fail
        self.calls: list[tuple[int, RepostTask]] = []

    def __call__(self, task: RepostTask):
        self.calls.append((self.clock(), task))
        return self._publish()

    async def _publish(self) -> bool:
        if self.fail:
            raise ConnectionError("relay down")
        return True

    @property
    def fire_times(self) -> list[int]:
        return [t for t, _ in self.calls]


async def run_until(predicate: Callable[[], bool], *, max_iterations: int = 10000) -> None:
    for _ in range(max_iterations):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not reached")


async def settle(iterations: int = 50) -> None:
    for _ in range(iterations):
        await asyncio.sleep(0)


class FakeSigner:
    """EventSigner with deterministic ids and no cryptography."""

    def __init__(self, public_key: str = "b0" * 32) -> None:
        self._public_key = public_key
        self._ids = itertools.count(1)

    @property
    def public_key(self) -> str:
        return self._public_key

    def sign(
        self,
        *,
        kind: int,
        content: str,
        tags: list[list[str]],
        created_at: int | None = None,
    ) -> NostrEvent:
        return {
            "id": f"{next(self._ids):064x}",
            "pubkey": self._public_key,
            "created_at": created_at or 0,
            "kind": kind,
            "tags": tags,
            "content": content,
            "sig": "00" * 64,
        }


@dataclass
class FakeRelays:
    """In-memory RelayClient."""

    events: dict[str, NostrEvent] = field(default_factory=dict)
    published: list[NostrEvent] = field(default_factory=list)
    publish_ok: bool = True
    fetch_error: bool = False

    async def publish(self, event: NostrEvent) -> bool:
        self.published.append(event)
        return self.publish_ok

    async def fetch_by_id(self, event_id: str) -> NostrEvent | None:
        if self.fetch_error:
            raise RelayError("all relays failed")
        return self.events.get(event_id)

    async def subscribe(self, filters: list[NostrFilter], on_event: EventCallback) -> None:
        self.filters = filters
        self.on_event = on_event
        await asyncio.Future()

    async def close(self) -> None:
        self.closed = True


Responder = Callable[[list[Any]], Iterable[list[Any]]]


class FakeWebSocket:
    """
    Minimal stand-in for a websockets client connection.

    Every message the client sends is passed to `responder`, whose replies are
    queued for the client to read.
    """

    def __init__(self, url: str, responder: Responder) -> None:
        self.url = url
        self.sent: list[list[Any]] = []
        self._responder = responder
        self._inbox: asyncio.Queue[str] = asyncio.Queue()

    async def __aenter__(self) -> FakeWebSocket:
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        return False

    async def send(self, raw: str) -> None:
        msg = json.loads(raw)
        self.sent.append(msg)
        for reply in self._responder(msg):
            self._inbox.put_nowait(json.dumps(reply))

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> str:
        return await self._inbox.get()


class FakeConnector:
    """connect() replacement for RelayPool: url -> responder, or an exception to raise."""

    def __init__(self, routes: dict[str, Responder | Exception]) -> None:
        self.routes = routes
        self.sockets: list[FakeWebSocket] = []

    def __call__(self, url: str) -> FakeWebSocket:
        route = self.routes[url]
        if isinstance(route, Exception):
            raise route
        ws = FakeWebSocket(url, route)
        self.sockets.append(ws)
        return ws


def make_task(
    target_id: str = "e1",
    *,
    interval: IntervalClass = IntervalClass.HOURLY,
    remaining: int = 3,
    next_fire_time: int = START_MS + 1000,
    requester: str | None = "c0" * 32,
) -> RepostTask:
    return RepostTask(
        target_id=target_id,
        target_author="a0" * 32,
        interval=interval,
        remaining_count=remaining,
        next_fire_time=next_fire_time,
        requester=requester,
    )


class HangingAction:
    """Fire action whose publish never completes until cancelled."""

    def __init__(self) -> None:
        self.calls: list[RepostTask] = []
        self.cancelled = 0

    def __call__(self, task: RepostTask):
        self.calls.append(task)
        return self._publish()

    async def _publish(self) -> bool:
        try:
            await asyncio.Future()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return True


def bech32_encode(hrp: str, payload: bytes) -> str:
    return bech32.bech32_encode(hrp, bech32.convertbits(payload, 8, 5, True))


def bech32_payload(value: str) -> tuple[str, bytes]:
    hrp, data = bech32.bech32_decode(value)
    return hrp, bytes(bech32.convertbits(data, 5, 8, False))
