# src/banger_bot/connectors/nostr_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import time
from collections.abc import Callable
from typing import Any

from ..core.messages import (
    TASK_ALREADY_ACTIVE,
    TASK_LIMIT_REACHED,
    confirmation_text,
    repost_attribution,
)
from ..core.ports import EventSigner, NostrEvent, RelayClient
from ..core.state import AppState
from ..tasks.command_parser import DEFAULT_MAX_REPETITIONS, parse_command
from ..tasks.task_models import RepostTask
from ..tasks.task_scheduler import TaskScheduler, now_ms
from ..tasks.task_store import TaskAlreadyActive, TaskLimitReached, TaskStore
from .nostr_keys import nevent_encode, npub_encode
from .nostr_relays import RelayError, RelayPool

logger = logging.getLogger(__name__)

KIND_TEXT_NOTE = 1


def find_target_id(event: NostrEvent) -> str | None:
    """
    The event a mention refers to: the "e" tag marked "reply",
    otherwise the last "e" tag.
    """
    e_tags = [
        t for t in (event.get("tags") or [])
        if isinstance(t, list) and len(t) >= 2 and t[0] == "e" and t[1]
    ]
    for t in e_tags:
        if len(t) >= 4 and t[3] == "reply":
            return str(t[1])
    return str(e_tags[-1][1]) if e_tags else None


def build_reply(signer: EventSigner, to_event: NostrEvent, text: str) -> NostrEvent:
    return signer.sign(
        kind=KIND_TEXT_NOTE,
        content=text,
        tags=[["e", to_event["id"], "", "reply"], ["p", to_event["pubkey"]]],
    )


def _user_ref(pubkey: str | None) -> str | None:
    if not pubkey:
        return None
    try:
        return f"nostr:{npub_encode(pubkey)}"
    except ValueError:
        logger.warning("Requester key %r is not valid hex; using fallback text", pubkey)
        return None


def build_repost(
    signer: EventSigner,
    task: RepostTask,
    relays: list[str],
    *,
    rng: random.Random | None = None,
) -> NostrEvent:
    """Quote repost (kind 1 with a NIP-21 nevent link and relay hints)."""
    primary = relays[0] if relays else ""
    message = repost_attribution(_user_ref(task.requester), rng=rng)
    nevent = nevent_encode(task.target_id, relays=relays, author=task.target_author)

    tags: list[list[str]] = [
        ["e", task.target_id, primary, "mention"],
        ["p", task.target_author, primary, "mention"],
    ]
    if task.requester:
        tags.append(["p", task.requester, primary, "mention"])
    tags.extend(["r", r] for r in relays)

    return signer.sign(kind=KIND_TEXT_NOTE, content=f"{message}\n\nnostr:{nevent}", tags=tags)


class Reposter:
    """The scheduler's fire action: publish one quote repost of the task target."""

    def __init__(
        self,
        signer: EventSigner,
        relays: RelayClient,
        relay_urls: list[str],
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._signer = signer
        self._relays = relays
        self._relay_urls = list(relay_urls)
        self._rng = rng

    async def __call__(self, task: RepostTask) -> bool:
        event = build_repost(self._signer, task, self._relay_urls, rng=self._rng)
        ok = await self._relays.publish(event)
        if ok:
            logger.info("Quote reposted: %s", task.target_id)
        else:
            logger.error("Publish repost error for %s", task.target_id)
        return ok


class MentionHandler:
    """Turns mentions of the bot into scheduled repost tasks."""

    def __init__(
        self,
        *,
        signer: EventSigner,
        relays: RelayClient,
        store: TaskStore,
        scheduler: TaskScheduler,
        max_repetitions: int = DEFAULT_MAX_REPETITIONS,
        clock: Callable[[], int] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._signer = signer
        self._relays = relays
        self._store = store
        self._scheduler = scheduler
        self._max_repetitions = max_repetitions
        self._clock = clock or now_ms
        self._rng = rng

    async def _reply(self, to_event: NostrEvent, text: str, what: str) -> None:
        ok = await self._relays.publish(build_reply(self._signer, to_event, text))
        if not ok:
            logger.error("Publish %s reply error (mention %s)", what, to_event.get("id"))

    async def __call__(self, event: NostrEvent) -> None:
        bot_pubkey = self._signer.public_key
        if event.get("pubkey") == bot_pubkey or event.get("kind") != KIND_TEXT_NOTE:
            return

        schedule = parse_command(str(event.get("content") or ""), max_repetitions=self._max_repetitions)
        if schedule is None:
            return

        if self._store.is_full():
            logger.warning("Task limit reached; refusing mention %s", event.get("id"))
            await self._reply(event, TASK_LIMIT_REACHED, "task limit")
            return

        target_id = find_target_id(event)
        if not target_id:
            return

        try:
            original = await self._relays.fetch_by_id(target_id)
        except RelayError:
            logger.exception("Failed to fetch original event %s", target_id)
            return
        if not original or original.get("pubkey") == bot_pubkey:
            return

        task = RepostTask(
            target_id=original["id"],
            target_author=original["pubkey"],
            interval=schedule.interval,
            remaining_count=schedule.repetitions,
            next_fire_time=self._clock() + schedule.interval.period_ms,
            requester=event.get("pubkey"),
        )
        try:
            self._store.add(task)
        except TaskAlreadyActive:
            logger.info("Active task exists for %s, rejecting new schedule", task.target_id)
            await self._reply(event, TASK_ALREADY_ACTIVE, "active task")
            return
        except TaskLimitReached:
            await self._reply(event, TASK_LIMIT_REACHED, "task limit")
            return

        self._scheduler.schedule(task)
        logger.info(
            "Scheduled repost for: %s every %s for %d times",
            task.target_id,
            task.interval.value,
            task.remaining_count,
        )

        text = confirmation_text(schedule, max_repetitions=self._max_repetitions, rng=self._rng)
        await self._reply(event, text, "confirmation")


def mention_filter(pubkey: str, since: int) -> dict[str, Any]:
    return {"kinds": [KIND_TEXT_NOTE], "#p": [pubkey], "since": since}


async def run_nostr_bot(state: AppState, stop_event: asyncio.Event) -> int:
    """
    Nostr connector:

    load tasks -> recovery pass -> arm timers -> subscribe to mentions -> wait for stop

    Returns a process exit status: 1 when the scheduler hit an internal fault.
    """
    settings = state.settings
    keys = state.keys
    store = state.task_store

    pool = RelayPool(
        settings.relays,
        publish_timeout=settings.publish_timeout,
        fetch_timeout=settings.fetch_timeout,
        reconnect_delay=settings.reconnect_delay,
    )

    faults: list[BaseException] = []

    def on_fault(exc: BaseException) -> None:
        faults.append(exc)
        stop_event.set()

    scheduler = TaskScheduler(
        store,
        Reposter(keys, pool, settings.relays),
        max_delay_ms=settings.max_delay_ms,
        on_fault=on_fault,
    )

    store.load()
    await scheduler.start()

    handler = MentionHandler(
        signer=keys,
        relays=pool,
        store=store,
        scheduler=scheduler,
        max_repetitions=settings.max_repetitions,
    )

    def _sub_done(t: asyncio.Task[None]) -> None:
        if not t.cancelled() and t.exception() is not None:
            logger.error("Failed to subscribe", exc_info=t.exception())

    sub_task = asyncio.create_task(
        pool.subscribe([mention_filter(keys.public_key, int(time.time()))], handler),
        name="mentions",
    )
    sub_task.add_done_callback(_sub_done)
    logger.info("Bot running. Listening for mentions...")

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        sub_task.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await sub_task
        await scheduler.stop()
        await pool.close()
        logger.info("Nostr connector stopped.")

    return 1 if faults else 0
