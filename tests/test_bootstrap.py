# tests/test_bootstrap.py

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from banger_bot.cli.bootstrap import ConfigError, create_initial_state, load_keys
from banger_bot.connectors import nostr_connector
from banger_bot.connectors.nostr_keys import NostrKeys
from banger_bot.tasks.task_store import TaskStore

from .fakes import FakeRelays, bech32_encode, make_task, run_until

SECRET = bytes(range(1, 33))


def test_load_keys_requires_nsec(settings: SimpleNamespace) -> None:
    settings.private_key = SECRET.hex()
    with pytest.raises(ConfigError, match="nsec format"):
        load_keys(settings)


def test_load_keys_rejects_bad_nsec(settings: SimpleNamespace) -> None:
    settings.private_key = "nsec1notbech32"
    with pytest.raises(ConfigError, match="Invalid nsec"):
        load_keys(settings)


def test_missing_key_is_fatal(settings: SimpleNamespace) -> None:
    with pytest.raises(ConfigError):
        create_initial_state(settings=settings)


def test_initial_state(settings: SimpleNamespace) -> None:
    settings.private_key = bech32_encode("nsec", SECRET)

    state = create_initial_state(settings=settings)

    assert state.keys == NostrKeys(SECRET)
    assert settings.data_dir.is_dir()
    assert state.task_store.path == settings.tasks_path
    assert state.task_store.max_tasks == settings.max_tasks
    assert len(state.task_store) == 0


@pytest.mark.asyncio
async def test_bot_recovers_missed_reposts_and_stops_cleanly(
    settings: SimpleNamespace, monkeypatch: pytest.MonkeyPatch
) -> None:
    settings.private_key = bech32_encode("nsec", SECRET)
    state = create_initial_state(settings=settings)

    # Written by a previous run, long overdue.
    TaskStore(settings.tasks_path).add(make_task("ee" * 32, remaining=2, next_fire_time=1))

    relays = FakeRelays()
    monkeypatch.setattr(nostr_connector, "RelayPool", lambda *a, **kw: relays)

    stop = asyncio.Event()
    bot = asyncio.create_task(nostr_connector.run_nostr_bot(state, stop))
    await run_until(lambda: bool(relays.published) and hasattr(relays, "filters"))

    (repost,) = relays.published
    assert repost["pubkey"] == state.keys.public_key
    assert "nostr:nevent1" in repost["content"]
    assert relays.filters[0]["#p"] == [state.keys.public_key]

    (saved,) = TaskStore(settings.tasks_path).load()
    assert saved.remaining_count == 1

    stop.set()
    assert await bot == 0
    assert relays.closed is True
