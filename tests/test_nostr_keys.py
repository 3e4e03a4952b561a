# tests/test_nostr_keys.py

from __future__ import annotations

import pytest

from banger_bot.connectors.nostr_keys import (
    NostrKeys,
    decode_nsec,
    event_id,
    nevent_encode,
    npub_encode,
    verify_event,
)

from .fakes import bech32_encode, bech32_payload


@pytest.fixture()
def keys() -> NostrKeys:
    return NostrKeys(bytes(range(1, 33)))


def test_signed_event_verifies(keys: NostrKeys) -> None:
    ev = keys.sign(kind=1, content="gm ☀️", tags=[["p", "ab" * 32]], created_at=1_700_000_000)

    assert ev["pubkey"] == keys.public_key
    assert len(ev["pubkey"]) == 64
    assert len(ev["sig"]) == 128
    assert ev["id"] == event_id(
        pubkey=ev["pubkey"], created_at=ev["created_at"], kind=1, tags=ev["tags"], content=ev["content"]
    )
    assert verify_event(ev) is True


@pytest.mark.parametrize(
    "field,value",
    [
        ("content", "gm (edited)"),
        ("kind", 7),
        ("created_at", 1),
        ("sig", "00" * 64),
    ],
)
def test_tampered_event_fails(keys: NostrKeys, field: str, value) -> None:
    ev = keys.sign(kind=1, content="gm", tags=[])
    ev[field] = value
    assert verify_event(ev) is False


def test_signature_from_other_key_fails(keys: NostrKeys) -> None:
    ev = keys.sign(kind=1, content="gm", tags=[])
    other = NostrKeys(bytes(range(2, 34)))
    forged = other.sign(kind=1, content="gm", tags=[], created_at=ev["created_at"])
    forged["pubkey"] = ev["pubkey"]
    forged["id"] = ev["id"]
    assert verify_event(forged) is False


def test_malformed_events_fail() -> None:
    assert verify_event(None) is False
    assert verify_event({"id": "x"}) is False
    assert verify_event({"id": "x", "pubkey": "zz", "created_at": 1, "kind": 1, "tags": [], "content": ""}) is False


def test_nsec_round_trip(keys: NostrKeys) -> None:
    nsec = bech32_encode("nsec", keys.secret)
    assert nsec.startswith("nsec1")
    assert decode_nsec(nsec) == keys.secret
    assert NostrKeys.from_nsec(nsec) == keys


def test_from_nsec_rejects_other_formats(keys: NostrKeys) -> None:
    with pytest.raises(ValueError):
        NostrKeys.from_nsec(keys.secret.hex())
    with pytest.raises(ValueError):
        NostrKeys.from_nsec("")
    with pytest.raises(ValueError):
        NostrKeys.from_nsec("nsec1notbech32")


def test_wrong_prefix_is_rejected(keys: NostrKeys) -> None:
    with pytest.raises(ValueError):
        decode_nsec(keys.npub)


def test_npub_round_trip(keys: NostrKeys) -> None:
    assert keys.npub.startswith("npub1")
    assert bech32_payload(keys.npub) == ("npub", bytes.fromhex(keys.public_key))
    assert npub_encode(keys.public_key) == keys.npub


def test_npub_requires_hex() -> None:
    with pytest.raises(ValueError):
        npub_encode("not-hex")


def test_nevent_carries_event_id() -> None:
    eid = "ee" * 32
    assert bech32_payload(nevent_encode(eid)) == ("nevent", bytes([0, 32]) + bytes.fromhex(eid))


def test_nevent_with_hints() -> None:
    encoded = nevent_encode("ee" * 32, relays=["wss://relay.one"], author="a0" * 32, kind=1)
    assert encoded.startswith("nevent1")
    assert len(encoded) > len(nevent_encode("ee" * 32))


def test_key_length_is_checked() -> None:
    with pytest.raises(ValueError):
        NostrKeys(b"short")
