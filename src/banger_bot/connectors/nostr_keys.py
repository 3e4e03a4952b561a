# src/banger_bot/connectors/nostr_keys.py

"""
Nostr identity helpers.

- NIP-19 bech32 codecs (nsec/npub/nevent)
- NIP-01 event id computation
- BIP-340 schnorr signing and verification (secp256k1 via coincurve)
"""

from __future__ import annotations

import hashlib
import json
import os
import time
from dataclasses import dataclass
from typing import Any

import bech32
from coincurve import PrivateKey, PublicKeyXOnly

from ..core.ports import NostrEvent

# NIP-19 TLV types
TLV_SPECIAL = 0
TLV_RELAY = 1
TLV_AUTHOR = 2
TLV_KIND = 3


def _to_bech32(hrp: str, payload: bytes) -> str:
    data = bech32.convertbits(payload, 8, 5, True)
    if data is None:
        raise ValueError("cannot convert payload to 5-bit groups")
    return bech32.bech32_encode(hrp, data)


def _from_bech32(expected_hrp: str, value: str) -> bytes:
    hrp, data = bech32.bech32_decode((value or "").strip().lower())
    if hrp is None or data is None:
        raise ValueError("invalid bech32 string")
    if hrp != expected_hrp:
        raise ValueError(f"expected {expected_hrp}, got {hrp}")
    raw = bech32.convertbits(data, 5, 8, False)
    if raw is None:
        raise ValueError("invalid bech32 padding")
    return bytes(raw)


def decode_nsec(nsec: str) -> bytes:
    secret = _from_bech32("nsec", nsec)
    if len(secret) != 32:
        raise ValueError("nsec must hold a 32-byte key")
    return secret


def npub_encode(pubkey_hex: str) -> str:
    return _to_bech32("npub", bytes.fromhex(pubkey_hex))


def _tlv(t: int, value: bytes) -> bytes:
    if len(value) > 255:
        raise ValueError("TLV value too long")
    return bytes([t, len(value)]) + value


def nevent_encode(
    event_id: str,
    *,
    relays: list[str] | None = None,
    author: str | None = None,
    kind: int | None = None,
) -> str:
    """NIP-19 nevent with relay hints, author and kind."""
    payload = _tlv(TLV_SPECIAL, bytes.fromhex(event_id))
    for relay in relays or []:
        payload += _tlv(TLV_RELAY, relay.encode("utf-8"))
    if author:
        payload += _tlv(TLV_AUTHOR, bytes.fromhex(author))
    if kind is not None:
        payload += _tlv(TLV_KIND, int(kind).to_bytes(4, "big"))
    return _to_bech32("nevent", payload)


def event_id(
    *, pubkey: str, created_at: int, kind: int, tags: list[list[str]], content: str
) -> str:
    serialized = json.dumps(
        [0, pubkey, created_at, kind, tags, content],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def verify_event(event: Any) -> bool:
    """Check the id hash and the schnorr signature of an incoming event."""
    if not isinstance(event, dict):
        return False
    try:
        expected = event_id(
            pubkey=event["pubkey"],
            created_at=event["created_at"],
            kind=event["kind"],
            tags=event["tags"],
            content=event["content"],
        )
        if expected != event["id"]:
            return False
        pub = PublicKeyXOnly(bytes.fromhex(event["pubkey"]))
        return bool(pub.verify(bytes.fromhex(event["sig"]), bytes.fromhex(expected)))
    except (KeyError, TypeError, ValueError):
        return False


@dataclass(frozen=True, slots=True)
class NostrKeys:
    """The bot identity. Implements the EventSigner port."""

    secret: bytes

    def __post_init__(self) -> None:
        if len(self.secret) != 32:
            raise ValueError("private key must be 32 bytes")

    @classmethod
    def from_nsec(cls, nsec: str) -> NostrKeys:
        if not nsec or not nsec.strip().lower().startswith("nsec"):
            raise ValueError("private key must be in nsec format")
        return cls(decode_nsec(nsec))

    @property
    def public_key(self) -> str:
        # x-only key: drop the parity byte of the compressed point
        return PrivateKey(self.secret).public_key.format(compressed=True)[1:].hex()

    @property
    def npub(self) -> str:
        return npub_encode(self.public_key)

    def sign(
        self,
        *,
        kind: int,
        content: str,
        tags: list[list[str]],
        created_at: int | None = None,
    ) -> NostrEvent:
        ts = int(time.time()) if created_at is None else int(created_at)
        pubkey = self.public_key
        eid = event_id(pubkey=pubkey, created_at=ts, kind=kind, tags=tags, content=content)
        sig = PrivateKey(self.secret).sign_schnorr(bytes.fromhex(eid), os.urandom(32))
        return {
            "id": eid,
            "pubkey": pubkey,
            "created_at": ts,
            "kind": kind,
            "tags": tags,
            "content": content,
            "sig": sig.hex(),
        }
