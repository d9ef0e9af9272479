"""Canonical state digest implementation (v1)."""
from __future__ import annotations

from typing import Any

from blake3 import blake3

_ZERO32 = bytes(32)


def _hex_to_bytes(value: str | None) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise TypeError("hex value must be string")
    v = value[2:] if value.startswith(("0x", "0X")) else value
    if v == "":
        return b""
    return bytes.fromhex(v)


def _key(value: str | None) -> bytes:
    raw = _hex_to_bytes(value)
    if raw == b"":
        return _ZERO32
    if len(raw) != 32:
        raise ValueError(f"key must be 32 bytes, got {len(raw)}")
    return raw


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def _text(value: str) -> bytes:
    raw = value.encode("utf-8")
    return _u64_be(len(raw)) + raw


def _sorted_by(items: list[dict[str, Any]], field: str) -> list[tuple[bytes, dict[str, Any]]]:
    out = [(_key(item.get(field)), item) for item in items]
    out.sort(key=lambda x: x[0])
    return out


def compute_state_digest(post_state: dict[str, Any]) -> str:
    """Compute state digest v1 from an exported state.

    Accounts, offers, disputes and vote records are encoded in canonical
    order (sorted by their 32-byte key) and hashed with BLAKE3-256. Events
    and rate-limit bookkeeping are not part of the digest.
    """
    if not isinstance(post_state, dict):
        raise TypeError("post_state must be a dict")

    gs = post_state.get("global_state", {})
    buf = bytearray()
    for field in ("block_height", "timestamp"):
        buf += _u64_be(int(gs.get(field, 0)))

    for addr, acc in _sorted_by(post_state.get("accounts", []), "address"):
        buf += addr
        for field in ("balance", "nonce"):
            buf += _u64_be(int(acc.get(field, 0)))

    for oid, offer in _sorted_by(post_state.get("offers", []), "id"):
        buf += oid
        buf += _key(offer.get("seller"))
        buf += _key(offer.get("buyer"))
        for field in ("amount", "security_bond", "fiat_amount", "status", "created_at", "updated_at"):
            buf += _u64_be(int(offer.get(field, 0)))
        buf += _text(offer.get("fiat_currency", ""))
        buf += _text(offer.get("payment_method", ""))
        buf += _key(offer.get("dispute_id"))

    for did, dispute in _sorted_by(post_state.get("disputes", []), "id"):
        buf += did
        for field in ("offer", "initiator", "respondent"):
            buf += _key(dispute.get(field))
        for juror in dispute.get("jurors", []):
            buf += _key(juror)
        for field in (
            "status",
            "votes_for_buyer",
            "votes_for_seller",
            "evidence_buyer_count",
            "evidence_seller_count",
            "created_at",
            "resolved_at",
        ):
            buf += _u64_be(int(dispute.get(field, 0)))
        for item in dispute.get("evidence_buyer", []) + dispute.get("evidence_seller", []):
            buf += _text(item)
        buf += _text(dispute.get("reason", ""))

    for vkey, vote in _sorted_by(post_state.get("votes", []), "key"):
        buf += vkey
        buf += _u64_be(1 if vote.get("vote_for_buyer") else 0)
        buf += _u64_be(int(vote.get("timestamp", 0)))

    return blake3(buf).hexdigest()
