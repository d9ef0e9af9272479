"""Shared payload helpers for transaction specs."""

from __future__ import annotations

from typing import Iterable

from ..errors import ErrorCode, SpecError
from ..types import ChainState, Dispute, DisputeStatus, Offer, OfferStatus, ZERO_KEY


def to_key(v: object) -> bytes:
    if isinstance(v, bytes):
        return v
    if isinstance(v, (list, tuple)):
        return bytes(v)
    return ZERO_KEY


def to_key_list(v: object) -> list[bytes]:
    if not isinstance(v, (list, tuple)):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "expected a list of keys")
    return [to_key(item) for item in v]


def to_amount(v: object) -> int:
    if isinstance(v, bool) or not isinstance(v, int) or v < 0:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "amount must be a non-negative integer")
    return v


def clean_text(value: object, max_len: int) -> str:
    """Trim and bound a user string; empty and overlong both fail as INPUT_TOO_LONG."""
    if isinstance(value, bytes):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError:
            raise SpecError(ErrorCode.INVALID_UTF8, "string is not valid utf-8") from None
    if not isinstance(value, str):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "expected a string")
    trimmed = value.strip()
    if not trimmed:
        raise SpecError(ErrorCode.INPUT_TOO_LONG, "string is empty")
    if len(trimmed.encode("utf-8")) > max_len:
        raise SpecError(ErrorCode.INPUT_TOO_LONG, f"string longer than {max_len} bytes")
    return trimmed


def get_offer(state: ChainState, p: dict) -> Offer:
    offer = state.offers.get(to_key(p.get("offer_id")))
    if offer is None:
        raise SpecError(ErrorCode.OFFER_NOT_FOUND, "offer not found")
    return offer


def get_dispute(state: ChainState, p: dict) -> Dispute:
    dispute = state.disputes.get(to_key(p.get("dispute_id")))
    if dispute is None:
        raise SpecError(ErrorCode.DISPUTE_NOT_FOUND, "dispute not found")
    return dispute


def require_offer_status(offer: Offer, allowed: Iterable[OfferStatus]) -> None:
    if offer.status not in allowed:
        raise SpecError(
            ErrorCode.INVALID_OFFER_STATUS,
            f"offer is {offer.status.name}",
        )


def require_dispute_status(dispute: Dispute, allowed: Iterable[DisputeStatus]) -> None:
    if dispute.status not in allowed:
        raise SpecError(
            ErrorCode.INVALID_DISPUTE_STATUS,
            f"dispute is {dispute.status.name}",
        )
