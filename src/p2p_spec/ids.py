"""Deterministic record ids and derived addresses (BLAKE3-256)."""

from __future__ import annotations

from blake3 import blake3

from .config import (
    DISPUTE_SEED,
    ESCROW_SEED,
    OFFER_SEED,
    PROGRAM_ID,
    VOTE_SEED,
)

_DERIVED_MARKER = b"ProgramDerivedAddress"


def derive_address(*seeds: bytes, program_id: bytes = PROGRAM_ID) -> bytes:
    """Address owned by ``program_id`` for the given seeds; nobody holds its key."""
    buf = bytearray()
    for seed in seeds:
        buf += len(seed).to_bytes(1, "big")
        buf += seed
    buf += program_id
    buf += _DERIVED_MARKER
    return blake3(buf).digest()


def offer_id(seller: bytes, nonce: int) -> bytes:
    buf = bytearray(OFFER_SEED)
    buf += seller
    buf += nonce.to_bytes(8, "big")
    return blake3(buf).digest()


def escrow_address(offer: bytes) -> bytes:
    return derive_address(ESCROW_SEED, offer)


def dispute_id(offer: bytes) -> bytes:
    return derive_address(DISPUTE_SEED, offer)


def vote_key(dispute: bytes, juror: bytes) -> bytes:
    return derive_address(VOTE_SEED, dispute, juror)
