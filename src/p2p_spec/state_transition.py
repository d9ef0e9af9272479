"""State transition entrypoints for the P2P exchange specs."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from .errors import ErrorCode, SpecError
from .types import ChainState, Event, Transaction, TransactionType
from .tx import admin as tx_admin
from .tx import disputes as tx_disputes
from .tx import offers as tx_offers
from .tx import reputation as tx_reputation
from .tx import rewards as tx_rewards
from .tx import verdict as tx_verdict

logger = logging.getLogger(__name__)

_OFFER_TYPES = frozenset({
    TransactionType.CREATE_OFFER,
    TransactionType.LIST_OFFER,
    TransactionType.ACCEPT_OFFER,
    TransactionType.MARK_FIAT_SENT,
    TransactionType.CONFIRM_FIAT_RECEIPT,
    TransactionType.RELEASE_FUNDS,
    TransactionType.CANCEL_OFFER,
})

_DISPUTE_TYPES = frozenset({
    TransactionType.OPEN_DISPUTE,
    TransactionType.ASSIGN_JURORS,
    TransactionType.SUBMIT_EVIDENCE,
    TransactionType.CAST_VOTE,
})

_REPUTATION_TYPES = frozenset({
    TransactionType.CREATE_REPUTATION,
    TransactionType.UPDATE_REPUTATION,
})

_REWARD_TYPES = frozenset({
    TransactionType.CREATE_REWARD_TOKEN,
    TransactionType.UPDATE_REWARD_TOKEN,
    TransactionType.CREATE_USER_REWARDS,
    TransactionType.CLAIM_REWARDS,
})


class TransitionResult:
    """Thin wrapper for verify/apply results."""

    def __init__(self, ok: bool, error: Optional[SpecError] = None,
                 events: Optional[list[Event]] = None):
        self.ok = ok
        self.error = error
        self.events = events or []

    @classmethod
    def success(cls, events: Optional[list[Event]] = None) -> "TransitionResult":
        return cls(True, None, events)

    @classmethod
    def failure(cls, error: SpecError) -> "TransitionResult":
        return cls(False, error)


def _module_for(tx: Transaction):
    tt = tx.tx_type
    if tt in _OFFER_TYPES:
        return tx_offers
    if tt in _DISPUTE_TYPES:
        return tx_disputes
    if tt == TransactionType.EXECUTE_VERDICT:
        return tx_verdict
    if tt == TransactionType.INITIALIZE_ADMIN:
        return tx_admin
    if tt in _REPUTATION_TYPES:
        return tx_reputation
    if tt in _REWARD_TYPES:
        return tx_rewards
    raise SpecError(ErrorCode.NOT_IMPLEMENTED, f"no spec for {tx.tx_type}")


def _verify_common(state: ChainState, tx: Transaction) -> None:
    if tx.chain_id != state.network_chain_id:
        raise SpecError(ErrorCode.INVALID_TYPE, "chain_id mismatch")
    if not isinstance(tx.tx_type, TransactionType):
        raise SpecError(ErrorCode.INVALID_TYPE, "unknown transaction type")
    if not isinstance(tx.payload, dict):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "payload must be dict")

    sender = state.accounts.get(tx.source)
    if sender is None:
        raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "sender not found")


def _require_strict_nonce(sender_nonce: int, tx_nonce: int) -> None:
    if tx_nonce < sender_nonce:
        raise SpecError(ErrorCode.NONCE_TOO_LOW, "nonce too low")
    if tx_nonce > sender_nonce:
        raise SpecError(ErrorCode.NONCE_TOO_HIGH, "nonce too high")


def verify_tx(state: ChainState, tx: Transaction) -> TransitionResult:
    """Stateful verification for a single tx, without applying it."""
    try:
        _verify_common(state, tx)
        _require_strict_nonce(state.accounts[tx.source].nonce, tx.nonce)
        _module_for(tx).verify(state, tx)
        return TransitionResult.success()
    except SpecError as exc:
        return TransitionResult.failure(exc)


def apply_tx(
    state: ChainState, tx: Transaction, *, timestamp: Optional[int] = None
) -> tuple[ChainState, TransitionResult]:
    """Apply tx to state after verification.

    All-or-nothing: on any failure the input state is returned unchanged
    (no nonce advance, no fund movement, no record writes). ``timestamp``
    overrides the state clock for this transaction.
    """
    original = state
    if timestamp is not None:
        state = replace(state, global_state=replace(state.global_state, timestamp=timestamp))

    try:
        _verify_common(state, tx)
        sender = state.accounts[tx.source]
        _require_strict_nonce(sender.nonce, tx.nonce)
        module = _module_for(tx)
        module.verify(state, tx)
    except SpecError as exc:
        logger.debug("%s rejected in verification: %s", tx.tx_type, exc)
        return original, TransitionResult.failure(exc)

    event_mark = len(state.events)
    try:
        working = module.apply(state, tx)
    except SpecError as exc:
        logger.debug("%s rejected in execution: %s", tx.tx_type, exc)
        return original, TransitionResult.failure(exc)

    sender = working.accounts[tx.source]
    sender.nonce += 1

    emitted = working.events[event_mark:]
    for event in emitted:
        logger.info("event %s", event.name)
    return working, TransitionResult.success(list(emitted))


def apply_block(
    state: ChainState, txs: list[Transaction], *, timestamp: Optional[int] = None
) -> tuple[ChainState, TransitionResult]:
    """Apply a block worth of transactions in order (block-atomic semantics).

    If any transaction fails, the entire block is rejected and the state is
    unchanged. ``timestamp`` is the block time seen by every transaction.
    """
    working = state
    if timestamp is not None:
        working = replace(working, global_state=replace(working.global_state, timestamp=timestamp))

    events: list[Event] = []
    for tx in txs:
        working, result = apply_tx(working, tx)
        if not result.ok:
            return state, result
        events.extend(result.events)

    working = replace(
        working,
        global_state=replace(
            working.global_state, block_height=working.global_state.block_height + 1
        ),
    )
    return working, TransitionResult.success(events)
