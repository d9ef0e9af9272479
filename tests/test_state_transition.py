"""Envelope checks, atomicity and block application."""

from __future__ import annotations

from p2p_spec.config import CHAIN_ID_MAINNET
from p2p_spec.errors import ErrorCode
from p2p_spec.ids import escrow_address, offer_id
from p2p_spec.state_transition import apply_block, apply_tx, verify_tx
from p2p_spec.test_accounts import GRACE
from p2p_spec.types import OfferStatus, Transaction, TransactionType, TxVersion

from _builders import (
    AMOUNT,
    BUYER,
    OFFER_PAYLOAD,
    RESERVE,
    SELLER,
    SELLER_FUNDS,
    T0,
    base_state,
    created_offer,
    mk_tx,
    next_tx,
)

FIXTURE = "transactions/envelope/{}.json"


def test_chain_id_mismatch(state_test_group) -> None:
    state = base_state()
    tx = next_tx(state, SELLER, TransactionType.CREATE_OFFER, dict(OFFER_PAYLOAD))
    tx.chain_id = CHAIN_ID_MAINNET
    post, result = state_test_group(FIXTURE.format("chain_id"), "chain_id_mismatch", state, tx)

    assert result.error.code == ErrorCode.INVALID_TYPE
    assert post is state


def test_nonce_too_low(state_test_group) -> None:
    state, _ = created_offer()
    tx = mk_tx(SELLER, 0, TransactionType.CREATE_OFFER, dict(OFFER_PAYLOAD))
    _, result = state_test_group(FIXTURE.format("nonce"), "nonce_too_low", state, tx)

    assert result.error.code == ErrorCode.NONCE_TOO_LOW
    assert not result.error.retryable


def test_nonce_too_high(state_test_group) -> None:
    state = base_state()
    tx = mk_tx(SELLER, 5, TransactionType.CREATE_OFFER, dict(OFFER_PAYLOAD))
    _, result = state_test_group(FIXTURE.format("nonce"), "nonce_too_high", state, tx)

    assert result.error.code == ErrorCode.NONCE_TOO_HIGH
    assert result.error.retryable


def test_unknown_sender(state_test_group) -> None:
    state = base_state()
    tx = mk_tx(GRACE, 0, TransactionType.CREATE_REPUTATION, {})
    _, result = state_test_group(FIXTURE.format("sender"), "sender_missing", state, tx)

    assert result.error.code == ErrorCode.ACCOUNT_NOT_FOUND


def test_payload_must_be_mapping() -> None:
    state = base_state()
    tx = Transaction(
        version=TxVersion.T1,
        chain_id=state.network_chain_id,
        source=SELLER,
        tx_type=TransactionType.LIST_OFFER,
        payload=["not", "a", "dict"],
        nonce=0,
    )
    _, result = apply_tx(state, tx)
    assert result.error.code == ErrorCode.INVALID_PAYLOAD


def test_success_advances_nonce_and_reports_events() -> None:
    state = base_state()
    post, result = apply_tx(state, next_tx(state, SELLER, TransactionType.CREATE_OFFER, dict(OFFER_PAYLOAD)))

    assert result.ok
    assert post.accounts[SELLER].nonce == 1
    assert state.accounts[SELLER].nonce == 0
    assert [e.name for e in result.events] == ["OfferCreated"]


def test_failure_returns_input_state_untouched() -> None:
    state, oid = created_offer()
    tx = next_tx(state, BUYER, TransactionType.LIST_OFFER, {"offer_id": oid})
    post, result = apply_tx(state, tx, timestamp=T0 + 50)

    assert not result.ok
    assert post is state
    assert post.now == T0
    assert post.accounts[BUYER].nonce == 0


def test_timestamp_override_applies_to_tx() -> None:
    state, oid = created_offer()
    post, result = apply_tx(
        state, next_tx(state, SELLER, TransactionType.LIST_OFFER, {"offer_id": oid}), timestamp=T0 + 50
    )

    assert result.ok
    assert post.offers[oid].updated_at == T0 + 50
    assert state.now == T0


def test_verify_tx_does_not_apply() -> None:
    state = base_state()
    tx = next_tx(state, SELLER, TransactionType.CREATE_OFFER, dict(OFFER_PAYLOAD))

    assert verify_tx(state, tx).ok
    assert state.offers == {}
    assert verify_tx(state, mk_tx(SELLER, 3, TransactionType.CREATE_OFFER, {})).error.code == (
        ErrorCode.NONCE_TOO_HIGH
    )


def test_block_applies_in_order() -> None:
    state = base_state()
    oid = offer_id(SELLER, 0)
    txs = [
        mk_tx(SELLER, 0, TransactionType.CREATE_OFFER, dict(OFFER_PAYLOAD)),
        mk_tx(SELLER, 1, TransactionType.LIST_OFFER, {"offer_id": oid}),
        mk_tx(BUYER, 0, TransactionType.ACCEPT_OFFER, {"offer_id": oid, "security_bond": 0}),
    ]
    post, result = apply_block(state, txs, timestamp=T0 + 10)

    assert result.ok
    assert [e.name for e in result.events] == ["OfferCreated", "OfferListed", "OfferAccepted"]
    assert post.offers[oid].status == OfferStatus.ACCEPTED
    assert post.offers[oid].created_at == T0 + 10
    assert post.global_state.block_height == state.global_state.block_height + 1
    assert post.accounts[escrow_address(oid)].balance == AMOUNT + RESERVE


def test_block_is_atomic() -> None:
    state = base_state()
    oid = offer_id(SELLER, 0)
    txs = [
        mk_tx(SELLER, 0, TransactionType.CREATE_OFFER, dict(OFFER_PAYLOAD)),
        mk_tx(BUYER, 0, TransactionType.LIST_OFFER, {"offer_id": oid}),
    ]
    post, result = apply_block(state, txs)

    assert result.error.code == ErrorCode.UNAUTHORIZED
    assert post is state
    assert post.offers == {}
    assert post.accounts[SELLER].balance == SELLER_FUNDS
    assert post.global_state.block_height == 0
