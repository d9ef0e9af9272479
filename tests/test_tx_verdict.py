"""Verdict execution tx fixtures."""

from __future__ import annotations

from p2p_spec.config import TOTAL_DISPUTE_DEADLINE, VERDICT_BALANCE_TOLERANCE
from p2p_spec.errors import ErrorCode
from p2p_spec.ids import escrow_address
from p2p_spec.test_accounts import ADMIN, CAROL, DAVE, EVE
from p2p_spec.types import DisputeStatus, OfferStatus, TransactionType

from _builders import (
    AMOUNT,
    BOND,
    BUYER,
    BUYER_FUNDS,
    OUTSIDER,
    RESERVE,
    SELLER,
    SELLER_FUNDS,
    T0,
    balance,
    created_offer,
    dispute_in_evidence,
    next_tx,
    vault_balance,
    verdict_payload,
    verdict_reached,
    run,
    vote,
)

FIXTURE = "transactions/disputes/execute_verdict.json"


def test_verdict_pays_buyer(state_test_group) -> None:
    state, oid, did = verdict_reached(for_buyer=True)
    state.global_state.timestamp = T0 + 1000
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_buyer_wins", state, tx)

    assert result.ok
    assert balance(post, BUYER) == BUYER_FUNDS + AMOUNT
    assert balance(post, SELLER) == SELLER_FUNDS - AMOUNT - RESERVE
    assert vault_balance(post, oid) == RESERVE
    dispute = post.disputes[did]
    assert dispute.status == DisputeStatus.RESOLVED
    assert dispute.resolved_at == T0 + 1000
    assert post.offers[oid].status == OfferStatus.COMPLETED
    executed = [e for e in result.events if e.name == "VerdictExecuted"]
    assert executed[0].fields["winner"] == BUYER
    assert executed[0].fields["amount"] == AMOUNT + BOND


def test_verdict_pays_seller(state_test_group) -> None:
    state, oid, did = verdict_reached(for_buyer=False)
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_seller_wins", state, tx)

    assert result.ok
    assert balance(post, SELLER) == SELLER_FUNDS - RESERVE + BOND
    assert balance(post, BUYER) == BUYER_FUNDS - BOND


def test_verdict_after_split_vote(state_test_group) -> None:
    state, oid, did = dispute_in_evidence()
    state = vote(state, CAROL, did, True)
    state = vote(state, DAVE, did, False)
    state = vote(state, EVE, did, True)
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_split_vote", state, tx)

    assert result.ok
    assert balance(post, BUYER) == BUYER_FUNDS + AMOUNT


def test_verdict_requires_admin(state_test_group) -> None:
    state, oid, did = verdict_reached()
    tx = next_tx(state, OUTSIDER, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    _, result = state_test_group(FIXTURE, "verdict_not_admin", state, tx)

    assert result.error.code == ErrorCode.ADMIN_REQUIRED


def test_verdict_before_majority(state_test_group) -> None:
    state, oid, did = dispute_in_evidence()
    state = vote(state, CAROL, did, True)
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_too_early", state, tx)

    assert result.error.code == ErrorCode.INVALID_DISPUTE_STATUS
    assert vault_balance(post, oid) == AMOUNT + BOND + RESERVE


def test_verdict_wrong_buyer(state_test_group) -> None:
    state, oid, did = verdict_reached()
    payload = verdict_payload(oid, did)
    payload["buyer"] = OUTSIDER
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, payload)
    _, result = state_test_group(FIXTURE, "verdict_wrong_buyer", state, tx)

    assert result.error.code == ErrorCode.UNAUTHORIZED


def test_verdict_wrong_seller(state_test_group) -> None:
    state, oid, did = verdict_reached()
    payload = verdict_payload(oid, did)
    payload["seller"] = OUTSIDER
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, payload)
    _, result = state_test_group(FIXTURE, "verdict_wrong_seller", state, tx)

    assert result.error.code == ErrorCode.UNAUTHORIZED


def test_verdict_offer_not_linked(state_test_group) -> None:
    state, oid, did = verdict_reached()
    state.global_state.timestamp = T0 + 600
    state, other = created_offer(state)
    payload = verdict_payload(other, did)
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, payload)
    _, result = state_test_group(FIXTURE, "verdict_unlinked_offer", state, tx)

    assert result.error.code == ErrorCode.UNAUTHORIZED


def test_verdict_within_tolerance(state_test_group) -> None:
    state, oid, did = verdict_reached()
    state.accounts[escrow_address(oid)].balance += VERDICT_BALANCE_TOLERANCE
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_drift_tolerated", state, tx)

    assert result.ok
    # Payout is capped at amount + bond; the drift stays in the vault.
    assert balance(post, BUYER) == BUYER_FUNDS + AMOUNT
    assert vault_balance(post, oid) == RESERVE + VERDICT_BALANCE_TOLERANCE


def test_verdict_short_vault_pays_what_is_there(state_test_group) -> None:
    state, oid, did = verdict_reached()
    state.accounts[escrow_address(oid)].balance -= VERDICT_BALANCE_TOLERANCE
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_short_vault", state, tx)

    assert result.ok
    assert balance(post, BUYER) == BUYER_FUNDS + AMOUNT - VERDICT_BALANCE_TOLERANCE
    assert vault_balance(post, oid) == RESERVE


def test_verdict_beyond_tolerance(state_test_group) -> None:
    state, oid, did = verdict_reached()
    state.accounts[escrow_address(oid)].balance += VERDICT_BALANCE_TOLERANCE + 1
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_drift_rejected", state, tx)

    assert result.error.code == ErrorCode.INVALID_ESCROW_BALANCE
    assert post.disputes[did].status == DisputeStatus.VERDICT_REACHED


def test_verdict_vault_at_reserve(state_test_group) -> None:
    state, oid, did = verdict_reached()
    state.accounts[escrow_address(oid)].balance = RESERVE
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    _, result = state_test_group(FIXTURE, "verdict_empty_vault", state, tx)

    assert result.error.code == ErrorCode.INSUFFICIENT_FUNDS


def test_verdict_rejects_tie(state_test_group) -> None:
    state, oid, did = verdict_reached()
    dispute = state.disputes[did]
    dispute.votes_for_buyer = 1
    dispute.votes_for_seller = 1
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_tie", state, tx)

    assert result.error.code == ErrorCode.TIED_VOTE
    assert vault_balance(post, oid) == AMOUNT + BOND + RESERVE


def test_verdict_after_voting_deadline(state_test_group) -> None:
    state, oid, did = verdict_reached()
    state.global_state.timestamp = T0 + TOTAL_DISPUTE_DEADLINE + 3600
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_after_deadline", state, tx)

    assert result.ok
    assert post.disputes[did].status == DisputeStatus.RESOLVED


def test_verdict_only_once(state_test_group) -> None:
    state, oid, did = verdict_reached()
    state = run(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    tx = next_tx(state, ADMIN, TransactionType.EXECUTE_VERDICT, verdict_payload(oid, did))
    post, result = state_test_group(FIXTURE, "verdict_twice", state, tx)

    assert result.error.code == ErrorCode.INVALID_DISPUTE_STATUS
    assert vault_balance(post, oid) == RESERVE
