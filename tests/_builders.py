"""Shared pre-state builders for the P2P exchange tests."""

from __future__ import annotations

from typing import Optional

from p2p_spec.config import ACCOUNT_DISCRIMINATOR_LEN, CHAIN_ID_DEVNET, COIN_VALUE, ESCROW_ACCOUNT_LEN
from p2p_spec.ids import dispute_id, escrow_address, offer_id
from p2p_spec.state_transition import apply_tx
from p2p_spec.test_accounts import ADMIN, ALICE, BOB, CAROL, DAVE, EVE, FRANK
from p2p_spec.types import (
    AccountState,
    AdminConfig,
    ChainState,
    RentSchedule,
    Transaction,
    TransactionType,
    TxVersion,
)

T0 = 1_700_000_000
SELLER = ALICE
BUYER = BOB
JURORS = (CAROL, DAVE, EVE)
OUTSIDER = FRANK

AMOUNT = COIN_VALUE
BOND = 100_000_000
RESERVE = RentSchedule().minimum_balance(ACCOUNT_DISCRIMINATOR_LEN + ESCROW_ACCOUNT_LEN)

SELLER_FUNDS = 10 * COIN_VALUE
BUYER_FUNDS = 2 * COIN_VALUE

OFFER_PAYLOAD = {
    "amount": AMOUNT,
    "fiat_amount": 100,
    "fiat_currency": "USD",
    "payment_method": "bank_transfer",
}


def mk_tx(sender: bytes, nonce: int, tx_type: TransactionType, payload: dict) -> Transaction:
    return Transaction(
        version=TxVersion.T1,
        chain_id=CHAIN_ID_DEVNET,
        source=sender,
        tx_type=tx_type,
        payload=payload,
        nonce=nonce,
    )


def next_tx(state: ChainState, sender: bytes, tx_type: TransactionType, payload: dict) -> Transaction:
    """Build a tx carrying the sender's current nonce."""
    return mk_tx(sender, state.accounts[sender].nonce, tx_type, payload)


def base_state(*, admin: bool = True) -> ChainState:
    state = ChainState(network_chain_id=CHAIN_ID_DEVNET)
    state.global_state.timestamp = T0
    state.accounts[ALICE] = AccountState(address=ALICE, balance=SELLER_FUNDS)
    state.accounts[BOB] = AccountState(address=BOB, balance=BUYER_FUNDS)
    for who in (ADMIN, CAROL, DAVE, EVE, FRANK):
        state.accounts[who] = AccountState(address=who, balance=0)
    if admin:
        state.admin = AdminConfig(authorities=[ADMIN], threshold=1)
    return state


def run(
    state: ChainState,
    sender: bytes,
    tx_type: TransactionType,
    payload: dict,
    *,
    at: Optional[int] = None,
) -> ChainState:
    """Apply a tx that must succeed."""
    post, result = apply_tx(state, next_tx(state, sender, tx_type, payload), timestamp=at)
    assert result.ok, f"{tx_type.value} failed: {result.error}"
    return post


def vault_balance(state: ChainState, oid: bytes) -> int:
    acct = state.accounts.get(escrow_address(oid))
    return acct.balance if acct is not None else 0


def balance(state: ChainState, who: bytes) -> int:
    return state.accounts[who].balance


def created_offer(state: Optional[ChainState] = None) -> tuple[ChainState, bytes]:
    state = state if state is not None else base_state()
    oid = offer_id(SELLER, state.accounts[SELLER].nonce)
    state = run(state, SELLER, TransactionType.CREATE_OFFER, dict(OFFER_PAYLOAD))
    return state, oid


def listed_offer(state: Optional[ChainState] = None) -> tuple[ChainState, bytes]:
    state, oid = created_offer(state)
    state = run(state, SELLER, TransactionType.LIST_OFFER, {"offer_id": oid})
    return state, oid


def accepted_offer(bond: int = BOND) -> tuple[ChainState, bytes]:
    state, oid = listed_offer()
    state = run(state, BUYER, TransactionType.ACCEPT_OFFER, {"offer_id": oid, "security_bond": bond})
    return state, oid


def fiat_sent_offer() -> tuple[ChainState, bytes]:
    state, oid = accepted_offer()
    state = run(state, BUYER, TransactionType.MARK_FIAT_SENT, {"offer_id": oid})
    return state, oid


def releasable_offer() -> tuple[ChainState, bytes]:
    state, oid = fiat_sent_offer()
    state = run(state, SELLER, TransactionType.CONFIRM_FIAT_RECEIPT, {"offer_id": oid})
    return state, oid


def open_dispute_payload(oid: bytes, respondent: bytes = SELLER) -> dict:
    return {"offer_id": oid, "respondent": respondent, "reason": "payment was sent but not confirmed"}


def disputed_offer() -> tuple[ChainState, bytes, bytes]:
    """Accepted offer with a dispute opened by the buyer."""
    state, oid = accepted_offer()
    state = run(state, BUYER, TransactionType.OPEN_DISPUTE, open_dispute_payload(oid))
    return state, oid, dispute_id(oid)


def dispute_with_jurors() -> tuple[ChainState, bytes, bytes]:
    state, oid, did = disputed_offer()
    state = run(state, ADMIN, TransactionType.ASSIGN_JURORS, {"dispute_id": did, "jurors": list(JURORS)})
    return state, oid, did


def evidence_payload(did: bytes, url: str = "https://evidence.example/receipt.png") -> dict:
    return {"dispute_id": did, "evidence_url": url}


def dispute_in_evidence() -> tuple[ChainState, bytes, bytes]:
    state, oid, did = dispute_with_jurors()
    state = run(state, BUYER, TransactionType.SUBMIT_EVIDENCE, evidence_payload(did))
    return state, oid, did


def vote(state: ChainState, juror: bytes, did: bytes, for_buyer: bool, *, at: Optional[int] = None) -> ChainState:
    return run(state, juror, TransactionType.CAST_VOTE,
               {"dispute_id": did, "vote_for_buyer": for_buyer}, at=at)


def verdict_reached(for_buyer: bool = True) -> tuple[ChainState, bytes, bytes]:
    state, oid, did = dispute_in_evidence()
    state = vote(state, CAROL, did, for_buyer)
    state = vote(state, DAVE, did, for_buyer)
    return state, oid, did


def verdict_payload(oid: bytes, did: bytes) -> dict:
    return {"dispute_id": did, "offer_id": oid, "buyer": BUYER, "seller": SELLER}
