"""Offer lifecycle transaction specs.

Created -> Listed -> Accepted -> FiatSent -> SolReleased -> Completed, with
Cancelled reachable from Created/Listed and DisputeOpened handled by the
dispute specs. Every transition is gated on the offer's current status.
"""

from __future__ import annotations

import logging
from copy import deepcopy

from ..account_model import balance_of, checked_add
from ..config import (
    FIAT_CURRENCY_CODE_LEN,
    MAX_FIAT_CURRENCY_LEN,
    MAX_PAYMENT_METHOD_LEN,
    OFFER_CREATION_COOLDOWN,
)
from ..errors import ErrorCode, SpecError
from ..ids import offer_id
from ..side_effects import try_trade_completed
from ..types import ChainState, Event, Offer, OfferStatus, Transaction, TransactionType
from ..vault import issue_authority, load_vault, open_vault, vault_reserve
from ._common import clean_text, get_offer, require_offer_status, to_amount, to_key

logger = logging.getLogger(__name__)

# Required status for each transition out of an existing offer.
TRANSITIONS: dict[TransactionType, tuple[frozenset[OfferStatus], OfferStatus]] = {
    TransactionType.LIST_OFFER: (frozenset({OfferStatus.CREATED}), OfferStatus.LISTED),
    TransactionType.ACCEPT_OFFER: (frozenset({OfferStatus.LISTED}), OfferStatus.ACCEPTED),
    TransactionType.MARK_FIAT_SENT: (frozenset({OfferStatus.ACCEPTED}), OfferStatus.FIAT_SENT),
    TransactionType.CONFIRM_FIAT_RECEIPT: (
        frozenset({OfferStatus.FIAT_SENT}), OfferStatus.SOL_RELEASED,
    ),
    TransactionType.RELEASE_FUNDS: (frozenset({OfferStatus.SOL_RELEASED}), OfferStatus.COMPLETED),
    TransactionType.CANCEL_OFFER: (
        frozenset({OfferStatus.CREATED, OfferStatus.LISTED}), OfferStatus.CANCELLED,
    ),
}


def validate_currency(value: object) -> str:
    currency = clean_text(value, MAX_FIAT_CURRENCY_LEN)
    if len(currency) != FIAT_CURRENCY_CODE_LEN:
        raise SpecError(ErrorCode.INVALID_CURRENCY_CODE, "currency code must be 3 letters")
    if not all("A" <= c <= "Z" for c in currency):
        raise SpecError(ErrorCode.INVALID_CURRENCY_CODE, "currency code must be uppercase ASCII")
    return currency


def verify(state: ChainState, tx: Transaction) -> None:
    p = tx.payload
    if not isinstance(p, dict):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "offer payload must be dict")

    tt = tx.tx_type
    if tt == TransactionType.CREATE_OFFER:
        _verify_create(state, tx, p)
        return
    if tt not in TRANSITIONS:
        raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported offer tx type: {tt}")

    offer = get_offer(state, p)
    require_offer_status(offer, TRANSITIONS[tt][0])
    if tt == TransactionType.ACCEPT_OFFER:
        _verify_accept(state, tx, p, offer)
    elif tt == TransactionType.MARK_FIAT_SENT:
        if offer.buyer is None or offer.buyer != tx.source:
            raise SpecError(ErrorCode.UNAUTHORIZED, "only the buyer can mark fiat sent")
    elif tt == TransactionType.RELEASE_FUNDS:
        _verify_release(state, tx, p, offer)
    elif offer.seller != tx.source:
        # LIST_OFFER, CONFIRM_FIAT_RECEIPT, CANCEL_OFFER
        raise SpecError(ErrorCode.UNAUTHORIZED, "only the seller can do this")


def apply(state: ChainState, tx: Transaction) -> ChainState:
    p = tx.payload
    tt = tx.tx_type
    if tt == TransactionType.CREATE_OFFER:
        return _apply_create(state, tx, p)
    if tt == TransactionType.ACCEPT_OFFER:
        return _apply_accept(state, tx, p)
    if tt == TransactionType.RELEASE_FUNDS:
        return _apply_release(state, tx, p)
    if tt == TransactionType.CANCEL_OFFER:
        return _apply_cancel(state, tx, p)
    if tt in (TransactionType.LIST_OFFER, TransactionType.MARK_FIAT_SENT,
              TransactionType.CONFIRM_FIAT_RECEIPT):
        return _apply_simple_transition(state, tx, p)
    raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported offer tx type: {tt}")


# --- CREATE_OFFER ---

def _verify_create(state: ChainState, tx: Transaction, p: dict) -> None:
    validate_currency(p.get("fiat_currency", ""))
    clean_text(p.get("payment_method", ""), MAX_PAYMENT_METHOD_LEN)

    amount = to_amount(p.get("amount", 0))
    fiat_amount = to_amount(p.get("fiat_amount", 0))
    if amount == 0 or fiat_amount == 0:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "amount and fiat_amount must be > 0")

    last = state.last_offer_created_at.get(tx.source)
    if last is not None and state.now - last < OFFER_CREATION_COOLDOWN:
        raise SpecError(ErrorCode.TOO_MANY_REQUESTS, "offer created too recently")

    if offer_id(tx.source, tx.nonce) in state.offers:
        raise SpecError(ErrorCode.ACCOUNT_EXISTS, "offer already exists")

    required = checked_add(amount, vault_reserve(state))
    if balance_of(state, tx.source) < required:
        raise SpecError(ErrorCode.INSUFFICIENT_FUNDS, "insufficient balance to fund escrow")


def _apply_create(state: ChainState, tx: Transaction, p: dict) -> ChainState:
    ns = deepcopy(state)
    now = ns.now
    oid = offer_id(tx.source, tx.nonce)
    amount = p.get("amount", 0)
    currency = validate_currency(p.get("fiat_currency", ""))

    offer = Offer(
        id=oid,
        seller=tx.source,
        amount=amount,
        fiat_amount=p.get("fiat_amount", 0),
        fiat_currency=currency,
        payment_method=clean_text(p.get("payment_method", ""), MAX_PAYMENT_METHOD_LEN),
        status=OfferStatus.CREATED,
        created_at=now,
        updated_at=now,
    )
    ns.offers[oid] = offer

    vault = open_vault(ns, oid)
    # The seller pays the vault's reserve on creation, then locks the amount.
    vault.fund(tx.source, vault.reserve)
    vault.fund(tx.source, amount)
    ns.last_offer_created_at[tx.source] = now

    ns.events.append(Event("OfferCreated", {
        "offer": oid,
        "seller": tx.source,
        "amount": amount,
        "fiat_amount": offer.fiat_amount,
        "fiat_currency": currency,
    }))
    return ns


# --- ACCEPT_OFFER ---

def _verify_accept(state: ChainState, tx: Transaction, p: dict, offer: Offer) -> None:
    if tx.source == offer.seller:
        raise SpecError(ErrorCode.UNAUTHORIZED, "seller cannot accept own offer")
    bond = to_amount(p.get("security_bond", 0))
    if balance_of(state, tx.source) < bond:
        raise SpecError(ErrorCode.INSUFFICIENT_FUNDS, "insufficient balance for security bond")


def _apply_accept(state: ChainState, tx: Transaction, p: dict) -> ChainState:
    ns = deepcopy(state)
    offer = get_offer(ns, p)
    bond = p.get("security_bond", 0)

    offer.buyer = tx.source
    offer.security_bond = bond
    offer.status = OfferStatus.ACCEPTED
    offer.updated_at = ns.now
    load_vault(ns, offer.id).fund(tx.source, bond)

    ns.events.append(Event("OfferAccepted", {
        "offer": offer.id,
        "buyer": tx.source,
        "security_bond": bond,
    }))
    return ns


# --- LIST_OFFER / MARK_FIAT_SENT / CONFIRM_FIAT_RECEIPT ---

_SIMPLE_EVENTS = {
    TransactionType.LIST_OFFER: ("OfferListed", "seller"),
    TransactionType.MARK_FIAT_SENT: ("FiatSent", "buyer"),
    TransactionType.CONFIRM_FIAT_RECEIPT: ("FiatReceiptConfirmed", "seller"),
}


def _apply_simple_transition(state: ChainState, tx: Transaction, p: dict) -> ChainState:
    ns = deepcopy(state)
    offer = get_offer(ns, p)
    offer.status = TRANSITIONS[tx.tx_type][1]
    offer.updated_at = ns.now
    name, role = _SIMPLE_EVENTS[tx.tx_type]
    ns.events.append(Event(name, {"offer": offer.id, role: tx.source}))
    return ns


# --- RELEASE_FUNDS ---

def _verify_release(state: ChainState, tx: Transaction, p: dict, offer: Offer) -> None:
    if offer.seller != tx.source:
        raise SpecError(ErrorCode.UNAUTHORIZED, "only the seller can release funds")
    if offer.buyer is None:
        raise SpecError(ErrorCode.INVALID_OFFER_STATUS, "offer has no buyer")
    if to_key(p.get("buyer")) != offer.buyer:
        raise SpecError(ErrorCode.UNAUTHORIZED, "payout account is not the offer's buyer")


def _apply_release(state: ChainState, tx: Transaction, p: dict) -> ChainState:
    ns = deepcopy(state)
    offer = get_offer(ns, p)
    vault = load_vault(ns, offer.id)

    balance, reserve = vault.reconcile(offer, tolerance=0)
    transferable = balance - reserve
    vault.pay_out(issue_authority(vault), offer.buyer, transferable)

    offer.status = OfferStatus.COMPLETED
    offer.updated_at = ns.now
    ns.events.append(Event("FundsReleased", {
        "offer": offer.id,
        "buyer": offer.buyer,
        "amount": transferable,
    }))
    logger.info("offer %s released %d to buyer", offer.id.hex()[:16], transferable)

    _ = try_trade_completed(ns, offer.seller, offer.buyer, balance)
    return ns


# --- CANCEL_OFFER ---

def _apply_cancel(state: ChainState, tx: Transaction, p: dict) -> ChainState:
    ns = deepcopy(state)
    offer = get_offer(ns, p)
    vault = load_vault(ns, offer.id)

    balance, reserve = vault.reconcile(offer, tolerance=0)
    refund = balance - reserve
    vault.pay_out(issue_authority(vault), offer.seller, refund)

    offer.status = OfferStatus.CANCELLED
    offer.updated_at = ns.now
    ns.events.append(Event("OfferCancelled", {
        "offer": offer.id,
        "seller": offer.seller,
        "refund": refund,
    }))
    return ns
