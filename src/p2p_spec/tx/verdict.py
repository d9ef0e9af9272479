"""Verdict execution spec.

Pays the whole transferable escrow balance to the side holding the jury
majority, then closes both the dispute and the offer.
"""

from __future__ import annotations

import logging
from copy import deepcopy

from ..config import VERDICT_BALANCE_TOLERANCE
from ..errors import ErrorCode, SpecError
from ..side_effects import try_dispute_resolved
from ..types import (
    ChainState,
    Dispute,
    DisputeStatus,
    Event,
    Offer,
    OfferStatus,
    Transaction,
    TransactionType,
)
from ..vault import expected_balance, issue_authority, load_vault
from ._common import get_dispute, get_offer, require_dispute_status, to_key
from .admin import require_admin

logger = logging.getLogger(__name__)


def majority_winner(dispute: Dispute, offer: Offer) -> tuple[bytes, bytes]:
    """Return (winner, loser); a tie is never a verdict."""
    if dispute.votes_for_buyer > dispute.votes_for_seller:
        return offer.buyer, offer.seller
    if dispute.votes_for_seller > dispute.votes_for_buyer:
        return offer.seller, offer.buyer
    raise SpecError(ErrorCode.TIED_VOTE, "tied vote cannot be executed")


def verify(state: ChainState, tx: Transaction) -> None:
    if tx.tx_type != TransactionType.EXECUTE_VERDICT:
        raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported verdict tx type: {tx.tx_type}")
    p = tx.payload
    if not isinstance(p, dict):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "verdict payload must be dict")

    require_admin(state, tx)
    dispute = get_dispute(state, p)
    require_dispute_status(dispute, (DisputeStatus.VERDICT_REACHED,))

    offer = get_offer(state, p)
    if dispute.offer != offer.id or offer.dispute_id != dispute.id:
        raise SpecError(ErrorCode.UNAUTHORIZED, "dispute is not linked to this offer")
    if offer.buyer is None or to_key(p.get("buyer")) != offer.buyer:
        raise SpecError(ErrorCode.UNAUTHORIZED, "buyer account does not match offer")
    if to_key(p.get("seller")) != offer.seller:
        raise SpecError(ErrorCode.UNAUTHORIZED, "seller account does not match offer")


def apply(state: ChainState, tx: Transaction) -> ChainState:
    ns = deepcopy(state)
    p = tx.payload
    now = ns.now
    dispute = get_dispute(ns, p)
    offer = get_offer(ns, p)
    vault = load_vault(ns, offer.id)

    balance = vault.balance
    reserve = vault.reserve
    if balance <= reserve:
        raise SpecError(ErrorCode.INSUFFICIENT_FUNDS, "escrow holds no transferable funds")
    vault.reconcile(offer, tolerance=VERDICT_BALANCE_TOLERANCE)

    winner, loser = majority_winner(dispute, offer)
    cap = expected_balance(offer, 0)
    amount = min(balance - reserve, cap)
    vault.pay_out(issue_authority(vault), winner, amount)

    ns.events.append(Event("VerdictExecuted", {
        "dispute": dispute.id,
        "winner": winner,
        "amount": amount,
    }))
    dispute.status = DisputeStatus.RESOLVED
    dispute.resolved_at = now
    offer.status = OfferStatus.COMPLETED
    offer.updated_at = now
    logger.info("dispute %s resolved, paid %d", dispute.id.hex()[:16], amount)

    _ = try_dispute_resolved(ns, winner, loser)
    return ns
