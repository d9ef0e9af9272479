"""Dispute transaction specs.

Opened -> JurorsAssigned -> EvidenceSubmission -> Voting -> VerdictReached,
with Resolved set by verdict execution. Each dispute has exactly three jurors
and a strict majority (two votes) ends voting immediately.
"""

from __future__ import annotations

import logging
from copy import deepcopy

from ..account_model import checked_add_u8
from ..config import (
    DISPUTE_OPENING_COOLDOWN,
    EVIDENCE_SUBMISSION_DEADLINE,
    JUROR_COUNT,
    MAJORITY_VOTES,
    MAX_DISPUTE_REASON_LEN,
    MAX_EVIDENCE_ITEMS,
    MAX_EVIDENCE_URL_LEN,
    TOTAL_DISPUTE_DEADLINE,
    VOTING_DEADLINE,
)
from ..errors import ErrorCode, SpecError
from ..ids import dispute_id, vote_key
from ..side_effects import try_vote_cast
from ..types import (
    TERMINAL_OFFER_STATUSES,
    ChainState,
    Dispute,
    DisputeStatus,
    Event,
    OfferStatus,
    Transaction,
    TransactionType,
    VoteRecord,
    ZERO_KEY,
)
from ._common import (
    clean_text,
    get_dispute,
    get_offer,
    require_dispute_status,
    to_key,
    to_key_list,
)
from .admin import require_admin

logger = logging.getLogger(__name__)

_EVIDENCE_STATUSES = frozenset({DisputeStatus.JURORS_ASSIGNED, DisputeStatus.EVIDENCE_SUBMISSION})
_VOTING_STATUSES = frozenset({DisputeStatus.EVIDENCE_SUBMISSION, DisputeStatus.VOTING})


def verify(state: ChainState, tx: Transaction) -> None:
    p = tx.payload
    if not isinstance(p, dict):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "dispute payload must be dict")

    tt = tx.tx_type
    if tt == TransactionType.OPEN_DISPUTE:
        _verify_open(state, tx, p)
    elif tt == TransactionType.ASSIGN_JURORS:
        _verify_assign_jurors(state, tx, p)
    elif tt == TransactionType.SUBMIT_EVIDENCE:
        _verify_submit_evidence(state, tx, p)
    elif tt == TransactionType.CAST_VOTE:
        _verify_cast_vote(state, tx, p)
    else:
        raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported dispute tx type: {tt}")


def apply(state: ChainState, tx: Transaction) -> ChainState:
    p = tx.payload
    tt = tx.tx_type
    if tt == TransactionType.OPEN_DISPUTE:
        return _apply_open(state, tx, p)
    elif tt == TransactionType.ASSIGN_JURORS:
        return _apply_assign_jurors(state, tx, p)
    elif tt == TransactionType.SUBMIT_EVIDENCE:
        return _apply_submit_evidence(state, tx, p)
    elif tt == TransactionType.CAST_VOTE:
        return _apply_cast_vote(state, tx, p)
    raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported dispute tx type: {tt}")


# --- OPEN_DISPUTE ---

def _respondent_for(offer, initiator: bytes) -> bytes:
    if offer.seller != initiator and offer.buyer != initiator:
        raise SpecError(ErrorCode.UNAUTHORIZED, "only the seller or buyer can open a dispute")
    if offer.seller == initiator:
        if offer.buyer is None:
            raise SpecError(ErrorCode.UNAUTHORIZED, "offer has no counterparty yet")
        return offer.buyer
    return offer.seller


def _verify_open(state: ChainState, tx: Transaction, p: dict) -> None:
    clean_text(p.get("reason", ""), MAX_DISPUTE_REASON_LEN)
    offer = get_offer(state, p)

    if offer.dispute_id is not None or dispute_id(offer.id) in state.disputes:
        raise SpecError(ErrorCode.DISPUTE_ALREADY_EXISTS, "offer already has a dispute")
    if offer.status in TERMINAL_OFFER_STATUSES:
        raise SpecError(ErrorCode.INVALID_OFFER_STATUS, f"offer is {offer.status.name}")

    respondent = _respondent_for(offer, tx.source)
    if to_key(p.get("respondent")) != respondent:
        raise SpecError(ErrorCode.UNAUTHORIZED, "respondent is not the other party")

    last = state.last_dispute_opened_at.get(tx.source)
    if last is not None and state.now - last < DISPUTE_OPENING_COOLDOWN:
        raise SpecError(ErrorCode.TOO_MANY_REQUESTS, "dispute opened too recently")


def _apply_open(state: ChainState, tx: Transaction, p: dict) -> ChainState:
    ns = deepcopy(state)
    now = ns.now
    offer = get_offer(ns, p)
    reason = clean_text(p.get("reason", ""), MAX_DISPUTE_REASON_LEN)
    did = dispute_id(offer.id)

    ns.disputes[did] = Dispute(
        id=did,
        offer=offer.id,
        initiator=tx.source,
        respondent=_respondent_for(offer, tx.source),
        reason=reason,
        status=DisputeStatus.OPENED,
        created_at=now,
    )
    offer.dispute_id = did
    offer.status = OfferStatus.DISPUTE_OPENED
    offer.updated_at = now
    ns.last_dispute_opened_at[tx.source] = now

    ns.events.append(Event("DisputeOpened", {
        "dispute": did,
        "offer": offer.id,
        "initiator": tx.source,
        "reason": reason,
    }))
    return ns


# --- ASSIGN_JURORS ---

def _verify_assign_jurors(state: ChainState, tx: Transaction, p: dict) -> None:
    require_admin(state, tx)
    dispute = get_dispute(state, p)
    require_dispute_status(dispute, (DisputeStatus.OPENED,))

    jurors = to_key_list(p.get("jurors", []))
    if len(jurors) != JUROR_COUNT:
        raise SpecError(ErrorCode.INVALID_JUROR, f"exactly {JUROR_COUNT} jurors required")
    if ZERO_KEY in jurors or len(set(jurors)) != JUROR_COUNT:
        raise SpecError(ErrorCode.INVALID_JUROR, "jurors must be distinct and set")
    if dispute.initiator in jurors or dispute.respondent in jurors:
        raise SpecError(ErrorCode.INVALID_JUROR, "a party cannot sit on its own jury")


def _apply_assign_jurors(state: ChainState, tx: Transaction, p: dict) -> ChainState:
    ns = deepcopy(state)
    dispute = get_dispute(ns, p)
    dispute.jurors = list(to_key_list(p.get("jurors", [])))
    dispute.status = DisputeStatus.JURORS_ASSIGNED
    ns.events.append(Event("JurorsAssigned", {
        "dispute": dispute.id,
        "jurors": list(dispute.jurors),
    }))
    return ns


# --- SUBMIT_EVIDENCE ---

def _evidence_side(state: ChainState, dispute: Dispute, submitter: bytes) -> str:
    offer = state.offers.get(dispute.offer)
    if offer is not None and offer.buyer == submitter:
        return "buyer"
    return "seller"


def _verify_submit_evidence(state: ChainState, tx: Transaction, p: dict) -> None:
    clean_text(p.get("evidence_url", ""), MAX_EVIDENCE_URL_LEN)
    dispute = get_dispute(state, p)
    require_dispute_status(dispute, _EVIDENCE_STATUSES)

    if tx.source not in (dispute.initiator, dispute.respondent):
        raise SpecError(ErrorCode.UNAUTHORIZED, "only dispute parties can submit evidence")

    side = _evidence_side(state, dispute, tx.source)
    count = dispute.evidence_buyer_count if side == "buyer" else dispute.evidence_seller_count
    if count >= MAX_EVIDENCE_ITEMS:
        raise SpecError(ErrorCode.TOO_MANY_EVIDENCE_ITEMS, f"{side} evidence list is full")


def _apply_submit_evidence(state: ChainState, tx: Transaction, p: dict) -> ChainState:
    ns = deepcopy(state)
    dispute = get_dispute(ns, p)
    url = clean_text(p.get("evidence_url", ""), MAX_EVIDENCE_URL_LEN)

    if _evidence_side(ns, dispute, tx.source) == "buyer":
        dispute.evidence_buyer[dispute.evidence_buyer_count] = url
        dispute.evidence_buyer_count += 1
    else:
        dispute.evidence_seller[dispute.evidence_seller_count] = url
        dispute.evidence_seller_count += 1

    if dispute.status == DisputeStatus.JURORS_ASSIGNED:
        dispute.status = DisputeStatus.EVIDENCE_SUBMISSION

    ns.events.append(Event("EvidenceSubmitted", {
        "dispute": dispute.id,
        "submitter": tx.source,
        "evidence_url": url,
    }))
    return ns


# --- CAST_VOTE ---

def check_vote_deadline(dispute: Dispute, now: int) -> None:
    """Deadline guards for voting, evaluated against the supplied clock."""
    elapsed = now - dispute.created_at
    if elapsed > TOTAL_DISPUTE_DEADLINE:
        raise SpecError(ErrorCode.DISPUTE_EXPIRED, "dispute deadline has passed")
    if (
        dispute.status == DisputeStatus.VOTING
        and elapsed > EVIDENCE_SUBMISSION_DEADLINE + VOTING_DEADLINE
    ):
        raise SpecError(ErrorCode.DISPUTE_EXPIRED, "voting window has closed")


def _verify_cast_vote(state: ChainState, tx: Transaction, p: dict) -> None:
    if not isinstance(p.get("vote_for_buyer"), bool):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "vote_for_buyer must be bool")
    dispute = get_dispute(state, p)
    require_dispute_status(dispute, _VOTING_STATUSES)
    if tx.source == ZERO_KEY or tx.source not in dispute.jurors:
        raise SpecError(ErrorCode.NOT_A_JUROR, "signer is not a juror for this dispute")
    check_vote_deadline(dispute, state.now)
    if vote_key(dispute.id, tx.source) in state.votes:
        raise SpecError(ErrorCode.ALREADY_VOTED, "juror has already voted")


def _apply_cast_vote(state: ChainState, tx: Transaction, p: dict) -> ChainState:
    ns = deepcopy(state)
    dispute = get_dispute(ns, p)
    vote_for_buyer = p["vote_for_buyer"]

    key = vote_key(dispute.id, tx.source)
    if key in ns.votes:
        raise SpecError(ErrorCode.ALREADY_VOTED, "vote record already exists")
    ns.votes[key] = VoteRecord(
        dispute=dispute.id,
        juror=tx.source,
        vote_for_buyer=vote_for_buyer,
        timestamp=ns.now,
    )

    if dispute.total_votes >= JUROR_COUNT:
        raise SpecError(ErrorCode.ALREADY_VOTED, "all jurors have voted")
    if vote_for_buyer:
        dispute.votes_for_buyer = checked_add_u8(dispute.votes_for_buyer, 1)
    else:
        dispute.votes_for_seller = checked_add_u8(dispute.votes_for_seller, 1)

    if dispute.status == DisputeStatus.EVIDENCE_SUBMISSION:
        dispute.status = DisputeStatus.VOTING
    if dispute.votes_for_buyer >= MAJORITY_VOTES or dispute.votes_for_seller >= MAJORITY_VOTES:
        dispute.status = DisputeStatus.VERDICT_REACHED
        logger.info(
            "dispute %s reached verdict (%d buyer / %d seller)",
            dispute.id.hex()[:16], dispute.votes_for_buyer, dispute.votes_for_seller,
        )

    ns.events.append(Event("VoteCast", {
        "dispute": dispute.id,
        "juror": tx.source,
        "vote_for_buyer": vote_for_buyer,
    }))
    _ = try_vote_cast(ns, tx.source)
    return ns
