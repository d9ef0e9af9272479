"""Reputation transaction specs.

Rating is a weighted average of the trade success rate (70%) and the dispute
win rate (30%), recomputed with integer division on every update.
"""

from __future__ import annotations

from copy import deepcopy

from ..account_model import checked_add_u32
from ..config import DISPUTE_WIN_RATE_WEIGHT, SUCCESS_RATE_WEIGHT
from ..errors import ErrorCode, SpecError
from ..types import ChainState, Event, Reputation, Transaction, TransactionType
from ._common import to_key
from .admin import require_admin


def record_outcome(
    rep: Reputation,
    *,
    successful_trade: bool,
    dispute_resolved: bool,
    dispute_won: bool,
    now: int,
) -> None:
    if successful_trade:
        rep.successful_trades = checked_add_u32(rep.successful_trades, 1)
    if dispute_resolved:
        rep.disputed_trades = checked_add_u32(rep.disputed_trades, 1)
        if dispute_won:
            rep.disputes_won = checked_add_u32(rep.disputes_won, 1)
        else:
            rep.disputes_lost = checked_add_u32(rep.disputes_lost, 1)

    total_trades = rep.successful_trades + rep.disputed_trades
    if total_trades > 0:
        success_rate = rep.successful_trades * 100 // total_trades
        if rep.disputed_trades > 0:
            dispute_win_rate = rep.disputes_won * 100 // rep.disputed_trades
        else:
            dispute_win_rate = 100
        rep.rating = (
            success_rate * SUCCESS_RATE_WEIGHT + dispute_win_rate * DISPUTE_WIN_RATE_WEIGHT
        ) // 100
    rep.last_updated = now


def reputation_event(rep: Reputation) -> Event:
    return Event("ReputationUpdated", {
        "user": rep.user,
        "successful_trades": rep.successful_trades,
        "rating": rep.rating,
    })


def verify(state: ChainState, tx: Transaction) -> None:
    p = tx.payload
    tt = tx.tx_type
    if tt == TransactionType.CREATE_REPUTATION:
        if tx.source in state.reputations:
            raise SpecError(ErrorCode.ACCOUNT_EXISTS, "reputation already exists")
    elif tt == TransactionType.UPDATE_REPUTATION:
        require_admin(state, tx)
        if to_key(p.get("user")) not in state.reputations:
            raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "reputation not found")
        for flag in ("successful_trade", "dispute_resolved", "dispute_won"):
            if not isinstance(p.get(flag, False), bool):
                raise SpecError(ErrorCode.INVALID_PAYLOAD, f"{flag} must be bool")
    else:
        raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported reputation tx type: {tt}")


def apply(state: ChainState, tx: Transaction) -> ChainState:
    ns = deepcopy(state)
    p = tx.payload
    if tx.tx_type == TransactionType.CREATE_REPUTATION:
        ns.reputations[tx.source] = Reputation(user=tx.source, last_updated=ns.now)
        return ns

    rep = ns.reputations[to_key(p.get("user"))]
    record_outcome(
        rep,
        successful_trade=p.get("successful_trade", False),
        dispute_resolved=p.get("dispute_resolved", False),
        dispute_won=p.get("dispute_won", False),
        now=ns.now,
    )
    ns.events.append(reputation_event(rep))
    return ns
