"""Best-effort reward and reputation hooks.

Hooks run after a trade, vote or verdict has already been applied to the
working state. A hook either commits all of its own collaborator changes or
none of them, and reports failure through a ``HookResult`` instead of
raising, so it can never revert the operation that triggered it.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from typing import Callable, Optional

from .config import MIN_VOLUME_FOR_EVENT
from .errors import ErrorCode, SpecError
from .tx import reputation as tx_reputation
from .tx import rewards as tx_rewards
from .types import ChainState, Event

logger = logging.getLogger(__name__)


class HookResult:
    """Outcome of a side-channel call; callers are expected to discard it."""

    def __init__(self, ok: bool, error: Optional[SpecError] = None):
        self.ok = ok
        self.error = error

    @classmethod
    def success(cls) -> "HookResult":
        return cls(True)

    @classmethod
    def failure(cls, error: SpecError) -> "HookResult":
        return cls(False, error)


def _best_effort(state: ChainState, name: str, fn: Callable[[ChainState], None]) -> HookResult:
    reputations = deepcopy(state.reputations)
    user_rewards = deepcopy(state.user_rewards)
    event_mark = len(state.events)
    try:
        fn(state)
    except Exception as exc:
        state.reputations = reputations
        state.user_rewards = user_rewards
        del state.events[event_mark:]
        logger.warning("%s hook failed, core operation kept: %s", name, exc)
        if isinstance(exc, SpecError):
            return HookResult.failure(exc)
        return HookResult.failure(SpecError(ErrorCode.INTERNAL_ERROR, f"{type(exc).__name__}: {exc}"))
    return HookResult.success()


def _bump_reputation(
    state: ChainState, user: bytes, *, successful_trade: bool = False,
    dispute_resolved: bool = False, dispute_won: bool = False,
) -> None:
    rep = state.reputations.get(user)
    if rep is None:
        return
    tx_reputation.record_outcome(
        rep,
        successful_trade=successful_trade,
        dispute_resolved=dispute_resolved,
        dispute_won=dispute_won,
        now=state.now,
    )
    state.events.append(tx_reputation.reputation_event(rep))


def _has_rewards_account(state: ChainState, user: bytes) -> bool:
    return state.reward_token is not None and user in state.user_rewards


def try_trade_completed(state: ChainState, seller: bytes, buyer: bytes, volume: int) -> HookResult:
    def _run(s: ChainState) -> None:
        for user in (seller, buyer):
            _bump_reputation(s, user, successful_trade=True)
        if volume < MIN_VOLUME_FOR_EVENT:
            logger.debug("trade volume %d below reward event threshold", volume)
            return
        s.events.append(Event("RewardEligible", {
            "users": [seller, buyer],
            "trade_volume": volume,
            "reward_type": "trade",
            "timestamp": s.now,
        }))
        for user in (seller, buyer):
            if _has_rewards_account(s, user):
                tx_rewards.accrue_trade(s, user, volume)

    return _best_effort(state, "trade", _run)


def try_vote_cast(state: ChainState, juror: bytes) -> HookResult:
    def _run(s: ChainState) -> None:
        s.events.append(Event("RewardEligible", {
            "users": [juror],
            "trade_volume": 0,
            "reward_type": "vote",
            "timestamp": s.now,
        }))
        if _has_rewards_account(s, juror):
            tx_rewards.accrue_vote(s, juror)

    return _best_effort(state, "vote", _run)


def try_dispute_resolved(state: ChainState, winner: bytes, loser: bytes) -> HookResult:
    def _run(s: ChainState) -> None:
        _bump_reputation(s, winner, dispute_resolved=True, dispute_won=True)
        _bump_reputation(s, loser, dispute_resolved=True, dispute_won=False)

    return _best_effort(state, "verdict", _run)
