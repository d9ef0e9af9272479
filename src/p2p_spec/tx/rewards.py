"""Reward token transaction specs.

Accrual only updates bookkeeping; tokens are minted when a user claims.
"""

from __future__ import annotations

from copy import deepcopy

from ..account_model import checked_add
from ..config import (
    MAX_REWARD_RATE_PER_TRADE,
    MAX_REWARD_RATE_PER_VOTE,
    MAX_TRADE_VOLUME_LIMIT,
    MIN_TRADE_VOLUME_LIMIT,
    REWARD_UPDATE_INTERVAL,
)
from ..errors import ErrorCode, SpecError
from ..types import ChainState, Event, RewardToken, Transaction, TransactionType, UserRewards
from ._common import to_amount
from .admin import require_admin


def _check_rates(p: dict) -> None:
    if to_amount(p.get("reward_rate_per_trade", 0)) > MAX_REWARD_RATE_PER_TRADE:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "reward_rate_per_trade too high")
    if to_amount(p.get("reward_rate_per_vote", 0)) > MAX_REWARD_RATE_PER_VOTE:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "reward_rate_per_vote too high")
    min_volume = to_amount(p.get("min_trade_volume", 0))
    if min_volume < MIN_TRADE_VOLUME_LIMIT or min_volume > MAX_TRADE_VOLUME_LIMIT:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "min_trade_volume out of range")


def accrue_trade(state: ChainState, user: bytes, volume: int) -> int:
    """Credit trade rewards; returns the amount earned (0 below the volume floor)."""
    token = state.reward_token
    if token is None:
        raise SpecError(ErrorCode.REWARD_TOKEN_NOT_INITIALIZED, "reward token not initialized")
    rewards = state.user_rewards.get(user)
    if rewards is None:
        raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "user rewards not found")
    if volume < token.min_trade_volume:
        return 0

    amount = token.reward_rate_per_trade
    rewards.total_earned = checked_add(rewards.total_earned, amount)
    rewards.unclaimed_balance = checked_add(rewards.unclaimed_balance, amount)
    rewards.trading_volume = checked_add(rewards.trading_volume, volume)
    rewards.last_trade_reward = state.now
    state.events.append(Event("RewardsEarned", {
        "user": user, "amount": amount, "reason": "trade", "timestamp": state.now,
    }))
    return amount


def accrue_vote(state: ChainState, user: bytes) -> int:
    token = state.reward_token
    if token is None:
        raise SpecError(ErrorCode.REWARD_TOKEN_NOT_INITIALIZED, "reward token not initialized")
    rewards = state.user_rewards.get(user)
    if rewards is None:
        raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "user rewards not found")

    amount = token.reward_rate_per_vote
    rewards.total_earned = checked_add(rewards.total_earned, amount)
    rewards.unclaimed_balance = checked_add(rewards.unclaimed_balance, amount)
    rewards.governance_votes = checked_add(rewards.governance_votes, 1)
    rewards.last_vote_reward = state.now
    state.events.append(Event("RewardsEarned", {
        "user": user, "amount": amount, "reason": "vote", "timestamp": state.now,
    }))
    return amount


def verify(state: ChainState, tx: Transaction) -> None:
    p = tx.payload
    tt = tx.tx_type
    if tt == TransactionType.CREATE_REWARD_TOKEN:
        require_admin(state, tx)
        if state.reward_token is not None:
            raise SpecError(ErrorCode.ACCOUNT_EXISTS, "reward token already exists")
        _check_rates(p)
    elif tt == TransactionType.UPDATE_REWARD_TOKEN:
        require_admin(state, tx)
        token = state.reward_token
        if token is None:
            raise SpecError(ErrorCode.REWARD_TOKEN_NOT_INITIALIZED, "reward token not initialized")
        if token.last_updated > 0 and state.now - token.last_updated < REWARD_UPDATE_INTERVAL:
            raise SpecError(ErrorCode.TOO_MANY_REQUESTS, "reward token updated too recently")
        _check_rates(p)
    elif tt == TransactionType.CREATE_USER_REWARDS:
        if tx.source in state.user_rewards:
            raise SpecError(ErrorCode.ACCOUNT_EXISTS, "user rewards already exist")
    elif tt == TransactionType.CLAIM_REWARDS:
        if state.reward_token is None:
            raise SpecError(ErrorCode.REWARD_TOKEN_NOT_INITIALIZED, "reward token not initialized")
        rewards = state.user_rewards.get(tx.source)
        if rewards is None:
            raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "user rewards not found")
        if rewards.unclaimed_balance == 0:
            raise SpecError(ErrorCode.NO_REWARDS_TO_CLAIM, "no rewards to claim")
    else:
        raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported rewards tx type: {tt}")


def apply(state: ChainState, tx: Transaction) -> ChainState:
    ns = deepcopy(state)
    p = tx.payload
    tt = tx.tx_type
    now = ns.now

    if tt == TransactionType.CREATE_REWARD_TOKEN:
        ns.reward_token = RewardToken(
            authority=tx.source,
            reward_rate_per_trade=p.get("reward_rate_per_trade", 0),
            reward_rate_per_vote=p.get("reward_rate_per_vote", 0),
            min_trade_volume=p.get("min_trade_volume", 0),
            created_at=now,
            last_updated=now,
        )
        ns.events.append(Event("RewardTokenCreated", {
            "authority": tx.source,
            "reward_rate_per_trade": ns.reward_token.reward_rate_per_trade,
            "reward_rate_per_vote": ns.reward_token.reward_rate_per_vote,
        }))
    elif tt == TransactionType.UPDATE_REWARD_TOKEN:
        token = ns.reward_token
        token.reward_rate_per_trade = p.get("reward_rate_per_trade", 0)
        token.reward_rate_per_vote = p.get("reward_rate_per_vote", 0)
        token.min_trade_volume = p.get("min_trade_volume", 0)
        token.last_updated = now
        ns.events.append(Event("RewardTokenUpdated", {
            "authority": tx.source,
            "reward_rate_per_trade": token.reward_rate_per_trade,
            "reward_rate_per_vote": token.reward_rate_per_vote,
            "min_trade_volume": token.min_trade_volume,
            "timestamp": now,
        }))
    elif tt == TransactionType.CREATE_USER_REWARDS:
        ns.user_rewards[tx.source] = UserRewards(user=tx.source)
    elif tt == TransactionType.CLAIM_REWARDS:
        rewards = ns.user_rewards[tx.source]
        amount = rewards.unclaimed_balance
        # Mint first; bookkeeping only moves once the mint succeeded.
        ns.reward_token.total_supply = checked_add(ns.reward_token.total_supply, amount)
        ns.reward_balances[tx.source] = checked_add(ns.reward_balances.get(tx.source, 0), amount)
        rewards.total_claimed = checked_add(rewards.total_claimed, amount)
        rewards.unclaimed_balance = 0
        ns.events.append(Event("RewardsClaimed", {
            "user": tx.source, "amount": amount, "timestamp": now,
        }))
    return ns
