"""Core types for the P2P exchange specs.

Records mirror the persisted program accounts: one Offer and one escrow vault
per trade, one Dispute per disputed offer, one VoteRecord per
(dispute, juror), plus the collaborator records (admin, reputation, rewards).
Identities are 32-byte public keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional

from .config import (
    ACCOUNT_STORAGE_OVERHEAD,
    DEFAULT_EXEMPTION_THRESHOLD_YEARS,
    DEFAULT_LAMPORTS_PER_BYTE_YEAR,
    INITIAL_RATING,
    JUROR_COUNT,
    MAX_EVIDENCE_ITEMS,
)

ZERO_KEY = bytes(32)


class TxVersion(IntEnum):
    T1 = 0x01


class TransactionType(Enum):
    # Trade lifecycle
    CREATE_OFFER = "create_offer"
    LIST_OFFER = "list_offer"
    ACCEPT_OFFER = "accept_offer"
    MARK_FIAT_SENT = "mark_fiat_sent"
    CONFIRM_FIAT_RECEIPT = "confirm_fiat_receipt"
    RELEASE_FUNDS = "release_funds"
    CANCEL_OFFER = "cancel_offer"
    # Disputes
    OPEN_DISPUTE = "open_dispute"
    ASSIGN_JURORS = "assign_jurors"
    SUBMIT_EVIDENCE = "submit_evidence"
    CAST_VOTE = "cast_vote"
    EXECUTE_VERDICT = "execute_verdict"
    # Collaborators
    INITIALIZE_ADMIN = "initialize_admin"
    CREATE_REPUTATION = "create_reputation"
    UPDATE_REPUTATION = "update_reputation"
    CREATE_REWARD_TOKEN = "create_reward_token"
    UPDATE_REWARD_TOKEN = "update_reward_token"
    CREATE_USER_REWARDS = "create_user_rewards"
    CLAIM_REWARDS = "claim_rewards"


class OfferStatus(IntEnum):
    CREATED = 0
    LISTED = 1
    ACCEPTED = 2
    FIAT_SENT = 3
    SOL_RELEASED = 4
    DISPUTE_OPENED = 5
    COMPLETED = 6
    CANCELLED = 7


TERMINAL_OFFER_STATUSES = frozenset({OfferStatus.COMPLETED, OfferStatus.CANCELLED})


class DisputeStatus(IntEnum):
    OPENED = 0
    JURORS_ASSIGNED = 1
    EVIDENCE_SUBMISSION = 2
    VOTING = 3
    VERDICT_REACHED = 4
    RESOLVED = 5


@dataclass
class Transaction:
    version: TxVersion
    chain_id: int
    source: bytes
    tx_type: TransactionType
    payload: dict[str, Any]
    nonce: int
    signature: Optional[bytes] = None


@dataclass
class AccountState:
    address: bytes
    balance: int = 0
    nonce: int = 0


@dataclass
class GlobalState:
    block_height: int = 0
    timestamp: int = 0


@dataclass
class RentSchedule:
    """Minimum-reserve calculator of the host ledger."""

    lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR
    exemption_threshold_years: int = DEFAULT_EXEMPTION_THRESHOLD_YEARS

    def minimum_balance(self, data_len: int) -> int:
        return (
            (ACCOUNT_STORAGE_OVERHEAD + data_len)
            * self.lamports_per_byte_year
            * self.exemption_threshold_years
        )


@dataclass
class Event:
    name: str
    fields: dict[str, Any] = field(default_factory=dict)


# --- Trade ---


@dataclass
class Offer:
    id: bytes
    seller: bytes
    amount: int
    fiat_amount: int
    fiat_currency: str
    payment_method: str
    status: OfferStatus = OfferStatus.CREATED
    buyer: Optional[bytes] = None
    security_bond: int = 0
    created_at: int = 0
    updated_at: int = 0
    dispute_id: Optional[bytes] = None


@dataclass
class EscrowAccount:
    """Custody record; the balance lives in ``ChainState.accounts[address]``."""

    offer: bytes
    address: bytes


# --- Disputes ---


def _empty_evidence() -> list[str]:
    return [""] * MAX_EVIDENCE_ITEMS


def _unassigned_jurors() -> list[bytes]:
    return [ZERO_KEY] * JUROR_COUNT


@dataclass
class Dispute:
    id: bytes
    offer: bytes
    initiator: bytes
    respondent: bytes
    reason: str
    status: DisputeStatus = DisputeStatus.OPENED
    jurors: list[bytes] = field(default_factory=_unassigned_jurors)
    evidence_buyer: list[str] = field(default_factory=_empty_evidence)
    evidence_buyer_count: int = 0
    evidence_seller: list[str] = field(default_factory=_empty_evidence)
    evidence_seller_count: int = 0
    votes_for_buyer: int = 0
    votes_for_seller: int = 0
    created_at: int = 0
    resolved_at: int = 0

    @property
    def total_votes(self) -> int:
        return self.votes_for_buyer + self.votes_for_seller

    @property
    def jurors_assigned(self) -> bool:
        return all(j != ZERO_KEY for j in self.jurors)


@dataclass(frozen=True)
class VoteRecord:
    dispute: bytes
    juror: bytes
    vote_for_buyer: bool
    timestamp: int


# --- Collaborators ---


@dataclass
class AdminConfig:
    authorities: list[bytes]
    threshold: int = 1


@dataclass
class Reputation:
    user: bytes
    successful_trades: int = 0
    disputed_trades: int = 0
    disputes_won: int = 0
    disputes_lost: int = 0
    rating: int = INITIAL_RATING
    last_updated: int = 0


@dataclass
class RewardToken:
    authority: bytes
    reward_rate_per_trade: int
    reward_rate_per_vote: int
    min_trade_volume: int
    total_supply: int = 0
    created_at: int = 0
    last_updated: int = 0


@dataclass
class UserRewards:
    user: bytes
    total_earned: int = 0
    total_claimed: int = 0
    unclaimed_balance: int = 0
    trading_volume: int = 0
    governance_votes: int = 0
    last_trade_reward: int = 0
    last_vote_reward: int = 0


# --- ChainState ---


@dataclass
class ChainState:
    accounts: dict[bytes, AccountState] = field(default_factory=dict)
    global_state: GlobalState = field(default_factory=GlobalState)
    network_chain_id: int = 0
    rent: RentSchedule = field(default_factory=RentSchedule)
    offers: dict[bytes, Offer] = field(default_factory=dict)
    escrows: dict[bytes, EscrowAccount] = field(default_factory=dict)
    disputes: dict[bytes, Dispute] = field(default_factory=dict)
    votes: dict[bytes, VoteRecord] = field(default_factory=dict)
    admin: Optional[AdminConfig] = None
    reputations: dict[bytes, Reputation] = field(default_factory=dict)
    reward_token: Optional[RewardToken] = None
    user_rewards: dict[bytes, UserRewards] = field(default_factory=dict)
    # Minted reward-token holdings per user.
    reward_balances: dict[bytes, int] = field(default_factory=dict)
    # Rate limiting bookkeeping, keyed by user.
    last_offer_created_at: dict[bytes, int] = field(default_factory=dict)
    last_dispute_opened_at: dict[bytes, int] = field(default_factory=dict)
    events: list[Event] = field(default_factory=list)

    @property
    def now(self) -> int:
        return self.global_state.timestamp
