"""Helpers to serialize/deserialize P2P exchange state and transactions as JSON fixtures."""

from __future__ import annotations

from typing import Any, Optional

from p2p_spec.types import (
    AccountState,
    AdminConfig,
    ChainState,
    Dispute,
    DisputeStatus,
    EscrowAccount,
    Offer,
    OfferStatus,
    RentSchedule,
    Reputation,
    RewardToken,
    Transaction,
    TransactionType,
    TxVersion,
    UserRewards,
    VoteRecord,
)


def _hex_to_bytes(v: str) -> bytes:
    return bytes.fromhex(v)


def _bytes_to_hex(v: bytes) -> str:
    return v.hex()


def _opt_hex(v: Optional[bytes]) -> Optional[str]:
    return _bytes_to_hex(v) if v is not None else None


def _opt_bytes(v: Optional[str]) -> Optional[bytes]:
    return _hex_to_bytes(v) if v else None


def _offer_to_json(o: Offer) -> dict[str, Any]:
    return {
        "id": _bytes_to_hex(o.id),
        "seller": _bytes_to_hex(o.seller),
        "buyer": _opt_hex(o.buyer),
        "amount": o.amount,
        "security_bond": o.security_bond,
        "fiat_amount": o.fiat_amount,
        "fiat_currency": o.fiat_currency,
        "payment_method": o.payment_method,
        "status": int(o.status),
        "created_at": o.created_at,
        "updated_at": o.updated_at,
        "dispute_id": _opt_hex(o.dispute_id),
    }


def _dispute_to_json(d: Dispute) -> dict[str, Any]:
    return {
        "id": _bytes_to_hex(d.id),
        "offer": _bytes_to_hex(d.offer),
        "initiator": _bytes_to_hex(d.initiator),
        "respondent": _bytes_to_hex(d.respondent),
        "reason": d.reason,
        "status": int(d.status),
        "jurors": [_bytes_to_hex(j) for j in d.jurors],
        "evidence_buyer": list(d.evidence_buyer),
        "evidence_buyer_count": d.evidence_buyer_count,
        "evidence_seller": list(d.evidence_seller),
        "evidence_seller_count": d.evidence_seller_count,
        "votes_for_buyer": d.votes_for_buyer,
        "votes_for_seller": d.votes_for_seller,
        "created_at": d.created_at,
        "resolved_at": d.resolved_at,
    }


def state_to_json(state: ChainState) -> dict[str, Any]:
    result: dict[str, Any] = {
        "network_chain_id": state.network_chain_id,
        "global_state": {
            "block_height": state.global_state.block_height,
            "timestamp": state.global_state.timestamp,
        },
        "rent": {
            "lamports_per_byte_year": state.rent.lamports_per_byte_year,
            "exemption_threshold_years": state.rent.exemption_threshold_years,
        },
        "accounts": [
            {
                "address": _bytes_to_hex(a.address),
                "balance": a.balance,
                "nonce": a.nonce,
            }
            for a in state.accounts.values()
        ],
        "offers": [_offer_to_json(o) for o in state.offers.values()],
        "escrows": [
            {"offer": _bytes_to_hex(e.offer), "address": _bytes_to_hex(e.address)}
            for e in state.escrows.values()
        ],
        "disputes": [_dispute_to_json(d) for d in state.disputes.values()],
        "votes": [
            {
                "key": _bytes_to_hex(key),
                "dispute": _bytes_to_hex(v.dispute),
                "juror": _bytes_to_hex(v.juror),
                "vote_for_buyer": v.vote_for_buyer,
                "timestamp": v.timestamp,
            }
            for key, v in state.votes.items()
        ],
    }

    if state.admin is not None:
        result["admin"] = {
            "authorities": [_bytes_to_hex(a) for a in state.admin.authorities],
            "threshold": state.admin.threshold,
        }

    if state.reputations:
        result["reputations"] = [
            {
                "user": _bytes_to_hex(r.user),
                "successful_trades": r.successful_trades,
                "disputed_trades": r.disputed_trades,
                "disputes_won": r.disputes_won,
                "disputes_lost": r.disputes_lost,
                "rating": r.rating,
                "last_updated": r.last_updated,
            }
            for r in state.reputations.values()
        ]

    if state.reward_token is not None:
        t = state.reward_token
        result["reward_token"] = {
            "authority": _bytes_to_hex(t.authority),
            "reward_rate_per_trade": t.reward_rate_per_trade,
            "reward_rate_per_vote": t.reward_rate_per_vote,
            "min_trade_volume": t.min_trade_volume,
            "total_supply": t.total_supply,
            "created_at": t.created_at,
            "last_updated": t.last_updated,
        }

    if state.user_rewards:
        result["user_rewards"] = [
            {
                "user": _bytes_to_hex(u.user),
                "total_earned": u.total_earned,
                "total_claimed": u.total_claimed,
                "unclaimed_balance": u.unclaimed_balance,
                "trading_volume": u.trading_volume,
                "governance_votes": u.governance_votes,
                "last_trade_reward": u.last_trade_reward,
                "last_vote_reward": u.last_vote_reward,
            }
            for u in state.user_rewards.values()
        ]

    if state.reward_balances:
        result["reward_balances"] = [
            {"user": _bytes_to_hex(user), "amount": amount}
            for user, amount in state.reward_balances.items()
        ]

    for field in ("last_offer_created_at", "last_dispute_opened_at"):
        stamps = getattr(state, field)
        if stamps:
            result[field] = [
                {"user": _bytes_to_hex(user), "timestamp": ts} for user, ts in stamps.items()
            ]

    return result


def state_from_json(data: dict[str, Any]) -> ChainState:
    state = ChainState(network_chain_id=data["network_chain_id"])
    gs = data.get("global_state", {})
    state.global_state.block_height = gs.get("block_height", 0)
    state.global_state.timestamp = gs.get("timestamp", 0)

    rent = data.get("rent")
    if rent:
        state.rent = RentSchedule(
            lamports_per_byte_year=rent["lamports_per_byte_year"],
            exemption_threshold_years=rent["exemption_threshold_years"],
        )

    for a in data.get("accounts", []):
        acct = AccountState(
            address=_hex_to_bytes(a["address"]),
            balance=a.get("balance", 0),
            nonce=a.get("nonce", 0),
        )
        state.accounts[acct.address] = acct

    for o in data.get("offers", []):
        offer = Offer(
            id=_hex_to_bytes(o["id"]),
            seller=_hex_to_bytes(o["seller"]),
            amount=o["amount"],
            fiat_amount=o["fiat_amount"],
            fiat_currency=o["fiat_currency"],
            payment_method=o["payment_method"],
            status=OfferStatus(o["status"]),
            buyer=_opt_bytes(o.get("buyer")),
            security_bond=o.get("security_bond", 0),
            created_at=o.get("created_at", 0),
            updated_at=o.get("updated_at", 0),
            dispute_id=_opt_bytes(o.get("dispute_id")),
        )
        state.offers[offer.id] = offer

    for e in data.get("escrows", []):
        rec = EscrowAccount(offer=_hex_to_bytes(e["offer"]), address=_hex_to_bytes(e["address"]))
        state.escrows[rec.offer] = rec

    for d in data.get("disputes", []):
        dispute = Dispute(
            id=_hex_to_bytes(d["id"]),
            offer=_hex_to_bytes(d["offer"]),
            initiator=_hex_to_bytes(d["initiator"]),
            respondent=_hex_to_bytes(d["respondent"]),
            reason=d["reason"],
            status=DisputeStatus(d["status"]),
            jurors=[_hex_to_bytes(j) for j in d["jurors"]],
            evidence_buyer=list(d["evidence_buyer"]),
            evidence_buyer_count=d["evidence_buyer_count"],
            evidence_seller=list(d["evidence_seller"]),
            evidence_seller_count=d["evidence_seller_count"],
            votes_for_buyer=d.get("votes_for_buyer", 0),
            votes_for_seller=d.get("votes_for_seller", 0),
            created_at=d.get("created_at", 0),
            resolved_at=d.get("resolved_at", 0),
        )
        state.disputes[dispute.id] = dispute

    for v in data.get("votes", []):
        state.votes[_hex_to_bytes(v["key"])] = VoteRecord(
            dispute=_hex_to_bytes(v["dispute"]),
            juror=_hex_to_bytes(v["juror"]),
            vote_for_buyer=v["vote_for_buyer"],
            timestamp=v.get("timestamp", 0),
        )

    admin = data.get("admin")
    if admin:
        state.admin = AdminConfig(
            authorities=[_hex_to_bytes(a) for a in admin["authorities"]],
            threshold=admin.get("threshold", 1),
        )

    for r in data.get("reputations", []):
        rep = Reputation(
            user=_hex_to_bytes(r["user"]),
            successful_trades=r.get("successful_trades", 0),
            disputed_trades=r.get("disputed_trades", 0),
            disputes_won=r.get("disputes_won", 0),
            disputes_lost=r.get("disputes_lost", 0),
            rating=r.get("rating", 100),
            last_updated=r.get("last_updated", 0),
        )
        state.reputations[rep.user] = rep

    token = data.get("reward_token")
    if token:
        state.reward_token = RewardToken(
            authority=_hex_to_bytes(token["authority"]),
            reward_rate_per_trade=token["reward_rate_per_trade"],
            reward_rate_per_vote=token["reward_rate_per_vote"],
            min_trade_volume=token["min_trade_volume"],
            total_supply=token.get("total_supply", 0),
            created_at=token.get("created_at", 0),
            last_updated=token.get("last_updated", 0),
        )

    for u in data.get("user_rewards", []):
        rewards = UserRewards(
            user=_hex_to_bytes(u["user"]),
            total_earned=u.get("total_earned", 0),
            total_claimed=u.get("total_claimed", 0),
            unclaimed_balance=u.get("unclaimed_balance", 0),
            trading_volume=u.get("trading_volume", 0),
            governance_votes=u.get("governance_votes", 0),
            last_trade_reward=u.get("last_trade_reward", 0),
            last_vote_reward=u.get("last_vote_reward", 0),
        )
        state.user_rewards[rewards.user] = rewards

    for b in data.get("reward_balances", []):
        state.reward_balances[_hex_to_bytes(b["user"])] = b["amount"]

    for field in ("last_offer_created_at", "last_dispute_opened_at"):
        stamps = getattr(state, field)
        for entry in data.get(field, []):
            stamps[_hex_to_bytes(entry["user"])] = entry["timestamp"]

    return state


def _payload_to_json(payload: Any) -> Any:
    """Recursively convert a payload value, turning bytes into hex strings."""
    if payload is None:
        return None
    if isinstance(payload, (bytes, bytearray)):
        return _bytes_to_hex(bytes(payload))
    if isinstance(payload, dict):
        return {k: _payload_to_json(v) for k, v in payload.items()}
    if isinstance(payload, list):
        return [_payload_to_json(item) for item in payload]
    return payload


def tx_to_json(tx: Transaction) -> dict[str, Any]:
    return {
        "version": int(tx.version),
        "chain_id": tx.chain_id,
        "source": _bytes_to_hex(tx.source),
        "tx_type": tx.tx_type.value,
        "payload": _payload_to_json(tx.payload),
        "nonce": tx.nonce,
        "signature": _bytes_to_hex(tx.signature) if tx.signature else None,
    }


_BYTES_FIELDS: set[str] = {
    "offer_id", "dispute_id", "buyer", "seller", "respondent", "user",
}

_BYTES_LIST_FIELDS: set[str] = {"jurors", "authorities", "approvals"}


def _json_to_bytes_payload(payload: Any) -> Any:
    """Convert hex string fields of a JSON payload back to bytes."""
    if payload is None:
        return None
    if not isinstance(payload, dict):
        return payload
    result: dict[str, Any] = {}
    for key, value in payload.items():
        if key in _BYTES_FIELDS and isinstance(value, str) and value:
            result[key] = _hex_to_bytes(value)
        elif key in _BYTES_LIST_FIELDS and isinstance(value, list):
            result[key] = [
                _hex_to_bytes(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def tx_from_json(data: dict[str, Any]) -> Transaction:
    return Transaction(
        version=TxVersion(data["version"]),
        chain_id=data["chain_id"],
        source=_hex_to_bytes(data["source"]),
        tx_type=TransactionType(data["tx_type"]),
        payload=_json_to_bytes_payload(data.get("payload")),
        nonce=data["nonce"],
        signature=_hex_to_bytes(data["signature"]) if data.get("signature") else None,
    )
