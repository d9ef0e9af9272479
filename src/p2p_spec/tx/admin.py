"""Admin bootstrap and threshold authorization."""

from __future__ import annotations

from copy import deepcopy

from ..config import MAX_ADMIN_AUTHORITIES
from ..errors import ErrorCode, SpecError
from ..types import AdminConfig, ChainState, Event, Transaction, TransactionType
from ._common import to_key, to_key_list


def require_admin(state: ChainState, tx: Transaction) -> None:
    """Signer plus distinct payload ``approvals`` must reach the admin threshold."""
    admin = state.admin
    if admin is None:
        raise SpecError(ErrorCode.ADMIN_REQUIRED, "admin not initialized")

    authorities = set(admin.authorities)
    signers = {tx.source}
    p = tx.payload if isinstance(tx.payload, dict) else {}
    for approver in to_key_list(p.get("approvals", [])):
        signers.add(approver)

    approved = len(signers & authorities)
    if tx.source not in authorities or approved < admin.threshold:
        raise SpecError(
            ErrorCode.ADMIN_REQUIRED,
            f"admin approvals {approved} below threshold {admin.threshold}",
        )


def verify(state: ChainState, tx: Transaction) -> None:
    if tx.tx_type != TransactionType.INITIALIZE_ADMIN:
        raise SpecError(ErrorCode.INVALID_TYPE, f"unsupported admin tx type: {tx.tx_type}")
    p = tx.payload
    if state.admin is not None:
        raise SpecError(ErrorCode.ACCOUNT_EXISTS, "admin already initialized")

    authorities = to_key_list(p.get("authorities", [tx.source]))
    if not authorities or len(authorities) > MAX_ADMIN_AUTHORITIES:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "invalid admin authority count")
    if len(set(authorities)) != len(authorities):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "duplicate admin authority")
    if tx.source not in authorities:
        raise SpecError(ErrorCode.UNAUTHORIZED, "initializer must be an admin authority")

    threshold = p.get("threshold", 1)
    if not isinstance(threshold, int) or threshold < 1 or threshold > len(authorities):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "invalid admin threshold")


def apply(state: ChainState, tx: Transaction) -> ChainState:
    ns = deepcopy(state)
    p = tx.payload
    authorities = to_key_list(p.get("authorities", [tx.source]))
    threshold = p.get("threshold", 1)
    ns.admin = AdminConfig(authorities=authorities, threshold=threshold)
    ns.events.append(Event("AdminInitialized", {
        "authority": to_key(tx.source),
        "authorities": authorities,
        "threshold": threshold,
    }))
    return ns
