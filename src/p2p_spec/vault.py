"""Escrow vault custody rules.

A vault is an account whose address is derived from the offer id and the
``escrow`` seed, so no party holds a key for it. Anyone may deposit into it;
only a ``VaultAuthority`` issued here for that specific offer can move funds
out, and every payout must leave either nothing or at least the minimum
reserve behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .account_model import balance_of, checked_add, checked_sub, credit, debit
from .config import ACCOUNT_DISCRIMINATOR_LEN, ESCROW_ACCOUNT_LEN, ESCROW_SEED
from .errors import ErrorCode, SpecError
from .ids import derive_address, escrow_address
from .types import AccountState, ChainState, EscrowAccount, Offer

logger = logging.getLogger(__name__)

_ISSUER = object()


@dataclass(frozen=True)
class VaultAuthority:
    """Signing authority scoped to one vault's derivation seeds."""

    offer: bytes
    seeds: tuple[bytes, ...]
    _issuer: object = field(default=None, repr=False, compare=False)


def vault_reserve(state: ChainState) -> int:
    return state.rent.minimum_balance(ACCOUNT_DISCRIMINATOR_LEN + ESCROW_ACCOUNT_LEN)


def expected_balance(offer: Offer, reserve: int) -> int:
    return checked_add(checked_add(offer.amount, offer.security_bond), reserve)


class EscrowVault:
    """View over one vault record and its balance inside a working state."""

    def __init__(self, state: ChainState, record: EscrowAccount):
        self._state = state
        self.record = record

    @property
    def address(self) -> bytes:
        return self.record.address

    @property
    def offer(self) -> bytes:
        return self.record.offer

    @property
    def balance(self) -> int:
        return balance_of(self._state, self.record.address)

    @property
    def reserve(self) -> int:
        return vault_reserve(self._state)

    def fund(self, source: bytes, amount: int) -> None:
        """Direct deposit from ``source``; needs no vault authority."""
        if amount == 0:
            return
        debit(self._state, source, amount)
        credit(self._state, self.record.address, amount)

    def pay_out(self, authority: VaultAuthority, to: bytes, amount: int) -> None:
        self._check_authority(authority)
        balance = self.balance
        if amount > balance:
            raise SpecError(ErrorCode.INSUFFICIENT_FUNDS, "vault balance too low for payout")
        remaining = checked_sub(balance, amount)
        if 0 < remaining < self.reserve:
            raise SpecError(ErrorCode.INSUFFICIENT_FUNDS, "payout would leave vault below reserve")
        if amount == 0:
            return
        debit(self._state, self.record.address, amount)
        credit(self._state, to, amount)
        logger.debug("vault %s paid %d to %s", self.record.address.hex()[:16], amount, to.hex()[:16])

    def reconcile(self, offer: Offer, tolerance: int = 0) -> tuple[int, int]:
        """Assert the custodied balance matches the offer; returns (balance, reserve)."""
        balance = self.balance
        reserve = self.reserve
        expected = expected_balance(offer, reserve)
        if abs(balance - expected) > tolerance:
            raise SpecError(
                ErrorCode.INVALID_ESCROW_BALANCE,
                f"vault holds {balance}, expected {expected}",
            )
        return balance, reserve

    def _check_authority(self, authority: VaultAuthority) -> None:
        if authority._issuer is not _ISSUER:
            raise SpecError(ErrorCode.UNAUTHORIZED, "vault authority not issued by the program")
        if authority.offer != self.record.offer or authority.seeds != (ESCROW_SEED, self.record.offer):
            raise SpecError(ErrorCode.UNAUTHORIZED, "vault authority scoped to another offer")
        if derive_address(*authority.seeds) != self.record.address:
            raise SpecError(ErrorCode.UNAUTHORIZED, "vault authority does not derive vault address")


def issue_authority(vault: EscrowVault) -> VaultAuthority:
    return VaultAuthority(
        offer=vault.offer,
        seeds=(ESCROW_SEED, vault.offer),
        _issuer=_ISSUER,
    )


def open_vault(state: ChainState, offer: bytes) -> EscrowVault:
    if offer in state.escrows:
        raise SpecError(ErrorCode.ACCOUNT_EXISTS, "escrow vault already exists")
    address = escrow_address(offer)
    if address in state.accounts and state.accounts[address].balance != 0:
        raise SpecError(ErrorCode.ACCOUNT_EXISTS, "escrow address already funded")
    record = EscrowAccount(offer=offer, address=address)
    state.escrows[offer] = record
    state.accounts.setdefault(address, AccountState(address=address))
    return EscrowVault(state, record)


def load_vault(state: ChainState, offer: bytes) -> EscrowVault:
    record = state.escrows.get(offer)
    if record is None:
        raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "escrow vault not found")
    if record.address != escrow_address(offer):
        raise SpecError(ErrorCode.UNAUTHORIZED, "escrow vault address mismatch")
    return EscrowVault(state, record)
