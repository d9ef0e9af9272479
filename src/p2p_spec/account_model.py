"""Account model rules: bounded integer arithmetic and balance movement."""

from __future__ import annotations

from .config import U8_MAX, U32_MAX, U64_MAX
from .errors import ErrorCode, SpecError
from .types import AccountState, ChainState


def checked_add(a: int, b: int, limit: int = U64_MAX) -> int:
    total = a + b
    if total > limit:
        raise SpecError(ErrorCode.MATH_OVERFLOW, "arithmetic overflow")
    return total


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise SpecError(ErrorCode.MATH_OVERFLOW, "arithmetic underflow")
    return a - b


def checked_add_u8(a: int, b: int) -> int:
    return checked_add(a, b, U8_MAX)


def checked_add_u32(a: int, b: int) -> int:
    return checked_add(a, b, U32_MAX)


def debit(state: ChainState, address: bytes, amount: int) -> None:
    """Take ``amount`` from an existing account."""
    account = state.accounts.get(address)
    if account is None:
        raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "account not found")
    if account.balance < amount:
        raise SpecError(ErrorCode.INSUFFICIENT_FUNDS, "insufficient funds")
    account.balance -= amount


def credit(state: ChainState, address: bytes, amount: int) -> None:
    """Give ``amount`` to an account, creating it on first receipt."""
    account = state.accounts.get(address)
    if account is None:
        account = AccountState(address=address)
        state.accounts[address] = account
    account.balance = checked_add(account.balance, amount)


def balance_of(state: ChainState, address: bytes) -> int:
    account = state.accounts.get(address)
    return account.balance if account is not None else 0
