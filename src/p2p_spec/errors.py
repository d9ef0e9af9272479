"""P2P exchange spec error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCategory(IntEnum):
    SUCCESS = 0x00
    STATUS = 0x01
    AUTHORIZATION = 0x02
    VALIDATION = 0x03
    RESOURCE = 0x04
    ACCOUNTING = 0x05
    DUPLICATE = 0x06
    TIME = 0x07
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Success
    SUCCESS = 0

    # Program errors (stable client-facing codes)
    INVALID_OFFER_STATUS = 6000
    INVALID_DISPUTE_STATUS = 6001
    UNAUTHORIZED = 6002
    INSUFFICIENT_FUNDS = 6003
    ALREADY_VOTED = 6004
    NOT_A_JUROR = 6005
    DISPUTE_ALREADY_EXISTS = 6006
    INVALID_AMOUNT = 6007
    INPUT_TOO_LONG = 6008
    ADMIN_REQUIRED = 6009
    TOO_MANY_EVIDENCE_ITEMS = 6010
    INVALID_UTF8 = 6011
    TIED_VOTE = 6012
    MATH_OVERFLOW = 6013
    NO_REWARDS_TO_CLAIM = 6014
    REWARD_TOKEN_NOT_INITIALIZED = 6015
    TOO_MANY_REQUESTS = 6016
    INVALID_ESCROW_BALANCE = 6017
    DISPUTE_EXPIRED = 6018
    INVALID_CURRENCY_CODE = 6019

    # Transaction plumbing
    INVALID_PAYLOAD = 0x0100
    INVALID_TYPE = 0x0101
    NONCE_TOO_LOW = 0x0110
    NONCE_TOO_HIGH = 0x0111
    INVALID_JUROR = 0x0120

    # State lookups
    ACCOUNT_NOT_FOUND = 0x0400
    ACCOUNT_EXISTS = 0x0401
    OFFER_NOT_FOUND = 0x0402
    DISPUTE_NOT_FOUND = 0x0403

    # Internal
    INTERNAL_ERROR = 0xFF00
    NOT_IMPLEMENTED = 0xFF01


_CATEGORIES: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.SUCCESS: ErrorCategory.SUCCESS,
    ErrorCode.INVALID_OFFER_STATUS: ErrorCategory.STATUS,
    ErrorCode.INVALID_DISPUTE_STATUS: ErrorCategory.STATUS,
    ErrorCode.UNAUTHORIZED: ErrorCategory.AUTHORIZATION,
    ErrorCode.NOT_A_JUROR: ErrorCategory.AUTHORIZATION,
    ErrorCode.ADMIN_REQUIRED: ErrorCategory.AUTHORIZATION,
    ErrorCode.INVALID_AMOUNT: ErrorCategory.VALIDATION,
    ErrorCode.INPUT_TOO_LONG: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_UTF8: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_CURRENCY_CODE: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_PAYLOAD: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_TYPE: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_JUROR: ErrorCategory.VALIDATION,
    ErrorCode.TOO_MANY_EVIDENCE_ITEMS: ErrorCategory.RESOURCE,
    ErrorCode.TOO_MANY_REQUESTS: ErrorCategory.RESOURCE,
    ErrorCode.INSUFFICIENT_FUNDS: ErrorCategory.ACCOUNTING,
    ErrorCode.TIED_VOTE: ErrorCategory.ACCOUNTING,
    ErrorCode.MATH_OVERFLOW: ErrorCategory.ACCOUNTING,
    ErrorCode.INVALID_ESCROW_BALANCE: ErrorCategory.ACCOUNTING,
    ErrorCode.NO_REWARDS_TO_CLAIM: ErrorCategory.ACCOUNTING,
    ErrorCode.ALREADY_VOTED: ErrorCategory.DUPLICATE,
    ErrorCode.DISPUTE_ALREADY_EXISTS: ErrorCategory.DUPLICATE,
    ErrorCode.ACCOUNT_EXISTS: ErrorCategory.DUPLICATE,
    ErrorCode.NONCE_TOO_LOW: ErrorCategory.DUPLICATE,
    ErrorCode.NONCE_TOO_HIGH: ErrorCategory.STATUS,
    ErrorCode.DISPUTE_EXPIRED: ErrorCategory.TIME,
    ErrorCode.REWARD_TOKEN_NOT_INITIALIZED: ErrorCategory.STATUS,
    ErrorCode.ACCOUNT_NOT_FOUND: ErrorCategory.STATUS,
    ErrorCode.OFFER_NOT_FOUND: ErrorCategory.STATUS,
    ErrorCode.DISPUTE_NOT_FOUND: ErrorCategory.STATUS,
}


_RETRY_LATER = frozenset({
    ErrorCode.TOO_MANY_REQUESTS,
    ErrorCode.NONCE_TOO_HIGH,
})


def category_of(code: ErrorCode) -> ErrorCategory:
    return _CATEGORIES.get(code, ErrorCategory.INTERNAL)


@dataclass(frozen=True)
class SpecError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({int(self.code)}): {self.message}"

    @property
    def category(self) -> ErrorCategory:
        return category_of(self.code)

    @property
    def retryable(self) -> bool:
        """True when the same call may succeed later without changing its arguments."""
        return self.code in _RETRY_LATER


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(("__traceback__", "__context__", "__cause__"))
_frozen_setattr = SpecError.__setattr__


def _spec_error_setattr(self: SpecError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


SpecError.__setattr__ = _spec_error_setattr  # type: ignore[method-assign]


def err(code: ErrorCode, message: str) -> SpecError:
    return SpecError(code=code, message=message)
