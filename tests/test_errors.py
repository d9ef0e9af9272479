"""Error taxonomy checks."""

from __future__ import annotations

import pytest

from p2p_spec.errors import ErrorCategory, ErrorCode, SpecError, category_of, err


def test_program_codes_are_stable() -> None:
    assert ErrorCode.INVALID_OFFER_STATUS == 6000
    assert ErrorCode.INVALID_CURRENCY_CODE == 6019


@pytest.mark.parametrize(
    "code,category",
    [
        (ErrorCode.INVALID_OFFER_STATUS, ErrorCategory.STATUS),
        (ErrorCode.NOT_A_JUROR, ErrorCategory.AUTHORIZATION),
        (ErrorCode.INPUT_TOO_LONG, ErrorCategory.VALIDATION),
        (ErrorCode.TOO_MANY_EVIDENCE_ITEMS, ErrorCategory.RESOURCE),
        (ErrorCode.INVALID_ESCROW_BALANCE, ErrorCategory.ACCOUNTING),
        (ErrorCode.ALREADY_VOTED, ErrorCategory.DUPLICATE),
        (ErrorCode.DISPUTE_EXPIRED, ErrorCategory.TIME),
        (ErrorCode.NOT_IMPLEMENTED, ErrorCategory.INTERNAL),
    ],
)
def test_category(code, category) -> None:
    assert category_of(code) == category
    assert err(code, "x").category == category


def test_retryable_codes() -> None:
    assert err(ErrorCode.TOO_MANY_REQUESTS, "slow down").retryable
    assert err(ErrorCode.NONCE_TOO_HIGH, "future").retryable
    assert not err(ErrorCode.ALREADY_VOTED, "dup").retryable
    assert not err(ErrorCode.INSUFFICIENT_FUNDS, "poor").retryable


def test_str_and_raise() -> None:
    with pytest.raises(SpecError) as exc:
        raise err(ErrorCode.TIED_VOTE, "tie")
    assert str(exc.value) == "TIED_VOTE(6012): tie"
