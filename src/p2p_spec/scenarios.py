"""YAML scenario replay.

A scenario file names its parties, funds them, then lists transactions with
the outcome each one must produce::

    name: happy_path
    timestamp: 1000
    accounts: {alice: 3000000000, bob: 1000000000}
    steps:
      - tx: create_offer
        from: alice
        save: trade
        payload: {amount: 1000000000, fiat_amount: 100,
                  fiat_currency: USD, payment_method: bank}
      - tx: list_offer
        from: alice
        payload: {offer_id: "@trade"}
    expect:
      offer_status: {trade: LISTED}

Strings starting with ``@`` refer to a party name or to an id saved by an
earlier step (``save`` on ``create_offer`` stores the offer id, on
``open_dispute`` the dispute id).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .ids import dispute_id, escrow_address, offer_id
from .state_transition import apply_tx
from .test_accounts import account_key
from .types import (
    AccountState,
    ChainState,
    DisputeStatus,
    OfferStatus,
    Transaction,
    TransactionType,
    TxVersion,
)

logger = logging.getLogger(__name__)


@dataclass
class Mismatch:
    """One expectation that the replay did not meet."""
    field: str
    expected: Any
    actual: Any
    step: Optional[int] = None


@dataclass
class StepOutcome:
    index: int
    tx_type: str
    source: str
    ok: bool
    error: Optional[str]
    events: list[str]


@dataclass
class ScenarioResult:
    name: str
    path: Optional[str]
    steps: list[StepOutcome] = field(default_factory=list)
    mismatches: list[Mismatch] = field(default_factory=list)
    execution_time_ms: float = 0.0
    state: Optional[ChainState] = field(default=None, repr=False)

    @property
    def passed(self) -> bool:
        return not self.mismatches


def load_scenario(path: str | Path) -> dict[str, Any]:
    """Read and sanity-check one scenario file."""
    with open(path) as f:
        doc = yaml.safe_load(f)
    if not isinstance(doc, dict):
        raise ValueError(f"{path}: scenario must be a mapping")
    if "name" not in doc or not isinstance(doc.get("steps"), list):
        raise ValueError(f"{path}: scenario needs a name and a list of steps")
    doc.setdefault("_path", str(path))
    return doc


def find_scenario_files(directory: str | Path) -> list[Path]:
    root = Path(directory)
    return sorted(list(root.rglob("*.yaml")) + list(root.rglob("*.yml")))


class _Symbols:
    def __init__(self) -> None:
        self._names: dict[str, bytes] = {}

    def party(self, name: str) -> bytes:
        key = self._names.get(name)
        if key is None:
            key = account_key(name)
            self._names[name] = key
        return key

    def save(self, name: str, value: bytes) -> None:
        self._names[name] = value

    def lookup(self, name: str) -> bytes:
        # Anything not saved by a step is a party name.
        if name in self._names:
            return self._names[name]
        return self.party(name)

    def resolve(self, value: Any) -> Any:
        if isinstance(value, str) and value.startswith("@"):
            return self.lookup(value[1:])
        if isinstance(value, list):
            return [self.resolve(v) for v in value]
        if isinstance(value, dict):
            return {k: self.resolve(v) for k, v in value.items()}
        return value


def _build_state(doc: dict[str, Any], symbols: _Symbols) -> ChainState:
    state = ChainState(network_chain_id=doc.get("chain_id", 0))
    state.global_state.timestamp = doc.get("timestamp", 0)
    for name, balance in (doc.get("accounts") or {}).items():
        addr = symbols.party(name)
        state.accounts[addr] = AccountState(address=addr, balance=int(balance))
    return state


def _make_tx(state: ChainState, step: dict[str, Any], symbols: _Symbols) -> Transaction:
    source = symbols.lookup(step["from"])
    account = state.accounts.get(source)
    nonce = step.get("nonce", account.nonce if account is not None else 0)
    return Transaction(
        version=TxVersion.T1,
        chain_id=step.get("chain_id", state.network_chain_id),
        source=source,
        tx_type=TransactionType(step["tx"]),
        payload=symbols.resolve(step.get("payload") or {}),
        nonce=nonce,
    )


def _save_reference(tx: Transaction, name: str, symbols: _Symbols) -> None:
    if tx.tx_type == TransactionType.CREATE_OFFER:
        symbols.save(name, offer_id(tx.source, tx.nonce))
    elif tx.tx_type == TransactionType.OPEN_DISPUTE:
        symbols.save(name, dispute_id(tx.payload["offer_id"]))
    else:
        raise ValueError(f"cannot save a reference from {tx.tx_type.value}")


def _check_final(
    state: ChainState, expect: dict[str, Any], symbols: _Symbols, out: list[Mismatch]
) -> None:
    for name, want in (expect.get("balances") or {}).items():
        acct = state.accounts.get(symbols.lookup(name))
        got = acct.balance if acct is not None else 0
        if got != want:
            out.append(Mismatch(f"balances.{name}", want, got))

    for ref, want in (expect.get("vault_balances") or {}).items():
        acct = state.accounts.get(escrow_address(symbols.lookup(ref)))
        got = acct.balance if acct is not None else 0
        if got != want:
            out.append(Mismatch(f"vault_balances.{ref}", want, got))

    for ref, want in (expect.get("offer_status") or {}).items():
        offer = state.offers.get(symbols.lookup(ref))
        got = offer.status.name if offer is not None else None
        if got != OfferStatus[want].name:
            out.append(Mismatch(f"offer_status.{ref}", want, got))

    for ref, want in (expect.get("dispute_status") or {}).items():
        dispute = state.disputes.get(symbols.lookup(ref))
        got = dispute.status.name if dispute is not None else None
        if got != DisputeStatus[want].name:
            out.append(Mismatch(f"dispute_status.{ref}", want, got))

    for ref, want in (expect.get("votes") or {}).items():
        dispute = state.disputes.get(symbols.lookup(ref))
        got = [dispute.votes_for_buyer, dispute.votes_for_seller] if dispute else None
        if got != list(want):
            out.append(Mismatch(f"votes.{ref}", want, got))


def run_scenario(doc: dict[str, Any], stop_on_failure: bool = False) -> ScenarioResult:
    """Replay a loaded scenario and compare it against its expectations."""
    start = time.time()
    symbols = _Symbols()
    result = ScenarioResult(name=doc["name"], path=doc.get("_path"))
    state = _build_state(doc, symbols)

    for index, step in enumerate(doc["steps"]):
        tx = _make_tx(state, step, symbols)
        state, tr = apply_tx(state, tx, timestamp=step.get("at"))
        error = tr.error.code.name if tr.error else None
        outcome = StepOutcome(
            index=index,
            tx_type=tx.tx_type.value,
            source=step["from"],
            ok=tr.ok,
            error=error,
            events=[e.name for e in tr.events],
        )
        result.steps.append(outcome)
        logger.debug("step %d %s from %s -> %s", index, outcome.tx_type, outcome.source,
                     error or "ok")

        want = step.get("expect", "ok")
        got = "ok" if tr.ok else error
        if got != want:
            result.mismatches.append(Mismatch("outcome", want, got, step=index))
            if stop_on_failure:
                break
        for name in step.get("events", []):
            if name not in outcome.events:
                result.mismatches.append(Mismatch("events", name, outcome.events, step=index))

        if tr.ok and "save" in step:
            _save_reference(tx, step["save"], symbols)

    _check_final(state, doc.get("expect") or {}, symbols, result.mismatches)

    result.state = state
    result.execution_time_ms = (time.time() - start) * 1000
    logger.info("scenario %s: %s", result.name, "PASS" if result.passed else "FAIL")
    return result
