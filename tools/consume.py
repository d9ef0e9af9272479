"""Replay generated fixtures through apply_tx and compare outcomes."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from p2p_spec.state_digest import compute_state_digest  # noqa: E402
from p2p_spec.state_transition import apply_tx  # noqa: E402
from fixtures_io import state_from_json, state_to_json, tx_from_json  # noqa: E402


def _check_state_cases(data: dict) -> list[str]:
    failures: list[str] = []
    for case in data["cases"]:
        name = case["name"]
        post_state, result = apply_tx(state_from_json(case["pre_state"]), tx_from_json(case["tx"]))
        expected = case["expected"]

        if result.ok != expected["ok"]:
            failures.append(f"{name}: ok_mismatch")
            continue
        actual_err = result.error.code.name if result.error else None
        if actual_err != expected["error"]:
            failures.append(f"{name}: error_mismatch ({actual_err} != {expected['error']})")
            continue
        if "events" in expected and [e.name for e in result.events] != expected["events"]:
            failures.append(f"{name}: events_mismatch")

        want = expected.get("state_digest") or compute_state_digest(expected["post_state"])
        if compute_state_digest(state_to_json(post_state)) != want:
            failures.append(f"{name}: state_digest_mismatch")
    return failures


def _check_digest_vectors(data: dict) -> list[str]:
    return [
        f"{vec['name']}: digest_mismatch"
        for vec in data["test_vectors"]
        if "digest" in vec and compute_state_digest(vec["state"]) != vec["digest"]
    ]


@click.command()
@click.option("--fixtures", "fixtures_dir", default=str(ROOT / "fixtures"), show_default=True,
              help="Fixture tree written by tools/fill.py")
def main(fixtures_dir: str) -> None:
    failures: list[str] = []
    checked = 0
    for path in sorted(Path(fixtures_dir).rglob("*.json")):
        data = json.loads(path.read_text())
        rel = path.relative_to(fixtures_dir)
        if "cases" in data:
            found = _check_state_cases(data)
        elif "test_vectors" in data:
            found = _check_digest_vectors(data)
        else:
            continue
        checked += 1
        failures.extend(f"{rel}: {f}" for f in found)

    if failures:
        for f in failures:
            click.echo(f"FAIL {f}")
        sys.exit(1)

    click.echo(f"All fixtures passed ({checked} files)")


if __name__ == "__main__":
    main()
