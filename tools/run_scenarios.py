#!/usr/bin/env python3
"""
Replay YAML trade scenarios against the Python specs.

Usage:
    python tools/run_scenarios.py --scenarios vectors/scenarios/
    python tools/run_scenarios.py --scenarios vectors/scenarios/c_dispute_verdict.yaml
"""

import json
import logging
import os
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import click

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from p2p_spec.scenarios import (  # noqa: E402
    ScenarioResult,
    find_scenario_files,
    load_scenario,
    run_scenario,
)
from p2p_spec.state_digest import compute_state_digest  # noqa: E402
from fixtures_io import state_to_json  # noqa: E402
from scenario_config import ScenarioConfig  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _result_to_dict(result: ScenarioResult) -> dict:
    return {
        "name": result.name,
        "path": result.path,
        "passed": result.passed,
        "execution_time_ms": result.execution_time_ms,
        "state_digest": compute_state_digest(state_to_json(result.state)),
        "steps": [asdict(s) for s in result.steps],
        "mismatches": [
            {
                "field": m.field,
                "expected": m.expected,
                "actual": m.actual,
                "step": m.step,
            }
            for m in result.mismatches
        ],
    }


def write_json_report(results: List[ScenarioResult], config: ScenarioConfig) -> str:
    os.makedirs(config.result_dir, exist_ok=True)
    path = config.report_path
    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "total": len(results),
        "passed": sum(1 for r in results if r.passed),
        "scenarios": [_result_to_dict(r) for r in results],
    }
    with open(path, "w") as f:
        json.dump(report, f, indent=2, default=str)
    return path


def print_summary(results: List[ScenarioResult]) -> None:
    passed = sum(1 for r in results if r.passed)
    print("=" * 60)
    print("P2P Exchange Scenario Report")
    print("=" * 60)
    for r in results:
        status = "PASS" if r.passed else "FAIL"
        print(f"  [{status}] {r.name} ({len(r.steps)} steps, {r.execution_time_ms:.2f}ms)")
        for m in r.mismatches:
            where = f"step {m.step} " if m.step is not None else ""
            print(f"      {where}{m.field}: expected {m.expected!r}, got {m.actual!r}")
    print("")
    print(f"Passed {passed}/{len(results)}")
    print("=" * 60)


@click.command()
@click.option(
    "--scenarios",
    default=None,
    help="Path to scenario directory or specific YAML file",
)
@click.option(
    "--result-dir",
    default=None,
    help="Directory to write the JSON report",
)
@click.option(
    "--filter",
    "name_filter",
    default=None,
    help="Only run scenarios whose file name matches this glob",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--stop-on-failure",
    is_flag=True,
    help="Stop a scenario at its first unexpected outcome",
)
def main(
    scenarios: Optional[str],
    result_dir: Optional[str],
    name_filter: Optional[str],
    verbose: bool,
    stop_on_failure: bool,
) -> None:
    """Run P2P exchange scenarios."""

    config = ScenarioConfig.from_env()

    if result_dir:
        config.result_dir = result_dir
    if name_filter:
        config.name_filter = name_filter
    if verbose:
        config.verbose = True
    if config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    if stop_on_failure:
        config.stop_on_first_failure = True

    target = scenarios or config.scenario_dir
    if os.path.isfile(target):
        files = [Path(target)]
    else:
        files = [p for p in find_scenario_files(target) if config.selects(p)]

    if not files:
        logger.error("No scenario files found in %s", target)
        sys.exit(1)

    logger.info("Found %d scenario files", len(files))

    results = []
    for path in files:
        doc = load_scenario(path)
        results.append(run_scenario(doc, stop_on_failure=config.stop_on_first_failure))

    report_path = write_json_report(results, config)
    logger.info("Report written to %s", report_path)
    print_summary(results)

    sys.exit(0 if all(r.passed for r in results) else 1)


if __name__ == "__main__":
    main()
