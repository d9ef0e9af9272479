"""
Configuration for the scenario runner.
"""

import fnmatch
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


@dataclass
class ScenarioConfig:
    """Settings for a scenario replay run."""
    # Paths
    scenario_dir: str = "vectors/scenarios"
    result_dir: str = "results"
    report_name: str = "scenario-report.json"

    # Selection and execution
    name_filter: Optional[str] = None
    stop_on_first_failure: bool = False
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "ScenarioConfig":
        """Load configuration from environment variables."""
        config = cls()
        config.scenario_dir = os.environ.get("SCENARIO_DIR", config.scenario_dir)
        config.result_dir = os.environ.get("RESULT_DIR", config.result_dir)
        config.name_filter = os.environ.get("SCENARIO_FILTER") or None
        config.verbose = _env_flag("VERBOSE")
        config.stop_on_first_failure = _env_flag("STOP_ON_FIRST_FAILURE")
        return config

    def selects(self, path: Path) -> bool:
        """True if the scenario file's stem matches the name filter (shell glob)."""
        return self.name_filter is None or fnmatch.fnmatch(path.stem, self.name_filter)

    @property
    def report_path(self) -> str:
        return os.path.join(self.result_dir, self.report_name)
