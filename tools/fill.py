"""Run the test suite and write its cases out as JSON fixtures."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

import click

ROOT = Path(__file__).resolve().parent.parent


@click.command()
@click.option("--output", default=str(ROOT / "fixtures"), show_default=True,
              help="Directory that receives the fixture tree")
@click.option("-k", "select", default=None, help="Only fill tests matching this pytest expression")
def main(output: str, select: Optional[str]) -> None:
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join([str(ROOT / "src"), str(ROOT), str(ROOT / "tests")])

    cmd = [sys.executable, "-m", "pytest", str(ROOT / "tests"), "-q", "--output", output]
    if select:
        cmd += ["-k", select]
    click.echo("Running: " + " ".join(cmd))
    sys.exit(subprocess.call(cmd, env=env, cwd=str(ROOT)))


if __name__ == "__main__":
    main()
