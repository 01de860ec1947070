"""Helpers for tests that run build scripts in a subprocess."""

import os
import subprocess
import sys
from pathlib import Path

SRC_DIR = Path(__file__).parent.parent.parent / "src"


def run_build_script(script: Path, args, cwd: Path) -> subprocess.CompletedProcess:
    """Run a build script with the current interpreter and capture its output."""
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
    env["NO_COLOR"] = "1"
    env["COLUMNS"] = "200"
    return subprocess.run(
        [sys.executable, str(script), *args],
        cwd=cwd,
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )
