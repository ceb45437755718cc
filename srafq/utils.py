# utils.py
from __future__ import annotations

import os
import math
import subprocess
from pathlib import Path

import click
from tqdm.auto import tqdm

DEFAULT_CPU_COUNT = 4
CGROUP_CPU_MAX = Path("/sys/fs/cgroup/cpu.max")

# ─────────────────────────────────────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "INFO": "blue",
    "SUCCESS": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "COMMAND": "yellow",
}


def log(msg: str, log_path: Path | None) -> None:
    """Append a single line to the shared log file (no-op without one)."""
    if log_path is None:
        return
    with open(log_path, "a", buffering=1) as f:
        f.write(str(msg).rstrip() + "\n")


def report(level: str, msg: str, log_path: Path | None = None) -> None:
    """
    Print a colored `[LEVEL] message` line and mirror it into the log file.

    Lines go through `tqdm.write` so they do not tear an active progress bar.
    """
    tag = click.style(f"[{level}]", fg=_LEVEL_STYLES.get(level), bold=level in ("WARNING", "ERROR"))
    tqdm.write(f"{tag} {msg}")
    log(f"[{level}] {msg}", log_path)


def info(msg: str, log_path: Path | None = None) -> None:
    report("INFO", msg, log_path)


def success(msg: str, log_path: Path | None = None) -> None:
    report("SUCCESS", msg, log_path)


def warning(msg: str, log_path: Path | None = None) -> None:
    report("WARNING", msg, log_path)


def error(msg: str, log_path: Path | None = None) -> None:
    report("ERROR", msg, log_path)


def banner(title: str) -> None:
    click.echo("=" * 40)
    click.echo(f"  {title}")
    click.echo("=" * 40)


# ─────────────────────────────────────────────────────────────────────────────
# Subprocess helpers
# ─────────────────────────────────────────────────────────────────────────────

def run_cmd(cmd: list[str], cwd: Path | None, log_path: Path | None,
            timeout: float | None = None) -> None:
    """
    Run a command, teeing stdout/stderr to the log file when there is one
    (otherwise the terminal inherits them).
    Raises CalledProcessError on non-zero exit and TimeoutExpired on timeout.
    """
    cmd = [str(c) for c in cmd]
    if log_path is None:
        subprocess.run(cmd, cwd=cwd, check=True, timeout=timeout)
        return
    with open(log_path, "a", buffering=1) as f:
        f.write(f"## cwd: {cwd}\n")
        f.write(">> " + " ".join(cmd) + "\n")
        f.flush()
        subprocess.run(cmd, cwd=cwd, stdout=f, stderr=f, check=True, timeout=timeout)


# ─────────────────────────────────────────────────────────────────────────────
# System helpers
# ─────────────────────────────────────────────────────────────────────────────

def detect_cpu_count() -> int:
    """Detect usable CPU count (Docker/CGroups aware), falling back to 4."""
    try:
        with open(CGROUP_CPU_MAX) as f:
            quota, period = f.read().split()
            if quota != "max":
                return max(1, math.ceil(int(quota) / int(period)))
    except (OSError, ValueError):
        pass
    return os.cpu_count() or DEFAULT_CPU_COUNT


def human_size(n_bytes: int) -> str:
    """Format a byte count the way `ls -lh` does (1024-based, one decimal)."""
    if n_bytes < 1024:
        return f"{n_bytes}B"
    size = float(n_bytes)
    for unit in ("K", "M", "G"):
        size /= 1024
        if size < 1024:
            return f"{size:.1f}{unit}"
    return f"{size / 1024:.1f}T"


def expand_dir(value: str | Path) -> Path:
    """Expand `~` and drop a trailing slash, like the shell front-ends did."""
    return Path(str(value).rstrip("/") or "/").expanduser()
