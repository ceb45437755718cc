import os
import stat
import threading
import time
from pathlib import Path

import pytest

from srafq.entities import ToolResult

# Stand-ins for the SRA Toolkit binaries. Both take the accession first and
# the output directory as the value of -O (argv $3), like the real tools.
PREFETCH_STUB = """#!/bin/sh
acc="$1"
out="$3"
[ -n "$STUB_CALLS" ] && echo "prefetch $*" >> "$STUB_CALLS"
[ -n "$STUB_SLEEP" ] && sleep "$STUB_SLEEP"
mkdir -p "$out/$acc"
case ",$FAIL_PREFETCH," in *",$acc,"*) echo "prefetch: cannot fetch $acc" >&2; exit 3;; esac
echo "sra" > "$out/$acc/$acc.sra"
exit 0
"""

FASTERQ_STUB = """#!/bin/sh
acc="$1"
out="$3"
[ -n "$STUB_CALLS" ] && echo "fasterq-dump $*" >> "$STUB_CALLS"
case ",$FAIL_FASTERQ," in *",$acc,"*) echo "partial" > "$out/$acc.fastq"; exit 4;; esac
[ -d "$acc" ] || { echo "no local archive for $acc" >&2; exit 5; }
echo "@$acc.1" > "$out/$acc.fastq"
exit 0
"""


def write_exe(path: Path, body: str) -> Path:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def stub_bin(tmp_path):
    """A bin directory holding fake prefetch and fasterq-dump."""
    d = tmp_path / "stub_bin"
    d.mkdir()
    write_exe(d / "prefetch", PREFETCH_STUB)
    write_exe(d / "fasterq-dump", FASTERQ_STUB)
    return d


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point HOME and the record location into tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("SRAFQ_CONFIG", str(tmp_path / "install_paths.conf"))
    for var in ("FAIL_PREFETCH", "FAIL_FASTERQ", "STUB_SLEEP", "STUB_CALLS"):
        monkeypatch.delenv(var, raising=False)
    return home


class FakeToolkit:
    """In-process Toolkit that mimics prefetch/fasterq-dump on the filesystem."""

    def __init__(self, fail_prefetch=(), fail_convert=(), delay=0.0, raise_on=()):
        self.fail_prefetch = set(fail_prefetch)
        self.fail_convert = set(fail_convert)
        self.raise_on = set(raise_on)
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def fetch_archive(self, accession, outdir, size_cap):
        with self._lock:
            self.calls.append(("prefetch", accession, size_cap))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delay)
            if accession in self.raise_on:
                raise RuntimeError("toolkit exploded")
            (Path(outdir) / accession).mkdir(exist_ok=True)
            if accession in self.fail_prefetch:
                return ToolResult("prefetch", 3, message="prefetch exit 3")
            return ToolResult("prefetch", 0)
        finally:
            with self._lock:
                self.active -= 1

    def convert_to_fastq(self, accession, outdir, threads, split_files=False):
        with self._lock:
            self.calls.append(("fasterq-dump", accession, threads, split_files))
        if accession in self.fail_convert:
            return ToolResult("fasterq-dump", 4, message="fasterq-dump exit 4")
        (Path(outdir) / f"{accession}.fastq").write_text(f"@{accession}\n")
        return ToolResult("fasterq-dump", 0)


@pytest.fixture
def fake_toolkit():
    return FakeToolkit()


@pytest.fixture
def make_toolkit():
    return FakeToolkit
