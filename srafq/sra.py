# sra.py
from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Optional, Protocol

from .entities import DEFAULT_MAX_SIZE, Job, JobResult, ToolkitLocation, ToolResult
from .utils import info, success, error, report, run_cmd


class Toolkit(Protocol):
    """The two SRA Toolkit operations a job needs."""

    def fetch_archive(self, accession: str, outdir: Path, size_cap: str) -> ToolResult: ...

    def convert_to_fastq(self, accession: str, outdir: Path, threads: int,
                         split_files: bool = False) -> ToolResult: ...


class SraToolkit:
    """
    Toolkit backed by the real `prefetch` / `fasterq-dump` binaries.

    Both tools run with `cwd=outdir` so fasterq-dump picks up the
    `<outdir>/<accession>/` archive left by prefetch instead of streaming.
    """

    def __init__(self, location: ToolkitLocation, log_path: Path | None = None,
                 timeout: float | None = None):
        self.location = location
        self.log_path = log_path
        self.timeout = timeout

    def prefetch_cmd(self, accession: str, outdir: Path, size_cap: str = DEFAULT_MAX_SIZE) -> list[str]:
        return [str(self.location.prefetch), accession, "-O", str(outdir), "--max-size", size_cap]

    def fasterq_cmd(self, accession: str, outdir: Path, threads: int, split_files: bool = False) -> list[str]:
        cmd = [str(self.location.fasterq_dump), accession,
               "-O", str(outdir), "-t", str(outdir), "-e", str(threads)]
        if split_files:
            cmd.append("--split-files")
        return cmd

    def _run(self, tool: str, cmd: list[str], cwd: Path) -> ToolResult:
        report("COMMAND", " ".join(cmd), self.log_path)
        try:
            run_cmd(cmd, cwd, self.log_path, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            return ToolResult(tool, e.returncode, message=f"{tool} exit {e.returncode}")
        except subprocess.TimeoutExpired:
            return ToolResult(tool, -1, timed_out=True, message=f"{tool} timed out after {self.timeout:g}s")
        except OSError as e:
            return ToolResult(tool, -1, message=f"{tool} could not be started: {e}")
        return ToolResult(tool, 0)

    def fetch_archive(self, accession: str, outdir: Path, size_cap: str = DEFAULT_MAX_SIZE) -> ToolResult:
        return self._run("prefetch", self.prefetch_cmd(accession, outdir, size_cap), outdir)

    def convert_to_fastq(self, accession: str, outdir: Path, threads: int,
                         split_files: bool = False) -> ToolResult:
        return self._run("fasterq-dump", self.fasterq_cmd(accession, outdir, threads, split_files), outdir)


def _owns_staging_dir(job: Job) -> bool:
    """True only for a plain <outdir>/<accession> directory, never outdir or above."""
    acc = job.accession
    if acc in (".", "..") or Path(acc).name != acc:
        return False
    return job.staging_dir.parent.resolve() == job.outdir.resolve()


def _clean_staging(job: Job, log_path: Path | None) -> None:
    if _owns_staging_dir(job) and job.staging_dir.is_dir():
        info(f"Cleaning local SRA directory: {job.accession}/", log_path)
        shutil.rmtree(job.staging_dir, ignore_errors=True)


def download_one(job: Job, toolkit: Toolkit, log_path: Optional[Path] = None) -> JobResult:
    """
    Download one accession's FASTQ file(s):
      prefetch → fasterq-dump → remove <outdir>/<accession>/

    The staging directory is removed whatever the outcome. Failures are
    returned, never raised.
    """
    acc = job.accession
    result = JobResult(accession=acc)
    info(f"Processing accession: {acc}", log_path)

    try:
        info(f"[{acc}] Downloading SRA data with prefetch...", log_path)
        res = toolkit.fetch_archive(acc, job.outdir, job.max_size)
        result.steps.append(res)

        if res.ok:
            info(f"[{acc}] Converting to FASTQ with fasterq-dump (threads={job.threads})...", log_path)
            res = toolkit.convert_to_fastq(acc, job.outdir, job.threads, job.split_files)
            result.steps.append(res)

        if res.ok:
            result.status = "done"
            result.returncode = 0
        else:
            result.status = "failed"
            result.failed_step = res.tool
            result.returncode = res.returncode
    finally:
        _clean_staging(job, log_path)

    if result.ok:
        success(f"Finished accession: {acc}", log_path)
    else:
        error(f"Accession {acc} failed at {result.failed_step}: {res.message or 'non-zero exit'}", log_path)
    return result
