from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import List

import click

from .cache_manager import list_fastqs, prepare_output_dir, purge_global_cache
from .entities import JobResult, RunConfig
from .orchestrator import run_batch
from .sra import SraToolkit
from .utils import human_size, info, log, success, warning


def prepare_runtime_environment(cfg: RunConfig) -> Path:
    """
    Create the output directory and open the log file with a run header.
    """
    outdir = prepare_output_dir(cfg.outdir)
    if cfg.log_path is not None:
        cfg.log_path.parent.mkdir(parents=True, exist_ok=True)
        log(f"\n\n{'=' * 60}", cfg.log_path)
        log(f"===== srafq start {datetime.now().isoformat()} =====", cfg.log_path)
        log(f"{'=' * 60}", cfg.log_path)
    info(f"Using output directory: {outdir}", cfg.log_path)
    return outdir


def print_fastq_listing(outdir: Path, log_path: Path | None = None) -> List[Path]:
    fastqs = list_fastqs(outdir)
    if not fastqs:
        warning("No .fastq files found (check logs for errors).", log_path)
        return fastqs
    for fq in fastqs:
        size = human_size(fq.stat().st_size)
        click.echo(f"{size:>8}  {fq.name}")
        log(f"{size:>8}  {fq.name}", log_path)
    return fastqs


def pipeline(cfg: RunConfig, *, progress: bool = True) -> List[JobResult]:
    """Download every accession of cfg, clean up, and report what was produced."""
    log_path = cfg.log_path
    outdir = prepare_runtime_environment(cfg)

    info(f"Threads for fasterq-dump: {cfg.threads}", log_path)
    info(f"Parallel jobs: {cfg.parallel}", log_path)
    info(f"Total accessions: {len(cfg)}", log_path)

    toolkit = SraToolkit(cfg.toolkit, log_path=log_path, timeout=cfg.timeout)
    results = run_batch(
        cfg.accessions,
        toolkit=toolkit,
        outdir=outdir,
        threads=cfg.threads,
        parallel=cfg.parallel,
        split_files=cfg.split_files,
        max_size=cfg.max_size,
        log_path=log_path,
        progress=progress,
    )

    # runs after the join, whatever the job outcomes
    if cfg.keep_cache:
        info("Keeping SRA Toolkit global cache (--keep-cache).", log_path)
    else:
        for d in purge_global_cache():
            info(f"Removed SRA Toolkit cache: {d}", log_path)

    failed = [r for r in results if not r.ok]
    click.echo("")
    if failed:
        warning(f"{len(failed)} of {len(results)} accession(s) failed: "
                + ", ".join(f"{r.accession} ({r.failed_step})" for r in failed), log_path)
    success("FASTQ download complete.", log_path)
    click.echo("")
    print_fastq_listing(outdir, log_path)
    return results
