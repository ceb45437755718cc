from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from tqdm.auto import tqdm

from .entities import DEFAULT_MAX_SIZE, Job, JobResult
from .sra import Toolkit, download_one
from .utils import detect_cpu_count, error, info, warning

MIN_DEFAULT_THREADS = 2


@dataclass(frozen=True)
class ThreadPlan:
    threads: int
    parallel: int
    detected_cores: int
    threads_from_user: bool
    parallel_from_user: bool

    def describe(self) -> str:
        t_src = "user" if self.threads_from_user else "auto"
        p_src = "user" if self.parallel_from_user else "auto"
        return (f"CPU cores={self.detected_cores} | threads/job={self.threads} ({t_src}) | "
                f"parallel jobs={self.parallel} ({p_src})")


def plan_threads(requested_threads: Optional[int] = None,
                 requested_parallel: Optional[int] = None,
                 detected_cores: Optional[int] = None) -> ThreadPlan:
    """
    Threads per fasterq-dump job and number of concurrent jobs.

    Explicit values are taken as-is (over-subscription is allowed); defaults
    keep threads * parallel roughly within the detected cores.
    """
    cores = detected_cores if detected_cores is not None else detect_cpu_count()

    threads = requested_threads if requested_threads is not None else max(MIN_DEFAULT_THREADS, cores // 2)
    parallel = requested_parallel if requested_parallel is not None else max(1, cores // max(1, threads))

    return ThreadPlan(
        threads=threads,
        parallel=parallel,
        detected_cores=cores,
        threads_from_user=requested_threads is not None,
        parallel_from_user=requested_parallel is not None,
    )


def run_batch(accessions: Sequence[str], *, toolkit: Toolkit, outdir: Path,
              threads: int, parallel: int, split_files: bool = False,
              max_size: str = DEFAULT_MAX_SIZE, log_path: Optional[Path] = None,
              progress: bool = True) -> List[JobResult]:
    """
    Run every accession through download_one on a fixed pool of `parallel`
    workers and wait for all of them.

    Jobs are dispatched in input order; results come back in input order.
    A failed job never stops its siblings.
    """
    outdir = Path(outdir)
    jobs = [Job(accession=a, threads=threads, outdir=outdir,
                split_files=split_files, max_size=max_size) for a in accessions]
    results: Dict[int, JobResult] = {}
    total = len(jobs)

    info(f"[orchestrator] start: {total} accession(s) | workers={parallel} | threads/job={threads}", log_path)
    if total == 0:
        return []

    ex = ThreadPoolExecutor(max_workers=max(1, parallel), thread_name_prefix="srafq")
    try:
        futs = {ex.submit(download_one, job, toolkit, log_path): i for i, job in enumerate(jobs)}
        with tqdm(total=total, desc="Download", unit="SRR", leave=True, disable=not progress) as pbar:
            for fut in as_completed(futs):
                i = futs[fut]
                try:
                    res = fut.result()
                except Exception as e:
                    error(f"[{jobs[i].accession}] unexpected error: {e}", log_path)
                    res = JobResult(accession=jobs[i].accession, status="failed", failed_step="internal")
                results[i] = res
                ok = sum(1 for r in results.values() if r.ok)
                pbar.set_postfix(ok=ok, fail=len(results) - ok)
                pbar.update(1)
    except KeyboardInterrupt:
        warning("Interrupted: cancelling queued accessions; running tools receive the signal.", log_path)
        ex.shutdown(wait=False, cancel_futures=True)
        raise
    ex.shutdown(wait=True)

    ordered = [results[i] for i in range(total)]
    ok = sum(1 for r in ordered if r.ok)
    info(f"[orchestrator] done. ok={ok}, fail={total - ok}", log_path)
    return ordered
