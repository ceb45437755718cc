from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

DEFAULT_OUTDIR = Path("sra_fastq_download")
DEFAULT_MAX_SIZE = "100G"


# ------------------------------- Toolkit -------------------------------

@dataclass(frozen=True)
class ToolkitLocation:
    """Resolved paths to the two SRA Toolkit executables."""
    prefetch: Path
    fasterq_dump: Path

    def __repr__(self) -> str:
        return f"<ToolkitLocation prefetch={self.prefetch} fasterq-dump={self.fasterq_dump}>"


# ------------------------------- Config -------------------------------

@dataclass(frozen=True)
class RunConfig:
    """
    Central, immutable configuration of one batch.

    Built by the CLI once options and defaults are resolved; the pipeline and
    the orchestrator only ever read it.
    """
    accessions: Tuple[str, ...]
    outdir: Path
    threads: int
    parallel: int
    toolkit: ToolkitLocation
    keep_cache: bool = False
    split_files: bool = False
    max_size: str = DEFAULT_MAX_SIZE
    timeout: Optional[float] = None
    log_path: Optional[Path] = None
    input_spec: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "accessions", tuple(self.accessions))
        object.__setattr__(self, "outdir", Path(self.outdir).expanduser().resolve())
        if self.log_path is not None:
            object.__setattr__(self, "log_path", Path(self.log_path).expanduser().resolve())

    def __len__(self) -> int:
        return len(self.accessions)

    def __repr__(self) -> str:
        return (f"<RunConfig accessions={len(self.accessions)} output={self.outdir} "
                f"threads={self.threads} parallel={self.parallel}>")


# -------------------------------- Jobs --------------------------------

@dataclass(frozen=True)
class Job:
    """One accession's fetch + convert + cleanup unit of work."""
    accession: str
    threads: int
    outdir: Path
    split_files: bool = False
    max_size: str = DEFAULT_MAX_SIZE

    @property
    def staging_dir(self) -> Path:
        return self.outdir / self.accession


@dataclass(frozen=True)
class ToolResult:
    tool: str
    returncode: int
    timed_out: bool = False
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


@dataclass
class JobResult:
    accession: str
    status: str = "pending"  # "pending" | "done" | "failed"
    failed_step: Optional[str] = None
    returncode: Optional[int] = None
    steps: List[ToolResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "done"

    def __repr__(self) -> str:
        extra = f" step={self.failed_step}" if self.failed_step else ""
        return f"<JobResult {self.accession} status={self.status}{extra}>"
