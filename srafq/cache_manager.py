# cache_manager.py
from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Optional

# Toolkit-wide caches that prefetch/fasterq-dump fill behind our back.
GLOBAL_CACHE_CANDIDATES = (
    Path("ncbi") / "public" / "sra",
    Path("ncbi") / "sra",
)


def prepare_output_dir(outdir: Path) -> Path:
    """Create the output directory if absent and return its resolved path."""
    outdir = Path(outdir).expanduser().resolve()
    if outdir.exists() and not outdir.is_dir():
        raise NotADirectoryError(f"Output path exists and is not a directory: {outdir}")
    outdir.mkdir(parents=True, exist_ok=True)
    return outdir


def global_cache_dirs(home: Optional[Path] = None) -> List[Path]:
    home = Path(home) if home is not None else Path.home()
    return [home / rel for rel in GLOBAL_CACHE_CANDIDATES]


def purge_global_cache(home: Optional[Path] = None) -> List[Path]:
    """
    Remove the toolkit's global cache directories that exist.

    Best effort: missing paths are skipped and removal errors ignored.
    Returns the paths that were present and targeted.
    """
    removed = []
    for d in global_cache_dirs(home):
        if d.is_dir():
            shutil.rmtree(d, ignore_errors=True)
            removed.append(d)
    return removed


def list_fastqs(outdir: Path) -> List[Path]:
    """Sorted `*.fastq` files directly inside outdir."""
    return sorted(p for p in Path(outdir).glob("*.fastq") if p.is_file())
