# toolkit.py
from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .entities import ToolkitLocation

CFG_ENV = "SRAFQ_CONFIG"
CFG_DEFAULT_PATH = Path("~/.config/srafq/install_paths.conf")
REQUIRED_TOOLS = ("prefetch", "fasterq-dump")


class ToolkitNotFoundError(FileNotFoundError):
    """A required SRA Toolkit executable could not be located."""

    def __init__(self, tool: str):
        super().__init__(f"{tool} not found in PATH. Install SRA Toolkit ('srafq install') or use --bin-dir.")
        self.tool = tool


# ---------------------------- Installed-toolkit record ----------------------------

@dataclass(frozen=True)
class InstallRecord:
    install_dir: Path
    sra_dir: Path
    prefetch: Path
    fasterq_dump: Path
    vdb_config: Optional[Path] = None
    default_threads: int = 4

    def to_dict(self) -> Dict[str, str]:
        return {
            "SRA_INSTALL_DIR": str(self.install_dir),
            "SRA_DIR": str(self.sra_dir),
            "PREFETCH_BIN": str(self.prefetch),
            "FASTERQ_BIN": str(self.fasterq_dump),
            "VDB_CONFIG_BIN": str(self.vdb_config) if self.vdb_config else "",
            "SRA_DEFAULT_THREADS": str(self.default_threads),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, str]) -> "InstallRecord":
        vdb = d.get("VDB_CONFIG_BIN") or None
        return cls(
            install_dir=Path(d["SRA_INSTALL_DIR"]),
            sra_dir=Path(d["SRA_DIR"]),
            prefetch=Path(d["PREFETCH_BIN"]),
            fasterq_dump=Path(d["FASTERQ_BIN"]),
            vdb_config=Path(vdb) if vdb else None,
            default_threads=int(d.get("SRA_DEFAULT_THREADS") or 4),
        )

    def location(self) -> Optional[ToolkitLocation]:
        """The recorded binaries, if both still exist and are executable."""
        if _is_executable(self.prefetch) and _is_executable(self.fasterq_dump):
            return ToolkitLocation(prefetch=self.prefetch, fasterq_dump=self.fasterq_dump)
        return None


def record_path() -> Path:
    env_path = os.environ.get(CFG_ENV)
    if env_path:
        return Path(env_path).expanduser().resolve()
    return CFG_DEFAULT_PATH.expanduser()


def _parse_kv(text: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, val = line.partition("=")
        val = val.strip()
        if len(val) >= 2 and val[0] == val[-1] and val[0] in "\"'":
            val = val[1:-1]
        out[key.strip()] = val
    return out


def load_record(path: Path | None = None) -> Optional[InstallRecord]:
    """Read the installed-toolkit record; a missing or malformed file reads as None."""
    p = path or record_path()
    if not p.exists():
        return None
    try:
        return InstallRecord.from_dict(_parse_kv(p.read_text(encoding="utf-8")))
    except (OSError, KeyError, ValueError):
        return None


def save_record(record: InstallRecord, path: Path | None = None) -> Path:
    p = path or record_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(p.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as fh:
        fh.write("# SRA Toolkit Installation Paths\n")
        for k, v in record.to_dict().items():
            fh.write(f'{k}="{v}"\n')
    tmp.replace(p)
    return p


# ---------------------------- Location resolution ----------------------------

def _is_executable(p: Path) -> bool:
    return p.is_file() and os.access(p, os.X_OK)


def resolve_toolkit(bin_dir: Path | None = None,
                    record: InstallRecord | None = None,
                    search_path: str | None = None) -> ToolkitLocation:
    """
    Locate prefetch and fasterq-dump once, without touching os.environ.

    Order: --bin-dir (prepended to the search path), then the installed
    record, then the ambient PATH.
    """
    path = os.environ.get("PATH", os.defpath) if search_path is None else search_path

    if bin_dir is not None:
        path = os.pathsep.join([str(Path(bin_dir).expanduser()), path])
    elif record is not None:
        loc = record.location()
        if loc is not None:
            return loc

    found = {}
    for tool in REQUIRED_TOOLS:
        hit = shutil.which(tool, path=path)
        if hit is None:
            raise ToolkitNotFoundError(tool)
        found[tool] = Path(hit)
    return ToolkitLocation(prefetch=found["prefetch"], fasterq_dump=found["fasterq-dump"])
