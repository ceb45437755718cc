"""
SRA Toolkit installer.

Downloads the toolkit tarball with curl, unpacks it with tar, links the
binaries srafq needs into `<install_dir>/bin`, records their paths and puts
that bin directory on the user's PATH through their shell profile.
"""
from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from .toolkit import InstallRecord, save_record
from .utils import info, run_cmd, success, warning

SRA_URL = "https://ftp-trace.ncbi.nlm.nih.gov/sra/sdk/current/sratoolkit.current-ubuntu64.tar.gz"
DEFAULT_INSTALL_DIR = Path("~/softwares")
DEFAULT_THREADS = 4
SYSTEM_TOOLS = ("curl", "tar", "gzip")
LINKED_TOOLS = ("prefetch", "fasterq-dump", "vdb-config")
PROFILE_COMMENT = "# SRA Toolkit bin directory"


class InstallError(RuntimeError):
    pass


# ─────────────────────────────────────────────────────────────────────────────
# System prerequisites
# ─────────────────────────────────────────────────────────────────────────────

def missing_system_tools(tools: Sequence[str] = SYSTEM_TOOLS) -> List[str]:
    return [t for t in tools if shutil.which(t) is None]


def _apt_prefix() -> List[str]:
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        return []
    return ["sudo"]


def ensure_system_tools(tools: Sequence[str] = SYSTEM_TOOLS) -> None:
    """Install curl/tar/gzip through apt-get when any of them is missing."""
    missing = missing_system_tools(tools)
    if not missing:
        success("All required dependencies already installed.")
        return

    for t in missing:
        warning(f"{t} not found.")
    if shutil.which("apt-get") is None:
        raise InstallError(
            f"Missing dependencies ({', '.join(missing)}) and automatic install only supports apt-get. "
            "Please install them manually and re-run 'srafq install'."
        )

    info("Installing missing dependencies via apt-get...")
    prefix = _apt_prefix()
    try:
        subprocess.run(prefix + ["apt-get", "update", "-y"], check=True)
        subprocess.run(prefix + ["apt-get", "install", "-y", *missing], check=True)
    except (subprocess.CalledProcessError, OSError) as e:
        raise InstallError(f"apt-get failed: {e}") from e
    success("Dependency installation complete.")


# ─────────────────────────────────────────────────────────────────────────────
# Shell profile
# ─────────────────────────────────────────────────────────────────────────────

def profile_file(home: Optional[Path] = None) -> Path:
    home = Path(home) if home is not None else Path.home()
    for name in (".bashrc", ".profile"):
        if (home / name).is_file():
            return home / name
    return home / ".bashrc"


def export_line(bin_dir: Path) -> str:
    return f'export PATH="{bin_dir}:$PATH"'


def append_path_to_profile(bin_dir: Path, home: Optional[Path] = None) -> Path:
    """Append a PATH export for bin_dir to the shell profile, once."""
    prof = profile_file(home)
    line = export_line(bin_dir)
    existing = prof.read_text() if prof.exists() else ""
    if line in existing.splitlines():
        info(f"PATH entry already present in {prof}")
        return prof
    with open(prof, "a") as fh:
        fh.write(f"\n{PROFILE_COMMENT}\n{line}\n")
    success(f"Added SRA Toolkit bin to PATH in {prof}")
    return prof


# ─────────────────────────────────────────────────────────────────────────────
# Toolkit install
# ─────────────────────────────────────────────────────────────────────────────

def _find_toolkit_dir(install_dir: Path) -> Path:
    cands = sorted(p for p in install_dir.glob("sratoolkit.*") if p.is_dir())
    if not cands:
        raise InstallError(f"Failed to locate extracted SRA Toolkit directory in {install_dir}")
    # several versions may be unpacked side by side; prefer the newest name
    return cands[-1]


def _link_tools(sra_dir: Path, bin_dir: Path) -> dict:
    linked = {}
    for tool in LINKED_TOOLS:
        src = sra_dir / "bin" / tool
        dst = bin_dir / tool
        if src.exists() and os.access(src, os.X_OK):
            if dst.is_symlink() or dst.exists():
                dst.unlink()
            dst.symlink_to(src)
            linked[tool] = dst
        else:
            warning(f"Tool not found in SRA Toolkit: {tool}")
    return linked


def install_toolkit(install_dir: Path, *, url: str = SRA_URL, archive: Optional[Path] = None,
                    threads: int = DEFAULT_THREADS, record_path: Optional[Path] = None,
                    update_profile: bool = True, home: Optional[Path] = None,
                    log_path: Optional[Path] = None) -> InstallRecord:
    """
    Install the SRA Toolkit under install_dir and persist its location.

    `archive` installs from an already downloaded tarball instead of `url`.
    """
    install_dir = Path(install_dir).expanduser().resolve()
    bin_dir = install_dir / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory(prefix="sratoolkit.") as tmp:
        if archive is None:
            tarball = Path(tmp) / "sratoolkit.tar.gz"
            info(f"Downloading SRA Toolkit into: {install_dir}")
            info(f"  URL: {url}")
            try:
                run_cmd(["curl", "-fL", url, "-o", tarball], None, log_path)
            except (subprocess.CalledProcessError, OSError) as e:
                raise InstallError(f"Download failed: {e}") from e
        else:
            tarball = Path(archive).expanduser().resolve()
            info(f"Using local SRA Toolkit archive: {tarball}")

        info("Extracting SRA Toolkit...")
        try:
            run_cmd(["tar", "-xzf", tarball, "-C", install_dir], None, log_path)
        except (subprocess.CalledProcessError, OSError) as e:
            raise InstallError(f"Extraction failed: {e}") from e

    sra_dir = _find_toolkit_dir(install_dir)
    linked = _link_tools(sra_dir, bin_dir)
    for tool in ("prefetch", "fasterq-dump"):
        if tool not in linked:
            raise InstallError(f"{tool} missing from {sra_dir / 'bin'}")
    success(f"SRA Toolkit installed in: {sra_dir}")

    record = InstallRecord(
        install_dir=install_dir,
        sra_dir=sra_dir,
        prefetch=linked["prefetch"],
        fasterq_dump=linked["fasterq-dump"],
        vdb_config=linked.get("vdb-config"),
        default_threads=int(threads),
    )
    p = save_record(record, record_path)
    success(f"Configuration saved: {p}")

    if update_profile:
        append_path_to_profile(bin_dir, home)
        info("To use SRA Toolkit in the current shell, run:")
        info(f"  {export_line(bin_dir)}")
    return record
