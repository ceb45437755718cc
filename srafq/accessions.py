"""
Turn the value of `-i/--input` into an ordered list of accessions.

The value is either a path to a file (comma and/or newline separated IDs, or
an NCBI SRA RunInfo table with a `Run` column) or a literal comma-separated
list. Accessions are passed through verbatim: no de-duplication, no case
folding, no format validation.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List

import pandas as pd

RUNINFO_FORMATS = {".csv", ".tsv", ".txt"}
RUNINFO_COLUMN = "Run"

_SEPARATORS = re.compile(r"[,\s]+")
_ACCESSION_RX = re.compile(r"^[SED]RR\d+$")


class EmptyInputError(ValueError):
    """Raised when no accession survives parsing."""


class InputFileError(ValueError):
    """Raised when an accession file cannot be decoded as text."""


def looks_like_accession(token: str) -> bool:
    return bool(_ACCESSION_RX.match(token))


def _is_runinfo_table(path: Path, first_line: str) -> bool:
    if path.suffix.lower() not in RUNINFO_FORMATS:
        return False
    header = [c.strip().strip('"') for c in re.split(r"[,\t]", first_line)]
    return RUNINFO_COLUMN in header


def _read_runinfo_table(path: Path) -> List[str]:
    suf = path.suffix.lower()
    if suf == ".csv":
        df = pd.read_csv(path, dtype=str, low_memory=False)
    elif suf == ".tsv":
        df = pd.read_csv(path, sep="\t", dtype=str, low_memory=False)
    else:
        df = pd.read_csv(path, sep=None, engine="python", dtype=str)
    runs = df[RUNINFO_COLUMN].dropna().astype(str).str.strip()
    return [r for r in runs.tolist() if r]


def parse_file(path: Path) -> List[str]:
    """Read accessions from a file; commas, CR and blank lines are separators."""
    try:
        text = Path(path).read_text(encoding="utf-8").lstrip("\ufeff")
    except UnicodeDecodeError as e:
        raise InputFileError(f"Accession file {path} is not UTF-8 text: {e.reason} at byte {e.start}.") from e
    first_line = text.splitlines()[0] if text.strip() else ""
    if _is_runinfo_table(Path(path), first_line):
        return _read_runinfo_table(Path(path))
    return [tok for tok in _SEPARATORS.split(text) if tok]


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:  # e.g. a long comma list exceeding NAME_MAX
        return False


def parse_list(value: str) -> List[str]:
    """Parse a literal comma-separated list; all whitespace is dropped first."""
    cleaned = re.sub(r"\s+", "", value)
    return [tok for tok in cleaned.split(",") if tok]


def parse_accessions(value: str) -> List[str]:
    """
    Parse an accession, a comma-separated list, or a file path.

    Raises EmptyInputError if the result would be empty.
    """
    value = value or ""
    path = Path(value.strip()).expanduser() if value.strip() else None
    if path is not None and _is_file(path):
        ids = parse_file(path)
        source = f"file {path}"
    else:
        ids = parse_list(value)
        source = "input string"

    if not ids:
        raise EmptyInputError(f"No valid SRA IDs parsed from {source}.")
    return ids
