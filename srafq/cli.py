#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click
from click.core import ParameterSource

from .accessions import EmptyInputError, InputFileError, looks_like_accession, parse_accessions
from .core import pipeline
from .entities import DEFAULT_MAX_SIZE, DEFAULT_OUTDIR, RunConfig, ToolkitLocation
from .installer import DEFAULT_INSTALL_DIR, DEFAULT_THREADS, SRA_URL, InstallError, ensure_system_tools, install_toolkit
from .orchestrator import ThreadPlan, plan_threads
from .toolkit import InstallRecord, ToolkitNotFoundError, load_record, record_path, resolve_toolkit
from .utils import banner, error, expand_dir, info, warning
from . import __version__

# ---------------------------- Constants ----------------------------
WIDE_HELP = 120

HELP_BODY = """Download FASTQ files from NCBI SRA with the SRA Toolkit.

\b
-i/--input accepts:
  - a single ID:   SRR12345678
  - a comma list:  "SRR1,SRR2,SRR3"
  - a file:        sra_ids.txt (comma or newline separated, or an SRA RunInfo table with a 'Run' column)

\b
Examples:
  srafq -i SRR12345678
  srafq -i sra_ids.txt -o fastq_out --bin-dir ~/softwares/bin
  srafq install --install-dir ~/softwares
"""


def _is_interactive() -> bool:
    return sys.stdin.isatty()


def _positive(ctx, param, value):
    if value is not None and value < 1:
        raise click.BadParameter("must be a positive integer")
    return value


# ---------------------------- Summary printing ----------------------------

def _val(x, default_symbol="-"):
    if x is None:
        return default_symbol
    if isinstance(x, bool):
        return "True" if x else "False"
    return str(x)


def _print_run_summary(cfg: RunConfig, plan: ThreadPlan, record: Optional[InstallRecord]) -> None:
    click.echo("\n============ Run Summary ============")
    click.echo(f"Input:                {_val(cfg.input_spec)}")
    click.echo(f"Accessions:           {len(cfg)}")
    click.echo(f"Output directory:     {cfg.outdir}")
    click.echo(f"prefetch:             {cfg.toolkit.prefetch}")
    click.echo(f"fasterq-dump:         {cfg.toolkit.fasterq_dump}")
    click.echo(f"Resources:            {plan.describe()}")
    click.echo(f"Split files:          {_val(cfg.split_files)}")
    click.echo(f"Max archive size:     {cfg.max_size}")
    click.echo(f"Timeout per tool:     {_val(cfg.timeout and f'{cfg.timeout:g}s')}")
    click.echo(f"Keep global cache:    {_val(cfg.keep_cache)}")
    click.echo(f"Log file:             {_val(cfg.log_path)}")
    if record is not None:
        click.echo(f"Installed toolkit:    {record.sra_dir} (default threads {record.default_threads})")
    click.echo("=====================================\n")


# ---------------------------- Root CLI ----------------------------

@click.group(
    invoke_without_command=True,
    help=HELP_BODY,
    context_settings={"help_option_names": ["-h", "--help"], "max_content_width": WIDE_HELP},
)
@click.version_option(__version__, "-V", "--version", prog_name="srafq")
@click.option("-i", "--input", "input_spec", type=str, default=None,
              help="SRA ID, comma-separated list of IDs, or file of IDs.")
@click.option("-o", "--output", "output_dir", type=click.Path(file_okay=False, path_type=Path),
              default=DEFAULT_OUTDIR, show_default=True, help="Output directory for FASTQs.")
@click.option("-t", "--threads", type=int, default=None, callback=_positive,
              help="Threads per fasterq-dump job.  [default: auto from CPU]")
@click.option("-p", "--parallel", type=int, default=None, callback=_positive,
              help="Accessions processed concurrently.  [default: auto from CPU]")
@click.option("--bin-dir", type=str, default=None,
              help="Directory containing prefetch and fasterq-dump.  [default: installed record, then PATH]")
@click.option("--keep-cache", is_flag=True, help="Do not purge the SRA Toolkit global cache after the batch.")
@click.option("--split-files", is_flag=True, help="Pass --split-files to fasterq-dump.")
@click.option("--max-size", default=DEFAULT_MAX_SIZE, show_default=True, help="prefetch --max-size cap.")
@click.option("--timeout", type=float, default=None,
              help="Kill a prefetch/fasterq-dump call after this many seconds.")
@click.option("--log", "log_path", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Append messages and tool output to this file instead of the terminal.")
@click.option("--auto-install", is_flag=True, help="Install the SRA Toolkit first if it cannot be found.")
@click.option("-n", "--dry-run", is_flag=True, help="Validate and plan without running.")
@click.option("-y", "--yes", is_flag=True, help="Skip prompts.")
@click.pass_context
def cli(
        ctx: click.Context,
        input_spec: Optional[str],
        output_dir: Path,
        threads: Optional[int],
        parallel: Optional[int],
        bin_dir: Optional[str],
        keep_cache: bool,
        split_files: bool,
        max_size: str,
        timeout: Optional[float],
        log_path: Optional[Path],
        auto_install: bool,
        dry_run: bool,
        yes: bool,
):
    if ctx.invoked_subcommand is not None:
        return

    if input_spec is None:
        raise click.UsageError("No input provided. Use -i / --input. See 'srafq -h'.")

    if ctx.get_parameter_source("output_dir") == ParameterSource.DEFAULT and not yes and _is_interactive():
        output_dir = click.prompt("Output directory for FASTQs", default=str(DEFAULT_OUTDIR), type=click.Path(
            file_okay=False, path_type=Path))

    _run_download(
        input_spec=input_spec,
        output_dir=output_dir,
        threads=threads,
        parallel=parallel,
        bin_dir=expand_dir(bin_dir) if bin_dir else None,
        keep_cache=keep_cache,
        split_files=split_files,
        max_size=max_size,
        timeout=timeout,
        log_path=log_path,
        auto_install=auto_install,
        dry_run=dry_run,
    )


def _locate_toolkit(bin_dir: Optional[Path], auto_install: bool) -> tuple[ToolkitLocation, Optional[InstallRecord]]:
    record = load_record()
    try:
        return resolve_toolkit(bin_dir, record), record
    except ToolkitNotFoundError as e:
        if not auto_install:
            error(str(e))
            sys.exit(1)
        warning(f"{e} Installing into {DEFAULT_INSTALL_DIR} (--auto-install).")

    try:
        ensure_system_tools()
        record = install_toolkit(DEFAULT_INSTALL_DIR)
        return resolve_toolkit(None, record), record
    except (InstallError, ToolkitNotFoundError) as e:
        error(str(e))
        sys.exit(1)


def _run_download(
        *,
        input_spec: str,
        output_dir: Path,
        threads: Optional[int],
        parallel: Optional[int],
        bin_dir: Optional[Path],
        keep_cache: bool,
        split_files: bool,
        max_size: str,
        timeout: Optional[float],
        log_path: Optional[Path],
        auto_install: bool,
        dry_run: bool,
) -> None:
    banner("SRA FASTQ Downloader")
    click.echo("")

    location, record = _locate_toolkit(bin_dir, auto_install)

    try:
        accessions = parse_accessions(input_spec)
    except (EmptyInputError, InputFileError) as e:
        error(str(e))
        sys.exit(1)
    odd = [a for a in accessions if not looks_like_accession(a)]
    if odd:
        warning(f"Unusual accession(s), passed through as-is: {', '.join(odd[:5])}"
                + (" ..." if len(odd) > 5 else ""))

    plan = plan_threads(threads, parallel)
    cfg = RunConfig(
        accessions=accessions,
        outdir=output_dir,
        threads=plan.threads,
        parallel=plan.parallel,
        toolkit=location,
        keep_cache=keep_cache,
        split_files=split_files,
        max_size=max_size,
        timeout=timeout,
        log_path=log_path,
        input_spec=input_spec,
    )
    _print_run_summary(cfg, plan, record)

    if dry_run:
        click.secho("Dry run complete. No tools executed.\n", fg="green")
        return

    try:
        pipeline(cfg)
    except OSError as e:
        error(str(e))
        sys.exit(1)


# ---------------------------- install ----------------------------

@cli.command("install", help="Install the SRA Toolkit and record where its binaries live.")
@click.option("--install-dir", type=str, default=None, help=f"Installation directory.  [default: prompt, {DEFAULT_INSTALL_DIR}]")
@click.option("--threads", type=int, default=DEFAULT_THREADS, show_default=True, callback=_positive,
              help="Default threads for fasterq-dump, stored in the record.")
@click.option("--url", default=SRA_URL, show_default=True, help="Toolkit tarball URL.")
@click.option("--archive", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None,
              help="Install from an already downloaded tarball.")
@click.option("--skip-deps", is_flag=True, help="Do not check for curl/tar/gzip.")
@click.option("--no-profile", is_flag=True, help="Do not add the bin directory to the shell profile.")
@click.option("-y", "--yes", is_flag=True, help="Skip prompts.")
def install(install_dir: Optional[str], threads: int, url: str, archive: Optional[Path],
            skip_deps: bool, no_profile: bool, yes: bool):
    banner("SRA Toolkit Installer")
    click.echo("")

    if install_dir is None:
        if yes or not _is_interactive():
            install_dir = str(DEFAULT_INSTALL_DIR)
        else:
            install_dir = click.prompt("Installation directory for SRA Toolkit",
                                       default=str(DEFAULT_INSTALL_DIR))
    else:
        info(f"Using installation directory from CLI: {install_dir}")

    try:
        if not skip_deps:
            ensure_system_tools(("tar", "gzip") if archive is not None else ("curl", "tar", "gzip"))
        install_toolkit(
            expand_dir(install_dir),
            url=url,
            archive=archive,
            threads=threads,
            update_profile=not no_profile,
        )
    except InstallError as e:
        error(str(e))
        sys.exit(1)

    click.echo("")
    banner("Installation Complete")
    click.echo(f"Record: {record_path()}")


def main():
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
