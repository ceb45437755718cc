import pytest
from click.testing import CliRunner

from srafq.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


def _invoke(runner, *args):
    return runner.invoke(cli, list(args), catch_exceptions=False)


def test_help_exits_zero(runner):
    res = _invoke(runner, "-h")
    assert res.exit_code == 0
    assert "--input" in res.output and "--keep-cache" in res.output


def test_missing_input_is_usage_error(runner, isolated_home):
    res = _invoke(runner)
    assert res.exit_code == 2
    assert "No input provided" in res.output


def test_invalid_threads_is_usage_error(runner, isolated_home, stub_bin):
    res = _invoke(runner, "-i", "SRR1", "-t", "0", "--bin-dir", str(stub_bin))
    assert res.exit_code == 2


def test_empty_input_exits_one(runner, isolated_home, stub_bin, tmp_path):
    res = _invoke(runner, "-i", " , ", "-o", str(tmp_path / "out"), "--bin-dir", str(stub_bin))
    assert res.exit_code == 1
    assert "No valid SRA IDs" in res.output
    assert not (tmp_path / "out").exists()


def test_missing_binaries_exit_one(runner, isolated_home, tmp_path, monkeypatch):
    empty = tmp_path / "empty_bin"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
    res = _invoke(runner, "-i", "SRR1", "--bin-dir", str(empty))
    assert res.exit_code == 1
    assert "prefetch not found" in res.output


def test_batch_success(runner, isolated_home, stub_bin, tmp_path):
    out = tmp_path / "out"
    res = _invoke(runner, "-i", "A,B", "-o", str(out), "--bin-dir", str(stub_bin),
                  "-p", "2", "-t", "2", "--keep-cache")

    assert res.exit_code == 0, res.output
    assert sorted(p.name for p in out.iterdir()) == ["A.fastq", "B.fastq"]
    assert "FASTQ download complete." in res.output
    assert "A.fastq" in res.output and "B.fastq" in res.output


def test_failed_job_still_exits_zero(runner, isolated_home, stub_bin, tmp_path, monkeypatch):
    monkeypatch.setenv("FAIL_PREFETCH", "A")
    out = tmp_path / "out"
    res = _invoke(runner, "-i", "A,B", "-o", str(out), "--bin-dir", str(stub_bin), "-p", "2")

    assert res.exit_code == 0, res.output
    assert sorted(p.name for p in out.iterdir()) == ["B.fastq"]
    assert "1 of 2 accession(s) failed: A (prefetch)" in res.output


def test_no_output_warns(runner, isolated_home, stub_bin, tmp_path, monkeypatch):
    monkeypatch.setenv("FAIL_PREFETCH", "A")
    res = _invoke(runner, "-i", "A", "-o", str(tmp_path / "out"), "--bin-dir", str(stub_bin))

    assert res.exit_code == 0
    assert "No .fastq files found" in res.output


def test_global_cache_purged_unless_kept(runner, isolated_home, stub_bin, tmp_path):
    cache = isolated_home / "ncbi" / "public" / "sra"
    cache.mkdir(parents=True)

    _invoke(runner, "-i", "A", "-o", str(tmp_path / "out"), "--bin-dir", str(stub_bin), "--keep-cache")
    assert cache.exists()

    _invoke(runner, "-i", "A", "-o", str(tmp_path / "out"), "--bin-dir", str(stub_bin))
    assert not cache.exists()


def test_input_file_and_split_files(runner, isolated_home, stub_bin, tmp_path, monkeypatch):
    calls = tmp_path / "calls.txt"
    monkeypatch.setenv("STUB_CALLS", str(calls))
    ids = tmp_path / "ids.txt"
    ids.write_text("SRR1\nSRR2,SRR3\n\n")
    out = tmp_path / "out"

    res = _invoke(runner, "-i", str(ids), "-o", str(out), "--bin-dir", str(stub_bin),
                  "-t", "3", "-p", "1", "--split-files", "--max-size", "5G", "--keep-cache")

    assert res.exit_code == 0, res.output
    lines = calls.read_text().splitlines()
    assert lines[0] == f"prefetch SRR1 -O {out.resolve()} --max-size 5G"
    assert f"fasterq-dump SRR1 -O {out.resolve()} -t {out.resolve()} -e 3 --split-files" in lines
    assert [p.name for p in sorted(out.glob("*.fastq"))] == ["SRR1.fastq", "SRR2.fastq", "SRR3.fastq"]


def test_log_file_receives_tool_output(runner, isolated_home, stub_bin, tmp_path, monkeypatch):
    monkeypatch.setenv("FAIL_PREFETCH", "A")
    log_path = tmp_path / "logs" / "run.log"
    res = _invoke(runner, "-i", "A", "-o", str(tmp_path / "out"), "--bin-dir", str(stub_bin),
                  "--log", str(log_path), "--keep-cache")

    assert res.exit_code == 0
    text = log_path.read_text()
    assert "===== srafq start" in text
    assert "prefetch: cannot fetch A" in text


def test_dry_run_executes_nothing(runner, isolated_home, stub_bin, tmp_path):
    out = tmp_path / "out"
    res = _invoke(runner, "-i", "SRR1,SRR2", "-o", str(out), "--bin-dir", str(stub_bin), "-n")

    assert res.exit_code == 0
    assert "Accessions:           2" in res.output
    assert "Dry run complete" in res.output
    assert not out.exists()


def test_install_subcommand_from_archive(runner, isolated_home, tmp_path):
    import tarfile
    from conftest import write_exe

    src = tmp_path / "src" / "sratoolkit.3.1.1-ubuntu64" / "bin"
    src.mkdir(parents=True)
    for tool in ("prefetch", "fasterq-dump"):
        write_exe(src / tool, "#!/bin/sh\nexit 0\n")
    tarball = tmp_path / "tk.tar.gz"
    with tarfile.open(tarball, "w:gz") as tar:
        tar.add(src.parent, arcname=src.parent.name)

    res = _invoke(runner, "install", "--install-dir", str(tmp_path / "soft"), "--archive", str(tarball),
                  "--skip-deps", "--threads", "6")

    assert res.exit_code == 0, res.output
    assert "Tool not found in SRA Toolkit: vdb-config" in res.output
    assert (tmp_path / "install_paths.conf").exists()
    assert (isolated_home / ".bashrc").exists()

    # the recorded toolkit is picked up without --bin-dir
    res = _invoke(runner, "-i", "SRR1", "-n")
    assert res.exit_code == 0, res.output
    assert str((tmp_path / "soft").resolve() / "bin" / "prefetch") in res.output
    assert "default threads 6" in res.output


def test_undecodable_input_file_exits_one(runner, isolated_home, stub_bin, tmp_path):
    ids = tmp_path / "ids.txt"
    ids.write_bytes(b"SRR1\n\xff\xfeSRR2\n")
    res = _invoke(runner, "-i", str(ids), "-o", str(tmp_path / "out"), "--bin-dir", str(stub_bin))
    assert res.exit_code == 1
    assert "not UTF-8" in res.output


def test_unwritable_output_exits_one(runner, isolated_home, stub_bin, tmp_path, monkeypatch):
    def denied(path):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr("srafq.core.prepare_output_dir", denied)
    res = _invoke(runner, "-i", "A", "-o", str(tmp_path / "out"), "--bin-dir", str(stub_bin))
    assert res.exit_code == 1
    assert "Permission denied" in res.output
