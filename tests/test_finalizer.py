"""Tests for copying results to final storage."""

import shutil

import pytest

from dnatax.core.database import DatabaseInfo
from dnatax.core.errors import FinalizeError
from dnatax.core.finalizer import Finalizer
from dnatax.core.workspace import Workspace


@pytest.fixture()
def workspace(tmp_path):
    ws = Workspace(tmp_path / "work", tmp_path / "temp", tmp_path / "final", "SRR1-SRR2")
    ws.ensure_layout()
    ws.contigs_fasta.write_text(">c1\nACGT\n")
    ws.viral_fasta.write_text(">c1\nACGT\n")
    ws.manifest.write_text("- type: single\n")
    (ws.raw_dir / "SRR1.fastq").write_text("@r\nA\n+\nI\n")
    (ws.temp_dir / "scratch.tmp").write_text("tmp")
    return ws


def test_copies_results_and_removes_temp(workspace):
    report = Finalizer(workspace).finalize()
    final = workspace.final_dir

    assert (final / "analysis" / "viruses" / "SRR1-SRR2.viruses.fasta").is_file()
    assert (final / "scripts" / "SRR1-SRR2.input.yaml").is_file()
    assert (final / "data" / "contigs" / "SRR1-SRR2.contigs.fasta").is_file()
    assert not (final / "data" / "raw-sra" / "SRR1.fastq").exists()
    assert report.temp_removed
    assert not workspace.temp_dir.exists()
    assert report.database_dir is None


def test_fastq_readme_placeholders(workspace):
    Finalizer(workspace).finalize()
    for reads_dir in ("raw-sra", "fastq-adapter-trimmed"):
        readme = workspace.final_dir / "data" / reads_dir / "README.txt"
        assert str(workspace.working_dir) in readme.read_text()


def test_fresh_database_is_persisted(workspace):
    db_dir = workspace.database_temp_dir
    db_dir.mkdir(parents=True)
    (db_dir / "nr.dmnd").write_text("dmnd")
    info = DatabaseInfo(db_path=db_dir / "nr", db_dir=db_dir, database_built=True)

    report = Finalizer(workspace).finalize(info)

    assert report.database_dir == workspace.final_dir / "scripts" / "diamond_db"
    assert (report.database_dir / "nr.dmnd").is_file()
    assert report.reuse_flag == f"-d {report.database_dir / 'nr'}"


def test_taxonomy_only_download_has_no_reuse_flag(workspace, tmp_path):
    db_dir = workspace.database_temp_dir
    db_dir.mkdir(parents=True)
    for name in ("prot.accession2taxid.gz", "taxdmp.zip", "nodes.dmp", "names.dmp"):
        (db_dir / name).write_text("x")
    existing = tmp_path / "dbs" / "nr"
    info = DatabaseInfo(db_path=existing, db_dir=existing.parent, taxonomy_downloaded=True)

    report = Finalizer(workspace).finalize(info)

    assert report.reuse_flag is None
    assert (report.database_dir / "taxdmp.zip").is_file()
    assert not (report.database_dir / "nr.dmnd").exists()


def test_existing_database_is_not_copied(workspace, tmp_path):
    info = DatabaseInfo(db_path=tmp_path / "dbs" / "nr", db_dir=tmp_path / "dbs")
    report = Finalizer(workspace).finalize(info)
    assert report.database_dir is None
    assert not (workspace.final_dir / "scripts" / "diamond_db").exists()


def test_same_working_and_final_directory(tmp_path):
    ws = Workspace(tmp_path / "work", tmp_path / "temp", tmp_path / "work", "SRR1-SRR1")
    ws.ensure_layout()
    ws.viral_fasta.write_text(">c1\nACGT\n")

    report = Finalizer(ws).finalize()
    assert report.temp_removed
    assert ws.viral_fasta.read_text() == ">c1\nACGT\n"


def test_failed_copy_keeps_temp(workspace, monkeypatch):
    def broken_copytree(*args, **kwargs):
        raise OSError("No space left on device")

    monkeypatch.setattr(shutil, "copytree", broken_copytree)

    with pytest.raises(FinalizeError) as excinfo:
        Finalizer(workspace).finalize()
    assert excinfo.value.exit_code == 9
    assert (workspace.temp_dir / "scratch.tmp").is_file()
