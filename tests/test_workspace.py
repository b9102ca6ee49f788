"""Tests for the workspace layout and helper installation."""

import pytest

from dnatax.core.errors import HelperMissingError
from dnatax.core.workspace import WORKING_SUBDIRS, Workspace


@pytest.fixture()
def workspace(tmp_path):
    return Workspace(tmp_path / "work", tmp_path / "temp", tmp_path / "final", "SRR1-SRR2")


def test_ensure_layout_creates_tree(workspace):
    created = workspace.ensure_layout()
    assert len(created) == len(WORKING_SUBDIRS)
    for path in created:
        assert path.is_dir()
    assert workspace.temp_dir.is_dir()
    assert workspace.final_dir.is_dir()


def test_ensure_layout_is_idempotent(workspace):
    workspace.ensure_layout()
    marker = workspace.contigs_dir / "keep.fasta"
    marker.write_text(">a\nACGT\n")

    workspace.ensure_layout()
    assert marker.read_text() == ">a\nACGT\n"


def test_artifact_names_use_label(workspace):
    assert workspace.manifest.name == "SRR1-SRR2.input.yaml"
    assert workspace.contigs_fasta.name == "SRR1-SRR2.contigs.fasta"
    assert workspace.diamond_hits.name == "SRR1-SRR2.nr.diamond.txt"
    assert workspace.taxonomy_table.name == "SRR1-SRR2.nr.diamond.taxonomy.txt"
    assert workspace.viral_fasta.name == "SRR1-SRR2.viruses.fasta"
    assert workspace.timelog == workspace.working_dir / "analysis" / "timelogs" / "SRR1-SRR2.log"


def test_install_helper(workspace, home_dir):
    workspace.ensure_layout()
    installed = workspace.install_helper(home_dir)
    assert installed == workspace.scripts_dir / "diamondToTaxonomy.py"
    assert installed.is_file()


def test_missing_helper(workspace, tmp_path):
    workspace.ensure_layout()
    with pytest.raises(HelperMissingError) as excinfo:
        workspace.install_helper(tmp_path / "nowhere")
    assert excinfo.value.exit_code == 5
    assert "diamondToTaxonomy.py" in str(excinfo.value)
