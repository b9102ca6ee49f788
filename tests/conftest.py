"""
Shared fixtures: a fake command runner that fabricates the outputs of the
external programs so the whole pipeline can run without them.
"""

import subprocess
import zipfile
from pathlib import Path

import pytest

from dnatax.core.run import Run


CONTIGS = (
    ">NODE_1_length_30_cov_5.0\n"
    "ATGCGTACGTTAGCCGATCGATCGTAGCTA\n"
    ">NODE_2_length_24_cov_3.1\n"
    "GGCATCGATCGGATCGATTTAGCA\n"
    ">NODE_3_length_18_cov_9.9\n"
    "TTTACGATCGGCGCATCG\n"
)

LINEAGES = (
    "NODE_1_length_30_cov_5.0\t1e-50\tViruses\tNA\tKitrinoviricota\tAlsuviricetes\tMartellivirales\tVirgaviridae\tTobamovirus\tTobacco mosaic virus\n"
    "NODE_2_length_24_cov_3.1\t1e-20\tBacteria\tNA\tProteobacteria\tGammaproteobacteria\tEnterobacterales\tEnterobacteriaceae\tEscherichia\tEscherichia coli\n"
    "NODE_3_length_18_cov_9.9\t1e-12\tViruses\tNA\tPisuviricota\tPisoniviricetes\tPicornavirales\tPicornaviridae\tEnterovirus\tEnterovirus A\n"
)


def _option(cmd, flag):
    return cmd[cmd.index(flag) + 1]


class FakeRunner:
    """
    Stands in for run_command. Records every command line and writes the
    files each program would have produced.
    """

    def __init__(self, layout="paired", contigs=CONTIGS, lineages=LINEAGES, fail=None):
        self.layout = layout
        self.contigs = contigs
        self.lineages = lineages
        self.fail = fail or {}
        self.calls = []

    def programs(self):
        return [Path(cmd[0]).name for cmd, _ in self.calls]

    def __call__(self, cmd, cwd=None, check=True, capture=True):
        cmd = [str(part) for part in cmd]
        self.calls.append((cmd, cwd))
        program = Path(cmd[0]).name

        if program in self.fail:
            returncode, stderr = self.fail[program]
            return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr=stderr)

        handler = {
            "fasterq-dump": self._fasterq_dump,
            "trim_galore": self._trim_galore,
            "rnaspades.py": self._rnaspades,
            "diamond": self._diamond,
            "diamondToTaxonomy.py": self._helper,
        }[program]
        handler(cmd, cwd)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def _fasterq_dump(self, cmd, cwd):
        outdir = Path(_option(cmd, "--outdir"))
        accession = cmd[-1]
        suffixes = ["_1.fastq", "_2.fastq"] if self.layout == "paired" else [".fastq"]
        for suffix in suffixes:
            (outdir / f"{accession}{suffix}").write_text("@r1\nACGT\n+\nIIII\n")

    def _trim_galore(self, cmd, cwd):
        outdir = Path(_option(cmd, "-o"))
        for read_file in cmd[cmd.index("-o") + 2:]:
            name = Path(read_file).name
            if name.endswith("_1.fastq"):
                trimmed = name[:-len("_1.fastq")] + "_1_val_1.fq"
            elif name.endswith("_2.fastq"):
                trimmed = name[:-len("_2.fastq")] + "_2_val_2.fq"
            else:
                trimmed = name[:-len(".fastq")] + "_trimmed.fq"
            (outdir / trimmed).write_text("@r1\nACGT\n+\nIIII\n")

    def _rnaspades(self, cmd, cwd):
        outdir = Path(_option(cmd, "-o"))
        outdir.mkdir(parents=True, exist_ok=True)
        (outdir / "transcripts.fasta").write_text(self.contigs)
        (outdir / "transcripts.paths").write_text("NODE_1\n1+\n")
        (outdir / "spades.log").write_text("rnaSPAdes finished\n")

    def _diamond(self, cmd, cwd):
        if cmd[1] == "makedb":
            db = Path(_option(cmd, "-d"))
            db.with_name(db.name + ".dmnd").write_text("dmnd")
        else:
            Path(_option(cmd, "--out")).write_text("NODE_1_length_30_cov_5.0\t12242\t1e-50\n")

    def _helper(self, cmd, cwd):
        hits = cmd[1]
        output = Path(cwd) / hits.replace(".txt", ".taxonomy.txt")
        output.write_text(self.lineages)


def fake_downloader(url, filename):
    """Writes a placeholder for each remote file; taxdmp.zip is a real archive."""
    target = Path(filename)
    if target.name == "taxdmp.zip":
        with zipfile.ZipFile(target, "w") as archive:
            archive.writestr("nodes.dmp", "1\t|\t1\t|\tno rank\t|\n")
            archive.writestr("names.dmp", "1\t|\troot\t|\t\t|\tscientific name\t|\n")
            archive.writestr("readme.txt", "taxdump\n")
    else:
        target.write_text(f"downloaded from {url}\n")
    return str(target), None


def all_tools(tool):
    return f"/usr/local/bin/{tool}"


@pytest.fixture()
def fake_runner():
    return FakeRunner()


@pytest.fixture()
def home_dir(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    helper = home / "diamondToTaxonomy.py"
    helper.write_text("#!/usr/bin/env python3\n")
    helper.chmod(0o755)
    return home


@pytest.fixture()
def make_run(tmp_path, home_dir):
    """Factory for runs rooted in tmp_path."""

    def _make(accessions="SRR1001,SRR1002", **kwargs):
        params = dict(
            project="TEST",
            accessions=accessions,
            threads=2,
            memory="30G",
            working_dir=tmp_path / "work",
            final_dir=tmp_path / "final",
            temp_dir=tmp_path / "temp",
            home_dir=home_dir,
        )
        params.update(kwargs)
        return Run.create(**params)

    return _make


@pytest.fixture()
def lineage_files(tmp_path):
    """A lineage table and its contigs."""
    table = tmp_path / "sample.nr.diamond.taxonomy.txt"
    table.write_text(LINEAGES)
    contigs = tmp_path / "sample.contigs.fasta"
    contigs.write_text(CONTIGS)
    return table, contigs
