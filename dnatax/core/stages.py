"""
Pipeline stages. Each stage declares the artifacts it needs from earlier
stages and drives one external program (or the viral filter).
"""

import shutil
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from Bio import SeqIO
from loguru import logger

from .database import DatabaseInfo, ReferenceDatabase
from .errors import ExternalToolError
from .finalizer import FinalizeReport, Finalizer
from .layout import LibraryLayoutDetector, raw_files, trimmed_files
from .manifest import ManifestBuilder
from .run import Layout, Run, diamond_block_size
from .tools import DownloadOutcome, classify_download, run_command
from .viral_filter import ViralExtractor, ViralSubset
from .workspace import Workspace


@dataclass
class StageContext:
    """State handed from stage to stage during one run."""

    run: Run
    workspace: Workspace
    runner: Callable = run_command
    downloader: Callable = urllib.request.urlretrieve
    database: Optional[DatabaseInfo] = None
    viral_subset: Optional[ViralSubset] = None
    finalize_report: Optional[FinalizeReport] = None

    @property
    def layout(self) -> Layout:
        return self.run.layout


class Stage:
    """Base class for pipeline stages."""

    name = ""
    description = ""

    def preconditions(self, ctx: StageContext) -> List[Path]:
        """Paths that must exist before the stage may start."""
        return []

    def run(self, ctx: StageContext) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<Stage {self.name}>"


class DownloadStage(Stage):
    """Downloads FASTQs from the NCBI Sequence Read Archive."""

    name = "download"
    description = "Downloading input FASTQs from the SRA"

    def __init__(self, detector: Optional[LibraryLayoutDetector] = None):
        self.detector = detector or LibraryLayoutDetector()

    def run(self, ctx: StageContext) -> None:
        run, ws = ctx.run, ctx.workspace

        for accession in run.accessions:
            cmd = [
                "fasterq-dump",
                "--split-3",
                "-t", str(ws.temp_dir),
                "-e", str(run.threads),
                "--mem", f"{run.memory_gb}G",
                "-p",
                "--skip-technical",
                "--rowid-as-name",
                "--outdir", str(ws.raw_dir),
                accession,
            ]
            result = ctx.runner(cmd, cwd=ws.working_dir, check=False)

            present = self.detector.detect_one(accession, ws.raw_dir)
            expected = raw_files(accession, present, ws.raw_dir).paths if present else ()
            outcome = classify_download(result, expected)

            if outcome is DownloadOutcome.FATAL:
                if result.stderr:
                    logger.error(f"fasterq-dump stderr: {result.stderr.strip()}")
                raise ExternalToolError(
                    f"fasterq-dump failed for {accession} with exit code {result.returncode}"
                )
            if outcome is DownloadOutcome.IGNORABLE:
                logger.warning(f"Read files for {accession} already exist; keeping them")

        override = None if run.layout is Layout.UNRESOLVED else run.layout
        layout = self.detector.detect(run.accessions, ws.raw_dir, override=override)
        ctx.run = run.with_layout(layout)
        logger.info("Finished downloading SRA files")


class TrimStage(Stage):
    """Trims adapters from the raw reads with Trim Galore."""

    name = "trim"
    description = "Adapter trimming"

    def preconditions(self, ctx: StageContext) -> List[Path]:
        ws = ctx.workspace
        paths = []
        for accession in ctx.run.accessions:
            paths.extend(raw_files(accession, ctx.layout, ws.raw_dir).paths)
        return paths

    def run(self, ctx: StageContext) -> None:
        ws = ctx.workspace
        for accession in ctx.run.accessions:
            reads = raw_files(accession, ctx.layout, ws.raw_dir)
            cmd = ["trim_galore"]
            if ctx.layout is Layout.PAIRED:
                cmd.append("--paired")
            cmd.extend([
                "--stringency", "5",
                "--quality", "1",
                "-o", str(ws.trimmed_dir),
            ])
            cmd.extend(str(path) for path in reads.paths)
            ctx.runner(cmd, cwd=ws.working_dir)


class AssembleStage(Stage):
    """De novo assembly of contigs with rnaSPAdes."""

    name = "assemble"
    description = "Contig assembly"

    def __init__(self, builder: Optional[ManifestBuilder] = None):
        self.builder = builder or ManifestBuilder()

    def preconditions(self, ctx: StageContext) -> List[Path]:
        ws = ctx.workspace
        paths = []
        for accession in ctx.run.accessions:
            paths.extend(trimmed_files(accession, ctx.layout, ws.trimmed_dir).paths)
        return paths

    def run(self, ctx: StageContext) -> None:
        run, ws = ctx.run, ctx.workspace

        manifest = self.builder.build(run.accessions, ctx.layout)
        manifest.write(ws.manifest)

        output_dir = ws.assembly_temp_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        cmd = [
            "rnaspades.py",
            "--threads", str(run.threads),
            "-m", str(run.memory_gb),
            "--tmp-dir", str(ws.temp_dir),
            "--dataset", str(ws.manifest),
            "-o", str(output_dir),
        ]
        ctx.runner(cmd, cwd=ws.working_dir)

        transcripts = output_dir / "transcripts.fasta"
        if not transcripts.exists():
            raise ExternalToolError(f"rnaSPAdes finished but produced no {transcripts}")

        # Copy the results from temp space into the working directory
        shutil.copyfile(transcripts, ws.contigs_fasta)
        for source, target in (
            (output_dir / "transcripts.paths", ws.contigs_paths),
            (output_dir / "spades.log", ws.assembly_log),
        ):
            if source.exists():
                shutil.copyfile(source, target)
            else:
                logger.warning(f"rnaSPAdes output not found: {source}")

        lengths = [len(record.seq) for record in SeqIO.parse(str(ws.contigs_fasta), "fasta")]
        logger.info(f"Assembled {len(lengths)} contigs ({sum(lengths):,} bp) for {run.label}")


class ClassifyStage(Stage):
    """Taxonomic classification of contigs with DIAMOND blastx."""

    name = "classify"
    description = "Taxonomic classification"

    def preconditions(self, ctx: StageContext) -> List[Path]:
        return [ctx.workspace.contigs_fasta]

    def run(self, ctx: StageContext) -> None:
        run, ws = ctx.run, ctx.workspace

        database = ReferenceDatabase(ws, runner=ctx.runner, downloader=ctx.downloader)
        ctx.database = database.ensure(run.diamond_db)

        cmd = [
            "diamond", "blastx",
            "--verbose",
            "--more-sensitive",
            "--threads", str(run.threads),
            "--db", str(ctx.database.db_path),
            "--query", str(ws.contigs_fasta),
            "--out", str(ws.diamond_hits),
            "--outfmt", "102",
            "--max-hsps", "1",
            "--top", "1",
            "--block-size", str(diamond_block_size(run.memory_gb)),
            "--index-chunks", "2",
            "--tmpdir", str(ws.temp_dir),
        ]
        ctx.runner(cmd, cwd=ws.working_dir)

        if not ws.diamond_hits.exists():
            raise ExternalToolError(f"DIAMOND finished but produced no {ws.diamond_hits}")


class ResolveTaxonomyStage(Stage):
    """Converts DIAMOND taxon IDs into full lineages with the helper script."""

    name = "resolve_taxonomy"
    description = "Taxonomy conversion"

    def preconditions(self, ctx: StageContext) -> List[Path]:
        ws = ctx.workspace
        return [ws.diamond_hits, ws.helper_script]

    def run(self, ctx: StageContext) -> None:
        ws = ctx.workspace

        # The helper writes its table next to its input
        ctx.runner([str(ws.helper_script), ws.diamond_hits.name], cwd=ws.diamond_dir)

        produced = ws.diamond_dir / ws.taxonomy_table.name
        if not produced.exists():
            raise ExternalToolError(f"Taxonomy conversion produced no {produced}")
        shutil.move(str(produced), str(ws.taxonomy_table))
        logger.info(f"Lineage table written to {ws.taxonomy_table}")


class ExtractViralStage(Stage):
    """Saves the viral taxonomy rows and sequences to their own files."""

    name = "extract_viral"
    description = "Extraction of viral sequences"

    def __init__(self, extractor: Optional[ViralExtractor] = None):
        self.extractor = extractor or ViralExtractor()

    def preconditions(self, ctx: StageContext) -> List[Path]:
        ws = ctx.workspace
        return [ws.taxonomy_table, ws.contigs_fasta]

    def run(self, ctx: StageContext) -> None:
        run, ws = ctx.run, ctx.workspace

        subset = self.extractor.extract(
            lineage_table=ws.taxonomy_table,
            sequence_file=ws.contigs_fasta,
            target_taxon=run.target_taxon,
            taxonomy_out=ws.viral_taxonomy,
            sequences_out=ws.viral_fasta,
        )
        self.extractor.summarize(subset).to_csv(ws.viral_summary, sep="\t", index=False)

        ctx.viral_subset = subset
        logger.info(f"Number of viral contigs in {run.label}: {subset.count}")


class FinalizeStage(Stage):
    """Copies results to permanent storage and cleans up temp space."""

    name = "finalize"
    description = "Saving results to permanent storage"

    def preconditions(self, ctx: StageContext) -> List[Path]:
        return [ctx.workspace.viral_fasta]

    def run(self, ctx: StageContext) -> None:
        ctx.finalize_report = Finalizer(ctx.workspace).finalize(ctx.database)


def default_stages() -> List[Stage]:
    """All stages in pipeline order."""
    return [
        DownloadStage(),
        TrimStage(),
        AssembleStage(),
        ClassifyStage(),
        ResolveTaxonomyStage(),
        ExtractViralStage(),
        FinalizeStage(),
    ]
