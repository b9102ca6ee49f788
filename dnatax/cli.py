"""
Command-line interface for DNAtax - viral discovery from SRA sequencing runs.
"""

import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from loguru import logger

from .core.errors import DnataxError, UsageError
from .core.manifest import DEFAULT_BASE_DIR, ManifestBuilder
from .core.pipeline import run_pipeline
from .core.run import Layout, Run, load_config, split_accessions
from .core.stages import default_stages
from .core.tools import preflight as check_tools
from .core.viral_filter import ViralExtractor


DIAMOND_DB_ENV = "DNATAX_DIAMOND_DB"


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--log-file', help='Log file path')
def main(verbose: bool, log_file: Optional[str]):
    """DNAtax - assemble SRA runs, classify contigs with DIAMOND and extract the viral ones. Available commands: run, preflight, manifest, extract-viral"""

    # Configure logging
    if verbose:
        logger.remove()
        logger.add(sys.stderr, level="DEBUG")

    if log_file:
        logger.add(log_file, level="DEBUG")

    logger.info("DNAtax started")


def _fail(error: DnataxError, action: str):
    logger.error(f"{action} failed: {error}")
    click.echo(f"Error: {error}", err=True)
    sys.exit(error.exit_code)


def merge_settings(config: Dict[str, Any], **cli_values) -> Dict[str, Any]:
    """Layer settings: config file, then environment, then command line."""
    settings = dict(config)
    if os.environ.get(DIAMOND_DB_ENV):
        settings["diamond_db"] = os.environ[DIAMOND_DB_ENV]
    for key, value in cli_values.items():
        if value is not None:
            settings[key] = value
    return settings


@main.command()
@click.option('--project', '-p', help='Project name')
@click.option('--samples', '-s', help='Comma-separated SRA run accessions (SRR...)')
@click.option('--library-type', '-l', help="Library layout: 'paired' or 'single' (detected when omitted)")
@click.option('--memory', '-m', help='Memory cap in GB (e.g. 30 or 30G)')
@click.option('--threads', type=int, help='Number of threads (defaults to all CPUs)')
@click.option('--working-dir', '-w', help='Working directory for the analysis')
@click.option('--final-dir', '-f', help='Permanent storage for the results')
@click.option('--temp-dir', '-t', help='Temporary directory (removed at the end)')
@click.option('--home-dir', '-H', help='Directory containing diamondToTaxonomy.py')
@click.option('--diamond-db', '-d', help='Existing DIAMOND database (e.g. /dbs/diamond/nr)')
@click.option('--target-taxon', help='Taxon used to select viral contigs')
@click.option('--fresh-log', is_flag=True, help='Truncate the stage timelog instead of appending')
@click.option('--config', type=click.Path(exists=True), help='Configuration file path (YAML)')
@click.pass_context
def run(
    ctx: click.Context,
    project: Optional[str],
    samples: Optional[str],
    library_type: Optional[str],
    memory: Optional[str],
    threads: Optional[int],
    working_dir: Optional[str],
    final_dir: Optional[str],
    temp_dir: Optional[str],
    home_dir: Optional[str],
    diamond_db: Optional[str],
    target_taxon: Optional[str],
    fresh_log: Optional[bool],
    config: Optional[str],
):
    """Run the full pipeline: download, trim, assemble, classify and extract viruses."""
    try:
        settings = merge_settings(
            load_config(config),
            project=project,
            samples=samples,
            library_type=library_type,
            memory=memory,
            threads=threads,
            working_dir=working_dir,
            final_dir=final_dir,
            temp_dir=temp_dir,
            home_dir=home_dir,
            diamond_db=diamond_db,
            target_taxon=target_taxon,
            log_mode="fresh" if fresh_log else None,
        )

        if not settings.get("project") or not split_accessions(settings.get("samples")):
            click.echo(ctx.get_usage(), err=True)
            raise UsageError("Missing project and/or sample names")

        run_config = Run.create(
            project=settings["project"],
            accessions=settings["samples"],
            layout=settings.get("library_type"),
            threads=settings.get("threads"),
            memory=settings.get("memory"),
            working_dir=settings.get("working_dir"),
            final_dir=settings.get("final_dir"),
            temp_dir=settings.get("temp_dir"),
            home_dir=settings.get("home_dir"),
            diamond_db=settings.get("diamond_db"),
            target_taxon=settings.get("target_taxon"),
            log_mode=settings.get("log_mode"),
        )

        result = run_pipeline(run_config)
    except DnataxError as e:
        _fail(e, "Pipeline")

    click.echo(f"Number of viral contigs in {run_config.label}: {result.viral_count}")
    click.echo(f"Results saved to: {run_config.final_dir}")
    for record in result.records:
        click.echo(f"  {record.name}: {record.elapsed:.1f}s")


@main.command()
@click.option('--stage', 'stages', multiple=True, help='Only check tools for these stages (repeatable)')
def preflight(stages):
    """Check that the external programs used by the pipeline are installed."""
    known = [stage.name for stage in default_stages()]
    unknown = [name for name in stages if name not in known]
    if unknown:
        _fail(
            UsageError(f"Unknown stage(s): {', '.join(unknown)}. Choose from: {', '.join(known)}"),
            "Preflight",
        )

    stage_names = list(stages) or known
    report = check_tools(stage_names)

    for tool, location in report.available.items():
        click.echo(f"  found    {tool}: {location}")
    for tool, needed_by in report.missing.items():
        click.echo(f"  MISSING  {tool} (needed by: {', '.join(needed_by)})")

    try:
        report.raise_for_missing()
    except DnataxError as e:
        _fail(e, "Preflight")

    click.echo("All required tools are installed.")


@main.command()
@click.option('--samples', '-s', required=True, help='Comma-separated SRA run accessions')
@click.option('--library-type', '-l', required=True, help="Library layout: 'paired' or 'single'")
@click.option('--output', '-o', help='Write the manifest here instead of printing it')
@click.option('--base-dir', default=DEFAULT_BASE_DIR, show_default=True,
              help='Directory of the adapter-trimmed reads, as seen by the assembler')
def manifest(samples: str, library_type: str, output: Optional[str], base_dir: str):
    """Write the rnaSPAdes dataset manifest for a set of accessions."""
    try:
        layout = Layout.parse(library_type)
        accessions = split_accessions(samples)
        if not accessions:
            raise UsageError("No sample accessions given")

        document = ManifestBuilder().build(accessions, layout, base_dir=base_dir)
        if output:
            document.write(output)
            click.echo(f"Manifest written to: {output}")
        else:
            click.echo(document.dumps(), nl=False)
    except DnataxError as e:
        _fail(e, "Manifest")


@main.command(name="extract-viral")
@click.option('--taxonomy', required=True, type=click.Path(exists=True), help='Lineage-annotated DIAMOND table')
@click.option('--contigs', required=True, type=click.Path(exists=True), help='Assembled contigs (FASTA)')
@click.option('--out-dir', '-o', required=True, help='Output directory')
@click.option('--label', help='Prefix for the output files (defaults to the taxonomy file prefix)')
@click.option('--target-taxon', default='Viruses', show_default=True, help='Taxon name to select')
def extract_viral(taxonomy: str, contigs: str, out_dir: str, label: Optional[str], target_taxon: str):
    """Extract the contigs classified under a taxon from an assembly."""
    label = label or Path(taxonomy).name.split(".")[0]
    out_path = Path(out_dir)
    extractor = ViralExtractor()

    try:
        subset = extractor.extract(
            lineage_table=taxonomy,
            sequence_file=contigs,
            target_taxon=target_taxon,
            taxonomy_out=out_path / f"{label}.viruses.taxonomy.txt",
            sequences_out=out_path / f"{label}.viruses.fasta",
        )
    except DnataxError as e:
        _fail(e, "Viral extraction")

    summary_path = out_path / f"{label}.viruses.summary.tsv"
    extractor.summarize(subset).to_csv(summary_path, sep="\t", index=False)

    click.echo(f"Number of viral contigs in {label}: {subset.count}")
    click.echo(f"Viral sequences: {subset.sequences_path}")
    click.echo(f"Viral taxonomy: {subset.taxonomy_path}")


if __name__ == '__main__':
    main()
