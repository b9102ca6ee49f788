"""
Viral extraction: select lineage-table rows for a target taxon and pull the
matching contigs out of the assembly.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple, Union

import pandas as pd
from Bio import SeqIO
from Bio.SeqRecord import SeqRecord
from loguru import logger

from .errors import ExtractionError


TAXONOMY_COLUMNS = [
    "contig", "evalue", "superkingdom", "kingdom", "phylum",
    "class", "order", "family", "genus", "species",
]


@dataclass(frozen=True)
class ViralSubset:
    """Outputs of a viral extraction."""

    taxonomy_path: Path
    sequences_path: Path
    identifiers: Tuple[str, ...]
    rows: Tuple[str, ...]
    count: int


class ViralExtractor:
    """Derives the viral taxonomy sub-table and sequence subset of a run."""

    def select_rows(self, lineage_table: Union[str, Path], target_taxon: str) -> List[str]:
        """
        Rows whose lineage contains the target taxon, in table order.

        Column 1 is the sequence identifier and is not searched; every other
        column is part of the lineage. Matching is a case-sensitive substring
        test.
        """
        selected = []
        with open(lineage_table, "r") as f:
            for line in f:
                row = line.rstrip("\n").rstrip("\r")
                if not row.strip():
                    continue
                lineage = row.split("\t")[1:]
                if any(target_taxon in field for field in lineage):
                    selected.append(row)
        return selected

    def extract(
        self,
        lineage_table: Union[str, Path],
        sequence_file: Union[str, Path],
        target_taxon: str,
        taxonomy_out: Union[str, Path],
        sequences_out: Union[str, Path],
    ) -> ViralSubset:
        """
        Write the taxonomy subset and the matching sequences.

        Args:
            lineage_table: Lineage-annotated classification table (TSV)
            sequence_file: Assembled sequences (FASTA)
            target_taxon: Literal taxon name, e.g. "Viruses"
            taxonomy_out: Output path for the selected table rows
            sequences_out: Output path for the selected sequences (FASTA)

        Returns:
            ViralSubset describing what was written

        Raises:
            ExtractionError: if a selected identifier has no sequence
        """
        taxonomy_out = Path(taxonomy_out)
        sequences_out = Path(sequences_out)
        taxonomy_out.parent.mkdir(parents=True, exist_ok=True)
        sequences_out.parent.mkdir(parents=True, exist_ok=True)

        rows = self.select_rows(lineage_table, target_taxon)
        identifiers = [row.split("\t")[0] for row in rows]
        logger.info(f"Selected {len(rows)} rows containing '{target_taxon}' from {lineage_table}")

        records = self._lookup(sequence_file, identifiers)

        with open(taxonomy_out, "w") as f:
            for row in rows:
                f.write(row + "\n")

        written = SeqIO.write(records, str(sequences_out), "fasta")
        if written != len(identifiers):
            raise ExtractionError(
                f"Wrote {written} sequences but {len(identifiers)} identifiers were selected"
            )

        count = self.count_sequences(sequences_out)
        logger.info(f"Number of viral contigs: {count}")

        return ViralSubset(
            taxonomy_path=taxonomy_out,
            sequences_path=sequences_out,
            identifiers=tuple(identifiers),
            rows=tuple(rows),
            count=count,
        )

    @staticmethod
    def _lookup(sequence_file: Union[str, Path], identifiers: List[str]) -> List[SeqRecord]:
        """Records for the identifiers, in identifier order (repeats included)."""
        if not identifiers:
            return []

        try:
            index = SeqIO.index(str(sequence_file), "fasta")
        except ValueError as e:
            # SeqIO.index refuses repeated record IDs
            raise ExtractionError(f"Cannot index sequences in {sequence_file}: {e}") from e

        try:
            missing = [seq_id for seq_id in identifiers if seq_id not in index]
            if missing:
                shown = ", ".join(missing[:5])
                more = f" and {len(missing) - 5} more" if len(missing) > 5 else ""
                raise ExtractionError(
                    f"{len(missing)} selected identifier(s) not found in {sequence_file}: {shown}{more}"
                )
            return [index[seq_id] for seq_id in identifiers]
        finally:
            index.close()

    @staticmethod
    def count_sequences(fasta_file: Union[str, Path]) -> int:
        """Number of header lines in a FASTA file."""
        with open(fasta_file, "r") as f:
            return sum(1 for line in f if line.startswith(">"))

    @staticmethod
    def summarize(subset: ViralSubset, rank: str = "family") -> pd.DataFrame:
        """
        Count selected contigs per taxon at the given rank.

        Rows that are too short to carry the rank are counted as 'NA'.
        """
        position = TAXONOMY_COLUMNS.index(rank)
        values = []
        for row in subset.rows:
            fields = row.split("\t")
            values.append(fields[position] if len(fields) > position and fields[position] else "NA")

        if not values:
            return pd.DataFrame(columns=[rank, "contigs"])

        summary = (
            pd.Series(values, name=rank)
            .value_counts()
            .rename_axis(rank)
            .reset_index(name="contigs")
            .sort_values(["contigs", rank], ascending=[False, True])
            .reset_index(drop=True)
        )
        return summary
