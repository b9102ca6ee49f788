"""Tests for library layout detection."""

import pytest

from dnatax.core.errors import LayoutError
from dnatax.core.layout import LibraryLayoutDetector, raw_files, trimmed_files
from dnatax.core.run import Layout


def touch(directory, *names):
    for name in names:
        (directory / name).write_text("@r\nA\n+\nI\n")


@pytest.fixture()
def detector():
    return LibraryLayoutDetector()


def test_single_end(tmp_path, detector):
    touch(tmp_path, "SRR1.fastq", "SRR2.fastq")
    assert detector.detect(["SRR1", "SRR2"], tmp_path) is Layout.SINGLE


def test_paired_end(tmp_path, detector):
    touch(tmp_path, "SRR1_1.fastq", "SRR1_2.fastq", "SRR2_1.fastq", "SRR2_2.fastq")
    assert detector.detect(["SRR1", "SRR2"], tmp_path) is Layout.PAIRED


def test_mixed_libraries(tmp_path, detector):
    touch(tmp_path, "SRR1.fastq", "SRR2_1.fastq", "SRR2_2.fastq")
    with pytest.raises(LayoutError) as excinfo:
        detector.detect(["SRR1", "SRR2"], tmp_path)
    assert excinfo.value.exit_code == 2
    assert "mixed" in str(excinfo.value)


def test_undeterminable(tmp_path, detector):
    touch(tmp_path, "SRR1.fastq")
    with pytest.raises(LayoutError) as excinfo:
        detector.detect(["SRR1", "SRR2"], tmp_path)
    assert "SRR2" in str(excinfo.value)


def test_half_a_pair_is_undeterminable(tmp_path, detector):
    touch(tmp_path, "SRR1_1.fastq")
    assert detector.detect_one("SRR1", tmp_path) is None


def test_override_skips_inspection(tmp_path, detector):
    assert detector.detect(["SRR1"], tmp_path, override="paired") is Layout.PAIRED


def test_file_sets(tmp_path):
    paired = raw_files("SRR1", Layout.PAIRED, tmp_path)
    assert [p.name for p in paired.paths] == ["SRR1_1.fastq", "SRR1_2.fastq"]

    trimmed = trimmed_files("SRR1", Layout.SINGLE, tmp_path)
    assert [p.name for p in trimmed.paths] == ["SRR1_trimmed.fq"]
    assert trimmed.missing() == list(trimmed.paths)


def test_unresolved_file_set(tmp_path):
    with pytest.raises(LayoutError):
        raw_files("SRR1", Layout.UNRESOLVED, tmp_path)
