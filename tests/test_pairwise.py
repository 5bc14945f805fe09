"""
Tests for pairwise alignment.
"""

import threading

import pytest

from TK4SeqAlign.errors import AlignmentCancelled, InvalidArgumentError
from TK4SeqAlign.seq_alignment import (
    GAP,
    AlignmentResult,
    PairwiseAligner,
    ScoringScheme,
    calculate_statistics,
    format_alignment,
    global_align,
    local_align,
    pairwise,
    semiglobal_align,
)


PAIRS = [
    ("GCATGCG", "GATTACA"),
    ("TGTTACGG", "GGTTGACTA"),
    ("ACGTACGTTT", "ACGACG"),
    ("A", "TTTTATTTT"),
    ("GGGGCCCC", "CCCCGGGG"),
    ("ACACACAC", "CACA"),
]

SCHEMES = [
    ScoringScheme.simple_dna(),
    ScoringScheme.blast_dna(),
    ScoringScheme.high_identity_dna(),
    ScoringScheme(3, -3, -2),
]


def _strip(row):
    return row.replace(GAP, "")


class TestGlobalAlignment:
    """Tests for Needleman-Wunsch alignment."""

    def test_worked_example(self):
        result = global_align("GCATGCG", "GATTACA")
        assert result.score == 0
        assert len(result.seq1_aligned) == len(result.seq2_aligned)

    def test_identical_sequences(self):
        result = global_align("ACGTACGT", "ACGTACGT")
        assert result.seq1_aligned == "ACGTACGT"
        assert result.seq2_aligned == "ACGTACGT"
        assert result.score == 8
        assert result.identity == 1.0
        assert result.gaps == 0

    def test_empty_against_sequence(self):
        result = global_align("", "ACG")
        assert result.seq1_aligned == "---"
        assert result.seq2_aligned == "ACG"
        assert result.score == -3

    def test_sequence_against_empty(self):
        result = global_align("ACG", "")
        assert result.seq1_aligned == "ACG"
        assert result.seq2_aligned == "---"
        assert result.score == -3

    def test_both_empty(self):
        result = global_align("", "")
        assert result.seq1_aligned == ""
        assert result.score == 0
        assert result.is_empty()

    def test_offsets_cover_inputs(self):
        result = global_align("ACGTT", "AGT")
        assert (result.start1, result.end1) == (0, 5)
        assert (result.start2, result.end2) == (0, 3)

    @pytest.mark.parametrize("seq1, seq2", PAIRS)
    @pytest.mark.parametrize("scoring", SCHEMES)
    def test_alignment_properties(self, seq1, seq2, scoring):
        result = global_align(seq1, seq2, scoring)
        assert len(result.seq1_aligned) == len(result.seq2_aligned)
        assert _strip(result.seq1_aligned) == seq1
        assert _strip(result.seq2_aligned) == seq2
        assert scoring.score_alignment(result.seq1_aligned, result.seq2_aligned) == result.score
        # no column has a gap on both sides
        assert all(not (a == GAP and b == GAP)
                   for a, b in zip(result.seq1_aligned, result.seq2_aligned))

    def test_float_scoring(self):
        scoring = ScoringScheme(1.5, -0.5, -1.0)
        result = global_align("GCATGCG", "GATTACA", scoring)
        rescored = scoring.score_alignment(result.seq1_aligned, result.seq2_aligned)
        assert rescored == pytest.approx(result.score)
        assert isinstance(result.score, float)


class TestTieBreaking:
    """Equal-scoring predecessors resolve diagonal, then up, then left."""

    def test_diagonal_before_left(self):
        result = global_align("A", "AA")
        assert result.seq1_aligned == "-A"
        assert result.seq2_aligned == "AA"

    def test_diagonal_before_up(self):
        result = global_align("AA", "A")
        assert result.seq1_aligned == "AA"
        assert result.seq2_aligned == "-A"

    def test_up_before_left(self):
        result = global_align("AC", "CA")
        assert result.seq1_aligned == "-AC"
        assert result.seq2_aligned == "CA-"
        assert result.score == -1

    def test_deterministic(self):
        first = global_align("GCATGCG", "GATTACA")
        second = global_align("GCATGCG", "GATTACA")
        assert first == second


class TestLocalAlignment:
    """Tests for Smith-Waterman alignment."""

    def test_worked_example(self):
        result = local_align("TGTTACGG", "GGTTGACTA", ScoringScheme(3, -3, -2))
        assert result.score == 13
        assert _strip(result.seq1_aligned) == "GTTAC"
        assert _strip(result.seq2_aligned) == "GTTGAC"

    @pytest.mark.parametrize("seq1, seq2", PAIRS)
    @pytest.mark.parametrize("scoring", SCHEMES)
    def test_alignment_properties(self, seq1, seq2, scoring):
        result = local_align(seq1, seq2, scoring)
        assert result.score >= 0
        assert len(result.seq1_aligned) == len(result.seq2_aligned)
        assert seq1[result.start1:result.end1] == _strip(result.seq1_aligned)
        assert seq2[result.start2:result.end2] == _strip(result.seq2_aligned)
        assert scoring.score_alignment(result.seq1_aligned, result.seq2_aligned) == result.score

    def test_no_similarity(self):
        result = local_align("AAAA", "TTTT")
        assert result.score == 0
        assert result.is_empty()
        assert (result.start1, result.end1, result.start2, result.end2) == (0, 0, 0, 0)

    def test_empty_input(self):
        result = local_align("", "ACGT")
        assert result.score == 0
        assert result.seq1_aligned == ""
        assert result.seq2_aligned == ""

    def test_embedded_region(self):
        result = local_align("TTTTACGTACGTTTTT", "GGACGTACGGG")
        assert _strip(result.seq1_aligned) == "ACGTACG"
        assert result.start1 == 4
        assert result.start2 == 2

    def test_first_maximum_wins(self):
        result = local_align("AC", "ACAC")
        assert result.score == 2
        assert (result.start1, result.end1) == (0, 2)
        assert (result.start2, result.end2) == (0, 2)

    def test_float_scoring_first_maximum(self):
        scoring = ScoringScheme(1.5, -0.7, -1.1)
        result = local_align("GC", "CAATACGAA", scoring)
        assert result.score == 1.5
        assert (result.start1, result.end1) == (0, 1)
        assert (result.start2, result.end2) == (6, 7)
        assert PairwiseAligner(scoring).score("GC", "CAATACGAA", "local") == 1.5

    @pytest.mark.parametrize("seq1, seq2", PAIRS)
    def test_float_scoring_properties(self, seq1, seq2):
        scoring = ScoringScheme(1.5, -0.7, -1.1)
        result = local_align(seq1, seq2, scoring)
        assert seq1[result.start1:result.end1] == _strip(result.seq1_aligned)
        rescored = scoring.score_alignment(result.seq1_aligned, result.seq2_aligned)
        assert rescored == pytest.approx(result.score)


class TestSemiGlobalAlignment:
    """Tests for seq1 end to end against a region of seq2."""

    def test_pattern_inside_longer_sequence(self):
        result = semiglobal_align("ACGT", "TTTACGTTTT")
        assert result.score == 4
        assert result.seq1_aligned == "ACGT"
        assert result.seq2_aligned == "ACGT"
        assert (result.start2, result.end2) == (3, 7)

    @pytest.mark.parametrize("seq1, seq2", PAIRS)
    def test_alignment_properties(self, seq1, seq2):
        scoring = ScoringScheme.blast_dna()
        result = semiglobal_align(seq1, seq2, scoring)
        assert _strip(result.seq1_aligned) == seq1
        assert (result.start1, result.end1) == (0, len(seq1))
        assert seq2[result.start2:result.end2] == _strip(result.seq2_aligned)
        assert scoring.score_alignment(result.seq1_aligned, result.seq2_aligned) == result.score

    def test_at_least_global_score(self):
        for seq1, seq2 in PAIRS:
            assert semiglobal_align(seq1, seq2).score >= global_align(seq1, seq2).score

    def test_float_scoring_first_maximum(self):
        scoring = ScoringScheme(1.5, -0.7, -1.1)
        result = semiglobal_align("G", "CCAAAAA", scoring)
        assert result.score == -0.7
        assert (result.start2, result.end2) == (0, 1)
        assert PairwiseAligner(scoring).score("G", "CCAAAAA", "semiglobal") == -0.7


class TestScoreOnly:
    """Score-only mode agrees with the full alignment."""

    @pytest.mark.parametrize("mode", ["global", "local", "semiglobal"])
    @pytest.mark.parametrize("seq1, seq2", PAIRS + [(b, a) for a, b in PAIRS])
    def test_matches_traceback_score(self, mode, seq1, seq2):
        aligner = PairwiseAligner(ScoringScheme(3, -3, -2))
        assert aligner.score(seq1, seq2, mode) == aligner.align(seq1, seq2, mode).score

    def test_align_score_only_flag(self):
        aligner = PairwiseAligner()
        assert aligner.align("GCATGCG", "GATTACA", "global", score_only=True) == 0

    def test_blosum62_protein(self):
        scoring = ScoringScheme.blosum62(gap_penalty=-8)
        aligner = PairwiseAligner(scoring)
        result = aligner.local_align("HEAGAWGHEE", "PAWHEAE")
        assert result.score > 0
        assert aligner.score("HEAGAWGHEE", "PAWHEAE", "local") == result.score
        assert scoring.score_alignment(result.seq1_aligned, result.seq2_aligned) == result.score


class TestArguments:
    """Argument validation happens before any DP work."""

    @pytest.mark.parametrize("func", [global_align, local_align, semiglobal_align])
    def test_none_sequence(self, func):
        with pytest.raises(InvalidArgumentError):
            func(None, "ACGT")
        with pytest.raises(InvalidArgumentError):
            func("ACGT", None)

    def test_non_string_sequence(self):
        with pytest.raises(InvalidArgumentError):
            global_align(["A", "C"], "AC")

    def test_unknown_mode(self):
        with pytest.raises(InvalidArgumentError):
            PairwiseAligner().align("AC", "AC", mode="overlap")

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            local_align(None, "A")

    def test_bad_scoring(self):
        with pytest.raises(InvalidArgumentError):
            PairwiseAligner(scoring=(1, -1, -1))


class TestCancellationAndProgress:
    """Cooperative cancellation and progress reporting."""

    def test_cancel_before_start(self):
        event = threading.Event()
        event.set()
        with pytest.raises(AlignmentCancelled):
            global_align("ACGTACGT", "ACGTTT", cancel_event=event)

    def test_cancel_score_only(self):
        event = threading.Event()
        event.set()
        with pytest.raises(AlignmentCancelled):
            PairwiseAligner().score("ACGT", "ACGT", cancel_event=event)

    def test_cancel_from_progress(self):
        event = threading.Event()

        def progress(fraction):
            if fraction > 0.3:
                event.set()

        with pytest.raises(AlignmentCancelled):
            local_align("ACGT" * 10, "ACGA" * 10, cancel_event=event, progress=progress)

    def test_unset_event_runs(self):
        result = global_align("ACGT", "ACGT", cancel_event=threading.Event())
        assert result.score == 4

    def test_progress_monotonic(self):
        seen = []
        local_align("ACGTACGTAC", "ACGTTT", progress=seen.append)
        assert seen
        assert seen == sorted(seen)
        assert seen[-1] == 1.0
        assert all(0.0 <= value <= 1.0 for value in seen)


class TestStatisticsAndFormatting:
    """Tests for statistics and text rendering."""

    def test_statistics_identical(self):
        stats = global_align("ATGC", "ATGC").statistics()
        assert stats.matches == 4
        assert stats.identity_percent == 100.0
        assert stats.gap_percent == 0.0

    def test_statistics_mismatch(self):
        stats = calculate_statistics(global_align("ATGC", "ATCC"))
        assert stats.matches == 3
        assert stats.mismatches == 1
        assert stats.identity_percent == 75.0
        assert stats.similarity_percent == 100.0

    def test_statistics_gap(self):
        stats = global_align("ATGCA", "ATGC").statistics()
        assert stats.gaps == 1
        assert stats.length == 5
        assert stats.gap_percent == 20.0

    def test_statistics_empty(self):
        stats = local_align("AAAA", "TTTT").statistics()
        assert stats.length == 0
        assert stats.identity_percent == 0.0

    def test_statistics_none(self):
        with pytest.raises(InvalidArgumentError):
            calculate_statistics(None)

    def test_match_string(self):
        result = global_align("ATGC", "ATCC")
        assert result.match_string == "||.|"
        assert result.nmatch() == 3

    def test_format_short(self):
        text = format_alignment(global_align("ATGC", "ATCC"))
        assert text == "ATGC\n||.|\nATCC\n\n"

    def test_format_wraps(self):
        seq = "ACGT" * 25
        text = global_align(seq, seq).format(line_width=60)
        lines = text.splitlines()
        assert lines[0] == seq[:60]
        assert lines[3] == ""
        assert lines[4] == seq[60:]
        assert len(lines) == 8

    def test_format_empty(self):
        assert format_alignment(local_align("AAAA", "TTTT")) == ""

    def test_format_none(self):
        with pytest.raises(InvalidArgumentError):
            format_alignment(None)

    def test_str_contains_score(self):
        assert "Alignment Score: 4" in str(global_align("ACGT", "ACGT"))

    def test_result_methods_documented(self):
        for name in ("__len__", "is_empty", "statistics", "format", "plot", "nmatch"):
            assert getattr(AlignmentResult, name).__doc__


class TestPairwiseFunction:
    """Tests for the one-call helper."""

    def test_default_mode_is_local(self):
        result = pairwise("TGTTACGG", "GGTTGACTA", scoring=ScoringScheme(3, -3, -2))
        assert result.alignment_type == "local"
        assert result.score == 13

    def test_verbose_output(self, capsys):
        pairwise("ACGT", "ACGT", mode="global", verbose=True)
        out = capsys.readouterr().out
        assert "PAIRWISE SEQUENCE ALIGNMENT" in out
        assert "ALIGNMENT RESULTS" in out

    def test_view_prints(self, capsys):
        pairwise("ACGT", "ACGT").view()
        assert "seq1: ACGT" in capsys.readouterr().out
