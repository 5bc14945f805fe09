"""
Pairwise Sequence Alignment Module
Global (Needleman-Wunsch), local (Smith-Waterman) and semi-global alignment
with a linear gap penalty
"""

from dataclasses import dataclass
from typing import Callable, List, Literal, Optional, Tuple, Union

import numpy as np

from ..errors import (
    InternalInvariantError,
    InvalidArgumentError,
    check_cancelled,
    require_sequence,
)
from .scoring import GAP, ScoringScheme, resolve


GLOBAL = "global"
LOCAL = "local"
SEMIGLOBAL = "semiglobal"
MODES = (GLOBAL, LOCAL, SEMIGLOBAL)

# Predecessor tags stored in the flat traceback array
DP_NONE = 0
DP_DIAG = 1
DP_UP = 2
DP_LEFT = 3

# Tie tolerance for float scoring; integer scoring compares exactly
_FLOAT_EPS = 1e-9

# Share of the progress range spent filling the matrix
_FILL_SHARE = 0.9

RowScorer = Callable[[int], np.ndarray]
ProgressSink = Callable[[float], None]


@dataclass
class AlignmentStatistics:
    """Column counts of an alignment; percentages are 0-100"""
    matches: int
    mismatches: int
    gaps: int
    length: int
    identity_percent: float
    similarity_percent: float
    gap_percent: float


@dataclass
class AlignmentResult:
    """Store alignment results and metadata"""
    seq1_aligned: str
    seq2_aligned: str
    score: float
    start1: int
    end1: int
    start2: int
    end2: int
    alignment_type: str
    match_string: str
    identity: float
    similarity: float
    gaps: int
    seq1_original: str
    seq2_original: str

    def __str__(self) -> str:
        """String representation of alignment"""
        return (
            f"Alignment Score: {self.score}\n"
            f"Type: {self.alignment_type}\n"
            f"Identity: {self.identity:.2%}\n"
            f"Similarity: {self.similarity:.2%}\n"
            f"Gaps: {self.gaps}\n"
            f"Range: [{self.start1}-{self.end1}] x [{self.start2}-{self.end2}]\n"
        )

    def __len__(self) -> int:
        """Number of alignment columns"""
        return len(self.seq1_aligned)

    def plot(self, width: int = 80) -> None:
        """Display alignment with match indicators"""
        lines = [
            "",
            f"Sequence 1: {self.seq1_original}",
            f"Sequence 2: {self.seq2_original}",
            "",
            f"Type: {self.alignment_type}",
            f"Identity: {self.identity:.2%}",
            f"Similarity: {self.similarity:.2%}",
            f"Gaps: {self.gaps}",
            "",
            f"Score: {self.score}",
            "",
        ]
        for start in range(0, len(self.seq1_aligned), width):
            end = min(start + width, len(self.seq1_aligned))
            lines.append(f"seq1: {self.seq1_aligned[start:end]}")
            lines.append(f"      {self.match_string[start:end]}")
            lines.append(f"seq2: {self.seq2_aligned[start:end]}")
            lines.append("")

        for line in lines:
            print(line)

    def view(self, width: int = 80) -> None:
        """Alias for plot method"""
        self.plot(width)

    def nmatch(self) -> int:
        """Number of matching positions"""
        return self.match_string.count("|")

    def is_empty(self) -> bool:
        """True when no columns were aligned"""
        return not self.seq1_aligned

    def statistics(self) -> AlignmentStatistics:
        """Match, mismatch and gap counts"""
        return calculate_statistics(self)

    def format(self, line_width: int = 60) -> str:
        """Alignment as wrapped text blocks"""
        return format_alignment(self, line_width)


# ----------------------------------------------------------------------
# Statistics / display
# ----------------------------------------------------------------------
def _calculate_match_string(aligned1: str, aligned2: str) -> str:
    """'|' match, '.' mismatch, ' ' gap"""
    match_str = []
    for a, b in zip(aligned1, aligned2):
        if a == GAP or b == GAP:
            match_str.append(" ")
        elif a == b:
            match_str.append("|")
        else:
            match_str.append(".")
    return "".join(match_str)


def calculate_statistics(alignment: AlignmentResult) -> AlignmentStatistics:
    """Count matches, mismatches and gap columns of an alignment"""
    if alignment is None:
        raise InvalidArgumentError("alignment must not be None")

    marks = alignment.match_string or _calculate_match_string(
        alignment.seq1_aligned, alignment.seq2_aligned
    )
    length = len(marks)
    if length == 0:
        return AlignmentStatistics(0, 0, 0, 0, 0.0, 0.0, 0.0)

    matches = marks.count("|")
    mismatches = marks.count(".")
    gaps = marks.count(" ")
    return AlignmentStatistics(
        matches=matches,
        mismatches=mismatches,
        gaps=gaps,
        length=length,
        identity_percent=matches / length * 100,
        similarity_percent=(matches + mismatches) / length * 100,
        gap_percent=gaps / length * 100,
    )


def format_alignment(alignment: AlignmentResult, line_width: int = 60) -> str:
    """
    Render an alignment as blocks of three lines

    Each block is seq1, the match line and seq2, followed by a blank line.
    An empty alignment renders as an empty string.
    """
    if alignment is None:
        raise InvalidArgumentError("alignment must not be None")
    if line_width <= 0:
        raise InvalidArgumentError("line_width must be positive")

    a1, a2 = alignment.seq1_aligned, alignment.seq2_aligned
    if not a1:
        return ""
    marks = alignment.match_string or _calculate_match_string(a1, a2)

    blocks = []
    for start in range(0, len(a1), line_width):
        end = start + line_width
        blocks.append(f"{a1[start:end]}\n{marks[start:end]}\n{a2[start:end]}\n")
    return "\n".join(blocks) + "\n"


# ----------------------------------------------------------------------
# DP core (shared with the multiple aligner)
# ----------------------------------------------------------------------
def pair_row_scorer(seq1: str, seq2: str, scoring: ScoringScheme) -> RowScorer:
    """
    Resolve ``scoring`` for one pair of sequences

    Returns ``row_scores(i)``: the scores of ``seq1[i]`` against every symbol
    of ``seq2`` as one numpy row.
    """
    alphabet = scoring.alphabet(seq1, seq2)
    index = {symbol: k for k, symbol in enumerate(alphabet)}
    table = scoring.table(alphabet)
    codes1 = scoring.encode(seq1, index)
    codes2 = scoring.encode(seq2, index)
    # (K, m): column lookups done once, each DP row is one fancy index
    by_symbol = table[:, codes2]

    def row_scores(i: int) -> np.ndarray:
        return by_symbol[codes1[i]]

    return row_scores


def _is_close(a: np.ndarray, b: np.ndarray, eps: float) -> np.ndarray:
    if eps == 0:
        return a == b
    return np.abs(a - b) <= eps


def _next_row(prev, scores, first, gap, gap_run, local):
    """
    Compute DP row i from row i-1

    ``first`` is the column-0 value. Horizontal gap runs are resolved with a
    running maximum: H[j] = max over l <= j of cand[l] + (j - l) * gap.
    Each cell is rebuilt from its winning ``l`` so a cell that takes its
    diagonal or up value keeps that value exactly.
    """
    width = prev.shape[0]
    diag = prev[:-1] + scores
    up = prev[1:] + gap
    cand = np.empty(width, dtype=prev.dtype)
    cand[0] = first
    np.maximum(diag, up, out=cand[1:])
    if local:
        np.maximum(cand, 0, out=cand)
    key = cand - gap_run
    running = np.maximum.accumulate(key)
    cols = np.arange(width)
    source = np.maximum.accumulate(np.where(key == running, cols, 0))
    row = cand[source] + (cols - source) * gap
    return row.astype(prev.dtype, copy=False), diag, up


def _first_max(row: np.ndarray, eps) -> int:
    """Index of the first value within ``eps`` of the row maximum"""
    return int(np.flatnonzero(row >= row.max() - eps)[0])


def _first_row(width: int, gap, dtype, mode: str):
    gap_run = (np.arange(width) * gap).astype(dtype)
    if mode == GLOBAL:
        return gap_run.copy(), gap_run
    return np.zeros(width, dtype=dtype), gap_run


def _fill_matrix(
    n: int,
    m: int,
    row_scores: RowScorer,
    gap,
    dtype,
    mode: str = GLOBAL,
    cancel_event=None,
    progress: Optional[ProgressSink] = None,
    verbose: bool = False,
) -> Tuple[np.ndarray, float, Tuple[int, int]]:
    """
    Fill the DP matrix and return (pointers, best score, best cell)

    Scores are kept in two rolling rows; predecessor tags go into one flat
    uint8 array of ``(n + 1) * (m + 1)`` cells indexed ``i * (m + 1) + j``.
    Ties resolve diagonal, then up, then left.
    """
    width = m + 1
    local = mode == LOCAL
    eps = 0 if np.issubdtype(dtype, np.integer) else _FLOAT_EPS

    pointers = np.zeros((n + 1) * width, dtype=np.uint8)
    prev, gap_run = _first_row(width, gap, dtype, mode)
    if mode == GLOBAL:
        pointers[1:width] = DP_LEFT

    best_score = prev[0]
    best_pos = (0, 0)

    if verbose:
        print(f"\nFilling alignment matrix for sequences of length {n} x {m}")
        print(f"Total cells to compute: {n * m}")
        print("Computing ", end="")

    for i in range(1, n + 1):
        check_cancelled(cancel_event)

        first = 0 if local else i * gap
        row, diag, up = _next_row(prev, row_scores(i - 1), first, gap, gap_run, local)

        body = row[1:]
        tags = np.full(m, DP_LEFT, dtype=np.uint8)
        tags[_is_close(body, up, eps)] = DP_UP
        tags[_is_close(body, diag, eps)] = DP_DIAG
        if local:
            tags[body <= eps] = DP_NONE

        offset = i * width
        pointers[offset] = DP_NONE if local else DP_UP
        pointers[offset + 1:offset + width] = tags

        if local:
            j = _first_max(row, eps)
            if row[j] > best_score + eps:
                best_score = row[j]
                best_pos = (i, j)

        prev = row

        if progress is not None:
            progress(_FILL_SHARE * i / n)
        if verbose and i % max(1, n // 10) == 0:
            print("█", end="", flush=True)

    if verbose:
        print(" 100.0%")
        print("✓ Matrix computation complete!")

    if mode == GLOBAL:
        best_score = prev[m]
        best_pos = (n, m)
    elif mode == SEMIGLOBAL:
        j = _first_max(prev, eps)
        best_score = prev[j]
        best_pos = (n, j)

    return pointers, best_score.item(), best_pos


def _traceback(pointers: np.ndarray, width: int, i: int, j: int) -> Tuple[List[int], int, int]:
    """
    Walk predecessor tags back from (i, j) to the first DP_NONE cell

    Returns the moves in forward order and the cell where the walk stopped.
    """
    ops: List[int] = []
    while True:
        tag = pointers[i * width + j]
        if tag == DP_NONE:
            break
        if tag == DP_DIAG:
            i -= 1
            j -= 1
        elif tag == DP_UP:
            i -= 1
        elif tag == DP_LEFT:
            j -= 1
        else:
            raise InternalInvariantError(f"Unknown traceback tag {tag} at ({i}, {j})")
        if i < 0 or j < 0:
            raise InternalInvariantError(f"Traceback left the matrix at ({i}, {j})")
        ops.append(int(tag))
    ops.reverse()
    return ops, i, j


def _render(ops: List[int], seq1: str, seq2: str, i: int, j: int) -> Tuple[str, str]:
    """Turn traceback moves starting at (i, j) into two gapped rows"""
    aligned1, aligned2 = [], []
    for op in ops:
        if op == DP_DIAG:
            aligned1.append(seq1[i])
            aligned2.append(seq2[j])
            i += 1
            j += 1
        elif op == DP_UP:
            aligned1.append(seq1[i])
            aligned2.append(GAP)
            i += 1
        else:
            aligned1.append(GAP)
            aligned2.append(seq2[j])
            j += 1
    return "".join(aligned1), "".join(aligned2)


def _score_only(
    n: int,
    m: int,
    row_scores: RowScorer,
    gap,
    dtype,
    mode: str,
    cancel_event=None,
) -> float:
    """Same recurrence as _fill_matrix, two rows of memory, no traceback"""
    local = mode == LOCAL
    eps = 0 if np.issubdtype(dtype, np.integer) else _FLOAT_EPS
    prev, gap_run = _first_row(m + 1, gap, dtype, mode)
    best = prev[0]
    for i in range(1, n + 1):
        check_cancelled(cancel_event)
        first = 0 if local else i * gap
        prev, _, _ = _next_row(prev, row_scores(i - 1), first, gap, gap_run, local)
        if local:
            j = _first_max(prev, eps)
            if prev[j] > best + eps:
                best = prev[j]
    if mode == GLOBAL:
        best = prev[m]
    elif mode == SEMIGLOBAL:
        best = prev[_first_max(prev, eps)]
    return best.item()


# ----------------------------------------------------------------------
# Aligner
# ----------------------------------------------------------------------
class PairwiseAligner:
    """Pairwise sequence alignment with a linear gap penalty"""

    def __init__(self, scoring: Optional[ScoringScheme] = None, verbose: bool = False):
        """
        Parameters
        ----------
        scoring : ScoringScheme, optional
            Match / mismatch / gap scores (default ScoringScheme.simple_dna())
        verbose : bool
            Print a banner, fill progress and a result summary
        """
        self.scoring = resolve(scoring)
        self.verbose = verbose

    def global_align(self, seq1: str, seq2: str, cancel_event=None,
                     progress: Optional[ProgressSink] = None) -> AlignmentResult:
        """Needleman-Wunsch: both sequences end to end"""
        return self.align(seq1, seq2, GLOBAL, cancel_event=cancel_event, progress=progress)

    def local_align(self, seq1: str, seq2: str, cancel_event=None,
                    progress: Optional[ProgressSink] = None) -> AlignmentResult:
        """Smith-Waterman: best-scoring pair of substrings"""
        return self.align(seq1, seq2, LOCAL, cancel_event=cancel_event, progress=progress)

    def semiglobal_align(self, seq1: str, seq2: str, cancel_event=None,
                         progress: Optional[ProgressSink] = None) -> AlignmentResult:
        """All of seq1 against the best-matching region of seq2"""
        return self.align(seq1, seq2, SEMIGLOBAL, cancel_event=cancel_event, progress=progress)

    def score(self, seq1: str, seq2: str, mode: Literal["global", "local", "semiglobal"] = GLOBAL,
              cancel_event=None) -> float:
        """
        Optimal alignment score without traceback

        Uses O(min(n, m)) memory for global and local mode by laying the
        shorter sequence along the row.
        """
        seq1 = require_sequence(seq1, "seq1")
        seq2 = require_sequence(seq2, "seq2")
        _check_mode(mode)

        scoring = self.scoring
        if mode != SEMIGLOBAL and len(seq2) > len(seq1):
            row_scores = _transposed_scorer(seq1, seq2, scoring)
            n, m = len(seq2), len(seq1)
        else:
            row_scores = pair_row_scorer(seq1, seq2, scoring)
            n, m = len(seq1), len(seq2)
        return _score_only(n, m, row_scores, scoring.gap_penalty, scoring.dtype, mode, cancel_event)

    def align(
        self,
        seq1: str,
        seq2: str,
        mode: Literal["global", "local", "semiglobal"] = LOCAL,
        score_only: bool = False,
        cancel_event=None,
        progress: Optional[ProgressSink] = None,
    ) -> Union[AlignmentResult, float]:
        """
        Perform pairwise sequence alignment

        Parameters
        ----------
        seq1 : str
            First sequence
        seq2 : str
            Second sequence
        mode : str
            "global", "local" or "semiglobal" (default "local")
        score_only : bool
            If True, return only the alignment score
        cancel_event : threading.Event, optional
            Checked once per DP row; when set, AlignmentCancelled is raised
        progress : callable, optional
            Receives the completed fraction (0.0 - 1.0) once per DP row

        Returns
        -------
        AlignmentResult or float
        """
        seq1 = require_sequence(seq1, "seq1")
        seq2 = require_sequence(seq2, "seq2")
        _check_mode(mode)

        if score_only:
            return self.score(seq1, seq2, mode, cancel_event=cancel_event)

        scoring = self.scoring
        verbose = self.verbose
        n, m = len(seq1), len(seq2)

        if verbose:
            print("\n" + "=" * 70)
            print("PAIRWISE SEQUENCE ALIGNMENT")
            print("=" * 70)
            print(f"Sequence 1: {seq1}")
            print(f"Sequence 2: {seq2}")
            print(f"Mode: {mode}")
            print(f"Match: {scoring.match_score}, Mismatch: {scoring.mismatch_score}, "
                  f"Gap: {scoring.gap_penalty}")
            print("=" * 70)

        row_scores = pair_row_scorer(seq1, seq2, scoring)
        pointers, score, (end_i, end_j) = _fill_matrix(
            n, m, row_scores, scoring.gap_penalty, scoring.dtype, mode,
            cancel_event=cancel_event, progress=progress, verbose=verbose,
        )

        check_cancelled(cancel_event)
        ops, start_i, start_j = _traceback(pointers, m + 1, end_i, end_j)
        del pointers

        if mode == GLOBAL and (start_i, start_j) != (0, 0):
            raise InternalInvariantError(
                f"Global traceback stopped at ({start_i}, {start_j})"
            )
        if mode == SEMIGLOBAL and start_i != 0:
            raise InternalInvariantError(f"Semi-global traceback stopped on row {start_i}")

        aligned1, aligned2 = _render(ops, seq1, seq2, start_i, start_j)
        if len(aligned1) != len(aligned2):
            raise InternalInvariantError("Aligned rows differ in length")

        if mode == LOCAL and not ops:
            # Nothing scored above zero
            start_i = end_i = start_j = end_j = 0
            score = 0

        result = _build_result(
            aligned1, aligned2, score, start_i, end_i, start_j, end_j, mode, seq1, seq2
        )

        if progress is not None:
            progress(1.0)
        if verbose:
            print("\nALIGNMENT RESULTS")
            print("=" * 70)
            print(f"Score: {score}")
            print(f"Identity: {result.identity:.2%} ({result.nmatch()} matches)")
            print(f"Gaps: {result.gaps}")
            print(f"Length: {len(aligned1)}")
            print("=" * 70 + "\n")

        return result


def _check_mode(mode: str) -> None:
    if mode not in MODES:
        raise InvalidArgumentError(f"mode must be one of {MODES}, got {mode!r}")


def _transposed_scorer(seq1: str, seq2: str, scoring: ScoringScheme) -> RowScorer:
    """Row scorer over seq2 x seq1 that keeps score(seq1 symbol, seq2 symbol)"""
    alphabet = scoring.alphabet(seq1, seq2)
    index = {symbol: k for k, symbol in enumerate(alphabet)}
    table = scoring.table(alphabet)
    codes1 = scoring.encode(seq1, index)
    codes2 = scoring.encode(seq2, index)
    by_symbol = table[codes1, :].T  # (K, len(seq1))

    def row_scores(i: int) -> np.ndarray:
        return by_symbol[codes2[i]]

    return row_scores


def _build_result(aligned1, aligned2, score, start1, end1, start2, end2,
                  mode, seq1, seq2) -> AlignmentResult:
    match_string = _calculate_match_string(aligned1, aligned2)
    length = len(aligned1)
    matches = match_string.count("|")
    paired = matches + match_string.count(".")
    return AlignmentResult(
        seq1_aligned=aligned1,
        seq2_aligned=aligned2,
        score=score,
        start1=start1,
        end1=end1,
        start2=start2,
        end2=end2,
        alignment_type=mode,
        match_string=match_string,
        identity=matches / length if length else 0.0,
        similarity=paired / length if length else 0.0,
        gaps=length - paired,
        seq1_original=seq1,
        seq2_original=seq2,
    )


# ----------------------------------------------------------------------
# Convenience functions
# ----------------------------------------------------------------------
def global_align(seq1: str, seq2: str, scoring: Optional[ScoringScheme] = None,
                 cancel_event=None, progress: Optional[ProgressSink] = None) -> AlignmentResult:
    """Needleman-Wunsch global alignment of two sequences"""
    return PairwiseAligner(scoring).global_align(seq1, seq2, cancel_event, progress)


def local_align(seq1: str, seq2: str, scoring: Optional[ScoringScheme] = None,
                cancel_event=None, progress: Optional[ProgressSink] = None) -> AlignmentResult:
    """Smith-Waterman local alignment of two sequences"""
    return PairwiseAligner(scoring).local_align(seq1, seq2, cancel_event, progress)


def semiglobal_align(seq1: str, seq2: str, scoring: Optional[ScoringScheme] = None,
                     cancel_event=None, progress: Optional[ProgressSink] = None) -> AlignmentResult:
    """seq1 end to end against the best region of seq2, flanks of seq2 free"""
    return PairwiseAligner(scoring).semiglobal_align(seq1, seq2, cancel_event, progress)


def pairwise(
    seq1: str,
    seq2: str,
    mode: Literal["global", "local", "semiglobal"] = LOCAL,
    scoring: Optional[ScoringScheme] = None,
    verbose: bool = False,
) -> AlignmentResult:
    """
    One-call pairwise alignment

    Examples
    --------
    >>> result = pairwise("TGTTACGG", "GGTTGACTA", mode="local",
    ...                   scoring=ScoringScheme(3, -3, -2))
    >>> result.score
    13
    >>> result.seq2_aligned
    'GTTGAC'
    """
    return PairwiseAligner(scoring, verbose=verbose).align(seq1, seq2, mode)
