"""
Multiple Sequence Alignment (MSA) - Progressive, reference-guided
- Guide stage: all-pairs global scores (serial or threaded)
- Each remaining sequence is aligned against the growing profile with the
  global recurrence; profile columns score by their mean symbol score
- Heuristic: a different merge order can give a different alignment
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from ..errors import InvalidArgumentError, check_cancelled, require_sequence
from .guide import compute_score_matrix, merge_order, select_reference
from .pairwise import DP_DIAG, DP_UP, GLOBAL, _fill_matrix, _traceback
from .scoring import GAP, ScoringScheme, resolve


# -------------------------
# Data structures
# -------------------------
@dataclass
class MSAResult:
    aligned: List[str]               # input order, common length
    consensus: str
    order: List[int]                 # merge order (input indices)
    reference: Optional[int]         # index of the reference sequence, None when empty
    score: float                     # sum-of-pairs score of the final columns
    names: Optional[List[str]] = None

    def __len__(self) -> int:
        return len(self.aligned)

    @property
    def length(self) -> int:
        return len(self.aligned[0]) if self.aligned else 0

    def as_dict(self) -> Dict[str, str]:
        """name -> aligned row (names default to seq0, seq1, ...)"""
        names = self.names or [f"seq{i}" for i in range(len(self.aligned))]
        return dict(zip(names, self.aligned))

    def to_fasta(self, width: int = 80) -> str:
        """Aligned rows as FASTA text, wrapped at ``width`` columns"""
        lines = []
        for name, row in self.as_dict().items():
            lines.append(f">{name}")
            for i in range(0, len(row), width):
                lines.append(row[i:i + width])
        return "\n".join(lines) + "\n" if lines else ""


@dataclass
class _Profile:
    rows: List[str]  # same length

    def length(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    def nseq(self) -> int:
        return len(self.rows)

    def column_counts(self, index: Mapping[str, int], scoring: ScoringScheme) -> np.ndarray:
        """
        (L x K+1) symbol counts per column; the last slot counts gaps
        """
        codes = np.array([scoring.encode(r, index) for r in self.rows], dtype=np.intp)
        K1 = len(index)
        counts = np.zeros((self.length(), K1), dtype=np.int64)
        for c in range(K1):
            counts[:, c] = (codes == c).sum(axis=0)
        return counts


# -------------------------
# Profile-sequence DP
# -------------------------
def _profile_row_scorer(profile: _Profile, seq: str, scoring: ScoringScheme):
    """
    Row scorer for profile columns (rows of the DP) against ``seq``

    Column scores are kept as sums over the profile rows instead of means,
    with the gap penalty scaled by the same row count, so integer scoring
    stays exact. The optimal path is the same as with means.
    """
    alphabet = scoring.alphabet(*profile.rows, seq, skip_gaps=True)
    K = len(alphabet)
    index = {symbol: k for k, symbol in enumerate(alphabet)}
    index[GAP] = K

    table = np.empty((K + 1, K), dtype=scoring.dtype)
    table[:K] = scoring.table(alphabet)
    table[K] = scoring.gap_penalty  # gap already in the column vs. new symbol

    counts = profile.column_counts(index, scoring)
    seq_codes = scoring.encode(seq, index)
    col_sums = counts @ table[:, seq_codes]  # (L, n)

    def row_scores(i: int) -> np.ndarray:
        return col_sums[i]

    return row_scores


def _align_to_profile(profile: _Profile, seq: str, scoring: ScoringScheme,
                      cancel_event=None) -> _Profile:
    """
    Global alignment of ``seq`` against the profile

    An up step puts a gap into ``seq``; a left step inserts a new gap
    column into every profile row.
    """
    L, n = profile.length(), len(seq)
    nrows = profile.nseq()
    row_scores = _profile_row_scorer(profile, seq, scoring)

    pointers, _, (end_i, end_j) = _fill_matrix(
        L, n, row_scores, scoring.gap_penalty * nrows, scoring.dtype, GLOBAL,
        cancel_event=cancel_event,
    )
    ops, _, _ = _traceback(pointers, n + 1, end_i, end_j)
    del pointers

    new_rows: List[List[str]] = [[] for _ in range(nrows)]
    new_seq: List[str] = []
    col = pos = 0
    for op in ops:
        if op == DP_DIAG or op == DP_UP:
            for r, row in enumerate(profile.rows):
                new_rows[r].append(row[col])
            col += 1
        else:
            for r in range(nrows):
                new_rows[r].append(GAP)
        if op == DP_UP:
            new_seq.append(GAP)
        else:
            new_seq.append(seq[pos])
            pos += 1

    return _Profile(["".join(r) for r in new_rows] + ["".join(new_seq)])


# -------------------------
# Consensus / scoring
# -------------------------
def build_consensus(aligned: Sequence[str]) -> str:
    """
    Majority symbol per column, gaps ignored

    Ties go to the symbol seen first (in row order).
    """
    if not aligned:
        return ""
    consensus = []
    for column in zip(*aligned):
        counts = Counter(ch for ch in column if ch != GAP)
        consensus.append(counts.most_common(1)[0][0] if counts else GAP)
    return "".join(consensus)


def sum_of_pairs(aligned: Sequence[str], scoring: Optional[ScoringScheme] = None) -> float:
    """Sum of pairwise column scores over every pair of rows"""
    scoring = resolve(scoring)
    total = 0
    for i in range(len(aligned)):
        for j in range(i + 1, len(aligned)):
            total += scoring.score_alignment(aligned[i], aligned[j])
    return total


# -------------------------
# Orchestrator (MSA)
# -------------------------
class MultipleSequenceAligner:
    """Progressive multiple alignment driven by pairwise global alignment"""

    def __init__(self, scoring: Optional[ScoringScheme] = None,
                 n_jobs: Optional[int] = None, verbose: bool = False):
        self.scoring = resolve(scoring)
        self.n_jobs = n_jobs
        self.verbose = verbose

    def align(
        self,
        sequences: Union[Sequence[str], Mapping[str, str]],
        cancel_event=None,
        progress: Optional[Callable[[float], None]] = None,
    ) -> MSAResult:
        """
        Build a progressive MSA:
          1) all-pairs global scores
          2) reference = best mean score; merge order = score to reference
          3) sequence-to-profile merges in that order

        Parameters
        ----------
        sequences : list of str or dict
            Ordered sequences, or {name: sequence}
        cancel_event : threading.Event, optional
            Checked once per DP row in every stage
        progress : callable, optional
            0.0 - 0.5 while scoring pairs, 0.5 - 1.0 while merging

        Returns
        -------
        MSAResult
            Rows in input order
        """
        if sequences is None:
            raise InvalidArgumentError("sequences must not be None")
        names: Optional[List[str]] = None
        if isinstance(sequences, Mapping):
            names = [str(nm) for nm in sequences.keys()]
            sequences = list(sequences.values())
        seqs = [require_sequence(s, f"sequences[{i}]") for i, s in enumerate(sequences)]
        for i, s in enumerate(seqs):
            if GAP in s:
                raise InvalidArgumentError(
                    f"sequences[{i}] contains the gap symbol {GAP!r}"
                )

        k = len(seqs)
        if k == 0:
            return MSAResult([], "", [], None, 0, names)
        if k == 1:
            return MSAResult([seqs[0]], seqs[0], [0], 0, 0, names)

        scoring = self.scoring
        verbose = self.verbose

        if verbose:
            print("\n" + "=" * 70)
            print("PROGRESSIVE MULTIPLE SEQUENCE ALIGNMENT")
            print("=" * 70)
            print(f"Sequences: {k}")
            print("\nScoring all pairs...")

        guide_progress = None
        if progress is not None:
            def guide_progress(fraction: float) -> None:
                progress(0.5 * fraction)

        S = compute_score_matrix(
            seqs, scoring, n_jobs=self.n_jobs,
            cancel_event=cancel_event, progress=guide_progress,
        )
        reference = select_reference(S)
        order = merge_order(S, reference)

        if verbose:
            print(f"✓ {k * (k - 1) // 2} pairs scored")
            print(f"Reference: sequence {reference}")
            print(f"Merge order: {order}")

        profile = _Profile([seqs[reference]])
        for step, idx in enumerate(order[1:], start=1):
            check_cancelled(cancel_event)
            profile = _align_to_profile(profile, seqs[idx], scoring, cancel_event)
            if progress is not None:
                progress(0.5 + 0.5 * step / (k - 1))
            if verbose:
                print(f"  merged sequence {idx} -> profile length {profile.length()}")

        # profile rows are in merge order; put them back in input order
        aligned: List[str] = [""] * k
        for row, idx in zip(profile.rows, order):
            aligned[idx] = row

        result = MSAResult(
            aligned=aligned,
            consensus=build_consensus(aligned),
            order=order,
            reference=reference,
            score=sum_of_pairs(aligned, scoring),
            names=names,
        )

        if verbose:
            print(f"\nAlignment length: {result.length}")
            print(f"Sum-of-pairs score: {result.score}")
            print("=" * 70 + "\n")
        return result


def align_multiple(
    sequences: Union[Sequence[str], Mapping[str, str]],
    scoring: Optional[ScoringScheme] = None,
    n_jobs: Optional[int] = None,
    cancel_event=None,
    progress: Optional[Callable[[float], None]] = None,
    verbose: bool = False,
) -> MSAResult:
    """Progressive MSA of ``sequences``; see MultipleSequenceAligner.align"""
    return MultipleSequenceAligner(scoring, n_jobs=n_jobs, verbose=verbose).align(
        sequences, cancel_event=cancel_event, progress=progress
    )


async def align_multiple_async(
    sequences: Union[Sequence[str], Mapping[str, str]],
    scoring: Optional[ScoringScheme] = None,
    n_jobs: Optional[int] = None,
    cancel_event=None,
) -> MSAResult:
    """Run align_multiple in the event loop's default executor"""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        lambda: align_multiple(sequences, scoring, n_jobs=n_jobs, cancel_event=cancel_event),
    )
