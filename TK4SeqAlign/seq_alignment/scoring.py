"""
Scoring schemes for pairwise and multiple alignment

A ScoringScheme is a plain immutable value. Before a DP run it is resolved
once into a dense numpy table over the symbols that actually occur in the
call, so the inner loops never dispatch on the scheme.
"""

import warnings
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from ..errors import InvalidArgumentError


GAP = "-"

# BLOSUM62 protein substitution matrix (NCBI layout: row symbol, then one
# score per column symbol in _BLOSUM62_ORDER)
_BLOSUM62_ORDER = "ARNDCQEGHILKMFPSTWYV"
_BLOSUM62_TABLE = """
A   4  -1  -2  -2   0  -1  -1   0  -2  -1  -1  -1  -1  -2  -1   1   0  -3  -2   0
R  -1   5   0  -2  -3   1   0  -2   0  -3  -2   2  -1  -3  -2  -1  -1  -3  -2  -3
N  -2   0   6   1  -3   0   0   0   1  -3  -3   0  -2  -3  -2   1   0  -4  -2  -3
D  -2  -2   1   6  -3   0   2  -1  -1  -3  -4  -1  -3  -3  -1   0  -1  -4  -3  -3
C   0  -3  -3  -3   9  -3  -4  -3  -3  -1  -1  -3  -1  -2  -3  -1  -1  -2  -2  -1
Q  -1   1   0   0  -3   5   2  -2   0  -3  -2   1   0  -3  -1   0  -1  -2  -1  -2
E  -1   0   0   2  -4   2   5  -2   0  -3  -3   1  -2  -3  -1   0  -1  -3  -2  -2
G   0  -2   0  -1  -3  -2  -2   6  -2  -4  -4  -2  -3  -3  -2   0  -2  -2  -3  -3
H  -2   0   1  -1  -3   0   0  -2   8  -3  -3  -1  -2  -1  -2  -1  -2  -2   2  -3
I  -1  -3  -3  -3  -1  -3  -3  -4  -3   4   2  -3   1   0  -3  -2  -1  -3  -1   3
L  -1  -2  -3  -4  -1  -2  -3  -4  -3   2   4  -2   2   0  -3  -2  -1  -2  -1   1
K  -1   2   0  -1  -3   1   1  -2  -1  -3  -2   5  -1  -3  -1   0  -1  -3  -2  -2
M  -1  -1  -2  -3  -1   0  -2  -3  -2   1   2  -1   5   0  -2  -1  -1  -1  -1   1
F  -2  -3  -3  -3  -2  -3  -3  -3  -1   0   0  -3   0   6  -4  -2  -2   1   3  -1
P  -1  -2  -2  -1  -3  -1  -1  -2  -2  -3  -3  -1  -2  -4   7  -1  -1  -4  -3  -2
S   1  -1   1   0  -1   0   0   0  -1  -2  -2   0  -1  -2  -1   4   1  -3  -2  -2
T   0  -1   0  -1  -1  -1  -1  -2  -2  -1  -1  -1  -1  -2  -1   1   5  -2  -2   0
W  -3  -3  -4  -4  -2  -2  -3  -2  -2  -3  -2  -3  -1   1  -4  -3  -2  11   2  -3
Y  -2  -2  -2  -3  -2  -1  -2  -3   2  -1  -1  -2  -1   3  -3  -2  -2   2   7  -1
V   0  -3  -3  -3  -1  -2  -2  -3  -3   3   1  -2   1  -1  -2  -2   0  -3  -1   4
"""


def _parse_substitution_table(text: str, order: str) -> Dict[Tuple[str, str], int]:
    table: Dict[Tuple[str, str], int] = {}
    for line in text.strip().splitlines():
        row, *values = line.split()
        if len(values) != len(order):
            raise ValueError(f"Row {row!r} has {len(values)} scores, expected {len(order)}")
        for col, value in zip(order, values):
            table[(row, col)] = int(value)
    return table


BLOSUM62: Mapping[Tuple[str, str], int] = MappingProxyType(
    _parse_substitution_table(_BLOSUM62_TABLE, _BLOSUM62_ORDER)
)


@dataclass(frozen=True)
class ScoringScheme:
    """
    Linear-gap scoring for symbol pairs

    Parameters
    ----------
    match_score : float
        Score of two identical symbols
    mismatch_score : float
        Score of two different symbols
    gap_penalty : float
        Score added per gapped position (normally negative)
    substitution : mapping, optional
        ``(a, b) -> score`` overrides for specific pairs; ``(b, a)`` is tried
        when ``(a, b)`` is absent, then match/mismatch
    ignore_case : bool
        Compare symbols after upper-casing them
    """
    match_score: float = 1
    mismatch_score: float = -1
    gap_penalty: float = -1
    substitution: Optional[Mapping[Tuple[str, str], float]] = field(
        default=None, hash=False
    )
    ignore_case: bool = False

    def __post_init__(self):
        if self.substitution is not None:
            # Private copy so the caller's dict cannot change the scheme later
            object.__setattr__(
                self, "substitution", MappingProxyType(dict(self.substitution))
            )
        if self.gap_penalty > 0:
            warnings.warn(
                f"gap_penalty={self.gap_penalty} is positive; gaps will be rewarded",
                UserWarning,
                stacklevel=3,
            )

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------
    @classmethod
    def simple_dna(cls) -> "ScoringScheme":
        """+1 match, -1 mismatch, -1 gap"""
        return cls(match_score=1, mismatch_score=-1, gap_penalty=-1)

    @classmethod
    def blast_dna(cls) -> "ScoringScheme":
        """BLAST-like nucleotide scoring: +2 / -3, gap -2"""
        return cls(match_score=2, mismatch_score=-3, gap_penalty=-2)

    @classmethod
    def high_identity_dna(cls) -> "ScoringScheme":
        """For closely related sequences: +5 / -4, gap -1"""
        return cls(match_score=5, mismatch_score=-4, gap_penalty=-1)

    @classmethod
    def blosum62(cls, gap_penalty: float = -4, ignore_case: bool = True) -> "ScoringScheme":
        """BLOSUM62 protein scoring; unknown pairs fall back to +1 / -4"""
        return cls(
            match_score=1,
            mismatch_score=-4,
            gap_penalty=gap_penalty,
            substitution=BLOSUM62,
            ignore_case=ignore_case,
        )

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------
    def key(self, symbol: str) -> str:
        return symbol.upper() if self.ignore_case else symbol

    def score(self, a: str, b: str) -> float:
        """Score one aligned pair of (non-gap) symbols"""
        a, b = self.key(a), self.key(b)
        if self.substitution is not None:
            value = self.substitution.get((a, b))
            if value is None:
                value = self.substitution.get((b, a))
            if value is not None:
                return value
        return self.match_score if a == b else self.mismatch_score

    def score_alignment(self, aligned1: str, aligned2: str) -> float:
        """
        Re-score two gapped rows column by column

        Symbol/gap columns cost ``gap_penalty``; gap/gap columns score 0.
        """
        if len(aligned1) != len(aligned2):
            raise ValueError("Aligned rows must have equal length")
        total = 0
        for a, b in zip(aligned1, aligned2):
            if a == GAP and b == GAP:
                continue
            if a == GAP or b == GAP:
                total += self.gap_penalty
            else:
                total += self.score(a, b)
        return total

    @property
    def is_integral(self) -> bool:
        """True when every score is an int, so the DP can stay in int64"""
        values = [self.match_score, self.mismatch_score, self.gap_penalty]
        if self.substitution is not None:
            values.extend(self.substitution.values())
        return all(isinstance(v, (int, np.integer)) and not isinstance(v, bool) for v in values)

    @property
    def dtype(self):
        return np.int64 if self.is_integral else np.float64

    # ------------------------------------------------------------------
    # Resolution to dense tables
    # ------------------------------------------------------------------
    def alphabet(self, *sequences: Iterable[str], skip_gaps: bool = False) -> List[str]:
        """Distinct symbol keys in first-seen order"""
        seen: Dict[str, None] = {}
        for seq in sequences:
            for ch in seq:
                if skip_gaps and ch == GAP:
                    continue
                seen.setdefault(self.key(ch), None)
        return list(seen)

    def table(self, alphabet: List[str]) -> np.ndarray:
        """
        Dense ``(K, K)`` score table for ``alphabet``

        Every DP row is scored by fancy indexing into this table.
        """
        k = len(alphabet)
        tab = np.empty((k, k), dtype=self.dtype)
        for i, a in enumerate(alphabet):
            for j, b in enumerate(alphabet):
                tab[i, j] = self.score(a, b)
        return tab

    def encode(self, seq: str, index: Mapping[str, int]) -> np.ndarray:
        """Map a sequence to its symbol indices in ``index``"""
        return np.fromiter(
            (index[self.key(ch)] for ch in seq),
            dtype=np.intp,
            count=len(seq),
        )


def resolve(scoring: Optional[ScoringScheme]) -> ScoringScheme:
    """Default to simple DNA scoring when the caller passes None"""
    if scoring is None:
        return ScoringScheme.simple_dna()
    if not isinstance(scoring, ScoringScheme):
        raise InvalidArgumentError(
            f"scoring must be a ScoringScheme, got {type(scoring).__name__}"
        )
    return scoring
