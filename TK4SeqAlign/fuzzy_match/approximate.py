"""
Approximate (fuzzy) matching of a pattern inside a text

find_approximate_matches reports, for every end position in the text, the
window with the smallest edit distance to the pattern when that distance is
within budget. Columns of the DP are computed with numpy, and only down to
one row past the last row still within budget (Ukkonen's cut-off), so the
work per text symbol stays close to the budget instead of the pattern length.
"""

from dataclasses import dataclass
from itertools import combinations, product
from typing import Iterator, List, Optional

import numpy as np

from ..errors import InvalidArgumentError, require_sequence


# Edit operations in a match trace
OP_MATCH = "="
OP_SUBSTITUTE = "X"
OP_INSERT = "I"   # symbol present in the text window only
OP_DELETE = "D"   # pattern symbol missing from the text window


@dataclass
class ApproximateMatch:
    """One window of the text close to the pattern"""
    position: int
    end: int
    matched: str
    distance: int
    operations: Optional[str] = None

    @property
    def is_exact(self) -> bool:
        return self.distance == 0

    def __len__(self) -> int:
        return self.end - self.position


@dataclass
class KmerCount:
    """A k-mer and the number of windows within d mismatches of it"""
    kmer: str
    count: int


@dataclass
class MismatchMatch:
    """Equal-length window found by Hamming distance"""
    position: int
    matched: str
    distance: int
    mismatch_positions: List[int]

    @property
    def is_exact(self) -> bool:
        return self.distance == 0


def _fold(text: str, ignore_case: bool) -> str:
    return text.upper() if ignore_case else text


def _codes(text: str) -> np.ndarray:
    """Code points as an int array so symbols compare with numpy"""
    return np.fromiter((ord(ch) for ch in text), dtype=np.int64, count=len(text))


# ----------------------------------------------------------------------
# Distances
# ----------------------------------------------------------------------
def hamming_distance(a: str, b: str, ignore_case: bool = False) -> int:
    """Number of differing positions of two equal-length strings"""
    a = require_sequence(a, "a")
    b = require_sequence(b, "b")
    if len(a) != len(b):
        raise InvalidArgumentError(
            f"Hamming distance needs equal lengths, got {len(a)} and {len(b)}"
        )
    a, b = _fold(a, ignore_case), _fold(b, ignore_case)
    return int(np.count_nonzero(_codes(a) != _codes(b)))


def edit_distance(a: str, b: str, ignore_case: bool = False) -> int:
    """
    Levenshtein distance (unit-cost insert, delete, substitute)

    Two rolling rows; the insert chain along a row is resolved with a
    running minimum.
    """
    a = require_sequence(a, "a")
    b = require_sequence(b, "b")
    a, b = _fold(a, ignore_case), _fold(b, ignore_case)
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    cb = _codes(b)
    steps = np.arange(len(b) + 1)
    prev = steps.copy()
    for i, ch in enumerate(a, start=1):
        cand = np.empty_like(prev)
        cand[0] = i
        np.minimum(prev[:-1] + (cb != ord(ch)), prev[1:] + 1, out=cand[1:])
        prev = np.minimum.accumulate(cand - steps) + steps
    return int(prev[-1])


# ----------------------------------------------------------------------
# Bounded edit-distance search
# ----------------------------------------------------------------------
def _edit_trace(pattern: str, window: str) -> str:
    """
    One optimal edit script turning ``pattern`` into ``window``

    Ties prefer match/substitute, then insertion, then deletion.
    """
    m, w = len(pattern), len(window)
    D = np.zeros((m + 1, w + 1), dtype=np.int64)
    D[:, 0] = np.arange(m + 1)
    D[0, :] = np.arange(w + 1)
    for i in range(1, m + 1):
        for j in range(1, w + 1):
            D[i, j] = min(
                D[i - 1, j - 1] + (pattern[i - 1] != window[j - 1]),
                D[i, j - 1] + 1,
                D[i - 1, j] + 1,
            )

    ops = []
    i, j = m, w
    while i > 0 or j > 0:
        if i > 0 and j > 0 and D[i, j] == D[i - 1, j - 1] + (pattern[i - 1] != window[j - 1]):
            ops.append(OP_MATCH if pattern[i - 1] == window[j - 1] else OP_SUBSTITUTE)
            i -= 1
            j -= 1
        elif j > 0 and D[i, j] == D[i, j - 1] + 1:
            ops.append(OP_INSERT)
            j -= 1
        else:
            ops.append(OP_DELETE)
            i -= 1
    return "".join(reversed(ops))


def _search(text: str, pattern: str, k: int, ignore_case: bool,
            with_trace: bool) -> Iterator[ApproximateMatch]:
    folded_text = _fold(text, ignore_case)
    folded_pattern = _fold(pattern, ignore_case)
    m = len(pattern)
    cap = k + 1
    cp = _codes(folded_pattern)
    ct = _codes(folded_text)
    rows = np.arange(m + 1)

    # Column 0: pattern prefix i against the empty window costs i
    prev = np.minimum(rows, cap)
    prev_start = np.zeros(m + 1, dtype=np.int64)
    last_active = min(m, k)

    for j in range(1, len(text) + 1):
        top = min(m, last_active + 1)
        span = top + 1

        # cand[i]: best of diagonal (i-1, j-1) and text insertion (i, j-1)
        diag = prev[:top] + (cp[:top] != ct[j - 1])
        ins = prev[1:span] + 1
        cand = np.empty(span, dtype=np.int64)
        cand_start = np.empty(span, dtype=np.int64)
        cand[0] = 0
        cand_start[0] = j
        use_diag = diag <= ins
        cand[1:] = np.where(use_diag, diag, ins)
        cand_start[1:] = np.where(use_diag, prev_start[:top], prev_start[1:span])

        # pattern deletions run down the column: D[i] = min over l <= i of
        # cand[l] + (i - l); ties keep the largest l (fewest deletions)
        key = cand - rows[:span]
        running = np.minimum.accumulate(key)
        source = np.maximum.accumulate(np.where(key == running, rows[:span], 0))
        col = np.minimum(running + rows[:span], cap)
        col_start = cand_start[source]

        cur = np.full(m + 1, cap, dtype=np.int64)
        cur[:span] = col
        cur_start = np.zeros(m + 1, dtype=np.int64)
        cur_start[:span] = col_start

        active = np.flatnonzero(col <= k)
        last_active = int(active[-1])

        if top == m and cur[m] <= k:
            start = int(cur_start[m])
            window = text[start:j]
            trace = None
            if with_trace:
                trace = _edit_trace(folded_pattern, folded_text[start:j])
            yield ApproximateMatch(start, j, window, int(cur[m]), trace)

        prev, prev_start = cur, cur_start


def find_approximate_matches(
    text: str,
    pattern: str,
    max_edit_distance: int,
    with_trace: bool = False,
    ignore_case: bool = False,
) -> Iterator[ApproximateMatch]:
    """
    Lazily yield every text window within ``max_edit_distance`` of ``pattern``

    One match is produced per end position whose best window is within
    budget; overlapping windows are all reported, in end-position order.

    Parameters
    ----------
    text : str
        Text to search
    pattern : str
        Non-empty pattern
    max_edit_distance : int
        Budget k >= 0
    with_trace : bool
        Attach an edit script ('=' match, 'X' substitute, 'I' insert,
        'D' delete) turning the pattern into the window
    ignore_case : bool
        Compare symbols after upper-casing them

    Raises
    ------
    InvalidArgumentError
        At call time (not on first iteration) for None text/pattern, an
        empty pattern or a negative budget
    """
    text = require_sequence(text, "text")
    pattern = require_sequence(pattern, "pattern")
    if not pattern:
        raise InvalidArgumentError("pattern must not be empty")
    if max_edit_distance < 0:
        raise InvalidArgumentError(
            f"max_edit_distance must be >= 0, got {max_edit_distance}"
        )
    return _search(text, pattern, int(max_edit_distance), ignore_case, with_trace)


def count_approximate_occurrences(text: str, pattern: str, max_edit_distance: int,
                                  ignore_case: bool = False) -> int:
    """Number of end positions with a window within budget"""
    return sum(1 for _ in find_approximate_matches(
        text, pattern, max_edit_distance, ignore_case=ignore_case
    ))


def find_best_match(text: str, pattern: str,
                    ignore_case: bool = False) -> Optional[ApproximateMatch]:
    """
    Lowest-distance window of the text (first on ties)

    Returns None when the text is empty or shorter than the pattern.
    """
    text = require_sequence(text, "text")
    pattern = require_sequence(pattern, "pattern")
    if not pattern:
        raise InvalidArgumentError("pattern must not be empty")
    if not text or len(pattern) > len(text):
        return None

    best = None
    for match in find_approximate_matches(text, pattern, len(pattern), ignore_case=ignore_case):
        if best is None or match.distance < best.distance:
            best = match
            if best.distance == 0:
                break
    return best


# ----------------------------------------------------------------------
# Mismatch-only search
# ----------------------------------------------------------------------
def find_with_mismatches(text: str, pattern: str, max_mismatches: int,
                         ignore_case: bool = False) -> Iterator[MismatchMatch]:
    """
    Equal-length windows with at most ``max_mismatches`` substitutions

    An empty pattern or a pattern longer than the text gives no matches.
    """
    text = require_sequence(text, "text")
    pattern = require_sequence(pattern, "pattern")
    if max_mismatches < 0:
        raise InvalidArgumentError(f"max_mismatches must be >= 0, got {max_mismatches}")
    return _mismatch_search(text, pattern, max_mismatches, ignore_case)


def _mismatch_search(text, pattern, k, ignore_case) -> Iterator[MismatchMatch]:
    m = len(pattern)
    if m == 0 or m > len(text):
        return
    ct = _codes(_fold(text, ignore_case))
    cp = _codes(_fold(pattern, ignore_case))
    windows = np.lib.stride_tricks.sliding_window_view(ct, m)
    differs = windows != cp
    counts = differs.sum(axis=1)
    for pos in np.flatnonzero(counts <= k):
        pos = int(pos)
        yield MismatchMatch(
            position=pos,
            matched=text[pos:pos + m],
            distance=int(counts[pos]),
            mismatch_positions=[int(p) for p in np.flatnonzero(differs[pos])],
        )


def _neighbors(kmer: str, d: int, symbols: List[str]):
    """Every string within Hamming distance ``d`` of ``kmer`` over ``symbols``"""
    yield kmer
    for changes in range(1, d + 1):
        for positions in combinations(range(len(kmer)), changes):
            choices = [[s for s in symbols if s != kmer[p]] for p in positions]
            for replacement in product(*choices):
                chars = list(kmer)
                for p, s in zip(positions, replacement):
                    chars[p] = s
                yield "".join(chars)


def find_frequent_kmers_with_mismatches(text: str, k: int, d: int,
                                        ignore_case: bool = False) -> List[KmerCount]:
    """
    Most frequent k-mers when up to ``d`` mismatches count as an occurrence

    Candidates are the d-neighbourhoods of the text's own k-mers over the
    symbols present in the text, so a k-mer that never occurs exactly can
    still win. Results are sorted by k-mer; all share the top count.

    Parameters
    ----------
    text : str
        Text to scan
    k : int
        k-mer length, > 0
    d : int
        Mismatch budget, >= 0

    Returns
    -------
    list of KmerCount
        Empty when the text is shorter than ``k``
    """
    text = require_sequence(text, "text")
    if k <= 0:
        raise InvalidArgumentError(f"k must be > 0, got {k}")
    if d < 0:
        raise InvalidArgumentError(f"d must be >= 0, got {d}")
    folded = _fold(text, ignore_case)
    if len(folded) < k:
        return []

    windows = np.lib.stride_tricks.sliding_window_view(_codes(folded), k)
    symbols = sorted(set(folded))
    seen = {folded[i:i + k] for i in range(len(folded) - k + 1)}

    counts = {}
    for kmer in sorted(seen):
        for candidate in _neighbors(kmer, d, symbols):
            if candidate in counts:
                continue
            differs = (windows != _codes(candidate)).sum(axis=1)
            counts[candidate] = int(np.count_nonzero(differs <= d))

    top = max(counts.values())
    return [KmerCount(kmer, n) for kmer, n in sorted(counts.items()) if n == top]
