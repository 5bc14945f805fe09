"""
All-against-all global alignment scores used to guide progressive MSA

Backends:
    - 'serial'  : one pair after another in the calling thread
    - 'threads' : pairs fanned out over a ThreadPoolExecutor (each pair owns
                  its DP rows, so workers share nothing)
    - 'auto'    : 'threads' when n_jobs > 1, else 'serial'
An async helper runs the whole computation in the event loop's executor.
"""
from __future__ import annotations

import asyncio
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import InvalidArgumentError, check_cancelled, require_sequence
from .pairwise import GLOBAL, PairwiseAligner
from .scoring import ScoringScheme


def _pair_score_worker(aligner: PairwiseAligner, seqs: Sequence[str],
                       i: int, j: int, cancel_event) -> Tuple[int, int, float]:
    check_cancelled(cancel_event)
    return i, j, aligner.score(seqs[i], seqs[j], GLOBAL, cancel_event=cancel_event)


def compute_score_matrix(
    sequences: Sequence[str],
    scoring: Optional[ScoringScheme] = None,
    backend: str = "auto",
    n_jobs: Optional[int] = None,
    cancel_event=None,
    progress: Optional[Callable[[float], None]] = None,
) -> np.ndarray:
    """
    Global alignment score of every pair of sequences

    Parameters
    ----------
    sequences : list of str
        k sequences
    scoring : ScoringScheme, optional
        Default ScoringScheme.simple_dna()
    backend : str
        'auto' | 'serial' | 'threads'
    n_jobs : int or None
        Worker threads for backend='threads'. None/0 = all CPUs.
    cancel_event : threading.Event, optional
        Checked before each pair and on every DP row
    progress : callable, optional
        Receives the fraction of pairs completed

    Returns
    -------
    np.ndarray
        Symmetric (k, k) float matrix; the diagonal is left at 0 and is
        not meaningful.
    """
    if sequences is None:
        raise InvalidArgumentError("sequences must not be None")
    seqs = [require_sequence(s, f"sequences[{i}]") for i, s in enumerate(sequences)]
    if backend not in ("auto", "serial", "threads"):
        raise InvalidArgumentError("backend must be 'auto' | 'serial' | 'threads'")

    k = len(seqs)
    S = np.zeros((k, k), dtype=float)
    pairs = [(i, j) for i in range(k) for j in range(i + 1, k)]
    if not pairs:
        return S

    aligner = PairwiseAligner(scoring)
    if backend == "auto":
        backend = "threads" if n_jobs is not None and n_jobs > 1 else "serial"

    done = 0
    if backend == "serial":
        for i, j in pairs:
            _, _, s = _pair_score_worker(aligner, seqs, i, j, cancel_event)
            S[i, j] = S[j, i] = s
            done += 1
            if progress is not None:
                progress(done / len(pairs))
        return S

    if n_jobs is None or n_jobs <= 0:
        n_jobs = os.cpu_count() or 1
    with ThreadPoolExecutor(max_workers=n_jobs) as ex:
        futures = [
            ex.submit(_pair_score_worker, aligner, seqs, i, j, cancel_event)
            for i, j in pairs
        ]
        for fut in futures:
            # re-raises AlignmentCancelled from the worker
            i, j, s = fut.result()
            S[i, j] = S[j, i] = s
            done += 1
            if progress is not None:
                progress(done / len(pairs))
    return S


def select_reference(S: np.ndarray) -> int:
    """
    Index of the sequence with the highest mean score to all others

    Ties go to the lowest index.
    """
    k = S.shape[0]
    if k == 0:
        raise InvalidArgumentError("score matrix is empty")
    if k == 1:
        return 0
    mean = (S.sum(axis=1) - np.diag(S)) / (k - 1)
    return int(np.argmax(mean))


def merge_order(S: np.ndarray, reference: int) -> List[int]:
    """
    Reference first, then the rest by descending score against it

    Equal scores keep input order.
    """
    rest = [i for i in range(S.shape[0]) if i != reference]
    rest.sort(key=lambda i: -S[reference, i])
    return [reference] + rest


async def compute_score_matrix_async(
    sequences: Sequence[str],
    scoring: Optional[ScoringScheme] = None,
    backend: str = "auto",
    n_jobs: Optional[int] = None,
    cancel_event=None,
) -> np.ndarray:
    """
    Async version: runs compute_score_matrix in the loop's default executor
    (does not speed up the computation; only keeps the event loop free)
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        lambda: compute_score_matrix(
            sequences, scoring=scoring, backend=backend,
            n_jobs=n_jobs, cancel_event=cancel_event,
        ),
    )
