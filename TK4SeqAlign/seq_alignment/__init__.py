"""
Sequence Alignment Module
Provides tools for pairwise and multiple sequence alignment
"""

from .scoring import (
    GAP,
    BLOSUM62,
    ScoringScheme
)
from .pairwise import (
    PairwiseAligner,
    AlignmentResult,
    AlignmentStatistics,
    calculate_statistics,
    format_alignment,
    global_align,
    local_align,
    semiglobal_align,
    pairwise
)
from .guide import (
    compute_score_matrix,
    compute_score_matrix_async
)
from .msa import (
    MultipleSequenceAligner,
    MSAResult,
    align_multiple,
    align_multiple_async,
    build_consensus,
    sum_of_pairs
)

__all__ = [
    "GAP",
    "BLOSUM62",
    "ScoringScheme",
    "PairwiseAligner",
    "AlignmentResult",
    "AlignmentStatistics",
    "calculate_statistics",
    "format_alignment",
    "global_align",
    "local_align",
    "semiglobal_align",
    "pairwise",
    "compute_score_matrix",
    "compute_score_matrix_async",
    "MultipleSequenceAligner",
    "MSAResult",
    "align_multiple",
    "align_multiple_async",
    "build_consensus",
    "sum_of_pairs"
]
