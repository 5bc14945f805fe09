"""
Fuzzy Matching Module
Bounded edit-distance search and string distances
"""

from .approximate import (
    ApproximateMatch,
    MismatchMatch,
    KmerCount,
    find_approximate_matches,
    count_approximate_occurrences,
    find_best_match,
    find_with_mismatches,
    find_frequent_kmers_with_mismatches,
    hamming_distance,
    edit_distance
)

__all__ = [
    "ApproximateMatch",
    "MismatchMatch",
    "KmerCount",
    "find_approximate_matches",
    "count_approximate_occurrences",
    "find_best_match",
    "find_with_mismatches",
    "find_frequent_kmers_with_mismatches",
    "hamming_distance",
    "edit_distance"
]
