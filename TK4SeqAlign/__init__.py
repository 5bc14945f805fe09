"""
TK4SeqAlign - sequence comparison toolkit

Sub-packages:
    - seq_alignment: global / local / semi-global pairwise alignment and
      progressive multiple sequence alignment
    - fuzzy_match: bounded edit-distance search and distance helpers
"""

__version__ = "0.1.0"
