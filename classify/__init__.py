"""
Classify package: turns commits, threads, bugs and messages into action deltas.
"""

from .commit import CommitClassifier
from .thread import ThreadAnalyzer, ThreadClassifier
from .diff import count_lines, attribute, attribute_chunks

__all__ = ["CommitClassifier", "ThreadAnalyzer", "ThreadClassifier", "count_lines", "attribute", "attribute_chunks"]
