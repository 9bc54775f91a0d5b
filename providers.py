"""
Collaborator interfaces consumed by the engine, plus static implementations
backed by a JSON history export (used by the CLI and tests).
"""
from typing import Protocol, List, Dict, Tuple, Optional, Any

from classify.filetypes import FileType
from errors import MissingDependencyError, RepositoryAccessError


class DiffProvider(Protocol):
    def diff(self, path: str, from_revision: str, to_revision: str) -> List[Any]:
        """Ordered diff chunks for one file. Raises RepositoryAccessError on failure."""
        ...


class LineCountProvider(Protocol):
    def line_count(self, path: str, revision: str) -> int:
        """Lines of the file at a revision. Raises MissingDependencyError when not computed."""
        ...


class FileClassifier(Protocol):
    def classify(self, filename: str) -> FileType: ...

    def is_text(self, filename: str) -> bool: ...


class StaticDiffProvider:
    """Serves diff chunks recorded ahead of time, keyed by (path, from_revision, to_revision)."""

    def __init__(self, diffs: Optional[Dict[Tuple[str, str, str], List[str]]] = None):
        self.diffs = dict(diffs or {})

    def add(self, path: str, from_revision: str, to_revision: str, chunks: List[str]):
        self.diffs[(path, str(from_revision), str(to_revision))] = list(chunks)

    def diff(self, path: str, from_revision: str, to_revision: str) -> List[str]:
        key = (path, str(from_revision), str(to_revision))
        if key not in self.diffs:
            raise RepositoryAccessError(path, f"No diff recorded for {path} {from_revision}..{to_revision}")
        return self.diffs[key]


class StaticLineCounts:
    """Serves precomputed line counts keyed by (path, revision)."""

    def __init__(self, counts: Optional[Dict[Tuple[str, str], int]] = None):
        self.counts = dict(counts or {})

    def add(self, path: str, revision: str, lines: int):
        self.counts[(path, str(revision))] = int(lines)

    def line_count(self, path: str, revision: str) -> int:
        key = (path, str(revision))
        if key not in self.counts:
            raise MissingDependencyError(f"Line count not available for {path}@{revision}")
        return self.counts[key]


def providers_from_export(raw: Dict[str, Any]) -> Tuple[StaticDiffProvider, StaticLineCounts]:
    """Collect inline diffs and line counts from the commits of a history export.

    A file entry may carry 'diff' (list of chunk strings), 'lines' (count at this
    revision) and 'previous_lines' (count at previous_revision).
    """
    diffs = StaticDiffProvider()
    counts = StaticLineCounts()
    for commit in raw.get('commits') or []:
        revision = str(commit.get('revision') or commit.get('sha') or commit.get('id') or '')
        for f in commit.get('files') or []:
            path = f.get('path') or ''
            prev = f.get('previous_revision') or f.get('prev_revision')
            if f.get('lines') is not None:
                counts.add(path, revision, f['lines'])
            if prev is not None and f.get('previous_lines') is not None:
                counts.add(path, prev, f['previous_lines'])
            if prev is not None and f.get('diff') is not None:
                chunks = f['diff'] if isinstance(f['diff'], list) else [f['diff']]
                diffs.add(path, prev, revision, chunks)
    return diffs, counts
