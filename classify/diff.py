"""
Line attribution from textual diffs.
"""
import re
from typing import Iterable, List, Tuple, Union, NamedTuple

from actions.models import ActionType

Chunk = Union[str, object]

# only these end a diff line; form feeds and unicode separators stay inside the line
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class LineAttribution(NamedTuple):
    """How a file change is credited: min(added, removed) as modified, the remainder as added or removed."""
    modified: int
    added: int
    removed: int

    def credits(self) -> List[Tuple[ActionType, int]]:
        """Non-zero (action type, magnitude) pairs for this attribution."""
        pairs = [(ActionType.TLM, self.modified), (ActionType.TLA, self.added), (ActionType.TLR, self.removed)]
        return [(at, n) for at, n in pairs if n > 0]


def _chunk_text(chunk: Chunk) -> str:
    if isinstance(chunk, str):
        return chunk
    # diff providers may hand out chunk objects exposing the raw text
    text = getattr(chunk, 'text', None)
    if text is None:
        text = getattr(chunk, 'chunk', '')
    return text or ''


def count_lines(chunks: Iterable[Chunk]) -> Tuple[int, int]:
    """Return (added, removed) line counts over every line of every chunk.

    Only the first character of a line matters: '+' counts as added, '-' as removed.
    """
    added = 0
    removed = 0
    for chunk in chunks or []:
        for line in _LINE_BREAK.split(_chunk_text(chunk)):
            if line.startswith('+'):
                added += 1
            elif line.startswith('-'):
                removed += 1
    return added, removed


def attribute(added: int, removed: int) -> LineAttribution:
    modified = min(added, removed)
    if added > removed:
        return LineAttribution(modified, added - removed, 0)
    return LineAttribution(modified, 0, removed - added)


def attribute_chunks(chunks: Iterable[Chunk]) -> LineAttribution:
    return attribute(*count_lines(chunks))
