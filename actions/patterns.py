"""
Commit message predicates.
Each predicate takes the full message text and returns a boolean; matching is
case-insensitive and spans lines.
"""
import re
from typing import Optional

_FLAGS = re.IGNORECASE | re.MULTILINE | re.DOTALL

BUG_REFERENCE_PATTERN = r"\A.*(pr:|bug:).*\Z"
COMMENDATION_PATTERN = r"\A.*(ph:|pointy hat|p?hat:).*\Z"

_bug_reference = re.compile(BUG_REFERENCE_PATTERN, _FLAGS)
_commendation = re.compile(COMMENDATION_PATTERN, _FLAGS)


def is_empty_message(text: Optional[str]) -> bool:
    return not text


def references_defect(text: Optional[str]) -> bool:
    """True when the message points at a bug report, e.g. 'Fixes bug: 1234'."""
    if not text:
        return False
    return _bug_reference.match(text) is not None


def deserves_recognition(text: Optional[str]) -> bool:
    """True when the message awards a pointy hat to someone."""
    if not text:
        return False
    return _commendation.match(text) is not None
