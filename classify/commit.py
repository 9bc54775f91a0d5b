"""
Commit classification: turns one commit into the actions credited to its committer.
"""
import logging
from typing import List, Optional

from actions.models import ActionType, ActionDelta, ChangedFile, Commit
from actions.patterns import is_empty_message, references_defect, deserves_recognition
from classify.diff import attribute_chunks
from classify.filetypes import FileType
from errors import MissingDependencyError, RepositoryAccessError

logger = logging.getLogger(__name__)

DEFAULT_OVERSIZED_COMMIT_THRESHOLD = 5

# new files of these types earn an extra action, independently of line counting
_NEW_FILE_ACTIONS = {
    FileType.DOC: ActionType.CDF,
    FileType.TRANSLATION: ActionType.CTF,
    FileType.BINARY: ActionType.CBF,
}


class CommitClassifier:
    """
    Evaluates every commit rule independently; a single commit can earn any mix of actions.

    :param oversized_threshold: number of changed files above which the commit is penalized.
    :param diffs: DiffProvider used for modified text files.
    :param line_counts: LineCountProvider used for added and deleted text files.
    :param file_types: FileClassifier deciding text/binary and doc/translation/binary.
    """

    def __init__(self, oversized_threshold: int, diffs, line_counts, file_types):
        self.oversized_threshold = oversized_threshold
        self.diffs = diffs
        self.line_counts = line_counts
        self.file_types = file_types

    def classify(self, commit: Commit) -> List[ActionDelta]:
        dev = commit.committer
        rid = commit.resource_id
        deltas: List[ActionDelta] = []

        def credit(action_type: ActionType, magnitude: int = 1):
            deltas.append(ActionDelta(dev, rid, action_type, magnitude))

        if is_empty_message(commit.message):
            credit(ActionType.CEC)
        else:
            if references_defect(commit.message):
                credit(ActionType.CBN)
            if deserves_recognition(commit.message):
                credit(ActionType.CPH)

        if len(commit.files) > self.oversized_threshold:
            credit(ActionType.CMF)

        for pf in commit.files:
            for action_type, magnitude in self._classify_file(commit, pf):
                credit(action_type, magnitude)

        return deltas

    def _classify_file(self, commit: Commit, pf: ChangedFile):
        if pf.is_directory:
            # directories never get line-level actions
            if pf.is_added:
                yield ActionType.CND, 1
            return

        if pf.copy_from:
            logger.debug("Ignoring copied file %s (from %s) in %s", pf.path, pf.copy_from, commit.resource_id)
            return

        if self.file_types.is_text(pf.path):
            for credit in self._line_credits(commit, pf):
                yield credit

        if pf.is_added:
            action_type = _NEW_FILE_ACTIONS.get(self.file_types.classify(pf.path))
            if action_type is not None:
                yield action_type, 1

    def _line_credits(self, commit: Commit, pf: ChangedFile):
        if pf.is_deleted:
            lines = self._line_count(pf.path, pf.previous_revision)
            if lines > 0:
                yield ActionType.TLR, lines
            return

        if pf.is_added:
            yield ActionType.CNS, 1
            lines = self._line_count(pf.path, pf.revision or commit.revision)
            if lines > 0:
                yield ActionType.TLA, lines
            return

        try:
            chunks = self._diff(commit, pf)
        except RepositoryAccessError as ex:
            logger.warning("Skipping line attribution for %s in %s: %s", pf.path, commit.resource_id, ex)
            return
        for credit in attribute_chunks(chunks).credits():
            yield credit

    def _diff(self, commit: Commit, pf: ChangedFile):
        if not pf.previous_revision:
            raise RepositoryAccessError(pf.path, f"No previous revision recorded for {pf.path}")
        try:
            return self.diffs.diff(pf.path, pf.previous_revision, pf.revision or commit.revision)
        except RepositoryAccessError:
            raise
        except (OSError, LookupError) as ex:
            raise RepositoryAccessError(pf.path, str(ex)) from ex

    def _line_count(self, path: str, revision: Optional[str]) -> int:
        if self.line_counts is None:
            raise MissingDependencyError("No line-count provider configured")
        if not revision:
            raise MissingDependencyError(f"No revision to look up line count for {path}")
        value = self.line_counts.line_count(path, revision)
        if value is None:
            raise MissingDependencyError(f"Line count not available for {path}@{revision}")
        return int(value)
