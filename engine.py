"""
Contribution engine: classify a project resource, record its actions in the ledger,
keep the weights calibrated and answer score queries.
"""
import logging
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import List, Dict, Any, Iterable, Optional, NamedTuple

from actions.models import ActionCategory, ActionDelta, Bug, Commit, Message, Project, Thread
from classify.commit import CommitClassifier
from classify.filetypes import FileTypeMatcher
from classify.thread import ThreadClassifier
from errors import ContribError, InvariantViolation, MissingDependencyError
from scoring.aggregator import ScoreAggregator
from scoring.calibrator import WeightCalibrator
from settings import load_config, validate_config
from storage.retry import configure_retry, run_with_retries

logger = logging.getLogger(__name__)

PROCESSED = 'processed'
SKIPPED = 'skipped'
FAILED = 'failed'


class ProcessResult(NamedTuple):
    resource_id: str
    status: str
    applied: int = 0
    error: Optional[str] = None


class RunReport:
    """
    Outcome of one run over a project's resources.
    """
    def __init__(self):
        self.results: List[ProcessResult] = []

    def add(self, result: ProcessResult):
        self.results.append(result)

    def _with_status(self, status: str) -> List[ProcessResult]:
        return [r for r in self.results if r.status == status]

    @property
    def processed(self) -> List[ProcessResult]:
        return self._with_status(PROCESSED)

    @property
    def skipped(self) -> List[ProcessResult]:
        return self._with_status(SKIPPED)

    @property
    def failed(self) -> List[ProcessResult]:
        return self._with_status(FAILED)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed': len(self.processed),
            'skipped': len(self.skipped),
            'failed': [{'resource_id': r.resource_id, 'error': r.error} for r in self.failed],
            'actions_applied': sum(r.applied for r in self.results),
        }


class ContributionEngine:
    """
    Wires the classifiers, ledger, calibrator and aggregator together.

    :param ledger: storage.ledger.ContributionLedger (or anything with the same interface).
    :param config: configuration dict; loaded from config/contrib.yaml when None.
    :param diffs: DiffProvider for modified text files.
    :param line_counts: LineCountProvider; required for commits.
    :param file_types: FileClassifier; defaults to the extension based FileTypeMatcher.
    :raises ConfigurationError: when the configuration is unusable.
    """

    def __init__(self, ledger, config: Optional[Dict[str, Any]] = None, diffs=None, line_counts=None, file_types=None):
        self.ledger = ledger
        self.config = validate_config(config if config is not None else load_config())
        configure_retry(
            max_retries=self.config.get('max_retries'),
            backoff_base=self.config.get('backoff_base'),
            max_backoff=self.config.get('max_backoff'),
        )
        self.line_counts = line_counts
        self.commits = CommitClassifier(self.config['oversized_commit_threshold'], diffs, line_counts, file_types or FileTypeMatcher())
        self.threads = ThreadClassifier(ledger)
        self.calibrator = WeightCalibrator(ledger, self.config['calibration_interval'])
        self.aggregator = ScoreAggregator(ledger)
        # resource key -> [lock, holders]; entries live only while a resource is in flight
        self._claims: Dict[tuple, list] = {}
        self._claims_guard = threading.Lock()

    @contextmanager
    def _claim(self, resource):
        """Serialize classify-and-write for one resource; distinct resources run freely."""
        key = (type(resource).__name__, str(getattr(resource, 'resource_id', '')))
        with self._claims_guard:
            entry = self._claims.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._claims_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._claims[key]

    # --- classification ---

    def classify(self, resource) -> Optional[List[ActionDelta]]:
        """Return the deltas a resource produces, or None when it was recorded already."""
        if isinstance(resource, Commit):
            if self.ledger.exists(resource.resource_id, ActionCategory.COMMIT):
                return None
            if self.line_counts is None:
                raise MissingDependencyError("Line-count metric must be available before commits are processed")
            return self.commits.classify(resource)
        if isinstance(resource, Thread):
            # threads grow, so they are always revisited; recorded messages are skipped inside
            return self.threads.classify(resource)
        if isinstance(resource, (Bug, Message)):
            return []
        raise TypeError(f"Unsupported resource type {type(resource).__name__}")

    def _apply(self, resource, deltas: List[ActionDelta]) -> Optional[int]:
        """Write deltas in one transaction. Returns None when a commit was recorded meanwhile."""
        applied = 0
        with self.ledger.transaction():
            # another writer sharing the ledger file may have recorded the commit since it was classified
            if isinstance(resource, Commit) and self.ledger.exists(resource.resource_id, ActionCategory.COMMIT):
                return None
            for d in deltas:
                try:
                    with self.ledger.savepoint():
                        self.ledger.upsert(d.developer_id, d.resource_id, d.action_type, d.magnitude)
                    applied += 1
                except InvariantViolation as ex:
                    logger.warning("Skipping ledger update %s: %s", d, ex)
        return applied

    def process(self, resource) -> ProcessResult:
        """Classify one resource and record its actions atomically.

        Errors propagate and leave the ledger untouched for this resource.
        """
        rid = str(getattr(resource, 'resource_id', ''))
        with self._claim(resource):
            deltas = self.classify(resource)
            applied = 0
            if deltas:
                applied = run_with_retries(lambda: self._apply(resource, deltas), description=f"resource {rid}")
        if deltas is None or applied is None:
            logger.debug("Resource %s already recorded, skipping", rid)
            result = ProcessResult(rid, SKIPPED)
        else:
            result = ProcessResult(rid, PROCESSED, applied)
        self.calibrator.resource_processed()
        return result

    def _process_isolated(self, resource) -> ProcessResult:
        rid = str(getattr(resource, 'resource_id', ''))
        try:
            return self.process(resource)
        except (ContribError, sqlite3.Error) as ex:
            logger.error("Contrib (%s): resource %s failed: %s", type(resource).__name__, rid, ex)
            return ProcessResult(rid, FAILED, error=str(ex))

    def run_project(self, resources: Iterable[Any], workers: int = 1) -> RunReport:
        """Process resources, isolating failures per resource.

        With workers > 1 distinct resources are classified concurrently; ledger writes
        stay serialized per resource.

        :raises ConfigurationError: before any resource is processed.
        """
        # a bad threshold aborts the whole run before any resource is touched
        self.config = validate_config(self.config)
        report = RunReport()
        items = list(resources)
        if workers and workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                for result in pool.map(self._process_isolated, items):
                    report.add(result)
        else:
            for resource in items:
                report.add(self._process_isolated(resource))
        logger.info("Run finished: %d processed, %d skipped, %d failed", len(report.processed), len(report.skipped), len(report.failed))
        return report

    # --- queries ---

    def score(self, developer_id: str) -> float:
        return self.aggregator.compute_score(developer_id)

    def result(self, developer_id: str) -> Optional[float]:
        """Last computed score, None when the developer was never evaluated."""
        return self.aggregator.score(developer_id)

    def scores(self) -> Dict[str, float]:
        return {dev: self.aggregator.compute_score(dev) for dev in self.ledger.developers()}

    def has_result(self, resource) -> bool:
        return self.aggregator.has_result(resource)

    # --- cleanup ---

    def cleanup(self, project: Project) -> int:
        """Delete every action keyed to the project's resources and all weights.

        Returns the number of action rows deleted.
        """
        if not isinstance(project, Project):
            raise TypeError("Cleanup is only supported per project")
        deleted = 0
        with self.ledger.transaction():
            deleted += self.ledger.delete_resource_actions((c.resource_id for c in project.commits), ActionCategory.COMMIT)
            deleted += self.ledger.delete_resource_actions((b.resource_id for b in project.bugs), ActionCategory.BUG)
            for ml in project.mailing_lists:
                deleted += self.ledger.delete_resource_actions((m.resource_id for m in ml.messages), ActionCategory.MAIL)
            self.ledger.clear_weights()
        logger.info("Cleaned up project %s: %d action rows removed", project.name, deleted)
        return deleted

    def remove(self):
        """Drop every action and weight row."""
        self.ledger.clear()
