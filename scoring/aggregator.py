"""
Score aggregation.
Combines a developer's per-type action totals with the current calibrated weights.
"""
import logging
import threading
from typing import Dict, Optional

from actions.models import ActionCategory, ActionType, Thread
from storage.ledger import weight_key

logger = logging.getLogger(__name__)


def signed_count(action_type: ActionType, total: int) -> int:
    return action_type.sign * int(total or 0)


def compute_weighted_score(totals: Dict[ActionType, int], category_weights: Dict[ActionCategory, Optional[float]], type_weights: Dict[ActionType, Optional[float]]) -> float:
    """
    score = sum over categories c of weight(c) * sum over types t in c with a weight of signed_count(t).

    Categories or types without a calibrated weight contribute nothing.
    """
    score = 0.0
    for category in ActionCategory:
        cw = category_weights.get(category)
        if cw is None:
            continue
        category_sum = 0
        for at in ActionType.of_category(category):
            if type_weights.get(at) is None:
                continue
            category_sum += signed_count(at, totals.get(at, 0))
        score += float(cw) * category_sum
    return score


class ScoreAggregator:
    """
    Computes developer scores on demand and remembers which developers were evaluated,
    so "never computed" (None) stays distinct from a computed score of 0.
    """

    def __init__(self, ledger):
        self.ledger = ledger
        self._scores: Dict[str, float] = {}
        self._lock = threading.Lock()

    def compute_score(self, developer_id: str) -> float:
        totals = self.ledger.developer_totals(developer_id)
        # one read, so a concurrent calibration pass cannot mix old and new weights
        weights = self.ledger.weights()
        category_weights = {c: weights.get(weight_key(c)) for c in ActionCategory}
        type_weights = {t: weights.get(weight_key(t)) for t in ActionType}
        score = compute_weighted_score(totals, category_weights, type_weights)
        with self._lock:
            self._scores[developer_id] = score
        logger.debug("Score for %s: %.4f", developer_id, score)
        return score

    def score(self, developer_id: str) -> Optional[float]:
        """Last computed score, or None if the developer was never evaluated."""
        with self._lock:
            return self._scores.get(developer_id)

    def computed(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._scores)

    def has_result(self, resource) -> bool:
        """True once any action references the resource (a processed resource can still score 0).

        Thread actions are keyed to its messages, so a thread counts once any message does.
        """
        if isinstance(resource, Thread):
            return any(self.ledger.exists(m.resource_id, ActionCategory.MAIL) for m in resource.messages)
        return self.ledger.exists(resource.resource_id, resource.category)
