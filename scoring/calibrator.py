"""
Periodic weight calibration.
Category and type weights are the share (0-100) of all observed actions that fall in
the category/type. They are recomputed every `interval` processed resources.
"""
import logging
import threading
from typing import Dict

from actions.models import ActionCategory, ActionType
from storage.ledger import weight_key

logger = logging.getLogger(__name__)

DEFAULT_CALIBRATION_INTERVAL = 150


def resolve_interval(value) -> int:
    """Return a positive interval, falling back to the default with a warning."""
    try:
        interval = int(value) if value is not None else 0
    except (TypeError, ValueError):
        interval = 0
    if interval <= 0:
        logger.warning("Calibration interval %r missing or not positive, using default %d", value, DEFAULT_CALIBRATION_INTERVAL)
        return DEFAULT_CALIBRATION_INTERVAL
    return interval


def compute_weights(type_totals: Dict[ActionType, int]) -> Dict[str, float]:
    """
    Compute weights from per-type totals.

    Categories (and their types) with no actions are left out, so the caller keeps
    whatever value it had before. Returns a mapping weight key -> value.
    """
    total = sum(type_totals.values())
    if total <= 0:
        return {}
    weights: Dict[str, float] = {}
    for category in ActionCategory:
        types = ActionType.of_category(category)
        category_total = sum(type_totals.get(at, 0) for at in types)
        if category_total <= 0:
            continue
        weights[weight_key(category)] = 100.0 * category_total / total
        for at in types:
            weights[weight_key(at)] = 100.0 * type_totals.get(at, 0) / category_total
    return weights


class WeightCalibrator:
    """
    Owns the processed-resource counter and the only code path that writes weights.
    Counter updates and recalculation share one lock, so two passes never overlap.
    """

    def __init__(self, ledger, interval: int = DEFAULT_CALIBRATION_INTERVAL):
        self.ledger = ledger
        self.interval = resolve_interval(interval)
        self._lock = threading.Lock()
        self._processed = 0
        self.passes = 0

    @property
    def processed(self) -> int:
        return self._processed

    def resource_processed(self) -> bool:
        """Count one processed resource; recalibrate when the counter hits the interval.

        Returns True when a calibration pass ran.
        """
        with self._lock:
            self._processed += 1
            if self._processed % self.interval != 0:
                return False
            self._recalculate()
            return True

    def recalculate(self) -> Dict[str, float]:
        """Force a calibration pass outside the regular cadence."""
        with self._lock:
            return self._recalculate()

    def _recalculate(self) -> Dict[str, float]:
        # one grouped read gives a consistent snapshot of every total used below
        weights = compute_weights(self.ledger.type_totals())
        if not weights:
            logger.debug("No actions recorded yet, weights unchanged")
            return {}
        targets = {weight_key(t): t for t in list(ActionCategory) + list(ActionType)}
        with self.ledger.transaction():
            for key, value in weights.items():
                self.ledger.set_weight(targets[key], value)
        self.passes += 1
        logger.info("Calibration pass %d after %d resources: %s", self.passes, self._processed,
                    {k: round(v, 2) for k, v in weights.items() if k.startswith('category:')})
        return weights
