"""
Mailing-list thread classification.

Threads grow between runs, so a thread is the one resource that is revisited after it
has been recorded: already-recorded messages are skipped, new ones are classified, and
the "closes thread" credit moves from the previous closer to the new last message.
"""
import logging
from typing import List, Optional

from actions.models import ActionCategory, ActionType, ActionDelta, Message, Thread

logger = logging.getLogger(__name__)


class ThreadAnalyzer:
    """Tracks which message of a thread currently holds the closing credit."""

    def __init__(self, ledger):
        self.ledger = ledger

    def recorded_closer(self, thread: Thread) -> Optional[Message]:
        """Most recent message that already carries a 'closes thread' action, if any.

        The root message never closes a thread, so the scan stops before it.
        """
        for mm in reversed(thread.messages[1:]):
            action = self.ledger.get_action(mm.sender, mm.resource_id, ActionType.MCT)
            if action is not None and action.total > 0:
                return mm
        return None

    def closer_corrections(self, thread: Thread) -> List[ActionDelta]:
        """Deltas that retract the closing credit from a message that is no longer last."""
        last = thread.last_message
        if last is None:
            return []
        old = self.recorded_closer(thread)
        if old is None or old.resource_id == last.resource_id:
            return []
        if self.ledger.exists(last.resource_id, ActionCategory.MAIL):
            # the new last message was recorded already and cannot take over the credit
            logger.warning("Thread %s: last message %s already recorded, keeping closer %s", thread.resource_id, last.resource_id, old.resource_id)
            return []
        logger.debug("Thread %s grew: closer moves from %s to %s", thread.resource_id, old.resource_id, last.resource_id)
        return [ActionDelta(old.sender, old.resource_id, ActionType.MCT, -1)]


class ThreadClassifier:
    def __init__(self, ledger):
        self.ledger = ledger
        self.analyzer = ThreadAnalyzer(ledger)

    def classify(self, thread: Thread) -> List[ActionDelta]:
        deltas = self.analyzer.closer_corrections(thread)
        if not thread.messages:
            return deltas

        replies = thread.messages_at_depth(1)
        first_reply = replies[0] if replies else None
        last = thread.last_message

        for mm in thread.messages:
            if self.ledger.exists(mm.resource_id, ActionCategory.MAIL):
                continue

            def credit(action_type: ActionType):
                deltas.append(ActionDelta(mm.sender, mm.resource_id, action_type, 1))

            if mm.depth == 0:
                credit(ActionType.MST)
            else:
                if first_reply is not None and mm.resource_id == first_reply.resource_id:
                    credit(ActionType.MFR)
                if mm.resource_id == last.resource_id:
                    credit(ActionType.MCT)
            credit(ActionType.MSE)

        return deltas
