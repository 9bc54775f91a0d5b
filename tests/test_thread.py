import unittest

from actions.models import ActionType, Message, Thread
from classify.thread import ThreadClassifier
from storage.ledger import ContributionLedger


def _apply(ledger, deltas):
    for d in deltas:
        ledger.upsert(d.developer_id, d.resource_id, d.action_type, d.magnitude)


def _mct(ledger, msg):
    action = ledger.get_action(msg.sender, msg.resource_id, ActionType.MCT)
    return action.total if action else 0


class TestThreadClassifier(unittest.TestCase):
    def setUp(self):
        self.ledger = ContributionLedger()
        self.classifier = ThreadClassifier(self.ledger)
        self.root = Message('m0', 'alice')
        self.reply = Message('m1', 'bob', parent_id='m0', depth=1)
        self.late = Message('m2', 'carol', parent_id='m1', depth=2)

    def tearDown(self):
        self.ledger.close()

    def test_first_run(self):
        deltas = self.classifier.classify(Thread('t1', [self.root, self.reply]))
        got = sorted((d.resource_id, d.action_type.name, d.magnitude) for d in deltas)
        self.assertEqual(got, [
            ('m0', 'MSE', 1),
            ('m0', 'MST', 1),
            ('m1', 'MCT', 1),
            ('m1', 'MFR', 1),
            ('m1', 'MSE', 1),
        ])

    def test_single_message_thread_has_no_closer(self):
        deltas = self.classifier.classify(Thread('t1', [self.root]))
        self.assertEqual(sorted(d.action_type.name for d in deltas), ['MSE', 'MST'])

    def test_empty_thread(self):
        self.assertEqual(self.classifier.classify(Thread('t0', [])), [])

    def test_closer_moves_when_thread_grows(self):
        _apply(self.ledger, self.classifier.classify(Thread('t1', [self.root, self.reply])))
        self.assertEqual(_mct(self.ledger, self.reply), 1)
        before_mse = self.ledger.total_actions_per_type(ActionType.MSE)

        _apply(self.ledger, self.classifier.classify(Thread('t1', [self.root, self.reply, self.late])))

        self.assertEqual(_mct(self.ledger, self.reply), 0)
        self.assertEqual(_mct(self.ledger, self.late), 1)
        # old messages are not credited twice
        self.assertEqual(self.ledger.total_actions_per_type(ActionType.MSE), before_mse + 1)
        self.assertEqual(self.ledger.total_actions_per_type(ActionType.MFR), 1)
        self.assertEqual(self.ledger.total_actions_per_type(ActionType.MST), 1)

    def test_unchanged_thread_is_a_no_op(self):
        thread = Thread('t1', [self.root, self.reply])
        _apply(self.ledger, self.classifier.classify(thread))
        self.assertEqual(self.classifier.classify(thread), [])

    def test_second_reply_is_not_first_reply(self):
        other = Message('m3', 'dave', parent_id='m0', depth=1)
        deltas = self.classifier.classify(Thread('t2', [self.root, self.reply, other]))
        mfr = [d.resource_id for d in deltas if d.action_type is ActionType.MFR]
        mct = [d.resource_id for d in deltas if d.action_type is ActionType.MCT]
        self.assertEqual(mfr, ['m1'])
        self.assertEqual(mct, ['m3'])
