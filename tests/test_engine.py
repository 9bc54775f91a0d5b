import os
import tempfile
import time
import unittest

import pytest

from actions.models import ActionCategory, ActionType, Bug, ChangedFile, Commit, MailingList, Message, Project, Thread
from engine import ContributionEngine, FAILED, PROCESSED, SKIPPED
from errors import ConfigurationError, MissingDependencyError
from providers import StaticDiffProvider, StaticLineCounts
from storage.ledger import ContributionLedger

CONFIG = {'oversized_commit_threshold': 5, 'calibration_interval': 150}


def _commit(rid, dev='alice', path=None, lines=None, counts=None, message='work'):
    path = path or f'src/{rid}.c'
    if counts is not None and lines is not None:
        counts.add(path, f'r{rid}', lines)
    return Commit(rid, dev, message, f'r{rid}', [ChangedFile(path, ChangedFile.ADDED)])


class TestContributionEngine(unittest.TestCase):
    def setUp(self):
        self.ledger = ContributionLedger()
        self.counts = StaticLineCounts()
        self.diffs = StaticDiffProvider()
        self.engine = ContributionEngine(self.ledger, dict(CONFIG), diffs=self.diffs, line_counts=self.counts)

    def tearDown(self):
        self.ledger.close()

    def test_processing_a_commit_twice_is_idempotent(self):
        commit = _commit('1', lines=20, counts=self.counts)
        first = self.engine.process(commit)
        snapshot = self.ledger.developer_totals('alice')
        second = self.engine.process(commit)
        self.assertEqual(first.status, PROCESSED)
        self.assertEqual(first.applied, 2)
        self.assertEqual(second.status, SKIPPED)
        self.assertEqual(self.ledger.developer_totals('alice'), snapshot)
        self.assertEqual(snapshot, {ActionType.CNS: 1, ActionType.TLA: 20})

    def test_missing_line_count_leaves_no_rows(self):
        commit = Commit('2', 'alice', '', 'r2', [
            ChangedFile('a.c', ChangedFile.ADDED),
            ChangedFile('b.c', ChangedFile.ADDED),
        ])
        self.counts.add('a.c', 'r2', 5)
        with self.assertRaises(MissingDependencyError):
            self.engine.process(commit)
        self.assertFalse(self.ledger.exists('2', ActionCategory.COMMIT))
        self.assertEqual(self.ledger.total_actions(), 0)

    def test_commits_need_a_line_count_provider(self):
        engine = ContributionEngine(self.ledger, dict(CONFIG))
        with self.assertRaises(MissingDependencyError):
            engine.process(_commit('3'))

    def test_invalid_update_is_skipped(self):
        commit = Commit('4', '', '', 'r4')
        with self.assertLogs('engine', level='WARNING'):
            result = self.engine.process(commit)
        self.assertEqual(result.status, PROCESSED)
        self.assertEqual(result.applied, 0)
        self.assertEqual(self.ledger.total_actions(), 0)

    def test_bugs_and_messages_produce_no_actions(self):
        self.assertEqual(self.engine.process(Bug('b1', 'carol')).applied, 0)
        self.assertEqual(self.engine.process(Message('m9', 'carol')).applied, 0)
        self.assertEqual(self.engine.calibrator.processed, 2)

    def test_unsupported_resource(self):
        with self.assertRaises(TypeError):
            self.engine.classify(object())

    def test_run_project_isolates_failures(self):
        resources = [
            _commit('5', lines=3, counts=self.counts),
            _commit('6'),
            Thread('t1', [Message('m1', 'bob'), Message('m2', 'carol', 'm1', 1)]),
        ]
        report = self.engine.run_project(resources)
        self.assertFalse(report.ok)
        self.assertEqual(len(report.processed), 2)
        self.assertEqual([r.resource_id for r in report.failed], ['6'])
        self.assertEqual(report.failed[0].status, FAILED)
        data = report.to_dict()
        self.assertEqual(data['processed'], 2)
        self.assertEqual(data['failed'][0]['resource_id'], '6')
        self.assertTrue(self.ledger.exists('5', ActionCategory.COMMIT))
        self.assertTrue(self.engine.has_result(resources[2]))
        self.assertFalse(self.engine.has_result(resources[1]))

    def test_run_project_with_workers(self):
        commits = [_commit(str(i), dev=f'dev{i % 3}', lines=i + 1, counts=self.counts) for i in range(30)]
        report = self.engine.run_project(commits, workers=4)
        self.assertTrue(report.ok)
        self.assertEqual(len(report.processed), 30)
        self.assertEqual(self.ledger.total_actions_per_type(ActionType.CNS), 30)
        self.assertEqual(self.ledger.total_actions_per_type(ActionType.TLA), sum(range(1, 31)))

    def test_calibration_cadence_and_scores(self):
        engine = ContributionEngine(self.ledger, {'oversized_commit_threshold': 5, 'calibration_interval': 2},
                                    diffs=self.diffs, line_counts=self.counts)
        self.assertIsNone(engine.result('alice'))
        engine.process(_commit('7', lines=4, counts=self.counts))
        self.assertEqual(self.ledger.weights(), {})
        engine.process(Thread('t2', [Message('m5', 'bob')]))
        self.assertAlmostEqual(self.ledger.get_weight(ActionCategory.COMMIT) + self.ledger.get_weight(ActionCategory.MAIL), 100.0)
        scores = engine.scores()
        self.assertEqual(sorted(scores), ['alice', 'bob'])
        self.assertGreater(scores['alice'], 0)
        self.assertEqual(engine.result('alice'), scores['alice'])
        self.assertEqual(engine.score('nobody'), 0.0)

    def test_cleanup_removes_project_actions_and_weights(self):
        c1 = _commit('8', lines=2, counts=self.counts)
        m1 = Message('m1', 'bob')
        m2 = Message('m2', 'carol', 'm1', 1)
        self.engine.run_project([c1, Thread('t1', [m1, m2]), _commit('9', dev='zed', lines=1, counts=self.counts)])
        self.engine.calibrator.recalculate()
        project = Project('demo', commits=[c1], mailing_lists=[MailingList('dev', [m1, m2])])

        removed = self.engine.cleanup(project)

        self.assertEqual(removed, 2 + 2 + 3)
        self.assertFalse(self.ledger.exists('8', ActionCategory.COMMIT))
        self.assertFalse(self.ledger.exists('m1', ActionCategory.MAIL))
        self.assertTrue(self.ledger.exists('9', ActionCategory.COMMIT))
        self.assertEqual(self.ledger.weights(), {})

    def test_cleanup_requires_project(self):
        with self.assertRaises(TypeError):
            self.engine.cleanup(_commit('10'))

    def test_remove(self):
        self.engine.process(_commit('11', lines=1, counts=self.counts))
        self.engine.calibrator.recalculate()
        self.engine.remove()
        self.assertEqual(self.ledger.stats()['actions'], 0)
        self.assertEqual(self.ledger.weights(), {})


class TestEngineRestart(unittest.TestCase):
    def test_resume_from_existing_ledger(self):
        tmp = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        path = tmp.name
        tmp.close()
        counts = StaticLineCounts()
        commit = _commit('1', lines=10, counts=counts)
        try:
            with ContributionLedger(path) as ledger:
                ContributionEngine(ledger, dict(CONFIG), line_counts=counts).process(commit)
            with ContributionLedger(path) as ledger:
                engine = ContributionEngine(ledger, dict(CONFIG), line_counts=counts)
                self.assertEqual(engine.process(commit).status, SKIPPED)
                self.assertEqual(ledger.total_actions_per_type(ActionType.TLA), 10)
        finally:
            try:
                os.remove(path)
            except OSError:
                pass


def test_run_project_rejects_broken_configuration():
    ledger = ContributionLedger()
    try:
        engine = ContributionEngine(ledger, dict(CONFIG), line_counts=StaticLineCounts())
        engine.config['oversized_commit_threshold'] = 0
        with pytest.raises(ConfigurationError):
            engine.run_project([Bug('b1')])
        assert engine.calibrator.processed == 0
    finally:
        ledger.close()


class SlowLineCounts(StaticLineCounts):
    """Line counts that take a while, so two workers overlap on the same commit."""

    def line_count(self, path, revision):
        time.sleep(0.05)
        return super().line_count(path, revision)


def test_duplicate_commit_with_workers_is_recorded_once():
    ledger = ContributionLedger()
    counts = SlowLineCounts()
    counts.add('a.c', 'r1', 10)
    commit = Commit('1', 'alice', 'add a', 'r1', [ChangedFile('a.c', ChangedFile.ADDED)])
    try:
        engine = ContributionEngine(ledger, dict(CONFIG), line_counts=counts)
        report = engine.run_project([commit, commit], workers=2)
        assert report.ok
        assert sorted(r.status for r in report.results) == [PROCESSED, SKIPPED]
        assert ledger.total_actions_per_type(ActionType.TLA) == 10
        assert ledger.total_actions_per_type(ActionType.CNS) == 1
        assert engine._claims == {}
    finally:
        ledger.close()


def test_commit_recorded_after_classification_is_not_written_again():
    ledger = ContributionLedger()
    counts = StaticLineCounts()
    counts.add('a.c', 'r1', 10)
    commit = Commit('1', 'alice', 'add a', 'r1', [ChangedFile('a.c', ChangedFile.ADDED)])
    try:
        engine = ContributionEngine(ledger, dict(CONFIG), line_counts=counts)
        stale = engine.classify(commit)
        assert engine.process(commit).status == PROCESSED
        assert engine._apply(commit, stale) is None
        assert ledger.total_actions_per_type(ActionType.TLA) == 10
    finally:
        ledger.close()


def test_duplicate_thread_with_workers_is_credited_once():
    ledger = ContributionLedger()
    thread = Thread('t1', [Message('m1', 'bob'), Message('m2', 'carol', 'm1', 1)])
    try:
        engine = ContributionEngine(ledger, dict(CONFIG), line_counts=StaticLineCounts())
        engine.run_project([thread, thread, thread], workers=3)
        assert ledger.total_actions_per_type(ActionType.MSE) == 2
        assert ledger.total_actions_per_type(ActionType.MCT) == 1
    finally:
        ledger.close()
