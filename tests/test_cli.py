import json

from cli import main

EVENTS = {
    'project': 'demo',
    'commits': [
        {'id': 'c1', 'committer': 'alice', 'message': '', 'revision': '2',
         'files': [{'path': 'main.c', 'status': 'added', 'lines': 40}]},
        {'id': 'c2', 'committer': 'bob', 'message': 'Fix PR: 3', 'revision': '3',
         'files': [{'path': 'main.c', 'status': 'modified', 'previous_revision': '2', 'diff': ['+a\n-b\n']}]},
    ],
    'threads': [
        {'id': 't1', 'messages': [{'id': 'm1', 'sender': 'carol'}, {'id': 'm2', 'sender': 'alice', 'parent': 'm1'}]},
    ],
    'bugs': [],
}


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding='utf-8')
    return str(path)


def _json_blocks(text):
    """Split printed output into the JSON documents it contains."""
    decoder = json.JSONDecoder()
    blocks = []
    idx = 0
    text = text.strip()
    while idx < len(text):
        obj, end = decoder.raw_decode(text, idx)
        blocks.append(obj)
        idx = end
        while idx < len(text) and text[idx].isspace():
            idx += 1
    return blocks


def test_cli_processes_events_and_prints_scores(tmp_path, capsys):
    events = _write(tmp_path, 'events.json', EVENTS)
    db = str(tmp_path / 'ledger.db')

    rc = main(['--db', db, '--events', events, '--recalibrate', '--scores', '--stats'])

    assert rc == 0
    report, scores, stats = _json_blocks(capsys.readouterr().out)
    assert report['processed'] == 3
    assert report['failed'] == []
    assert sorted(scores) == ['alice', 'bob', 'carol']
    assert stats['developers'] == 3
    assert stats['weights'] > 0

    # a second run over the same export skips the commits
    rc = main(['--db', db, '--events', events, '--score', 'alice'])
    assert rc == 0
    report, alice = _json_blocks(capsys.readouterr().out)
    assert report['skipped'] == 2
    assert report['actions_applied'] == 0
    assert set(alice) == {'alice'}


def test_cli_reports_failed_resources(tmp_path, capsys):
    broken = dict(EVENTS, commits=[{'id': 'c9', 'committer': 'x', 'message': 'm', 'revision': '9',
                                    'files': [{'path': 'n.c', 'status': 'added'}]}])
    rc = main(['--events', _write(tmp_path, 'broken.json', broken)])
    assert rc == 1
    report = _json_blocks(capsys.readouterr().out)[0]
    assert report['failed'][0]['resource_id'] == 'c9'


def test_cli_cleanup_and_remove(tmp_path, capsys):
    events = _write(tmp_path, 'events.json', EVENTS)
    db = str(tmp_path / 'ledger.db')
    assert main(['--db', db, '--events', events]) == 0
    capsys.readouterr()

    assert main(['--db', db, '--cleanup', events, '--force']) == 0
    assert 'for project demo' in capsys.readouterr().out

    assert main(['--db', db, '--stats']) == 0
    assert _json_blocks(capsys.readouterr().out)[0]['actions'] == 0

    assert main(['--db', db, '--remove', '--force']) == 0
    assert 'Cleared ledger' in capsys.readouterr().out


def test_cli_rejects_bad_threshold(tmp_path, capsys):
    assert main(['--cmf-threshold', '0', '--stats']) == 2
    assert 'Configuration error' in capsys.readouterr().out


def test_cli_missing_events_file(tmp_path, capsys):
    assert main(['--events', str(tmp_path / 'nope.json')]) == 1
    assert 'Failed to read events file' in capsys.readouterr().out
