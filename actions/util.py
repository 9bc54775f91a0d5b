"""
Normalization helpers.
Build actions.models resources from the raw dicts of a JSON history export.
"""
from typing import Dict, Any, List
from actions.models import ChangedFile, Commit, Message, Thread, Bug, MailingList, Project


def _first(raw: Dict[str, Any], *keys, default=None):
    for k in keys:
        val = raw.get(k)
        if val is not None:
            return val
    return default


def normalize_file(raw: Dict[str, Any], revision: str = None) -> ChangedFile:
    """Create a ChangedFile from a raw dict. Unknown statuses are treated as modifications."""
    status = (raw.get('status') or ChangedFile.MODIFIED).lower()
    if status in ('a', 'add'):
        status = ChangedFile.ADDED
    elif status in ('d', 'delete', 'removed'):
        status = ChangedFile.DELETED
    elif status not in (ChangedFile.ADDED, ChangedFile.DELETED):
        status = ChangedFile.MODIFIED
    return ChangedFile(
        path=raw.get('path') or '',
        status=status,
        is_directory=bool(_first(raw, 'directory', 'is_directory', default=False)),
        copy_from=raw.get('copy_from'),
        revision=raw.get('revision') or revision,
        previous_revision=_first(raw, 'previous_revision', 'prev_revision'),
    )


def normalize_commit(raw: Dict[str, Any]) -> Commit:
    resource_id = str(_first(raw, 'id', 'revision', 'sha', default=''))
    revision = str(_first(raw, 'revision', 'sha', 'id', default=''))
    committer = _first(raw, 'committer', 'author', default='') or ''
    files = [normalize_file(f, revision) for f in raw.get('files') or []]
    return Commit(resource_id, str(committer), raw.get('message') or '', revision, files)


def normalize_message(raw: Dict[str, Any]) -> Message:
    parent = _first(raw, 'parent', 'parent_id')
    depth = raw.get('depth')
    if depth is None:
        depth = 0 if parent is None else 1
    return Message(
        resource_id=str(raw.get('id') or ''),
        sender=str(_first(raw, 'sender', 'from', default='') or ''),
        parent_id=str(parent) if parent is not None else None,
        depth=int(depth),
        arrival=_first(raw, 'date', 'arrival'),
    )


def normalize_thread(raw: Dict[str, Any]) -> Thread:
    """Messages keep the order given in the export, which must be arrival order."""
    messages = [normalize_message(m) for m in raw.get('messages') or []]
    return Thread(str(raw.get('id') or ''), messages)


def normalize_bug(raw: Dict[str, Any]) -> Bug:
    return Bug(str(raw.get('id') or ''), str(_first(raw, 'reporter', 'author', default='') or ''))


def resources_from_export(raw: Dict[str, Any]) -> List[Any]:
    """Return commits, then threads, then bugs, each in export order."""
    resources: List[Any] = []
    resources.extend(normalize_commit(c) for c in raw.get('commits') or [])
    resources.extend(normalize_thread(t) for t in raw.get('threads') or [])
    resources.extend(normalize_bug(b) for b in raw.get('bugs') or [])
    return resources


def project_from_export(raw: Dict[str, Any]) -> Project:
    """Build a Project holding every resource in the export; thread messages form one mailing list."""
    threads = [normalize_thread(t) for t in raw.get('threads') or []]
    messages = [m for t in threads for m in t.messages]
    return Project(
        name=str(raw.get('project') or ''),
        commits=[normalize_commit(c) for c in raw.get('commits') or []],
        bugs=[normalize_bug(b) for b in raw.get('bugs') or []],
        mailing_lists=[MailingList('default', messages)] if messages else [],
    )
