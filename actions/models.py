"""
Action taxonomy and the project resources that actions are derived from.
"""

from enum import Enum
from typing import List, Optional, NamedTuple


class ActionCategory(Enum):
    """The three event domains an action can belong to."""
    COMMIT = 'C'
    BUG = 'B'
    MAIL = 'M'


class ActionType(Enum):
    """
    Concrete actions. Each member is bound to exactly one category and a fixed polarity.
    The member name is the mnemonic stored in the ledger.
    """
    CNS = (ActionCategory.COMMIT, True, 'new source file')
    CND = (ActionCategory.COMMIT, True, 'new directory')
    CDF = (ActionCategory.COMMIT, True, 'new documentation file')
    CTF = (ActionCategory.COMMIT, True, 'new translation file')
    CBF = (ActionCategory.COMMIT, False, 'new binary file')
    CEC = (ActionCategory.COMMIT, False, 'empty commit message')
    CMF = (ActionCategory.COMMIT, False, 'oversized commit')
    CBN = (ActionCategory.COMMIT, True, 'bug-linked commit')
    CPH = (ActionCategory.COMMIT, True, 'commendation')
    TLA = (ActionCategory.COMMIT, True, 'lines added')
    TLR = (ActionCategory.COMMIT, True, 'lines removed')
    TLM = (ActionCategory.COMMIT, True, 'lines modified')
    MSE = (ActionCategory.MAIL, True, 'message sent')
    MST = (ActionCategory.MAIL, True, 'new thread')
    MFR = (ActionCategory.MAIL, True, 'first reply')
    MCT = (ActionCategory.MAIL, True, 'closes thread')
    BOP = (ActionCategory.BUG, True, 'bug report opened')
    BCL = (ActionCategory.BUG, True, 'bug report closed')
    BCM = (ActionCategory.BUG, True, 'bug report comment')

    def __init__(self, category: ActionCategory, is_positive: bool, description: str):
        self.category = category
        self.is_positive = is_positive
        self.description = description

    @property
    def sign(self) -> int:
        return 1 if self.is_positive else -1

    @classmethod
    def of_category(cls, category: ActionCategory) -> List['ActionType']:
        return [at for at in cls if at.category is category]

    @classmethod
    def from_mnemonic(cls, mnemonic: str) -> Optional['ActionType']:
        return cls.__members__.get(mnemonic)


class ActionDelta(NamedTuple):
    """One classified credit or debit, ready to be written to the ledger."""
    developer_id: str
    resource_id: str
    action_type: ActionType
    magnitude: int

    @property
    def category(self) -> ActionCategory:
        return self.action_type.category

    @property
    def is_positive(self) -> bool:
        return self.action_type.is_positive


class Action:
    """
    Persisted ledger row keyed by (developer_id, resource_id, action_type).
    """
    def __init__(self, developer_id: str, resource_id: str, action_type: ActionType, total: int):
        self.developer_id = developer_id
        self.resource_id = resource_id
        self.action_type = action_type
        self.total = total

    @property
    def key(self):
        return (self.developer_id, self.resource_id, self.action_type)

    def __repr__(self):
        return f"Action({self.developer_id!r}, {self.resource_id!r}, {self.action_type.name}, total={self.total})"


# --- resources ---

class ChangedFile:
    """
    A path touched by a commit.
    """
    ADDED = 'added'
    MODIFIED = 'modified'
    DELETED = 'deleted'

    def __init__(self, path: str, status: str = MODIFIED, is_directory: bool = False, copy_from: Optional[str] = None, revision: Optional[str] = None, previous_revision: Optional[str] = None):
        self.path = path
        self.status = status
        self.is_directory = is_directory
        self.copy_from = copy_from  # source path when the change was recorded as a copy
        self.revision = revision
        self.previous_revision = previous_revision

    @property
    def is_added(self) -> bool:
        return self.status == self.ADDED

    @property
    def is_deleted(self) -> bool:
        return self.status == self.DELETED

    def __repr__(self):
        return f"ChangedFile({self.path!r}, {self.status})"


class Commit:
    """A project version produced by one commit."""
    category = ActionCategory.COMMIT

    def __init__(self, resource_id: str, committer: str, message: str, revision: str, files: Optional[List[ChangedFile]] = None):
        self.resource_id = resource_id
        self.committer = committer
        self.message = message or ''
        self.revision = revision
        self.files = files or []


class Message:
    """A mailing-list message and its position within a thread."""
    category = ActionCategory.MAIL

    def __init__(self, resource_id: str, sender: str, parent_id: Optional[str] = None, depth: int = 0, arrival: Optional[str] = None):
        self.resource_id = resource_id
        self.sender = sender
        self.parent_id = parent_id
        self.depth = depth
        self.arrival = arrival

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class Thread:
    """
    A mailing-list thread. Messages are kept in arrival order and only ever appended.
    """
    category = ActionCategory.MAIL

    def __init__(self, resource_id: str, messages: Optional[List[Message]] = None):
        self.resource_id = resource_id
        self.messages = list(messages or [])

    def messages_at_depth(self, depth: int) -> List[Message]:
        return [m for m in self.messages if m.depth == depth]

    @property
    def last_message(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None


class Bug:
    """A bug report."""
    category = ActionCategory.BUG

    def __init__(self, resource_id: str, reporter: str = ''):
        self.resource_id = resource_id
        self.reporter = reporter


class MailingList:
    def __init__(self, name: str, messages: Optional[List[Message]] = None):
        self.name = name
        self.messages = messages or []


class Project:
    """
    Every resource of one project; used by cleanup to find the ledger rows to purge.
    """
    def __init__(self, name: str, commits: Optional[List[Commit]] = None, bugs: Optional[List[Bug]] = None, mailing_lists: Optional[List[MailingList]] = None):
        self.name = name
        self.commits = commits or []
        self.bugs = bugs or []
        self.mailing_lists = mailing_lists or []
