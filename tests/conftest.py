import pytest

from hotpot.core.otp_core import Account
from hotpot.database.store_manager import AccountStore, Storage
from hotpot.errors import StoreUnavailable

SECRET = "JBSWY3DPEHPK3PXP"


class MemoryStore(AccountStore):
    """In-memory AccountStore; set fail_save to make the next saves raise."""

    def __init__(self, storage=None):
        self.storage = storage or Storage()
        self.fail_save = False
        self.saves = 0

    def load(self):
        return Storage(list(self.storage.accounts))

    def save(self, storage):
        if self.fail_save:
            raise StoreUnavailable("disk full")
        self.saves += 1
        self.storage = Storage(list(storage.accounts))


class FakeClipboard:
    def __init__(self):
        self.copied = []

    def __call__(self, text):
        self.copied.append(text)


@pytest.fixture
def accounts():
    return [
        Account(name="github", secret=SECRET, issuer="GitHub"),
        Account(name="gitlab", secret=SECRET),
        Account(name="aws-prod", secret="GEZDGNBVGY3TQOJQ", issuer="Amazon"),
    ]


@pytest.fixture
def store(accounts):
    return MemoryStore(Storage(accounts))


@pytest.fixture
def clipboard():
    return FakeClipboard()
