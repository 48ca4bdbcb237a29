"""
store_manager.py — Lưu trữ danh sách Account (keyring hệ thống hoặc file JSON).

Hợp đồng chung (AccountStore):
- load()  -> Storage   : chưa có dữ liệu -> Storage rỗng (không phải lỗi)
- save(Storage)        : ghi toàn bộ tập account, luôn sắp xếp theo name

Định dạng JSON được lưu:
    { "accounts": [ { "name", "secret", "issuer", "algorithm",
                      "digits", "period", "epoch" } ] }
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

import keyring
from keyring.errors import KeyringError

from hotpot.config import SERVICE_NAME, STORAGE_KEY
from hotpot.core.otp_core import Account
from hotpot.errors import AccountNotFound, Corrupt, DuplicateAccountName, StoreUnavailable

logger = logging.getLogger(__name__)

FILE_MODE = 0o600


@dataclass
class Storage:
    """Tập account đã sắp xếp theo name; mọi thao tác sửa đổi trả về Storage mới."""

    accounts: List[Account] = field(default_factory=list)

    def __post_init__(self):
        self.accounts = sorted(self.accounts, key=lambda a: a.name)

    def find(self, name: str) -> Optional[Account]:
        for account in self.accounts:
            if account.name == name:
                return account
        return None

    def with_account(self, account: Account) -> "Storage":
        if self.find(account.name) is not None:
            raise DuplicateAccountName(account.name)
        return Storage(self.accounts + [account])

    def without_account(self, name: str) -> "Storage":
        remaining = [a for a in self.accounts if a.name != name]
        if len(remaining) == len(self.accounts):
            raise AccountNotFound(name)
        return Storage(remaining)

    def to_json(self) -> str:
        return json.dumps({"accounts": [a.to_dict() for a in self.accounts]}, indent=2)

    @classmethod
    def from_json(cls, text: str) -> "Storage":
        """
        Parse JSON đã lưu -> Storage.

        Raises:
            Corrupt: JSON hỏng, không phải object, thiếu name/secret, sai kiểu dữ liệu,
                     hoặc hai account trùng name
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise Corrupt(f"Stored accounts are not valid JSON: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("accounts", []), list):
            raise Corrupt("Stored accounts must be an object with an 'accounts' list")
        try:
            accounts = [Account.from_dict(item) for item in data.get("accounts", [])]
            storage = cls(accounts)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise Corrupt(f"Stored account is missing or has invalid fields: {e}") from e

        seen = set()
        for account in storage.accounts:
            if account.name in seen:
                raise Corrupt(f"Stored accounts contain the name '{account.name}' more than once")
            seen.add(account.name)
        return storage


class AccountStore:
    """Interface cho backend lưu trữ; core chỉ phụ thuộc vào load/save."""

    def load(self) -> Storage:
        raise NotImplementedError

    def save(self, storage: Storage) -> None:
        raise NotImplementedError


class FileStore(AccountStore):
    """
    Backend file JSON.

    - File chưa tồn tại -> Storage rỗng.
    - Ghi qua file tạm cùng thư mục rồi os.replace (atomic), permission 600.
    - Tự tạo thư mục cha nếu chưa có.
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(os.path.expanduser(path))

    def __repr__(self):
        return f"FileStore({self.path!r})"

    def load(self) -> Storage:
        if not os.path.exists(self.path):
            logger.debug("No account file at %s yet, starting empty", self.path)
            return Storage()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
        except UnicodeDecodeError as e:
            raise Corrupt(f"{self.path} is not valid UTF-8 text: {e}") from e
        except OSError as e:
            raise StoreUnavailable(f"Cannot read {self.path}: {e}") from e
        if not text.strip():
            return Storage()
        return Storage.from_json(text)

    def save(self, storage: Storage) -> None:
        directory = os.path.dirname(self.path)
        payload = Storage(storage.accounts).to_json()
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".hotpot-", suffix=".tmp", dir=directory)
        except OSError as e:
            raise StoreUnavailable(f"Cannot write to {directory}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, FILE_MODE)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StoreUnavailable(f"Cannot write {self.path}: {e}") from e
        logger.debug("Saved %d account(s) to %s", len(storage.accounts), self.path)


class KeyringStore(AccountStore):
    """Backend keyring hệ thống: toàn bộ Storage là một entry JSON duy nhất."""

    def __init__(self, service: str = SERVICE_NAME, key: str = STORAGE_KEY):
        self.service = service
        self.key = key

    def __repr__(self):
        return f"KeyringStore({self.service!r}, {self.key!r})"

    def load(self) -> Storage:
        try:
            data = keyring.get_password(self.service, self.key)
        except KeyringError as e:
            raise StoreUnavailable(f"Keyring error: {e}") from e
        if data is None:
            logger.debug("No keyring entry %s/%s yet, starting empty", self.service, self.key)
            return Storage()
        return Storage.from_json(data)

    def save(self, storage: Storage) -> None:
        payload = Storage(storage.accounts).to_json()
        try:
            keyring.set_password(self.service, self.key, payload)
        except KeyringError as e:
            raise StoreUnavailable(f"Keyring error: {e}") from e
        logger.debug("Saved %d account(s) to keyring", len(storage.accounts))


def open_store(file_path: Optional[str] = None) -> AccountStore:
    """Chọn backend: có đường dẫn file -> FileStore, không có -> KeyringStore."""
    if file_path:
        return FileStore(file_path)
    return KeyringStore()


# --- Helpers (load -> sửa -> save) -----------------------------------------
def add_account(store: AccountStore, account: Account) -> Storage:
    """Thêm account mới (đã validate); trùng name -> DuplicateAccountName, store không đổi."""
    account.validate()
    storage = store.load().with_account(account)
    store.save(storage)
    return storage


def get_account(store: AccountStore, name: str) -> Account:
    account = store.load().find(name)
    if account is None:
        raise AccountNotFound(name)
    return account


def delete_account(store: AccountStore, name: str) -> Storage:
    storage = store.load().without_account(name)
    store.save(storage)
    return storage
