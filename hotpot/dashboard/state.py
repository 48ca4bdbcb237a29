"""
state.py — State machine của dashboard.

DashboardState giữ:
- bản sao trong bộ nhớ của các account đã lưu
- mode hiện tại và selection trong danh sách đã lọc
- các marker "copied" (mỗi account một deadline riêng) và một dòng status tạm thời

State chỉ thay đổi qua phím (`handle_key`) và timer tick (`tick`); chỉ ghi xuống
store khi add/delete được commit. Việc cần terminal (hiện QR, chụp màn hình) được
yêu cầu bằng cách trả về một `Action`; vòng lặp sự kiện sẽ thực hiện.

Các mode:

    List --F--> Search --Enter/Esc--> List
    List --A--> AddMethod --M/I--> Add --Enter on last field/Esc--> List
                AddMethod --Esc--> List
    List --D--> List(pending_delete) --y--> List (account removed)
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Dict, List, Optional, Tuple, Union

from hotpot.config import COPIED_SECONDS, STATUS_SECONDS
from hotpot.core.otp_core import Account, CodeResult, generate_code, normalize_secret, parse_otpauth_uri
from hotpot.core.search import clamp_selection, filter_accounts
from hotpot.dashboard.keys import KeyEvent
from hotpot.database.store_manager import AccountStore, Storage
from hotpot.errors import HotpotError, InvalidSecret, ValidationFailed

logger = logging.getLogger(__name__)

MANUAL_FIELDS = ("name", "secret", "issuer")
IMAGE_FIELDS = ("path",)


class Action(enum.Enum):
    NONE = "none"
    QUIT = "quit"
    EXPORT_QR = "export_qr"
    CAPTURE_SCREENSHOT = "capture_screenshot"


# --- Modes -----------------------------------------------------------------
@dataclass
class ListMode:
    kind: ClassVar[str] = "list"
    pending_delete: Optional[str] = None

    @property
    def query(self) -> str:
        return ""


@dataclass
class SearchMode:
    kind: ClassVar[str] = "search"
    query: str = ""
    origin: Optional[str] = None    # account đang chọn trước khi bắt đầu search


@dataclass
class AddMethodMode:
    kind: ClassVar[str] = "add_method"

    @property
    def query(self) -> str:
        return ""


@dataclass
class AddMode:
    kind: ClassVar[str] = "add"
    method: str = "manual"          # "manual" hoặc "image"
    values: Dict[str, str] = field(default_factory=dict)
    field_index: int = 0
    error: Optional[str] = None
    template: Optional[Account] = None  # tham số lấy từ URI được import

    @property
    def fields(self) -> Tuple[str, ...]:
        return MANUAL_FIELDS if self.method == "manual" else IMAGE_FIELDS

    @property
    def current_field(self) -> str:
        return self.fields[self.field_index]

    @property
    def query(self) -> str:
        # name đang gõ cũng lọc danh sách, thấy ngay nếu trùng
        return self.values.get("name", "") if self.method == "manual" else ""


Mode = Union[ListMode, SearchMode, AddMethodMode, AddMode]


@dataclass
class Status:
    text: str
    deadline: float
    error: bool = False


class DashboardState:
    def __init__(
        self,
        storage: Storage,
        store: AccountStore,
        clipboard: Optional[Callable[[str], None]] = None,
        image_decoder: Optional[Callable[[str], str]] = None,
        copied_seconds: float = COPIED_SECONDS,
        status_seconds: float = STATUS_SECONDS,
        screenshot_supported: bool = False,
    ):
        self.storage = Storage(list(storage.accounts))
        self.store = store
        self.clipboard = clipboard
        self.image_decoder = image_decoder
        self.copied_seconds = copied_seconds
        self.status_seconds = status_seconds
        self.screenshot_supported = screenshot_supported

        self.mode: Mode = ListMode()
        self.selection: Optional[int] = 0
        self.copied: Dict[str, float] = {}
        self.status: Optional[Status] = None
        self.export_target: Optional[Account] = None
        self.visible: List[Account] = []
        self.codes: Dict[str, Union[CodeResult, HotpotError]] = {}
        self.now = 0.0
        self._apply_filter()

    # --- Truy vấn -----------------------------------------------------------
    @property
    def accounts(self) -> List[Account]:
        return self.storage.accounts

    @property
    def query(self) -> str:
        return self.mode.query

    @property
    def selected_account(self) -> Optional[Account]:
        if self.selection is None:
            return None
        return self.visible[self.selection]

    def is_copied(self, name: str, now: Optional[float] = None) -> bool:
        deadline = self.copied.get(name)
        if deadline is None:
            return False
        return deadline > (self.now if now is None else now)

    # --- Timer -------------------------------------------------------------
    def refresh(self, now: float) -> None:
        """Lọc lại danh sách, kẹp selection và tính lại mã cho các account đang hiển thị."""
        self.now = now
        self._apply_filter()
        codes = {}
        for account in self.visible:
            try:
                codes[account.name] = generate_code(account, now)
            except HotpotError as e:
                codes[account.name] = e
        self.codes = codes

    def tick(self, now: float) -> None:
        """Timer tick: xóa marker copied và status đã hết hạn rồi refresh mã; không đổi mode."""
        self.copied = {name: deadline for name, deadline in self.copied.items() if deadline > now}
        if self.status is not None and self.status.deadline <= now:
            self.status = None
        self.refresh(now)

    def set_status(self, text: str, now: float, error: bool = False) -> None:
        self.status = Status(text, now + self.status_seconds, error)
        if error:
            logger.info("Dashboard error: %s", text)

    # --- Xử lý phím ---------------------------------------------------------
    def handle_key(self, key: KeyEvent, now: float) -> Action:
        self.now = now
        if key.name == "interrupt":
            return Action.QUIT
        if key.name == "resize":
            self.refresh(now)
            return Action.NONE

        match self.mode:
            case ListMode():
                action = self._handle_list(self.mode, key, now)
            case SearchMode():
                action = self._handle_search(self.mode, key)
            case AddMethodMode():
                action = self._handle_add_method(key)
            case AddMode():
                action = self._handle_add(self.mode, key, now)
            case _:
                raise AssertionError(f"unhandled mode {self.mode!r}")

        self.refresh(now)
        return action

    def _move(self, delta: int) -> None:
        if self.selection is not None:
            self.selection = clamp_selection(self.selection + delta, len(self.visible))

    def _navigate(self, key: KeyEvent) -> bool:
        if key.name == "up":
            self._move(-1)
        elif key.name == "down":
            self._move(1)
        elif key.name == "home":
            self.selection = clamp_selection(0, len(self.visible))
        elif key.name == "end":
            self.selection = clamp_selection(len(self.visible) - 1, len(self.visible))
        else:
            return False
        return True

    def _select_name(self, name: Optional[str]) -> None:
        """Đặt selection vào `name` trong danh sách chưa lọc (không có thì về 0)."""
        names = [a.name for a in self.accounts]
        self.selection = names.index(name) if name in names else 0

    def _handle_list(self, mode: ListMode, key: KeyEvent, now: float) -> Action:
        if mode.pending_delete is not None:
            name = mode.pending_delete
            self.mode = ListMode()
            if key.name == "char" and key.char.lower() == "y":
                self._delete(name, now)
            else:
                self.set_status("Delete cancelled", now)
            return Action.NONE

        if self._navigate(key):
            return Action.NONE
        if key.name == "enter":
            self._copy_selected(now)
            return Action.NONE
        if key.name == "esc":
            return Action.QUIT
        if key.name != "char":
            return Action.NONE

        c = key.char.lower()
        selected = self.selected_account
        if c == "q":
            return Action.QUIT
        if c == "f":
            self.mode = SearchMode(origin=selected.name if selected else None)
            self.selection = 0
        elif c == "a":
            self.mode = AddMethodMode()
        elif c == "d" and selected is not None:
            self.mode = ListMode(pending_delete=selected.name)
        elif c == "e" and selected is not None:
            self.export_target = selected
            return Action.EXPORT_QR
        return Action.NONE

    def _handle_search(self, mode: SearchMode, key: KeyEvent) -> Action:
        if self._navigate(key):
            return Action.NONE
        if key.name == "esc":
            self.mode = ListMode()
            self._select_name(mode.origin)
        elif key.name == "enter":
            selected = self.selected_account
            self.mode = ListMode()
            self._select_name(selected.name if selected else mode.origin)
        elif key.name == "backspace":
            mode.query = mode.query[:-1]
            self.selection = 0
        elif key.name == "char":
            mode.query += key.char
            self.selection = 0
        return Action.NONE

    def _handle_add_method(self, key: KeyEvent) -> Action:
        if key.name == "esc":
            self.mode = ListMode()
            return Action.NONE
        if key.name != "char":
            return Action.NONE
        c = key.char.lower()
        if c == "m":
            self.mode = AddMode(method="manual", values={f: "" for f in MANUAL_FIELDS})
        elif c == "i":
            self.mode = AddMode(method="image", values={f: "" for f in IMAGE_FIELDS})
        elif c == "s" and self.screenshot_supported:
            return Action.CAPTURE_SCREENSHOT
        return Action.NONE

    def _handle_add(self, mode: AddMode, key: KeyEvent, now: float) -> Action:
        name = key.name
        if name == "esc":
            self.mode = ListMode()
            self.set_status("Add cancelled", now)
        elif name in ("tab", "down"):
            mode.field_index = min(mode.field_index + 1, len(mode.fields) - 1)
        elif name in ("btab", "up"):
            mode.field_index = max(mode.field_index - 1, 0)
        elif name == "backspace":
            mode.values[mode.current_field] = mode.values.get(mode.current_field, "")[:-1]
            mode.error = None
        elif name == "char":
            mode.values[mode.current_field] = mode.values.get(mode.current_field, "") + key.char
            mode.error = None
        elif name == "enter":
            if mode.field_index < len(mode.fields) - 1:
                mode.field_index += 1
            elif mode.method == "manual":
                self._commit_add(mode, now)
            else:
                self._commit_image_path(mode)
        return Action.NONE

    # --- Commit ------------------------------------------------------------
    def _commit_add(self, mode: AddMode, now: float) -> None:
        template = mode.template or Account(name="", secret="")
        account = Account(
            name=mode.values.get("name", "").strip(),
            secret=normalize_secret(mode.values.get("secret", "")),
            issuer=mode.values.get("issuer", "").strip(),
            algorithm=template.algorithm,
            digits=template.digits,
            period=template.period,
            epoch=template.epoch,
        )
        try:
            account.validate()
            updated = self.storage.with_account(account)
            self.store.save(updated)
        except ValidationFailed as e:
            self._fail_add(mode, str(e), e.field)
            return
        except InvalidSecret as e:
            self._fail_add(mode, str(e), "secret")
            return
        except HotpotError as e:
            self._fail_add(mode, str(e), None)
            return

        self.storage = updated
        self.mode = ListMode()
        self._select_name(account.name)
        self.set_status(f"Added account: {account.name}", now)
        logger.info("Added account %s", account.name)

    def _fail_add(self, mode: AddMode, message: str, field_name: Optional[str]) -> None:
        mode.error = message
        if field_name in mode.fields:
            mode.field_index = mode.fields.index(field_name)

    def _read_uri_from_image(self, path: str) -> Account:
        if self.image_decoder is None:
            raise HotpotError("Image import is not available")
        return parse_otpauth_uri(self.image_decoder(path))

    def _start_import(self, imported: Account) -> None:
        self.mode = AddMode(
            method="manual",
            values={"name": imported.name, "secret": imported.secret, "issuer": imported.issuer},
            template=imported,
        )

    def _commit_image_path(self, mode: AddMode) -> None:
        path = mode.values.get("path", "").strip()
        if not path:
            mode.error = "Enter the path of an image containing a QR code"
            return
        try:
            imported = self._read_uri_from_image(path)
        except HotpotError as e:
            mode.error = str(e)
            return
        self._start_import(imported)

    def import_image(self, path: Optional[str], now: float) -> None:
        """Đọc QR otpauth từ ảnh (vd. ảnh chụp màn hình) và điền sẵn vào form Add."""
        if not path:
            self.set_status("Screenshot cancelled", now, error=True)
            return
        try:
            imported = self._read_uri_from_image(path)
        except HotpotError as e:
            self.set_status(str(e), now, error=True)
            return
        self._start_import(imported)
        self.refresh(now)

    def _delete(self, name: str, now: float) -> None:
        try:
            updated = self.storage.without_account(name)
            self.store.save(updated)
        except HotpotError as e:
            self.set_status(f"Delete failed: {e}", now, error=True)
            return
        self.storage = updated
        self.copied.pop(name, None)
        self.set_status(f"Deleted account: {name}", now)
        logger.info("Deleted account %s", name)

    def _copy_selected(self, now: float) -> None:
        account = self.selected_account
        if account is None:
            return
        try:
            result = generate_code(account, now)
            if self.clipboard is None:
                raise HotpotError("Clipboard is not available")
            self.clipboard(result.code)
        except HotpotError as e:
            self.set_status(str(e), now, error=True)
            return
        self.copied[account.name] = now + self.copied_seconds

    def _apply_filter(self) -> None:
        self.visible = filter_accounts(self.accounts, self.query, self.mode.kind)
        self.selection = clamp_selection(self.selection, len(self.visible))
