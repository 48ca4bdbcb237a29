"""
renderer.py — Vẽ state của dashboard thành lưới ô có style, diff với frame trước.

Giữ hai frame và đổi chỗ sau mỗi lần vẽ; chỉ những ô khác frame trước mới được
trả về dưới dạng change. Đổi kích thước thì cấp phát lại cả hai frame và vẽ lại
toàn bộ.

Bố cục:
    row 0           header (prompt của mode / form nhập)
    row 1           đường kẻ
    rows 2..h-3     mỗi account hiển thị một dòng
    row h-2         dòng status
    row h-1         gợi ý phím cho mode hiện tại
"""

from collections import namedtuple
from dataclasses import dataclass
from typing import List, Optional, Tuple

from hotpot.core.otp_core import CodeResult
from hotpot.dashboard.state import AddMethodMode, AddMode, DashboardState, ListMode, SearchMode

BAR_WIDTH = 10
COPIED_BADGE = " copied"
# khối lẻ, từ 1/8 tới 7/8 ô
PARTIAL_BLOCKS = ("", "▏", "▎", "▍", "▌", "▋", "▊", "▉")
FULL_BLOCK = "█"
ELLIPSIS = "…"


@dataclass(frozen=True)
class Style:
    bold: bool = False
    reverse: bool = False
    dim: bool = False
    color: Optional[str] = None     # "green", "yellow", "red" or "cyan"


PLAIN = Style()
BOLD = Style(bold=True)
DIM = Style(dim=True)
SELECTED = Style(bold=True, reverse=True)
ERROR = Style(color="red")
INFO = Style(color="cyan")
BADGE = Style(bold=True, color="green")

Cell = namedtuple("Cell", "char style")
BLANK = Cell(" ", PLAIN)

Change = namedtuple("Change", "row col text style")


@dataclass
class RenderResult:
    changes: List[Change]
    full: bool


class Frame:
    """Lưới ô kích thước cố định. Ghi ra ngoài lưới thì bỏ qua."""

    def __init__(self, width: int, height: int):
        self.width = max(width, 0)
        self.height = max(height, 0)
        self.cells = [[BLANK] * self.width for _ in range(self.height)]

    def clear(self) -> None:
        for row in self.cells:
            row[:] = [BLANK] * self.width

    def put(self, row: int, col: int, char: str, style: Style = PLAIN) -> bool:
        if 0 <= row < self.height and 0 <= col < self.width:
            self.cells[row][col] = Cell(char, style)
            return True
        return False

    def put_text(self, row: int, col: int, text: str, style: Style = PLAIN) -> int:
        """Ghi `text` từ (row, col), cắt theo lưới; trả về cột ngay sau text."""
        for offset, char in enumerate(text):
            self.put(row, col + offset, char, style)
        return col + len(text)

    def fill(self, row: int, col: int, end: int, style: Style) -> None:
        for c in range(col, end):
            self.put(row, c, " ", style)

    def row_text(self, row: int) -> str:
        return "".join(cell.char for cell in self.cells[row])


def progress_bar(fraction: float, width: int = BAR_WIDTH) -> str:
    """Thanh dài `width` ô, tô tới `fraction` với độ phân giải 1/8 ô."""
    fraction = min(max(fraction, 0.0), 1.0)
    eighths = int(fraction * width * 8)
    full, part = divmod(eighths, 8)
    bar = FULL_BLOCK * full
    if full < width:
        bar += PARTIAL_BLOCKS[part]
    return bar.ljust(width)


def bar_style(result: CodeResult) -> Style:
    if result.seconds_remaining <= 5:
        return Style(color="red")
    if result.remaining_fraction < 1 / 3:
        return Style(color="yellow")
    return Style(color="green")


def truncate(text: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(text) <= width:
        return text
    return text[: width - 1] + ELLIPSIS


class Renderer:
    def __init__(self):
        self.size: Tuple[int, int] = (-1, -1)
        self.front = Frame(0, 0)    # nội dung terminal đang hiện
        self.back = Frame(0, 0)     # frame đang vẽ
        self.force_full = True

    def invalidate(self) -> None:
        """Quên nội dung trên màn hình; lần render sau vẽ lại toàn bộ."""
        self.force_full = True

    def render(self, state: DashboardState, size: Tuple[int, int]) -> RenderResult:
        width, height = size
        if (width, height) != self.size:
            self.size = (width, height)
            self.front = Frame(width, height)
            self.back = Frame(width, height)
            self.force_full = True

        self.back.clear()
        self.draw(state, self.back)
        changes = self._diff(self.force_full)
        result = RenderResult(changes, self.force_full)

        self.front, self.back = self.back, self.front
        self.force_full = False
        return result

    def _diff(self, full: bool) -> List[Change]:
        changes = []
        new, old = self.back, self.front
        for r in range(new.height):
            new_row, old_row = new.cells[r], old.cells[r]
            c = 0
            while c < new.width:
                if not full and new_row[c] == old_row[c]:
                    c += 1
                    continue
                start, style = c, new_row[c].style
                chars = []
                while c < new.width and new_row[c].style == style and (full or new_row[c] != old_row[c]):
                    chars.append(new_row[c].char)
                    c += 1
                changes.append(Change(r, start, "".join(chars), style))
        return changes

    # --- Vẽ ------------------------------------------------------------------
    def draw(self, state: DashboardState, frame: Frame) -> None:
        if frame.height == 0 or frame.width == 0:
            return
        self._draw_header(state, frame)
        frame.put_text(1, 0, "─" * frame.width, DIM)
        self._draw_accounts(state, frame)
        self._draw_status(state, frame)
        frame.put_text(frame.height - 1, 0, truncate(footer_hints(state), frame.width), DIM)

    def _draw_header(self, state: DashboardState, frame: Frame) -> None:
        mode = state.mode
        match mode:
            case ListMode(pending_delete=None):
                col = frame.put_text(0, 0, " hotpot ", SELECTED)
                count = len(state.accounts)
                frame.put_text(0, col + 1, f"{count} account{'s' if count != 1 else ''}")
            case ListMode():
                frame.put_text(0, 0, f"Delete account '{mode.pending_delete}'? [y/N]", Style(bold=True, color="red"))
            case SearchMode():
                col = frame.put_text(0, 0, "Search: ", BOLD)
                frame.put_text(0, col, f"{mode.query}_")
            case AddMethodMode():
                choices = "[M]anual  [I]mage file"
                if state.screenshot_supported:
                    choices += "  [S]creenshot"
                col = frame.put_text(0, 0, "Add account: ", BOLD)
                frame.put_text(0, col, choices)
            case AddMode():
                self._draw_form(mode, frame)

    def _draw_form(self, mode: AddMode, frame: Frame) -> None:
        title = "Add account " if mode.method == "manual" else "Import QR image "
        col = frame.put_text(0, 0, title, BOLD)
        for index, name in enumerate(mode.fields):
            value = mode.values.get(name, "")
            if name == "secret":
                value = "*" * len(value)
            active = index == mode.field_index
            col = frame.put_text(0, col + 1, f"{name.capitalize()}:", BOLD if active else DIM)
            text = f"{value}_" if active else value
            col = frame.put_text(0, col + 1, text, Style(reverse=True) if active else PLAIN)

    def _draw_accounts(self, state: DashboardState, frame: Frame) -> None:
        top, bottom = 2, frame.height - 2
        rows = bottom - top
        if rows <= 0:
            return
        if not state.visible:
            message = "No matching accounts" if state.query else "No accounts yet, press A to add one"
            frame.put_text(top, 1, truncate(message, frame.width - 1), DIM)
            return

        offset = 0
        if state.selection is not None and state.selection >= rows:
            offset = state.selection - rows + 1
        for index in range(offset, min(len(state.visible), offset + rows)):
            account = state.visible[index]
            self._draw_account_row(
                state, frame, top + index - offset, account, selected=index == state.selection
            )

    def _draw_account_row(self, state, frame: Frame, row: int, account, selected: bool) -> None:
        width = frame.width
        result = state.codes.get(account.name)
        copied = state.is_copied(account.name)
        base = SELECTED if selected else PLAIN

        if isinstance(result, CodeResult):
            right = [
                (result.code, Style(bold=True, reverse=selected)),
                ("  ", base),
                (progress_bar(result.remaining_fraction), bar_style(result)),
                (f" {result.seconds_remaining:2d}s", base),
            ]
        else:
            message = f"error: {result}" if result is not None else ""
            right = [(truncate(message, max(width // 2, 0)), Style(color="red", reverse=selected))]

        right_width = sum(len(text) for text, _ in right)
        badge_col = width - len(COPIED_BADGE)
        if badge_col - right_width - 4 < 4:
            # quá hẹp cho progress bar, chỉ giữ tên và mã
            right = right[:1]
            right_width = len(right[0][0])
        right_col = max(badge_col - right_width - 1, 0)

        if selected:
            frame.fill(row, 0, badge_col, SELECTED)
        name_width = right_col - 2
        frame.put_text(row, 1, truncate(account.display_name, name_width), base)
        col = right_col
        for text, style in right:
            col = frame.put_text(row, col, text, style)
        if copied:
            frame.put_text(row, badge_col, COPIED_BADGE, BADGE)

    def _draw_status(self, state: DashboardState, frame: Frame) -> None:
        row = frame.height - 2
        if row < 2:
            return
        mode = state.mode
        if isinstance(mode, AddMode) and mode.error:
            frame.put_text(row, 0, truncate(mode.error, frame.width), ERROR)
        elif state.status is not None and state.status.deadline > state.now:
            style = ERROR if state.status.error else INFO
            frame.put_text(row, 0, truncate(state.status.text, frame.width), style)


def footer_hints(state: DashboardState) -> str:
    mode = state.mode
    match mode:
        case ListMode(pending_delete=None):
            return "↑↓ move  Enter copy  F find  A add  D delete  E export QR  Q quit"
        case ListMode():
            return "Y confirm delete  any other key cancels"
        case SearchMode():
            return "type to filter  ↑↓ move  Enter select  Esc cancel"
        case AddMethodMode():
            hints = "M manual entry  I QR image file"
            if state.screenshot_supported:
                hints += "  S screenshot"
            return hints + "  Esc cancel"
        case AddMode():
            return "Tab/↑↓ switch field  Enter next/save  Esc cancel"
    return ""
