"""
terminal.py — Terminal curses cho dashboard.

`CursesTerminal` là context manager: khi vào thì bật cbreak/no-echo và ẩn con trỏ,
khi ra (kể cả lúc có exception) thì khôi phục lại terminal. `suspended()` tạm trả
terminal về chế độ thường (hiện QR, chọn vùng chụp màn hình).
"""

import curses
import logging
import os
from contextlib import contextmanager
from typing import Optional, Tuple

from hotpot.dashboard import keys
from hotpot.dashboard.keys import KeyEvent
from hotpot.dashboard.renderer import RenderResult, Style

logger = logging.getLogger(__name__)

COLOR_PAIRS = {"green": 1, "yellow": 2, "red": 3, "cyan": 4}

_SPECIAL_KEYS = {
    curses.KEY_UP: keys.UP,
    curses.KEY_DOWN: keys.DOWN,
    curses.KEY_HOME: keys.HOME,
    curses.KEY_END: keys.END,
    curses.KEY_ENTER: keys.ENTER,
    curses.KEY_BACKSPACE: keys.BACKSPACE,
    curses.KEY_BTAB: keys.BTAB,
    curses.KEY_RESIZE: keys.RESIZE,
}

_CONTROL_CHARS = {
    "\n": keys.ENTER,
    "\r": keys.ENTER,
    "\x1b": keys.ESC,
    "\x7f": keys.BACKSPACE,
    "\b": keys.BACKSPACE,
    "\t": keys.TAB,
    "\x03": keys.INTERRUPT,
}


def translate_key(ch) -> KeyEvent:
    """Chuyển kết quả get_wch() của curses (str hoặc mã phím int) thành KeyEvent."""
    if isinstance(ch, int):
        return _SPECIAL_KEYS.get(ch, keys.UNKNOWN)
    if ch in _CONTROL_CHARS:
        return _CONTROL_CHARS[ch]
    if ch.isprintable():
        return keys.char(ch)
    return keys.UNKNOWN


class CursesTerminal:
    def __init__(self):
        self.stdscr = None
        self.colors = False

    def __enter__(self) -> "CursesTerminal":
        # mặc định curses chờ cả giây để phân biệt Esc với escape sequence
        os.environ.setdefault("ESCDELAY", "25")
        self.stdscr = curses.initscr()
        try:
            curses.noecho()
            curses.cbreak()
            self.stdscr.keypad(True)
            self._set_cursor(0)
            if curses.has_colors():
                curses.start_color()
                curses.use_default_colors()
                curses.init_pair(COLOR_PAIRS["green"], curses.COLOR_GREEN, -1)
                curses.init_pair(COLOR_PAIRS["yellow"], curses.COLOR_YELLOW, -1)
                curses.init_pair(COLOR_PAIRS["red"], curses.COLOR_RED, -1)
                curses.init_pair(COLOR_PAIRS["cyan"], curses.COLOR_CYAN, -1)
                self.colors = True
        except BaseException:
            self._restore()
            raise
        logger.debug("Terminal initialised (colors=%s)", self.colors)
        return self

    def __exit__(self, exc_type, exc, tb):
        self._restore()
        return False

    def _restore(self) -> None:
        if self.stdscr is None:
            return
        self.stdscr.keypad(False)
        curses.nocbreak()
        curses.echo()
        self._set_cursor(1)
        curses.endwin()
        self.stdscr = None

    @staticmethod
    def _set_cursor(visibility: int) -> None:
        try:
            curses.curs_set(visibility)
        except curses.error:
            # một số terminal không ẩn được con trỏ
            pass

    def size(self) -> Tuple[int, int]:
        height, width = self.stdscr.getmaxyx()
        return width, height

    def read_key(self, timeout_ms: int) -> Optional[KeyEvent]:
        """Chờ phím tối đa `timeout_ms`; hết giờ thì trả về None."""
        self.stdscr.timeout(max(timeout_ms, 0))
        try:
            ch = self.stdscr.get_wch()
        except curses.error:
            return None
        except KeyboardInterrupt:
            return keys.INTERRUPT
        return translate_key(ch)

    def _attr(self, style: Style) -> int:
        attr = curses.A_NORMAL
        if style.bold:
            attr |= curses.A_BOLD
        if style.reverse:
            attr |= curses.A_REVERSE
        if style.dim:
            attr |= curses.A_DIM
        if style.color and self.colors:
            attr |= curses.color_pair(COLOR_PAIRS[style.color])
        return attr

    def write(self, result: RenderResult) -> None:
        """Ghi các ô thay đổi rồi flush ra terminal thật."""
        if result.full:
            self.stdscr.clear()
        height, width = self.stdscr.getmaxyx()
        for change in result.changes:
            try:
                self.stdscr.addstr(change.row, change.col, change.text, self._attr(change.style))
            except curses.error:
                # ghi vào ô góc dưới phải đẩy con trỏ ra ngoài màn hình, curses báo lỗi
                if not (change.row == height - 1 and change.col + len(change.text) >= width):
                    raise
        self.stdscr.refresh()

    @contextmanager
    def suspended(self):
        """Thoát chế độ curses trong suốt block (terminal line-buffered bình thường)."""
        curses.endwin()
        try:
            yield
        finally:
            self.stdscr.refresh()
            self._set_cursor(0)
