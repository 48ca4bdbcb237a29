"""keys.py — Sự kiện phím mà state machine của dashboard nhận, không phụ thuộc curses."""

from dataclasses import dataclass


@dataclass(frozen=True)
class KeyEvent:
    # một trong: "char", "up", "down", "home", "end", "enter", "esc", "backspace",
    # "tab", "btab", "interrupt", "resize", "unknown"
    name: str
    char: str = ""


def char(c: str) -> KeyEvent:
    return KeyEvent("char", c)


UP = KeyEvent("up")
DOWN = KeyEvent("down")
HOME = KeyEvent("home")
END = KeyEvent("end")
ENTER = KeyEvent("enter")
ESC = KeyEvent("esc")
BACKSPACE = KeyEvent("backspace")
TAB = KeyEvent("tab")
BTAB = KeyEvent("btab")
INTERRUPT = KeyEvent("interrupt")
RESIZE = KeyEvent("resize")
UNKNOWN = KeyEvent("unknown")
