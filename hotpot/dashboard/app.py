"""
app.py — Vòng lặp sự kiện của dashboard.

Một vòng lặp, một thread: chờ phím tối đa tới deadline tick kế tiếp, xử lý phím
nếu có, chạy tick nếu đã tới deadline, và chỉ render khi có phím hoặc tick.
Terminal luôn được khôi phục khi thoát nhờ context manager của terminal.
"""

import logging
import math
import os
import sys
import time

import pyperclip

from hotpot.config import Config
from hotpot.core.otp_core import Account, to_otpauth_uri
from hotpot.dashboard.renderer import Renderer
from hotpot.dashboard.state import Action, DashboardState
from hotpot.dashboard.terminal import CursesTerminal
from hotpot.database.store_manager import AccountStore
from hotpot.errors import HotpotError
from hotpot.qr import SCREENSHOT_SUPPORTED, capture_screenshot, decode_qr_image, render_qr_text

logger = logging.getLogger(__name__)


def copy_to_clipboard(text: str) -> None:
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise HotpotError(f"Clipboard unavailable: {e}") from e


def show_qr_export(account: Account, out=None, wait=input) -> None:
    """In QR code của account ra terminal thường và chờ người dùng nhấn Enter."""
    out = out or sys.stdout
    uri = to_otpauth_uri(account)
    print(f"QR Code for {account.name}\n", file=out)
    print(render_qr_text(uri), file=out)
    print(f"URI: {uri}\n", file=out)
    out.flush()
    wait("Press Enter to return to dashboard...")


def run_dashboard(
    store: AccountStore,
    config: Config,
    terminal_factory=CursesTerminal,
    clock=time.time,
    clipboard=copy_to_clipboard,
    image_decoder=decode_qr_image,
    qr_viewer=show_qr_export,
    screenshot=capture_screenshot,
    screenshot_supported: bool = SCREENSHOT_SUPPORTED,
) -> None:
    """
    Chạy dashboard tương tác cho tới khi người dùng thoát.

    Raises:
        StoreUnavailable, Corrupt: Lỗi khi load store lần đầu, ném ra trước khi chạm vào terminal.
    """
    storage = store.load()
    state = DashboardState(
        storage,
        store,
        clipboard=clipboard,
        image_decoder=image_decoder,
        copied_seconds=config.copied_seconds,
        status_seconds=config.status_seconds,
        screenshot_supported=screenshot_supported,
    )
    renderer = Renderer()
    interval = config.tick_interval_ms / 1000.0
    logger.debug("Dashboard started with %d account(s)", len(storage.accounts))

    with terminal_factory() as term:
        now = clock()
        state.refresh(now)
        term.write(renderer.render(state, term.size()))
        next_tick = now + interval
        try:
            while True:
                # làm tròn lên để không thức dậy sớm hơn deadline rồi quay vòng rỗng
                timeout_ms = math.ceil(max(next_tick - clock(), 0) * 1000)
                key = term.read_key(timeout_ms)
                now = clock()
                ticked = False

                if key is not None:
                    action = state.handle_key(key, now)
                    if action is Action.QUIT:
                        break
                    if action is Action.EXPORT_QR:
                        with term.suspended():
                            qr_viewer(state.export_target)
                        renderer.invalidate()
                    elif action is Action.CAPTURE_SCREENSHOT:
                        with term.suspended():
                            path = screenshot()
                        state.import_image(path, clock())
                        if path and os.path.exists(path):
                            os.unlink(path)
                        renderer.invalidate()

                if now >= next_tick:
                    state.tick(now)
                    next_tick = now + interval
                    ticked = True

                if key is not None or ticked:
                    term.write(renderer.render(state, term.size()))
        except KeyboardInterrupt:
            logger.debug("Interrupted, leaving dashboard")
    logger.debug("Dashboard closed")
