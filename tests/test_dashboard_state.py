import random

import pytest

from hotpot.core.otp_core import Account, CodeResult, generate_code, to_otpauth_uri
from hotpot.dashboard import keys
from hotpot.dashboard.state import Action, AddMethodMode, AddMode, DashboardState, ListMode, SearchMode
from hotpot.database.store_manager import Storage
from hotpot.errors import HotpotError, InvalidUri

from conftest import SECRET, MemoryStore

NOW = 1000.0


@pytest.fixture
def state(store, clipboard):
    s = DashboardState(store.load(), store, clipboard=clipboard)
    s.refresh(NOW)
    return s


def press(state, *events, now=NOW):
    action = Action.NONE
    for event in events:
        action = state.handle_key(event, now)
    return action


def type_text(state, text, now=NOW):
    return press(state, *[keys.char(c) for c in text], now=now)


def visible_names(state):
    return [a.name for a in state.visible]


# --- list mode ---
def test_initial_state(state):
    assert isinstance(state.mode, ListMode)
    assert state.selection == 0
    assert visible_names(state) == ["aws-prod", "github", "gitlab"]
    assert isinstance(state.codes["github"], CodeResult)


def test_navigation_is_clamped(state):
    press(state, keys.DOWN)
    assert state.selection == 1
    press(state, keys.END, keys.DOWN)
    assert state.selection == 2
    press(state, keys.HOME, keys.UP)
    assert state.selection == 0


def test_empty_storage_has_no_selection(clipboard):
    store = MemoryStore()
    state = DashboardState(store.load(), store, clipboard=clipboard)
    assert state.selection is None
    assert press(state, keys.ENTER, keys.DOWN, keys.char("d")) is Action.NONE
    assert isinstance(state.mode, ListMode)
    assert clipboard.copied == []


@pytest.mark.parametrize("event", [keys.char("q"), keys.char("Q"), keys.ESC, keys.INTERRUPT])
def test_quit_keys(state, event):
    assert press(state, event) is Action.QUIT


def test_interrupt_quits_from_any_mode(state):
    press(state, keys.char("f"))
    assert press(state, keys.INTERRUPT) is Action.QUIT


def test_export_returns_action(state):
    press(state, keys.DOWN)
    assert press(state, keys.char("e")) is Action.EXPORT_QR
    assert state.export_target.name == "github"


# --- copy ---
def test_enter_copies_selected_code(state, clipboard):
    press(state, keys.DOWN, keys.ENTER)
    account = state.storage.find("github")
    assert clipboard.copied == [generate_code(account, NOW).code]
    assert state.is_copied("github")
    assert not state.is_copied("aws-prod")


def test_copied_markers_expire_independently(state):
    press(state, keys.ENTER, now=100.0)
    press(state, keys.DOWN, keys.ENTER, now=101.0)
    state.tick(102.5)
    assert state.copied == {"github": 103.0}
    assert not state.is_copied("aws-prod")
    assert state.is_copied("github")
    state.tick(103.0)
    assert state.copied == {}


def test_clipboard_failure_sets_status(store):
    def broken(text):
        raise HotpotError("Clipboard unavailable")

    state = DashboardState(store.load(), store, clipboard=broken)
    press(state, keys.ENTER)
    assert state.copied == {}
    assert state.status.error
    assert "Clipboard" in state.status.text


def test_status_expires_on_tick(state):
    state.set_status("hello", NOW)
    state.tick(NOW + 1)
    assert state.status is not None
    state.tick(NOW + state.status_seconds)
    assert state.status is None


# --- search ---
def test_search_filters_and_confirms(state):
    press(state, keys.char("f"))
    assert isinstance(state.mode, SearchMode)
    type_text(state, "lab")
    assert visible_names(state) == ["gitlab"]
    assert state.selection == 0
    press(state, keys.ENTER)
    assert isinstance(state.mode, ListMode)
    assert visible_names(state) == ["aws-prod", "github", "gitlab"]
    assert state.selected_account.name == "gitlab"


def test_search_typing_q_does_not_quit(state):
    press(state, keys.char("f"))
    assert type_text(state, "q") is Action.NONE
    assert state.query == "q"


def test_search_backspace(state):
    press(state, keys.char("f"))
    type_text(state, "lab")
    press(state, keys.BACKSPACE, keys.BACKSPACE, keys.BACKSPACE)
    assert state.query == ""
    assert len(state.visible) == 3


def test_search_cancel_restores_selection(state):
    press(state, keys.DOWN, keys.char("f"))
    type_text(state, "lab")
    press(state, keys.ESC)
    assert isinstance(state.mode, ListMode)
    assert state.selected_account.name == "github"


def test_search_without_matches(state):
    press(state, keys.char("f"))
    type_text(state, "zzz")
    assert state.visible == []
    assert state.selection is None
    press(state, keys.ENTER)
    assert state.selected_account.name == "aws-prod"


def test_tick_keeps_mode_and_query(state):
    press(state, keys.char("f"))
    type_text(state, "git")
    state.tick(NOW + 30)
    assert isinstance(state.mode, SearchMode)
    assert state.query == "git"
    assert visible_names(state) == ["github", "gitlab"]


# --- delete ---
def test_delete_requires_confirmation(state, store):
    press(state, keys.DOWN, keys.char("d"))
    assert state.mode == ListMode(pending_delete="github")
    press(state, keys.char("y"))
    assert isinstance(state.mode, ListMode)
    assert state.mode.pending_delete is None
    assert visible_names(state) == ["aws-prod", "gitlab"]
    assert store.storage.find("github") is None
    assert state.status.text == "Deleted account: github"


def test_delete_cancelled_by_other_key(state, store):
    press(state, keys.DOWN, keys.char("d"), keys.char("n"))
    assert state.mode == ListMode()
    assert store.saves == 0
    assert len(state.accounts) == 3


def test_delete_last_row_clamps_selection(state):
    press(state, keys.END, keys.char("d"), keys.char("y"))
    assert state.selection == 1
    assert state.selected_account.name == "github"


def test_delete_save_failure_keeps_account(state, store):
    store.fail_save = True
    press(state, keys.char("d"), keys.char("y"))
    assert state.storage.find("aws-prod") is not None
    assert state.status.error
    assert "disk full" in state.status.text


# --- add ---
def open_manual_form(state):
    press(state, keys.char("a"))
    assert isinstance(state.mode, AddMethodMode)
    press(state, keys.char("m"))
    assert isinstance(state.mode, AddMode)


def fill_form(state, name, secret, issuer=""):
    type_text(state, name)
    press(state, keys.TAB)
    type_text(state, secret)
    press(state, keys.TAB)
    type_text(state, issuer)


def test_add_method_escape(state):
    press(state, keys.char("a"), keys.ESC)
    assert isinstance(state.mode, ListMode)


def test_screenshot_only_when_supported(store):
    state = DashboardState(store.load(), store)
    press(state, keys.char("a"))
    assert press(state, keys.char("s")) is Action.NONE
    assert isinstance(state.mode, AddMethodMode)

    state = DashboardState(store.load(), store, screenshot_supported=True)
    press(state, keys.char("a"))
    assert press(state, keys.char("s")) is Action.CAPTURE_SCREENSHOT


def test_add_account(state, store):
    open_manual_form(state)
    fill_form(state, "new", "jbsw y3dp ehpk 3pxp", "ACME")
    press(state, keys.ENTER)
    assert isinstance(state.mode, ListMode)
    saved = store.storage.find("new")
    assert saved == Account(name="new", secret=SECRET, issuer="ACME")
    assert state.selected_account.name == "new"
    assert state.status.text == "Added account: new"


def test_enter_moves_to_next_field(state):
    open_manual_form(state)
    type_text(state, "new")
    press(state, keys.ENTER)
    assert state.mode.current_field == "secret"
    press(state, keys.UP)
    assert state.mode.current_field == "name"


def test_add_name_filters_list(state):
    open_manual_form(state)
    type_text(state, "git")
    assert visible_names(state) == ["github", "gitlab"]


def test_add_duplicate_is_rejected(state, store):
    open_manual_form(state)
    fill_form(state, "github", SECRET)
    press(state, keys.ENTER)
    assert isinstance(state.mode, AddMode)
    assert state.mode.error == "Account 'github' already exists"
    assert store.saves == 0
    assert len(state.accounts) == 3


def test_add_invalid_secret_focuses_secret(state, store):
    open_manual_form(state)
    fill_form(state, "new", "1111")
    press(state, keys.ENTER)
    assert isinstance(state.mode, AddMode)
    assert state.mode.error
    assert state.mode.current_field == "secret"
    assert store.saves == 0


def test_add_empty_name_focuses_name(state):
    open_manual_form(state)
    press(state, keys.TAB)
    type_text(state, SECRET)
    press(state, keys.TAB, keys.ENTER)
    assert state.mode.current_field == "name"
    assert state.mode.error


def test_add_save_failure_keeps_storage(state, store):
    store.fail_save = True
    open_manual_form(state)
    fill_form(state, "new", SECRET)
    press(state, keys.ENTER)
    assert isinstance(state.mode, AddMode)
    assert "disk full" in state.mode.error
    assert state.storage.find("new") is None


def test_typing_clears_error(state):
    open_manual_form(state)
    fill_form(state, "github", SECRET)
    press(state, keys.ENTER)
    type_text(state, "x")
    assert state.mode.error is None


def test_add_escape_discards(state, store):
    open_manual_form(state)
    type_text(state, "new")
    press(state, keys.ESC)
    assert isinstance(state.mode, ListMode)
    assert store.saves == 0


# --- image import ---
IMPORTED = Account(name="carol", secret=SECRET, issuer="Corp", digits=8, period=60)


def test_import_from_image_keeps_uri_parameters(store):
    paths = []

    def decoder(path):
        paths.append(path)
        return to_otpauth_uri(IMPORTED)

    state = DashboardState(store.load(), store, image_decoder=decoder)
    press(state, keys.char("a"), keys.char("i"))
    assert state.mode.fields == ("path",)
    type_text(state, "qr.png")
    press(state, keys.ENTER)
    assert paths == ["qr.png"]
    assert state.mode.values == {"name": "carol", "secret": SECRET, "issuer": "Corp"}

    press(state, keys.ENTER, keys.ENTER, keys.ENTER)
    assert isinstance(state.mode, ListMode)
    assert store.storage.find("carol") == IMPORTED


def test_import_image_error_stays_in_form(store):
    def decoder(path):
        raise InvalidUri(f"No QR code found in {path}")

    state = DashboardState(store.load(), store, image_decoder=decoder)
    press(state, keys.char("a"), keys.char("i"))
    type_text(state, "blank.png")
    press(state, keys.ENTER)
    assert state.mode.method == "image"
    assert state.mode.error == "No QR code found in blank.png"


def test_import_screenshot(store):
    state = DashboardState(store.load(), store, image_decoder=lambda path: to_otpauth_uri(IMPORTED))
    state.import_image("/tmp/shot.png", NOW)
    assert isinstance(state.mode, AddMode)
    assert state.mode.template == IMPORTED


def test_import_cancelled_screenshot(state):
    state.import_image(None, NOW)
    assert isinstance(state.mode, ListMode)
    assert state.status.error


# --- codes ---
def test_broken_account_does_not_break_refresh(clipboard):
    store = MemoryStore(Storage([Account(name="bad", secret="!!!!"), Account(name="good", secret=SECRET)]))
    state = DashboardState(store.load(), store, clipboard=clipboard)
    state.refresh(NOW)
    assert isinstance(state.codes["bad"], HotpotError)
    assert isinstance(state.codes["good"], CodeResult)
    press(state, keys.ENTER)
    assert state.status.error
    assert clipboard.copied == []


# --- selection invariant ---
WALK_KEYS = [keys.char(c) for c in "gltabxyzfdym"] + [
    keys.BACKSPACE, keys.UP, keys.DOWN, keys.HOME, keys.END, keys.ESC, keys.ENTER, keys.TAB,
]


@pytest.mark.parametrize("seed", range(5))
def test_selection_stays_in_range_on_random_keys(state, seed):
    rng = random.Random(seed)
    now = NOW
    for _ in range(300):
        now += rng.choice([0.0, 0.3, 3.0])
        if rng.random() < 0.1:
            state.tick(now)
        else:
            # quit actions are ignored, the walk keeps going in the same state
            state.handle_key(rng.choice(WALK_KEYS), now)
        if state.visible:
            assert state.selection is not None
            assert 0 <= state.selection < len(state.visible)
        else:
            assert state.selection is None


def test_search_with_non_ascii_names(clipboard):
    store = MemoryStore(Storage([Account(name="İstanbul", secret=SECRET), Account(name="Berlin", secret=SECRET)]))
    state = DashboardState(store.load(), store, clipboard=clipboard)
    state.refresh(NOW)
    press(state, keys.char("f"))
    type_text(state, "b")
    assert visible_names(state) == ["Berlin"]
    press(state, keys.BACKSPACE)
    type_text(state, "l")
    assert sorted(visible_names(state)) == ["Berlin", "İstanbul"]


def test_import_undecodable_qr_payload_stays_in_form(store):
    def decoder(path):
        raise InvalidUri(f"QR code in {path} does not contain text")

    state = DashboardState(store.load(), store, image_decoder=decoder)
    press(state, keys.char("a"), keys.char("i"))
    type_text(state, "binary.png")
    press(state, keys.ENTER)
    assert isinstance(state.mode, AddMode)
    assert state.mode.error == "QR code in binary.png does not contain text"
