import json

import pytest

from hotpot import otp_cli
from hotpot.core.otp_core import Account, generate_code, to_otpauth_uri
from hotpot.database.store_manager import FileStore

from conftest import SECRET


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("HOTPOT_FILE", "HOTPOT_TICK_MS", "HOTPOT_COPIED_SECONDS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "accounts.json")


def cli(db, *argv):
    return otp_cli.main(["--file", db, *argv])


def add(db, name, issuer=""):
    uri = to_otpauth_uri(Account(name=name, secret=SECRET, issuer=issuer))
    assert cli(db, "add", "--uri", uri) == 0


def test_add_from_uri_and_list(db, capsys):
    add(db, "alice", "ACME")
    add(db, "bob")
    capsys.readouterr()
    assert cli(db, "list") == 0
    out = capsys.readouterr().out
    assert "alice (ACME)" in out
    assert "  bob" in out


def test_list_empty(db, capsys):
    assert cli(db, "list") == 0
    assert "No accounts configured" in capsys.readouterr().out


def test_add_prompts_for_secret(db, monkeypatch):
    monkeypatch.setattr(otp_cli.getpass, "getpass", lambda prompt: "jbsw y3dp ehpk 3pxp")
    assert cli(db, "add", "carol", "--issuer", "Corp", "--digits", "8", "--algorithm", "sha256") == 0
    saved = FileStore(db).load().find("carol")
    assert saved == Account(name="carol", secret=SECRET, issuer="Corp", algorithm="SHA256", digits=8)


def test_add_generate_prints_secret(db, capsys):
    assert cli(db, "add", "dave", "--generate") == 0
    out = capsys.readouterr().out
    secret = FileStore(db).load().find("dave").secret
    assert f"Secret: {secret}" in out
    assert "otpauth://totp/dave?secret=" in out


def test_add_uri_with_name_override(db):
    uri = to_otpauth_uri(Account(name="alice", secret=SECRET))
    assert cli(db, "add", "renamed", "--uri", uri) == 0
    assert FileStore(db).load().find("renamed") is not None


def test_add_requires_name(db, capsys):
    assert cli(db, "add") == 1
    assert "account name is required" in capsys.readouterr().err


def test_add_duplicate_fails(db, capsys):
    add(db, "alice")
    assert cli(db, "add", "--uri", to_otpauth_uri(Account(name="alice", secret=SECRET))) == 1
    assert "Error: Account 'alice' already exists" in capsys.readouterr().err


def test_add_invalid_uri_fails(db, capsys):
    assert cli(db, "add", "--uri", "otpauth://hotp/alice?secret=" + SECRET) == 1
    assert capsys.readouterr().err.startswith("Error: ")


def test_code_prints_current_code(db, capsys, monkeypatch):
    add(db, "alice")
    monkeypatch.setattr(otp_cli, "generate_code", lambda account: generate_code(account, 59))
    capsys.readouterr()
    assert cli(db, "code", "alice") == 0
    expected = generate_code(Account(name="alice", secret=SECRET), 59).code
    assert capsys.readouterr().out.strip() == expected


def test_code_unknown_account(db, capsys):
    assert cli(db, "code", "ghost") == 1
    assert "Error: Account 'ghost' not found" in capsys.readouterr().err


def test_delete_with_confirmation(db, monkeypatch):
    add(db, "alice")
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    assert cli(db, "delete", "alice") == 0
    assert FileStore(db).load().find("alice") is not None

    monkeypatch.setattr("builtins.input", lambda prompt: "y")
    assert cli(db, "delete", "alice") == 0
    assert FileStore(db).load().find("alice") is None


def test_delete_yes(db):
    add(db, "alice")
    assert cli(db, "delete", "--yes", "alice") == 0
    assert FileStore(db).load().accounts == []


def test_uri_and_export(db, capsys):
    add(db, "alice", "ACME")
    capsys.readouterr()
    expected = to_otpauth_uri(Account(name="alice", secret=SECRET, issuer="ACME"))
    assert cli(db, "uri", "alice") == 0
    assert capsys.readouterr().out.strip() == expected
    assert cli(db, "export-qr", "--name", "alice") == 0
    assert f"Generated URI: {expected}" in capsys.readouterr().out


def test_import_qr(db, monkeypatch):
    uri = to_otpauth_uri(Account(name="erin", secret=SECRET, period=60))
    monkeypatch.setattr(otp_cli, "decode_qr_image", lambda path: uri)
    assert cli(db, "import-qr", "qr.png") == 0
    assert FileStore(db).load().find("erin").period == 60


def test_corrupt_file(db, capsys):
    with open(db, "w") as f:
        f.write("{broken")
    assert cli(db, "list") == 1
    err = capsys.readouterr().err
    assert "Error: Stored accounts are not valid JSON" in err
    assert "Caused by:" in err


def test_file_from_environment(db, monkeypatch, capsys):
    with open(db, "w") as f:
        json.dump({"accounts": [{"name": "env", "secret": SECRET}]}, f)
    monkeypatch.setenv("HOTPOT_FILE", db)
    assert otp_cli.main(["list"]) == 0
    assert "env" in capsys.readouterr().out


def test_bad_environment_number(db, monkeypatch, capsys):
    monkeypatch.setenv("HOTPOT_TICK_MS", "fast")
    assert cli(db, "list") == 1
    assert "HOTPOT_TICK_MS" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [[], ["dashboard"], ["watch"]])
def test_dashboard_is_default(db, monkeypatch, argv):
    calls = []
    monkeypatch.setattr("hotpot.dashboard.app.run_dashboard", lambda store, config: calls.append(store))
    assert cli(db, *argv) == 0
    assert len(calls) == 1
    assert calls[0].path == FileStore(db).path
