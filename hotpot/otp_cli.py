#!/usr/bin/env python3
"""
otp_cli.py — CLI cho hotpot (quản lý nhiều account TOTP)

Cung cấp các subcommand:
- add       : thêm account (nhập secret, --uri, hoặc --generate)
- code      : in mã TOTP hiện tại của account
- list      : liệt kê các account
- delete    : xóa account (có xác nhận y/N)
- export-qr : in otpauth URI + QR code của account
- import-qr : thêm account từ ảnh chứa QR code
- uri       : in otpauth URI của account
- dashboard : giao diện terminal tương tác (mặc định khi không có subcommand)
"""

import argparse
import getpass
import logging
import sys

from hotpot.config import load_config
from hotpot.core.otp_core import (
    DEFAULT_ALGORITHM,
    DEFAULT_DIGITS,
    DEFAULT_PERIOD,
    Account,
    generate_base32_secret,
    generate_code,
    normalize_secret,
    parse_otpauth_uri,
    to_otpauth_uri,
)
from hotpot.database.store_manager import add_account, delete_account, get_account, open_store
from hotpot.errors import HotpotError, ValidationFailed
from hotpot.qr import decode_qr_image, render_qr_text

logger = logging.getLogger("hotpot")


# --- CLI command handlers ---
def cmd_add(args, store, config):
    generated = False
    if args.uri:
        account = parse_otpauth_uri(args.uri)
        if args.name:
            account.name = args.name
    else:
        if not args.name:
            raise ValidationFailed("name", "An account name is required unless --uri is given")
        if args.generate:
            secret = generate_base32_secret()
            generated = True
        else:
            secret = getpass.getpass("Enter the Base32 secret: ")
        account = Account(
            name=args.name,
            secret=normalize_secret(secret),
            issuer=args.issuer or "",
            algorithm=args.algorithm.upper(),
            digits=args.digits,
            period=args.period,
        )

    add_account(store, account)
    print(f"Added account: {account.name}")
    if generated:
        print(f"Secret: {account.secret}")
        print(f"URI: {to_otpauth_uri(account)}")


def cmd_code(args, store, config):
    account = get_account(store, args.name)
    result = generate_code(account)
    logger.debug("counter=%d, remaining=%ds", result.counter, result.seconds_remaining)
    print(result.code)


def cmd_list(args, store, config):
    storage = store.load()
    if not storage.accounts:
        print("No accounts configured")
        return
    print("Configured accounts:")
    for account in storage.accounts:
        print(f"  {account.name} ({account.issuer})" if account.issuer else f"  {account.name}")


def cmd_delete(args, store, config):
    account = get_account(store, args.name)
    if not args.yes:
        answer = input(f"Delete account '{account.name}'? [y/N] ")
        if answer.strip().lower() != "y":
            print("Cancelled")
            return
    delete_account(store, account.name)
    print(f"Deleted account: {account.name}")


def cmd_export_qr(args, store, config):
    account = get_account(store, args.name)
    uri = to_otpauth_uri(account)
    print(f"Generated URI: {uri}")
    print()
    print(render_qr_text(uri))


def cmd_import_qr(args, store, config):
    account = parse_otpauth_uri(decode_qr_image(args.image))
    if args.name:
        account.name = args.name
    add_account(store, account)
    print(f"Added account: {account.name}")


def cmd_uri(args, store, config):
    print(to_otpauth_uri(get_account(store, args.name)))


def cmd_dashboard(args, store, config):
    # import tại đây để các lệnh thường không đụng tới curses
    from hotpot.dashboard.app import run_dashboard

    run_dashboard(store, config)


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="hotpot", description="A simple CLI for TOTP-based 2FA")
    p.add_argument("--file", help="Store accounts in this JSON file instead of the system keyring")
    p.add_argument("--verbose", action="store_true", help="Verbose output")
    p.add_argument("--log-file", help="Write log output to this file")
    sub = p.add_subparsers(dest="cmd")
    p.set_defaults(func=cmd_dashboard)

    # add
    pa = sub.add_parser("add", help="Add a new account with secret")
    pa.add_argument("name", nargs="?", help="Account name (e.g., email or service identifier)")
    pa.add_argument("--issuer", default="", help="Issuer label")
    pa.add_argument("--algorithm", default=DEFAULT_ALGORITHM, choices=["SHA1", "SHA256", "SHA512"],
                    type=str.upper, help="HMAC algorithm")
    pa.add_argument("--digits", type=int, default=DEFAULT_DIGITS, help="Number of OTP digits")
    pa.add_argument("--period", type=int, default=DEFAULT_PERIOD, help="TOTP time step (seconds)")
    pa.add_argument("--uri", help="Add from an otpauth:// URI instead of prompting for a secret")
    pa.add_argument("--generate", action="store_true", help="Generate a new random secret")
    pa.set_defaults(func=cmd_add)

    # code
    pc = sub.add_parser("code", help="Generate code for an account")
    pc.add_argument("name", help="Account name to generate code for")
    pc.set_defaults(func=cmd_code)

    # list
    pl = sub.add_parser("list", help="List all configured accounts")
    pl.set_defaults(func=cmd_list)

    # delete
    pd = sub.add_parser("delete", help="Delete an account")
    pd.add_argument("name", help="Account name to delete")
    pd.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    pd.set_defaults(func=cmd_delete)

    # export-qr
    pe = sub.add_parser("export-qr", help="Export account as QR code")
    pe.add_argument("--name", required=True, help="Account name to export")
    pe.set_defaults(func=cmd_export_qr)

    # import-qr
    pi = sub.add_parser("import-qr", help="Add an account from an image containing a QR code")
    pi.add_argument("image", help="Path to a PNG/JPEG image")
    pi.add_argument("--name", help="Override the account name found in the QR code")
    pi.set_defaults(func=cmd_import_qr)

    # uri
    pu = sub.add_parser("uri", help="Print the otpauth URI of an account")
    pu.add_argument("name", help="Account name")
    pu.set_defaults(func=cmd_uri)

    # dashboard
    pw = sub.add_parser("dashboard", aliases=["watch"], help="Interactive dashboard with live codes")
    pw.set_defaults(func=cmd_dashboard)

    return p


def setup_logging(verbose: bool, log_file=None) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[+] %(message)s",
        filename=log_file,
    )


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    try:
        config = load_config(args)
    except ValueError as e:
        # biến môi trường sai (vd. HOTPOT_TICK_MS=abc)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        store = open_store(config.storage_file)
        logger.debug("Using %r", store)
        args.func(args, store, config)
    except HotpotError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.__cause__ is not None:
            print(f"Caused by: {e.__cause__}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
