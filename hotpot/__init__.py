"""
hotpot
======

Trình quản lý mã TOTP trên terminal: lưu nhiều account (keyring hệ thống hoặc
file JSON), sinh mã theo RFC 6238 và hiển thị dashboard cập nhật liên tục.

──────────────────────────────────────────────
Cấu trúc package
──────────────────────────────────────────────
- hotpot.core.otp_core        : Account, sinh mã TOTP, otpauth URI
- hotpot.core.search          : fuzzy search trên name / issuer
- hotpot.database.store_manager: Storage, FileStore, KeyringStore
- hotpot.dashboard            : state machine, renderer, vòng lặp curses
- hotpot.qr                   : render QR ra terminal, đọc QR từ ảnh
- hotpot.otp_cli              : CLI (argparse)

──────────────────────────────────────────────
Ví dụ sử dụng nhanh
──────────────────────────────────────────────
>>> from hotpot import Account, generate_code, to_otpauth_uri
>>> acct = Account(name="alice@example.com", secret="JBSWY3DPEHPK3PXP", issuer="Example")
>>> result = generate_code(acct)
>>> print("Mã TOTP:", result.code, "còn hiệu lực", result.seconds_remaining, "giây")
>>> print(to_otpauth_uri(acct))
"""

from hotpot.core.otp_core import (
    Account,
    CodeResult,
    generate_base32_secret,
    generate_code,
    hotp,
    parse_otpauth_uri,
    to_otpauth_uri,
)
from hotpot.errors import HotpotError

__version__ = "0.1.0"
