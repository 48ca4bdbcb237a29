"""
errors.py — Exception taxonomy cho hotpot.

Mọi lỗi nghiệp vụ đều kế thừa HotpotError để CLI / dashboard bắt một chỗ.
Các lỗi về dữ liệu đầu vào (secret, URI, thuật toán, validation) đồng thời là
ValueError, giữ nguyên cách core OTP vẫn báo lỗi Base32 trước đây.
"""


class HotpotError(Exception):
    """Lớp gốc cho mọi lỗi do hotpot ném ra."""


class InvalidSecret(HotpotError, ValueError):
    """Secret Base32 không giải mã được."""


class InvalidUri(HotpotError, ValueError):
    """URI otpauth:// (hoặc nội dung QR) sai định dạng."""


class UnsupportedAlgorithm(HotpotError, ValueError):
    def __init__(self, algorithm: str):
        super().__init__(f"Unsupported algorithm: {algorithm!r} (use SHA1, SHA256 or SHA512)")
        self.algorithm = algorithm


class ValidationFailed(HotpotError, ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class DuplicateAccountName(HotpotError):
    def __init__(self, name: str):
        super().__init__(f"Account '{name}' already exists")
        self.name = name


class AccountNotFound(HotpotError):
    def __init__(self, name: str):
        super().__init__(f"Account '{name}' not found")
        self.name = name


class StoreUnavailable(HotpotError):
    """Không truy cập được backend lưu trữ (keyring hoặc file)."""


class Corrupt(HotpotError):
    """Có dữ liệu đã lưu nhưng không phải tài liệu account hợp lệ."""
