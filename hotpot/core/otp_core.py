"""
otp_core.py — Core library cho TOTP: mô hình Account, sinh mã, otpauth URI.

Mục tiêu:
- Chứa các hàm thuần (pure functions) để CLI và dashboard dùng trực tiếp.
- Không đọc/ghi file, không đụng tới terminal; chỉ tính toán trên Account được truyền vào.
- Hỗ trợ HMAC-SHA1 / SHA256 / SHA512 theo RFC 4226 & RFC 6238.

Lưu ý bảo mật:
- Secret chỉ được decode thành bytes ngay trước khi tính HMAC, không log ra ngoài.
"""

import base64
import hashlib
import hmac
import struct
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional
from urllib.parse import parse_qs, quote, unquote, urlencode, urlsplit

import pyotp

from hotpot.errors import InvalidSecret, InvalidUri, UnsupportedAlgorithm, ValidationFailed

# --- Config / constants ----------------------------------------------------
DEFAULT_DIGITS = 6          # chuẩn: 6 chữ số
DEFAULT_PERIOD = 30         # TOTP step (giây)
DEFAULT_ALGORITHM = "SHA1"
DEFAULT_EPOCH = 0
SUPPORTED_DIGITS = range(6, 9)

ALGORITHMS: Dict[str, Callable] = {
    "SHA1": hashlib.sha1,
    "SHA256": hashlib.sha256,
    "SHA512": hashlib.sha512,
}

# độ dài hợp lệ (mod 8) của một chuỗi Base32 không có padding
_B32_UNPADDED_REMAINDERS = {0, 2, 4, 5, 7}


@dataclass
class Account:
    """
    Một tài khoản TOTP được lưu trữ.

    - name: nhãn duy nhất (phân biệt hoa/thường), dùng làm khóa.
    - secret: Base32 secret (RFC 4648, có hoặc không có padding).
    - issuer: nhãn hiển thị tùy chọn.
    - algorithm / digits / period / epoch: tham số RFC 6238.
    """

    name: str
    secret: str
    issuer: str = ""
    algorithm: str = DEFAULT_ALGORITHM
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_PERIOD
    epoch: int = DEFAULT_EPOCH

    @property
    def display_name(self) -> str:
        if self.issuer:
            return f"{self.issuer}: {self.name}"
        return self.name

    def validate(self) -> "Account":
        """
        Kiểm tra toàn bộ trường trước khi lưu.

        Raises:
            ValidationFailed: name rỗng, period <= 0, digits ngoài 6..8, epoch âm
            UnsupportedAlgorithm: algorithm không thuộc SHA1/SHA256/SHA512
            InvalidSecret: secret không decode được
        """
        if not self.name or not self.name.strip():
            raise ValidationFailed("name", "Account name must not be empty")
        _check_parameters(self.digits, self.period)
        if self.epoch < 0:
            raise ValidationFailed("epoch", "Epoch must not be negative")
        resolve_algorithm(self.algorithm)
        decode_secret(self.secret)
        return self

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Account":
        """
        Dựng Account từ JSON object đã lưu; các trường tùy chọn lấy giá trị mặc định.

        Raises:
            KeyError: thiếu name hoặc secret
            TypeError: trường có kiểu dữ liệu sai (vd. name là số)
            ValueError: digits / period / epoch không phải số nguyên
        """
        issuer = data.get("issuer") or ""
        algorithm = data.get("algorithm", DEFAULT_ALGORITHM)
        for key, value in (("name", data["name"]), ("secret", data["secret"]),
                           ("issuer", issuer), ("algorithm", algorithm)):
            if not isinstance(value, str):
                raise TypeError(f"field '{key}' must be a string, got {type(value).__name__}")
        return cls(
            name=data["name"],
            secret=data["secret"],
            issuer=issuer,
            algorithm=algorithm,
            digits=int(data.get("digits", DEFAULT_DIGITS)),
            period=int(data.get("period", DEFAULT_PERIOD)),
            epoch=int(data.get("epoch", DEFAULT_EPOCH)),
        )


@dataclass(frozen=True)
class CodeResult:
    """Kết quả sinh mã cho một thời điểm: mã, counter và thời gian còn lại của cửa sổ."""

    code: str
    counter: int
    seconds_remaining: int
    period: int
    remaining_fraction: float


# --- Utility ---------------------------------------------------------------
def generate_base32_secret() -> str:
    """
    Sinh một secret ngẫu nhiên dạng Base32 (160-bit, không padding).

    Dùng pyotp.random_base32() (CSPRNG): chuỗi in hoa, nhập được vào
    Google Authenticator / Authy.
    """
    return pyotp.random_base32()


def normalize_secret(secret_b32: str) -> str:
    """
    Chuẩn hóa secret người dùng nhập: bỏ khoảng trắng, chuyển sang chữ hoa.

    Ví dụ: "jbsw y3dp ehpk 3pxp" -> "JBSWY3DPEHPK3PXP"
    """
    return "".join(secret_b32.split()).upper()


def decode_secret(secret_b32: str) -> bytes:
    """
    Decode Base32 secret -> raw key bytes.

    - Chấp nhận chữ thường và khoảng trắng (được chuẩn hóa trước).
    - Padding '=' chỉ được bổ sung cho các độ dài hợp lệ của Base32 không padding;
      độ dài sai (mod 8 = 1, 3, 6) bị từ chối, không cắt bớt hay tự thêm ký tự.

    Raises:
        InvalidSecret: secret rỗng hoặc không phải Base32 hợp lệ
    """
    cleaned = normalize_secret(secret_b32).rstrip("=")
    if not cleaned:
        raise InvalidSecret("Secret must not be empty")
    if len(cleaned) % 8 not in _B32_UNPADDED_REMAINDERS:
        raise InvalidSecret("Invalid Base32 secret: wrong length")
    padded = cleaned + "=" * (-len(cleaned) % 8)
    try:
        return base64.b32decode(padded, casefold=True)
    except ValueError as e:
        # binascii.Error (ký tự ngoài bảng chữ cái) hoặc ký tự không phải ASCII
        raise InvalidSecret("Invalid Base32 secret") from e


def resolve_algorithm(algorithm: str) -> Callable:
    """Trả về hàm băm hashlib tương ứng; raise UnsupportedAlgorithm nếu không hỗ trợ."""
    try:
        return ALGORITHMS[algorithm.upper()]
    except (KeyError, AttributeError):
        raise UnsupportedAlgorithm(algorithm) from None


def _check_parameters(digits: int, period: int) -> None:
    if period <= 0:
        raise ValidationFailed("period", "Period must be a positive number of seconds")
    if digits not in SUPPORTED_DIGITS:
        raise ValidationFailed(
            "digits",
            f"Digits must be between {SUPPORTED_DIGITS.start} and {SUPPORTED_DIGITS.stop - 1}",
        )


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """
    Chuyển integer (counter) sang 8-byte big-endian như RFC4226 yêu cầu.

    Ví dụ: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'
    """
    return struct.pack(">Q", i)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    Áp dụng dynamic truncation theo RFC4226.

    - Lấy offset = last_byte & 0x0F
    - Lấy 4 bytes từ offset, clear MSB (0x7F) cho byte đầu
    - Trả về integer 31-bit (unsigned)

    Với SHA1 (20 bytes) offset tối đa 15 nên luôn đủ 4 bytes; SHA256/512 còn dài hơn.
    """
    offset = hmac_digest[-1] & 0x0F
    code = (
        ((hmac_digest[offset] & 0x7F) << 24)
        | ((hmac_digest[offset + 1] & 0xFF) << 16)
        | ((hmac_digest[offset + 2] & 0xFF) << 8)
        | (hmac_digest[offset + 3] & 0xFF)
    )
    return code


def hotp(
    secret_b32: str,
    counter: int,
    digits: int = DEFAULT_DIGITS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """
    Sinh mã HOTP theo RFC4226.

    Steps:
    1. Base32-decode secret -> raw key bytes (lỗi -> InvalidSecret, trước mọi HMAC)
    2. Message = 8-byte counter (big-endian)
    3. HMAC-<algorithm>(key, message)
    4. Dynamic truncate -> dbc
    5. otp = dbc % 10^digits
    6. Zero-pad để có đúng "digits" chữ số

    Raises:
        InvalidSecret, UnsupportedAlgorithm
    """
    key = decode_secret(secret_b32)
    digest_fn = resolve_algorithm(algorithm)

    msg = int_to_bytes(counter)
    digest = hmac.new(key, msg, digest_fn).digest()

    dbc = dynamic_truncate(digest)
    otp_val = dbc % (10 ** digits)
    return str(otp_val).zfill(digits)


def generate_code(account: Account, now: Optional[float] = None) -> CodeResult:
    """
    Sinh mã TOTP theo RFC6238 cho một Account tại thời điểm `now`.

    - counter = floor((now - epoch) / period); nếu now < epoch thì coi như 0.
    - seconds_remaining nằm trong (0, period]: đúng tại biên cửa sổ trả về cả period,
      không bao giờ hiển thị "0 giây còn lại".
    - remaining_fraction = phần còn lại của cửa sổ (có phần lẻ giây) cho progress bar.

    Arguments:
        account: tài khoản cần sinh mã
        now: epoch seconds (float); None -> time.time()
    """
    if now is None:
        now = time.time()
    _check_parameters(account.digits, account.period)

    elapsed = max(0.0, now - account.epoch)
    whole = int(elapsed)
    counter = whole // account.period
    code = hotp(account.secret, counter, account.digits, account.algorithm)

    remaining = account.period - (whole % account.period)
    fraction = (account.period - (elapsed % account.period)) / account.period
    return CodeResult(
        code=code,
        counter=counter,
        seconds_remaining=remaining,
        period=account.period,
        remaining_fraction=fraction,
    )


# --- otpauth URI -----------------------------------------------------------
def to_otpauth_uri(account: Account) -> str:
    """
    Tạo otpauth:// URI cho TOTP, dễ import vào ứng dụng Authenticator.

    otpauth://totp/{issuer}:{name}?secret=...&issuer=...&algorithm=...&digits=...&period=...

    - Label và issuer được percent-encode.
    - Tham số ở giá trị mặc định bị bỏ qua (SHA1 / 6 / 30), secret luôn có mặt.
    - epoch khác 0 được ghi thêm dưới dạng tham số `epoch` (các reader khác bỏ qua).
    """
    label = quote(account.name, safe="")
    if account.issuer:
        label = f"{quote(account.issuer, safe='')}:{label}"

    params = [("secret", account.secret)]
    if account.issuer:
        params.append(("issuer", account.issuer))
    if account.algorithm.upper() != DEFAULT_ALGORITHM:
        params.append(("algorithm", account.algorithm.upper()))
    if account.digits != DEFAULT_DIGITS:
        params.append(("digits", str(account.digits)))
    if account.period != DEFAULT_PERIOD:
        params.append(("period", str(account.period)))
    if account.epoch != DEFAULT_EPOCH:
        params.append(("epoch", str(account.epoch)))

    return f"otpauth://totp/{label}?{urlencode(params, quote_via=quote)}"


def _split_label(raw_label: str, issuer_param: Optional[str]):
    """
    Tách label "Issuer:Name" (dấu ':' literal, hoặc %3A khi khớp với tham số issuer).

    Chỉ bỏ khoảng trắng literal sau dấu phân cách ("Issuer: Name"); khoảng trắng
    đã percent-encode (%20) thuộc về name và được giữ nguyên.
    """
    if ":" in raw_label:
        prefix, rest = raw_label.split(":", 1)
        return unquote(prefix), unquote(rest.lstrip(" "))
    lowered = raw_label.lower()
    if issuer_param and "%3a" in lowered:
        cut = lowered.index("%3a")
        prefix = unquote(raw_label[:cut])
        if prefix == issuer_param:
            return prefix, unquote(raw_label[cut + 3:].lstrip(" "))
    return "", unquote(raw_label)


def _int_param(query: dict, key: str, default: int) -> int:
    values = query.get(key)
    if not values or values[0] == "":
        return default
    try:
        return int(values[0])
    except ValueError:
        raise InvalidUri(f"Parameter '{key}' must be an integer, got {values[0]!r}") from None


def parse_otpauth_uri(uri: str) -> Account:
    """
    Parse otpauth://totp URI -> Account (chiều ngược của to_otpauth_uri).

    - Issuer chấp nhận cả dạng percent-encoded lẫn literal.
    - Thiếu algorithm -> SHA1, thiếu digits -> 6, thiếu period -> 30.
    - Thiếu secret hoặc secret rỗng -> InvalidUri.

    Raises:
        InvalidUri, InvalidSecret, UnsupportedAlgorithm, ValidationFailed
    """
    parts = urlsplit(uri.strip())
    if parts.scheme.lower() != "otpauth":
        raise InvalidUri(f"Not an otpauth URI: {uri!r}")
    if parts.netloc.lower() != "totp":
        raise InvalidUri(f"Unsupported OTP type {parts.netloc!r}: only totp is supported")

    raw_label = parts.path.lstrip("/")
    if not raw_label:
        raise InvalidUri("otpauth URI has no account label")

    query = parse_qs(parts.query, keep_blank_values=True)
    secret = (query.get("secret") or [""])[0].strip()
    if not secret:
        raise InvalidUri("otpauth URI is missing the secret parameter")

    issuer_param = query.get("issuer", [None])[0]
    label_issuer, name = _split_label(raw_label, issuer_param)
    if not name:
        raise InvalidUri("otpauth URI has an empty account name")

    algorithm = (query.get("algorithm") or [DEFAULT_ALGORITHM])[0] or DEFAULT_ALGORITHM
    account = Account(
        name=name,
        secret=secret,
        issuer=issuer_param if issuer_param is not None else label_issuer,
        algorithm=algorithm.upper(),
        digits=_int_param(query, "digits", DEFAULT_DIGITS),
        period=_int_param(query, "period", DEFAULT_PERIOD),
        epoch=_int_param(query, "epoch", DEFAULT_EPOCH),
    )
    return account.validate()
