"""
qr.py — Tiện ích QR: in otpauth URI thành QR code trên terminal, đọc ngược QR từ ảnh.

- render_qr_text     : QR dạng ký tự (dùng cho export-qr và phím E của dashboard)
- decode_qr_image    : đọc QR đầu tiên trong ảnh PNG/JPEG (pyzbar + Pillow)
- capture_screenshot : chọn vùng màn hình bằng `screencapture -i` (chỉ macOS)
"""

import io
import logging
import os
import shutil
import subprocess
import sys
import tempfile
from typing import Optional

import qrcode
from PIL import Image

from hotpot.errors import HotpotError, InvalidUri

logger = logging.getLogger(__name__)

SCREENSHOT_SUPPORTED = sys.platform == "darwin" and shutil.which("screencapture") is not None


def render_qr_text(uri: str) -> str:
    """Render `uri` thành QR code bằng ký tự half-block (đảo màu cho terminal nền tối)."""
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_L, border=2)
    qr.add_data(uri)
    qr.make(fit=True)
    out = io.StringIO()
    qr.print_ascii(out=out, invert=True)
    return out.getvalue()


def decode_qr_image(path: str) -> str:
    """
    Trả về nội dung text của QR code đầu tiên trong ảnh `path`.

    Raises:
        InvalidUri: file không đọc được như ảnh, không có QR code, hoặc QR không chứa text UTF-8
        HotpotError: thiếu thư viện native zbar
    """
    try:
        # pyzbar nạp thư viện native zbar ngay khi import
        from pyzbar.pyzbar import ZBarSymbol, decode
    except ImportError as e:
        raise HotpotError("QR image import needs the zbar shared library (e.g. libzbar0)") from e

    try:
        with Image.open(os.path.expanduser(path)) as image:
            symbols = decode(image, symbols=[ZBarSymbol.QRCODE])
    except OSError as e:
        raise InvalidUri(f"Cannot read image {path}: {e}") from e

    if not symbols:
        raise InvalidUri(f"No QR code found in {path}")
    logger.debug("Decoded %d QR symbol(s) from %s", len(symbols), path)
    try:
        return symbols[0].data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidUri(f"QR code in {path} does not contain text") from e


def capture_screenshot() -> Optional[str]:
    """
    Cho người dùng chọn một vùng màn hình (macOS `screencapture -i`), trả về đường dẫn ảnh.

    Trả về None nếu người dùng hủy hoặc lệnh thất bại.
    """
    fd, path = tempfile.mkstemp(prefix="hotpot-", suffix=".png")
    os.close(fd)
    cmd = ["screencapture", "-i", "-r", path]
    try:
        subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug("screencapture failed: %s", e)
        os.unlink(path)
        return None
    # hủy chọn vùng thì lệnh vẫn exit 0 nhưng file rỗng
    if os.path.getsize(path) == 0:
        os.unlink(path)
        return None
    return path
