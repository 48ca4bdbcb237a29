"""Thuật toán thuần: sinh mã TOTP, otpauth URI và fuzzy search."""
