import re
from typing import Optional

_NOT_PLATE_CHARS = re.compile(r"[^A-Za-z0-9\s]")

# 2-4 alphanumerics, an optional single space, then 2-5 alphanumerics.
# The lookahead yields a candidate at every word start, overlapping ones included.
_PLATE_CANDIDATES = re.compile(r"(?=(\b[A-Z0-9]{2,4} ?[A-Z0-9]{2,5}\b))")


def normalize_ocr_text(raw_text: str) -> str:
    return _NOT_PLATE_CHARS.sub("", raw_text).upper()


def extract_license_plate(raw_text: Optional[str]) -> Optional[str]:
    """Best guess of a license plate in OCR output, or None.

    The text is stripped down to ASCII letters, digits and whitespace and
    uppercased. The first plate shaped token that carries at least one digit
    is returned as is; plain words like "NO PLATE" never qualify.
    """
    if not raw_text or not raw_text.strip():
        return None

    for match in _PLATE_CANDIDATES.finditer(normalize_ocr_text(raw_text)):
        candidate = match.group(1)
        if any(ch.isdigit() for ch in candidate):
            return candidate

    return None
