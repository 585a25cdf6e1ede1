from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any

# "Menos de 5pz" style cells carry no usable number once the digits are gone.
LESS_THAN_FALLBACK = 5

_UNAVAILABLE = {"no disponible", "n/a"}
_DIGITS = re.compile(r"(\d+)")
# "1e3", "12 a 15": letters inside a number make it unreadable.
_LETTERS_BETWEEN_DIGITS = re.compile(r"\d[^\d]*?[^\W\d_][^\d]*?\d")


def parse_currency_amount(value: Any) -> float | None:
    """Parse a price cell into a float.

    Numbers pass through untouched. Strings lose currency text and whitespace,
    then separators are resolved:

    - both "." and "," present: the right-most one is the decimal point
      ("$ 2,750.00" -> 2750.0, "2.750,00" -> 2750.0);
    - only ",": a single comma is the decimal point ("2750,5" -> 2750.5),
      repeated commas are thousands ("1,234,567" -> 1234567.0);
    - only ".": thousands when repeated or followed by exactly three digits
      ("2.750" -> 2750.0), decimal point otherwise ("19.99" -> 19.99).

    Returns None when nothing finite can be read, or when letters sit between
    digits ("1e3", "12 a 15") and the cell is not a single amount.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return value if math.isfinite(value) else None

    s = str(value).replace("$", "")
    if _LETTERS_BETWEEN_DIGITS.search(s):
        return None
    s = "".join(s.split())
    s = "".join(ch for ch in s if ch.isdigit() or ch in (".", ",", "-"))
    if not s:
        return None

    last_dot = s.rfind(".")
    last_comma = s.rfind(",")
    if last_dot >= 0 and last_comma >= 0:
        if last_comma > last_dot:
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif last_comma >= 0:
        if s.count(",") > 1:
            s = s.replace(",", "")
        else:
            s = s.replace(",", ".")
    elif last_dot >= 0:
        parts = s.split(".")
        if len(parts) > 2 or (len(parts[1]) == 3 and parts[0].lstrip("-").isdigit()):
            s = s.replace(".", "")

    try:
        amount = float(s)
    except ValueError:
        return None
    return amount if math.isfinite(amount) else None


def parse_stock_quantity(value: Any) -> int | None:
    if value is None:
        return None
    s = str(value).strip().lower()
    if not s or s in _UNAVAILABLE:
        return None

    m = _DIGITS.search(s)
    if m:
        return int(m.group(1))
    if "menos de" in s:
        return LESS_THAN_FALLBACK
    return None
