# app/utils/helpers.py
import random
import re
import unicodedata
from datetime import datetime

# month -> letter used as the first character of an order code
MONTH_LETTERS = "ABCDEFGHIJKL"
SUFFIX_DIGITS = 6


def create_slug(title: str) -> str:
    text = title.replace("đ", "d").replace("Đ", "D")
    text = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return text.strip("-")


def generate_order_code(now: datetime) -> str:
    """e.g. 'J2415' + 6 random digits for 15 Oct 2024."""
    month = MONTH_LETTERS[now.month - 1]
    year = f"{now.year % 100:02d}"
    day = f"{now.day:02d}"
    suffix = f"{random.randint(0, 10 ** SUFFIX_DIGITS - 1):0{SUFFIX_DIGITS}d}"
    return f"{month}{year}{day}{suffix}"
