"""Turns raw page query parameters into bounded page windows."""
import math
import re
from typing import Optional

from errors import InvalidPage
from models import PageWindow

PAGE_SIZE = 10

_NON_DIGIT = re.compile(r"[^0-9]")


def parse_page(raw: Optional[str]) -> int:
    # "", "0" and "000" all mean the first page
    if raw is None or raw.count("0") == len(raw):
        return 1
    if _NON_DIGIT.search(raw):
        raise InvalidPage()
    return int(raw)


def max_page(total: int, page_size: int = PAGE_SIZE) -> int:
    return max(math.ceil(total / page_size), 1)


def offset_for(page: int, page_size: int = PAGE_SIZE) -> int:
    return 0 if page == 1 else (page - 1) * page_size


def is_invalid_page(raw: Optional[str], last_page: int) -> bool:
    if raw is None:
        return False
    if _NON_DIGIT.search(raw):
        return True
    return parse_page(raw) > last_page


def resolve_page(raw: Optional[str], total: int, page_size: int = PAGE_SIZE) -> PageWindow:
    last_page = max_page(total, page_size)
    if is_invalid_page(raw, last_page):
        raise InvalidPage()
    page = parse_page(raw)
    return PageWindow(
        page=page, max_page=last_page, offset=offset_for(page, page_size), limit=page_size
    )
