"""Page-range strings: parsing, validation against a page count, serialization.

Grammar::

    spec  := token (',' token)*
    token := INT | INT '-' INT

Page-range input is free text typed by customers, so parsing never raises:
tokens that do not match the grammar are dropped. ``serialize`` is the inverse
of ``parse`` for any set of positive page numbers.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from printshop.services.exceptions import OutOfRangePages

logger = structlog.get_logger(__name__)

# Page numbers longer than MAX_PAGE_DIGITS are malformed input
MAX_PAGE_DIGITS = 9
_PAGE = rf"[0-9]{{1,{MAX_PAGE_DIGITS}}}"
_SINGLE_RE = re.compile(_PAGE, re.ASCII)
_RANGE_RE = re.compile(rf"({_PAGE})\s*-\s*({_PAGE})", re.ASCII)

# Larger spans are treated as malformed input rather than expanded
MAX_RANGE_SPAN = 1_000_000


@dataclass(frozen=True)
class PageSplit:
    """Pages split by whether they exist in the document."""

    valid: frozenset[int]
    invalid: frozenset[int]


def parse(spec: str | None) -> set[int]:
    """Parse a page-range string into a set of 1-based page numbers.

    Whitespace around tokens is ignored. Malformed tokens (non-numeric,
    reversed ranges, page 0) are skipped.

    Examples:
        >>> sorted(parse("1,3, 5-6"))
        [1, 3, 5, 6]
        >>> sorted(parse("7-5, x, 2"))
        [2]
    """
    pages: set[int] = set()
    if not spec:
        return pages

    for raw_token in spec.split(","):
        token = raw_token.strip()
        if not token:
            continue

        if _SINGLE_RE.fullmatch(token):
            page = int(token)
            if page >= 1:
                pages.add(page)
                continue
        elif match := _RANGE_RE.fullmatch(token):
            start, end = int(match.group(1)), int(match.group(2))
            if 1 <= start <= end and end - start < MAX_RANGE_SPAN:
                pages.update(range(start, end + 1))
                continue

        logger.debug("Dropping malformed page token", token=token)

    return pages


def validate_against_page_count(pages: Iterable[int], page_count: int) -> PageSplit:
    """Split pages into those within ``[1, page_count]`` and those beyond it."""
    page_set = frozenset(pages)
    valid = frozenset(page for page in page_set if page <= page_count)
    return PageSplit(valid=valid, invalid=page_set - valid)


def serialize(pages: Iterable[int]) -> str:
    """Serialize pages into the shortest canonical page-range string.

    Pages are sorted and consecutive runs collapse into ``a-b``.

    Examples:
        >>> serialize({6, 1, 3, 5})
        '1,3,5-6'
    """
    tokens: list[str] = []
    run_start: int | None = None
    previous: int | None = None

    for page in sorted(set(pages)):
        if previous is not None and page == previous + 1:
            previous = page
            continue
        if run_start is not None and previous is not None:
            tokens.append(_format_run(run_start, previous))
        run_start = previous = page

    if run_start is not None and previous is not None:
        tokens.append(_format_run(run_start, previous))

    return ",".join(tokens)


def _format_run(start: int, end: int) -> str:
    return str(start) if start == end else f"{start}-{end}"


def check_page_spec(spec: str | None, page_count: int) -> OutOfRangePages | None:
    """Return an auto-correctable warning when a spec references missing pages.

    Nothing can be checked while the page count is unknown (0).
    """
    if page_count <= 0:
        return None

    split = validate_against_page_count(parse(spec), page_count)
    if not split.invalid:
        return None

    return OutOfRangePages(
        pages=tuple(sorted(split.invalid)),
        page_count=page_count,
        corrected_spec=serialize(split.valid),
    )


def correct_page_spec(spec: str | None, page_count: int) -> str:
    """Re-derive a page spec that only references existing pages.

    The result is always canonical, so correcting an already corrected spec
    returns it unchanged.
    """
    pages = parse(spec)
    if page_count > 0:
        pages = set(validate_against_page_count(pages, page_count).valid)
    return serialize(pages)
