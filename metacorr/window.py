"""Pair up overlapping reads with a sliding window."""
from __future__ import annotations

from collections import deque
from itertools import islice
from typing import Deque, Iterable, Iterator, Tuple

from metacorr.errors import UnsortedReadsError
from metacorr.reads import MappedRead

ReadPair = Tuple[MappedRead, MappedRead]


def _pairs_from_head(window: Deque[MappedRead]) -> Iterator[ReadPair]:
    """Pair the window head with every later read that starts inside its span."""
    head = window[0]
    span_end = head.position + len(head)
    for other in islice(window, 1, None):
        if other.position > span_end:
            break
        yield head, other


def slide_reads(reads: Iterable[MappedRead]) -> Iterator[ReadPair]:
    """Yield every overlapping pair (a, b), a.position <= b.position, once.

    Reads must arrive sorted by position. A read leaves the window once an
    incoming read starts past its end, and is paired with the reads behind it
    at that moment.
    """
    window: Deque[MappedRead] = deque()
    last_position = None
    for current in reads:
        if last_position is not None and current.position < last_position:
            raise UnsortedReadsError(
                f"Read at {current.position} follows read at {last_position}; "
                "input must be coordinate sorted"
            )
        last_position = current.position

        while window and window[0].position + len(window[0]) < current.position:
            yield from _pairs_from_head(window)
            window.popleft()
        window.append(current)

    while window:
        yield from _pairs_from_head(window)
        window.popleft()
