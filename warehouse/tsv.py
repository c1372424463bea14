"""Decoder for ClickHouse's TabSeparatedWithNames output."""

from collections.abc import Iterable

SEPARATOR = "\t"


def decode(lines: Iterable[str], max_rows: int) -> tuple[list[str], list[list[str]]]:
    """
    Split a header-first, tab separated stream into columns and rows.

    Stops pulling from ``lines`` once ``max_rows`` rows are collected; the
    remainder of the stream is left unread for the caller to close. Cells are
    kept as text and escape sequences are not interpreted.
    """
    columns: list[str] = []
    rows: list[list[str]] = []

    it = iter(lines)
    header = next(it, None)
    if header is None:
        return columns, rows
    columns = header.split(SEPARATOR)

    if max_rows <= 0:
        return columns, rows

    for line in it:
        rows.append(line.split(SEPARATOR))
        if len(rows) >= max_rows:
            break

    return columns, rows
