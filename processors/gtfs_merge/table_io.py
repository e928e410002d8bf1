#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Reading and writing GTFS flat-file tables as header + rows of strings.

Tables are parsed with pandas using string dtypes throughout so identifiers
such as "007" or "NA" are preserved verbatim. The header is kept as row zero
exactly as written in the file (no column de-duplication), which is what the
merge engine's name-to-position lookups expect.
"""

import logging
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import pandas as pd

module_logger = logging.getLogger(__name__)

Row = List[str]

_READ_OPTIONS = dict(
    header=None,
    dtype=str,
    keep_default_na=False,
    na_values=[],
    encoding="utf-8-sig",
    skip_blank_lines=True,
)


def _fit_row(row: Sequence[str], width: int) -> Row:
    """Pad a short row with empty strings or truncate a long one."""
    fitted = list(row[:width])
    if len(fitted) < width:
        fitted.extend([""] * (width - len(fitted)))
    return fitted


def read_table(file_path: Union[str, Path]) -> Tuple[Row, List[Row]]:
    """
    Read a GTFS table file into its header and data rows.

    Rows with missing trailing fields are padded with "" and rows with extra
    trailing fields are truncated to the header width.

    Args:
        file_path: Path of the `.txt` table.

    Returns:
        A tuple (header, rows). Both are empty for an empty file.

    Raises:
        OSError / pandas.errors.ParserError: If the file cannot be read.
    """
    path = Path(file_path)
    try:
        frame = pd.read_csv(path, engine="c", **_READ_OPTIONS)
    except pd.errors.EmptyDataError:
        module_logger.info(f"Table file '{path.name}' is empty.")
        return [], []
    except pd.errors.ParserError:
        module_logger.warning(
            f"Table file '{path.name}' has rows wider than its header. "
            f"Extra trailing fields will be dropped."
        )
        width = _header_width(path)
        frame = pd.read_csv(
            path,
            engine="python",
            on_bad_lines=lambda fields: fields[:width],
            names=list(range(width)),
            **{k: v for k, v in _READ_OPTIONS.items() if k != "header"},
        )

    values = frame.fillna("").values.tolist()
    if not values:
        return [], []
    header = [str(field) for field in values[0]]
    width = len(header)
    rows = [_fit_row([str(field) for field in row], width) for row in values[1:]]
    module_logger.debug(f"Read {len(rows)} rows from '{path.name}'.")
    return header, rows


def _header_width(path: Path) -> int:
    header_frame = pd.read_csv(path, nrows=1, **_READ_OPTIONS)
    return len(header_frame.columns)


def write_table(file_path: Union[str, Path], rows: List[Row]) -> None:
    """
    Write a table (header as row zero) as comma-separated lines.

    Fields are only quoted when they contain a comma, quote or line break, so
    tables without such characters are written as plain comma-joined lines.
    """
    path = Path(file_path)
    if not rows:
        path.write_text("", encoding="utf-8")
        return

    header = list(rows[0])
    width = len(header)
    body = [_fit_row(row, width) for row in rows[1:]]
    frame = pd.DataFrame(body, columns=header) if body else pd.DataFrame(columns=header)
    frame.to_csv(path, index=False, lineterminator="\n", encoding="utf-8")
    module_logger.debug(f"Wrote {len(body)} rows to '{path}'.")


def align_rows(
    source_header: Row,
    target_header: Row,
    rows: List[Row],
    table_name: str,
) -> List[Row]:
    """
    Reorder rows written against `source_header` to match `target_header`.

    Target columns missing from the source are filled with "". Source columns
    absent from the target are dropped, with a warning.
    """
    if source_header == target_header:
        return rows

    source_positions = {}
    for position, column in enumerate(source_header):
        source_positions.setdefault(column, position)

    dropped = [column for column in source_header if column not in target_header]
    if dropped:
        module_logger.warning(
            f"{table_name}: columns {dropped} are not in the merged header and will be dropped."
        )

    picks = [source_positions.get(column, -1) for column in target_header]
    return [
        [row[p] if 0 <= p < len(row) else "" for p in picks]
        for row in rows
    ]
