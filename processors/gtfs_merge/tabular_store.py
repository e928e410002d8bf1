# processors/gtfs_merge/tabular_store.py
# -*- coding: utf-8 -*-
"""
In-memory tabular store backing every table of a merge session.

Each table is an ordered list of rows, each row an ordered list of string
fields, with the header stored as row zero. Column positions are always
derived from the header as currently accumulated; there is no fixed schema.
"""

from typing import Dict, Iterator, List

from .errors import TableNotFoundError

Row = List[str]


class TabularStore:
    """
    Mapping from table name to its ordered rows.

    Insertion order is the merge output order and is never changed; shapes
    and stop_times correctness depend on it.
    """

    def __init__(self) -> None:
        self._tables: Dict[str, List[Row]] = {}

    @staticmethod
    def _key(name: str) -> str:
        return name.lower()

    def ensure_table(self, name: str) -> List[Row]:
        """Return the rows of `name`, creating an empty table if absent."""
        return self._tables.setdefault(self._key(name), [])

    def append_row(self, name: str, row: Row) -> None:
        self.ensure_table(name).append(row)

    def has_table(self, name: str) -> bool:
        return self._key(name) in self._tables

    def header(self, name: str) -> Row:
        """
        Return row zero of a table.

        Raises:
            TableNotFoundError: If the table does not exist or has no rows.
        """
        rows = self._tables.get(self._key(name))
        if not rows:
            raise TableNotFoundError(f"Table '{name}' has no header yet.")
        return rows[0]

    def column_index(self, name: str, column_name: str) -> int:
        """
        Return the position of `column_name` in the table's header, or -1.

        Callers treat -1 as "skip this column's logic and pass the field
        through untouched".
        """
        try:
            header = self.header(name)
        except TableNotFoundError:
            return -1
        try:
            return header.index(column_name)
        except ValueError:
            return -1

    def column_map(self, name: str) -> Dict[str, int]:
        """
        Return the header's column-name to position mapping.

        Computed once per file-processing pass by the resolvers. The first
        occurrence wins when a header repeats a column name.
        """
        try:
            header = self.header(name)
        except TableNotFoundError:
            return {}
        mapping: Dict[str, int] = {}
        for position, column in enumerate(header):
            mapping.setdefault(column, position)
        return mapping

    def rows(self, name: str) -> List[Row]:
        """Return the live row list (header included) of an existing table."""
        key = self._key(name)
        if key not in self._tables:
            raise TableNotFoundError(f"Table '{name}' does not exist.")
        return self._tables[key]

    def table_names(self) -> List[str]:
        return list(self._tables.keys())

    def __iter__(self) -> Iterator[str]:
        return iter(self._tables)

    def __len__(self) -> int:
        return len(self._tables)
