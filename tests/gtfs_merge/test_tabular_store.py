import pytest

from processors.gtfs_merge.errors import TableNotFoundError
from processors.gtfs_merge.tabular_store import TabularStore


class TestTabularStore:
    """Tests for the in-memory table store."""

    def test_ensure_table_creates_once(self):
        store = TabularStore()
        rows = store.ensure_table("stops.txt")
        rows.append(["stop_id"])
        assert store.ensure_table("stops.txt") is rows
        assert store.has_table("stops.txt")
        assert len(store) == 1

    def test_names_are_case_insensitive(self):
        store = TabularStore()
        store.append_row("Stops.TXT", ["stop_id"])
        assert store.has_table("stops.txt")
        assert store.table_names() == ["stops.txt"]

    def test_append_preserves_insertion_order(self):
        store = TabularStore()
        for row in (["shape_id", "seq"], ["SH1", "3"], ["SH1", "1"], ["SH1", "2"]):
            store.append_row("shapes.txt", row)
        assert [r[1] for r in store.rows("shapes.txt")[1:]] == ["3", "1", "2"]

    def test_header_of_empty_table_raises(self):
        store = TabularStore()
        store.ensure_table("trips.txt")
        with pytest.raises(TableNotFoundError):
            store.header("trips.txt")
        with pytest.raises(TableNotFoundError):
            store.header("missing.txt")

    def test_column_index(self):
        store = TabularStore()
        store.append_row("stops.txt", ["stop_id", "stop_lat", "stop_lon"])
        assert store.column_index("stops.txt", "stop_lat") == 1
        assert store.column_index("stops.txt", "parent_station") == -1
        assert store.column_index("routes.txt", "route_id") == -1

    def test_column_map_first_occurrence_wins(self):
        store = TabularStore()
        store.append_row("odd.txt", ["a", "b", "a"])
        assert store.column_map("odd.txt") == {"a": 0, "b": 1}
        assert store.column_map("absent.txt") == {}

    def test_rows_of_unknown_table_raises(self):
        with pytest.raises(TableNotFoundError):
            TabularStore().rows("nope.txt")

    def test_iteration_yields_table_names(self):
        store = TabularStore()
        store.ensure_table("b.txt")
        store.ensure_table("a.txt")
        assert list(store) == ["b.txt", "a.txt"]
