import logging

from processors.gtfs_merge import identity

STOP_HEADER = ["stop_id", "stop_name", "stop_lat", "stop_lon"]
CAL_HEADER = ["service_id", "monday", "start_date", "end_date"]
CD_HEADER = ["service_id", "date", "exception_type"]
SHAPE_HEADER = ["shape_id", "shape_pt_sequence"]


def run(session, handler, table_name, header, rows, feed_index):
    """Run a handler the way the feed loader does."""
    if session.current_feed != feed_index:
        session.begin_feed(feed_index)
    first = session.is_first_contributor(table_name)
    return handler(session, table_name, list(header), [list(r) for r in rows], feed_index, first)


def body(session, table_name):
    return session.store.rows(table_name)[1:]


class TestGenericAndSingletons:
    """Tests for the fallback and singleton handlers."""

    def test_generic_skips_later_headers(self, session):
        run(session, identity.append_generic, "levels.txt", ["level_id"], [["L1"]], 1)
        run(session, identity.append_generic, "levels.txt", ["level_id"], [["L2"]], 2)
        assert session.store.rows("levels.txt") == [["level_id"], ["L1"], ["L2"]]

    def test_generic_empty_file_contributes_nothing(self, session):
        run(session, identity.append_generic, "levels.txt", [], [], 1)
        assert session.is_first_contributor("levels.txt")
        run(session, identity.append_generic, "levels.txt", ["level_id"], [["L2"]], 2)
        assert session.store.rows("levels.txt") == [["level_id"], ["L2"]]

    def test_singleton_keeps_first_feed_first_row(self, session):
        header = ["agency_id", "agency_name"]
        stats = run(session, identity.keep_first_feed, "agency.txt", header, [["A1", "One"], ["A2", "Two"]], 1)
        run(session, identity.keep_first_feed, "agency.txt", header, [["B1", "Other"]], 2)
        assert session.store.rows("agency.txt") == [header, ["A1", "One"]]
        assert stats.dropped == 1


class TestResolveStops:
    """Tests for stop identity resolution."""

    def test_identical_stop_is_deduplicated(self, session):
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["S1", "A", "1.0", "2.0"]], 1)
        stats = run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["S1", "A", "1.0", "2.0"]], 2)
        assert [r[0] for r in body(session, "stops.txt")] == ["S1"]
        assert stats.dropped == 1
        assert session.renames.stops == {}

    def test_moved_stop_is_renamed(self, session):
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["S1", "A", "1.0", "2.0"]], 1)
        stats = run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["S1", "A", "1.0", "2.5"]], 2)
        assert [r[0] for r in body(session, "stops.txt")] == ["S1", "S1_Merged_2"]
        assert session.renames.stops == {"S1": "S1_Merged_2"}
        assert stats.renamed == 1

    def test_coordinates_compare_as_strings(self, session):
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["S1", "A", "1.0", "2.0"]], 1)
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["S1", "A", "1.00", "2.0"]], 2)
        assert session.renames.stops == {"S1": "S1_Merged_2"}

    def test_same_feed_repeat_passes_through(self, session):
        rows = [["S1", "A", "1.0", "2.0"], ["S1", "B", "9.0", "9.0"]]
        stats = run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, rows, 1)
        assert len(body(session, "stops.txt")) == 2
        assert stats.renamed == 0

    def test_empty_id_passes_through(self, session):
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["", "A", "1.0", "2.0"]], 1)
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["", "A", "5.0", "2.0"]], 2)
        assert [r[0] for r in body(session, "stops.txt")] == ["", ""]

    def test_missing_id_column_passes_through(self, session):
        run(session, identity.resolve_stops, "stops.txt", ["stop_name"], [["A"]], 1)
        run(session, identity.resolve_stops, "stops.txt", ["stop_name"], [["A"]], 2)
        assert body(session, "stops.txt") == [["A"], ["A"]]

    def test_later_feed_columns_aligned_by_name(self, session):
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["S1", "A", "1.0", "2.0"]], 1)
        reordered = ["stop_lon", "stop_lat", "stop_id", "stop_name"]
        run(session, identity.resolve_stops, "stops.txt", reordered, [["2.0", "1.0", "S1", "A"]], 2)
        assert len(body(session, "stops.txt")) == 1

    def test_rename_skips_id_already_taken(self, session, caplog):
        feed1 = [["S1", "A", "1.0", "2.0"], ["S1_Merged_2", "B", "5.0", "5.0"]]
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, feed1, 1)
        with caplog.at_level(logging.WARNING):
            run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["S1", "A", "1.0", "3.0"]], 2)
        stop_ids = [r[0] for r in body(session, "stops.txt")]
        assert stop_ids == ["S1", "S1_Merged_2", "S1_Merged_2_1"]
        assert session.renames.stops == {"S1": "S1_Merged_2_1"}
        assert "already in use" in caplog.text

    def test_rename_skips_id_later_in_same_feed(self, session):
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, [["S1", "A", "1.0", "2.0"]], 1)
        feed2 = [["S1", "A", "1.0", "3.0"], ["S1_Merged_2", "B", "5.0", "5.0"]]
        run(session, identity.resolve_stops, "stops.txt", STOP_HEADER, feed2, 2)
        stop_ids = [r[0] for r in body(session, "stops.txt")]
        assert stop_ids == ["S1", "S1_Merged_2_1", "S1_Merged_2"]


class TestResolveCalendar:
    """Tests for calendar.txt service resolution."""

    def test_identical_service_deduplicated_and_confirmed(self, session):
        row = ["WK", "1", "20240101", "20241231"]
        run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, [row], 1)
        run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, [row], 2)
        assert len(body(session, "calendar.txt")) == 1
        assert session.confirmed_services == {"WK"}

    def test_different_service_renamed(self, session):
        run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, [["WK", "1", "20240101", "20241231"]], 1)
        run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, [["WK", "0", "20240101", "20241231"]], 2)
        assert [r[0] for r in body(session, "calendar.txt")] == ["WK", "WK_Merged_2"]
        assert session.renames.services == {"WK": "WK_Merged_2"}

    def test_rename_is_not_carried_to_next_feed(self, session):
        run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, [["WK", "1", "20240101", "20241231"]], 1)
        run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, [["WK", "0", "20240101", "20241231"]], 2)
        run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, [["WK", "1", "20240101", "20241231"]], 3)
        assert [r[0] for r in body(session, "calendar.txt")] == ["WK", "WK_Merged_2"]
        assert session.renames.services == {}

    def test_rename_skips_id_already_taken(self, session):
        feed1 = [["WK", "1", "20240101", "20241231"], ["WK_Merged_2", "0", "20240101", "20241231"]]
        run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, feed1, 1)
        run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, [["WK", "0", "20240601", "20241231"]], 2)
        assert [r[0] for r in body(session, "calendar.txt")] == ["WK", "WK_Merged_2", "WK_Merged_2_1"]


def load_services(session, cal_rows, date_rows, feed_index):
    """Run calendar.txt then calendar_dates.txt for one feed, as the loader does."""
    session.begin_feed(feed_index)
    session.feed_service_dates = identity.service_date_fingerprints(CD_HEADER, date_rows)
    run(session, identity.resolve_calendar, "calendar.txt", CAL_HEADER, cal_rows, feed_index)
    return run(session, identity.resolve_calendar_dates, "calendar_dates.txt", CD_HEADER, date_rows, feed_index)


class TestResolveCalendarDates:
    """Tests for calendar_dates.txt service resolution."""

    def test_follows_calendar_rename_in_same_feed(self, session):
        load_services(session, [["WK", "1", "20240101", "20241231"]], [["WK", "20240101", "2"]], 1)
        load_services(session, [["WK", "0", "20240101", "20241231"]], [["WK", "20240101", "2"]], 2)
        assert [r[0] for r in body(session, "calendar_dates.txt")] == ["WK", "WK_Merged_2"]

    def test_identical_calendar_and_exceptions_deduplicated(self, session):
        cal = [["WK", "1", "20240101", "20241231"]]
        dates = [["WK", "20240101", "2"], ["WK", "20241225", "2"]]
        load_services(session, cal, dates, 1)
        stats = load_services(session, cal, list(reversed(dates)), 2)
        assert body(session, "calendar.txt") == cal
        assert body(session, "calendar_dates.txt") == dates
        assert stats.dropped == 2
        assert session.renames.services == {}

    def test_same_calendar_with_extra_exception_is_renamed(self, session):
        cal = [["WK", "1", "20240101", "20241231"]]
        load_services(session, cal, [["WK", "20240101", "2"]], 1)
        load_services(session, cal, [["WK", "20240101", "2"], ["WK", "20241225", "2"]], 2)
        assert [r[0] for r in body(session, "calendar.txt")] == ["WK", "WK_Merged_2"]
        assert body(session, "calendar_dates.txt") == [
            ["WK", "20240101", "2"],
            ["WK_Merged_2", "20240101", "2"],
            ["WK_Merged_2", "20241225", "2"],
        ]
        assert session.confirmed_services == set()
        assert session.renames.services == {"WK": "WK_Merged_2"}

    def test_same_calendar_exceptions_only_in_later_feed_is_renamed(self, session):
        cal = [["WK", "1", "20240101", "20241231"]]
        load_services(session, cal, [], 1)
        load_services(session, cal, [["WK", "20241225", "2"]], 2)
        assert [r[0] for r in body(session, "calendar.txt")] == ["WK", "WK_Merged_2"]
        assert body(session, "calendar_dates.txt") == [["WK_Merged_2", "20241225", "2"]]

    def test_exception_fingerprint_ignores_column_order(self):
        reordered = ["date", "exception_type", "service_id"]
        assert identity.service_date_fingerprints(CD_HEADER, [["WK", "20241225", "2"]]) == (
            identity.service_date_fingerprints(reordered, [["20241225", "2", "WK"]])
        )

    def test_dates_only_service_identical_is_dropped(self, session):
        rows = [["HOL", "20241225", "1"], ["HOL", "20241226", "1"]]
        run(session, identity.resolve_calendar_dates, "calendar_dates.txt", CD_HEADER, rows, 1)
        stats = run(session, identity.resolve_calendar_dates, "calendar_dates.txt", CD_HEADER, list(reversed(rows)), 2)
        assert len(body(session, "calendar_dates.txt")) == 2
        assert stats.dropped == 2

    def test_dates_only_service_different_is_renamed(self, session):
        run(session, identity.resolve_calendar_dates, "calendar_dates.txt", CD_HEADER, [["HOL", "20241225", "1"]], 1)
        run(session, identity.resolve_calendar_dates, "calendar_dates.txt", CD_HEADER, [["HOL", "20250101", "1"]], 2)
        assert [r[0] for r in body(session, "calendar_dates.txt")] == ["HOL", "HOL_Merged_2"]
        assert session.renames.services == {"HOL": "HOL_Merged_2"}

    def test_dates_only_service_with_calendar_in_earlier_feed_is_renamed(self, session):
        load_services(session, [["HOL", "0", "20240101", "20241231"]], [["HOL", "20241225", "1"]], 1)
        load_services(session, [], [["HOL", "20241225", "1"]], 2)
        assert [r[0] for r in body(session, "calendar_dates.txt")] == ["HOL", "HOL_Merged_2"]

    def test_row_order_preserved(self, session):

        rows = [["A", "20240102", "1"], ["B", "20240101", "1"], ["A", "20240101", "1"]]
        run(session, identity.resolve_calendar_dates, "calendar_dates.txt", CD_HEADER, rows, 1)
        assert body(session, "calendar_dates.txt") == rows


class TestResolveShapes:
    """Tests for shape identity resolution."""

    def test_points_keep_source_order(self, session):
        rows = [["SH1", "1"], ["SH1", "3"], ["SH1", "2"]]
        run(session, identity.resolve_shapes, "shapes.txt", SHAPE_HEADER, rows, 1)
        assert body(session, "shapes.txt") == rows

    def test_shape_from_earlier_feed_is_renamed(self, session):
        run(session, identity.resolve_shapes, "shapes.txt", SHAPE_HEADER, [["SH1", "1"]], 1)
        stats = run(session, identity.resolve_shapes, "shapes.txt", SHAPE_HEADER, [["SH1", "1"], ["SH1", "2"]], 2)
        assert body(session, "shapes.txt") == [["SH1", "1"], ["SH1_Merged_2", "1"], ["SH1_Merged_2", "2"]]
        assert stats.renamed == 1
        assert stats.rewritten == 1

    def test_rename_skips_id_already_taken(self, session):
        run(session, identity.resolve_shapes, "shapes.txt", SHAPE_HEADER, [["SH1", "1"], ["SH1_Merged_2", "1"]], 1)
        run(session, identity.resolve_shapes, "shapes.txt", SHAPE_HEADER, [["SH1", "1"]], 2)
        assert [r[0] for r in body(session, "shapes.txt")] == ["SH1", "SH1_Merged_2", "SH1_Merged_2_1"]
        assert session.renames.shapes == {"SH1": "SH1_Merged_2_1"}


class TestResolveRoutes:
    """Tests for route de-duplication."""

    def test_repeat_route_dropped(self, session):
        header = ["route_id", "route_short_name"]
        run(session, identity.resolve_routes, "routes.txt", header, [["R1", "one"]], 1)
        stats = run(session, identity.resolve_routes, "routes.txt", header, [["R1", "uno"], ["R2", "two"]], 2)
        assert body(session, "routes.txt") == [["R1", "one"], ["R2", "two"]]
        assert stats.dropped == 1
