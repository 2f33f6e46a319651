"""
Tests for the tabular mirror and its indexed view.
"""

import ibis
import pytest

from subsync.connections.duckdb import DuckDBConnection
from subsync.core.dedup import IdentifierFormat
from subsync.core.types import CandidateUnit, MirrorRecord
from subsync.exceptions import ConfigurationError
from subsync.mirror import HEADER, IndexedTarget, MirrorTable, validate_mirror_id


@pytest.fixture
def mirror():
    table = MirrorTable.from_backend(ibis.duckdb.connect(), "subs")
    table.ensure()
    return table


def records(*identifiers):
    return [MirrorRecord.for_channel(i, f"name {i}") for i in identifiers]


class TestMirrorId:
    """Tests for mirror id validation."""

    @pytest.mark.parametrize("mirror_id", ["subs", "Subs_2024", "_x"])
    def test_valid(self, mirror_id):
        assert validate_mirror_id(mirror_id) == mirror_id

    @pytest.mark.parametrize("mirror_id", ["", None, "2subs", "my-subs", 'x"; DROP TABLE y; --'])
    def test_invalid(self, mirror_id):
        with pytest.raises(ConfigurationError):
            validate_mirror_id(mirror_id)


class TestMirrorTable:
    """Tests for MirrorTable."""

    def test_header(self):
        assert MirrorTable.header() == ("Channel ID", "Channel Name", "Channel URL")
        assert HEADER == MirrorTable.header()

    def test_exists(self):
        table = MirrorTable.from_backend(ibis.duckdb.connect(), "subs")
        assert not table.exists()
        table.ensure()
        table.ensure()
        assert table.exists()

    def test_empty_mirror_last_row_is_header(self, mirror):
        assert mirror.last_row_index() == 1
        assert mirror.row_count() == 0
        assert mirror.read_column() == []

    def test_append_preserves_order(self, mirror):
        assert mirror.append_rows(records("UC1", "UC2")) == 2
        assert mirror.append_rows(records("UC3")) == 1

        assert mirror.last_row_index() == 4
        assert mirror.read_column("identifier") == ["UC1", "UC2", "UC3"]
        assert mirror.read_column("display_name") == ["name UC1", "name UC2", "name UC3"]

    def test_append_nothing(self, mirror):
        assert mirror.append_rows([]) == 0
        assert mirror.row_count() == 0

    def test_read_column_from_row(self, mirror):
        mirror.append_rows(records("UC1", "UC2", "UC3"))
        assert mirror.read_column(start_row=3) == ["UC2", "UC3"]

    def test_read_unknown_column(self, mirror):
        with pytest.raises(ValueError):
            mirror.read_column("row_number; DROP TABLE x")

    def test_read_records(self, mirror):
        mirror.append_rows([MirrorRecord.for_channel("UCa", "It's a channel")])
        [record] = mirror.read_records()
        assert record.display_name == "It's a channel"
        assert record.url == "https://www.youtube.com/channel/UCa"

    @pytest.mark.parametrize("filename", ["mirrors.duckdb", "subs.duckdb", "mirror_subs.duckdb"])
    def test_any_database_file_name(self, tmp_path, filename):
        conn = DuckDBConnection("main", {"type": "duckdb", "path": str(tmp_path / filename)})
        try:
            table = MirrorTable(conn, "subs")
            assert not table.exists()
            table.ensure()
            table.append_rows(records("UC1"))
            assert table.exists()
            assert table.read_column() == ["UC1"]
        finally:
            conn.close()

    def test_separate_mirrors(self):
        backend = ibis.duckdb.connect()
        first = MirrorTable.from_backend(backend, "first")
        second = MirrorTable.from_backend(backend, "second")
        first.ensure()
        second.ensure()
        first.append_rows(records("UC1"))
        assert second.row_count() == 0


class TestIndexedTarget:
    """Tests for IndexedTarget."""

    def test_candidates_from_start(self, mirror):
        mirror.append_rows(records("UC1", "UC2", "UC3"))
        target = IndexedTarget(mirror)

        candidates = target.candidates_from(0)

        assert [(c.identifier, c.position) for c in candidates] == [("UC1", 0), ("UC2", 1), ("UC3", 2)]
        assert target.count() == 3

    def test_candidates_from_index(self, mirror):
        mirror.append_rows(records("UC1", "UC2", "UC3"))

        candidates = IndexedTarget(mirror).candidates_from(2)

        assert [(c.identifier, c.position) for c in candidates] == [("UC3", 2)]

    def test_candidates_past_end(self, mirror):
        mirror.append_rows(records("UC1"))
        assert IndexedTarget(mirror).candidates_from(5) == []

    def test_negative_index(self, mirror):
        with pytest.raises(ValueError):
            IndexedTarget(mirror).candidates_from(-1)

    def test_blank_rows_keep_positions(self, mirror):
        mirror.append_rows(records("UC1", "", "UC3"))

        candidates = IndexedTarget(mirror).candidates_from(0)

        assert [c.identifier for c in candidates] == ["UC1", "", "UC3"]
        assert candidates[2].position == 2

    def test_is_valid(self, mirror):
        target = IndexedTarget(mirror, IdentifierFormat(prefix="UC"))
        assert target.is_valid(CandidateUnit("UCx", 0))
        assert not target.is_valid(CandidateUnit("", 1))
        assert not target.is_valid(CandidateUnit("PLx", 2))
