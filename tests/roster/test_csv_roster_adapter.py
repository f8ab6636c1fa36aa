"""
Unit tests for CsvRosterAdapter.
"""

import pytest

from roster.adapters.csv_roster_adapter import CsvRosterAdapter
from roster.exceptions import SourceUnavailable


def write(path, text):
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def roster_dir(tmp_path):
    write(tmp_path / "members.csv", "Member_ID,First_Name,Last_Name,Org_ID,Status\n007,Jane,Doe,100,ACTIVE\n")
    write(tmp_path / "organizations.csv", "org_id,scope,name,parent_id,path\n100,UNIT,Squadron,,/S100\n")
    return tmp_path


class TestCsvRosterAdapter:
    def test_reads_tables_as_strings_with_lowercase_columns(self, roster_dir):
        tables = CsvRosterAdapter(str(roster_dir)).load_tables()

        members = tables["members"]
        assert list(members.columns) == ["member_id", "first_name", "last_name", "org_id", "status"]
        assert members.iloc[0]["member_id"] == "007"
        assert tables["organizations"].iloc[0]["parent_id"] == ""

    def test_optional_tables_default_to_empty(self, roster_dir):
        tables = CsvRosterAdapter(str(roster_dir)).load_tables()

        assert tables["contacts"].empty
        assert tables["duty_positions"].empty
        assert tables["achievements"].empty

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(SourceUnavailable):
            CsvRosterAdapter(str(tmp_path / "missing")).load_tables()

    def test_missing_required_table_raises(self, roster_dir):
        (roster_dir / "organizations.csv").unlink()

        with pytest.raises(SourceUnavailable, match="organizations.csv"):
            CsvRosterAdapter(str(roster_dir)).load_tables()

    def test_empty_file_raises(self, roster_dir):
        write(roster_dir / "members.csv", "")

        with pytest.raises(SourceUnavailable):
            CsvRosterAdapter(str(roster_dir)).load_tables()

    def test_custom_filenames(self, roster_dir):
        (roster_dir / "members.csv").rename(roster_dir / "export_members.csv")

        adapter = CsvRosterAdapter(str(roster_dir), filenames={"members": "export_members.csv"})

        assert len(adapter.load_tables()["members"]) == 1
        assert str(roster_dir) in adapter.describe()
