"""Tests for line classification, field extraction, forward-fill and aggregation."""

import logging
from datetime import date, datetime

import pandas as pd
import pytest

from conftest import meta_line, record_line, shuttlefile_lines
from trail_counter.exceptions import InvalidPath, NoInputFound
from trail_counter.models import LineKind, MetaFields
from trail_counter.parser import (
    COUNT_COLUMNS,
    HEADER_COLUMNS,
    classify_line,
    extract_meta_fields,
    extract_record_fields,
    find_shuttlefiles,
    forward_fill,
    parse_lines,
    parse_shuttlefile,
    read_raw_lines,
    read_shuttlefiles,
)


class TestClassifyLine:
    def test_digit_first_is_record(self):
        assert classify_line("24-06-15,14:00,00042,00000") is LineKind.RECORD

    def test_blank_line_is_other(self):
        assert classify_line("") is LineKind.OTHER

    def test_leading_space_is_not_record(self):
        assert classify_line(" 24-06-15,14:00,00042,00000") is LineKind.OTHER

    @pytest.mark.parametrize("content,kind", [
        ("  *Serial Number : 123456", LineKind.SERIAL),
        ("  *Counter        TRAIL01", LineKind.COUNTER),
        ("  *Mode           IR+", LineKind.MODE),
        ("  *Batt           3.55", LineKind.VOLT),
        ("=TIME                  24-06-15,14:30", LineKind.DOWNLOAD_TIME),
        ("=START                 24-06-01,00:00", LineKind.START_TIME),
        ("=DOCK                       24-06-15 14:31:05", LineKind.DOCK_TIME),
        ("=END", LineKind.OTHER),
        ("*Counter without indent", LineKind.OTHER),
    ])
    def test_meta_prefixes(self, content, kind):
        assert classify_line(content) is kind


class TestExtractRecordFields:
    def test_fixed_offsets(self):
        fields = extract_record_fields("24-06-15,14:00,00042,00000")
        assert fields.date_raw == "24-06-15"
        assert fields.time_raw == "14:00"
        assert fields.datetime_raw == "24-06-15,14:00"
        assert fields.count1_raw == "00042"
        assert fields.count2_raw == "00000"

    def test_short_line_yields_missing_counts(self):
        fields = extract_record_fields("24-06-15,14:00")
        assert fields.datetime_raw == "24-06-15,14:00"
        assert fields.count1_raw is None
        assert fields.count2_raw is None

    def test_single_channel_line(self):
        fields = extract_record_fields("24-06-15,14:00,00042")
        assert fields.count1_raw == "00042"
        assert fields.count2_raw is None


class TestExtractMetaFields:
    def test_serial_is_last_six_chars(self):
        meta = extract_meta_fields("  *Serial Number : 00123456", LineKind.SERIAL)
        assert meta.serial == "123456"
        assert meta.counter is None

    def test_counter_from_char_20(self):
        meta = extract_meta_fields(meta_line("  *Counter", "North Loop", 19), LineKind.COUNTER)
        assert meta.counter == "North Loop"

    def test_download_and_dock_offsets(self):
        download = extract_meta_fields(meta_line("=TIME", "24-06-15,14:30", 23), LineKind.DOWNLOAD_TIME)
        dock = extract_meta_fields(meta_line("=DOCK", "24-06-15 14:31:05", 28), LineKind.DOCK_TIME)
        assert download.download_time == "24-06-15,14:30"
        assert dock.dock_time == "24-06-15 14:31:05"

    def test_empty_value_is_missing(self):
        meta = extract_meta_fields("  *Counter", LineKind.COUNTER)
        assert meta.counter is None

    def test_other_and_record_lines_carry_nothing(self):
        assert extract_meta_fields("=END", LineKind.OTHER) == MetaFields()
        assert extract_meta_fields("24-06-15,14:00,00042,00000", LineKind.RECORD) == MetaFields()


class TestForwardFill:
    def test_fills_down(self):
        filled = forward_fill([
            MetaFields(),
            MetaFields(counter="A"),
            MetaFields(serial="111111"),
            MetaFields(),
            MetaFields(counter="B"),
            MetaFields(),
        ])
        assert filled[0] == MetaFields()
        assert filled[1] == MetaFields(counter="A")
        assert filled[3] == MetaFields(counter="A", serial="111111")
        assert filled[5] == MetaFields(counter="B", serial="111111")

    def test_idempotent(self):
        metas = [MetaFields(mode="IR+"), MetaFields(), MetaFields(volt="3.5"), MetaFields()]
        once = forward_fill(metas)
        assert forward_fill(once) == once

    def test_same_length(self):
        assert len(forward_fill([MetaFields()] * 7)) == 7


class TestParseLines:
    def test_positions_and_blank_lines(self):
        lines = parse_lines(["header", "", "24-06-15,14:00,00042,00000"], origin_file="f.txt")
        assert [line.position for line in lines] == [1, 2, 3]
        assert lines[1].content == ""
        assert lines[1].kind is LineKind.OTHER
        assert lines[2].origin_file == "f.txt"

    def test_records_inherit_metadata(self, hourly_records):
        lines = parse_lines(shuttlefile_lines(hourly_records, counter="TRAIL09", serial="654321"))
        records = [line for line in lines if line.kind.is_record]
        assert len(records) == 4
        for line in records:
            assert line.meta.counter == "TRAIL09"
            assert line.meta.serial == "654321"
            assert line.meta.dock_time == "24-06-15 14:31:05"
            assert line.record.count1_raw is not None

    def test_no_fill(self, hourly_records):
        lines = parse_lines(shuttlefile_lines(hourly_records), fill=False)
        records = [line for line in lines if line.kind.is_record]
        assert all(line.meta.counter is None for line in records)

    def test_state_does_not_leak_between_calls(self):
        parse_lines([meta_line("  *Counter", "A", 19)])
        lines = parse_lines(["24-06-15,14:00,00042,00000"])
        assert lines[0].meta.counter is None


class TestReadRawLines:
    def test_keeps_crlf(self, tmp_path):
        path = tmp_path / "crlf.txt"
        path.write_bytes(b"one\r\n\r\nthree\r\n")
        assert read_raw_lines(path) == [("one", "\r\n"), ("", "\r\n"), ("three", "\r\n")]

    def test_no_trailing_newline(self, tmp_path):
        path = tmp_path / "lf.txt"
        path.write_bytes(b"one\ntwo")
        assert read_raw_lines(path) == [("one", "\n"), ("two", "")]


class TestParseShuttlefile:
    def test_counts_table(self, shuttlefile):
        data = parse_shuttlefile(shuttlefile)
        counts = data.counts

        assert list(counts.columns) == COUNT_COLUMNS
        assert len(counts) == 4
        row = counts.iloc[1]
        assert row["counter"] == "TRAIL01"
        assert row["serial"] == "123456"
        assert row["timestamp"] == pd.Timestamp("2024-06-15 10:00")
        assert row["date"] == date(2024, 6, 15)
        assert row["time_of_day"] == "10:00"
        assert row["count1"] == 42
        assert row["count2"] == 3

    def test_counts_are_nullable_integers(self, tmp_path, write_shuttlefile, hourly_records):
        lines = shuttlefile_lines(hourly_records)
        lines[-2] = "24-06-15,12:00,0x007,00001"
        path = write_shuttlefile(tmp_path / "bad.txt", lines)

        counts = parse_shuttlefile(path).counts
        assert str(counts["count1"].dtype) == "Int64"
        assert pd.isna(counts["count1"].iloc[3])
        assert counts["count2"].iloc[3] == 1
        # a zero reading stays a zero
        assert counts["count1"].iloc[2] == 0

    def test_malformed_timestamp_is_missing(self, tmp_path, write_shuttlefile):
        path = write_shuttlefile(tmp_path / "bad.txt", ["24-13-45,99:00,00001,00000"])
        counts = parse_shuttlefile(path).counts
        assert len(counts) == 1
        assert pd.isna(counts["timestamp"].iloc[0])
        assert pd.isna(counts["date"].iloc[0])

    def test_header_table(self, shuttlefile):
        header = parse_shuttlefile(shuttlefile).header

        assert list(header.columns) == HEADER_COLUMNS
        assert len(header) == 1
        row = header.iloc[0]
        assert row["counter"] == "TRAIL01"
        assert row["mode"] == "IR+"
        assert row["volt"] == "3.55"
        assert row["download_time"] == pd.Timestamp("2024-06-15 14:30")
        assert row["start_time"] == pd.Timestamp("2024-06-01 00:00")
        assert row["dock_time"] == pd.Timestamp("2024-06-15 14:31:05")

    def test_header_times_ignore_trailing_text(self, tmp_path, write_shuttlefile, hourly_records):
        lines = shuttlefile_lines(
            hourly_records,
            download="24-06-15,14:30:12",
            start="24-06-01,00:00 (reset)",
            dock="24-06-15 14:31:05 dock 2",
        )
        path = write_shuttlefile(tmp_path / "trailing.txt", lines)

        row = parse_shuttlefile(path).header.iloc[0]
        assert row["download_time"] == pd.Timestamp("2024-06-15 14:30")
        assert row["start_time"] == pd.Timestamp("2024-06-01 00:00")
        assert row["dock_time"] == pd.Timestamp("2024-06-15 14:31:05")

    @pytest.mark.parametrize("count_text", ["+0042", "4_200", "-0001", " 4 2 "])
    def test_count_must_be_plain_digits(self, tmp_path, write_shuttlefile, count_text):
        path = write_shuttlefile(tmp_path / "signed.txt", [f"24-06-15,14:00,{count_text:<5},00007"])
        counts = parse_shuttlefile(path).counts
        assert pd.isna(counts["count1"].iloc[0])
        assert counts["count2"].iloc[0] == 7

    def test_padded_count_is_parsed(self, tmp_path, write_shuttlefile):
        path = write_shuttlefile(tmp_path / "padded.txt", ["24-06-15,14:00,   42,00007"])
        assert parse_shuttlefile(path).counts["count1"].iloc[0] == 42

    def test_one_header_row_per_counter_in_file(self, tmp_path, write_shuttlefile):
        lines = (
            shuttlefile_lines([(datetime(2024, 6, 15, 9), 1, 0)], counter="A", serial="111111")
            + shuttlefile_lines([(datetime(2024, 6, 15, 9), 2, 0)], counter="B", serial="222222")
            + shuttlefile_lines([(datetime(2024, 6, 16, 9), 3, 0)], counter="A", serial="333333")
        )
        path = write_shuttlefile(tmp_path / "multi.txt", lines)

        data = parse_shuttlefile(path)
        assert list(data.header["counter"]) == ["A", "B"]
        assert data.header["serial"].iloc[0] == "111111"
        assert list(data.counts["serial"]) == ["111111", "222222", "333333"]

    def test_time_zone(self, shuttlefile):
        counts = parse_shuttlefile(shuttlefile, tz="America/Denver").counts
        assert str(counts["timestamp"].dt.tz) == "America/Denver"
        assert counts["timestamp"].iloc[0] == pd.Timestamp("2024-06-15 09:00", tz="America/Denver")

    def test_nonexistent_local_time_is_nat(self, tmp_path, write_shuttlefile, spring_records, caplog):
        path = write_shuttlefile(tmp_path / "spring.txt", shuttlefile_lines(spring_records))
        with caplog.at_level(logging.WARNING, logger="trail_counter"):
            counts = parse_shuttlefile(path, tz="America/Denver").counts
        assert pd.isna(counts["timestamp"].iloc[3])
        assert "nonexistent or ambiguous" in caplog.text

    def test_unknown_time_zone(self, shuttlefile):
        with pytest.raises(ValueError, match="Unknown time zone"):
            parse_shuttlefile(shuttlefile, tz="Mars/Olympus_Mons")


class TestFindShuttlefiles:
    def test_folder_is_case_insensitive_and_sorted(self, shuttle_folder):
        files = find_shuttlefiles(shuttle_folder)
        assert [f.name for f in files] == ["a_trail.txt", "b_trail.TXT"]

    def test_single_file(self, shuttlefile):
        assert find_shuttlefiles(shuttlefile) == [shuttlefile]

    def test_recursive(self, shuttle_folder, write_shuttlefile):
        write_shuttlefile(shuttle_folder / "2023" / "old.txt", ["24-06-15,14:00,00042,00000"])
        assert len(find_shuttlefiles(shuttle_folder)) == 2
        assert len(find_shuttlefiles(shuttle_folder, recursive=True)) == 3

    def test_invalid_path(self, tmp_path):
        with pytest.raises(InvalidPath):
            find_shuttlefiles(tmp_path / "missing")

    def test_no_input_found(self, tmp_path):
        (tmp_path / "readme.md").write_text("nothing here")
        with pytest.raises(NoInputFound):
            find_shuttlefiles(tmp_path)


class TestReadShuttlefiles:
    def test_concatenates_in_file_order(self, shuttle_folder):
        data = read_shuttlefiles(shuttle_folder)
        assert list(data.counts["counter"]) == ["TRAIL01", "TRAIL02"]
        assert list(data.counts["count1"]) == [5, 8]
        assert list(data.header["counter"]) == ["TRAIL01", "TRAIL02"]
        assert data.counts.index.tolist() == [0, 1]

    def test_header_dedup_first_file_wins(self, tmp_path, write_shuttlefile):
        folder = tmp_path / "dup"
        write_shuttlefile(
            folder / "1.txt",
            shuttlefile_lines([(datetime(2024, 6, 1, 9), 1, 0)], counter="SHARED", serial="111111", volt="3.60"),
        )
        write_shuttlefile(
            folder / "2.txt",
            shuttlefile_lines([(datetime(2024, 7, 1, 9), 2, 0)], counter="SHARED", serial="222222", volt="3.10"),
        )

        data = read_shuttlefiles(folder)
        assert len(data.header) == 1
        assert data.header["serial"].iloc[0] == "111111"
        assert data.header["volt"].iloc[0] == "3.60"
        assert len(data.counts) == 2

    def test_forward_fill_resets_per_file(self, tmp_path, write_shuttlefile):
        folder = tmp_path / "reset"
        write_shuttlefile(folder / "1.txt", shuttlefile_lines([(datetime(2024, 6, 1, 9), 1, 0)]))
        write_shuttlefile(folder / "2.txt", [record_line(datetime(2024, 6, 2, 9), 4, 0)])

        counts = read_shuttlefiles(folder).counts
        assert counts["counter"].iloc[0] == "TRAIL01"
        assert pd.isna(counts["counter"].iloc[1])

    def test_to_csv(self, shuttle_folder, tmp_path):
        data = read_shuttlefiles(shuttle_folder)
        data.to_csv(tmp_path / "counts.csv", tmp_path / "header.csv")
        assert len(pd.read_csv(tmp_path / "counts.csv")) == 2
        assert len(pd.read_csv(tmp_path / "header.csv")) == 2

    def test_invalid_path(self, tmp_path):
        with pytest.raises(InvalidPath):
            read_shuttlefiles(tmp_path / "nope.txt")
