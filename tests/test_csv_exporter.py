"""Tests for CSV export."""

import csv

import pytest

from csv_exporter import CSV_HEADERS, CsvExporter, escape_field, to_csv_text
from fakes import transcript


def _read(path):
    with open(path, encoding="utf-8", newline="") as fh:
        return list(csv.reader(fh))


class TestRoundTrip:
    def test_header_plus_one_line_per_message(self, tmp_path):
        transcripts = [
            transcript("c1", ["Hola, ¿tienen stock?", 'Dijo "mañana", creo']),
            transcript("c2", ["Una sola pregunta"]),
            transcript("c3", ["a,b,c", '""', "fin"]),
        ]
        path = tmp_path / "out.csv"

        CsvExporter(str(path)).export(transcripts)

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1 + 6

        rows = _read(path)
        assert rows[0] == CSV_HEADERS
        body_idx = CSV_HEADERS.index("message_body")
        expected = [(t.conversation_id, m.body) for t in transcripts for m in t.messages]
        assert [(r[0], r[body_idx]) for r in rows[1:]] == expected

    def test_every_field_quoted(self):
        text = to_csv_text([transcript("c1", ['say "hi"'])])
        data_line = text.splitlines()[1]
        assert data_line.startswith('"c1",')
        assert '"say ""hi"""' in data_line

    def test_newlines_flattened(self, tmp_path):
        path = tmp_path / "out.csv"
        CsvExporter(str(path)).export([transcript("c1", ["línea 1\nlínea 2\r\nfin"])])

        assert len(path.read_text(encoding="utf-8").splitlines()) == 2
        assert _read(path)[1][CSV_HEADERS.index("message_body")] == "línea 1 línea 2  fin"

    def test_export_nothing_returns_none(self, tmp_path):
        path = tmp_path / "out.csv"
        assert CsvExporter(str(path)).export([]) is None
        assert not path.exists()


class TestIncremental:
    def test_append_does_not_repeat_header(self, tmp_path):
        path = tmp_path / "nested" / "out.csv"

        with CsvExporter(str(path)) as exporter:
            exporter.append_transcript(transcript("c1", ["uno", "dos"]))
        with CsvExporter(str(path)) as exporter:
            exporter.append_transcript(transcript("c2", ["tres"]))
            assert exporter.saved_conversations == 1

        rows = _read(path)
        assert rows.count(CSV_HEADERS) == 1
        assert [r[0] for r in rows[1:]] == ["c1", "c1", "c2"]

    def test_append_requires_open(self, tmp_path):
        exporter = CsvExporter(str(tmp_path / "out.csv"))
        with pytest.raises(RuntimeError):
            exporter.append_transcript(transcript("c1"))

    def test_open_twice_is_noop(self, tmp_path):
        exporter = CsvExporter(str(tmp_path / "out.csv"))
        try:
            assert exporter.open() is exporter.open()
        finally:
            exporter.close()
        assert len(_read(tmp_path / "out.csv")) == 1


def test_escape_field():
    assert escape_field(None) == ""
    assert escape_field(12) == "12"
    assert escape_field("a\nb") == "a b"


def test_export_stats(tmp_path):
    exporter = CsvExporter(str(tmp_path / "out.csv"))
    stats = exporter.export_stats([transcript("c1", ["a", "b"]), transcript("c2")])
    assert stats["conversationCount"] == 2
    assert stats["totalMessages"] == 3
    assert stats["filePath"].endswith("out.csv")
