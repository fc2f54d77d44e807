"""Tests for RunOutput - bounded per-run output capture."""

import pytest

from tddwatch.models import RunOutcome
from tddwatch.output import RunOutput


def test_output_splits_chunks_into_lines():
    """Test lines are assembled across chunk boundaries."""
    output = RunOutput(limit_bytes=1024)
    output.feed(b"first li")
    output.feed(b"ne\nsecond\nthi")
    assert list(output) == ["first line", "second"]

    output.close()
    assert list(output) == ["first line", "second", "thi"]


def test_output_strips_carriage_returns():
    output = RunOutput(limit_bytes=1024)
    output.feed(b"windows\r\nline\r\n")
    output.close()
    assert list(output) == ["windows", "line"]


def test_output_decodes_split_utf8_sequences():
    """Test a multi-byte character split across chunks survives."""
    data = "✅ ok\n".encode()
    output = RunOutput(limit_bytes=1024)
    output.feed(data[:1])
    output.feed(data[1:])
    assert list(output) == ["✅ ok"]


def test_output_invalid_bytes_are_replaced():
    output = RunOutput(limit_bytes=1024)
    output.feed(b"bad \xff byte\n")
    assert list(output) == ["bad � byte"]


def test_output_drops_oldest_lines_over_limit():
    """Test the byte limit keeps the most recent lines."""
    output = RunOutput(limit_bytes=12)
    output.feed(b"aaa\nbbb\nccc\nddd\n")  # 4 bytes per line

    assert list(output) == ["bbb", "ccc", "ddd"]
    assert output.size == 12
    assert output.dropped_lines == 1
    assert output.truncated is True


def test_output_truncates_oversized_line_to_its_end():
    output = RunOutput(limit_bytes=5)
    output.feed(b"0123456789\n")
    assert list(output) == ["6789"]
    assert output.size <= 5


def test_output_tail_and_text():
    output = RunOutput(limit_bytes=1024)
    output.feed(b"1\n2\n3\n")
    assert output.tail(2) == ["2", "3"]
    assert output.tail(0) == []
    assert output.text() == "1\n2\n3"
    assert len(output) == 3


def test_output_lines_is_lazy_snapshot():
    """Test lines() keeps yielding the snapshot even if more output arrives."""
    output = RunOutput(limit_bytes=1024)
    output.feed(b"a\nb\n")
    lines = output.lines()
    assert next(lines) == "a"
    output.feed(b"c\n")
    assert list(lines) == ["b"]


def test_output_lines_since_skips_dropped_lines():
    output = RunOutput(limit_bytes=8)
    output.feed(b"l0\nl1\n")
    lines, next_index = output.lines_since(0)
    assert lines == ["l0", "l1"]
    assert next_index == 2

    output.feed(b"l2\nl3\nl4\n")  # keeps only the last two lines
    lines, next_index = output.lines_since(next_index)
    assert lines == ["l3", "l4"]
    assert next_index == 5

    assert output.lines_since(next_index) == ([], 5)


def test_output_rejects_feed_after_close():
    output = RunOutput(limit_bytes=1024)
    output.close()
    assert output.closed
    with pytest.raises(ValueError, match="closed"):
        output.feed(b"late\n")


def test_output_finish_records_outcome():
    output = RunOutput(limit_bytes=1024, run_id=7)
    output.feed(b"partial")
    output.finish(RunOutcome.failure(2))

    assert output.run_id == 7
    assert output.outcome.exit_code == 2
    assert output.finished_at is not None
    assert output.finished_at >= output.started_at
    assert list(output) == ["partial"]


def test_output_requires_positive_limit():
    with pytest.raises(ValueError):
        RunOutput(limit_bytes=0)
