"""Tests for the shared helpers."""

import time

import pytest

from sorionlib.utils import delay, format_bytes, format_seconds, merge_options


class TestFormatting:

    @pytest.mark.parametrize(
        "size, expected",
        [(0, "0 Bytes"), (512, "512 Bytes"), (1536, "1.5 KB"), (1024 ** 2, "1 MB"), (5 * 1024 ** 3, "5 GB")],
    )
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected

    @pytest.mark.parametrize("ms, expected", [(5000, "5"), (1500, "1.5"), (250, "0.25")])
    def test_format_seconds(self, ms, expected):
        assert format_seconds(ms) == expected


def test_merge_options():
    defaults = {"cooldown": 0, "permissions": []}
    assert merge_options({"cooldown": 5}, defaults) == {"cooldown": 5, "permissions": []}
    assert merge_options(None, defaults) == defaults
    assert defaults == {"cooldown": 0, "permissions": []}


@pytest.mark.asyncio
async def test_delay():
    start = time.perf_counter()
    await delay(30)
    assert time.perf_counter() - start >= 0.025


def test_helpers_exported_from_package():
    import sorionlib

    for name in ("delay", "format_bytes", "format_number", "format_seconds", "merge_options"):
        assert name in sorionlib.__all__
    assert sorionlib.format_bytes(2048) == "2 KB"
    assert sorionlib.merge_options({"a": 1}, {"a": 0, "b": 2}) == {"a": 1, "b": 2}
