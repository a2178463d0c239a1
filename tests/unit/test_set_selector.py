"""
Unit tests for choosing which sections a candidate sits.
"""
import pytest

from celpip_prep.utils.set_selector import build_runtime_set


class TestBuildRuntimeSet:
    def test_no_selection_is_whole_set(self, full_set):
        assert build_runtime_set(full_set) is full_set

    def test_keeps_authored_order(self, full_set):
        runtime = build_runtime_set(full_set, ["sec-s", "sec-r"])
        assert [s.id for s in runtime.sections] == ["sec-r", "sec-s"]
        assert runtime.id == full_set.id
        assert len(full_set.sections) == 4

    def test_unknown_section(self, full_set):
        with pytest.raises(ValueError, match="sec-x"):
            build_runtime_set(full_set, ["sec-r", "sec-x"])

    def test_empty_selection(self, full_set):
        with pytest.raises(ValueError):
            build_runtime_set(full_set, [])
