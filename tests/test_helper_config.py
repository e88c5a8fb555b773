"""Tests for environment based configuration."""

import logging

import pytest

from shared.helper.HelperConfig import HelperConfig


@pytest.fixture
def config() -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("test"))


class TestHelperConfig:
    def test_string_default(self, config, monkeypatch) -> None:
        monkeypatch.delenv("SOME_UNSET_KEY", raising=False)
        assert config.get_string_val("SOME_UNSET_KEY", default="fallback") == "fallback"

    def test_empty_string_counts_as_unset(self, config, monkeypatch) -> None:
        monkeypatch.setenv("EMPTY_KEY", "")
        assert config.get_string_val("EMPTY_KEY", default="fallback") == "fallback"

    def test_missing_required_raises(self, config, monkeypatch) -> None:
        monkeypatch.delenv("REQUIRED_KEY", raising=False)
        with pytest.raises(ValueError, match="REQUIRED_KEY"):
            config.get_string_val("REQUIRED_KEY")

    def test_numbers(self, config, monkeypatch) -> None:
        monkeypatch.setenv("INT_KEY", "42")
        monkeypatch.setenv("FLOAT_KEY", "0.5")
        assert config.get_number_val("INT_KEY") == 42
        assert config.get_number_val("FLOAT_KEY") == 0.5

    def test_invalid_number(self, config, monkeypatch) -> None:
        monkeypatch.setenv("BAD_NUMBER", "abc")
        with pytest.raises(ValueError):
            config.get_number_val("BAD_NUMBER")

    @pytest.mark.parametrize("raw, expected", [("true", True), ("1", True), ("YES", True), ("false", False), ("no", False)])
    def test_bools(self, config, monkeypatch, raw, expected) -> None:
        monkeypatch.setenv("BOOL_KEY", raw)
        assert config.get_bool_val("BOOL_KEY") is expected

    def test_list(self, config, monkeypatch) -> None:
        monkeypatch.setenv("LIST_KEY", "[1, 2,3]")
        assert config.get_list_val("LIST_KEY", element_type=int) == [1, 2, 3]

    def test_list_without_brackets(self, config, monkeypatch) -> None:
        monkeypatch.setenv("LIST_KEY", "a,b")
        with pytest.raises(ValueError):
            config.get_list_val("LIST_KEY")
