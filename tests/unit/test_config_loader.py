"""
Unit tests for config/loader.py, config/validate.py and core/streams.py.

Tests cover:
- JSON config file loading
- Environment variable overrides with type coercion
- Missing file graceful fallback (empty dict)
- Singleton pattern for ConfigLoader
- Config validation (validate_all_configs)
- Cache management
- ABI loading and stream resolution
"""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import pytest

from config.loader import ConfigLoader, get_channel, get_config, get_env_var
from config.validate import (
    ConfigValidationError,
    validate_all_configs,
    validate_chain_config,
    validate_sync_config,
)
from core.streams import load_stream_specs
from shared.types import StreamKind

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_singleton():
    """Reset the ConfigLoader singleton between tests."""
    ConfigLoader._instance = None
    yield
    ConfigLoader._instance = None


def _valid_chain_config():
    return {
        "chain_id": 1,
        "rpc": {"http_url": "https://eth.llamarpc.com"},
        "streams": {
            name: {"abi": "x", "event": "Y"}
            for name in (
                "exchangeFills",
                "exchangeCancels",
                "exchangeFailures",
                "swapFills",
                "swapCancels",
                "erc20Transfers",
            )
        },
    }


def _valid_sync_config():
    return {
        "lookback_blocks": 7000,
        "narrow_window_blocks": 1,
        "block_poll_interval_seconds": 4,
    }


# ===========================================================================
# ConfigLoader tests
# ===========================================================================


class TestConfigLoaderSingleton:
    def test_get_instance_returns_same_object(self):
        a = ConfigLoader.get_instance()
        b = ConfigLoader.get_instance()
        assert a is b

    def test_get_config_returns_singleton(self):
        cfg = get_config()
        assert cfg is ConfigLoader.get_instance()


class TestConfigLoading:
    def test_get_chain_config_returns_mainnet(self):
        chain = get_config().get_chain_config(1)
        assert chain.get("chain_id") == 1

    def test_get_sync_config(self):
        sync = get_config().get_sync_config()
        assert sync["lookback_blocks"] == 7000
        assert sync["narrow_window_blocks"] == 1

    def test_get_app_config(self):
        assert isinstance(get_config().get_app_config(), dict)

    def test_stream_configs_cover_every_stream(self):
        streams = get_config().get_stream_configs(1)
        assert set(streams) == {kind.value for kind in StreamKind}

    def test_missing_chain_returns_empty_dict(self):
        assert get_config().get_chain_config(999_999) == {}


class TestRedisChannels:
    def test_configured_channel(self):
        assert get_channel("swapFills") == "sync:swap_fills"

    def test_unknown_channel_falls_back_to_prefix(self):
        assert get_channel("somethingElse") == "sync:somethingElse"


class TestABILoading:
    def test_load_erc20_abi(self):
        abi = get_config().get_abi("erc20")
        assert [entry["name"] for entry in abi] == ["Transfer"]

    def test_missing_abi_returns_empty(self):
        assert get_config().get_abi("nonexistent_abi_xyz") == []


class TestCacheManagement:
    def test_cache_produces_same_result(self):
        cfg = get_config()
        assert cfg.get_sync_config() is cfg.get_sync_config()

    def test_clear_cache(self):
        cfg = get_config()
        first = cfg.get_sync_config()
        cfg.clear_cache()
        second = cfg.get_sync_config()
        assert first == second
        assert first is not second


# ===========================================================================
# Stream resolution
# ===========================================================================


class TestLoadStreamSpecs:
    def test_every_kind_resolved(self, stream_specs):
        assert set(stream_specs) == set(StreamKind)

    def test_erc20_has_no_contract_filter(self, stream_specs):
        assert stream_specs[StreamKind.ERC20_TRANSFERS].contract_address is None

    def test_maker_slots(self, stream_specs):
        assert stream_specs[StreamKind.EXCHANGE_FILLS].maker_topic_index == 1
        assert stream_specs[StreamKind.SWAP_FILLS].maker_topic_index == 2

    def test_missing_event_rejected(self):
        loader = MagicMock()
        loader.get_stream_configs.return_value = {
            kind.value: {"abi": "erc20", "event": "Nope"} for kind in StreamKind
        }
        loader.get_abi.return_value = []
        with pytest.raises(ValueError):
            load_stream_specs(loader=loader)


# ===========================================================================
# get_env_var tests
# ===========================================================================


class TestGetEnvVar:
    def test_bool_true_values(self):
        for val in ("true", "True", "TRUE", "1", "yes"):
            with patch.dict(os.environ, {"TEST_BOOL": val}):
                assert get_env_var("TEST_BOOL", False, bool) is True

    def test_bool_false_values(self):
        for val in ("false", "False", "0", "no"):
            with patch.dict(os.environ, {"TEST_BOOL": val}):
                assert get_env_var("TEST_BOOL", True, bool) is False

    def test_int_conversion(self):
        with patch.dict(os.environ, {"TEST_INT": "42"}):
            assert get_env_var("TEST_INT", 0, int) == 42

    def test_list_conversion(self):
        with patch.dict(os.environ, {"TEST_LIST": " 0xa, 0xb ,,"}):
            assert get_env_var("TEST_LIST", [], list) == ["0xa", "0xb"]

    def test_missing_var_returns_default(self):
        os.environ.pop("DEFINITELY_NOT_SET_XYZ", None)
        assert get_env_var("DEFINITELY_NOT_SET_XYZ", "fallback", str) == "fallback"

    def test_invalid_int_returns_default(self):
        with patch.dict(os.environ, {"TEST_BAD_INT": "abc"}):
            assert get_env_var("TEST_BAD_INT", 99, int) == 99


# ===========================================================================
# Config validation tests
# ===========================================================================


class TestValidateChainConfig:
    def test_valid_chain_config(self):
        assert validate_chain_config(_valid_chain_config()) == []

    def test_missing_chain_id(self):
        assert "chain_id" in validate_chain_config({})

    def test_missing_stream(self):
        cfg = _valid_chain_config()
        del cfg["streams"]["swapCancels"]
        assert validate_chain_config(cfg) == ["streams.swapCancels"]

    def test_stream_missing_event(self):
        cfg = _valid_chain_config()
        del cfg["streams"]["exchangeFills"]["event"]
        assert validate_chain_config(cfg) == ["streams.exchangeFills.event"]


class TestValidateSyncConfig:
    def test_valid_sync_config(self):
        assert validate_sync_config(_valid_sync_config()) == []

    def test_missing_lookback(self):
        cfg = _valid_sync_config()
        del cfg["lookback_blocks"]
        assert "lookback_blocks" in validate_sync_config(cfg)

    def test_negative_window_rejected(self):
        cfg = _valid_sync_config()
        cfg["narrow_window_blocks"] = -1
        assert validate_sync_config(cfg) == ["narrow_window_blocks: must be non-negative"]

    def test_zero_poll_interval_rejected(self):
        cfg = _valid_sync_config()
        cfg["block_poll_interval_seconds"] = 0
        assert len(validate_sync_config(cfg)) == 1


class TestValidateAllConfigs:
    def test_all_configs_valid(self):
        """validate_all_configs should pass with real config files."""
        validate_all_configs()

    def test_raises_on_invalid(self):
        mock_loader = MagicMock()
        mock_loader.get_chain_config.return_value = {}
        mock_loader.get_sync_config.return_value = {}

        with (
            patch("config.validate.get_config", return_value=mock_loader),
            pytest.raises(ConfigValidationError, match="validation failed"),
        ):
            validate_all_configs()

    def test_error_message_includes_details(self):
        mock_loader = MagicMock()
        mock_loader.get_chain_config.return_value = {"rpc": {"http_url": "x"}, "streams": {}}
        mock_loader.get_sync_config.return_value = _valid_sync_config()

        with (
            patch("config.validate.get_config", return_value=mock_loader),
            pytest.raises(ConfigValidationError, match="chain_id"),
        ):
            validate_all_configs()
