"""
Configuration schema validation for Swap Event Sync.

Validates that all required config files exist and contain required keys.
Run at startup to fail fast on misconfiguration.
"""

from typing import Any

from config.loader import get_config

_REQUIRED_STREAMS = (
    "exchangeFills",
    "exchangeCancels",
    "exchangeFailures",
    "swapFills",
    "swapCancels",
    "erc20Transfers",
)


class ConfigValidationError(ValueError):
    """Raised when a required config key is missing or invalid."""

    pass


def _check_keys(config: dict[str, Any], required_keys: list[str], config_name: str) -> list[str]:
    """Check that all required keys exist in a config dict. Returns list of missing keys."""
    missing = []
    for key in required_keys:
        parts = key.split(".")
        current = config
        for part in parts:
            if not isinstance(current, dict) or part not in current:
                missing.append(key)
                break
            current = current[part]
    return missing


def validate_chain_config(config: dict[str, Any]) -> list[str]:
    """Validate chains/1.json has required fields and every stream is defined."""
    errors = _check_keys(
        config,
        ["chain_id", "rpc.http_url", "streams"],
        "chains/1.json",
    )
    if errors:
        return errors
    streams = config["streams"]
    for name in _REQUIRED_STREAMS:
        if name not in streams:
            errors.append(f"streams.{name}")
            continue
        for key in _check_keys(streams[name], ["abi", "event"], "chains/1.json"):
            errors.append(f"streams.{name}.{key}")
    return errors


def validate_sync_config(config: dict[str, Any]) -> list[str]:
    """Validate sync.json has required fields and sane window widths."""
    errors = _check_keys(
        config,
        [
            "lookback_blocks",
            "narrow_window_blocks",
            "block_poll_interval_seconds",
        ],
        "sync.json",
    )
    if not errors:
        if int(config["lookback_blocks"]) < 0:
            errors.append("lookback_blocks: must be non-negative")
        if int(config["narrow_window_blocks"]) < 0:
            errors.append("narrow_window_blocks: must be non-negative")
        if float(config["block_poll_interval_seconds"]) <= 0:
            errors.append("block_poll_interval_seconds: must be positive")
    return errors


def validate_all_configs() -> None:
    """
    Validate all config files. Raises ConfigValidationError with details
    if any required keys are missing.
    """
    loader = get_config()
    all_errors: dict[str, list[str]] = {}

    validators = {
        "chains/1.json": (loader.get_chain_config, validate_chain_config),
        "sync.json": (loader.get_sync_config, validate_sync_config),
    }

    for config_name, (loader_fn, validator_fn) in validators.items():
        config = loader_fn()
        if not config:
            all_errors[config_name] = ["Config file is empty or not found"]
            continue
        errors = validator_fn(config)
        if errors:
            all_errors[config_name] = errors

    if all_errors:
        lines = ["Configuration validation failed:"]
        for config_name, errors in all_errors.items():
            lines.append(f"\n  {config_name}:")
            for error in errors:
                lines.append(f"    - missing: {error}")
        raise ConfigValidationError("\n".join(lines))
