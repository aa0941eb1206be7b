from decimal import Decimal

import pytest
from pydantic import ValidationError

from config import OptimizerSettings, load_settings
from controllers.dlmm_lp_domain.errors import ConfigurationError

REQUIRED = {"asset_a": "SOL", "asset_b": "USDC", "position_range_per_side": "0.05"}


@pytest.fixture(autouse=True)
def wallet_env(monkeypatch):
    monkeypatch.setenv("GATEWAY_WALLET_ADDRESS", "wallet-env")


def _settings(**overrides):
    values = dict(REQUIRED)
    values.update(overrides)
    return OptimizerSettings(_env_file=None, **values)


def test_defaults():
    settings = _settings()

    assert settings.position_range_per_side == Decimal("0.05")
    assert settings.asset_a_native is True
    assert settings.asset_b_native is False
    assert settings.native_fee_buffer == Decimal("0.1")
    assert settings.max_bins_per_side == 34
    assert settings.retry_attempts == 3
    assert settings.retry_delay_sec == 1.0
    assert settings.poll_interval_sec == 10.0
    assert settings.startup_delay_sec == 10.0
    assert settings.settle_delay_sec == 5.0
    assert settings.min_swap_value == Decimal("0.01")
    assert settings.min_swap_policy == "skip"
    assert settings.alert.loss_threshold == Decimal("-0.02")
    assert settings.gateway.url == "http://localhost:15888"
    assert settings.meteora_api.url == "https://dlmm-api.meteora.ag"


def test_asset_pair_built_from_settings():
    pair = _settings().asset_pair()

    assert (pair.asset_a, pair.asset_b, pair.native_asset) == ("SOL", "USDC", "SOL")


def test_both_assets_native_rejected():
    with pytest.raises(ValidationError):
        _settings(asset_b_native=True)


def test_range_must_be_a_ratio():
    with pytest.raises(ValidationError):
        _settings(position_range_per_side=5)
    with pytest.raises(ValidationError):
        _settings(position_range_per_side=0)


@pytest.mark.parametrize(
    "field,value",
    [
        ("retry_attempts", 0),
        ("retry_delay_sec", -1),
        ("settle_delay_sec", -0.5),
        ("native_fee_buffer", "-0.1"),
        ("min_swap_policy", "later"),
    ],
)
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        _settings(**{field: value})


def test_env_prefixes(monkeypatch):
    monkeypatch.setenv("OPTIMIZER_ASSET_A", "JUP")
    monkeypatch.setenv("OPTIMIZER_ASSET_B", "USDC")
    monkeypatch.setenv("OPTIMIZER_POSITION_RANGE_PER_SIDE", "0.1")
    monkeypatch.setenv("OPTIMIZER_ASSET_A_NATIVE", "false")
    monkeypatch.setenv("GATEWAY_WALLET_ADDRESS", "wallet-1")

    settings = OptimizerSettings(_env_file=None)

    assert settings.asset_a == "JUP"
    assert settings.asset_pair().native_asset is None
    assert settings.position_range_per_side == Decimal("0.1")
    assert settings.gateway.wallet_address == "wallet-1"


def test_load_settings_from_yaml(tmp_path):
    path = tmp_path / "optimizer.yml"
    path.write_text(
        "asset_a: SOL\n"
        "asset_b: USDC\n"
        "position_range_per_side: 0.05\n"
        "poll_interval_sec: 30\n"
        "gateway:\n"
        "  wallet_address: abc\n",
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.poll_interval_sec == 30.0
    assert settings.gateway.wallet_address == "abc"


def test_load_settings_overrides_win(tmp_path):
    path = tmp_path / "optimizer.yml"
    path.write_text("asset_a: SOL\nasset_b: USDC\nposition_range_per_side: 0.05\n", encoding="utf-8")

    settings = load_settings(path, position_range_per_side="0.02")

    assert settings.position_range_per_side == Decimal("0.02")


def test_load_settings_errors_are_configuration_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "missing.yml")

    path = tmp_path / "bad.yml"
    path.write_text("asset_a: SOL\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_settings(path)

    listing = tmp_path / "list.yml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_settings(listing)


def test_wallet_address_is_required(monkeypatch):
    monkeypatch.delenv("GATEWAY_WALLET_ADDRESS")

    with pytest.raises(ValidationError, match="wallet_address"):
        _settings()
    with pytest.raises(ConfigurationError, match="wallet_address"):
        load_settings(**REQUIRED)


def test_blank_wallet_address_rejected():
    with pytest.raises(ValidationError, match="wallet_address"):
        _settings(gateway={"wallet_address": "   "})


def test_wallet_address_from_env():
    assert _settings().gateway.wallet_address == "wallet-env"
