from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from controllers.dlmm_lp_domain.components import AssetPair
from controllers.dlmm_lp_domain.errors import ConfigurationError
from controllers.shared.ratios import to_ratio


class GatewaySettings(BaseSettings):
    """Hummingbot Gateway connection used for balances, positions and swaps."""

    url: str = Field(
        default="http://localhost:15888",
        description="Gateway service URL (use 'http://gateway:15888' when running in Docker)"
    )
    chain: str = Field(default="solana", description="Chain name used in /chains routes")
    network: str = Field(default="mainnet-beta", description="Chain network")
    wallet_address: str = Field(default="", description="Wallet address managed by the gateway")
    dlmm_connector: str = Field(default="meteora/clmm", description="DLMM connector route")
    router_connector: str = Field(default="jupiter/router", description="Swap router connector route")
    native_symbol: str = Field(default="SOL", description="Symbol of the chain's gas token")
    slippage_pct: Decimal = Field(default=Decimal("1"), description="Slippage in percent-points (gateway convention)")
    timeout_sec: float = Field(default=30.0, description="HTTP timeout per gateway call")

    model_config = SettingsConfigDict(env_prefix="GATEWAY_", extra="ignore")

    @field_validator("wallet_address", mode="after")
    @classmethod
    def strip_wallet_address(cls, v):
        return v.strip()


class MeteoraApiSettings(BaseSettings):
    """Public DLMM API used for pool discovery and bin-step lookups."""

    url: str = Field(default="https://dlmm-api.meteora.ag", description="DLMM API base URL")
    page_size: int = Field(default=100, description="Pools requested per search page")
    timeout_sec: float = Field(default=15.0)

    model_config = SettingsConfigDict(env_prefix="METEORA_API_", extra="ignore")


class AlertSettings(BaseSettings):
    loss_threshold: Decimal = Field(
        default=Decimal("-0.02"),
        description="Relative worth change at or below which a LOSS alert is sent"
    )

    model_config = SettingsConfigDict(env_prefix="ALERT_", extra="ignore")

    @field_validator("loss_threshold", mode="after")
    @classmethod
    def validate_loss_threshold(cls, v):
        if v > 0:
            raise ValueError("loss_threshold must be <= 0")
        return v


class BalanceLogSettings(BaseSettings):
    path: str = Field(default="logs/balances.log", description="Append-only balance log file")

    model_config = SettingsConfigDict(env_prefix="BALANCE_LOG_", extra="ignore")


class OptimizerSettings(BaseSettings):
    """Settings for one optimizer instance, validated once at startup."""

    asset_a: str = Field(description="Mint or symbol of asset A (pool base token)")
    asset_b: str = Field(description="Mint or symbol of asset B (pool quote token)")
    asset_a_native: bool = True
    asset_b_native: bool = False
    position_range_per_side: Decimal = Field(description="Ratio covered on each side of the price, 0.05 == 5%")

    native_fee_buffer: Decimal = Field(default=Decimal("0.1"))
    max_bins_per_side: int = Field(default=34, description="Largest bin count one position may span per side")
    retry_attempts: int = 3
    retry_delay_sec: float = 1.0
    poll_interval_sec: float = 10.0
    startup_delay_sec: float = 10.0
    settle_delay_sec: float = 5.0
    min_swap_value: Decimal = Field(default=Decimal("0.01"), description="Smallest swap worth executing, in asset B")
    min_swap_policy: Literal["skip", "swap"] = "skip"
    report_interval_sec: float = Field(default=86400.0, description="Performance report cadence, 0 disables")
    position_lookup_attempts: int = 2

    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    meteora_api: MeteoraApiSettings = Field(default_factory=MeteoraApiSettings)
    alert: AlertSettings = Field(default_factory=AlertSettings)
    balance_log: BalanceLogSettings = Field(default_factory=BalanceLogSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="OPTIMIZER_",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("asset_a", "asset_b", mode="after")
    @classmethod
    def validate_asset(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("asset identifiers must not be empty")
        return v

    @field_validator("position_range_per_side", mode="before")
    @classmethod
    def validate_position_range_per_side(cls, v):
        return to_ratio(v, field="position_range_per_side")

    @field_validator("native_fee_buffer", "min_swap_value", mode="after")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("max_bins_per_side", "retry_attempts", "position_lookup_attempts", mode="after")
    @classmethod
    def validate_positive_int(cls, v):
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator(
        "retry_delay_sec",
        "poll_interval_sec",
        "startup_delay_sec",
        "settle_delay_sec",
        "report_interval_sec",
        mode="after",
    )
    @classmethod
    def validate_delay(cls, v):
        if v < 0:
            raise ValueError("delays must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_native_flags(self):
        if self.asset_a_native and self.asset_b_native:
            raise ValueError("at most one of asset_a_native / asset_b_native may be true")
        return self

    @model_validator(mode="after")
    def validate_wallet_address(self):
        if not self.gateway.wallet_address:
            raise ValueError("gateway.wallet_address must be set (GATEWAY_WALLET_ADDRESS)")
        return self

    def asset_pair(self) -> AssetPair:
        return AssetPair(
            asset_a=self.asset_a,
            asset_b=self.asset_b,
            asset_a_native=self.asset_a_native,
            asset_b_native=self.asset_b_native,
        )


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {config_path}")
    return data


def load_settings(path: Optional[Union[str, Path]] = None, **overrides: Any) -> OptimizerSettings:
    """Build settings from env/.env, an optional YAML file, then explicit overrides."""
    values: Dict[str, Any] = read_config_file(path) if path else {}
    values.update(overrides)
    try:
        return OptimizerSettings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid optimizer settings: {e}") from e
