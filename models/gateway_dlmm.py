"""
Models for the DLMM optimizer's HTTP collaborators.
Covers Gateway balances, Meteora CLMM positions and router swaps, plus the public DLMM API pool listing.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from decimal import Decimal


# ============================================
# Wallet
# ============================================

class BalancesRequest(BaseModel):
    """Request for token balances of a gateway-managed wallet."""
    network: str = Field(description="Chain network (e.g., 'mainnet-beta')")
    address: str = Field(description="Wallet address")
    tokens: List[str] = Field(default_factory=list, description="Token symbols or mint addresses")


class BalancesResponse(BaseModel):
    balances: Dict[str, Decimal] = Field(default_factory=dict, description="Balance per requested token")


# ============================================
# CLMM (Meteora DLMM) Models
# ============================================

class DLMMPoolInfoResponse(BaseModel):
    """Subset of the CLMM pool-info response the optimizer relies on."""
    address: str = Field(default="", description="Pool address")
    bin_step: Optional[int] = Field(None, alias="binStep", description="Bin step in basis points")
    price: Decimal = Field(description="Current pool price (quote per base)")
    active_bin_id: Optional[int] = Field(None, alias="activeBinId", description="Currently active bin ID")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "address": "5hbf9JP8k5zdrZp9pokPypFQoBse5mGCmW6nqodurGcd",
                "bin_step": 20,
                "price": 0.47366592950616504,
                "active_bin_id": -374,
            }
        }
    }


class DLMMPositionInfo(BaseModel):
    """One owned DLMM position."""
    address: str = Field(default="", description="Position address")
    pool_address: str = Field(alias="poolAddress", description="Pool address")
    lower_bin_id: int = Field(alias="lowerBinId", description="Lower bin ID")
    upper_bin_id: int = Field(alias="upperBinId", description="Upper bin ID")
    lower_price: Optional[Decimal] = Field(default=None, alias="lowerPrice")
    upper_price: Optional[Decimal] = Field(default=None, alias="upperPrice")

    model_config = {"populate_by_name": True}


class DLMMOpenPositionRequest(BaseModel):
    """Request to open a new DLMM position around a price range."""
    network: str
    wallet_address: str = Field(alias="walletAddress")
    pool_address: str = Field(alias="poolAddress")
    lower_price: Decimal = Field(alias="lowerPrice")
    upper_price: Decimal = Field(alias="upperPrice")
    base_token_amount: Decimal = Field(alias="baseTokenAmount")
    quote_token_amount: Decimal = Field(alias="quoteTokenAmount")
    slippage_pct: Optional[Decimal] = Field(default=None, alias="slippagePct", description="Slippage in percent-points")

    model_config = {"populate_by_name": True}


class DLMMOpenPositionResponse(BaseModel):
    signature: str = Field(default="", description="Transaction signature")
    position_address: str = Field(default="", alias="positionAddress")

    model_config = {"populate_by_name": True}


class DLMMClosePositionRequest(BaseModel):
    """Close a position: removes all liquidity and claims fees."""
    network: str
    wallet_address: str = Field(alias="walletAddress")
    position_address: str = Field(alias="positionAddress")

    model_config = {"populate_by_name": True}


class DLMMRemoveLiquidityRequest(BaseModel):
    """Withdraw liquidity and fees but keep the position account open."""
    network: str
    wallet_address: str = Field(alias="walletAddress")
    position_address: str = Field(alias="positionAddress")
    percentage_to_remove: Decimal = Field(default=Decimal("100"), alias="percentageToRemove")

    model_config = {"populate_by_name": True}


class DLMMClosePositionResponse(BaseModel):
    signature: str = Field(default="")
    base_token_amount_removed: Decimal = Field(default=Decimal("0"), alias="baseTokenAmountRemoved")
    quote_token_amount_removed: Decimal = Field(default=Decimal("0"), alias="quoteTokenAmountRemoved")
    base_fee_amount_collected: Decimal = Field(default=Decimal("0"), alias="baseFeeAmountCollected")
    quote_fee_amount_collected: Decimal = Field(default=Decimal("0"), alias="quoteFeeAmountCollected")

    model_config = {"populate_by_name": True}


# ============================================
# Swap Models (Router: Jupiter)
# ============================================

class SwapExecuteRequest(BaseModel):
    """Request to execute a router swap. SELL spends ``amount`` of the base token."""
    network: str
    wallet_address: str = Field(alias="walletAddress")
    base_token: str = Field(alias="baseToken", description="Token being sold")
    quote_token: str = Field(alias="quoteToken", description="Token being bought")
    amount: Decimal
    side: str = Field(default="SELL")
    slippage_pct: Optional[Decimal] = Field(default=None, alias="slippagePct")

    model_config = {"populate_by_name": True}


class SwapExecuteResponse(BaseModel):
    signature: str = Field(default="")
    amount_in: Optional[Decimal] = Field(default=None, alias="amountIn")
    amount_out: Decimal = Field(default=Decimal("0"), alias="amountOut")

    model_config = {"populate_by_name": True}


# ============================================
# Public DLMM API
# ============================================

class DLMMPairItem(BaseModel):
    """Pool entry from the public DLMM API listing."""
    address: str = Field(description="Pool address")
    name: str = Field(default="", description="Pool name (e.g., 'SOL-USDC')")
    mint_x: str = Field(default="", description="Base token mint address")
    mint_y: str = Field(default="", description="Quote token mint address")
    bin_step: int = Field(description="Bin step size")
    trade_volume_24h: Decimal = Field(default=Decimal("0"), description="24h trading volume")
    hide: Optional[bool] = Field(default=None, description="Whether pool should be hidden")
    is_blacklisted: Optional[bool] = Field(default=None, description="Whether pool is blacklisted")


class DLMMPairListResponse(BaseModel):
    pairs: List[DLMMPairItem] = Field(default_factory=list)
    total: int = Field(default=0, description="Total number of matching pools")
