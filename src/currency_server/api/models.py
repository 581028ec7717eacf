"""
Pydantic models for API requests and responses.

This module defines the data models used between the game mod and the
currency server. Request models are validated in strict mode so a JSON
``true`` is never read as ``1``; amounts accept floats only so the ledger can
reject them with a typed ``InvalidAmount`` error instead of silently
truncating.

Models are organized into two categories:
1. Request models: Data sent FROM the game mod TO the server
2. Response models: Data sent FROM the server TO the game mod
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# REQUEST MODELS (Client → Server)
# ============================================================================


class LoginRequest(BaseModel):
    """
    Login request issued by the mod when a player joins.

    Attributes:
        uuid: Player's game UUID (becomes the account id)
        name: Current display name (last write wins)
    """

    model_config = ConfigDict(strict=True)

    uuid: str
    name: str


class PayRequest(BaseModel):
    """
    Transfer from the authenticated player to another player.

    Attributes:
        to_uuid: Recipient account id
        amount: Positive whole number of currency units
    """

    model_config = ConfigDict(strict=True)

    to_uuid: str
    amount: int | float


class DepositRequest(BaseModel):
    """
    Deposit of in-game items converted to currency.

    Attributes:
        amount: Positive whole number of currency units
    """

    model_config = ConfigDict(strict=True)

    amount: int | float


class WithdrawRequest(BaseModel):
    """
    Withdrawal of physical bills.

    Attributes:
        count: Number of bills to issue
        denomination: Value of one bill; server default when omitted
    """

    model_config = ConfigDict(strict=True)

    count: int | float
    denomination: int | float | None = None


# ============================================================================
# RESPONSE MODELS (Server → Client)
# ============================================================================


class LoginResponse(BaseModel):
    """
    Session token for subsequent ``Authorization: Bearer`` calls.

    Attributes:
        token: Opaque session token
        expires_at: UTC instant after which the token is rejected
    """

    token: str
    expires_at: datetime


class LogoutResponse(BaseModel):
    success: bool = True
    message: str


class BalanceResponse(BaseModel):
    """Current balance of the authenticated player."""

    balance: int


class PayResponse(BaseModel):
    success: bool = True
    new_sender_balance: int


class DepositResponse(BaseModel):
    success: bool = True
    new_balance: int


class WithdrawResponse(BaseModel):
    """
    Result of a withdrawal.

    Attributes:
        withdrawn: Total amount removed (count * denomination)
        new_balance: Balance after the withdrawal
        denomination: Bill value used
        count: Number of bills the mod should hand out
    """

    success: bool = True
    withdrawn: int
    new_balance: int
    denomination: int
    count: int


class TopEntry(BaseModel):
    """One leaderboard row."""

    name: str
    balance: int


class MobLimitMarkResponse(BaseModel):
    success: bool = True
    message: str


class MobLimitResponse(BaseModel):
    """Whether the player already hit the mob-drop limit today."""

    model_config = ConfigDict(populate_by_name=True)

    limit_reached: bool = Field(serialization_alias="limitReached")


class DailyResponse(BaseModel):
    """
    Successful daily reward claim.

    Attributes:
        message: Player-facing confirmation text
        new_balance: Balance after the reward
    """

    message: str
    new_balance: int


class TransactionResponse(BaseModel):
    """One transaction log entry involving the authenticated player."""

    account_id: str
    action: str
    amount: int
    counterparty_id: str | None = None
    denomination: int | None = None
    count: int | None = None
    balance_after: int
    timestamp: datetime


class HealthResponse(BaseModel):
    status: str
    backend: str
    active_sessions: int
