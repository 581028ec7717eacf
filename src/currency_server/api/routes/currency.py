"""Currency endpoints used by the game mod (login, balance, transfers, rewards).

Every route passes the IP allowlist. All routes except ``/login`` resolve the
caller's account from the bearer token, so a player can only move their own
funds.

Handlers are plain ``def`` functions: ledger operations block on row locks
and FastAPI runs sync handlers on its thread pool.
"""

from fastapi import APIRouter, Depends, Query, Request

from currency_server.api.auth import SessionRegistry, bearer_token, validate_session, verify_ip
from currency_server.api.models import (
    BalanceResponse,
    DailyResponse,
    DepositRequest,
    DepositResponse,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    MobLimitMarkResponse,
    MobLimitResponse,
    PayRequest,
    PayResponse,
    TopEntry,
    TransactionResponse,
    WithdrawRequest,
    WithdrawResponse,
)
from currency_server.api.routes.utils import unwrap_or_raise
from currency_server.ledger import Ledger, LedgerResult, TransientError


def router(ledger: Ledger, sessions: SessionRegistry) -> APIRouter:
    """Build the currency router bound to one ledger and session registry."""
    api = APIRouter(prefix="/currency", dependencies=[Depends(verify_ip)])

    @api.post("/login", response_model=LoginResponse)
    def login(request: LoginRequest):
        """Create or refresh the player's account and issue a session token."""
        account = unwrap_or_raise(ledger.login(request.uuid, request.name))
        try:
            session = sessions.issue(account.id)
        except TransientError as exc:
            unwrap_or_raise(LedgerResult.failure(exc))
        return LoginResponse(token=session.token, expires_at=session.expires_at)

    @api.post("/logout", response_model=LogoutResponse)
    def logout(request: Request, _account_id: str = Depends(validate_session)):
        """End the caller's session; the token is rejected from then on."""
        try:
            sessions.revoke(bearer_token(request))
        except TransientError as exc:
            unwrap_or_raise(LedgerResult.failure(exc))
        return LogoutResponse(message="Logged out.")

    @api.get("/balance", response_model=BalanceResponse)
    def balance(account_id: str = Depends(validate_session)):
        return BalanceResponse(balance=unwrap_or_raise(ledger.get_balance(account_id)))

    @api.post("/pay", response_model=PayResponse)
    def pay(request: PayRequest, account_id: str = Depends(validate_session)):
        """Transfer ``amount`` from the caller to ``to_uuid``."""
        receipt = unwrap_or_raise(ledger.pay(account_id, request.to_uuid, request.amount))
        return PayResponse(new_sender_balance=receipt.new_sender_balance)

    @api.post("/deposit", response_model=DepositResponse)
    def deposit(request: DepositRequest, account_id: str = Depends(validate_session)):
        receipt = unwrap_or_raise(ledger.deposit(account_id, request.amount))
        return DepositResponse(new_balance=receipt.new_balance)

    @api.post("/withdraw", response_model=WithdrawResponse)
    def withdraw(request: WithdrawRequest, account_id: str = Depends(validate_session)):
        """Burn ``count`` bills of ``denomination`` from the caller's balance."""
        receipt = unwrap_or_raise(
            ledger.withdraw(account_id, request.count, request.denomination)
        )
        return WithdrawResponse(
            withdrawn=receipt.withdrawn,
            new_balance=receipt.new_balance,
            denomination=receipt.denomination,
            count=receipt.count,
        )

    @api.get("/top", response_model=list[TopEntry])
    def top(
        limit: int | None = Query(default=None),
        _account_id: str = Depends(validate_session),
    ):
        """Leaderboard of the richest players, balance descending."""
        accounts = unwrap_or_raise(ledger.top(limit))
        return [TopEntry(name=a.name, balance=a.balance) for a in accounts]

    @api.post("/mob-limit", response_model=MobLimitMarkResponse)
    def mark_mob_limit(account_id: str = Depends(validate_session)):
        unwrap_or_raise(ledger.mark_mob_limit(account_id))
        return MobLimitMarkResponse(message="Mob limit recorded for today.")

    @api.get("/mob-limit", response_model=MobLimitResponse)
    def check_mob_limit(account_id: str = Depends(validate_session)):
        return MobLimitResponse(limit_reached=unwrap_or_raise(ledger.check_mob_limit(account_id)))

    @api.post("/daily", response_model=DailyResponse)
    def claim_daily(account_id: str = Depends(validate_session)):
        """
        Claim the daily reward.

        Denied claims return 429 with the time left until the next reset in
        both the message and ``retry_after_seconds``.
        """
        receipt = unwrap_or_raise(ledger.claim_daily(account_id))
        return DailyResponse(message=receipt.message, new_balance=receipt.new_balance)

    @api.get("/transactions", response_model=list[TransactionResponse])
    def transactions(
        limit: int = Query(default=20),
        account_id: str = Depends(validate_session),
    ):
        """Most recent transaction records involving the caller, newest first."""
        records = unwrap_or_raise(ledger.history(account_id, limit))
        return [TransactionResponse(**record.to_dict()) for record in records]

    return api
