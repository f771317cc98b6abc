import asyncio
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .exceptions import (
    AlreadyAuthenticatedError,
    BelowMinimumError,
    InsufficientBalanceError,
    InvalidTransitionError,
    LedgerError,
    LedgerValidationError,
    NotAuthenticatedError,
    ReferralNotFoundError,
)
from .fixtures import FixtureProvider
from .log import configure_logging, get_logger
from .models import (
    AddReferralRequest,
    LedgerStats,
    OtpChallenge,
    OtpRequest,
    OtpVerifyRequest,
    Referral,
    ReferralInvite,
    ReferralStatus,
    ReferralStatusUpdate,
    Session,
    Transaction,
    TransactionType,
    User,
    WithdrawalOptions,
    WithdrawalRequest,
)
from .session import SessionGateway
from .store import LedgerStore


logger = get_logger(__name__)

STATUS_BY_ERROR_CODE = {
    LedgerValidationError.code: status.HTTP_422_UNPROCESSABLE_CONTENT,
    InvalidTransitionError.code: status.HTTP_409_CONFLICT,
    BelowMinimumError.code: status.HTTP_400_BAD_REQUEST,
    InsufficientBalanceError.code: status.HTTP_400_BAD_REQUEST,
    ReferralNotFoundError.code: status.HTTP_404_NOT_FOUND,
    AlreadyAuthenticatedError.code: status.HTTP_409_CONFLICT,
    NotAuthenticatedError.code: status.HTTP_401_UNAUTHORIZED,
}


def _error_response(status_code: int, message: str, code: str, details: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "code": code, "details": details or {}}},
    )


async def ledger_exception_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = STATUS_BY_ERROR_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST)
    return _error_response(status_code, exc.message, exc.code)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_CONTENT,
        "Validation error",
        LedgerValidationError.code,
        {"errors": errors},
    )


def get_store(request: Request) -> LedgerStore:
    return request.app.state.store


def get_gateway(request: Request) -> SessionGateway:
    return request.app.state.gateway


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def simulate_latency(seconds: float) -> None:
    if seconds > 0:
        await asyncio.sleep(seconds)


# Mutating handlers are async so they run on the event loop one at a time.
router = APIRouter()


@router.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "rewards-ledger"}


@router.post("/session/otp", response_model=OtpChallenge, tags=["Session"])
async def request_otp(
    request: OtpRequest,
    gateway: SessionGateway = Depends(get_gateway),
    settings: Settings = Depends(get_app_settings),
) -> OtpChallenge:
    await simulate_latency(settings.otp_send_delay)
    return gateway.request_otp(request.phone)


@router.post("/session/verify", response_model=Session, status_code=status.HTTP_201_CREATED, tags=["Session"])
async def verify_otp(
    request: OtpVerifyRequest,
    gateway: SessionGateway = Depends(get_gateway),
    settings: Settings = Depends(get_app_settings),
) -> Session:
    await simulate_latency(settings.otp_verify_delay)
    return gateway.verify_otp(request.phone, request.code)


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT, tags=["Session"])
async def logout(gateway: SessionGateway = Depends(get_gateway)) -> None:
    gateway.logout()


@router.get("/profile", response_model=User, tags=["Profile"])
def get_profile(store: LedgerStore = Depends(get_store)) -> User:
    if store.user is None:
        raise NotAuthenticatedError("No active session")
    return store.user


@router.patch("/profile", response_model=User, tags=["Profile"])
async def update_profile(
    changes: dict[str, Any] = Body(...),
    store: LedgerStore = Depends(get_store),
) -> User:
    return store.update_profile(changes)


@router.get("/referrals", response_model=list[Referral], tags=["Referrals"])
def list_referrals(
    search: str = "",
    status_filter: Optional[ReferralStatus] = Query(default=None, alias="status"),
    store: LedgerStore = Depends(get_store),
) -> list[Referral]:
    return store.search_referrals(search, status_filter)


@router.get("/referrals/recent", response_model=list[Referral], tags=["Referrals"])
def recent_referrals(limit: int = Query(default=5, ge=0), store: LedgerStore = Depends(get_store)) -> list[Referral]:
    return store.recent_referrals(limit)


@router.get("/referrals/{referral_id}", response_model=Referral, tags=["Referrals"])
def get_referral(referral_id: str, store: LedgerStore = Depends(get_store)) -> Referral:
    return store.get_referral(referral_id)


@router.post("/referrals", response_model=Referral, status_code=status.HTTP_201_CREATED, tags=["Referrals"])
async def add_referral(
    request: AddReferralRequest,
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Referral:
    await simulate_latency(settings.referral_submit_delay)
    return store.add_referral(request.customer_name, request.customer_phone, request.location)


@router.post("/referrals/{referral_id}/status", response_model=Referral, tags=["Referrals"])
async def advance_referral_status(
    referral_id: str,
    request: ReferralStatusUpdate,
    store: LedgerStore = Depends(get_store),
) -> Referral:
    return store.advance_referral_status(referral_id, request.status)


@router.get("/transactions", response_model=list[Transaction], tags=["Transactions"])
def list_transactions(
    transaction_type: Optional[TransactionType] = Query(default=None, alias="type"),
    store: LedgerStore = Depends(get_store),
) -> list[Transaction]:
    return store.filter_transactions(transaction_type)


@router.post("/withdrawals", response_model=Transaction, status_code=status.HTTP_201_CREATED, tags=["Transactions"])
async def request_withdrawal(
    request: WithdrawalRequest,
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Transaction:
    await simulate_latency(settings.withdrawal_delay)
    return store.request_withdrawal(request.amount, request.upi_id)


@router.get("/withdrawals/options", response_model=WithdrawalOptions, tags=["Transactions"])
def withdrawal_options(store: LedgerStore = Depends(get_store)) -> WithdrawalOptions:
    return store.withdrawal_options()


@router.get("/stats", response_model=LedgerStats, tags=["Dashboard"])
def derived_stats(store: LedgerStore = Depends(get_store)) -> LedgerStats:
    return store.derived_stats()


@router.get("/invite", response_model=ReferralInvite, tags=["Dashboard"])
def referral_invite(store: LedgerStore = Depends(get_store)) -> ReferralInvite:
    return store.referral_invite()


def create_app(
    settings: Optional[Settings] = None,
    fixtures: Optional[FixtureProvider] = None,
    store: Optional[LedgerStore] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.debug)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Referral and points ledger with a mocked OTP session",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LedgerError, ledger_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    store = store or LedgerStore(settings)
    app.state.settings = settings
    app.state.store = store
    app.state.gateway = SessionGateway(store, fixtures, settings)
    app.include_router(router)
    logger.info("app_created", app_name=settings.app_name)
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("rewards.api:create_app", factory=True, host="0.0.0.0", port=8000)
