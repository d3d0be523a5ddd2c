import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from amounts import from_cents
from config import get_settings
from database import SessionLocal
from models import TransactionType
from periods import Period, resolve_period
from schemas import (
    AuthOut,
    CategoryBucketOut,
    LoginIn,
    MonthBucketOut,
    RegisterIn,
    StatisticsOut,
    TransactionIn,
    TransactionOut,
)
from security import resolve_identity
from services import (
    AuthResult,
    AuthService,
    DuplicateUser,
    InvalidCredentials,
    StatisticsService,
    TransactionFilters,
    TransactionNotFound,
    TransactionService,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Tracker")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["Authorization", "Content-Type"],
)

bearer_scheme = HTTPBearer(auto_error=False)


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> str:
    token = credentials.credentials if credentials else None
    user_id = resolve_identity(token)
    if user_id is None or AuthService(db).get_user(user_id) is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"database_error: path={request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def period_from_request(request: Request) -> Period:
    try:
        return resolve_period(
            request.query_params.get("period"),
            request.query_params.get("start"),
            request.query_params.get("end"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def filters_from_request(request: Request) -> TransactionFilters:
    type_param = request.query_params.get("type")
    txn_type = None
    if type_param:
        try:
            txn_type = TransactionType(type_param)
        except ValueError as exc:
            raise HTTPException(
                status_code=400, detail=f"Unknown transaction type: {type_param}"
            ) from exc
    return TransactionFilters(
        type=txn_type,
        category=request.query_params.get("category") or None,
        query=request.query_params.get("q") or None,
    )


def _int_param(request: Request, name: str) -> Optional[int]:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{name} must be an integer") from exc
    if value < 0:
        raise HTTPException(status_code=400, detail=f"{name} must not be negative")
    return value


def _auth_response(result: AuthResult) -> AuthOut:
    user = result.user
    return AuthOut(
        token=result.token.token,
        expiration=result.token.expires_at,
        user_id=user.id,
        user_email=user.email,
        user_name=user.username,
        first_name=user.first_name or "",
        last_name=user.last_name or "",
    )


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.post("/auth/register", response_model=AuthOut)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    try:
        result = AuthService(db).register(payload)
    except DuplicateUser as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _auth_response(result)


@app.post("/auth/login", response_model=AuthOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    try:
        result = AuthService(db).login(payload)
    except InvalidCredentials as exc:
        raise HTTPException(
            status_code=401,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    return _auth_response(result)


@app.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    request: Request,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    period = period_from_request(request)
    filters = filters_from_request(request)
    limit = _int_param(request, "limit")
    offset = _int_param(request, "offset") or 0
    items = TransactionService(db, user_id).list(
        period, filters, limit=limit, offset=offset
    )
    return [TransactionOut.from_model(txn) for txn in items]


@app.get("/transactions/statistics", response_model=StatisticsOut)
def transaction_statistics(
    request: Request,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    period = period_from_request(request)
    summary = StatisticsService(db, user_id).summary(period)
    return StatisticsOut(
        total_income=from_cents(summary.total_income_cents),
        total_expenses=from_cents(summary.total_expenses_cents),
        balance=from_cents(summary.balance_cents),
        transaction_count=summary.transaction_count,
    )


@app.get(
    "/transactions/statistics/categories", response_model=list[CategoryBucketOut]
)
def transaction_statistics_by_category(
    request: Request,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    period = period_from_request(request)
    buckets = StatisticsService(db, user_id).by_category(period)
    return [
        CategoryBucketOut(
            category=bucket.category,
            total=from_cents(bucket.total_cents),
            percentage=bucket.percentage,
        )
        for bucket in buckets
    ]


@app.get("/transactions/statistics/monthly", response_model=list[MonthBucketOut])
def transaction_statistics_by_month(
    request: Request,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    period = period_from_request(request)
    buckets = StatisticsService(db, user_id).by_month(period)
    return [
        MonthBucketOut(
            month=bucket.month,
            income=from_cents(bucket.income_cents),
            expenses=from_cents(bucket.expense_cents),
            net=from_cents(bucket.net_cents),
        )
        for bucket in buckets
    ]


@app.get("/transactions/categories", response_model=list[str])
def transaction_categories(
    request: Request,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    service = TransactionService(db, user_id)
    query = request.query_params.get("q")
    if query:
        return service.suggest_categories(query)
    return service.categories()


@app.get("/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user_id).get(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return TransactionOut.from_model(txn)


@app.post("/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(
    payload: TransactionIn,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    txn = TransactionService(db, user_id).create(payload)
    return TransactionOut.from_model(txn)


@app.put("/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    payload: TransactionIn,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user_id).update(transaction_id, payload)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return TransactionOut.from_model(txn)


@app.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    try:
        TransactionService(db, user_id).delete(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
