import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import AuthContext, TokenService, authenticate, parse_bearer
from config import get_settings
from database import SessionLocal, session_scope
from errors import AppError, InternalError, ValidationError
from periods import resolve_month
from schemas import (
    AuthOut,
    CategoryIn,
    CategoryOut,
    ChangePasswordIn,
    DashboardOut,
    Envelope,
    GoalIn,
    GoalOut,
    HealthOut,
    HistoryOut,
    LoginIn,
    ProfileUpdateIn,
    SignupIn,
    TopCategoryOut,
    TransactionIn,
    TransactionOut,
    TransactionUpdateIn,
    UserOut,
)
from services import (
    AccountService,
    AuthResult,
    CategoryService,
    DashboardService,
    DashboardView,
    GoalService,
    HistoryService,
    TransactionService,
    ensure_default_categories,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


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

app = FastAPI(title="BudgetWise API", version=APP_VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

token_service = TokenService(settings)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_service() -> TokenService:
    return token_service


def get_auth_context(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthContext:
    return authenticate(db, tokens, parse_bearer(authorization))


@app.on_event("startup")
def startup_event():
    with session_scope() as session:
        ensure_default_categories(session)
    logger.info(f"startup: version={APP_VERSION}")


# Error envelopes


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message}
    )


def _internal_error() -> JSONResponse:
    err = InternalError("Internal server error")
    return _error_response(err.status_code, err.message)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"request_failed: path={request.url.path} error={exc.message} context={exc.context}"
        )
    else:
        logger.info(
            f"request_rejected: path={request.url.path} status={exc.status_code} error={exc.message}"
        )
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())[1:])
        details.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _error_response(400, f"Validation Error: {', '.join(details)}")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(f"database_error: path={request.url.path}")
    return _internal_error()


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"unhandled_error: path={request.url.path}")
    return _internal_error()


def envelope(data=None, message: Optional[str] = None) -> Envelope:
    return Envelope(success=True, data=data, message=message)


def month_from_query(month: Optional[str]) -> str:
    try:
        return resolve_month(month, settings.timezone)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def auth_out(result: AuthResult) -> AuthOut:
    return AuthOut(user=UserOut.model_validate(result.account), token=result.token)


def dashboard_out(view: DashboardView) -> DashboardOut:
    summary = view.summary
    return DashboardOut(
        month=view.month,
        monthly_goal=GoalOut.model_validate(view.goal) if view.goal else None,
        transactions=[TransactionOut.model_validate(t) for t in view.transactions],
        total_income=summary.total_income,
        total_expenses=summary.total_expenses,
        actual_savings=summary.actual_savings,
        total_expected_expenses=summary.total_expected_expenses,
        expected_savings=summary.expected_savings,
        category_totals=summary.category_totals,
        top_categories=[
            TopCategoryOut(
                category_name=share.category_name,
                amount=share.amount,
                percentage=share.percentage,
            )
            for share in summary.top_categories
        ],
        monthly_progress=summary.monthly_progress,
    )


@app.get("/health", response_model=HealthOut)
def health() -> HealthOut:
    return HealthOut(status="ok", version=APP_VERSION)


# Auth


@app.post(
    "/auth/signup",
    status_code=201,
    response_model=Envelope[AuthOut],
    response_model_exclude_none=True,
)
def signup(
    payload: SignupIn,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    result = AccountService(db, tokens).signup(payload)
    return envelope(auth_out(result), "User created successfully")


@app.post(
    "/auth/login", response_model=Envelope[AuthOut], response_model_exclude_none=True
)
def login(
    payload: LoginIn,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    result = AccountService(db, tokens).login(payload.email, payload.password)
    return envelope(auth_out(result), "Login successful")


@app.get(
    "/auth/profile", response_model=Envelope[UserOut], response_model_exclude_none=True
)
def auth_profile(
    ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)
):
    account = AccountService(db).get(ctx.account_id)
    return envelope(UserOut.model_validate(account), "Profile retrieved successfully")


@app.post(
    "/auth/change-password",
    response_model=Envelope[None],
    response_model_exclude_none=True,
)
def change_password(
    payload: ChangePasswordIn,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    AccountService(db).change_password(
        ctx.account_id, payload.current_password, payload.new_password
    )
    return envelope(message="Password changed successfully")


@app.post(
    "/auth/logout", response_model=Envelope[None], response_model_exclude_none=True
)
def logout(ctx: AuthContext = Depends(get_auth_context)):
    logger.info(f"logout: account_id={ctx.account_id}")
    return envelope(message="Logout successful")


# User profile


@app.get(
    "/user/profile", response_model=Envelope[UserOut], response_model_exclude_none=True
)
def get_user_profile(
    ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)
):
    account = AccountService(db).get(ctx.account_id)
    return envelope(UserOut.model_validate(account), "Profile retrieved successfully")


@app.put(
    "/user/profile", response_model=Envelope[UserOut], response_model_exclude_none=True
)
def update_user_profile(
    payload: ProfileUpdateIn,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    account = AccountService(db).update_profile(ctx.account_id, payload)
    return envelope(UserOut.model_validate(account), "Profile updated successfully")


# Budget


@app.get(
    "/budget/dashboard",
    response_model=Envelope[DashboardOut],
    response_model_exclude_none=True,
)
def dashboard(
    month: Optional[str] = Query(None),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    view = DashboardService(db, ctx.account_id).for_month(month_from_query(month))
    return envelope(dashboard_out(view), "Dashboard summary retrieved successfully")


@app.get(
    "/budget/goals", response_model=Envelope[GoalOut], response_model_exclude_none=True
)
def get_goal(
    month: Optional[str] = Query(None),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    goal = GoalService(db, ctx.account_id).get_for_month(month_from_query(month))
    if goal is None:
        return envelope(message="No monthly goal found")
    return envelope(GoalOut.model_validate(goal), "Monthly goal retrieved successfully")


@app.post(
    "/budget/goals",
    status_code=201,
    response_model=Envelope[GoalOut],
    response_model_exclude_none=True,
)
def upsert_goal(
    payload: GoalIn,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    goal = GoalService(db, ctx.account_id).upsert(payload)
    return envelope(GoalOut.model_validate(goal), "Monthly goal created successfully")


@app.get(
    "/budget/transactions",
    response_model=Envelope[list[TransactionOut]],
    response_model_exclude_none=True,
)
def list_transactions(
    month: Optional[str] = Query(None),
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    items = TransactionService(db, ctx.account_id).list_for_month(
        month_from_query(month)
    )
    return envelope(
        [TransactionOut.model_validate(t) for t in items],
        "Transactions retrieved successfully",
    )


@app.post(
    "/budget/transactions",
    status_code=201,
    response_model=Envelope[TransactionOut],
    response_model_exclude_none=True,
)
def create_transaction(
    payload: TransactionIn,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    txn = TransactionService(db, ctx.account_id).create(payload)
    return envelope(
        TransactionOut.model_validate(txn), "Transaction created successfully"
    )


@app.put(
    "/budget/transactions/{transaction_id}",
    response_model=Envelope[TransactionOut],
    response_model_exclude_none=True,
)
def update_transaction(
    transaction_id: str,
    payload: TransactionUpdateIn,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    txn = TransactionService(db, ctx.account_id).update(transaction_id, payload)
    return envelope(
        TransactionOut.model_validate(txn), "Transaction updated successfully"
    )


@app.get(
    "/budget/history",
    response_model=Envelope[list[HistoryOut]],
    response_model_exclude_none=True,
)
def monthly_history(
    ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)
):
    rows = HistoryService(db, ctx.account_id).list_all()
    return envelope(
        [HistoryOut.model_validate(row) for row in rows],
        "Monthly history retrieved successfully",
    )


@app.get(
    "/budget/categories",
    response_model=Envelope[list[CategoryOut]],
    response_model_exclude_none=True,
)
def list_categories(
    ctx: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)
):
    categories = CategoryService(db, ctx.account_id).list_visible()
    return envelope(
        [CategoryOut.model_validate(c) for c in categories],
        "Categories retrieved successfully",
    )


@app.post(
    "/budget/categories",
    status_code=201,
    response_model=Envelope[CategoryOut],
    response_model_exclude_none=True,
)
def create_category(
    payload: CategoryIn,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    category = CategoryService(db, ctx.account_id).create(payload)
    return envelope(CategoryOut.model_validate(category), "Category created successfully")


@app.delete(
    "/budget/categories/{category_id}",
    response_model=Envelope[None],
    response_model_exclude_none=True,
)
def delete_category(
    category_id: str,
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    CategoryService(db, ctx.account_id).delete(category_id)
    return envelope(message="Category deleted successfully")
