import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from config import get_settings
from csv_utils import csv_filename, export_expenses
from database import SessionLocal, init_db
from filters import ExpenseFilters
from models import PaymentMethod, User
from schemas import (
    AuthOut,
    BudgetIn,
    BudgetOut,
    CashUpiTotalsOut,
    CategoryTotalOut,
    DashboardOut,
    ExpenseIn,
    ExpenseOut,
    LoginIn,
    MonthlyTotalOut,
    PasswordChangeIn,
    RegisterIn,
    SummaryOut,
    TokenIn,
)
from services import (
    AuthError,
    AuthService,
    ExpenseForbidden,
    ExpenseNotFound,
    ExpenseService,
    InvalidCredentials,
    ReportService,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Expense Tracker")


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


@app.on_event("startup")
def startup_event():
    init_db()
    logger.info(f"startup: version={APP_VERSION}")


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if header and header.startswith("Bearer "):
        return header[len("Bearer ") :]
    return None


def token_from_request(request: Request) -> Optional[str]:
    return _bearer_token(request) or request.cookies.get(get_settings().auth_cookie_name)


def current_user(request: Request, db: Session = Depends(get_db)) -> User:
    try:
        return AuthService(db).resolve_user(token_from_request(request))
    except AuthError as exc:
        raise HTTPException(
            status_code=401, detail=str(exc), headers={"WWW-Authenticate": "Bearer"}
        ) from exc


def expense_http_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, ExpenseNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ExpenseForbidden):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        get_settings().auth_cookie_name,
        token,
        max_age=get_settings().token_ttl_hours * 3600,
        httponly=True,
        samesite="lax",
    )


@app.get("/health")
def health():
    return {"status": "ok", "version": APP_VERSION}


@app.post("/api/auth/register", response_model=AuthOut)
def register(data: RegisterIn, response: Response, db: Session = Depends(get_db)):
    try:
        user, token = AuthService(db).register(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    _set_auth_cookie(response, token)
    return AuthOut(
        token=token,
        username=user.username,
        email=user.email,
        message="User registered successfully",
    )


@app.post("/api/auth/login", response_model=AuthOut)
def login(data: LoginIn, response: Response, db: Session = Depends(get_db)):
    try:
        user, token = AuthService(db).login(data)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    _set_auth_cookie(response, token)
    return AuthOut(
        token=token, username=user.username, email=user.email, message="Login successful"
    )


@app.post("/api/auth/logout", status_code=204)
def logout():
    response = Response(status_code=204)
    response.delete_cookie(get_settings().auth_cookie_name)
    return response


@app.post("/api/auth/validate", response_model=AuthOut)
def validate_token(
    request: Request,
    data: Optional[TokenIn] = None,
    db: Session = Depends(get_db),
):
    token = _bearer_token(request) or (data.token if data else None)
    username = AuthService(db).validate(token)
    if username is None:
        raise HTTPException(status_code=400, detail="Invalid token")
    return AuthOut(token=token, username=username, message="Token is valid")


@app.post("/api/auth/password", status_code=204)
def change_password(
    data: PasswordChangeIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        AuthService(db).change_password(user, data)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return Response(status_code=204)


def filters_from_query(
    category: Optional[str] = None,
    payment_method: Optional[PaymentMethod] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    upi_vpa: Optional[str] = None,
    transaction_id: Optional[str] = None,
) -> ExpenseFilters:
    return ExpenseFilters(
        category=category,
        payment_method=payment_method,
        start_date=start_date,
        end_date=end_date,
        upi_vpa=upi_vpa,
        transaction_id=transaction_id,
    )


@app.get("/api/expenses", response_model=list[ExpenseOut])
def list_expenses(
    filters: ExpenseFilters = Depends(filters_from_query),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return ExpenseService(db, user).list(filters)


@app.post("/api/expenses", response_model=ExpenseOut, status_code=201)
def create_expense(
    data: ExpenseIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return ExpenseService(db, user).create(data)
    except ValueError as exc:
        raise expense_http_error(exc) from exc


@app.get("/api/expenses/summary", response_model=SummaryOut)
def expense_summary(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return SummaryOut.model_validate(ExpenseService(db, user).summary())


@app.get("/api/expenses/categories", response_model=list[str])
def expense_categories(
    user: User = Depends(current_user), db: Session = Depends(get_db)
):
    return ExpenseService(db, user).distinct_categories()


@app.get("/api/expenses/export/csv")
def export_expenses_csv(
    category: Optional[str] = None,
    payment_method: Optional[PaymentMethod] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    filters = ExpenseFilters(
        category=category,
        payment_method=payment_method,
        start_date=start_date,
        end_date=end_date,
    )
    expenses = ExpenseService(db, user).list(filters)
    csv_text = export_expenses(expenses)
    filename = csv_filename()
    logger.info(f"csv_export: user_id={user.id} rows={len(expenses)}")
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.put("/api/expenses/budget", response_model=BudgetOut)
def update_budget(
    data: BudgetIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        budget = ExpenseService(db, user).update_budget(data.budget)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return BudgetOut(budget=budget)


@app.get("/api/expenses/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: int, user: User = Depends(current_user), db: Session = Depends(get_db)
):
    try:
        return ExpenseService(db, user).get(expense_id)
    except ValueError as exc:
        raise expense_http_error(exc) from exc


@app.put("/api/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: int,
    data: ExpenseIn,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return ExpenseService(db, user).update(expense_id, data)
    except ValueError as exc:
        raise expense_http_error(exc) from exc


@app.delete("/api/expenses/{expense_id}", status_code=204)
def delete_expense(
    expense_id: int, user: User = Depends(current_user), db: Session = Depends(get_db)
):
    try:
        ExpenseService(db, user).delete(expense_id)
    except ValueError as exc:
        raise expense_http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/reports/monthly-summary", response_model=list[MonthlyTotalOut])
def report_monthly_summary(
    user: User = Depends(current_user), db: Session = Depends(get_db)
):
    return [
        MonthlyTotalOut.model_validate(row)
        for row in ReportService(db, user).monthly_summary()
    ]


@app.get("/api/reports/category-totals", response_model=list[CategoryTotalOut])
def report_category_totals(
    user: User = Depends(current_user), db: Session = Depends(get_db)
):
    return [
        CategoryTotalOut.model_validate(row)
        for row in ReportService(db, user).category_totals()
    ]


@app.get("/api/reports/payment-method-totals", response_model=dict[str, Decimal])
def report_payment_method_totals(
    user: User = Depends(current_user), db: Session = Depends(get_db)
):
    return ReportService(db, user).payment_method_totals()


@app.get(
    "/api/reports/monthly-category-summary", response_model=list[CategoryTotalOut]
)
def report_monthly_category_summary(
    year: int = Query(..., ge=1970, le=3000),
    month: int = Query(..., ge=1, le=12),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    return [
        CategoryTotalOut.model_validate(row)
        for row in ReportService(db, user).monthly_category_summary(year, month)
    ]


@app.get("/api/reports/cash-upi-totals", response_model=CashUpiTotalsOut)
def report_cash_upi_totals(
    user: User = Depends(current_user), db: Session = Depends(get_db)
):
    return CashUpiTotalsOut(**ReportService(db, user).cash_upi_totals())


@app.get("/api/reports/dashboard", response_model=DashboardOut)
def report_dashboard(user: User = Depends(current_user), db: Session = Depends(get_db)):
    data = ReportService(db, user).dashboard()
    return DashboardOut(
        summary=SummaryOut.model_validate(data["summary"]),
        monthly_summary=[
            MonthlyTotalOut.model_validate(row) for row in data["monthly_summary"]
        ],
        category_totals=[
            CategoryTotalOut.model_validate(row) for row in data["category_totals"]
        ],
        payment_method_totals=data["payment_method_totals"],
        cash_upi_totals=CashUpiTotalsOut(**data["cash_upi_totals"]),
    )


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
