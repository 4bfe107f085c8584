import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from main import app, get_db


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def register(client: TestClient, username: str) -> dict[str, str]:
    response = client.post(
        "/api/auth/register",
        json={
            "username": username,
            "email": f"{username}@example.com",
            "password": "secret123",
        },
    )
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['token']}"}


CASH_FOOD = {
    "amount": "50.00",
    "category": "Food",
    "expense_date": "2024-01-15",
    "payment_method": "CASH",
}
UPI_TRAVEL = {
    "amount": "100.00",
    "category": "Travel",
    "expense_date": "2024-01-20",
    "payment_method": "UPI",
    "upi_vpa": "alice@okbank",
    "transaction_id": "TXN-1",
}


def test_requests_without_token_are_unauthorized(client: TestClient) -> None:
    assert client.get("/api/expenses").status_code == 401
    response = client.get(
        "/api/expenses", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401
    assert "not-a-token" not in response.text


def test_create_list_and_summarize(client: TestClient) -> None:
    headers = register(client, "alice")

    created = client.post("/api/expenses", json=CASH_FOOD, headers=headers)
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["cash_amount"] == "50.00"
    assert body["upi_amount"] == "0.00"

    assert client.post("/api/expenses", json=UPI_TRAVEL, headers=headers).status_code == 201

    listed = client.get("/api/expenses", headers=headers).json()
    assert [e["category"] for e in listed] == ["Travel", "Food"]

    filtered = client.get(
        "/api/expenses", params={"category": "Food"}, headers=headers
    ).json()
    assert [e["id"] for e in filtered] == [body["id"]]

    summary = client.get("/api/expenses/summary", headers=headers).json()
    assert summary["total_amount"] == "150.00"
    assert summary["total_cash_amount"] == "50.00"
    assert summary["total_upi_amount"] == "100.00"
    assert summary["total_transactions"] == 2
    assert summary["category_totals"] == {"Food": "50.00", "Travel": "100.00"}

    categories = client.get("/api/expenses/categories", headers=headers).json()
    assert categories == ["Food", "Travel"]


def test_validation_errors_are_bad_requests(client: TestClient) -> None:
    headers = register(client, "alice")
    payload = dict(UPI_TRAVEL, transaction_id="")

    response = client.post("/api/expenses", json=payload, headers=headers)

    assert response.status_code == 400
    assert "Transaction ID" in response.json()["detail"]


def test_other_users_expense_is_forbidden(client: TestClient) -> None:
    alice = register(client, "alice")
    bob = register(client, "bob")
    expense_id = client.post("/api/expenses", json=CASH_FOOD, headers=alice).json()["id"]

    assert client.get(f"/api/expenses/{expense_id}", headers=bob).status_code == 403
    assert (
        client.put(
            f"/api/expenses/{expense_id}", json=UPI_TRAVEL, headers=bob
        ).status_code
        == 403
    )
    assert client.delete(f"/api/expenses/{expense_id}", headers=bob).status_code == 403

    unchanged = client.get(f"/api/expenses/{expense_id}", headers=alice).json()
    assert unchanged["category"] == "Food"
    assert client.get("/api/expenses/9999", headers=alice).status_code == 404


def test_update_and_delete(client: TestClient) -> None:
    headers = register(client, "alice")
    expense_id = client.post("/api/expenses", json=CASH_FOOD, headers=headers).json()["id"]

    updated = client.put(f"/api/expenses/{expense_id}", json=UPI_TRAVEL, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["upi_amount"] == "100.00"
    assert updated.json()["cash_amount"] == "0.00"

    assert client.delete(f"/api/expenses/{expense_id}", headers=headers).status_code == 204
    assert client.get(f"/api/expenses/{expense_id}", headers=headers).status_code == 404


def test_budget_update_and_negative_rejection(client: TestClient) -> None:
    headers = register(client, "alice")
    client.post("/api/expenses", json=CASH_FOOD, headers=headers)

    ok = client.put("/api/expenses/budget", json={"budget": "80.00"}, headers=headers)
    assert ok.status_code == 200
    assert ok.json() == {"budget": "80.00"}

    rejected = client.put(
        "/api/expenses/budget", json={"budget": "-5.00"}, headers=headers
    )
    assert rejected.status_code == 400

    too_large = client.put(
        "/api/expenses/budget", json={"budget": "1e17"}, headers=headers
    )
    assert too_large.status_code == 400
    huge_expense = client.post(
        "/api/expenses", json=dict(CASH_FOOD, amount="1e17"), headers=headers
    )
    assert huge_expense.status_code == 400

    summary = client.get("/api/expenses/summary", headers=headers).json()
    assert summary["budget"] == "80.00"
    assert summary["remaining_budget"] == "30.00"


def test_cookie_token_is_accepted(client: TestClient) -> None:
    response = client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@example.com", "password": "secret123"},
    )
    token = response.json()["token"]
    client.cookies.clear()
    client.cookies.set("authToken", token)

    assert client.get("/api/expenses").status_code == 200


def test_login_and_validate(client: TestClient) -> None:
    register(client, "alice")

    login = client.post(
        "/api/auth/login", json={"username": "alice", "password": "secret123"}
    )
    assert login.status_code == 200
    token = login.json()["token"]

    valid = client.post("/api/auth/validate", json={"token": token})
    assert valid.json()["username"] == "alice"
    assert client.post("/api/auth/validate", json={"token": "x"}).status_code == 400

    bad = client.post("/api/auth/login", json={"username": "alice", "password": "nope"})
    assert bad.status_code == 401


def test_validate_accepts_bearer_header(client: TestClient) -> None:
    headers = register(client, "alice")

    valid = client.post("/api/auth/validate", headers=headers)
    assert valid.status_code == 200
    assert valid.json()["username"] == "alice"

    assert client.post("/api/auth/validate").status_code == 400
    rejected = client.post(
        "/api/auth/validate", headers={"Authorization": "Bearer not-a-token"}
    )
    assert rejected.status_code == 400


def test_logout_clears_auth_cookie(client: TestClient) -> None:
    client.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@example.com", "password": "secret123"},
    )
    assert client.get("/api/expenses").status_code == 200

    response = client.post("/api/auth/logout")

    assert response.status_code == 204
    assert "authToken" in response.headers["set-cookie"]
    client.cookies.clear()
    assert client.get("/api/expenses").status_code == 401


def test_csv_export_and_reports(client: TestClient) -> None:
    headers = register(client, "alice")
    client.post("/api/expenses", json=CASH_FOOD, headers=headers)
    client.post("/api/expenses", json=UPI_TRAVEL, headers=headers)

    export = client.get(
        "/api/expenses/export/csv", params={"payment_method": "UPI"}, headers=headers
    )
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "attachment" in export.headers["content-disposition"]
    lines = export.text.strip().splitlines()
    assert len(lines) == 2
    assert "Travel" in lines[1]

    monthly = client.get("/api/reports/monthly-summary", headers=headers).json()
    assert monthly == [
        {"year": 2024, "month": 1, "total_amount": "150.00", "transaction_count": 2}
    ]

    split = client.get("/api/reports/cash-upi-totals", headers=headers).json()
    assert split == {"total_cash": "50.00", "total_upi": "100.00"}

    by_month = client.get(
        "/api/reports/monthly-category-summary",
        params={"year": 2024, "month": 1},
        headers=headers,
    ).json()
    assert {row["category"] for row in by_month} == {"Food", "Travel"}

    dashboard = client.get("/api/reports/dashboard", headers=headers).json()
    assert dashboard["summary"]["total_transactions"] == 2
    assert dashboard["payment_method_totals"] == {"Cash": "50.00", "UPI": "100.00"}
