from fastapi.testclient import TestClient

from app.database import SessionLocal
from app.models.audit_log import AuditLog
from app.models.expense import Expense
from app.services import expense_service

from app.main import app

client = TestClient(app)


def _auth_headers(company_id: int, user_id: str = "admin-1", role: str = "admin") -> dict:
    r = client.post("/auth/token", json={"user_id": user_id, "company_id": company_id, "role": role})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]
    return {"X-Company-Id": str(company_id), "Authorization": f"Bearer {token}"}


def _load(expense_id: str) -> Expense:
    db = SessionLocal()
    try:
        return db.query(Expense).filter(Expense.id == expense_id).one()
    finally:
        db.close()


def _audit_rows(company_id: int) -> list[AuditLog]:
    db = SessionLocal()
    try:
        return db.query(AuditLog).filter(AuditLog.company_id == company_id).order_by(AuditLog.id.asc()).all()
    finally:
        db.close()


def test_approve_finalizes_and_audits_each_expense(company_id, expense_factory):
    a = expense_factory(company_id, "emp-1", approval_status="submitted")
    b = expense_factory(company_id, "emp-2", approval_status="submitted")
    draft = expense_factory(company_id, "emp-1")

    count = expense_service.approve_expenses(company_id, "admin-1", [a.id, b.id, draft.id])

    assert count == 2
    for expense_id in (a.id, b.id):
        reloaded = _load(expense_id)
        assert reloaded.approval_status == "approved"
        assert reloaded.is_finalized is True
        assert reloaded.finalized_at is not None
        assert reloaded.approved_by == "admin-1"
    assert _load(draft.id).approval_status == "draft"

    rows = _audit_rows(company_id)
    assert sorted(r.entity_id for r in rows) == sorted([a.id, b.id])
    assert all(r.entity_type == "Expense" and r.action == "APPROVE" for r in rows)


def test_finalized_expense_is_not_rejected_afterwards(company_id, expense_factory):
    expense = expense_factory(company_id, "emp-1", approval_status="submitted")
    expense_service.approve_expenses(company_id, "admin-1", [expense.id])

    assert expense_service.reject_expenses(company_id, "admin-1", [expense.id], "late") == 0
    assert _load(expense.id).approval_status == "approved"


def test_reject_reason_is_optional_and_stored(company_id, expense_factory):
    with_reason = expense_factory(company_id, "emp-1", approval_status="submitted")
    without_reason = expense_factory(company_id, "emp-1", approval_status="submitted")

    assert expense_service.reject_expenses(company_id, "admin-1", [with_reason.id], "No receipt") == 1
    assert expense_service.reject_expenses(company_id, "admin-1", [without_reason.id]) == 1

    assert _load(with_reason.id).rejection_reason == "No receipt"
    assert _load(without_reason.id).rejection_reason is None
    assert _load(without_reason.id).approval_status == "rejected"


def test_owner_submits_only_own_drafts(company_id, expense_factory):
    mine = expense_factory(company_id, "emp-1")
    theirs = expense_factory(company_id, "emp-2")

    assert expense_service.submit_expenses(company_id, "emp-1", [mine.id, theirs.id]) == 1
    assert _load(mine.id).approval_status == "submitted"
    assert _load(mine.id).submitted_at is not None
    assert _load(mine.id).submitted_by == "emp-1"
    assert _load(theirs.id).approval_status == "draft"
    assert _load(theirs.id).submitted_by is None


def test_approve_api_counts_and_empty_selection(company_id, expense_factory):
    expense = expense_factory(company_id, "emp-1", approval_status="submitted")
    headers = _auth_headers(company_id)

    queue = client.get("/admin/expense_approvals", headers=headers).json()
    assert queue[0]["user_id"] == "emp-1"
    assert [e["id"] for e in queue[0]["expenses"]] == [expense.id]

    r = client.post("/admin/expense_approvals/approve", json={"expense_ids": [expense.id]}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"count": 1}

    empty = client.post("/admin/expense_approvals/approve", json={"expense_ids": []}, headers=headers)
    assert empty.status_code == 422


def test_employee_cannot_approve_expenses(company_id, expense_factory):
    expense = expense_factory(company_id, "emp-1", approval_status="submitted")

    r = client.post(
        "/admin/expense_approvals/approve",
        json={"expense_ids": [expense.id]},
        headers=_auth_headers(company_id, user_id="emp-1", role="employee"),
    )

    assert r.status_code == 403
    assert _load(expense.id).approval_status == "submitted"


def test_expense_lifecycle_and_history_via_api(company_id):
    employee = _auth_headers(company_id, user_id="emp-1", role="employee")
    admin = _auth_headers(company_id)

    created = client.post(
        "/expenses",
        json={"date": "2024-03-04", "amount": "120.50", "currency": "eur", "description": "Taxi", "category": "travel"},
        headers=employee,
    )
    assert created.status_code == 201, created.text
    expense = created.json()
    assert expense["currency"] == "EUR"
    assert expense["approval_status"] == "draft"

    submitted = client.post("/expenses/submit", json={"expense_ids": [expense["id"]]}, headers=employee)
    assert submitted.json() == {"count": 1}

    rejected = client.post(
        "/admin/expense_approvals/reject",
        json={"expense_ids": [expense["id"]], "reason": "Wrong project"},
        headers=admin,
    )
    assert rejected.json() == {"count": 1}

    # rejected expenses can still be corrected by their owner
    edited = client.patch(f"/expenses/{expense['id']}", json={"amount": "99.00"}, headers=employee)
    assert edited.status_code == 200, edited.text
    assert edited.json()["amount"] == 99.0
    assert edited.json()["submitted_by"] == "emp-1"

    history = client.get(f"/expenses/{expense['id']}/history", headers=employee)
    assert history.status_code == 200
    assert [h["action"] for h in history.json()] == ["REJECT", "SUBMIT"]

    assert client.get("/expenses/missing/history", headers=employee).status_code == 404


def test_unknown_expense_category_is_422(company_id):
    r = client.post(
        "/expenses",
        json={"date": "2024-03-04", "amount": "10", "description": "x", "category": "rent"},
        headers=_auth_headers(company_id, user_id="emp-1", role="employee"),
    )
    assert r.status_code == 422


def test_expense_options_lists_categories_and_currencies(company_id):
    r = client.get("/expenses/options", headers=_auth_headers(company_id, user_id="emp-1", role="employee"))

    assert r.status_code == 200
    body = r.json()
    assert body["project_categories"] == ["travel", "materials", "software", "meals", "other"]
    assert "salaries" in body["company_categories"]
    assert body["currencies"] == ["DKK", "USD", "EUR", "GBP", "SEK", "NOK"]
