"""
Expense and receipt image tests.

Verifies:
- Expense create/edit/delete with category and payment type rules
- Edit checks unit scope on both the current and the target unit
- Image upload validation (mime type, size, whole batch before any write)
- Image listing, soft delete and file serving
"""

import os
from io import BytesIO

import pytest

from unitops.models import Expense, ExpenseImage, PaymentType
from unitops.services import expense_image_service, expense_service, maintenance_service
from unitops.services.unit_access_service import UnitAccessDeniedError
from unitops.validation import NotFoundError, ValidationError

from conftest import context_for


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _payload(unit, payment_type, **overrides):
    payload = {
        "unit_id": unit.id,
        "payment_type_id": payment_type.id,
        "vendor": "Metro",
        "description": "Coffee beans",
        "cost": 120.5,
        "category": "D",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def expense(db_session, staff, unit_a, cash):
    return expense_service.create_expense(context_for(staff), _payload(unit_a, cash))


def _upload(client, headers, expense_id, *files):
    return client.post(
        "/api/upload/images",
        headers=headers,
        data={"expense_id": str(expense_id), "images": list(files)},
        content_type="multipart/form-data",
    )


class TestExpenses:

    def test_create_expense(self, client, login, staff, unit_a, cash):
        resp = client.post("/api/expenses", headers=login("staff"), json=_payload(
            unit_a, cash, category="t", occurred_at="2024-06-10T08:30:00Z",
        ))
        assert resp.status_code == 201
        body = resp.json
        assert body["category"] == "T"
        assert body["category_label"] == "Fix"
        assert body["cost"] == 120.5
        assert body["occurred_at"] == "2024-06-10T08:30:00Z"
        assert body["user_id"] == staff.id
        assert body["images"] == []

    def test_occurred_at_defaults_to_now(self, expense):
        assert expense.occurred_at is not None

    @pytest.mark.parametrize("category", ["F", "X", ""])
    def test_invalid_category_is_400(self, client, login, staff, unit_a, cash, category):
        resp = client.post("/api/expenses", headers=login("staff"), json=_payload(unit_a, cash, category=category))
        assert resp.status_code == 400

    def test_cost_must_be_number(self, client, login, staff, unit_a, cash):
        resp = client.post("/api/expenses", headers=login("staff"), json=_payload(unit_a, cash, cost="lots"))
        assert resp.status_code == 400
        assert "cost" in resp.json["error"]

    def test_missing_description_is_400(self, client, login, staff, unit_a, cash):
        payload = _payload(unit_a, cash)
        del payload["description"]
        resp = client.post("/api/expenses", headers=login("staff"), json=payload)
        assert resp.status_code == 400

    def test_inactive_payment_type_is_404(self, client, db_session, login, staff, unit_a):
        voucher = PaymentType(name="Voucher", abbreviation="VO", active=False)
        db_session.add(voucher)
        db_session.commit()

        resp = client.post("/api/expenses", headers=login("staff"), json=_payload(unit_a, voucher))
        assert resp.status_code == 404

    def test_out_of_scope_unit_is_403(self, client, login, staff, unit_b, cash):
        resp = client.post("/api/expenses", headers=login("staff"), json=_payload(unit_b, cash))
        assert resp.status_code == 403

    def test_list_unit_expenses(self, client, login, unit_a, expense):
        resp = client.get(f"/api/expenses?unit_id={unit_a.id}", headers=login("staff"))
        assert resp.status_code == 200
        assert [e["id"] for e in resp.json] == [expense.id]

    def test_edit_expense(self, client, login, expense):
        resp = client.put(f"/api/expenses/{expense.id}", headers=login("staff"), json={"cost": 99, "category": "O"})
        assert resp.status_code == 200
        assert resp.json["cost"] == 99.0
        assert resp.json["category_label"] == "OOC"

    def test_move_to_unit_out_of_scope_is_forbidden(self, db_session, staff, unit_b, expense):
        with pytest.raises(UnitAccessDeniedError):
            expense_service.update_expense(context_for(staff), expense.id, {"unit_id": unit_b.id})

        db_session.expire_all()
        assert db_session.get(Expense, expense.id).unit_id != unit_b.id

    def test_edit_from_unit_out_of_scope_is_forbidden(self, db_session, make_user, unit_a, unit_b, expense):
        other = make_user("other", units=[unit_b])
        with pytest.raises(UnitAccessDeniedError):
            expense_service.update_expense(context_for(other), expense.id, {"unit_id": unit_b.id})

    def test_soft_delete(self, client, db_session, login, unit_a, expense):
        headers = login("staff")
        resp = client.delete(f"/api/expenses/{expense.id}", headers=headers)
        assert resp.status_code == 200

        row = db_session.get(Expense, expense.id)
        assert row is not None
        assert row.active is False

        resp = client.get(f"/api/expenses?unit_id={unit_a.id}", headers=headers)
        assert resp.json == []

        resp = client.delete(f"/api/expenses/{expense.id}", headers=headers)
        assert resp.status_code == 404

    def test_overview(self, client, login, unit_a, expense):
        day = expense.occurred_at.date().isoformat()
        resp = client.get(
            f"/api/expenses/overview?unit_ids={unit_a.id}&date_from={day}&date_to={day}",
            headers=login("staff"),
        )
        assert resp.status_code == 200
        assert len(resp.json) == 1

    def test_overview_requires_unit_ids(self, client, login, staff):
        resp = client.get("/api/expenses/overview?date_from=2024-06-01&date_to=2024-06-30", headers=login("staff"))
        assert resp.status_code == 400
        assert resp.json["error"] == "Unit IDs are required"

    def test_super_admin_create_for_missing_unit_is_404(self, client, db_session, login, super_admin, unit_a, cash):
        resp = client.post("/api/expenses", headers=login("root"), json=_payload(unit_a, cash, unit_id=unit_a.id + 100))
        assert resp.status_code == 404
        assert resp.json["error"] == "Unit not found"
        assert db_session.query(Expense).count() == 0

    def test_move_to_missing_unit_is_not_found(self, db_session, super_admin, unit_a, expense):
        with pytest.raises(NotFoundError):
            expense_service.update_expense(context_for(super_admin), expense.id, {"unit_id": unit_a.id + 100})

        db_session.expire_all()
        assert db_session.get(Expense, expense.id).unit_id == unit_a.id


class TestExpenseImages:

    def test_upload_list_and_serve(self, app, client, login, expense):
        headers = login("staff")
        resp = _upload(client, headers, expense.id, (BytesIO(PNG_BYTES), "receipt.png", "image/png"))
        assert resp.status_code == 201

        image = resp.json["images"][0]
        assert image["file_name"].startswith(f"expense_{expense.id}_")
        assert image["file_name"].endswith(".png")
        assert image["file_path"] == f"/api/images/{image['file_name']}"
        assert image["file_size"] == len(PNG_BYTES)
        assert os.path.isfile(os.path.join(app.config["UPLOAD_DIR"], image["file_name"]))

        resp = client.get(f"/api/expenses/{expense.id}/images", headers=headers)
        assert [i["id"] for i in resp.json] == [image["id"]]

        resp = client.get(image["file_path"], headers=headers)
        assert resp.status_code == 200
        assert resp.data == PNG_BYTES
        resp.close()

    def test_non_image_rejects_whole_batch(self, app, client, db_session, login, expense):
        before = set(os.listdir(app.config["UPLOAD_DIR"]))
        resp = _upload(
            client, login("staff"), expense.id,
            (BytesIO(PNG_BYTES), "ok.png", "image/png"),
            (BytesIO(b"%PDF-1.4"), "invoice.pdf", "application/pdf"),
        )
        assert resp.status_code == 400
        assert db_session.query(ExpenseImage).count() == 0
        assert set(os.listdir(app.config["UPLOAD_DIR"])) == before

    def test_oversized_image_is_rejected(self, client, db_session, login, expense):
        resp = _upload(client, login("staff"), expense.id, (BytesIO(b"\x00" * 2048), "huge.jpg", "image/jpeg"))
        assert resp.status_code == 400
        assert "too large" in resp.json["error"]

    def test_no_files_is_400(self, client, login, expense):
        resp = client.post(
            "/api/upload/images",
            headers=login("staff"),
            data={"expense_id": str(expense.id)},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400

    def test_missing_expense_is_404(self, client, login, staff):
        resp = _upload(client, login("staff"), 31337, (BytesIO(PNG_BYTES), "r.png", "image/png"))
        assert resp.status_code == 404

    def test_upload_to_out_of_scope_expense_is_403(self, client, make_user, login, unit_b, expense):
        make_user("other", units=[unit_b])
        resp = _upload(client, login("other"), expense.id, (BytesIO(PNG_BYTES), "r.png", "image/png"))
        assert resp.status_code == 403

    def test_soft_delete_image(self, client, db_session, login, expense):
        headers = login("staff")
        resp = _upload(client, headers, expense.id, (BytesIO(PNG_BYTES), "r.png", "image/png"))
        image_id = resp.json["images"][0]["id"]

        resp = client.delete(f"/api/expenses/{expense.id}/images/{image_id}", headers=headers)
        assert resp.status_code == 200
        assert db_session.get(ExpenseImage, image_id).active is False

        resp = client.get(f"/api/expenses/{expense.id}/images", headers=headers)
        assert resp.json == []

        resp = client.delete(f"/api/expenses/{expense.id}/images/{image_id}", headers=headers)
        assert resp.status_code == 404

    @pytest.mark.parametrize("name", ["../secret.png", "a/b.png", "a\\b.png", "", None])
    def test_unsafe_names_are_rejected(self, app, name):
        assert not expense_image_service.is_safe_file_name(name)
        if name:
            with pytest.raises(ValidationError):
                expense_image_service.resolve_image_path(name)

    def test_serving_unsafe_name_is_400(self, client, login, staff):
        resp = client.get("/api/images/bad..name.png", headers=login("staff"))
        assert resp.status_code == 400

    def test_serving_missing_file_is_404(self, client, login, staff):
        resp = client.get("/api/images/expense_1_1_missing.png", headers=login("staff"))
        assert resp.status_code == 404

    def test_resolve_missing_file(self, app):
        with pytest.raises(NotFoundError):
            expense_image_service.resolve_image_path("expense_0_0_nothing.png")

    def test_orphaned_files_cleanup(self, app, db_session, expense):
        orphan = os.path.join(app.config["UPLOAD_DIR"], "expense_0_0_orphan.png")
        with open(orphan, "wb") as fh:
            fh.write(PNG_BYTES)

        assert "expense_0_0_orphan.png" in maintenance_service.find_orphaned_image_files()
        maintenance_service.remove_orphaned_image_files()
        assert not os.path.exists(orphan)
