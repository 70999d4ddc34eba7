"""
Sales lifecycle tests.

Verifies:
- Sale creation copies the product snapshot
- Open sales can be edited, confirmed sales cannot
- Batch confirm is all-or-nothing
- Unlock reopens a confirmed sale and nothing else
"""

import pytest

from unitops.models import Product, Sale, SecurityEvent
from unitops.services import sales_service
from unitops.validation import InvalidStateError, NotFoundError, ValidationError

from conftest import context_for


@pytest.fixture
def open_sales(db_session, staff, unit_a, product_a, cash):
    ctx = context_for(staff)
    return [
        sales_service.create_sale(ctx, {
            "unit_id": unit_a.id,
            "product_id": product_a.id,
            "amount": amount,
            "payment_type_id": cash.id,
        })
        for amount in (1, 2, 3)
    ]


class TestCreateSale:

    def test_create_copies_product_snapshot(self, client, db_session, login, staff, unit_a, product_a, cash):
        resp = client.post("/api/sales", headers=login("staff"), json={
            "unit_id": unit_a.id,
            "product_id": product_a.id,
            "amount": 3,
            "payment_type_id": cash.id,
        })
        assert resp.status_code == 201
        body = resp.json
        assert body["product_name"] == "Espresso"
        assert body["sell_price"] == 10.0
        assert body["margin_perc"] == 40.0
        assert body["total"] == 30.0
        assert body["confirmed"] is False
        assert body["user_id"] == staff.id
        assert body["payment_type"]["name"] == "Cash"

        # Editing the product later does not touch the sale
        product = db_session.get(Product, product_a.id)
        product.sell_price = 99.0
        product.name = "Double Espresso"
        db_session.commit()

        sale = db_session.get(Sale, body["id"])
        assert sale.sell_price == 10.0
        assert sale.product_name == "Espresso"

    def test_product_of_another_unit_is_not_found(self, db_session, make_user, unit_a, unit_b, product_a, cash):
        user = make_user("both", units=[unit_a, unit_b])
        with pytest.raises(NotFoundError):
            sales_service.create_sale(context_for(user), {
                "unit_id": unit_b.id,
                "product_id": product_a.id,
                "amount": 1,
                "payment_type_id": cash.id,
            })

    def test_inactive_product_is_not_found(self, db_session, staff, unit_a, product_a, cash):
        product_a.active = False
        db_session.commit()
        with pytest.raises(NotFoundError):
            sales_service.create_sale(context_for(staff), {
                "unit_id": unit_a.id,
                "product_id": product_a.id,
                "amount": 1,
                "payment_type_id": cash.id,
            })

    @pytest.mark.parametrize("amount", [0, -2, "three", 1.5])
    def test_amount_must_be_positive_integer(self, db_session, staff, unit_a, product_a, cash, amount):
        with pytest.raises(ValidationError):
            sales_service.create_sale(context_for(staff), {
                "unit_id": unit_a.id,
                "product_id": product_a.id,
                "amount": amount,
                "payment_type_id": cash.id,
            })

    def test_missing_fields_are_400(self, client, login, staff):
        resp = client.post("/api/sales", headers=login("staff"), json={"amount": 1})
        assert resp.status_code == 400
        assert "unit_id" in resp.json["error"]

    def test_open_sales_list(self, client, db_session, login, staff, unit_a, open_sales):
        sales_service.confirm_sales(context_for(staff), {
            "unit_id": unit_a.id,
            "sale_ids": [open_sales[0].id],
        })

        resp = client.get(f"/api/sales?unit_id={unit_a.id}", headers=login("staff"))
        assert resp.status_code == 200
        assert sorted(s["id"] for s in resp.json) == sorted(s.id for s in open_sales[1:])


class TestEditSale:

    def test_edit_open_sale(self, client, login, open_sales, cash):
        resp = client.put(f"/api/sales/{open_sales[0].id}", headers=login("staff"), json={
            "amount": 5,
            "payment_type_id": cash.id,
        })
        assert resp.status_code == 200
        assert resp.json["amount"] == 5

    def test_edit_confirmed_sale_is_invalid_state(self, db_session, staff, unit_a, open_sales, cash):
        ctx = context_for(staff)
        sales_service.confirm_sales(ctx, {"unit_id": unit_a.id, "sale_ids": [open_sales[0].id]})

        with pytest.raises(InvalidStateError):
            sales_service.edit_sale(ctx, open_sales[0].id, {"amount": 9, "payment_type_id": cash.id})

    def test_edit_missing_sale_is_404(self, client, login, staff, cash):
        resp = client.put("/api/sales/9999", headers=login("staff"), json={
            "amount": 1,
            "payment_type_id": cash.id,
        })
        assert resp.status_code == 404

    def test_edit_out_of_scope_is_403(self, client, make_user, login, unit_b, open_sales, cash):
        make_user("other", units=[unit_b])
        resp = client.put(f"/api/sales/{open_sales[0].id}", headers=login("other"), json={
            "amount": 1,
            "payment_type_id": cash.id,
        })
        assert resp.status_code == 403


class TestConfirmSales:

    def test_confirm_batch(self, client, db_session, login, unit_a, open_sales):
        ids = [s.id for s in open_sales]
        resp = client.post("/api/sales/confirm", headers=login("staff"), json={
            "unit_id": unit_a.id,
            "sale_ids": ids,
        })
        assert resp.status_code == 200
        assert resp.json["confirmed"] == 3
        assert all(db_session.get(Sale, i).confirmed for i in ids)

    def test_duplicate_ids_collapse(self, db_session, staff, unit_a, open_sales):
        count = sales_service.confirm_sales(context_for(staff), {
            "unit_id": unit_a.id,
            "sale_ids": [open_sales[0].id, open_sales[0].id],
        })
        assert count == 1

    def test_already_confirmed_rejects_whole_batch(self, db_session, staff, unit_a, open_sales):
        ctx = context_for(staff)
        sales_service.confirm_sales(ctx, {"unit_id": unit_a.id, "sale_ids": [open_sales[0].id]})

        with pytest.raises(InvalidStateError):
            sales_service.confirm_sales(ctx, {
                "unit_id": unit_a.id,
                "sale_ids": [s.id for s in open_sales],
            })

        db_session.expire_all()
        assert not db_session.get(Sale, open_sales[1].id).confirmed
        assert not db_session.get(Sale, open_sales[2].id).confirmed

    def test_unknown_id_rejects_whole_batch(self, client, db_session, login, unit_a, open_sales):
        resp = client.post("/api/sales/confirm", headers=login("staff"), json={
            "unit_id": unit_a.id,
            "sale_ids": [open_sales[0].id, 9999],
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "Some sales are invalid or already confirmed"

        db_session.expire_all()
        assert not db_session.get(Sale, open_sales[0].id).confirmed

    def test_sale_of_another_unit_rejects_batch(self, db_session, make_user, unit_a, unit_b, open_sales):
        user = make_user("both", units=[unit_a, unit_b])
        with pytest.raises(InvalidStateError):
            sales_service.confirm_sales(context_for(user), {
                "unit_id": unit_b.id,
                "sale_ids": [open_sales[0].id],
            })

    @pytest.mark.parametrize("sale_ids", [[], None, "1,2"])
    def test_sale_ids_must_be_non_empty_list(self, db_session, staff, unit_a, sale_ids):
        with pytest.raises(ValidationError):
            sales_service.confirm_sales(context_for(staff), {"unit_id": unit_a.id, "sale_ids": sale_ids})


class TestUnlockSale:

    def test_unlock_confirmed_sale(self, client, db_session, login, staff, unit_a, open_sales):
        sale = open_sales[1]
        sales_service.confirm_sales(context_for(staff), {"unit_id": unit_a.id, "sale_ids": [sale.id]})

        resp = client.post(f"/api/sales/{sale.id}/unlock", headers=login("staff"))
        assert resp.status_code == 200
        assert resp.json["confirmed"] is False
        assert resp.json["amount"] == 2
        assert resp.json["active"] is True

    def test_unlock_open_sale_is_invalid_state(self, client, login, open_sales):
        resp = client.post(f"/api/sales/{open_sales[0].id}/unlock", headers=login("staff"))
        assert resp.status_code == 400
        assert resp.json["error"] == "Sale is not confirmed"

    def test_unlock_missing_sale_is_404(self, client, login, staff):
        resp = client.post("/api/sales/4242/unlock", headers=login("staff"))
        assert resp.status_code == 404


class TestSalesOverview:

    def test_overview_includes_confirmed_and_open(self, client, login, staff, unit_a, open_sales):
        sales_service.confirm_sales(context_for(staff), {"unit_id": unit_a.id, "sale_ids": [open_sales[0].id]})
        today = open_sales[0].occurred_at.date().isoformat()

        resp = client.get(
            f"/api/sales/overview?unit_ids={unit_a.id}&date_from={today}&date_to={today}",
            headers=login("staff"),
        )
        assert resp.status_code == 200
        assert len(resp.json) == 3

    def test_overview_requires_range(self, client, login, staff, unit_a):
        resp = client.get(f"/api/sales/overview?unit_ids={unit_a.id}", headers=login("staff"))
        assert resp.status_code == 400

    def test_overview_requires_unit_ids(self, client, db_session, login, staff):
        resp = client.get("/api/sales/overview?date_from=2024-06-01&date_to=2024-06-30", headers=login("staff"))
        assert resp.status_code == 400
        assert resp.json["error"] == "Unit IDs are required"
        assert db_session.query(SecurityEvent).count() == 0
