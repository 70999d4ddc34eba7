"""
Access guard tests.

Verifies:
- Unauthenticated requests return 401
- Unit scoping: exact-subset rule, duplicates collapse, empty request denies
- Super-admin bypasses unit scoping, even for units that do not exist
- Capability checks read the session snapshot and fail closed
- Denials are written to security_events, grants are not
"""

import pytest

from unitops.models import PaymentType, SecurityEvent
from unitops.permissions import (
    Capability,
    CapabilityCategory,
    CAPABILITY_FLAGS,
    get_capability_definition,
    parse_capability,
)
from unitops.services import permission_service, unit_access_service
from unitops.services.permission_service import PermissionDeniedError
from unitops.services.unit_access_service import UnitAccessDeniedError

from conftest import context_for


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/session"),
            ("GET", "/api/admin/units"),
            ("POST", "/api/admin/products"),
            ("GET", "/api/admin/payment-types"),
            ("GET", "/api/users"),
            ("GET", "/api/units"),
            ("GET", "/api/products?unit_id=1"),
            ("GET", "/api/payment-types"),
            ("GET", "/api/sales?unit_id=1"),
            ("POST", "/api/sales/confirm"),
            ("GET", "/api/expenses?unit_id=1"),
            ("POST", "/api/upload/images"),
            ("GET", "/api/images/expense_1_1_abc.png"),
            ("GET", "/api/business-plan?year=2024&month=6"),
            ("GET", "/api/plan-overview?unit_ids=1&date_from=2024-06-01&date_to=2024-06-30"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"


# =============================================================================
# UNIT SCOPING
# =============================================================================


class TestUnitScoping:

    def test_linked_units_are_allowed(self, db_session, make_user, unit_a, unit_b):
        user = make_user("both", units=[unit_a, unit_b])
        assert unit_access_service.authorize_unit_access(user.id, False, unit_a.id)
        assert unit_access_service.authorize_unit_access(user.id, False, [unit_a.id, unit_b.id])

    def test_every_requested_unit_must_be_linked(self, db_session, staff, unit_a, unit_b):
        assert not unit_access_service.authorize_unit_access(staff.id, False, [unit_a.id, unit_b.id])
        assert not unit_access_service.authorize_unit_access(staff.id, False, unit_b.id)

    def test_duplicates_collapse(self, db_session, staff, unit_a):
        assert unit_access_service.authorize_unit_access(staff.id, False, [unit_a.id, unit_a.id, unit_a.id])

    def test_empty_request_denies(self, db_session, staff, super_admin):
        assert not unit_access_service.authorize_unit_access(staff.id, False, [])
        assert not unit_access_service.authorize_unit_access(super_admin.id, True, [])

    def test_super_admin_bypasses_scope(self, db_session, super_admin, unit_a):
        assert unit_access_service.authorize_unit_access(super_admin.id, True, [unit_a.id, 9999])

    def test_denial_raises_and_logs(self, db_session, staff, unit_b):
        with pytest.raises(UnitAccessDeniedError):
            unit_access_service.require_unit_access(context_for(staff), unit_b.id)

        event = db_session.query(SecurityEvent).filter_by(event_type="UNIT_ACCESS_DENIED").one()
        assert event.user_id == staff.id
        assert event.success is False

    def test_grant_is_not_logged(self, db_session, staff, unit_a):
        unit_access_service.require_unit_access(context_for(staff), unit_a.id)
        assert db_session.query(SecurityEvent).count() == 0

    def test_accessible_unit_ids(self, db_session, staff, super_admin, unit_a, unit_b):
        assert unit_access_service.accessible_unit_ids(context_for(staff)) == {unit_a.id}
        assert unit_access_service.accessible_unit_ids(context_for(super_admin)) == {unit_a.id, unit_b.id}

    def test_set_user_units_replaces_links(self, db_session, staff, unit_a, unit_b):
        unit_access_service.set_user_units(staff, [unit_b.id])
        db_session.commit()
        assert unit_access_service.get_user_unit_ids(staff.id) == {unit_b.id}

    def test_set_user_units_rejects_unknown_ids(self, db_session, staff):
        with pytest.raises(ValueError):
            unit_access_service.set_user_units(staff, [4242])


# =============================================================================
# PAGE CAPABILITIES
# =============================================================================


class TestCapabilities:

    def test_flag_table_covers_every_capability(self):
        assert set(CAPABILITY_FLAGS) == set(Capability)

    @pytest.mark.parametrize("capability", list(Capability))
    def test_capability_follows_its_flag(self, capability):
        flag = CAPABILITY_FLAGS[capability]
        assert permission_service.authorize_capability({flag: True}, capability)
        assert not permission_service.authorize_capability({flag: False}, capability)

    def test_missing_snapshot_denies(self):
        assert not permission_service.authorize_capability(None, Capability.ADMIN)
        assert not permission_service.authorize_capability({}, Capability.ADMIN)
        assert not permission_service.authorize_capability({"pg_admin": True}, "no_such_page")

    def test_require_capability_logs_denial(self, db_session, staff):
        with pytest.raises(PermissionDeniedError):
            permission_service.require_capability(context_for(staff), Capability.ADMIN)

        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.action == "admin"

    def test_require_super_admin(self, db_session, make_user, super_admin):
        flag_admin = make_user("flagadmin", flags=("pg_admin",))

        permission_service.require_super_admin(context_for(super_admin))
        with pytest.raises(PermissionDeniedError):
            permission_service.require_super_admin(context_for(flag_admin))

        assert db_session.query(SecurityEvent).filter_by(event_type="SUPER_ADMIN_REQUIRED").count() == 1


# =============================================================================
# HTTP-LEVEL SCOPING
# =============================================================================


class TestScopedEndpoints:

    def test_out_of_scope_unit_is_403(self, client, login, staff, unit_b):
        resp = client.get(f"/api/sales?unit_id={unit_b.id}", headers=login("staff"))
        assert resp.status_code == 403

    def test_storefront_units_are_filtered(self, client, login, staff, unit_a, unit_b):
        resp = client.get("/api/units", headers=login("staff"))
        assert resp.status_code == 200
        assert [u["id"] for u in resp.json] == [unit_a.id]

    def test_storefront_units_hide_inactive(self, client, db_session, login, super_admin, unit_a, unit_b):
        unit_b.active = False
        db_session.commit()

        resp = client.get("/api/units", headers=login("root"))
        assert [u["id"] for u in resp.json] == [unit_a.id]

    def test_storefront_products_require_scope(self, client, login, staff, product_a, unit_b):
        headers = login("staff")
        resp = client.get(f"/api/products?unit_id={product_a.unit_id}", headers=headers)
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json] == ["Espresso"]

        resp = client.get(f"/api/products?unit_id={unit_b.id}", headers=headers)
        assert resp.status_code == 403

    def test_storefront_products_require_unit_id(self, client, login, staff):
        resp = client.get("/api/products", headers=login("staff"))
        assert resp.status_code == 400

    def test_storefront_payment_types_are_active_only(self, client, db_session, login, staff, cash):
        db_session.add(PaymentType(name="Voucher", abbreviation="VO", active=False))
        db_session.commit()

        resp = client.get("/api/payment-types", headers=login("staff"))
        assert resp.status_code == 200
        assert [pt["name"] for pt in resp.json] == ["Cash"]


class TestCapabilityDefinitions:

    @pytest.mark.parametrize("capability", list(Capability))
    def test_every_capability_is_described(self, capability):
        definition = get_capability_definition(capability)
        assert definition["code"] == capability.value
        assert definition["name"]
        assert definition["category"] in {
            CapabilityCategory.SALES,
            CapabilityCategory.EXPENSES,
            CapabilityCategory.PLANNING,
            CapabilityCategory.ADMINISTRATION,
        }

    def test_parse_capability(self):
        assert parse_capability("admin") is Capability.ADMIN
        assert parse_capability("root") is None
