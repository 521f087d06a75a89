"""
Tests for the fee configuration store and its admin endpoints.
"""
from decimal import Decimal
import pytest
from collecte.core.exceptions import ConfigMissingError
from collecte.schemas.fee_config import UpdateFeeConfigCommand
from collecte.services.fee_config_service import (
    ensure_default_fee_config,
    get_fee_config,
    update_fee_config,
)


def test_missing_config_raises(db):
    """No silent 0% fallback."""
    with pytest.raises(ConfigMissingError):
        get_fee_config(db)


def test_default_config_created_once(db):
    first = ensure_default_fee_config(db)
    second = ensure_default_fee_config(db)
    assert first == second
    assert first.service_fee_percent == Decimal("15")
    assert first.provider_commission_percent == Decimal("0")


def test_partial_update_keeps_other_values(db, fee_config):
    updated = update_fee_config(db, UpdateFeeConfigCommand(employee_commission_percent=Decimal("8")))
    assert updated.service_fee_percent == Decimal("15")
    assert updated.provider_commission_percent == Decimal("5")
    assert updated.employee_commission_percent == Decimal("8")
    assert get_fee_config(db) == updated


def test_update_clamps_out_of_range_values(db, fee_config):
    """Callers bypassing validation still cannot store values outside [0, 100]."""
    command = UpdateFeeConfigCommand.model_construct(
        service_fee_percent=Decimal("150"),
        provider_commission_percent=Decimal("-3"),
        employee_commission_percent=None,
    )
    updated = update_fee_config(db, command)
    assert updated.service_fee_percent == Decimal("100")
    assert updated.provider_commission_percent == Decimal("0")


def test_get_fee_config_endpoint(client, fee_config, admin_headers):
    response = client.get("/api/admin/fee-config", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert Decimal(str(data["service_fee_percent"])) == Decimal("15")
    assert Decimal(str(data["provider_commission_percent"])) == Decimal("5")


def test_put_fee_config_endpoint(client, fee_config, admin_headers):
    response = client.put(
        "/api/admin/fee-config",
        json={"service_fee_percent": 20},
        headers=admin_headers
    )
    assert response.status_code == 200
    assert Decimal(str(response.json()["service_fee_percent"])) == Decimal("20")


@pytest.mark.parametrize("body", [
    {"service_fee_percent": 101},
    {"provider_commission_percent": -1},
    {},
])
def test_put_fee_config_rejects_invalid_body(client, fee_config, admin_headers, body):
    response = client.put("/api/admin/fee-config", json=body, headers=admin_headers)
    assert response.status_code == 422


def test_fee_config_requires_admin(client, fee_config, make_provider, provider_headers):
    assert client.get("/api/admin/fee-config").status_code == 401
    provider = make_provider()
    response = client.get("/api/admin/fee-config", headers=provider_headers(provider))
    assert response.status_code == 403


def test_missing_config_surfaces_as_server_error(client, admin_headers):
    response = client.get("/api/admin/collecte", headers=admin_headers)
    assert response.status_code == 500
    assert response.json()["detail"] == "Fee configuration unavailable"
