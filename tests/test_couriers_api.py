"""Tests for the /couriers endpoints."""

import uuid

import pytest
from httpx import AsyncClient

from tests.factories import courier_data


async def _create(client: AsyncClient, headers, **overrides) -> dict:
    response = await client.post("/couriers", json=courier_data(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateCourier:
    @pytest.mark.asyncio
    async def test_accepts_camel_case_body(self, api_client: AsyncClient, rd_headers):
        response = await api_client.post(
            "/couriers",
            json={
                "serviceName": "Swift Post",
                "code": "SWP",
                "contactPerson": "Grace Hopper",
                "email": "desk@swiftpost.example.com",
                "phone": "+1 555 0199",
                "address": "2 Quay Street",
            },
            headers=rd_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["serviceName"] == "Swift Post"
        assert data["contactPerson"] == "Grace Hopper"
        assert data["status"] == "active"

    @pytest.mark.asyncio
    async def test_duplicate_code_is_409(self, api_client: AsyncClient, rd_headers):
        await _create(api_client, rd_headers, code="DHL")
        response = await api_client.post(
            "/couriers", json=courier_data(code="DHL"), headers=rd_headers
        )

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["message"] == "duplicate courier code"
        assert error["details"] == {"field": "code"}

    @pytest.mark.asyncio
    async def test_missing_field_is_400(self, api_client: AsyncClient, rd_headers):
        payload = courier_data()
        del payload["address"]
        response = await api_client.post("/couriers", json=payload, headers=rd_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"
        assert "address" in response.json()["error"]["details"]["fields"]

    @pytest.mark.asyncio
    async def test_invalid_email_is_400(self, api_client: AsyncClient, rd_headers):
        response = await api_client.post(
            "/couriers", json=courier_data(email="not-an-address"), headers=rd_headers
        )

        assert response.status_code == 400
        assert "email" in response.json()["error"]["details"]["fields"]


class TestManageCourier:
    @pytest.mark.asyncio
    async def test_get_update_and_delete(self, api_client: AsyncClient, admin_headers):
        created = await _create(api_client, admin_headers)

        fetched = await api_client.get(f"/couriers/{created['id']}", headers=admin_headers)
        assert fetched.json()["data"]["code"] == created["code"]

        updated = await api_client.put(
            f"/couriers/{created['id']}",
            json={"phone": "+1 555 0142"},
            headers=admin_headers,
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["phone"] == "+1 555 0142"
        assert updated.json()["data"]["serviceName"] == created["serviceName"]

        deleted = await api_client.delete(f"/couriers/{created['id']}", headers=admin_headers)
        assert deleted.json()["data"] == {"message": "Courier deleted"}

        missing = await api_client.get(f"/couriers/{created['id']}", headers=admin_headers)
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_update_to_taken_code_is_409(self, api_client: AsyncClient, admin_headers):
        await _create(api_client, admin_headers, code="UPS")
        other = await _create(api_client, admin_headers)

        response = await api_client.put(
            f"/couriers/{other['id']}", json={"code": "UPS"}, headers=admin_headers
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_set_status(self, api_client: AsyncClient, admin_headers):
        created = await _create(api_client, admin_headers)

        response = await api_client.patch(
            f"/couriers/{created['id']}/status",
            json={"status": "inactive"},
            headers=admin_headers,
        )
        assert response.json()["data"]["status"] == "inactive"

    @pytest.mark.asyncio
    async def test_unknown_courier_is_404(self, api_client: AsyncClient, admin_headers):
        response = await api_client.delete(f"/couriers/{uuid.uuid4()}", headers=admin_headers)
        assert response.status_code == 404
