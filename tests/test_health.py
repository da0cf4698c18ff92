# tests/test_health.py

# ========================
# --- Importações ---
# ========================
import pytest
from httpx import AsyncClient
from fastapi import status
from unittest.mock import AsyncMock

from app.main import app

# ========================
# --- Marcador Global de Teste ---
# ========================
pytestmark = pytest.mark.asyncio

# ========================
# --- Testes para health check ---
# ========================
async def test_health_check_success(test_async_client: AsyncClient, monkeypatch):
    """
    Deve retornar 200 quando o assinador estiver pronto e o Mongo operacional.
    """
    # --- Arrange ---
    monkeypatch.setattr("app.routers.health.check_mongo_connection", AsyncMock(return_value=True))

    # --- Act ---
    response = await test_async_client.get("/health")

    # --- Assert ---
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}

async def test_health_check_mongo_failure(test_async_client: AsyncClient, monkeypatch):
    """
    Deve retornar 503 quando MongoDB estiver indisponível.
    """
    # --- Arrange ---
    monkeypatch.setattr("app.routers.health.check_mongo_connection", AsyncMock(return_value=False))

    # --- Act ---
    response = await test_async_client.get("/health")

    # --- Assert ---
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json() == {"status": "error", "message": "MongoDB não está disponível"}

async def test_health_check_without_qr_signer(test_async_client: AsyncClient, monkeypatch):
    """
    Deve retornar 503 quando o assinador de QR code não foi configurado.
    """
    # --- Arrange ---
    mock_check = AsyncMock(return_value=True)
    monkeypatch.setattr("app.routers.health.check_mongo_connection", mock_check)
    app.state.qr_signer = None

    # --- Act ---
    response = await test_async_client.get("/health")

    # --- Assert ---
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["message"] == "Assinador de QR code não configurado"
    mock_check.assert_not_awaited()
