# tests/conftest.py
"""
Fixtures compartilhadas dos testes.

As variáveis de ambiente obrigatórias são definidas antes de importar a
aplicação. Nenhum teste precisa de um MongoDB real: o banco é substituído
por mocks via `app.dependency_overrides`.
"""

# ========================
# --- Ambiente de Teste ---
# ========================
import os

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("DATABASE_NAME", "gymembrace_test_db")
os.environ.setdefault("JWT_SECRET_KEY", "test_jwt_secret_key_for_gymembrace")
os.environ.setdefault("QR_SIGNING_SECRET", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=")

# ========================
# --- Importações ---
# ========================
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# --- Módulos da Aplicação ---
from app.core.dependencies import get_current_active_user
from app.core.qr import QRSigner
from app.db.mongodb_utils import get_database
from app.main import app as fastapi_app
from app.models.user import UserInDB, UserRole

# ========================
# --- Constantes de Teste ---
# ========================
TEST_KEY = b"0123456789abcdef0123456789abcdef"
OTHER_KEY = b"fedcba9876543210fedcba9876543210"
TEST_START_MS = 1_700_000_000_000
TEST_TTL_MS = 15_000

# ========================
# --- Relógio Controlável ---
# ========================
class FakeClock:
    """Relógio em milissegundos controlado pelo teste."""
    def __init__(self, now: int = TEST_START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def signer(clock: FakeClock) -> QRSigner:
    """Assinador com a chave de teste, janela de 15s e relógio controlável."""
    return QRSigner(TEST_KEY, ttl_ms=TEST_TTL_MS, clock=clock)

# ========================
# --- Usuários de Teste ---
# ========================
def make_user(role: UserRole, username: str, **overrides) -> UserInDB:
    data = {
        "id": uuid.uuid4(),
        "username": username,
        "email": f"{username}@example.com",
        "hashed_password": "fake_hashed_password",
        "full_name": f"{username.title()} Teste",
        "role": role,
        "disabled": False,
        "created_at": datetime.now(timezone.utc),
    }
    data.update(overrides)
    return UserInDB(**data)

@pytest.fixture
def member_user() -> UserInDB:
    return make_user(UserRole.USER, "aluno")

@pytest.fixture
def staff_user() -> UserInDB:
    return make_user(UserRole.STAFF, "recepcao")

@pytest.fixture
def admin_user() -> UserInDB:
    return make_user(UserRole.ADMIN, "admin")

# ========================
# --- Banco de Dados Mockado ---
# ========================
@pytest.fixture
def mock_db() -> AsyncMock:
    """Substituto genérico da instância AsyncIOMotorDatabase."""
    return AsyncMock()

# ========================
# --- Cliente HTTP ---
# ========================
@pytest_asyncio.fixture
async def test_async_client(mock_db: AsyncMock, signer: QRSigner) -> AsyncGenerator[AsyncClient, None]:
    """
    Cliente HTTP assíncrono ligado à aplicação via ASGITransport.

    O lifespan não roda com ASGITransport, então o assinador é colocado
    diretamente em `app.state` e o banco é sobrescrito por `mock_db`.
    """
    fastapi_app.state.qr_signer = signer
    fastapi_app.dependency_overrides[get_database] = lambda: mock_db
    transport = ASGITransport(app=fastapi_app)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
    finally:
        fastapi_app.dependency_overrides.clear()
        fastapi_app.state.qr_signer = None

@pytest.fixture
def login_as() -> Callable[[UserInDB], None]:
    """Autentica as requisições seguintes como o usuário informado."""
    def _login(user: UserInDB) -> None:
        fastapi_app.dependency_overrides[get_current_active_user] = lambda: user
    return _login
