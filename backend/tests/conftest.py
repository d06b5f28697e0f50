"""
Testes da API de gestão imobiliária
Configuração central dos testes.
"""
import os
import sys
import uuid
from pathlib import Path
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

# Definir ambiente de teste ANTES de importar a app
os.environ["TESTING"] = "true"
os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "imoveis_test")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:3000")

# Adicionar backend ao path
sys.path.insert(0, str(Path(__file__).parent.parent))

from server import app  # noqa: E402
from database import use_database  # noqa: E402
from middleware.rate_limit import limiter  # noqa: E402
from services.auth import hash_password  # noqa: E402

# URL fictício para os testes
API_URL = "http://testserver/api"


@pytest.fixture(autouse=True)
def test_db():
    """Base de dados em memória, nova para cada teste."""
    database = AsyncMongoMockClient()["imoveis_test"]
    use_database(database)
    yield database
    use_database(None)


@pytest_asyncio.fixture(scope="function")
async def client():
    """
    Cliente HTTP assíncrono que fala DIRETAMENTE com a app.
    """
    limiter.enabled = False

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url=API_URL,
        timeout=30.0
    ) as ac:
        yield ac


async def _ensure_test_user_via_db(db, email: str, password: str, name: str, role: str, is_active: bool = True):
    """Cria o utilizador de teste diretamente na DB."""
    user_id = str(uuid.uuid4())
    await db.users.insert_one({
        "id": user_id,
        "email": email,
        "password": hash_password(password),
        "name": name,
        "role": role,
        "is_active": is_active,
        "created_at": datetime.now(timezone.utc).isoformat()
    })
    return user_id


async def _login(client, email: str, password: str) -> str:
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, f"Login failed: {response.text}"
    return response.json()["access_token"]


# --- Fixtures de Autenticação ---

@pytest_asyncio.fixture
async def admin_token(client, test_db):
    await _ensure_test_user_via_db(test_db, "admin@imobiliaria.com", "admin123", "Admin Teste", "admin")
    return await _login(client, "admin@imobiliaria.com", "admin123")


@pytest_asyncio.fixture
async def corretor_token(client, test_db):
    await _ensure_test_user_via_db(test_db, "corretor@imobiliaria.com", "corretor123", "Corretor Teste", "corretor")
    return await _login(client, "corretor@imobiliaria.com", "corretor123")


@pytest_asyncio.fixture
async def inquilino_token(client, test_db):
    await _ensure_test_user_via_db(test_db, "inquilino@imobiliaria.com", "inquilino123", "Inquilino Teste", "inquilino")
    return await _login(client, "inquilino@imobiliaria.com", "inquilino123")


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


# --- Fábricas de dados ---

@pytest.fixture
def make_property(test_db):
    """Insere um imóvel diretamente na DB (sem passar pela API)."""
    counter = {"unit": 0}

    async def _make(**overrides):
        counter["unit"] += 1
        now = datetime.now(timezone.utc).isoformat()
        doc = {
            "id": str(uuid.uuid4()),
            "group": 12,
            "block": "A",
            "floor": 5,
            "unit": counter["unit"],
            "floor_plan": "standard_2_bedrooms",
            "usable_area": 82,
            "garage_spaces": 1,
            "garage_type": "covered",
            "price": 300000,
            "advertised_status": "AvailableForRent",
            "linked_contract_id": None,
            "status_changed_at": now,
            "status_notes": "",
            "featured": False,
            "history": [],
            "version": 0,
            "created_at": now,
            "updated_at": now,
        }
        doc.update(overrides)
        await test_db.properties.insert_one(doc)
        doc.pop("_id", None)
        return doc

    return _make


@pytest.fixture
def make_tenant(test_db):
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        now = datetime.now(timezone.utc).isoformat()
        doc = {
            "id": str(uuid.uuid4()),
            "name": f"Inquilino {counter['n']}",
            "email": f"inquilino{counter['n']}@example.com",
            "phone": None,
            "document": None,
            "notes": None,
            "created_at": now,
            "updated_at": now,
        }
        doc.update(overrides)
        await test_db.tenants.insert_one(doc)
        doc.pop("_id", None)
        return doc

    return _make


@pytest.fixture
def make_contract(test_db):
    """Insere um contrato diretamente na DB (não dispara reconciliação)."""
    counter = {"n": 0}

    async def _make(property_id: str, tenant_id: str = "tenant-x", **overrides):
        counter["n"] += 1
        now = datetime.now(timezone.utc).isoformat()
        doc = {
            "id": str(uuid.uuid4()),
            "code": f"T-{counter['n']:03d}",
            "tenant_id": tenant_id,
            "property_id": property_id,
            "type": "Rental",
            "status": "Active",
            "start_date": "2024-01-01",
            "end_date": "2024-12-31",
            "duration_months": 12,
            "amount": 1500.0,
            "adjustments": [],
            "created_at": now,
            "updated_at": now,
        }
        doc.update(overrides)
        await test_db.contracts.insert_one(doc)
        doc.pop("_id", None)
        return doc

    return _make


@pytest.fixture
def make_user(test_db):
    async def _make(email: str, password: str, role: str = "corretor", is_active: bool = True):
        return await _ensure_test_user_via_db(test_db, email, password, email.split("@")[0], role, is_active)

    return _make
