import pytest

from services.auth import authenticate_user


@pytest.mark.asyncio
async def test_login_and_me(client, admin_token):
    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {admin_token}"})
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "admin@imobiliaria.com"
    assert data["role"] == "admin"
    assert "password" not in data


@pytest.mark.asyncio
async def test_login_wrong_password(client, make_user):
    await make_user("user@imobiliaria.com", "certa123")
    response = await client.post("/auth/login", json={"email": "user@imobiliaria.com", "password": "errada"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Credenciais inválidas"


@pytest.mark.asyncio
async def test_login_inactive_account(client, make_user):
    await make_user("off@imobiliaria.com", "pass1234", is_active=False)
    response = await client.post("/auth/login", json={"email": "off@imobiliaria.com", "password": "pass1234"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Conta desativada"


@pytest.mark.asyncio
async def test_invalid_token_rejected(client):
    response = await client.get("/contracts", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_token_rejected(client):
    response = await client.get("/properties")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_liveness_probe(client):
    response = await client.get("http://testserver/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


@pytest.mark.asyncio
async def test_login_response_never_carries_password_hash(client, make_user):
    await make_user("corretor2@imobiliaria.com", "segredo123")
    response = await client.post("/auth/login", json={"email": "Corretor2@Imobiliaria.com", "password": "segredo123"})
    assert response.status_code == 200
    data = response.json()
    assert data["user"]["email"] == "corretor2@imobiliaria.com"
    assert data["user"]["role"] == "corretor"
    assert "password" not in data["user"]


@pytest.mark.asyncio
async def test_authenticate_user_strips_hash(make_user):
    await make_user("admin2@imobiliaria.com", "admin2026", role="admin")
    user = await authenticate_user("admin2@imobiliaria.com", "admin2026")
    assert user["role"] == "admin"
    assert "password" not in user


@pytest.mark.asyncio
async def test_tenant_role_cannot_manage_contracts(client, inquilino_token):
    response = await client.post(
        "/contracts/property-sync/retry", headers={"Authorization": f"Bearer {inquilino_token}"}
    )
    assert response.status_code == 403
