"""
Rotas para gestão de Inquilinos
"""
import uuid
import logging
from typing import List, Optional
from datetime import datetime, timezone
from fastapi import APIRouter, HTTPException, Depends

from database import db
from models.tenant import Tenant, TenantCreate, TenantUpdate
from services.auth import get_current_user, require_staff
from services.history import log_history, log_data_changes

router = APIRouter(prefix="/tenants", tags=["Tenants"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[Tenant])
async def list_tenants(
    search: Optional[str] = None,
    user: dict = Depends(get_current_user)
):
    query = {}
    if search:
        query["$or"] = [
            {"name": {"$regex": search, "$options": "i"}},
            {"email": {"$regex": search, "$options": "i"}},
        ]
    tenants = await db.tenants.find(query, {"_id": 0}).sort("name", 1).to_list(1000)
    return [Tenant(**t) for t in tenants]


@router.post("", response_model=Tenant, status_code=201)
async def create_tenant(
    data: TenantCreate,
    user: dict = Depends(require_staff)
):
    email = data.email.lower()
    if await db.tenants.find_one({"email": email}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Já existe um inquilino com este email")

    now = datetime.now(timezone.utc).isoformat()
    tenant = Tenant(
        id=str(uuid.uuid4()),
        **data.model_dump(exclude={"email"}),
        email=email,
        created_at=now,
        updated_at=now
    )
    await db.tenants.insert_one(tenant.model_dump())

    logger.info(f"Inquilino criado: {tenant.id} ({email}) por {user.get('email')}")
    await log_history("tenant", tenant.id, user, "Criou inquilino", new_value=tenant.name)

    return tenant


@router.get("/{tenant_id}", response_model=Tenant)
async def get_tenant(
    tenant_id: str,
    user: dict = Depends(get_current_user)
):
    tenant = await db.tenants.find_one({"id": tenant_id}, {"_id": 0})
    if not tenant:
        raise HTTPException(status_code=404, detail="Inquilino não encontrado")
    return Tenant(**tenant)


@router.patch("/{tenant_id}", response_model=Tenant)
async def update_tenant(
    tenant_id: str,
    data: TenantUpdate,
    user: dict = Depends(require_staff)
):
    tenant = await db.tenants.find_one({"id": tenant_id}, {"_id": 0})
    if not tenant:
        raise HTTPException(status_code=404, detail="Inquilino não encontrado")

    update_dict = data.model_dump(exclude_none=True)
    if "email" in update_dict:
        update_dict["email"] = update_dict["email"].lower()
        clash = await db.tenants.find_one(
            {"email": update_dict["email"], "id": {"$ne": tenant_id}}, {"_id": 0, "id": 1}
        )
        if clash:
            raise HTTPException(status_code=400, detail="Já existe um inquilino com este email")

    update_dict["updated_at"] = datetime.now(timezone.utc).isoformat()
    await db.tenants.update_one({"id": tenant_id}, {"$set": update_dict})
    await log_data_changes("tenant", tenant_id, user, tenant, update_dict)

    updated = await db.tenants.find_one({"id": tenant_id}, {"_id": 0})
    return Tenant(**updated)


@router.delete("/{tenant_id}")
async def delete_tenant(
    tenant_id: str,
    user: dict = Depends(require_staff)
):
    tenant = await db.tenants.find_one({"id": tenant_id}, {"_id": 0, "id": 1})
    if not tenant:
        raise HTTPException(status_code=404, detail="Inquilino não encontrado")

    contracts = await db.contracts.count_documents({"tenant_id": tenant_id})
    if contracts:
        raise HTTPException(
            status_code=400,
            detail=f"Inquilino tem {contracts} contrato(s) associado(s) e não pode ser eliminado"
        )

    await db.tenants.delete_one({"id": tenant_id})
    logger.info(f"Inquilino eliminado: {tenant_id} por {user.get('email')}")
    return {"success": True, "message": "Inquilino eliminado"}
