"""
Rotas para gestão de Contratos
Cada escrita de contrato é seguida da reconciliação do imóvel referenciado.
A reconciliação é secundária: uma falha fica em log e na outbox e nunca
altera a resposta do contrato.
"""
import uuid
import logging
from typing import List, Optional
from datetime import date, datetime, timezone
from fastapi import APIRouter, HTTPException, Depends, Query

from database import db
from models.contract import (
    Contract, ContractCreate, ContractUpdate, ContractStatusUpdate, ContractAdjustmentCreate,
    ContractPage, Pagination, ContractStatus, ContractType, AdjustmentKind
)
from services.auth import get_current_user, require_staff
from services.history import log_history, log_data_changes, get_entity_history
from services.property_status import ContractEvent, repair_all_property_statuses
from services.property_sync import OutboxState, dispatch_property_sync, retry_pending_syncs, list_outbox
from services.contract_seed import SeedPrerequisiteError, seed_sample_contracts
from services.contract_terms import compute_next_due_date, build_adjustment, needs_adjustment, with_derived_fields

router = APIRouter(prefix="/contracts", tags=["Contracts"])
logger = logging.getLogger(__name__)


async def get_next_code() -> str:
    """Gera próximo código de contrato (CTR-0001, CTR-0002...)"""
    last = await db.contracts.find_one(
        {"code": {"$regex": "^CTR-"}},
        sort=[("code", -1)]
    )
    if last and last.get("code"):
        try:
            num = int(last["code"].split("-")[1])
            return f"CTR-{num + 1:04d}"
        except (ValueError, IndexError):
            pass
    return "CTR-0001"


async def _get_contract_or_404(contract_id: str) -> dict:
    contract = await db.contracts.find_one({"id": contract_id}, {"_id": 0})
    if not contract:
        raise HTTPException(status_code=404, detail="Contrato não encontrado")
    return contract


async def _check_references(tenant_id: Optional[str] = None, property_id: Optional[str] = None):
    if tenant_id and not await db.tenants.find_one({"id": tenant_id}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Inquilino não encontrado")
    if property_id and not await db.properties.find_one({"id": property_id}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Imóvel não encontrado")


async def _warn_if_property_busy(property_id: str, contract_id: str):
    # Não é bloqueante: a reconciliação escolhe o contrato que conduz o imóvel
    other = await db.contracts.find_one(
        {
            "property_id": property_id,
            "id": {"$ne": contract_id},
            "status": {"$in": [ContractStatus.ACTIVE.value, ContractStatus.PENDING.value]},
        },
        {"_id": 0, "code": 1}
    )
    if other:
        logger.warning(f"Imóvel {property_id} já tem o contrato {other.get('code')} em vigor ou pendente")


def _to_response(contract: dict) -> Contract:
    return Contract(**with_derived_fields(contract))


@router.get("", response_model=ContractPage)
async def list_contracts(
    status: Optional[str] = None,
    contract_type: Optional[ContractType] = Query(None, alias="type"),
    tenant_id: Optional[str] = None,
    property_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    skip: int = Query(0, ge=0),
    user: dict = Depends(get_current_user)
):
    """Listar contratos com filtros e paginação."""
    query = {}
    if status:
        try:
            query["status"] = ContractStatus.from_string(status).value
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    if contract_type:
        query["type"] = contract_type.value
    if tenant_id:
        query["tenant_id"] = tenant_id
    if property_id:
        query["property_id"] = property_id

    total = await db.contracts.count_documents(query)
    contracts = await db.contracts.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit).to_list(limit)

    return ContractPage(
        data=[_to_response(c) for c in contracts],
        pagination=Pagination(total=total, limit=limit, skip=skip, pages=(total + limit - 1) // limit)
    )


@router.get("/adjustments-due", response_model=List[Contract])
async def list_adjustments_due(user: dict = Depends(get_current_user)):
    """Contratos em vigor com reajuste em atraso."""
    contracts = await db.contracts.find(
        {"status": {"$in": [ContractStatus.ACTIVE.value, ContractStatus.OVERDUE.value]}},
        {"_id": 0}
    ).sort("start_date", 1).to_list(1000)
    return [_to_response(c) for c in contracts if needs_adjustment(c)]


# ====================================================================
# SINCRONIZAÇÃO DE ESTADOS (operador)
# ====================================================================

@router.post("/sync-property-status")
async def sync_property_status(user: dict = Depends(require_staff)):
    """
    Carga inicial: cria os contratos de exemplo quando não existe nenhum.
    Não altera contratos existentes.
    """
    try:
        result = await seed_sample_contracts()
    except SeedPrerequisiteError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Sincronização de contratos pedida por {user.get('email')}: {result['created']} criados")
    return result


@router.post("/repair-property-status")
async def repair_property_status(user: dict = Depends(require_staff)):
    """Recalcula o estado anunciado de todos os imóveis a partir dos contratos."""
    return await repair_all_property_statuses(user)


@router.get("/property-sync/outbox")
async def get_property_sync_outbox(
    state: Optional[OutboxState] = None,
    limit: int = Query(100, ge=1, le=500),
    user: dict = Depends(require_staff)
):
    """Sincronizações de imóveis falhadas ou pendentes."""
    return await list_outbox(state, limit)


@router.post("/property-sync/retry")
async def retry_property_sync(
    limit: int = Query(50, ge=1, le=500),
    user: dict = Depends(require_staff)
):
    """Repete agora as sincronizações pendentes."""
    return await retry_pending_syncs(limit)


# ====================================================================
# CRUD
# ====================================================================

@router.get("/{contract_id}", response_model=Contract)
async def get_contract(
    contract_id: str,
    user: dict = Depends(get_current_user)
):
    """Obter detalhes de um contrato."""
    return _to_response(await _get_contract_or_404(contract_id))


@router.get("/{contract_id}/history")
async def get_contract_history(
    contract_id: str,
    limit: int = Query(100, ge=1, le=500),
    user: dict = Depends(get_current_user)
):
    """Histórico de alterações de um contrato."""
    await _get_contract_or_404(contract_id)
    return await get_entity_history("contract", contract_id, limit)


@router.post("", response_model=Contract, status_code=201)
async def create_contract(
    data: ContractCreate,
    user: dict = Depends(require_staff)
):
    """Criar novo contrato e reconciliar o imóvel."""
    await _check_references(data.tenant_id, data.property_id)

    code = data.code or await get_next_code()
    if await db.contracts.find_one({"code": code}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail=f"Já existe um contrato com o código {code}")

    now = datetime.now(timezone.utc).isoformat()
    contract_id = str(uuid.uuid4())
    await _warn_if_property_busy(data.property_id, contract_id)

    contract = {
        "id": contract_id,
        "code": code,
        **data.model_dump(exclude={"code"}, mode="json"),
        "next_due_date": compute_next_due_date(data.due_day).isoformat() if data.due_day else None,
        "termination_date": None,
        "termination_reason": None,
        "adjustments": [],
        "created_at": now,
        "updated_at": now,
        "created_by": user.get("email"),
    }

    await db.contracts.insert_one(contract)
    contract.pop("_id", None)
    logger.info(f"Contrato criado: {code} ({contract['type']}/{contract['status']}) por {user.get('email')}")

    await dispatch_property_sync(contract, ContractEvent.CREATED, user)
    await log_history("contract", contract_id, user, "Criou contrato", new_value=code)

    return _to_response(contract)


@router.put("/{contract_id}", response_model=Contract)
async def update_contract(
    contract_id: str,
    data: ContractUpdate,
    user: dict = Depends(require_staff)
):
    """Actualizar contrato. Reconcilia o imóvel se o estado ou o imóvel mudaram."""
    old = await _get_contract_or_404(contract_id)

    update_dict = data.model_dump(exclude_none=True, mode="json")
    if not update_dict:
        return _to_response(old)

    await _check_references(update_dict.get("tenant_id"), update_dict.get("property_id"))

    if "code" in update_dict:
        update_dict["code"] = update_dict["code"].strip()
        if not update_dict["code"]:
            raise HTTPException(status_code=400, detail="Código do contrato não pode ser vazio")
        clash = await db.contracts.find_one(
            {"code": update_dict["code"], "id": {"$ne": contract_id}}, {"_id": 0, "id": 1}
        )
        if clash:
            raise HTTPException(status_code=400, detail=f"Já existe um contrato com o código {update_dict['code']}")

    start = update_dict.get("start_date", old.get("start_date"))
    end = update_dict.get("end_date", old.get("end_date"))
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="A data de término não pode ser anterior à data de início")

    if "due_day" in update_dict and update_dict["due_day"] != old.get("due_day"):
        update_dict["next_due_date"] = compute_next_due_date(update_dict["due_day"]).isoformat()

    update_dict["updated_at"] = datetime.now(timezone.utc).isoformat()

    await db.contracts.update_one({"id": contract_id}, {"$set": update_dict})
    updated = await db.contracts.find_one({"id": contract_id}, {"_id": 0})

    logger.info(f"Contrato {updated.get('code')} actualizado por {user.get('email')}")
    await log_data_changes("contract", contract_id, user, old, update_dict)

    property_changed = updated["property_id"] != old["property_id"]
    if property_changed:
        # O imóvel anterior só é libertado se era este contrato que o conduzia
        previous = await db.properties.find_one(
            {"id": old["property_id"]}, {"_id": 0, "linked_contract_id": 1}
        )
        if previous and previous.get("linked_contract_id") == contract_id:
            await dispatch_property_sync(old, ContractEvent.DELETED, user)
        else:
            logger.info(f"Imóvel {old['property_id']} mantido: não estava ligado ao contrato {updated.get('code')}")
        await _warn_if_property_busy(updated["property_id"], contract_id)
    if property_changed or updated["status"] != old["status"]:
        await dispatch_property_sync(updated, ContractEvent.STATUS_CHANGED, user)

    return _to_response(updated)


@router.patch("/{contract_id}/status", response_model=Contract)
async def update_contract_status(
    contract_id: str,
    data: ContractStatusUpdate,
    user: dict = Depends(require_staff)
):
    """Alterar o estado de um contrato."""
    try:
        new_status = ContractStatus.from_string(data.status)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    contract = await _get_contract_or_404(contract_id)
    old_status = contract["status"]

    update = {
        "status": new_status.value,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    if new_status == ContractStatus.TERMINATED:
        update["termination_date"] = date.today().isoformat()
        update["termination_reason"] = data.reason

    await db.contracts.update_one({"id": contract_id}, {"$set": update})
    updated = await db.contracts.find_one({"id": contract_id}, {"_id": 0})

    if new_status.value != old_status:
        logger.info(
            f"Contrato {updated.get('code')}: {old_status} -> {new_status.value} por {user.get('email')}"
        )
        await log_history("contract", contract_id, user, "Alterou estado", "status", old_status, new_status.value)
        await dispatch_property_sync(updated, ContractEvent.STATUS_CHANGED, user)

    return _to_response(updated)


@router.post("/{contract_id}/adjustments", response_model=Contract)
async def add_contract_adjustment(
    contract_id: str,
    data: ContractAdjustmentCreate,
    user: dict = Depends(require_staff)
):
    """Registar um ajuste do valor do contrato."""
    contract = await _get_contract_or_404(contract_id)

    try:
        adjustment = build_adjustment(contract, data.kind, data.new_value, data.reason, data.effective_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    update = {
        "amount": adjustment["new_value"],
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    if data.kind == AdjustmentKind.READJUSTMENT:
        update["last_adjustment_date"] = adjustment["date"]

    await db.contracts.update_one(
        {"id": contract_id},
        {"$set": update, "$push": {"adjustments": adjustment}}
    )

    logger.info(
        f"Ajuste {adjustment['kind']} no contrato {contract.get('code')}: "
        f"{adjustment['previous_value']} -> {adjustment['new_value']}"
    )
    await log_history(
        "contract", contract_id, user, "Registou ajuste", "amount",
        adjustment["previous_value"], adjustment["new_value"]
    )

    updated = await db.contracts.find_one({"id": contract_id}, {"_id": 0})
    return _to_response(updated)


@router.delete("/{contract_id}")
async def delete_contract(
    contract_id: str,
    user: dict = Depends(require_staff)
):
    """Remover contrato e libertar o imóvel se nenhum outro contrato Active o mantiver."""
    contract = await _get_contract_or_404(contract_id)

    await db.contracts.delete_one({"id": contract_id})
    logger.info(f"Contrato removido: {contract.get('code')} por {user.get('email')}")

    await dispatch_property_sync(contract, ContractEvent.DELETED, user)
    await log_history("contract", contract_id, user, "Removeu contrato", old_value=contract.get("code"))

    return {"success": True, "message": "Contrato removido"}
