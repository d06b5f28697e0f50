"""
Rotas para gestão de Imóveis
CRUD das unidades do empreendimento. O estado anunciado é normalmente
mantido pelos contratos; a alteração manual fica registada no histórico.
"""
import uuid
import logging
from typing import List, Optional
from datetime import datetime, timezone
from fastapi import APIRouter, HTTPException, Depends

from database import db
from models.property import (
    Property, PropertyCreate, PropertyUpdate, PropertyListItem, PropertyStatusChange,
    PropertyHistory, AdvertisedStatus, FloorPlan, GarageType, validate_unit_layout, property_label
)
from services.auth import get_current_user, require_staff

router = APIRouter(prefix="/properties", tags=["Properties"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[PropertyListItem])
async def list_properties(
    advertised_status: Optional[AdvertisedStatus] = None,
    group: Optional[int] = None,
    block: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    featured: Optional[bool] = None,
    user: dict = Depends(get_current_user)
):
    """Listar imóveis com filtros."""
    query = {}

    if advertised_status:
        query["advertised_status"] = advertised_status.value
    if group:
        query["group"] = group
    if block:
        query["block"] = block.upper()
    if min_price:
        query["price"] = {"$gte": min_price}
    if max_price:
        query.setdefault("price", {})["$lte"] = max_price
    if featured is not None:
        query["featured"] = featured

    properties = await db.properties.find(query, {"_id": 0, "history": 0}).sort("created_at", -1).to_list(500)
    return [PropertyListItem(**p) for p in properties]


@router.get("/stats")
async def get_property_stats(user: dict = Depends(get_current_user)):
    """Contagem e valor total por estado anunciado."""
    by_status = {}
    for status in AdvertisedStatus:
        items = await db.properties.find(
            {"advertised_status": status.value}, {"_id": 0, "price": 1}
        ).to_list(None)
        by_status[status.value] = {
            "count": len(items),
            "total_value": sum(p.get("price", 0) for p in items),
        }

    total = await db.properties.count_documents({})
    return {"total": total, "by_status": by_status}


@router.post("", response_model=Property, status_code=201)
async def create_property(
    data: PropertyCreate,
    user: dict = Depends(require_staff)
):
    """Criar novo imóvel."""
    existing = await db.properties.find_one(
        {"group": data.group, "block": data.block, "floor": data.floor, "unit": data.unit},
        {"_id": 0, "id": 1}
    )
    if existing:
        raise HTTPException(status_code=400, detail="Já existe um imóvel com esta identificação")

    now = datetime.now(timezone.utc).isoformat()

    property_doc = Property(
        id=str(uuid.uuid4()),
        **data.model_dump(),
        status_changed_at=now,
        history=[
            PropertyHistory(
                timestamp=now,
                event="created",
                new_status=data.advertised_status.value,
                user=user.get("email")
            )
        ],
        created_at=now,
        updated_at=now,
        created_by=user.get("email")
    )

    await db.properties.insert_one(property_doc.model_dump(mode="json"))

    logger.info(f"Imóvel criado: {property_doc.id} ({property_label(data.model_dump())}) por {user.get('email')}")

    return property_doc


@router.get("/{property_id}", response_model=Property)
async def get_property(
    property_id: str,
    user: dict = Depends(get_current_user)
):
    """Obter detalhes de um imóvel."""
    prop = await db.properties.find_one({"id": property_id}, {"_id": 0})
    if not prop:
        raise HTTPException(status_code=404, detail="Imóvel não encontrado")
    return Property(**prop)


@router.patch("/{property_id}", response_model=Property)
async def update_property(
    property_id: str,
    data: PropertyUpdate,
    user: dict = Depends(require_staff)
):
    """Actualizar um imóvel (o estado anunciado tem rota própria)."""
    prop = await db.properties.find_one({"id": property_id}, {"_id": 0})
    if not prop:
        raise HTTPException(status_code=404, detail="Imóvel não encontrado")

    update_dict = data.model_dump(exclude_none=True, mode="json")
    merged = {**prop, **update_dict}
    try:
        validate_unit_layout(
            merged["group"], merged["block"], merged["floor"], FloorPlan(merged["floor_plan"]),
            merged["usable_area"], merged["garage_spaces"], GarageType(merged["garage_type"])
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    update_dict["updated_at"] = datetime.now(timezone.utc).isoformat()

    await db.properties.update_one(
        {"id": property_id},
        {"$set": update_dict, "$inc": {"version": 1}}
    )

    updated = await db.properties.find_one({"id": property_id}, {"_id": 0})
    return Property(**updated)


@router.patch("/{property_id}/status", response_model=Property)
async def update_property_status(
    property_id: str,
    data: PropertyStatusChange,
    user: dict = Depends(require_staff)
):
    """Alterar manualmente o estado anunciado."""
    prop = await db.properties.find_one({"id": property_id}, {"_id": 0})
    if not prop:
        raise HTTPException(status_code=404, detail="Imóvel não encontrado")

    now = datetime.now(timezone.utc).isoformat()
    new_status = data.advertised_status.value

    if new_status != prop.get("advertised_status"):
        history_entry = PropertyHistory(
            timestamp=now,
            event="status_changed",
            previous_status=prop.get("advertised_status"),
            new_status=new_status,
            user=user.get("email"),
            details=data.notes
        )
        await db.properties.update_one(
            {"id": property_id},
            {
                "$set": {
                    "advertised_status": new_status,
                    "status_changed_at": now,
                    "status_notes": data.notes or "",
                    "updated_at": now,
                },
                "$inc": {"version": 1},
                "$push": {"history": history_entry.model_dump()},
            }
        )
        logger.info(f"Estado do imóvel {property_id} alterado manualmente para {new_status} por {user.get('email')}")

    updated = await db.properties.find_one({"id": property_id}, {"_id": 0})
    return Property(**updated)


@router.delete("/{property_id}")
async def delete_property(
    property_id: str,
    user: dict = Depends(require_staff)
):
    """Eliminar um imóvel sem contrato ligado."""
    prop = await db.properties.find_one({"id": property_id}, {"_id": 0, "linked_contract_id": 1})
    if not prop:
        raise HTTPException(status_code=404, detail="Imóvel não encontrado")
    if prop.get("linked_contract_id"):
        raise HTTPException(status_code=400, detail="Imóvel com contrato ligado não pode ser eliminado")

    await db.properties.delete_one({"id": property_id})
    logger.info(f"Imóvel eliminado: {property_id} por {user.get('email')}")
    return {"success": True, "message": "Imóvel eliminado"}
