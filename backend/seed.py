#!/usr/bin/env python3
"""
==============================================
SEED DATABASE - Gestão Imobiliária
==============================================
Cria o administrador, inquilinos e imóveis de exemplo para desenvolvimento.
Pode ser executado várias vezes: registos existentes (mesmo email ou mesma
unidade) são mantidos.

Depois de correr, os contratos de exemplo podem ser criados com
POST /api/contracts/sync-property-status.

Uso:
    cd backend
    python seed.py
==============================================
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from database import db, client
from models.auth import UserRole
from models.property import AdvertisedStatus, FloorPlan, GarageType, FLOOR_PLAN_AREAS
from services.auth import hash_password

logger = logging.getLogger(__name__)


# NOTA: Altere a password antes de usar em produção!
DEFAULT_ADMIN = {
    "email": "admin@imobiliaria.com",
    "password": "admin2026",
    "name": "Administrador",
    "role": UserRole.ADMIN,
}

SAMPLE_TENANTS = [
    {"name": "Ana Souza", "email": "ana.souza@example.com", "phone": "(11) 91234-0001", "document": "39053344705"},
    {"name": "Bruno Lima", "email": "bruno.lima@example.com", "phone": "(11) 91234-0002", "document": "52998224725"},
    {"name": "Carla Mendes", "email": "carla.mendes@example.com", "phone": "(11) 91234-0003", "document": "11144477735"},
    {"name": "Diego Rocha", "email": "diego.rocha@example.com", "phone": "(11) 91234-0004", "document": "15350946056"},
    {"name": "Elisa Prado", "email": "elisa.prado@example.com", "phone": "(11) 91234-0005", "document": "86288366757"},
]

SAMPLE_PROPERTIES = [
    {"group": 12, "block": "A", "floor": 10, "unit": 101, "floor_plan": FloorPlan.STANDARD_2_BEDROOMS,
     "garage_spaces": 1, "garage_type": GarageType.COVERED, "price": 320000,
     "advertised_status": AdvertisedStatus.AVAILABLE_FOR_SALE},
    {"group": 12, "block": "B", "floor": 15, "unit": 151, "floor_plan": FloorPlan.TWO_BEDROOMS_SERVICE_ROOM,
     "garage_spaces": 1, "garage_type": GarageType.COVERED, "price": 350000,
     "advertised_status": AdvertisedStatus.AVAILABLE_FOR_RENT},
    {"group": 13, "block": "G", "floor": 30, "unit": 301, "floor_plan": FloorPlan.STANDARD_3_BEDROOMS,
     "garage_spaces": 2, "garage_type": GarageType.COVERED, "price": 520000,
     "advertised_status": AdvertisedStatus.AVAILABLE_FOR_SALE},
    {"group": 14, "block": "D", "floor": 12, "unit": 121, "floor_plan": FloorPlan.TWO_BEDROOMS_PANTRY,
     "garage_spaces": 1, "garage_type": GarageType.UNCOVERED, "price": 340000,
     "advertised_status": AdvertisedStatus.AVAILABLE_FOR_RENT},
    {"group": 15, "block": "E", "floor": 5, "unit": 51, "floor_plan": FloorPlan.THREE_BEDROOMS_SERVICE_ROOM,
     "garage_spaces": 3, "garage_type": GarageType.COVERED, "price": 610000,
     "advertised_status": AdvertisedStatus.AVAILABLE_FOR_RENT},
]


async def seed_admin() -> bool:
    if await db.users.find_one({"email": DEFAULT_ADMIN["email"]}, {"_id": 0, "id": 1}):
        logger.info(f"Administrador já existe: {DEFAULT_ADMIN['email']}")
        return False

    await db.users.insert_one({
        "id": str(uuid.uuid4()),
        "email": DEFAULT_ADMIN["email"],
        "password": hash_password(DEFAULT_ADMIN["password"]),
        "name": DEFAULT_ADMIN["name"],
        "role": DEFAULT_ADMIN["role"],
        "is_active": True,
        "created_at": datetime.now(timezone.utc).isoformat(),
    })
    logger.info(f"✅ Administrador criado: {DEFAULT_ADMIN['email']}")
    return True


async def seed_tenants() -> int:
    created = 0
    for tenant in SAMPLE_TENANTS:
        if await db.tenants.find_one({"email": tenant["email"]}, {"_id": 0, "id": 1}):
            continue
        now = datetime.now(timezone.utc).isoformat()
        await db.tenants.insert_one({
            "id": str(uuid.uuid4()),
            **tenant,
            "notes": None,
            "created_at": now,
            "updated_at": now,
        })
        created += 1
    logger.info(f"Inquilinos: {created} criados, {len(SAMPLE_TENANTS) - created} já existiam")
    return created


async def seed_properties() -> int:
    created = 0
    for sample in SAMPLE_PROPERTIES:
        unit_filter = {k: sample[k] for k in ("group", "block", "floor", "unit")}
        if await db.properties.find_one(unit_filter, {"_id": 0, "id": 1}):
            continue
        now = datetime.now(timezone.utc).isoformat()
        status = sample["advertised_status"].value
        await db.properties.insert_one({
            "id": str(uuid.uuid4()),
            **unit_filter,
            "floor_plan": sample["floor_plan"].value,
            "usable_area": FLOOR_PLAN_AREAS[sample["floor_plan"]],
            "garage_spaces": sample["garage_spaces"],
            "garage_type": sample["garage_type"].value,
            "price": sample["price"],
            "advertised_status": status,
            "linked_contract_id": None,
            "status_changed_at": now,
            "status_notes": "",
            "featured": False,
            "history": [{"timestamp": now, "event": "created", "new_status": status, "user": "seed"}],
            "version": 0,
            "created_at": now,
            "updated_at": now,
            "created_by": "seed",
        })
        created += 1
    logger.info(f"Imóveis: {created} criados, {len(SAMPLE_PROPERTIES) - created} já existiam")
    return created


async def seed_development_data() -> dict:
    """Cria os dados de desenvolvimento em falta."""
    return {
        "admin_created": await seed_admin(),
        "tenants_created": await seed_tenants(),
        "properties_created": await seed_properties(),
    }


async def main():
    print("=" * 50)
    print("Gestão Imobiliária - Seed de Dados")
    print("=" * 50)
    try:
        result = await seed_development_data()
        print(f"Resultado: {result}")
        print(f"Admin: {DEFAULT_ADMIN['email']} | Password: {DEFAULT_ADMIN['password']}")
    finally:
        client.close()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(main())
