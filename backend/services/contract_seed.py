"""
Carga inicial de contratos de exemplo.

Só escreve quando a colecção de contratos está vazia; caso contrário limita-se
a reportar quantos contratos existem. Chamadas repetidas nunca duplicam dados.
"""
import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, Any

from database import db
from models.contract import ContractStatus, ContractType

logger = logging.getLogger(__name__)


class SeedPrerequisiteError(Exception):
    """Não há inquilinos ou imóveis para associar aos contratos."""


SAMPLE_CONTRACTS = [
    {
        "code": "CTR2023001",
        "type": ContractType.RENTAL.value,
        "status": ContractStatus.ACTIVE.value,
        "start_date": "2023-01-15",
        "end_date": "2024-01-14",
        "duration_months": 12,
        "amount": 1800.00,
        "notes": "Contrato padrão de locação",
    },
    {
        "code": "CTR2023002",
        "type": ContractType.RENTAL.value,
        "status": ContractStatus.ACTIVE.value,
        "start_date": "2023-02-01",
        "end_date": "2024-01-31",
        "duration_months": 12,
        "amount": 2200.00,
        "notes": "Inclui taxa de condomínio",
    },
    {
        "code": "CTR2023003",
        "type": ContractType.SALE.value,
        "status": ContractStatus.COMPLETED.value,
        "start_date": "2023-03-10",
        "end_date": "2023-03-10",
        "duration_months": 1,
        "amount": 350000.00,
        "notes": "Venda à vista",
    },
    {
        "code": "CTR2023004",
        "type": ContractType.RENTAL.value,
        "status": ContractStatus.OVERDUE.value,
        "start_date": "2022-06-01",
        "end_date": "2023-05-31",
        "duration_months": 12,
        "amount": 1950.00,
        "notes": "Aguardando renovação",
    },
    {
        "code": "CTR2023005",
        "type": ContractType.RENTAL.value,
        "status": ContractStatus.PENDING.value,
        "start_date": "2023-06-15",
        "end_date": "2024-06-14",
        "duration_months": 12,
        "amount": 2100.00,
        "notes": "Aguardando assinatura",
    },
]


async def seed_sample_contracts() -> Dict[str, Any]:
    """
    Insere os contratos de exemplo se ainda não existir nenhum contrato.

    Returns:
        dict com `created` (contratos inseridos) e `existing` (contagem anterior)
    """
    count = await db.contracts.count_documents({})
    if count > 0:
        logger.info(f"Seed de contratos ignorado: já existem {count} contratos")
        return {
            "created": 0,
            "existing": count,
            "message": f"Já existem {count} contratos cadastrados.",
        }

    tenants = await db.tenants.find({}, {"_id": 0, "id": 1}).sort("created_at", 1).limit(5).to_list(5)
    properties = await db.properties.find({}, {"_id": 0, "id": 1}).sort("created_at", 1).limit(5).to_list(5)

    if not tenants or not properties:
        raise SeedPrerequisiteError(
            "Não há inquilinos ou imóveis cadastrados para criar contratos de teste"
        )

    now = datetime.now(timezone.utc).isoformat()
    contracts = []
    for index, sample in enumerate(SAMPLE_CONTRACTS):
        contracts.append({
            **sample,
            "id": str(uuid.uuid4()),
            "tenant_id": tenants[index % len(tenants)]["id"],
            "property_id": properties[index % len(properties)]["id"],
            "due_day": None,
            "next_due_date": None,
            "last_adjustment_date": None,
            "annual_adjustment_percentage": None,
            "adjustment_index": None,
            "termination_date": None,
            "termination_reason": None,
            "adjustments": [],
            "created_at": now,
            "updated_at": now,
            "created_by": "seed",
        })

    await db.contracts.insert_many(contracts)
    logger.info(f"✅ {len(contracts)} contratos de exemplo criados")

    return {
        "created": len(contracts),
        "existing": 0,
        "message": "Contratos de teste criados com sucesso!",
    }
