"""
Property Sync Outbox
====================
A escrita do contrato é a operação principal; a actualização do imóvel é
secundária. Uma falha na reconciliação nunca falha o pedido do contrato:
fica registada na colecção `property_sync_outbox` e é repetida pelo worker
(ou a pedido do operador).
"""
import uuid
import logging
from datetime import datetime, timezone, timedelta
from enum import Enum
from typing import Dict, Any, Optional, List

from pymongo.errors import PyMongoError

from config import PROPERTY_SYNC_MAX_ATTEMPTS, PROPERTY_SYNC_OUTBOX_RETENTION_DAYS
from database import db
from services.property_status import (
    ContractEvent, PropertySyncError, ReconcileResult,
    reconcile_property_status, reconcile_property_from_contracts,
)

logger = logging.getLogger(__name__)


class OutboxState(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


def _snapshot(contract: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": contract["id"],
        "code": contract.get("code"),
        "property_id": contract["property_id"],
        "type": contract["type"],
        "status": contract["status"],
    }


def _is_retryable(error: Exception) -> bool:
    if isinstance(error, PropertySyncError):
        return error.retryable
    return isinstance(error, PyMongoError)


async def record_failure(contract: Dict[str, Any], event: ContractEvent, error: Exception) -> Optional[str]:
    """Regista a reconciliação falhada para repetição posterior."""
    now = datetime.now(timezone.utc).isoformat()
    entry_id = str(uuid.uuid4())
    retryable = _is_retryable(error)
    entry = {
        "id": entry_id,
        "contract_id": contract["id"],
        "property_id": contract["property_id"],
        "event": event.value,
        "contract": _snapshot(contract),
        "state": OutboxState.PENDING.value if retryable else OutboxState.FAILED.value,
        "attempts": 1,
        "last_error": f"{type(error).__name__}: {error}",
        "created_at": now,
        "updated_at": now,
    }
    try:
        await db.property_sync_outbox.insert_one(entry)
    except PyMongoError as e:
        logger.error(f"Não foi possível registar a sincronização pendente do contrato {contract['id']}: {e}")
        return None
    return entry_id


async def dispatch_property_sync(
    contract: Dict[str, Any],
    event: ContractEvent,
    user: Optional[dict] = None,
) -> Optional[ReconcileResult]:
    """
    Reconcilia o imóvel depois de o contrato estar gravado.
    Nunca lança excepções: falhas ficam em log e na outbox.
    """
    try:
        return await reconcile_property_status(contract, event, user=user)
    except Exception as e:
        logger.error(
            f"Falha ao sincronizar imóvel {contract.get('property_id')} "
            f"(contrato {contract.get('id')}, {event.value}): {e}",
            exc_info=True
        )
        await record_failure(contract, event, e)
        return None


async def retry_pending_syncs(limit: int = 50) -> Dict[str, int]:
    """
    Repete as reconciliações pendentes, da mais antiga para a mais recente.
    O imóvel é recalculado a partir dos contratos que existem agora, para
    que uma entrada antiga não sobreponha uma reconciliação mais recente.
    O instantâneo só serve para escolher a variante disponível quando o
    imóvel fica sem contratos.
    """
    entries = await db.property_sync_outbox.find(
        {"state": OutboxState.PENDING.value}, {"_id": 0}
    ).sort("created_at", 1).limit(limit).to_list(limit)

    summary = {"processed": len(entries), "done": 0, "pending": 0, "failed": 0}

    for entry in entries:
        now = datetime.now(timezone.utc).isoformat()
        attempts = entry.get("attempts", 0) + 1
        try:
            await reconcile_property_from_contracts(entry["property_id"], entry["contract"].get("type"))
        except Exception as e:
            state = OutboxState.PENDING
            if not _is_retryable(e) or attempts >= PROPERTY_SYNC_MAX_ATTEMPTS:
                state = OutboxState.FAILED
            logger.warning(
                f"Sincronização {entry['id']} falhou novamente ({attempts}/{PROPERTY_SYNC_MAX_ATTEMPTS}): {e}"
            )
            await db.property_sync_outbox.update_one(
                {"id": entry["id"]},
                {"$set": {
                    "state": state.value,
                    "attempts": attempts,
                    "last_error": f"{type(e).__name__}: {e}",
                    "updated_at": now,
                }}
            )
            summary[state.value] += 1
            continue

        await db.property_sync_outbox.update_one(
            {"id": entry["id"]},
            {"$set": {"state": OutboxState.DONE.value, "attempts": attempts, "updated_at": now}}
        )
        summary["done"] += 1

    if entries:
        logger.info(f"Outbox de imóveis: {summary}")
    return summary


async def list_outbox(state: Optional[OutboxState] = None, limit: int = 100) -> List[Dict[str, Any]]:
    query = {}
    if state:
        query["state"] = state.value
    return await db.property_sync_outbox.find(query, {"_id": 0}).sort("created_at", -1).limit(limit).to_list(limit)


async def cleanup_outbox(days: int = PROPERTY_SYNC_OUTBOX_RETENTION_DAYS) -> int:
    """
    Remove entradas resolvidas (done / failed) mais antigas que `days` dias.
    As pendentes nunca são removidas.
    """
    cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

    result = await db.property_sync_outbox.delete_many({
        "updated_at": {"$lt": cutoff},
        "state": {"$in": [OutboxState.DONE.value, OutboxState.FAILED.value]}
    })

    if result.deleted_count:
        logger.info(f"Outbox de imóveis: {result.deleted_count} entradas antigas removidas")
    return result.deleted_count
