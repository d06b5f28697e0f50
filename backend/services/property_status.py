"""
====================================================================
RECONCILIAÇÃO DO ESTADO ANUNCIADO DOS IMÓVEIS
====================================================================
Quando um contrato é criado, muda de estado ou é removido, o imóvel
referenciado passa para o estado anunciado correspondente:

    Active  + Rental  -> RentedActive   (ligado ao contrato)
    Active  + Sale    -> Sold           (ligado ao contrato)
    Pending           -> Reserved       (ligado ao contrato)
    Terminated / Completed / Overdue / remoção
                      -> sem alteração se outro contrato Active existir,
                         caso contrário AvailableForRent / AvailableForSale
                         e a ligação ao contrato é limpa.

Cada passagem lê e escreve um único documento de imóvel. A escrita é
condicionada ao campo `version` lido; se outro pedido alterou o imóvel
entretanto, a passagem inteira (leitura, verificação de contratos
irmãos, decisão, escrita) é repetida.
====================================================================
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

from config import PROPERTY_SYNC_VERSION_RETRIES
from database import db
from models.contract import ContractStatus, ContractType, RELEASING_STATUSES
from models.property import AdvertisedStatus, CONTRACT_DRIVEN_STATUSES, PropertyHistory

logger = logging.getLogger(__name__)


class ContractEvent(str, Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    DELETED = "deleted"


class PropertySyncError(Exception):
    """Falha na reconciliação de um imóvel."""
    retryable = True


class PropertyNotFoundError(PropertySyncError):
    retryable = False


class PropertyVersionConflict(PropertySyncError):
    pass


@dataclass
class PropertyTransition:
    advertised_status: AdvertisedStatus
    linked_contract_id: Optional[str]
    notes: str
    history_event: str


@dataclass
class ReconcileResult:
    property_id: str
    applied: bool
    advertised_status: Optional[AdvertisedStatus] = None
    reason: Optional[str] = None
    attempts: int = 1


def available_status_for(contract_type) -> AdvertisedStatus:
    if ContractType(contract_type) == ContractType.RENTAL:
        return AdvertisedStatus.AVAILABLE_FOR_RENT
    return AdvertisedStatus.AVAILABLE_FOR_SALE


def needs_sibling_check(contract_status, event: ContractEvent) -> bool:
    return event == ContractEvent.DELETED or ContractStatus(contract_status) in RELEASING_STATUSES


def resolve_transition(
    contract_type,
    contract_status,
    event: ContractEvent,
    contract_id: str,
    contract_code: Optional[str] = None,
    has_active_sibling: bool = False,
) -> Optional[PropertyTransition]:
    """
    Decide o novo estado do imóvel. Retorna None quando o imóvel deve
    ficar como está (outro contrato Active continua a conduzi-lo).
    """
    contract_type = ContractType(contract_type)
    contract_status = ContractStatus(contract_status)
    label = contract_code or contract_id

    if event != ContractEvent.DELETED:
        if contract_status == ContractStatus.ACTIVE:
            if contract_type == ContractType.RENTAL:
                return PropertyTransition(
                    AdvertisedStatus.RENTED_ACTIVE, contract_id,
                    f"Locado - contrato {label}", "rental_started"
                )
            return PropertyTransition(
                AdvertisedStatus.SOLD, contract_id,
                f"Vendido - contrato {label}", "sold"
            )
        if contract_status == ContractStatus.PENDING:
            return PropertyTransition(
                AdvertisedStatus.RESERVED, contract_id,
                f"Reservado - contrato {label} pendente", "reserved"
            )
        if contract_status not in RELEASING_STATUSES:
            raise ValueError(f"Estado de contrato sem regra de transição: {contract_status}")

    if has_active_sibling:
        return None

    if event == ContractEvent.DELETED:
        return PropertyTransition(
            available_status_for(contract_type), None,
            f"Liberado automaticamente - contrato {label} removido", "auto_released"
        )
    return PropertyTransition(
        available_status_for(contract_type), None,
        f"Liberado - contrato {label} {contract_status.value}", "released"
    )


def _is_unchanged(prop: Dict[str, Any], transition: PropertyTransition) -> bool:
    return (prop.get("advertised_status") == transition.advertised_status.value
            and prop.get("linked_contract_id") == transition.linked_contract_id)


async def _write_transition(prop: Dict[str, Any], transition: PropertyTransition,
                            contract_id: Optional[str], user: Optional[dict] = None) -> bool:
    """
    Escreve a transição se o imóvel ainda estiver na versão lida.
    Retorna False em caso de conflito de versão.
    """
    now = datetime.now(timezone.utc).isoformat()

    version = prop.get("version")
    version_filter = {"version": version} if version is not None else {"version": {"$exists": False}}

    entry = PropertyHistory(
        timestamp=now,
        event=transition.history_event,
        previous_status=prop.get("advertised_status"),
        new_status=transition.advertised_status.value,
        contract_id=contract_id,
        user=user.get("email") if user else "Sistema",
        details=transition.notes,
    )

    result = await db.properties.update_one(
        {"id": prop["id"], **version_filter},
        {
            "$set": {
                "advertised_status": transition.advertised_status.value,
                "linked_contract_id": transition.linked_contract_id,
                "status_changed_at": now,
                "status_notes": transition.notes,
                "updated_at": now,
            },
            "$inc": {"version": 1},
            "$push": {"history": entry.model_dump()},
        }
    )
    return result.matched_count == 1


async def reconcile_property_status(
    contract: Dict[str, Any],
    event: ContractEvent,
    user: Optional[dict] = None,
    max_retries: Optional[int] = None,
) -> ReconcileResult:
    """
    Reconcilia o imóvel referenciado por `contract` (documento com id,
    code, property_id, type e status) após `event`.

    Raises:
        PropertyNotFoundError: imóvel inexistente
        PropertyVersionConflict: conflitos de versão em todas as tentativas
    """
    property_id = contract["property_id"]
    contract_id = contract["id"]
    retries = max_retries or PROPERTY_SYNC_VERSION_RETRIES

    for attempt in range(1, retries + 1):
        prop = await db.properties.find_one({"id": property_id}, {"_id": 0, "history": 0})
        if not prop:
            raise PropertyNotFoundError(
                f"Imóvel {property_id} não encontrado (contrato {contract_id})"
            )

        has_active_sibling = False
        if needs_sibling_check(contract["status"], event):
            sibling = await db.contracts.find_one(
                {
                    "property_id": property_id,
                    "id": {"$ne": contract_id},
                    "status": ContractStatus.ACTIVE.value,
                },
                {"_id": 0, "id": 1}
            )
            has_active_sibling = sibling is not None

        transition = resolve_transition(
            contract["type"], contract["status"], event,
            contract_id, contract.get("code"), has_active_sibling
        )
        if transition is None:
            logger.info(
                f"Imóvel {property_id} mantido: outro contrato Active continua ligado "
                f"(contrato {contract_id}, {event.value})"
            )
            return ReconcileResult(property_id, applied=False, reason="active_sibling", attempts=attempt)
        if _is_unchanged(prop, transition):
            return ReconcileResult(
                property_id, applied=False, advertised_status=transition.advertised_status,
                reason="unchanged", attempts=attempt
            )

        if await _write_transition(prop, transition, contract_id, user):
            logger.info(
                f"Imóvel {property_id}: {prop.get('advertised_status')} -> "
                f"{transition.advertised_status.value} (contrato {contract_id}, {event.value})"
            )
            return ReconcileResult(
                property_id, applied=True,
                advertised_status=transition.advertised_status, attempts=attempt
            )

        logger.warning(f"Conflito de versão no imóvel {property_id} (tentativa {attempt}/{retries})")

    raise PropertyVersionConflict(
        f"Imóvel {property_id} alterado concorrentemente em {retries} tentativas"
    )


# ====================================================================
# REPARAÇÃO DE DESVIOS (todas as propriedades)
# ====================================================================

def resolve_repair(
    prop: Dict[str, Any],
    contracts: List[Dict[str, Any]],
    fallback_type=None,
    history_event: str = "drift_repair",
) -> Optional[PropertyTransition]:
    """
    Estado que o imóvel deveria ter dado o conjunto dos seus contratos.
    Um contrato Active tem prioridade sobre um Pending; o mais recente ganha.
    `fallback_type` escolhe a variante disponível quando já não há contratos.
    """
    ordered = sorted(contracts, key=lambda c: c.get("created_at") or "", reverse=True)
    active = next((c for c in ordered if c.get("status") == ContractStatus.ACTIVE.value), None)
    pending = next((c for c in ordered if c.get("status") == ContractStatus.PENDING.value), None)

    if active:
        label = active.get("code") or active["id"]
        status = (AdvertisedStatus.RENTED_ACTIVE if active["type"] == ContractType.RENTAL.value
                  else AdvertisedStatus.SOLD)
        return PropertyTransition(status, active["id"], f"Sincronizado com contrato {label}", history_event)

    if pending:
        label = pending.get("code") or pending["id"]
        return PropertyTransition(
            AdvertisedStatus.RESERVED, pending["id"],
            f"Reservado - contrato {label} pendente", history_event
        )

    if prop.get("advertised_status") in [s.value for s in CONTRACT_DRIVEN_STATUSES] or prop.get("linked_contract_id"):
        if ordered:
            status = available_status_for(ordered[0]["type"])
        elif fallback_type:
            status = available_status_for(fallback_type)
        else:
            status = AdvertisedStatus.AVAILABLE_FOR_RENT
        return PropertyTransition(
            status, None, "Disponibilizado automaticamente - sem contratos ativos", history_event
        )

    return None


async def reconcile_property_from_contracts(
    property_id: str,
    fallback_type=None,
    user: Optional[dict] = None,
    max_retries: Optional[int] = None,
) -> ReconcileResult:
    """
    Recalcula um único imóvel a partir de todos os contratos que o
    referenciam. Usado na repetição da outbox: o resultado não depende
    da ordem das entradas nem de instantâneos antigos.

    Raises:
        PropertyNotFoundError: imóvel inexistente
        PropertyVersionConflict: conflitos de versão em todas as tentativas
    """
    retries = max_retries or PROPERTY_SYNC_VERSION_RETRIES

    for attempt in range(1, retries + 1):
        prop = await db.properties.find_one({"id": property_id}, {"_id": 0, "history": 0})
        if not prop:
            raise PropertyNotFoundError(f"Imóvel {property_id} não encontrado")

        contracts = await db.contracts.find(
            {"property_id": property_id},
            {"_id": 0, "id": 1, "code": 1, "type": 1, "status": 1, "created_at": 1}
        ).to_list(None)

        transition = resolve_repair(prop, contracts, fallback_type, history_event="sync_retry")
        if transition is None or _is_unchanged(prop, transition):
            return ReconcileResult(
                property_id, applied=False, advertised_status=AdvertisedStatus(prop["advertised_status"]),
                reason="unchanged", attempts=attempt
            )

        if await _write_transition(prop, transition, transition.linked_contract_id, user):
            logger.info(
                f"Imóvel {property_id}: {prop.get('advertised_status')} -> "
                f"{transition.advertised_status.value} (recalculado a partir dos contratos)"
            )
            return ReconcileResult(
                property_id, applied=True,
                advertised_status=transition.advertised_status, attempts=attempt
            )

        logger.warning(f"Conflito de versão no imóvel {property_id} (tentativa {attempt}/{retries})")

    raise PropertyVersionConflict(
        f"Imóvel {property_id} alterado concorrentemente em {retries} tentativas"
    )


async def repair_all_property_statuses(user: Optional[dict] = None) -> Dict[str, Any]:
    """
    Recalcula o estado de todos os imóveis a partir dos seus contratos.
    Só escreve quando o estado ou a ligação diferem.
    """
    contracts = await db.contracts.find(
        {}, {"_id": 0, "id": 1, "code": 1, "property_id": 1, "type": 1, "status": 1, "created_at": 1}
    ).to_list(None)
    properties = await db.properties.find({}, {"_id": 0, "history": 0}).to_list(None)

    by_property = defaultdict(list)
    for contract in contracts:
        by_property[contract.get("property_id")].append(contract)

    updated = 0
    errors = []

    for prop in properties:
        try:
            transition = resolve_repair(prop, by_property.get(prop["id"], []))
            if transition is None:
                continue
            if _is_unchanged(prop, transition):
                continue
            if await _write_transition(prop, transition, transition.linked_contract_id, user):
                updated += 1
            else:
                errors.append({"property_id": prop["id"], "error": "Conflito de versão"})
        except Exception as e:
            logger.error(f"Erro ao reparar imóvel {prop.get('id')}: {e}", exc_info=True)
            errors.append({"property_id": prop.get("id"), "error": str(e)})

    logger.info(
        f"Reparação de estados concluída: {updated} actualizados de {len(properties)} imóveis, "
        f"{len(errors)} erros"
    )

    return {
        "updated": updated,
        "total_properties": len(properties),
        "errors": errors,
    }
