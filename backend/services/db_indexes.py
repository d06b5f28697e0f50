"""
====================================================================
ÍNDICES DE BASE DE DADOS
====================================================================
Índices nas colecções MongoDB mais consultadas. Executado no arranque
da aplicação (e pode ser executado manualmente).

Nota: não existe índice único para "um contrato Active por imóvel";
essa regra é mantida pela reconciliação do estado dos imóveis.
====================================================================
"""
import logging

logger = logging.getLogger(__name__)


INDEXES = {
    "contracts": [
        {"keys": [("id", 1)], "name": "idx_contract_id", "unique": True},
        {"keys": [("code", 1)], "name": "idx_contract_code", "unique": True},
        {"keys": [("property_id", 1), ("status", 1)], "name": "idx_property_status"},
        {"keys": [("tenant_id", 1)], "name": "idx_tenant"},
        {"keys": [("created_at", -1)], "name": "idx_created_desc"},
    ],
    "properties": [
        {"keys": [("id", 1)], "name": "idx_property_id", "unique": True},
        {"keys": [("advertised_status", 1)], "name": "idx_advertised_status"},
        {"keys": [("group", 1), ("block", 1), ("floor", 1), ("unit", 1)], "name": "idx_unit"},
    ],
    "tenants": [
        {"keys": [("id", 1)], "name": "idx_tenant_id", "unique": True},
        {"keys": [("email", 1)], "name": "idx_tenant_email", "unique": True},
    ],
    "users": [
        {"keys": [("id", 1)], "name": "idx_user_id", "unique": True},
        {"keys": [("email", 1)], "name": "idx_email", "unique": True},
    ],
    "property_sync_outbox": [
        {"keys": [("state", 1), ("created_at", 1)], "name": "idx_state_created"},
        {"keys": [("state", 1), ("updated_at", 1)], "name": "idx_state_updated"},
    ],
    "history": [
        {"keys": [("entity", 1), ("entity_id", 1), ("created_at", -1)], "name": "idx_entity"},
    ],
}


async def create_indexes(db) -> dict:
    """
    Cria os índices das colecções principais.

    Returns:
        dict: Resumo dos índices criados
    """
    results = {"created": [], "errors": [], "skipped": []}

    for collection_name, indexes in INDEXES.items():
        collection = getattr(db, collection_name)
        for idx in indexes:
            try:
                await collection.create_index(
                    idx["keys"],
                    name=idx["name"],
                    unique=idx.get("unique", False),
                    sparse=idx.get("sparse", False),
                    background=True
                )
                results["created"].append(f"{collection_name}.{idx['name']}")
            except Exception as e:
                if "already exists" in str(e).lower():
                    results["skipped"].append(f"{collection_name}.{idx['name']}")
                else:
                    results["errors"].append(f"{collection_name}.{idx['name']}: {str(e)}")
                    logger.error(f"Erro ao criar índice {collection_name}.{idx['name']}: {e}")

    logger.info(
        f"Criação de índices concluída: "
        f"{len(results['created'])} criados, "
        f"{len(results['skipped'])} já existiam, "
        f"{len(results['errors'])} erros"
    )

    return results
