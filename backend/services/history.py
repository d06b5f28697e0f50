import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from database import db


async def log_history(entity: str, entity_id: str, user: Optional[dict], action: str,
                      field: str = None, old_value: Any = None, new_value: Any = None):
    """Log a change to the audit history of a contract, tenant or property"""
    history_doc = {
        "id": str(uuid.uuid4()),
        "entity": entity,
        "entity_id": entity_id,
        "user_id": user.get("id") if user else None,
        "user_name": user.get("name") if user else "Sistema",
        "action": action,
        "field": field,
        "old_value": str(old_value) if old_value is not None else None,
        "new_value": str(new_value) if new_value is not None else None,
        "created_at": datetime.now(timezone.utc).isoformat()
    }
    await db.history.insert_one(history_doc)


async def log_data_changes(entity: str, entity_id: str, user: dict, old_data: dict, new_data: dict):
    """Compare and log changes between old and new data"""
    if old_data is None:
        old_data = {}
    if new_data is None:
        return

    for key, new_val in new_data.items():
        if key == "updated_at":
            continue
        old_val = old_data.get(key)
        if old_val != new_val and new_val is not None:
            await log_history(entity, entity_id, user, "Alterou", key, old_val, new_val)


async def get_entity_history(entity: str, entity_id: str, limit: int = 100):
    return await db.history.find(
        {"entity": entity, "entity_id": entity_id}, {"_id": 0}
    ).sort("created_at", -1).to_list(limit)
