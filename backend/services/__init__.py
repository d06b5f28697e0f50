from .auth import hash_password, verify_password, authenticate_user, create_token, get_current_user, require_roles, require_staff
from .history import log_history, log_data_changes
from .property_status import (
    ContractEvent, reconcile_property_status, reconcile_property_from_contracts, repair_all_property_statuses
)
from .property_sync import dispatch_property_sync, retry_pending_syncs, cleanup_outbox
