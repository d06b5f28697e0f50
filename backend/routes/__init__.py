from .auth import router as auth_router
from .properties import router as properties_router
from .contracts import router as contracts_router
from .tenants import router as tenants_router
