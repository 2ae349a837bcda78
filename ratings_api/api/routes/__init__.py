from __future__ import annotations

from ratings_api.api.routes.company import router as company_router
from ratings_api.api.routes.health import router as health_router

__all__ = ["company_router", "health_router"]
