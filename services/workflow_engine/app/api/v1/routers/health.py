from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import JSONResponse

from ....core.config import get_settings
from ....db import check_database_health

router = APIRouter(tags=["ops"])


@router.get("/health")
def health(_: Request) -> JSONResponse:
    settings = get_settings()
    db = check_database_health()
    return JSONResponse(
        {
            "status": "healthy" if db["ok"] else "degraded",
            "service": settings.service_name,
            "port": settings.port,
            "db": db,
        },
        status_code=200 if db["ok"] else 503,
    )
