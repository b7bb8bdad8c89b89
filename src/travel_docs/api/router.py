from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from travel_docs.core.storage import diagnose_storage
from travel_docs.modules.documents.api import router as documents_router
from travel_docs.modules.identity.api import router as identity_router
from travel_docs.modules.trips.api import router as trips_router

router = APIRouter()

router.include_router(trips_router, prefix="/api")
router.include_router(documents_router, prefix="/api")
router.include_router(identity_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz/storage")
def healthz_storage(*, write_test: bool = False) -> JSONResponse:
    result = diagnose_storage(write_test=write_test)
    status_code = 200 if result.get("ok") else 503
    return JSONResponse(status_code=status_code, content=result)
