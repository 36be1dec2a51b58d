from fastapi import APIRouter

from whoami.api.whoami import router as whoami_router

api_router = APIRouter(prefix="/api")
api_router.include_router(whoami_router)
