from fastapi import APIRouter

from app.api.routes import reconciliation

api_router = APIRouter()
api_router.include_router(reconciliation.router)
