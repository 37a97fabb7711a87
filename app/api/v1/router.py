# app/api/v1/router.py
from fastapi import APIRouter
from app.api.v1.auth import router as auth_router
from app.modules.discounts.router import router as discounts_router
from app.modules.approvals.router import router as approvals_router

# Crear router principal de la API v1
api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["authentication"])

api_router.include_router(
    discounts_router,
    prefix="/requests",
    tags=["Requests"]
)

api_router.include_router(
    approvals_router,
    prefix="/approvals",
    tags=["Approvals"]
)
