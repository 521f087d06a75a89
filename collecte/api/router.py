"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from collecte.api.routes import auth, fee_config, admin_collecte, provider_collecte

api_router = APIRouter()

# Include all route modules
api_router.include_router(auth.router)
api_router.include_router(fee_config.router)
api_router.include_router(admin_collecte.router)
api_router.include_router(provider_collecte.router)
