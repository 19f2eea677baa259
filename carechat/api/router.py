from fastapi import APIRouter

from carechat.api.routes import conversations, patients, tenants

api_router = APIRouter()

api_router.include_router(tenants.router)
api_router.include_router(patients.router)
api_router.include_router(conversations.router)
