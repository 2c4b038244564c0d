from fastapi import APIRouter

from productlens.api.v1 import extract

api_router = APIRouter(prefix="/v1")

api_router.include_router(extract.router, prefix="/extract", tags=["Extract"])
