from fastapi import APIRouter

from vibeshare.api.v1.categories import router as categories_router
from vibeshare.api.v1.posts import router as posts_router

api_router = APIRouter()
api_router.include_router(posts_router)
api_router.include_router(categories_router)
