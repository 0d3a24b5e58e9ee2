# app/api/v1/api.py
from fastapi import APIRouter
from app.api.v1.endpoints import auth, catalog, songs, grants

api_router = APIRouter()
api_router.include_router(auth.router, tags=["auth"])
api_router.include_router(catalog.router, tags=["catalog"])
api_router.include_router(songs.router, tags=["songs"])
api_router.include_router(grants.router, tags=["grants"])
