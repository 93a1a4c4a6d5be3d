from fastapi import APIRouter
from digilib.api.v1.endpoints import admin, auth, catalog, files, health, materials

api_router = APIRouter()

# Deep health checks (/health/live, /health/ready)
api_router.include_router(health.router)


# Simple health check endpoint for load balancers
@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint"""
    return {"status": "healthy", "service": "digilib-backend"}


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])
api_router.include_router(materials.router, prefix="/materials", tags=["Materials"])
api_router.include_router(files.router, prefix="/files", tags=["Files"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
