# =============================
# backend/cwm_bridge/routes/health.py
# =============================
from fastapi import APIRouter
from ..context.registry import registry
router = APIRouter()

@router.get("/health")
def health_check():
    return {"status": "healthy", "message": "Backend is running", "contexts": len(registry)}
