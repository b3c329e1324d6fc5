from fastapi import APIRouter

from fanstream_backend.core.config import settings

router = APIRouter()


@router.get("/", summary="Health check")
async def health_check():
    """
    Liveness check. Also tells whether real Supabase credentials are configured,
    since placeholder credentials make every backend call fail.
    """
    return {"status": "ok", "backend_configured": settings.supabase_configured()}
