from fastapi import APIRouter

from ..utils.helpers import utcnow

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    return {"status": "ok", "timestamp": utcnow().isoformat()}
