from __future__ import annotations

from fastapi import APIRouter

from socialfeed.core.settings import S
from socialfeed.core.time import now_iso

router = APIRouter(tags=["misc"])

@router.get("/health")
async def health():
    return {"success": True, "status": "ok", "version": S.app_version, "timestamp": now_iso()}

@router.get("/api/ping")
async def ping():
    return {"ok": True}
