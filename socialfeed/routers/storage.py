from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from socialfeed.auth.deps import get_authenticated_user_sub
from socialfeed.core.settings import S
from socialfeed.services.identity import IdentityResolver
from socialfeed.services.providers import get_identity_resolver, get_storage
from socialfeed.services.storage import ImageStorage

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/image/{file_name}")
async def post_image_url(file_name: str, storage: ImageStorage = Depends(get_storage)):
    return {"success": True, "data": storage.image_url(file_name, S.post_images_bucket)}


@router.get("/user-image/{file_name}")
async def user_image_url(file_name: str, storage: ImageStorage = Depends(get_storage)):
    return {"success": True, "data": storage.image_url(file_name, S.user_images_bucket)}


@router.post("/upload", status_code=201)
async def upload_post_image(
    file: UploadFile = File(...),
    user_sub: str = Depends(get_authenticated_user_sub),
    identity: IdentityResolver = Depends(get_identity_resolver),
    storage: ImageStorage = Depends(get_storage),
):
    user_id = identity.caller_id(user_sub)
    content = await file.read()
    stored = storage.upload_with_unique_name(user_id, file.filename, content, file.content_type)
    return {
        "success": True,
        "message": "Image uploaded successfully",
        "data": dict(stored, url=storage.image_url(stored["name"], stored["bucket"])["url"]),
    }
