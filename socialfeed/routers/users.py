from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from socialfeed.auth.deps import get_authenticated_user_sub
from socialfeed.core.normalize import is_numeric_id, lenient_limit
from socialfeed.core.settings import S
from socialfeed.models import DisplayNameReq, ProfileUpdateReq
from socialfeed.services.providers import get_storage, get_user_directory
from socialfeed.services.storage import ImageStorage
from socialfeed.services.users import UserDirectory

router = APIRouter(tags=["users"])


@router.get("/users")
async def list_users(users: UserDirectory = Depends(get_user_directory)):
    return {"success": True, "data": users.list_profiles()}


@router.get("/users/random")
async def random_users(limit: Optional[str] = None, users: UserDirectory = Depends(get_user_directory)):
    return {
        "success": True,
        "data": users.random_profiles(lenient_limit(limit, S.random_users_limit, S.max_page_size)),
    }


@router.get("/users/{user_id}")
async def get_user(user_id: str, users: UserDirectory = Depends(get_user_directory)):
    if is_numeric_id(user_id):
        return {"success": True, "data": users.get_profile_by_internal_id(int(user_id))}
    return {"success": True, "data": users.get_profile(user_id)}


# The /user-data routes address profiles by auth identity and carry no
# ownership check, matching the public profile-maintenance API.
@router.put("/user-data/{user_id}")
async def update_user_data(
    user_id: str,
    body: ProfileUpdateReq,
    users: UserDirectory = Depends(get_user_directory),
):
    return {"success": True, "data": users.update_profile(user_id, body.model_dump(exclude_unset=True))}


@router.put("/user-data/{user_id}/display-name")
async def update_display_name(
    user_id: str,
    body: DisplayNameReq,
    users: UserDirectory = Depends(get_user_directory),
):
    if not body.display_name or not body.display_name.strip():
        raise HTTPException(400, "displayName is required")
    return {"success": True, "data": users.update_display_name(user_id, body.display_name)}


@router.delete("/user-data/{user_id}")
async def delete_user_data(user_id: str, users: UserDirectory = Depends(get_user_directory)):
    users.delete_profile(user_id)
    return {"success": True, "message": "User data deleted successfully"}


@router.post("/user/image")
async def upload_profile_image(
    file: UploadFile = File(...),
    user_sub: str = Depends(get_authenticated_user_sub),
    users: UserDirectory = Depends(get_user_directory),
    storage: ImageStorage = Depends(get_storage),
):
    profile = users.get_profile(user_sub)
    content = await file.read()
    stored = storage.upload_profile_image(profile["id"], file.filename, content, file.content_type)
    profile = users.update_profile_image(user_sub, stored["name"])
    url = storage.image_url(stored["name"], S.user_images_bucket)["url"]
    return {"success": True, "data": {"profile": profile, "image": stored, "url": url}}
