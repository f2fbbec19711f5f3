from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

class SignupReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    display_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("display_name", "displayName"))
    email: Optional[str] = None
    password: Optional[str] = None

class SigninReq(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class PostCreateReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    description: Optional[str] = None
    image_id_bucket: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("image_id_bucket", "imageIdBucket")
    )

class PostPatchReq(BaseModel):
    # Admin correction path; counters are coerced to integers, junk becomes 0.
    model_config = ConfigDict(populate_by_name=True)
    description: Optional[str] = None
    image_id_bucket: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("image_id_bucket", "imageIdBucket")
    )
    is_pinned: Optional[bool] = Field(default=None, validation_alias=AliasChoices("is_pinned", "isPinned"))
    likes: Any = None
    comments: Any = None

class CommentReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    comment_text: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("comment_text", "commentText", "comment_content")
    )

class ProfileUpdateReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    display_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("display_name", "displayName"))
    user_image_bucket: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("user_image_bucket", "userImageBucket")
    )

class DisplayNameReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    display_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("display_name", "displayName"))
