from __future__ import annotations

import re
from unittest.mock import Mock

import pytest
from fastapi import HTTPException

from socialfeed.core.settings import S
from socialfeed.services.storage import ImageStorage

from fakes import client_error


@pytest.fixture
def s3():
    client = Mock()
    client.generate_presigned_url.return_value = "https://signed.example/x"
    client.head_object.side_effect = client_error("404", "HeadObject")
    return client


def test_image_url_prefers_signed(s3):
    out = ImageStorage(s3, S).image_url("a.png")
    assert out == {"url": "https://signed.example/x", "signed": True}
    kwargs = s3.generate_presigned_url.call_args.kwargs
    assert kwargs["Params"] == {"Bucket": S.post_images_bucket, "Key": "a.png"}
    assert kwargs["ExpiresIn"] == S.signed_url_ttl_seconds


def test_image_url_falls_back_to_public(s3):
    s3.generate_presigned_url.side_effect = client_error("AccessDenied", "GeneratePresignedUrl")
    out = ImageStorage(s3, S).image_url("my pic.png", "user_image")
    assert out["signed"] is False
    assert out["url"] == f"https://user_image.s3.{S.aws_region}.amazonaws.com/my%20pic.png"


def test_image_url_rejects_traversal(s3):
    with pytest.raises(HTTPException):
        ImageStorage(s3, S).image_url("../secret")


def test_upload_rejects_non_images_and_large_files(s3):
    storage = ImageStorage(s3, S)
    with pytest.raises(HTTPException) as exc:
        storage.upload_image(b"data", "a.txt", "text/plain")
    assert exc.value.status_code == 400
    with pytest.raises(HTTPException) as exc:
        storage.upload_image(b"x" * (S.max_upload_bytes + 1), "a.png", "image/png")
    assert exc.value.status_code == 413
    s3.put_object.assert_not_called()


def test_upload_refuses_to_overwrite(s3):
    s3.head_object.side_effect = None
    with pytest.raises(HTTPException) as exc:
        ImageStorage(s3, S).upload_image(b"img", "a.png", "image/png")
    assert exc.value.status_code == 409


def test_unique_name_upload(s3):
    out = ImageStorage(s3, S).upload_with_unique_name(7, "holiday.JPG", b"img", "image/jpeg")

    assert re.fullmatch(r"7_\d+_[0-9a-f]{8}\.jpg", out["name"])
    kwargs = s3.put_object.call_args.kwargs
    assert kwargs["Bucket"] == S.post_images_bucket
    assert kwargs["ContentType"] == "image/jpeg"


def test_profile_upload_overwrites_in_user_bucket(s3):
    out = ImageStorage(s3, S).upload_profile_image(7, None, b"img", "image/png")

    assert re.fullmatch(r"profile_7_\d+\.png", out["name"])
    assert out["bucket"] == S.user_images_bucket
    s3.head_object.assert_not_called()


def test_list_images_sorted_and_paged(s3):
    s3.list_objects_v2.side_effect = [
        {"Contents": [{"Key": "c.png", "Size": 3}, {"Key": "a.png", "Size": 1}], "IsTruncated": True, "NextContinuationToken": "t"},
        {"Contents": [{"Key": "b.png", "Size": 2}], "IsTruncated": False},
    ]
    out = ImageStorage(s3, S).list_images(limit=2, offset=1)

    assert [o["name"] for o in out] == ["b.png", "c.png"]
    assert s3.list_objects_v2.call_args.kwargs["ContinuationToken"] == "t"


def test_delete_image(s3):
    ImageStorage(s3, S).delete_image("a.png")
    s3.delete_object.assert_called_once_with(Bucket=S.post_images_bucket, Key="a.png")
