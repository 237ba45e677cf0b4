"""Cloudinary image upload and listing through the Cloudinary SDK."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from loguru import logger
from pydantic import BaseModel, Field

DEFAULT_FOLDER = "general_uploads"
MAX_LIST_RESULTS = 10


class UploadImageInput(BaseModel):
    folder: str = Field(
        ...,
        description=f"Cloudinary folder to store the image in. Use '{DEFAULT_FOLDER}' when the user does not say.",
    )
    public_id: str | None = Field(
        default=None,
        description="Unique file name for the image. Leave empty to let Cloudinary generate one.",
    )


class ListImagesInput(BaseModel):
    folder: str = Field(..., description="Cloudinary folder whose images should be listed. Required.")


@dataclass(frozen=True)
class CloudinaryConfig:
    cloud_name: str | None
    api_key: str | None
    api_secret: str | None

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def options(self) -> dict[str, Any]:
        """Per-call credentials, so the SDK's process-wide config stays untouched."""
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "secure": True,
        }


def _upload(config: CloudinaryConfig, file: str, folder: str, public_id: str | None) -> dict[str, Any]:
    options: dict[str, Any] = {"folder": folder, "resource_type": "image", **config.options()}
    if public_id:
        options["public_id"] = public_id
    return cloudinary.uploader.upload(file, **options)


def _search_folder(config: CloudinaryConfig, folder: str) -> dict[str, Any]:
    return (
        cloudinary.Search()
        .expression(f"folder={folder}")
        .sort_by("public_id", "desc")
        .max_results(MAX_LIST_RESULTS)
        .execute(**config.options())
    )


async def upload_image(
    config: CloudinaryConfig,
    *,
    data: str | None,
    mime_type: str,
    folder: str | None,
    public_id: str | None = None,
) -> dict[str, Any]:
    if not data:
        return {
            "success": False,
            "error": "No image data was provided. Tell the user to attach an image first.",
        }
    if not config.configured:
        return {"success": False, "error": "Cloudinary is not configured on this server."}

    file = f"data:{mime_type or 'image/jpeg'};base64,{data}"
    try:
        result = await asyncio.to_thread(_upload, config, file, folder or DEFAULT_FOLDER, public_id)
    except CloudinaryError as exc:
        logger.warning("cloudinary.upload.error message={}", exc)
        return {"success": False, "error": f"Upload failed: {exc!s}"}

    logger.info("cloudinary.upload.ok url={}", result.get("secure_url"))
    return {"success": True, "url": result.get("secure_url"), "public_id": result.get("public_id")}


async def list_images(config: CloudinaryConfig, *, folder: str) -> dict[str, Any]:
    if not folder:
        return {"success": False, "error": "A folder name is required to list its images."}
    if not config.configured:
        return {"success": False, "error": "Cloudinary is not configured on this server."}

    try:
        result = await asyncio.to_thread(_search_folder, config, folder)
    except CloudinaryError as exc:
        logger.warning("cloudinary.list.error folder={} message={}", folder, exc)
        if "Folder not found" in str(exc):
            return {"success": False, "error": f"Folder '{folder}' was not found on Cloudinary."}
        return {"success": False, "error": f"Listing images failed: {exc!s}"}

    images = [
        {"url": item.get("secure_url"), "public_id": item.get("public_id")} for item in result.get("resources") or []
    ]
    logger.info("cloudinary.list.ok folder={} count={}", folder, len(images))
    if not images:
        return {"success": True, "message": f"No images found in folder '{folder}'."}
    return {"success": True, "count": len(images), "images": images}
