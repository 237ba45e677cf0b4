"""Built-in tool definitions."""

from __future__ import annotations

from typing import Any

import httpx

from gemchat.config import Settings
from gemchat.tools.media import CloudinaryConfig, ListImagesInput, UploadImageInput, list_images, upload_image
from gemchat.tools.registry import ToolContext, ToolRegistry
from gemchat.tools.search import WebSearchInput, perform_web_search
from gemchat.tools.weather import WeatherInput, fetch_current_weather


def register_builtin_tools(registry: ToolRegistry, *, settings: Settings, http: httpx.AsyncClient) -> None:
    """Register weather, web search and Cloudinary tools."""

    cloudinary = CloudinaryConfig(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
    )

    @registry.register(
        name="getCurrentWeather",
        description="Get the current weather in a given city or location. It can also understand provinces "
        "or broader areas.",
        input_model=WeatherInput,
    )
    async def get_current_weather(params: WeatherInput, _context: ToolContext) -> dict[str, Any]:
        return await fetch_current_weather(http, settings.weather_api_base, params.city)

    @registry.register(
        name="performWebSearch",
        description="Search the web when you do not know the exact answer: current events, news, trends, "
        "product prices, schedules, specific future dates such as holidays or events, or facts that change "
        "often and are unlikely to be in the model's own knowledge.",
        input_model=WebSearchInput,
    )
    async def web_search(params: WebSearchInput, _context: ToolContext) -> dict[str, Any]:
        return await perform_web_search(
            http,
            params.query,
            api_key=settings.google_search_api_key,
            cse_id=settings.google_cse_id,
        )

    @registry.register(
        name="uploadImageToCloudinary",
        description="Upload the image the user attached to the connected Cloudinary account. You are fully "
        "authorised to do this. Returns the public URL of the image on success.",
        input_model=UploadImageInput,
    )
    async def upload_image_to_cloudinary(params: UploadImageInput, context: ToolContext) -> dict[str, Any]:
        attachment = context.attachment
        return await upload_image(
            cloudinary,
            data=attachment.data if attachment is not None else None,
            mime_type=attachment.mime_type if attachment is not None else "image/jpeg",
            folder=params.folder,
            public_id=params.public_id,
        )

    @registry.register(
        name="listImagesInCloudinary",
        description="List the images stored in a specific folder of the connected Cloudinary account. Use "
        "this when the user asks which images are in folder x.",
        input_model=ListImagesInput,
    )
    async def list_images_in_cloudinary(params: ListImagesInput, _context: ToolContext) -> dict[str, Any]:
        return await list_images(cloudinary, folder=params.folder)
