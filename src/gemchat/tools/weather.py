"""Current weather lookup backed by wttr.in."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import BaseModel, Field

USER_AGENT = "gemchat-tools/1.0"


class WeatherInput(BaseModel):
    city: str = Field(
        ...,
        description="The city name, province, or general location (e.g., Jakarta, Jawa Barat, London, Mount Everest).",
    )


def _first_value(items: object) -> str | None:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        value = items[0].get("value")
        return str(value) if value else None
    return None


def _describe_location(location: str, data: dict[str, Any]) -> str:
    areas = data.get("nearest_area") or []
    if not areas:
        return location
    area = areas[0]
    city = _first_value(area.get("areaName")) or location
    region = _first_value(area.get("region")) or ""
    country = _first_value(area.get("country")) or ""

    full_location = city
    if region and region.casefold() != city.casefold():
        full_location += f", {region}"
    if country:
        full_location += f", {country}"
    return full_location


def _describe_weather(current: dict[str, Any], data: dict[str, Any]) -> str:
    if description := _first_value(current.get("weatherDesc")):
        return description
    days = data.get("weather") or []
    hourly = days[0].get("hourly") if days and isinstance(days[0], dict) else None
    if isinstance(hourly, list) and hourly and isinstance(hourly[0], dict):
        if description := _first_value(hourly[0].get("weatherDesc")):
            return description
    return "No description"


async def fetch_current_weather(http: httpx.AsyncClient, api_base: str, location: str) -> dict[str, Any]:
    if not location.strip():
        return {"error": "No location given. Ask the user which city or area they want the weather for."}

    url = f"{api_base.rstrip('/')}/{quote(location, safe='')}"
    logger.info("weather.fetch location={}", location)
    response = await http.get(url, params={"format": "j1"}, headers={"User-Agent": USER_AGENT})
    if response.is_error:
        logger.warning("weather.http.error status={} location={}", response.status_code, location)
        return {
            "error": f"Weather data for {location} is unavailable right now. The weather service may not "
            "recognise the location or is having problems."
        }

    data = response.json()
    conditions = data.get("current_condition") if isinstance(data, dict) else None
    if not conditions:
        return {"error": f"The weather service returned no current conditions for {location}."}

    current = conditions[0]
    return {
        "location": _describe_location(location, data),
        "temperature": f"{current.get('temp_C')}°C",
        "feels_like": f"{current.get('FeelsLikeC')}°C",
        "description": _describe_weather(current, data),
        "humidity": f"{current.get('humidity')}%",
        "wind_speed": f"{current.get('windspeedKmph')} km/h ({current.get('winddir16Point')})",
        "precipitation_mm": f"{current.get('precipMM')} mm",
        "visibility_km": f"{current.get('visibility')} km",
        "pressure_mb": f"{current.get('pressure')} mb",
        "observation_time": current.get("observation_time"),
    }
