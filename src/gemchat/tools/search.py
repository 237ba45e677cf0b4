"""Web search through the Google Custom Search JSON API."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
MAX_RESULTS = 3


class WebSearchInput(BaseModel):
    query: str = Field(..., description="Search keywords relevant to the user's question.")


def _format_summary(results: list[dict[str, str]]) -> str:
    lines = ["Relevant web search results:"]
    for idx, item in enumerate(results, start=1):
        lines.append(f"{idx}. Title: {item['title']}")
        lines.append(f"Snippet: {item['snippet']}")
        lines.append(f"(Source: {item['link']})")
        lines.append("")
    return "\n".join(lines).strip()


async def perform_web_search(
    http: httpx.AsyncClient,
    query: str,
    *,
    api_key: str | None,
    cse_id: str | None,
    url: str = GOOGLE_SEARCH_URL,
) -> dict[str, Any]:
    if not api_key or not cse_id:
        logger.error("search.not_configured")
        return {"error": "Web search is not configured on this server."}
    if not query.strip():
        return {"error": "No search query given."}

    logger.info("search.query query={}", query)
    response = await http.get(url, params={"key": api_key, "cx": cse_id, "q": query, "num": MAX_RESULTS})
    data = response.json()

    if isinstance(error := data.get("error"), dict):
        logger.warning("search.api.error message={}", error.get("message"))
        return {"error": f"Google search API error: {error.get('message')}"}

    items = data.get("items") or []
    results = [
        {
            "title": str(item.get("title", "")),
            "link": str(item.get("link", "")),
            "snippet": str(item.get("snippet", "")),
        }
        for item in items
        if isinstance(item, dict)
    ]
    if not results:
        return {"searchResultsSummary": "No relevant search results found.", "resultsArray": []}
    return {"searchResultsSummary": _format_summary(results), "resultsArray": results}
