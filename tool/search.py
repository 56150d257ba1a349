"""
tool/search.py - Web Search Tool

This module implements web search for the agent.

Sources:
- Google Custom Search, when a key pair (key + cx) is configured
- Otherwise two keyless best-effort lookups: the DuckDuckGo instant
  answer API and the Wikipedia REST page summary

Rules:
- Google failures come back as {error, status, detail}, never raised
- Each keyless lookup swallows its own failure (it just contributes nothing)
- No results at all is an empty item list plus a warning, not an error
- Items are always {title, link, snippet}
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from core.settings import SettingsSource
from .bases import BaseTool, create_json_schema, error_result

logger = logging.getLogger(__name__)

GOOGLE_CSE_URL = "https://www.googleapis.com/customsearch/v1"
DUCKDUCKGO_URL = "https://api.duckduckgo.com/"
WIKIPEDIA_SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary/"

NO_RESULTS_WARNING = "No-key fallbacks returned no results (network/CORS?)."


def _item(title: Any, link: Any, snippet: Any) -> Dict[str, str]:
    return {"title": title or "", "link": link or "", "snippet": snippet or ""}


class WebSearchTool(BaseTool):
    """Search the web for top snippets."""

    def __init__(self, settings: SettingsSource, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(follow_redirects=True)

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return (
            "Search the web for top snippets (Google CSE if keys provided; "
            "otherwise DDG/Wikipedia fallback)."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return create_json_schema(
            properties={
                "q": {"type": "string", "description": "Search query"},
                "num": {
                    "type": "integer",
                    "description": "Number of results",
                    "default": 3,
                    "minimum": 1,
                    "maximum": 10,
                },
            },
            required=["q"],
        )

    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        query = arguments["q"]
        num = arguments.get("num", 3)
        settings = self.settings()

        if settings.has_search_keys:
            return await self._google(
                query, num, settings.google_key.strip(), settings.google_cx.strip(), settings.http_timeout,
            )

        ddg = await self._duckduckgo(query, num, settings.http_timeout)
        wiki = await self._wikipedia(query, settings.http_timeout)

        if ddg and wiki:
            return {
                "query": query,
                "provider": "fallback(duckduckgo+wiki)",
                "items": ddg["items"][:max(0, num - 1)] + wiki["items"][:1],
            }
        if ddg:
            return ddg
        if wiki:
            return wiki
        return {"query": query, "provider": "fallback", "items": [], "warning": NO_RESULTS_WARNING}

    async def _google(
        self, query: str, num: int, key: str, cx: str, timeout: Optional[float],
    ) -> Dict[str, Any]:
        params = {"key": key, "cx": cx, "q": query, "num": str(num)}
        try:
            response = await self.client.get(GOOGLE_CSE_URL, params=params, timeout=timeout)
        except httpx.HTTPError as e:
            logger.warning(f"Google CSE request failed: {e}")
            return error_result(f"Google CSE request failed: {e}")

        if not response.is_success:
            return error_result(
                f"Google CSE error: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                detail=response.text,
            )

        data = response.json()
        items = [
            _item(i.get("title"), i.get("link"), i.get("snippet"))
            for i in (data.get("items") or [])
            if isinstance(i, dict)
        ]
        return {"query": query, "provider": "google_cse", "items": items[:num]}

    async def _duckduckgo(self, query: str, num: int, timeout: Optional[float]) -> Optional[Dict[str, Any]]:
        """DuckDuckGo instant answer: abstract first, then related topics."""
        params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}
        try:
            response = await self.client.get(DUCKDUCKGO_URL, params=params, timeout=timeout)
            if not response.is_success:
                return None
            data = response.json()

            items: List[Dict[str, str]] = []
            if data.get("AbstractText"):
                results = data.get("Results") or [{}]
                items.append(_item(
                    data.get("Heading") or query,
                    data.get("AbstractURL") or results[0].get("FirstURL"),
                    data["AbstractText"],
                ))

            topics = data.get("RelatedTopics")
            if isinstance(topics, list):
                for topic in topics[:max(0, num - len(items))]:
                    text = topic.get("Text") if isinstance(topic, dict) else None
                    if text:
                        items.append(_item(text.split(" - ")[0] or query, topic.get("FirstURL"), text))
        except Exception as e:
            logger.debug(f"DuckDuckGo lookup failed: {e}")
            return None

        if not items:
            return None
        return {"query": query, "provider": "duckduckgo", "items": items}

    async def _wikipedia(self, query: str, timeout: Optional[float]) -> Optional[Dict[str, Any]]:
        """Wikipedia summary of the page whose title best matches the query."""
        title_guess = "_".join(query.split())
        try:
            response = await self.client.get(
                WIKIPEDIA_SUMMARY_URL + quote(title_guess, safe=""), timeout=timeout,
            )
            if not response.is_success:
                return None
            data = response.json()
            if not data.get("extract"):
                return None
            urls = data.get("content_urls") or {}
            link = (urls.get("desktop") or {}).get("page") or (urls.get("mobile") or {}).get("page")
        except Exception as e:
            logger.debug(f"Wikipedia lookup failed: {e}")
            return None

        return {
            "query": query,
            "provider": "wikipedia",
            "items": [_item(data.get("title") or query, link, data["extract"])],
        }

    async def aclose(self) -> None:
        """Close the HTTP client if this tool created it."""
        if self._owns_client:
            await self.client.aclose()
