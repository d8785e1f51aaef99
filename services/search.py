"""
Web search augmentation using the Tavily Search API.
Rotates across search keys and renders results into a bounded prompt block.
"""
import random
from typing import Any, Dict, Optional, Sequence

import httpx

from models.chat_models import SearchHit, SearchResult
from services.dispatcher import shuffled
from utils.http_client import HTTPClientManager
from utils.logger import app_logger, mask_secret


class SearchAugmenter:
    """Service for performing web searches for prompt augmentation."""

    def __init__(
        self,
        api_keys: Sequence[str],
        search_url: str = "https://api.tavily.com/search",
        max_results: int = 5,
        search_depth: str = "basic",
        snippet_chars: int = 400,
        rng: random.Random | None = None
    ):
        """
        Initialize SearchAugmenter.

        Args:
            api_keys: Search API keys, tried one after another
            search_url: Search endpoint
            max_results: Number of hits requested per search
            search_depth: Tavily search depth ("basic" or "advanced")
            snippet_chars: Per-hit snippet length limit in the rendered block
            rng: Random source for key order
        """
        self.api_keys = [key for key in api_keys if key]
        self.search_url = search_url
        self.max_results = max_results
        self.search_depth = search_depth
        self.snippet_chars = snippet_chars
        self.rng = rng or random.Random()

    def _get_search_payload(self, api_key: str, query: str) -> Dict[str, Any]:
        """Build the request body for one search call."""
        return {
            "api_key": api_key,
            "query": query,
            "search_depth": self.search_depth,
            "include_answer": True,
            "max_results": self.max_results,
        }

    @staticmethod
    def _parse_results(data: dict, query: str) -> SearchResult:
        """Convert a Tavily response body into a SearchResult."""
        hits = []
        for item in data.get("results") or []:
            if not isinstance(item, dict):
                continue
            hits.append(SearchHit(
                title=str(item.get("title") or "Untitled").strip(),
                url=str(item.get("url") or ""),
                snippet=str(item.get("content") or item.get("snippet") or "")
            ))

        answer = data.get("answer")
        return SearchResult(
            query=query,
            answer=answer.strip() if isinstance(answer, str) and answer.strip() else None,
            hits=hits
        )

    async def _attempt(self, client: httpx.AsyncClient, api_key: str, query: str) -> Optional[SearchResult]:
        """Run one search with one key, returning None on any failure."""
        try:
            response = await client.post(self.search_url, json=self._get_search_payload(api_key, query))

            if response.status_code != 200:
                app_logger.warning(
                    f"Search key {mask_secret(api_key)} failed with status {response.status_code}"
                )
                return None

            data = response.json()
            if not isinstance(data, dict):
                app_logger.warning(f"Search key {mask_secret(api_key)} returned an unexpected body")
                return None

            return self._parse_results(data, query)

        except httpx.TimeoutException as e:
            app_logger.warning(f"Search timed out with key {mask_secret(api_key)}: {e}")
        except httpx.HTTPError as e:
            app_logger.warning(f"Search request failed with key {mask_secret(api_key)}: {e}")
        except ValueError as e:
            app_logger.warning(f"Search response was not valid JSON with key {mask_secret(api_key)}: {e}")
        except Exception as e:
            app_logger.warning(f"Search failed with key {mask_secret(api_key)}: {type(e).__name__}: {e}")
        return None

    async def search(self, query: str) -> Optional[SearchResult]:
        """
        Perform a web search, moving to the next key on any failure.

        Args:
            query: Search query string

        Returns:
            SearchResult from the first key that succeeds, or None when no keys
            are configured or every key fails.
        """
        if not self.api_keys:
            app_logger.info("Search skipped: no search API keys configured")
            return None

        client = HTTPClientManager.get_search_client()

        for api_key in shuffled(self.api_keys, self.rng):
            result = await self._attempt(client, api_key, query)
            if result is not None:
                app_logger.info(f"Search '{query[:60]}': {len(result.hits)} hits, answer={'yes' if result.answer else 'no'}")
                return result

        app_logger.error(f"All {len(self.api_keys)} search keys failed for '{query[:60]}'")
        return None

    async def research(self, query: str) -> Optional[str]:
        """Search and render the result block, or None when nothing usable came back."""
        result = await self.search(query)
        if result is None or result.is_empty:
            return None
        return result.render(self.snippet_chars)
