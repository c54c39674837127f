"""
Feed client for SoccerLive

Issues single POST requests against the provider and returns parsed JSON.
Failures (non-200, invalid JSON, timeouts, transport errors) are logged and
reported as None; retry timing is left to the scheduler.
"""

import asyncio
import aiohttp
import json
import logging
import time
from typing import Dict, Any, Optional
from dataclasses import dataclass

from .config import ProviderConfig

logger = logging.getLogger(__name__)


@dataclass
class FeedResult:
    """Result of a single provider request"""
    success: bool
    data: Optional[Dict[str, Any]] = None
    endpoint_url: str = ""
    http_status: int = 0
    error_message: str = ""
    request_duration_ms: int = 0


class FeedClient:
    """Async client for the provider's JSON endpoints"""

    def __init__(self, config: ProviderConfig, language: Optional[str] = None,
                 max_connections: int = 5):
        self.config = config
        self.language = config.resolve_language(language)
        self.max_connections = max_connections
        self.session: Optional[aiohttp.ClientSession] = None

    async def start(self):
        """Open the HTTP session"""
        if self.session is not None:
            return

        timeout = aiohttp.ClientTimeout(
            total=self.config.timeout_seconds,
            connect=self.config.connect_timeout_seconds
        )
        connector = aiohttp.TCPConnector(
            limit=self.max_connections,
            limit_per_host=self.max_connections,
            keepalive_timeout=30,
            enable_cleanup_closed=True
        )
        self.session = aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            headers=self.config.request_headers()
        )

    async def close(self):
        """Close the HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self) -> 'FeedClient':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def set_language(self, language: Optional[str]):
        self.language = self.config.resolve_language(language)

    def build_url(self, endpoint: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    async def fetch(self, endpoint: str, body: Optional[Dict[str, Any]] = None) -> FeedResult:
        """POST to an endpoint and describe the outcome"""
        start_time = time.time()
        url = self.build_url(endpoint)
        payload = body if body is not None else {'lng': self.language}

        if self.session is None:
            await self.start()

        try:
            async with self.session.post(url, data=json.dumps(payload)) as response:
                duration_ms = int((time.time() - start_time) * 1000)

                if response.status != 200:
                    return FeedResult(
                        success=False,
                        endpoint_url=url,
                        http_status=response.status,
                        error_message=f"HTTP {response.status}",
                        request_duration_ms=duration_ms
                    )

                try:
                    data = await response.json(content_type=None)
                except (ValueError, aiohttp.ContentTypeError) as e:
                    return FeedResult(
                        success=False,
                        endpoint_url=url,
                        http_status=response.status,
                        error_message=f"Invalid JSON: {e}",
                        request_duration_ms=duration_ms
                    )

                if not isinstance(data, dict):
                    return FeedResult(
                        success=False,
                        endpoint_url=url,
                        http_status=response.status,
                        error_message=f"Unexpected payload type {type(data).__name__}",
                        request_duration_ms=duration_ms
                    )

                return FeedResult(
                    success=True,
                    data=data,
                    endpoint_url=url,
                    http_status=response.status,
                    request_duration_ms=duration_ms
                )

        except asyncio.TimeoutError:
            return FeedResult(
                success=False,
                endpoint_url=url,
                error_message="Request timeout",
                request_duration_ms=int((time.time() - start_time) * 1000)
            )
        except aiohttp.ClientError as e:
            return FeedResult(
                success=False,
                endpoint_url=url,
                error_message=str(e) or type(e).__name__,
                request_duration_ms=int((time.time() - start_time) * 1000)
            )

    async def post(self, endpoint: str, body: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """POST to an endpoint, returning the JSON document or None on failure"""
        result = await self.fetch(endpoint, body)

        if not result.success:
            logger.error(f"Request to {result.endpoint_url} failed: {result.error_message}")
            return None

        logger.debug(f"{result.endpoint_url} answered in {result.request_duration_ms}ms")
        return result.data

    async def competitions(self) -> Optional[Dict[str, Any]]:
        return await self.post("competitions")

    async def round_matches(self, competition_id: int, round_number: int = 0) -> Optional[Dict[str, Any]]:
        """Matches of a round; round 0 is the provider's current round"""
        return await self.post(f"competitions/{competition_id}/matches/round/{round_number}")

    async def table(self, competition_id: int) -> Optional[Dict[str, Any]]:
        return await self.post(f"competitions/{competition_id}/table")

    async def scorers(self, competition_id: int) -> Optional[Dict[str, Any]]:
        return await self.post(f"competitions/{competition_id}/scorers")

    async def match_details(self, competition_id: int, match_id: int) -> Optional[Dict[str, Any]]:
        return await self.post(f"competitions/{competition_id}/matches/{match_id}/details")


def create_client(config: ProviderConfig, language: Optional[str] = None,
                  max_connections: int = 5) -> FeedClient:
    """Create feed client"""
    return FeedClient(config, language, max_connections)
