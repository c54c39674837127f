"""
Competition catalog lookup for SoccerLive

Synchronous access to the provider's competition list, used by the command
line to show which league ids can be configured.
"""

import json
import logging
from typing import List, Optional

import requests

from .config import ProviderConfig
from .parser import Competition, parse_competitions

logger = logging.getLogger(__name__)


class CompetitionCatalog:
    """Fetches and caches the provider competition list"""

    def __init__(self, config: ProviderConfig, language: Optional[str] = None):
        self.config = config
        self.language = config.resolve_language(language)
        self.session = requests.Session()
        self.session.headers.update(config.request_headers())
        self.competitions: List[Competition] = []

    def fetch(self) -> List[Competition]:
        """Fetch the catalog; an empty list on failure"""
        url = f"{self.config.base_url.rstrip('/')}/competitions"

        try:
            response = self.session.post(
                url,
                data=json.dumps({'lng': self.language}),
                timeout=self.config.timeout_seconds
            )
        except requests.RequestException as e:
            logger.error(f"Failed to fetch competitions from {url}: {e}")
            return []

        if response.status_code != 200:
            logger.error(f"Failed to fetch competitions from {url}: HTTP {response.status_code}")
            return []

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Invalid competitions document from {url}: {e}")
            return []

        self.competitions = parse_competitions(data if isinstance(data, dict) else None)
        logger.info(f"Catalog lists {len(self.competitions)} competitions")
        return self.competitions

    def close(self):
        self.session.close()


def list_competitions(config: ProviderConfig, language: Optional[str] = None) -> List[Competition]:
    """Fetch the catalog once"""
    catalog = CompetitionCatalog(config, language)
    try:
        return catalog.fetch()
    finally:
        catalog.close()
