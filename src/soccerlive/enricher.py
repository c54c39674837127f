"""
Match detail enrichment for SoccerLive

Looks up incidents and match info for every match still to be played and
attaches them to the match records of a standings document before it is
published. A failed lookup only empties that match's details.
"""

import asyncio
import logging
from typing import Dict, Any, List, Optional

from .client import FeedClient
from .parser import Match, extract_details, parse_matches

logger = logging.getLogger(__name__)


class DetailEnricher:
    """Adds per-match details to standings payloads"""

    def __init__(self, client: FeedClient, max_concurrent_requests: int = 5):
        self.client = client
        self.max_concurrent_requests = max(1, max_concurrent_requests)

    async def enrich(self, competition_id: int, standings: Dict[str, Any],
                     matches: Optional[List[Match]] = None) -> int:
        """Attach details in place, returning the number of matches looked up"""
        if matches is None:
            matches = parse_matches(standings)
        pending = [m for m in matches if not m.is_finished and m.match_id is not None]
        if not pending:
            return 0

        semaphore = asyncio.Semaphore(self.max_concurrent_requests)

        async def enrich_match(match: Match):
            async with semaphore:
                await self._enrich_match(competition_id, match)

        await asyncio.gather(*(enrich_match(m) for m in pending))
        logger.debug(f"Enriched {len(pending)} matches for league {competition_id}")
        return len(pending)

    async def _enrich_match(self, competition_id: int, match: Match):
        try:
            data = await self.client.match_details(competition_id, match.match_id)
        except Exception as e:
            logger.error(f"Detail lookup for match {match.match_id} raised: {e}")
            data = None

        if data and data.get('data'):
            details, match_info = extract_details(data)
        else:
            logger.error(f"No details for match {match.match_id} of league {competition_id}")
            details, match_info = [], []

        match.raw['details'] = details
        match.raw['match_info'] = match_info


def create_enricher(client: FeedClient, max_concurrent_requests: int = 5) -> DetailEnricher:
    """Create detail enricher"""
    return DetailEnricher(client, max_concurrent_requests)
