"""
Competition registry for SoccerLive

Resolves the configured competition ids against the provider catalog and
starts the feeds each resolved competition supports.
"""

import logging
from typing import Dict, List, Optional

from .client import FeedClient
from .config import DisplayOptions
from .parser import Competition, parse_competitions
from .publisher import ResultPublisher
from .scheduler import RefreshScheduler, FeedKind

logger = logging.getLogger(__name__)


def resolve_competitions(catalog: List[Competition], league_ids: List[int]) -> Dict[int, Competition]:
    """Configured competitions found in the catalog, in configured order"""
    by_id = {c.id: c for c in catalog}
    resolved = {}
    for league_id in league_ids:
        competition = by_id.get(league_id)
        if competition is None:
            logger.debug(f"League {league_id} not offered by the provider, skipping")
            continue
        resolved[competition.id] = competition
    return resolved


def enabled_feeds(competition: Competition, options: DisplayOptions) -> List[FeedKind]:
    feeds = [FeedKind.STANDINGS]
    if options.show_tables and competition.has_table:
        feeds.append(FeedKind.TABLE)
    if options.show_scorers and competition.has_scorers:
        feeds.append(FeedKind.SCORERS)
    return feeds


class CompetitionRegistry:
    """Applies display options: resolve competitions, then fan out feeds"""

    def __init__(self, client: FeedClient, scheduler: RefreshScheduler, publisher: ResultPublisher):
        self.client = client
        self.scheduler = scheduler
        self.publisher = publisher
        self.competitions: Dict[int, Competition] = {}

    async def apply(self, options: DisplayOptions) -> Optional[Dict[int, Competition]]:
        """Reconfigure; returns the resolved competitions, or None if superseded"""
        epoch = self.scheduler.reset(options=options)
        self.client.set_language(options.language)
        self.publisher.clear()

        logger.info(f"Resolving leagues {', '.join(str(l) for l in options.leagues)}")
        data = await self.client.competitions()

        if not self.scheduler.is_current(epoch):
            logger.debug("Configuration changed while resolving leagues, discarding result")
            return None

        resolved = resolve_competitions(parse_competitions(data), options.leagues) if data else {}
        self.competitions = resolved
        self.scheduler.set_competitions(resolved.values())

        await self.publisher.publish(ResultPublisher.LEAGUES, {
            'leaguesList': {cid: c.raw for cid, c in resolved.items()}
        })

        if not self.scheduler.is_current(epoch):
            return None

        if data is None:
            logger.error("Could not load the competition catalog")
            self.scheduler.schedule_retry(self.scheduler.polling.failure_retry, self.apply, options)
            return resolved

        for competition in resolved.values():
            feeds = enabled_feeds(competition, options)
            logger.info(
                f"League {competition.name} ({competition.id}): "
                f"{', '.join(feed.value for feed in feeds)}"
            )
            for feed in feeds:
                self.scheduler.start_feed(competition.id, feed)

        return resolved


def create_registry(client: FeedClient, scheduler: RefreshScheduler,
                    publisher: ResultPublisher) -> CompetitionRegistry:
    """Create competition registry"""
    return CompetitionRegistry(client, scheduler, publisher)
