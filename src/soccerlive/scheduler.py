"""
Adaptive refresh scheduler for SoccerLive

Handles:
- One independently timed feed per (competition, feed kind)
- Next-poll computation from the match calendar (standings) or the
  provider's refresh hint (table, scorers)
- One-shot timers re-armed after every poll, with a fixed retry on failure
- Reconfiguration and shutdown, discarding results of stale polls
- An explicit stopped state once a season has no rounds left
"""

import asyncio
import json
import logging
import time
from enum import Enum
from typing import Dict, List, Any, Optional, Tuple, Callable, Set, Iterable, Awaitable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .client import FeedClient
from .config import SoccerLiveConfig, DisplayOptions
from .enricher import DetailEnricher
from .parser import Competition, parse_standings, refresh_seconds, extract_tables, extract_scorers
from .publisher import ResultPublisher
from .window import MatchWindowCalculator, clamp_delay_ms, MAX_TIMER_DELAY_MS

logger = logging.getLogger(__name__)


class FeedKind(Enum):
    STANDINGS = "standings"
    TABLE = "table"
    SCORERS = "scorers"


class FeedState(Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass
class FeedSchedule:
    """Timer state of one feed of one competition"""
    competition_id: int
    kind: FeedKind
    state: FeedState = FeedState.IDLE
    handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)
    delay_ms: int = 0
    next_poll_at: Optional[float] = None
    last_poll_time: float = 0
    last_successful_poll: float = 0
    consecutive_failures: int = 0

    @property
    def key(self) -> Tuple[int, FeedKind]:
        return self.competition_id, self.kind

    def cancel(self) -> bool:
        """Cancel the armed timer, if any"""
        if self.handle is None:
            return False
        self.handle.cancel()
        self.handle = None
        return True


@dataclass
class PollOutcome:
    """What a feed poll produced"""
    success: bool
    delay_ms: Optional[int] = None
    next_poll_at: Optional[float] = None  # absolute; wins over delay_ms
    notification: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None


def format_timestamp(timestamp: Optional[float]) -> Optional[str]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class RefreshScheduler:
    """Owns every feed schedule of the process"""

    def __init__(self, config: SoccerLiveConfig, client: FeedClient, publisher: ResultPublisher,
                 calculator: Optional[MatchWindowCalculator] = None,
                 enricher: Optional[DetailEnricher] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.polling = config.polling
        self.options: DisplayOptions = config.display
        self.client = client
        self.publisher = publisher
        self.calculator = calculator or MatchWindowCalculator(config.polling)
        self.enricher = enricher or DetailEnricher(client, config.max_concurrent_requests)
        self.clock = clock

        # Capability map and schedule table, replaced on reconfiguration
        self.competitions: Dict[int, Competition] = {}
        self.schedules: Dict[Tuple[int, FeedKind], FeedSchedule] = {}

        # Bumped on every reset; polls started under an older epoch are stale
        self.epoch = 0
        self.running = True

        self.poll_tasks: Set[asyncio.Task] = set()
        self.retry_handle: Optional[asyncio.TimerHandle] = None
        self.stop_callbacks: List[Callable] = []

        self._handlers = {
            FeedKind.STANDINGS: self._poll_standings,
            FeedKind.TABLE: self._poll_table,
            FeedKind.SCORERS: self._poll_scorers,
        }

    # Configuration

    def reset(self, competitions: Iterable[Competition] = (),
              options: Optional[DisplayOptions] = None) -> int:
        """Drop every schedule and start a new configuration epoch"""
        cancelled = self.cancel_all() + self._cancel_retry()
        self.epoch += 1
        self.running = True
        self.schedules.clear()
        self.competitions = {c.id: c for c in competitions}
        if options is not None:
            self.options = options

        logger.debug(f"Scheduler reset (epoch {self.epoch}), cancelled {cancelled} timers")
        return self.epoch

    def set_competitions(self, competitions: Iterable[Competition]):
        self.competitions = {c.id: c for c in competitions}

    def is_current(self, epoch: int) -> bool:
        return self.running and epoch == self.epoch

    def register_stop_callback(self, callback: Callable):
        """Register a callable taking (competition_id, feed_kind) for stopped feeds"""
        self.stop_callbacks.append(callback)

    # Timers

    def start_feed(self, competition_id: int, kind: FeedKind) -> FeedSchedule:
        """Create the schedule of a feed and poll it right away"""
        previous = self.schedules.get((competition_id, kind))
        if previous is not None:
            previous.cancel()

        schedule = FeedSchedule(competition_id=competition_id, kind=kind)
        self.schedules[schedule.key] = schedule
        self._launch(schedule)
        return schedule

    def arm(self, schedule: FeedSchedule, delay_ms: float):
        """Replace the schedule's timer with a new one-shot timer"""
        if delay_ms > MAX_TIMER_DELAY_MS:
            logger.debug(f"Delay of {delay_ms}ms capped to {MAX_TIMER_DELAY_MS}ms")
        delay_ms = clamp_delay_ms(delay_ms)

        schedule.cancel()
        loop = asyncio.get_running_loop()
        schedule.handle = loop.call_later(delay_ms / 1000, self._fire, schedule, self.epoch)
        schedule.delay_ms = delay_ms
        schedule.next_poll_at = self.clock() + delay_ms / 1000
        schedule.state = FeedState.SCHEDULED

    def arm_at(self, schedule: FeedSchedule, next_poll_at: float):
        """Arm the schedule's timer for an absolute time"""
        self.arm(schedule, max(0, round((next_poll_at - self.clock()) * 1000)))

    def cancel_all(self) -> int:
        return sum(1 for schedule in self.schedules.values() if schedule.cancel())

    def schedule_retry(self, delay_seconds: float, callback: Callable[..., Awaitable], *args):
        """Run callback(*args) once after a delay unless the configuration changes first"""
        self._cancel_retry()
        loop = asyncio.get_running_loop()
        self.retry_handle = loop.call_later(delay_seconds, self._fire_retry, callback, args, self.epoch)
        logger.info(f"Retrying configuration on {format_timestamp(self.clock() + delay_seconds)}")
        return self.retry_handle

    def _cancel_retry(self) -> int:
        if self.retry_handle is None:
            return 0
        self.retry_handle.cancel()
        self.retry_handle = None
        return 1

    def _fire_retry(self, callback: Callable[..., Awaitable], args: tuple, epoch: int):
        self.retry_handle = None
        if not self.is_current(epoch):
            return
        self._track(asyncio.get_running_loop().create_task(callback(*args)))

    def _fire(self, schedule: FeedSchedule, epoch: int):
        schedule.handle = None
        if not self._is_live(schedule, epoch):
            return
        self._launch(schedule)

    def _launch(self, schedule: FeedSchedule):
        self._track(asyncio.get_running_loop().create_task(self.poll(schedule)))

    def _track(self, task: asyncio.Task):
        self.poll_tasks.add(task)
        task.add_done_callback(self.poll_tasks.discard)

    def _is_live(self, schedule: FeedSchedule, epoch: int) -> bool:
        return self.is_current(epoch) and self.schedules.get(schedule.key) is schedule

    # Polling

    async def poll(self, schedule: FeedSchedule):
        """Run one poll cycle and re-arm the feed"""
        epoch = self.epoch
        schedule.state = FeedState.POLLING
        schedule.last_poll_time = self.clock()
        handler = self._handlers[schedule.kind]

        try:
            outcome = await handler(schedule.competition_id)
        except Exception as e:
            logger.error(f"Error polling {schedule.kind.value} for league {schedule.competition_id}: {e}")
            outcome = PollOutcome(success=False)

        if not self._is_live(schedule, epoch):
            logger.debug(f"Discarding stale {schedule.kind.value} result for league {schedule.competition_id}")
            return

        if not outcome.success:
            schedule.consecutive_failures += 1
            self.arm(schedule, self.polling.failure_retry * 1000)
            logger.error(
                f"{schedule.kind.value} poll for league {schedule.competition_id} failed "
                f"({schedule.consecutive_failures} in a row), retrying on {format_timestamp(schedule.next_poll_at)}"
            )
            return

        schedule.consecutive_failures = 0
        schedule.last_successful_poll = self.clock()

        if outcome.notification and outcome.payload is not None:
            await self.publisher.publish(outcome.notification, outcome.payload)
            if not self._is_live(schedule, epoch):
                return

        if outcome.next_poll_at is not None:
            self.arm_at(schedule, outcome.next_poll_at)
        elif outcome.delay_ms is not None:
            self.arm(schedule, outcome.delay_ms)
        else:
            self._stop_feed(schedule)

    def _stop_feed(self, schedule: FeedSchedule):
        schedule.cancel()
        schedule.state = FeedState.STOPPED
        schedule.next_poll_at = None
        logger.info(f"{schedule.kind.value} feed for league {self._league_name(schedule.competition_id)} stopped")

        for callback in list(self.stop_callbacks):
            try:
                callback(schedule.competition_id, schedule.kind)
            except Exception as e:
                logger.error(f"Error in stop callback: {e}")

    def _league_name(self, competition_id: int) -> str:
        competition = self.competitions.get(competition_id)
        name = competition.name if competition else ""
        return f'"{name} ({competition_id})"'

    async def _poll_standings(self, competition_id: int) -> PollOutcome:
        data = await self.client.round_matches(competition_id)
        if data is None:
            return PollOutcome(success=False)

        logger.debug(f"Standings | data {json.dumps(data, default=str)}")

        standings = parse_standings(data)
        now = self.clock()
        refresh = refresh_seconds(data, self.polling.default_refresh)
        decision = self.calculator.decide(standings, now, refresh)
        delay_ms = decision.delay_ms(now)
        next_request = None if delay_ms is None else now + delay_ms / 1000

        logger.info(
            f"Standings | {decision.state.value}, next request for league "
            f"{self._league_name(competition_id)} on {format_timestamp(next_request)}"
        )

        if self.options.show_details:
            await self.enricher.enrich(competition_id, data, standings.matches)

        # Absolute; enrichment runs before the timer is armed
        return PollOutcome(
            success=True,
            next_poll_at=next_request,
            notification=ResultPublisher.STANDINGS,
            payload={
                'leagueId': competition_id,
                'standings': data,
                'nextRequest': format_timestamp(next_request)
            }
        )

    async def _poll_table(self, competition_id: int) -> PollOutcome:
        data = await self.client.table(competition_id)
        if data is None:
            return PollOutcome(success=False)

        delay_ms = refresh_seconds(data, self.polling.default_refresh) * 1000
        logger.info(
            f"Table | next request for league {self._league_name(competition_id)} "
            f"on {format_timestamp(self.clock() + delay_ms / 1000)}"
        )
        return PollOutcome(
            success=True,
            delay_ms=delay_ms,
            notification=ResultPublisher.TABLE,
            payload={'leagueId': competition_id, 'table': extract_tables(data)}
        )

    async def _poll_scorers(self, competition_id: int) -> PollOutcome:
        data = await self.client.scorers(competition_id)
        if data is None:
            return PollOutcome(success=False)

        delay_ms = refresh_seconds(data, self.polling.default_refresh) * 1000
        logger.info(
            f"Scorers | next request for league {self._league_name(competition_id)} "
            f"on {format_timestamp(self.clock() + delay_ms / 1000)}"
        )
        return PollOutcome(
            success=True,
            delay_ms=delay_ms,
            notification=ResultPublisher.SCORERS,
            payload={'leagueId': competition_id, 'scorers': extract_scorers(data)}
        )

    # Observability

    def get_schedule(self, competition_id: int, kind: FeedKind) -> Optional[FeedSchedule]:
        return self.schedules.get((competition_id, kind))

    def is_stopped(self, competition_id: int, kind: FeedKind) -> bool:
        schedule = self.get_schedule(competition_id, kind)
        return schedule is not None and schedule.state == FeedState.STOPPED

    def live_timer_count(self) -> int:
        return sum(1 for s in self.schedules.values() if s.handle is not None)

    def get_polling_stats(self) -> Dict[str, Any]:
        """Get comprehensive scheduling statistics"""
        stats = {
            'running': self.running,
            'epoch': self.epoch,
            'competitions': len(self.competitions),
            'live_timers': self.live_timer_count(),
            'in_flight_polls': len(self.poll_tasks),
            'feeds': {}
        }

        for (competition_id, kind), schedule in self.schedules.items():
            stats['feeds'][f"{competition_id}:{kind.value}"] = {
                'state': schedule.state.value,
                'delay_ms': schedule.delay_ms,
                'next_poll_at': schedule.next_poll_at,
                'last_poll_time': schedule.last_poll_time,
                'last_successful_poll': schedule.last_successful_poll,
                'consecutive_failures': schedule.consecutive_failures
            }

        return stats

    # Teardown

    async def shutdown(self):
        """Cancel every timer and in-flight poll; no feed fires afterwards"""
        if not self.running:
            return

        self.running = False
        cancelled = self.cancel_all() + self._cancel_retry()
        for schedule in self.schedules.values():
            schedule.state = FeedState.STOPPED

        tasks = [t for t in self.poll_tasks if t is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self.schedules.clear()
        self.poll_tasks.clear()
        logger.info(f"Scheduler stopped, cancelled {cancelled} timers and {len(tasks)} polls")


def create_scheduler(config: SoccerLiveConfig, client: FeedClient, publisher: ResultPublisher,
                     calculator: Optional[MatchWindowCalculator] = None,
                     enricher: Optional[DetailEnricher] = None) -> RefreshScheduler:
    """Create refresh scheduler"""
    return RefreshScheduler(config, client, publisher, calculator, enricher)
