"""
Match window calculation for SoccerLive

Decides, from a round's pending kickoff times and schedule, when the next
standings poll should happen:
- within the match window: poll at the provider's refresh rate
- before the window: wait until the window opens
- after the window or no pending matches: advance to the next round
- round without schedule: poll again in one day

Everything here is pure; "now" is always passed in.
"""

import logging
from enum import Enum
from typing import List, Optional, Tuple
from dataclasses import dataclass

from .config import PollingConfig
from .parser import Match, StandingsPayload

logger = logging.getLogger(__name__)

# Longest delay a one-shot timer accepts (signed 32-bit milliseconds)
MAX_TIMER_DELAY_MS = 2147483647


class WindowState(Enum):
    WITHIN_WINDOW = "within_window"
    BEFORE_WINDOW = "before_window"
    AFTER_WINDOW = "after_window"
    UNSCHEDULED = "unscheduled"


@dataclass
class WindowDecision:
    """Outcome of a window calculation"""
    state: WindowState
    next_poll_at: Optional[float]  # None once the season is complete
    start: Optional[float] = None
    end: Optional[float] = None

    @property
    def season_complete(self) -> bool:
        return self.next_poll_at is None

    def delay_ms(self, now: float) -> Optional[int]:
        """Clamped delay until next_poll_at, None when nothing is left to poll"""
        if self.next_poll_at is None:
            return None
        return clamp_delay_ms(round((self.next_poll_at - now) * 1000))


def clamp_delay_ms(delay_ms: float) -> int:
    """Bound a delay to what a one-shot timer can hold"""
    return int(max(0, min(delay_ms, MAX_TIMER_DELAY_MS)))


def pending_kickoff_times(matches: List[Match]) -> List[int]:
    """Distinct sorted kickoff times of matches still to be played"""
    return sorted({m.time for m in matches if not m.is_finished})


def closest_time(times: List[int], now: float) -> int:
    """Kickoff time closest to now; the earliest wins a tie"""
    closest = times[0]
    for candidate in times[1:]:
        if abs(candidate - now) < abs(closest - now):
            closest = candidate
    return closest


class MatchWindowCalculator:
    """Computes the next standings poll from a round's calendar"""

    def __init__(self, polling: Optional[PollingConfig] = None):
        self.polling = polling or PollingConfig()

    def match_window(self, times: List[int], now: float) -> Tuple[int, int]:
        """Window (start, end) around the kickoff closest to now"""
        kickoff = closest_time(times, now)

        if kickoff == times[-1]:
            end = kickoff + self.polling.match_duration
        else:
            end = times[-1] + self.polling.window_margin

        return kickoff - self.polling.window_margin, end

    def decide(self, standings: StandingsPayload, now: float,
               refresh_seconds: Optional[int] = None) -> WindowDecision:
        refresh = refresh_seconds or standings.refresh_time or self.polling.default_refresh

        current = standings.current
        if current is None or not current.is_scheduled:
            # Missing rounds_detailed entries count as unscheduled
            return WindowDecision(WindowState.UNSCHEDULED, now + self.polling.unscheduled_retry)

        times = pending_kickoff_times(standings.matches)
        if not times:
            return self._advance_round(standings, now, refresh)

        start, end = self.match_window(times, now)

        if start <= now <= end:
            return WindowDecision(WindowState.WITHIN_WINDOW, now + refresh, start, end)

        if now < start:
            return WindowDecision(WindowState.BEFORE_WINDOW, start, start, end)

        return self._advance_round(standings, now, refresh, start, end)

    def _advance_round(self, standings: StandingsPayload, now: float, refresh: int,
                       start: Optional[float] = None, end: Optional[float] = None) -> WindowDecision:
        """Next poll once the current round has nothing left to watch"""
        if standings.season_complete:
            logger.debug(f"Round {standings.current_round} of {standings.selectable_rounds}: season complete")
            return WindowDecision(WindowState.AFTER_WINDOW, None, start, end)

        next_round = standings.next
        if next_round is not None and next_round.schedule_start:
            next_poll_at = next_round.schedule_start - self.polling.window_margin
        else:
            next_poll_at = now + self.polling.next_round_fallback

        # The provider has not moved on to a round that should have started.
        # Poll after the refresh interval instead of at the already past
        # schedule_start - margin, which would fire immediately.
        if next_poll_at <= now:
            next_poll_at = now + refresh

        return WindowDecision(WindowState.AFTER_WINDOW, next_poll_at, start, end)


def create_calculator(polling: Optional[PollingConfig] = None) -> MatchWindowCalculator:
    """Create match window calculator"""
    return MatchWindowCalculator(polling)
