"""
Payload parser for SoccerLive

Turns provider documents into the small typed views the scheduler needs:
- Competition catalog entries and their capability flags
- Round-scoped matches with kickoff times and status codes
- Round schedules from ``rounds_detailed``
- Table, scorers and per-match detail records (filtered by ``type``)
"""

import logging
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Status codes of concluded matches
TERMINAL_STATUSES = frozenset({60, 70, 90, 100, 110, 120})

# Match info entries that are not shown on the display
HIDDEN_INFO_TYPES = frozenset({'stream', 'promotion'})


@dataclass
class Competition:
    """Competition as listed in the provider catalog"""
    id: int
    name: str = ""
    has_table: bool = False
    has_scorers: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class Match:
    """A single match of a round"""
    match_id: Any
    time: int
    status: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_finished(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class Round:
    """Provider round with its scheduled start and end"""
    index: int
    schedule_start: Optional[int] = None
    schedule_end: Optional[int] = None
    matches: List[Match] = field(default_factory=list)

    @property
    def is_scheduled(self) -> bool:
        return bool(self.schedule_start or self.schedule_end)


@dataclass
class StandingsPayload:
    """Parsed view of a round-matches document"""
    matches: List[Match]
    current_round: int = 0
    selectable_rounds: Optional[int] = None
    rounds: List[Round] = field(default_factory=list)
    refresh_time: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def get_round(self, number: int) -> Optional[Round]:
        """Round by 1-based number, None if the provider did not detail it"""
        if 1 <= number <= len(self.rounds):
            return self.rounds[number - 1]
        return None

    @property
    def current(self) -> Optional[Round]:
        return self.get_round(self.current_round)

    @property
    def next(self) -> Optional[Round]:
        return self.get_round(self.current_round + 1)

    @property
    def season_complete(self) -> bool:
        """No selectable round is left after the current one"""
        return self.selectable_rounds is not None and self.current_round > self.selectable_rounds

    @property
    def pending_matches(self) -> List[Match]:
        return [m for m in self.matches if not m.is_finished]


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def records_of_type(data: Optional[Dict[str, Any]], record_type: str) -> List[Dict[str, Any]]:
    """Entries of the document's ``data`` array having the given type"""
    if not data:
        return []
    records = data.get('data') or []
    return [r for r in records if isinstance(r, dict) and r.get('type') == record_type]


def refresh_seconds(data: Optional[Dict[str, Any]], default: int) -> int:
    """Provider refresh hint, or the default when absent or invalid"""
    value = _to_int((data or {}).get('refresh_time'))
    return value if value and value > 0 else default


def parse_competitions(data: Optional[Dict[str, Any]]) -> List[Competition]:
    """Catalog entries with a usable id"""
    competitions = []
    for entry in (data or {}).get('competitions') or []:
        if not isinstance(entry, dict) or 'id' not in entry:
            continue
        competitions.append(Competition(
            id=entry['id'],
            name=entry.get('name', ''),
            has_table=bool(entry.get('has_table')),
            has_scorers=bool(entry.get('has_scorers')),
            raw=entry
        ))
    return competitions


def parse_matches(data: Optional[Dict[str, Any]]) -> List[Match]:
    """All matches of the document, kickoff taken from their time group"""
    matches = []
    for group in records_of_type(data, 'matches'):
        kickoff = _to_int(group.get('time'))
        for entry in group.get('matches') or []:
            if not isinstance(entry, dict):
                continue
            match_time = kickoff if kickoff is not None else _to_int(entry.get('time'))
            if match_time is None:
                logger.debug(f"Skipping match without kickoff time: {entry.get('match_id')}")
                continue
            matches.append(Match(
                match_id=entry.get('match_id'),
                time=match_time,
                status=_to_int(entry.get('status')),
                raw=entry
            ))
    return matches


def parse_rounds(data: Optional[Dict[str, Any]]) -> List[Round]:
    rounds = []
    for index, entry in enumerate((data or {}).get('rounds_detailed') or [], start=1):
        entry = entry if isinstance(entry, dict) else {}
        rounds.append(Round(
            index=index,
            schedule_start=_to_int(entry.get('schedule_start')),
            schedule_end=_to_int(entry.get('schedule_end'))
        ))
    return rounds


def parse_standings(data: Dict[str, Any]) -> StandingsPayload:
    """Parse a round-matches document"""
    matches = parse_matches(data)
    rounds = parse_rounds(data)
    payload = StandingsPayload(
        matches=matches,
        current_round=_to_int(data.get('current_round')) or 0,
        selectable_rounds=_to_int(data.get('selectable_rounds')),
        rounds=rounds,
        refresh_time=_to_int(data.get('refresh_time')),
        raw=data
    )
    if payload.current is not None:
        payload.current.matches = matches
    return payload


def extract_tables(data: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [r for r in records_of_type(data, 'table') if r.get('table')]


def extract_scorers(data: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [r for r in records_of_type(data, 'scorers') if r.get('scorers')]


def extract_details(data: Optional[Dict[str, Any]]) -> Tuple[List[Any], List[Dict[str, Any]]]:
    """Incidents and displayable info items of a match-details document"""
    details_records = records_of_type(data, 'details')
    details = (details_records[0].get('details') or []) if details_records else []

    info_records = records_of_type(data, 'match_info')
    match_info = (info_records[0].get('match_info') or {}) if info_records else {}
    if not isinstance(match_info, dict):
        match_info = {}
    info_items = [
        item for item in match_info.get('info_items') or []
        if not (isinstance(item, dict) and item.get('info_type') in HIDDEN_INFO_TYPES)
    ]

    return list(details), info_items
