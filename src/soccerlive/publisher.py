"""
Result publisher for SoccerLive

Delivers named result envelopes to the display side. Keeps the latest
envelope per (notification, competition) so late subscribers and the
optional JSON snapshot file always see current data.
"""

import asyncio
import json
import logging
import threading
import time
from typing import Dict, List, Any, Optional, Callable, Tuple
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class Envelope:
    """A published result"""
    name: str
    payload: Dict[str, Any]
    timestamp: float


class ResultPublisher:
    """Fans result envelopes out to subscribers"""

    LEAGUES = "LEAGUES"
    TABLE = "TABLE"
    STANDINGS = "STANDINGS"
    SCORERS = "SCORERS"

    def __init__(self, prefix: str = "SoccerLiveScore", output_file: Optional[str] = None):
        self.prefix = prefix
        self.output_file = output_file

        # Latest envelope per (name, leagueId)
        self.latest: Dict[Tuple[str, Any], Envelope] = {}
        self.data_lock = threading.RLock()

        self.callbacks: List[Callable] = []

    def notification(self, kind: str) -> str:
        """Full envelope name, e.g. SoccerLiveScore-STANDINGS"""
        return f"{self.prefix}-{kind}"

    def register_callback(self, callback: Callable):
        """Register a sync or async callable taking (name, payload)"""
        self.callbacks.append(callback)

    async def publish(self, kind: str, payload: Dict[str, Any]):
        name = self.notification(kind)
        envelope = Envelope(name=name, payload=payload, timestamp=time.time())

        with self.data_lock:
            self.latest[(name, payload.get('leagueId'))] = envelope

        logger.debug(f"Publishing {name} for league {payload.get('leagueId')}")

        for callback in list(self.callbacks):
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(name, payload)
                else:
                    callback(name, payload)
            except Exception as e:
                logger.error(f"Error in result callback for {name}: {e}")

        if self.output_file:
            self.write_data_to_file(self.output_file)

    def get_latest(self, kind: str, league_id: Any = None) -> Optional[Dict[str, Any]]:
        """Latest payload published under kind for a competition"""
        with self.data_lock:
            envelope = self.latest.get((self.notification(kind), league_id))
        return envelope.payload if envelope else None

    def snapshot(self) -> Dict[str, Any]:
        """All latest envelopes grouped by name"""
        with self.data_lock:
            grouped: Dict[str, List[Dict[str, Any]]] = {}
            for envelope in self.latest.values():
                grouped.setdefault(envelope.name, []).append({
                    'timestamp': envelope.timestamp,
                    'payload': envelope.payload
                })
        return grouped

    def clear(self):
        with self.data_lock:
            self.latest.clear()

    def write_data_to_file(self, file_path: str):
        """Write latest results to file for external consumption"""
        try:
            data = self.snapshot()
            data['_meta'] = {
                'timestamp': time.time(),
                'source': 'soccerlive'
            }

            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, default=str)

        except Exception as e:
            logger.error(f"Failed to write results to file {file_path}: {e}")


def create_publisher(prefix: str = "SoccerLiveScore", output_file: Optional[str] = None) -> ResultPublisher:
    """Create result publisher"""
    return ResultPublisher(prefix, output_file)
