"""
Configuration loader for SoccerLive

Handles loading and parsing of YAML/JSON configuration files for:
- Provider endpoint, headers and supported languages
- Polling intervals and refresh fallbacks
- Display options (leagues and enabled feeds) sent by the host
"""

import json
import yaml
import os
import logging
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for the remote sports-data provider"""
    base_url: str = "https://toralarm.com/api/api"
    timeout_seconds: int = 30
    connect_timeout_seconds: int = 10
    user_agent: str = "SoccerLive/1.0"
    accept_language: str = "en-US,en;q=0.9,it;q=0.8,de-DE;q=0.7,de;q=0.6"
    supported_languages: List[str] = field(default_factory=lambda: ['it', 'de', 'en'])
    default_language: str = "en"

    def request_headers(self) -> Dict[str, str]:
        """Headers sent with every provider request"""
        return {
            'accept-language': self.accept_language,
            'content-type': 'application/json;charset=UTF-8',
            'User-Agent': self.user_agent,
        }

    def resolve_language(self, language: Optional[str]) -> str:
        """Return language if supported, otherwise the default"""
        if language in self.supported_languages:
            return language
        if language:
            logger.debug(f"Unsupported language {language!r}, using {self.default_language}")
        return self.default_language


@dataclass
class PollingConfig:
    """Configuration for adaptive refresh intervals (seconds)"""
    default_refresh: int = 300  # used when the provider sends no refresh_time
    failure_retry: int = 300  # fixed backoff after a failed poll
    window_margin: int = 300  # window opens before kickoff, and before a new round
    match_duration: int = 7200  # window length after the last kickoff
    unscheduled_retry: int = 86400  # round without schedule
    next_round_fallback: int = 86400  # next round has no schedule_start


@dataclass
class DisplayOptions:
    """Options the display client sends to (re)configure the feeds"""
    language: str = "en"
    show_standings: bool = True
    show_details: bool = False
    show_tables: bool = False
    show_scorers: bool = False
    leagues: List[int] = field(default_factory=list)

    def __post_init__(self):
        # details are only shown below the standings
        self.show_details = bool(self.show_standings and self.show_details)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any],
                     provider: Optional[ProviderConfig] = None) -> 'DisplayOptions':
        """Create options from the host's camelCase configuration message"""
        provider = provider or ProviderConfig()
        return cls(
            language=provider.resolve_language(payload.get('language')),
            show_standings=bool(payload.get('showStandings', True)),
            show_details=bool(payload.get('showDetails', False)),
            show_tables=bool(payload.get('showTables', False)),
            show_scorers=bool(payload.get('showScorers', False)),
            leagues=list(payload.get('leagues') or []),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Inverse of from_payload"""
        return {
            'language': self.language,
            'showStandings': self.show_standings,
            'showDetails': self.show_details,
            'showTables': self.show_tables,
            'showScorers': self.show_scorers,
            'leagues': list(self.leagues),
        }


@dataclass
class SoccerLiveConfig:
    """Main configuration class for SoccerLive"""
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)

    # Initial display options, replaced when the host reconfigures
    display: DisplayOptions = field(default_factory=DisplayOptions)

    # Results
    notification_prefix: str = "SoccerLiveScore"
    output_file: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    max_concurrent_requests: int = 5

    @classmethod
    def load_from_file(cls, config_path: str) -> 'SoccerLiveConfig':
        """Load configuration from YAML or JSON file"""
        path = Path(config_path)

        if not path.exists():
            logger.warning(f"Config file {config_path} not found, using defaults")
            return cls()

        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in ['.yaml', '.yml']:
                config_data = yaml.safe_load(f)
            else:
                config_data = json.load(f)

        return cls.from_dict(config_data or {})

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'SoccerLiveConfig':
        """Create configuration from dictionary"""
        provider_config = ProviderConfig(**config_dict.get('provider', {}))
        polling_config = PollingConfig(**config_dict.get('polling', {}))

        display_data = config_dict.get('display', {})
        if any(key in display_data for key in ('showStandings', 'showDetails', 'showTables', 'showScorers')):
            display = DisplayOptions.from_payload(display_data, provider_config)
        else:
            display = DisplayOptions(**display_data)
            display.language = provider_config.resolve_language(display.language)

        main_config = {k: v for k, v in config_dict.items()
                       if k not in ['provider', 'polling', 'display']}
        main_config.update({
            'provider': provider_config,
            'polling': polling_config,
            'display': display
        })

        return cls(**main_config)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(config_path: str = "config/soccerlive.yaml") -> SoccerLiveConfig:
    """Load SoccerLive configuration from file or use defaults"""
    try:
        return SoccerLiveConfig.load_from_file(config_path)
    except Exception as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        logger.info("Using default configuration")
        return SoccerLiveConfig()


def create_sample_config(output_path: str = "config/soccerlive.yaml"):
    """Create a sample configuration file"""
    config_dict = SoccerLiveConfig().to_dict()
    config_dict['display'] = {
        'language': 'en',
        'showStandings': True,
        'showDetails': True,
        'showTables': True,
        'showScorers': True,
        'leagues': [35, 1, 9],
    }
    config_dict['output_file'] = 'soccerlive-results.json'

    # Ensure directory exists
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Sample configuration created at {output_path}")
