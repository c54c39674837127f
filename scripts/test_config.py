#!/usr/bin/env python3
"""
Tests for configuration loading and display options
"""

import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from soccerlive.config import (
    SoccerLiveConfig, DisplayOptions, ProviderConfig, load_config, create_sample_config
)


def test_display_options_from_host_payload():
    options = DisplayOptions.from_payload({
        'language': 'de',
        'showStandings': True,
        'showDetails': True,
        'showTables': False,
        'showScorers': True,
        'leagues': [35, 1],
    })

    assert options.language == 'de'
    assert options.show_details
    assert not options.show_tables
    assert options.show_scorers
    assert options.leagues == [35, 1]
    assert DisplayOptions.from_payload(options.to_payload()) == options


def test_details_without_standings_are_disabled():
    options = DisplayOptions.from_payload({'showStandings': False, 'showDetails': True})
    assert not options.show_details


def test_missing_payload_keys_use_dataclass_defaults():
    assert DisplayOptions.from_payload({}) == DisplayOptions()
    assert DisplayOptions.from_payload({'showDetails': True}).show_details


def test_unsupported_language_falls_back_silently():
    assert DisplayOptions.from_payload({'language': 'fr'}).language == 'en'
    assert DisplayOptions.from_payload({}).language == 'en'
    assert ProviderConfig(default_language='it').resolve_language('xx') == 'it'


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "missing.yaml"))
    assert config == SoccerLiveConfig()
    assert config.polling.failure_retry == 300


def test_sample_config_round_trip(tmp_path):
    path = tmp_path / "config" / "soccerlive.yaml"
    create_sample_config(str(path))

    config = load_config(str(path))
    assert config.display.leagues == [35, 1, 9]
    assert config.display.show_details
    assert config.output_file == 'soccerlive-results.json'
    assert config.provider.supported_languages == ['it', 'de', 'en']


def test_json_config_with_overrides(tmp_path):
    path = tmp_path / "soccerlive.json"
    path.write_text(json.dumps({
        'provider': {'base_url': 'http://localhost:9000/api'},
        'polling': {'default_refresh': 120},
        'display': {'language': 'it', 'show_tables': True, 'leagues': [9]},
        'log_level': 'DEBUG',
    }), encoding='utf-8')

    config = load_config(str(path))
    assert config.provider.base_url == 'http://localhost:9000/api'
    assert config.polling.default_refresh == 120
    assert config.polling.match_duration == 7200
    assert config.display.show_tables
    assert config.display.language == 'it'
    assert config.log_level == 'DEBUG'


def test_broken_config_falls_back_to_defaults(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("polling: {unknown_key: 1}\n", encoding='utf-8')

    assert load_config(str(path)) == SoccerLiveConfig()


if __name__ == "__main__":
    import pytest
    sys.exit(pytest.main([__file__, "-v"]))
