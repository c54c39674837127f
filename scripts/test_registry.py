#!/usr/bin/env python3
"""
Tests for competition resolution and feed fan-out
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import requests

from soccerlive.catalog import CompetitionCatalog
from soccerlive.config import SoccerLiveConfig, DisplayOptions, PollingConfig, ProviderConfig
from soccerlive.publisher import ResultPublisher
from soccerlive.registry import CompetitionRegistry
from soccerlive.scheduler import RefreshScheduler, FeedKind

from test_scheduler import ScriptedClient, NOW, drain, standings_doc

CATALOG = {
    'competitions': [
        {'id': 1, 'name': 'Premier League', 'has_table': True, 'has_scorers': True},
        {'id': 2, 'name': 'Serie A', 'has_table': True, 'has_scorers': False},
        {'id': 3, 'name': 'Coppa Italia', 'has_table': False, 'has_scorers': True},
        {'name': 'No id'},
    ]
}


def make_registry(client, config=None):
    publisher = ResultPublisher()
    scheduler = RefreshScheduler(config or SoccerLiveConfig(), client, publisher, clock=lambda: NOW)
    return CompetitionRegistry(client, scheduler, publisher), scheduler, publisher


def test_apply_starts_enabled_feeds_of_known_leagues():
    async def scenario():
        client = ScriptedClient({('competitions',): CATALOG})
        registry, scheduler, publisher = make_registry(client)

        options = DisplayOptions(language='it', show_standings=True, show_tables=True,
                                 show_scorers=False, leagues=[2, 99, 3])
        resolved = await registry.apply(options)
        await drain(scheduler)

        assert sorted(resolved) == [2, 3]
        assert client.language == 'it'
        assert set(scheduler.schedules) == {
            (2, FeedKind.STANDINGS),
            (2, FeedKind.TABLE),
            (3, FeedKind.STANDINGS),
        }

        leagues = publisher.get_latest(ResultPublisher.LEAGUES)
        assert sorted(leagues['leaguesList']) == [2, 3]
        assert leagues['leaguesList'][2]['name'] == 'Serie A'

        await scheduler.shutdown()

    asyncio.run(scenario())


def test_scorers_need_capability_and_option():
    async def scenario():
        client = ScriptedClient({('competitions',): CATALOG})
        registry, scheduler, _ = make_registry(client)

        await registry.apply(DisplayOptions(show_scorers=True, leagues=[1, 2]))
        await drain(scheduler)

        assert (1, FeedKind.SCORERS) in scheduler.schedules
        assert (2, FeedKind.SCORERS) not in scheduler.schedules
        assert (1, FeedKind.TABLE) not in scheduler.schedules

        await scheduler.shutdown()

    asyncio.run(scenario())


def test_catalog_failure_arms_a_retry():
    async def scenario():
        client = ScriptedClient({('competitions',): None})
        registry, scheduler, publisher = make_registry(client)

        resolved = await registry.apply(DisplayOptions(leagues=[1]))

        assert resolved == {}
        assert scheduler.schedules == {}
        assert publisher.get_latest(ResultPublisher.LEAGUES) == {'leaguesList': {}}

        handle = scheduler.retry_handle
        assert handle is not None
        assert 299 < handle.when() - asyncio.get_running_loop().time() <= 300

        await scheduler.shutdown()
        assert handle.cancelled()
        assert scheduler.retry_handle is None

    asyncio.run(scenario())


def test_catalog_retry_starts_feeds_once_provider_recovers():
    async def scenario():
        client = ScriptedClient({('competitions',): None})
        config = SoccerLiveConfig(polling=PollingConfig(failure_retry=0))
        registry, scheduler, publisher = make_registry(client, config)

        await registry.apply(DisplayOptions(leagues=[1]))
        assert scheduler.retry_handle is not None

        client.responses[('competitions',)] = CATALOG
        client.responses[('standings', 1)] = standings_doc(kickoff=10000)
        await asyncio.sleep(0.05)
        await drain(scheduler)

        assert scheduler.retry_handle is None
        assert set(scheduler.schedules) == {(1, FeedKind.STANDINGS)}
        assert sorted(publisher.get_latest(ResultPublisher.LEAGUES)['leaguesList']) == [1]
        assert client.calls.count(('competitions',)) == 2

        await scheduler.shutdown()

    asyncio.run(scenario())


def test_new_configuration_cancels_pending_catalog_retry():
    async def scenario():
        client = ScriptedClient({('competitions',): None})
        registry, scheduler, _ = make_registry(client)

        await registry.apply(DisplayOptions(leagues=[1]))
        stale = scheduler.retry_handle

        client.responses[('competitions',)] = CATALOG
        await registry.apply(DisplayOptions(leagues=[2]))
        await drain(scheduler)

        assert stale.cancelled()
        assert scheduler.retry_handle is None
        assert set(scheduler.schedules) == {(2, FeedKind.STANDINGS)}

        await scheduler.shutdown()

    asyncio.run(scenario())


def test_reconfiguration_replaces_previous_feeds():
    async def scenario():
        client = ScriptedClient({('competitions',): CATALOG})
        registry, scheduler, _ = make_registry(client)

        await registry.apply(DisplayOptions(show_tables=True, leagues=[1, 2]))
        await drain(scheduler)
        old_handles = [s.handle for s in scheduler.schedules.values()]

        await registry.apply(DisplayOptions(leagues=[3]))
        await drain(scheduler)

        assert all(handle is None or handle.cancelled() for handle in old_handles)
        assert set(scheduler.schedules) == {(3, FeedKind.STANDINGS)}
        assert set(scheduler.competitions) == {3}

        await scheduler.shutdown()

    asyncio.run(scenario())


def test_superseded_apply_is_discarded():
    async def scenario():
        gate = asyncio.Event()

        async def slow_catalog():
            await gate.wait()
            return CATALOG

        client = ScriptedClient({('competitions',): slow_catalog})
        registry, scheduler, _ = make_registry(client)

        first = asyncio.create_task(registry.apply(DisplayOptions(leagues=[1])))
        await asyncio.sleep(0)

        client.responses[('competitions',)] = CATALOG
        second = await registry.apply(DisplayOptions(leagues=[2]))
        gate.set()

        assert await first is None
        assert sorted(second) == [2]
        await drain(scheduler)
        assert set(scheduler.schedules) == {(2, FeedKind.STANDINGS)}

        await scheduler.shutdown()

    asyncio.run(scenario())


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload


def test_catalog_lists_competitions(monkeypatch):
    sent = {}

    def fake_post(self, url, data=None, timeout=None):
        sent.update(url=url, data=data, timeout=timeout)
        return FakeResponse(CATALOG)

    monkeypatch.setattr(requests.Session, 'post', fake_post)

    catalog = CompetitionCatalog(ProviderConfig(base_url='https://provider.test/api/'), 'de')
    competitions = catalog.fetch()

    assert [c.id for c in competitions] == [1, 2, 3]
    assert sent['url'] == 'https://provider.test/api/competitions'
    assert sent['data'] == '{"lng": "de"}'
    assert catalog.session.headers['accept-language'].startswith('en-US')


def test_catalog_http_error_yields_nothing(monkeypatch):
    monkeypatch.setattr(requests.Session, 'post', lambda self, url, **kwargs: FakeResponse({}, 503))

    assert CompetitionCatalog(ProviderConfig()).fetch() == []


if __name__ == "__main__":
    import pytest
    sys.exit(pytest.main([__file__, "-v"]))
