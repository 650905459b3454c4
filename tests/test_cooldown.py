"""
Tests for cooldown state and stores
"""

import json
from datetime import datetime, timedelta, timezone

from signal_engine.cooldown import MAX_COOLDOWN, CooldownState, InMemoryCooldownStore, JsonFileCooldownStore
from signal_engine.models import Direction

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestCooldownState:
    """Test key handling and windows"""

    def test_make_key(self):
        assert CooldownState.make_key('BTCUSDT', Direction.BUY, 'trend') == 'BTCUSDT:BUY:trend'
        assert CooldownState.make_key('BTCUSDT', Direction.SELL) == 'BTCUSDT:SELL:none'

    def test_unknown_key_is_free(self):
        state = CooldownState()

        assert not state.is_active('BTCUSDT:BUY:trend', 60, NOW)
        assert state.remaining('BTCUSDT:BUY:trend', 60, NOW) == timedelta(0)

    def test_window(self):
        state = CooldownState(InMemoryCooldownStore())
        state.record('k', NOW)

        assert state.is_active('k', 60, NOW + timedelta(minutes=59))
        assert state.remaining('k', 60, NOW + timedelta(minutes=45)) == timedelta(minutes=15)
        assert not state.is_active('k', 60, NOW + timedelta(minutes=60))

    def test_record_overwrites(self):
        state = CooldownState()
        state.record('k', NOW)
        state.record('k', NOW + timedelta(minutes=30))

        assert state.is_active('k', 60, NOW + timedelta(minutes=80))
        assert len(state.store) == 1


class TestJsonFileCooldownStore:
    """Test persistence across instances"""

    def test_round_trip(self, tmp_path):
        path = tmp_path / 'state' / 'cooldowns.json'

        store = JsonFileCooldownStore(str(path))
        store.set('BTCUSDT:BUY:trend', NOW)

        reloaded = JsonFileCooldownStore(str(path))
        assert reloaded.get('BTCUSDT:BUY:trend') == NOW
        assert len(reloaded) == 1

    def test_file_format(self, tmp_path):
        path = tmp_path / 'cooldowns.json'
        JsonFileCooldownStore(str(path)).set('k', NOW)

        with open(path) as f:
            assert json.load(f) == {'k': NOW.isoformat()}

    def test_unreadable_file_starts_empty(self, tmp_path):
        path = tmp_path / 'cooldowns.json'
        path.write_text('{not json')

        store = JsonFileCooldownStore(str(path))

        assert len(store) == 0
        assert store.get('k') is None

    def test_survives_restart_in_state(self, tmp_path):
        path = str(tmp_path / 'cooldowns.json')
        CooldownState(JsonFileCooldownStore(path)).record('k', NOW)

        state = CooldownState(JsonFileCooldownStore(path))

        assert state.is_active('k', 60, NOW + timedelta(minutes=10))

    def test_expired_keys_dropped_on_write(self, tmp_path):
        path = tmp_path / 'cooldowns.json'
        store = JsonFileCooldownStore(str(path))
        store.set('stale', NOW)
        store.set('recent', NOW + timedelta(hours=2))
        store.set('fresh', NOW + timedelta(hours=5))

        with open(path) as f:
            assert set(json.load(f)) == {'recent', 'fresh'}
        assert store.get('stale') is None

    def test_retention_covers_longest_mode(self, tmp_path):
        store = JsonFileCooldownStore(str(tmp_path / 'cooldowns.json'))
        store.set('k', NOW)
        store.set('other', NOW + MAX_COOLDOWN)

        assert MAX_COOLDOWN == timedelta(minutes=240)
        assert store.get('k') == NOW
