"""
Unit tests for draft persistence.
"""

import json
import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from backoffice.services.draft_storage import (
    MemoryDraftStorage, RedisDraftStorage, SessionDraftStorage, build_storage
)
from backoffice.services.draft_store_service import DraftKey, DraftStore, strip_derived


class TestDraftLifecycle:
    """Tests for save / load / mark_submitted / clear."""

    def test_save_then_load(self, draft_store):
        draft_store.save(DraftKey.SELL_STOCK, {'quantity': 2, 'price': Decimal('880.00')})
        assert draft_store.load(DraftKey.SELL_STOCK) == {'quantity': 2, 'price': Decimal('880.00')}

    def test_nothing_saved(self, draft_store):
        assert draft_store.load(DraftKey.ADD_STOCK) is None

    def test_latest_save_wins(self, draft_store):
        draft_store.save('form', {'step': 1})
        draft_store.save('form', {'step': 2})
        assert draft_store.load('form') == {'step': 2}

    def test_page_reload_discards(self, draft_store, storage, reload_flag):
        draft_store.save(DraftKey.SELL_STOCK, {'quantity': 2})
        reload_flag['reloaded'] = True
        assert draft_store.load(DraftKey.SELL_STOCK) is None
        assert storage.data == {}

        reload_flag['reloaded'] = False
        assert draft_store.load(DraftKey.SELL_STOCK) is None

    def test_submit_erases_snapshot_at_once(self, draft_store, storage):
        draft_store.save(DraftKey.ADD_STOCK, {'quantity': 1})
        draft_store.mark_submitted(DraftKey.ADD_STOCK)
        assert 'addStockState' not in storage.data
        assert storage.data['addStockState_submitted'] == 'true'

        assert draft_store.load(DraftKey.ADD_STOCK) is None
        assert storage.data == {}

    def test_save_after_submit_clears_marker(self, draft_store):
        draft_store.mark_submitted(DraftKey.SELL_STOCK)
        draft_store.save(DraftKey.SELL_STOCK, {'quantity': 3})
        assert draft_store.load(DraftKey.SELL_STOCK) == {'quantity': 3}

    def test_clear(self, draft_store, storage):
        draft_store.save('form', {'a': 1})
        draft_store.clear('form')
        assert storage.data == {}

    def test_keys_are_independent(self, draft_store):
        draft_store.save(DraftKey.SELL_STOCK, {'form': 'sell'})
        draft_store.mark_submitted(DraftKey.ADD_STOCK)
        assert draft_store.load(DraftKey.SELL_STOCK) == {'form': 'sell'}

    def test_current_ignores_reload(self, draft_store, reload_flag):
        draft_store.save('form', {'a': 1})
        reload_flag['reloaded'] = True
        assert draft_store.current('form') == {'a': 1}

    @pytest.mark.parametrize('raw', ['{not json', '[1, 2]', '{"x": {"__decimal__": "abc"}}'])
    def test_corrupt_snapshot_dropped(self, draft_store, storage, raw):
        storage.data['form'] = raw
        assert draft_store.load('form') is None
        assert 'form' not in storage.data

    def test_unserializable_snapshot_not_saved(self, draft_store, storage):
        assert draft_store.save('form', {'handle': object()}) is False
        assert storage.data == {}


class TestSnapshotEncoding:
    """Tests for what actually lands in storage."""

    def test_derived_fields_not_persisted(self, draft_store, storage):
        draft_store.save('form', {
            'cart': {'lines': [{'id': 1, 'totals': {'units': 9}}], 'totals': {'units': 9}},
            'pagination': {'page': 2},
            'available_serials': ['S1'],
        })
        stored = json.loads(storage.data['form'])
        assert stored == {'cart': {'lines': [{'id': 1}]}}

    def test_strip_derived_custom_fields(self):
        assert strip_derived({'a': 1, 'b': {'c': 2}}, {'c'}) == {'a': 1, 'b': {}}

    def test_decimal_precision_kept(self, draft_store):
        draft_store.save('form', {'amounts': [Decimal('332.97'), Decimal('0.10')]})
        restored = draft_store.load('form')['amounts']
        assert restored == [Decimal('332.97'), Decimal('0.10')]
        assert str(restored[1]) == '0.10'

    def test_tuples_and_enums(self, draft_store):
        draft_store.save('form', {'chosen': ('S1', 'S2'), 'key': DraftKey.SELL_STOCK})
        assert draft_store.load('form') == {'chosen': ['S1', 'S2'], 'key': 'sellStockState'}


class TestSessionDraftStorage:
    """Tests for the session-cookie backend."""

    def test_roundtrip_inside_request(self, app):
        storage = SessionDraftStorage()
        with app.test_request_context('/'):
            store = DraftStore(storage, lambda: False)
            store.save(DraftKey.SELL_STOCK, {'quantity': 1})
            assert store.load(DraftKey.SELL_STOCK) == {'quantity': 1}
            store.clear(DraftKey.SELL_STOCK)
            assert storage.get('sellStockState') is None


class TestRedisDraftStorage:
    """Tests for the Redis backend with a mocked client."""

    def test_keys_scoped_to_session(self, app):
        client = MagicMock()
        storage = RedisDraftStorage(client, prefix='shop', ttl=60)
        with app.test_request_context('/'):
            storage.set('sellStockState', '{}')
            key = client.setex.call_args[0][0]
            assert key.startswith('shop:session:')
            assert key.endswith(':draft:sellStockState')
            assert client.setex.call_args[0][1] == 60

    def test_get_and_delete(self, app):
        client = MagicMock()
        client.get.return_value = '{"a": 1}'
        storage = RedisDraftStorage(client)
        with app.test_request_context('/'):
            store = DraftStore(storage, lambda: False)
            assert store.current('form') == {'a': 1}
            store.clear('form')
            assert client.delete.call_count == 2

    def test_redis_errors_degrade_to_nothing_stored(self, app):
        client = MagicMock()
        client.get.side_effect = RedisConnectionError('down')
        client.setex.side_effect = RedisConnectionError('down')
        storage = RedisDraftStorage(client)
        with app.test_request_context('/'):
            store = DraftStore(storage, lambda: False)
            assert store.save('form', {'a': 1}) is False
            assert store.load('form') is None

    def test_without_client(self):
        storage = RedisDraftStorage(None)
        assert storage.is_available() is False
        assert storage.get('x') is None
        assert storage.set('x', '1') is False


class TestBuildStorage:
    """Tests for backend selection."""

    @pytest.mark.parametrize('backend,expected', [
        ('memory', MemoryDraftStorage),
        ('session', SessionDraftStorage),
        (None, SessionDraftStorage),
    ])
    def test_backend_from_config(self, app, backend, expected):
        app.config['DRAFT_BACKEND'] = backend
        assert isinstance(build_storage(app), expected)

    def test_unreachable_redis_disables_backend(self, app, monkeypatch):
        client = MagicMock()
        client.ping.side_effect = RedisConnectionError('refused')
        monkeypatch.setattr('backoffice.services.draft_storage.redis.from_url', lambda *a, **kw: client)
        app.config['DRAFT_BACKEND'] = 'redis'
        storage = build_storage(app)
        assert isinstance(storage, RedisDraftStorage)
        assert storage.client is None
