"""Tests for the wallet domain models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from credwallet.core.models import (
    QueryFilter,
    QueryMetadata,
    QueryResult,
    Session,
    StoreConfig,
    StoreName,
    canonical_json,
)


class TestStoreConfig:
    def test_defaults(self):
        config = StoreConfig()
        assert config.enabled() == [StoreName.LOCAL]
        assert not config.is_enabled(StoreName.REMOTE)

    def test_with_store_returns_copy(self):
        config = StoreConfig()
        updated = config.with_store(StoreName.REMOTE, True)
        assert updated.enabled() == [StoreName.LOCAL, StoreName.REMOTE]
        assert config.enabled() == [StoreName.LOCAL]


class TestQueryFilter:
    def test_none_matches_everything(self):
        assert QueryFilter().matches("anything")

    def test_id_filter(self):
        f = QueryFilter(type="id", filter="abc")
        assert f.matches("abc")
        assert not f.matches("abd")

    def test_id_filter_requires_value(self):
        with pytest.raises(ValidationError):
            QueryFilter(type="id")


class TestSession:
    def test_expiry(self):
        now = datetime.now(timezone.utc)
        session = Session(payload="p", expiry=now + timedelta(hours=1), did="did:pkh:x")
        assert not session.is_expired(now)
        assert session.is_expired(now + timedelta(hours=1))


class TestQueryResult:
    def test_response_keeps_null_fields_in_data(self):
        result = QueryResult(data={"a": None}, metadata=QueryMetadata(id="x", store=[StoreName.LOCAL]))
        assert result.to_response() == {"data": {"a": None}, "metadata": {"id": "x", "store": ["snap"]}}

    def test_response_without_metadata(self):
        assert QueryResult(data={"a": 1}).to_response() == {"data": {"a": 1}}


class TestCanonicalJson:
    def test_sorted_and_compact(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_unicode_kept(self):
        assert canonical_json({"name": "Zoë"}) == '{"name":"Zoë"}'
