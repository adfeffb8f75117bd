"""
Tests for core types.
"""

from __future__ import annotations

import orjson

from cachedriver.types import (
    VALIDATION_KEY,
    CacheOptions,
    CacheRow,
    ValueEnvelope,
    epoch_now,
)


class TestValueEnvelope:
    """Tests for ValueEnvelope expiry and serialization."""

    def test_zero_minutes_never_expires(self) -> None:
        """A TTL of 0 has no expiry and stores expire_at 0."""
        envelope = ValueEnvelope.create("v", 0, now=100)

        assert envelope.expires is None
        assert envelope.expire_at == 0
        assert not envelope.is_expired(10**12)

    def test_expiry_derived_from_minutes(self) -> None:
        """expires and expire_at both come from created + minutes."""
        envelope = ValueEnvelope.create("v", 2, now=1000)

        assert envelope.expires == 1120
        assert envelope.expire_at == 1120
        assert not envelope.is_expired(1119)
        assert envelope.is_expired(1120)

    def test_negative_minutes_already_expired(self) -> None:
        """Negative TTLs give an envelope that has already expired."""
        envelope = ValueEnvelope.create("v", -5, now=1000)

        assert envelope.minutes == -5
        assert envelope.expires == 700
        assert envelope.expire_at == 700
        assert envelope.is_expired(1000)

    def test_json_form(self) -> None:
        """The stored JSON carries value, created, minutes and expires."""
        envelope = ValueEnvelope.create({"a": [1, 2]}, 1, now=60)
        raw = orjson.loads(envelope.to_json())

        assert raw == {"created": 60, "minutes": 1, "expires": 120, "value": {"a": [1, 2]}}

    def test_json_keeps_quotes_unescaped(self) -> None:
        """Quotes are stored as-is."""
        envelope = ValueEnvelope.create('say "hi" & \'bye\'', 0, now=1)
        assert '\\"hi\\"' in envelope.to_json()
        assert "&quot;" not in envelope.to_json()
        assert ValueEnvelope.from_json(envelope.to_json()).value == 'say "hi" & \'bye\''

    def test_from_json_restores_envelope(self) -> None:
        """Decoding gives back an equal envelope."""
        envelope = ValueEnvelope.create([1, "two", None], 3, now=500)
        assert ValueEnvelope.from_json(envelope.to_json()) == envelope

    def test_create_uses_clock_by_default(self) -> None:
        """Without an explicit now, the wall clock is used."""
        before = epoch_now()
        envelope = ValueEnvelope.create("v")
        assert envelope.created >= before


class TestCacheRow:
    """Tests for CacheRow."""

    def test_envelope(self) -> None:
        """The data column decodes to the envelope."""
        envelope = ValueEnvelope.create("x", 1, now=0)
        row = CacheRow("k", envelope.expire_at, envelope.to_json())
        assert row.envelope == envelope


class TestCacheOptions:
    """Tests for mirror filtering."""

    def test_mirrors_when_store_enabled(self) -> None:
        assert CacheOptions(store=True).mirrors("any")

    def test_no_mirror_when_store_disabled(self) -> None:
        assert not CacheOptions(store=False).mirrors("any")

    def test_store_ignore_substring(self) -> None:
        options = CacheOptions(store=True, store_ignore="pages/")
        assert not options.mirrors("site/pages/home")
        assert options.mirrors("site/files/home")

    def test_validation_key(self) -> None:
        assert VALIDATION_KEY == "sqlitecache-1"
