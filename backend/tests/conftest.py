from __future__ import annotations

import pytest

from shared.config import Settings

from factories import FakeFeed, FakeSubscriptionStore, RecordingDispatcher


@pytest.fixture
def settings() -> Settings:
    return Settings(push_api_url="", poll_interval_s=60.0, feed_cache_ttl_s=30)


@pytest.fixture
def store() -> FakeSubscriptionStore:
    return FakeSubscriptionStore()


@pytest.fixture
def feed() -> FakeFeed:
    return FakeFeed()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()
