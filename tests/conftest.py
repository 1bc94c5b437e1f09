"""Shared fakes for collaborator boundaries."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from agents.generator import Profile
from config import Config
from errors import DeliveryError, FeedError, GenerationError
from models import Configuration, DeliveryRecord, Item


BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_item(n: int, *, source: str = "https://feed.example.com/rss", hours_ago: float | None = None, **kwargs) -> Item:
    published = BASE_TIME - timedelta(hours=n if hours_ago is None else hours_ago)
    fields = {
        "title": f"Story {n}",
        "link": f"https://www.example.com/story-{n}",
        "description": f"<p>Description of story {n}</p>",
        "published": published,
        "source_url": source,
    }
    fields.update(kwargs)
    return Item(**fields)


def make_config(**kwargs) -> Configuration:
    fields = {
        "id": 1,
        "title": "Morning AI",
        "email": "reader@example.com",
        "feed_urls": ["https://a.example.com/rss"],
        "frequency": "daily",
        "delivery_time": "08:00",
        "timezone": "UTC",
    }
    fields.update(kwargs)
    return Configuration(**fields)


class FakeGenerator:
    """Returns canned responses in order; an Exception instance is raised."""

    def __init__(self, *responses, default: str | Exception = "ok") -> None:
        self.responses = list(responses)
        self.default = default
        self.calls: list[dict] = []

    async def generate(self, prompt, system=None, profile=Profile.DEFAULT, timeout=None) -> str:
        self.calls.append({"prompt": prompt, "system": system, "profile": profile, "timeout": timeout})
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response


class FailingGenerator(FakeGenerator):
    def __init__(self) -> None:
        super().__init__(default=GenerationError("model unavailable"))


class FakeFetcher:
    """Serves fixed items per URL; URLs missing from the map fail."""

    def __init__(self, feeds: dict[str, list[Item]]) -> None:
        self.feeds = feeds
        self.requested: list[str] = []

    async def fetch(self, url: str) -> list[Item]:
        self.requested.append(url)
        if url not in self.feeds:
            raise FeedError(url, "HTTP 404")
        return list(self.feeds[url])


class FakeRepository:
    """In-memory configuration repository and delivery history."""

    def __init__(self, configs: list[Configuration] | None = None) -> None:
        self.configs = list(configs or [])
        self.records: list[DeliveryRecord] = []
        self.fail_list = False
        self.fail_history = False
        self.fail_record = False

    def list_active(self) -> list[Configuration]:
        if self.fail_list:
            raise RuntimeError("database is locked")
        return [c for c in self.configs if c.active]

    def get_last_delivery(self, config_id: int) -> DeliveryRecord | None:
        if self.fail_history:
            raise RuntimeError("database is locked")
        mine = [r for r in self.records if r.config_id == config_id and r.success]
        return max(mine, key=lambda r: r.delivered_at) if mine else None

    def record_delivery(self, record: DeliveryRecord) -> int:
        if self.fail_record:
            raise RuntimeError("disk I/O error")
        self.records.append(record)
        return len(self.records)


class FakeSender:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[Configuration, str, list[Item]]] = []

    async def send(self, config: Configuration, text: str, items: list[Item]) -> None:
        if self.fail:
            raise DeliveryError("SMTP send failed")
        self.sent.append((config, text, items))


class FakeStyles:
    def __init__(self, styles: dict[str, str] | None = None, fail: bool = False) -> None:
        self.styles = styles or {}
        self.fail = fail

    def lookup_style(self, name: str) -> str | None:
        if self.fail:
            raise RuntimeError("styles table missing")
        return self.styles.get(name)


@pytest.fixture
def app_config(tmp_path) -> Config:
    return Config(
        db_path=tmp_path / "dossier.db",
        log_dir=tmp_path / "log",
        selection_threshold=10,
        target_count=10,
        extract_concurrency=1,
    )
