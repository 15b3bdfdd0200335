"""
Runtime wiring: builds the store and every service from Settings.
Both the bot and the HTTP app receive the same AppContext instance.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from keygate.core.config import Settings
from keygate.engagement.models import PolicyConfig
from keygate.engagement.spam import SpamGuard
from keygate.engagement.tracker import EngagementTracker
from keygate.keys.store import KeyStore
from keygate.services.autoresponder.service import AutoResponder
from keygate.services.disclosure.service import DisclosureService
from keygate.services.posts.service import PostRenderer
from keygate.services.usage.service import UsageTracker
from keygate.storage.base import DocumentStore
from keygate.storage.json_file import JsonFileStore

logger = logging.getLogger("context")


@dataclass
class AppContext:
    store: DocumentStore
    key_store: KeyStore
    tracker: EngagementTracker
    usage: UsageTracker
    disclosure: DisclosureService
    autoresponder: AutoResponder
    posts: PostRenderer
    spam_guard: SpamGuard | None
    spam_timeout_minutes: int

    @classmethod
    def build(cls, settings: Settings, store: DocumentStore) -> AppContext:
        key_store = KeyStore(
            store,
            ttl=timedelta(hours=settings.key_ttl_hours),
            key_length=settings.key_length,
        )
        tracker = EngagementTracker(store)
        policy = PolicyConfig(
            require_verification=settings.require_verification,
            minimum_qualifying_events=settings.min_qualifying_messages,
        )
        spam_guard = None
        if settings.anti_spam_enabled:
            spam_guard = SpamGuard(settings.anti_spam_window_seconds, settings.anti_spam_max_messages)
        return cls(
            store=store,
            key_store=key_store,
            tracker=tracker,
            usage=UsageTracker(store),
            disclosure=DisclosureService(key_store, tracker, policy, settings.key_api_token),
            autoresponder=AutoResponder(settings.autoresponses_map),
            posts=PostRenderer(settings.post_templates_map),
            spam_guard=spam_guard,
            spam_timeout_minutes=settings.anti_spam_timeout_minutes,
        )

    @classmethod
    def open(cls, settings: Settings) -> AppContext:
        """Open the JSON store under data_dir and make sure a valid key exists."""
        ctx = cls.build(settings, JsonFileStore.open(settings.data_dir))
        ctx.key_store.current_or_rotate()
        logger.info("context_opened", extra={"path": settings.data_dir})
        return ctx

    def close(self) -> None:
        self.store.close()
