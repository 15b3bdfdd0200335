"""
Disclosure paths for the current key.

- interactive (bot command): gated by the eligibility policy
- programmatic (HTTP): gated only by the static API credential; engagement is
  not checked on this path
- reset: restricted to the community owner
"""
from __future__ import annotations

import hmac
import logging
from datetime import datetime, timezone

from keygate.core.exceptions import AuthorizationDenied
from keygate.engagement.models import PolicyConfig
from keygate.engagement.policy import evaluate
from keygate.engagement.tracker import EngagementTracker
from keygate.keys.models import KeyDenial, KeyGrant, RemainingTtl, SecretRecord
from keygate.keys.store import KeyStore
from keygate.utils.metrics import key_disclosures_total

logger = logging.getLogger("disclosure")


class DisclosureService:
    def __init__(
        self,
        key_store: KeyStore,
        tracker: EngagementTracker,
        policy: PolicyConfig,
        api_credential: str,
    ) -> None:
        self.key_store = key_store
        self.tracker = tracker
        self.policy = policy
        self._api_credential = api_credential

    def request_key(self, user_id: str, now: datetime | None = None) -> KeyGrant | KeyDenial:
        now = now or datetime.now(timezone.utc)
        decision = evaluate(self.tracker.get(user_id), self.policy)
        if not decision.eligible:
            key_disclosures_total.labels(path="interactive", outcome="denied").inc()
            logger.info("key_denied", extra={"user_id": user_id, "reason": decision.reason.value})
            return KeyDenial(decision=decision)

        record = self.key_store.current_or_rotate(now)
        key_disclosures_total.labels(path="interactive", outcome="granted").inc()
        return KeyGrant(
            value=record.value,
            expires_at=record.expires_at,
            remaining=RemainingTtl.from_timedelta(record.remaining(now)),
        )

    def fetch_key(self, credential: str | None, now: datetime | None = None) -> str:
        if not credential or not hmac.compare_digest(credential.encode(), self._api_credential.encode()):
            key_disclosures_total.labels(path="http", outcome="denied").inc()
            raise AuthorizationDenied("invalid api key")
        key_disclosures_total.labels(path="http", outcome="granted").inc()
        return self.key_store.current_or_rotate(now).value

    def reset_key(self, is_owner: bool, now: datetime | None = None) -> SecretRecord:
        if not is_owner:
            raise AuthorizationDenied("owner only")
        record = self.key_store.force_reset(now)
        logger.info("key_reset")
        return record
