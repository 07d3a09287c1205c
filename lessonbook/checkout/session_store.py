"""
Durable storage for the in-progress checkout and the authenticated session.

The checkout draft is kept under one key and the auth session under
another. A stored draft is only handed back when it belongs to the same
instructor and is no older than the configured TTL; anything else is
discarded on read.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

import pydantic

from lessonbook.config import AppConfig, settings
from lessonbook.errors import SessionNotLoadedError
from lessonbook.schemas.checkout_schema import CheckoutSession
from lessonbook.schemas.learner_schema import AuthSession, LearnerDetails

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueStorage(Protocol):
    """String key/value storage that survives a page reload."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage for tests and ephemeral front-ends."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStorage:
    """One JSON file per key inside ``directory``."""

    def __init__(self, directory: Union[str, Path, None] = None) -> None:
        self.directory = Path(directory or settings.storage.session_dir)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class SessionStore:
    """
    Loads and saves the CheckoutSession for one wizard.

    ``save`` refuses to run until ``load`` has been attempted, so a fresh
    default draft can never overwrite a stored one before it was read.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        config: AppConfig = settings,
        clock: Clock = utcnow,
        key: Optional[str] = None,
    ) -> None:
        self.storage = storage
        self.clock = clock
        self.key = key or config.storage.checkout_key
        self.ttl = timedelta(hours=config.checkout.session_ttl_hours)
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self, instructor_id: str) -> Optional[CheckoutSession]:
        """Return the stored draft for ``instructor_id``, or None."""
        try:
            raw = self.storage.get(self.key)
            if raw is None:
                return None

            try:
                session = CheckoutSession.model_validate_json(raw)
            except pydantic.ValidationError as exc:
                self._discard("unreadable record (%s)" % exc.error_count())
                return None

            if session.instructor_id != instructor_id:
                self._discard(
                    "instructor mismatch (stored %s, requested %s)"
                    % (session.instructor_id, instructor_id)
                )
                return None

            if session.saved_at is None or self.clock() - session.saved_at > self.ttl:
                self._discard("expired (saved at %s)" % session.saved_at)
                return None

            logger.debug("Restored checkout session at step %s", session.current_step.value)
            return session
        finally:
            self._loaded = True

    def save(self, session: CheckoutSession) -> CheckoutSession:
        """Stamp and persist ``session``. Returns the stamped copy."""
        if not self._loaded:
            raise SessionNotLoadedError(
                "Checkout session saved before the stored session was loaded"
            )
        stamped = session.model_copy(update={"saved_at": self.clock()})
        self.storage.set(self.key, stamped.model_dump_json())
        return stamped

    def clear(self) -> None:
        self.storage.delete(self.key)

    def _discard(self, reason: str) -> None:
        logger.info("StaleSessionDiscard: %s", reason)
        self.storage.delete(self.key)


class AuthSessionStore:
    """The authenticated session record shared with the rest of the site."""

    def __init__(self, storage: KeyValueStorage, config: AppConfig = settings) -> None:
        self.storage = storage
        self.key = config.storage.auth_key

    def load(self) -> Optional[AuthSession]:
        raw = self.storage.get(self.key)
        if raw is None:
            return None
        try:
            return AuthSession.model_validate_json(raw)
        except pydantic.ValidationError:
            logger.warning("Discarding unreadable auth session record")
            self.storage.delete(self.key)
            return None

    def save(self, session: AuthSession) -> None:
        self.storage.set(self.key, session.model_dump_json())

    def clear(self) -> None:
        self.storage.delete(self.key)


def merge_learner(draft: LearnerDetails, established: Optional[AuthSession]) -> LearnerDetails:
    """
    Overlay an authenticated identity onto a (possibly stale) draft.

    The established account id always wins. Name and email are only taken
    from the account where it actually has them.
    """
    if established is None:
        return draft
    update: dict[str, str] = {"account_id": established.account_id}
    if established.email:
        update["email"] = established.email
    if established.first_name:
        update["first_name"] = established.first_name
    if established.last_name:
        update["last_name"] = established.last_name
    return draft.model_copy(update=update)
