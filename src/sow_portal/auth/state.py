"""Application state container with an explicit persistence boundary.

AppState holds the authenticated user for a dashboard session. It has a
defined lifecycle:

    state = AppState()
    await state.initialize(storage)   # rehydrate from the local auth cache
    state.set_user(user)              # persisted immediately
    state.logout()                    # clears auth, notifies listeners
    await state.teardown()            # final flush, detaches storage

Only ``user`` and ``is_authenticated`` cross the persistence boundary. The
pending auth challenge never does.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.sow_portal.auth.permissions import Permissions, build_permissions
from src.sow_portal.auth.roles import UserRole, role_from_groups

logger = structlog.get_logger(__name__)

PERSIST_VERSION = 1


# ── Models ──────────────────────────────────────────────────────────────────


class AuthUser(BaseModel):
    """Signed-in user as returned by Cognito, extra attributes preserved."""

    model_config = ConfigDict(extra="allow")

    email: str
    username: str | None = None
    name: str | None = None
    groups: list[str] = Field(default_factory=list)


class AuthState(BaseModel):
    user: AuthUser | None = None
    is_authenticated: bool = False
    auth_challenge: str | None = None


class _PersistedAuth(BaseModel):
    version: int
    user: AuthUser | None = None
    is_authenticated: bool = False


# ── Persistence Boundary ────────────────────────────────────────────────────


def serialize_auth(state: AuthState) -> str:
    """Serialize the persistable subset of auth state to JSON."""
    payload = _PersistedAuth(
        version=PERSIST_VERSION,
        user=state.user,
        is_authenticated=state.is_authenticated,
    )
    return payload.model_dump_json()


def deserialize_auth(raw: str | None) -> AuthState:
    """Rebuild auth state from JSON.

    Missing, corrupt or version-mismatched payloads yield the initial state.
    """
    if not raw:
        return AuthState()
    try:
        payload = _PersistedAuth.model_validate_json(raw)
    except ValidationError:
        logger.warning("auth_state.rehydrate_invalid")
        return AuthState()
    if payload.version != PERSIST_VERSION:
        logger.info("auth_state.rehydrate_version_mismatch", version=payload.version)
        return AuthState()
    return AuthState(
        user=payload.user,
        is_authenticated=payload.is_authenticated and payload.user is not None,
    )


class StateStorage(Protocol):
    """Key-value storage for persisted state blobs."""

    def load(self, key: str) -> str | None: ...

    def save(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStateStorage:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def load(self, key: str) -> str | None:
        return self._data.get(key)

    def save(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileStateStorage:
    """Stores each key in one JSON document on disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("state_storage.unreadable", path=str(self._path))
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def save(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data), encoding="utf-8")

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._path.write_text(json.dumps(data), encoding="utf-8")


# ── Container ───────────────────────────────────────────────────────────────


class AppState:
    """Explicit application-state container for one dashboard session."""

    STORAGE_KEY = "auth"

    def __init__(self) -> None:
        self._auth = AuthState()
        self._storage: StateStorage | None = None
        self._logout_listeners: list[Callable[[], None]] = []

    @property
    def auth(self) -> AuthState:
        return self._auth

    @property
    def initialized(self) -> bool:
        return self._storage is not None

    async def initialize(self, storage: StateStorage) -> None:
        """Attach storage and rehydrate persisted auth state."""
        if self._storage is not None:
            raise RuntimeError("AppState already initialized -- call teardown() first")
        self._storage = storage
        self._auth = deserialize_auth(storage.load(self.STORAGE_KEY))
        logger.info(
            "app_state.initialized",
            is_authenticated=self._auth.is_authenticated,
        )

    async def teardown(self) -> None:
        """Flush state and detach storage. Safe to call twice."""
        if self._storage is None:
            return
        self._persist()
        self._storage = None
        self._logout_listeners.clear()
        logger.info("app_state.teardown")

    def _persist(self) -> None:
        if self._storage is None:
            return
        self._storage.save(self.STORAGE_KEY, serialize_auth(self._auth))

    # ── Actions ─────────────────────────────────────────────────────────────

    def set_user(self, user: AuthUser | None) -> None:
        self._auth = self._auth.model_copy(
            update={"user": user, "is_authenticated": user is not None}
        )
        self._persist()

    def set_auth_challenge(self, challenge: str | None) -> None:
        # Never persisted.
        self._auth = self._auth.model_copy(update={"auth_challenge": challenge})

    def logout(self) -> None:
        self._auth = AuthState()
        if self._storage is not None:
            self._storage.remove(self.STORAGE_KEY)
        for listener in list(self._logout_listeners):
            listener()
        logger.info("app_state.logout")

    def add_logout_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback that drops session-scoped caches on logout."""
        self._logout_listeners.append(listener)

    # ── Selectors ───────────────────────────────────────────────────────────

    @property
    def user_groups(self) -> list[str]:
        return list(self._auth.user.groups) if self._auth.user else []

    @property
    def username(self) -> str:
        return (self._auth.user.username or "") if self._auth.user else ""

    @property
    def user_email(self) -> str:
        return self._auth.user.email if self._auth.user else ""

    @property
    def role(self) -> UserRole | None:
        return role_from_groups(self.user_groups)

    @property
    def permissions(self) -> Permissions:
        return build_permissions(self.role)
