"""
Session lifecycle management.

The SessionManager binds a session identifier to each request, hydrates
the session record from the store, persists it on commit, rotates and
destroys identifiers, and periodically reclaims expired records.

Per-request state machine:
- Unbound: no identifier on the boundary yet
- Bound-Fresh: identifier issued, nothing stored under it
- Bound-Hydrated: identifier resolved to a decoded record
- Committed: record persisted with a refreshed expiry
- Destroyed: record and cookie removed

A request that never commits simply leaves the store untouched.
"""

import logging
import random as _random
from typing import TYPE_CHECKING, Any, Callable, Optional

from errors.exceptions import AppException, DecodeError, StorageError, session_not_configured
from session.boundary import CookieAttributes, SessionBoundary
from session.codec import SessionCodec
from session.ids import generate_session_id, is_valid_session_id
from session.record import Session
from session.store import SessionStore
from telemetry.service import get_telemetry_service

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "KITSESSID"
DEFAULT_DURATION_SECONDS = 60 * 60 * 24 * 7
DEFAULT_GC_INTERVAL_SECONDS = 60 * 60
DEFAULT_GC_PROBABILITY = 1.0


class SessionManager:
    """
    Orchestrates identifier binding, hydration, commit, rotation and GC.

    The store is injected and owned by the caller: create it once at
    startup and share the manager across requests. The manager itself
    keeps no per-request state; everything request-specific lives on the
    boundary.

    Example:
        store = InMemorySessionStore()
        manager = SessionManager(store, secret="k1", duration=60)

        session = await manager.start(boundary)
        session["flash"] = "hi"
        await manager.commit(boundary)

    Rotation trade-off:
        ``regenerate(boundary)`` without ``delete_old=True`` leaves the old
        identifier valid, pointing at the pre-rotation content, until it
        expires. In-flight requests that still carry the old cookie keep
        working, but anyone holding the old identifier keeps access too.
        Pass ``delete_old=True`` after privilege changes such as login.
    """

    def __init__(
        self,
        store: SessionStore,
        secret: Optional[str] = None,
        cookie_name: str = DEFAULT_COOKIE_NAME,
        duration: int = DEFAULT_DURATION_SECONDS,
        cookie_attributes: Optional[CookieAttributes] = None,
        gc_interval: int = DEFAULT_GC_INTERVAL_SECONDS,
        gc_probability: float = DEFAULT_GC_PROBABILITY,
        random: Callable[[], float] = _random.random,
    ):
        """
        Initialize the session manager.

        Args:
            store: Storage backend holding the encoded sessions.
            secret: Codec secret. May be supplied later via set_secret().
            cookie_name: Name of the cookie carrying the identifier.
            duration: Session lifetime in seconds, used for both the
                stored expiry and the cookie max-age.
            cookie_attributes: Cookie attributes passed to the boundary.
            gc_interval: Minimum number of seconds between GC sweeps.
            gc_probability: Probability in [0, 1] that an eligible GC
                call actually sweeps.
            random: Source of uniform floats in [0, 1) for the GC draw.
        """
        if duration <= 0:
            raise ValueError("duration must be a positive number of seconds")
        if not 0.0 <= gc_probability <= 1.0:
            raise ValueError("gc_probability must be between 0 and 1")

        self.store = store
        self.cookie_name = cookie_name
        self.duration = duration
        self.cookie_attributes = cookie_attributes or CookieAttributes()
        self.gc_interval = gc_interval
        self.gc_probability = gc_probability
        self._random = random
        self._codec: Optional[SessionCodec] = None
        self._gc_last: Optional[int] = None
        if secret:
            self.set_secret(secret)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        store: Optional[SessionStore] = None
    ) -> "SessionManager":
        """
        Build a manager, and unless given one its store, from Settings.
        """
        from session.factory import create_session_store

        return cls(
            store=store if store is not None else create_session_store(settings),
            secret=settings.session_secret,
            cookie_name=settings.session_cookie_name,
            duration=settings.session_duration_seconds,
            cookie_attributes=settings.cookie_attributes(),
            gc_interval=settings.session_gc_interval_seconds,
            gc_probability=settings.session_gc_probability,
        )

    # Configuration

    def set_secret(self, secret: str) -> None:
        """Configure the codec secret."""
        self._codec = SessionCodec(secret)

    @property
    def is_ready(self) -> bool:
        return self._codec is not None

    def assert_ready(self) -> None:
        """
        Raises:
            NotConfiguredError: If no secret has been configured.
        """
        if self._codec is None:
            raise session_not_configured()

    def _cookie_attributes(self) -> CookieAttributes:
        return CookieAttributes(
            path=self.cookie_attributes.path,
            domain=self.cookie_attributes.domain,
            secure=self.cookie_attributes.secure,
            http_only=self.cookie_attributes.http_only,
            same_site=self.cookie_attributes.same_site,
            max_age=self.duration,
        )

    def _expires_at(self) -> int:
        return self.store.now() + self.duration * 1000

    # Codec

    def encode(self, data: dict[str, Any]) -> str:
        self.assert_ready()
        return self._codec.encode(data)

    def decode(self, ciphertext: str) -> dict[str, Any]:
        self.assert_ready()
        return self._codec.decode(ciphertext)

    # Identifier binding

    def id(self, boundary: SessionBoundary) -> Optional[str]:
        """Return the identifier bound to the request, or None."""
        value = boundary.get_cookie(self.cookie_name)
        if value is None or not is_valid_session_id(value):
            return None
        return value

    def status(self, boundary: SessionBoundary) -> bool:
        """Whether an identifier is bound to the request."""
        return self.id(boundary) is not None

    # Lifecycle

    async def start(self, boundary: SessionBoundary) -> Session:
        """
        Start a new session or resume an existing one.

        Issues a cookie when the request carries no (well-formed)
        identifier, then hydrates the record from the store. A record that
        fails to decode yields an empty session rather than an error.

        Returns:
            The session bound to ``boundary.session``.

        Raises:
            NotConfiguredError: If no secret has been configured.
        """
        self.assert_ready()

        session_id = self.id(boundary)
        if session_id is None:
            session_id = generate_session_id()
            boundary.set_cookie(self.cookie_name, session_id, self._cookie_attributes())
            logger.debug("Issued new session identifier")

        data: dict[str, Any] = {}
        expires = 0
        stored = await self.store.read(session_id)
        if stored is not None:
            try:
                data = self._codec.decode(stored.data)
                expires = stored.expires
            except DecodeError as e:
                logger.warning(
                    "Discarding undecodable session",
                    extra={"extra_data": {"error_code": e.error_code.value, "reason": e.message}}
                )

        session = Session(self, boundary, data=data, expires=expires)
        boundary.session = session
        return session

    async def commit(self, boundary: SessionBoundary) -> bool:
        """
        Persist the current session with a refreshed expiry.

        This is an unconditional overwrite; concurrent requests for the
        same identifier resolve as last writer wins.

        Returns:
            False if no identifier or no session is bound, True otherwise.

        Raises:
            NotConfiguredError: If no secret has been configured.
            EncodeError: If the session holds unserializable values.
            StorageError: If the store could not persist the record.
        """
        self.assert_ready()

        session_id = self.id(boundary)
        session = boundary.session
        if session_id is None or session is None:
            return False

        expires = self._expires_at()
        await self.store.write(session_id, self._codec.encode(session.to_dict()), expires)
        session._mark_persisted(expires)
        return True

    async def destroy(self, boundary: SessionBoundary) -> bool:
        """
        Destroy the stored session and remove the cookie.

        The in-request session is cleared whether or not an identifier
        was bound, and also when the store fails.

        Returns:
            True if an identifier was bound and destroyed.

        Raises:
            StorageError: If the store could not delete the record.
        """
        session_id = self.id(boundary)
        try:
            if session_id is None:
                return False
            await self.store.destroy(session_id)
            boundary.delete_cookie(self.cookie_name, self._cookie_attributes())

            telemetry = get_telemetry_service()
            if telemetry:
                telemetry.log_audit_event(
                    event_type="session_termination",
                    action="destroy",
                    session_id=session_id
                )
            return True
        finally:
            if boundary.session is not None:
                boundary.session.clear()

    async def regenerate(self, boundary: SessionBoundary, delete_old: bool = False) -> bool:
        """
        Replace the session identifier, keeping the stored content.

        The stored record is copied to a freshly minted identifier with a
        refreshed expiry and the cookie is updated. Unless ``delete_old``
        is set, the old identifier keeps resolving to the pre-rotation
        content until it expires on its own.

        Returns:
            False (and nothing changes) when no identifier is bound or
            nothing is stored under it; True after a rotation.

        Raises:
            StorageError: If the new record could not be written or the
                old one could not be deleted.
        """
        old_id = self.id(boundary)
        if old_id is None:
            return False

        stored = await self.store.read(old_id)
        if stored is None:
            return False

        new_id = generate_session_id()
        expires = self._expires_at()
        await self.store.write(new_id, stored.data, expires)
        boundary.set_cookie(self.cookie_name, new_id, self._cookie_attributes())

        if delete_old:
            await self.store.destroy(old_id)

        if boundary.session is not None:
            boundary.session._mark_persisted(expires)

        telemetry = get_telemetry_service()
        if telemetry:
            telemetry.log_audit_event(
                event_type="session_rotation",
                action="regenerate",
                session_id=new_id,
                details={"deleted_old": delete_old}
            )
        return True

    def unset(self, boundary: SessionBoundary) -> bool:
        """Free all session variables, keeping the identifier bound."""
        if boundary.session is None:
            return False
        boundary.session.clear()
        return True

    def abort(self, boundary: SessionBoundary) -> None:
        """Discard in-request changes; the following commit is a no-op."""
        boundary.session = None

    async def reset(self, boundary: SessionBoundary) -> Session:
        """Re-initialize the session with its persisted values."""
        return await self.start(boundary)

    # Garbage collection

    async def gc(self) -> int:
        """
        Reclaim expired sessions from the store.

        Skipped when the previous sweep started less than ``gc_interval``
        seconds ago. Otherwise, with probability ``gc_probability``, every
        expired identifier reported by the store is destroyed. Storage
        failures are logged and never raised.

        Returns:
            Number of sessions reclaimed.
        """
        now = self.store.now()
        if self._gc_last is not None and now - self._gc_last < self.gc_interval * 1000:
            return 0
        self._gc_last = now

        if self._random() >= self.gc_probability:
            return 0

        telemetry = get_telemetry_service()
        if telemetry:
            with telemetry.create_span("session.gc", {"store": type(self.store).__name__}):
                reclaimed = await self._sweep(now)
            telemetry.record_metric(
                "session.gc.reclaimed",
                reclaimed,
                tags={"store": type(self.store).__name__}
            )
            return reclaimed
        return await self._sweep(now)

    async def _sweep(self, now: int) -> int:
        try:
            expired = await self.store.list_expired(now)
        except AppException as e:
            logger.error(
                "Session GC could not list expired sessions",
                extra={"extra_data": {"error_code": e.error_code.value, "reason": e.message}}
            )
            return 0

        reclaimed = 0
        for session_id in expired:
            try:
                await self.store.destroy(session_id)
                reclaimed += 1
            except StorageError as e:
                logger.error(
                    "Session GC failed to destroy a session",
                    extra={"extra_data": {"reason": e.message}}
                )

        logger.info(
            "Session GC sweep complete",
            extra={"extra_data": {"expired": len(expired), "reclaimed": reclaimed}}
        )
        return reclaimed
