"""
Session lifecycle: hydrate, adopt, login, logout.

One SessionManager is created per client and passed to every collaborator
that needs it. Credential and user are always written and cleared together,
and every logout bumps `epoch` so responses that were in flight when the
session ended can be recognised and dropped.
"""

from __future__ import annotations

import threading
from typing import Callable, List, Optional

from ..models.credential import Credential
from ..models.user import SessionUser
from ..utils.exceptions import (
    AuthorizationFailure,
    ConfigError,
    CredentialError,
    ExpenseClientError,
    ExpiredCredential,
    MalformedCredential,
)
from ..utils.logger import get_logger
from .credential_store import CredentialStore
from .tokens import decode_credential

logger = get_logger(__name__)


class SessionManager:
    """Owns the in-memory session: {credential, user, loading}"""

    def __init__(self, store: CredentialStore, auth_api=None):
        self.store = store
        # Anything with login(identifier, password) -> LoginResponse
        self.auth_api = auth_api
        self._credential: Optional[Credential] = None
        self._user: Optional[SessionUser] = None
        self._epoch = 0
        self._lock = threading.RLock()
        self._ready = threading.Event()
        self._teardown_listeners: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def user(self) -> Optional[SessionUser]:
        return self._user

    @property
    def token(self) -> Optional[str]:
        credential = self._credential
        return credential.token if credential else None

    @property
    def loading(self) -> bool:
        """True until hydrate() has finished; callers must not redirect yet."""
        return not self._ready.is_set()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def is_authenticated(self) -> bool:
        """False when signed out. An expired credential is torn down on sight."""
        with self._lock:
            if self._credential is None or self._user is None:
                return False
            return not self._expire_if_needed()

    def require_user(self) -> SessionUser:
        """Current user, or AuthorizationFailure when signed out."""
        with self._lock:
            if not self.is_authenticated:
                raise AuthorizationFailure("Not authenticated")
            return self._user

    def _expire_if_needed(self) -> bool:
        """Log out when the held credential has expired. Returns True if it did."""
        with self._lock:
            credential = self._credential
            if credential is None or not credential.is_expired():
                return False
            logger.warning(
                "Credential expired",
                user_id=credential.user_id,
                expired_at=credential.claims.expires_at,
            )
            self.logout()
            return True

    def add_teardown_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback run after every logout, including 401 teardown."""
        self._teardown_listeners.append(listener)

    # ------------------------------------------------------------------
    # Start-up
    # ------------------------------------------------------------------

    def hydrate(self) -> Optional[SessionUser]:
        """
        Restore a persisted session. Always clears `loading`.

        A logout that lands while the store is being read wins: the stored
        credential is then discarded instead of adopted.
        """
        started_epoch = self._epoch
        try:
            token = self.store.read_token()
            if not token:
                logger.info("No stored credential found")
                return None
            stored_user = self.store.read_user()
            with self._lock:
                if self._epoch != started_epoch:
                    logger.info("Discarding stored credential: session ended during hydration")
                    return None
                try:
                    user = self.validate_and_adopt(token)
                except CredentialError as e:
                    logger.warning("Stored credential rejected", error=str(e))
                    return None
                if stored_user is not None and stored_user.id == user.id:
                    user = self._merge_stored(user, stored_user)
            logger.info("Session restored", user_id=user.id, username=user.username)
            return user
        finally:
            self._ready.set()

    def start_hydration(self) -> threading.Thread:
        """Run hydrate() on a background thread; `loading` stays True until it ends."""
        self._ready.clear()
        thread = threading.Thread(target=self.hydrate, name="session-hydrate", daemon=True)
        thread.start()
        return thread

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def _merge_stored(self, user: SessionUser, stored: SessionUser) -> SessionUser:
        merged = user.model_copy(update={
            "email": user.email or stored.email,
            "first_name": stored.first_name,
            "last_name": stored.last_name,
        })
        with self._lock:
            if self._user is not None and self._user.id == merged.id:
                self._user = merged
                try:
                    self.store.save(self._credential.token, merged)
                except OSError as e:
                    logger.error("Failed to persist restored user", error=str(e))
        return merged

    # ------------------------------------------------------------------
    # Adoption
    # ------------------------------------------------------------------

    def validate_and_adopt(self, token: str, email: Optional[str] = None) -> SessionUser:
        """
        Decode the credential and make it the current session.

        Raises:
            MalformedCredential: claims missing or undecodable (session cleared)
            ExpiredCredential: expiry claim in the past (session cleared)
        """
        with self._lock:
            try:
                credential = decode_credential(token)
            except MalformedCredential:
                logger.warning("Credential rejected: malformed")
                self.logout()
                raise

            if credential.is_expired():
                logger.warning(
                    "Credential rejected: expired",
                    user_id=credential.user_id,
                    expired_at=credential.claims.expires_at,
                )
                self.logout()
                raise ExpiredCredential("Credential has expired", expired_at=credential.claims.expires_at)

            user = credential.to_user(email=email)
            self._credential = credential
            self._user = user
            try:
                self.store.save(credential.token, user)
            except OSError as e:
                # In-memory session without a persisted copy is allowed; half-state is not
                logger.error("Failed to persist credential", error=str(e))
            logger.info(
                "Credential adopted",
                user_id=user.id,
                username=user.username,
                roles=[r.value for r in user.roles],
                expires_at=credential.claims.expires_at,
            )
            return user

    def login_with_password(self, identifier: str, secret: str) -> SessionUser:
        """
        Password login through the auth API.

        Any failure clears the session before it propagates.
        """
        if self.auth_api is None:
            raise ConfigError("SessionManager has no auth API to log in with")
        started_epoch = self._epoch
        try:
            response = self.auth_api.login(identifier, secret)
        except ExpenseClientError:
            logger.warning("Login failed", identifier=identifier)
            self.logout()
            raise

        with self._lock:
            if self._epoch != started_epoch:
                logger.warning("Discarding login response: session ended while it was in flight")
                raise AuthorizationFailure("Session ended while login was in progress")
            if not response.access_token:
                self.logout()
                raise MalformedCredential("Login failed: no access token received")
            return self.validate_and_adopt(response.access_token, email=response.email)

    def complete_oauth(self, token: str) -> SessionUser:
        """Adopt a credential handed off by the OAuth flow. Navigation is the caller's job."""
        logger.info("Completing OAuth hand-off")
        return self.validate_and_adopt(token)

    def refine_profile(self, profile: SessionUser) -> Optional[SessionUser]:
        """Apply name fields from a profile result, if the same user is still signed in."""
        with self._lock:
            if self._user is None or self._credential is None or self._user.id != profile.id:
                logger.info("Ignoring profile for a session that is no longer current", user_id=profile.id)
                return None
            refined = self._user.with_names(profile.first_name, profile.last_name)
            if not refined.email and profile.email:
                refined = refined.model_copy(update={"email": profile.email})
            self._user = refined
            try:
                self.store.save(self._credential.token, refined)
            except OSError as e:
                logger.error("Failed to persist profile", error=str(e))
            return refined

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def logout(self) -> bool:
        """
        Clear the session and the store. Idempotent, never raises.

        Returns True when an active session was torn down.
        """
        with self._lock:
            had_session = self._credential is not None or self._user is not None
            self._credential = None
            self._user = None
            self._epoch += 1
            try:
                self.store.clear()
            except OSError as e:
                logger.error("Failed to purge credential store", error=str(e))
        for listener in list(self._teardown_listeners):
            try:
                listener()
            except Exception as e:
                logger.error("Teardown listener failed", listener=repr(listener), error=str(e))
        if had_session:
            logger.info("Logged out")
        return had_session

    def handle_unauthorized(self, sent_token: Optional[str]) -> bool:
        """
        React to a 401 for a request that carried `sent_token`.

        Returns False (and keeps the session) when the request carried an
        older credential than the current one.
        """
        with self._lock:
            current = self.token
            if sent_token is not None and current is not None and sent_token != current:
                logger.info("Ignoring 401 for a replaced credential")
                return False
            self.logout()
            return True
