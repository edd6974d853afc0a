"""
Session Management

DESIGN DECISION: Identity is owned by an external provider. The session
manager only wraps it:
1. Exposes the current principal (None means signed out)
2. Converts provider failures into AuthError
3. Notifies listeners on every identity TRANSITION

Transitions are none -> present, present -> none and a swap from one
principal to another. Re-reading an unchanged identity notifies nobody,
so redirect-based providers can call refresh() on every page run.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from cashflow.audit import AuditLogger


class AuthError(Exception):
    """Sign-in or sign-out did not complete."""
    pass


class Principal(BaseModel):
    """The signed-in user as reported by the identity provider."""

    model_config = ConfigDict(frozen=True)

    uid: str = Field(..., min_length=1, description="Opaque, stable user id")
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


PrincipalListener = Callable[[Optional[Principal]], None]


class IdentityProvider(ABC):
    """
    Abstract identity provider.

    sign_in() may return the new principal directly, or None when the
    provider completes sign-in out of band (e.g. an OAuth redirect).
    """

    @abstractmethod
    def current_principal(self) -> Optional[Principal]:
        """The principal the provider currently knows about."""
        pass

    @abstractmethod
    async def sign_in(self) -> Optional[Principal]:
        """
        Start (and where possible complete) sign-in.

        Raises:
            AuthError: If the user cancelled or the provider failed
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """End the provider session."""
        pass


class SessionManager:
    """
    Tracks the current principal and broadcasts identity changes.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._provider = provider
        self._audit = audit_logger or AuditLogger()
        self._listeners: list[PrincipalListener] = []
        self._principal: Optional[Principal] = None

    def current_principal(self) -> Optional[Principal]:
        return self._principal

    def on_change(self, listener: PrincipalListener) -> Callable[[], None]:
        """
        Register a listener for identity transitions.

        Returns:
            A callable that removes the listener (safe to call twice)
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_principal(self, principal: Optional[Principal]) -> bool:
        previous = self._principal
        previous_uid = previous.uid if previous else None
        new_uid = principal.uid if principal else None

        # Profile details may change without the identity changing
        self._principal = principal
        if previous_uid == new_uid:
            return False

        if previous_uid is not None:
            self._audit.log_signed_out(previous_uid)
        if new_uid is not None:
            self._audit.log_signed_in(new_uid)

        for listener in list(self._listeners):
            try:
                listener(principal)
            except Exception as e:
                self._audit.log_error("session_listener_failed", str(e))
        return True

    def refresh(self) -> bool:
        """
        Re-read the provider.

        Returns:
            True if the identity changed (listeners were notified)

        Raises:
            AuthError: If the provider cannot be read
        """
        try:
            principal = self._provider.current_principal()
        except Exception as e:
            self._audit.log_auth_failed("refresh", str(e))
            raise AuthError(f"Could not read the signed-in user: {e}") from e
        return self._set_principal(principal)

    async def sign_in(self) -> Optional[Principal]:
        """
        Sign in through the provider.

        Raises:
            AuthError: On cancellation or provider failure
        """
        try:
            principal = await self._provider.sign_in()
        except AuthError as e:
            self._audit.log_auth_failed("sign_in", str(e))
            raise
        except Exception as e:
            self._audit.log_auth_failed("sign_in", str(e))
            raise AuthError(f"Sign-in failed: {e}") from e

        if principal is None:
            self.refresh()
        else:
            self._set_principal(principal)
        return self._principal

    async def sign_out(self) -> None:
        """
        Sign out through the provider.

        Listeners see the transition to None even if the provider keeps
        its own session cookie until the next page run.

        Raises:
            AuthError: On provider failure
        """
        try:
            await self._provider.sign_out()
        except AuthError as e:
            self._audit.log_auth_failed("sign_out", str(e))
            raise
        except Exception as e:
            self._audit.log_auth_failed("sign_out", str(e))
            raise AuthError(f"Sign-out failed: {e}") from e

        self._set_principal(None)
