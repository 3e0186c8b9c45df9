"""Identity session: the single source of "who is using this flow"."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Callable, List, Mapping, Optional

from ..domain.errors import SESSION_UNAVAILABLE, AuthError, user_message
from ..domain.models import Identity
from ..infra.identity import IdentityListener, IdentityProvider

logger = logging.getLogger(__name__)


class SignInStatus(str, Enum):
    FEDERATED = "federated"
    DEGRADED = "degraded"  # environment refused the popup; keep the current identity
    FAILED = "failed"


@dataclass(frozen=True)
class SignInOutcome:
    status: SignInStatus
    identity: Optional[Identity] = None
    error_code: Optional[str] = None
    message: str = ""

    @property
    def advances(self) -> bool:
        return self.status is not SignInStatus.FAILED


class IdentitySession:
    """Tracks the current identity of one flow.

    The session holds exactly one provider subscription between
    :meth:`initialize` and :meth:`close` and fans changes out to listeners
    registered with :meth:`on_change`.
    """

    def __init__(self, provider: IdentityProvider, bootstrap_credential: Optional[str] = None) -> None:
        self.provider = provider
        self.bootstrap_credential = bootstrap_credential
        self.initialized = False
        self.init_error: Optional[str] = None
        self._identity: Optional[Identity] = None
        self._listeners: List[IdentityListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def initialize(self) -> Optional[Identity]:
        if self._identity is not None:
            return self._identity
        if self._unsubscribe is None:
            self._unsubscribe = self.provider.subscribe(self._on_provider_change)
        try:
            identity = await self.provider.initialize(self.bootstrap_credential)
        except AuthError as exc:
            logger.error("session bootstrap failed: %s", exc.code, extra={"component": "IdentitySession"})
            self.init_error = SESSION_UNAVAILABLE
        else:
            self.init_error = None
            self._on_provider_change(identity)
        self.initialized = True
        return self._identity

    async def sign_in_with_provider(
        self, provider_kind: str, credential: Optional[Mapping[str, str]] = None
    ) -> SignInOutcome:
        try:
            identity = await self.provider.sign_in_interactive(provider_kind, credential)
        except AuthError as exc:
            if exc.degrades_gracefully:
                logger.warning(
                    "federated sign-in refused by environment; continuing with %s",
                    self._identity.uid if self._identity else "no identity",
                    extra={"component": "IdentitySession"},
                )
                return SignInOutcome(SignInStatus.DEGRADED, identity=self._identity, error_code=exc.code)
            logger.error("federated sign-in failed: %s", exc.code, extra={"component": "IdentitySession"})
            return SignInOutcome(SignInStatus.FAILED, error_code=exc.code, message=user_message(exc))
        return SignInOutcome(SignInStatus.FEDERATED, identity=identity)

    def adopt(self, identity: Identity) -> None:
        """Commit a federated identity once the caller accepts the sign-in."""
        self.provider.adopt(identity)

    async def sign_out(self) -> None:
        await self.provider.sign_out()

    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def on_change(self, listener: IdentityListener) -> None:
        self._listeners.append(listener)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()

    async def __aenter__(self) -> "IdentitySession":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def _on_provider_change(self, identity: Optional[Identity]) -> None:
        if identity == self._identity:
            return
        self._identity = identity
        for listener in list(self._listeners):
            listener(identity)
