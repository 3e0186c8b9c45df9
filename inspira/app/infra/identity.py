"""Identity provider contract and an in-process implementation."""
from __future__ import annotations

import hashlib
import logging
from typing import Callable, Iterable, List, Mapping, Optional, Protocol
from uuid import uuid4

from ..domain.errors import UNAUTHORIZED_DOMAIN, AuthError
from ..domain.models import Identity

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[Identity]], None]


class IdentityProvider(Protocol):
    async def initialize(self, bootstrap_credential: Optional[str] = None) -> Identity: ...

    async def sign_in_interactive(
        self, provider_kind: str, credential: Optional[Mapping[str, str]] = None
    ) -> Identity: ...

    def adopt(self, identity: Identity) -> None: ...

    async def sign_out(self) -> None: ...

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]: ...


class LocalIdentityProvider:
    """Provider that keeps the signed-in user in memory.

    Anonymous sign-in mints a fresh uid. A bootstrap token always maps to the
    same uid. Federated sign-in trusts the profile the caller hands over
    (``subject``, ``display_name``, ``email``). The resulting identity only
    becomes current once the caller adopts it. ``restricted`` mimics a host
    where popups to the federated provider are refused.
    """

    def __init__(self, providers: Iterable[str] = ("google",), restricted: bool = False) -> None:
        self.providers = {kind.lower() for kind in providers}
        self.restricted = restricted
        self.current: Optional[Identity] = None
        self._listeners: List[IdentityListener] = []

    async def initialize(self, bootstrap_credential: Optional[str] = None) -> Identity:
        if bootstrap_credential is not None:
            if not bootstrap_credential.strip():
                raise AuthError("invalid-custom-token")
            digest = hashlib.sha256(bootstrap_credential.encode("utf-8")).hexdigest()
            identity = Identity(uid=f"tok-{digest[:24]}", is_anonymous=False)
        else:
            identity = Identity(uid=uuid4().hex, is_anonymous=True)
        self._set_current(identity)
        return identity

    async def sign_in_interactive(
        self, provider_kind: str, credential: Optional[Mapping[str, str]] = None
    ) -> Identity:
        kind = provider_kind.lower()
        if kind not in self.providers:
            raise AuthError("operation-not-allowed", f"provider {provider_kind!r} is not enabled")
        if self.restricted:
            raise AuthError(UNAUTHORIZED_DOMAIN)
        credential = credential or {}
        subject = (credential.get("subject") or "").strip()
        if not subject:
            raise AuthError("invalid-credential", "federated credential has no subject")
        return Identity(
            uid=f"{kind}-{subject}",
            display_name=credential.get("display_name") or None,
            email=credential.get("email") or None,
            is_anonymous=False,
        )

    def adopt(self, identity: Identity) -> None:
        """Make a federated identity returned by sign-in the current one."""
        self._set_current(identity)

    async def sign_out(self) -> None:
        self._set_current(None)

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _set_current(self, identity: Optional[Identity]) -> None:
        self.current = identity
        for listener in list(self._listeners):
            listener(identity)
