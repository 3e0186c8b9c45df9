import asyncio

from inspira.app.domain.errors import SESSION_UNAVAILABLE, SIGN_IN_FAILED, AuthError
from inspira.app.infra.identity import LocalIdentityProvider
from inspira.app.services.identity import IdentitySession, SignInStatus


class ScriptedProvider(LocalIdentityProvider):
    """Local provider whose interactive sign-in fails with a chosen code."""

    def __init__(self, fail_with=None, **kwargs):
        super().__init__(**kwargs)
        self.fail_with = fail_with

    async def sign_in_interactive(self, provider_kind, credential=None):
        if self.fail_with:
            raise AuthError(self.fail_with)
        return await super().sign_in_interactive(provider_kind, credential)


def test_initialize_signs_in_anonymously_once(provider):
    session = IdentitySession(provider)
    first = asyncio.run(session.initialize())
    again = asyncio.run(session.initialize())

    assert first is not None and first.is_anonymous
    assert again == first
    assert session.current_identity() == first
    assert provider.listener_count == 1


def test_bootstrap_credential_maps_to_stable_uid():
    one = IdentitySession(LocalIdentityProvider(), bootstrap_credential="token-123")
    two = IdentitySession(LocalIdentityProvider(), bootstrap_credential="token-123")
    a = asyncio.run(one.initialize())
    b = asyncio.run(two.initialize())
    assert a.uid == b.uid
    assert a.uid.startswith("tok-")
    assert not a.is_anonymous


def test_bootstrap_failure_is_recorded_not_raised():
    session = IdentitySession(LocalIdentityProvider(), bootstrap_credential="  ")
    assert asyncio.run(session.initialize()) is None
    assert session.initialized
    assert session.init_error == SESSION_UNAVAILABLE


def test_federated_identity_applies_only_once_adopted(provider):
    session = IdentitySession(provider)
    anonymous = asyncio.run(session.initialize())
    seen = []
    session.on_change(seen.append)

    outcome = asyncio.run(
        session.sign_in_with_provider("google", {"subject": "alice", "display_name": "Alice"})
    )

    assert outcome.status is SignInStatus.FEDERATED
    assert outcome.advances
    assert outcome.identity.uid == "google-alice"
    assert session.current_identity() == anonymous
    assert seen == []

    session.adopt(outcome.identity)

    assert session.current_identity().uid == "google-alice"
    assert session.current_identity().display_name == "Alice"
    assert seen == [session.current_identity()]


def test_unauthorized_domain_degrades_to_existing_identity():
    session = IdentitySession(LocalIdentityProvider(restricted=True))
    anonymous = asyncio.run(session.initialize())

    outcome = asyncio.run(session.sign_in_with_provider("google", {"subject": "alice"}))

    assert outcome.status is SignInStatus.DEGRADED
    assert outcome.advances
    assert outcome.message == ""
    assert session.current_identity() == anonymous


def test_namespaced_unauthorized_domain_code_also_degrades():
    session = IdentitySession(ScriptedProvider(fail_with="auth/unauthorized-domain"))
    asyncio.run(session.initialize())
    outcome = asyncio.run(session.sign_in_with_provider("google"))
    assert outcome.status is SignInStatus.DEGRADED


def test_other_auth_errors_fail_with_message():
    session = IdentitySession(ScriptedProvider(fail_with="network-error"))
    anonymous = asyncio.run(session.initialize())

    outcome = asyncio.run(session.sign_in_with_provider("google", {"subject": "alice"}))

    assert outcome.status is SignInStatus.FAILED
    assert not outcome.advances
    assert outcome.error_code == "network-error"
    assert outcome.message == SIGN_IN_FAILED
    assert session.current_identity() == anonymous


def test_disabled_provider_and_missing_subject_fail(provider):
    session = IdentitySession(provider)
    asyncio.run(session.initialize())
    assert asyncio.run(session.sign_in_with_provider("github", {"subject": "a"})).error_code == "operation-not-allowed"
    assert asyncio.run(session.sign_in_with_provider("google", {})).error_code == "invalid-credential"


def test_sign_out_clears_identity(provider):
    session = IdentitySession(provider)
    asyncio.run(session.initialize())
    asyncio.run(session.sign_out())
    assert session.current_identity() is None


def test_context_manager_releases_subscription(provider):
    async def scenario():
        async with IdentitySession(provider) as session:
            assert provider.listener_count == 1
            return session

    session = asyncio.run(scenario())
    assert provider.listener_count == 0
    # provider changes after close no longer reach the session
    asyncio.run(provider.sign_out())
    assert session.current_identity() is not None
