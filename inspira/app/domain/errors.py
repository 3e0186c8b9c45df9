"""Failure taxonomy of the sign-up flow and its user-facing copy."""
from __future__ import annotations

UNAUTHORIZED_DOMAIN = "unauthorized-domain"


class FlowError(Exception):
    """Base class for failures the flow converts into a message."""


class AuthError(FlowError):
    """Identity provider refused or failed a sign-in."""

    def __init__(self, code: str, message: str | None = None) -> None:
        # providers may report namespaced codes such as ``auth/network-error``
        self.code = code.split("/", 1)[-1] if code.startswith("auth/") else code
        super().__init__(message or self.code)

    @property
    def degrades_gracefully(self) -> bool:
        return self.code == UNAUTHORIZED_DOMAIN


class NoIdentityError(FlowError):
    """Enrollment attempted while no identity is active."""


class StoreWriteError(FlowError):
    """The document store rejected or failed a write."""


class StoreReadError(FlowError):
    """The document store could not be scanned."""


class EmptyReportError(FlowError):
    """There are no enrollment records to export."""


SIGN_IN_FAILED = "로그인에 실패했습니다. 다시 시도해주세요."
SESSION_UNAVAILABLE = "로그인 정보를 불러오지 못했습니다. 잠시 후 다시 시도해주세요."

_MESSAGES = {
    AuthError: SIGN_IN_FAILED,
    NoIdentityError: "로그인 정보가 없습니다. 다시 로그인 해주세요.",
    StoreWriteError: "데이터베이스 저장 중 오류가 발생했습니다.",
    StoreReadError: "다운로드 중 오류가 발생했습니다.",
    EmptyReportError: "아직 신청한 테스터가 없습니다.",
}


def user_message(exc: FlowError) -> str:
    for error_type, message in _MESSAGES.items():
        if isinstance(exc, error_type):
            return message
    return "알 수 없는 오류가 발생했습니다."
