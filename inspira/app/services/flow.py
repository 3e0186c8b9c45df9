"""Navigation and gesture state machine of the sign-up flow.

All state lives in one :class:`FlowState` owned by :class:`FlowMachine` and
changes only inside :meth:`FlowMachine.dispatch`. Async actions (sign-in,
enrollment, export) await their I/O and then dispatch a completion message;
completions carry the request id they were issued with so results that
arrive after the user moved on are dropped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import itertools
import logging
from typing import Callable, Dict, Mapping, Optional

from ..domain.errors import EmptyReportError, FlowError, user_message
from ..domain.models import FlowView, Identity, PageState
from .enrollment import EnrollmentStore
from .identity import IdentitySession, SignInOutcome, SignInStatus
from .report import Report, ReportGenerator
from .timers import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

GESTURE_WINDOW_SECONDS = 2.0
GESTURE_THRESHOLD = 5


@dataclass
class GestureCounter:
    count: int = 0
    generation: int = 0
    timer: Optional[TimerHandle] = None

    def disarm(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


@dataclass
class FlowState:
    page: PageState = PageState.LANDING
    login_popup_open: bool = False
    link_input: str = ""
    identity: Optional[Identity] = None
    pending_sign_in: Optional[int] = None
    error_message: str = ""
    notice: str = ""
    is_enrolled: bool = False
    is_admin: bool = False
    gesture: GestureCounter = field(default_factory=GestureCounter)

    @property
    def view(self) -> FlowView:
        if self.page is PageState.LANDING:
            return FlowView.LOGIN_POPUP if self.login_popup_open else FlowView.LANDING
        return FlowView.TUTORIAL_ADMIN if self.is_admin else FlowView.TUTORIAL


# Messages -------------------------------------------------------------------


@dataclass(frozen=True)
class PromptSubmitted:
    link: str


@dataclass(frozen=True)
class SignInStarted:
    request_id: int


@dataclass(frozen=True)
class SignInFinished:
    request_id: int
    outcome: SignInOutcome


@dataclass(frozen=True)
class PopupDismissed:
    pass


@dataclass(frozen=True)
class IdentityChanged:
    identity: Optional[Identity]


@dataclass(frozen=True)
class SecretClicked:
    pass


@dataclass(frozen=True)
class GestureWindowExpired:
    generation: int


@dataclass(frozen=True)
class AdminClosed:
    pass


@dataclass(frozen=True)
class EnrollmentSucceeded:
    uid: str


@dataclass(frozen=True)
class EnrollmentFailed:
    message: str


@dataclass(frozen=True)
class ReportNotice:
    message: str


@dataclass(frozen=True)
class ReportFailed:
    message: str


@dataclass(frozen=True)
class ReportDelivered:
    rows: int


class FlowMachine:
    def __init__(
        self,
        identity: IdentitySession,
        store: EnrollmentStore,
        reports: ReportGenerator,
        scheduler: Scheduler,
        window: float = GESTURE_WINDOW_SECONDS,
        threshold: int = GESTURE_THRESHOLD,
    ) -> None:
        self.identity = identity
        self.store = store
        self.reports = reports
        self.scheduler = scheduler
        self.window = window
        self.threshold = threshold
        self.state = FlowState(identity=identity.current_identity())
        if identity.init_error:
            self.state.error_message = identity.init_error
        self.closed = False
        self._request_ids = itertools.count(1)
        self._handlers: Dict[type, Callable] = {
            PromptSubmitted: self._on_prompt_submitted,
            SignInStarted: self._on_sign_in_started,
            SignInFinished: self._on_sign_in_finished,
            PopupDismissed: self._on_popup_dismissed,
            IdentityChanged: self._on_identity_changed,
            SecretClicked: self._on_secret_clicked,
            GestureWindowExpired: self._on_gesture_expired,
            AdminClosed: self._on_admin_closed,
            EnrollmentSucceeded: self._on_enrollment_succeeded,
            EnrollmentFailed: self._on_enrollment_failed,
            ReportNotice: self._on_report_notice,
            ReportFailed: self._on_report_failed,
            ReportDelivered: self._on_report_delivered,
        }
        identity.on_change(lambda current: self.dispatch(IdentityChanged(current)))

    # Transition function ----------------------------------------------------

    def dispatch(self, message: object) -> FlowState:
        if self.closed:
            logger.debug("dropping %s after close", type(message).__name__)
            return self.state
        handler = self._handlers[type(message)]
        handler(message)
        return self.state

    def _on_prompt_submitted(self, message: PromptSubmitted) -> None:
        if self.state.page is not PageState.LANDING:
            return
        self.state.link_input = message.link
        self.state.login_popup_open = True

    def _on_sign_in_started(self, message: SignInStarted) -> None:
        self.state.error_message = ""
        self.state.pending_sign_in = message.request_id

    def _on_sign_in_finished(self, message: SignInFinished) -> None:
        if message.request_id != self.state.pending_sign_in or not self.state.login_popup_open:
            logger.info(
                "discarding stale sign-in result %s", message.request_id,
                extra={"component": "FlowMachine", "request_id": message.request_id},
            )
            return
        self.state.pending_sign_in = None
        outcome = message.outcome
        if outcome.status is SignInStatus.FEDERATED:
            # notifies back through IdentityChanged
            self.identity.adopt(outcome.identity)
        if outcome.advances:
            self.state.login_popup_open = False
            self.state.error_message = ""
            self.state.page = PageState.TUTORIAL
        else:
            self.state.error_message = outcome.message

    def _on_popup_dismissed(self, message: PopupDismissed) -> None:
        self.state.login_popup_open = False
        self.state.pending_sign_in = None
        self.state.error_message = ""

    def _on_identity_changed(self, message: IdentityChanged) -> None:
        self.state.identity = message.identity

    def _on_secret_clicked(self, message: SecretClicked) -> None:
        if self.state.page is not PageState.TUTORIAL or self.state.is_admin:
            return
        gesture = self.state.gesture
        gesture.disarm()
        gesture.count += 1
        gesture.generation += 1
        if gesture.count >= self.threshold:
            gesture.count = 0
            self.state.is_admin = True
            logger.info("admin panel opened", extra={"component": "FlowMachine"})
            return
        generation = gesture.generation
        gesture.timer = self.scheduler.call_later(
            self.window, lambda: self.dispatch(GestureWindowExpired(generation))
        )

    def _on_gesture_expired(self, message: GestureWindowExpired) -> None:
        gesture = self.state.gesture
        if message.generation != gesture.generation:
            return
        gesture.count = 0
        gesture.timer = None

    def _on_admin_closed(self, message: AdminClosed) -> None:
        self.state.is_admin = False
        self.state.notice = ""

    def _on_enrollment_succeeded(self, message: EnrollmentSucceeded) -> None:
        self.state.is_enrolled = True
        self.state.error_message = ""

    def _on_enrollment_failed(self, message: EnrollmentFailed) -> None:
        self.state.error_message = message.message

    def _on_report_notice(self, message: ReportNotice) -> None:
        self.state.notice = message.message

    def _on_report_failed(self, message: ReportFailed) -> None:
        self.state.notice = ""
        self.state.error_message = message.message

    def _on_report_delivered(self, message: ReportDelivered) -> None:
        self.state.notice = ""
        self.state.error_message = ""

    # Gestures ---------------------------------------------------------------

    def submit_prompt(self, link: str) -> FlowState:
        return self.dispatch(PromptSubmitted(link))

    async def sign_in(
        self, provider_kind: str, credential: Optional[Mapping[str, str]] = None
    ) -> FlowState:
        if self.closed or not self.state.login_popup_open:
            return self.state
        request_id = next(self._request_ids)
        self.dispatch(SignInStarted(request_id))
        outcome = await self.identity.sign_in_with_provider(provider_kind, credential)
        return self.dispatch(SignInFinished(request_id, outcome))

    def dismiss_popup(self) -> FlowState:
        return self.dispatch(PopupDismissed())

    def secret_click(self) -> FlowState:
        return self.dispatch(SecretClicked())

    def close_admin(self) -> FlowState:
        return self.dispatch(AdminClosed())

    async def enroll(self) -> FlowState:
        if self.closed or self.state.is_enrolled or self.state.page is not PageState.TUTORIAL:
            return self.state
        try:
            record = await self.store.enroll(self.identity.current_identity())
        except FlowError as exc:
            logger.warning("enrollment failed: %s", type(exc).__name__, extra={"component": "FlowMachine"})
            return self.dispatch(EnrollmentFailed(user_message(exc)))
        return self.dispatch(EnrollmentSucceeded(record.uid))

    async def download_report(self) -> Optional[Report]:
        if self.closed or not self.state.is_admin:
            return None
        try:
            report = await self.reports.generate_report()
        except EmptyReportError as exc:
            self.dispatch(ReportNotice(user_message(exc)))
            return None
        except FlowError as exc:
            logger.warning("report export failed: %s", type(exc).__name__, extra={"component": "FlowMachine"})
            self.dispatch(ReportFailed(user_message(exc)))
            return None
        self.dispatch(ReportDelivered(report.rows))
        return report

    def close(self) -> None:
        if self.closed:
            return
        self.state.gesture.disarm()
        self.identity.close()
        self.closed = True

    def snapshot(self) -> dict:
        state = self.state
        return {
            "view": state.view,
            "page": state.page,
            "login_popup_open": state.login_popup_open,
            "link_input": state.link_input,
            "identity": state.identity,
            "sign_in_pending": state.pending_sign_in is not None,
            "error_message": state.error_message,
            "notice": state.notice,
            "is_enrolled": state.is_enrolled,
            "is_admin": state.is_admin,
            "gesture_count": state.gesture.count,
        }
