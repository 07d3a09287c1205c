"""
Booking checkout wizard.

Owns the CheckoutSession for one instructor, drives step transitions
through CheckoutStateMachine, and sequences calls into the slot
resolver, pricing, the verification poller, and the payment
orchestrator. Front-ends render from the wizard's attributes and call its
mutators; every mutation after the initial load is persisted.

Usage:
    wizard = BookingWizard("inst-1", client, SessionStore(storage),
                           AuthSessionStore(storage), StubGateway())
    await wizard.mount()
    wizard.advance()
"""

import asyncio
from datetime import date, timedelta
from typing import Any, Callable, Optional

from lessonbook.checkout.session_store import AuthSessionStore, SessionStore, merge_learner
from lessonbook.checkout.state_machine import (
    CheckoutStateMachine,
    InvalidTransitionError,
    WizardTrigger,
)
from lessonbook.checkout.validation import (
    ensure_valid,
    validate_lessons,
    validate_login,
    validate_package,
    validate_registration,
)
from lessonbook.checkout.verification import VerificationPoller
from lessonbook.client import BackendClient, BackendRequestError
from lessonbook.config import AppConfig, settings
from lessonbook.errors import (
    AuthorizationError,
    NetworkError,
    PartialCommitError,
    ProcessorDeclineError,
    ValidationError,
    WizardBusyError,
)
from lessonbook.logging_context import get_checkout_logger, new_checkout_id, set_checkout_id
from lessonbook.messages import VERIFICATION_PENDING, network_message, partial_commit_message
from lessonbook.payments.gateway import PaymentGateway
from lessonbook.payments.orchestrator import BookingContext, PaymentOrchestrator
from lessonbook.scheduling.pricing import PricingQuote, quote
from lessonbook.scheduling.slot_resolver import available_dates, resolve_for_date
from lessonbook.schemas.booking_schema import (
    AvailabilityDay,
    ExistingBooking,
    InstructorSummary,
    LessonRequest,
)
from lessonbook.schemas.checkout_schema import (
    BookingCommitResult,
    CheckoutSession,
    CheckoutStep,
    IdentifyMode,
    PackageKind,
    PaymentOutcome,
)
from lessonbook.schemas.learner_schema import (
    AUTHENTICATED_STATES,
    AuthSession,
    AuthState,
    LearnerDetails,
)
from lessonbook.schemas.payment_schema import LearnerIdentity, PaymentPurpose
from lessonbook.utils import today_in

logger = get_checkout_logger(__name__)

EDITABLE_LESSON_FIELDS = frozenset(
    {"lesson_type", "date", "start_time", "pickup_suburb", "pickup_address"}
)


def should_skip_identify(session: CheckoutSession) -> bool:
    """The single place that decides whether Step 4 is shown."""
    return session.auth_state in AUTHENTICATED_STATES and bool(session.learner.account_id)


def registration_payload(learner: LearnerDetails) -> dict[str, Any]:
    """Backend ``POST auth/register`` body for a learner."""
    return {
        "firstName": learner.first_name.strip(),
        "lastName": learner.last_name.strip(),
        "email": learner.email.strip().lower(),
        "password": learner.password,
        "phone": learner.phone.strip(),
        "role": "learner",
        "dateOfBirth": learner.dob,
        "address": {
            "street": learner.pickup_address,
            "suburb": learner.suburb,
            "state": learner.state,
        },
        "learnerType": learner.learner_type,
        "marketingConsent": learner.marketing_consent,
    }


def session_from(body: dict[str, Any], token: Optional[str]) -> Optional[AuthSession]:
    """
    The AuthSession in an ``auth/me``, login or register envelope.

    All three nest the account under ``data.user``. None when it carries no id.
    """
    user = (body.get("data") or {}).get("user") or {}
    if not (user.get("id") or user.get("_id")):
        return None
    return AuthSession.from_api(user, token)


class BookingWizard:
    """
    Five-step checkout for buying a lesson package from one instructor.

    Attributes front-ends read:
        session: the persisted draft (step, package, lessons, learner).
        instructor, availability, bookings: the fetched snapshot.
        errors: field errors from the last failed step action.
        banner: one message for network or payment failures.
        notice: informational message (e.g. verification email sent).
        busy: an async action is in flight.
    """

    def __init__(
        self,
        instructor_id: str,
        client: BackendClient,
        store: SessionStore,
        auth_store: AuthSessionStore,
        gateway: PaymentGateway,
        config: AppConfig = settings,
        today: Optional[Callable[[], date]] = None,
        poll_interval: Optional[float] = None,
    ) -> None:
        self.instructor_id = instructor_id
        self.client = client
        self.store = store
        self.auth_store = auth_store
        self.config = config
        self._today = today or (lambda: today_in(config.checkout.instructor_timezone))

        self.session = CheckoutSession(instructor_id=instructor_id)
        self.machine = CheckoutStateMachine(skip_identify=lambda: should_skip_identify(self.session))
        self.orchestrator = PaymentOrchestrator(client, gateway, config)
        self.poller = VerificationPoller(self._check_verification, interval=poll_interval)
        self.checkout_id = new_checkout_id()

        self.instructor: Optional[InstructorSummary] = None
        self.availability: list[AvailabilityDay] = []
        self.bookings: list[ExistingBooking] = []
        self.snapshot_loaded = False

        self.errors: dict[str, str] = {}
        self.banner: Optional[str] = None
        self.notice: Optional[str] = None
        self.busy = False
        self.outcome: Optional[PaymentOutcome] = None
        self.partial: Optional[BookingCommitResult] = None
        self._closed = False

    # ------------------------------------------------------------------ #
    # Derived state
    # ------------------------------------------------------------------ #

    @property
    def step(self) -> CheckoutStep:
        return self.machine.current_state

    @property
    def hourly_rate(self) -> float:
        if self.instructor is not None:
            return self.instructor.hourly_rate
        return self.config.checkout.default_hourly_rate

    @property
    def quote(self) -> Optional[PricingQuote]:
        hours = self.session.package.hours
        if hours < 1:
            return None
        return quote(self.hourly_rate, hours)

    @property
    def closed(self) -> bool:
        return self._closed

    def available_dates(self) -> list[date]:
        return available_dates(self.availability)

    def available_times(self, lesson_id: int) -> list[str]:
        lesson = self._lesson(lesson_id)
        return self._times_for(lesson)

    def _times_for(self, lesson: LessonRequest) -> list[str]:
        if lesson.date is None:
            return []
        return resolve_for_date(self.availability, self.bookings, lesson.date, lesson.duration_hours)

    # ------------------------------------------------------------------ #
    # Mount / teardown
    # ------------------------------------------------------------------ #

    async def mount(self) -> None:
        """Restore auth and the stored draft, then fetch the instructor snapshot."""
        set_checkout_id(self.checkout_id)

        established = await self._restore_auth()
        if self._closed:
            return

        stored = self.store.load(self.instructor_id)
        if stored is not None:
            self.session = stored
        if established is not None:
            self.session.learner = merge_learner(self.session.learner, established)
            if self.session.auth_state not in AUTHENTICATED_STATES:
                self.session.auth_state = AuthState.LOGGED_IN
        elif self.session.auth_state in AUTHENTICATED_STATES:
            # stored draft says signed in but the token is gone or rejected
            self.session.auth_state = AuthState.GUEST
        self.session.current_step = self.machine.restore(self.session.current_step)
        self._persist()

        if self.session.auth_state == AuthState.AWAITING_VERIFICATION:
            self.notice = VERIFICATION_PENDING.format(email=self.session.learner.email)
            self.poller.start(self._on_verified)

        await self._fetch_snapshot()

    async def _restore_auth(self) -> Optional[AuthSession]:
        record = self.auth_store.load()
        if record is None or not record.token:
            return None
        self.client.token = record.token
        try:
            body = await self.client.me()
        except NetworkError as exc:
            logger.info("Stored auth session not accepted: %s", exc)
            self.client.token = None
            return None
        established = session_from(body, record.token)
        if established is None:
            logger.warning("auth/me returned no account, treating learner as a guest")
            self.client.token = None
        return established

    async def _fetch_snapshot(self) -> None:
        try:
            body = await self.client.get_instructor(self.instructor_id)
        except NetworkError as exc:
            if not self._closed:
                self.banner = network_message(str(exc))
            return
        if self._closed:
            return
        instructor = InstructorSummary.from_api(body.get("data") or {})

        start = self._today()
        end = start + timedelta(days=self.config.checkout.availability_window_days)
        availability, bookings = await asyncio.gather(
            self.client.get_availability(instructor.user_id, start, end),
            self.client.get_instructor_bookings(instructor.id),
            return_exceptions=True,
        )
        if self._closed:
            logger.debug("Wizard closed during fetch, dropping snapshot")
            return

        self.instructor = instructor
        if isinstance(availability, NetworkError):
            self.banner = network_message(str(availability))
            return
        if isinstance(availability, BaseException):
            raise availability
        if isinstance(bookings, NetworkError):
            logger.warning("Instructor bookings unavailable, showing raw availability: %s", bookings)
            bookings = {}
        elif isinstance(bookings, BaseException):
            raise bookings

        self.availability = [
            AvailabilityDay.model_validate(day) for day in (availability.get("data") or [])
        ]
        parsed = (ExistingBooking.from_api(b) for b in (bookings.get("data") or []))
        self.bookings = [b for b in parsed if b is not None]
        self.snapshot_loaded = True
        logger.info(
            "Loaded %d available days and %d bookings for instructor %s",
            len(self.availability), len(self.bookings), instructor.id,
        )

    def close(self) -> None:
        """Tear down: stop polling and ignore any response still in flight."""
        self._closed = True
        self.poller.stop()

    # ------------------------------------------------------------------ #
    # Navigation
    # ------------------------------------------------------------------ #

    def advance(self) -> bool:
        """Validate the current step and move forward. False on field errors or while busy."""
        if self.busy:
            return False
        self.errors = {}
        self.banner = None
        try:
            self._guard(self.step)
        except ValidationError as exc:
            self.errors = exc.field_errors
            return False

        self._move(WizardTrigger.CONTINUE)
        return True

    def back(self) -> bool:
        """Step back. Clears errors but never the data entered. Refused while busy."""
        if self.busy or self.step in (CheckoutStep.CONFIRM_INSTRUCTOR, CheckoutStep.COMPLETE):
            return False
        self.errors = {}
        self.banner = None
        self._move(WizardTrigger.BACK)
        return True

    def _guard(self, step: CheckoutStep) -> None:
        if step == CheckoutStep.SELECT_PACKAGE:
            ensure_valid(validate_package(self.session.package))
        elif step == CheckoutStep.SCHEDULE_LESSONS:
            checker = self._times_for if self.snapshot_loaded else None
            ensure_valid(validate_lessons(self.session.lesson_requests, checker))

    def _move(self, trigger: WizardTrigger) -> None:
        self.session.current_step = self.machine.transition(trigger)
        self._persist()

    # ------------------------------------------------------------------ #
    # Mutators
    # ------------------------------------------------------------------ #

    def select_package(self, kind: PackageKind) -> None:
        self.session.package.kind = kind
        self._persist()

    def set_custom_hours(self, hours: int) -> None:
        self.session.package.custom_hours = hours
        self._persist()

    def add_lesson_request(self) -> LessonRequest:
        next_id = max((lesson.id for lesson in self.session.lesson_requests), default=0) + 1
        lesson = LessonRequest(id=next_id)
        self.session.lesson_requests.append(lesson)
        self._persist()
        return lesson

    def remove_lesson_request(self, lesson_id: int) -> bool:
        if len(self.session.lesson_requests) <= 1:
            return False
        self.session.lesson_requests = [
            lesson for lesson in self.session.lesson_requests if lesson.id != lesson_id
        ]
        self._persist()
        return True

    def update_lesson_request(self, lesson_id: int, **changes: Any) -> LessonRequest:
        """
        Edit one lesson request.

        A previously chosen start time is dropped whenever the date or lesson
        type changes, because it may not be valid for the new selection.
        """
        unknown = set(changes) - EDITABLE_LESSON_FIELDS
        if unknown:
            raise ValueError(f"Unknown lesson fields: {sorted(unknown)}")

        lesson = self._lesson(lesson_id)
        updated = lesson.model_validate({**lesson.model_dump(), **changes})
        if "start_time" not in changes and (
            updated.date != lesson.date or updated.lesson_type != lesson.lesson_type
        ):
            updated.start_time = None

        self.session.lesson_requests = [
            updated if item.id == lesson_id else item for item in self.session.lesson_requests
        ]
        self._persist()
        return updated

    def update_learner(self, **changes: Any) -> None:
        learner = self.session.learner
        for name, value in changes.items():
            if name == "account_id" or name not in LearnerDetails.model_fields:
                raise ValueError(f"Learner field not editable: {name}")
            setattr(learner, name, value)
        self._persist()

    def set_identify_mode(self, mode: IdentifyMode) -> None:
        self.session.identify_mode = mode
        self.errors = {}
        self._persist()

    def update_login(self, email: Optional[str] = None, password: Optional[str] = None) -> None:
        if email is not None:
            self.session.login.email = email
        if password is not None:
            self.session.login.password = password
        self._persist()

    # ------------------------------------------------------------------ #
    # Step 4: identify
    # ------------------------------------------------------------------ #

    async def submit_identify(self) -> bool:
        """
        Log in or register, depending on the selected mode.

        Returns True when the backend accepted the submission. A registration
        awaiting email verification returns True without leaving Step 4.
        """
        self._require_idle()
        self._require_step(CheckoutStep.IDENTIFY)
        self.errors = {}
        self.banner = None

        if self.session.identify_mode == IdentifyMode.LOGIN:
            self.errors = validate_login(self.session.login)
        else:
            self.errors = validate_registration(
                self.session.learner, self.config.checkout.min_password_length
            )
        if self.errors:
            return False

        self.busy = True
        try:
            if self.session.identify_mode == IdentifyMode.LOGIN:
                await self._login()
            else:
                await self._register()
        except NetworkError as exc:
            if self.session.auth_state == AuthState.REGISTERING:
                self.session.auth_state = AuthState.GUEST
                self._persist()
            if not self._closed:
                self.banner = network_message(str(exc))
            return False
        finally:
            self.busy = False
        return True

    async def _login(self) -> None:
        body = await self.client.login(self.session.login.email.strip(), self.session.login.password)
        if self._closed:
            return
        self._establish(self._require_account(body), AuthState.LOGGED_IN)
        self._leave_identify(WizardTrigger.LOGGED_IN)

    async def _register(self) -> None:
        self.session.auth_state = AuthState.REGISTERING
        self._persist()

        body = await self.client.register(registration_payload(self.session.learner))
        data = body.get("data") or {}
        if self._closed:
            return

        if data.get("token"):
            self._establish(self._require_account(body), AuthState.LOGGED_IN)
            self._leave_identify(WizardTrigger.REGISTERED)
            return

        email = data.get("email") or self.session.learner.email
        self.session.auth_state = AuthState.AWAITING_VERIFICATION
        self.notice = VERIFICATION_PENDING.format(email=email)
        self._persist()
        logger.info("Registration pending email verification")
        self.poller.start(self._on_verified)

    async def resend_verification(self) -> bool:
        self._require_idle()
        self.busy = True
        try:
            await self.client.resend_verification(self.session.learner.email)
        except NetworkError as exc:
            self.banner = network_message(str(exc))
            return False
        finally:
            self.busy = False
        self.notice = VERIFICATION_PENDING.format(email=self.session.learner.email)
        return True

    async def _check_verification(self) -> Optional[AuthSession]:
        """Verified once the verify-email page has stored a session we can confirm."""
        record = self.auth_store.load()
        if record is None or not record.token:
            return None
        self.client.token = record.token
        body = await self.client.me()
        established = session_from(body, record.token)
        if established is None or not established.is_verified:
            return None
        return established

    def _on_verified(self, established: AuthSession) -> None:
        if self._closed:
            return
        self._establish(established, AuthState.VERIFIED)
        self.notice = None
        self._leave_identify(WizardTrigger.VERIFIED)

    def _establish(self, established: AuthSession, state: AuthState) -> None:
        self.auth_store.save(established)
        self.client.token = established.token
        self.session.learner = merge_learner(self.session.learner, established)
        self.session.auth_state = state
        self._persist()
        logger.info("Learner %s authenticated (%s)", established.account_id, state.value)

    # ------------------------------------------------------------------ #
    # Step 5: pay
    # ------------------------------------------------------------------ #

    async def pay(self, save_payment_method: bool = True) -> bool:
        """
        Charge the package and book every scheduled lesson.

        A partial booking commit still completes the checkout (the card was
        charged) and leaves ``partial`` and ``banner`` set for the learner.
        """
        self._require_idle()
        self._require_step(CheckoutStep.PAY)
        self.errors = {}
        self.banner = None

        learner = self.session.learner
        if not learner.email or not learner.full_name:
            self.errors = {"learner": "Missing learner details. Please go back and complete them."}
            return False
        if self.instructor is None:
            self.banner = network_message(None)
            return False

        package_quote = self.quote
        if package_quote is None:
            self.errors = {"package": "Please select a package"}
            return False

        identity = LearnerIdentity(
            account_id=learner.account_id,
            email=learner.email,
            name=learner.full_name,
            phone=learner.phone,
        )
        context = BookingContext(
            instructor_id=self.instructor.id,
            learner_id=learner.account_id,
            hourly_rate=self.instructor.hourly_rate,
            quote=package_quote,
        )

        self.busy = True
        try:
            self.outcome = await self.orchestrator.pay(
                package_quote.total,
                identity,
                PaymentPurpose.PACKAGE_PURCHASE,
                self.session.lesson_requests,
                context,
                credits=package_quote.hours,
                save_payment_method=save_payment_method,
            )
        except (AuthorizationError, ProcessorDeclineError) as exc:
            self.banner = str(exc)
            return False
        except PartialCommitError as exc:
            self.partial = exc.result
            self.banner = partial_commit_message(exc.result)
            self._complete()
            return False
        finally:
            self.busy = False

        self._complete()
        return True

    def _complete(self) -> None:
        if self.step == CheckoutStep.PAY:
            self.session.current_step = self.machine.transition(WizardTrigger.PAYMENT_SUCCEEDED)
        else:
            # charged while the wizard was elsewhere; the payment still completes it
            logger.warning("Payment finished at step %s, completing anyway", self.step.value)
            self.session.current_step = self.machine.restore(CheckoutStep.COMPLETE)
        self.poller.stop()
        self.store.clear()
        logger.info("Checkout complete for instructor %s", self.instructor_id)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _lesson(self, lesson_id: int) -> LessonRequest:
        for lesson in self.session.lesson_requests:
            if lesson.id == lesson_id:
                return lesson
        raise KeyError(f"No lesson request with id {lesson_id}")

    def _require_account(self, body: dict[str, Any]) -> AuthSession:
        established = session_from(body, (body.get("data") or {}).get("token"))
        if established is None:
            raise BackendRequestError("The server did not return your account. Please try again.")
        return established

    def _leave_identify(self, trigger: WizardTrigger) -> None:
        """Move past Step 4 only if the learner is still on it."""
        if self.step == CheckoutStep.IDENTIFY:
            self._move(trigger)
        else:
            logger.info("Signed in while at step %s, not moving", self.step.value)

    def _require_idle(self) -> None:
        if self.busy:
            raise WizardBusyError("A request for this step is already in progress")

    def _require_step(self, step: CheckoutStep) -> None:
        if self.step != step:
            raise InvalidTransitionError(
                f"Action for step '{step.value}' called at step '{self.step.value}'"
            )

    def _persist(self) -> None:
        if not self.store.loaded or self.step == CheckoutStep.COMPLETE:
            return
        stamped = self.store.save(self.session)
        self.session.saved_at = stamped.saved_at
