"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""


class TestSchemaImports:
    def test_import_booking_schema(self):
        from lessonbook.schemas.booking_schema import LessonRequest, LessonType
        assert LessonType.TWO_HOUR.duration_hours == 2
        assert LessonRequest(id=1).is_blank

    def test_import_learner_schema(self):
        from lessonbook.schemas.learner_schema import AUTHENTICATED_STATES, AuthState
        assert AuthState.GUEST not in AUTHENTICATED_STATES

    def test_import_checkout_schema(self):
        from lessonbook.schemas.checkout_schema import CheckoutSession, CheckoutStep
        session = CheckoutSession(instructor_id="inst-1")
        assert session.current_step == CheckoutStep.CONFIRM_INSTRUCTOR
        assert len(session.lesson_requests) == 1

    def test_import_payment_schema(self):
        from lessonbook.schemas.payment_schema import DeclineCategory
        assert DeclineCategory.OTHER is not None


class TestPackageReExports:
    def test_scheduling_package(self):
        from lessonbook.scheduling import add_duration, quote, resolve
        assert add_duration("9:00 AM", 1.5) == "10:30 AM"
        assert callable(quote) and callable(resolve)

    def test_payments_package(self):
        from lessonbook.payments import PaymentOrchestrator, StubGateway
        assert PaymentOrchestrator is not None
        assert StubGateway is not None

    def test_checkout_package(self):
        from lessonbook.checkout import BookingWizard, CheckoutStateMachine, QuickBook
        assert CheckoutStateMachine().current_state.value == "confirm_instructor"
        assert BookingWizard is not None
        assert QuickBook is not None


class TestConfigImport:
    def test_import_config(self):
        from lessonbook.config import settings
        assert settings.backend.api_base_url.startswith("http")
        assert settings.checkout.session_ttl_hours >= 1
        assert settings.storage.checkout_key


class TestLoggingContext:
    def test_checkout_id_reaches_records(self, caplog):
        import logging

        from lessonbook.logging_context import get_checkout_logger, new_checkout_id, set_checkout_id

        checkout_id = new_checkout_id()
        set_checkout_id(checkout_id)
        logger = get_checkout_logger("lessonbook.tests")
        with caplog.at_level(logging.INFO, logger="lessonbook.tests"):
            logger.info("hello")
        assert caplog.records[-1].checkout_id == checkout_id
        assert checkout_id.startswith("CHK-")

    def test_format_prints_checkout_id(self):
        import contextvars
        import io
        import logging

        from lessonbook.logging_context import LOG_FORMAT, CheckoutIdFilter, set_checkout_id

        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(CheckoutIdFilter())
        logger = logging.getLogger("lessonbook.tests.format")
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
        try:
            set_checkout_id("CHK-feedbeef")
            logger.info("charged")
            contextvars.Context().run(logger.info, "no checkout bound")
        finally:
            logger.removeHandler(handler)

        first, second = stream.getvalue().splitlines()
        assert "[CHK-feedbeef] [lessonbook.tests.format] INFO: charged" in first
        assert "[-] [lessonbook.tests.format]" in second
