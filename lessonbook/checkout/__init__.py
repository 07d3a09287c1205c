from lessonbook.checkout.quick_book import QuickBook
from lessonbook.checkout.session_store import (
    AuthSessionStore,
    JsonFileStorage,
    MemoryStorage,
    SessionStore,
    merge_learner,
)
from lessonbook.checkout.state_machine import (
    CheckoutStateMachine,
    InvalidTransitionError,
    WizardTrigger,
)
from lessonbook.checkout.verification import VerificationPoller
from lessonbook.checkout.wizard import BookingWizard, should_skip_identify

__all__ = [
    "BookingWizard",
    "should_skip_identify",
    "CheckoutStateMachine",
    "InvalidTransitionError",
    "WizardTrigger",
    "SessionStore",
    "AuthSessionStore",
    "JsonFileStorage",
    "MemoryStorage",
    "merge_learner",
    "VerificationPoller",
    "QuickBook",
]
