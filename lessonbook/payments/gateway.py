"""Payment processor boundary.

Card details are collected by the processor's own UI; the checkout core
only hands over the client secret from the backend authorization and
reads back the confirmation result.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Optional

from lessonbook.schemas.payment_schema import LearnerIdentity, ProcessorResult


class PaymentGateway(ABC):
    """Confirms a backend-issued payment authorization with the processor."""

    @abstractmethod
    async def confirm_card_payment(
        self,
        client_secret: str,
        billing: LearnerIdentity,
        save_payment_method: bool = True,
    ) -> ProcessorResult:
        raise NotImplementedError


class StubGateway(PaymentGateway):
    """Processor stand-in that approves every payment unless told to decline."""

    def __init__(self, decline_code: Optional[str] = None) -> None:
        self.decline_code = decline_code
        self.confirmed: list[str] = []

    async def confirm_card_payment(
        self,
        client_secret: str,
        billing: LearnerIdentity,
        save_payment_method: bool = True,
    ) -> ProcessorResult:
        self.confirmed.append(client_secret)
        if self.decline_code:
            return ProcessorResult(
                succeeded=False,
                status="requires_payment_method",
                decline_code=self.decline_code,
                message=f"Stub decline: {self.decline_code}",
            )
        payment_id = client_secret.split("_secret_")[0] or f"pi_{uuid.uuid4().hex[:12]}"
        return ProcessorResult(succeeded=True, payment_id=payment_id, status="succeeded")
