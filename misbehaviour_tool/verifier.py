"""
Verification orchestrator.

Runs the pipeline in a fixed order and stops at the first failing stage:

    START -> CHAIN_VALIDATED -> WINDOW_CHECKED -> CHAIN_CROSS_REFERENCED -> VERIFIED

A failed verification is an expected outcome, so :meth:`ReceiptVerifier.verify`
returns a :class:`VerificationResult` instead of raising.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from enum import Enum

import structlog

from misbehaviour_tool.chain import check_broadcast
from misbehaviour_tool.checks import check_receipt_chain, check_subscription_window
from misbehaviour_tool.config import DEFAULT_PROVIDER_TIMEOUT, ProviderConfig
from misbehaviour_tool.errors import Outcome, VerificationFailure
from misbehaviour_tool.identity import TowerId, UserId
from misbehaviour_tool.providers import TransactionProvider, build_provider
from misbehaviour_tool.receipts import Appointment, AppointmentReceipt, RegistrationReceipt

log = structlog.get_logger()


class Stage(str, Enum):
    START = "Start"
    CHAIN_VALIDATED = "ChainValidated"
    WINDOW_CHECKED = "WindowChecked"
    CHAIN_CROSS_REFERENCED = "ChainCrossReferenced"
    VERIFIED = "Verified"


@dataclass(frozen=True)
class VerificationBundle:
    """Everything a client needs to hold a tower accountable."""

    user_id: UserId
    tower_id: TowerId
    reg_receipt: RegistrationReceipt
    app_receipt: AppointmentReceipt
    appointment: Appointment
    user_signature: str


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification run.

    Attributes:
        outcome: Verified or the failure kind.
        stage: Last stage successfully reached.
        detail: Human-readable reason for failures.
    """

    outcome: Outcome
    stage: Stage
    detail: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.VERIFIED

    @property
    def error(self) -> str | None:
        return None if self.success else self.outcome.value

    def to_dict(self) -> dict:
        return {"success": self.success, "error": self.error}


class ReceiptVerifier:
    """Run the verification pipeline against a blockchain provider."""

    def __init__(
        self, provider: TransactionProvider, fetch_timeout: float = DEFAULT_PROVIDER_TIMEOUT
    ) -> None:
        self.provider = provider
        self.fetch_timeout = fetch_timeout

    async def verify(self, bundle: VerificationBundle) -> VerificationResult:
        logger = log.bind(
            verification_id=str(uuid.uuid4()),
            user_id=bundle.user_id.to_hex(),
            tower_id=bundle.tower_id.to_hex(),
        )
        stage = Stage.START

        try:
            check_receipt_chain(
                bundle.user_id,
                bundle.tower_id,
                bundle.reg_receipt,
                bundle.app_receipt,
                bundle.appointment,
                bundle.user_signature,
            )
            stage = Stage.CHAIN_VALIDATED

            check_subscription_window(bundle.reg_receipt, bundle.app_receipt)
            stage = Stage.WINDOW_CHECKED

            await check_broadcast(bundle.appointment, self.provider, self.fetch_timeout)
            stage = Stage.CHAIN_CROSS_REFERENCED
        except VerificationFailure as e:
            logger.warning(
                "verification_failed", stage=stage.value, outcome=e.outcome.value, detail=str(e)
            )
            return VerificationResult(e.outcome, stage, str(e))
        except asyncio.CancelledError:
            logger.warning("verification_cancelled", stage=stage.value)
            raise

        logger.info("verification_succeeded")
        return VerificationResult(Outcome.VERIFIED, Stage.VERIFIED)


async def verify_bundle(
    bundle: VerificationBundle, provider_config: ProviderConfig
) -> VerificationResult:
    """Verify ``bundle`` using a provider built from ``provider_config``."""
    provider = build_provider(provider_config)
    try:
        return await ReceiptVerifier(provider, provider_config.timeout).verify(bundle)
    finally:
        provider.close()
