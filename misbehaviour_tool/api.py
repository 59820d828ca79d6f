"""HTTP API for receipt verification.

A single endpoint, ``POST /check``, takes a verification bundle as JSON and
returns ``{"success": bool, "error": str | null}``. Keys, locators and
blobs are hex strings; block heights are integers.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Annotated

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from misbehaviour_tool.config import ProviderConfig
from misbehaviour_tool.identity import TowerId, UserId
from misbehaviour_tool.providers import build_provider
from misbehaviour_tool.receipts import (
    DEFAULT_TO_SELF_DELAY,
    Appointment,
    AppointmentReceipt,
    RegistrationReceipt,
)
from misbehaviour_tool.verifier import ReceiptVerifier, VerificationBundle

log = structlog.get_logger()


class AppointmentModel(BaseModel):
    locator: str
    encrypted_blob: str
    to_self_delay: int = DEFAULT_TO_SELF_DELAY


class RegistrationReceiptModel(BaseModel):
    user_id: str
    available_slots: int = Field(ge=0)
    subscription_start: int = Field(ge=0)
    subscription_expiry: int = Field(ge=0)
    signature: str | None = None


class AppointmentReceiptModel(BaseModel):
    user_signature: str
    start_block: int = Field(ge=0)
    signature: str | None = None


class CheckRequest(BaseModel):
    """Request body of ``POST /check``."""

    user_id: str
    tower_id: str
    reg_receipt: RegistrationReceiptModel
    app_receipt: AppointmentReceiptModel
    appointment: AppointmentModel
    user_signature: str

    def to_bundle(self) -> VerificationBundle:
        """Decode the request, raising ValueError on malformed fields."""
        return VerificationBundle(
            user_id=UserId.from_hex(self.user_id),
            tower_id=TowerId.from_hex(self.tower_id),
            reg_receipt=RegistrationReceipt(
                user_id=UserId.from_hex(self.reg_receipt.user_id),
                available_slots=self.reg_receipt.available_slots,
                subscription_start=self.reg_receipt.subscription_start,
                subscription_expiry=self.reg_receipt.subscription_expiry,
                signature=self.reg_receipt.signature,
            ),
            app_receipt=AppointmentReceipt(
                user_signature=self.app_receipt.user_signature,
                start_block=self.app_receipt.start_block,
                signature=self.app_receipt.signature,
            ),
            appointment=Appointment(
                locator=bytes.fromhex(self.appointment.locator),
                encrypted_blob=bytes.fromhex(self.appointment.encrypted_blob),
                to_self_delay=self.appointment.to_self_delay,
            ),
            user_signature=self.user_signature,
        )

    @classmethod
    def from_bundle(cls, bundle: VerificationBundle) -> CheckRequest:
        reg, app, appointment = bundle.reg_receipt, bundle.app_receipt, bundle.appointment
        return cls(
            user_id=bundle.user_id.to_hex(),
            tower_id=bundle.tower_id.to_hex(),
            reg_receipt=RegistrationReceiptModel(
                user_id=reg.user_id.to_hex(),
                available_slots=reg.available_slots,
                subscription_start=reg.subscription_start,
                subscription_expiry=reg.subscription_expiry,
                signature=reg.signature,
            ),
            app_receipt=AppointmentReceiptModel(
                user_signature=app.user_signature,
                start_block=app.start_block,
                signature=app.signature,
            ),
            appointment=AppointmentModel(
                locator=appointment.locator.hex(),
                encrypted_blob=appointment.encrypted_blob.hex(),
                to_self_delay=appointment.to_self_delay,
            ),
            user_signature=bundle.user_signature,
        )


class CheckResponse(BaseModel):
    success: bool
    error: str | None = None


def get_verifier(request: Request) -> ReceiptVerifier:
    """Return the verifier created at startup."""
    verifier = getattr(request.app.state, "verifier", None)
    if verifier is None:
        raise RuntimeError("Receipt verifier not configured")
    return verifier


def create_app(provider_config: ProviderConfig | None = None) -> FastAPI:
    """Build the API.

    The blockchain provider is created on startup from ``provider_config``
    (or the environment) and shared by all requests.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config = provider_config or ProviderConfig.from_env()
        provider = build_provider(config)
        app.state.verifier = ReceiptVerifier(provider, config.timeout)
        log.info("api_started", provider=config.kind, network=config.network)
        try:
            yield
        finally:
            provider.close()

    app = FastAPI(title="Watchtower misbehaviour tool", lifespan=lifespan)

    @app.post("/check", response_model=CheckResponse)
    async def check(
        body: CheckRequest,
        verifier: Annotated[ReceiptVerifier, Depends(get_verifier)],
    ) -> CheckResponse:
        try:
            bundle = body.to_bundle()
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e

        result = await verifier.verify(bundle)
        return CheckResponse(**result.to_dict())

    return app
