"""FastAPI app factory.

Endpoints are thin wrappers over :class:`JourneyService`; validation happens
here so the core only ever sees well-formed input.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .config import JourneyConfig, load_config
from .errors import NotFoundError, ValidationError
from .models import ProductVisitRequest, SignupRequest
from .service import JourneyService
from .validation import (
    ValidationResult,
    combine,
    validate_customer_id,
    validate_customer_signup,
    validate_product_visit,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "Journeyflow Customer Journey"


def _ok(data: Any = None, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    content: Dict[str, Any] = {"success": True}
    if message:
        content["message"] = message
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=content)


def _fail(error: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def _require(result: ValidationResult) -> None:
    if not result.is_valid:
        raise ValidationError(result.error or "Invalid request")


def create_app(
    config: Optional[JourneyConfig] = None, service: Optional[JourneyService] = None
) -> FastAPI:
    config = config or (service.config if service else load_config())
    service = service or JourneyService(config)
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(f"Starting {SERVICE_NAME}...")
        await service.start()
        if service.degraded:
            logger.warning("Running in degraded in-memory event mode")
        try:
            yield
        finally:
            logger.info("Shutting down gracefully...")
            await service.stop()

    app = FastAPI(title=SERVICE_NAME, version=__version__, lifespan=lifespan)
    app.state.service = service
    app.state.config = config

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return _fail(str(exc), 400)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _fail("Customer not found", 404)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "degraded": service.degraded,
        }

    @app.get("/api/system/info")
    async def system_info() -> JSONResponse:
        steps = [
            {
                "id": step.id,
                "name": step.name,
                "description": step.description,
                "trigger": step.trigger.value,
            }
            for step in service.engine.steps.values()
        ]
        return _ok(
            {
                "name": SERVICE_NAME,
                "version": __version__,
                "uptime": time.monotonic() - started_at,
                "transport": type(service.bus.transport).__name__,
                "demo_mode": config.workflow.demo_mode,
                "quiet_period": service.engine.quiet_period,
                "workflow": {"steps": steps},
            }
        )

    @app.post("/api/customers/signup")
    async def signup(data: Dict[str, Any] = Body(...)) -> JSONResponse:
        _require(validate_customer_signup(data))
        customer = await service.submit_signup(
            SignupRequest(
                name=data["name"],
                email=data["email"],
                preferences=data.get("preferences") or {},
            )
        )
        return _ok(
            customer.model_dump(mode="json"),
            message="Customer signup successful! Welcome email will be sent shortly.",
            status_code=201,
        )

    @app.post("/api/customers/{customer_id}/visit")
    async def product_visit(customer_id: str, data: Dict[str, Any] = Body(...)) -> JSONResponse:
        _require(combine(validate_customer_id(customer_id), validate_product_visit(data)))
        record = await service.submit_product_visit(
            customer_id,
            ProductVisitRequest(
                product_id=data["product_id"],
                product_name=data["product_name"],
                category=data.get("category"),
            ),
        )
        return _ok(
            record.model_dump(mode="json"),
            message="Product page visit recorded! Discount email may be triggered.",
        )

    @app.get("/api/customers")
    async def list_customers() -> JSONResponse:
        customers = await service.list_customers()
        return _ok(
            {
                "count": len(customers),
                "customers": [c.model_dump(mode="json") for c in customers],
            }
        )

    @app.get("/api/customers/{customer_id}")
    async def get_customer(customer_id: str) -> JSONResponse:
        _require(validate_customer_id(customer_id))
        customer = await service.get_customer(customer_id)
        if customer is None:
            raise NotFoundError(customer_id)
        data = customer.model_dump(mode="json")
        data["days_since_signup"] = customer.days_since_signup
        data["days_since_last_activity"] = customer.days_since_last_activity
        return _ok(data)

    @app.get("/api/customers/{customer_id}/workflow")
    async def get_workflow_status(customer_id: str) -> JSONResponse:
        _require(validate_customer_id(customer_id))
        status = await service.get_workflow_status(customer_id)
        if status is None:
            raise NotFoundError(customer_id)
        return _ok(status.model_dump(mode="json"))

    @app.get("/api/customers/{customer_id}/notifications")
    async def list_notifications(customer_id: str) -> JSONResponse:
        _require(validate_customer_id(customer_id))
        if await service.get_customer(customer_id) is None:
            raise NotFoundError(customer_id)
        notifications = service.list_notifications(customer_id)
        return _ok([n.model_dump(mode="json") for n in notifications])

    @app.post("/api/customers/{customer_id}/simulate-time")
    async def simulate_time(customer_id: str) -> JSONResponse:
        _require(validate_customer_id(customer_id))
        triggered = await service.force_advance_time(customer_id)
        message = (
            "Time passage simulated! Reminder email should be triggered if applicable."
            if triggered
            else "No pending reminder for this customer."
        )
        return _ok({"customer_id": customer_id, "triggered": triggered}, message=message)

    return app
