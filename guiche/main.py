from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from guiche.config import WEBHOOK_PATH
from guiche.database import Base, engine
from guiche.errors import (
    ConfigurationError,
    GatewayRejectionError,
    MalformedWebhookError,
    PersistenceError,
    ValidationError,
)
from guiche.logging_config import configure_logging
from guiche.routes import router
from guiche.webhooks import parse_webhook, reconcile

configure_logging()

app = FastAPI(title="Guiche PIX Checkout")

app.include_router(router)

Base.metadata.create_all(bind=engine)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.exception_handler(GatewayRejectionError)
async def gateway_rejection_handler(request: Request, exc: GatewayRejectionError):
    return JSONResponse(
        status_code=502,
        content={
            "error": exc.message,
            "details": jsonable_encoder(exc.payload),
            "reason": "invalid_document" if exc.document_related else "gateway_rejected",
        },
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    return JSONResponse(status_code=503, content={"error": "Order storage unavailable"})


@app.post(WEBHOOK_PATH)
async def pix_webhook(request: Request):
    payload = await request.body()

    try:
        event = parse_webhook(payload)
    except MalformedWebhookError:
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    # store writes and the Utmify call block
    return await run_in_threadpool(reconcile, event)
