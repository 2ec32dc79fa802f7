import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from hotel_payments.database import Base, engine
from hotel_payments.errors import PaymentServiceError
from hotel_payments.logging import configure_logging
from hotel_payments.routes import router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Hotel Booking Payment Service")

app.include_router(router)

Base.metadata.create_all(bind=engine)


@app.exception_handler(PaymentServiceError)
async def payment_service_error_handler(request: Request, exc: PaymentServiceError):
    if exc.status_code >= 500:
        logger.error(exc.code, extra={"path": request.url.path, "code": exc.code, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})
