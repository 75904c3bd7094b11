import logging
import logging.config
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from payment_service import service
from payment_service.config import LOG_LEVEL
from payment_service.database import init_db, get_session
from payment_service.errors import PaymentServiceError
from payment_service.messaging import setup_rabbitmq, close_rabbitmq
from payment_service.models import PaymentStatus
from payment_service.schemas import (
    PaymentInitiate,
    PaymentConfirm,
    PaymentRead,
    InitiationResult,
    ConfirmationResult,
)
from payment_service.security import Principal, get_current_principal, require_admin, get_payment_token

logging.config.dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "loggers": {
        "payment_service": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
})
logger = logging.getLogger(__name__)

app = FastAPI(title="Payment Service")

@app.on_event("startup")
async def startup_event():
    await init_db()
    await setup_rabbitmq()

@app.on_event("shutdown")
async def shutdown_event():
    await close_rabbitmq()

@app.exception_handler(PaymentServiceError)
async def payment_error_handler(request: Request, exc: PaymentServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "validation_error", "detail": jsonable_encoder(exc.errors())},
    )

@app.get("/health")
async def health():
    return {"status": "ok"}

@app.post("/api/payments", response_model=InitiationResult, status_code=201)
async def initiate_payment(
    payment_data: PaymentInitiate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_session),
):
    return await service.initiate_payment(db, principal, payment_data)

@app.post("/api/payments/{payment_id}/confirm", response_model=ConfirmationResult)
async def confirm_payment(
    payment_id: int,
    confirm_data: PaymentConfirm,
    payment_token: Optional[str] = Depends(get_payment_token),
    db: AsyncSession = Depends(get_session),
):
    return await service.confirm_payment(db, payment_id, payment_token, confirm_data)

@app.post("/api/payments/{payment_id}/admin-confirm", response_model=ConfirmationResult)
async def admin_confirm_payment(
    payment_id: int,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    logger.info(f"Administrator {admin.user_id} confirming payment {payment_id}")
    return await service.admin_confirm_payment(db, payment_id)

@app.put("/api/payments/{payment_id}/refund", response_model=PaymentRead)
async def refund_payment(
    payment_id: int,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    payment = await service.refund_payment(db, payment_id)
    return PaymentRead.model_validate(payment)

@app.put("/api/payments/{payment_id}/cancel", response_model=PaymentRead)
async def cancel_payment(
    payment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_session),
):
    payment = await service.cancel_payment(db, principal, payment_id)
    return PaymentRead.model_validate(payment)

@app.get("/api/payments/me", response_model=List[PaymentRead])
async def get_my_payments(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_session),
):
    payments = await service.list_user_payments(db, principal)
    return [PaymentRead.model_validate(payment) for payment in payments]

@app.get("/api/payments/user/{user_id}", response_model=List[PaymentRead])
async def get_user_payments(
    user_id: int,
    status: Optional[PaymentStatus] = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_session),
):
    payments = await service.list_payments_for_user(db, principal, user_id, status)
    return [PaymentRead.model_validate(payment) for payment in payments]

@app.get("/api/payments/status/{status}", response_model=List[PaymentRead])
async def get_payments_by_status(
    status: PaymentStatus,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    payments = await service.list_payments_by_status(db, status)
    return [PaymentRead.model_validate(payment) for payment in payments]

@app.get("/api/payments/{payment_id}", response_model=PaymentRead)
async def get_payment(
    payment_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_session),
):
    payment = await service.get_payment(db, principal, payment_id)
    return PaymentRead.model_validate(payment)

@app.get("/api/payments", response_model=List[PaymentRead])
async def get_payments(
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    payments = await service.list_all_payments(db)
    return [PaymentRead.model_validate(payment) for payment in payments]

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
