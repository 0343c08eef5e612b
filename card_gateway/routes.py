from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from card_gateway.auth import optional_actor, verify_token
from card_gateway.database import SessionLocal
from card_gateway.gateway import CardGateway, CheckoutSession, OrderNotFound, PaymentSuccess
from card_gateway.stripe_service import ChargeFailure

router = APIRouter()


class PaymentSubmission(BaseModel):
    order_id: int
    form: dict[str, str] = Field(default_factory=dict)
    reload_checkout: bool = False


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = None
    reason: str = ""


def get_gateway(request: Request) -> CardGateway:
    return request.app.state.gateway


@router.get("/gateways")
def list_gateways(
    actor_id: Optional[int] = Depends(optional_actor),
    gateway: CardGateway = Depends(get_gateway),
):
    if not gateway.is_available(actor_id):
        return {"gateways": []}
    return {"gateways": [gateway.describe()]}


@router.get("/checkout/script-config")
def script_config(
    order_id: Optional[int] = None,
    key: Optional[str] = None,
    actor_id: Optional[int] = Depends(optional_actor),
    gateway: CardGateway = Depends(get_gateway),
):
    db = SessionLocal()
    try:
        return gateway.script_config(db, actor_id, order_id=order_id, order_key=key)
    finally:
        db.close()


@router.post("/checkout/payment")
def submit_payment(
    submission: PaymentSubmission,
    actor_id: Optional[int] = Depends(optional_actor),
    gateway: CardGateway = Depends(get_gateway),
):
    if not gateway.is_available(actor_id):
        raise HTTPException(status_code=400, detail="Payment method is not available")

    session = CheckoutSession(reload_checkout=submission.reload_checkout)
    db = SessionLocal()
    try:
        outcome = gateway.process_payment(db, submission.order_id, submission.form, session, actor_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    finally:
        db.close()

    messages = [{"level": n.level, "message": n.message} for n in session.notices]
    if isinstance(outcome, PaymentSuccess):
        return {"result": "success", "redirect": outcome.redirect, "messages": messages}
    return {"result": "failure", "messages": messages, "reload": session.reload_checkout}


@router.post("/orders/{order_id}/refund")
def refund(
    order_id: int,
    request: RefundRequest,
    auth=Depends(verify_token),
    gateway: CardGateway = Depends(get_gateway),
):
    db = SessionLocal()
    try:
        result = gateway.process_refund(db, order_id, request.amount, request.reason)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    finally:
        db.close()

    if result is None:
        return {"message": "Nothing to refund"}
    if isinstance(result, ChargeFailure):
        raise HTTPException(status_code=400, detail=result.message)
    return {"status": "refunded", "refund_id": result.refund_id, "amount": result.amount}


@router.get("/admin/gateway/form-fields")
def admin_form_fields(auth=Depends(verify_token), gateway: CardGateway = Depends(get_gateway)):
    return {"id": gateway.id, "method_title": gateway.method_title, "form_fields": gateway.form_fields()}
