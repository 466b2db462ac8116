"""Payment method catalogue endpoint."""

from fastapi import APIRouter

from payout_engine.api.dependencies import Dispatcher
from payout_engine.api.schemas import PaymentMethodResponse

router = APIRouter(prefix="/payment-methods", tags=["payment-methods"])


@router.get("", response_model=list[PaymentMethodResponse])
async def list_payment_methods(dispatcher: Dispatcher) -> list[PaymentMethodResponse]:
    """List registered payment methods with processing times and fees."""
    return [
        PaymentMethodResponse(
            method=method,
            name=info.name,
            description=info.description,
            processing_time=info.processing_time,
            fees=info.fees,
            supported=info.supported,
        )
        for method, info in dispatcher.method_info().items()
    ]
