from fastapi import APIRouter
from fastapi.responses import JSONResponse

from reconciler.db import OrderNotFoundError, get_pool, reconcile_order

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/orders/{order_number}/reconcile")
async def reconcile(order_number: str) -> JSONResponse:
    """
    Re-run the update cycle for one stored order (address repair, totals, states)
    and persist the result. Returns the derived states and how many state changes were recorded.
    """
    pool = await get_pool()
    try:
        order = await reconcile_order(pool, order_number)
    except OrderNotFoundError:
        return JSONResponse(
            status_code=404,
            content={"status": "not_found", "order_number": order_number},
        )
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "order_number": order.number,
            "payment_state": order.payment_state,
            "shipment_state": order.shipment_state,
            "total": str(order.total),
            "payment_total": str(order.payment_total),
            "state_changes": len(order.state_changes),
        },
    )
