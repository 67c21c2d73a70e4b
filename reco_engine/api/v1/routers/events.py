# reco_engine/api/v1/routers/events.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from reco_engine.api.deps import ingestion_svc
from reco_engine.api.v1.schemas.events import CartIn, OrderIn, ProfileTouchIn, ViewIn
from reco_engine.api.v1.schemas.reco import IngestOut
from reco_engine.core.errors import RecoEngineError
from reco_engine.domain.models.profile import UserProfile

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


def _http_error(e: RecoEngineError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/events/view", response_model=IngestOut, status_code=201)
async def record_view(body: ViewIn, svc = Depends(ingestion_svc)) -> IngestOut:
    try:
        await svc.record_view(body.to_domain(), body.product_attrs())
    except RecoEngineError as e:
        raise _http_error(e)
    return IngestOut(product_id=body.product_id)


@router.post("/events/cart", response_model=IngestOut, status_code=201)
async def record_cart_event(body: CartIn, svc = Depends(ingestion_svc)) -> IngestOut:
    try:
        await svc.record_cart_event(body.to_domain(), body.product_attrs())
    except RecoEngineError as e:
        raise _http_error(e)
    return IngestOut(product_id=body.product_id)


@router.post("/events/order", response_model=IngestOut, status_code=201)
async def record_order(body: OrderIn, svc = Depends(ingestion_svc)) -> IngestOut:
    order, items, attrs = body.to_domain()
    try:
        written = await svc.record_order(order, items, attrs)
    except RecoEngineError as e:
        raise _http_error(e)
    return IngestOut(items=written)


@router.post("/profiles/{user_id}/touch", response_model=UserProfile)
async def touch_user_profile(user_id: str, body: ProfileTouchIn, svc = Depends(ingestion_svc)) -> UserProfile:
    try:
        return await svc.touch_user_profile(user_id, body.shop_domain, body.to_signals())
    except RecoEngineError as e:
        raise _http_error(e)


@router.get("/profiles/{user_id}", response_model=UserProfile)
async def get_user_profile(user_id: str, shop: str = Query(..., min_length=1), svc = Depends(ingestion_svc)) -> UserProfile:
    try:
        return await svc.get_user_profile(user_id, shop)
    except RecoEngineError as e:
        raise _http_error(e)
