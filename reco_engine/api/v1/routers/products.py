# reco_engine/api/v1/routers/products.py

from fastapi import APIRouter, Depends, HTTPException

from reco_engine.api.deps import ingestion_svc
from reco_engine.api.v1.schemas.events import ProductIn
from reco_engine.core.errors import StoreError, ValidationError
from reco_engine.domain.models.product import Product

import logging
logger = logging.getLogger(__name__)

router = APIRouter(tags=["products"])


@router.post("/products", response_model=Product, summary="Create or enrich product metadata")
async def ensure_product(body: ProductIn, svc = Depends(ingestion_svc)) -> Product:
    """
    Upsert by product id. Present, non-empty attributes overwrite stored ones;
    popularity is never written here.
    """
    try:
        product = await svc.ensure_product(body.to_attrs(), body.shop_domain)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=e.message)
    logger.info("product ensured shop=%s product_id=%s", body.shop_domain, body.product_id)
    return product
