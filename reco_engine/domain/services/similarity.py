"""
Attribute similarity between two products of the same shop.

score = 0.3*tag_overlap + 0.25*collection_overlap + 0.2*same_type
        + 0.15*same_vendor + 0.1*(1 - price_distance), capped at 1.0

Used both by the precompute job (SIMILAR_PRODUCTS edges) and by the live
similarity tier of the query service.
"""
from typing import Iterable, List, NamedTuple

from reco_engine.domain.models.product import Product
from reco_engine.domain.services.constants import (
    W_TAGS, W_COLLECTIONS, W_TYPE, W_VENDOR, W_PRICE,
    REASON_TAGS, REASON_COLLECTIONS, REASON_VENDOR, REASON_TYPE, REASON_DEFAULT,
)


class Similarity(NamedTuple):
    product: Product
    score: float
    reason: str


def overlap_ratio(a: Iterable[str], b: Iterable[str]) -> float:
    """|A ∩ B| / max(|A|, |B|); 0 when either side is empty."""
    sa, sb = set(a or ()), set(b or ())
    if not sa or not sb:
        return 0.0
    return len(sa & sb) / max(len(sa), len(sb))


def price_distance(pa: float, pb: float) -> float:
    top = max(pa, pb)
    if top <= 0:
        return 0.0
    return min(1.0, abs(pa - pb) / top)


def _same(a, b) -> float:
    return 1.0 if a and b and a == b else 0.0


def similarity(src: Product, other: Product) -> Similarity:
    tags = W_TAGS * overlap_ratio(src.tags, other.tags)
    collections = W_COLLECTIONS * overlap_ratio(src.collections, other.collections)
    same_type = W_TYPE * _same(src.type, other.type)
    same_vendor = W_VENDOR * _same(src.vendor, other.vendor)
    price = W_PRICE * (1.0 - price_distance(src.price, other.price))

    score = min(1.0, tags + collections + same_type + same_vendor + price)

    # strongest contributing dimension; order breaks ties
    dimensions = [
        (tags, REASON_TAGS),
        (collections, REASON_COLLECTIONS),
        (same_vendor, REASON_VENDOR.format(vendor=other.vendor)),
        (same_type, REASON_TYPE.format(type=other.type)),
    ]
    best, reason = 0.0, REASON_DEFAULT
    for contribution, label in dimensions:
        if contribution > best:
            best, reason = contribution, label

    return Similarity(other, score, reason)


def rank_similar(src: Product, others: Iterable[Product], limit: int) -> List[Similarity]:
    """
    Score every product other than `src`, drop zero scores and return the top
    `limit` by score desc. Ties keep the input order. A source without any
    attributes (a placeholder) has no similar products.
    """
    if not src.has_attributes():
        return []
    scored = [
        similarity(src, p)
        for p in others
        if p.product_id != src.product_id
    ]
    scored = [s for s in scored if s.score > 0]
    scored.sort(key=lambda s: s.score, reverse=True)  # stable
    return scored[:limit]
