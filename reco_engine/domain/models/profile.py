from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class UserProfile(BaseModel):
    user_id: str
    shop_domain: str
    preferred_categories: List[str] = []
    preferred_brands: List[str] = []
    viewed_products: List[str] = []      # most recent last
    purchased_products: List[str] = []
    last_active: Optional[datetime] = None
    model_config = {"frozen": True}

    def has_signals(self) -> bool:
        return bool(self.preferred_categories or self.preferred_brands or self.viewed_products)


class ProfileSignals(BaseModel):
    """What one event tells us about a user."""
    viewed_product: Optional[str] = None
    purchased_products: List[str] = []
    category: Optional[str] = None
    brand: Optional[str] = None
