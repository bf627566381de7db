from .asset import Asset
from .price_history import PricePoint
from .user import User
from .alert import PriceAlert

__all__ = ["Asset", "PricePoint", "User", "PriceAlert"]
