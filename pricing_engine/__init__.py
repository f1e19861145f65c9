"""
ASSIGNMENT PRICING & SETTLEMENT ENGINE
"""

from .config import Settings
from .errors import PricingEngineError
from .models import AssignmentStatus, PriceBreakdown, QuoteRequest, Role
from .processor import PricingProcessor

__all__ = [
    'PricingProcessor',
    'Settings',
    'QuoteRequest',
    'PriceBreakdown',
    'Role',
    'AssignmentStatus',
    'PricingEngineError',
]
