"""
Calculators Package

Provides all calculation components for quoting and settlement.
"""

from .analytics import AnalyticsAggregator
from .currency import CurrencyConverter, ExchangeRateClient, RateCache
from .pricing import PricingCalculator, quantize_money, word_units
from .settlement import SettlementEngine
from .urgency import UrgencyPolicy, days_between

__all__ = [
    "PricingCalculator",
    "UrgencyPolicy",
    "CurrencyConverter",
    "ExchangeRateClient",
    "RateCache",
    "SettlementEngine",
    "AnalyticsAggregator",
    "quantize_money",
    "word_units",
    "days_between",
]
