"""Freight quote form - exports host functions for engine registration."""

from .functions import cbm, chargeable_weight, is_valid_incoterm, is_business_email

FUNCTIONS = {
    'freight_quote.cbm': cbm,
    'freight_quote.chargeable_weight': chargeable_weight,
    'freight_quote.is_valid_incoterm': is_valid_incoterm,
    'freight_quote.is_business_email': is_business_email,
}

__all__ = [
    'cbm',
    'chargeable_weight',
    'is_valid_incoterm',
    'is_business_email',
    'FUNCTIONS',
]
