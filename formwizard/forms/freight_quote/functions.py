"""Freight quote host functions - referenced by name from spec.yaml."""

from typing import Any, Dict

INCOTERMS = ('EXW', 'FCA', 'FAS', 'FOB', 'CFR', 'CIF', 'CPT', 'CIP', 'DAP', 'DPU', 'DDP')

FREE_MAIL_DOMAINS = ('gmail.com', 'yahoo.com', 'hotmail.com', 'outlook.com', 'aol.com', 'icloud.com')

# IATA volumetric factor: kg per cubic meter
VOLUMETRIC_FACTOR = 167


def _number(value: Any) -> float:
    if value is None or value == '':
        return 0.0
    return float(value)


def cbm(length: Any, width: Any, height: Any, count: Any = 1) -> float:
    """Cubic meters for ``count`` pieces measured in centimeters.

    Args:
        length: Length in cm
        width: Width in cm
        height: Height in cm
        count: Number of pieces

    Returns:
        Total volume in m3, rounded to three decimals
    """
    volume = _number(length) * _number(width) * _number(height) / 1000000
    return round(volume * _number(count), 3)


def chargeable_weight(weight_kg: Any, volume_cbm: Any) -> float:
    """Greater of actual and volumetric weight."""
    return round(max(_number(weight_kg), _number(volume_cbm) * VOLUMETRIC_FACTOR), 2)


def is_valid_incoterm(field_name: str, value: Any, form: Dict[str, Any]) -> bool:
    """Predicate: value is an Incoterms 2020 rule (empty passes)."""
    if not value:
        return True
    return str(value).strip().upper() in INCOTERMS


def is_business_email(field_name: str, value: Any, form: Dict[str, Any]) -> bool:
    """Predicate: email is not on a free mail provider (empty passes)."""
    if not value or '@' not in str(value):
        return True
    domain = str(value).rsplit('@', 1)[1].strip().lower()
    return domain not in FREE_MAIL_DOMAINS
