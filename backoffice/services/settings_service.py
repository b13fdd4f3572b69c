# Overview: Service-layer operations for settings; business settings and the order tax policy.

"""
Tax policy

The business tax rate lives on the Settings singleton (tax_rate_bps). Which
order operations apply it is an explicit policy chosen by ORDER_TAX_MODE:

- legacy:  create_order and update_discount charge no tax; add_items applies
           the Settings rate (the historical behavior of the back office)
- uniform: every operation applies the Settings rate
- off:     no operation charges tax

The resolved rate is passed into totals_service.recompute_totals explicitly;
nothing downstream reads Settings.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Settings
from .order_state import OP_ADD_ITEMS


TAX_MODE_LEGACY = "legacy"
TAX_MODE_UNIFORM = "uniform"
TAX_MODE_OFF = "off"

VALID_TAX_MODES = [TAX_MODE_LEGACY, TAX_MODE_UNIFORM, TAX_MODE_OFF]

# Operations that charge tax in legacy mode
LEGACY_TAXED_OPERATIONS = {OP_ADD_ITEMS}


def get_settings() -> Settings | None:
    return db.session.query(Settings).order_by(Settings.id).first()


def get_tax_rate_bps() -> int:
    settings = get_settings()
    return int(settings.tax_rate_bps) if settings else 0


def get_tax_mode() -> str:
    mode = current_app.config.get("ORDER_TAX_MODE", TAX_MODE_LEGACY)
    if mode not in VALID_TAX_MODES:
        raise ValueError(f"ORDER_TAX_MODE must be one of {VALID_TAX_MODES}, got {mode!r}")
    return mode


def tax_rate_for(operation: str) -> int:
    """Tax rate (bps) the given order operation applies under the current policy."""
    mode = get_tax_mode()
    if mode == TAX_MODE_OFF:
        return 0
    if mode == TAX_MODE_LEGACY and operation not in LEGACY_TAXED_OPERATIONS:
        return 0
    return get_tax_rate_bps()


def ensure_settings(business_name: str = "My Business", tax_rate_bps: int = 0, currency: str = "USD") -> Settings:
    """
    Ensure the settings singleton exists.

    Safe to call repeatedly (idempotent); existing values are left untouched.
    """
    settings = get_settings()
    if settings:
        return settings

    settings = Settings(business_name=business_name, tax_rate_bps=tax_rate_bps, currency=currency)
    db.session.add(settings)
    db.session.flush()
    return settings
