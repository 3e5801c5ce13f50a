"""Configuration service - cake price, round counter and maintenance flag."""

import logging
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation

from django.db import transaction

from ..models import LedgerConfiguration, MONEY_QUANTUM
from .exceptions import InvalidConfigurationError, MaintenanceInProgressError

logger = logging.getLogger(__name__)


def get_configuration() -> LedgerConfiguration:
    return LedgerConfiguration.load()


def get_cake_unit_price() -> Decimal:
    """Current price of one cake. Applies to contributions written from now on."""
    return LedgerConfiguration.load().cake_unit_price


@transaction.atomic
def set_cake_unit_price(price, *, updated_by=None) -> LedgerConfiguration:
    """
    Change the cake price.

    The change is prospective only: existing contributions keep the price
    recorded at their creation.

    Raises:
        InvalidConfigurationError: If price is not a positive amount
    """
    try:
        price = Decimal(str(price)).quantize(MONEY_QUANTUM)
    except (InvalidOperation, ValueError):
        raise InvalidConfigurationError(f"Invalid cake price: {price!r}")

    if price <= 0:
        raise InvalidConfigurationError("Cake price must be greater than zero")

    config = LedgerConfiguration.load(for_update=True)
    previous = config.cake_unit_price
    config.cake_unit_price = price
    config.updated_by = updated_by
    config.save(update_fields=['cake_unit_price', 'updated_by', 'updated_at'])

    logger.info("Cake price changed from %s to %s", previous, price)
    return config


def _set_maintenance_flag(enabled):
    with transaction.atomic():
        config = LedgerConfiguration.load(for_update=True)
        if enabled and config.maintenance_mode:
            raise MaintenanceInProgressError("Balance maintenance already in progress")
        config.maintenance_mode = enabled
        config.save(update_fields=['maintenance_mode', 'updated_at'])


@contextmanager
def maintenance_mode():
    """
    Hold the maintenance flag for the duration of the block.

    The flag is committed before the block runs so that concurrent
    contribution writers see it and fail fast. It is always released.

    Raises:
        MaintenanceInProgressError: If another maintenance run holds the flag
    """
    _set_maintenance_flag(True)
    logger.info("Ledger maintenance started")
    try:
        yield
    finally:
        _set_maintenance_flag(False)
        logger.info("Ledger maintenance finished")


def is_maintenance_active() -> bool:
    return LedgerConfiguration.load().maintenance_mode
