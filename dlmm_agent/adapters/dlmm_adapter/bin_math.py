"""Pure DLMM bin math helpers. No I/O, no dependencies beyond stdlib."""

from __future__ import annotations

import math

from dlmm_agent.core.constants.base import BPS_DENOMINATOR


def price_per_lamport(price: float, base_decimals: int, quote_decimals: int) -> float:
    """Convert a UI price (quote per base) into raw-unit price (lamport per lamport)."""
    return price * 10 ** (quote_decimals - base_decimals)


def price_from_lamport(
    lamport_price: float, base_decimals: int, quote_decimals: int
) -> float:
    return lamport_price * 10 ** (base_decimals - quote_decimals)


def bin_id_from_price(lamport_price: float, bin_step: int, *, round_down: bool = False) -> int:
    """Bin id containing ``lamport_price``.

    A bin's price is ``(1 + bin_step / 10000) ** bin_id``; ``round_down`` picks
    the floor of the fractional id, otherwise the ceiling.
    """
    if lamport_price <= 0:
        raise ValueError(f"price must be positive, got {lamport_price}")
    if bin_step <= 0:
        raise ValueError(f"bin_step must be positive, got {bin_step}")
    fractional = math.log(lamport_price) / math.log1p(bin_step / BPS_DENOMINATOR)
    # Exact bin prices land a hair off the integer after log/log
    nearest = round(fractional)
    if math.isclose(fractional, nearest, rel_tol=0.0, abs_tol=1e-9):
        return int(nearest)
    return math.floor(fractional) if round_down else math.ceil(fractional)


def price_from_bin_id(bin_id: int, bin_step: int) -> float:
    """Lamport price of a bin."""
    return (1 + bin_step / BPS_DENOMINATOR) ** bin_id


def bins_for_price_range(price_range_delta_bps: int, bin_step: int) -> float:
    """Number of bins spanned by ``price * (1 - delta) .. price * (1 + delta)``."""
    delta = price_range_delta_bps / BPS_DENOMINATOR
    return math.log((1 + delta) / (1 - delta)) / math.log1p(bin_step / BPS_DENOMINATOR) + 1
