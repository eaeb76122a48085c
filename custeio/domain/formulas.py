"""
Cost formulas for purchasing, FIFO valuation and batch allocation.

These functions implement the arithmetic used by the ledger and the
costing engines: converting a purchase into stock units, planning a FIFO
draw across lots, pricing a menu and allocating labor and overhead into
a production batch.

All functions are pure: they depend solely on their inputs and do
not modify any external state. This makes them safe to unit test
individually.
"""

from typing import Iterable, List, Optional, Tuple, Union

Number = Union[int, float]

# Tolerance for float residue when a FIFO draw exactly matches the stock.
EPS = 1e-9


def stock_quantity(qty_buy: Number, ratio: Number) -> float:
    """Convert a purchased quantity (buy units) into stock units.

    Parameters
    ----------
    qty_buy: float
        Quantity bought, in buy units.
    ratio: float
        Buy-to-stock conversion ratio (1 buy unit = ``ratio`` stock units).
    """
    ratio = float(ratio)
    if ratio <= 0:
        raise ValueError("ratio must be positive")
    return float(qty_buy) * ratio


def cost_per_stock_unit(total_price: Number, qty_buy: Number, ratio: Number) -> float:
    """Cost of one stock unit: ``total_price / qty_buy / ratio``."""
    qty_buy = float(qty_buy)
    ratio = float(ratio)
    if qty_buy <= 0:
        raise ValueError("qty_buy must be positive")
    if ratio <= 0:
        raise ValueError("ratio must be positive")
    return float(total_price) / qty_buy / ratio


def unit_price(total_price: Number, qty_buy: Number) -> float:
    """Price paid per buy unit."""
    qty_buy = float(qty_buy)
    if qty_buy <= 0:
        raise ValueError("qty_buy must be positive")
    return float(total_price) / qty_buy


def plan_fifo(
    lots: Iterable[Tuple[str, float, float]],
    qty_needed: Number,
) -> Tuple[List[Tuple[str, float, float]], float]:
    """Plan a FIFO draw across lots without touching them.

    Parameters
    ----------
    lots: iterable of (lot_id, remaining, cost_per_unit)
        Lots already sorted oldest first.
    qty_needed: float
        Quantity to draw, in stock units.

    Returns
    -------
    (takes, shortfall)
        ``takes`` is a list of (lot_id, qty_taken, cost_per_unit) in draw
        order. ``shortfall`` is the quantity that could not be covered
        (0.0 when the lots are sufficient). Residues below ``EPS`` are
        treated as fully covered.
    """
    need = float(qty_needed)
    takes: List[Tuple[str, float, float]] = []
    for lot_id, remaining, cost in lots:
        if need <= EPS:
            break
        remaining = float(remaining)
        if remaining <= 0:
            continue
        take = min(remaining, need)
        takes.append((lot_id, take, float(cost)))
        need -= take
    shortfall = need if need > EPS else 0.0
    return takes, shortfall


def weighted_cost(takes: Iterable[Tuple[str, float, float]]) -> Tuple[float, float]:
    """Return (total_cost, weighted_unit_cost) of a FIFO draw."""
    total_qty = 0.0
    total_cost = 0.0
    for _lot_id, qty, cost in takes:
        total_qty += float(qty)
        total_cost += float(qty) * float(cost)
    if total_qty <= 0:
        return 0.0, 0.0
    return total_cost, total_cost / total_qty


def suggested_price(total_cost: Number, target_gp: Number) -> float:
    """Selling price that yields the target gross profit.

    ``total_cost / (1 - target_gp)``, valid for ``0 <= target_gp < 1``.
    """
    gp = float(target_gp)
    if not (0.0 <= gp < 1.0):
        raise ValueError("target_gp must be in [0, 1)")
    return float(total_cost) / (1.0 - gp)


def net_unit_price(price: Number, commission_pct: Optional[Number]) -> float:
    """Unit price after a platform commission expressed in percent."""
    pct = float(commission_pct or 0.0)
    return float(price) * (1.0 - pct / 100.0)


def batch_cost(
    recipe_cost_per_serve: Number,
    plan_qty: Number,
    actual_qty: Number,
    hours: Number,
    labor_rate: Number,
    oh_per_hour: Number,
    oh_per_kg: Number,
    weight_kg: Number,
    pack_per_serve: Number = 0.0,
    labor_units: Optional[Number] = None,
) -> dict:
    """Allocate recipe, packaging, labor and overhead into a batch.

    The components are::

        recipe    = recipe_cost_per_serve * plan_qty
        packaging = pack_per_serve * plan_qty
        labor     = hours * labor_rate   (or labor_units * labor_rate)
        overhead  = oh_per_hour * hours + oh_per_kg * weight_kg
        total     = recipe + packaging + labor + overhead
        per_serve = total / max(actual_qty, 1)
        variance  = actual_qty - plan_qty
    """
    plan_qty = float(plan_qty)
    actual_qty = float(actual_qty)
    hours = float(hours)
    recipe = float(recipe_cost_per_serve) * plan_qty
    packaging = float(pack_per_serve) * plan_qty
    labor = (hours if labor_units is None else float(labor_units)) * float(labor_rate)
    overhead = float(oh_per_hour) * hours + float(oh_per_kg) * float(weight_kg)
    total = recipe + packaging + labor + overhead
    return {
        "recipe": recipe,
        "packaging": packaging,
        "labor": labor,
        "overhead": overhead,
        "total": total,
        "per_serve": total / max(actual_qty, 1.0),
        "variance": actual_qty - plan_qty,
    }


def gross_margin_pct(net: Number, cogs: Number) -> float:
    """Gross margin in percent of net revenue (0 when there is no revenue)."""
    net = float(net)
    if net <= 0:
        return 0.0
    return (net - float(cogs)) / net * 100.0
