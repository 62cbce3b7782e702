"""
Valuation Calculator
Derives adjustment quantities and values for a count line
"""
from dataclasses import dataclass
from typing import Dict, Iterable

from stockrecon.services.numeric import (
    sanitize_amount, sanitize_rate, require_non_negative, round_money, round_quantity
)


@dataclass(frozen=True)
class LineValuation:
    """Computed fields of one count line, unrounded"""
    adjustment_in_quantity: float
    adjustment_out_quantity: float
    delta_quantity: float
    delta_value: float
    new_stock: float
    total_value: float
    equivalent_amount: float

    def as_persisted(self) -> Dict[str, float]:
        """Values rounded for storage on the line"""
        return {
            "adjustment_in_quantity": round_quantity(self.adjustment_in_quantity),
            "adjustment_out_quantity": round_quantity(self.adjustment_out_quantity),
            "delta_quantity": round_quantity(self.delta_quantity),
            "delta_value": round_money(self.delta_value),
            "new_stock": round_quantity(self.new_stock),
            "total_value": round_money(self.total_value),
            "equivalent_amount": round_money(self.equivalent_amount),
        }


def calculate_line_valuation(
    current_quantity,
    counted_quantity,
    unit_cost,
    unit_average_cost=None,
    exchange_rate=None
) -> LineValuation:
    """
    Value a count line against the system quantity

    The counted quantity replaces stock, so new_stock is the count itself.
    Average cost defaults to unit cost when not supplied.
    """
    current = sanitize_amount(current_quantity, field="current_quantity")
    counted = require_non_negative(counted_quantity, "counted_quantity")
    cost = require_non_negative(unit_cost, "unit_cost")
    if unit_average_cost is None:
        average_cost = cost
    else:
        average_cost = require_non_negative(unit_average_cost, "unit_average_cost")
    rate = sanitize_rate(exchange_rate)

    difference = counted - current
    total_value = counted * cost

    return LineValuation(
        adjustment_in_quantity=max(difference, 0.0),
        adjustment_out_quantity=max(-difference, 0.0),
        delta_quantity=difference,
        delta_value=difference * average_cost,
        new_stock=counted,
        total_value=total_value,
        equivalent_amount=total_value * rate,
    )


@dataclass
class VarianceSummary:
    """Aggregate of a document's line valuations"""
    total_items: int = 0
    total_value: float = 0.0
    total_delta_value: float = 0.0
    positive_delta_value: float = 0.0
    negative_delta_value: float = 0.0


def summarize_valuations(valuations: Iterable[LineValuation]) -> VarianceSummary:
    """Sum line valuations, rounding only the final totals"""
    summary = VarianceSummary()
    for valuation in valuations:
        summary.total_items += 1
        summary.total_value += valuation.total_value
        summary.total_delta_value += valuation.delta_value
        if valuation.delta_value > 0:
            summary.positive_delta_value += valuation.delta_value
        elif valuation.delta_value < 0:
            summary.negative_delta_value += valuation.delta_value

    summary.total_value = round_money(summary.total_value)
    summary.total_delta_value = round_money(summary.total_delta_value)
    summary.positive_delta_value = round_money(summary.positive_delta_value)
    summary.negative_delta_value = round_money(summary.negative_delta_value)
    return summary
