from typing import Any, Dict, Iterable

from schemas import FarmerStats, OrderStatus, PaymentStatus


def compute_farmer_stats(orders: Iterable[Dict[str, Any]]) -> FarmerStats:
    """Per-status counts and paid, non-cancelled revenue over a farmer's orders."""
    stats = FarmerStats()
    counters = {
        OrderStatus.PENDING.value: "pending_orders",
        OrderStatus.CONFIRMED.value: "confirmed_orders",
        OrderStatus.DELIVERED.value: "delivered_orders",
        OrderStatus.CANCELLED.value: "cancelled_orders",
    }
    for order in orders:
        stats.total_orders += 1
        status = order.get("status")
        if status in counters:
            setattr(stats, counters[status], getattr(stats, counters[status]) + 1)
        if status != OrderStatus.CANCELLED.value and order.get("payment_status") == PaymentStatus.PAID.value:
            stats.total_revenue += float(order.get("total_amount", 0))
    return stats
