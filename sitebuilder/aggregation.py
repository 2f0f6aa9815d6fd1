# sitebuilder/aggregation.py
"""
Métricas derivadas de pedidos e linhas de analytics.

Funções puras sobre sequências já carregadas do banco: não fazem I/O nem
guardam estado. Pedidos só precisam expor ``status``, ``total_amount``,
``items``, ``created_at`` (UTC sem fuso) e ``delivery_type``.
"""
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

ORDER_STATUSES = ("new", "preparing", "ready", "delivered", "cancelled")
DELIVERY_TYPES = ("delivery", "pickup")
OTHER_STATUS = "other"

CENTS = Decimal("0.01")


@dataclass
class ProductStat:
    name: str
    quantity: int
    revenue: Decimal


@dataclass
class HourBucket:
    hour: int
    label: str
    orders: int


@dataclass
class DayTotals:
    orders: int
    revenue: Decimal


@dataclass
class AnalyticsTotals:
    views: int
    orders: int
    revenue: Decimal
    avg_conversion_rate: Decimal


def _money(value) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def local_time(created_at: datetime, tz: tzinfo) -> datetime:
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.astimezone(tz)


def status_counts(orders: Iterable) -> Dict[str, int]:
    """Contagem por status; status desconhecido ou vazio cai em ``other``."""
    counts = {s: 0 for s in ORDER_STATUSES}
    counts[OTHER_STATUS] = 0
    for o in orders:
        counts[o.status if o.status in ORDER_STATUSES else OTHER_STATUS] += 1
    return counts


def orders_on_day(orders: Iterable, day: date, tz: tzinfo = timezone.utc) -> List:
    return [o for o in orders if local_time(o.created_at, tz).date() == day]


def today_totals(orders: Iterable, now: datetime, tz: tzinfo = timezone.utc) -> DayTotals:
    todays = orders_on_day(orders, local_time(now, tz).date(), tz)
    revenue = sum((_money(o.total_amount) for o in todays), Decimal("0"))
    return DayTotals(orders=len(todays), revenue=revenue.quantize(CENTS))


def top_products(orders: Iterable, limit: int = 5) -> List[ProductStat]:
    # agrupado por nome, como aparece na cópia dos itens do pedido
    stats: Dict[str, ProductStat] = {}
    for o in orders:
        items = o.items if isinstance(o.items, list) else []
        for item in items:
            name = item.get("name")
            qty = int(item.get("quantity") or 1)
            stat = stats.setdefault(name, ProductStat(name=name, quantity=0, revenue=Decimal("0")))
            stat.quantity += qty
            stat.revenue += _money(item.get("price")) * qty

    ranked = sorted(stats.values(), key=lambda s: s.revenue, reverse=True)[:limit]
    for s in ranked:
        s.revenue = s.revenue.quantize(CENTS)
    return ranked


def peak_hours(orders: Iterable, tz: tzinfo = timezone.utc) -> List[HourBucket]:
    per_hour = Counter(local_time(o.created_at, tz).hour for o in orders)
    return [HourBucket(hour=h, label=f"{h:02d}:00", orders=per_hour.get(h, 0)) for h in range(24)]


def delivery_split(orders: Iterable) -> Dict[str, int]:
    split = {t: 0 for t in DELIVERY_TYPES}
    for o in orders:
        if o.delivery_type in split:
            split[o.delivery_type] += 1
    return split


def average_order_value(total_revenue, total_orders: int) -> Decimal:
    if total_orders <= 0:
        return Decimal("0")
    return (_money(total_revenue) / total_orders).quantize(CENTS)


def analytics_totals(rows: Sequence) -> AnalyticsTotals:
    views = sum(r.views or 0 for r in rows)
    orders = sum(r.orders or 0 for r in rows)
    revenue = sum((_money(r.revenue) for r in rows), Decimal("0"))
    if rows:
        rate = sum((_money(r.conversion_rate) for r in rows), Decimal("0")) / len(rows)
    else:
        rate = Decimal("0")
    return AnalyticsTotals(
        views=views,
        orders=orders,
        revenue=revenue.quantize(CENTS),
        avg_conversion_rate=rate.quantize(CENTS),
    )
