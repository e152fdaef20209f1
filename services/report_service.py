from collections import defaultdict
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from enum import Enum
from io import BytesIO
from typing import Dict, Iterable, List, Optional

import pandas as pd

from database.models import Order, Product, utcnow

UNCATEGORIZED = "Uncategorized"


class ReportPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL = "all"


@dataclass
class SalesReport:
    total_revenue: int = 0
    order_count: int = 0
    avg_order_value: float = 0.0
    user_stats: Dict[str, int] = field(default_factory=dict)
    category_stats: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def period_start(period: ReportPeriod, now: Optional[datetime] = None) -> Optional[datetime]:
    now = now or utcnow()
    period = ReportPeriod(period)
    if period is ReportPeriod.DAILY:
        return datetime.combine(now.date(), datetime.min.time())
    if period is ReportPeriod.WEEKLY:
        return now - timedelta(days=7)
    if period is ReportPeriod.MONTHLY:
        return datetime(now.year, now.month, 1)
    return None


def filter_orders_by_period(orders: Iterable[Order], period: ReportPeriod, now: Optional[datetime] = None) -> List[Order]:
    start = period_start(period, now)
    if start is None:
        return list(orders)
    return [o for o in orders if o.created_at >= start]


def build_sales_report(orders: Iterable[Order], products: Iterable[Product]) -> SalesReport:
    """
    Revenue totals over the given orders.
    Category figures use the pre-discount line totals and the product's
    current category, since cart lines do not carry one.
    """
    orders = list(orders)
    category_of = {p.id: p.category for p in products}

    report = SalesReport(order_count=len(orders))
    user_stats = defaultdict(int)
    category_stats = defaultdict(int)

    for order in orders:
        report.total_revenue += order.total_amount
        user_stats[order.user_name] += order.total_amount
        for item in order.cart_items():
            category = category_of.get(item.product_id) or UNCATEGORIZED
            category_stats[category] += item.price * item.quantity

    report.user_stats = dict(user_stats)
    report.category_stats = dict(category_stats)
    report.avg_order_value = report.total_revenue / report.order_count if report.order_count else 0.0
    return report


def _to_xlsx(rows: List[dict], columns: List[str]) -> BytesIO:
    df = pd.DataFrame(rows, columns=columns)
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False)
    output.seek(0)
    return output


def export_orders_xlsx(orders: Iterable[Order]) -> BytesIO:
    columns = ["Receipt", "Date", "Staff", "Buyer", "Items", "Discount", "Total"]
    rows = []
    for o in orders:
        rows.append({
            "Receipt": o.receipt_number,
            "Date": o.created_at.strftime("%Y-%m-%d %H:%M"),
            "Staff": o.user_name,
            "Buyer": o.buyer_name or "",
            "Items": ", ".join(f"{i.quantity}x {i.name}" for i in o.cart_items()),
            "Discount": o.discount,
            "Total": o.total_amount,
        })
    return _to_xlsx(rows, columns)


def export_products_xlsx(products: Iterable[Product]) -> BytesIO:
    columns = ["ID", "Name", "Category", "Price", "Stock"]
    rows = [
        {"ID": p.id, "Name": p.name, "Category": p.category, "Price": p.price, "Stock": p.stock}
        for p in products
    ]
    return _to_xlsx(rows, columns)
