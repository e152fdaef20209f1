from dataclasses import dataclass
from typing import Generic, Iterable, List, Optional, TypeVar

from database.models import Product

ALL_CATEGORIES = "All"
PAGE_SIZE = 10

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T]
    page: int
    total_pages: int


def categories(products: Iterable[Product]) -> List[str]:
    seen = []
    for p in products:
        if p.category not in seen:
            seen.append(p.category)
    return [ALL_CATEGORIES] + seen


def search_products(
    products: Iterable[Product],
    query: str = "",
    category: Optional[str] = None,
    sort_stock: Optional[str] = None,
) -> List[Product]:
    needle = (query or "").strip().lower()
    result = [
        p for p in products
        if needle in p.name.lower()
        and (not category or category == ALL_CATEGORIES or p.category == category)
    ]

    if sort_stock == "asc":
        result.sort(key=lambda p: p.stock)
    elif sort_stock == "desc":
        result.sort(key=lambda p: p.stock, reverse=True)
    elif sort_stock not in (None, "", "none"):
        raise ValueError(f"Unknown stock sort '{sort_stock}'")

    return result


def paginate(items: List[T], page: int = 1, page_size: int = PAGE_SIZE) -> Page[T]:
    total_pages = max(1, -(-len(items) // page_size))
    page = min(max(1, page), total_pages)
    start = (page - 1) * page_size
    return Page(items=items[start:start + page_size], page=page, total_pages=total_pages)
