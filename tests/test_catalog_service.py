import pytest

from database.models import Product
from database.seed_data import INITIAL_PRODUCTS
from services.catalog_service import ALL_CATEGORIES, categories, paginate, search_products


def test_categories_start_with_all_in_first_seen_order():
    cats = categories(INITIAL_PRODUCTS)
    assert cats[0] == ALL_CATEGORIES
    assert cats[1:4] == ["Coffee", "Dairy", "Tea"]
    assert len(cats) == len(set(cats))


def test_search_is_case_insensitive():
    names = [p.name for p in search_products(INITIAL_PRODUCTS, "MILK")]
    assert names == ["Fresh Milk 1L", "Almond Milk"]


def test_category_filter():
    result = search_products(INITIAL_PRODUCTS, category="Bakery")
    assert [p.name for p in result] == ["Baguette", "Croissant"]
    assert len(search_products(INITIAL_PRODUCTS, category=ALL_CATEGORIES)) == len(INITIAL_PRODUCTS)


def test_stock_sorting():
    asc = search_products(INITIAL_PRODUCTS, sort_stock="asc")
    desc = search_products(INITIAL_PRODUCTS, sort_stock="desc")
    assert asc[0].name == "Caramel Sauce"
    assert desc[0].name == "Eco-friendly Cup"


def test_unknown_sort_is_rejected():
    with pytest.raises(ValueError):
        search_products(INITIAL_PRODUCTS, sort_stock="sideways")


def test_paginate_pages_of_ten():
    first = paginate(INITIAL_PRODUCTS, 1)
    second = paginate(INITIAL_PRODUCTS, 2)
    assert len(first.items) == 10
    assert len(second.items) == 2
    assert first.total_pages == 2


def test_paginate_clamps_page_number():
    assert paginate(INITIAL_PRODUCTS, 99).page == 2
    assert paginate(INITIAL_PRODUCTS, 0).page == 1
    empty = paginate([], 3)
    assert (empty.items, empty.page, empty.total_pages) == ([], 1, 1)


def test_negative_stock_sorts_first():
    products = [Product(id="a", name="A", stock=5), Product(id="b", name="B", stock=-3)]
    assert [p.id for p in search_products(products, sort_stock="asc")] == ["b", "a"]
