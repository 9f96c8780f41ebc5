"""Keyword-based category inference for receipts and line items.

Two separate tables are kept on purpose:

* ``ITEM_CATEGORY_KEYWORDS`` is matched against a single line-item
  description ("Latte", "Parking 2h", "HDMI cable").
* ``RECEIPT_CATEGORY_KEYWORDS`` is matched against the merchant name plus all
  item descriptions, so it also carries merchant and chain names
  ("Whole Foods", "Shell", "Comcast").

Both are case-insensitive substring tests evaluated in ``CATEGORY_ORDER``;
the first category with a hit wins and ``Other`` is the default. Keywords are
chosen so that common short words do not hide inside unrelated ones
("bus" in "business", "rent" in "current").
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from expense_ai.schemas.expense import Category, LineItem

logger = logging.getLogger(__name__)

CATEGORY_ORDER: tuple[Category, ...] = (
    Category.FOOD,
    Category.TRANSPORT,
    Category.SHOPPING,
    Category.BILLS,
)

ITEM_CATEGORY_KEYWORDS: Mapping[Category, Sequence[str]] = {
    Category.FOOD: (
        "coffee", "latte", "espresso", "cappuccino", "americano", "mocha", "cola",
        "iced tea", "green tea", "juice", "soda", "smoothie", "sparkling water",
        "bottled water", "beer", "wine", "cocktail", "beverage", "drink",
        "muffin", "bagel", "croissant", "donut", "doughnut", "cookie", "cake",
        "bread", "sandwich", "burger", "pizza", "salad", "soup", "pasta",
        "noodle", "rice bowl", "sushi", "taco", "burrito", "fries", "chicken",
        "beef", "pork", "steak", "fish", "egg", "milk", "cheese", "yogurt",
        "butter", "fruit", "banana", "apple", "orange", "vegetable", "produce",
        "grocer", "snack", "candy", "chocolate", "cereal", "breakfast", "lunch",
        "dinner", "meal", "food",
    ),
    Category.TRANSPORT: (
        "fuel", "gasoline", "petrol", "diesel", "gas station", "unleaded",
        "parking", "toll", "taxi", "cab fare", "uber", "lyft", "rideshare",
        "bus fare", "bus ticket", "metro", "subway fare", "train ticket",
        "transit", "airfare", "flight", "car wash", "oil change", "ev charging",
    ),
    Category.SHOPPING: (
        "shirt", "pants", "jeans", "dresses", "skirt", "shoes", "sneakers", "jacket",
        "socks", "clothing", "apparel", "electronics", "headphones", "charger",
        "usb cable", "hdmi cable", "phone case", "book", "toy", "video game",
        "furniture", "lamp", "decor", "towel", "shampoo", "soap", "toothpaste",
        "detergent", "cosmetic", "makeup", "gift", "notebook", "stationery",
        "tool", "kitchenware", "battery", "batteries",
    ),
    Category.BILLS: (
        "electric", "utility", "utilities", "water bill", "gas bill", "internet",
        "wifi", "broadband", "phone bill", "mobile plan", "cable tv",
        "subscription", "netflix", "spotify", "hulu", "disney+", "streaming",
        "icloud", "insurance", "monthly rent", "rent payment", "mortgage",
        "membership", "monthly plan", "annual plan",
    ),
}

RECEIPT_CATEGORY_KEYWORDS: Mapping[Category, Sequence[str]] = {
    Category.FOOD: (
        "restaurant", "cafe", "café", "coffee", "bakery", "delicatessen", "bistro",
        "diner", "grill", "pizzeria", "starbucks",
        "dunkin", "mcdonald", "burger king", "wendy", "subway", "chipotle",
        "domino", "kfc", "taco bell", "panera", "whole foods", "trader joe",
        "safeway", "kroger", "aldi", "lidl", "publix", "grocery", "groceries",
        "supermarket", "market", "food", "latte", "sandwich", "pizza", "burger",
        "meal", "snack", "beverage",
    ),
    Category.TRANSPORT: (
        "shell", "chevron", "exxon", "texaco", "valero",
        "gas station", "fuel", "petrol", "gasoline", "parking", "toll",
        "uber", "lyft", "taxi", "transit", "metrocard", "airline", "airways",
        "railway", "amtrak", "car wash",
    ),
    Category.SHOPPING: (
        "walmart", "target", "amazon", "best buy", "ikea", "home depot",
        "lowe's", "h&m", "zara", "uniqlo", "nike", "adidas", "macy",
        "nordstrom", "sephora", "ulta beauty", "cvs", "walgreens", "mall", "outlet",
        "store", "shop", "clothing", "apparel", "electronics", "hardware",
    ),
    Category.BILLS: (
        "comcast", "xfinity", "verizon", "at&t", "t-mobile", "spectrum",
        "pg&e", "con edison", "duke energy", "electric", "utility",
        "utilities", "water bill", "gas bill", "internet", "broadband",
        "insurance", "netflix", "spotify", "hulu", "subscription", "invoice",
        "rent payment", "mortgage",
    ),
}


def _first_match(text: str, table: Mapping[Category, Sequence[str]]) -> Category:
    haystack = text.lower()
    for category in CATEGORY_ORDER:
        for keyword in table.get(category, ()):
            if keyword in haystack:
                return category
    return Category.OTHER


def categorize_item(description: str | None) -> Category:
    """Infer a line item's category from its description alone."""
    if not description:
        return Category.OTHER
    return _first_match(description, ITEM_CATEGORY_KEYWORDS)


def categorize_receipt(merchant_name: str | None, items: Iterable[LineItem | str] = ()) -> Category:
    """Infer a receipt's category from merchant name plus every item description."""
    parts = [merchant_name or ""]
    for item in items:
        parts.append(item if isinstance(item, str) else item.description)
    text = " ".join(p for p in parts if p)
    if not text:
        return Category.OTHER
    return _first_match(text, RECEIPT_CATEGORY_KEYWORDS)
