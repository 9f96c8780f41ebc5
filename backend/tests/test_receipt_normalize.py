"""Receipt normalization: every defect except an unrecoverable total is repaired."""

import json
import unittest
from datetime import date

from expense_ai.schemas.expense import Category
from expense_ai.services.ai.common.errors import ExtractionValidationError, ParseError
from expense_ai.services.ai.receipt_extract.normalize import (
    UNKNOWN_MERCHANT,
    item_sum,
    normalize_item,
    normalize_receipt_data,
    normalize_receipt_response,
    parse_date,
    renormalize,
)

SAMPLE_ITEMS = [
    {"description": "Latte", "totalPrice": 4.5},
    {"description": "Blueberry Muffin", "totalPrice": 3.5},
    {"description": "Sparkling Water", "totalPrice": 2.0},
]


class NormalizeReceiptTests(unittest.TestCase):
    def test_clean_receipt_kept(self):
        draft = normalize_receipt_data(
            {
                "merchantName": "Blue Bottle",
                "date": "2026-02-03",
                "totalAmount": 12.75,
                "currency": "eur",
                "category": "Food",
                "items": SAMPLE_ITEMS,
                "paymentMethod": "Credit Card",
                "taxAmount": "0.80",
                "tipAmount": None,
            }
        )
        self.assertEqual(draft.merchant_name, "Blue Bottle")
        self.assertEqual(draft.date, date(2026, 2, 3))
        self.assertEqual(draft.total_amount, 12.75)
        self.assertEqual(draft.currency, "EUR")
        self.assertEqual(draft.category, Category.FOOD)
        self.assertEqual(draft.payment_method, "Credit Card")
        self.assertEqual(draft.tax_amount, 0.8)
        self.assertIsNone(draft.tip_amount)

    def test_total_recomputed_from_items(self):
        draft = normalize_receipt_data({"merchantName": "Cafe", "items": SAMPLE_ITEMS})
        self.assertEqual(draft.total_amount, 10.0)

    def test_non_positive_total_recomputed(self):
        draft = normalize_receipt_data({"merchantName": "Cafe", "totalAmount": "0.00", "items": SAMPLE_ITEMS})
        self.assertEqual(draft.total_amount, 10.0)

    def test_total_string_with_symbols(self):
        draft = normalize_receipt_data({"merchantName": "Cafe", "totalAmount": "$1,234.56"})
        self.assertEqual(draft.total_amount, 1234.56)

    def test_alternate_total_key(self):
        draft = normalize_receipt_data({"merchantName": "Cafe", "grandTotal": "18.20"})
        self.assertEqual(draft.total_amount, 18.2)

    def test_quantity_times_unit_price_when_item_total_missing(self):
        items = [{"description": "Bagel", "quantity": 3, "unitPrice": 1.25}]
        draft = normalize_receipt_data({"merchantName": "Bakery", "items": items})
        self.assertEqual(draft.total_amount, 3.75)

    def test_unrecoverable_total_rejected(self):
        with self.assertRaises(ExtractionValidationError):
            normalize_receipt_data({"merchantName": "Cafe", "totalAmount": None, "items": []})
        with self.assertRaises(ExtractionValidationError):
            normalize_receipt_data({"merchantName": "Cafe", "totalAmount": "n/a", "items": [{"description": "x"}]})

    def test_missing_merchant_gets_placeholder(self):
        draft = normalize_receipt_data({"merchantName": "  ", "totalAmount": 5})
        self.assertEqual(draft.merchant_name, UNKNOWN_MERCHANT)

    def test_invalid_date_dropped(self):
        with self.assertLogs("expense_ai.services.ai.receipt_extract.normalize", level="WARNING"):
            draft = normalize_receipt_data({"merchantName": "Cafe", "totalAmount": 5, "date": "31/31/2026"})
        self.assertIsNone(draft.date)

    def test_missing_currency_defaults_to_usd(self):
        draft = normalize_receipt_data({"merchantName": "Cafe", "totalAmount": 5, "currency": None})
        self.assertEqual(draft.currency, "USD")

    def test_invalid_category_inferred_from_merchant(self):
        draft = normalize_receipt_data({"merchantName": "Whole Foods", "totalAmount": 42.1, "category": "Groceries"})
        self.assertEqual(draft.category, Category.FOOD)

    def test_invalid_category_without_match_is_other(self):
        draft = normalize_receipt_data({"merchantName": "ACME LLC", "totalAmount": 42.1, "category": "Misc"})
        self.assertEqual(draft.category, Category.OTHER)

    def test_negative_tax_dropped(self):
        draft = normalize_receipt_data({"merchantName": "Cafe", "totalAmount": 5, "taxAmount": -1})
        self.assertIsNone(draft.tax_amount)

    def test_renormalize_is_idempotent(self):
        first = normalize_receipt_data({"merchantName": "", "items": SAMPLE_ITEMS, "category": "??"})
        second = renormalize(first)
        self.assertEqual(first, second)
        self.assertEqual(second.total_amount, 10.0)

    def test_wire_shape_is_camel_case(self):
        record = normalize_receipt_data({"merchantName": "Cafe", "totalAmount": 5, "date": "2026-01-02"}).to_record()
        self.assertEqual(record["merchantName"], "Cafe")
        self.assertEqual(record["totalAmount"], 5.0)
        self.assertEqual(record["date"], "2026-01-02")


class NormalizeItemTests(unittest.TestCase):
    def test_item_category_kept_when_valid(self):
        item = normalize_item({"description": "Gift card", "totalPrice": 25, "category": "Shopping"})
        self.assertEqual(item.category, Category.SHOPPING)

    def test_item_category_inferred(self):
        item = normalize_item({"description": "Parking 2h", "totalPrice": 6, "category": "Parking"})
        self.assertEqual(item.category, Category.TRANSPORT)

    def test_item_category_missing_defaults_other(self):
        item = normalize_item({"description": "Widget", "totalPrice": 6})
        self.assertEqual(item.category, Category.OTHER)

    def test_bad_numbers_become_none(self):
        item = normalize_item({"description": "Thing", "quantity": 0, "unitPrice": "abc", "totalPrice": -2})
        self.assertIsNone(item.quantity)
        self.assertIsNone(item.unit_price)
        self.assertIsNone(item.total_price)

    def test_snake_case_keys_accepted(self):
        item = normalize_item({"name": "Latte", "unit_price": "4,50", "total_price": "4,50"})
        self.assertEqual(item.description, "Latte")
        self.assertEqual(item.total_price, 4.5)

    def test_item_sum(self):
        items = [normalize_item(raw) for raw in SAMPLE_ITEMS]
        self.assertEqual(item_sum(items), 10.0)


class ParseResponseTests(unittest.TestCase):
    def test_prose_around_json(self):
        raw = "Here is the data:\n```json\n" + json.dumps({"merchantName": "Cafe", "totalAmount": 3}) + "\n```"
        self.assertEqual(normalize_receipt_response(raw).merchant_name, "Cafe")

    def test_prose_braces_before_json(self):
        raw = 'Extracted fields {merchant, total}:\n{"merchantName": "Cafe", "totalAmount": 4.5}'
        draft = normalize_receipt_response(raw)
        self.assertEqual(draft.merchant_name, "Cafe")
        self.assertEqual(draft.total_amount, 4.5)

    def test_no_json(self):
        with self.assertRaises(ParseError) as ctx:
            normalize_receipt_response("Sorry, the image is too blurry.")
        self.assertEqual(ctx.exception.raw_text, "Sorry, the image is too blurry.")


class ParseDateTests(unittest.TestCase):
    def test_formats(self):
        self.assertEqual(parse_date("2026-03-01"), date(2026, 3, 1))
        self.assertEqual(parse_date("2026-03-01T10:15:00Z"), date(2026, 3, 1))
        self.assertEqual(parse_date("03/01/2026"), date(2026, 3, 1))
        self.assertEqual(parse_date("Mar 1, 2026"), date(2026, 3, 1))

    def test_invalid(self):
        self.assertIsNone(parse_date("yesterday"))
        self.assertIsNone(parse_date(""))
        self.assertIsNone(parse_date(20260301))
