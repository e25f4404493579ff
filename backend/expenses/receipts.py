# expenses/receipts.py
"""
Receipt text extraction and parsing.

The OCR step is pluggable: settings.RECEIPT_OCR_BACKEND is a dotted path to
a callable(file) -> str. The bundled plain_text_ocr only reads text uploads;
deployments point the setting at a real OCR engine.

parse_receipt_text() turns raw receipt text into:
    {vendor, date, total_amount, tax_amount, line_items}
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.utils.module_loading import import_string

AMOUNT = r"(\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2}|\d+)"

DATE_RE = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})")
TOTAL_RE = re.compile(r"(?<!sub)(?<!sub )total[:\s]*\$?" + AMOUNT, re.IGNORECASE)
TAX_RE = re.compile(r"tax[:\s]*\$?" + AMOUNT, re.IGNORECASE)
ANY_AMOUNT_RE = re.compile(r"\$?(\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2})")
LINE_ITEM_RE = re.compile(r"(\d+)\s+x\s+(.*?)\s+\$?" + AMOUNT, re.IGNORECASE)

# Suggested category name -> keywords looked for in the receipt text.
CATEGORY_KEYWORDS = {
    "Utilities": ("electric", "water", "sewer", "utility", "power", "gas co"),
    "Repairs": ("repair", "plumbing", "hardware", "lumber", "paint", "hvac"),
    "Cleaning": ("cleaning", "janitorial", "carpet"),
    "Landscaping": ("lawn", "landscap", "garden", "tree service"),
    "Insurance": ("insurance", "premium", "policy"),
    "Office Supplies": ("office", "paper", "printer", "toner"),
}


class ReceiptReadError(Exception):
    """The OCR backend could not read the uploaded file."""


def plain_text_ocr(file) -> str:
    """Default backend: the upload is already text."""
    file.seek(0)
    raw = file.read()
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise ReceiptReadError("Receipt is not a text file; configure RECEIPT_OCR_BACKEND for images.")


def get_ocr_backend():
    return import_string(settings.RECEIPT_OCR_BACKEND)


def _to_decimal(raw: str) -> Decimal | None:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def _parse_date(lines) -> date | None:
    """First MM/DD/YYYY (or MM-DD-YY) date in the text; two digit years < 50 are 20xx."""
    for line in lines:
        match = DATE_RE.search(line)
        if not match:
            continue
        month, day, year = (int(part) for part in match.groups())
        if year < 100:
            year += 2000 if year < 50 else 1900
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return None


def _first_amount(pattern, lines) -> Decimal | None:
    for line in lines:
        match = pattern.search(line)
        if match:
            return _to_decimal(match.group(1))
    return None


def parse_receipt_text(text: str) -> dict:
    data = {
        "vendor": None,
        "date": None,
        "total_amount": None,
        "tax_amount": None,
        "line_items": [],
    }
    if not text:
        return data

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return data

    data["vendor"] = lines[0]
    data["date"] = _parse_date(lines)

    total = _first_amount(TOTAL_RE, lines)
    if total is None:
        amounts = [_to_decimal(m) for line in lines for m in ANY_AMOUNT_RE.findall(line)]
        amounts = [a for a in amounts if a is not None]
        total = max(amounts) if amounts else None
    data["total_amount"] = total
    data["tax_amount"] = _first_amount(TAX_RE, lines)

    for line in lines:
        match = LINE_ITEM_RE.search(line)
        if match:
            data["line_items"].append({
                "quantity": int(match.group(1)),
                "description": match.group(2).strip(),
                "price": _to_decimal(match.group(3)),
            })
    return data


def match_vendor(vendor_name: str | None, vendors):
    """First vendor whose name contains, or is contained in, the receipt vendor (case-insensitive)."""
    if not vendor_name:
        return None
    needle = vendor_name.lower()
    for vendor in vendors:
        name = vendor.name.lower()
        if name in needle or needle in name:
            return vendor
    return None


def suggest_category(text: str, categories):
    """Category suggested by the keyword map, if the company has one by that name."""
    if not text:
        return None
    by_name = {category.name.lower(): category for category in categories}
    lowered = text.lower()
    for name, keywords in CATEGORY_KEYWORDS.items():
        if name.lower() in by_name and any(keyword in lowered for keyword in keywords):
            return by_name[name.lower()]
    return None


def to_json(data: dict) -> dict:
    """Parsed receipt data in a JSONField-safe shape."""
    return {
        "vendor": data["vendor"],
        "date": data["date"].isoformat() if data["date"] else None,
        "total_amount": str(data["total_amount"]) if data["total_amount"] is not None else None,
        "tax_amount": str(data["tax_amount"]) if data["tax_amount"] is not None else None,
        "line_items": [
            {**item, "price": str(item["price"]) if item["price"] is not None else None}
            for item in data["line_items"]
        ],
    }
