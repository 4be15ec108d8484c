"""
Prompt text for the vision extractor.

Confidence values are defined by this contract, not computed locally. The
JSON shape below must stay in sync with models.receipt.ExtractionResult.
"""

from enum import Enum


class PromptVariant(str, Enum):
    SINGLE_PAGE = "single_page"
    MULTI_PAGE = "multi_page"


RESPONSE_SHAPE = """{
  "vendor": {
    "value": "Store/business name as it appears on the receipt",
    "confidence": 0.0 to 1.0
  },
  "date": {
    "value": "YYYY-MM-DD format",
    "confidence": 0.0 to 1.0
  },
  "total": {
    "value": "Total amount as a number (e.g., 45.99, not $45.99)",
    "confidence": 0.0 to 1.0
  },
  "subtotal": {
    "value": "Subtotal before tax as a number, or null if not visible",
    "confidence": 0.0 to 1.0
  },
  "tax": {
    "value": "Tax amount as a number, or null if not visible",
    "confidence": 0.0 to 1.0
  },
  "paymentMethod": {
    "value": "VISA, MASTERCARD, AMEX, CASH, DEBIT, CHECK, or null if not visible",
    "confidence": 0.0 to 1.0
  },
  "lineItems": [
    {
      "description": "Item description",
      "amount": 0.00,
      "quantity": 1
    }
  ],
  "rawText": "%(raw_text)s"
}"""

CONFIDENCE_GUIDE = """Confidence scoring guide:
- 1.0: Clearly printed, unambiguous
- 0.8-0.9: Mostly clear, minor ambiguity
- 0.5-0.7: Partially obscured, faded, or ambiguous
- Below 0.5: Guessing based on context

If a field is completely unreadable or not present, set value to null and confidence to 0.

For the date: If the year is not visible, assume the current year. If the date format is ambiguous (e.g., 03/04/2025 could be March 4 or April 3), prefer MM/DD/YYYY format (US standard) and set confidence to 0.7."""

JSON_ONLY = "Return your response as a JSON object with EXACTLY this structure. No markdown, no backticks, no explanation, ONLY the JSON:"

RECEIPT_SCAN_PROMPT = "\n\n".join([
    "You are a receipt data extraction assistant. Analyze this receipt image and extract the following information. " + JSON_ONLY,
    RESPONSE_SHAPE % {"raw_text": "Complete text content of the receipt, preserving line breaks"},
    CONFIDENCE_GUIDE,
    "For the total: Use the FINAL total including tax, not the subtotal. "
    "If multiple total-like numbers appear, use the largest one and note the ambiguity in confidence.",
])

MULTI_PAGE_PROMPT = "\n\n".join([
    "You are a receipt data extraction assistant. The following images are sequential pages from the same PDF "
    "receipt/invoice. Look across ALL pages to find the vendor, date, and total. " + JSON_ONLY,
    RESPONSE_SHAPE % {"raw_text": "Complete text content of the receipt from all pages, preserving line breaks"},
    CONFIDENCE_GUIDE,
    "For the total: Use the FINAL total including tax, not the subtotal. "
    "The total may appear on a different page than the line items. "
    "If multiple total-like numbers appear, use the largest one and note the ambiguity in confidence.",
])

PROMPTS = {
    PromptVariant.SINGLE_PAGE: RECEIPT_SCAN_PROMPT,
    PromptVariant.MULTI_PAGE: MULTI_PAGE_PROMPT,
}
