
from ..models.receipt import ExtractionResult

MIN_TOTAL_CONFIDENCE = 0.5


def is_total_usable(result: ExtractionResult | None) -> bool:
    """
    True when the extracted total can pre-fill the expense amount.

    This is the only signal that triggers multi-page escalation; confidence
    on vendor, date and the other fields never does.
    """
    if result is None or result.total is None:
        return False
    if result.total.value is None:
        return False
    return result.total.confidence >= MIN_TOTAL_CONFIDENCE
