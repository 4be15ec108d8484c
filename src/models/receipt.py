
from pydantic import BaseModel, ConfigDict, Field


class ExtractionField(BaseModel):
    value: str | float | int | None = None  # None = not present on the receipt
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class LineItem(BaseModel):
    description: str
    amount: float
    quantity: float = 1


class ExtractionResult(BaseModel):
    """Structured receipt fields returned to the expense form"""
    model_config = ConfigDict(populate_by_name=True)

    vendor: ExtractionField = Field(default_factory=ExtractionField)
    date: ExtractionField = Field(default_factory=ExtractionField)
    total: ExtractionField = Field(default_factory=ExtractionField)
    subtotal: ExtractionField = Field(default_factory=ExtractionField)
    tax: ExtractionField = Field(default_factory=ExtractionField)
    payment_method: ExtractionField = Field(default_factory=ExtractionField, alias="paymentMethod")
    line_items: list[LineItem] = Field(default_factory=list, alias="lineItems")
    raw_text: str = Field(default="", alias="rawText")


class ScanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    blob_url: str = Field(alias="blobUrl")
    blob_url2: str | None = Field(default=None, alias="blobUrl2")  # Pre-rendered page 2


class ScanResponse(BaseModel):
    success: bool = True
    data: ExtractionResult
