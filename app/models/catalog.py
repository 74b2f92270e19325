from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Variant(BaseModel):
    type: str = Field(..., strict=True)
    value: str = Field(..., strict=True)


class ExtractedProduct(BaseModel):
    """Product payload as returned by the extraction model (no url).

    Scalars are strict (no "19.99" -> 19.99 or "yes" -> True coercion) and
    prices must be finite, so every accepted record serializes to JSON.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., strict=True)
    description: str = Field(..., strict=True)
    price: float = Field(..., ge=0, strict=True, allow_inf_nan=False)
    discounted_price: Optional[float] = Field(None, alias="discountedPrice", ge=0, strict=True, allow_inf_nan=False)
    image_url: str = Field(..., alias="imageUrl", strict=True)
    availability: bool = Field(..., strict=True)
    variants: List[Variant]


class ProductRecord(ExtractedProduct):
    url: str = Field(..., description="PDP the record was extracted from")

    @classmethod
    def from_extracted(cls, extracted: ExtractedProduct, url: str) -> "ProductRecord":
        return cls(url=url, **extracted.model_dump())

    def to_wire(self) -> Dict[str, Any]:
        """camelCase JSON shape; discountedPrice omitted when absent."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        return {
            "url": data["url"],
            "name": data["name"],
            "description": data["description"],
            "price": data["price"],
            **({"discountedPrice": data["discountedPrice"]} if "discountedPrice" in data else {}),
            "imageUrl": data["imageUrl"],
            "availability": data["availability"],
            "variants": data["variants"],
        }


class CrawlStats(BaseModel):
    discovered: int = 0
    processed: int = 0
    dropped_by_cap: int = 0
    skipped_fetch: int = 0
    skipped_extraction: int = 0
    extracted: int = 0


class CrawlResult(BaseModel):
    start_url: str
    products: List[ProductRecord] = []
    stats: CrawlStats = Field(default_factory=CrawlStats)
