import pytest
from pydantic import ValidationError

from app.models.catalog import ExtractedProduct, ProductRecord


def test_extracted_product_accepts_camel_case_payload():
    p = ExtractedProduct.model_validate(
        {
            "name": "Sandals",
            "description": "Summer",
            "price": 19.99,
            "imageUrl": "https://shop.example/s.jpg",
            "availability": True,
            "variants": [{"type": "Color", "value": "Blue"}],
        }
    )
    assert p.price == 19.99
    assert p.image_url == "https://shop.example/s.jpg"
    assert p.discounted_price is None


def test_negative_price_rejected():
    with pytest.raises(ValidationError):
        ExtractedProduct(name="x", description="", price=-1, image_url="", availability=True, variants=[])


def test_product_record_wire_shape():
    extracted = ExtractedProduct(name="x", description="d", price=5, image_url="i", availability=False, variants=[])
    record = ProductRecord.from_extracted(extracted, "https://shop.example/p/x")
    wire = record.to_wire()
    assert list(wire) == ["url", "name", "description", "price", "imageUrl", "availability", "variants"]
    assert wire["url"] == "https://shop.example/p/x"
    with_discount = ProductRecord.model_validate(dict(wire, discountedPrice=4))
    assert with_discount.to_wire()["discountedPrice"] == 4


def test_int_price_is_accepted_as_float():
    p = ExtractedProduct(name="x", description="", price=5, image_url="", availability=True, variants=[])
    assert p.price == 5.0


@pytest.mark.parametrize(
    "override",
    [
        {"price": "19.99"},
        {"availability": "yes"},
        {"availability": 1},
        {"name": 42},
        {"price": float("inf")},
        {"price": float("nan")},
        {"discountedPrice": float("inf")},
        {"variants": [{"type": "Size", "value": 41}]},
    ],
)
def test_payload_must_match_shape_exactly(override):
    payload = {
        "name": "Sandals",
        "description": "Summer",
        "price": 19.99,
        "imageUrl": "https://shop.example/s.jpg",
        "availability": True,
        "variants": [],
    }
    payload.update(override)
    with pytest.raises(ValidationError):
        ExtractedProduct.model_validate(payload)
