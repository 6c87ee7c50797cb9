from __future__ import annotations

import pytest

from app.core.errors import InvalidShopDomain, MissingShopDomain
from app.services.shop_domain import ShopDomainValidator


@pytest.fixture()
def validator() -> ShopDomainValidator:
    return ShopDomainValidator()


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("test-store.myshopify.com", "test-store.myshopify.com"),
        ("  Example-Shop.MyShopify.com ", "example-shop.myshopify.com"),
        ("a1.myshopify.com", "a1.myshopify.com"),
        ("eu.brand-store.myshopify.com", "eu.brand-store.myshopify.com"),
    ],
)
def test_accepts_and_normalizes_valid_domains(
    validator: ShopDomainValidator, raw: str, expected: str
) -> None:
    normalized, is_valid = validator.normalize_and_validate(raw)

    assert is_valid
    assert normalized == expected
    assert validator.normalize_and_validate(normalized) == (expected, True)


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        None,
        "test-store",
        "test-store.example.com",
        "-store.myshopify.com",
        "store.-eu.myshopify.com",
        "STORE_NAME!.myshopify.com",
        "store..myshopify.com",
        ".myshopify.com",
        "store.myshopify.com.evil.com",
        "https://store.myshopify.com",
        "store.myshopify.com/admin",
    ],
)
def test_rejects_malformed_domains(validator: ShopDomainValidator, raw) -> None:
    _, is_valid = validator.normalize_and_validate(raw)

    assert not is_valid


def test_custom_suffix_is_enforced() -> None:
    validator = ShopDomainValidator("myshopify.test")

    assert validator.normalize_and_validate("acme.myshopify.test") == (
        "acme.myshopify.test",
        True,
    )
    assert not validator.normalize_and_validate("acme.myshopify.com")[1]
    # The dot in the suffix is literal, not a regex wildcard.
    assert not validator.normalize_and_validate("acme.myshopifyxtest")[1]


def test_require_raises_client_errors(validator: ShopDomainValidator) -> None:
    with pytest.raises(MissingShopDomain):
        validator.require("")
    with pytest.raises(InvalidShopDomain) as excinfo:
        validator.require("not a shop")
    assert "myshopify.com" in excinfo.value.message

    assert validator.require(" Shop.myshopify.com") == "shop.myshopify.com"


def test_empty_suffix_rejected() -> None:
    with pytest.raises(ValueError):
        ShopDomainValidator("  ")
