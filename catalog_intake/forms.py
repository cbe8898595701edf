"""Form definitions for supplier onboarding.

Two form types are defined:

- SUPPLIER_INTAKE_FORM: the "new line" form a supplier fills in to propose a
  product line. Supplier details at the top level plus a list of line items,
  each with pricing, ordering terms and attribute flags.
- PRODUCT_FORM: the simpler single-product creation form.

Each form owns a fixed draft storage key, so drafts of the two forms never
overwrite each other.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, Overflow
from typing import Any, Dict, Mapping

from catalog_intake.fields import (
    FieldDescriptor,
    ValidationOutcome,
    accepted,
    boolean_flag,
    email_address,
    min_length,
    one_of,
    parse_number,
    positive_number,
    url_address,
)
from catalog_intake.schema import CollectionSchema, FormSchema, LineItemSchema
from catalog_intake.types import FieldKind


PRODUCT_TYPES = ("fragrance", "skincare", "makeup", "haircare", "bodycare")

ATTRIBUTE_FLAGS = (
    "vegan",
    "crueltyFree",
    "organic",
    "parabenFree",
    "sulfateFree",
    "fragranceFree",
    "recyclablePackaging",
    "glutenFree",
)

SUPPLIER_DRAFT_KEY = "new-line-draft"
PRODUCT_DRAFT_KEY = "product-draft"


def line_margin(
    values: Mapping[str, Any], outcomes: Mapping[str, ValidationOutcome]
) -> Dict[str, Any]:
    """Derive the gross margin percentage of a line item.

    ``marginPercent`` is ``None`` until both prices hold valid values.
    """
    for key in ("unitCost", "sellingPrice"):
        outcome = outcomes.get(key)
        if outcome is None or not outcome.valid:
            return {"marginPercent": None}

    cost = parse_number(values.get("unitCost"))
    price = parse_number(values.get("sellingPrice"))
    if cost is None or price is None or price <= 0:
        return {"marginPercent": None}

    try:
        margin = ((price - cost) / price * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, Overflow):
        # More digits than the context holds, e.g. a near-zero price.
        return {"marginPercent": None}
    return {"marginPercent": float(margin)}


LINE_ITEM_SCHEMA = LineItemSchema(
    name="lineItem",
    fields=(
        FieldDescriptor(
            "name", FieldKind.TEXT, required=True,
            validate=min_length(2, "Product name must be at least 2 characters."),
            label="Product name",
        ),
        FieldDescriptor(
            "unitCost", FieldKind.NUMBER, required=True,
            validate=positive_number("Unit cost must be greater than zero."),
        ),
        FieldDescriptor(
            "sellingPrice", FieldKind.NUMBER, required=True,
            validate=positive_number("Selling price must be greater than zero."),
        ),
        FieldDescriptor(
            "moq", FieldKind.NUMBER, required=True,
            validate=positive_number("Minimum order quantity must be greater than zero."),
            label="Minimum order quantity",
        ),
        FieldDescriptor(
            "leadTimeDays", FieldKind.NUMBER, required=True,
            validate=positive_number("Lead time must be greater than zero."),
            label="Lead time",
        ),
        FieldDescriptor(
            "category", FieldKind.TEXT, required=True,
            validate=min_length(1, "Category is required."),
        ),
        FieldDescriptor("barcode", FieldKind.TEXT),
    ) + tuple(
        FieldDescriptor(flag, FieldKind.BOOLEAN, validate=boolean_flag(), default=False)
        for flag in ATTRIBUTE_FLAGS
    ),
    derive=line_margin,
)


SUPPLIER_INTAKE_FORM = FormSchema(
    schema_id="new-line-form",
    version="2",
    storage_key=SUPPLIER_DRAFT_KEY,
    fields=(
        FieldDescriptor(
            "supplierName", FieldKind.TEXT, required=True,
            validate=min_length(2, "Supplier name must be at least 2 characters."),
        ),
        FieldDescriptor(
            "contactEmail", FieldKind.EMAIL, required=True,
            validate=email_address("Please enter a valid contact email."),
        ),
        FieldDescriptor(
            "brandName", FieldKind.TEXT, required=True,
            validate=min_length(2, "Brand name must be at least 2 characters."),
        ),
        FieldDescriptor(
            "productType", FieldKind.ENUM_CHOICE, required=True,
            validate=one_of(PRODUCT_TYPES), default="fragrance",
        ),
        FieldDescriptor(
            "termsAccepted", FieldKind.BOOLEAN, required=True,
            validate=accepted(), default=False, label="Terms acceptance",
        ),
        FieldDescriptor("expectedLaunchDate", FieldKind.TEXT),
        FieldDescriptor("website", FieldKind.URL, validate=url_address()),
        FieldDescriptor("notes", FieldKind.LONG_TEXT),
    ),
    collections=(
        CollectionSchema(key="lineItems", item_schema=LINE_ITEM_SCHEMA, min_items=1),
    ),
)


PRODUCT_FORM = FormSchema(
    schema_id="product-form",
    version="1",
    storage_key=PRODUCT_DRAFT_KEY,
    fields=(
        FieldDescriptor(
            "title", FieldKind.TEXT, required=True,
            validate=min_length(2, "Product title must be at least 2 characters."),
        ),
        FieldDescriptor(
            "sku", FieldKind.TEXT, required=True,
            validate=min_length(1, "SKU is required."), label="SKU",
        ),
        FieldDescriptor(
            "price", FieldKind.NUMBER, required=True,
            validate=positive_number("Price must be greater than zero."),
        ),
        FieldDescriptor("description", FieldKind.LONG_TEXT),
        FieldDescriptor("taxable", FieldKind.BOOLEAN, validate=boolean_flag(), default=True),
        FieldDescriptor("requiresShipping", FieldKind.BOOLEAN, validate=boolean_flag(), default=True),
        FieldDescriptor("hasVariants", FieldKind.BOOLEAN, validate=boolean_flag(), default=False),
    ),
)


__all__ = [
    "PRODUCT_TYPES",
    "ATTRIBUTE_FLAGS",
    "SUPPLIER_DRAFT_KEY",
    "PRODUCT_DRAFT_KEY",
    "LINE_ITEM_SCHEMA",
    "SUPPLIER_INTAKE_FORM",
    "PRODUCT_FORM",
    "line_margin",
]
