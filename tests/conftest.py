"""Shared fixtures and fakes for the catalog intake tests."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from catalog_intake.collaborators import Notification, ProductReceipt, SubmissionReceipt
from catalog_intake.drafts import MemoryStorage
from catalog_intake.forms import SUPPLIER_INTAKE_FORM
from catalog_intake.state import FormState


_NO_RESPONSE = object()


class FakeSupplierBackend:
    """Records payloads; optionally fails or holds calls until released."""

    def __init__(self, fail_with: Optional[Exception] = None, response: Any = _NO_RESPONSE):
        self.calls: List[Dict[str, Any]] = []
        self.fail_with = fail_with
        self.response = response
        self.gate: Optional[asyncio.Event] = None

    def hold(self) -> asyncio.Event:
        self.gate = asyncio.Event()
        return self.gate

    async def create_supplier_submission(self, payload: Dict[str, Any]) -> Any:
        self.calls.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        if self.response is not _NO_RESPONSE:
            return self.response
        return SubmissionReceipt(id=f"sub_{len(self.calls)}")


class FakeProductBackend:
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    async def create_product(self, payload: Dict[str, Any]) -> Any:
        self.calls.append(payload)
        return {"id": "prod_1", "sku": payload["sku"]}


class RecordingNotifier:
    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def last(self) -> Notification:
        return self.notifications[-1]


def fill_line_item(state: FormState, item_id: str = "li_1") -> FormState:
    """Add a line item with every required field valid."""
    state = state.add_item("lineItems", item_id)
    for key, value in (
        ("name", "Rose Oil"),
        ("unitCost", "4.20"),
        ("sellingPrice", "12.00"),
        ("moq", "100"),
        ("leadTimeDays", "30"),
        ("category", "Fragrance"),
    ):
        state = state.update_item_field("lineItems", item_id, key, value)
    return state


def valid_supplier_state() -> FormState:
    """Supplier intake state that passes full validation."""
    state = (
        FormState.initial(SUPPLIER_INTAKE_FORM)
        .set_field("supplierName", "Maison Rose")
        .set_field("contactEmail", "buyer@maisonrose.com")
        .set_field("brandName", "Rosa")
        .set_field("termsAccepted", True)
    )
    return fill_line_item(state)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def supplier_backend() -> FakeSupplierBackend:
    return FakeSupplierBackend()


@pytest.fixture
def product_backend() -> FakeProductBackend:
    return FakeProductBackend()
