"""
conftest.py - Shared trip/item builders for the readiness test suite.

`compliant_payload` describes a trip that passes every readiness rule; tests
copy it and break one thing at a time.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

import pytest

from logging_config import setup_logging
from models import Item, Trip, TripData

COMPLIANT_EXPIRATION = "12/2030"


def _item(
    name: str,
    category: str,
    presentation: str,
    quantity: Any = 10,
    dose: str = "",
    product_amount: Any = 100,
    product_amount_unit: str = "tablets",
    box_number: int = 1,
    **extra: Any,
) -> dict[str, Any]:
    item = {
        "name": name,
        "brand": "Kirkland",
        "dose": dose,
        "category": category,
        "presentation": presentation,
        "quantity": quantity,
        "productAmount": product_amount,
        "productAmountUnit": product_amount_unit,
        "expirationDate": COMPLIANT_EXPIRATION,
        "boxNumber": box_number,
        "lotNumber": f"LOT-{name[:4].upper()}",
    }
    item.update(extra)
    return item


COMPLIANT_ITEMS: list[dict[str, Any]] = [
    # Analgesics: 5 acetaminophen and 4 ibuprofen presentations
    _item("Acetaminophen", "Analgesics", "Tablets", dose="500mg"),
    _item("Acetaminophen", "Analgesics", "Caplets", dose="500mg"),
    _item("Acetaminophen", "Analgesics", "Oral suspension", dose="160mg/5mL", product_amount_unit="mL"),
    _item("Acetaminophen", "Analgesics", "Chewable tablets", dose="80mg"),
    _item("Acetaminophen", "Analgesics", "Gelcaps", dose="500mg"),
    _item("Ibuprofen", "Analgesics", "Tablets", dose="200mg"),
    _item("Ibuprofen", "Analgesics", "Capsules", dose="200mg"),
    _item("Ibuprofen", "Analgesics", "Oral suspension", dose="100mg/5mL", product_amount_unit="mL"),
    _item("Ibuprofen", "Analgesics", "Chewable tablets", dose="50mg"),
    # Allergy / respiratory
    _item("Cetirizine", "Allergy", "Oral solution", dose="5mg/5mL", product_amount_unit="mL", box_number=2),
    _item("Albuterol", "Respiratory", "Inhalation aerosol", dose="90mcg", product_amount_unit="puffs", box_number=2),
    # Anti infectives: 6 antibiotic types plus injectable support
    _item("Amoxicillin", "Anti Infectives", "Capsules", dose="500mg", box_number=3),
    _item("Azithromycin", "Anti Infectives", "Tablets", dose="250mg", box_number=3),
    _item("Ciprofloxacin", "Anti Infectives", "Tablets", dose="500mg", box_number=3),
    _item("Metronidazole", "Anti Infectives", "Tablets", dose="500mg", box_number=3),
    _item("Cephalexin", "Anti Infectives", "Capsules", dose="500mg", box_number=3),
    _item("Ceftriaxone", "Anti Infectives", "Vial", dose="1g", product_amount=1, product_amount_unit="vial", box_number=3),
    _item("Sodium Chloride 0.9%", "Anti Infectives", "Vial", dose="10mL", product_amount=10, product_amount_unit="mL", box_number=3),
    # Topical
    _item("Clotrimazole", "Topical", "Cream", dose="1%", product_amount=30, product_amount_unit="g", box_number=4),
    _item("Triple Antibiotic", "Topical", "Ointment", product_amount=30, product_amount_unit="g", box_number=4),
    _item("Hydrocortisone", "Topical", "Cream", dose="1%", product_amount=30, product_amount_unit="g", box_number=4),
    # GI: 5 distinct names
    _item("Omeprazole", "GI", "Capsules", dose="20mg", box_number=5),
    _item("Famotidine", "GI", "Tablets", dose="20mg", box_number=5),
    _item("Loperamide", "GI", "Tablets", dose="2mg", box_number=5),
    _item("Bismuth Subsalicylate", "GI", "Tablets", dose="262mg", box_number=5),
    _item("Docusate", "GI", "Capsules", dose="100mg", box_number=5),
    # Cardiac: 5 distinct names including aspirin 81mg
    _item("Aspirin", "Cardiac", "Tablets", dose="81mg", box_number=6),
    _item("Lisinopril", "Cardiac", "Tablets", dose="10mg", box_number=6),
    _item("Amlodipine", "Cardiac", "Tablets", dose="5mg", box_number=6),
    _item("Metoprolol", "Cardiac", "Tablets", dose="25mg", box_number=6),
    _item("Hydrochlorothiazide", "Cardiac", "Tablets", dose="25mg", box_number=6),
    # Vitamins, in tablet-equivalent units:
    # adult 200 x 100 = 20000, children 150 x 100 (+20 drops) = 15020, prenatal 30 x 100 = 3000
    _item("Multivitamin", "Vitamins", "Tablets", quantity=200, box_number=7),
    _item("Children's Multivitamin", "Vitamins", "Chewable tablets", quantity=150, box_number=7),
    _item("Prenatal Vitamin", "Vitamins", "Tablets", quantity=30, box_number=7),
    _item("Infant Multivitamin Drops", "Vitamins", "Oral drops", quantity=20, product_amount=50, product_amount_unit="mL", box_number=7),
    _item("Vitamin A", "Vitamins", "Soft gel", dose="25000 IU", product_amount=100, product_amount_unit="softgels", box_number=7),
]

COMPLIANT_TRIP: dict[str, Any] = {
    "tripId": 23,
    "name": "Denver Readiness Drill",
    "startDate": "2026-03-01",
    "endDate": "2026-03-14",
    "countryCode": "US",
    "status": "PACKED",
}


@pytest.fixture(autouse=True, scope="session")
def _quiet_logging() -> None:
    setup_logging()


@pytest.fixture
def compliant_payload() -> dict[str, Any]:
    """Fresh wire-format `{trip, items}` payload for a fully ready trip."""
    return {"trip": copy.deepcopy(COMPLIANT_TRIP), "items": copy.deepcopy(COMPLIANT_ITEMS)}


@pytest.fixture
def build_trip_data() -> Callable[[dict[str, Any]], TripData]:
    return TripData.model_validate


@pytest.fixture
def make_item() -> Callable[..., Item]:
    """Build one validated item from wire-format keyword overrides."""

    def _make(name: str = "Acetaminophen", category: str = "Analgesics", presentation: str = "Tablets", **extra: Any) -> Item:
        return Item.model_validate(_item(name, category, presentation, **extra))

    return _make


@pytest.fixture
def make_trip() -> Callable[..., Trip]:
    def _make(**overrides: Any) -> Trip:
        payload = copy.deepcopy(COMPLIANT_TRIP)
        payload.update(overrides)
        return Trip.model_validate(payload)

    return _make
