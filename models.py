"""
models.py - Data Models for the Trip Packing Readiness Engine

This file defines ALL data structures used across the readiness engine.
Every module communicates exclusively through these models:

    trip_provider.py  ->  TripData (trip + packed items)
    rules.py          ->  Check (one per readiness rule)
    aggregate.py      ->  EvaluateTripPackingReadinessResponse
    explain.py        ->  str (uses the response as input)

Design principles:
1. Upstream data is loosely typed. Category and presentation strings outside
   the controlled taxonomy are kept as raw text instead of being rejected, so
   one bad item never blocks an evaluation.
2. Numeric item fields tolerate garbage; the matching layer turns anything
   non-numeric into a zero contribution.
3. Checks carry evidence so every verdict is traceable end-to-end.
4. The wire format is camelCase (tripId, startDate, recommendedAction);
   models accept camelCase or snake_case and dump camelCase.

Schema relationships:
    Trip        --used by--> TripData.trip, Response.trip
    Item        --used by--> TripData.items
    CheckStatus --used by--> Check.status, ReadinessSummary
    Check       --used by--> Response.checks, Response.reasons
"""

from __future__ import annotations

import math
from datetime import date
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_SHELF_LIFE_DAYS = 180

_WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class _TaxonomyEnum(str, Enum):
    """Closed taxonomy with case/whitespace-insensitive lookup."""

    @classmethod
    def lookup(cls, value: Any) -> Union["_TaxonomyEnum", str]:
        """Return the matching member, or the trimmed raw text when unrecognized."""
        if isinstance(value, cls):
            return value
        text = "" if value is None else str(value).strip()
        folded = " ".join(text.lower().split())
        for member in cls:
            if member.value.lower() == folded:
                return member
        return text


class Category(_TaxonomyEnum):
    ALLERGY = "Allergy"
    ANALGESICS = "Analgesics"
    ANTI_INFECTIVES = "Anti Infectives"
    CARDIAC = "Cardiac"
    DIABETES = "Diabetes"
    GENITOURINARY = "Genitourinary"
    GI = "GI"
    RESPIRATORY = "Respiratory"
    SUPPLEMENTS = "Supplements"
    TOPICAL = "Topical"
    VITAMINS = "Vitamins"


class Presentation(_TaxonomyEnum):
    AMPULES = "Ampules"
    CAPSULES = "Capsules"
    CAPLETS = "Caplets"
    CHEWABLE_TABLETS = "Chewable tablets"
    CREAM = "Cream"
    GELCAPS = "Gelcaps"
    INHALATION_AEROSOL = "Inhalation aerosol"
    INJECTION = "Injection"
    LIQUID_GEL_CAPSULES = "Liquid gel capsules"
    NASAL_SPRAY = "Nasal spray"
    OINTMENT = "Ointment"
    OPHTHALMIC_SOLUTION = "Ophthalmic solution"
    OPHTHALAMIC_DROPS = "Ophthalamic drops"
    ORAL_DROPS = "Oral drops"
    ORAL_SOLUTION = "Oral solution"
    ORAL_SUSPENSION = "Oral suspension"
    OTIC_DROPS = "Otic drops"
    RECTAL_SUPPOSITORY = "Rectal Suppository"
    SACHET = "Sachet"
    SHAMPOO = "Shampoo"
    SOFT_GEL = "Soft gel"
    SOFT_GEL_CAPSULES = "Soft gel capsules"
    SUSPENSION = "Suspension"
    TABLETS = "Tablets"
    TOPICAL = "Topical"
    VAGINAL_SUPPOSITORY = "Vaginal Suppository"
    VIAL = "Vial"


class TripStatus(str, Enum):
    """Lifecycle status of a relief trip."""

    CREATED = "CREATED"
    PACKING = "PACKING"
    PACKED = "PACKED"
    RETURNED = "RETURNED"
    COMPLETE = "COMPLETE"
    UNKNOWN = "UNKNOWN"


class CheckStatus(str, Enum):
    """Closed verdict set for a single readiness rule."""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


class Rating(str, Enum):
    """Trip-level aggregate of all checks."""

    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


def taxonomy_text(value: Any) -> str:
    """Plain text of a taxonomy field, whether enum member or raw string."""
    if isinstance(value, Enum):
        return str(value.value)
    if value is None:
        return ""
    return str(value)


class Trip(BaseModel):
    """A single relief mission as reported by the trip data provider.

    Dates are calendar dates with trip-local "day" semantics; there is no
    time-of-day component anywhere in the readiness policy.
    """

    model_config = _WIRE_CONFIG

    trip_id: int = Field(..., ge=1, description="Unique identifier for the trip.")
    name: str = Field(default="", description="Human-readable trip name, usually destination-focused.")
    start_date: date = Field(..., description="Trip start date (YYYY-MM-DD).")
    end_date: date = Field(..., description="Trip end date (YYYY-MM-DD).")
    country_code: str = Field(
        default="",
        description=(
            "ISO country code for the trip destination. Trimmed and upper-cased; "
            "used as the key into the malaria/parasite risk sets."
        ),
    )
    status: TripStatus = Field(
        default=TripStatus.UNKNOWN,
        description="Current lifecycle status. Missing or unrecognized values become UNKNOWN.",
    )

    @field_validator("name", mode="before")
    @classmethod
    def _name_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("country_code", mode="before")
    @classmethod
    def _normalize_country_code(cls, value: Any) -> str:
        return ("" if value is None else str(value)).strip().upper()

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> TripStatus:
        if isinstance(value, TripStatus):
            return value
        text = ("" if value is None else str(value)).strip().upper()
        try:
            return TripStatus(text)
        except ValueError:
            return TripStatus.UNKNOWN


class Item(BaseModel):
    """One packed medication/supply record attached to a trip.

    Only the fields the readiness rules read are modeled; anything else the
    provider sends (manufactured dates, partial amounts, ...) is ignored.

    `quantity` and `product_amount` keep whatever the provider sent when it is
    not a number. The matching layer treats those values as zero, and the
    item record quality rule reports them. `expiration_date` stays raw
    "MM/YYYY" text for the same reason: a malformed value is counted as
    invalid by the expiration rule instead of failing validation here.
    """

    model_config = _WIRE_CONFIG

    name: str = Field(default="", description="Display name of the medication or supply.")
    brand: str = Field(default="", description="Brand name of the item.")
    dose: str = Field(default="", description="Dose strength and format, e.g. '500mg' or '160mg/5mL'.")
    category: Union[Category, str] = Field(
        default="",
        description="Inventory category. Enum member when recognized, raw text otherwise.",
    )
    presentation: Union[Presentation, str] = Field(
        default="",
        description="Presentation form. Enum member when recognized, raw text otherwise.",
    )
    quantity: Union[float, str, None] = Field(
        default=None,
        description="Count of packed units. Non-numeric values contribute zero.",
    )
    product_amount: Union[float, str, None] = Field(
        default=None,
        description="Amount contained in one full unit (e.g. 100 for a 100-tablet bottle).",
    )
    product_amount_unit: str = Field(default="", description="Unit of product_amount (mg, mL, tablets, ...).")
    expiration_date: str = Field(
        default="",
        description="Expiration in MM/YYYY, valid through the last day of that month.",
    )
    box_number: Optional[int] = Field(default=None, description="Packing box where the item is stored.")
    lot_number: str = Field(default="", description="Manufacturer lot/batch identifier.")
    upc: Optional[str] = None
    inventory_id: Optional[int] = None
    manufacturer: Optional[str] = None
    country_code: Optional[str] = Field(
        default=None,
        description="Destination country, inherited from the owning trip.",
    )

    @field_validator(
        "name", "brand", "dose", "product_amount_unit", "expiration_date", "lot_number", mode="before"
    )
    @classmethod
    def _text_or_blank(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Union[Category, str]:
        return Category.lookup(value)

    @field_validator("presentation", mode="before")
    @classmethod
    def _coerce_presentation(cls, value: Any) -> Union[Presentation, str]:
        return Presentation.lookup(value)

    @field_validator("quantity", "product_amount", mode="before")
    @classmethod
    def _keep_raw_number(cls, value: Any) -> Union[float, str, None]:
        if value is None or isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        return str(value)

    @field_validator("box_number", "inventory_id", mode="before")
    @classmethod
    def _lenient_int(cls, value: Any) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(str(value).strip())
        except (TypeError, ValueError):
            return None
        if not math.isfinite(number) or not number.is_integer():
            return None
        return int(number)

    @property
    def category_recognized(self) -> bool:
        """Whether the category matched the controlled taxonomy."""
        return isinstance(self.category, Category)

    @property
    def presentation_recognized(self) -> bool:
        """Whether the presentation matched the controlled taxonomy."""
        return isinstance(self.presentation, Presentation)


class TripData(BaseModel):
    """Trip data provider payload: one trip and its packed items."""

    model_config = _WIRE_CONFIG

    trip: Trip
    items: list[Item] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def _items_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _inherit_country_code(self) -> "TripData":
        for item in self.items:
            if not item.country_code:
                item.country_code = self.trip.country_code
        return self


class Check(BaseModel):
    """Verdict and explanation produced by one readiness rule.

    `rule_id` values are stable and never renumbered; consumers key on them.
    `recommended_action` is absent on PASS. `evidence` is diagnostic detail
    and is omitted entirely when the caller suppresses evidence.
    """

    model_config = _WIRE_CONFIG

    rule_id: str
    rule_name: str
    status: CheckStatus
    message: str
    recommended_action: Optional[str] = None
    evidence: Optional[dict[str, Any]] = None


class ReadinessSummary(BaseModel):
    """Headline numbers for a readiness evaluation."""

    model_config = _WIRE_CONFIG

    total_checks: int = Field(..., ge=0)
    passed_checks: int = Field(..., ge=0)
    warning_checks: int = Field(..., ge=0)
    failed_checks: int = Field(..., ge=0)
    total_packed_items: int = Field(..., ge=0)
    formulation_adequacy_status: CheckStatus
    pediatric_readiness_status: CheckStatus
    pediatric_readiness_confidence: int = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def _counts_add_up(self) -> "ReadinessSummary":
        if self.total_checks != self.passed_checks + self.warning_checks + self.failed_checks:
            raise ValueError("total_checks must equal passed + warning + failed checks")
        return self


class EvaluateTripPackingReadinessInput(BaseModel):
    """Caller input for one readiness evaluation."""

    model_config = _WIRE_CONFIG

    trip_id: int = Field(..., ge=1, description="Trip to evaluate.")
    shelf_life_days: int = Field(
        default=DEFAULT_SHELF_LIFE_DAYS,
        ge=1,
        description="Minimum remaining validity, in days from trip start, for every packed item.",
    )
    include_evidence: bool = Field(
        default=True,
        description="Attach diagnostic evidence payloads to each check.",
    )

    @field_validator("shelf_life_days", mode="before")
    @classmethod
    def _default_shelf_life(cls, value: Any) -> Any:
        return DEFAULT_SHELF_LIFE_DAYS if value is None else value

    @field_validator("include_evidence", mode="before")
    @classmethod
    def _default_include_evidence(cls, value: Any) -> Any:
        return True if value is None else value


class EvaluateTripPackingReadinessResponse(BaseModel):
    """Full readiness verdict for a trip.

    `checks` always holds every rule in the fixed evaluation order.
    `reasons` holds the non-PASS checks (empty when GREEN) and
    `recommended_actions` their de-duplicated actions, never empty.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "trip": {
                        "tripId": 23,
                        "name": "Kampala Spring Clinic",
                        "startDate": "2026-03-01",
                        "endDate": "2026-03-14",
                        "countryCode": "UG",
                        "status": "PACKED",
                    },
                    "rating": "RED",
                    "summary": {
                        "totalChecks": 17,
                        "passedChecks": 16,
                        "warningChecks": 0,
                        "failedChecks": 1,
                        "totalPackedItems": 48,
                        "formulationAdequacyStatus": "PASS",
                        "pediatricReadinessStatus": "PASS",
                        "pediatricReadinessConfidence": 100,
                    },
                    "reasons": [
                        {
                            "ruleId": "region_specific_medication_coverage",
                            "ruleName": "Region-specific medication coverage",
                            "status": "FAIL",
                            "message": "Missing destination-specific medications for UG: Artemether/Lumefantrine.",
                        }
                    ],
                    "checks": [],
                    "recommendedActions": [
                        "Add the missing region-specific medications before departure. Review local epidemiology guidance if destination risk is uncertain.",
                    ],
                }
            ]
        },
    )

    trip: Trip
    rating: Rating
    summary: ReadinessSummary
    reasons: list[Check] = Field(default_factory=list)
    checks: list[Check] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)

    @property
    def is_ready(self) -> bool:
        """Whether every rule passed."""
        return self.rating == Rating.GREEN

    def to_wire(self) -> dict[str, Any]:
        """camelCase JSON-ready dict with absent optional fields dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
