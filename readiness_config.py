"""
readiness_config.py - Taxonomy and threshold tables for readiness rules.

This is data, not policy code. Every keyword list, country risk set and
numeric band the rules read lives on one frozen `ReadinessConfig` object.
`DEFAULT_CONFIG` is built once at import time and handed to the engine by
reference; tests and operators substitute their own instance instead of
touching rule logic.

Threshold bands follow one convention:
    value <  fail_min                      -> FAIL
    value outside [warn_min, warn_max]     -> WARN
    otherwise                              -> PASS

Operators can retune a deployment with a JSON override file, either passed
to `load_readiness_config(path)` or named by READINESS_CONFIG_FILE. Keys
missing from the file keep their defaults.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from logging_config import get_logger
from models import DEFAULT_SHELF_LIFE_DAYS, Category

logger = get_logger(__name__)

CONFIG_VERSION = "2025.1"

BASELINE_ACTION = (
    "Trip meets current packing readiness rules. Maintain this baseline through departure."
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class ThresholdBand(_Frozen):
    """FAIL below `fail_min`; WARN outside [`warn_min`, `warn_max`]; PASS inside."""

    fail_min: float = 0
    warn_min: float
    warn_max: Optional[float] = None


class AntibioticType(_Frozen):
    type: str
    keywords: tuple[str, ...]


class MedicationExpectation(_Frozen):
    """A named medication the trip should carry, optionally scoped to a category."""

    label: str
    category: Optional[str] = None
    keywords: tuple[str, ...]


class RuleSpec(_Frozen):
    id: str
    name: str


class PediatricWeights(_Frozen):
    """Weighted pediatric confidence. Weights are policy constants, not derived from data."""

    analgesic_weight: float = 0.35
    allergy_resp_weight: float = 0.25
    vitamin_weight: float = 0.20
    high_formulation_count: int = 5
    high_formulation_weight: float = 0.20
    mid_formulation_count: int = 2
    mid_formulation_weight: float = 0.10
    pass_percent: int = 75
    warn_percent: int = 45


class FormulationDiversity(_Frozen):
    fail_max_distinct: int = 1
    acetaminophen_target_min: int = 5
    acetaminophen_target_max: int = 8
    ibuprofen_target_min: int = 4
    ibuprofen_target_max: int = 6


class RuleCatalog(_Frozen):
    """Stable rule identifiers, in evaluation order. Never renumber an id."""

    trip_status: RuleSpec = RuleSpec(
        id="trip_status_packed", name="Trip status indicates packed readiness"
    )
    core_categories: RuleSpec = RuleSpec(id="core_category_coverage", name="Core category coverage")
    named_medications: RuleSpec = RuleSpec(
        id="named_medication_coverage", name="Named medication coverage"
    )
    formulation: RuleSpec = RuleSpec(
        id="formulation_adequacy_by_context", name="Formulation adequacy by context"
    )
    pediatric: RuleSpec = RuleSpec(
        id="pediatric_readiness_confidence", name="Pediatric readiness confidence"
    )
    common_formulation_diversity: RuleSpec = RuleSpec(
        id="common_medication_formulation_diversity",
        name="Common medication formulation diversity",
    )
    antibiotic_diversity: RuleSpec = RuleSpec(
        id="antibiotic_type_diversity", name="Antibiotic type diversity"
    )
    topical_antifungal_antibiotic: RuleSpec = RuleSpec(
        id="topical_antifungal_and_antibiotic_coverage",
        name="Topical antifungal and antibiotic coverage",
    )
    topical_depth: RuleSpec = RuleSpec(id="topical_depth_coverage", name="Topical depth coverage")
    gi_depth: RuleSpec = RuleSpec(id="gi_depth_coverage", name="GI depth coverage")
    cardiac_depth: RuleSpec = RuleSpec(id="cardiac_depth_coverage", name="Cardiac depth coverage")
    injectable: RuleSpec = RuleSpec(
        id="injectable_medication_readiness", name="Injectable medication readiness"
    )
    region_specific: RuleSpec = RuleSpec(
        id="region_specific_medication_coverage", name="Region-specific medication coverage"
    )
    vitamins: RuleSpec = RuleSpec(id="vitamin_thresholds", name="Vitamin threshold coverage")
    expiration: RuleSpec = RuleSpec(
        id="expiration_shelf_life_by_trip_start", name="Expiration shelf life beyond trip start"
    )
    item_record_quality: RuleSpec = RuleSpec(
        id="item_record_quality", name="Packed item record quality"
    )
    item_traceability: RuleSpec = RuleSpec(
        id="item_traceability", name="Packed item lot and box traceability"
    )


class ReadinessConfig(_Frozen):
    """Versioned, read-only readiness policy."""

    version: str = CONFIG_VERSION
    default_shelf_life_days: int = Field(default=DEFAULT_SHELF_LIFE_DAYS, ge=1)
    unknown_medication_name: str = "Unnamed medication"
    baseline_action: str = BASELINE_ACTION

    # -- Taxonomy --
    analgesics: str = Category.ANALGESICS.value
    anti_infectives: str = Category.ANTI_INFECTIVES.value
    allergy: str = Category.ALLERGY.value
    respiratory: str = Category.RESPIRATORY.value
    topical: str = Category.TOPICAL.value
    gi: str = Category.GI.value
    vitamins: str = Category.VITAMINS.value
    cardiac: str = Category.CARDIAC.value

    liquid_or_chewable_presentations: frozenset[str] = frozenset(
        {"oral suspension", "oral solution", "oral drops", "chewable tablets"}
    )
    solid_presentations: frozenset[str] = frozenset(
        {"tablets", "caplets", "capsules", "soft gel", "soft gel capsules", "gelcaps"}
    )
    oral_anti_infective_presentations: frozenset[str] = frozenset(
        {"tablets", "caplets", "capsules", "oral suspension", "oral solution"}
    )
    injectable_presentations: frozenset[str] = frozenset({"injection", "vial", "ampules"})

    # -- Keyword lists (matched case-insensitively as substrings) --
    topical_antifungal_keywords: tuple[str, ...] = (
        "clotrimazole",
        "miconazole",
        "ketoconazole",
        "terbinafine",
        "antifungal",
    )
    topical_antibiotic_keywords: tuple[str, ...] = (
        "bacitracin",
        "neomycin",
        "polymyxin",
        "triple antibiotic",
        "mupirocin",
    )
    pediatric_name_keywords: tuple[str, ...] = ("child", "children", "pediatric", "infant", "baby")
    pediatric_dose_markers: tuple[str, ...] = ("/5ml", "/ml")
    malaria_treatment_keywords: tuple[str, ...] = ("artemether", "lumefantrine", "coartem")
    albendazole_keywords: tuple[str, ...] = ("albendazole",)
    hydrocortisone_keywords: tuple[str, ...] = ("hydrocortisone",)
    aspirin_keywords: tuple[str, ...] = ("aspirin",)
    aspirin_low_dose_token: str = "81"
    ceftriaxone_keywords: tuple[str, ...] = ("ceftriaxone",)
    pediatric_vitamin_keywords: tuple[str, ...] = ("child", "children", "infant", "drop", "chew")
    infant_drop_vitamin_keywords: tuple[str, ...] = ("infant", "drop", "poly-vi-sol")
    high_dose_vitamin_a_keywords: tuple[str, ...] = ("vitamin a",)
    high_dose_vitamin_a_dose_token: str = "25000"
    wound_care_keywords: tuple[str, ...] = (
        "a&d",
        "petroleum jelly",
        "vaseline",
        "zinc",
        "triple antibiotic",
    )
    sodium_chloride_diluent_keywords: tuple[str, ...] = ("sodium chloride", "normal saline", "0.9%")
    tablet_like_unit_markers: tuple[str, ...] = ("tablet", "capsule")

    # -- Region risk (country-level only; sub-national risk is not modeled) --
    malaria_endemic_country_codes: frozenset[str] = frozenset(
        {"UG", "KE", "TZ", "MG", "KH", "TH", "IN", "HN", "HT", "DO"}
    )
    high_parasite_prevalence_country_codes: frozenset[str] = frozenset(
        {"UG", "KE", "TZ", "MG", "IN", "BD", "KH", "VN", "PH", "HT", "HN", "GT", "DO"}
    )
    malaria_treatment_label: str = "Artemether/Lumefantrine"
    albendazole_label: str = "Albendazole"

    antibiotic_types: tuple[AntibioticType, ...] = (
        AntibioticType(type="amoxicillin", keywords=("amoxicillin",)),
        AntibioticType(type="azithromycin", keywords=("azithromycin",)),
        AntibioticType(type="ciprofloxacin", keywords=("ciprofloxacin",)),
        AntibioticType(type="metronidazole", keywords=("metronidazole",)),
        AntibioticType(type="cephalexin", keywords=("cephalexin", "cefalexin")),
        AntibioticType(type="ceftriaxone", keywords=("ceftriaxone",)),
        AntibioticType(type="clindamycin", keywords=("clindamycin",)),
        AntibioticType(type="doxycycline", keywords=("doxycycline",)),
        AntibioticType(
            type="trimethoprim-sulfamethoxazole",
            keywords=("trimethoprim", "sulfamethoxazole", "co-trimoxazole"),
        ),
    )

    essential_medications: tuple[MedicationExpectation, ...] = (
        MedicationExpectation(label="Acetaminophen", category="Analgesics", keywords=("acetaminophen",)),
        MedicationExpectation(label="Ibuprofen", category="Analgesics", keywords=("ibuprofen",)),
        MedicationExpectation(label="Amoxicillin", category="Anti Infectives", keywords=("amoxicillin",)),
        MedicationExpectation(label="Azithromycin", category="Anti Infectives", keywords=("azithromycin",)),
        MedicationExpectation(label="Ciprofloxacin", category="Anti Infectives", keywords=("ciprofloxacin",)),
        MedicationExpectation(label="Metronidazole", category="Anti Infectives", keywords=("metronidazole",)),
        MedicationExpectation(
            label="Cephalexin", category="Anti Infectives", keywords=("cephalexin", "cefalexin")
        ),
        MedicationExpectation(label="Loratadine/Cetirizine", keywords=("loratadine", "cetirizine")),
        MedicationExpectation(label="Albuterol inhaler", category="Respiratory", keywords=("albuterol",)),
        MedicationExpectation(label="Clotrimazole", category="Topical", keywords=("clotrimazole",)),
        MedicationExpectation(label="Hydrocortisone", category="Topical", keywords=("hydrocortisone",)),
        MedicationExpectation(
            label="Omeprazole/Famotidine", category="GI", keywords=("omeprazole", "famotidine")
        ),
    )
    critical_medication_labels: frozenset[str] = frozenset(
        {"Acetaminophen", "Ibuprofen", "Amoxicillin", "Clotrimazole"}
    )

    # -- Numeric thresholds --
    formulation_critical_gap_count: int = 3
    # Three or more missing formulation combos is a FAIL even when both
    # analgesic combos are present.

    pediatric: PediatricWeights = PediatricWeights()
    common_formulations: FormulationDiversity = FormulationDiversity()

    antibiotic_diversity: ThresholdBand = ThresholdBand(fail_min=3, warn_min=5, warn_max=15)
    gi_distinct_count: ThresholdBand = ThresholdBand(fail_min=1, warn_min=4, warn_max=8)
    cardiac_distinct_count: ThresholdBand = ThresholdBand(fail_min=1, warn_min=5, warn_max=10)
    injectable_ceftriaxone: ThresholdBand = ThresholdBand(fail_min=0, warn_min=8, warn_max=12)
    # Ceftriaxone vials: zero vials (or zero diluent) is FAIL; 8-12 preferred.

    vitamin_adult_multivitamin: ThresholdBand = ThresholdBand(
        fail_min=10000, warn_min=15000, warn_max=25000
    )
    vitamin_children_chewable: ThresholdBand = ThresholdBand(
        fail_min=5000, warn_min=10000, warn_max=20000
    )
    vitamin_prenatal: ThresholdBand = ThresholdBand(fail_min=1000, warn_min=2000, warn_max=4000)
    # Vitamin sums are tablet-equivalent units (quantity x units per bottle
    # when the unit is tablet/capsule-like, otherwise plain quantity).

    rules: RuleCatalog = RuleCatalog()

    @field_validator(
        "malaria_endemic_country_codes", "high_parasite_prevalence_country_codes", mode="after"
    )
    @classmethod
    def _upper_country_codes(cls, value: frozenset[str]) -> frozenset[str]:
        return frozenset(code.strip().upper() for code in value)

    @property
    def allergy_respiratory_categories(self) -> tuple[str, str]:
        return (self.allergy, self.respiratory)

    @property
    def rule_order(self) -> list[RuleSpec]:
        """Every rule in evaluation order."""
        return [getattr(self.rules, name) for name in RuleCatalog.model_fields]


DEFAULT_CONFIG = ReadinessConfig()


def load_readiness_config(path: Optional[str] = None) -> ReadinessConfig:
    """Build a config from a JSON override file, or return DEFAULT_CONFIG.

    Args:
        path: Override file. Falls back to READINESS_CONFIG_FILE, then to the
            built-in defaults when neither is set.

    Raises:
        ValueError: If the override file is missing, not JSON, or fails
            validation. Configuration errors surface at load time so an
            evaluation never runs against a half-applied policy.
    """
    target = path or os.getenv("READINESS_CONFIG_FILE", "").strip()
    if not target:
        return DEFAULT_CONFIG

    config_path = Path(target)
    if not config_path.is_file():
        raise ValueError(f"Readiness config file not found: {config_path}")

    try:
        overrides: Any = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Readiness config file is not valid JSON: {config_path}: {exc}") from exc

    if not isinstance(overrides, dict):
        raise ValueError(f"Readiness config file must contain a JSON object: {config_path}")

    try:
        config = ReadinessConfig.model_validate(overrides)
    except ValidationError as exc:
        raise ValueError(f"Invalid readiness config in {config_path}: {exc}") from exc

    logger.info(
        "readiness_config_loaded | path=%s | version=%s | overridden_keys=%s",
        config_path,
        config.version,
        sorted(overrides),
    )
    return config
