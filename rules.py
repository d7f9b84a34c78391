"""
rules.py - Deterministic packing readiness rules.

Each evaluator takes an `EvaluationContext` and returns exactly one `Check`.
Evaluators are pure and independent: none reads another's output, and
`RULE_EVALUATORS` fixes the order they appear in a response.

Item-level faults (unparseable expiration, non-numeric quantity, unknown
category text) never raise here. They turn into zero contributions,
"invalid" counters and, at worst, a WARN on the record-quality rules.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict

from logging_config import get_logger
from matching import (
    contains_any,
    count_distinct_names,
    format_number,
    has_presentation,
    is_any_category,
    is_category,
    is_pediatric_signal,
    is_valid_quantity,
    keyword_hit,
    normalize,
    parse_expiration_month_end,
    range_status,
    sum_quantity,
    tablet_equivalent_units,
    whole_number,
)
from models import Check, CheckStatus, Item, Trip, TripStatus, taxonomy_text
from readiness_config import DEFAULT_CONFIG, ReadinessConfig, RuleSpec

logger = get_logger(__name__)

PASS = CheckStatus.PASS
WARN = CheckStatus.WARN
FAIL = CheckStatus.FAIL


class EvaluationContext(BaseModel):
    """Everything a rule may read. Built fresh for every evaluation."""

    model_config = ConfigDict(frozen=True)

    trip: Trip
    items: list[Item]
    config: ReadinessConfig = DEFAULT_CONFIG
    shelf_life_days: int = DEFAULT_CONFIG.default_shelf_life_days
    include_evidence: bool = True

    def any_item(self, predicate: Callable[[Item], bool]) -> bool:
        return any(predicate(item) for item in self.items)


class PediatricAssessment(BaseModel):
    formulation_count: int
    has_analgesic: bool
    has_allergy_resp: bool
    has_vitamins: bool
    confidence_percent: int
    status: CheckStatus


def _make_check(
    context: EvaluationContext,
    rule: RuleSpec,
    status: CheckStatus,
    message: str,
    action: Optional[str] = None,
    evidence: Optional[dict[str, Any]] = None,
) -> Check:
    return Check(
        rule_id=rule.id,
        rule_name=rule.name,
        status=status,
        message=message,
        recommended_action=None if status == PASS else action,
        evidence=evidence if context.include_evidence else None,
    )


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


# -- Shared coverage signals --


def _has_adult_solid_analgesic(context: EvaluationContext) -> bool:
    cfg = context.config
    return context.any_item(
        lambda item: is_category(item, cfg.analgesics)
        and has_presentation(item, cfg.solid_presentations)
    )


def _has_pediatric_analgesic(context: EvaluationContext) -> bool:
    cfg = context.config
    return context.any_item(
        lambda item: is_category(item, cfg.analgesics)
        and has_presentation(item, cfg.liquid_or_chewable_presentations)
    )


def _has_pediatric_allergy_resp(context: EvaluationContext) -> bool:
    cfg = context.config
    return context.any_item(
        lambda item: is_any_category(item, cfg.allergy_respiratory_categories)
        and has_presentation(item, cfg.liquid_or_chewable_presentations)
    )


def _has_topical_antifungal(context: EvaluationContext) -> bool:
    cfg = context.config
    return context.any_item(
        lambda item: is_category(item, cfg.topical)
        and keyword_hit(item, cfg.topical_antifungal_keywords)
    )


def _has_topical_antibiotic(context: EvaluationContext) -> bool:
    cfg = context.config
    return context.any_item(
        lambda item: is_any_category(item, (cfg.topical, cfg.anti_infectives))
        and keyword_hit(item, cfg.topical_antibiotic_keywords)
    )


# -- Rules --


def evaluate_trip_status(context: EvaluationContext) -> Check:
    rule = context.config.rules.trip_status
    status = context.trip.status
    if status == TripStatus.PACKED:
        return _make_check(context, rule, PASS, "Trip status is PACKED.")
    if status == TripStatus.PACKING:
        return _make_check(
            context,
            rule,
            WARN,
            "Trip status is PACKING and may still be in progress.",
            "Complete packing workflow and confirm status is PACKED before departure.",
        )
    return _make_check(
        context,
        rule,
        FAIL,
        f"Trip status is {status.value}, not PACKED.",
        "Move trip to PACKED status only after required packing checks pass.",
    )


def evaluate_core_categories(context: EvaluationContext) -> Check:
    cfg = context.config
    rule = cfg.rules.core_categories
    required: list[tuple[str, Callable[[Item], bool]]] = [
        (cfg.analgesics, lambda item: is_category(item, cfg.analgesics)),
        (cfg.anti_infectives, lambda item: is_category(item, cfg.anti_infectives)),
        (
            "Allergy/Respiratory",
            lambda item: is_any_category(item, cfg.allergy_respiratory_categories),
        ),
        (cfg.topical, lambda item: is_category(item, cfg.topical)),
        (cfg.gi, lambda item: is_category(item, cfg.gi)),
        (cfg.vitamins, lambda item: is_category(item, cfg.vitamins)),
        (cfg.cardiac, lambda item: is_category(item, cfg.cardiac)),
    ]
    missing = [label for label, predicate in required if not context.any_item(predicate)]

    if not missing:
        return _make_check(
            context, rule, PASS, f"All {len(required)} core categories are represented."
        )
    return _make_check(
        context,
        rule,
        FAIL,
        f"Missing core categories: {', '.join(missing)}.",
        "Pack medications for each missing core category before final readiness approval.",
        {"missingCoreCategories": missing},
    )


def evaluate_named_medications(context: EvaluationContext) -> Check:
    cfg = context.config
    rule = cfg.rules.named_medications

    missing: list[str] = []
    for expectation in cfg.essential_medications:
        found = context.any_item(
            lambda item: (not expectation.category or is_category(item, expectation.category))
            and keyword_hit(item, expectation.keywords)
        )
        if not found:
            missing.append(expectation.label)
    missing_critical = [label for label in missing if label in cfg.critical_medication_labels]

    if missing_critical:
        status = FAIL
    elif missing:
        status = WARN
    else:
        status = PASS

    message = (
        f"Missing named medications: {', '.join(missing)}."
        if missing
        else "Named medication baseline is covered across core categories."
    )
    return _make_check(
        context,
        rule,
        status,
        message,
        "Add the missing named medications to close category-level clinical gaps.",
        {"missingMedications": missing, "missingCriticalMedications": missing_critical},
    )


def evaluate_formulation_adequacy(context: EvaluationContext) -> Check:
    cfg = context.config
    rule = cfg.rules.formulation

    adult_solid = _has_adult_solid_analgesic(context)
    pediatric_analgesic = _has_pediatric_analgesic(context)
    combos = [
        ("Adult solid analgesic formulation", adult_solid),
        ("Pediatric liquid/chewable analgesic formulation", pediatric_analgesic),
        (
            "Pediatric liquid/chewable allergy/respiratory formulation",
            _has_pediatric_allergy_resp(context),
        ),
        (
            "Oral anti-infective formulation coverage",
            context.any_item(
                lambda item: is_category(item, cfg.anti_infectives)
                and has_presentation(item, cfg.oral_anti_infective_presentations)
            ),
        ),
        ("Topical antifungal coverage", _has_topical_antifungal(context)),
        ("Topical antibiotic coverage", _has_topical_antibiotic(context)),
    ]
    gaps = [label for label, present in combos if not present]

    if not gaps:
        status = PASS
    elif (
        not adult_solid
        or not pediatric_analgesic
        or len(gaps) >= cfg.formulation_critical_gap_count
    ):
        status = FAIL
    else:
        status = WARN

    message = (
        f"Missing formulation coverage: {', '.join(gaps)}."
        if gaps
        else "Coverage includes expected adult/pediatric and topical formulation patterns."
    )
    return _make_check(
        context,
        rule,
        status,
        message,
        "Add the missing formulations to improve practical clinical usability "
        "across adult and pediatric cases.",
        {"missingFormulationCoverage": gaps},
    )


def assess_pediatric_readiness(context: EvaluationContext) -> PediatricAssessment:
    """Weighted pediatric confidence, shared by the rule and the summary."""
    cfg = context.config
    weights = cfg.pediatric
    pediatric_categories = (cfg.analgesics, cfg.allergy, cfg.respiratory, cfg.vitamins)

    formulation_count = sum(
        1
        for item in context.items
        if has_presentation(item, cfg.liquid_or_chewable_presentations)
        and (
            is_pediatric_signal(item, cfg.pediatric_name_keywords, cfg.pediatric_dose_markers)
            or is_any_category(item, pediatric_categories)
        )
    )
    has_analgesic = _has_pediatric_analgesic(context)
    has_allergy_resp = _has_pediatric_allergy_resp(context)
    has_vitamins = context.any_item(
        lambda item: is_category(item, cfg.vitamins)
        and (
            keyword_hit(item, cfg.pediatric_vitamin_keywords)
            or has_presentation(item, cfg.liquid_or_chewable_presentations)
        )
    )

    confidence = 0.0
    if has_analgesic:
        confidence += weights.analgesic_weight
    if has_allergy_resp:
        confidence += weights.allergy_resp_weight
    if has_vitamins:
        confidence += weights.vitamin_weight
    if formulation_count >= weights.high_formulation_count:
        confidence += weights.high_formulation_weight
    elif formulation_count >= weights.mid_formulation_count:
        confidence += weights.mid_formulation_weight

    # Round before comparing so float sums like 0.35 + 0.10 land on 45 exactly.
    percent = int(round(min(1.0, round(confidence, 2)) * 100))
    if percent >= weights.pass_percent:
        status = PASS
    elif percent >= weights.warn_percent:
        status = WARN
    else:
        status = FAIL

    return PediatricAssessment(
        formulation_count=formulation_count,
        has_analgesic=has_analgesic,
        has_allergy_resp=has_allergy_resp,
        has_vitamins=has_vitamins,
        confidence_percent=percent,
        status=status,
    )


def evaluate_pediatric_readiness(context: EvaluationContext) -> Check:
    assessment = assess_pediatric_readiness(context)
    return _make_check(
        context,
        context.config.rules.pediatric,
        assessment.status,
        f"Pediatric readiness confidence is {assessment.confidence_percent}% "
        "based on available liquid/chewable coverage.",
        "Increase pediatric liquid/chewable and infant-friendly formulations in key categories.",
        {
            "pediatricFormulationCount": assessment.formulation_count,
            "hasPediatricAnalgesic": assessment.has_analgesic,
            "hasPediatricAllergyResp": assessment.has_allergy_resp,
            "hasPediatricVitamins": assessment.has_vitamins,
            "confidencePercent": assessment.confidence_percent,
        },
    )


def evaluate_common_formulation_diversity(context: EvaluationContext) -> Check:
    cfg = context.config
    targets = cfg.common_formulations

    acetaminophen: list[str] = []
    ibuprofen: list[str] = []
    for item in context.items:
        name = normalize(item.name)
        presentation = normalize(item.presentation) or "unknown"
        if "acetaminophen" in name and presentation not in acetaminophen:
            acetaminophen.append(presentation)
        if "ibuprofen" in name and presentation not in ibuprofen:
            ibuprofen.append(presentation)

    if len(acetaminophen) <= targets.fail_max_distinct or len(ibuprofen) <= targets.fail_max_distinct:
        status = FAIL
    elif not (
        targets.acetaminophen_target_min <= len(acetaminophen) <= targets.acetaminophen_target_max
        and targets.ibuprofen_target_min <= len(ibuprofen) <= targets.ibuprofen_target_max
    ):
        status = WARN
    else:
        status = PASS

    return _make_check(
        context,
        cfg.rules.common_formulation_diversity,
        status,
        f"Acetaminophen formulations: {len(acetaminophen)} "
        f"(target {targets.acetaminophen_target_min}-{targets.acetaminophen_target_max}); "
        f"Ibuprofen formulations: {len(ibuprofen)} "
        f"(target {targets.ibuprofen_target_min}-{targets.ibuprofen_target_max}).",
        "Add additional formulations for acetaminophen and/or ibuprofen to improve adult "
        "and pediatric dispensing flexibility.",
        {"acetaminophenPresentations": acetaminophen, "ibuprofenPresentations": ibuprofen},
    )


def evaluate_antibiotic_diversity(context: EvaluationContext) -> Check:
    cfg = context.config

    recognized: set[str] = set()
    for item in context.items:
        if not is_category(item, cfg.anti_infectives):
            continue
        name = normalize(item.name)
        for antibiotic in cfg.antibiotic_types:
            if contains_any(name, antibiotic.keywords):
                recognized.add(antibiotic.type)

    status = range_status(len(recognized), cfg.antibiotic_diversity)
    return _make_check(
        context,
        cfg.rules.antibiotic_diversity,
        status,
        f"Recognized antibiotic types: {len(recognized)}.",
        "Increase distinct antibiotic types (oral/topical/injectable) to improve "
        "infection-treatment coverage.",
        {"antibioticTypes": sorted(recognized)},
    )


def evaluate_topical_antifungal_antibiotic(context: EvaluationContext) -> Check:
    has_antifungal = _has_topical_antifungal(context)
    has_antibiotic = _has_topical_antibiotic(context)
    covered = has_antifungal and has_antibiotic
    return _make_check(
        context,
        context.config.rules.topical_antifungal_antibiotic,
        PASS if covered else FAIL,
        "Topical antifungal and topical antibiotic coverage present."
        if covered
        else "Missing topical antifungal and/or topical antibiotic coverage.",
        "Add clotrimazole (or equivalent antifungal) and triple-antibiotic style topical coverage.",
        {"hasTopicalAntifungal": has_antifungal, "hasTopicalAntibiotic": has_antibiotic},
    )


def evaluate_topical_depth(context: EvaluationContext) -> Check:
    cfg = context.config
    has_hydrocortisone = context.any_item(
        lambda item: is_category(item, cfg.topical)
        and keyword_hit(item, cfg.hydrocortisone_keywords)
    )
    has_wound_care = context.any_item(
        lambda item: is_category(item, cfg.topical) and keyword_hit(item, cfg.wound_care_keywords)
    )

    if not has_hydrocortisone and not has_wound_care:
        status = FAIL
    elif not has_hydrocortisone or not has_wound_care:
        status = WARN
    else:
        status = PASS

    return _make_check(
        context,
        cfg.rules.topical_depth,
        status,
        f"Hydrocortisone present: {_yes_no(has_hydrocortisone)}; "
        f"wound-care topical coverage present: {_yes_no(has_wound_care)}.",
        "Add hydrocortisone and wound-care topical medications "
        "(A&D/petroleum jelly/triple-antibiotic style products).",
        {"hasHydrocortisone": has_hydrocortisone, "hasWoundCare": has_wound_care},
    )


def evaluate_gi_depth(context: EvaluationContext) -> Check:
    cfg = context.config
    band = cfg.gi_distinct_count
    count = count_distinct_names(context.items, lambda item: is_category(item, cfg.gi))
    return _make_check(
        context,
        cfg.rules.gi_depth,
        range_status(count, band),
        f"Distinct GI medications: {count} "
        f"(target {format_number(band.warn_min)}-{format_number(band.warn_max)}).",
        f"Adjust GI mix to maintain at least {format_number(band.warn_min)} distinct medications "
        "(acid reducer, antacid, anti-diarrheal, laxative coverage).",
        {"giDistinctMedicationCount": count},
    )


def evaluate_cardiac_depth(context: EvaluationContext) -> Check:
    cfg = context.config
    band = cfg.cardiac_distinct_count
    count = count_distinct_names(context.items, lambda item: is_category(item, cfg.cardiac))
    has_aspirin_81 = context.any_item(
        lambda item: is_category(item, cfg.cardiac)
        and keyword_hit(item, cfg.aspirin_keywords)
        and contains_any(item.dose, (cfg.aspirin_low_dose_token,))
    )

    status = range_status(count, band)
    if status == PASS and not has_aspirin_81:
        status = WARN

    return _make_check(
        context,
        cfg.rules.cardiac_depth,
        status,
        f"Distinct cardiac medications: {count} "
        f"(target {format_number(band.warn_min)}-{format_number(band.warn_max)}). "
        f"Aspirin 81mg present: {_yes_no(has_aspirin_81)}.",
        "Increase cardiac medication breadth and confirm aspirin 81mg availability.",
        {"cardiacDistinctMedicationCount": count, "hasAspirin81": has_aspirin_81},
    )


def evaluate_injectable_readiness(context: EvaluationContext) -> Check:
    cfg = context.config
    band = cfg.injectable_ceftriaxone
    vials = sum_quantity(
        context.items,
        lambda item: is_category(item, cfg.anti_infectives)
        and keyword_hit(item, cfg.ceftriaxone_keywords)
        and has_presentation(item, cfg.injectable_presentations),
    )
    diluent = sum_quantity(
        context.items, lambda item: keyword_hit(item, cfg.sodium_chloride_diluent_keywords)
    )

    if vials == 0 or diluent == 0:
        status = FAIL
    elif vials < band.warn_min or (band.warn_max is not None and vials > band.warn_max):
        status = WARN
    else:
        status = PASS

    return _make_check(
        context,
        cfg.rules.injectable,
        status,
        f"Ceftriaxone injectable vials: {format_number(vials)} "
        f"(target {format_number(band.warn_min)}-{format_number(band.warn_max)}). "
        f"Sodium Chloride 0.9% dilution items: {format_number(diluent)}.",
        "Ensure Ceftriaxone injectable stock is in range and include Sodium Chloride 0.9% "
        "for dilution.",
        {
            "ceftriaxoneVialCount": whole_number(vials),
            "sodiumChlorideDiluentCount": whole_number(diluent),
        },
    )


def evaluate_region_specific(context: EvaluationContext) -> Check:
    cfg = context.config
    country = context.trip.country_code
    requires_malaria = country in cfg.malaria_endemic_country_codes
    requires_albendazole = country in cfg.high_parasite_prevalence_country_codes
    has_malaria_treatment = context.any_item(
        lambda item: keyword_hit(item, cfg.malaria_treatment_keywords)
    )
    has_albendazole = context.any_item(lambda item: keyword_hit(item, cfg.albendazole_keywords))

    missing: list[str] = []
    if requires_malaria and not has_malaria_treatment:
        missing.append(cfg.malaria_treatment_label)
    if requires_albendazole and not has_albendazole:
        missing.append(cfg.albendazole_label)

    if missing:
        message = f"Missing destination-specific medications for {country}: {', '.join(missing)}."
    elif requires_malaria or requires_albendazole:
        message = f"Region-specific medications are present for destination {country}."
    else:
        message = (
            f"Destination {country} is not in the configured malaria/parasite "
            "high-risk country map."
        )

    return _make_check(
        context,
        cfg.rules.region_specific,
        FAIL if missing else PASS,
        message,
        "Add the missing region-specific medications before departure. Review local "
        "epidemiology guidance if destination risk is uncertain.",
        {
            "tripCountryCode": country,
            "requiresMalariaCoverage": requires_malaria,
            "requiresAlbendazoleCoverage": requires_albendazole,
            "hasMalariaTreatment": has_malaria_treatment,
            "hasAlbendazole": has_albendazole,
            "missingRegionSpecificCoverage": missing,
            "mappingNote": (
                "Country-level mapping is used. Rural/region-specific risk within a "
                "country is not modeled in this rule."
            ),
        },
    )


def _vitamin_buckets(context: EvaluationContext) -> tuple[float, float, float]:
    """Tablet-equivalent totals for (adult multivitamin, children/chewable, prenatal)."""
    cfg = context.config
    adult = children = prenatal = 0.0
    for item in context.items:
        if not is_category(item, cfg.vitamins):
            continue
        name = normalize(item.name)
        units = tablet_equivalent_units(item, cfg.tablet_like_unit_markers)
        is_chewable = normalize(item.presentation) == "chewable tablets" or "chew" in name

        if "prenatal" in name:
            prenatal += units
        elif "child" in name or "infant" in name or is_chewable:
            children += units
        elif "multivitamin" in name:
            adult += units
    return adult, children, prenatal


def evaluate_vitamin_thresholds(context: EvaluationContext) -> Check:
    cfg = context.config
    adult, children, prenatal = _vitamin_buckets(context)
    has_infant_drops = context.any_item(
        lambda item: is_category(item, cfg.vitamins)
        and keyword_hit(item, cfg.infant_drop_vitamin_keywords)
    )
    has_vitamin_a = context.any_item(
        lambda item: is_category(item, cfg.vitamins)
        and keyword_hit(item, cfg.high_dose_vitamin_a_keywords)
        and contains_any(item.dose, (cfg.high_dose_vitamin_a_dose_token,))
    )

    buckets = [
        ("Adult multivitamins", "Adult multivitamins", adult, cfg.vitamin_adult_multivitamin),
        (
            "Children's chewable/infant vitamins",
            "Children's chewable vitamins",
            children,
            cfg.vitamin_children_chewable,
        ),
        ("Prenatal vitamins", "Prenatal vitamins", prenatal, cfg.vitamin_prenatal),
    ]

    fail_misses: list[str] = []
    range_misses: list[str] = []
    for fail_label, range_label, total, band in buckets:
        shown = format_number(total)
        if total < band.fail_min:
            fail_misses.append(
                f"{fail_label} below red-flag minimum ({shown} < {format_number(band.fail_min)})"
            )
        if total < band.warn_min or (band.warn_max is not None and total > band.warn_max):
            range_misses.append(
                f"{range_label} outside preferred range ({shown}; target "
                f"{format_number(band.warn_min)}-{format_number(band.warn_max)})"
            )
    if not has_infant_drops:
        range_misses.append("Infant vitamin drops not detected in packed vitamins.")
    if not has_vitamin_a:
        range_misses.append("High-dose Vitamin A (25,000 IU) not detected.")

    if fail_misses:
        status = FAIL
    elif range_misses:
        status = WARN
    else:
        status = PASS

    message = (
        "Vitamin red-flag minimums and preferred ranges are satisfied."
        if status == PASS
        else f"Vitamin issues: {'; '.join(fail_misses + range_misses)}."
    )
    return _make_check(
        context,
        cfg.rules.vitamins,
        status,
        message,
        "Adjust vitamin quantities to clear red-flag minimums and move toward preferred "
        "target ranges.",
        {
            "adultMultivitaminTablets": whole_number(adult),
            "childrenChewableVitaminTablets": whole_number(children),
            "prenatalVitaminTablets": whole_number(prenatal),
            "hasInfantDrops": has_infant_drops,
            "hasHighDoseVitaminA": has_vitamin_a,
            "vitaminFailThresholdMisses": fail_misses,
            "vitaminPreferredRangeMisses": range_misses,
        },
    )


def _expired_sort_key(entry: dict[str, Any]) -> tuple:
    box = entry["boxNumber"]
    return (box is None, box or 0, entry["itemName"], entry["expirationDate"])


def _describe_expired(entry: dict[str, Any]) -> str:
    box = entry["boxNumber"]
    location = f"Box {box}" if box is not None else "no box"
    suffix = f", {entry['instances']} instances" if entry["instances"] > 1 else ""
    return f"{entry['itemName']} ({location}, exp {entry['expirationDate']}{suffix})"


def _required_expiration_date(trip_start: date, shelf_life_days: int) -> date:
    """Trip start plus the shelf-life window, capped at the last representable date."""
    try:
        return trip_start + timedelta(days=shelf_life_days)
    except OverflowError:
        logger.debug(
            "shelf_life_window_capped | trip_start=%s | shelf_life_days=%s",
            trip_start,
            shelf_life_days,
        )
        return date.max


def evaluate_expiration(context: EvaluationContext) -> Check:
    cfg = context.config
    items = context.items
    trip_start: date = context.trip.start_date
    required_through = _required_expiration_date(trip_start, context.shelf_life_days)

    expired_count = 0
    noncompliant_count = 0
    invalid_count = 0
    expired_groups: dict[tuple[str, Optional[int], str], dict[str, Any]] = {}

    for item in items:
        try:
            expires = parse_expiration_month_end(item.expiration_date)
        except ValueError:
            invalid_count += 1
            logger.debug(
                "expiration_recovery | item=%r | value=%r | counted=invalid",
                item.name,
                item.expiration_date,
            )
            continue

        if expires < trip_start:
            expired_count += 1
            item_name = item.name.strip() or cfg.unknown_medication_name
            key = (item_name, item.box_number, item.expiration_date)
            group = expired_groups.get(key)
            if group:
                group["instances"] += 1
            else:
                expired_groups[key] = {
                    "itemName": item_name,
                    "boxNumber": item.box_number,
                    "expirationDate": item.expiration_date,
                    "instances": 1,
                }
        if expires < required_through:
            noncompliant_count += 1

    expired_items = sorted(expired_groups.values(), key=_expired_sort_key)
    all_below = bool(items) and noncompliant_count == len(items)

    if not items or expired_count > 0 or all_below:
        status = FAIL
    elif noncompliant_count > 0 or invalid_count > 0:
        status = WARN
    else:
        status = PASS

    total = len(items)
    message = (
        f"Expired as of trip start: {expired_count}/{total}. "
        f"Items below shelf-life threshold: {noncompliant_count}/{total}. "
        f"Invalid expiration values: {invalid_count}. "
        f"All items below shelf-life threshold: {_yes_no(all_below)}."
    )
    if expired_items:
        message += " Expired-at-start medications: " + "; ".join(
            _describe_expired(entry) for entry in expired_items
        ) + "."

    window = f"{context.shelf_life_days} days"
    if not items:
        action = "No packed items were found for this trip. Pack and record medications before departure."
    elif expired_count > 0:
        action = (
            "Remove or replace medications that are expired by trip start date. Then replace "
            f"additional items expiring before the {window} shelf-life threshold."
        )
    elif all_below:
        action = (
            "All packed medications are too close to expiration. Repack with inventory that "
            f"remains valid at least {window} beyond trip start."
        )
    else:
        action = (
            "Replace items expiring too soon so all packed medications remain valid at least "
            f"{window} beyond trip start."
        )

    return _make_check(
        context,
        cfg.rules.expiration,
        status,
        message,
        action,
        {
            "shelfLifeDays": context.shelf_life_days,
            "requiredExpirationDate": required_through.isoformat(),
            "tripStartDate": trip_start.isoformat(),
            "expiredAsOfTripStartCount": expired_count,
            "expiredAsOfTripStartItems": expired_items,
            "nonCompliantExpirationCount": noncompliant_count,
            "invalidExpirationCount": invalid_count,
            "allItemsBelowShelfLifeThreshold": all_below,
        },
    )


def _item_label(item: Item) -> str:
    return item.name.strip() or item.upc or "Unnamed item"


def evaluate_item_record_quality(context: EvaluationContext) -> Check:
    unknown_categories: list[str] = []
    unknown_presentations: list[str] = []
    invalid_quantity_items: list[str] = []

    for item in context.items:
        if not item.category_recognized:
            raw = taxonomy_text(item.category) or "<missing>"
            if raw not in unknown_categories:
                unknown_categories.append(raw)
        if not item.presentation_recognized:
            raw = taxonomy_text(item.presentation) or "<missing>"
            if raw not in unknown_presentations:
                unknown_presentations.append(raw)
        if not is_valid_quantity(item.quantity):
            invalid_quantity_items.append(_item_label(item))

    flagged = sum(
        1
        for item in context.items
        if not item.category_recognized
        or not item.presentation_recognized
        or not is_valid_quantity(item.quantity)
    )
    status = WARN if flagged else PASS
    message = (
        f"Items with record issues: {flagged}/{len(context.items)}. "
        f"Unrecognized categories: {len(unknown_categories)}; "
        f"unrecognized presentations: {len(unknown_presentations)}; "
        f"missing or invalid quantities: {len(invalid_quantity_items)}."
    )
    return _make_check(
        context,
        context.config.rules.item_record_quality,
        status,
        message,
        "Correct item category, presentation and quantity values so every packed item "
        "counts toward readiness rules.",
        {
            "flaggedItemCount": flagged,
            "unrecognizedCategories": sorted(unknown_categories),
            "unrecognizedPresentations": sorted(unknown_presentations),
            "invalidQuantityItems": invalid_quantity_items,
        },
    )


def evaluate_item_traceability(context: EvaluationContext) -> Check:
    missing_lot = [_item_label(item) for item in context.items if not item.lot_number.strip()]
    missing_box = [_item_label(item) for item in context.items if item.box_number is None]
    status = WARN if missing_lot or missing_box else PASS
    return _make_check(
        context,
        context.config.rules.item_traceability,
        status,
        f"Items missing lot number: {len(missing_lot)}/{len(context.items)}; "
        f"items missing box number: {len(missing_box)}/{len(context.items)}.",
        "Record lot and box numbers for every packed item so expired or recalled stock "
        "can be located before departure.",
        {"missingLotNumberItems": missing_lot, "missingBoxNumberItems": missing_box},
    )


RULE_EVALUATORS: list[Callable[[EvaluationContext], Check]] = [
    evaluate_trip_status,
    evaluate_core_categories,
    evaluate_named_medications,
    evaluate_formulation_adequacy,
    evaluate_pediatric_readiness,
    evaluate_common_formulation_diversity,
    evaluate_antibiotic_diversity,
    evaluate_topical_antifungal_antibiotic,
    evaluate_topical_depth,
    evaluate_gi_depth,
    evaluate_cardiac_depth,
    evaluate_injectable_readiness,
    evaluate_region_specific,
    evaluate_vitamin_thresholds,
    evaluate_expiration,
    evaluate_item_record_quality,
    evaluate_item_traceability,
]


def run_rules(context: EvaluationContext) -> list[Check]:
    """Run every evaluator in order and log each verdict."""
    checks: list[Check] = []
    for evaluator in RULE_EVALUATORS:
        check = evaluator(context)
        if check.status == PASS:
            logger.debug("rule_verdict | rule=%s | status=%s", check.rule_id, check.status.value)
        else:
            logger.info(
                "rule_verdict | rule=%s | status=%s | message=%s",
                check.rule_id,
                check.status.value,
                check.message,
            )
        checks.append(check)
    return checks
