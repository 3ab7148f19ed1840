"""Offline estimation from reference weights and fuzzy duplicate matching."""

from rapidfuzz import fuzz, process

from mealcart.estimation.base import (
    IngredientInfo,
    UnitEstimationRequest,
    UnitEstimationResult,
    build_pending_match,
    group_by_lowercase_name,
)
from mealcart.estimation.weights import grams_per_cup, grams_per_each
from mealcart.logging_config import get_logger
from mealcart.normalize.names import normalize_ingredient_name, select_canonical_name
from mealcart.normalize.units import (
    UNIT_INFO,
    MeasurementUnit,
    UnitCategory,
    convert_to_base_unit,
    get_unit_category,
    round_to_reasonable_precision,
)
from mealcart.schemas import PendingIngredientMatch

logger = get_logger(__name__)

GRAMS_PER_LB = UNIT_INFO[MeasurementUnit.LB].base_unit_factor
GRAMS_PER_OZ = UNIT_INFO[MeasurementUnit.OZ].base_unit_factor
ML_PER_CUP = UNIT_INFO[MeasurementUnit.CUP].base_unit_factor


class LocalEstimator:
    """Cross-category estimates from the reference weight tables."""

    COUNT_TO_WEIGHT_CONFIDENCE = 0.85
    VOLUME_TO_WEIGHT_CONFIDENCE = 0.8
    WEIGHT_TO_COUNT_CONFIDENCE = 0.85

    def estimate(self, request: UnitEstimationRequest) -> UnitEstimationResult | None:
        """
        Estimate a single conversion locally.

        Returns None unless the ingredient has a specific entry in the
        relevant reference table.
        """
        from_category = get_unit_category(request.from_unit)
        name = request.ingredient_name.lower()

        if from_category == UnitCategory.COUNT and request.to_category == UnitCategory.WEIGHT:
            per_each = grams_per_each(name)
            if per_each is None:
                return None
            total_grams = request.from_quantity * per_each
            return UnitEstimationResult(
                ingredient_name=request.ingredient_name,
                estimated_quantity_in_grams=total_grams,
                estimated_display_quantity=round_to_reasonable_precision(total_grams / GRAMS_PER_LB),
                estimated_display_unit=MeasurementUnit.LB,
                confidence=self.COUNT_TO_WEIGHT_CONFIDENCE,
                is_local=True,
                display_note=f"~{round_to_reasonable_precision(per_each / GRAMS_PER_OZ):g} oz each",
            )

        if from_category == UnitCategory.VOLUME and request.to_category == UnitCategory.WEIGHT:
            per_cup = grams_per_cup(name)
            if per_cup is None or request.from_unit is None:
                return None
            volume_ml = convert_to_base_unit(request.from_quantity, request.from_unit)
            if volume_ml is None:
                return None
            total_grams = volume_ml / ML_PER_CUP * per_cup
            return UnitEstimationResult(
                ingredient_name=request.ingredient_name,
                estimated_quantity_in_grams=total_grams,
                estimated_display_quantity=round_to_reasonable_precision(total_grams / GRAMS_PER_LB),
                estimated_display_unit=MeasurementUnit.LB,
                confidence=self.VOLUME_TO_WEIGHT_CONFIDENCE,
                is_local=True,
                display_note=f"~{round(per_cup)}g per cup",
            )

        if from_category == UnitCategory.WEIGHT and request.to_category == UnitCategory.COUNT:
            per_each = grams_per_each(name)
            if per_each is None or request.from_unit is None:
                return None
            grams = convert_to_base_unit(request.from_quantity, request.from_unit)
            if grams is None:
                return None
            return UnitEstimationResult(
                ingredient_name=request.ingredient_name,
                estimated_quantity_in_grams=grams,
                estimated_display_quantity=round_to_reasonable_precision(grams / per_each),
                estimated_display_unit=MeasurementUnit.EACH,
                confidence=self.WEIGHT_TO_COUNT_CONFIDENCE,
                is_local=True,
                display_note=f"~{round_to_reasonable_precision(per_each / GRAMS_PER_OZ):g} oz each",
            )

        return None


class FuzzyIngredientMatcher:
    """
    Propose duplicate ingredient names without a remote model.

    Names whose normalized forms already coincide are merged by the
    builder anyway, so only near-duplicates across distinct normalized
    forms are proposed.
    """

    def __init__(self, threshold: float = 85.0):
        self.threshold = threshold

    def find_matches(self, items: list[IngredientInfo]) -> list[PendingIngredientMatch]:
        unique_names = group_by_lowercase_name(items)

        # normalized form -> raw lowercase names sharing it
        by_key: dict[str, list[str]] = {}
        for name in unique_names:
            key = normalize_ingredient_name(name).normalized_name
            if key:
                by_key.setdefault(key, []).append(name)

        keys = list(by_key)
        assigned: set[str] = set()
        matches: list[PendingIngredientMatch] = []

        for key in keys:
            if key in assigned:
                continue
            candidates = [k for k in keys if k not in assigned and k != key]
            if not candidates:
                continue

            similar = process.extract(
                key,
                candidates,
                scorer=fuzz.token_sort_ratio,
                score_cutoff=self.threshold,
                limit=None,
            )
            if not similar:
                continue

            cluster = [key] + [matched for matched, _, _ in similar]
            assigned.update(cluster)

            names = [name for k in cluster for name in by_key[k]]
            lowest_score = min(score for _, score, _ in similar)
            match = build_pending_match(
                names,
                select_canonical_name(names),
                lowest_score / 100.0,
                unique_names,
            )
            if match is not None:
                matches.append(match)

        logger.debug(f"Fuzzy matcher proposed {len(matches)} groups from {len(keys)} names")
        return matches
