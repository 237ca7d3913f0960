"""Blueprint matching: product type label to one Printify catalog entry.

Three stages, first hit wins, no backtracking:

1. Override: the label equals (case-insensitively) a user rule's keyword
   and the rule's blueprint id exists in the catalog.
2. Hint: the optional search hint (usually a model number from the text
   cleanup step) scored against every entry.
3. Safety net: a model token derived from the label through a fixed
   keyword table, scored the same way.

Scoring leans hard on exact model numbers ("3001", "18500"): those are
the best proxy for a blueprint that many providers can actually fulfil.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

import structlog

from podlister.errors import NoBlueprintMatch
from podlister.models.contracts import BlueprintMatch, BlueprintOverrideRule, CatalogEntry

logger = structlog.get_logger()

MATCH_THRESHOLD = 10

EXACT_MODEL_POINTS = 50
MODEL_IN_TERM_POINTS = 20
BRAND_IN_TERM_POINTS = 10
TITLE_IN_TERM_POINTS = 5
TOKEN_POINTS = 2

# Checked in order; the first keyword found in the label wins.
SAFETY_NET_TOKENS: tuple[tuple[str, str], ...] = (
    ("hoodie", "18500"),
    ("sweatshirt", "18000"),
    ("mug", "11oz"),
    ("v-neck", "3005"),
    ("tank", "3480"),
)
DEFAULT_SAFETY_NET_TOKEN = "3001"  # Bella+Canvas 3001, the generic tee

_TOKEN_SPLIT_RE = re.compile(r"[\s+]+")


def score(term: str, entry: CatalogEntry) -> int:
    term = term.lower()
    tokens = [t for t in _TOKEN_SPLIT_RE.split(term) if t]
    brand = entry.brand.lower()
    title = entry.title.lower()
    model = entry.model.lower()

    points = 0
    if model == term:
        points += EXACT_MODEL_POINTS
    elif model and model in term:
        points += MODEL_IN_TERM_POINTS
    if brand in term:
        points += BRAND_IN_TERM_POINTS
    if title in term:
        points += TITLE_IN_TERM_POINTS
    for token in tokens:
        if token in brand or token in title or token in model:
            points += TOKEN_POINTS
    return points


def best_match(term: str, catalog: Iterable[CatalogEntry]) -> tuple[CatalogEntry, int] | None:
    """Highest-scoring entry for ``term`` if it clears the threshold.

    Ties go to the earliest entry in catalog order.
    """
    best: CatalogEntry | None = None
    best_score = 0
    for entry in catalog:
        points = score(term, entry)
        if points > best_score:
            best, best_score = entry, points
    if best is None or best_score < MATCH_THRESHOLD:
        return None
    return best, best_score


def safety_net_token(product_type_label: str) -> str:
    label = product_type_label.lower()
    for keyword, token in SAFETY_NET_TOKENS:
        if keyword in label:
            return token
    return DEFAULT_SAFETY_NET_TOKEN


def find_override(
    product_type_label: str,
    overrides: Iterable[BlueprintOverrideRule],
    catalog: Sequence[CatalogEntry],
) -> BlueprintMatch | None:
    label = product_type_label.lower()
    rule = next((r for r in overrides if r.keyword.lower() == label), None)
    if rule is None:
        return None
    entry = next((e for e in catalog if e.id == rule.blueprint_id), None)
    if entry is None:
        logger.warning(
            "blueprint_override_unknown_id",
            keyword=rule.keyword,
            blueprint_id=rule.blueprint_id,
        )
        return None
    return BlueprintMatch(entry=entry, stage="override", term=rule.keyword)


def resolve_blueprint(
    product_type_label: str,
    search_hint: str | None,
    overrides: Iterable[BlueprintOverrideRule],
    catalog: Sequence[CatalogEntry],
) -> BlueprintMatch:
    """Select exactly one blueprint or raise NoBlueprintMatch."""
    if not catalog:
        raise NoBlueprintMatch("Printify catalog is empty; cannot select a blueprint.")

    if (match := find_override(product_type_label, overrides, catalog)) is not None:
        logger.info("blueprint_resolved", stage="override", blueprint_id=match.entry.id)
        return match

    if search_hint and search_hint.strip():
        if (hit := best_match(search_hint, catalog)) is not None:
            entry, points = hit
            logger.info(
                "blueprint_resolved",
                stage="hint",
                term=search_hint,
                blueprint_id=entry.id,
                score=points,
            )
            return BlueprintMatch(entry=entry, stage="hint", term=search_hint, score=points)
        logger.info("blueprint_hint_no_match", term=search_hint)

    token = safety_net_token(product_type_label)
    if (hit := best_match(token, catalog)) is not None:
        entry, points = hit
        logger.info(
            "blueprint_resolved",
            stage="safety_net",
            term=token,
            blueprint_id=entry.id,
            score=points,
        )
        return BlueprintMatch(entry=entry, stage="safety_net", term=token, score=points)

    raise NoBlueprintMatch(
        f"Could not identify a valid Printify blueprint for '{product_type_label}' "
        f"even with safety nets (tried '{token}')."
    )
