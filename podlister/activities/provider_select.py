"""Print provider and variant selection for a chosen blueprint.

The default strategy is greedy: walk providers (allow-listed ones first)
and stop at the first one exposing an enabled variant. It favours finding
*something* purchasable quickly over finding the best option. Strategies
share the VariantSelector interface so an exhaustive one can replace it
without touching the creation workflow.
"""

from __future__ import annotations

import abc
from collections.abc import Sequence

import structlog

from podlister.errors import NoAvailableVariant
from podlister.models.contracts import (
    AttemptFailure,
    BlueprintVariant,
    CatalogEntry,
    PrintProvider,
    ProviderSelection,
)
from podlister.utils.printify import PrintifyClient, PrintifyError

logger = structlog.get_logger()

DEFAULT_PROVIDER_PRIORITY: tuple[int, ...] = (29, 25, 3)


def prioritize_providers(
    providers: Sequence[PrintProvider],
    priority: Sequence[int],
) -> list[PrintProvider]:
    """Move allow-listed providers to the front, in allow-list order.

    Everyone else keeps their original relative order behind them.
    """
    rank = {provider_id: i for i, provider_id in enumerate(priority)}
    listed = sorted((p for p in providers if p.id in rank), key=lambda p: rank[p.id])
    unlisted = [p for p in providers if p.id not in rank]
    return listed + unlisted


def first_enabled(variants: Sequence[BlueprintVariant]) -> BlueprintVariant | None:
    return next((v for v in variants if v.is_enabled), None)


class VariantSelector(abc.ABC):
    @abc.abstractmethod
    async def select(self, blueprint: CatalogEntry) -> ProviderSelection:
        """Return a provider/variant pair for ``blueprint`` or raise NoAvailableVariant."""


class GreedyVariantSelector(VariantSelector):
    def __init__(
        self,
        client: PrintifyClient,
        priority: Sequence[int] = DEFAULT_PROVIDER_PRIORITY,
    ) -> None:
        self._client = client
        self._priority = tuple(priority)

    async def select(self, blueprint: CatalogEntry) -> ProviderSelection:
        try:
            providers = await self._client.list_providers(blueprint.id)
        except PrintifyError as exc:
            raise NoAvailableVariant(
                f"Smart Provider Selection Failed: could not list print providers for "
                f"blueprint {blueprint.id}: {exc.describe()}"
            ) from exc
        if not providers:
            raise NoAvailableVariant(f"No print providers found for blueprint {blueprint.id}")

        ordered = prioritize_providers(providers, self._priority)
        logger.info(
            "provider_scan_started",
            blueprint_id=blueprint.id,
            providers=[p.id for p in ordered],
        )

        attempts: list[AttemptFailure] = []
        for provider in ordered:
            subject = f"provider {provider.id}"
            try:
                variants = await self._client.list_variants(blueprint.id, provider.id)
            except PrintifyError as exc:
                attempts.append(AttemptFailure(subject=subject, error=exc.describe()))
                logger.warning(
                    "provider_variants_failed",
                    blueprint_id=blueprint.id,
                    provider_id=provider.id,
                    error=exc.describe(),
                )
                continue

            variant = first_enabled(variants)
            if variant is None:
                attempts.append(AttemptFailure(subject=subject, error="no enabled variants"))
                logger.info(
                    "provider_no_enabled_variants",
                    blueprint_id=blueprint.id,
                    provider_id=provider.id,
                    variants=len(variants),
                )
                continue

            logger.info(
                "provider_locked",
                blueprint_id=blueprint.id,
                provider_id=provider.id,
                variant_id=variant.id,
                skipped=len(attempts),
            )
            return ProviderSelection(
                provider_id=provider.id,
                provider_title=provider.title,
                variant_id=variant.id,
                attempts=attempts,
            )

        reasons = "; ".join(f"{a.subject}: {a.error}" for a in attempts)
        raise NoAvailableVariant(
            f"Smart Provider Selection Failed: analyzed {len(ordered)} providers but found "
            f"no enabled variants for this blueprint ({reasons}).",
            attempts=attempts,
        )
