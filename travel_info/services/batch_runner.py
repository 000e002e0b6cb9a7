# travel_info/services/batch_runner.py

from datetime import datetime, timezone
from typing import Any, List, Sequence

import structlog
from structlog.contextvars import bound_contextvars

from travel_info.models.dto import ItemOutcome, OutcomeStatus
from travel_info.services.enrichment import EnrichmentAggregator
from travel_info.services.geocoding import GeocodeResolver

logger = structlog.get_logger(__name__)

EMPTY_DESTINATION_ERROR = "Empty/invalid destination"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_text(item: Any) -> str:
    # Falsy items (None, False, 0, "") are blank destinations
    if not item:
        return ""
    return str(item).strip()


class BatchRunner:
    """
    Processes destinations one at a time, in input order, producing exactly
    one ItemOutcome per input. A failing item never stops the batch.
    """

    def __init__(self, resolver: GeocodeResolver, aggregator: EnrichmentAggregator):
        self.resolver = resolver
        self.aggregator = aggregator

    async def process_item(self, item: Any) -> ItemOutcome:
        place = _as_text(item)
        if not place:
            return ItemOutcome(
                original_item=item,
                processed=False,
                status=OutcomeStatus.ERROR,
                error=EMPTY_DESTINATION_ERROR,
                processed_at=_now(),
            )

        try:
            geo = await self.resolver.resolve(place)
            if geo is None:
                return ItemOutcome(
                    original_item=place,
                    processed=False,
                    status=OutcomeStatus.ERROR,
                    error=f'Could not geocode "{place}"',
                    processed_at=_now(),
                )
            bundle = await self.aggregator.enrich(geo, place)
        except Exception as e:
            logger.exception("batch_item_unexpected_error", place=place)
            return ItemOutcome(
                original_item=place,
                processed=False,
                status=OutcomeStatus.ERROR,
                error=str(e) or type(e).__name__,
                processed_at=_now(),
            )

        return ItemOutcome(
            original_item=place,
            processed=True,
            status=OutcomeStatus.SUCCESS,
            data=bundle,
            processed_at=_now(),
        )

    async def process(self, items: Sequence[Any]) -> List[ItemOutcome]:
        results: List[ItemOutcome] = []
        for index, item in enumerate(items):
            with bound_contextvars(item_index=index):
                results.append(await self.process_item(item))
        succeeded = sum(1 for r in results if r.status == OutcomeStatus.SUCCESS)
        logger.info("batch_processed", total=len(results), succeeded=succeeded, failed=len(results) - succeeded)
        return results
