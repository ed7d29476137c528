"""
Bulk result ingestion.

A batch is checked as a whole before anything is written: every entry must
point at an analysis link of the order being updated and at a component of
that link's frozen component set. Blank values are dropped, never stored and
never used to clear an existing value. Surviving entries are upserted by
(order_analysis_id, component_id), so resubmitting a batch is harmless.
Ingestion itself never changes the order's state.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from labflow.exceptions import ValidationError, StateViolation
from labflow.models.order import Order
from labflow.schemas.results import BulkResultEntry
from labflow.services.lifecycle import accepts_results

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedEntry:
    order_analysis_id: int
    component_id: int
    value: str
    observations: Optional[str] = None

    @property
    def key(self) -> Tuple[int, int]:
        return (self.order_analysis_id, self.component_id)


@dataclass(frozen=True)
class IngestionReport:
    saved: int
    skipped_blank: int
    entries: Tuple[NormalizedEntry, ...] = ()


def allowed_keys(order: Order) -> Dict[int, set]:
    """Map each of the order's analysis links to its frozen component ids."""
    return {
        order_analysis.id: {link.component_id for link in order_analysis.components}
        for order_analysis in order.analyses
    }


def validate_entries(order: Order, entries: Iterable[BulkResultEntry]):
    """
    Reject the batch if any entry reaches outside ``order``.

    Raises:
        ValidationError: listing every offending entry
    """
    allowed = allowed_keys(order)
    errors = []

    for index, entry in enumerate(entries):
        components = allowed.get(entry.order_analysis_id)
        if components is None:
            errors.append({
                "index": index,
                "order_analysis_id": entry.order_analysis_id,
                "component_id": entry.component_id,
                "reason": f"analysis link {entry.order_analysis_id} does not belong to order {order.id}"
            })
        elif entry.component_id not in components:
            errors.append({
                "index": index,
                "order_analysis_id": entry.order_analysis_id,
                "component_id": entry.component_id,
                "reason": (
                    f"component {entry.component_id} is not part of analysis link "
                    f"{entry.order_analysis_id}"
                )
            })

    if errors:
        logger.warning(f"Rejected result batch for order {order.id}: {len(errors)} invalid entries")
        raise ValidationError(
            f"{len(errors)} result entries do not belong to order {order.attention_number}",
            errors=errors
        )


def normalize_entries(entries: Iterable[BulkResultEntry]) -> Tuple[List[NormalizedEntry], int]:
    """
    Trim values, drop blanks and collapse repeated keys (last one wins).

    Returns:
        (entries to persist in first-seen key order, number of blank entries dropped)
    """
    kept: Dict[Tuple[int, int], NormalizedEntry] = {}
    skipped = 0

    for entry in entries:
        value = (entry.value or "").strip()
        if not value:
            skipped += 1
            continue

        observations = entry.observations.strip() if entry.observations else None
        normalized = NormalizedEntry(
            order_analysis_id=entry.order_analysis_id,
            component_id=entry.component_id,
            value=value,
            observations=observations or None
        )
        kept[normalized.key] = normalized

    return list(kept.values()), skipped


def ingest(order: Order, entries: List[BulkResultEntry], repository, context) -> IngestionReport:
    """
    Validate, normalize and upsert a batch of results for ``order``.

    Writes are flushed, not committed; the caller owns the transaction.

    Raises:
        ValidationError: the batch references something outside the order
        StateViolation: the order's results are locked (approved or printed)
    """
    entries = list(entries)
    validate_entries(order, entries)

    if not accepts_results(order):
        raise StateViolation(
            f"Results of order {order.attention_number} are locked in state '{order.state}'",
            order_id=order.id, state=order.state, trigger="save_results"
        )

    normalized, skipped = normalize_entries(entries)
    if normalized:
        repository.upsert_results(order, normalized, context)

    logger.info(
        f"Ingested {len(normalized)} result(s) for order {order.id}, "
        f"{skipped} blank entr{'y' if skipped == 1 else 'ies'} skipped"
    )
    return IngestionReport(saved=len(normalized), skipped_blank=skipped, entries=tuple(normalized))
