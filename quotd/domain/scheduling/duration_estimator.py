"""
Job duration estimation from quoted line items
"""

import logging
import math
from typing import Iterable, Optional

from .schemas import DurationBreakdownItem, DurationEstimate, LineItemInput

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_MINUTES = 15  # Setup / cleanup time added once per job
DEFAULT_ITEM_DURATION_MINUTES = 60  # Per-unit duration for items with no matching preset


def _resolve_preset(item: LineItemInput, presets: list):
    """Find the preset for a line item: explicit preset id first, then by name"""
    if item.service_preset_id:
        for preset in presets:
            if preset.id == item.service_preset_id:
                return preset

    label = item.label.strip().lower()
    for preset in presets:
        if (preset.name or "").strip().lower() == label:
            return preset
    return None


def estimate_duration(
    line_items: Iterable,
    presets: Iterable,
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
) -> DurationEstimate:
    """
    Estimate how long a job takes from its line items.

    Each item's per-unit duration comes from its service preset (matched by id,
    then by case-insensitive name); unmatched items use 60 minutes per unit.
    The total is the sum of duration x quantity plus the buffer, rounded up to
    a whole minute.

    Args:
        line_items: JobLineItem rows or LineItemInput objects (label, quantity, service_preset_id)
        presets: ServicePreset rows (id, name, default_duration_minutes)
        buffer_minutes: Setup/cleanup allowance added once

    Returns:
        DurationEstimate with per-item breakdown
    """
    preset_list = list(presets)
    breakdown = []
    items_total = 0.0

    for raw in line_items:
        item = LineItemInput.model_validate(raw)
        preset = _resolve_preset(item, preset_list)

        if preset is not None and preset.default_duration_minutes:
            unit_duration = preset.default_duration_minutes
            matched = True
        else:
            unit_duration = DEFAULT_ITEM_DURATION_MINUTES
            matched = False
            logger.debug(f"No preset duration for line item '{item.label}', using default")

        item_total = unit_duration * item.quantity
        items_total += item_total
        breakdown.append(
            DurationBreakdownItem(
                item=item.label,
                duration=unit_duration,
                quantity=item.quantity,
                total=item_total,
                matched=matched,
            )
        )

    return DurationEstimate(
        total_minutes=math.ceil(items_total) + buffer_minutes,
        breakdown=breakdown,
        buffer_minutes=buffer_minutes,
    )


def format_duration(minutes: Optional[int]) -> str:
    """Format minutes as a short human string, e.g. 45m, 2h, 1h 30m"""
    minutes = int(minutes or 0)
    if minutes < 60:
        return f"{minutes}m"

    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h {remaining}m"
