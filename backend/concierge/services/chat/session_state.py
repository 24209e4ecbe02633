"""Per-turn session transitions.

Reads the stored SessionState and the new message, and produces the working
filters for this turn plus the SessionPatch the caller persists afterwards.
Nothing here touches storage.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from concierge.core.logging import get_logger
from concierge.schemas.chat import StoreContext
from concierge.schemas.session import (
    ClarifierOption,
    FactSheet,
    FactSheetCache,
    ManualClarifier,
    PendingClarifier,
    SessionPatch,
    SessionState,
    TopicAnchor,
)
from concierge.services.chat.clarifier_config import manual_prompt_for_facet
from concierge.services.chat.filters import (
    apply_manual_facet_value,
    detect_brand,
    extract_price_filter,
    infer_price_bucket_from_input,
)
from concierge.services.chat.modes import ClarifyMode, DeadEndMode, Mode
from concierge.services.chat.relaxation import relaxation_order
from concierge.services.chat.topic_classifier import is_rapport, normalize

logger = get_logger(__name__)

SKIP_WORDS = frozenset({"skip", "skip for now", "skip_for_now", "something else", "something else…"})
SUMMARY_EXCHANGES = 3
SUMMARY_SNIPPET_CHARS = 120


@dataclass
class ClarifierResolution:
    active_filters: Dict[str, str]
    pending_clarifier: Optional[PendingClarifier]
    manual_clarifier: Optional[ManualClarifier]
    relaxed_filters: Dict[str, str]
    answered_facet: Optional[str] = None
    manual_prompt: Optional[str] = None
    restored: List[str] = field(default_factory=list)


def _matches(text: str, candidates: Iterable[str]) -> bool:
    target = normalize(text)
    return any(normalize(candidate) == target for candidate in candidates if candidate)


def match_option(pending: PendingClarifier, text: str) -> Optional[ClarifierOption]:
    for option in pending.options:
        if _matches(text, [option.label, option.value, *option.aliases]):
            return option
    return None


def restore_relaxed(relaxed: Dict[str, str], text: str) -> Dict[str, str]:
    """Relaxed filters whose undo choice the shopper just picked."""
    restored: Dict[str, str] = {}
    for facet, value in relaxed.items():
        rule = relaxation_order({facet: value})[0]
        if _matches(text, [rule.label(value), value, f"undo_{facet}"]):
            restored[facet] = value
    return restored


def resolve_clarifiers(state: SessionState, text: str, store: Optional[StoreContext] = None) -> ClarifierResolution:
    resolution = ClarifierResolution(
        active_filters=dict(state.active_filters),
        pending_clarifier=state.pending_clarifier,
        manual_clarifier=state.manual_clarifier,
        relaxed_filters=dict(state.relaxed_filters),
    )

    # Small talk closes any open question and leaves filters alone.
    if is_rapport(text):
        resolution.pending_clarifier = None
        resolution.manual_clarifier = None
        return resolution

    for facet, value in restore_relaxed(resolution.relaxed_filters, text).items():
        resolution.active_filters[facet] = value
        resolution.relaxed_filters.pop(facet, None)
        resolution.restored.append(facet)

    message_value = normalize(text)
    manual = resolution.manual_clarifier
    if manual is not None and message_value and message_value not in SKIP_WORDS:
        manual_value = apply_manual_facet_value(manual.facet, text)
        if manual_value:
            resolution.active_filters[manual.facet] = manual_value
            resolution.answered_facet = manual.facet
        resolution.manual_clarifier = None
        resolution.pending_clarifier = None

    pending = resolution.pending_clarifier
    if pending is not None:
        if message_value in SKIP_WORDS:
            resolution.active_filters.pop(pending.facet, None)
            resolution.manual_clarifier = ManualClarifier(facet=pending.facet)
            resolution.manual_prompt = manual_prompt_for_facet(pending.facet)
        else:
            matched = match_option(pending, text)
            if matched is not None:
                resolution.active_filters[pending.facet] = matched.value
                resolution.answered_facet = pending.facet
            elif pending.facet == "price_bucket":
                inferred = extract_price_filter(text) or infer_price_bucket_from_input(text)
                if inferred:
                    resolution.active_filters["price_bucket"] = inferred
                    resolution.answered_facet = pending.facet
        resolution.pending_clarifier = None

    if resolution.manual_prompt is None:
        price = extract_price_filter(text)
        if price:
            resolution.active_filters["price_bucket"] = price
        brand = detect_brand(text, store.top_brands if store else [])
        if brand:
            resolution.active_filters["vendor"] = brand

    if resolution.restored or resolution.answered_facet:
        logger.info(
            "clarifier resolved answered=%s restored=%s filters=%s",
            resolution.answered_facet,
            resolution.restored,
            resolution.active_filters,
        )
    return resolution


def summarize_dialogue(previous: Optional[str], user_text: str, reply_text: str) -> str:
    """Rolling summary of the last few exchanges, one line each."""

    def snippet(value: str) -> str:
        flat = " ".join(str(value or "").split())
        return flat if len(flat) <= SUMMARY_SNIPPET_CHARS else flat[: SUMMARY_SNIPPET_CHARS - 1] + "…"

    lines = [line for line in (previous or "").splitlines() if line.strip()]
    lines.append(f"shopper: {snippet(user_text)} / concierge: {snippet(reply_text)}")
    return "\n".join(lines[-SUMMARY_EXCHANGES:])


def cached_fact_sheets(
    cache: Optional[FactSheetCache],
    product_ids: Sequence[str],
    *,
    ttl_seconds: int,
    now: Optional[datetime] = None,
) -> Optional[List[FactSheet]]:
    """Cached sheets when the cache is fresh and covers every requested product."""
    if cache is None or not product_ids:
        return None
    current = now or datetime.now(timezone.utc)
    fetched_at = cache.fetched_at if cache.fetched_at.tzinfo else cache.fetched_at.replace(tzinfo=timezone.utc)
    if current - fetched_at > timedelta(seconds=ttl_seconds):
        return None
    by_id = {fact.id: fact for fact in cache.facts}
    if not all(product_id in by_id for product_id in product_ids):
        return None
    return [by_id[product_id] for product_id in product_ids]


def build_session_patch(
    state: SessionState,
    *,
    resolution: ClarifierResolution,
    mode: Mode,
    active_filters: Dict[str, str],
    relaxed_filters: Dict[str, str],
    topic_anchor: Optional[TopicAnchor],
    searched: bool,
    summary: str,
    fact_sheet_cache: Optional[FactSheetCache] = None,
) -> SessionPatch:
    history = dict(state.clarifier_history)
    asked_slots: List[str] = list(state.asked_slots)
    pending: Optional[PendingClarifier] = None
    manual = resolution.manual_clarifier

    if isinstance(mode, ClarifyMode) and mode.facet:
        history[mode.facet] = int(history.get(mode.facet, 0)) + 1
        if mode.facet not in asked_slots:
            asked_slots.append(mode.facet)
        pending = PendingClarifier(facet=mode.facet, options=list(mode.options))
        manual = None

    streak = state.zero_result_streak
    if isinstance(mode, DeadEndMode):
        streak += 1
    elif searched:
        streak = 0

    updates = dict(
        active_filters=active_filters,
        clarifier_history=history,
        asked_slots=asked_slots,
        pending_clarifier=pending,
        manual_clarifier=manual,
        topic_anchor=topic_anchor,
        turn_count=state.turn_count + 1,
        zero_result_streak=streak,
        relaxed_filters=relaxed_filters,
        dialogue_summary=summary,
    )
    # An untouched cache stays out of the patch so the stored one survives.
    if fact_sheet_cache is not None:
        updates["fact_sheet_cache"] = fact_sheet_cache
    return SessionPatch(**updates)
