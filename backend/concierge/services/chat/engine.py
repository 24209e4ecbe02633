"""Turn engine: one inbound message in, one turn plus a session patch out.

The engine is a pure function of (messages, session state, collaborator
results). It never persists anything; the chat service saves the patch.
Stage order is fixed: clarifier bookkeeping, pronoun check, topic
classification, retrieval, relaxation, sanitation, routing, assembly, coherence.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from concierge.core.config import settings
from concierge.core.logging import get_logger
from concierge.schemas.chat import Message, StoreContext
from concierge.schemas.session import ClarifierOption, FactSheet, FactSheetCache, SessionPatch, SessionState
from concierge.schemas.turn import ChatTurn, CoherenceCorrectionInfo, QuickReply, TurnMetadata
from concierge.services.catalog.models import ProductCandidate, RetrievalResult
from concierge.services.chat.clarifier_config import describe_facet
from concierge.services.chat.coherence_gate import CoherenceCorrection, CoherenceGate
from concierge.services.chat.components import BuilderContext, SegmentRegistry, TurnPlanner
from concierge.services.chat.copy_writer import CopyBlock, CopySlots, TemplateCopyWriter
from concierge.services.chat.coref import (
    build_clarification_options,
    dominant_category,
    resolve_referent,
    update_topic_anchor,
)
from concierge.services.chat.facet_selector import exhausted_facets
from concierge.services.chat.filters import sanitize_filters, validate_initial_filters
from concierge.services.chat.modes import (
    ChatMode,
    ClarifyMode,
    CompareMode,
    DeadEndMode,
    Mode,
    RecommendMode,
)
from concierge.services.chat.relaxation import RelaxationEngine, RelaxationOutcome
from concierge.services.chat.routing_gates import (
    COMPARE_MAX,
    ModeRouter,
    RouteDecision,
    RoutingPolicy,
    dead_end_alternatives,
)
from concierge.services.chat.session_state import (
    ClarifierResolution,
    build_session_patch,
    cached_fact_sheets,
    resolve_clarifiers,
    summarize_dialogue,
)
from concierge.services.chat.topic_classifier import classify
from concierge.services.chat.types import ConversationMode, TurnTopic
from concierge.services.contracts import CopyWriter, EmbeddingService, FactSheetService, RetrievalService
from concierge.services.enrichment.fact_sheets import fetch_with_deadline
from concierge.utils.debug_log import debug_log

logger = get_logger(__name__)

ENRICHED_MODES = (ConversationMode.RECOMMEND, ConversationMode.COMPARE)


@dataclass
class TurnInput:
    shop_id: str
    messages: List[Message]
    state: SessionState = field(default_factory=SessionState)
    store: StoreContext = field(default_factory=StoreContext)
    result_limit: Optional[int] = None

    @property
    def user_text(self) -> str:
        for message in reversed(self.messages):
            if message.role == "user":
                return message.text
        return ""

    @property
    def previous_assistant_text(self) -> str:
        for message in reversed(self.messages):
            if message.role == "assistant":
                return message.text
        return ""


@dataclass
class TurnResult:
    turn: ChatTurn
    patch: SessionPatch
    decision: RouteDecision
    retrieval: RetrievalResult


@dataclass
class _TurnDraft:
    """Everything assembly needs besides the mode itself."""

    topic: TurnTopic
    topic_rule: Optional[str]
    decision: RouteDecision
    text: str
    store: StoreContext
    retrieval: RetrievalResult = field(default_factory=RetrievalResult.empty)
    filters: Dict[str, str] = field(default_factory=dict)
    clarifier_history: Dict[str, int] = field(default_factory=dict)
    category: Optional[str] = None
    notes: List[str] = field(default_factory=list)
    undo_options: List[QuickReply] = field(default_factory=list)
    relaxation_steps: List[dict] = field(default_factory=list)
    sanitized: List[Dict[str, str]] = field(default_factory=list)
    fact_sheets: Dict[str, FactSheet] = field(default_factory=dict)
    clarification_reason: Optional[str] = None
    copy_override: Optional[CopyBlock] = None


def _note_for_removed(removed: Dict[str, str]) -> str:
    return f"I cleared the {describe_facet(removed['facet'])} filter ({removed['value']}) since it no longer matches the catalog."


class TurnEngine:
    def __init__(
        self,
        *,
        retrieval: RetrievalService,
        embeddings: EmbeddingService,
        copy_writer: Optional[CopyWriter] = None,
        fact_sheets: Optional[FactSheetService] = None,
        policy: Optional[RoutingPolicy] = None,
        relaxation_max_steps: Optional[int] = None,
        enrichment_timeout_seconds: Optional[float] = None,
        fact_sheet_ttl_seconds: Optional[int] = None,
    ):
        self.retrieval = retrieval
        self.embeddings = embeddings
        self.copy_writer = copy_writer or TemplateCopyWriter()
        self.fact_sheets = fact_sheets
        self.router = ModeRouter(policy or RoutingPolicy.from_settings())
        self.relaxation = RelaxationEngine(
            retrieval,
            max_steps=relaxation_max_steps if relaxation_max_steps is not None else settings.RELAXATION_MAX_STEPS,
        )
        self.enrichment_timeout_seconds = (
            enrichment_timeout_seconds if enrichment_timeout_seconds is not None else settings.ENRICHMENT_TIMEOUT_SECONDS
        )
        self.fact_sheet_ttl_seconds = (
            fact_sheet_ttl_seconds if fact_sheet_ttl_seconds is not None else settings.FACT_SHEET_CACHE_TTL_SECONDS
        )
        self.gate = CoherenceGate()

    async def run_turn(self, turn_input: TurnInput) -> TurnResult:
        text = turn_input.user_text
        state = turn_input.state
        store = turn_input.store
        resolution = resolve_clarifiers(state, text, store)

        if resolution.manual_prompt:
            return await self._manual_prompt_turn(turn_input, resolution)

        referent = resolve_referent(text, state.topic_anchor, store)
        if referent.needs_clarification:
            return await self._referent_turn(turn_input, resolution)

        topic_decision = classify(text)
        topic = topic_decision.topic
        filters, removed = validate_initial_filters(resolution.active_filters)
        retrieval = RetrievalResult.empty()
        outcome: Optional[RelaxationOutcome] = None
        sanitized: List[Dict[str, str]] = list(removed)
        searched = False

        if topic == TurnTopic.COMMERCE:
            lexical_query = text
            if referent.referent and referent.referent.lower() not in text.lower():
                lexical_query = f"{referent.referent} {text}"
            limit = turn_input.result_limit or settings.RETRIEVAL_RESULT_LIMIT
            embedding = await self.embeddings.embed(lexical_query)
            retrieval = await self.retrieval.search(
                shop_id=turn_input.shop_id,
                lexical_query=lexical_query,
                embedding=embedding,
                limit=limit,
                active_filters=dict(filters),
            )
            searched = True

            if retrieval.count == 0 and filters:
                outcome = await self.relaxation.relax(
                    retrieval=retrieval,
                    filters=filters,
                    shop_id=turn_input.shop_id,
                    lexical_query=lexical_query,
                    embedding=embedding,
                    limit=limit,
                )
                retrieval = outcome.retrieval
                filters = outcome.filters

            if retrieval.count > 0:
                canonical = (
                    {state.pending_clarifier.facet: list(state.pending_clarifier.options)}
                    if state.pending_clarifier
                    else {}
                )
                result = sanitize_filters(filters, retrieval, canonical)
                filters = result.filters
                sanitized.extend(result.removed)

        relaxed_filters = dict(resolution.relaxed_filters)
        undo_options: List[QuickReply] = []
        notes: List[str] = []
        if outcome is not None:
            relaxed_filters.update(outcome.relaxed)
            undo_options = outcome.undo_options
            notes.extend(outcome.notes)
        notes.extend(_note_for_removed(item) for item in sanitized)

        blocked = [resolution.manual_clarifier.facet] if resolution.manual_clarifier else []
        decision = self.router.decide(
            topic=topic,
            retrieval=retrieval,
            clarifier_history=state.clarifier_history,
            active_filters=filters,
            user_message=text,
            blocked_facets=blocked,
            undo_options=undo_options,
        )

        retrieval_category = dominant_category(retrieval.products)
        anchor = update_topic_anchor(
            state.topic_anchor,
            user_text=text,
            previous_assistant_text=turn_input.previous_assistant_text,
            retrieval_category=retrieval_category,
            store=store,
        )

        draft = _TurnDraft(
            topic=topic,
            topic_rule=topic_decision.rule,
            decision=decision,
            text=text,
            store=store,
            retrieval=retrieval,
            filters=filters,
            clarifier_history=dict(state.clarifier_history),
            category=(anchor.text if anchor else None) or retrieval_category,
            notes=notes,
            undo_options=undo_options,
            relaxation_steps=[step.to_payload() for step in outcome.steps] if outcome else [],
            sanitized=sanitized,
        )

        fact_sheet_cache = await self._enrich(turn_input, state, decision.mode, draft)
        turn, shipped_mode = await self._assemble_checked(decision.mode, draft)

        debug_log(
            {
                "event": "route_decision",
                "turn_id": turn.turn_id,
                "shop_id": turn_input.shop_id,
                "topic_rule": topic_decision.rule,
                "retrieved": retrieval.count,
                "filters": filters,
                "shipped_mode": shipped_mode.kind.value,
                **decision.audit(),
            }
        )

        patch = build_session_patch(
            state,
            resolution=resolution,
            mode=shipped_mode,
            active_filters=filters,
            relaxed_filters=relaxed_filters,
            topic_anchor=anchor,
            searched=searched,
            summary=summarize_dialogue(state.dialogue_summary, text, turn.narrative_text),
            fact_sheet_cache=fact_sheet_cache,
        )
        return TurnResult(turn=turn, patch=patch, decision=decision, retrieval=retrieval)

    async def _manual_prompt_turn(self, turn_input: TurnInput, resolution: ClarifierResolution) -> TurnResult:
        state = turn_input.state
        mode = ChatMode(reason="manual_clarifier")
        decision = RouteDecision(mode=mode, topic=TurnTopic.COMMERCE, decided_by="manual_clarifier_prompt")
        draft = _TurnDraft(
            topic=TurnTopic.COMMERCE,
            topic_rule=None,
            decision=decision,
            text=turn_input.user_text,
            store=turn_input.store,
            copy_override=CopyBlock(lead=resolution.manual_prompt or "", detail="", template_id="manual_clarifier"),
        )
        turn, shipped_mode = await self._assemble_checked(mode, draft)
        patch = build_session_patch(
            state,
            resolution=resolution,
            mode=shipped_mode,
            active_filters=resolution.active_filters,
            relaxed_filters=resolution.relaxed_filters,
            topic_anchor=state.topic_anchor,
            searched=False,
            summary=summarize_dialogue(state.dialogue_summary, turn_input.user_text, turn.narrative_text),
        )
        return TurnResult(turn=turn, patch=patch, decision=decision, retrieval=RetrievalResult.empty())

    async def _referent_turn(self, turn_input: TurnInput, resolution: ClarifierResolution) -> TurnResult:
        """Clarify what "it"/"they" refers to. Retrieval and embeddings are never called here."""
        state = turn_input.state
        options = build_clarification_options(turn_input.store)
        mode = ClarifyMode(facet=None, options=tuple(options), preview_ids=(), forced=True)
        decision = RouteDecision(
            mode=mode,
            topic=TurnTopic.COMMERCE,
            decided_by="unresolved_referent",
            asked_facets=sorted(state.clarifier_history.keys()),
        )
        draft = _TurnDraft(
            topic=TurnTopic.COMMERCE,
            topic_rule=None,
            decision=decision,
            text=turn_input.user_text,
            store=turn_input.store,
            clarification_reason="unresolved_referent",
        )
        turn, shipped_mode = await self._assemble_checked(mode, draft)
        logger.info("pronoun without usable anchor; asked for referent (turn=%s)", turn.turn_id)
        patch = build_session_patch(
            state,
            resolution=resolution,
            mode=shipped_mode,
            active_filters=resolution.active_filters,
            relaxed_filters=resolution.relaxed_filters,
            topic_anchor=state.topic_anchor,
            searched=False,
            summary=summarize_dialogue(state.dialogue_summary, turn_input.user_text, turn.narrative_text),
        )
        return TurnResult(turn=turn, patch=patch, decision=decision, retrieval=RetrievalResult.empty())

    async def _enrich(
        self,
        turn_input: TurnInput,
        state: SessionState,
        mode: Mode,
        draft: _TurnDraft,
    ) -> Optional[FactSheetCache]:
        if mode.kind not in ENRICHED_MODES:
            return None
        product_ids = list(getattr(mode, "product_ids", ()))
        cached = cached_fact_sheets(state.fact_sheet_cache, product_ids, ttl_seconds=self.fact_sheet_ttl_seconds)
        if cached is not None:
            draft.fact_sheets = {sheet.id: sheet for sheet in cached}
            return None

        sheets = await fetch_with_deadline(
            self.fact_sheets,
            turn_input.shop_id,
            product_ids,
            timeout_seconds=self.enrichment_timeout_seconds,
        )
        if not sheets:
            return None
        draft.fact_sheets = {sheet.id: sheet for sheet in sheets}
        return FactSheetCache(product_ids=product_ids, facts=sheets, fetched_at=datetime.now(timezone.utc))

    def _mode_for_correction(self, correction: CoherenceCorrection, draft: _TurnDraft) -> Mode:
        target = correction.corrected_mode
        retrieval = draft.retrieval
        if target == ConversationMode.RECOMMEND:
            return RecommendMode(product_ids=self.router.top_ids(retrieval, self.router.policy.small_set_cap))
        if target == ConversationMode.COMPARE:
            return CompareMode(product_ids=self.router.top_ids(retrieval, COMPARE_MAX))
        if target == ConversationMode.CLARIFY:
            excluded = exhausted_facets(draft.clarifier_history) | set(draft.filters.keys())
            return self.router.clarify_mode(retrieval, draft.decision.facet, excluded=excluded)
        if target == ConversationMode.DEAD_END:
            return DeadEndMode(alternatives=dead_end_alternatives(draft.undo_options))
        return ChatMode(reason="coherence_correction")

    async def _assemble_checked(self, mode: Mode, draft: _TurnDraft) -> Tuple[ChatTurn, Mode]:
        turn = await self._assemble(mode, draft)
        correction = self.gate.check(turn)
        if correction is None:
            return turn, mode

        logger.warning(
            "coherence gate corrected %s -> %s: %s",
            mode.kind.value,
            correction.corrected_mode.value,
            correction.reason,
        )
        info = CoherenceCorrectionInfo(
            from_mode=mode.kind,
            to_mode=correction.corrected_mode,
            reason=correction.reason,
        )
        corrected = self._mode_for_correction(correction, draft)
        rebuilt = await self._assemble(corrected, draft, correction=info)
        if self.gate.check(rebuilt) is None:
            return rebuilt, corrected

        fallback = ChatMode(reason="coherence_fallback")
        logger.warning("rebuilt turn still incoherent; falling back to chat")
        return await self._assemble(fallback, draft, correction=info), fallback

    def _products_for(self, mode: Mode, retrieval: RetrievalResult) -> List[ProductCandidate]:
        if isinstance(mode, (RecommendMode, CompareMode)):
            ids = mode.product_ids
        elif isinstance(mode, ClarifyMode):
            ids = mode.preview_ids
        else:
            return []
        by_id = {product.id: product for product in retrieval.products}
        return [by_id[product_id] for product_id in ids if product_id in by_id]

    def _copy_for(self, mode: Mode, draft: _TurnDraft, products: List[ProductCandidate]) -> CopyBlock:
        if draft.copy_override is not None and isinstance(mode, ChatMode):
            return draft.copy_override
        facet = mode.facet if isinstance(mode, ClarifyMode) else None
        vendor = draft.filters.get("vendor")
        slots = CopySlots(
            count=draft.retrieval.count if isinstance(mode, ClarifyMode) else len(products),
            category=draft.category,
            facet=facet,
            facet_label=describe_facet(facet) if facet else None,
            price_range=draft.filters.get("price_bucket"),
            brands=[vendor] if vendor else [],
            user_query=draft.text,
            primary_category=draft.store.primary_category,
            store_type=draft.store.store_type,
            needs_referent=draft.clarification_reason == "unresolved_referent",
        )
        return self.copy_writer.write(mode.kind, draft.topic, slots)

    async def _assemble(
        self,
        mode: Mode,
        draft: _TurnDraft,
        *,
        correction: Optional[CoherenceCorrectionInfo] = None,
    ) -> ChatTurn:
        products = self._products_for(mode, draft.retrieval)
        copy = self._copy_for(mode, draft, products)
        options: List[ClarifierOption] = list(mode.options) if isinstance(mode, ClarifyMode) else []
        context = BuilderContext(
            mode=mode.kind,
            topic=draft.topic,
            copy=copy,
            products=products,
            clarifier_facet=mode.facet if isinstance(mode, ClarifyMode) else None,
            clarifier_options=options,
            alternatives=list(mode.alternatives) if isinstance(mode, DeadEndMode) else [],
            undo_options=list(draft.undo_options),
            notes=list(draft.notes),
            fact_sheets=dict(draft.fact_sheets),
        )
        segments = await SegmentRegistry.build_segments(segment_types=TurnPlanner.plan(context), context=context)
        decision = draft.decision
        metadata = TurnMetadata(
            mode=mode.kind,
            topic=draft.topic,
            topic_rule=draft.topic_rule,
            decided_by=decision.decided_by if correction is None else "coherence_correction",
            groundability=decision.groundability,
            facet=context.clarifier_facet,
            facet_entropy=round(decision.facet.entropy, 4) if decision.facet and context.clarifier_facet else 0.0,
            product_count=len(products),
            retrieved_count=draft.retrieval.count,
            relaxation_steps=list(draft.relaxation_steps),
            sanitized_filters=list(draft.sanitized),
            chosen_product_id=products[0].id if len(products) == 1 else None,
            clarification_reason=draft.clarification_reason,
            coherence_correction=correction,
            template_id=copy.template_id,
        )
        return ChatTurn(turn_id=f"turn_{uuid.uuid4().hex[:12]}", segments=segments, metadata=metadata)
