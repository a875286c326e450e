"""Pipeline entry point: crisis gate, routing, specialist, persistence gate."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from northstar.libs.agents import AgentContext, AgentRegistry, AgentReply
from northstar.libs.llm_router import AllProvidersFailedError, ModelRouter, TaskClass
from northstar.libs.memory import MemoryStore, MemoryStoreError
from northstar.libs.pipeline import PersistenceGate
from northstar.libs.routing import TopicClassifier, is_valid_topic
from northstar.libs.safety import CrisisGate, format_crisis_response
from northstar.libs.schemas.memory import UserMemory

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 8000
UNAVAILABLE_MESSAGE = "AI temporarily unavailable"
FORCED_FAILURE_REASON = "FORCE_PROVIDER_FAILURE enabled"


def _failure(error: str, message: str, **extra: Any) -> Dict[str, Any]:
    return {"ok": False, "error": error, "message": message, **extra}


def last_active_topic(memory: UserMemory) -> str | None:
    """Topic of the most recent stored turn, if any."""

    latest: tuple[Any, str] | None = None
    for topic, slot in memory.pillars.items():
        if not slot.turns:
            continue
        stamp = slot.turns[-1].timestamp
        if latest is None or stamp > latest[0]:
            latest = (stamp, topic)
    return latest[1] if latest else None


def _hint_history(hints: Mapping[str, Any] | None) -> List[Dict[str, str]] | None:
    if not hints:
        return None
    raw = hints.get("history")
    if not isinstance(raw, list):
        return None
    history: List[Dict[str, str]] = []
    for entry in raw:
        if isinstance(entry, Mapping) and entry.get("role") and entry.get("content"):
            history.append({"role": str(entry["role"]), "content": str(entry["content"])})
    return history


def _hint_task_class(hints: Mapping[str, Any] | None) -> TaskClass | None:
    if not hints or not hints.get("task_class"):
        return None
    try:
        return TaskClass(hints["task_class"])
    except ValueError:
        logger.warning("unknown_task_class_hint", extra={"task_class": hints["task_class"]})
        return None


class Orchestrator:
    """Runs one user turn end to end.

    The crisis gate runs before anything touches the classifier, the model
    router or the memory store. The user's memory lock is held from load to
    save so turns for one user are serialised.
    """

    def __init__(
        self,
        *,
        crisis_gate: CrisisGate,
        classifier: TopicClassifier,
        registry: AgentRegistry,
        store: MemoryStore,
        gate: PersistenceGate | None = None,
        router: ModelRouter | None = None,
        force_provider_failure: bool = False,
    ) -> None:
        self.router = router
        self.crisis_gate = crisis_gate
        self.classifier = classifier
        self.registry = registry
        self.store = store
        self.gate = gate or PersistenceGate(store)
        self.force_provider_failure = force_provider_failure

    async def run(
        self,
        user_id: str,
        message: str,
        topic: str | None = None,
        conversation_hints: Mapping[str, Any] | None = None,
    ) -> Dict[str, Any]:
        if not isinstance(user_id, str) or not user_id.strip():
            return _failure("validation", "user_id is required")
        if not isinstance(message, str) or not message.strip():
            return _failure("validation", "message must be a non-empty string")
        if len(message) > MAX_MESSAGE_CHARS:
            return _failure("validation", f"message exceeds {MAX_MESSAGE_CHARS} characters")
        if topic is not None and not is_valid_topic(topic):
            return _failure("validation", f"unknown topic '{topic}'")

        try:
            verdict = await self.crisis_gate.check(message)
            if verdict.is_crisis:
                response = format_crisis_response(verdict) or {}
                response["meta"] = {"crisis_method": verdict.method, "confidence": verdict.confidence}
                return response

            async with self.store.lock(user_id):
                return await self._run_locked(user_id, message, topic, conversation_hints, verdict.method)
        except MemoryStoreError as exc:
            logger.error("memory_load_failed", extra={"user_id": user_id, "error": str(exc)})
            return _failure(
                "memory_unavailable",
                "I couldn't load your coaching history right now, please retry in a moment.",
            )
        except Exception:
            logger.exception("orchestrator_failed", extra={"user_id": user_id})
            return _failure("internal", UNAVAILABLE_MESSAGE)

    async def _run_locked(
        self,
        user_id: str,
        message: str,
        topic: str | None,
        hints: Mapping[str, Any] | None,
        crisis_method: str,
    ) -> Dict[str, Any]:
        memory = await self.store.load(user_id)
        classification = await self.classifier.classify(
            message,
            memory,
            last_active_topic(memory),
            explicit_topic=topic,
        )
        agent = self.registry.get(classification.topic)
        context = AgentContext(
            user_id=user_id,
            topic=classification.topic,
            memory=memory,
            history=_hint_history(hints),
            task_class=_hint_task_class(hints),
        )

        reply = await self._generate(agent, context, message)
        persisted = await self.gate.persist(
            memory,
            classification.topic,
            message,
            reply.text,
            agent_name=agent.name,
        )

        meta: Dict[str, Any] = {
            "classification": classification.as_dict(),
            "save_summary": persisted.save_summary.as_dict(),
            "fallback_used": reply.fallback_used,
            "degraded": reply.degraded,
            "model": reply.model,
            "agent": agent.name,
            "crisis_method": crisis_method,
            **reply.meta,
        }
        base = {
            "text": persisted.text,
            "topic": classification.topic,
            "provider_used": reply.provider_used,
            "meta": meta,
        }
        if reply.degraded:
            return {**_failure("providers_unavailable", UNAVAILABLE_MESSAGE), **base}
        if not persisted.ok:
            return {**_failure("persistence_failed", persisted.text), **base}
        return {"ok": True, **base}

    async def _generate(self, agent: Any, context: AgentContext, message: str) -> AgentReply:
        if self.force_provider_failure:
            logger.warning("provider_failure_forced", extra={"topic": context.topic})
            return agent.degraded_reply(FORCED_FAILURE_REASON)
        try:
            return await agent.handle(context, message)
        except AllProvidersFailedError as exc:
            logger.error(
                "all_providers_failed",
                extra={"topic": context.topic, "failures": exc.failures},
            )
            return agent.degraded_reply(str(exc))


__all__ = ["Orchestrator", "last_active_topic"]
