"""Confidence-scored, provenance-tracked inference storage per spec.

An external provider proposes :class:`~specfuse.models.InferenceResult`
candidates; the user accepts, rejects or overrides them.  The
:class:`InferenceLedger` reconciles both streams for one spec:

* entries are keyed by ``(field, category)``,
* re-ingesting a key merges the two results.  The higher confidence wins
  and brings its value and reasoning; ties go to the smaller canonical JSON
  encoding of the value, then of the whole result, so the outcome does not
  depend on arrival order,
* accepted and overridden keys are *pinned* and rejected keys are
  *suppressed*; later candidates for either are dropped,
* conflicting user actions come back as :attr:`ActionOutcome.CONFLICT`
  and change nothing.

Each key has its own :class:`threading.Lock`, so different keys are
updated independently; a short structural lock guards the shared tables.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable
from typing import Any, Optional

from specfuse.models import (
    ActionOutcome,
    IngestOutcome,
    InferenceAlternative,
    InferenceCategory,
    InferenceResult,
    LedgerAction,
    LedgerStats,
    Provenance,
    ProvenanceSource,
    UserAction,
)

logger = logging.getLogger(__name__)

Key = tuple[str, InferenceCategory]

USER_OVERRIDE_PROVENANCE = Provenance(
    source=ProvenanceSource.COMMUNITY_KNOWLEDGE,
    confidence=1.0,
    description="User override",
)

# Entries below this confidence trigger a documentation recommendation.
LOW_CONFIDENCE_THRESHOLD = 0.7


def canonical_json(value: Any) -> str:
    """Stable encoding used to compare and order inferred values."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def merge_inferences(existing: InferenceResult, candidate: InferenceResult) -> InferenceResult:
    """Merge two results for the same key.

    Confidence, value, reasoning and evidence of the result do not depend
    on which argument came first.
    """
    winner, loser = _rank(existing, candidate)

    provenance = list(existing.provenance)
    provenance.extend(p for p in candidate.provenance if p not in provenance)

    alternatives: dict[str, InferenceAlternative] = {}
    pool = [*existing.alternatives, *candidate.alternatives]
    if canonical_json(loser.inferred_value) != canonical_json(winner.inferred_value):
        pool.append(
            InferenceAlternative(
                value=loser.inferred_value,
                confidence=loser.confidence,
                reasoning=loser.reasoning,
            )
        )
    winner_value = canonical_json(winner.inferred_value)
    for alternative in pool:
        encoded = canonical_json(alternative.value)
        if encoded == winner_value:
            continue
        current = alternatives.get(encoded)
        if current is None or alternative.confidence > current.confidence:
            alternatives[encoded] = alternative

    return InferenceResult(
        field=winner.field,
        category=winner.category,
        inferred_value=winner.inferred_value,
        confidence=winner.confidence,
        provenance=provenance,
        alternatives=sorted(
            alternatives.values(),
            key=lambda a: (-a.confidence, canonical_json(a.value)),
        ),
        reasoning=winner.reasoning,
        evidence=sorted(set(existing.evidence) | set(candidate.evidence)),
    )


def _rank(a: InferenceResult, b: InferenceResult) -> tuple[InferenceResult, InferenceResult]:
    if a.confidence != b.confidence:
        return (a, b) if a.confidence > b.confidence else (b, a)
    if _tie_key(b) < _tie_key(a):
        return b, a
    return a, b


def _tie_key(result: InferenceResult) -> tuple[str, str]:
    return canonical_json(result.inferred_value), canonical_json(result.model_dump(mode="json"))


class InferenceLedger:
    """Inference state for one spec.

    Args:
        spec_id: Identifier of the spec these inferences describe.
        total_fields: Number of inferable fields, the denominator of
            :attr:`LedgerStats.coverage`.  See
            :func:`specfuse.analysis.inferable_fields`.
    """

    def __init__(self, spec_id: str, total_fields: int = 0):
        self.spec_id = spec_id
        self._entries: dict[Key, InferenceResult] = {}
        self._pinned: set[Key] = set()
        self._suppressed: set[Key] = set()
        self._key_locks: dict[Key, threading.Lock] = {}
        self._state_lock = threading.Lock()
        self._total_fields = max(0, total_fields)
        self._stats = LedgerStats(total_fields=self._total_fields)

    def _lock_for(self, key: Key) -> threading.Lock:
        with self._state_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def _release_lock(self, key: Key) -> None:
        # A suppressed key is never written again, so its lock can go.
        with self._state_lock:
            if key in self._suppressed:
                self._key_locks.pop(key, None)

    # -- ingestion ------------------------------------------------------

    def ingest(self, candidate: InferenceResult) -> IngestOutcome:
        """Insert or merge one candidate; drop it if its key is pinned or suppressed."""
        key = candidate.key
        outcome = IngestOutcome.DROPPED
        with self._lock_for(key):
            with self._state_lock:
                locked = key in self._pinned or key in self._suppressed
                existing = self._entries.get(key)

            if not locked:
                if existing is None:
                    merged, outcome = candidate, IngestOutcome.INSERTED
                else:
                    merged, outcome = merge_inferences(existing, candidate), IngestOutcome.MERGED
                with self._state_lock:
                    self._entries[key] = merged
                    self._refresh_stats()

        if locked:
            logger.debug("Dropping candidate for %s: key is locked by the user", key)
            self._release_lock(key)
        return outcome

    def ingest_many(self, candidates: Iterable[InferenceResult]) -> list[IngestOutcome]:
        return [self.ingest(c) for c in candidates]

    # -- user actions ---------------------------------------------------

    def apply(self, action: UserAction) -> ActionOutcome:
        return self.apply_action(action.field, action.category, action.action, action.value)

    def apply_action(
        self,
        field: str,
        category: InferenceCategory,
        action: LedgerAction,
        value: Any = None,
    ) -> ActionOutcome:
        """Apply a user decision to the entry keyed ``(field, category)``.

        * ``accept`` sets confidence to 1.0 and pins the key.  An unknown
          key yields ``MISSING``.
        * ``reject`` removes the entry and suppresses the key, so later
          candidates are dropped.
        * ``override`` replaces the value, sets confidence to 1.0, appends
          the user provenance once and pins the key.  An unknown key gets a
          new entry.

        Repeating an action is a no-op (``UNCHANGED``).  Rejecting a pinned
        key, or accepting/overriding a suppressed one, is a ``CONFLICT``.
        """
        key: Key = (field, InferenceCategory(category))
        action = LedgerAction(action)
        with self._lock_for(key):
            with self._state_lock:
                existing = self._entries.get(key)
                pinned = key in self._pinned
                suppressed = key in self._suppressed

            if action == LedgerAction.ACCEPT:
                outcome, entry = self._accept(existing, pinned, suppressed)
            elif action == LedgerAction.REJECT:
                outcome, entry = self._reject(pinned, suppressed)
            else:
                outcome, entry = self._override(key, existing, pinned, suppressed, value)

            if outcome == ActionOutcome.APPLIED:
                with self._state_lock:
                    if action == LedgerAction.REJECT:
                        self._entries.pop(key, None)
                        self._suppressed.add(key)
                    else:
                        self._entries[key] = entry  # type: ignore[assignment]
                        self._pinned.add(key)
                    self._refresh_stats()
            elif outcome == ActionOutcome.CONFLICT:
                logger.warning("Ignoring %s on %s: conflicts with an earlier decision", action.value, key)
        self._release_lock(key)
        return outcome

    @staticmethod
    def _accept(
        existing: Optional[InferenceResult], pinned: bool, suppressed: bool
    ) -> tuple[ActionOutcome, Optional[InferenceResult]]:
        if suppressed:
            return ActionOutcome.CONFLICT, None
        if existing is None:
            return ActionOutcome.MISSING, None
        if pinned and existing.confidence == 1.0:
            return ActionOutcome.UNCHANGED, None
        return ActionOutcome.APPLIED, existing.model_copy(update={"confidence": 1.0})

    @staticmethod
    def _reject(pinned: bool, suppressed: bool) -> tuple[ActionOutcome, None]:
        if suppressed:
            return ActionOutcome.UNCHANGED, None
        if pinned:
            return ActionOutcome.CONFLICT, None
        return ActionOutcome.APPLIED, None

    @staticmethod
    def _override(
        key: Key,
        existing: Optional[InferenceResult],
        pinned: bool,
        suppressed: bool,
        value: Any,
    ) -> tuple[ActionOutcome, Optional[InferenceResult]]:
        if suppressed:
            return ActionOutcome.CONFLICT, None
        if existing is None:
            return ActionOutcome.APPLIED, InferenceResult(
                field=key[0],
                category=key[1],
                inferred_value=value,
                confidence=1.0,
                provenance=[USER_OVERRIDE_PROVENANCE],
                reasoning="Set by user override",
            )
        if (
            pinned
            and existing.confidence == 1.0
            and USER_OVERRIDE_PROVENANCE in existing.provenance
            and canonical_json(existing.inferred_value) == canonical_json(value)
        ):
            return ActionOutcome.UNCHANGED, None
        provenance = list(existing.provenance)
        if USER_OVERRIDE_PROVENANCE not in provenance:
            provenance.append(USER_OVERRIDE_PROVENANCE)
        return ActionOutcome.APPLIED, existing.model_copy(
            update={
                "inferred_value": value,
                "confidence": 1.0,
                "provenance": provenance,
                "reasoning": "Set by user override",
            }
        )

    # -- queries --------------------------------------------------------

    def get(self, field: str, category: InferenceCategory) -> Optional[InferenceResult]:
        with self._state_lock:
            return self._entries.get((field, InferenceCategory(category)))

    def is_pinned(self, field: str, category: InferenceCategory) -> bool:
        with self._state_lock:
            return (field, InferenceCategory(category)) in self._pinned

    def is_suppressed(self, field: str, category: InferenceCategory) -> bool:
        with self._state_lock:
            return (field, InferenceCategory(category)) in self._suppressed

    def set_total_fields(self, total_fields: int) -> None:
        with self._state_lock:
            self._total_fields = max(0, total_fields)
            self._refresh_stats()

    def stats(self) -> LedgerStats:
        with self._state_lock:
            return self._stats

    def snapshot(self) -> list[InferenceResult]:
        """All entries, sorted by ``(field, category)``."""
        with self._state_lock:
            return [self._entries[k] for k in sorted(self._entries, key=_sort_key)]

    def recommendations(self) -> list[str]:
        """Follow-up hints derived from the current entries."""
        entries = self.snapshot()
        recommendations: list[str] = []
        if any(e.confidence < LOW_CONFIDENCE_THRESHOLD for e in entries):
            recommendations.append(
                "Consider adding explicit documentation for inferred patterns to improve confidence"
            )
        categories = {e.category for e in entries}
        if InferenceCategory.AUTH not in categories:
            recommendations.append("Add authentication documentation to improve API security clarity")
        if InferenceCategory.PAGINATION not in categories:
            recommendations.append("Document pagination patterns for list endpoints")
        if InferenceCategory.RATE_LIMIT not in categories:
            recommendations.append("Consider implementing rate limiting for production use")
        return recommendations

    def export(self) -> dict[str, Any]:
        """Serialise the ledger state for transport."""
        entries = self.snapshot()
        with self._state_lock:
            pinned = sorted(self._pinned, key=_sort_key)
            suppressed = sorted(self._suppressed, key=_sort_key)
            stats = self._stats
        return {
            "specId": self.spec_id,
            "inferences": [e.model_dump(mode="json", by_alias=True) for e in entries],
            "pinned": [{"field": f, "category": c.value} for f, c in pinned],
            "suppressed": [{"field": f, "category": c.value} for f, c in suppressed],
            "stats": stats.model_dump(mode="json", by_alias=True),
        }

    def _refresh_stats(self) -> None:
        # Caller holds the structural lock.
        entries = list(self._entries.values())
        fields = {field for field, _ in self._entries}
        coverage = 0.0
        if self._total_fields > 0:
            coverage = min(1.0, len(fields) / self._total_fields)
        confidence = sum(e.confidence for e in entries) / len(entries) if entries else 0.0
        self._stats = LedgerStats(
            coverage=coverage,
            confidence=confidence,
            total_fields=self._total_fields,
            inferred_fields=len(fields),
            entries=len(entries),
            pinned=len(self._pinned),
            suppressed=len(self._suppressed),
        )


def _sort_key(key: Key) -> tuple[str, str]:
    return key[0], key[1].value


class LedgerRegistry:
    """Per-spec ledgers, created on first use.

    Pass one registry around explicitly; there is no module-level instance.
    """

    def __init__(self) -> None:
        self._ledgers: dict[str, InferenceLedger] = {}
        self._lock = threading.Lock()

    def get_or_create(self, spec_id: str, total_fields: Optional[int] = None) -> InferenceLedger:
        """Return the ledger for *spec_id*, creating it if needed.

        *total_fields*, when given, also updates an existing ledger.
        """
        with self._lock:
            ledger = self._ledgers.get(spec_id)
            if ledger is None:
                ledger = self._ledgers[spec_id] = InferenceLedger(spec_id, total_fields or 0)
                logger.debug("Created inference ledger for spec '%s'", spec_id)
                return ledger
        if total_fields is not None:
            ledger.set_total_fields(total_fields)
        return ledger

    def get(self, spec_id: str) -> Optional[InferenceLedger]:
        with self._lock:
            return self._ledgers.get(spec_id)

    def drop(self, spec_id: str) -> bool:
        """Forget the ledger for *spec_id*; return whether one existed."""
        with self._lock:
            return self._ledgers.pop(spec_id, None) is not None

    def spec_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._ledgers)

    def __contains__(self, spec_id: object) -> bool:
        with self._lock:
            return spec_id in self._ledgers

    def __len__(self) -> int:
        with self._lock:
            return len(self._ledgers)
