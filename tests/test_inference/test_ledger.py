"""Tests for specfuse.inference.ledger."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pytest

from specfuse.inference import InferenceLedger, LedgerRegistry, canonical_json, merge_inferences
from specfuse.inference.ledger import USER_OVERRIDE_PROVENANCE
from specfuse.models import (
    ActionOutcome,
    IngestOutcome,
    InferenceAlternative,
    InferenceCategory,
    InferenceResult,
    LedgerAction,
    Provenance,
    ProvenanceSource,
    UserAction,
)

AUTH = InferenceCategory.AUTH
PAGINATION = InferenceCategory.PAGINATION


def make_result(
    value: Any,
    confidence: float,
    field: str = "authentication",
    category: InferenceCategory = AUTH,
    source: ProvenanceSource = ProvenanceSource.PATTERN_ANALYSIS,
    evidence: list[str] | None = None,
    reasoning: str = "",
) -> InferenceResult:
    return InferenceResult(
        field=field,
        category=category,
        inferred_value=value,
        confidence=confidence,
        provenance=[Provenance(source=source, confidence=confidence, description=f"from {source.value}")],
        evidence=evidence or [],
        reasoning=reasoning,
    )


# ---------------------------------------------------------------------------
# merge_inferences
# ---------------------------------------------------------------------------


class TestMerge:
    """Merging is order independent for value, confidence and evidence."""

    def test_higher_confidence_wins(self) -> None:
        low = make_result("apiKey", 0.4, evidence=["header X-API-Key"], reasoning="header seen")
        high = make_result("bearer", 0.9, evidence=["401 responses"], reasoning="token hints")

        for merged in (merge_inferences(low, high), merge_inferences(high, low)):
            assert merged.inferred_value == "bearer"
            assert merged.confidence == 0.9
            assert merged.reasoning == "token hints"
            assert merged.evidence == ["401 responses", "header X-API-Key"]

    def test_loser_becomes_alternative(self) -> None:
        merged = merge_inferences(make_result("apiKey", 0.4), make_result("bearer", 0.9))
        assert [(a.value, a.confidence) for a in merged.alternatives] == [("apiKey", 0.4)]

    def test_tie_broken_by_canonical_value(self) -> None:
        a = make_result({"type": "oauth2"}, 0.6, reasoning="a")
        b = make_result({"type": "bearer"}, 0.6, reasoning="b")
        assert merge_inferences(a, b).inferred_value == {"type": "bearer"}
        assert merge_inferences(b, a).inferred_value == {"type": "bearer"}
        assert merge_inferences(a, b).reasoning == merge_inferences(b, a).reasoning == "b"

    def test_equal_value_and_confidence_tie_broken_on_whole_result(self) -> None:
        a = make_result("bearer", 0.6, reasoning="Authorization header in examples")
        b = make_result("bearer", 0.6, reasoning="401 responses")
        assert merge_inferences(a, b).reasoning == merge_inferences(b, a).reasoning
        assert merge_inferences(a, b).reasoning == "401 responses"

    def test_provenance_union(self) -> None:
        first = make_result("bearer", 0.5, source=ProvenanceSource.PATTERN_ANALYSIS)
        second = make_result("bearer", 0.7, source=ProvenanceSource.SIMILAR_APIS)
        merged = merge_inferences(first, second)
        assert {p.source for p in merged.provenance} == {
            ProvenanceSource.PATTERN_ANALYSIS,
            ProvenanceSource.SIMILAR_APIS,
        }
        assert merged.alternatives == []

    def test_alternatives_deduplicated_by_value(self) -> None:
        first = make_result("bearer", 0.9).model_copy(
            update={"alternatives": [InferenceAlternative(value="basic", confidence=0.2)]}
        )
        second = make_result("basic", 0.3)
        merged = merge_inferences(first, second)
        assert [(a.value, a.confidence) for a in merged.alternatives] == [("basic", 0.3)]

    def test_canonical_json_is_key_order_stable(self) -> None:
        assert canonical_json({"b": 1, "a": [1, 2]}) == canonical_json({"a": [1, 2], "b": 1})


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class TestIngest:
    def test_insert_then_merge(self) -> None:
        ledger = InferenceLedger("petstore")
        assert ledger.ingest(make_result("apiKey", 0.4)) == IngestOutcome.INSERTED
        assert ledger.ingest(make_result("bearer", 0.8)) == IngestOutcome.MERGED
        entry = ledger.get("authentication", AUTH)
        assert entry is not None
        assert entry.inferred_value == "bearer"

    def test_keys_include_category(self) -> None:
        ledger = InferenceLedger("petstore")
        ledger.ingest(make_result("cursor", 0.6, field="list_pets", category=PAGINATION))
        ledger.ingest(make_result("bearer", 0.6, field="list_pets", category=AUTH))
        assert len(ledger.snapshot()) == 2

    def test_arrival_order_does_not_change_result(self) -> None:
        candidates = [
            make_result("apiKey", 0.5, evidence=["a"]),
            make_result("bearer", 0.8, evidence=["b"]),
            make_result("basic", 0.8, evidence=["c"]),
        ]
        forward = InferenceLedger("s")
        backward = InferenceLedger("s")
        forward.ingest_many(candidates)
        backward.ingest_many(reversed(candidates))

        f = forward.get("authentication", AUTH)
        b = backward.get("authentication", AUTH)
        assert f is not None and b is not None
        assert (f.inferred_value, f.confidence, f.evidence) == (b.inferred_value, b.confidence, b.evidence)
        assert f.inferred_value == "basic"

    def test_pinned_key_drops_candidates(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        ledger.apply_action("authentication", AUTH, LedgerAction.ACCEPT)
        assert ledger.ingest(make_result("apiKey", 0.99)) == IngestOutcome.DROPPED
        entry = ledger.get("authentication", AUTH)
        assert entry is not None
        assert entry.inferred_value == "bearer"

    def test_suppressed_key_drops_candidates(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        ledger.apply_action("authentication", AUTH, LedgerAction.REJECT)
        assert ledger.ingest(make_result("bearer", 0.9)) == IngestOutcome.DROPPED
        assert ledger.get("authentication", AUTH) is None

    def test_concurrent_ingest_of_distinct_keys(self) -> None:
        ledger = InferenceLedger("s", total_fields=50)
        candidates = [make_result(i, 0.5, field=f"field{i}") for i in range(50)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(ledger.ingest, candidates))
        assert outcomes.count(IngestOutcome.INSERTED) == 50
        assert ledger.stats().coverage == 1.0

    def test_concurrent_ingest_of_one_key(self) -> None:
        ledger = InferenceLedger("s")
        candidates = [make_result(f"v{i}", i / 100) for i in range(1, 41)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(ledger.ingest, candidates))
        entry = ledger.get("authentication", AUTH)
        assert entry is not None
        assert entry.confidence == 0.4
        assert entry.inferred_value == "v40"


# ---------------------------------------------------------------------------
# User actions
# ---------------------------------------------------------------------------


class TestActions:
    def test_accept_pins_and_is_idempotent(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        assert ledger.apply_action("authentication", AUTH, LedgerAction.ACCEPT) == ActionOutcome.APPLIED
        assert ledger.apply_action("authentication", AUTH, LedgerAction.ACCEPT) == ActionOutcome.UNCHANGED
        entry = ledger.get("authentication", AUTH)
        assert entry is not None
        assert entry.confidence == 1.0
        assert ledger.is_pinned("authentication", AUTH)

    def test_accept_unknown_key(self) -> None:
        assert InferenceLedger("s").apply_action("x", AUTH, "accept") == ActionOutcome.MISSING

    def test_reject_then_reject_again(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        assert ledger.apply_action("authentication", AUTH, LedgerAction.REJECT) == ActionOutcome.APPLIED
        assert ledger.apply_action("authentication", AUTH, LedgerAction.REJECT) == ActionOutcome.UNCHANGED
        assert ledger.is_suppressed("authentication", AUTH)

    def test_rejected_key_releases_its_lock(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        ledger.ingest(make_result("cursor", 0.5, field="pagination", category=PAGINATION))
        ledger.apply_action("authentication", AUTH, LedgerAction.REJECT)
        assert ledger.ingest(make_result("basic", 0.9)) == IngestOutcome.DROPPED
        assert set(ledger._key_locks) == {("pagination", PAGINATION)}

    def test_reject_pinned_is_conflict(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        ledger.apply_action("authentication", AUTH, LedgerAction.ACCEPT)
        assert ledger.apply_action("authentication", AUTH, LedgerAction.REJECT) == ActionOutcome.CONFLICT
        assert ledger.get("authentication", AUTH) is not None
        assert not ledger.is_suppressed("authentication", AUTH)

    def test_accept_or_override_suppressed_is_conflict(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        ledger.apply_action("authentication", AUTH, LedgerAction.REJECT)
        assert ledger.apply_action("authentication", AUTH, LedgerAction.ACCEPT) == ActionOutcome.CONFLICT
        assert (
            ledger.apply_action("authentication", AUTH, LedgerAction.OVERRIDE, "basic")
            == ActionOutcome.CONFLICT
        )

    def test_override_existing(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        outcome = ledger.apply_action("authentication", AUTH, LedgerAction.OVERRIDE, {"type": "oauth2"})
        assert outcome == ActionOutcome.APPLIED
        entry = ledger.get("authentication", AUTH)
        assert entry is not None
        assert entry.inferred_value == {"type": "oauth2"}
        assert entry.confidence == 1.0
        assert entry.provenance[-1] == USER_OVERRIDE_PROVENANCE
        assert ledger.is_pinned("authentication", AUTH)

    def test_override_twice_with_same_value(self) -> None:
        ledger = InferenceLedger("s")
        first = ledger.apply_action("rate_limiting", InferenceCategory.RATE_LIMIT, "override", 100)
        second = ledger.apply_action("rate_limiting", InferenceCategory.RATE_LIMIT, "override", 100)
        assert (first, second) == (ActionOutcome.APPLIED, ActionOutcome.UNCHANGED)
        entry = ledger.get("rate_limiting", InferenceCategory.RATE_LIMIT)
        assert entry is not None
        assert entry.provenance.count(USER_OVERRIDE_PROVENANCE) == 1

    def test_override_after_accept_changes_value(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        ledger.apply_action("authentication", AUTH, LedgerAction.ACCEPT)
        outcome = ledger.apply_action("authentication", AUTH, LedgerAction.OVERRIDE, "basic")
        assert outcome == ActionOutcome.APPLIED
        assert ledger.get("authentication", AUTH).inferred_value == "basic"  # type: ignore[union-attr]

    def test_apply_user_action_model(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.6))
        action = UserAction.model_validate({"field": "authentication", "category": "auth", "action": "accept"})
        assert ledger.apply(action) == ActionOutcome.APPLIED

    def test_unknown_action_rejected(self) -> None:
        with pytest.raises(ValueError):
            InferenceLedger("s").apply_action("x", AUTH, "approve")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Stats, export and recommendations
# ---------------------------------------------------------------------------


class TestStats:
    def test_coverage_and_confidence(self) -> None:
        ledger = InferenceLedger("s", total_fields=4)
        ledger.ingest(make_result("bearer", 0.8, field="authentication"))
        ledger.ingest(make_result("cursor", 0.4, field="pagination", category=PAGINATION))
        stats = ledger.stats()
        assert stats.coverage == 0.5
        assert stats.confidence == pytest.approx(0.6)
        assert (stats.inferred_fields, stats.entries) == (2, 2)

    def test_coverage_without_total_is_zero(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result("bearer", 0.8))
        assert ledger.stats().coverage == 0.0

    def test_coverage_capped(self) -> None:
        ledger = InferenceLedger("s", total_fields=1)
        ledger.ingest(make_result("a", 0.5, field="one"))
        ledger.ingest(make_result("b", 0.5, field="two"))
        assert ledger.stats().coverage == 1.0

    def test_counts_follow_actions(self) -> None:
        ledger = InferenceLedger("s", total_fields=2)
        ledger.ingest(make_result("bearer", 0.5))
        ledger.ingest(make_result("cursor", 0.5, field="pagination", category=PAGINATION))
        ledger.apply_action("authentication", AUTH, "accept")
        ledger.apply_action("pagination", PAGINATION, "reject")
        stats = ledger.stats()
        assert (stats.pinned, stats.suppressed, stats.entries) == (1, 1, 1)
        assert stats.coverage == 0.5

    def test_export_shape(self) -> None:
        ledger = InferenceLedger("petstore", total_fields=3)
        ledger.ingest(make_result("bearer", 0.5))
        ledger.apply_action("authentication", AUTH, "accept")
        data = ledger.export()
        assert data["specId"] == "petstore"
        assert data["inferences"][0]["inferredValue"] == "bearer"
        assert data["pinned"] == [{"field": "authentication", "category": "auth"}]
        assert data["suppressed"] == []
        assert data["stats"]["totalFields"] == 3

    def test_snapshot_sorted(self) -> None:
        ledger = InferenceLedger("s")
        ledger.ingest(make_result(1, 0.5, field="zeta"))
        ledger.ingest(make_result(2, 0.5, field="alpha"))
        assert [e.field for e in ledger.snapshot()] == ["alpha", "zeta"]

    def test_recommendations(self) -> None:
        ledger = InferenceLedger("s")
        assert len(ledger.recommendations()) == 3
        ledger.ingest(make_result("bearer", 0.5))
        recommendations = ledger.recommendations()
        assert recommendations[0].startswith("Consider adding explicit documentation")
        assert not any("authentication" in r for r in recommendations)


class TestRegistry:
    def test_get_or_create_is_stable(self) -> None:
        registry = LedgerRegistry()
        ledger = registry.get_or_create("a", total_fields=2)
        assert registry.get_or_create("a") is ledger
        assert "a" in registry
        assert len(registry) == 1

    def test_total_fields_updated(self) -> None:
        registry = LedgerRegistry()
        registry.get_or_create("a", total_fields=2)
        assert registry.get_or_create("a", total_fields=5).stats().total_fields == 5

    def test_ledgers_isolated(self) -> None:
        registry = LedgerRegistry()
        registry.get_or_create("a").ingest(make_result("bearer", 0.5))
        assert registry.get_or_create("b").snapshot() == []
        assert registry.spec_ids() == ["a", "b"]

    def test_drop(self) -> None:
        registry = LedgerRegistry()
        registry.get_or_create("a")
        assert registry.drop("a")
        assert not registry.drop("a")
        assert registry.get("a") is None
