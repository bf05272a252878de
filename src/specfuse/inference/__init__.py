"""Inference ledger: merge provider candidates with user decisions.

See :mod:`specfuse.inference.ledger`.
"""

from specfuse.inference.ledger import (
    InferenceLedger,
    LedgerRegistry,
    canonical_json,
    merge_inferences,
)

__all__ = ["InferenceLedger", "LedgerRegistry", "canonical_json", "merge_inferences"]
