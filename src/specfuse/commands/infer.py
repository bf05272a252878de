"""Infer commands -- merge inference candidates and user decisions.

``specfuse infer merge`` builds an :class:`~specfuse.inference.InferenceLedger`
for one source document, ingests candidate inferences from a JSON file,
optionally applies user actions, and prints the exported ledger.  The
coverage denominator defaults to the number of gap fields the document
leaves undocumented (see :func:`~specfuse.analysis.inferable_fields`).

Candidate file: a JSON array of inference results (camelCase or snake_case
keys).  Actions file: a JSON array of ``{"field", "category", "action",
"value"}`` objects.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import TypeAdapter, ValidationError

from specfuse.commands.common import fail, load_spec, read_json_file
from specfuse.exceptions import InvalidUsageError, SpecfuseError
from specfuse.models import ActionOutcome, InferenceResult, SpecFormat, UserAction
from specfuse.output import emit, info, warning


infer_app = typer.Typer(no_args_is_help=True)

_CANDIDATES = TypeAdapter(list[InferenceResult])
_ACTIONS = TypeAdapter(list[UserAction])


def _validated(adapter: TypeAdapter[Any], data: Any, path: Path) -> Any:
    try:
        return adapter.validate_python(data)
    except ValidationError as exc:
        raise InvalidUsageError(f"Invalid entries in {path}: {exc}") from exc


@infer_app.command("merge")
def infer_merge(
    source: str = typer.Argument(help="File, URL, or '-' for stdin."),
    candidates: Path = typer.Option(
        ..., "--candidates", "-c", help="JSON array of inference candidates."
    ),
    actions: Optional[Path] = typer.Option(
        None, "--actions", "-a", help="JSON array of user actions applied after merging."
    ),
    total: Optional[int] = typer.Option(
        None, "--total", "-t", help="Coverage denominator (defaults to undocumented gap fields)."
    ),
    fmt: Optional[SpecFormat] = typer.Option(
        None, "--format", "-f", help="Source format (detected when omitted)."
    ),
) -> None:
    """Merge candidates into the ledger for SOURCE and print its state.

    Example::

        specfuse infer merge openapi.yaml --candidates guesses.json
        specfuse infer merge api.json -c guesses.json -a decisions.json --total 12
    """
    from specfuse.analysis import inferable_fields
    from specfuse.inference import LedgerRegistry

    try:
        if total is not None and total < 0:
            raise InvalidUsageError(f"--total must not be negative (got {total})")
        spec = load_spec(source, fmt)
        results = _validated(_CANDIDATES, read_json_file(candidates, "Candidates"), candidates)
        decisions = (
            _validated(_ACTIONS, read_json_file(actions, "Actions"), actions)
            if actions is not None
            else []
        )
    except SpecfuseError as exc:
        raise fail(exc) from None

    registry = LedgerRegistry()
    ledger = registry.get_or_create(
        source, total_fields=total if total is not None else len(inferable_fields(spec))
    )

    ingested = Counter(outcome.value for outcome in ledger.ingest_many(results))
    info(", ".join(f"{count} {name}" for name, count in sorted(ingested.items())) or "No candidates")

    for decision in decisions:
        outcome = ledger.apply(decision)
        if outcome in (ActionOutcome.CONFLICT, ActionOutcome.MISSING):
            warning(
                f"{decision.action.value} on {decision.field} ({decision.category.value}): {outcome.value}"
            )

    exported = ledger.export()
    exported["recommendations"] = ledger.recommendations()
    emit(exported)
