"""specfuse -- Normalize Postman, GraphQL and OpenAPI descriptions into one model.

Each supported format is parsed into a native tree by an adapter, then
converted into a single canonical :class:`~specfuse.models.ParsedSpec` whose
recursive schemas are resolved with cycle-safe references.  On top of the
canonical model sit a validator, a structure-aware text chunker for
retrieval pipelines, and an inference ledger that merges heuristic guesses
with user decisions.

Typical workflow::

    specfuse convert collection.json > spec.json
    specfuse validate schema.graphql
    specfuse chunk openapi.yaml --chunk-size 800 --overlap 100

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration with precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting with Rich support.
    parser: Format adapters, resolver and converter.
    validator: Structural checks on canonical specs and raw documents.
    chunker: Overlapping text chunks with structural boundaries.
    inference: The inference ledger.
    analysis: Gap analysis feeding inference coverage.
"""

__version__ = "0.1.0"
