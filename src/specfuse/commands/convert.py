"""Convert command -- normalize API descriptions into canonical JSON.

Given several sources, each is converted on its own and the results are
merged with :func:`~specfuse.parser.converter.merge_specs` using the
configured ``converter.model_collision`` policy.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from specfuse.commands.common import fail, load_spec
from specfuse.exceptions import SpecfuseError
from specfuse.models import SpecFormat
from specfuse.output import emit, info


def convert_command(
    sources: list[str] = typer.Argument(
        help="Files, URLs, or '-' for stdin. Several sources are merged."
    ),
    fmt: Optional[SpecFormat] = typer.Option(
        None, "--format", "-f", help="Source format (detected when omitted)."
    ),
    env_file: Optional[Path] = typer.Option(
        None, "--env", "-e", help="Postman environment JSON for {{variable}} substitution."
    ),
) -> None:
    """Convert Postman, GraphQL or OpenAPI documents to the canonical model.

    Example::

        specfuse convert collection.json
        specfuse convert schema.graphql openapi.yaml --json
    """
    from specfuse.config import resolve_config
    from specfuse.parser import merge_specs

    try:
        config = resolve_config()
        specs = [load_spec(source, fmt, env_file, config.converter) for source in sources]
    except SpecfuseError as exc:
        raise fail(exc) from None

    if len(specs) == 1:
        spec = specs[0]
    else:
        spec = merge_specs(specs, collision=config.converter.model_collision)
        info(f"Merged {len(specs)} documents")

    info(f"{spec.title}: {len(spec.endpoints)} endpoints, {len(spec.models)} models")
    emit(spec.to_dict())
