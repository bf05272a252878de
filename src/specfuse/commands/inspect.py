"""Inspect commands -- examine a normalized spec.

Provides the ``specfuse inspect`` sub-command group with read-only views of
a converted document: endpoints, models, security schemes, general info,
and the documentation gap analysis that drives inference coverage.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from specfuse.commands.common import fail, load_spec
from specfuse.exceptions import SpecfuseError
from specfuse.models import ParsedSpec, SpecFormat
from specfuse.output import emit, get_output, info


inspect_app = typer.Typer(no_args_is_help=True)

_SOURCE_ARG = typer.Argument(help="File, URL, or '-' for stdin.")
_FORMAT_OPT = typer.Option(None, "--format", "-f", help="Source format (detected when omitted).")
_ENV_OPT = typer.Option(
    None, "--env", "-e", help="Postman environment JSON for {{variable}} substitution."
)


def _spec(source: str, fmt: Optional[SpecFormat], env_file: Optional[Path]) -> ParsedSpec:
    try:
        return load_spec(source, fmt, env_file)
    except SpecfuseError as exc:
        raise fail(exc) from None


@inspect_app.command("endpoints")
def inspect_endpoints(
    source: str = _SOURCE_ARG,
    fmt: Optional[SpecFormat] = _FORMAT_OPT,
    env_file: Optional[Path] = _ENV_OPT,
) -> None:
    """List endpoints with method, path, name, security and tags.

    Example::

        specfuse inspect endpoints collection.json
    """
    spec = _spec(source, fmt, env_file)

    rows = [
        [
            endpoint.method,
            endpoint.path,
            endpoint.name or "-",
            ", ".join(endpoint.security) or "-",
            ", ".join(endpoint.tags) or "-",
            "Yes" if endpoint.deprecated else "",
        ]
        for endpoint in spec.endpoints
    ]
    get_output().print_table(
        ["Method", "Path", "Name", "Security", "Tags", "Deprecated"],
        rows,
        title=f"{spec.title} -- Endpoints ({len(rows)})",
    )


@inspect_app.command("models")
def inspect_models(
    source: str = _SOURCE_ARG,
    fmt: Optional[SpecFormat] = _FORMAT_OPT,
    env_file: Optional[Path] = _ENV_OPT,
) -> None:
    """List named models with their kind and first few properties."""
    spec = _spec(source, fmt, env_file)
    if not spec.models:
        info("No models defined in this spec.")
        return

    rows: list[list[str]] = []
    for name, model in spec.models.items():
        prop_names = list(model.schema_.properties)
        props = ", ".join(prop_names[:5])
        if len(prop_names) > 5:
            props += "..."
        rows.append([name, model.schema_.kind.value, props or "-"])

    get_output().print_table(["Model", "Kind", "Properties"], rows, title=f"Models ({len(rows)})")


@inspect_app.command("auth")
def inspect_auth(
    source: str = _SOURCE_ARG,
    fmt: Optional[SpecFormat] = _FORMAT_OPT,
    env_file: Optional[Path] = _ENV_OPT,
) -> None:
    """Show security schemes and how widely endpoints use them."""
    from specfuse.analysis import auth_patterns

    spec = _spec(source, fmt, env_file)
    if not spec.security_schemes:
        info("No security schemes defined in this spec.")
        return

    rows: list[list[str]] = []
    for scheme in spec.security_schemes:
        if scheme.param_name:
            detail = f"{scheme.param_name} in {scheme.location or 'header'}"
        elif scheme.flows:
            detail = ", ".join(scheme.flows)
        else:
            detail = scheme.scheme or scheme.openid_connect_url or "-"
        used = sum(1 for e in spec.endpoints if scheme.name in e.security)
        rows.append([scheme.name, scheme.kind.value, detail, str(used)])

    get_output().print_table(
        ["Scheme", "Kind", "Detail", "Endpoints"], rows, title=f"Security Schemes ({len(rows)})"
    )
    patterns = auth_patterns(spec)
    if not patterns.requires_auth:
        info("No endpoint requires authentication.")


@inspect_app.command("info")
def inspect_info(
    source: str = _SOURCE_ARG,
    fmt: Optional[SpecFormat] = _FORMAT_OPT,
    env_file: Optional[Path] = _ENV_OPT,
) -> None:
    """Show title, version, servers and endpoint statistics."""
    from specfuse.analysis import endpoint_stats

    spec = _spec(source, fmt, env_file)
    stats = endpoint_stats(spec)
    emit(
        {
            "title": spec.title,
            "version": spec.version,
            "description": spec.description,
            "sourceFormat": spec.source_format.value if spec.source_format else None,
            "servers": [server.url for server in spec.servers],
            "tags": [tag.name for tag in spec.tags],
            "models": len(spec.models),
            "securitySchemes": [scheme.name for scheme in spec.security_schemes],
            "endpoints": stats.model_dump(mode="json", by_alias=True),
        }
    )


@inspect_app.command("gaps")
def inspect_gaps(
    source: str = _SOURCE_ARG,
    fmt: Optional[SpecFormat] = _FORMAT_OPT,
    env_file: Optional[Path] = _ENV_OPT,
) -> None:
    """Report which cross-cutting concerns the spec leaves undocumented."""
    from specfuse.analysis import gap_analysis

    spec = _spec(source, fmt, env_file)
    rows = [
        [
            gap.field,
            gap.status.value,
            f"{gap.confidence:.2f}" if gap.confidence is not None else "-",
            "; ".join(gap.issues) or "-",
        ]
        for gap in gap_analysis(spec)
    ]
    get_output().print_table(["Field", "Status", "Confidence", "Issues"], rows, title="Gap Analysis")
