"""Config commands -- view and modify global configuration.

Settings live in the user config file (see
:func:`~specfuse.config.get_config_dir`) and supply defaults for chunking,
validation severities, model collision handling and output format.
``config show --effective`` prints the result of the full precedence chain
instead of the stored file.
"""

from __future__ import annotations

import typer

from specfuse.commands.common import fail
from specfuse.exceptions import SpecfuseError
from specfuse.output import emit, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(
    effective: bool = typer.Option(
        False, "--effective", help="Apply project config and environment overrides."
    ),
) -> None:
    """Show current configuration.

    Example::

        specfuse config show
        specfuse config show --effective --json
    """
    from specfuse.config import get_config_dir, load_global_config, resolve_config

    try:
        config = resolve_config() if effective else load_global_config()
    except SpecfuseError as exc:
        raise fail(exc) from None
    info(f"Config directory: {get_config_dir()}")
    emit(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'chunker.overlap')."
    ),
    value: str = typer.Argument(help="Value to set ('none' clears optional keys)."),
) -> None:
    """Set a configuration value.

    The value is coerced to the field's type and the whole config is
    validated before it is saved.

    Example::

        specfuse config set chunker.chunk_size 800
        specfuse config set converter.model_collision last_writer
        specfuse config set validator.unresolved_variable_severity error
    """
    from specfuse.config import load_global_config, save_global_config, set_config_value

    try:
        updated = set_config_value(load_global_config(), key, value)
    except SpecfuseError as exc:
        raise fail(exc) from None

    save_global_config(updated)
    success(f"Set {key} = {value}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset configuration to defaults."""
    from specfuse.config import save_global_config
    from specfuse.models import GlobalConfig

    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
