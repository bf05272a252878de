"""Built-in CLI sub-commands for specfuse.

* :mod:`~specfuse.commands.convert` -- normalize one or more documents.
* :mod:`~specfuse.commands.validate` -- report errors and warnings.
* :mod:`~specfuse.commands.chunk` -- split a spec into retrieval chunks.
* :mod:`~specfuse.commands.inspect` -- tables of endpoints, models, auth
  and documentation gaps.
* :mod:`~specfuse.commands.infer` -- merge inference candidates and user
  decisions into a ledger.
* :mod:`~specfuse.commands.config` -- view and modify global settings.

Single commands export a plain callback registered on the root app; groups
export a :class:`typer.Typer` sub-application.  Source loading shared by all
of them lives in :mod:`~specfuse.commands.common`.
"""
