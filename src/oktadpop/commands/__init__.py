"""Built-in CLI sub-commands for oktadpop.

This package groups the Typer sub-command modules that form the CLI's
command tree:

* :mod:`~oktadpop.commands.users` -- list users of the org.
* :mod:`~oktadpop.commands.call` -- send an arbitrary management API call.
* :mod:`~oktadpop.commands.token` -- obtain access tokens and DPoP proofs.
* :mod:`~oktadpop.commands.config` -- show and validate the environment
  configuration.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``token`` and ``config``) or a plain callback
function registered directly on the root app (for single commands like
``users``).
"""
