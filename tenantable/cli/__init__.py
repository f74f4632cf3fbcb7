"""
tenantable - Command Line Interface

Tenant administration commands built with Typer and Rich.

Usage:
    $ tenantable --help
    $ tenantable tenants list --active
    $ tenantable tenants show 7
    $ tenantable tenants run --tenants 1,2 -- python manage.py reindex

Sub-command Groups:
    tenants - List, inspect and sweep over tenants

The tenant registry is read from ``TENANTABLE_DATABASE_URL``.
"""

from __future__ import annotations

import logging

import typer

from tenantable import __version__
from tenantable.cli.output import console, err_console
from tenantable.config import settings
from tenantable.log_context import configure_logging
from tenantable.repository import SqlTenantRepository, TenantRepository

app = typer.Typer(
    name="tenantable",
    help="tenantable - multi-tenant isolation toolkit",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

tenants_app = typer.Typer(
    name="tenants",
    help="Tenant registry commands",
    no_args_is_help=True,
)

app.add_typer(tenants_app, name="tenants")


def get_repository() -> TenantRepository:
    """Tenant repository for CLI commands."""
    return SqlTenantRepository.from_url(settings.TENANTABLE_DATABASE_URL)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"tenantable version {__version__}")
        raise typer.Exit()


def verbose_callback(value: bool) -> None:
    """Enable DEBUG logging with tenant correlation."""
    if value:
        configure_logging(logging.DEBUG)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        callback=verbose_callback,
        help="Enable verbose output.",
    ),
) -> None:
    """
    tenantable - multi-tenant isolation toolkit

    Use --help on any subcommand for detailed information.
    """


__all__ = [
    "app",
    "tenants_app",
    "console",
    "err_console",
    "get_repository",
]


def cli() -> None:
    """Entry point for the CLI."""
    app()


# Registers the tenants commands on tenants_app.
from tenantable.cli import tenants  # noqa: E402,F401


if __name__ == "__main__":
    cli()
