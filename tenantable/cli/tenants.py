"""
tenantable CLI - Tenant Commands

Commands:
    list - List registered tenants
    show - Show one tenant
    run  - Run a shell command once per tenant
"""

from __future__ import annotations

import os
import subprocess
from typing import List, Optional

import typer

from tenantable.cli import console, tenants_app
from tenantable.cli.output import (
    print_error,
    print_json,
    print_sweep,
    print_tenant,
    print_tenants,
    print_warning,
)
from tenantable.scope import TenancyScope
from tenantable.sweep import TENANT_ID_ENV, parse_tenant_ids, run_for_tenants


@tenants_app.command("list")
def list_tenants(
    active: bool = typer.Option(False, "--active", help="Show only active tenants."),
    inactive: bool = typer.Option(False, "--inactive", help="Show only inactive tenants."),
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json."),
) -> None:
    """
    List registered tenants.
    """
    from tenantable.cli import get_repository

    if active and inactive:
        print_error("--active and --inactive are mutually exclusive")
        raise typer.Exit(2)

    state = True if active else False if inactive else None
    label = "active" if active else "inactive" if inactive else "all"
    tenants = get_repository().list_tenants(active=state)

    if format == "json":
        print_json([tenant.to_dict() for tenant in tenants])
        return

    if not tenants:
        print_warning(f"No {label} tenants found.")
        return

    print_tenants(tenants, f"Tenants ({label})")


@tenants_app.command("show")
def show_tenant(
    tenant_id: int = typer.Argument(..., help="Tenant ID."),
) -> None:
    """
    Show a single tenant and its settings.
    """
    from tenantable.cli import get_repository

    tenant = get_repository().find_by_id(tenant_id)
    if tenant is None:
        print_error(f"Tenant {tenant_id} not found")
        raise typer.Exit(1)

    print_tenant(tenant)


@tenants_app.command("run")
def run_command(
    command: List[str] = typer.Argument(..., help="Command and arguments to run."),
    tenants: Optional[str] = typer.Option(
        None,
        "--tenants",
        "-t",
        help="Comma-separated tenant IDs (default: all active).",
    ),
) -> None:
    """
    Run a command once per tenant.

    Each run gets TENANTABLE_TENANT_ID in its environment.
    """
    from tenantable.cli import get_repository

    tenant_ids = None
    if tenants:
        try:
            tenant_ids = parse_tenant_ids(tenants)
        except ValueError:
            print_error(
                "--tenants must be a comma-separated list of integer IDs.",
                hint="Example: --tenants 1,2,3",
            )
            raise typer.Exit(2)

    def work(scope: TenancyScope) -> int:
        tenant = scope.tenant
        console.print(f"[yellow]> [{scope.tenant_id}] {tenant.display_name if tenant else ''}[/yellow]")
        env = dict(os.environ)
        env[TENANT_ID_ENV] = str(scope.tenant_id)
        completed = subprocess.run(command, env=env, check=True)
        return completed.returncode

    console.print(f"[cyan]Running: {' '.join(command)}[/cyan]")
    report = run_for_tenants(work, repository=get_repository(), tenant_ids=tenant_ids)

    if not len(report):
        print_warning("No tenants found to run command for.")
        return

    print_sweep(report)
    if not report.ok:
        raise typer.Exit(1)
