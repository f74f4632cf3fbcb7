"""
tenantable CLI - Rich output helpers

Rendering of tenant records and command feedback.

Functions:
    tenant_table    - Rich table of tenant records
    print_tenants   - Print a tenant table with a total line
    print_tenant    - Print one tenant's fields and settings
    print_sweep     - Print the per-tenant failures and summary of a sweep
    print_json      - Print formatted JSON
    print_error     - Print error message (stderr)
    print_warning   - Print warning message
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.json import JSON
from rich.table import Table

from tenantable.sweep import SweepReport
from tenantable.tenant import TenantRecord

console = Console()
err_console = Console(stderr=True)

PLACEHOLDER = "-"

TENANT_COLUMNS = ("ID", "Name", "Subdomain", "Domain", "Status", "Created At")


def status_label(is_active: bool) -> str:
    return "[green]active[/green]" if is_active else "[red]inactive[/red]"


def format_timestamp(dt: Optional[datetime]) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S") if dt is not None else PLACEHOLDER


def tenant_table(tenants: Sequence[TenantRecord], title: str) -> Table:
    """
    Build a table with one row per tenant.

    Args:
        tenants: Records to show, in display order
        title: Table title
    """
    table = Table(title=title)
    for column in TENANT_COLUMNS:
        table.add_column(column, style="cyan" if column == "ID" else None)
    for tenant in tenants:
        table.add_row(
            str(tenant.id),
            tenant.name or PLACEHOLDER,
            tenant.subdomain or PLACEHOLDER,
            tenant.domain or PLACEHOLDER,
            status_label(tenant.is_active),
            format_timestamp(tenant.created_at),
        )
    return table


def print_tenants(tenants: Sequence[TenantRecord], title: str) -> None:
    console.print(tenant_table(tenants, title))
    console.print(f"  Total: {len(tenants)} tenant(s)")


def print_tenant(tenant: TenantRecord) -> None:
    """
    Print one tenant as aligned fields, followed by its settings as JSON.

    The dedicated database password is never printed.
    """
    fields: list[tuple[str, Any]] = [
        ("ID", tenant.id),
        ("Name", tenant.name or PLACEHOLDER),
        ("Subdomain", tenant.subdomain or PLACEHOLDER),
        ("Domain", tenant.domain or PLACEHOLDER),
        ("Status", status_label(tenant.is_active)),
        ("Dedicated DB", tenant.database_name or PLACEHOLDER),
        ("Created At", format_timestamp(tenant.created_at)),
        ("Updated At", format_timestamp(tenant.updated_at)),
    ]
    width = max(len(name) for name, _ in fields)

    console.print(f"[bold]{tenant.display_name}[/bold]")
    console.print()
    for name, value in fields:
        console.print(f"  [cyan]{name.ljust(width)}[/cyan]: {value}")

    if tenant.settings:
        console.print()
        print_json(tenant.settings)


def print_sweep(report: SweepReport) -> None:
    """Print failed tenants to stderr, then a one-line summary."""
    for result in report.failed:
        print_error(f"[{result.tenant_id}] {result.name}: {result.error}")

    summary = f"Ran on {len(report.succeeded)} tenant(s) successfully."
    if report.failed:
        summary += f" {len(report.failed)} failed."
    console.print(summary)


def print_json(data: dict | list, indent: int = 2) -> None:
    console.print(JSON(json.dumps(data, indent=indent, default=str)))


def print_error(message: str, hint: Optional[str] = None) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    if hint:
        err_console.print(f"[yellow]Hint:[/yellow] {hint}")


def print_warning(message: str) -> None:
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")
