"""Typer CLI for MedVerify-Engine."""

import asyncio
from contextlib import asynccontextmanager

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="medverify", help="MedVerify-Engine: pharmaceutical product verification")
console = Console()

_STATUS_STYLE = {
    "AUTHENTIC": "bold green",
    "EXPIRED": "bold yellow",
    "SUSPICIOUS": "bold yellow",
    "COUNTERFEIT": "bold red",
    "NOT_FOUND": "bold red",
}


@asynccontextmanager
async def _local_services():
    """Open the configured databases for one in-process command."""
    from medverify_engine import deps
    from medverify_engine.common.config import get_settings
    from medverify_engine.ledger.models import LedgerEntryModel

    settings = get_settings()
    db = deps.get_db()
    await db.init()
    await db.create_all()
    if settings.ledger_backend == "local":
        ledger_db = deps.get_ledger_db()
        await ledger_db.init()
        await ledger_db.create_all(tables=[LedgerEntryModel.__table__])
    try:
        yield deps
    finally:
        await deps.get_qr_token_service().wait_for_attestations()
        await deps.get_ledger_gateway().close()
        if settings.ledger_backend == "local":
            await deps.get_ledger_db().close()
        await db.close()
        deps.reset_singletons()


def _print_verdict(verdict) -> None:
    style = _STATUS_STYLE.get(verdict.status.value, "bold")
    console.print(
        f"[{style}]{verdict.status.value}[/{style}] ({verdict.confidence.value}) — {verdict.message}"
    )
    for name, passed in verdict.checks.to_dict().items():
        mark = "[green]✓[/green]" if passed else "[red]✗[/red]"
        console.print(f"  {mark} {name}")
    for warning in verdict.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the MedVerify-Engine API server."""
    import uvicorn
    from medverify_engine.app import create_app

    console.print(f"[bold green]Starting MedVerify-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def seed():
    """Register the sample medicine catalogue (skips existing entries)."""
    from medverify_engine.registry.seeds import seed_catalogue

    async def _run():
        async with _local_services() as deps:
            return await seed_catalogue(deps.get_catalogue_service())

    created, skipped = asyncio.run(_run())
    for product_id in created:
        console.print(f"  [green]\\[created][/green] {product_id}")
    for product_id in skipped:
        console.print(f"  [dim]\\[skip][/dim] {product_id} already registered")
    console.print(f"\nDone. {len(created)} created, {len(skipped)} skipped.")


@app.command("issue-qr")
def issue_qr(
    product_id: str = typer.Argument(..., help="Registered product ID"),
):
    """Issue a single-use QR token and print its payload."""
    from medverify_engine.common.exceptions import MedVerifyError

    async def _run():
        async with _local_services() as deps:
            return await deps.get_catalogue_service().issue_qr(product_id)

    try:
        issued = asyncio.run(_run())
    except MedVerifyError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    console.print(issued.qr_data)
    console.print(f"  Expires: {issued.expires_at.isoformat()}")


@app.command()
def verify(
    product_id: str = typer.Option(None, "--product-id", "-p", help="Product ID to verify"),
    qr_data: str = typer.Option(None, "--qr", help="Raw QR payload to verify"),
):
    """Verify a product by ID or by QR payload against the local stores."""
    from medverify_engine.common.exceptions import MedVerifyError

    if bool(product_id) == bool(qr_data):
        console.print("[bold red]Error:[/bold red] pass exactly one of --product-id or --qr")
        raise typer.Exit(2)

    async def _run():
        async with _local_services() as deps:
            engine = deps.get_verification_engine()
            if qr_data:
                return await engine.verify_by_qr(qr_data, requester_address="cli")
            return await engine.verify_by_product_id(product_id, requester_address="cli")

    try:
        verdict = asyncio.run(_run())
    except MedVerifyError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    _print_verdict(verdict)
    if not verdict.is_valid:
        raise typer.Exit(1)


@app.command("check-qr")
def check_qr(
    qr_data: str = typer.Argument(..., help="Raw QR payload"),
):
    """Check a QR payload's structure offline (no database, nothing consumed)."""
    from medverify_engine.common.exceptions import InvalidQrFormatError
    from medverify_engine.qr.codec import is_valid_hash, parse_payload

    try:
        payload = parse_payload(qr_data)
    except InvalidQrFormatError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    if not is_valid_hash(payload.token_hash):
        console.print("[bold red]INVALID_QR_FORMAT[/bold red] — Invalid QR hash format")
        raise typer.Exit(1)

    table = Table(show_header=False)
    table.add_row("Product", payload.product_id)
    table.add_row("Hash", payload.token_hash)
    table.add_row("Issued (ms)", str(payload.timestamp))
    table.add_row("Format", "legacy" if payload.legacy else "compact")
    console.print("[bold green]WELL-FORMED[/bold green]")
    console.print(table)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check MedVerify-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(
            f"[bold green]{data['status']}[/bold green] — v{data['version']} "
            f"(ledger: {data.get('ledger_backend', '?')})"
        )
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
