"""Command-line interface for Prism Autofill."""

import asyncio
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from prism_autofill.app import build_controller
from prism_autofill.config import settings
from prism_autofill.core.services import create_service_registry
from prism_autofill.utils.logging import configure_logging

app = typer.Typer(
    name="prism",
    help="Prism - send one prompt to ChatGPT, Gemini and Claude",
    add_completion=False,
)
custom_app = typer.Typer(help="Manage custom services (display only, no auto-fill)")
app.add_typer(custom_app, name="custom")
console = Console()


async def _send(text: str, service: str, parallel: Optional[bool], keep_open: float) -> Dict[str, bool]:
    controller = build_controller(settings)
    async with controller:
        if not controller.select_service(service):
            console.print(f"❌ Unknown service: {service}")
            return {}
        controller.prompt = text
        results = await controller.submit(parallel=parallel)
        for notice in controller.notices:
            console.print(f"⚠️  {notice}")
        if keep_open > 0:
            console.print(f"⏳ Keeping pages open for {keep_open:.0f}s...")
            await asyncio.sleep(keep_open)
        return results


@app.command()
def send(
    text: str = typer.Argument(..., help="Prompt text to send"),
    service: str = typer.Option("chatgpt", "--service", "-s", help="Service id for single mode"),
    parallel: Optional[bool] = typer.Option(
        None, "--all/--single", help="Send to every built-in service (defaults to the stored mode)"
    ),
    keep_open: float = typer.Option(0.0, help="Seconds to keep the browser open after sending"),
) -> None:
    """Type TEXT into the service pages and press send."""
    configure_logging()
    results = asyncio.run(_send(text, service, parallel, keep_open))
    if not results:
        raise typer.Exit(code=1)

    table = Table(title="Autofill Results")
    table.add_column("Service", style="cyan")
    table.add_column("Delivered", style="green")
    for service_id, success in results.items():
        table.add_row(service_id, "✅" if success else "❌")
    console.print(table)

    if not any(results.values()):
        raise typer.Exit(code=1)


@app.command()
def services() -> None:
    """List available services."""
    registry = create_service_registry(settings)
    table = Table(title="Available Services")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("URL")
    table.add_column("Auto-fill")
    for profile in registry.available_services:
        autofill = "yes" if registry.is_builtin(profile.id) else "no"
        table.add_row(profile.id, profile.display_name, profile.origin_url, autofill)
    console.print(table)


@custom_app.command("list")
def custom_list() -> None:
    """List configured custom services, including incomplete ones."""
    manager = create_service_registry(settings).custom_manager
    table = Table(title=f"Custom Services ({len(manager.services)}/{manager.max_services})")
    table.add_column("#", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("URL")
    table.add_column("Valid")
    for index, service in enumerate(manager.services):
        table.add_row(str(index), service.display_name, service.url, "yes" if service.is_valid else "no")
    console.print(table)


@custom_app.command("add")
def custom_add(
    name: str = typer.Argument(..., help="Display name, at most 10 characters"),
    url: str = typer.Argument(..., help="Service URL"),
) -> None:
    """Add a custom service."""
    manager = create_service_registry(settings).custom_manager
    service = manager.add_service(name=name, url=url)
    if service is None:
        console.print(f"❌ Custom service limit reached ({manager.max_services})")
        raise typer.Exit(code=1)
    if not service.is_valid:
        console.print("⚠️  Saved, but the service is hidden until it has a name of at most 10 characters and a URL")
    console.print(f"✅ Added {service.display_name}")


@custom_app.command("remove")
def custom_remove(index: int = typer.Argument(..., help="Position shown by 'prism custom list'")) -> None:
    """Remove a custom service."""
    manager = create_service_registry(settings).custom_manager
    if not manager.remove_service(index):
        console.print(f"❌ No custom service at index {index}")
        raise typer.Exit(code=1)
    console.print("✅ Removed")


@app.command()
def config() -> None:
    """Show current configuration."""
    table = Table(title="Prism Autofill Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    rows: List[tuple] = [
        ("Debug Mode", settings.debug),
        ("Log Level", settings.log_level),
        ("Browser Headless", settings.browser_headless),
        ("Browser Profile", settings.browser_user_data_dir or "(temporary)"),
        ("Storage Path", settings.storage_path),
        ("Wait Timeout", f"{settings.wait_timeout}s"),
        ("Locate Attempts", f"{settings.locate_attempts} x {settings.locate_interval}s"),
        ("Settle Delay", f"{settings.settle_delay}s"),
        ("Script Retries", f"{settings.script_retries} x {settings.script_retry_backoff}s"),
        ("Submit Score Threshold", settings.submit_score_threshold),
        ("Cool-down Delay", f"{settings.cooldown_delay}s"),
    ]
    for name, value in rows:
        table.add_row(name, str(value))

    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from prism_autofill import __version__
    console.print(f"Prism Autofill v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
