"""Command line interface for running the journey workflow service."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from journeyflow.config import JourneyConfig, load_config
from journeyflow.models import ProductVisitRequest, SignupRequest
from journeyflow.service import JourneyService
from journeyflow.steps import build_step_catalog
from journeyflow.transports import InMemoryTransport

app = typer.Typer(help="CLI for the journeyflow customer journey engine")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Install console (and optional file) handlers on the root logger."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)


def _load(config_path: Optional[Path]) -> JourneyConfig:
    config = load_config(str(config_path) if config_path else None)
    configure_logging(config.log_level, config.log_file)
    return config


@app.callback()
def main() -> None:
    """Journeyflow CLI entry point."""
    pass


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default from config)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to YAML config"),
) -> None:
    """
    Run the HTTP API together with the workflow engine.

    Example:
        journeyflow serve --port 3000
        DEMO_MODE=true journeyflow serve --config ./config.yaml
    """
    import uvicorn

    from journeyflow.api import create_app

    config = _load(config_path)
    uvicorn.run(
        create_app(config),
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.log_level.lower(),
    )


@app.command("steps")
def steps(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to YAML config"),
) -> None:
    """List the workflow steps and the configured quiet period."""
    config = load_config(str(config_path) if config_path else None)
    for step in build_step_catalog(config.workflow.quiet_period).values():
        typer.echo(f"{step.id}\t{step.name}\t{step.trigger.value}\t{step.action.value}")
    mode = "demo" if config.workflow.demo_mode else "production"
    typer.echo(f"Quiet period: {config.workflow.quiet_period:g}s ({mode} mode)")


async def _run_demo(
    config: JourneyConfig, name: str, email: str, product: str, category: str
) -> None:
    def show(label: str, status) -> None:
        typer.echo(
            f"{label}: completed={status.completed_steps} current={status.current_step} "
            f"active_reminder={status.has_active_reminder}"
        )

    async with JourneyService(config, transport=InMemoryTransport()) as service:
        customer = await service.submit_signup(SignupRequest(name=name, email=email))
        await service.wait_until_idle()
        show("After signup", await service.get_workflow_status(customer.id))

        await service.submit_product_visit(
            customer.id,
            ProductVisitRequest(product_id=product, product_name=product, category=category),
        )
        await service.wait_until_idle()
        show("After product visit", await service.get_workflow_status(customer.id))

        await service.force_advance_time(customer.id)
        await service.wait_until_idle()
        show("After inactivity", await service.get_workflow_status(customer.id))

        for notification in service.list_notifications(customer.id):
            typer.echo(f"  sent {notification.email_type}: {notification.email.subject}")


@app.command("demo")
def demo(
    name: str = "Alice",
    email: str = "alice@example.com",
    product: str = "P1",
    category: str = "Shoes",
    fast: bool = typer.Option(True, help="Skip the simulated delivery latency"),
) -> None:
    """
    Run the three-step journey in-process and print status after each stage.

    Example:
        journeyflow demo --name Bob --email bob@example.com --category Books
    """
    config = _load(None)
    config.transport.backend = "inmemory"
    config.workflow.demo_mode = True
    if fast:
        config.notifications.min_delivery_delay = 0.0
        config.notifications.max_delivery_delay = 0.0
    asyncio.run(_run_demo(config, name, email, product, category))


if __name__ == "__main__":
    app()
