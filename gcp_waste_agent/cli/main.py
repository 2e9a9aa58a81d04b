"""
Main CLI entry point for GCP Waste Agent.

Provides the "gcp-waste-agent" command interface.
"""

import logging
import sys
from typing import Optional

import click
from rich.console import Console

from gcp_waste_agent import __version__
from gcp_waste_agent.core.config import ConfigManager
from gcp_waste_agent.cli.interactive import InteractiveFlow, RunOptions
from gcp_waste_agent.core.exceptions import (
    GCPWasteAgentError, AuthenticationError, ConfigurationError, InventoryError, UserCancelled
)


console = Console()

# Exit codes for different error types
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_AUTH_ERROR = 3
EXIT_SERVICE_ERROR = 4
EXIT_USER_CANCELLED = 130


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Keep SDK wire logging out of verbose output
    for noisy in ('botocore', 'boto3', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.command()
@click.option(
    "--mode",
    type=click.Choice(["simulated", "real-api", "json"]),
    default="simulated",
    show_default=True,
    help="Where the inventory comes from",
)
@click.option(
    "--inventory-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Inventory snapshot file for --mode json",
)
@click.option(
    "--project",
    help="GCP project ID (defaults to configured project)",
)
@click.option(
    "--token",
    envvar="GCP_ACCESS_TOKEN",
    help="GCP access token for --mode real-api and --verify",
)
@click.option(
    "--intent",
    help="Optimization intent passed to the reasoning agent",
)
@click.option(
    "--industry",
    help="Industry domain used in the executive report",
)
@click.option(
    "--chart",
    type=click.Path(exists=True, dir_okay=False),
    help="Cost or usage chart image for visual analysis",
)
@click.option(
    "--seed",
    type=int,
    help="Random seed for the simulated environment",
)
@click.option(
    "--auto-approve",
    is_flag=True,
    help="Approve every proposed action without prompting",
)
@click.option(
    "--verify",
    is_flag=True,
    help="Verify access to the project and exit",
)
@click.option(
    "--history",
    is_flag=True,
    help="Show previous runs and exit",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@click.version_option(version=__version__)
def main(
    mode: str = "simulated",
    inventory_file: Optional[str] = None,
    project: Optional[str] = None,
    token: Optional[str] = None,
    intent: Optional[str] = None,
    industry: Optional[str] = None,
    chart: Optional[str] = None,
    seed: Optional[int] = None,
    auto_approve: bool = False,
    verify: bool = False,
    history: bool = False,
    verbose: bool = False,
) -> None:
    """
    GCP Waste Agent - Agentic Cloud Cost Optimization

    Finds idle and orphaned resources, proposes remediations and executes
    only the ones you approve.
    """
    configure_logging(verbose)

    try:
        config_manager = ConfigManager()
        interactive_flow = InteractiveFlow(console, config_manager)

        if history:
            interactive_flow.show_history()
            return

        if not config_manager.config_exists() and not project:
            console.print("[bold blue]GCP Waste Agent - Cloud Cost Optimization[/bold blue]")
            console.print("━" * 50)
            console.print()
            console.print("[yellow]No project configured. Let's set this up.[/yellow]")
            console.print()

            interactive_flow.setup()
            return

        config = interactive_flow.resolve_config(project, intent, industry)

        if verify:
            if not interactive_flow.verify_connection(config.project_id, token):
                sys.exit(EXIT_AUTH_ERROR)
            return

        if mode == "json" and not inventory_file:
            raise ConfigurationError("--inventory-file is required with --mode json")

        interactive_flow.run_pipeline(config, RunOptions(
            mode=mode,
            token=token,
            inventory_file=inventory_file,
            chart=chart,
            seed=seed,
            auto_approve=auto_approve,
        ))

    except (KeyboardInterrupt, UserCancelled):
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_USER_CANCELLED)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except AuthenticationError as e:
        console.print(f"[red]Authentication error: {e}[/red]")
        sys.exit(EXIT_AUTH_ERROR)
    except InventoryError as e:
        console.print(f"[red]Inventory error: {e}[/red]")
        sys.exit(EXIT_SERVICE_ERROR)
    except GCPWasteAgentError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(EXIT_GENERAL_ERROR)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        console.print("[dim]Please report this issue with the full error message.[/dim]")
        sys.exit(EXIT_GENERAL_ERROR)


if __name__ == "__main__":
    main()
