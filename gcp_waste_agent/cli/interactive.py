"""Interactive CLI flow for GCP Waste Agent."""

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from gcp_waste_agent.auth.gcp_auth import ConnectionVerifier, build_credentials
from gcp_waste_agent.core.config import Config, ConfigManager
from gcp_waste_agent.core.exceptions import ConfigurationError, GCPWasteAgentError, StateError
from gcp_waste_agent.services.classifier import summarize_candidates
from gcp_waste_agent.services.execution import ExecutionEngine
from gcp_waste_agent.services.models import ActionStatus
from gcp_waste_agent.services.orchestrator import LogEntry, PipelineStage, Run, RunOrchestrator
from gcp_waste_agent.services.reasoning import BedrockReasoningClient, OptimizationAgent, ReasoningClient
from gcp_waste_agent.services.reporting import ReportingAgent
from gcp_waste_agent.services.vision import ChartVisionAgent
from gcp_waste_agent.state.run_store import RunStore


LOG_STYLES = {
    'thought': 'dim',
    'tool_call': 'cyan',
    'final': 'green',
    'stage': 'bold blue',
    'error': 'red',
}


@dataclass
class RunOptions:
    mode: str = "simulated"
    token: Optional[str] = None
    inventory_file: Optional[str] = None
    chart: Optional[str] = None
    seed: Optional[int] = None
    auto_approve: bool = False


def default_reasoning_client(config: Config) -> Optional[ReasoningClient]:
    return BedrockReasoningClient(region=config.bedrock_region, model_id=config.model_id)


class InteractiveFlow:
    """Handles interactive CLI flows for GCP Waste Agent."""

    def __init__(
        self,
        console: Console,
        config_manager: ConfigManager,
        run_store: Optional[RunStore] = None,
        verifier: Optional[ConnectionVerifier] = None,
        client_factory: Callable[[Config], Optional[ReasoningClient]] = default_reasoning_client,
    ):
        """Initialize interactive flow.

        Args:
            console: Rich console for output
            config_manager: Configuration manager instance
            run_store: Run history store. Created lazily when omitted.
            verifier: Connection verifier for --verify
            client_factory: Builds the reasoning client from the configuration
        """
        self.console = console
        self.config_manager = config_manager
        self._run_store = run_store
        self.verifier = verifier or ConnectionVerifier()
        self.client_factory = client_factory

    @property
    def run_store(self) -> RunStore:
        if self._run_store is None:
            self._run_store = RunStore()
        return self._run_store

    def setup(self) -> Config:
        """Prompt for the project settings and save them."""
        self.console.print("Tell me which project to optimize and what matters to you.")
        self.console.print()

        while True:
            project_id = Prompt.ask("GCP project ID", console=self.console)
            intent = Prompt.ask("Optimization intent", console=self.console, default="Optimize for cost.")
            industry = Prompt.ask("Industry", console=self.console, default="Tech")

            try:
                config = Config(project_id=project_id.strip(), user_intent=intent, industry=industry)
            except PydanticValidationError as e:
                for error in e.errors():
                    self.console.print(f"[red]{error['msg']}[/red]")
                continue

            self.config_manager.save_config(config)
            self.console.print("[green]Configuration saved.[/green]")
            self.console.print()
            self.console.print("You can now run 'gcp-waste-agent' to scan the project.")
            return config

    def resolve_config(
        self,
        project: Optional[str] = None,
        intent: Optional[str] = None,
        industry: Optional[str] = None,
    ) -> Config:
        """Merge command line overrides into the saved configuration.

        Raises:
            ConfigurationError: If the result is invalid or no project is known
        """
        try:
            saved = self.config_manager.load_config()
        except ValueError as e:
            raise ConfigurationError(str(e))

        values = saved.model_dump() if saved else {}
        overrides = {'project_id': project, 'user_intent': intent, 'industry': industry}
        values.update({key: value for key, value in overrides.items() if value})

        if not values.get('project_id'):
            raise ConfigurationError("No project configured. Pass --project or run setup.")

        try:
            return Config(**values)
        except PydanticValidationError as e:
            messages = "; ".join(error['msg'] for error in e.errors())
            raise ConfigurationError(messages)

    def verify_connection(self, project_id: str, token: Optional[str]) -> bool:
        self.console.print(f"Verifying access to [bold]{project_id}[/bold]...")
        credentials = build_credentials(project_id, token)
        result = self.verifier.verify(project_id, credentials)

        style = "green" if result.ok else "red"
        self.console.print(f"[{style}]{result.message}[/{style}]")
        return result.ok

    def run_pipeline(self, config: Config, options: RunOptions) -> Run:
        """Scan, reason, ask for approval, execute and report."""
        self.console.print("[bold blue]GCP Waste Agent - Cloud Cost Optimization[/bold blue]")
        self.console.print("━" * 50)
        self.console.print(f"Project: [bold]{config.project_id}[/bold]  Mode: {options.mode}")
        self.console.print()

        credentials = None
        if options.mode == "real-api":
            credentials = build_credentials(config.project_id, options.token)

        client = self.client_factory(config)
        visual_analysis = self._analyze_chart(client, options.chart)

        orchestrator = RunOrchestrator(
            optimization_agent=OptimizationAgent(client),
            reporting_agent=ReportingAgent(client),
            execution_engine=ExecutionEngine(mode=config.execution_mode),
            log_listener=self._print_log,
        )

        run = orchestrator.start_run(
            config.project_id,
            config.user_intent,
            config.industry,
            mode=options.mode,
            credentials=credentials,
            file_input=options.inventory_file,
            visual_analysis=visual_analysis,
            seed=options.seed,
        )

        if run.failure is not None:
            self._save(run)
            if isinstance(run.failure, GCPWasteAgentError):
                raise run.failure
            raise GCPWasteAgentError(f"Pipeline Failed: {run.error}")

        self._show_inventory(run)

        if run.stage == PipelineStage.APPROVAL:
            self._show_actions(run)
            self._collect_approvals(orchestrator, run, options.auto_approve)
            if not any(a.status == ActionStatus.APPROVED for a in run.actions):
                orchestrator.reset()
                self.console.print("[yellow]No actions were approved. Nothing was executed.[/yellow]")
                self._save(run)
                return run
            run = orchestrator.execute_approved()
            self._show_commands(run)

        if run.stage != PipelineStage.FINISHED:
            raise StateError(f"Run ended in unexpected stage: {run.stage.value}")

        self.console.print()
        self.console.print(Panel(Markdown(run.report or ""), title="Executive Report", border_style="blue"))
        self._save(run)
        return run

    def show_history(self) -> None:
        runs = self.run_store.list_runs()
        if not runs:
            self.console.print("[yellow]No runs recorded yet.[/yellow]")
            return

        table = Table(title="Run History")
        table.add_column("Run ID", style="cyan")
        table.add_column("Project")
        table.add_column("Started")
        table.add_column("Stage")
        table.add_column("Candidates", justify="right")
        table.add_column("Executed", justify="right")

        for info in runs:
            stage = info.get('stage') or ''
            if info.get('error'):
                stage = f"[red]{stage} ({info['error']})[/red]"
            table.add_row(
                info.get('run_id') or '',
                info.get('project_id') or '',
                info.get('started_at') or '',
                stage,
                str(info.get('candidate_count', 0)),
                f"{info.get('executed_count', 0)}/{info.get('action_count', 0)}",
            )

        self.console.print(table)

    def _analyze_chart(self, client: Optional[ReasoningClient], chart: Optional[str]) -> str:
        if not chart:
            return ''

        path = Path(chart)
        mime_type = mimetypes.guess_type(path.name)[0] or ''
        try:
            image_bytes = path.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Cannot read chart image {chart}: {e}")

        analysis = ChartVisionAgent(client).analyze_image(image_bytes, mime_type, log_callback=self._print_message)
        self.console.print(Panel(analysis, title="Visual Analysis", border_style="magenta"))
        return analysis

    def _collect_approvals(self, orchestrator: RunOrchestrator, run: Run, auto_approve: bool) -> None:
        for action in list(run.actions):
            if auto_approve:
                orchestrator.approve(action.id)
                continue

            question = f"Approve {action.type.value} on [bold]{action.target}[/bold] ({action.confidence}% confidence)?"
            if Confirm.ask(question, console=self.console, default=False):
                orchestrator.approve(action.id)
            else:
                orchestrator.reject(action.id)

    def _show_inventory(self, run: Run) -> None:
        snapshot = run.snapshot
        if snapshot is not None:
            self.console.print(
                f"Inventory: {snapshot.resource_count} resources, "
                f"monthly bill [bold]${snapshot.total_monthly_bill:.2f}[/bold]"
            )
            if not snapshot.integrity_check.passed:
                for issue in snapshot.integrity_check.issues:
                    self.console.print(f"[yellow]Integrity warning: {issue}[/yellow]")

        if not run.candidates:
            self.console.print("[green]No optimization candidates found.[/green]")
            return

        table = Table(title="Optimization Candidates")
        table.add_column("Resource", style="cyan")
        table.add_column("Type")
        table.add_column("Reason", style="yellow")
        table.add_column("Details")
        table.add_column("Savings/mo", justify="right", style="green")

        for candidate in run.candidates:
            table.add_row(
                candidate.resource_name,
                candidate.resource_type.value,
                candidate.reason.value,
                candidate.details,
                f"${candidate.potential_savings:.2f}",
            )

        self.console.print(table)
        for reason, bucket in summarize_candidates(run.candidates).items():
            self.console.print(f"  {reason}: {bucket['count']} (${bucket['potential_savings']:.2f})", style="dim")

    def _show_actions(self, run: Run) -> None:
        table = Table(title="Proposed Actions")
        table.add_column("Action", style="cyan")
        table.add_column("Target")
        table.add_column("Location")
        table.add_column("Confidence", justify="right")
        table.add_column("Reasoning")

        for action in run.actions:
            table.add_row(
                action.type.value,
                action.target,
                action.zone,
                f"{action.confidence}%",
                action.reasoning,
            )

        self.console.print(table)

    def _show_commands(self, run: Run) -> None:
        rejected = [a for a in run.actions if a.status == ActionStatus.REJECTED]
        for record in run.execution_records:
            label = "simulated" if record.simulated else "command"
            self.console.print(Panel(record.command, title=f"{record.target} ({label})", border_style="green"))

        if rejected:
            self.console.print(f"[dim]{len(rejected)} action(s) rejected and left untouched.[/dim]")

    def _save(self, run: Run) -> None:
        path = self.run_store.save_run(run)
        self.run_store.cleanup_old_runs()
        self.console.print(f"[dim]Run saved to {path}[/dim]")

    def _print_log(self, entry: LogEntry) -> None:
        self._print_message(entry.kind, entry.message)

    def _print_message(self, kind: str, message: str) -> None:
        style = LOG_STYLES.get(kind, '')
        if kind == 'stage':
            message = f"» {message}"
        self.console.print(message, style=style, markup=False, highlight=False)
