"""Waste analysis, reasoning and remediation services."""

from .models import (
    InventorySnapshot, OptimizationCandidate, PlannedAction, ActionType, ActionStatus, ExecutionRecord
)
from .classifier import analyze_resources
from .context import to_context
from .inventory import fetch_inventory, GcpCredentials
from .reasoning import OptimizationAgent, BedrockReasoningClient
from .vision import ChartVisionAgent
from .reporting import ReportingAgent
from .execution import ApprovalGate, ExecutionEngine, generate_cli_command
from .orchestrator import RunOrchestrator, PipelineStage, Run

__all__ = [
    'InventorySnapshot',
    'OptimizationCandidate',
    'PlannedAction',
    'ActionType',
    'ActionStatus',
    'ExecutionRecord',
    'analyze_resources',
    'to_context',
    'fetch_inventory',
    'GcpCredentials',
    'OptimizationAgent',
    'BedrockReasoningClient',
    'ChartVisionAgent',
    'ReportingAgent',
    'ApprovalGate',
    'ExecutionEngine',
    'generate_cli_command',
    'RunOrchestrator',
    'PipelineStage',
    'Run',
]
