"""
GCP Waste Agent - Agentic cost optimization for Google Cloud projects.

Scans a project's inventory, classifies waste, negotiates remediation plans
with a reasoning service, and executes only what a human approved.
"""

__version__ = "1.0.0"

from gcp_waste_agent.core.exceptions import GCPWasteAgentError

__all__ = ["GCPWasteAgentError"]
