"""Configuration management for GCP Waste Agent."""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


PROJECT_ID_PATTERN = re.compile(r'^[a-z][a-z0-9-]{4,28}[a-z0-9]$')
AWS_REGION_PATTERN = re.compile(r'^[a-z]{2,3}-[a-z]+-\d+$')
EXECUTION_MODES = ('simulated', 'real')

DEFAULT_HOME = Path.home() / ".gcp-waste-agent"


class Config(BaseModel):
    """Settings for scanning one GCP project.

    The access token used for live inventory is not stored here; it is
    supplied per invocation.
    """

    project_id: str = Field(..., description="GCP project to scan")
    user_intent: str = Field(default="Optimize for cost.", description="Free-text optimization intent")
    industry: str = Field(default="Tech", description="Industry tag used in executive reports")
    bedrock_region: str = Field(default="us-east-1", description="AWS region hosting the reasoning model")
    model_id: str = Field(default="amazon.nova-pro-v1:0", description="Bedrock model used for reasoning")
    execution_mode: str = Field(default="simulated", description="Remediation mode: simulated or real")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="When the project was configured")
    version: str = Field(default="1.0.0", description="Configuration schema version")

    @field_validator('project_id')
    @classmethod
    def validate_project_id(cls, v: str) -> str:
        if not PROJECT_ID_PATTERN.match(v):
            raise ValueError(
                f"Invalid GCP project ID format: {v}. "
                "Expected 6-30 lowercase letters, digits or hyphens, starting with a letter."
            )
        return v

    @field_validator('bedrock_region')
    @classmethod
    def validate_bedrock_region(cls, v: str) -> str:
        """The reasoning model runs in AWS, so this is an AWS region name."""
        if not AWS_REGION_PATTERN.match(v):
            raise ValueError(
                f"Invalid AWS region format: {v}. "
                "Expected a Bedrock region such as us-east-1 or eu-central-1."
            )
        return v

    @field_validator('execution_mode')
    @classmethod
    def validate_execution_mode(cls, v: str) -> str:
        if v not in EXECUTION_MODES:
            raise ValueError(f"Invalid execution mode: {v}. Expected 'simulated' or 'real'.")
        return v

    @field_validator('user_intent', 'industry')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Value cannot be blank")
        return v.strip()


class ConfigManager:
    """Reads and writes the project configuration file.

    The file lives at ``<config_dir>/config.json`` (``~/.gcp-waste-agent`` by
    default) and is always replaced atomically.
    """

    FILE_NAME = "config.json"

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir is not None else DEFAULT_HOME
        self.config_file = self.config_dir / self.FILE_NAME
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> Optional[Config]:
        """Return the saved configuration, or None when nothing is saved yet.

        Raises:
            ValueError: If the file exists but cannot be parsed or validated
        """
        if not self.config_file.exists():
            return None

        try:
            raw = json.loads(self.config_file.read_text())
            if not isinstance(raw, dict):
                raise ValueError("expected a JSON object")
            # Stored timestamps are UTC; the model keeps them naive
            created_at = raw.get('created_at')
            if isinstance(created_at, str):
                raw['created_at'] = datetime.fromisoformat(created_at.replace('Z', '+00:00')).replace(tzinfo=None)
            return Config.model_validate(raw)
        except ValueError as e:
            # json.JSONDecodeError and pydantic's ValidationError are both ValueErrors
            raise ValueError(f"Invalid configuration file {self.config_file}: {e}")
        except OSError as e:
            raise ValueError(f"Failed to read configuration {self.config_file}: {e}")

    def save_config(self, config: Config) -> None:
        """Persist the configuration.

        Raises:
            OSError: If the file cannot be written
        """
        payload = config.model_dump(mode='json')
        payload['created_at'] = config.created_at.isoformat() + 'Z'

        staging = self.config_file.with_name(self.FILE_NAME + '.tmp')
        try:
            staging.write_text(json.dumps(payload, indent=2))
            staging.replace(self.config_file)
        except OSError as e:
            staging.unlink(missing_ok=True)
            raise OSError(f"Failed to save configuration to {self.config_file}: {e}")

    def config_exists(self) -> bool:
        return self.config_file.exists()

    def get_config_path(self) -> Path:
        return self.config_file

    def delete_config(self) -> None:
        """Remove the configuration file if present.

        Raises:
            OSError: If the file exists but cannot be removed
        """
        try:
            self.config_file.unlink(missing_ok=True)
        except OSError as e:
            raise OSError(f"Failed to delete configuration {self.config_file}: {e}")
