"""
Application settings management.

Settings are loaded from environment variables with .env file support.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )
    flows_dir: Optional[Path] = Field(
        default=None,
        description="Directory containing flow graph YAML files (default: config/flows)",
    )

    # ==========================================================================
    # Call Flow
    # ==========================================================================

    flow_name: str = Field(
        default="default", description="Flow graph served by the API (flows/<name>.yaml)"
    )
    default_opening_id: Optional[str] = Field(
        default=None,
        description="Opening node a new call starts on (first opening node if unset)",
    )

    # ==========================================================================
    # Logging
    # ==========================================================================

    log_sessions_to_keep: int = Field(
        default=5, ge=1, le=100, description="Number of run log files to retain"
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Call Flow Configuration (from YAML)
# ============================================================================


DEFAULT_OUTCOME_LABELS: Dict[str, str] = {
    "meeting_set": "Meeting Scheduled",
    "follow_up": "Follow-up Scheduled",
    "send_info": "Information Sent",
    "not_interested": "Not Interested",
}


class EnvironmentTrigger(BaseModel):
    """A custom environment field detected from node metadata.

    Nodes carry trigger values under ``metadata.triggers[key]``; the summary
    prints them under ENVIRONMENT using ``label``.
    """

    key: str = Field(..., min_length=1)
    label: str
    type: Literal["text", "array"] = "text"


class CallFlowConfig(BaseModel):
    """
    Call flow behaviour loaded from callflow_config.yaml.

    Controls metadata derivation and export labelling. Every field has a
    default so an absent file yields a working configuration.
    """

    legacy_id_inference: bool = Field(
        default=True,
        description="Infer EHR/DMS/competitors/outcome from node id conventions "
        "for nodes without explicit metadata hints",
    )
    strict_validation: bool = Field(
        default=False,
        description="Refuse to load a flow graph that has integrity errors",
    )
    outcome_labels: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_OUTCOME_LABELS)
    )
    environment_triggers: List[EnvironmentTrigger] = Field(default_factory=list)

    @field_validator("outcome_labels")
    @classmethod
    def fill_missing_outcome_labels(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Keep default labels for outcomes the YAML does not override."""
        merged = dict(DEFAULT_OUTCOME_LABELS)
        merged.update(v)
        return merged

    def trigger_labels(self) -> Dict[str, str]:
        """Map trigger key to display label."""
        return {t.key: t.label for t in self.environment_triggers}

    def trigger_types(self) -> Dict[str, str]:
        """Map trigger key to "text" or "array"."""
        return {t.key: t.type for t in self.environment_triggers}


def load_callflow_config(config_path: Optional[Path] = None) -> CallFlowConfig:
    """
    Load call flow configuration from YAML file.

    Args:
        config_path: Path to callflow_config.yaml. If None, uses default path.

    Returns:
        CallFlowConfig with validated settings

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    if config_path is None:
        # Default path: config/callflow_config.yaml relative to project root
        project_config = (
            Path(__file__).resolve().parent.parent.parent
            / "config"
            / "callflow_config.yaml"
        )
        cwd_config = Path.cwd() / "config" / "callflow_config.yaml"
        if project_config.exists():
            config_path = project_config
        elif cwd_config.exists():
            config_path = cwd_config
        else:
            return CallFlowConfig()

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return CallFlowConfig()

    try:
        with open(str(config_path)) as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not config_data:
        return CallFlowConfig()

    try:
        return CallFlowConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid call flow config {config_path}: {e}") from e


def resolve_flows_dir(s: Optional[Settings] = None) -> Path:
    """Directory holding flow graph YAML files."""
    s = s or settings
    if s.flows_dir is not None:
        return Path(s.flows_dir)
    project_flows = Path(__file__).resolve().parent.parent.parent / "config" / "flows"
    if project_flows.exists():
        return project_flows
    return Path(s.config_dir) / "flows"


# Global settings instance
settings = Settings()

# Global call flow config instance
callflow_config = load_callflow_config()
