# config.py
# Runtime settings and action-config loading.
#
# Settings come from DEPLOY_* environment variables and .env; the action
# config is YAML, validated into ScriptsConfig. Every failure here is a
# setup error raised before any action runs.

from pathlib import Path

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from deploy_orchestrator.errors import ConfigError, NetworkNotConfiguredError
from deploy_orchestrator.models import NetworkConfig, ScriptsConfig


class Settings(BaseSettings):
    """Settings loaded from DEPLOY_* environment variables and .env files."""

    project_root: Path = Path(".")
    sources_dir: str = "contracts"
    artifacts_dir: str = "artifacts"
    deployments_dir: str = "deployments"
    config_file: str = "deploy.yaml"
    address_overrides_file: str | None = None
    print_table: bool = False
    signer_count: int = Field(default=10, ge=1)

    model_config = SettingsConfigDict(env_file=".env", env_prefix="DEPLOY_", extra="ignore")

    def path(self, relative: str | Path) -> Path:
        """Resolve a configured path against project_root unless already absolute."""
        candidate = Path(relative)
        return candidate if candidate.is_absolute() else self.project_root / candidate


def load_scripts_config(path: str | Path) -> ScriptsConfig:
    """Read and validate the YAML action config."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read action config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Action config {path} is not valid YAML: {exc}") from exc

    try:
        return ScriptsConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Action config {path} is invalid:\n{exc}") from exc


def network_config(config: ScriptsConfig, network_name: str) -> NetworkConfig:
    try:
        return config.networks[network_name]
    except KeyError:
        raise NetworkNotConfiguredError(network_name, sorted(config.networks)) from None
