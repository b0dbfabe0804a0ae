"""Driver configuration management.

Configuration is loaded from an optional YAML file:

    terraform_binary: /usr/local/bin/terraform
    assets_dir: /srv/tf-driver/data
    tf_log: trace
    timeout: 3600
    diagnose_rules:
      - name: custom-quota
        match: "Quota .* exhausted"
        message: "project quota exhausted, request an increase"

Resolution order for the file:
1. Explicit path (CLI --config)
2. $TF_DRIVER_CONFIG environment variable
3. ~/.config/tf-driver/config.yaml (if present)
4. Built-in defaults

Environment overrides are applied last:
TF_DRIVER_TERRAFORM, TF_DRIVER_ASSETS, TF_DRIVER_TF_LOG, TF_DRIVER_TIMEOUT.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml


class ConfigError(Exception):
    """Configuration error."""


@dataclass
class DriverConfig:
    """Settings for a provisioning session."""
    terraform_binary: str = 'terraform'
    assets_dir: Optional[Path] = None  # None uses the bundled store
    tf_log: str = 'trace'
    timeout: Optional[int] = None  # seconds, None waits forever
    diagnose_rules: list = field(default_factory=list)
    config_file: Optional[Path] = None

    def __post_init__(self):
        if isinstance(self.assets_dir, str):
            self.assets_dir = Path(self.assets_dir).expanduser()
        if isinstance(self.config_file, str):
            self.config_file = Path(self.config_file)
        if self.timeout is not None:
            try:
                self.timeout = int(self.timeout)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"timeout must be an integer, got {self.timeout!r}") from e
            if self.timeout <= 0:
                raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if not isinstance(self.diagnose_rules, list):
            raise ConfigError("diagnose_rules must be a list")
        # Reject bad patterns at load time
        self.rules()

    def store(self):
        """Artifact store for module trees and auxiliary files."""
        from terraform.assets import ArtifactStore, default_store
        if self.assets_dir:
            return ArtifactStore(self.assets_dir)
        return default_store()

    def runner(self):
        """Process runner for the configured tool binary."""
        from terraform.runner import TerraformRunner
        return TerraformRunner(self.terraform_binary, timeout=self.timeout)

    def rules(self):
        """Built-in diagnosis rules followed by configured ones."""
        from terraform.diagnose import RULES, load_rules
        try:
            return RULES + load_rules(self.diagnose_rules)
        except ValueError as e:
            raise ConfigError(f"invalid diagnose_rules: {e}") from e


def get_base_dir() -> Path:
    """Get the tf-driver source directory."""
    return Path(__file__).parent  # src/


def get_user_config_path() -> Path:
    """Per-user configuration file location."""
    return Path.home() / '.config' / 'tf-driver' / 'config.yaml'


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML file and return contents."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def _find_config_file(path: Optional[Path]) -> Optional[Path]:
    """Locate the config file following the documented resolution order."""
    # 1. Explicit path
    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        return path

    # 2. Environment variable
    if env_path := os.environ.get('TF_DRIVER_CONFIG'):
        path = Path(env_path)
        if not path.is_file():
            raise ConfigError(f"TF_DRIVER_CONFIG={env_path} does not exist")
        return path

    # 3. User config
    user_path = get_user_config_path()
    if user_path.is_file():
        return user_path

    return None


def load_config(path: Optional[Path] = None) -> DriverConfig:
    """Load driver configuration.

    Raises:
        ConfigError: if a named file is missing, unparsable, or has
            unknown keys.
    """
    values: dict = {}
    config_file = _find_config_file(path)
    if config_file:
        values = _parse_yaml(config_file)
        known = {f.name for f in fields(DriverConfig)} - {'config_file'}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"Unknown keys in {config_file}: {', '.join(unknown)}")
        values['config_file'] = config_file

    if binary := os.environ.get('TF_DRIVER_TERRAFORM'):
        values['terraform_binary'] = binary
    if assets := os.environ.get('TF_DRIVER_ASSETS'):
        values['assets_dir'] = assets
    if tf_log := os.environ.get('TF_DRIVER_TF_LOG'):
        values['tf_log'] = tf_log
    if timeout := os.environ.get('TF_DRIVER_TIMEOUT'):
        values['timeout'] = timeout

    return DriverConfig(**values)
