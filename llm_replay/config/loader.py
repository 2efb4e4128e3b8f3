"""
Configuration management and loading.

Handles replay settings: database location and the per-provider dispatch
policy (timeout and retries).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml

from ..storage.db import DEFAULT_DB_PATH
from ..storage.models import ProviderRecord


@dataclass(frozen=True)
class DispatchPolicy:
    """Timeout and retry policy for outbound provider calls.

    Replays are diagnostics, so the default is a single attempt.
    """
    timeout_seconds: float = 60.0
    max_retries: int = 0

    def __post_init__(self):
        """Validate policy values."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")


@dataclass(frozen=True)
class ReplayConfig:
    """Complete replay engine configuration."""
    database: str = DEFAULT_DB_PATH
    dispatch: DispatchPolicy = field(default_factory=DispatchPolicy)
    providers: Dict[str, DispatchPolicy] = field(default_factory=dict)

    def policy_for(self, provider: ProviderRecord) -> DispatchPolicy:
        """Resolve the dispatch policy for a provider.

        A policy keyed by the provider's name wins over one keyed by its
        provider type; otherwise the default policy applies.
        """
        if provider.name in self.providers:
            return self.providers[provider.name]
        return self.providers.get(provider.provider_type, self.dispatch)


def load_replay_config(path: Optional[str] = None) -> ReplayConfig:
    """Load and validate replay configuration from a YAML file.

    Validation is strict: unknown keys and out-of-range values are errors
    rather than being silently ignored.

    Args:
        path: Path to YAML configuration file; None returns the defaults

    Returns:
        Validated ReplayConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return ReplayConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Replay config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'database', 'dispatch', 'providers'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    database = raw_config.get('database', DEFAULT_DB_PATH)
    if not isinstance(database, str) or not database.strip():
        raise ValueError("'database' must be a non-empty string")

    dispatch = DispatchPolicy()
    if 'dispatch' in raw_config:
        dispatch = _parse_dispatch_policy(raw_config['dispatch'], "dispatch", dispatch)

    providers_data = raw_config.get('providers') or {}
    if not isinstance(providers_data, dict):
        raise ValueError("'providers' must be a dictionary")

    # Provider entries inherit whatever they leave out from the default policy
    providers = {}
    for provider_key, provider_data in providers_data.items():
        providers[str(provider_key)] = _parse_dispatch_policy(
            provider_data, f"providers.{provider_key}", dispatch
        )

    return ReplayConfig(
        database=database,
        dispatch=dispatch,
        providers=providers
    )


def _parse_dispatch_policy(data: Dict, path: str, base: DispatchPolicy) -> DispatchPolicy:
    """Parse and validate a dispatch policy section.

    Args:
        data: Policy configuration data
        path: Path for error messages
        base: Policy supplying values for keys that are not given

    Returns:
        Validated DispatchPolicy

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")

    allowed_keys = {'timeout_seconds', 'max_retries'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    timeout = data.get('timeout_seconds', base.timeout_seconds)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError(f"'timeout_seconds' in {path} must be > 0")

    retries = data.get('max_retries', base.max_retries)
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
        raise ValueError(f"'max_retries' in {path} must be an integer >= 0")

    return DispatchPolicy(
        timeout_seconds=float(timeout),
        max_retries=retries
    )
