"""Configuration system for the audit engine.

This module loads engine settings from YAML, validates them with pydantic,
and applies environment-specific overrides from the ``environments``
section. The active environment comes from the caller, else the
``GDPR_AUDIT_ENV`` variable, else ``production``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from ..detectors.rules import DEFAULT_RULES, DetectorRuleSet, load_rule_set
from ..scoring import ScoringPolicy
from .browser_factory import DEFAULT_LAUNCH_ARGS, DEFAULT_USER_AGENT, BrowserConfig
from .page_session import PageSessionConfig, WaitStrategy

logger = logging.getLogger(__name__)

ENVIRONMENT_VARIABLE = "GDPR_AUDIT_ENV"
DEFAULT_CONFIG_PATH = Path(__file__).parents[3] / "config" / "audit.yaml"


class ConfigLoadError(Exception):
    """Exception raised when configuration loading fails."""
    pass


class BrowserSettings(BaseModel):
    """Browser launch and page setup settings."""

    headless: bool = True
    launch_timeout_ms: int = Field(default=60000, gt=0)
    navigation_timeout_ms: int = Field(default=60000, gt=0)
    operation_timeout_ms: int = Field(default=30000, gt=0)
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = Field(default=1366, gt=0)
    viewport_height: int = Field(default=768, gt=0)
    launch_args: List[str] = Field(default_factory=lambda: list(DEFAULT_LAUNCH_ARGS))
    ignore_https_errors: bool = False


class AuditRunSettings(BaseModel):
    """Navigation, retry and concurrency settings for audits."""

    wait_until: str = WaitStrategy.DOMCONTENTLOADED
    settle_delay_ms: int = Field(default=3000, ge=0)
    max_retries: int = Field(default=2, ge=0)
    retry_delay_ms: int = Field(default=3000, ge=0)
    max_concurrent_audits: int = Field(default=5, ge=1)
    ssl_timeout_ms: int = Field(default=10000, gt=0)
    ssl_port: int = Field(default=443, gt=0, lt=65536)

    @field_validator('wait_until')
    @classmethod
    def validate_wait_until(cls, v):
        if v not in WaitStrategy.ALL:
            raise ValueError(f"wait_until must be one of: {WaitStrategy.ALL}")
        return v


class AuditSettings(BaseModel):
    """Root configuration for the audit engine."""

    environment: str = Field(default="production", description="Environment name")
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    audit: AuditRunSettings = Field(default_factory=AuditRunSettings)
    scoring: ScoringPolicy = Field(default_factory=ScoringPolicy)
    rules_file: Optional[str] = Field(
        default=None,
        description="YAML file overriding the built-in detector rules"
    )

    def get_browser_config(self) -> BrowserConfig:
        """Build the browser factory configuration."""
        return BrowserConfig(
            headless=self.browser.headless,
            launch_timeout_ms=self.browser.launch_timeout_ms,
            navigation_timeout_ms=self.browser.navigation_timeout_ms,
            operation_timeout_ms=self.browser.operation_timeout_ms,
            user_agent=self.browser.user_agent,
            viewport={'width': self.browser.viewport_width, 'height': self.browser.viewport_height},
            launch_args=self.browser.launch_args,
            ignore_https_errors=self.browser.ignore_https_errors,
        )

    def get_session_config(self) -> PageSessionConfig:
        """Build the per-page capture configuration."""
        return PageSessionConfig(
            wait_until=self.audit.wait_until,
            navigation_timeout_ms=self.browser.navigation_timeout_ms,
            settle_delay_ms=self.audit.settle_delay_ms,
        )

    def get_rule_set(self) -> DetectorRuleSet:
        """Load the detector rules, or the built-in set if none is configured.

        Raises:
            RuleLoadError: If the configured rules file is invalid
        """
        if not self.rules_file:
            return DEFAULT_RULES
        return load_rule_set(self.rules_file)


def load_audit_settings(
    config_path: Optional[Union[str, Path]] = None,
    environment: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> AuditSettings:
    """Load AuditSettings from a YAML file with environment overrides.

    Args:
        config_path: Path to YAML config file. If None, uses config/audit.yaml
            and falls back to built-in defaults when that file is absent.
        environment: Environment name for override selection. If None, uses ENV var.
        overrides: Additional configuration overrides to apply.

    Returns:
        Validated AuditSettings instance.

    Raises:
        ConfigLoadError: If configuration loading or validation fails.
    """
    if environment is None:
        environment = os.getenv(ENVIRONMENT_VARIABLE, "production")

    if config_path is None:
        path = DEFAULT_CONFIG_PATH
        if not path.exists():
            logger.debug(f"No config file at {path}, using built-in defaults")
            config_data: Dict[str, Any] = {}
        else:
            config_data = _read_yaml(path)
    else:
        path = Path(config_path)
        if not path.exists():
            raise ConfigLoadError(f"Config file not found: {path}")
        config_data = _read_yaml(path)

    if "environments" in config_data and environment in (config_data["environments"] or {}):
        config_data = _deep_merge(config_data, config_data["environments"][environment])
        logger.info(f"Applied environment overrides for: {environment}")

    config_data.pop("environments", None)

    if overrides:
        config_data = _deep_merge(config_data, overrides)
        logger.debug("Applied additional configuration overrides")

    config_data["environment"] = environment

    # Relative rules paths are resolved against the config file's directory.
    rules_file = config_data.get("rules_file")
    if rules_file and not Path(rules_file).is_absolute():
        config_data["rules_file"] = str(path.parent / rules_file)

    try:
        return AuditSettings(**config_data)
    except Exception as e:
        raise ConfigLoadError(f"Failed to create AuditSettings: {e}")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse YAML config: {e}")
    except IOError as e:
        raise ConfigLoadError(f"Failed to read config file: {e}")

    if config_data is None:
        return {}
    if not isinstance(config_data, dict):
        raise ConfigLoadError("Config file must contain a YAML dictionary")
    return config_data


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence.

    Args:
        base: Base configuration dictionary.
        override: Override values to merge in.

    Returns:
        Merged configuration dictionary.
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result
