"""
Configuration management and loading.

Handles pricing overrides, billing constants, and account credentials
from a YAML file and environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from fleet_cost.core.pricing import PRICING_TABLE, PricingDimension, PricingRule, PricingTable
from fleet_cost.core.usage import DEFAULT_BILLING, BillingConstants

DEFAULT_CONFIG_PATH = Path.home() / ".fleet-cost" / "config.yaml"
DEFAULT_SCRIPT_PREFIX = "flarepilot-"

ENV_ACCOUNT_ID = "FLEET_COST_ACCOUNT_ID"
ENV_API_TOKEN = "FLEET_COST_API_TOKEN"


@dataclass(frozen=True)
class AccountConfig:
    """Credentials for the vendor API."""
    account_id: str
    api_token: str

    def __post_init__(self):
        """Validate credentials are non-empty."""
        if not self.account_id or not self.account_id.strip():
            raise ValueError("account_id is required and cannot be empty")
        if not self.api_token or not self.api_token.strip():
            raise ValueError("api_token is required and cannot be empty")


@dataclass(frozen=True)
class FleetCostConfig:
    """Complete tool configuration."""
    account: Optional[AccountConfig] = None
    script_prefix: str = DEFAULT_SCRIPT_PREFIX
    pricing: PricingTable = PRICING_TABLE
    billing: BillingConstants = DEFAULT_BILLING

    def require_account(self) -> AccountConfig:
        """Get account credentials, failing loudly if none are configured."""
        if self.account is None:
            raise ValueError(
                f"Not authenticated. Set {ENV_ACCOUNT_ID} and {ENV_API_TOKEN}, "
                f"or add an 'account' section to {DEFAULT_CONFIG_PATH}"
            )
        return self.account


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> FleetCostConfig:
    """Load and validate configuration.

    An explicitly given path must exist. The default path is optional;
    when it is absent, built-in pricing is used and credentials come from
    the environment only.

    Args:
        path: Path to YAML configuration file (defaults to ~/.fleet-cost/config.yaml)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated FleetCostConfig

    Raises:
        FileNotFoundError: If an explicit config path doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    environ = os.environ if environ is None else environ

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
    else:
        config_path = DEFAULT_CONFIG_PATH

    raw_config: Dict[str, Any] = {}
    if config_path.exists():
        raw_config = _read_yaml(config_path)

    allowed_top_keys = {'account', 'script_prefix', 'pricing', 'platform_fee', 'billing'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    script_prefix = raw_config.get('script_prefix', DEFAULT_SCRIPT_PREFIX)
    if not isinstance(script_prefix, str):
        raise ValueError("'script_prefix' must be a string")

    platform_fee = None
    if 'platform_fee' in raw_config:
        platform_fee = _parse_amount(raw_config['platform_fee'], "platform_fee")

    return FleetCostConfig(
        account=_parse_account(raw_config.get('account'), environ),
        script_prefix=script_prefix,
        pricing=PRICING_TABLE.with_overrides(
            rules=_parse_pricing(raw_config.get('pricing', {})),
            platform_fee=platform_fee,
        ),
        billing=_parse_billing(raw_config.get('billing', {})),
    )


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {config_path}: {e}")

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration file must contain a mapping")
    return raw_config


def _parse_account(data: Any, environ: Mapping[str, str]) -> Optional[AccountConfig]:
    """Merge the file's account section with environment overrides."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError("'account' must be a dictionary")

    allowed_keys = {'account_id', 'api_token'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in account: {unknown_keys}")

    account_id = environ.get(ENV_ACCOUNT_ID) or data.get('account_id')
    api_token = environ.get(ENV_API_TOKEN) or data.get('api_token')
    if not account_id and not api_token:
        return None
    if not account_id:
        raise ValueError("Missing required 'account_id' in account")
    if not api_token:
        raise ValueError("Missing required 'api_token' in account")

    return AccountConfig(account_id=str(account_id), api_token=str(api_token))


def _parse_pricing(data: Any) -> Dict[PricingDimension, PricingRule]:
    """Parse and validate per-dimension pricing overrides.

    Args:
        data: Mapping of dimension name to {included, rate}

    Returns:
        Overridden rules only; omitted dimensions keep their defaults

    Raises:
        ValueError: If a dimension or field is unknown or invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'pricing' must be a dictionary")

    valid_dimensions = {dim.value: dim for dim in PricingDimension}
    rules = {}
    for name, rule_data in data.items():
        if name not in valid_dimensions:
            raise ValueError(
                f"Unknown pricing dimension '{name}', must be one of: {list(valid_dimensions)}"
            )
        path = f"pricing.{name}"
        if not isinstance(rule_data, dict):
            raise ValueError(f"'{path}' must be a dictionary")

        allowed_keys = {'included', 'rate'}
        unknown_keys = set(rule_data.keys()) - allowed_keys
        if unknown_keys:
            raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

        default = PRICING_TABLE.get_rule(valid_dimensions[name])
        included = default.included_quota
        rate = default.marginal_rate
        if 'included' in rule_data:
            included = _parse_amount(rule_data['included'], f"{path}.included")
        if 'rate' in rule_data:
            rate = _parse_amount(rule_data['rate'], f"{path}.rate")

        rules[valid_dimensions[name]] = PricingRule(included_quota=included, marginal_rate=rate)
    return rules


def _parse_billing(data: Any) -> BillingConstants:
    if not isinstance(data, dict):
        raise ValueError("'billing' must be a dictionary")

    allowed_keys = {'websocket_messages_per_request', 'durable_object_memory_mib'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in billing: {unknown_keys}")

    values = {}
    for key in allowed_keys & set(data.keys()):
        value = _parse_amount(data[key], f"billing.{key}")
        if value == 0:
            raise ValueError(f"'billing.{key}' must be > 0")
        values[key] = value
    return BillingConstants(**values)


def _parse_amount(value: Any, path: str) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    if value < 0:
        raise ValueError(f"'{path}' must be >= 0")
    return float(value)
