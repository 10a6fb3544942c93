"""Configuration management"""

import math
import os
import yaml
from pathlib import Path
from typing import Dict, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv, find_dotenv

from latency_agent.errors import ConfigError


MAX_RESULTS_LIMIT = 20000


def get_default_config() -> Dict[str, Any]:
    """Get default configuration"""
    return {
        'agent': {
            'hostname': 'auto',
            'log_level': 'INFO',
            'log_file': None,
            'log_format': 'text',
        },
        'prometheus': {
            'enabled': False,
            'port': 9100,
            'host': '0.0.0.0',
        },
        'apm': {
            'base_url': '',
            'index_pattern': '',
            'service_name': 'production-search-afra',
            'lookback_minutes': 5,
            'max_results': 10000,
            'sample_unit_divisor': 1000.0,  # microseconds -> milliseconds
            'timeout': 10,
        },
        'monitoring': {
            'interval': 300,
            'off_hours_interval': 1800,
            'latency_threshold_ms': 2000.0,
            'alert_cooldown_minutes': 30,
            'alert_code': '673',
            'business_hours': {
                'enabled': True,
                'start_hour': 7,
                'end_hour': 24,
                'timezone': 'Asia/Tehran',
            },
        },
        'notifier': {
            'api_url': 'https://api.limosms.com/api/sendpatternmessage',
            'api_key': '',
            'sender_number': '',
            'receiver_number': '',
            'timeout': 10,
        },
    }


def load_config(config_path: str = None, env_file: str = None) -> Dict[str, Any]:
    """
    Load configuration from file and environment variables

    Variables from a .env file are loaded first but never override
    variables already present in the process environment.

    Args:
        config_path: Path to YAML configuration file
        env_file: Path to a .env file (defaults to the nearest .env from the cwd)

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If configuration is missing or invalid
    """
    env_path = env_file or find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)

    # Start with defaults
    config = get_default_config()

    # Load from YAML file if provided
    if config_path:
        if not Path(config_path).exists():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            with open(config_path, 'r') as f:
                yaml_config = yaml.safe_load(f)
                if yaml_config and not isinstance(yaml_config, dict):
                    raise ConfigError(f"Config file {config_path} must contain a mapping")
                if yaml_config:
                    config = merge_configs(config, yaml_config)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")

    # Override with environment variables
    config = override_from_env(config)

    # Validate configuration
    validate_config(config)

    return config


def merge_configs(base: Dict, override: Dict) -> Dict:
    """Recursively merge two configuration dictionaries"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and not isinstance(value, dict):
            raise ConfigError(f"Config section '{key}' must be a mapping, got {value!r}")
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value
    return result


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# env var -> (section path, key, converter)
ENV_OVERRIDES = {
    'AGENT_HOSTNAME': (('agent',), 'hostname', str),
    'LOG_LEVEL': (('agent',), 'log_level', lambda v: v.upper()),
    'LOG_FILE': (('agent',), 'log_file', str),
    'LOG_FORMAT': (('agent',), 'log_format', lambda v: v.lower()),
    'PROMETHEUS_ENABLED': (('prometheus',), 'enabled', _parse_bool),
    'PROMETHEUS_PORT': (('prometheus',), 'port', int),
    'PROMETHEUS_HOST': (('prometheus',), 'host', str),
    'QUERY_URL': (('apm',), 'base_url', str),
    'INDEX_PATTERN': (('apm',), 'index_pattern', str),
    'SERVICE_NAME': (('apm',), 'service_name', str),
    'SAMPLE_UNIT_DIVISOR': (('apm',), 'sample_unit_divisor', float),
    'POLL_INTERVAL': (('monitoring',), 'interval', int),
    'LATENCY_THRESHOLD_MS': (('monitoring',), 'latency_threshold_ms', float),
    'ALERT_COOLDOWN_MINUTES': (('monitoring',), 'alert_cooldown_minutes', float),
    'BUSINESS_HOURS_ENABLED': (('monitoring', 'business_hours'), 'enabled', _parse_bool),
    'MONITOR_START_HOUR': (('monitoring', 'business_hours'), 'start_hour', int),
    'MONITOR_END_HOUR': (('monitoring', 'business_hours'), 'end_hour', int),
    'MONITOR_TIMEZONE': (('monitoring', 'business_hours'), 'timezone', str),
    'SMS_KEY': (('notifier',), 'api_key', str),
    'SENDER_NUMBER': (('notifier',), 'sender_number', str),
    'RECEIVER_NUMBER': (('notifier',), 'receiver_number', str),
}


def override_from_env(config: Dict) -> Dict:
    """Override configuration from environment variables"""
    for env_name, (path, key, convert) in ENV_OVERRIDES.items():
        if env_name not in os.environ:
            continue

        section = config
        for part in path:
            section = section[part]

        try:
            section[key] = convert(os.environ[env_name])
        except ValueError:
            raise ConfigError(f"Invalid value for {env_name}: {os.environ[env_name]!r}")

    return config


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _require_positive(section: Dict, key: str, section_name: str):
    value = section.get(key)
    if not _is_number(value) or value <= 0:
        raise ConfigError(f"Invalid {section_name}.{key}: {value}. Must be > 0")


def validate_config(config: Dict):
    """
    Validate configuration values

    Raises:
        ConfigError: If configuration is invalid
    """
    # Validate log level
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    log_level = str(config['agent']['log_level']).upper()
    if log_level not in valid_log_levels:
        raise ConfigError(f"Invalid log level: {log_level}. Must be one of {valid_log_levels}")

    valid_formats = ['text', 'json']
    if config['agent']['log_format'] not in valid_formats:
        raise ConfigError(f"Invalid log format: {config['agent']['log_format']}. Must be one of {valid_formats}")

    # Validate Prometheus port
    if config['prometheus']['enabled']:
        port = config['prometheus']['port']
        if not isinstance(port, int) or isinstance(port, bool) or not (1 <= port <= 65535):
            raise ConfigError(f"Invalid Prometheus port: {port}. Must be between 1 and 65535")

    # Required settings
    required = [
        ('apm', 'base_url', 'QUERY_URL'),
        ('apm', 'index_pattern', 'INDEX_PATTERN'),
        ('notifier', 'api_key', 'SMS_KEY'),
        ('notifier', 'sender_number', 'SENDER_NUMBER'),
        ('notifier', 'receiver_number', 'RECEIVER_NUMBER'),
    ]
    for section, key, env_name in required:
        if not config[section].get(key):
            raise ConfigError(f"{section}.{key} not set (environment variable {env_name})")

    apm = config['apm']
    for key in ('lookback_minutes', 'sample_unit_divisor', 'timeout'):
        _require_positive(apm, key, 'apm')

    max_results = apm['max_results']
    if not isinstance(max_results, int) or isinstance(max_results, bool) or not (0 < max_results <= MAX_RESULTS_LIMIT):
        raise ConfigError(
            f"Invalid apm.max_results: {max_results}. Must be between 1 and {MAX_RESULTS_LIMIT}"
        )

    monitoring = config['monitoring']
    for key in ('interval', 'off_hours_interval', 'alert_cooldown_minutes'):
        _require_positive(monitoring, key, 'monitoring')

    threshold = monitoring['latency_threshold_ms']
    if not _is_number(threshold) or threshold < 0:
        raise ConfigError(f"Invalid monitoring.latency_threshold_ms: {threshold}. Must be >= 0")

    if not str(monitoring.get('alert_code', '')).strip():
        raise ConfigError("monitoring.alert_code must not be empty")

    _validate_business_hours(monitoring['business_hours'])

    _require_positive(config['notifier'], 'timeout', 'notifier')
    if not config['notifier'].get('api_url'):
        raise ConfigError("notifier.api_url not set")


def _validate_business_hours(window: Dict):
    start_hour = window.get('start_hour')
    end_hour = window.get('end_hour')

    if not isinstance(start_hour, int) or isinstance(start_hour, bool) or not (0 <= start_hour <= 23):
        raise ConfigError(f"Invalid business_hours.start_hour: {start_hour}. Must be between 0 and 23")
    if not isinstance(end_hour, int) or isinstance(end_hour, bool) or not (0 <= end_hour <= 24):
        raise ConfigError(f"Invalid business_hours.end_hour: {end_hour}. Must be between 0 and 24")

    try:
        ZoneInfo(str(window.get('timezone')))
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown business_hours.timezone: {window.get('timezone')}")
