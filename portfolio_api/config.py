"""
Server configuration
Defaults, then an optional YAML file, then environment variables
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULTS = {
    'host': '0.0.0.0',
    'port': 10000,
    'data_dir': './data',
    'upload_dir': None,
    'max_content_length': 10 * 1024 * 1024,
    'cors_origins': '*',
    'log_level': 'INFO',
    'smtp_host': None,
    'smtp_port': 587,
    'smtp_secure': False,
    'smtp_user': None,
    'smtp_pass': None,
    'from_name': 'Portfolio',
    'contact_email': None,
}

INT_SETTINGS = {'port', 'max_content_length', 'smtp_port'}
BOOL_SETTINGS = {'smtp_secure'}


class Settings:
    def __init__(self, **values):
        unknown = set(values) - set(DEFAULTS)
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")

        merged = dict(DEFAULTS)
        merged.update(values)

        self.host = merged['host']
        self.port = _to_int('port', merged['port'])
        self.data_dir = Path(merged['data_dir'])
        self.upload_dir = Path(merged['upload_dir']) if merged['upload_dir'] else self.data_dir / 'uploads'
        self.max_content_length = _to_int('max_content_length', merged['max_content_length'])
        self.cors_origins = _to_origins(merged['cors_origins'])
        self.log_level = str(merged['log_level']).upper()
        self.smtp_host = merged['smtp_host']
        self.smtp_port = _to_int('smtp_port', merged['smtp_port'])
        self.smtp_secure = _to_bool(merged['smtp_secure'])
        self.smtp_user = merged['smtp_user']
        self.smtp_pass = merged['smtp_pass']
        self.from_name = merged['from_name']
        self.contact_email = merged['contact_email']

    def __repr__(self):
        return f"Settings(data_dir={str(self.data_dir)!r}, port={self.port})"


def _to_int(name, value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Setting '{name}' must be an integer, got {value!r}")


def _to_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _to_origins(value):
    if isinstance(value, (list, tuple)):
        return list(value)
    origins = [o.strip() for o in str(value).split(',') if o.strip()]
    if origins == ['*']:
        return '*'
    return origins or '*'


def load_yaml_config(path: Path) -> Dict[str, Any]:
    """Read settings from a YAML mapping"""
    try:
        data = yaml.safe_load(Path(path).read_text(encoding='utf-8')) or {}
    except OSError as e:
        raise ConfigError(f"Could not read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse YAML in {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return {str(k).lower(): v for k, v in data.items()}


def load_settings(config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from defaults, an optional YAML file and the environment"""
    if environ is None:
        environ = os.environ

    values = {}

    config_path = config_path or environ.get('PORTFOLIO_CONFIG')
    if config_path:
        logger.info(f"Loading config file: {config_path}")
        values.update(load_yaml_config(Path(config_path)))

    for name in DEFAULTS:
        env_value = environ.get(name.upper())
        if env_value is not None and env_value != '':
            values[name] = env_value

    return Settings(**values)
