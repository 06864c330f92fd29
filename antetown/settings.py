"""
Process settings for antetown.
Loads the .env file with python-dotenv and overlays the real environment.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from dotenv import dotenv_values

from .errors import ConfigError
from .version import get_version_info

DEFAULT_SECRET = 'antetown-dev-secret'


@dataclass(frozen=True)
class Settings:
    secret: str = DEFAULT_SECRET
    server_name: str = 'antetown'
    server_env: str = 'Development'
    health_host: str = '0.0.0.0'
    health_port: int = 22223
    log_level: str = 'INFO'
    sweep_interval: float = 10.0


def _read_env(env_file: Optional[str]) -> Dict[str, str]:
    env: Dict[str, str] = {}
    if env_file:
        env.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    # overlay with REAL env
    for key in ('ANTETOWN_SECRET', 'SERVER_NAME', 'SERVER_ENV', 'HEALTHCHECK_HOST',
                'HEALTHCHECK_PORT', 'LOG_LEVEL', 'SWEEP_INTERVAL'):
        if os.getenv(key) is not None:
            env[key] = os.getenv(key)
    return env


def load_settings(env_file: Optional[str] = '.env') -> Settings:
    """Build Settings from the .env file and the process environment."""
    env = _read_env(env_file)
    try:
        health_port = int(env.get('HEALTHCHECK_PORT', '22223'))
        sweep_interval = float(env.get('SWEEP_INTERVAL', '10'))
    except ValueError as e:
        raise ConfigError(f"Invalid numeric setting: {e}")
    if not 0 < health_port < 65536:
        raise ConfigError(f"HEALTHCHECK_PORT out of range: {health_port}")
    return Settings(
        secret=env.get('ANTETOWN_SECRET', DEFAULT_SECRET),
        server_name=env.get('SERVER_NAME', 'antetown'),
        server_env=env.get('SERVER_ENV', 'Development'),
        health_host=env.get('HEALTHCHECK_HOST', '0.0.0.0'),
        health_port=health_port,
        log_level=env.get('LOG_LEVEL', 'INFO').upper(),
        sweep_interval=sweep_interval,
    )


def get_server_info(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Server information including version details. Never includes the secret."""
    settings = settings or load_settings()
    return {
        'server_name': settings.server_name,
        'server_env': settings.server_env,
        'health_endpoint': f"{settings.health_host}:{settings.health_port}",
        **get_version_info()
    }
