"""Deployment parameter sources: YAML settings files and a remote config server.

Both sources are reduced to flat property maps keyed like
``hysteria.deployment.port`` so they can be layered before building
DeploymentParameters.
"""

import logging
import os

import httpx
import yaml

from autohy2.deploy.params import DEFAULT_BANDWIDTH, DeploymentParameters

logger = logging.getLogger(__name__)

PREFIX = "hysteria.deployment."
PASSWORD_ENV = "HY2_PASSWORD"
DEFAULT_APPLICATION = "hy2-installer-client"
DEFAULT_PROFILE = "default"

# property key suffix -> DeploymentParameters field
PROPERTY_FIELDS = {
    "port": "port",
    "password": "password",
    "fake-domain": "fake_domain",
    "bandwidth-up": "bandwidth_up",
    "bandwidth-down": "bandwidth_down",
}


def flatten(d, prefix=""):
    """Flatten nested dicts into dotted keys: {"a": {"b": 1}} -> {"a.b": 1}."""
    result = {}
    for key, value in d.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, dict):
            result.update(flatten(value, f"{full_key}."))
        else:
            result[full_key] = value
    return result


def load_settings_file(path):
    """Load a YAML settings file into a flat property map."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Settings file not found: {path}")
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Settings file {path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return flatten(data)


async def fetch_remote_settings(url, application=DEFAULT_APPLICATION, profile=DEFAULT_PROFILE, client=None, timeout=30):
    """Fetch properties from a config server: GET {url}/{application}/{profile}.

    The response lists ``propertySources`` in precedence order; earlier
    sources override later ones.
    """
    endpoint = f"{url.rstrip('/')}/{application}/{profile}"
    logger.info(f"Fetching deployment settings from {endpoint}")
    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            resp = await own_client.get(endpoint)
    else:
        resp = await client.get(endpoint)
    resp.raise_for_status()

    body = resp.json()
    sources = body.get("propertySources", []) if isinstance(body, dict) else None
    if not isinstance(sources, list) or not all(isinstance(s, dict) for s in sources):
        raise ValueError(f"Unexpected config server response from {endpoint}")

    properties = {}
    for source in reversed(sources):
        source_map = source.get("source") or {}
        if not isinstance(source_map, dict):
            raise ValueError(f"Unexpected config server response from {endpoint}")
        properties.update(flatten(source_map))
    return properties


def params_from_properties(properties, overrides=None) -> DeploymentParameters:
    """Build DeploymentParameters from a property map plus field overrides.

    Overrides use DeploymentParameters field names; None values are ignored.
    The password falls back to $HY2_PASSWORD before the property map.
    """
    values = {}
    for suffix, field_name in PROPERTY_FIELDS.items():
        if f"{PREFIX}{suffix}" in properties:
            values[field_name] = properties[f"{PREFIX}{suffix}"]

    env_password = os.environ.get(PASSWORD_ENV)
    if env_password:
        values["password"] = env_password

    for field_name, value in (overrides or {}).items():
        if value is not None:
            values[field_name] = value

    missing = [f for f in ("port", "password", "fake_domain") if values.get(f) in (None, "")]
    if missing:
        keys = ", ".join(f"{PREFIX}{k}" for k, v in PROPERTY_FIELDS.items() if v in missing)
        raise ValueError(f"Missing deployment settings: {keys}")

    try:
        port = int(values["port"])
    except (TypeError, ValueError):
        raise ValueError(f"port must be an integer, got {values['port']!r}") from None

    return DeploymentParameters(
        port=port,
        password=str(values["password"]),
        fake_domain=str(values["fake_domain"]),
        bandwidth_up=str(values.get("bandwidth_up") or DEFAULT_BANDWIDTH),
        bandwidth_down=str(values.get("bandwidth_down") or DEFAULT_BANDWIDTH),
    )
