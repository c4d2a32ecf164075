"""Remote descriptor validation.

Turns the map a pipeline supplies into a ``RemoteConfig``. This is a pure
structural check: no network or filesystem access happens here, so a bad
descriptor is rejected before any work is scheduled.
"""

from collections.abc import Mapping
from typing import Any

from ssh_steps.errors import InvalidFieldError, MissingFieldError
from ssh_steps.models import RemoteConfig

_TRUE_STRINGS = ("1", "true", "yes", "on")


def _text(descriptor: Mapping[str, Any], key: str) -> str | None:
    """Return a trimmed string field, or None when absent/blank."""
    value = descriptor.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _flag(descriptor: Mapping[str, Any], key: str, default: bool = False) -> bool:
    value = descriptor.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def _integer(descriptor: Mapping[str, Any], key: str, default: int) -> int:
    value = descriptor.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidFieldError(f"{key} must be an integer, got {value!r}", key)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidFieldError(f"{key} must be an integer, got {value!r}", key) from e


def _number(descriptor: Mapping[str, Any], key: str, default: float | None) -> float | None:
    value = descriptor.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidFieldError(f"{key} must be a number, got {value!r}", key)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise InvalidFieldError(f"{key} must be a number, got {value!r}", key) from e


def validate_remote(descriptor: Mapping[str, Any] | None) -> RemoteConfig:
    """Validate a remote descriptor and build an immutable RemoteConfig.

    Args:
        descriptor: Map with name, user, host, auth material, knownHosts,
            allowAnyHosts and an optional nested gateway descriptor

    Returns:
        RemoteConfig with the gateway chain validated recursively

    Raises:
        MissingFieldError: If the descriptor, name, user or knownHosts is missing
        InvalidFieldError: If a numeric field cannot be parsed
    """
    if not descriptor:
        raise MissingFieldError("remote is null or empty", "remote")
    if not isinstance(descriptor, Mapping):
        raise InvalidFieldError(
            f"remote must be a map, got {type(descriptor).__name__}", "remote"
        )

    name = _text(descriptor, "name")
    if name is None:
        raise MissingFieldError(
            "a remote (or a gateway) is missing the required field 'name'", "name"
        )

    user = _text(descriptor, "user")
    if user is None:
        raise MissingFieldError(f"user must be given ({name})", "user")

    known_hosts = _text(descriptor, "knownHosts")
    allow_any_hosts = _flag(descriptor, "allowAnyHosts")
    if known_hosts is None and not allow_any_hosts:
        raise MissingFieldError(
            f"knownHosts must be provided when allowAnyHosts is false: {name}",
            "knownHosts",
        )

    gateway = None
    gateway_descriptor = descriptor.get("gateway")
    if gateway_descriptor is not None:
        gateway = validate_remote(gateway_descriptor)

    port = _integer(descriptor, "port", 22)
    if not 0 < port < 65536:
        raise InvalidFieldError(f"port must be between 1 and 65535, got {port}", "port")

    retry_count = _integer(descriptor, "retryCount", 0)
    if retry_count < 0:
        raise InvalidFieldError(f"retryCount must be >= 0, got {retry_count}", "retryCount")

    return RemoteConfig(
        name=name,
        user=user,
        host=_text(descriptor, "host") or name,
        port=port,
        password=_text(descriptor, "password"),
        identity=_text(descriptor, "identity"),
        identity_file=_text(descriptor, "identityFile"),
        passphrase=_text(descriptor, "passphrase"),
        agent=_flag(descriptor, "agent"),
        known_hosts=known_hosts,
        allow_any_hosts=allow_any_hosts,
        gateway=gateway,
        timeout_sec=_number(descriptor, "timeoutSec", None),
        retry_count=retry_count,
        retry_wait_sec=_number(descriptor, "retryWaitSec", 0.0) or 0.0,
        pty=_flag(descriptor, "pty"),
        append_name=_flag(descriptor, "appendName"),
        encoding=_text(descriptor, "encoding") or "utf-8",
    )
