"""SSH connection helpers with retry and gateway tunnelling."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from typing import Any

import asyncssh

from ssh_steps.config.host_keys import HostKeyPolicy
from ssh_steps.errors import InvalidFieldError, TransportError
from ssh_steps.models import RemoteConfig

logger = logging.getLogger(__name__)


def _connect_options(remote: RemoteConfig) -> dict[str, Any]:
    """Translate a RemoteConfig into asyncssh.connect keyword arguments.

    Raises:
        InvalidFieldError: If key material or known_hosts cannot be used
    """
    policy = HostKeyPolicy(remote)
    options: dict[str, Any] = {
        "port": remote.port,
        "username": remote.user,
        "known_hosts": policy.get_known_hosts_path(),
    }

    client_keys: list[Any] = []
    if remote.identity:
        try:
            client_keys.append(
                asyncssh.import_private_key(remote.identity, remote.passphrase)
            )
        except (asyncssh.KeyImportError, ValueError) as e:
            raise InvalidFieldError(
                f"identity for {remote.name} is not a usable private key: {type(e).__name__}",
                "identity",
            ) from e
    if remote.identity_file:
        client_keys.append(remote.identity_file)
    if client_keys:
        options["client_keys"] = client_keys
        if remote.passphrase:
            options["passphrase"] = remote.passphrase

    if remote.password:
        options["password"] = remote.password
    if not remote.agent:
        options["agent_path"] = None
    if remote.timeout_sec:
        options["connect_timeout"] = remote.timeout_sec
    return options


async def connect_with_retry(
    remote: RemoteConfig,
    tunnel: asyncssh.SSHClientConnection | None = None,
) -> asyncssh.SSHClientConnection:
    """Connect to one hop, retrying ``remote.retry_count`` times.

    Args:
        remote: Hop to connect to
        tunnel: Connection to the previous gateway hop, if any

    Returns:
        Active SSH connection

    Raises:
        TransportError: If every attempt fails
        InvalidFieldError: If the hop's host key or key material is unusable
    """
    options = _connect_options(remote)
    if tunnel is not None:
        options["tunnel"] = tunnel

    attempts = remote.retry_count + 1
    attempt = 0
    while True:
        attempt += 1
        logger.info(
            "Opening SSH connection to %s (%s@%s:%d, attempt %d/%d)",
            remote.name,
            remote.user,
            remote.host,
            remote.port,
            attempt,
            attempts,
        )
        try:
            conn = await asyncssh.connect(remote.host, **options)
            logger.info("SSH connection established to %s", remote.name)
            return conn
        except (asyncssh.Error, OSError) as e:
            if attempt >= attempts:
                logger.error("Connection to %s failed: %s", remote.name, e)
                raise TransportError(remote.name, e) from e
            logger.warning(
                "Connection to %s failed: %s, retrying in %.1fs",
                remote.name,
                e,
                remote.retry_wait_sec,
            )
            await asyncio.sleep(remote.retry_wait_sec)


@asynccontextmanager
async def open_session(remote: RemoteConfig) -> AsyncIterator[asyncssh.SSHClientConnection]:
    """Open the gateway chain and the target; close them all on exit.

    Each hop is tunnelled through the previous one. Connections are closed
    innermost first, on success, error and cancellation alike.
    """
    opened: list[asyncssh.SSHClientConnection] = []
    try:
        tunnel: asyncssh.SSHClientConnection | None = None
        for hop in remote.chain():
            tunnel = await connect_with_retry(hop, tunnel=tunnel)
            opened.append(tunnel)
        assert tunnel is not None
        yield tunnel
    finally:
        for conn in reversed(opened):
            conn.close()
            with suppress(asyncssh.Error, OSError):
                await conn.wait_closed()
        if opened:
            logger.debug("Closed %d connection(s) for %s", len(opened), remote.name)
