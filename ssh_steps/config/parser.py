"""SSH config file parser.

Reads ~/.ssh/config and turns Host blocks into remote descriptors with
allowlist/blocklist filtering, so a step can name a remote instead of
spelling out the whole map.
"""

import getpass
import logging
import os
import re
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_KNOWN_HOSTS = "~/.ssh/known_hosts"


class SSHConfigParser:
    """Parser for SSH config files.

    Reads SSH config format and extracts remote descriptors in the same
    shape a pipeline passes as ``remote``. ``ProxyJump`` becomes a nested
    ``gateway`` chain.
    """

    def __init__(
        self,
        config_path: Path | str | None = None,
        allowlist: list[str] | None = None,
        blocklist: list[str] | None = None,
    ):
        """Initialize SSH config parser.

        Args:
            config_path: Path to SSH config file (default: ~/.ssh/config)
            allowlist: Only include these hosts (if set)
            blocklist: Exclude these hosts
        """
        if config_path is None:
            config_path = Path.home() / ".ssh" / "config"

        self.config_path = Path(os.path.expanduser(str(config_path)))
        self.allowlist = set(allowlist) if allowlist else None
        self.blocklist = set(blocklist) if blocklist else set()

    def _read_blocks(self) -> dict[str, dict[str, str]]:
        """Collect raw key/value pairs per concrete Host block."""
        if not self.config_path.exists():
            logger.warning("SSH config not found: %s", self.config_path)
            return {}

        try:
            content = self.config_path.read_text()
            logger.debug("Reading SSH config from %s", self.config_path)
        except (OSError, PermissionError) as e:
            logger.warning("Cannot read SSH config %s: %s", self.config_path, e)
            return {}

        blocks: dict[str, dict[str, str]] = {}
        current_hosts: list[str] = []
        global_defaults: dict[str, str] = {}

        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            host_match = re.match(r"^Host\s+(.+)$", line, re.IGNORECASE)
            if host_match:
                current_hosts = []
                for alias in host_match.group(1).split():
                    if "*" in alias or "?" in alias:
                        current_hosts.append("*")
                    else:
                        current_hosts.append(alias)
                        blocks.setdefault(alias, {})
                continue

            kv_match = re.match(r"^(\w+)\s*=?\s*(.+)$", line)
            if not kv_match or not current_hosts:
                continue

            key = kv_match.group(1).lower()
            value = kv_match.group(2).strip().strip('"')
            if key in ("identityfile", "userknownhostsfile"):
                value = os.path.expanduser(value)
            for alias in current_hosts:
                target = global_defaults if alias == "*" else blocks[alias]
                # First obtained value wins, as in ssh_config(5)
                target.setdefault(key, value)

        for data in blocks.values():
            for key, value in global_defaults.items():
                data.setdefault(key, value)
        return blocks

    def parse(self) -> dict[str, dict[str, Any]]:
        """Parse SSH config and return remote descriptors.

        Returns:
            Dictionary mapping host alias to remote descriptor maps
        """
        blocks = self._read_blocks()
        remotes: dict[str, dict[str, Any]] = {}
        for alias, data in blocks.items():
            if not data.get("hostname") or not self._is_host_allowed(alias):
                continue
            remotes[alias] = self._to_descriptor(alias, blocks)

        logger.info("Parsed %d remote(s) from %s", len(remotes), self.config_path)
        return remotes

    def _to_descriptor(
        self,
        alias: str,
        blocks: dict[str, dict[str, str]],
        seen: frozenset[str] = frozenset(),
    ) -> dict[str, Any]:
        """Build one descriptor, resolving ProxyJump hops recursively."""
        data = blocks.get(alias, {})
        descriptor: dict[str, Any] = {
            "name": alias,
            "host": data.get("hostname", alias),
            "user": data.get("user") or getpass.getuser(),
        }
        if "port" in data:
            try:
                descriptor["port"] = int(data["port"])
            except ValueError:
                logger.warning("Invalid port for %s: %s, using 22", alias, data["port"])
        if "identityfile" in data:
            descriptor["identityFile"] = data["identityfile"]
        if data.get("stricthostkeychecking", "").lower() == "no":
            descriptor["allowAnyHosts"] = True
        else:
            descriptor["knownHosts"] = data.get("userknownhostsfile", DEFAULT_KNOWN_HOSTS)

        jump = data.get("proxyjump", "")
        if jump and jump.lower() != "none":
            hops = [h.strip() for h in jump.split(",") if h.strip()]
            gateway: dict[str, Any] | None = None
            for hop in hops:
                hop_descriptor = self._hop_descriptor(hop, blocks, seen | {alias})
                if gateway is not None:
                    hop_descriptor["gateway"] = gateway
                gateway = hop_descriptor
            if gateway is not None:
                descriptor["gateway"] = gateway
        return descriptor

    def _hop_descriptor(
        self,
        hop: str,
        blocks: dict[str, dict[str, str]],
        seen: frozenset[str],
    ) -> dict[str, Any]:
        """Resolve a ProxyJump entry: a known alias or ``[user@]host[:port]``."""
        if hop in blocks and hop not in seen:
            return self._to_descriptor(hop, blocks, seen)

        match = re.match(r"^(?:(?P<user>[^@]+)@)?(?P<host>[^:]+)(?::(?P<port>\d+))?$", hop)
        if match is None:
            logger.warning("Cannot parse ProxyJump hop %r", hop)
            return {"name": hop, "host": hop, "knownHosts": DEFAULT_KNOWN_HOSTS}
        descriptor: dict[str, Any] = {
            "name": match.group("host"),
            "host": match.group("host"),
            "user": match.group("user") or getpass.getuser(),
            "knownHosts": DEFAULT_KNOWN_HOSTS,
        }
        if match.group("port"):
            descriptor["port"] = int(match.group("port"))
        return descriptor

    def _is_host_allowed(self, name: str) -> bool:
        """Check if host passes allowlist/blocklist filters.

        Args:
            name: Host name to check

        Returns:
            True if host is allowed
        """
        # Allowlist takes precedence
        if self.allowlist:
            return name in self.allowlist

        if self.blocklist:
            return name not in self.blocklist

        return True
