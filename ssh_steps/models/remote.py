"""Remote descriptor data model."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RemoteConfig:
    """Validated remote descriptor.

    Built fresh from the step's configuration map for every invocation
    and discarded afterwards.
    """

    name: str
    user: str
    host: str
    port: int = 22
    password: str | None = field(default=None, repr=False)
    identity: str | None = field(default=None, repr=False)
    identity_file: str | None = None
    passphrase: str | None = field(default=None, repr=False)
    agent: bool = False
    known_hosts: str | None = None
    allow_any_hosts: bool = False
    gateway: "RemoteConfig | None" = None
    timeout_sec: float | None = None
    retry_count: int = 0
    retry_wait_sec: float = 0.0
    pty: bool = False
    append_name: bool = False
    encoding: str = "utf-8"

    @property
    def label(self) -> str:
        """Human readable ``name[host]`` used in log lines."""
        return f"{self.name}[{self.host}]"

    def chain(self) -> list["RemoteConfig"]:
        """Return hops outermost gateway first, ending with this remote."""
        hops: list[RemoteConfig] = []
        current: RemoteConfig | None = self
        while current is not None:
            hops.append(current)
            current = current.gateway
        hops.reverse()
        return hops
