"""Configuration module for SSH steps.

Provides focused pieces for different configuration concerns:
- validate_remote: Builds a RemoteConfig from a remote descriptor map
- SSHConfigParser: Parses ~/.ssh/config into remote descriptors
- HostKeyPolicy: Resolves known_hosts when a connection is opened
- Settings: Environment variable configuration
"""

from ssh_steps.config.host_keys import HostKeyPolicy
from ssh_steps.config.parser import SSHConfigParser
from ssh_steps.config.remote import validate_remote
from ssh_steps.config.settings import Settings

__all__ = ["HostKeyPolicy", "SSHConfigParser", "Settings", "validate_remote"]
