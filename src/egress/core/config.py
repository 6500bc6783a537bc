"""Firewall policy configuration.

The built-in defaults are the complete supported policy, so a config
file is optional. When /etc/egress-fw/config.yaml (or $EGRESS_FW_CONFIG)
exists, its keys replace the matching defaults; EGRESS_FW_META_URL then
overrides the metadata endpoint. A firewall run never writes the file.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings

from egress.core.exceptions import ConfigurationError


# Default configuration path
DEFAULT_CONFIG_PATH = Path("/etc/egress-fw/config.yaml")

# ipset refuses set names longer than this
MAX_IPSET_NAME_LENGTH = 31

DEFAULT_IPSET_NAME = "allowed-domains"
DEFAULT_META_URL = "https://api.github.com/meta"
DEFAULT_META_FIELDS = ["web", "api", "git"]

# Resolved one by one; order is preserved in output
DEFAULT_DOMAINS = [
    "registry.npmjs.org",
    "api.anthropic.com",
    "sentry.io",
    "statsig.anthropic.com",
    "statsig.com",
    "pub.dev",
    "api.pub.dev",
    "pub.dartlang.org",
    "storage.googleapis.com",
    "*.googleapis.com",
    "googleapis.com",
    "fonts.googleapis.com",
    "fonts.gstatic.com",
    "dart.dev",
    "flutter.dev",
    "dartlang.org",
    "oauth2.googleapis.com",
    "accounts.google.com",
    "www.googleapis.com",
    "compute.googleapis.com",
    "cloudresourcemanager.googleapis.com",
    "crash-reporting-worker.p.googleapis.com",
    "dart-services.p.googleapis.com",
    "maven.google.com",
    "dl.google.com",
    "cocoapods.org",
    "cdn.cocoapods.org",
]

# Google Cloud Storage ranges used by Flutter dependencies
DEFAULT_STATIC_CIDRS = [
    "34.64.0.0/11",
    "34.96.0.0/12",
    "35.184.0.0/13",
    "35.192.0.0/14",
    "35.196.0.0/15",
    "35.198.0.0/16",
    "35.199.0.0/16",
    "35.200.0.0/13",
    "35.208.0.0/12",
    "35.224.0.0/12",
    "35.240.0.0/13",
    "108.177.8.0/21",
    "108.177.96.0/19",
    "130.211.0.0/16",
    "162.216.148.0/22",
    "162.222.176.0/21",
    "173.255.112.0/20",
    "199.36.154.0/23",
    "199.36.156.0/24",
    "208.68.108.0/23",
]


class ProbeTarget(BaseModel):
    """A URL checked after lock-down.

    required probes abort the run on an unexpected result; the others
    only produce a warning.
    """

    url: str
    expect_reachable: bool = True
    required: bool = False
    purpose: Optional[str] = None  # e.g. "Flutter/Dart packages"
    impact: Optional[str] = None   # shown when an optional probe fails

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Probe URL must start with http:// or https://")
        return v


def _default_probes() -> list[ProbeTarget]:
    return [
        ProbeTarget(
            url="https://example.com",
            expect_reachable=False,
            required=True,
        ),
        ProbeTarget(
            url="https://api.github.com/zen",
            required=True,
        ),
        ProbeTarget(
            url="https://pub.dev",
            purpose="Flutter/Dart packages",
            impact="Flutter commands may still fail",
        ),
        ProbeTarget(
            url="https://maven.google.com",
            purpose="Android dependencies",
            impact="Android builds may fail",
        ),
        ProbeTarget(
            url="https://cocoapods.org",
            purpose="iOS dependencies",
            impact="iOS builds may fail",
        ),
    ]


class FirewallConfig(BaseModel):
    """Root configuration model.

    Loaded from /etc/egress-fw/config.yaml when present. Every field has a
    default, so a partial file only overrides what it names.
    """

    ipset_name: str = DEFAULT_IPSET_NAME
    github_meta_url: str = DEFAULT_META_URL
    github_meta_fields: list[str] = Field(default_factory=lambda: DEFAULT_META_FIELDS.copy())
    meta_timeout: int = 30

    domains: list[str] = Field(default_factory=lambda: DEFAULT_DOMAINS.copy())
    static_cidrs: list[str] = Field(default_factory=lambda: DEFAULT_STATIC_CIDRS.copy())

    probe_timeout: int = 5
    probes: list[ProbeTarget] = Field(default_factory=_default_probes)

    @field_validator("ipset_name")
    @classmethod
    def validate_ipset_name(cls, v: str) -> str:
        if not v or len(v) > MAX_IPSET_NAME_LENGTH:
            raise ValueError(
                f"ipset_name must be 1-{MAX_IPSET_NAME_LENGTH} characters"
            )
        if any(c.isspace() for c in v):
            raise ValueError("ipset_name must not contain whitespace")
        return v

    @field_validator("github_meta_url")
    @classmethod
    def validate_meta_url(cls, v: str) -> str:
        if not v.startswith("https://"):
            raise ValueError("github_meta_url must use https://")
        return v

    @field_validator("github_meta_fields")
    @classmethod
    def validate_meta_fields(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("github_meta_fields must name at least one field")
        return v

    @field_validator("meta_timeout", "probe_timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v

    @classmethod
    def load(cls, path: Path) -> "FirewallConfig":
        """Build a config from a YAML file layered over the defaults.

        Raises:
            ConfigurationError: If the file is missing, unreadable, not a
                mapping, or holds invalid values
        """
        data = _read_yaml(path)
        try:
            return cls(**data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration in {path}",
                details=[
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in e.errors()
                ],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "FirewallConfig":
        """Use the file if it exists, the built-in policy otherwise."""
        path = path or DEFAULT_CONFIG_PATH
        return cls.load(path) if path.exists() else cls()

    def to_yaml(self) -> str:
        return yaml.safe_dump(
            self.model_dump(mode="json", exclude_none=True),
            default_flow_style=False,
            sort_keys=False,
        )


def _read_yaml(path: Path) -> dict:
    try:
        text = path.read_text()
    except FileNotFoundError:
        raise ConfigurationError(
            f"Configuration file not found: {path}",
            hint="Create it with: egress-fw config init",
        )
    except PermissionError:
        raise ConfigurationError(
            f"Cannot read configuration file: {path}",
            hint="Check file permissions or run with sudo",
        )

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in configuration file: {path}",
            details=[str(e)],
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
    return data


class EnvironmentOverrides(BaseSettings):
    """EGRESS_FW_CONFIG and EGRESS_FW_META_URL."""

    config: Optional[Path] = None
    meta_url: Optional[str] = None

    class Config:
        env_prefix = "EGRESS_FW_"
        extra = "ignore"


class AppConfig:
    """Effective configuration: defaults, then the file, then the environment."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[FirewallConfig] = None,
    ) -> None:
        """
        Args:
            config_path: Config file; falls back to EGRESS_FW_CONFIG, then
                DEFAULT_CONFIG_PATH
            config: Use this instead of reading any file
        """
        self._env = EnvironmentOverrides()
        self.config_path = config_path or self._env.config or DEFAULT_CONFIG_PATH
        self._config = config or FirewallConfig.load_or_default(self.config_path)

        if self._env.meta_url:
            try:
                self._config = FirewallConfig(
                    **{**self._config.model_dump(), "github_meta_url": self._env.meta_url}
                )
            except PydanticValidationError as e:
                raise ConfigurationError(
                    "Invalid EGRESS_FW_META_URL",
                    details=[err["msg"] for err in e.errors()],
                ) from e

    @property
    def config(self) -> FirewallConfig:
        return self._config

    @property
    def env(self) -> EnvironmentOverrides:
        return self._env


def get_example_config() -> str:
    """The built-in policy as an editable YAML document."""
    header = (
        "# egress-fw configuration\n"
        "# Every key is optional; omitted keys use the built-in defaults.\n"
        "# static_cidrs are added to the allowlist as written, unvalidated.\n"
        "\n"
    )
    return header + FirewallConfig().to_yaml()


def init_config(path: Path, force: bool = False) -> None:
    """Write get_example_config() to path.

    Raises:
        ConfigurationError: If path exists and force is not set
    """
    if path.exists() and not force:
        raise ConfigurationError(
            f"Configuration file already exists: {path}",
            hint="Use --force to overwrite",
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_example_config())
    os.chmod(path, 0o644)
