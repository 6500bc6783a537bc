"""Core framework components for the egress firewall."""

from egress.core.exceptions import (
    EgressError,
    ConfigurationError,
    ValidationError,
    ExecutionError,
    PrerequisiteError,
    FirewallError,
    MetadataError,
    NetworkDetectionError,
    VerificationError,
)

from egress.core.context import ExecutionContext, create_context
from egress.core.output import console, Console, Verbosity
from egress.core.config import AppConfig, FirewallConfig, ProbeTarget
from egress.core.safety import PreflightRunner, run_preflight_checks
from egress.core.executor import CommandExecutor, CommandResult

__all__ = [
    # Exceptions
    "EgressError",
    "ConfigurationError",
    "ValidationError",
    "ExecutionError",
    "PrerequisiteError",
    "FirewallError",
    "MetadataError",
    "NetworkDetectionError",
    "VerificationError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "AppConfig",
    "FirewallConfig",
    "ProbeTarget",
    # Safety
    "PreflightRunner",
    "run_preflight_checks",
    # Executor
    "CommandExecutor",
    "CommandResult",
]
