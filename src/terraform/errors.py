"""Errors raised by a provisioning session.

Every error carries a stable code identifying the stage that failed, so
callers and log readers can tell a staging problem from a tool failure.
"""

from pathlib import Path
from typing import Optional


class TerraformError(Exception):
    """Base exception for provisioning session errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class WorkingDirectoryError(TerraformError):
    """Working directory missing or unusable."""

    def __init__(self, path: Path, reason: str = ''):
        self.path = path
        detail = f": {reason}" if reason else ''
        super().__init__("E100", f"could not use data directory {path}{detail}")


class ExecutableNotFoundError(TerraformError):
    """Own executable path could not be resolved."""

    def __init__(self, reason: str = ''):
        detail = f": {reason}" if reason else ''
        super().__init__("E101", f"failed to find path for the executable{detail}")


class TerraformNotFoundError(TerraformError):
    """Provisioning tool binary could not be started."""

    def __init__(self, binary: str):
        self.binary = binary
        super().__init__("E102", f"provisioning tool not found: {binary}")


class UnpackError(TerraformError):
    """Module tree or auxiliary file extraction failed."""

    def __init__(self, reason: str):
        super().__init__("E200", f"failed to unpack Terraform modules: {reason}")


class PluginSetupError(TerraformError):
    """Embedded plugin installation failed."""

    def __init__(self, reason: str):
        super().__init__("E300", f"failed to setup embedded Terraform plugins: {reason}")


class InitError(TerraformError):
    """Non-zero exit from init."""

    def __init__(self, exit_code: Optional[int] = None):
        self.exit_code = exit_code
        super().__init__("E400", "failed to initialize Terraform")


class ApplyError(TerraformError):
    """Non-zero exit from apply.

    Attributes:
        diagnosis: Diagnosis produced from the captured stderr
        state_path: State file path, which may hold partial state
    """

    def __init__(self, diagnosis, state_path: Path, exit_code: Optional[int] = None):
        self.diagnosis = diagnosis
        self.state_path = state_path
        self.exit_code = exit_code
        super().__init__("E500", f"failed to apply Terraform: {diagnosis}")


class DestroyError(TerraformError):
    """Non-zero exit from destroy."""

    def __init__(self, exit_code: Optional[int] = None):
        self.exit_code = exit_code
        super().__init__("E600", "failed to destroy using Terraform")


class TerraformTimeoutError(TerraformError):
    """Child process exceeded the configured timeout and was killed."""

    def __init__(self, verb: str, timeout: float):
        self.verb = verb
        self.timeout = timeout
        super().__init__("E700", f"terraform {verb} timed out after {timeout}s")
