"""Drive the provisioning tool against staged platform modules."""

from terraform.errors import (
    TerraformError,
    WorkingDirectoryError,
    ExecutableNotFoundError,
    TerraformNotFoundError,
    UnpackError,
    PluginSetupError,
    InitError,
    ApplyError,
    DestroyError,
    TerraformTimeoutError,
)
from terraform.session import STATE_FILE_NAME, Session, apply, destroy, state_path

__all__ = [
    'STATE_FILE_NAME',
    'Session',
    'apply',
    'destroy',
    'state_path',
    'TerraformError',
    'WorkingDirectoryError',
    'ExecutableNotFoundError',
    'TerraformNotFoundError',
    'UnpackError',
    'PluginSetupError',
    'InitError',
    'ApplyError',
    'DestroyError',
    'TerraformTimeoutError',
]
