"""Provisioning sessions: stage, install plugins, init, then apply or destroy.

The working directory is passed explicitly to every step and the tool runs
with it as its cwd, so the process-wide current directory is never touched.
Calls against different directories may run concurrently; calls against the
same directory must be serialized by the caller.
"""

import io
import logging
import os
from pathlib import Path
from typing import Optional

from common import MultiWriter, log_printer
from config import DriverConfig
from terraform.assets import ArtifactStore
from terraform.diagnose import diagnose
from terraform.errors import (
    ApplyError,
    DestroyError,
    InitError,
    WorkingDirectoryError,
)
from terraform.plugins import PLUGIN_DIR_NAME, setup_embedded_plugins
from terraform.runner import TerraformRunner
from terraform.stage import CLI_CONFIG_FILE_NAME, unpack_modules

logger = logging.getLogger(__name__)

STATE_FILE_NAME = 'terraform.tfstate'


def state_path(directory: Path) -> Path:
    """State file location for a working directory."""
    return Path(directory).absolute() / STATE_FILE_NAME


def _working_dir(directory: Path) -> Path:
    path = Path(directory).absolute()
    if not path.exists():
        raise WorkingDirectoryError(path, "does not exist")
    if not path.is_dir():
        raise WorkingDirectoryError(path, "not a directory")
    return path


def _child_env(directory: Path, config: DriverConfig) -> dict:
    """Environment for the tool: CLI config file and forced tracing."""
    return {
        **os.environ,
        'TF_CLI_CONFIG_FILE': str(directory / CLI_CONFIG_FILE_NAME),
        'TF_LOG': config.tf_log,
    }


def _lifecycle_args(directory: Path, extra_args: tuple) -> list[str]:
    """Fixed apply/destroy flags, caller extras, then the module dir."""
    sf = directory / STATE_FILE_NAME
    return [
        '-auto-approve',
        '-input=false',
        f'-state={sf}',
        f'-state-out={sf}',
        *extra_args,
        str(directory),
    ]


class Session:
    """One provisioning run against a working directory and platform."""

    def __init__(
        self,
        directory: Path,
        platform: str,
        config: Optional[DriverConfig] = None,
        runner: Optional[TerraformRunner] = None,
        store: Optional[ArtifactStore] = None,
        executable: Optional[Path] = None,
    ):
        self.config = config or DriverConfig()
        self.directory = Path(directory).absolute()
        self.platform = platform
        self.runner = runner or self.config.runner()
        self.store = store or self.config.store()
        self.executable = executable
        self.rules = self.config.rules()

    @property
    def state_file(self) -> Path:
        return self.directory / STATE_FILE_NAME

    def unpack_and_init(self) -> dict:
        """Stage modules and plugins, then run init. Returns the child env."""
        directory = _working_dir(self.directory)
        unpack_modules(self.platform, directory, self.store)
        setup_embedded_plugins(directory, executable=self.executable)

        env = _child_env(directory, self.config)
        args = [f'-plugin-dir={directory / PLUGIN_DIR_NAME}', '.']

        lp_debug = log_printer(logger.debug)
        lp_error = log_printer(logger.error)
        try:
            logger.info(f"Running terraform init in {directory}")
            exit_code = self.runner.init(args, lp_debug, lp_error, cwd=directory, env=env)
        finally:
            lp_debug.close()
            lp_error.close()
        if exit_code != 0:
            raise InitError(exit_code)
        return env

    def apply(self, *extra_args: str) -> Path:
        """Run apply and return the state file path.

        Raises:
            ApplyError: non-zero exit; carries the diagnosis and state path
        """
        env = self.unpack_and_init()
        args = _lifecycle_args(self.directory, extra_args)
        sf = self.state_file

        lp_debug = log_printer(logger.debug)
        lp_error = log_printer(logger.error)
        err_buf = io.StringIO()
        try:
            logger.info(f"Running terraform apply (state: {sf})")
            exit_code = self.runner.apply(
                args, lp_debug, MultiWriter(err_buf, lp_error), cwd=self.directory, env=env
            )
        finally:
            lp_debug.close()
            lp_error.close()

        if exit_code != 0:
            diagnosis = diagnose(err_buf.getvalue(), self.rules)
            if diagnosis.recognized:
                logger.error(f"Diagnosed apply failure as {diagnosis.name}: {diagnosis.message}")
            raise ApplyError(diagnosis, sf, exit_code)
        return sf

    def destroy(self, *extra_args: str) -> None:
        """Run destroy against the state file.

        Raises:
            DestroyError: non-zero exit
        """
        env = self.unpack_and_init()
        args = _lifecycle_args(self.directory, extra_args)

        lp_debug = log_printer(logger.debug)
        lp_error = log_printer(logger.error)
        try:
            logger.info(f"Running terraform destroy (state: {self.state_file})")
            exit_code = self.runner.destroy(args, lp_debug, lp_error, cwd=self.directory, env=env)
        finally:
            lp_debug.close()
            lp_error.close()

        if exit_code != 0:
            raise DestroyError(exit_code)


def apply(directory: Path, platform: str, *extra_args: str, **kwargs) -> Path:
    """Unpack the platform modules into directory, then init and apply.

    Returns the absolute state file path rooted in directory. Keyword
    arguments (config, runner, store, executable) are passed to Session.
    """
    return Session(directory, platform, **kwargs).apply(*extra_args)


def destroy(directory: Path, platform: str, *extra_args: str, **kwargs) -> None:
    """Unpack the platform modules into directory, then init and destroy."""
    Session(directory, platform, **kwargs).destroy(*extra_args)
