"""Embedded provider plugin installation.

The driver executable answers for every provider in KNOWN_PLUGINS. The
provisioning tool finds providers by scanning a local registry tree laid
out as::

    plugins/<host>/<namespace>/<name>/<version>/<os>_<arch>/<binary>[.exe]

so each expected path is populated with a symbolic link back to the
driver's own executable.
"""

import logging
import os
import platform
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from terraform.errors import ExecutableNotFoundError, PluginSetupError

logger = logging.getLogger(__name__)

PLUGIN_DIR_NAME = 'plugins'
PLUGIN_NAMESPACE = ('tfdriver', 'local')


@dataclass(frozen=True)
class PluginDescriptor:
    """A provider the driver executable implements."""
    name: str
    version: str


KNOWN_PLUGINS: Mapping[str, PluginDescriptor] = {
    'terraform-provider-aws': PluginDescriptor('aws', '1.0.0'),
    'terraform-provider-azurerm': PluginDescriptor('azurerm', '1.0.0'),
    'terraform-provider-google': PluginDescriptor('google', '1.0.0'),
    'terraform-provider-ignition': PluginDescriptor('ignition', '2.1.0'),
    'terraform-provider-libvirt': PluginDescriptor('libvirt', '1.0.0'),
    'terraform-provider-local': PluginDescriptor('local', '1.0.0'),
    'terraform-provider-openstack': PluginDescriptor('openstack', '1.0.0'),
    'terraform-provider-random': PluginDescriptor('random', '1.0.0'),
    'terraform-provider-vsphere': PluginDescriptor('vsphere', '1.0.0'),
}

_OS_NAMES = {
    'linux': 'linux',
    'darwin': 'darwin',
    'win32': 'windows',
    'cygwin': 'windows',
}

_ARCH_NAMES = {
    'x86_64': 'amd64',
    'amd64': 'amd64',
    'aarch64': 'arm64',
    'arm64': 'arm64',
    'i386': '386',
    'i686': '386',
    'x86': '386',
    'armv7l': 'arm',
    'armv6l': 'arm',
    'ppc64le': 'ppc64le',
    's390x': 's390x',
}


def host_os() -> str:
    """OS name as the provisioning tool spells it."""
    for prefix, name in _OS_NAMES.items():
        if sys.platform.startswith(prefix):
            return name
    return sys.platform


def host_arch() -> str:
    """Architecture name as the provisioning tool spells it."""
    machine = platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine)


def host_target() -> str:
    return f"{host_os()}_{host_arch()}"


def plugin_dir(base: Path, descriptor: PluginDescriptor) -> Path:
    """Directory the tool scans for this plugin."""
    return Path(base, PLUGIN_DIR_NAME, *PLUGIN_NAMESPACE,
                descriptor.name, descriptor.version, host_target())


def plugin_path(base: Path, binary: str, descriptor: PluginDescriptor) -> Path:
    """Plugin file path, with .exe on Windows."""
    if host_os() == 'windows':
        binary = f"{binary}.exe"
    return plugin_dir(base, descriptor) / binary


def executable_path() -> Path:
    """Absolute, resolved path of the running driver executable.

    Raises:
        ExecutableNotFoundError: if argv[0] cannot be located on disk
    """
    argv0 = sys.argv[0] if sys.argv else ''
    if not argv0:
        raise ExecutableNotFoundError("argv[0] is empty")

    if os.sep not in argv0 and (os.altsep is None or os.altsep not in argv0):
        found = shutil.which(argv0)
        if found:
            argv0 = found

    path = Path(argv0).absolute()
    if not path.exists():
        raise ExecutableNotFoundError(f"{path} does not exist")
    return path.resolve()


def install_embedded_plugins(
    base: Path,
    executable: Optional[Path] = None,
    registry: Mapping[str, PluginDescriptor] = KNOWN_PLUGINS,
) -> list[Path]:
    """Link every registered plugin path under base to the executable.

    Existing plugin files are left alone, so reruns only check for
    existence. Returns the paths created by this call.

    Raises:
        ExecutableNotFoundError: own executable cannot be resolved
        OSError: directory or link creation failed
    """
    exec_path = Path(executable) if executable else executable_path()

    installed = []
    for binary, descriptor in sorted(registry.items()):
        dst_dir = plugin_dir(base, descriptor)
        dst_dir.mkdir(mode=0o777, parents=True, exist_ok=True)

        dst = plugin_path(base, binary, descriptor)
        if dst.exists():
            continue
        if dst.is_symlink():
            # Link target moved away since the last run
            logger.debug(f"Replacing dangling plugin link {dst}")
            dst.unlink()

        logger.debug(f"Symlinking plugin {binary} src: {str(exec_path)!r} dst: {str(dst)!r}")
        os.symlink(exec_path, dst)
        installed.append(dst)
    return installed


def setup_embedded_plugins(
    base: Path,
    executable: Optional[Path] = None,
    registry: Mapping[str, PluginDescriptor] = KNOWN_PLUGINS,
) -> list[Path]:
    """Install embedded plugins, wrapping failures as PluginSetupError."""
    try:
        installed = install_embedded_plugins(base, executable=executable, registry=registry)
    except OSError as e:
        raise PluginSetupError(str(e)) from e
    if installed:
        logger.info(f"Installed {len(installed)} embedded plugin(s) under {Path(base, PLUGIN_DIR_NAME)}")
    return installed


def list_installed(base: Path) -> list[Path]:
    """Plugin files present under base/plugins, sorted."""
    root = Path(base, PLUGIN_DIR_NAME)
    if not root.is_dir():
        return []
    return sorted(p for p in root.rglob('*') if p.is_file() or p.is_symlink())
