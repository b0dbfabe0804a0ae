"""Shared pytest fixtures for tf-driver tests."""

import stat
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))


@pytest.fixture
def assets_dir(tmp_path):
    """Create a minimal artifact store.

    Creates:
    - fake/main.tf, fake/modules/net/main.tf (platform module tree)
    - config.tf
    - terraform.rc
    """
    root = tmp_path / 'assets'
    (root / 'fake' / 'modules' / 'net').mkdir(parents=True)
    (root / 'fake' / 'main.tf').write_text('module "net" {\n  source = "./modules/net"\n}\n')
    (root / 'fake' / 'modules' / 'net' / 'main.tf').write_text('# network\n')
    (root / 'config.tf').write_text('terraform {}\n')
    (root / 'terraform.rc').write_text('provider_installation {}\n')
    return root


@pytest.fixture
def store(assets_dir):
    """ArtifactStore over the minimal assets tree."""
    from terraform.assets import ArtifactStore
    return ArtifactStore(assets_dir)


@pytest.fixture
def work_dir(tmp_path):
    """Empty working directory for a session."""
    path = tmp_path / 'work'
    path.mkdir()
    return path


@pytest.fixture
def fake_executable(tmp_path):
    """Stand-in for the driver's own executable."""
    path = tmp_path / 'bin' / 'tf-driver'
    path.parent.mkdir(exist_ok=True)
    path.write_text('#!/bin/sh\nexit 0\n')
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


@pytest.fixture
def stub_terraform(tmp_path):
    """Factory for a stub provisioning tool.

    The stub records its argv and selected env vars to calls.log, writes
    the given stderr text for apply/destroy, and exits with the given code
    for apply/destroy (init exits with init_rc).
    """
    def make(rc=0, stderr='', init_rc=0, stdout='Apply complete!'):
        script = tmp_path / 'bin' / 'terraform'
        script.parent.mkdir(exist_ok=True)
        log = tmp_path / 'calls.log'
        script.write_text(f"""#!{sys.executable}
import os
import sys

verb = sys.argv[1]
with open({str(log)!r}, 'a') as f:
    f.write(' '.join(sys.argv[1:]) + '\\n')
    f.write('cwd=' + os.getcwd() + '\\n')
    f.write('TF_CLI_CONFIG_FILE=' + os.environ.get('TF_CLI_CONFIG_FILE', '') + '\\n')
    f.write('TF_LOG=' + os.environ.get('TF_LOG', '') + '\\n')

if verb == 'init':
    print('Terraform has been successfully initialized!')
    sys.exit({init_rc})

print({stdout!r})
sys.stderr.write({stderr!r})
sys.exit({rc})
""")
        script.chmod(script.stat().st_mode | stat.S_IXUSR)
        return script, log
    return make
