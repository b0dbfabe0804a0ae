#!/usr/bin/env python3
"""CLI entry point for tf-driver.

Commands:
- apply: Stage modules, init, and apply (prints the state file path)
- destroy: Stage modules, init, and destroy
- stage: Stage modules and auxiliary files only
- plugins: Install or list embedded provider plugins
- diagnose: Classify a saved apply stderr log
- preflight: Check the provisioning tool and module store are usable

Extra arguments for apply/destroy follow `--`:
    tf-driver apply -d /tmp/cluster -p aws -- -parallelism=4
"""

import argparse
import logging
import sys
from pathlib import Path

from common import run_command
from config import ConfigError, load_config
from terraform import ApplyError, TerraformError, apply, destroy
from terraform.diagnose import diagnose
from terraform.plugins import KNOWN_PLUGINS, list_installed, setup_embedded_plugins
from terraform.stage import CLI_CONFIG_FILE_NAME, CONFIG_FILE_NAME, unpack_modules

logger = logging.getLogger(__name__)


def _extra_args(args) -> list[str]:
    """Arguments after `--`, passed through to the tool."""
    extra = list(args.extra or [])
    if extra and extra[0] == '--':
        extra = extra[1:]
    return extra


def cmd_apply(args, config) -> int:
    try:
        state = apply(Path(args.dir), args.platform, *_extra_args(args), config=config)
    except ApplyError as e:
        # Partial state may exist; destroy needs it
        logger.error(f"Apply failed, state: {e.state_path}")
        raise
    logger.info(f"Apply complete, state: {state}")
    print(state)
    return 0


def cmd_destroy(args, config) -> int:
    destroy(Path(args.dir), args.platform, *_extra_args(args), config=config)
    logger.info(f"Destroy complete for {args.platform} in {args.dir}")
    return 0


def cmd_stage(args, config) -> int:
    unpack_modules(args.platform, Path(args.dir).absolute(), config.store())
    return 0


def cmd_plugins(args, _config) -> int:
    base = Path(args.dir).absolute()
    if args.plugins_action == 'install':
        installed = setup_embedded_plugins(base)
        if not installed:
            logger.info(f"All {len(KNOWN_PLUGINS)} plugins already installed under {base}")
        return 0

    for path in list_installed(base):
        print(path.relative_to(base))
    return 0


def cmd_diagnose(args, config) -> int:
    if args.file == '-':
        text = sys.stdin.read()
    else:
        text = Path(args.file).read_text(encoding='utf-8', errors='replace')
    diagnosis = diagnose(text, config.rules())
    print(f"{diagnosis.name}: {diagnosis.message}")
    return 0 if diagnosis.recognized else 1


def cmd_preflight(_args, config) -> int:
    """Check the tool binary runs and the store holds the auxiliary files."""
    ok = True

    rc, out, err = run_command([config.terraform_binary, 'version'])
    if rc == 0:
        version = out.splitlines()[0] if out else 'unknown version'
        logger.info(f"[preflight] {config.terraform_binary}: {version}")
    else:
        logger.error(f"[preflight] {config.terraform_binary} not runnable: {err.strip()}")
        ok = False

    store = config.store()
    for key in (CONFIG_FILE_NAME, CLI_CONFIG_FILE_NAME):
        if store.exists(key):
            logger.info(f"[preflight] {key} present in {store.root}")
        else:
            logger.error(f"[preflight] {key} missing from {store.root}")
            ok = False

    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tf-driver',
        description='Provision infrastructure from staged platform modules'
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging (includes tool output)')
    parser.add_argument('-c', '--config', type=Path,
                        help='Config file (default: $TF_DRIVER_CONFIG or ~/.config/tf-driver/config.yaml)')
    sub = parser.add_subparsers(dest='command', required=True)

    for name, func, help_text in (
        ('apply', cmd_apply, 'Stage modules, init, and apply'),
        ('destroy', cmd_destroy, 'Stage modules, init, and destroy'),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument('-d', '--dir', required=True, help='Working directory (holds the state file)')
        p.add_argument('-p', '--platform', required=True, help='Platform module tree to stage')
        p.add_argument('extra', nargs=argparse.REMAINDER, help='Extra tool arguments after --')
        p.set_defaults(func=func)

    p = sub.add_parser('stage', help='Stage modules and auxiliary files only')
    p.add_argument('-d', '--dir', required=True, help='Destination directory')
    p.add_argument('-p', '--platform', required=True, help='Platform module tree to stage')
    p.set_defaults(func=cmd_stage)

    p = sub.add_parser('plugins', help='Manage embedded provider plugins')
    p.add_argument('plugins_action', choices=['install', 'list'])
    p.add_argument('-d', '--dir', required=True, help='Working directory')
    p.set_defaults(func=cmd_plugins)

    p = sub.add_parser('diagnose', help='Classify a saved apply stderr log')
    p.add_argument('file', help="Log file, or '-' for stdin")
    p.set_defaults(func=cmd_diagnose)

    p = sub.add_parser('preflight', help='Check tool and module store')
    p.set_defaults(func=cmd_preflight)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = load_config(args.config)
        rc: int = args.func(args, config)
        return rc
    except (TerraformError, ConfigError, OSError) as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
