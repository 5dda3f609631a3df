#!/usr/bin/env python3
"""
Command line interface for the Open VSX registry.

Usage:
    ovsx publish extension.vsix -p <token>
    ovsx publish --packagePath ./ext-a ./ext-b --target linux-x64 win32-x64
    ovsx get redhat.java --version 1.2.3 -o ./downloads/
    ovsx create-namespace my-namespace
    ovsx verify-pat my-namespace
    ovsx login my-namespace
    ovsx logout my-namespace

Environment:
    OVSX_REGISTRY_URL   registry base URL (default https://open-vsx.org)
    OVSX_PAT            personal access token
    OVSX_STORE=file     keep tokens in ~/.ovsx instead of the system keyring

Exit status is 0 on success and 1 when any operation (or any publish job)
failed; every failure is reported on its own line.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from ovsx import __version__, account
from ovsx.config import RegistryConfig
from ovsx.get import get_extension
from ovsx.logging_config import redact_secrets, setup_logging
from ovsx.prompt import ConsolePrompt
from ovsx.publish.options import PublishOptions
from ovsx.publish.orchestrator import publish
from ovsx.publish.pat import PatResolver
from ovsx.registry.client import RegistryClient
from ovsx.store.factory import open_default_store

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from ovsx.publish.orchestrator import BatchResult

logger = logging.getLogger(__name__)

FAILURE_MARK = "❌"

_PREPACKAGED_IGNORED = (
    ("base_content_url", "baseContentUrl"),
    ("base_images_url", "baseImagesUrl"),
    ("yarn", "yarn"),
)


def report_error(message: object) -> None:
    """Print one failure line, with tokens masked."""
    print(f"{FAILURE_MARK}  {redact_secrets(str(message))}", file=sys.stderr)


@asynccontextmanager
async def registry_session(
    registry_url: str | None,
) -> AsyncIterator[tuple[RegistryClient, PatResolver]]:
    """Open the default credential store and a registry client."""
    store = await open_default_store()
    async with RegistryClient(RegistryConfig.from_env(registry_url)) as client:
        yield client, PatResolver(store, client, ConsolePrompt())


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def report_batch(result: BatchResult) -> int:
    """Print every failed job; return the exit status."""
    failures = result.failures
    for outcome in failures:
        if len(result.outcomes) > 1:
            report_error(f"{outcome.job.describe()}: {outcome.error}")
        else:
            report_error(outcome.error)
        logger.debug("Job failure", exc_info=outcome.error)
    return 1 if failures else 0


async def cmd_publish(args: argparse.Namespace) -> int:
    if args.extension_file is not None and args.package_path:
        report_error("Please specify either a package file or a package path, but not both.")
        return 1
    if args.extension_file is not None:
        for attr, flag in _PREPACKAGED_IGNORED:
            if getattr(args, attr) is not None:
                logger.warning(f"Ignoring option '{flag}' for prepackaged extension.")

    options = PublishOptions(
        registry_url=args.registry_url,
        pat=args.pat,
        extension_file=args.extension_file,
        package_paths=args.package_path or [],
        targets=args.target or [],
        base_content_url=args.base_content_url,
        base_images_url=args.base_images_url,
        yarn=args.yarn,
        dependencies=args.dependencies,
        pre_release=args.pre_release,
        package_version=args.package_version,
        skip_duplicate=args.skip_duplicate,
    )
    return report_batch(await publish(options))


async def cmd_get(args: argparse.Namespace) -> int:
    async with RegistryClient(RegistryConfig.from_env(args.registry_url)) as client:
        await get_extension(
            client,
            args.extension_id,
            target=args.target,
            version=args.version,
            output=args.output,
            metadata=args.metadata,
        )
    return 0


async def cmd_create_namespace(args: argparse.Namespace) -> int:
    async with registry_session(args.registry_url) as (client, resolver):
        await account.create_namespace(client, resolver, args.name, args.pat)
    return 0


async def cmd_verify_pat(args: argparse.Namespace) -> int:
    async with registry_session(args.registry_url) as (_, resolver):
        await account.verify_pat(resolver, args.namespace, args.pat, args.package_path)
    return 0


async def cmd_login(args: argparse.Namespace) -> int:
    async with registry_session(args.registry_url) as (_, resolver):
        await account.login(resolver, args.namespace, args.pat)
    return 0


async def cmd_logout(args: argparse.Namespace) -> int:
    store = await open_default_store()
    await account.logout(store, args.namespace)
    return 0


async def cmd_version(args: argparse.Namespace) -> int:
    print(f"Eclipse Open VSX CLI version {__version__}")
    return 0


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------


def _add_registry_args(parser: argparse.ArgumentParser, *, pat: bool = True) -> None:
    parser.add_argument(
        "-r",
        "--registryUrl",
        dest="registry_url",
        help="Use the registry API at this base URL (default: OVSX_REGISTRY_URL or open-vsx.org)",
    )
    if pat:
        parser.add_argument(
            "-p",
            "--pat",
            help="Personal access token (default: OVSX_PAT or the stored token)",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ovsx",
        description="Publish extensions to an Open VSX registry.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Include debug information on error")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines")
    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    p = subparsers.add_parser("version", help="Output the version number")
    p.set_defaults(handler=cmd_version)

    p = subparsers.add_parser("publish", help="Publish an extension, packaging it first if necessary")
    p.add_argument("extension_file", nargs="?", metavar="extension.vsix")
    _add_registry_args(p)
    p.add_argument(
        "--packagePath",
        dest="package_path",
        nargs="+",
        action="extend",
        help="Package and publish the extensions at the specified paths",
    )
    p.add_argument(
        "-t",
        "--target",
        nargs="+",
        action="extend",
        help="Target architectures (one job per path and target)",
    )
    p.add_argument(
        "--baseContentUrl",
        dest="base_content_url",
        help="Prepend all relative links in README.md with this URL",
    )
    p.add_argument(
        "--baseImagesUrl",
        dest="base_images_url",
        help="Prepend all relative image links in README.md with this URL",
    )
    p.add_argument(
        "--yarn",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use yarn instead of npm while packing extension files",
    )
    p.add_argument(
        "--dependencies",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Check and bundle dependencies while packaging",
    )
    p.add_argument("--pre-release", action="store_true", help="Mark this package as a pre-release")
    p.add_argument(
        "--packageVersion",
        dest="package_version",
        help="Version of the provided VSIX packages",
    )
    p.add_argument(
        "--skip-duplicate",
        action="store_true",
        help="Fail silently if the version already exists on the marketplace",
    )
    p.set_defaults(handler=cmd_publish)

    p = subparsers.add_parser("get", help="Download an extension or its metadata")
    p.add_argument("extension_id", metavar="namespace.extension")
    p.add_argument("-t", "--target", help="Target architecture (default: universal)")
    p.add_argument("-v", "--version", help="An exact version, version alias or semver range")
    _add_registry_args(p, pat=False)
    p.add_argument("-o", "--output", help="Save the output in the specified file or directory")
    p.add_argument(
        "--metadata",
        action="store_true",
        help="Print the extension's metadata instead of downloading it",
    )
    p.set_defaults(handler=cmd_get)

    p = subparsers.add_parser("create-namespace", help="Create a new namespace")
    p.add_argument("name")
    _add_registry_args(p)
    p.set_defaults(handler=cmd_create_namespace)

    p = subparsers.add_parser(
        "verify-pat", help="Verify that a personal access token can publish to a namespace"
    )
    p.add_argument("namespace", nargs="?", help="Namespace (default: publisher in package.json)")
    _add_registry_args(p)
    p.add_argument("--packagePath", dest="package_path", help="Path to the extension package.json")
    p.set_defaults(handler=cmd_verify_pat)

    p = subparsers.add_parser("login", help="Store a personal access token for a namespace")
    p.add_argument("namespace")
    _add_registry_args(p)
    p.set_defaults(handler=cmd_login)

    p = subparsers.add_parser("logout", help="Remove the stored token of a namespace")
    p.add_argument("namespace")
    p.set_defaults(handler=cmd_logout)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(level=logging.DEBUG if args.debug else logging.INFO, json_format=args.log_json)

    try:
        return asyncio.run(args.handler(args))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        report_error(e)
        logger.debug("Command failed", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
