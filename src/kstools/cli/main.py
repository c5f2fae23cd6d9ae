"""CLI main entry point and command groups."""

from __future__ import annotations

import sys
from collections.abc import Callable
from functools import wraps

import click

from kstools import __version__
from kstools.cli.output import OutputFormat, error_console, print_error
from kstools.config import Settings, get_settings
from kstools.core.exceptions import KeystoreToolsError
from kstools.logging import init_logging


class Context:
    """CLI context object passed to all commands."""

    def __init__(self):
        self.settings: Settings = get_settings()
        self.output_format: OutputFormat = OutputFormat.TEXT
        self.verbose: bool = False


pass_context = click.make_pass_decorator(Context, ensure=True)


def handle_errors(f: Callable) -> Callable:
    """Decorator to handle common errors gracefully."""

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except KeyboardInterrupt:
            print_error("Operation cancelled")
            sys.exit(130)
        except click.ClickException:
            raise
        except KeystoreToolsError as e:
            print_error(f"{e} ({e.kind.value})")
            if args and getattr(args[0], "verbose", False):
                error_console.print_exception()
            sys.exit(1)
        except Exception as e:
            print_error(str(e))
            if args and getattr(args[0], "verbose", False):
                error_console.print_exception()
            sys.exit(1)

    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="kstools")
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@pass_context
def cli(ctx: Context, output_format: str, verbose: bool):
    """
    kstools - keystore conversion and mutual-TLS tools

    Convert Java keystores to PKCS#12 and open mutually-authenticated
    TLS connections with the identities they hold.
    """
    ctx.output_format = OutputFormat(output_format)
    ctx.verbose = verbose
    init_logging("DEBUG" if verbose else None)


# Import and register commands
from kstools.cli.commands import keystore_commands, tls_commands

for command in keystore_commands + tls_commands:
    cli.add_command(command)


def main():
    """Main entry point."""
    cli(auto_envvar_prefix="KSTOOLS")


if __name__ == "__main__":
    main()
