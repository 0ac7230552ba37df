from __future__ import annotations

import importlib
import sys
import threading
import types
import typing as t
from pathlib import Path

import pydantic as p

import rubricate
import rubricate.lib.cli as click
from rubricate.core import di, RubricateContainer
from rubricate.errors import NotFoundError, RubricateError
from rubricate.model import DeploymentEnvironment

_configured = False
_RubricateRoot = Path(rubricate.__file__).resolve().parents[1]

# command modules imported so far; wired into the container at boot
_wiring: list[types.ModuleType] = []

# exit status for a failed operation on something that does not exist
NotFoundStatus = 4


class RubricateMultiCommand(click.Group):
    """Loads each command group from ``rubricate.cli.<name>`` on first use."""

    def list_commands(self, ctx: click.Context) -> t.List[str]:
        return ["analysis", "document", "evaluation", "group", "schema"]

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Group | None:
        if cmd_name not in self.list_commands(ctx):
            return None
        mod = importlib.import_module(f"rubricate.cli.{cmd_name}")
        _wiring.append(mod)
        return getattr(mod, cmd_name)


@click.group(cls=RubricateMultiCommand)
@click.version_option(rubricate.__version__, prog_name="rubricate")
@click.option("-E", "--env", default=DeploymentEnvironment.Local, type=click.EnumType(DeploymentEnvironment))
@click.option("-c", "--config-root", default=_RubricateRoot / "config", type=click.URIParamType(dir_ok=True))
@click.option("-s", "--secrets-path", default=None, type=click.URIParamType())
@click.option(
    "-o",
    "--override",
    multiple=True,
    help="configuration path parameter-value pairs to override config with, e.g., -o analysis.concurrency=2",
)
@click.option("-D", "--debug", is_flag=True, default=False, help="Log at DEBUG and print tracebacks on failure.")
@click.pass_obj
@di.inject
def main(
    ct: RubricateContainer,
    env: DeploymentEnvironment,
    config_root: p.FileUrl,
    secrets_path: p.AnyUrl | None,
    override: tuple[str, ...],
    debug: bool,
):
    """Grade group submissions against evaluation rubrics with a language model."""
    global _configured
    RubricateContainer.boot(
        ct,
        debug=debug,
        env=env,
        config_root=config_root,
        secrets_path=secrets_path,
        override=override,
        wiring=tuple(_wiring),
    )
    _configured = True


def _debugging(container: RubricateContainer) -> bool:
    if _configured:
        return container.debug()
    return "-D" in sys.argv[1:] or "--debug" in sys.argv[1:]


def execute_command(*_args: str) -> None:
    threading.current_thread().name = "rubricate-0"
    args = list(_args or sys.argv)

    # Strip away full path to fix program name in help message
    args[0] = Path(args[0]).name
    container = RubricateContainer()

    try:
        with main.make_context(args[0], args=args[1:]) as ctx:
            ctx.obj = container
            rs = t.cast(int, main.invoke(ctx))
            sys.exit(rs)
    except (EOFError, KeyboardInterrupt, click.Abort):
        click.echo("Aborted!", file=sys.stderr)
        sys.exit(1)
    except click.exceptions.Exit as ex:
        sys.exit(ex.exit_code)
    except click.ClickException as ex:
        ex.show()
        sys.exit(ex.exit_code)
    except Exception as ex:
        click.echo(click.style("ERROR ", fg="red"), nl=False, file=sys.stderr)
        click.echo(f"{ex.__class__.__name__}: {ex}" if not isinstance(ex, RubricateError) else str(ex), file=sys.stderr)

        if _debugging(container):
            import traceback

            traceback.print_exc()
        if isinstance(ex, NotFoundError):
            sys.exit(NotFoundStatus)
        sys.exit(1 if isinstance(ex, RubricateError) else -1)
    finally:
        container.shutdown_resources()


if __name__ == "__main__":
    execute_command(*sys.argv)
