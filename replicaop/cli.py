import asyncio
import dataclasses
import functools
from collections.abc import Callable, Collection
from typing import Any

import aiohttp
import click

from replicaop._cogs.clients import auth, errors
from replicaop._cogs.configs import configuration
from replicaop._cogs.helpers import versions
from replicaop._cogs.structs import credentials, references
from replicaop._core.actions import loggers
from replicaop._core.reactor import running


@dataclasses.dataclass()
class CLIControls:
    """ Controls for the embedded & test runs, which are impossible to pass via CLI. """
    ready_flag: asyncio.Event | None = None
    stop_flag: asyncio.Event | None = None
    vault: credentials.Vault[auth.APIContext] | None = None
    settings: configuration.OperatorSettings | None = None


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: bool | None = None,
                log_refkey: str | None = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def children_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to map the children-related options onto the settings. """
    @click.option('--child-name', type=str, default=None,
                  help="A fixed name of the child deployments (one per namespace).")
    @click.option('--image', type=str, default=None,
                  help="The default image of the children's pods.")
    @click.option('--port', type=click.IntRange(min=0), default=None,
                  help="The default container port of the children's pods.")
    @click.option('--status/--no-status', 'status', default=None,
                  help="Report the children's state in the custom resources' status.")
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(child_name: str | None, image: str | None, port: int | None, status: bool | None,
                *args: Any, **kwargs: Any) -> Any:
        ctx = click.get_current_context()
        controls = ctx.ensure_object(CLIControls)
        settings = controls.settings if controls.settings is not None else configuration.OperatorSettings()
        if child_name is not None:
            settings.children.name = child_name
        if image is not None:
            settings.children.image = image
        if port is not None:
            settings.children.port = port
        if status is not None:
            settings.status.enabled = status
        controls.settings = settings
        return fn(*args, **kwargs)

    return wrapper


@click.version_option(version=versions.version or 'unknown', prog_name='replicaop')
@click.group(name='replicaop', context_settings=dict(
    auto_envvar_prefix='REPLICAOP',
))
def main() -> None:
    pass


@main.command()
@logging_options
@children_options
@click.option('-A', '--all-namespaces', 'clusterwide', is_flag=True)
@click.option('-n', '--namespace', 'namespaces', multiple=True)
@click.option('-L', '--liveness', 'liveness_endpoint', type=str)
@click.make_pass_decorator(CLIControls, ensure=True)
def run(
        __controls: CLIControls,
        namespaces: Collection[str],
        clusterwide: bool,
        liveness_endpoint: str | None,
) -> None:
    """ Start an operator process and reconcile all the custom resources. """
    if namespaces and clusterwide:
        raise click.UsageError("Either --namespace or --all-namespaces can be used, not both.")
    return running.run(
        namespaces=namespaces,
        clusterwide=clusterwide,
        liveness_endpoint=liveness_endpoint,
        settings=__controls.settings,
        stop_flag=__controls.stop_flag,
        ready_flag=__controls.ready_flag,
        vault=__controls.vault,
    )


@main.command()
@logging_options
@children_options
@click.argument('namespace')
@click.argument('name')
@click.make_pass_decorator(CLIControls, ensure=True)
def reconcile(
        __controls: CLIControls,
        namespace: str,
        name: str,
) -> None:
    """ Reconcile one custom resource once, and print the outcome. """
    key = references.ObjectKey(namespace=references.NamespaceName(namespace), name=name)
    try:
        outcome = asyncio.run(running.reconcile_once(
            key,
            settings=__controls.settings,
            vault=__controls.vault,
        ))
    except (errors.APIError, credentials.LoginError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise click.ClickException(str(e)) from e
    click.echo('requeue' if outcome.requeue else 'done')
