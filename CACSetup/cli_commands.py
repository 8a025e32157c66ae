"""
Implementation of CLI commands for CACSetup.

This module defines the command-line interface (CLI) for the ``cac-setup``
tool, utilizing the ``click`` library. It provides commands for the complete
provisioning run, for read-only discovery of the browser targets and the
PKCS#11 library, for diagnostics of an already configured host and for
removal of scratch files.
"""


import click
import json
from collections import OrderedDict
from sys import exit, argv

from CACSetup import logger
from CACSetup.controller import Controller
from CACSetup.enums import ReturnCode, ImportPolicy, Registration
from CACSetup.exceptions import CACSetupException


def check_conf_path(conf: str):
    """
    Validates and resolves the path to the JSON configuration file.

    :param conf: The path string to the configuration file.
    :type conf: str
    :return: A resolved path if the file exists, ``None`` if no path is
             given.
    :rtype: str
    :raises CACSetupException: If there is a problem with the file.
    """
    if conf is None:
        return None
    try:
        return click.Path(exists=True, resolve_path=True)(conf)
    except click.BadParameter as e:
        raise CACSetupException(str(e))


# In Help output, force the subcommand list to match the order
# listed in this file.
class NaturalOrderGroup(click.Group):
    """
    A custom ``click.Group`` subclass that ensures subcommands are listed in the
    help output in the order they were defined in the code.
    """
    def __init__(self, name: str = None, commands: dict = None, **attrs):
        if commands is None:
            commands = OrderedDict()
        elif not isinstance(commands, OrderedDict):
            commands = OrderedDict(commands)
        click.Group.__init__(self, name=name,
                             commands=commands,
                             **attrs)

    def list_commands(self, ctx: click.Context):
        return self.commands.keys()


def confirm(question: str) -> bool:
    return click.confirm(question, default=False)


def get_controller(ctx: click.Context, **params) -> Controller:
    """
    Creates the ``Controller`` from the group options and the options of the
    invoked command. A configuration problem ends the process with a failure
    code.
    """
    params = {**ctx.obj["PARAMS"], **params}
    try:
        conf = check_conf_path(ctx.obj["CONF"])
        return Controller(conf, params=params, confirm=confirm)
    except CACSetupException as e:
        logger.error(e)
        exit(ReturnCode.FAILURE.value)


@click.group(cls=NaturalOrderGroup)
@click.option("--conf", "-c",
              default=None,
              help="Path to JSON configuration file.")
@click.option("--verbose", "-v", default="INFO", show_default=True,
              type=click.Choice(
                  ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                  case_sensitive=False),
              help="Set the verbosity level of the output.")
@click.option("--non-interactive", is_flag=True, default=False,
              help="Never ask questions; a browser that can not be found "
                   "aborts the run.")
@click.option("--yes", "-y", "assume_yes", is_flag=True, default=False,
              help="Continue without browsers that can not be found, "
                   "without asking.")
@click.pass_context
def cli(ctx: click.Context, conf: str, verbose: str, non_interactive: bool,
        assume_yes: bool):
    """
    Configure smart card (CAC) authentication for Firefox and Chrome.
    """
    logger.setLevel(verbose.upper())
    logger.debug(f"Invoked CLI command: {' '.join(argv)}")
    ctx.ensure_object(dict)
    ctx.obj["CONF"] = conf
    ctx.obj["PARAMS"] = {
        "interactive": False if non_interactive else None,
        "assume_yes": True if assume_yes else None,
    }


@cli.command()
@click.option("--best-effort-import", is_flag=True, default=False,
              help="Continue with the next certificate when an import fails "
                   "and report the failures at the end.")
@click.option("--registration", "-r",
              default=None,
              type=click.Choice([r.value for r in Registration],
                                case_sensitive=False),
              help="How to register the PKCS#11 module  [default: modutil]")
@click.pass_context
def setup(ctx: click.Context, best_effort_import: bool, registration: str):
    """
    Install packages, download DoD certificates and configure the NSS
    databases of Firefox and Chrome. Must be run with sudo.
    """
    cnt = get_controller(
        ctx,
        import_policy=ImportPolicy.best_effort.value
        if best_effort_import else None,
        registration=registration)
    try:
        rc = cnt.setup()
    except CACSetupException:
        exit(ReturnCode.FAILURE.value)
    exit(rc.value)


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False,
              help="Print targets as JSON.")
@click.pass_context
def discover(ctx: click.Context, as_json: bool):
    """
    Show the browser NSS databases and the PKCS#11 library that would be
    configured, without changing anything.
    """
    cnt = get_controller(ctx)
    try:
        plan = cnt.discover()
    except CACSetupException as e:
        logger.error(e)
        exit(ReturnCode.FAILURE.value)

    library = str(plan.provider.path) if plan.provider else None
    if as_json:
        click.echo(json.dumps({"user": plan.user,
                               "home": str(plan.home),
                               "library": library,
                               "targets": [t.to_dict()
                                           for t in plan.targets]},
                              indent=2))
    else:
        for t in plan.targets:
            click.echo(f"{t.kind.value}: {t.path or '-'} ({t.status.value})")
        click.echo(f"library: {library or 'not found'}")
    exit(ReturnCode.SUCCESS.value)


@cli.command()
@click.pass_context
def diagnose(ctx: click.Context):
    """
    Probe the PKCS#11 library and show the modules and root certificate trust
    of every configured browser.
    """
    cnt = get_controller(ctx)
    try:
        cnt.diagnose()
    except CACSetupException as e:
        logger.error(e)
        exit(ReturnCode.FAILURE.value)
    exit(ReturnCode.SUCCESS.value)


@cli.command()
@click.pass_context
def cleanup(ctx: click.Context):
    """
    Remove the downloaded certificate bundle and the scratch directory.
    """
    get_controller(ctx).cleanup()
    exit(ReturnCode.SUCCESS.value)


if __name__ == "__main__":
    cli()
