"""Typer-powered command line interface for ``origami``.

Every command resolves its target environment through an
:class:`~origami.context.ApplicationContext` built for that invocation only,
refreshes the compose variables, runs the relevant providers and records the
outcome in the structured operations log. Errors raised by the core are caught
here, printed and mapped to the exit code carried by the exception.
"""
from __future__ import annotations

import json
import sys
import textwrap
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .backups import BackupEntryBuilder, BackupIndex
from .config import AppConfig, ConfigError, load_config
from .configuration import ConfigurationInstaller, ConfigurationUninstaller
from .context import ApplicationContext
from .environment import EnvironmentEntity, EnvironmentType, check_location, validate_domains
from .errors import ConfigurationError, ContextError, InvalidLocationError, OrigamiError
from .events import (
    EnvironmentRestarted,
    EnvironmentStarted,
    EnvironmentStopped,
    EnvironmentUninstalled,
    EventDispatcher,
    build_dispatcher,
)
from .executor import ProcessRunner, SubprocessExecutor
from .logging import OperationScope, StructuredLogger
from .paths import COMPOSE_FILENAME, certificates_path, compose_file_path
from .providers import (
    DatabaseCoordinator,
    DockerCompose,
    MkcertProvider,
    load_credentials,
)
from .state import StateRegistry
from .templates import TemplateEngine

console = Console()

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    help="Path to an alternate origami configuration file.",
    dir_okay=False,
)
ENVIRONMENT_OPTION = typer.Option(
    None,
    "--environment",
    "-e",
    help="Name of the targeted environment (inferred from the current directory otherwise).",
)
JSON_OPTION = typer.Option(False, "--json", help="Emit JSON instead of a table.")
YES_OPTION = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation.")

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Manage local Docker environments for Magento 2, Symfony and custom stacks.

        Environments are installed (or registered) once, then started, stopped
        and inspected from their directory or by name.
        """
    ).strip(),
)
database_app = typer.Typer(help="Dump and restore the environment database.")
app.add_typer(database_app, name="database")


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    registry: StateRegistry
    logger: StructuredLogger
    templates: TemplateEngine
    executor: ProcessRunner
    compose: DockerCompose
    mkcert: MkcertProvider
    installer: ConfigurationInstaller
    uninstaller: ConfigurationUninstaller
    backups: BackupIndex
    events: EventDispatcher
    working_directory: Path
    platform: str = sys.platform


def build_runtime(
    config: AppConfig,
    *,
    executor: ProcessRunner | None = None,
    working_directory: Path | None = None,
    platform: str = sys.platform,
) -> RuntimeContext:
    """Wire the providers described by *config* into a :class:`RuntimeContext`."""
    executor = executor or SubprocessExecutor()
    registry = StateRegistry(config.registry_dir)
    registry.ensure_root()
    logger = StructuredLogger(config.logs_dir)
    templates = TemplateEngine.with_overrides(config.templates_dir)
    binaries = config.binaries
    compose = DockerCompose(
        executor=executor,
        compose_setting=binaries.compose,
        docker_bin=binaries.docker,
        installation_dir=config.installation_dir,
        php_image=config.php_image,
    )
    mkcert = MkcertProvider(executor=executor, mkcert_bin=binaries.mkcert)
    installer = ConfigurationInstaller(
        templates=templates,
        certificates=mkcert,
        database=config.database,
        installation_dir=config.installation_dir,
        php_image=config.php_image,
    )
    uninstaller = ConfigurationUninstaller(
        certificates=mkcert,
        installation_dir=config.installation_dir,
    )
    return RuntimeContext(
        config=config,
        registry=registry,
        logger=logger,
        templates=templates,
        executor=executor,
        compose=compose,
        mkcert=mkcert,
        installer=installer,
        uninstaller=uninstaller,
        backups=BackupIndex(config.backups.index),
        events=build_dispatcher(registry, compose, platform=platform),
        working_directory=Path(working_directory or Path.cwd()),
        platform=platform,
    )


def _ensure_runtime(ctx: typer.Context, config_file: Path | None) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]", soft_wrap=True)
        raise typer.Exit(code=int(exc.exit_code)) from exc
    runtime = build_runtime(config)
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the origami version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"origami {__version__}")
        raise typer.Exit(code=0)

    _ensure_runtime(ctx, config_file)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _command_error(
    op: OperationScope,
    message: str,
    *,
    rc: int = 2,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]{escape(message)}[/red]", soft_wrap=True)
    op.error(message, errors=list(errors or [message]), rc=rc)
    raise typer.Exit(code=rc)


def _fail(op: OperationScope, exc: OrigamiError) -> NoReturn:
    _command_error(op, str(exc), rc=int(exc.exit_code))


def _target(environment: str | None) -> dict[str, object]:
    return {"kind": "environment", "name": environment}


def _activate(runtime: RuntimeContext, op: OperationScope, name: str | None) -> EnvironmentEntity:
    """Resolve, activate and refresh the environment targeted by the command."""
    context = ApplicationContext(runtime.registry, runtime.working_directory)
    context.set_active_environment(context.load_environment(name))
    environment = context.get_active_environment()
    runtime.compose.refresh_environment_variables(environment)
    op.add_step("context.resolve", detail=context.get_project_name())
    return environment


def _database(runtime: RuntimeContext, environment: EnvironmentEntity) -> DatabaseCoordinator:
    settings = runtime.config.database
    return DatabaseCoordinator(
        compose=runtime.compose,
        credentials=load_credentials(environment, runtime.config.installation_dir, settings),
        ready_attempts=settings.ready_attempts,
        ready_delay=settings.ready_delay,
    )


def _backup_path(
    runtime: RuntimeContext,
    environment: EnvironmentEntity,
    path: Path | None,
) -> Path:
    if path is None:
        return environment.location / runtime.config.backups.filename
    candidate = path.expanduser()
    if not candidate.is_absolute():
        candidate = runtime.working_directory / candidate
    return candidate


def _binary_versions(runtime: RuntimeContext) -> dict[str, str]:
    return {
        "docker": runtime.compose.get_docker_version(),
        "compose": runtime.compose.get_compose_version(),
        "mkcert": runtime.mkcert.get_version(),
    }


def _render_mapping(title: str, data: Mapping[str, object]) -> None:
    table = Table(title=title, show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in data.items():
        if isinstance(value, (dict, list)):
            rendered = json.dumps(value, indent=2, sort_keys=True)
        else:
            rendered = "" if value is None else str(value)
        table.add_row(key, escape(rendered))
    console.print(table)


def _ensure_not_running(runtime: RuntimeContext, environment: EnvironmentEntity) -> None:
    running = runtime.registry.get_environment(environment.name)
    if running is not None and running.is_active:
        raise ContextError(
            f"Environment '{environment.name}' is running; stop it before continuing."
        )


# ----------------------------------------------------------------------
# Environment lifecycle
# ----------------------------------------------------------------------
@app.command()
def install(
    ctx: typer.Context,
    location: Path | None = typer.Argument(
        None,
        help="Directory of the project (defaults to the current directory).",
    ),
    environment_type: str = typer.Option(
        ...,
        "--type",
        "-t",
        help="Type of the environment to install (magento2 or symfony).",
    ),
    domains: str | None = typer.Option(
        None,
        "--domains",
        "-d",
        help="Space separated local domains to issue a certificate for.",
    ),
    name: str | None = typer.Option(
        None,
        "--name",
        "-n",
        help="Name of the environment (defaults to the directory name).",
    ),
) -> None:
    """Install the Docker configuration of a new environment."""
    runtime = _get_runtime(ctx)
    target_location = location or runtime.working_directory

    with runtime.logger.operation(
        "install",
        args={"location": target_location, "type": environment_type, "domains": domains},
        target=_target(name),
    ) as op:
        try:
            resolved = check_location(target_location)
            env_name = name or resolved.name
            if runtime.registry.get_environment(env_name) is not None:
                raise ConfigurationError(
                    f"An environment named '{env_name}' is already registered."
                )
            result = runtime.installer.install(
                resolved, environment_type, domains, name=env_name
            )
            op.add_step("configuration.install", detail=str(result.directory))
            runtime.registry.add_environment(result.environment)
            op.add_step("registry.add", detail=result.environment.name)
        except OrigamiError as exc:
            _fail(op, exc)

        console.print(
            f"[green]Environment '{escape(result.environment.name)}' installed in "
            f"{escape(str(result.directory))}.[/green]"
        )
        for path in result.files:
            console.print(f"  - {escape(str(path))}")
        op.success(
            "Environment installed.",
            changed=len(result.files),
            context=result.to_dict(),
        )


@app.command()
def uninstall(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
    yes: bool = YES_OPTION,
) -> None:
    """Remove the services, volumes and configuration of an environment."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "uninstall",
        args={"environment": environment, "yes": yes},
        target=_target(environment),
    ) as op:
        try:
            active = _activate(runtime, op, environment)
            _ensure_not_running(runtime, active)
            if not yes:
                typer.confirm(
                    f"Remove every service, volume and file of '{active.name}'?",
                    abort=True,
                )
            compose_file = compose_file_path(active, runtime.config.installation_dir)
            if compose_file.is_file():
                runtime.compose.remove_services()
                op.add_step("compose.down")
            else:
                op.add_step("compose.down", status="skipped", detail=str(compose_file))
            removed = runtime.uninstaller.uninstall(active)
            op.add_step("configuration.uninstall", status="success" if removed else "skipped")
            runtime.events.dispatch(EnvironmentUninstalled(active))
        except OrigamiError as exc:
            _fail(op, exc)

        console.print(f"[green]Environment '{escape(active.name)}' uninstalled.[/green]")
        op.success("Environment uninstalled.", changed=1)


@app.command()
def register(
    ctx: typer.Context,
    location: Path | None = typer.Argument(
        None,
        help="Directory containing a docker-compose.yml (defaults to the current directory).",
    ),
    name: str | None = typer.Option(
        None,
        "--name",
        "-n",
        help="Name of the environment (defaults to the directory name).",
    ),
    domains: str | None = typer.Option(
        None,
        "--domains",
        "-d",
        help="Space separated local domains served by the environment.",
    ),
) -> None:
    """Register a custom environment shipping its own compose file."""
    runtime = _get_runtime(ctx)
    target_location = location or runtime.working_directory

    with runtime.logger.operation(
        "register",
        args={"location": target_location, "domains": domains},
        target=_target(name),
    ) as op:
        try:
            resolved = check_location(target_location)
            if not (resolved / COMPOSE_FILENAME).is_file():
                raise InvalidLocationError(
                    f"'{resolved}' does not contain a {COMPOSE_FILENAME} file."
                )
            entity = EnvironmentEntity(
                name=name or resolved.name,
                location=resolved,
                type=EnvironmentType.CUSTOM,
                domains=validate_domains(domains) if domains else None,
            )
            runtime.registry.add_environment(entity)
        except OrigamiError as exc:
            _fail(op, exc)

        console.print(f"[green]Environment '{escape(entity.name)}' registered.[/green]")
        op.success("Environment registered.", changed=1, context=entity.to_dict())


@app.command()
def unregister(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Forget a custom environment without touching its files."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "unregister",
        args={"environment": environment},
        target=_target(environment),
    ) as op:
        try:
            active = _activate(runtime, op, environment)
            if not active.is_custom:
                raise ConfigurationError(
                    f"Environment '{active.name}' was installed by origami; "
                    "use 'origami uninstall' instead."
                )
            _ensure_not_running(runtime, active)
            runtime.registry.remove_environment(active.name)
        except OrigamiError as exc:
            _fail(op, exc)

        console.print(f"[green]Environment '{escape(active.name)}' unregistered.[/green]")
        op.success("Environment unregistered.", changed=1)


@app.command()
def start(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Start the services of an environment."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "start",
        args={"environment": environment},
        target=_target(environment),
    ) as op:
        try:
            active = _activate(runtime, op, environment)
            running = runtime.registry.active_environment()
            if running is not None and running.name != active.name:
                raise ContextError(
                    f"Unable to start '{active.name}' while '{running.name}' is running."
                )
            runtime.compose.start_services()
            op.add_step("compose.up")
            runtime.events.dispatch(EnvironmentStarted(active))
        except OrigamiError as exc:
            _fail(op, exc)

        url = f"https://{active.domain_list[0]}" if active.domain_list else "https://127.0.0.1"
        console.print("[green]Docker services successfully started.[/green]")
        console.print(f"Please visit {escape(url)} to access your environment.")
        op.success("Environment started.", changed=1)


@app.command()
def stop(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Stop the services of an environment."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "stop",
        args={"environment": environment},
        target=_target(environment),
    ) as op:
        try:
            active = _activate(runtime, op, environment)
            runtime.compose.stop_services()
            op.add_step("compose.stop")
            runtime.events.dispatch(EnvironmentStopped(active))
        except OrigamiError as exc:
            _fail(op, exc)

        console.print("[green]Docker services successfully stopped.[/green]")
        op.success("Environment stopped.", changed=1)


@app.command()
def restart(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Restart the services of an environment."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "restart",
        args={"environment": environment},
        target=_target(environment),
    ) as op:
        try:
            active = _activate(runtime, op, environment)
            runtime.compose.restart_services()
            op.add_step("compose.restart")
            runtime.events.dispatch(EnvironmentRestarted(active))
        except OrigamiError as exc:
            _fail(op, exc)

        console.print("[green]Docker services successfully restarted.[/green]")
        op.success("Environment restarted.", changed=1)


@app.command()
def prepare(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Pull and build the images of an environment."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "prepare",
        args={"environment": environment},
        target=_target(environment),
    ) as op:
        try:
            _activate(runtime, op, environment)
            runtime.compose.pull_services()
            op.add_step("compose.pull")
            runtime.compose.build_services()
            op.add_step("compose.build")
        except OrigamiError as exc:
            _fail(op, exc)

        console.print("[green]Docker services successfully prepared.[/green]")
        op.success("Images prepared.", changed=0)


# ----------------------------------------------------------------------
# Inspection
# ----------------------------------------------------------------------
@app.command()
def ps(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Show the status of the environment services."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "ps",
        args={"environment": environment},
        target=_target(environment),
    ) as op:
        try:
            _activate(runtime, op, environment)
            runtime.compose.show_services_status()
        except OrigamiError as exc:
            _fail(op, exc)
        op.success("Reported services status.", changed=0)


@app.command()
def logs(
    ctx: typer.Context,
    service: str | None = typer.Argument(
        None,
        help="Name of the service for which the logs will be shown.",
    ),
    tail: int | None = typer.Option(
        None,
        "--tail",
        "-t",
        min=0,
        help="Number of lines to show from the end of the logs of each service.",
    ),
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Follow the logs of the environment services."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "logs",
        args={"environment": environment, "service": service, "tail": tail},
        target=_target(environment),
    ) as op:
        try:
            _activate(runtime, op, environment)
            runtime.compose.show_services_logs(tail, service)
        except KeyboardInterrupt:
            op.success("Stopped following logs.", changed=0)
            return
        except OrigamiError as exc:
            _fail(op, exc)
        op.success("Followed services logs.", changed=0)


@app.command()
def stats(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Stream the resource usage of the running containers."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "stats",
        args={"environment": environment},
        target=_target(environment),
    ) as op:
        try:
            _activate(runtime, op, environment)
            runtime.compose.show_resources_usage()
        except KeyboardInterrupt:
            op.success("Stopped streaming resource usage.", changed=0)
            return
        except OrigamiError as exc:
            _fail(op, exc)
        op.success("Reported resource usage.", changed=0)


@app.command()
def terminal(
    ctx: typer.Context,
    service: str = typer.Option("php", "--service", "-s", help="Service to open a shell in."),
    user: str | None = typer.Option(
        "www-data:www-data",
        "--user",
        "-u",
        help="User running the shell inside the container.",
    ),
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Open an interactive login shell inside a service container."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "terminal",
        args={"environment": environment, "service": service, "user": user},
        target=_target(environment),
    ) as op:
        try:
            _activate(runtime, op, environment)
            runtime.compose.open_terminal(service, user or None)
        except OrigamiError as exc:
            _fail(op, exc)
        op.success("Terminal session closed.", changed=0)


@app.command()
def root(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Print the variables needed to run compose commands by hand."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "root",
        args={"environment": environment},
        target=_target(environment),
    ) as op:
        try:
            _activate(runtime, op, environment)
            variables = runtime.compose.compose_environment()
        except OrigamiError as exc:
            _fail(op, exc)

        console.print("# Run the following lines to use compose directly:", highlight=False)
        for key, value in variables.items():
            console.print(f'export {key}="{value}"', markup=False, highlight=False, soft_wrap=True)
        op.success("Printed compose variables.", changed=0)


@app.command()
def details(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Show the environment, its compose variables and its certificate."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "details",
        args={"environment": environment, "json": json_output},
        target=_target(environment),
    ) as op:
        try:
            active = _activate(runtime, op, environment)
            directory = certificates_path(active.location, runtime.config.installation_dir)
            certificate = None
            if runtime.mkcert.has_certificate(directory):
                certificate = runtime.mkcert.inspect(runtime.mkcert.certificate_path(directory))
            payload: dict[str, object] = {
                "environment": {**active.to_dict(), "project": active.project_name},
                "variables": runtime.compose.get_required_variables(),
                "certificate": certificate.to_dict() if certificate is not None else None,
                "versions": _binary_versions(runtime),
            }
        except OrigamiError as exc:
            _fail(op, exc)

        if json_output:
            console.print_json(data=payload)
            op.success("Displayed environment details as JSON.", changed=0)
            return

        for title, section in payload.items():
            if isinstance(section, Mapping):
                _render_mapping(title.title(), section)
        if certificate is None:
            console.print("No certificate was generated for this environment.")
        op.success("Displayed environment details.", changed=0)


@app.command("registry")
def registry_list(
    ctx: typer.Context,
    json_output: bool = JSON_OPTION,
) -> None:
    """List the registered environments."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "registry",
        args={"json": json_output},
        target={"kind": "registry"},
    ) as op:
        try:
            environments = runtime.registry.list_environments()
        except OrigamiError as exc:
            _fail(op, exc)

        if json_output:
            console.print_json(data={"environments": [env.to_dict() for env in environments]})
            op.success("Reported environments as JSON.", changed=0)
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Name", style="bold")
        table.add_column("Type")
        table.add_column("Location")
        table.add_column("Domains")
        table.add_column("Status")
        if not environments:
            table.add_row("(none)", "", "", "", "")
        for env in environments:
            table.add_row(
                escape(env.name),
                env.type.value,
                escape(str(env.location)),
                escape(env.domains or ""),
                "running" if env.is_active else "stopped",
            )
        console.print(table)
        op.success("Reported environments.", changed=0)


@app.command()
def version(
    ctx: typer.Context,
    json_output: bool = JSON_OPTION,
) -> None:
    """Show the version of origami and of the binaries it drives."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "version",
        args={"json": json_output},
        target={"kind": "meta", "scope": "version"},
    ) as op:
        payload = {"origami": __version__, **_binary_versions(runtime)}
        if json_output:
            console.print_json(data=payload)
        else:
            _render_mapping("Versions", payload)
        op.success("Reported versions.", changed=0)


# ----------------------------------------------------------------------
# Database
# ----------------------------------------------------------------------
BACKUP_PATH_OPTION = typer.Option(
    None,
    "--path",
    "-p",
    help="Backup file (defaults to origami_backup.sql in the environment directory).",
)


@database_app.command("dump")
def database_dump(
    ctx: typer.Context,
    path: Path | None = BACKUP_PATH_OPTION,
    environment: str | None = ENVIRONMENT_OPTION,
) -> None:
    """Dump the environment database into a file."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "database dump",
        args={"environment": environment, "path": path},
        target=_target(environment),
    ) as op:
        try:
            active = _activate(runtime, op, environment)
            destination = _backup_path(runtime, active, path)
            coordinator = _database(runtime, active)
            coordinator.dump(destination)
            op.add_step("database.dump", detail=str(destination))
            entry = BackupEntryBuilder(
                environment=active.name,
                project_name=active.project_name,
                path=destination,
                engine=coordinator.engine.value,
            ).build(backup_id=runtime.backups.generate_identifier(active.name))
            runtime.backups.append(entry)
            op.add_step("backups.index", detail=entry["id"])
        except OrigamiError as exc:
            _fail(op, exc)

        console.print(f"[green]Database dumped into {escape(str(destination))}.[/green]")
        op.success("Database dumped.", changed=1, context={"backup": entry})


@database_app.command("restore")
def database_restore(
    ctx: typer.Context,
    path: Path | None = BACKUP_PATH_OPTION,
    environment: str | None = ENVIRONMENT_OPTION,
    restart_services: bool = typer.Option(
        True,
        "--restart/--no-restart",
        help="Restart the environment services once the backup is restored.",
    ),
    yes: bool = YES_OPTION,
) -> None:
    """Reset the environment database then restore a backup into it."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "database restore",
        args={"environment": environment, "path": path, "restart": restart_services},
        target=_target(environment),
    ) as op:
        try:
            active = _activate(runtime, op, environment)
            source = _backup_path(runtime, active, path)
            coordinator = _database(runtime, active)
            coordinator.check_backup(source)
            if not yes:
                typer.confirm(
                    f"The database of '{active.name}' will be erased before restoring "
                    f"{source}. Continue?",
                    abort=True,
                )
            coordinator.restore(source)
            op.add_step("database.restore", detail=str(source))
            if restart_services:
                runtime.compose.restart_services()
                op.add_step("compose.restart")
        except OrigamiError as exc:
            _fail(op, exc)

        console.print(f"[green]Database restored from {escape(str(source))}.[/green]")
        op.success("Database restored.", changed=1)


@database_app.command("backups")
def database_backups(
    ctx: typer.Context,
    environment: str | None = ENVIRONMENT_OPTION,
    show_all: bool = typer.Option(False, "--all", help="List the dumps of every environment."),
    json_output: bool = JSON_OPTION,
) -> None:
    """List the recorded database dumps."""
    runtime = _get_runtime(ctx)

    with runtime.logger.operation(
        "database backups",
        args={"environment": environment, "all": show_all, "json": json_output},
        target=_target(environment),
    ) as op:
        try:
            if show_all:
                entries = runtime.backups.list_entries()
            else:
                active = _activate(runtime, op, environment)
                entries = runtime.backups.entries_for_environment(active.name)
        except OrigamiError as exc:
            _fail(op, exc)

        if json_output:
            console.print_json(data={"backups": entries})
            op.success("Reported backups as JSON.", changed=0)
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("ID", style="bold")
        table.add_column("Environment")
        table.add_column("Engine")
        table.add_column("Created")
        table.add_column("Size")
        table.add_column("Path")
        if not entries:
            table.add_row("(none)", "", "", "", "", "")
        for entry in entries:
            table.add_row(
                str(entry.get("id", "")),
                escape(str(entry.get("environment", ""))),
                str(entry.get("engine", "")),
                str(entry.get("created_at", "")),
                str(entry.get("size_bytes", "")),
                escape(str(entry.get("path", ""))),
            )
        console.print(table)
        op.success("Reported backups.", changed=0)


__all__ = ["RuntimeContext", "app", "build_runtime"]
