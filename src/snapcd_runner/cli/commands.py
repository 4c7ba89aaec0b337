"""CLI command implementations."""

from __future__ import annotations

import asyncio
import os
import signal
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, TypeVar

import typer

from snapcd_runner.cli import app
from snapcd_runner.cli.errors import handle_error

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from snapcd_runner.core.metadata import JobMetadata
    from snapcd_runner.engine.base import Engine
    from snapcd_runner.engine.types import Hooks, OutputSet, PlanSummary

T = TypeVar("T")

ConfigPath = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to the runner settings file."),
]

Backend = Annotated[
    str,
    typer.Option("--backend", "-b", help="terraform, tofu (opentofu) or pulumi."),
]

StackName = Annotated[str, typer.Option("--stack", help="Stack the module belongs to.")]
NamespaceName = Annotated[str, typer.Option("--namespace", help="Namespace the module belongs to.")]
ModuleName = Annotated[str, typer.Option("--module", help="Module name.")]

Subdir = Annotated[
    str | None,
    typer.Option("--subdir", help="Subdirectory of the module source holding the code."),
]

BeforeHook = Annotated[
    Path | None,
    typer.Option("--before-hook", help="Shell file to run before the main command."),
]

AfterHook = Annotated[
    Path | None,
    typer.Option("--after-hook", help="Shell file to run after the main command."),
]

NoColor = Annotated[
    bool,
    typer.Option("--no-color", help="Disable colored output."),
]


def _use_color(no_color: bool) -> bool:
    """Determine whether to use color output."""
    return not (no_color or os.environ.get("NO_COLOR"))


def _parse_pairs(values: list[str] | None, option: str) -> dict[str, str]:
    """Parse repeated ``KEY=VALUE`` options; later keys win."""
    pairs: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint=option)
        pairs[key] = value
    return pairs


def _read_hooks(before: Path | None, after: Path | None) -> Hooks:
    from snapcd_runner.engine.types import Hooks

    return Hooks(
        before=before.read_text(encoding="utf-8") if before is not None else None,
        after=after.read_text(encoding="utf-8") if after is not None else None,
    )


def _metadata(stack: str, namespace: str, module: str, subdir: str | None) -> JobMetadata:
    from snapcd_runner.core.metadata import JobMetadata

    return JobMetadata(
        stack_name=stack,
        namespace_name=namespace,
        module_name=module,
        source_subdirectory=subdir,
    )


def _engine(
    task_name: str,
    config: Path | None,
    backend: str,
    metadata: JobMetadata,
) -> Engine:
    from snapcd_runner.config import load_settings
    from snapcd_runner.core.metadata import TaskContext
    from snapcd_runner.engine.registry import EngineFactory

    settings = load_settings(config)
    context = TaskContext(task_name=task_name, metadata=metadata)
    return EngineFactory(settings).create(context, backend, metadata)


class _Interrupts:
    """First Ctrl-C asks the tool to stop, the second kills it."""

    def __init__(self, graceful: asyncio.Event, kill: asyncio.Event) -> None:
        self.graceful = graceful
        self.kill = kill
        self.count = 0

    def __call__(self) -> None:
        self.count += 1
        if self.count == 1:
            typer.echo("Interrupt received, stopping gracefully (Ctrl-C again to kill).", err=True)
            self.graceful.set()
        else:
            typer.echo("Killing...", err=True)
            self.kill.set()


async def _cancellable(step: Callable[[asyncio.Event, asyncio.Event], Awaitable[T]]) -> T:
    from snapcd_runner.engine.errors import EngineCanceled

    graceful = asyncio.Event()
    kill = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, _Interrupts(graceful, kill))
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        pass
    try:
        return await step(kill, graceful)
    except EngineCanceled as exc:
        # The handler stays installed here so a second Ctrl-C still kills.
        await exc.wait_for_exit()
        raise
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _run(step: Callable[[asyncio.Event, asyncio.Event], Awaitable[T]]) -> T:
    return asyncio.run(_cancellable(step))


def _print_plan(summary: PlanSummary, *, color: bool) -> None:
    from rich.console import Console

    from snapcd_runner.cli.formatting import format_changes, format_plan_summary, summary_table

    typer.echo(format_changes(summary, color=color))
    typer.echo()
    Console(no_color=not color).print(summary_table(summary))
    typer.echo(format_plan_summary(summary, color=color))


@app.command()
def init(
    backend: Backend,
    stack: StackName,
    namespace: NamespaceName,
    module: ModuleName,
    subdir: Subdir = None,
    config: ConfigPath = None,
    env: Annotated[
        list[str] | None,
        typer.Option("--env", "-e", help="Environment variable KEY=VALUE; may be repeated."),
    ] = None,
    backend_config: Annotated[
        list[str] | None,
        typer.Option("--backend-config", help="Module-level backend config KEY=VALUE."),
    ] = None,
    namespace_backend_config: Annotated[
        list[str] | None,
        typer.Option("--namespace-backend-config", help="Namespace-level backend config."),
    ] = None,
    ignore_namespace_backend_config: Annotated[
        bool,
        typer.Option("--ignore-namespace-backend-config", help="Skip namespace-level entries."),
    ] = False,
    upgrade: Annotated[bool, typer.Option("--upgrade", help="Upgrade providers.")] = False,
    reconfigure: Annotated[
        bool, typer.Option("--reconfigure", help="Reconfigure the backend.")
    ] = False,
    migrate_state: Annotated[
        bool, typer.Option("--migrate-state", help="Migrate existing state.")
    ] = False,
    login: Annotated[
        str,
        typer.Option("--login", help="Pulumi login: pulumi-cloud, local, custom or none."),
    ] = "none",
    login_url: Annotated[
        str | None, typer.Option("--login-url", help="Pulumi custom login URL.")
    ] = None,
    stack_name: Annotated[
        str | None, typer.Option("--stack-name", help="Pulumi stack to select or create.")
    ] = None,
    before_hook: BeforeHook = None,
    after_hook: AfterHook = None,
    no_color: NoColor = False,
) -> None:
    """Store the environment and initialize the module's working directory."""
    from snapcd_runner.engine.types import (
        BackendConfigEntry,
        BackendConfiguration,
        EngineFlags,
        PulumiBackendConfig,
        PulumiLoginType,
        TerraformBackendConfig,
    )

    color = _use_color(no_color)
    resolved_env = _parse_pairs(env, "--env")
    module_entries = _parse_pairs(backend_config, "--backend-config")
    namespace_entries = _parse_pairs(namespace_backend_config, "--namespace-backend-config")
    try:
        login_type = PulumiLoginType(login.lower())
    except ValueError as exc:
        raise typer.BadParameter(f"unknown login type {login!r}", param_hint="--login") from exc

    configuration = BackendConfiguration(
        terraform=TerraformBackendConfig(
            namespace=tuple(
                BackendConfigEntry(name=k, value=v) for k, v in namespace_entries.items()
            ),
            module=tuple(BackendConfigEntry(name=k, value=v) for k, v in module_entries.items()),
            ignore_namespace=ignore_namespace_backend_config,
        ),
        pulumi=PulumiBackendConfig(
            login_type=login_type,
            stack_name=stack_name,
            custom_login_url=login_url,
        ),
    )
    flags = EngineFlags(
        auto_upgrade=upgrade,
        auto_reconfigure=reconfigure,
        auto_migrate=migrate_state,
    )

    try:
        hooks = _read_hooks(before_hook, after_hook)
        engine = _engine("Init", config, backend, _metadata(stack, namespace, module, subdir))
        _run(
            lambda kill, graceful: engine.init(
                resolved_env, configuration, flags, hooks, kill=kill, graceful=graceful
            )
        )
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo("Initialized.")


@app.command()
def validate(
    backend: Backend,
    stack: StackName,
    namespace: NamespaceName,
    module: ModuleName,
    subdir: Subdir = None,
    config: ConfigPath = None,
    before_hook: BeforeHook = None,
    after_hook: AfterHook = None,
    no_color: NoColor = False,
) -> None:
    """Validate the module code."""
    from snapcd_runner.cli.formatting import styler

    color = _use_color(no_color)
    try:
        hooks = _read_hooks(before_hook, after_hook)
        engine = _engine("Validate", config, backend, _metadata(stack, namespace, module, subdir))
        _run(lambda kill, graceful: engine.validate(hooks, kill=kill, graceful=graceful))
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(styler(color)("Configuration is valid.", fg="green"))


def _plan_command(
    *,
    destroy: bool,
    backend: str,
    metadata: JobMetadata,
    config: Path | None,
    variables: list[str] | None,
    before_hook: Path | None,
    after_hook: Path | None,
    no_color: bool,
) -> None:
    from snapcd_runner.engine.plan import summarize_plan

    color = _use_color(no_color)
    parameters = _parse_pairs(variables, "--var")
    try:
        hooks = _read_hooks(before_hook, after_hook)
        engine = _engine("PlanDestroy" if destroy else "Plan", config, backend, metadata)
        if destroy:
            _run(
                lambda kill, graceful: engine.plan_destroy(
                    parameters, hooks, kill=kill, graceful=graceful
                )
            )
            parsed = engine.parse_destroy_plan()
        else:
            _run(
                lambda kill, graceful: engine.plan(parameters, hooks, kill=kill, graceful=graceful)
            )
            parsed = engine.parse_apply_plan()
        summary = summarize_plan(parsed)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    _print_plan(summary, color=color)
    if summary.has_changes():
        raise typer.Exit(2)


@app.command()
def plan(
    backend: Backend,
    stack: StackName,
    namespace: NamespaceName,
    module: ModuleName,
    subdir: Subdir = None,
    config: ConfigPath = None,
    var: Annotated[
        list[str] | None,
        typer.Option("--var", help="Input variable KEY=VALUE; may be repeated."),
    ] = None,
    before_hook: BeforeHook = None,
    after_hook: AfterHook = None,
    no_color: NoColor = False,
) -> None:
    """Compute a plan; exits 2 when changes are pending."""
    _plan_command(
        destroy=False,
        backend=backend,
        metadata=_metadata(stack, namespace, module, subdir),
        config=config,
        variables=var,
        before_hook=before_hook,
        after_hook=after_hook,
        no_color=no_color,
    )


@app.command(name="plan-destroy")
def plan_destroy(
    backend: Backend,
    stack: StackName,
    namespace: NamespaceName,
    module: ModuleName,
    subdir: Subdir = None,
    config: ConfigPath = None,
    var: Annotated[
        list[str] | None,
        typer.Option("--var", help="Input variable KEY=VALUE; may be repeated."),
    ] = None,
    before_hook: BeforeHook = None,
    after_hook: AfterHook = None,
    no_color: NoColor = False,
) -> None:
    """Compute a destroy plan; exits 2 when changes are pending."""
    _plan_command(
        destroy=True,
        backend=backend,
        metadata=_metadata(stack, namespace, module, subdir),
        config=config,
        variables=var,
        before_hook=before_hook,
        after_hook=after_hook,
        no_color=no_color,
    )


def _apply_command(
    *,
    destroy: bool,
    backend: str,
    metadata: JobMetadata,
    config: Path | None,
    before_hook: Path | None,
    after_hook: Path | None,
    no_color: bool,
) -> None:
    from snapcd_runner.cli.formatting import styler

    color = _use_color(no_color)
    style = styler(color)
    try:
        hooks = _read_hooks(before_hook, after_hook)
        task_name = "DestroyFromPlan" if destroy else "ApplyFromPlan"
        engine = _engine(task_name, config, backend, metadata)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    step = engine.destroy_from_plan if destroy else engine.apply_from_plan
    try:
        _run(lambda kill, graceful: step(hooks, kill=kill, graceful=graceful))
    except Exception as exc:
        code = handle_error(exc, color=color)
        count = engine.read_statistics_from_file()
        typer.echo(f"  Partial result: {count} resource(s) under management.", err=True)
        raise typer.Exit(code) from exc

    header = style("Destroy complete!" if destroy else "Apply complete!", fg="green", bold=True)
    typer.echo(f"{header} Resources: {engine.read_statistics_from_file()} under management.")


@app.command(name="apply")
def apply_cmd(
    backend: Backend,
    stack: StackName,
    namespace: NamespaceName,
    module: ModuleName,
    subdir: Subdir = None,
    config: ConfigPath = None,
    before_hook: BeforeHook = None,
    after_hook: AfterHook = None,
    no_color: NoColor = False,
) -> None:
    """Apply the saved plan."""
    _apply_command(
        destroy=False,
        backend=backend,
        metadata=_metadata(stack, namespace, module, subdir),
        config=config,
        before_hook=before_hook,
        after_hook=after_hook,
        no_color=no_color,
    )


@app.command()
def destroy(
    backend: Backend,
    stack: StackName,
    namespace: NamespaceName,
    module: ModuleName,
    subdir: Subdir = None,
    config: ConfigPath = None,
    before_hook: BeforeHook = None,
    after_hook: AfterHook = None,
    no_color: NoColor = False,
) -> None:
    """Apply the saved destroy plan."""
    _apply_command(
        destroy=True,
        backend=backend,
        metadata=_metadata(stack, namespace, module, subdir),
        config=config,
        before_hook=before_hook,
        after_hook=after_hook,
        no_color=no_color,
    )


@app.command()
def output(
    backend: Backend,
    stack: StackName,
    namespace: NamespaceName,
    module: ModuleName,
    subdir: Subdir = None,
    config: ConfigPath = None,
    from_extra_file: Annotated[
        list[str] | None,
        typer.Option("--from-extra-file", help="Output declared in an extra file (repeatable)."),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the output set as JSON.")] = False,
    before_hook: BeforeHook = None,
    after_hook: AfterHook = None,
    no_color: NoColor = False,
) -> None:
    """Read the module outputs."""
    color = _use_color(no_color)
    sources = dict.fromkeys(from_extra_file or [], True)

    async def step(kill: asyncio.Event, graceful: asyncio.Event) -> OutputSet:
        raw = await engine.output(hooks, kill=kill, graceful=graceful)
        return await engine.parse_json_to_output_set(raw, sources)

    try:
        hooks = _read_hooks(before_hook, after_hook)
        engine = _engine("Output", config, backend, _metadata(stack, namespace, module, subdir))
        output_set = _run(step)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    if as_json:
        typer.echo(output_set.model_dump_json(indent=2))
        return

    from rich.console import Console

    from snapcd_runner.cli.formatting import outputs_table

    Console(no_color=not color).print(outputs_table(output_set))


@app.command()
def statistics(
    backend: Backend,
    stack: StackName,
    namespace: NamespaceName,
    module: ModuleName,
    subdir: Subdir = None,
    config: ConfigPath = None,
    cached: Annotated[
        bool,
        typer.Option("--cached", help="Read the count the last apply/destroy recorded."),
    ] = False,
    no_color: NoColor = False,
) -> None:
    """Print the number of resources under management."""
    color = _use_color(no_color)
    try:
        engine = _engine("Statistics", config, backend, _metadata(stack, namespace, module, subdir))
        if cached:
            count = engine.read_statistics_from_file()
        else:
            count = _run(lambda kill, graceful: engine.statistics(kill=kill, graceful=graceful))
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(str(count))


@app.command(name="extra-files")
def extra_files(
    file: Annotated[Path, typer.Argument(help="YAML or JSON list of extra files.")],
    stack: StackName,
    namespace: NamespaceName,
    module: ModuleName,
    subdir: Subdir = None,
    config: ConfigPath = None,
    no_color: NoColor = False,
) -> None:
    """Place extra files in the module, undoing files a previous run added."""
    from pydantic import TypeAdapter
    from ruamel.yaml import YAML

    from snapcd_runner.config import load_settings
    from snapcd_runner.config.loader import ConfigError
    from snapcd_runner.core import ExtraFile, ModuleDirectory, sync_extra_files

    color = _use_color(no_color)
    try:
        try:
            raw = YAML(typ="safe").load(file)
            requested = TypeAdapter(list[ExtraFile]).validate_python(raw or [])
        except Exception as exc:
            raise ConfigError(f"Failed to read extra files from {file}: {exc}") from exc
        settings = load_settings(config)
        directory = ModuleDirectory(_metadata(stack, namespace, module, subdir), settings)
        manifest = sync_extra_files(directory, requested)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(f"Created: {', '.join(manifest.created) or '-'}")
    typer.echo(f"Overwritten: {', '.join(manifest.overwritten) or '-'}")
