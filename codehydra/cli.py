from __future__ import annotations

import os
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any

import anyio
import click

from codehydra.core.errors import (
    GitError,
    InvalidNameError,
    NotAbsoluteError,
    ProjectNotFoundError,
    ProjectStoreError,
    SetupError,
    WorkspaceError,
    to_error_info,
)
from codehydra.core.log import LOG_LEVELS

_LOG_LEVEL_KEY = "codehydra.log_level"

_DOMAIN_ERRORS = (
    GitError,
    InvalidNameError,
    NotAbsoluteError,
    ProjectNotFoundError,
    ProjectStoreError,
    SetupError,
    WorkspaceError,
)


def _run(func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    """Run an async command body, turning domain errors into CLI errors."""
    try:
        return anyio.run(partial(func, *args))
    except _DOMAIN_ERRORS as exc:
        info = to_error_info(exc)
        raise click.ClickException(f"{info.message} [{info.code}]") from exc


def _app(ctx: click.Context):
    from codehydra.core.app import CodeHydraApp

    if ctx.obj is None:
        from codehydra.core.log import setup_logging
        from codehydra.core.settings import get_settings

        settings = get_settings()
        setup_logging(ctx.meta.get(_LOG_LEVEL_KEY) or settings.log_level)
        ctx.obj = CodeHydraApp(settings)
    return ctx.obj


async def _open_project_id(app, path: str) -> str:
    """Id of the already-open project at ``path``."""
    from codehydra.core.identity import absolute_path, project_id

    await app.projects.load_saved()
    project = project_id(absolute_path(os.path.abspath(path)))
    # Raises ProjectNotFoundError when the project was never opened.
    await app.projects.get(project)
    return project


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Overrides CODEHYDRA_LOG_LEVEL for this invocation.",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """CodeHydra - git worktree workspaces with managed coding agents."""
    ctx.meta[_LOG_LEVEL_KEY] = log_level


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


@main.command()
@click.pass_context
def setup(ctx: click.Context) -> None:
    """Install missing binaries and extensions, then start services."""
    from codehydra.core.models.enums import AppState

    app = _app(ctx)

    async def _setup() -> None:
        gate = app.lifecycle(emit_progress=lambda p: click.echo(f"[{p.step}] {p.message}"))
        state = await gate.get_state()
        if state is AppState.SETUP:
            result = await gate.setup()
            if not result.success:
                raise click.ClickException(f"{result.message} [{result.code}]")
        else:
            click.echo("Setup is up to date.")
        result = await gate.start_services()
        if not result.success:
            raise click.ClickException(f"{result.message} [{result.code}]")
        click.echo("Ready.")

    _run(_setup)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


@main.group()
def project() -> None:
    """Open, list and close projects."""


@project.command("open")
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False))
@click.pass_context
def project_open(ctx: click.Context, path: str) -> None:
    """Open the git repository at PATH."""
    app = _app(ctx)

    async def _open() -> None:
        opened = await app.projects.open(os.path.abspath(path))
        click.echo(f"{opened.id}\t{opened.path}\t{len(opened.workspaces)} workspaces")

    _run(_open)


@project.command("list")
@click.pass_context
def project_list(ctx: click.Context) -> None:
    """List saved projects."""
    app = _app(ctx)

    async def _list() -> None:
        for opened in await app.projects.load_saved():
            click.echo(f"{opened.id}\t{opened.path}\t{len(opened.workspaces)} workspaces")

    _run(_list)


@project.command("close")
@click.argument("path", default=".")
@click.pass_context
def project_close(ctx: click.Context, path: str) -> None:
    """Forget the project at PATH.  Its workspaces are left untouched."""
    app = _app(ctx)

    async def _close() -> None:
        await app.projects.close(await _open_project_id(app, path))
        click.echo(f"Closed {os.path.abspath(path)}")

    _run(_close)


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------

_project_option = click.option(
    "--project", "project_path", default=".", show_default=True, help="Path of an open project."
)


@main.group()
def workspace() -> None:
    """Create, inspect and remove workspaces."""


@workspace.command("list")
@_project_option
@click.pass_context
def workspace_list(ctx: click.Context, project_path: str) -> None:
    """List the workspaces of a project."""
    app = _app(ctx)

    async def _list() -> None:
        opened = await app.projects.get(await _open_project_id(app, project_path))
        for ws in opened.workspaces:
            click.echo(f"{ws.name}\t{ws.path}\tbase={ws.metadata.base}")

    _run(_list)


@workspace.command("create")
@click.argument("name")
@click.option("--base", required=True, help="Branch to create the workspace from.")
@_project_option
@click.pass_context
def workspace_create(ctx: click.Context, name: str, base: str, project_path: str) -> None:
    """Create workspace NAME on a new branch from --base."""
    app = _app(ctx)

    async def _create() -> None:
        created = await app.projects.create_workspace(await _open_project_id(app, project_path), name, base)
        click.echo(created.path)

    _run(_create)


@workspace.command("remove")
@click.argument("name")
@click.option("--keep-branch", is_flag=True, default=False, help="Keep the workspace branch.")
@_project_option
@click.pass_context
def workspace_remove(ctx: click.Context, name: str, keep_branch: bool, project_path: str) -> None:
    """Remove workspace NAME and, unless --keep-branch, its branch."""
    app = _app(ctx)

    async def _remove() -> None:
        result = await app.projects.remove_workspace(
            await _open_project_id(app, project_path), name, keep_branch=keep_branch
        )
        click.echo(f"Removed {name} (branch deleted: {'yes' if result.base_deleted else 'no'})")

    _run(_remove)


@workspace.command("status")
@click.argument("name")
@_project_option
@click.pass_context
def workspace_status(ctx: click.Context, name: str, project_path: str) -> None:
    """Show uncommitted changes in workspace NAME."""
    app = _app(ctx)

    async def _status() -> None:
        status = await app.projects.get_status(await _open_project_id(app, project_path), name)
        state = "dirty" if status.is_dirty else "clean"
        click.echo(
            f"{state}: {status.modified_count} modified, {status.staged_count} staged, "
            f"{status.untracked_count} untracked"
        )

    _run(_status)


@workspace.group("meta")
def workspace_meta() -> None:
    """Read and write workspace metadata."""


@workspace_meta.command("get")
@click.argument("name")
@click.argument("key", required=False)
@_project_option
@click.pass_context
def meta_get(ctx: click.Context, name: str, key: str | None, project_path: str) -> None:
    """Print metadata of workspace NAME (all keys, or just KEY)."""
    app = _app(ctx)

    async def _get() -> None:
        ref = await app.projects.workspace_ref(await _open_project_id(app, project_path), name)
        metadata = await app.projects.get_metadata(ref)
        if key is None:
            for meta_key, value in metadata.as_dict().items():
                click.echo(f"{meta_key}={value}")
            return
        value = metadata.get(key)
        if value is None:
            raise click.exceptions.Exit(1)
        click.echo(value)

    _run(_get)


@workspace_meta.command("set")
@click.argument("name")
@click.argument("key")
@click.argument("value")
@_project_option
@click.pass_context
def meta_set(ctx: click.Context, name: str, key: str, value: str, project_path: str) -> None:
    """Set KEY to VALUE on workspace NAME."""
    app = _app(ctx)

    async def _set() -> None:
        ref = await app.projects.workspace_ref(await _open_project_id(app, project_path), name)
        await app.projects.set_metadata(ref, key, value)

    _run(_set)


@workspace_meta.command("unset")
@click.argument("name")
@click.argument("key")
@_project_option
@click.pass_context
def meta_unset(ctx: click.Context, name: str, key: str, project_path: str) -> None:
    """Delete KEY from workspace NAME."""
    app = _app(ctx)

    async def _unset() -> None:
        ref = await app.projects.workspace_ref(await _open_project_id(app, project_path), name)
        await app.projects.set_metadata(ref, key, None)

    _run(_unset)


# ---------------------------------------------------------------------------
# Wrapper scripts and sessions
# ---------------------------------------------------------------------------


@main.group("bin")
def bin_group() -> None:
    """Terminal wrapper scripts."""


@bin_group.command("generate")
@click.pass_context
def bin_generate(ctx: click.Context) -> None:
    """(Re)write the code/opencode wrappers into the bin directory."""
    from codehydra.core.models.enums import BinaryType
    from codehydra.core.setup.bin_scripts import BinTargetPaths, generate_scripts, write_scripts

    app = _app(ctx)
    paths, settings = app.paths, app.settings
    targets = BinTargetPaths(
        code_remote_cli=str(paths.code_remote_cli(settings.code_server_version)),
        opencode_binary=str(paths.binary_path(BinaryType.OPENCODE, settings.opencode_version)),
        python_path=settings.python_path,
    )
    scripts = generate_scripts(paths.platform, targets, paths.bin_dir)
    _run(write_scripts, paths.bin_dir, scripts)
    for script in scripts:
        click.echo(paths.bin_dir / script.filename)


@main.command()
@click.pass_context
def ports(ctx: click.Context) -> None:
    """List running agent servers by workspace."""
    app = _app(ctx)
    for path, port in sorted(_run(app.ports.load).items()):
        click.echo(f"{port}\t{path}")


if __name__ == "__main__":
    main()
