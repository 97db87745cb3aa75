"""Command-line interface using Typer."""

from typing import Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from scene_studio import __version__
from scene_studio.logging import setup_logging

# Setup logging
setup_logging()

app = typer.Typer(
    name="scene-studio",
    help="SceneStudio - scene-ordered video projects",
    add_completion=False,
)

# Subcommand groups
projects_app = typer.Typer(help="Project inspection commands")
preview_app = typer.Typer(help="Preview rendering commands")
app.add_typer(projects_app, name="projects")
app.add_typer(preview_app, name="preview")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"SceneStudio v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """SceneStudio - plan scenes with AI and render previews."""
    pass


def _parse_project_id(project_id: str) -> UUID:
    try:
        return UUID(project_id)
    except ValueError:
        console.print(f"[bold red]Invalid project ID: {project_id}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"SceneStudio v{__version__}")


@app.command()
def health() -> None:
    """Check the health of all services."""
    import httpx

    from scene_studio.config import settings

    url = f"http://{settings.api_host}:{settings.api_port}/health/ready"

    try:
        response = httpx.get(url, timeout=10)
        data = response.json()

        table = Table(title="Service Health")
        table.add_column("Component", style="cyan")
        table.add_column("Status")

        table.add_row("Database", "✓" if data.get("database") else "✗")
        table.add_row("Redis", "✓" if data.get("redis") else "✗")
        table.add_row("Storage", "✓" if data.get("storage") else "✗")

        for component, healthy in (data.get("components") or {}).items():
            table.add_row(component, "✓" if healthy else "✗")

        console.print(table)

        if data.get("ready"):
            console.print("[bold green]All services healthy![/bold green]")
        else:
            console.print("[bold yellow]Some services unhealthy[/bold yellow]")
            raise typer.Exit(code=1)

    except httpx.RequestError as e:
        console.print(f"[bold red]Cannot connect to API: {e}[/bold red]")
        console.print("[dim]Is the API server running?[/dim]")
        raise typer.Exit(code=1)


@app.command()
def worker(
    queues: str = typer.Option("render,maintenance", "--queues", "-Q", help="Queues to consume"),
    beat: bool = typer.Option(False, "--beat", "-B", help="Also run the stale-preview sweep schedule"),
) -> None:
    """Start a Celery worker (for development)."""
    console.print("[bold blue]Starting Celery worker...[/bold blue]")

    import subprocess
    import sys

    command = [sys.executable, "-m", "celery", "-A", "scene_studio.worker", "worker"]
    command += ["--loglevel=info", "-Q", queues]
    if beat:
        command.append("--beat")
    subprocess.run(command, check=True)


@app.command()
def presets() -> None:
    """List available visual styles."""
    from scene_studio.presets.styles import DEFAULT_STYLE, PRESETS

    table = Table(title="Styles")
    table.add_column("Name", style="cyan")
    table.add_column("Display Name")
    table.add_column("Guidance", style="dim")

    for name, preset in PRESETS.items():
        label = f"{name} (default)" if name == DEFAULT_STYLE.value else name
        table.add_row(label, preset.display_name, preset.guidance)

    console.print(table)


# =============================================================================
# PROJECT COMMANDS
# =============================================================================


@projects_app.command("list")
def projects_list(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Only this user's projects"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum rows"),
) -> None:
    """List projects, most recently updated first."""
    from sqlalchemy import select

    from scene_studio.db.models import ProjectModel
    from scene_studio.db.session import get_session_context

    with get_session_context() as session:
        query = select(ProjectModel).order_by(ProjectModel.updated_at.desc()).limit(limit)
        if user:
            query = query.where(ProjectModel.user_id == user)
        projects = session.execute(query).scalars().all()

        if not projects:
            console.print("[dim]No projects found.[/dim]")
            return

        table = Table(title="Projects")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("User")
        table.add_column("Status")
        table.add_column("Scenes", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Preview")
        table.add_column("Updated")

        for project in projects:
            table.add_row(
                str(project.id),
                project.title,
                project.user_id,
                project.status,
                str(project.scenes_count),
                f"{project.total_duration:.1f}s",
                project.preview_status,
                project.updated_at.strftime("%Y-%m-%d %H:%M") if project.updated_at else "-",
            )

        console.print(table)


@projects_app.command("show")
def projects_show(
    project_id: str = typer.Argument(..., help="Project ID (UUID)"),
) -> None:
    """Show a project and its scenes."""
    from scene_studio.db.models import ProjectModel
    from scene_studio.db.session import get_session_context
    from scene_studio.services.scene_store import SceneStore

    project_uuid = _parse_project_id(project_id)

    with get_session_context() as session:
        project = session.get(ProjectModel, project_uuid)
        if not project:
            console.print(f"[bold red]Project not found: {project_id}[/bold red]")
            raise typer.Exit(code=1)

        console.print(Panel.fit(
            f"[bold]{project.title}[/bold]\n\n"
            f"[cyan]ID:[/cyan] {project.id}\n"
            f"[cyan]Topic:[/cyan] {project.topic}\n"
            f"[cyan]Style:[/cyan] {project.style}\n"
            f"[cyan]Status:[/cyan] {project.status}\n"
            f"[cyan]Scenes:[/cyan] {project.scenes_count} ({project.total_duration:.1f}s)\n"
            f"[cyan]Preview:[/cyan] {project.preview_status} {project.preview_uri or ''}\n"
            f"[cyan]Video:[/cyan] {project.video_uri or 'N/A'}",
            title="Project Details",
            border_style="blue",
        ))

        table = Table(title="Scenes")
        table.add_column("#", justify="right")
        table.add_column("Description")
        table.add_column("Duration", justify="right")
        table.add_column("Media")
        table.add_column("Audio")

        for scene in SceneStore(session).list_scenes(project_uuid):
            table.add_row(
                str(scene.scene_number),
                scene.description[:60],
                f"{scene.duration:g}s",
                scene.media_type or "-",
                "yes" if scene.audio_uri else "-",
            )

        console.print(table)


# =============================================================================
# PREVIEW COMMANDS
# =============================================================================


@preview_app.command("start")
def preview_start(
    project_id: str = typer.Argument(..., help="Project ID (UUID)"),
    inline: bool = typer.Option(
        False, "--inline", help="Render in this process instead of queueing a worker task"
    ),
) -> None:
    """Render a project preview."""
    project_uuid = _parse_project_id(project_id)

    if not inline:
        from scene_studio.jobs.preview import render_project_preview_task

        result = render_project_preview_task.delay(str(project_uuid))
        console.print(f"[green]Task enqueued: {result.id}[/green]")
        console.print(f"[dim]Check progress with: scene-studio preview status {project_uuid}[/dim]")
        return

    from scene_studio.domain.errors import NotFoundError
    from scene_studio.services.preview_renderer import PreviewRenderer
    from scene_studio.utils import run_async

    console.print("[bold blue]Rendering preview...[/bold blue]")
    try:
        snapshot = run_async(PreviewRenderer().render(project_uuid))
    except NotFoundError:
        console.print(f"[bold red]Project not found: {project_id}[/bold red]")
        raise typer.Exit(code=1)

    if snapshot.status == "completed":
        console.print("[bold green]✓ Preview rendered[/bold green]")
        console.print(f"URI: {snapshot.preview_uri}")
    else:
        console.print(f"[bold red]✗ Preview failed: {snapshot.message}[/bold red]")
        raise typer.Exit(code=1)


@preview_app.command("status")
def preview_status(
    project_id: str = typer.Argument(..., help="Project ID (UUID)"),
) -> None:
    """Show the preview state of a project."""
    from scene_studio.db.models import ProjectModel
    from scene_studio.db.session import get_session_context

    project_uuid = _parse_project_id(project_id)

    with get_session_context() as session:
        project = session.get(ProjectModel, project_uuid)
        if not project:
            console.print(f"[bold red]Project not found: {project_id}[/bold red]")
            raise typer.Exit(code=1)

        status_colors = {
            "completed": "green",
            "processing": "yellow",
            "failed": "red",
            "pending": "dim",
        }
        color = status_colors.get(project.preview_status, "white")

        console.print(Panel.fit(
            f"[cyan]Status:[/cyan] [{color}]{project.preview_status}[/{color}]\n"
            f"[cyan]Progress:[/cyan] {project.preview_progress}%\n"
            f"[cyan]Message:[/cyan] {project.preview_message or '-'}\n"
            f"[cyan]Task:[/cyan] {project.preview_task_id or '-'}\n"
            f"[cyan]URI:[/cyan] {project.preview_uri or '-'}",
            title=f"Preview {project.id}",
            border_style="blue",
        ))


@preview_app.command("expire")
def preview_expire() -> None:
    """Fail previews stuck in processing past the stale limit."""
    from scene_studio.db.session import get_session_context
    from scene_studio.services.preview_renderer import expire_stale_previews

    with get_session_context() as session:
        expired = expire_stale_previews(session)

    if not expired:
        console.print("[dim]No stale previews.[/dim]")
        return

    for project_id in expired:
        console.print(f"[yellow]Expired preview for {project_id}[/yellow]")


if __name__ == "__main__":
    app()
