"""CLI interface for blogpipe."""

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from blogpipe.config import BlogpipeConfig, load_config, merge_cli_overrides
from blogpipe.core import PipelineResult, run_pipeline, write_site
from blogpipe.errors import StorageUnavailable, load_report, save_report
from blogpipe.render import MarkdownItRenderer, post_slug, render_post
from blogpipe.storage import FilesystemContentRoot

app = typer.Typer(
    name="blogpipe",
    help="Resolve, index and render a folder of blog posts.",
)

console = Console()
_stderr_console = Console(stderr=True)

ContentOption = Annotated[
    Optional[Path],
    typer.Option("--content", "-c", help="Content root. Defaults to content.root from config."),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", help="Path to a .blogpipe.toml file."),
]
DraftsOption = Annotated[
    Optional[bool],
    typer.Option("--drafts/--no-drafts", help="Include draft posts."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from blogpipe import __version__

        console.print(f"blogpipe {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log pipeline progress.")
    ] = False,
) -> None:
    """blogpipe - canonical posts from a folder of drafts."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _config(config_path: Path | None, **overrides: object) -> BlogpipeConfig:
    config = load_config(config_path)
    return merge_cli_overrides(config, **overrides)


def _run(config: BlogpipeConfig) -> PipelineResult:
    """Run the pipeline for a config, exiting 1 if the content root is unusable."""
    root = FilesystemContentRoot(config.content.root, config.content.patterns)
    try:
        return run_pipeline(
            root,
            renderer=MarkdownItRenderer(html=config.render.html),
            include_drafts=config.output.include_drafts,
            workers=config.pipeline.workers,
        )
    except StorageUnavailable as exc:
        _stderr_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc


@app.command(name="build")
def build_cmd(
    content: ContentOption = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output directory. Defaults to output.directory from config."),
    ] = None,
    drafts: DraftsOption = None,
    workers: Annotated[
        Optional[int], typer.Option("--workers", "-w", min=1, help="Parallel parsers.")
    ] = None,
    config_path: ConfigOption = None,
    quiet: Annotated[
        bool, typer.Option("--quiet", "-q", help="Only print errors.")
    ] = False,
) -> None:
    """Build the site: posts/<slug>.html plus index.json."""
    config = _config(
        config_path,
        content_root=str(content) if content else None,
        output_directory=str(output) if output else None,
        include_drafts=drafts,
        workers=workers,
    )
    result = _run(config)

    output_dir = Path(config.output.directory)
    write_site(result, output_dir)
    save_report(result.report, output_dir)

    if not quiet:
        console.print(
            f"[green]Built {len(result.rendered)} post(s)[/green] into {output_dir}"
        )
        console.print(result.report.summary_text(), markup=False, highlight=False)


@app.command(name="list")
def list_cmd(
    content: ContentOption = None,
    drafts: DraftsOption = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the index as JSON.")
    ] = False,
    config_path: ConfigOption = None,
) -> None:
    """List canonical posts, newest first."""
    config = _config(
        config_path,
        content_root=str(content) if content else None,
        include_drafts=drafts,
    )
    result = _run(config)
    include_drafts = config.output.include_drafts

    if as_json:
        typer.echo(result.index.to_json(include_drafts), nl=False)
        return

    posts = result.index.list(include_drafts)
    if not posts:
        console.print("[yellow]No posts found.[/yellow]")
        return

    table = Table(title=f"{len(posts)} post(s)")
    table.add_column("Date")
    table.add_column("Title")
    table.add_column("Draft")
    table.add_column("Revisions", justify="right")
    table.add_column("Source")
    for post in posts:
        table.add_row(
            post.published_at.date().isoformat(),
            post.title,
            "yes" if post.draft else "",
            str(post.revision_rank + 1),
            post.source_path,
        )
    console.print(table)


@app.command(name="show")
def show_cmd(
    post_id: Annotated[str, typer.Argument(help="Post id or slug.")],
    content: ContentOption = None,
    drafts: DraftsOption = None,
    config_path: ConfigOption = None,
) -> None:
    """Render a single post to stdout.

    Drafts are treated as missing unless drafts are enabled.
    """
    config = _config(
        config_path,
        content_root=str(content) if content else None,
        include_drafts=drafts,
    )
    result = _run(config)

    visible = result.index.list(config.output.include_drafts)
    matches = [p for p in visible if p.id == post_id] or [
        p for p in visible if post_slug(p) == post_id
    ]
    if not matches:
        _stderr_console.print(f"[red]Error:[/red] No post with id or slug {post_id!r}")
        raise typer.Exit(1)
    post = matches[0]

    renderer = MarkdownItRenderer(html=config.render.html)
    typer.echo(render_post(post, renderer).to_text(), nl=False)


@app.command(name="check")
def check_cmd(
    content: ContentOption = None,
    config_path: ConfigOption = None,
) -> None:
    """Report malformed, dropped and unrenderable documents.

    Exits 1 if any diagnostic was produced.
    """
    config = _config(
        config_path, content_root=str(content) if content else None, include_drafts=True
    )
    result = _run(config)
    diagnostics = result.report.diagnostics

    if not diagnostics:
        console.print(
            f"[green]OK:[/green] {len(result.index)} post(s), no problems found."
        )
        return

    console.print(f"[yellow]{len(diagnostics)} problem(s):[/yellow]")
    for diag in diagnostics:
        console.print(
            f"  - {diag.kind.value} {diag.source}: {diag.message}",
            markup=False,
            highlight=False,
        )
    raise typer.Exit(1)


@app.command(name="status")
def status_cmd(
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output directory of a previous build."),
    ] = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the raw report.")
    ] = False,
    config_path: ConfigOption = None,
) -> None:
    """Show the report of the last build."""
    config = _config(config_path, output_directory=str(output) if output else None)
    report = load_report(Path(config.output.directory))
    if report is None:
        console.print("[yellow]No previous run found.[/yellow]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(report.model_dump(mode="json"), indent=2))
        return
    console.print(report.summary_text(), markup=False, highlight=False)


if __name__ == "__main__":
    app()
