"""KnowledgeOS CLI - Command-line interface for the knowledge store."""

import logging
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from knowledgeos import __version__
from knowledgeos.core.config import get_config
from knowledgeos.core.errors import KnowledgeError
from knowledgeos.core.models import SOURCE_MANUAL, KnowledgeEntry, Rule, RuleType
from knowledgeos.core.time import utc_now

console = Console()


def _format_relative_time(ts: Optional[datetime]) -> str:
    """Format timestamp as relative time (e.g., '2h ago')"""
    if ts is None:
        return "never"

    seconds = (utc_now() - ts).total_seconds()
    if seconds < 60:
        return "just now"
    elif seconds < 3600:
        return f"{int(seconds / 60)}m ago"
    elif seconds < 86400:
        return f"{int(seconds / 3600)}h ago"
    elif seconds < 30 * 86400:
        return f"{int(seconds / 86400)}d ago"
    return ts.strftime("%Y-%m-%d")


def _root(ctx: click.Context) -> Path:
    return ctx.obj["root"]


def _store(ctx: click.Context):
    from knowledgeos.backends.file_store import FileKnowledgeStore
    from knowledgeos.backends.git_log import GitVersionLog
    from knowledgeos.core.paths import ensure_knowledge_dir

    if "store" not in ctx.obj:
        config = get_config()
        root = ensure_knowledge_dir(_root(ctx))
        version_log = GitVersionLog(
            root, user_name=config.git_user_name, user_email=config.git_user_email
        )
        ctx.obj["store"] = FileKnowledgeStore(root, version_log=version_log)
    return ctx.obj["store"]


def _rules(ctx: click.Context):
    from knowledgeos.core.rules import RuleEngine

    if "rules" not in ctx.obj:
        ctx.obj["rules"] = RuleEngine(_store(ctx).root)
    return ctx.obj["rules"]


def _read_content(content: Optional[str], file: Optional[str]) -> Optional[str]:
    if content is not None and file is not None:
        raise click.UsageError("use either --content or --file, not both")
    if file is not None:
        return Path(file).read_text(encoding="utf-8")
    return content


def handle_errors(f):
    """Render knowledge errors as a red message and exit with status 1."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (KnowledgeError, ValueError) as e:
            console.print(f"[red]✗ {escape(str(e))}[/red]")
            raise SystemExit(1)
    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="knowledgeos")
@click.option("--dir", "knowledge_dir", type=click.Path(file_okay=False), help="Knowledge directory")
@click.pass_context
def cli(ctx, knowledge_dir: Optional[str]):
    """KnowledgeOS - Versioned knowledge base management."""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(levelname)s: %(message)s'
    )
    ctx.ensure_object(dict)
    ctx.obj["root"] = Path(knowledge_dir) if knowledge_dir else config.resolved_knowledge_dir


@cli.command()
@click.pass_context
@handle_errors
def init(ctx):
    """Initialize the knowledge directory."""
    from knowledgeos.core.paths import init_knowledge_dir

    console.print("[cyan]Initializing knowledge base...[/cyan]")
    root = init_knowledge_dir(_root(ctx))
    console.print(f"[green]✓ Knowledge base initialized at {root}[/green]")


@cli.command("list")
@click.pass_context
@handle_errors
def list_topics(ctx):
    """List all knowledge topics."""
    entries = sorted(_store(ctx).list(), key=lambda e: e.topic)

    if not entries:
        console.print("[yellow]No knowledge entries found[/yellow]")
        console.print("[dim]Add your first entry with: knowledgeos add <topic>[/dim]")
        return

    table = Table(title=f"Knowledge Base ({len(entries)} topics)")
    table.add_column("Topic", style="cyan")
    table.add_column("Version", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Updated", style="dim")
    for entry in entries:
        table.add_row(
            escape(entry.topic),
            str(entry.version),
            f"{entry.confidence * 100:.0f}%",
            _format_relative_time(entry.updated_at),
        )
    console.print(table)


@cli.command()
@click.argument("topic")
@click.pass_context
@handle_errors
def show(ctx, topic: str):
    """Display a knowledge entry."""
    entry = _store(ctx).get(topic)

    console.print(f"[bold magenta]{escape(entry.topic)} (v{entry.version})[/bold magenta]")
    console.print(f"[cyan]Confidence:[/cyan] {entry.confidence * 100:.0f}%")
    if entry.tags:
        console.print(f"[cyan]Tags:[/cyan] {', '.join(entry.tags)}")
    if entry.source:
        console.print(f"[cyan]Source:[/cyan] {entry.source}")
    console.print(f"[cyan]Updated:[/cyan] {_format_relative_time(entry.updated_at)}")
    console.print()
    console.print(entry.content, markup=False)


@cli.command()
@click.argument("topic")
@click.option("--content", help="Entry content (markdown)")
@click.option("--file", type=click.Path(exists=True, dir_okay=False), help="Read content from file")
@click.option("--confidence", default=0.8, type=click.FloatRange(0.0, 1.0), help="Confidence (0-1)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--source", default=SOURCE_MANUAL, help="Provenance")
@click.pass_context
@handle_errors
def add(ctx, topic: str, content: Optional[str], file: Optional[str], confidence: float, tags, source: str):
    """Add a new knowledge entry."""
    store = _store(ctx)
    if store.exists(topic):
        raise click.ClickException(f"topic already exists: {topic} (use 'edit' to modify)")

    body = _read_content(content, file)
    if body is None:
        template = f"# {topic}\n\nWrite your knowledge content here in Markdown format.\n"
        body = click.edit(template, extension=".md")
        if body is None or body.strip() == template.strip():
            raise click.ClickException("no changes made, aborting")

    store.add(KnowledgeEntry(
        topic=topic,
        content=body,
        source=source,
        confidence=confidence,
        tags=list(tags),
    ))
    console.print(f"[green]✓ Added: {topic}[/green]")


@cli.command()
@click.argument("topic")
@click.option("--content", help="New content (markdown)")
@click.option("--file", type=click.Path(exists=True, dir_okay=False), help="Read content from file")
@click.pass_context
@handle_errors
def edit(ctx, topic: str, content: Optional[str], file: Optional[str]):
    """Edit an existing knowledge entry."""
    store = _store(ctx)
    entry = store.get(topic)

    body = _read_content(content, file)
    if body is None:
        body = click.edit(entry.content, extension=".md")
    if body is None or body == entry.content:
        raise click.ClickException("no changes made, aborting")

    entry.content = body
    updated = store.update(topic, entry)
    console.print(f"[green]✓ Updated: {topic} (v{updated.version})[/green]")


@cli.command()
@click.argument("topic")
@click.pass_context
@handle_errors
def delete(ctx, topic: str):
    """Delete a knowledge entry."""
    _store(ctx).delete(topic)
    console.print(f"[green]✓ Removed: {topic}[/green]")


@cli.command()
@click.argument("query")
@click.pass_context
@handle_errors
def search(ctx, query: str):
    """Search knowledge by topic, content, or tags."""
    results = sorted(_store(ctx).search(query), key=lambda e: e.topic)

    if not results:
        console.print(f"[yellow]No results found for: {query}[/yellow]")
        return

    table = Table(title=f"Search Results ({len(results)} found)")
    table.add_column("Topic", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Tags")
    for entry in results:
        table.add_row(
            escape(entry.topic),
            f"{entry.confidence * 100:.0f}%",
            ", ".join(entry.tags) or "[dim](none)[/dim]",
        )
    console.print(table)


@cli.command()
@click.argument("topic")
@click.pass_context
@handle_errors
def history(ctx, topic: str):
    """Show version history for a topic."""
    commits = _store(ctx).history(topic)

    if not commits:
        console.print(f"[yellow]No history found for: {topic}[/yellow]")
        return

    console.print(f"[bold magenta]History: {topic}[/bold magenta]")
    for commit in commits:
        console.print(f"[cyan]{commit.short_hash}[/cyan] {escape(commit.message)}")
        console.print(f"  [dim]{_format_relative_time(commit.date)} by {commit.author}[/dim]")


@cli.command()
@click.argument("rev_a")
@click.argument("rev_b")
@click.pass_context
@handle_errors
def diff(ctx, rev_a: str, rev_b: str):
    """Show the diff between two revisions."""
    console.print(_store(ctx).diff(rev_a, rev_b), markup=False, highlight=False)


@cli.command()
@click.argument("prefix")
@click.pass_context
@handle_errors
def dedupe(ctx, prefix: str):
    """Remove near-duplicate entries under a topic prefix."""
    removed = _store(ctx).deduplicate(prefix)
    if not removed:
        console.print("[green]✓ No duplicates found[/green]")
        return
    console.print(f"[green]✓ Removed {len(removed)} duplicate entries:[/green]")
    for topic in removed:
        console.print(f"  • {topic}")


@cli.command()
@click.pass_context
@handle_errors
def consolidate(ctx):
    """Consolidate knowledge entries."""
    console.print("[cyan]Running consolidation...[/cyan]")
    groups = _store(ctx).consolidate()
    for prefix, topics in groups.items():
        console.print(f"  • {prefix}: {len(topics)} topics")
    console.print("[green]✓ Consolidation complete[/green]")


@cli.command()
@click.pass_context
@handle_errors
def stats(ctx):
    """Show knowledge base statistics."""
    data = _store(ctx).stats()

    console.print("[bold magenta]Knowledge Base Statistics[/bold magenta]")
    console.print(f"[cyan]Total Topics:[/cyan] {data['total_topics']}")
    console.print(f"[cyan]Average Confidence:[/cyan] {data['average_confidence'] * 100:.0f}%")
    console.print(f"[cyan]Unique Tags:[/cyan] {len(data['tags'])}")
    if data["tags"]:
        console.print("[cyan]Top Tags:[/cyan]")
        for tag, count in list(data["tags"].items())[:10]:
            console.print(f"  {tag}: {count}")


@cli.command()
@click.argument("query")
@click.option("--max-size", type=int, default=None, help="Byte budget (default from config)")
@click.pass_context
@handle_errors
def context(ctx, query: str, max_size: Optional[int]):
    """Print rule-filtered knowledge relevant to a query."""
    from knowledgeos.core.client import KnowledgeClient

    client = KnowledgeClient(_store(ctx), _rules(ctx))
    text = client.build_context(query, max_size or get_config().context_max_size)
    if not text:
        console.print(f"[yellow]No relevant knowledge for: {query}[/yellow]")
        return
    console.print(text, markup=False, highlight=False)


@cli.command("manifest")
@click.pass_context
@handle_errors
def rebuild_manifest(ctx):
    """Regenerate MANIFEST.yaml from the stored documents."""
    manifest = _store(ctx).rebuild_manifest()
    console.print(f"[green]✓ Manifest rebuilt ({len(manifest.topics)} topics)[/green]")


@cli.group()
def rules():
    """Manage content rules."""
    pass


@rules.command("list")
@click.pass_context
@handle_errors
def rules_list(ctx):
    """List all rules."""
    configured = _rules(ctx).list_rules()

    if not configured:
        console.print("[yellow]No rules configured[/yellow]")
        console.print("[dim]Add a rule with: knowledgeos rules add --type exclude --pattern <regex>[/dim]")
        return

    table = Table(title=f"Rules ({len(configured)} configured)")
    table.add_column("Type", style="cyan")
    table.add_column("Pattern")
    table.add_column("Replacement")
    table.add_column("Reason")
    table.add_column("ID", style="dim")
    for rule in configured:
        table.add_row(rule.type, escape(rule.pattern), escape(rule.replacement), escape(rule.reason), rule.id[:8])
    console.print(table)


@rules.command("add")
@click.option("--type", "rule_type", type=click.Choice(RuleType.values()), default=RuleType.EXCLUDE.value, help="Rule type")
@click.option("--pattern", required=True, help="Regular expression to match")
@click.option("--replacement", default="", help="Replacement (prefer rules)")
@click.option("--reason", default="", help="Why this rule exists")
@click.pass_context
@handle_errors
def rules_add(ctx, rule_type: str, pattern: str, replacement: str, reason: str):
    """Add a new content rule."""
    rule = _rules(ctx).add_rule(Rule(
        type=rule_type,
        pattern=pattern,
        replacement=replacement,
        reason=reason,
    ))
    console.print(f"[green]✓ Rule added: {rule.id}[/green]")


@rules.command("remove")
@click.argument("rule_id")
@click.pass_context
@handle_errors
def rules_remove(ctx, rule_id: str):
    """Remove a rule by ID (or unique ID prefix)."""
    engine = _rules(ctx)
    engine.remove_rule(engine.resolve_rule_id(rule_id))
    console.print("[green]✓ Rule removed[/green]")


if __name__ == "__main__":
    cli()
