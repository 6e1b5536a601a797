"""Command-line interface for silencethelan."""

import asyncio
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.table import Table

from silencethelan.catalog import EntityCatalog
from silencethelan.config import Config, find_config_file, load_config, merge_cli_options
from silencethelan.errors import RuleNameError, StoreUnavailable
from silencethelan.identity import RulePrefixMatcher
from silencethelan.importer import load_rule_dump, rule_from_name
from silencethelan.intents import IntentResponse, Intents
from silencethelan.models import Outcome
from silencethelan.notifiers import SlackConfig, SlackNotifier
from silencethelan.reachability import ReachabilityConfig, ReachabilityGate
from silencethelan.shortcuts import ShortcutCommand, ShortcutRunner
from silencethelan.storage import RuleStore
from silencethelan.toggle import BulkToggleCoordinator, RuleContext

console = Console()

OUTCOME_STYLES = {
    Outcome.OK: "green",
    Outcome.REJECTED: "yellow",
    Outcome.NOT_FOUND: "yellow",
    Outcome.STORE_UNAVAILABLE: "red",
}


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to config file (default: searches standard locations)",
)
@click.option(
    "--db",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to the DuckDB rules database",
)
@click.option("--host", type=str, default=None, help="Controller host used for the reachability check")
@click.option("--timeout", type=float, default=None, help="Seconds before the reachability probe gives up")
@click.option("--prefix", type=str, multiple=True, help="Custom rule prefix (up to 3, in addition to defaults)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def main(
    ctx: click.Context,
    config: Path | None,
    db: Path | None,
    host: str | None,
    timeout: float | None,
    prefix: tuple[str, ...],
    verbose: bool,
) -> None:
    """stlan - allow or block people's internet activities on the home network."""
    ctx.ensure_object(dict)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    cfg = merge_cli_options(
        load_config(config), db=db, host=host, timeout=timeout, prefix=prefix
    )
    cfg.db_path.parent.mkdir(parents=True, exist_ok=True)
    ctx.obj["config"] = cfg

    config_path = config or find_config_file()
    if config_path:
        ctx.obj["config_path"] = config_path


@contextmanager
def _open_store(cfg: Config) -> Iterator[RuleStore]:
    """Connected store for one command; exits on connection failure."""
    store = RuleStore(cfg.db_path)
    try:
        store.connect()
    except StoreUnavailable as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    try:
        yield store
    finally:
        store.close()


def _make_gate(cfg: Config) -> ReachabilityGate:
    return ReachabilityGate(
        ReachabilityConfig(
            host=cfg.controller_host,
            probe_timeout=cfg.probe_timeout,
            cache_ttl=cfg.reachability_cache_ttl,
            verify_tls=cfg.verify_tls,
        )
    )


def _make_intents(cfg: Config, store: RuleStore) -> Intents:
    context = RuleContext(store=store, gate=_make_gate(cfg))
    return Intents(BulkToggleCoordinator(context))


def _report(cfg: Config, response: IntentResponse) -> None:
    """Print the dialog line, notify Slack, and exit non-zero on failure."""
    style = OUTCOME_STYLES.get(response.result.outcome, "white")
    console.print(f"[{style}]{response.dialog}[/{style}]")

    if cfg.slack_enabled and cfg.slack_webhook_url:
        asyncio.run(_notify(cfg, response))

    if not response.result.succeeded:
        sys.exit(1)


async def _notify(cfg: Config, response: IntentResponse) -> None:
    notifier = SlackNotifier(
        SlackConfig(
            webhook_url=cfg.slack_webhook_url or "",
            notify_failures=cfg.slack_notify_failures,
        )
    )
    try:
        await notifier.send(response)
    finally:
        await notifier.close()


def _catalog_error(e: StoreUnavailable) -> NoReturn:
    console.print(f"[red]Error reading rules: {e}[/red]")
    sys.exit(1)


# ----------------------------------------------------------------------
# Catalog
# ----------------------------------------------------------------------


@main.command()
@click.option("--search", "-s", type=str, default=None, help="Only people whose name contains this text")
@click.pass_context
def persons(ctx: click.Context, search: str | None) -> None:
    """List people with managed rules."""
    cfg: Config = ctx.obj["config"]

    with _open_store(cfg) as store:
        catalog = EntityCatalog(store)
        try:
            people = catalog.find_persons(search) if search else catalog.list_persons()
        except StoreUnavailable as e:
            _catalog_error(e)

        if not people:
            console.print("[yellow]No people found[/yellow]")
            return

        table = Table(title="People")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        for person in people:
            table.add_row(person.id, person.display_name)
        console.print(table)


@main.command()
@click.option("--search", "-s", type=str, default=None, help="Only activities or people containing this text")
@click.pass_context
def activities(ctx: click.Context, search: str | None) -> None:
    """List managed (person, activity) rules."""
    cfg: Config = ctx.obj["config"]

    with _open_store(cfg) as store:
        catalog = EntityCatalog(store)
        try:
            items = catalog.find_activities(search) if search else catalog.list_activities()
            blocked = {rule.rule_id: rule.is_blocked for rule in store.fetch_selected()}
        except StoreUnavailable as e:
            _catalog_error(e)

        if not items:
            console.print("[yellow]No activities found[/yellow]")
            return

        table = Table(title="Activities")
        table.add_column("Activity")
        table.add_column("Person")
        table.add_column("State")
        table.add_column("Rule", style="dim")
        for item in items:
            state = "[red]blocked[/red]" if blocked.get(item.rule_id) else "[green]allowed[/green]"
            table.add_row(item.activity_name, item.person_name, state, item.rule_id)
        console.print(table)


# ----------------------------------------------------------------------
# Toggles
# ----------------------------------------------------------------------


def _run_command(ctx: click.Context, command: ShortcutCommand) -> None:
    cfg: Config = ctx.obj["config"]

    with _open_store(cfg) as store:
        runner = ShortcutRunner(EntityCatalog(store), _make_intents(cfg, store))
        try:
            response = runner.run_command(command)
        except StoreUnavailable as e:
            _catalog_error(e)

    _report(cfg, response)


@main.command()
@click.argument("person")
@click.pass_context
def block(ctx: click.Context, person: str) -> None:
    """Block all of PERSON's activities."""
    _run_command(ctx, ShortcutCommand(blocked=True, person=person))


@main.command()
@click.argument("person")
@click.pass_context
def allow(ctx: click.Context, person: str) -> None:
    """Allow all of PERSON's activities."""
    _run_command(ctx, ShortcutCommand(blocked=False, person=person))


@main.command("block-activity")
@click.argument("person")
@click.argument("activity")
@click.pass_context
def block_activity(ctx: click.Context, person: str, activity: str) -> None:
    """Block one of PERSON's activities."""
    _run_command(ctx, ShortcutCommand(blocked=True, person=person, activity=activity))


@main.command("allow-activity")
@click.argument("person")
@click.argument("activity")
@click.pass_context
def allow_activity(ctx: click.Context, person: str, activity: str) -> None:
    """Allow one of PERSON's activities."""
    _run_command(ctx, ShortcutCommand(blocked=False, person=person, activity=activity))


@main.command()
@click.argument("phrase", nargs=-1, required=True)
@click.pass_context
def say(ctx: click.Context, phrase: tuple[str, ...]) -> None:
    """Run a shortcut phrase, e.g. stlan say "Turn off Alice's internet"."""
    cfg: Config = ctx.obj["config"]
    text = " ".join(phrase)

    with _open_store(cfg) as store:
        runner = ShortcutRunner(EntityCatalog(store), _make_intents(cfg, store))
        try:
            response = runner.run(text)
        except StoreUnavailable as e:
            _catalog_error(e)

    if response is None:
        console.print(f"[yellow]Sorry, I don't know how to '{text}'[/yellow]")
        sys.exit(1)

    _report(cfg, response)


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show rule counts and controller reachability."""
    cfg: Config = ctx.obj["config"]

    if "config_path" in ctx.obj:
        console.print(f"[dim]Config: {ctx.obj['config_path']}[/dim]")

    with _open_store(cfg) as store:
        try:
            stats = store.get_stats()
        except StoreUnavailable as e:
            _catalog_error(e)

    gate = _make_gate(cfg)
    host = cfg.controller_host or "not configured"
    reachable = "[green]yes[/green]" if gate.is_reachable else "[red]no[/red]"

    console.print("[cyan]Rules[/cyan]")
    console.print(f"  Total: {stats['total_rules']:,}")
    console.print(f"  Managed: {stats['selected_rules']:,}")
    console.print(f"  Blocking: {stats['blocked_rules']:,}")
    console.print(f"  People: {stats['persons']:,}")
    console.print("[cyan]Controller[/cyan]")
    console.print(f"  Host: {host}")
    console.print(f"  Probe timeout: {cfg.probe_timeout:g}s")
    console.print(f"  Reachable: {reachable}")


# ----------------------------------------------------------------------
# Rule management
# ----------------------------------------------------------------------


@main.group()
def rules() -> None:
    """Manage the rules stlan controls."""


@rules.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include rules that are not managed")
@click.pass_context
def rules_list(ctx: click.Context, show_all: bool) -> None:
    """List stored rules."""
    cfg: Config = ctx.obj["config"]

    with _open_store(cfg) as store:
        try:
            rule_list = store.fetch() if show_all else store.fetch_selected()
        except StoreUnavailable as e:
            _catalog_error(e)

        if not rule_list:
            console.print("[yellow]No rules stored. Add some with 'stlan rules add' or 'stlan rules import'.[/yellow]")
            return

        table = Table(title="Rules")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Person")
        table.add_column("Activity")
        table.add_column("Managed")
        table.add_column("State")
        for rule in rule_list:
            table.add_row(
                rule.rule_id,
                rule.name or "",
                rule.person_name,
                rule.activity_name,
                "yes" if rule.is_selected else "[dim]no[/dim]",
                "[red]blocked[/red]" if rule.is_blocked else "[green]allowed[/green]",
            )
        console.print(table)


@rules.command("add")
@click.argument("name")
@click.option("--id", "rule_id", type=str, default=None, help="Controller rule id (default: random)")
@click.option("--action", type=click.Choice(["BLOCK", "DROP", "REJECT"], case_sensitive=False), default="BLOCK")
@click.option("--blocked", is_flag=True, help="Rule is currently blocking")
@click.option("--unmanaged", is_flag=True, help="Store the rule without selecting it")
@click.pass_context
def rules_add(
    ctx: click.Context,
    name: str,
    rule_id: str | None,
    action: str,
    blocked: bool,
    unmanaged: bool,
) -> None:
    """Add a rule named like Downtime-<Person>-<Activity>."""
    cfg: Config = ctx.obj["config"]
    matcher = RulePrefixMatcher(cfg.custom_prefixes)

    try:
        rule = rule_from_name(
            name, matcher, rule_id=rule_id, action=action, selected=not unmanaged, blocked=blocked
        )
    except RuleNameError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    with _open_store(cfg) as store:
        try:
            store.add_rule(rule)
        except StoreUnavailable as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

    console.print(
        f"[green]Added {rule.rule_id}: {rule.person_name} / {rule.activity_name}[/green]"
    )


@rules.command("import")
@click.argument("dump", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def rules_import(ctx: click.Context, dump: Path) -> None:
    """Import managed blocking rules from a controller JSON rule dump."""
    cfg: Config = ctx.obj["config"]
    matcher = RulePrefixMatcher(cfg.custom_prefixes)

    try:
        imported = load_rule_dump(dump, matcher)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if not imported:
        prefixes = ", ".join(matcher.prefixes)
        console.print(f"[yellow]No blocking rules with prefixes {prefixes} in {dump}[/yellow]")
        return

    with _open_store(cfg) as store:
        try:
            store.add_rules(imported)
        except StoreUnavailable as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

    console.print(f"[green]Imported {len(imported)} rules[/green]")


def _set_selected(ctx: click.Context, rule_id: str, selected: bool) -> None:
    cfg: Config = ctx.obj["config"]

    with _open_store(cfg) as store:
        try:
            found = store.set_selected(rule_id, selected)
        except StoreUnavailable as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

    if not found:
        console.print(f"[red]No rule with id {rule_id}[/red]")
        sys.exit(1)

    state = "managed" if selected else "no longer managed"
    console.print(f"[green]Rule {rule_id} is {state}[/green]")


@rules.command("select")
@click.argument("rule_id")
@click.pass_context
def rules_select(ctx: click.Context, rule_id: str) -> None:
    """Manage RULE_ID with stlan."""
    _set_selected(ctx, rule_id, True)


@rules.command("unselect")
@click.argument("rule_id")
@click.pass_context
def rules_unselect(ctx: click.Context, rule_id: str) -> None:
    """Stop managing RULE_ID (keeps it stored)."""
    _set_selected(ctx, rule_id, False)


@rules.command("remove")
@click.argument("rule_id")
@click.pass_context
def rules_remove(ctx: click.Context, rule_id: str) -> None:
    """Delete RULE_ID from the store."""
    cfg: Config = ctx.obj["config"]

    with _open_store(cfg) as store:
        try:
            removed = store.remove_rule(rule_id)
        except StoreUnavailable as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)

    if not removed:
        console.print(f"[red]No rule with id {rule_id}[/red]")
        sys.exit(1)
    console.print(f"[green]Removed rule {rule_id}[/green]")


if __name__ == "__main__":
    main()
