"""CLI entry point for gtdorg."""

import click
from datetime import date, timedelta
from pathlib import Path
from typing import Callable, Optional

from gtdorg.config import ConfigManager
from gtdorg.services.corpus import GtdPaths, IdentityCache, build_index
from gtdorg.services.exceptions import FileModifiedError
from gtdorg.services.file_monitor import FileMonitor
from gtdorg.services.file_operations import read_lines, write_lines
from gtdorg.services.identity import assign, find_problems, repair
from gtdorg.services.refile import refile_file
from gtdorg.utils.logging import bind_command, configure_logging, get_logger
from org_outline import recurring, waiting
from org_outline.edit import Edit
from org_outline.errors import IdentifierCollision, MalformedStructure
from org_outline.headings import get_heading, index as index_headings
from org_outline.identity import generate
from org_outline.mutator import CLEAR, complete, set_planning, set_state, set_tags
from org_outline.planning import parse_repeater
from org_outline.properties import find_by_property
from org_outline.validate import ERROR, check


logger = get_logger(__name__)

EXIT_NOT_FOUND = 1
EXIT_MALFORMED = 2

# Identifiers start with a 14-digit timestamp; anything shorter is a line number
_MAX_LINE_DIGITS = 13


def fail(message: str, code: int = 1) -> None:
    """Print an error to stderr and exit with the given code."""
    click.echo(f"Error: {message}", err=True)
    click.get_current_context().exit(code)


def get_config(ctx: click.Context) -> ConfigManager:
    """Load configuration once per invocation (built-in defaults when absent)."""
    if "config" not in ctx.obj:
        config_path = ctx.obj.get("config_path")
        try:
            if config_path is not None:
                ctx.obj["config"] = ConfigManager.load_from_path(config_path)
            else:
                ctx.obj["config"] = ConfigManager.load_default(allow_missing=True)
        except (FileNotFoundError, ValueError) as e:
            fail(f"Error loading configuration: {e}")
    return ctx.obj["config"]


def get_paths(ctx: click.Context) -> GtdPaths:
    try:
        return GtdPaths.from_config(get_config(ctx).gtd)
    except ValueError as e:
        fail(str(e))


def resolve_document(ctx: click.Context, name: str) -> Path:
    """Path as given when it exists, otherwise relative to the GTD root."""
    path = Path(name).expanduser()
    if path.exists() or path.is_absolute():
        return path.resolve()
    return get_paths(ctx).document_path(name)


def resolve_locator(ctx: click.Context, lines: list[str], locator: str) -> int:
    """Turn a LOCATOR (heading line number or identifier) into a heading line."""
    keywords = get_config(ctx).outline.keywords
    if locator.isdigit() and len(locator) <= _MAX_LINE_DIGITS:
        line_no = int(locator)
        if all(heading.line != line_no for heading in index_headings(lines, keywords)):
            fail(f"No heading at line {line_no}", EXIT_NOT_FOUND)
        return line_no
    key = get_config(ctx).identity.property_key
    heading = find_by_property(lines, key, locator, keywords)
    if heading is None:
        fail(f"No heading with {key} {locator}", EXIT_NOT_FOUND)
    return heading.line


def edit_heading(
    ctx: click.Context,
    file: str,
    locator: str,
    operation: Callable[[list[str], int], Edit],
) -> Edit:
    """
    Read a document, apply one heading operation and write the result.

    Maps engine errors onto exit codes: malformed structure exits 2,
    missing documents and I/O problems exit 1.
    """
    path = resolve_document(ctx, file)
    monitor = FileMonitor()
    try:
        lines = read_lines(path, monitor)
        heading_line = resolve_locator(ctx, lines, locator)
        edit = operation(lines, heading_line)
        if edit.lines != lines:
            write_lines(path, edit.lines, monitor)
    except MalformedStructure as e:
        logger.error("document_malformed", path=str(path), line=e.line, error=e.message)
        fail(f"{path}: {e}", EXIT_MALFORMED)
    except (FileNotFoundError, FileModifiedError, OSError) as e:
        logger.error("document_io_error", path=str(path), error=str(e))
        fail(str(e))
    except ValueError as e:
        fail(str(e), EXIT_MALFORMED)

    if ctx.obj.get("verbose"):
        click.echo(f"{path}: {edit.delta:+d} line(s)")
    return edit


def parse_date_option(value: Optional[str], allow_clear: bool = True):
    """Parse a YYYY-MM-DD, "today", "+Nd" offset or "clear" option value."""
    if value is None:
        return None
    value = value.strip().lower()
    if allow_clear and value == CLEAR:
        return CLEAR
    if value == "today":
        return date.today()
    if value.startswith("+") and value[1:-1].isdigit() and value.endswith("d"):
        return date.today() + timedelta(days=int(value[1:-1]))
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise click.BadParameter(f"Invalid date: {value}. Expected: YYYY-MM-DD, today, +Nd") from e


@click.group()
@click.version_option(version="0.1.0", prog_name="gtdorg")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file (default: ~/.config/gtdorg/config.yaml)",
)
@click.option("--verbose", is_flag=True, help="Print what each command changed")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """gtdorg: Edit org-style GTD task files from the command line.

    FILE is a path, or a document name relative to the configured GTD root.
    LOCATOR is a heading's line number or its identifier.
    """
    configure_logging()
    bind_command(ctx.invoked_subcommand)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("file")
@click.argument("locator")
@click.argument("new_state")
@click.pass_context
def state(ctx: click.Context, file: str, locator: str, new_state: str):
    """
    Set a heading's state keyword ("none" removes it).

    Examples:
        gtdorg state Inbox.org 12 NEXT
        gtdorg state Projects.org 20250110093000-4f1c none
    """
    keywords = get_config(ctx).outline.keywords
    value = None if new_state.lower() == "none" else new_state
    logger.info("state_command_started", file=file, locator=locator, state=value)
    edit_heading(ctx, file, locator, lambda lines, n: set_state(lines, n, value, keywords))
    click.echo(f"State set to {value or '(none)'}")


@cli.command()
@click.argument("file")
@click.argument("locator")
@click.argument("tags", nargs=-1)
@click.option("--add", "add_mode", is_flag=True, help="Add to the existing tags instead of replacing them")
@click.pass_context
def tag(ctx: click.Context, file: str, locator: str, tags: tuple[str, ...], add_mode: bool):
    """
    Replace a heading's tags (no TAGS removes them all).

    Examples:
        gtdorg tag Inbox.org 12 phone errand
        gtdorg tag Inbox.org 12 --add urgent
    """
    keywords = get_config(ctx).outline.keywords

    def operation(lines: list[str], n: int) -> Edit:
        new_tags = list(tags)
        if add_mode:
            current = list(get_heading(lines, n, keywords).tags)
            new_tags = current + [t for t in tags if t not in current]
        return set_tags(lines, n, new_tags, keywords)

    edit = edit_heading(ctx, file, locator, operation)
    heading = get_heading(edit.lines, resolve_locator(ctx, edit.lines, locator), keywords)
    click.echo(f"Tags: {' '.join(heading.tags) or '(none)'}")


@cli.command()
@click.argument("file")
@click.argument("locator")
@click.option("--scheduled", "-s", help="SCHEDULED date (YYYY-MM-DD, today, +Nd, clear)")
@click.option("--deadline", "-d", help="DEADLINE date (YYYY-MM-DD, today, +Nd, clear)")
@click.option("--repeat", help="Repeater for the SCHEDULED date, e.g. +1w, .+2d, ++1m")
@click.option("--deadline-repeat", help="Repeater for the DEADLINE date")
@click.pass_context
def schedule(
    ctx: click.Context,
    file: str,
    locator: str,
    scheduled: Optional[str],
    deadline: Optional[str],
    repeat: Optional[str],
    deadline_repeat: Optional[str],
):
    """
    Set or clear SCHEDULED and DEADLINE dates.

    Examples:
        gtdorg schedule Inbox.org 12 --scheduled 2025-01-10
        gtdorg schedule Inbox.org 12 --scheduled today --repeat .+1w
        gtdorg schedule Inbox.org 12 --scheduled clear
    """
    if scheduled is None and deadline is None:
        raise click.UsageError("Give --scheduled and/or --deadline")

    repeaters = {}
    for name, token in (("scheduled_repeater", repeat), ("deadline_repeater", deadline_repeat)):
        if token is not None:
            repeaters[name] = parse_repeater(token)
            if repeaters[name] is None:
                raise click.BadParameter(f"Invalid repeater: {token}. Expected e.g. +1w, .+2d, ++1m")

    scheduled_value = parse_date_option(scheduled)
    deadline_value = parse_date_option(deadline)
    edit_heading(
        ctx,
        file,
        locator,
        lambda lines, n: set_planning(lines, n, scheduled_value, deadline_value, **repeaters),
    )
    click.echo("Planning updated")


@cli.command()
@click.argument("file")
@click.argument("locator")
@click.option("--on", "completed_on", help="Completion date (default: today)")
@click.pass_context
def done(ctx: click.Context, file: str, locator: str, completed_on: Optional[str]):
    """
    Complete a heading. Repeating tasks move to their next date instead.

    Examples:
        gtdorg done Inbox.org 12
        gtdorg done Routines.org 20250110093000-4f1c --on 2025-01-12
    """
    outline_config = get_config(ctx).outline
    when = parse_date_option(completed_on, allow_clear=False) or date.today()
    edit_heading(
        ctx,
        file,
        locator,
        lambda lines, n: complete(lines, n, when, outline_config.keywords, outline_config.default_done),
    )
    click.echo(f"Completed on {when.isoformat()}")


@cli.command(name="waiting")
@click.argument("file")
@click.argument("locator")
@click.option("--who", help="Person or party being waited on")
@click.option("--what", help="Expected deliverable")
@click.option("--requested", help="Date requested (default: today for a new record)")
@click.option("--follow-up", help="Follow-up date")
@click.option("--channel", help=f"How it was requested ({', '.join(waiting.CHANNELS)})")
@click.option("--priority", type=click.Choice(waiting.PRIORITIES), help="Priority level")
@click.option("--notes", help="Free-text notes")
@click.option("--clear", "clear_record", is_flag=True, help="Remove the WAITING metadata")
@click.pass_context
def waiting_cmd(
    ctx: click.Context,
    file: str,
    locator: str,
    who: Optional[str],
    what: Optional[str],
    requested: Optional[str],
    follow_up: Optional[str],
    channel: Optional[str],
    priority: Optional[str],
    notes: Optional[str],
    clear_record: bool,
):
    """
    Record who a task is waiting on and switch it to WAITING.

    Options that are not given keep their stored values.

    Examples:
        gtdorg waiting Inbox.org 12 --who Alice --what "Signed contract" --channel email
        gtdorg waiting Inbox.org 12 --follow-up +7d
        gtdorg waiting Inbox.org 12 --clear
    """
    keywords = get_config(ctx).outline.keywords
    requested_on = parse_date_option(requested, allow_clear=False)
    follow_up_on = parse_date_option(follow_up, allow_clear=False)

    def operation(lines: list[str], n: int) -> Edit:
        if clear_record:
            return waiting.clear(lines, n)

        current = waiting.decode(lines, n)
        record = waiting.WaitingRecord(
            who=who if who is not None else current.who,
            what=what if what is not None else current.what,
            requested_on=requested_on or current.requested_on or date.today(),
            follow_up_on=follow_up_on or current.follow_up_on,
            channel=channel if channel is not None else current.channel,
            priority=priority if priority is not None else current.priority,
            notes=notes if notes is not None else current.notes,
        )
        edit = waiting.encode(lines, n, record)
        if "WAITING" in keywords:
            edit = edit.then(set_state(edit.lines, n, "WAITING", keywords))
        return edit

    edit_heading(ctx, file, locator, operation)
    click.echo("WAITING metadata cleared" if clear_record else "WAITING metadata saved")


@cli.command()
@click.argument("file")
@click.argument("locator")
@click.option(
    "--frequency",
    "-f",
    type=click.Choice([f.value for f in recurring.Frequency]),
    default="weekly",
    show_default=True,
)
@click.option("--interval", "-i", type=click.IntRange(min=1), default=1, show_default=True)
@click.option(
    "--from",
    "anchor",
    type=click.Choice([a.value for a in recurring.RecurFrom]),
    default="scheduled",
    show_default=True,
    help="Date the next occurrence is computed from",
)
@click.option("--day", help="Preferred weekday (monday ... sunday)")
@click.pass_context
def recur(
    ctx: click.Context,
    file: str,
    locator: str,
    frequency: str,
    interval: int,
    anchor: str,
    day: Optional[str],
):
    """
    Make a heading a recurring task.

    Examples:
        gtdorg recur Routines.org 4 --frequency weekly --day monday
        gtdorg recur Routines.org 9 -f monthly --from completion
    """
    try:
        weekday = recurring.Weekday.parse(day) if day else None
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    record = recurring.RecurringRecord.create(
        frequency=recurring.Frequency(frequency),
        interval=interval,
        anchor=recurring.RecurFrom(anchor),
        preferred_weekday=weekday,
    )
    edit_heading(ctx, file, locator, lambda lines, n: recurring.schedule(lines, n, record))
    click.echo(f"Recurring {frequency} (repeater {recurring.repeater_for(record)})")


@cli.command()
@click.argument("source")
@click.argument("target")
@click.argument("identifier")
@click.option("--promote", is_flag=True, help="Make the refiled heading a top-level heading")
@click.pass_context
def refile(ctx: click.Context, source: str, target: str, identifier: str, promote: bool):
    """
    Move the subtree with IDENTIFIER from SOURCE to the end of TARGET.

    Examples:
        gtdorg refile Inbox.org Projects.org 20250110093000-4f1c
    """
    key = get_config(ctx).identity.property_key
    source_path = resolve_document(ctx, source)
    target_path = resolve_document(ctx, target)
    logger.info("refile_command_started", source=str(source_path), target=str(target_path), identifier=identifier)

    try:
        moved = refile_file(source_path, target_path, identifier, key, promote=promote)
    except MalformedStructure as e:
        fail(f"{source_path}: {e}", EXIT_MALFORMED)
    except (FileNotFoundError, FileModifiedError, OSError) as e:
        fail(str(e))

    if moved is None:
        fail(f"No heading with {key} {identifier} in {source_path}", EXIT_NOT_FOUND)
    elif moved == 0:
        click.echo("Source and target are the same document; nothing to do")
    else:
        click.echo(f"Refiled {moved} line(s) to {target_path}")


@cli.command()
@click.argument("files", nargs=-1)
@click.option("--errors-only", is_flag=True, help="Hide warnings")
@click.pass_context
def validate(ctx: click.Context, files: tuple[str, ...], errors_only: bool):
    """
    Check documents for structural problems.

    Checks every document under the GTD root when no FILES are given.
    Exits with status 2 when any error is found.

    Examples:
        gtdorg validate
        gtdorg validate Inbox.org Projects.org
    """
    keywords = get_config(ctx).outline.keywords
    paths = [resolve_document(ctx, f) for f in files] if files else get_paths(ctx).list_documents()

    error_count = 0
    for path in paths:
        try:
            lines = read_lines(path)
        except FileNotFoundError as e:
            fail(str(e))
        for issue in check(lines, keywords):
            if issue.severity == ERROR:
                error_count += 1
            elif errors_only:
                continue
            click.echo(f"{path}:{issue}")

    logger.info("validate_completed", documents=len(paths), errors=error_count)
    if error_count:
        fail(f"{error_count} error(s) found", EXIT_MALFORMED)
    click.echo(f"Checked {len(paths)} document(s)")


@cli.group()
def ids():
    """Generate and check heading identifiers."""


def _open_index(ctx: click.Context, use_cache: bool):
    config = get_config(ctx)
    paths = get_paths(ctx)
    key = config.identity.property_key
    index = build_index(
        paths,
        key,
        max_age=timedelta(seconds=config.identity.cache_max_age_seconds),
        keywords=config.outline.keywords,
    )
    cache = IdentityCache(config.identity.cache_path)
    if use_cache:
        try:
            cache.load_into(index, paths, key)
        except ValueError as e:
            logger.warning("identity_cache_unreadable", error=str(e))
    return paths, index, cache


@ids.command(name="new")
@click.argument("file", required=False)
@click.argument("locator", required=False)
@click.option("--no-cache", is_flag=True, help="Rescan the GTD tree instead of using the cache")
@click.pass_context
def ids_new(ctx: click.Context, file: Optional[str], locator: Optional[str], no_cache: bool):
    """
    Print a new identifier, or give the heading at FILE LOCATOR one.

    Examples:
        gtdorg ids new
        gtdorg ids new Inbox.org 12
    """
    if file is None:
        click.echo(generate())
        return
    if locator is None:
        raise click.UsageError("LOCATOR is required with FILE")

    config = get_config(ctx)
    paths, index, cache = _open_index(ctx, use_cache=not no_cache)
    path = resolve_document(ctx, file)
    try:
        heading_line = resolve_locator(ctx, read_lines(path), locator)
        identifier, written = assign(
            path,
            heading_line,
            index,
            config.identity.property_key,
            max_attempts=config.identity.max_attempts,
        )
    except MalformedStructure as e:
        fail(f"{path}: {e}", EXIT_MALFORMED)
    except IdentifierCollision as e:
        fail(str(e))
    except (FileNotFoundError, FileModifiedError, OSError) as e:
        fail(str(e))

    cache.save(index, paths, config.identity.property_key)
    click.echo(identifier)
    if ctx.obj.get("verbose"):
        click.echo("written" if written else "already present")


@ids.command(name="check")
@click.option("--no-cache", is_flag=True, help="Rescan the GTD tree instead of using the cache")
@click.pass_context
def ids_check(ctx: click.Context, no_cache: bool):
    """
    Report duplicate and invalid identifiers across the GTD tree.

    Exits with status 2 when any problem is found.
    """
    key = get_config(ctx).identity.property_key
    paths, index, cache = _open_index(ctx, use_cache=not no_cache)
    problems = find_problems(paths, index, key)
    cache.save(index, paths, key)

    for problem in problems:
        click.echo(
            f"{problem.location.path}:{problem.location.line}: {problem.reason} {key} {problem.identifier}"
        )
    if problems:
        fail(f"{len(problems)} identifier problem(s) found", EXIT_MALFORMED)
    click.echo(f"{len(index)} identifier(s), no problems")


@ids.command(name="fix")
@click.option("--dry-run", is_flag=True, help="Show what would change without writing")
@click.pass_context
def ids_fix(ctx: click.Context, dry_run: bool):
    """
    Replace duplicate and invalid identifiers with fresh ones.

    The first heading holding a duplicated identifier keeps it.
    """
    config = get_config(ctx)
    key = config.identity.property_key
    paths, index, cache = _open_index(ctx, use_cache=False)
    problems = find_problems(paths, index, key)

    try:
        changes = repair(
            problems,
            index,
            key,
            max_attempts=config.identity.max_attempts,
            dry_run=dry_run,
        )
    except MalformedStructure as e:
        fail(str(e), EXIT_MALFORMED)
    except (IdentifierCollision, FileModifiedError, OSError) as e:
        fail(str(e))

    for change in changes:
        click.echo(f"{change.location.path}:{change.location.line}: {change.old} -> {change.new}")
    if dry_run:
        click.echo(f"{len(changes)} identifier(s) would change")
    else:
        cache.clear()
        click.echo(f"{len(changes)} identifier(s) replaced")


def main():
    """Main entry point for setuptools console script."""
    cli()


if __name__ == "__main__":
    main()
