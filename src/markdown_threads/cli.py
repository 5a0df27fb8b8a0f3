"""CLI entry point for markdown-threads."""

import sys
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn, TypeVar

import click

from markdown_threads.anchors import (
    create_anchor,
    find_anchored_section,
    find_reparent_candidate,
    find_section_containing_line,
    reconcile_sidecar,
)
from markdown_threads.cache import FileDocumentSource, SectionCache
from markdown_threads.events import WriteOrigin
from markdown_threads.locking import LockTimeout
from markdown_threads.logging import get_logger, init_logger
from markdown_threads.models import (
    CommentEntry,
    CommentThread,
    ReconciliationReport,
    Section,
    SidecarFile,
    ThreadStatus,
)
from markdown_threads.mutations import (
    add_reply,
    add_thread,
    delete_comment_by_id,
    delete_thread,
    edit_comment,
    find_thread,
    get_draft_threads,
    mark_all_published,
    reparent_thread,
    toggle_reaction,
    update_thread_status,
)
from markdown_threads.policy import (
    check_delete_comment,
    check_delete_thread,
    check_edit_comment,
    check_reply,
)
from markdown_threads.sections import find_section_by_slug
from markdown_threads.storage import ConcurrencyConflict, SidecarStore

R = TypeVar("R")

AUTHOR_ENVVAR = "MD_THREADS_AUTHOR"


class CommandRefused(Exception):  # noqa: N818
    """Raised inside a sidecar update to abort it with a user-facing message."""

    pass


class AppContext:
    """Collaborators shared by all commands of one invocation."""

    def __init__(self) -> None:
        self.store = SidecarStore()
        self.source = FileDocumentSource()
        self.cache = SectionCache()

    def sections(self, doc_path: Path) -> list[Section]:
        # Always re-parse: the document may have changed since the last call
        self.cache.invalidate(doc_path)
        sections = self.cache.load(self.source, doc_path)
        if sections is None:
            _fail(f"Document not found: {doc_path}")
        return sections


def _fail(message: str, code: int = 1) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def _update(
    app: AppContext,
    doc_path: Path,
    mutate: Callable[[SidecarFile], R],
    write_if: Callable[[R], bool] | None = None,
) -> R | None:
    """Run a sidecar update, mapping refusals and storage failures to exit codes."""
    try:
        return app.store.update(doc_path, mutate, origin=WriteOrigin.CLI, write_if=write_if)
    except CommandRefused as e:
        _fail(str(e))
    except (ConcurrencyConflict, LockTimeout) as e:
        _fail(str(e), code=2)
    except OSError as e:
        get_logger().exception("Failed to write sidecar", e)
        sys.exit(2)


def _require_thread(sidecar: SidecarFile, thread_id: str) -> CommentThread:
    thread = find_thread(sidecar, thread_id)
    if thread is None:
        raise CommandRefused(f"Thread not found: {thread_id}")
    return thread


def _require_body(body: str) -> str:
    body = body.strip()
    if not body:
        _fail("Comment body must not be empty")
    return body


def _anchor_state(sections: list[Section], thread: CommentThread) -> str:
    match = find_anchored_section(sections, thread.anchor)
    if match is None:
        return "orphaned"
    return "drifted" if match.is_stale else "anchored"


doc_argument = click.argument(
    "doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
author_option = click.option(
    "-a",
    "--author",
    envvar=AUTHOR_ENVVAR,
    default="unknown",
    show_default=True,
    help=f"Acting author (or set {AUTHOR_ENVVAR})",
)


@click.group()
@click.version_option(version="0.1.0", prog_name="md-threads")
@click.option("-v", "--verbose", is_flag=True, help="Print debug output to stderr")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in log output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, no_color: bool):
    """Threaded review comments anchored to markdown sections."""
    init_logger(verbose=verbose, use_colors=not no_color)
    ctx.obj = AppContext()


@cli.command()
@doc_argument
@click.pass_obj
def sections(app: AppContext, doc_path: Path):
    """List the sections of a markdown document."""
    parsed = app.sections(doc_path)
    if not parsed:
        click.echo("No sections found")
        return

    for section in parsed:
        click.echo(
            f"{section.start_line + 1:>5}-{section.end_line:<5} "
            f"{'#' * section.level} {section.heading}  [{section.slug}] {section.content_hash}"
        )


@cli.command()
@doc_argument
@click.option("-s", "--section", "slug", metavar="SLUG", help="Slug of the section to comment on")
@click.option(
    "-l", "--line", type=int, metavar="N", help="Comment on the section containing line N (1-indexed)"
)
@author_option
@click.argument("body")
@click.pass_obj
def add(app: AppContext, doc_path: Path, slug: str | None, line: int | None, author: str, body: str):
    """
    Start a new thread on a section.

    Examples:

        md-threads add README.md --section installation "Mention Python 3.12"

        md-threads add README.md -l 42 --author=alice "Unclear"
    """
    if (slug is None) == (line is None):
        _fail("Specify exactly one of --section or --line")

    body = _require_body(body)
    parsed = app.sections(doc_path)

    if slug is not None:
        section = find_section_by_slug(parsed, slug)
        if section is None:
            _fail(f'Section "{slug}" not found')
    else:
        section = find_section_containing_line(parsed, line - 1)
        if section is None:
            _fail(f"Line {line} is not inside any section")

    anchor = create_anchor(section)
    thread = _update(
        app,
        doc_path,
        lambda sidecar: add_thread(sidecar, anchor, [CommentEntry(author=author, body=body)]),
    )

    click.echo(f"Created thread {thread.id}")
    click.echo(f"  Section: {section.heading} [{section.slug}]")
    click.echo(f"  Sidecar: {app.store.path_for(doc_path)}")


@cli.command()
@doc_argument
@click.argument("thread_id")
@author_option
@click.argument("body")
@click.pass_obj
def reply(app: AppContext, doc_path: Path, thread_id: str, author: str, body: str):
    """Reply to a thread."""
    body = _require_body(body)

    def mutate(sidecar: SidecarFile) -> CommentEntry | None:
        refusal = check_reply(_require_thread(sidecar, thread_id))
        if refusal:
            raise CommandRefused(refusal)
        return add_reply(sidecar, thread_id, author, body)

    entry = _update(app, doc_path, mutate)
    click.echo(f"Added comment {entry.id} to thread {thread_id}")


@cli.command(name="list")
@doc_argument
@click.option(
    "--status",
    type=click.Choice([s.value for s in ThreadStatus]),
    help="Only show threads with this status",
)
@click.pass_obj
def list_threads(app: AppContext, doc_path: Path, status: str | None):
    """List threads with their anchor state."""
    sidecar = app.store.read(doc_path)
    if sidecar is None or not sidecar.comments:
        click.echo("No comments")
        return

    parsed = app.sections(doc_path)
    shown = 0
    for thread in sidecar.comments:
        if status is not None and thread.status.value != status:
            continue
        shown += 1
        draft = ", draft" if thread.is_draft else ""
        click.echo(
            f"{thread.id} [{thread.status.value}{draft}] "
            f"#{thread.anchor.section_slug} ({_anchor_state(parsed, thread)})"
        )
        for entry in thread.thread:
            edited = " (edited)" if entry.edited else ""
            reactions = f" +{len(entry.reactions)}" if entry.reactions else ""
            click.echo(f"  {entry.id} {entry.author}: {entry.body}{edited}{reactions}")

    if shown == 0:
        click.echo(f"No {status} threads")


def _set_status(app: AppContext, doc_path: Path, thread_id: str, status: ThreadStatus) -> None:
    def mutate(sidecar: SidecarFile) -> bool:
        _require_thread(sidecar, thread_id)
        return update_thread_status(sidecar, thread_id, status)

    _update(app, doc_path, mutate, write_if=bool)


@cli.command()
@doc_argument
@click.argument("thread_id")
@click.pass_obj
def resolve(app: AppContext, doc_path: Path, thread_id: str):
    """Mark a thread as resolved."""
    _set_status(app, doc_path, thread_id, ThreadStatus.RESOLVED)
    click.echo(f"Resolved thread {thread_id}")


@cli.command()
@doc_argument
@click.argument("thread_id")
@click.pass_obj
def reopen(app: AppContext, doc_path: Path, thread_id: str):
    """Reopen a resolved or stale thread."""
    _set_status(app, doc_path, thread_id, ThreadStatus.OPEN)
    click.echo(f"Reopened thread {thread_id}")


@cli.command()
@doc_argument
@click.argument("thread_id")
@click.option("-c", "--comment", "comment_id", help="Delete only this comment")
@author_option
@click.pass_obj
def delete(app: AppContext, doc_path: Path, thread_id: str, comment_id: str | None, author: str):
    """Delete a thread, or a single comment with --comment."""

    def mutate(sidecar: SidecarFile) -> bool:
        thread = _require_thread(sidecar, thread_id)
        if comment_id is None:
            refusal = check_delete_thread(thread, author)
        else:
            entry = thread.find_entry(comment_id)
            if entry is None:
                raise CommandRefused(f"Comment not found: {comment_id}")
            refusal = check_delete_comment(thread, entry, author)
        if refusal:
            raise CommandRefused(refusal)

        if comment_id is None:
            return delete_thread(sidecar, thread_id)
        return delete_comment_by_id(sidecar, thread_id, comment_id)

    _update(app, doc_path, mutate, write_if=bool)
    if comment_id is None:
        click.echo(f"Deleted thread {thread_id}")
    else:
        click.echo(f"Deleted comment {comment_id}")


@cli.command()
@doc_argument
@click.argument("thread_id")
@click.argument("comment_id")
@author_option
@click.argument("body")
@click.pass_obj
def edit(app: AppContext, doc_path: Path, thread_id: str, comment_id: str, author: str, body: str):
    """Replace the body of one of your comments."""
    body = _require_body(body)

    def mutate(sidecar: SidecarFile) -> CommentEntry | None:
        thread = _require_thread(sidecar, thread_id)
        entry = thread.find_entry(comment_id)
        if entry is None:
            raise CommandRefused(f"Comment not found: {comment_id}")
        refusal = check_edit_comment(thread, entry, author)
        if refusal:
            raise CommandRefused(refusal)
        return edit_comment(sidecar, thread_id, comment_id, body)

    _update(app, doc_path, mutate)
    click.echo(f"Edited comment {comment_id}")


@cli.command()
@doc_argument
@click.argument("thread_id")
@click.argument("comment_id")
@author_option
@click.pass_obj
def react(app: AppContext, doc_path: Path, thread_id: str, comment_id: str, author: str):
    """Toggle your thumbs-up reaction on a comment."""

    def mutate(sidecar: SidecarFile) -> bool:
        added = toggle_reaction(sidecar, thread_id, comment_id, author)
        if added is None:
            raise CommandRefused(f"Comment not found: {thread_id}/{comment_id}")
        return added

    added = _update(app, doc_path, mutate)
    click.echo(f"Reaction {'added' if added else 'removed'}")


@cli.command()
@doc_argument
@click.pass_obj
def reconcile(app: AppContext, doc_path: Path):
    """Mark drifted or orphaned threads stale and reopen recovered ones."""
    if app.store.read(doc_path) is None:
        click.echo("No comments")
        return

    parsed = app.sections(doc_path)
    report: ReconciliationReport | None = None

    def mutate(sidecar: SidecarFile) -> ReconciliationReport | None:
        nonlocal report
        report = reconcile_sidecar(sidecar, parsed)
        # Nothing to write unless a status changed
        if report.marked_stale or report.reopened:
            return report
        return None

    _update(app, doc_path, mutate)
    assert report is not None  # Type narrowing

    click.echo(
        f"Reconciled {report.total_threads} thread(s): "
        f"{report.open_count} open, {report.stale_count} stale, "
        f"{report.resolved_count} resolved"
    )
    if report.orphaned_count or report.drifted_count:
        click.echo(f"  Orphaned: {report.orphaned_count}  Drifted: {report.drifted_count}")
    for thread_id in report.marked_stale:
        click.echo(f"  Marked stale: {thread_id}")
    for thread_id in report.reopened:
        click.echo(f"  Reopened: {thread_id}")
    for thread_id, slug in report.reparent_suggestions.items():
        click.echo(f"  Suggest: md-threads reparent {doc_path} {thread_id} --section {slug}")


@cli.command()
@doc_argument
@click.argument("thread_id")
@click.option("-s", "--section", "slug", metavar="SLUG", help="Attach to this section")
@click.option("--dry-run", is_flag=True, help="Only show the proposed section")
@click.pass_obj
def reparent(app: AppContext, doc_path: Path, thread_id: str, slug: str | None, dry_run: bool):
    """Attach a thread to a different section.

    Without --section, the section at the thread's old heading line is used,
    then one whose body matches the thread's anchor.
    """
    parsed = app.sections(doc_path)
    sidecar = app.store.read(doc_path)
    thread = find_thread(sidecar, thread_id) if sidecar is not None else None
    if thread is None:
        _fail(f"Thread not found: {thread_id}")

    if slug is not None:
        target = find_section_by_slug(parsed, slug)
        if target is None:
            _fail(f'Section "{slug}" not found')
    else:
        target = find_reparent_candidate(parsed, thread.anchor)
        if target is None:
            _fail("No candidate section found; pick one with --section")

    if dry_run:
        click.echo(f"Candidate: {target.heading} [{target.slug}]")
        return

    anchor = create_anchor(target)
    if not _update(app, doc_path, lambda s: reparent_thread(s, thread_id, anchor), write_if=bool):
        # Deleted by another writer since it was read
        _fail(f"Thread not found: {thread_id}")
    click.echo(f"Reparented thread {thread_id} to [{target.slug}]")


@cli.command()
@doc_argument
@click.pass_obj
def drafts(app: AppContext, doc_path: Path):
    """List threads with unpublished changes."""
    sidecar = app.store.read(doc_path)
    pending = get_draft_threads(sidecar) if sidecar is not None else []
    if not pending:
        click.echo("No draft comments")
        return

    click.echo(f"{len(pending)} draft thread(s):")
    for thread in pending:
        click.echo(f"  {thread.id} #{thread.anchor.section_slug} ({len(thread.thread)} comment(s))")


@cli.command()
@doc_argument
@click.pass_obj
def publish(app: AppContext, doc_path: Path):
    """Mark every draft thread as published."""
    published = _update(app, doc_path, mark_all_published, write_if=bool)
    if not published:
        click.echo("No draft comments to publish")
        return
    click.echo(f"Published {published} thread(s)")


if __name__ == "__main__":
    cli()
