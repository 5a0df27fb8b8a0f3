"""In-memory mutations of a sidecar aggregate.

Every function mutates the passed-in SidecarFile and reports missing threads,
comments, or out-of-range indices through its return value (None or False)
instead of raising. Ids are only ever issued here; operations on ids that
this sidecar never issued fail without touching the data.
"""

from markdown_threads.models import (
    CommentAnchor,
    CommentEntry,
    CommentThread,
    SidecarFile,
    ThreadStatus,
    new_id,
    utc_now,
)


def create_empty_sidecar(doc_name: str) -> SidecarFile:
    """Create a sidecar with no threads for the given document name."""
    return SidecarFile(doc=doc_name, comments=[])


def find_thread(sidecar: SidecarFile, thread_id: str) -> CommentThread | None:
    """Return the thread with the given id, or None."""
    for thread in sidecar.comments:
        if thread.id == thread_id:
            return thread
    return None


def add_thread(
    sidecar: SidecarFile,
    anchor: CommentAnchor,
    entries: list[CommentEntry],
    status: ThreadStatus = ThreadStatus.OPEN,
    is_draft: bool = True,
) -> CommentThread:
    """Append a new thread and assign its id.

    Args:
        sidecar: Sidecar to add to
        anchor: Anchor of the new thread
        entries: Initial entries; the first author is the thread creator
        status: Initial status (default open)
        is_draft: Whether the thread starts unpublished (default True)

    Returns:
        The stored thread. Use its ``id`` for later operations.

    Raises:
        ValueError: If entries is empty
    """
    if not entries:
        raise ValueError("A thread needs at least one comment entry")

    thread = CommentThread(
        id=new_id(),
        anchor=anchor,
        status=status,
        is_draft=is_draft,
        thread=list(entries),
    )
    sidecar.comments.append(thread)
    return thread


def add_reply(
    sidecar: SidecarFile,
    thread_id: str,
    author: str,
    body: str,
    created: str | None = None,
    edited: str | None = None,
    reactions: list[str] | None = None,
) -> CommentEntry | None:
    """Append a reply to a thread and mark the thread as draft.

    Takes every entry field except the id, which is always issued here.
    ``created`` defaults to now.

    Returns:
        The new entry, or None if the thread does not exist
    """
    thread = find_thread(sidecar, thread_id)
    if thread is None:
        return None

    entry = CommentEntry(
        id=new_id(),
        author=author,
        body=body,
        created=created or utc_now(),
        edited=edited,
        reactions=list(reactions or []),
    )
    thread.thread.append(entry)
    thread.is_draft = True
    return entry


def delete_thread(sidecar: SidecarFile, thread_id: str) -> bool:
    """Remove a thread. Returns False if it does not exist."""
    for index, thread in enumerate(sidecar.comments):
        if thread.id == thread_id:
            del sidecar.comments[index]
            return True
    return False


def delete_comment(sidecar: SidecarFile, thread_id: str, index: int) -> bool:
    """Remove the entry at ``index`` from a thread.

    Removing the last entry removes the whole thread. Negative or
    out-of-range indices fail.
    """
    thread = find_thread(sidecar, thread_id)
    if thread is None or index < 0 or index >= len(thread.thread):
        return False

    del thread.thread[index]
    if not thread.thread:
        delete_thread(sidecar, thread_id)
    else:
        thread.is_draft = True
    return True


def delete_comment_by_id(sidecar: SidecarFile, thread_id: str, comment_id: str) -> bool:
    """Remove an entry by id; same semantics as delete_comment."""
    thread = find_thread(sidecar, thread_id)
    if thread is None:
        return False

    for index, entry in enumerate(thread.thread):
        if entry.id == comment_id:
            return delete_comment(sidecar, thread_id, index)
    return False


def edit_comment(
    sidecar: SidecarFile, thread_id: str, comment_id: str, new_body: str
) -> CommentEntry | None:
    """Replace an entry's body and stamp its ``edited`` time.

    Returns:
        The updated entry, or None if the thread or entry does not exist
    """
    thread = find_thread(sidecar, thread_id)
    if thread is None:
        return None

    entry = thread.find_entry(comment_id)
    if entry is None:
        return None

    entry.body = new_body
    entry.edited = utc_now()
    thread.is_draft = True
    return entry


def update_thread_status(sidecar: SidecarFile, thread_id: str, status: ThreadStatus) -> bool:
    """Set a thread's status and mark it as draft."""
    thread = find_thread(sidecar, thread_id)
    if thread is None:
        return False

    thread.status = status
    thread.is_draft = True
    return True


def toggle_reaction(
    sidecar: SidecarFile, thread_id: str, comment_id: str, author: str
) -> bool | None:
    """Add or remove ``author``'s reaction on an entry.

    Returns:
        True if the reaction was added, False if it was removed, None if the
        thread or entry does not exist
    """
    thread = find_thread(sidecar, thread_id)
    if thread is None:
        return None

    entry = thread.find_entry(comment_id)
    if entry is None:
        return None

    if author in entry.reactions:
        entry.reactions.remove(author)
        return False

    entry.reactions.append(author)
    return True


def get_draft_threads(sidecar: SidecarFile) -> list[CommentThread]:
    """Threads with unpublished changes."""
    return [thread for thread in sidecar.comments if thread.is_draft]


def mark_all_published(sidecar: SidecarFile) -> int:
    """Clear the draft flag on every thread.

    Returns:
        Number of threads that were drafts
    """
    published = 0
    for thread in sidecar.comments:
        if thread.is_draft:
            thread.is_draft = False
            published += 1
    return published


def reparent_thread(sidecar: SidecarFile, thread_id: str, new_anchor: CommentAnchor) -> bool:
    """Attach a thread to a different section.

    The anchor is replaced wholesale and the status resets to open, whether
    the thread was stale or resolved.
    """
    thread = find_thread(sidecar, thread_id)
    if thread is None:
        return False

    thread.anchor = new_anchor
    thread.status = ThreadStatus.OPEN
    thread.is_draft = True
    return True
