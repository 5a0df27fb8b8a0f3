"""Author-gated rules applied before user-initiated mutations.

Each check returns a human-readable refusal, or None when the action is
allowed. The mutators in ``markdown_threads.mutations`` do not enforce these.
"""

from markdown_threads.models import CommentEntry, CommentThread, ThreadStatus


def check_reply(thread: CommentThread) -> str | None:
    """Replies are refused on resolved threads."""
    if thread.status == ThreadStatus.RESOLVED:
        return "Cannot reply to a resolved thread. Reopen it first."
    return None


def check_delete_thread(thread: CommentThread, actor: str) -> str | None:
    """Only the thread creator may delete an unresolved thread."""
    if thread.status == ThreadStatus.RESOLVED:
        return "Cannot delete a resolved thread. Reopen it first."
    if thread.creator != actor:
        return "You can only delete threads you created."
    return None


def check_delete_comment(thread: CommentThread, entry: CommentEntry, actor: str) -> str | None:
    """Only the entry's author may delete it, and not in a resolved thread."""
    if thread.status == ThreadStatus.RESOLVED:
        return "Cannot delete a comment in a resolved thread. Reopen it first."
    if entry.author != actor:
        return "You can only delete your own comments."
    return None


def check_edit_comment(thread: CommentThread, entry: CommentEntry, actor: str) -> str | None:
    """Only the entry's author may edit it, and not in a resolved thread."""
    if thread.status == ThreadStatus.RESOLVED:
        return "Cannot edit a comment in a resolved thread. Reopen it first."
    if entry.author != actor:
        return "You can only edit your own comments."
    return None
