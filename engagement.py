"""Likes and comments on a single post.

The stores apply each collection change atomically; the functions here only
validate input and decide who may do what.
"""

from __future__ import annotations

from typing import Dict, Optional

from errors import Forbidden, NotFound, ValidationError
from store import PostStore, UserStore, now_iso


def toggle_like(posts: PostStore, post_id: int, user_id: int) -> bool:
    """Like the post if ``user_id`` has not liked it yet, otherwise unlike it.

    Returns whether the user likes the post afterwards.
    """
    liked = posts.toggle_like(post_id, user_id)
    if liked is None:
        raise NotFound("Post not found")
    return liked


def append_comment(
    posts: PostStore, users: UserStore, post_id: int, user_id: int, text: Optional[str]
) -> Dict:
    text = text.strip() if isinstance(text, str) else ""
    if not text:
        raise ValidationError("Comment text is required")

    user = users.find_by_id(user_id)
    if user is None:
        raise NotFound("User not found")

    # The username is copied, not referenced: renames don't rewrite history.
    comment = posts.push_comment(
        post_id,
        {
            "user": user_id,
            "username": user["username"],
            "text": text,
            "created_at": now_iso(),
        },
    )
    if comment is None:
        raise NotFound("Post not found")
    return comment


def find_comment(post: Dict, comment_id: str) -> Optional[Dict]:
    for comment in post.get("comments", []):
        if comment.get("id") == comment_id:
            return comment
    return None


def delete_comment(
    posts: PostStore,
    post_id: int,
    comment_id: str,
    requester_id: int,
    username: Optional[str] = None,
) -> None:
    """Delete a comment on behalf of its author.

    A supplied ``username`` must match the comment's username, and the
    requester must own the comment in every case.
    """
    post = posts.find_by_id(post_id)
    if post is None:
        raise NotFound("Post not found")

    comment = find_comment(post, comment_id)
    if comment is None:
        raise NotFound("Comment not found")

    if username and comment.get("username") != username:
        raise Forbidden("You are not authorized to delete this comment")
    if comment.get("user") != requester_id:
        raise Forbidden("You are not authorized to delete this comment")

    if not posts.pull_comment(post_id, comment_id):
        raise NotFound("Comment not found")
