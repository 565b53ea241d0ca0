"""JSON-file persistence for users and posts.

Everything lives in a single document::

    {"users": [...], "posts": [...]}

Collection mutations (likes, comments) are applied inside the store as one
locked load/mutate/write step, so concurrent requests never overwrite each
other's likes or comments with a stale copy of the post.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional


def now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def next_id(items: List[Dict]) -> int:
    ids = [item.get("id", 0) for item in items]
    return max(ids) + 1 if ids else 1


class StoreError(Exception):
    """The data file could not be read or written."""


class JsonDocument:
    """The data file plus the lock that serializes writes to it."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()

    def ensure(self) -> None:
        """Make sure the data file exists."""
        with self._lock:
            if not self.path.exists():
                self._write({"users": [], "posts": []})

    def load(self) -> Dict:
        with self._lock:
            self.ensure()
            try:
                with open(self.path, "r", encoding="utf-8") as fh:
                    raw = json.load(fh)
            except (OSError, ValueError) as exc:
                raise StoreError(f"Could not read {self.path}") from exc
        if not isinstance(raw, dict):
            raw = {"posts": raw}
        raw.setdefault("users", [])
        raw.setdefault("posts", [])
        return raw

    @contextmanager
    def transaction(self) -> Iterator[Dict]:
        """Yield the loaded document and write it back if the block changed it."""
        with self._lock:
            data = self.load()
            snapshot = copy.deepcopy(data)
            yield data
            if data != snapshot:
                self._write(data)

    def _write(self, data: Dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=self.path.name, suffix=".tmp"
            )
        except OSError as exc:
            raise StoreError(f"Could not write {self.path}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise StoreError(f"Could not write {self.path}") from exc


def _find(items: List[Dict], key: str, value) -> Optional[Dict]:
    for item in items:
        if item.get(key) == value:
            return item
    return None


class UserStore:
    def __init__(self, document: JsonDocument):
        self.document = document

    def find_by_username(self, username: str) -> Optional[Dict]:
        return _find(self.document.load()["users"], "username", username)

    def find_by_id(self, user_id: int) -> Optional[Dict]:
        return _find(self.document.load()["users"], "id", user_id)

    def exists_by_username(self, username: str) -> bool:
        return self.find_by_username(username) is not None

    def create(self, username: str, password_hash: str) -> Optional[Dict]:
        """Insert a user; returns ``None`` when the username is taken."""
        with self.document.transaction() as data:
            users = data["users"]
            if _find(users, "username", username):
                return None
            user = {
                "id": next_id(users),
                "username": username,
                "password_hash": password_hash,
                "created_at": now_iso(),
            }
            users.append(user)
        return user

    def set_password_hash(self, user_id: int, password_hash: str) -> bool:
        with self.document.transaction() as data:
            user = _find(data["users"], "id", user_id)
            if user is None:
                return False
            user["password_hash"] = password_hash
        return True


class PostStore:
    def __init__(self, document: JsonDocument):
        self.document = document

    def list_posts(self) -> List[Dict]:
        posts = self.document.load()["posts"]
        return sorted(posts, key=lambda p: p.get("created_at", ""), reverse=True)

    def find_by_id(self, post_id: int) -> Optional[Dict]:
        return _find(self.document.load()["posts"], "id", post_id)

    def find_by_slug(self, slug: str) -> Optional[Dict]:
        return _find(self.document.load()["posts"], "slug", slug)

    def create(self, fields: Dict) -> Optional[Dict]:
        """Insert a post; returns ``None`` when the slug is taken."""
        with self.document.transaction() as data:
            posts = data["posts"]
            if _find(posts, "slug", fields["slug"]):
                return None
            stamp = now_iso()
            post = {
                "id": next_id(posts),
                **fields,
                "created_at": stamp,
                "updated_at": stamp,
                "comments": [],
                "likes": [],
            }
            posts.append(post)
        return post

    def update_fields(self, post_id: int, fields: Dict) -> Dict:
        """Replace title/body fields of a post.

        Returns the updated post, or raises ``KeyError`` for a missing post and
        ``ValueError`` when the new slug belongs to another post.
        """
        with self.document.transaction() as data:
            posts = data["posts"]
            post = _find(posts, "id", post_id)
            if post is None:
                raise KeyError(post_id)
            owner = _find(posts, "slug", fields.get("slug", post["slug"]))
            if owner is not None and owner["id"] != post_id:
                raise ValueError(fields["slug"])
            post.update(fields)
            # ISO strings in one format compare chronologically.
            post["updated_at"] = max(post.get("updated_at", ""), now_iso())
        return post

    def delete(self, post_id: int) -> bool:
        with self.document.transaction() as data:
            posts = data["posts"]
            post = _find(posts, "id", post_id)
            if post is None:
                return False
            posts.remove(post)
        return True

    def toggle_like(self, post_id: int, user_id: int) -> Optional[bool]:
        """Flip ``user_id``'s membership in the like-set.

        Returns the new membership, or ``None`` if the post does not exist.
        """
        with self.document.transaction() as data:
            post = _find(data["posts"], "id", post_id)
            if post is None:
                return None
            likes = post.setdefault("likes", [])
            if user_id in likes:
                post["likes"] = [uid for uid in likes if uid != user_id]
                return False
            likes.append(user_id)
            return True

    def push_comment(self, post_id: int, comment: Dict) -> Optional[Dict]:
        """Append ``comment`` with a fresh id; ``None`` if the post is gone."""
        with self.document.transaction() as data:
            post = _find(data["posts"], "id", post_id)
            if post is None:
                return None
            comments = post.setdefault("comments", [])
            taken = {c.get("id") for c in comments}
            comment_id = uuid.uuid4().hex
            while comment_id in taken:
                comment_id = uuid.uuid4().hex
            stored = {"id": comment_id, **comment}
            comments.append(stored)
        return stored

    def pull_comment(self, post_id: int, comment_id: str) -> bool:
        """Remove one comment by id, keeping the order of the others."""
        with self.document.transaction() as data:
            post = _find(data["posts"], "id", post_id)
            if post is None:
                return False
            comments = post.get("comments", [])
            remaining = [c for c in comments if c.get("id") != comment_id]
            if len(remaining) == len(comments):
                return False
            post["comments"] = remaining
        return True
