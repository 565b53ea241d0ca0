from __future__ import annotations

import re
from typing import Dict, Optional

import click
from flask import (
    Flask,
    current_app,
    g,
    jsonify,
    redirect,
    request,
    url_for,
)
from flask.cli import with_appcontext
from markdown import markdown
from slugify import slugify

import config
from auth import (
    SessionTokenCodec,
    admin_required,
    hash_password,
    login_required,
    verify_password,
)
from engagement import append_comment, delete_comment, toggle_like
from errors import BlogError, Conflict, NotFound, ValidationError
from store import JsonDocument, PostStore, StoreError, UserStore


def create_app(overrides: Optional[Dict] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config)
    if overrides:
        app.config.update(overrides)
    app.secret_key = app.config["SECRET_KEY"]
    app.logger.setLevel(app.config["LOG_LEVEL"])

    document = JsonDocument(app.config["DATA_PATH"])
    app.extensions["user_store"] = UserStore(document)
    app.extensions["post_store"] = PostStore(document)
    app.extensions["token_codec"] = SessionTokenCodec(app.config["SECRET_KEY"])

    ensure_admin(
        app.extensions["user_store"],
        app.config["ADMIN_USER"],
        app.config["ADMIN_PASSWORD"],
    )

    register_routes(app)
    register_error_handlers(app)
    app.cli.add_command(create_admin_command)
    return app


def ensure_admin(users: UserStore, username: str, password: str) -> None:
    """Register the admin account on first start."""
    if username and password and not users.exists_by_username(username):
        users.create(username, hash_password(password))


def users() -> UserStore:
    return current_app.extensions["user_store"]


def posts() -> PostStore:
    return current_app.extensions["post_store"]


def form_data() -> Dict:
    """Request body as a dict, whether it was sent as a form or as JSON."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()


def text_field(data: Dict, name: str, default: Optional[str] = "") -> Optional[str]:
    """A request field that must be a string when present."""
    value = data.get(name)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value


def to_public(user: Dict) -> Dict:
    return {k: v for k, v in user.items() if k != "password_hash"}


def render_markdown(md_text: str) -> str:
    return markdown(
        md_text or "",
        extensions=["fenced_code", "codehilite", "tables", "sane_lists"],
        output_format="html5",
    )


def build_excerpt(html: str, length: int = 220) -> str:
    text = re.sub(r"<[^>]+>", "", html or "").strip()
    if len(text) <= length:
        return text
    return f"{text[:length].rstrip()}…"


def post_summary(post: Dict) -> Dict:
    return {
        "id": post["id"],
        "slug": post["slug"],
        "title": post["title"],
        "excerpt": build_excerpt(post.get("body_html", "")),
        "created_at": post.get("created_at"),
        "updated_at": post.get("updated_at"),
        "likes": len(post.get("likes", [])),
        "comments": len(post.get("comments", [])),
    }


def post_fields(data: Dict, existing: Optional[Dict] = None) -> Dict:
    title = text_field(data, "title").strip()
    if not title:
        raise ValidationError("Title is required")

    slug_value = slugify(text_field(data, "slug").strip() or title)
    if not slug_value:
        raise ValidationError("Slug could not be generated")

    body = text_field(data, "body", default=None)
    if body is None:
        body = existing.get("body", "") if existing else ""
    return {
        "title": title,
        "slug": slug_value,
        "body": body,
        "body_html": render_markdown(body),
    }


def get_post_or_404(post_id: int) -> Dict:
    post = posts().find_by_id(post_id)
    if not post:
        raise NotFound("Post not found")
    return post


def register_routes(app: Flask) -> None:
    @app.route("/")
    def blog_index():
        return jsonify(
            {
                "site_title": current_app.config["SITE_TITLE"],
                "site_description": current_app.config["SITE_DESCRIPTION"],
                "posts": [post_summary(p) for p in posts().list_posts()],
            }
        )

    @app.route("/admin", methods=["POST"])
    def admin_login():
        data = form_data()
        username = data.get("username") or ""
        password = data.get("password") or ""
        if not isinstance(username, str) or not isinstance(password, str):
            user = None
        else:
            username = username.strip()
            user = users().find_by_username(username)
        if not verify_password(user, password):
            current_app.logger.warning("Failed login for %r", username)
            return jsonify({"message": "Invalid credentials"}), 401

        token = current_app.extensions["token_codec"].issue(user["id"])
        response = redirect(url_for("dashboard"))
        response.set_cookie(
            current_app.config["TOKEN_COOKIE_NAME"],
            token,
            httponly=True,
            secure=current_app.config["TOKEN_COOKIE_SECURE"],
            samesite="Lax",
        )
        current_app.logger.info("User %s logged in", user["id"])
        return response

    @app.route("/register", methods=["POST"])
    def register():
        data = form_data()
        username = text_field(data, "username").strip()
        password = text_field(data, "password")
        if not username or not password:
            raise ValidationError("Username and password are required")

        user = users().create(username, hash_password(password))
        if user is None:
            raise Conflict("Username already in use")
        current_app.logger.info("Registered user %s", user["id"])
        return jsonify({"message": "User Created", "user": to_public(user)}), 201

    @app.route("/logout")
    def admin_logout():
        response = redirect(url_for("blog_index"))
        response.delete_cookie(current_app.config["TOKEN_COOKIE_NAME"])
        current_app.logger.info("Logged out")
        return response

    @app.route("/dashboard")
    @login_required
    def dashboard():
        return jsonify({"user_id": g.user_id, "posts": posts().list_posts()})

    @app.route("/post/<int:post_id>")
    @login_required
    def post_detail(post_id: int):
        return jsonify({"user_id": g.user_id, "post": get_post_or_404(post_id)})

    @app.route("/add-post", methods=["POST"])
    @admin_required
    def add_post():
        post = posts().create(post_fields(form_data()))
        if post is None:
            raise Conflict("Slug already exists")
        current_app.logger.info("Created post %s", post["id"])
        return redirect(url_for("dashboard"))

    @app.route("/edit-post/<int:post_id>", methods=["GET"])
    @admin_required
    def edit_post(post_id: int):
        return jsonify({"post": get_post_or_404(post_id)})

    @app.route("/edit-post/<int:post_id>", methods=["PUT"])
    @admin_required
    def update_post(post_id: int):
        fields = post_fields(form_data(), existing=get_post_or_404(post_id))
        try:
            posts().update_fields(post_id, fields)
        except KeyError:
            raise NotFound("Post not found") from None
        except ValueError:
            raise Conflict("Slug already exists") from None
        current_app.logger.info("Updated post %s", post_id)
        return redirect(url_for("edit_post", post_id=post_id))

    @app.route("/delete-post/<int:post_id>", methods=["DELETE"])
    @admin_required
    def delete_post(post_id: int):
        if not posts().delete(post_id):
            raise NotFound("Post not found")
        current_app.logger.info("Deleted post %s", post_id)
        return redirect(url_for("dashboard"))

    @app.route("/post/<int:post_id>/like", methods=["POST"])
    @login_required
    def like_post(post_id: int):
        toggle_like(posts(), post_id, g.user_id)
        return redirect(url_for("blog_index"))

    @app.route("/post/<int:post_id>/comment", methods=["POST"])
    @login_required
    def add_comment(post_id: int):
        text = text_field(form_data(), "comment", default=None)
        append_comment(posts(), users(), post_id, g.user_id, text)
        return redirect(url_for("blog_index"))

    @app.route("/post/<int:post_id>/comment/<comment_id>/delete", methods=["POST"])
    @login_required
    def remove_comment(post_id: int, comment_id: str):
        username = text_field(form_data(), "username", default=None)
        delete_comment(posts(), post_id, comment_id, g.user_id, username)
        return redirect(url_for("blog_index"))

    @app.route("/posts/<slug>")
    @login_required
    def blog_post(slug: str):
        post = posts().find_by_slug(slug)
        if not post:
            raise NotFound("Post not found")
        return jsonify({"user_id": g.user_id, "post": post})


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(BlogError)
    def handle_blog_error(error: BlogError):
        return jsonify({"message": error.message}), error.status_code

    @app.errorhandler(StoreError)
    def handle_store_error(error: StoreError):
        current_app.logger.exception("Storage failure: %s", error)
        return jsonify({"message": "Internal server error"}), 500


@click.command("create-admin")
@click.argument("username")
@click.password_option()
@with_appcontext
def create_admin_command(username: str, password: str) -> None:
    """Create an account, or reset the password of an existing one."""
    store = current_app.extensions["user_store"]
    user = store.find_by_username(username)
    if user is None:
        user = store.create(username, hash_password(password))
        click.echo(f"Created user {user['id']} ({username})")
    else:
        store.set_password_hash(user["id"], hash_password(password))
        click.echo(f"Updated password for {username}")


if __name__ == "__main__":
    create_app().run(debug=True)
