#!/usr/bin/env python3
"""
A small multi-user blog.

Visitors read published posts; signed-in users write, edit and delete
their own posts and categories.
"""

import secrets
from collections import defaultdict, deque
from datetime import datetime
from functools import wraps
from importlib.metadata import PackageNotFoundError, version
from time import time
from typing import DefaultDict

import click
import markdown
import nh3
from flask import (
    Flask,
    Response,
    abort,
    flash,
    redirect,
    render_template_string,
    request,
    session,
    url_for,
)
from markupsafe import Markup
from werkzeug.middleware.proxy_fix import ProxyFix

from penboard import accounts, content, uploads
from penboard.errors import (
    DuplicateUserError,
    InvalidCredentialsError,
    NotFoundError,
    PersistenceError,
    UploadError,
    ValidationError,
)
from penboard.settings import (
    BLOG_PAGE_SIZE,
    DB_FILE,
    SESSION_LIFETIME,
    SITE_NAME,
    UPLOAD_MAX_BYTES,
    USER_DB_FILE,
    load_secret_key,
)
from penboard.storage import close_db, get_db, get_user_db, init_db

try:
    __version__ = version("penboard")
except PackageNotFoundError:
    __version__ = "0.1.0-dev"

################################################################################
# App + template filters
################################################################################
app = Flask(__name__)
app.url_map.strict_slashes = False
app.config.update(
    SECRET_KEY=load_secret_key(),
    DATABASE=str(DB_FILE),
    USER_DATABASE=str(USER_DB_FILE),
    BLOG_PAGE_SIZE=BLOG_PAGE_SIZE,
    MAX_CONTENT_LENGTH=UPLOAD_MAX_BYTES,
    PERMANENT_SESSION_LIFETIME=SESSION_LIFETIME,
    SESSION_COOKIE_SAMESITE="Lax",
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SECURE=True,
)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)
app.teardown_appcontext(close_db)

MD_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]

# Allow-list for rendered post bodies; everything else is stripped
SAFE_TAGS = {
    "a", "abbr", "b", "blockquote", "br", "code", "del", "em", "h1", "h2",
    "h3", "h4", "h5", "h6", "hr", "i", "img", "li", "ol", "p", "pre", "span",
    "strong", "sub", "sup", "table", "tbody", "td", "th", "thead", "tr", "ul",
}
SAFE_ATTRS = {
    "a": {"href", "title"},
    "abbr": {"title"},
    "code": {"class"},
    "img": {"src", "alt", "title"},
}
SAFE_URL_SCHEMES = {"http", "https", "mailto"}
# dropped together with their content, not just unwrapped
DROP_WITH_CONTENT = {"script", "style", "iframe", "object", "embed", "noscript"}


def sanitize_html(html: str | None) -> str:
    """Parse *html* and keep only allow-listed tags, attributes and URL schemes."""
    if not html:
        return ""
    return nh3.clean(
        html,
        tags=SAFE_TAGS,
        attributes=SAFE_ATTRS,
        url_schemes=SAFE_URL_SCHEMES,
        clean_content_tags=DROP_WITH_CONTENT,
    )


@app.template_filter("md")
def md_filter(text: str | None) -> Markup:
    return Markup(sanitize_html(markdown.markdown(text or "", extensions=MD_EXTENSIONS)))


@app.template_filter("ts")
def ts_filter(iso: str | None) -> str:
    """ISO timestamp → YYYY-MM-DD."""
    if not iso:
        return ""
    try:
        return datetime.fromisoformat(iso).strftime("%Y-%m-%d")
    except ValueError:
        return iso[:10]


###############################################################################
# CLI
###############################################################################
@app.cli.command("init")
def cli_init():
    """Create the content and user databases."""
    init_db()
    click.secho("\n✅  Databases ready.", fg="green")
    click.echo(f"  content: {app.config['DATABASE']}")
    click.echo(f"  users:   {app.config['USER_DATABASE']}\n")


@app.cli.command("create-user")
@click.option("--user-name", prompt=True, help="Login name (case-sensitive)")
@click.option("--email", prompt=True, default="", help="Contact address")
@click.password_option()
def cli_create_user(user_name: str, email: str, password: str):
    """Register an account without going through the web form."""
    try:
        msg = accounts.register(
            {
                "user_name": user_name,
                "email": email,
                "password": password,
                "password2": password,
            },
            db=get_user_db(),
        )
    except (ValidationError, DuplicateUserError) as exc:
        raise click.ClickException(str(exc))
    click.secho(f"\n👤  {msg}: {user_name}\n", fg="green")


###############################################################################
# Authentication
###############################################################################
def current_user() -> dict | None:
    return session.get("user")


def login_required() -> dict:
    """Return the session user or bounce the request to the login form."""
    user = current_user()
    if not user:
        abort(redirect(url_for("login")))
    return user


def rate_limit(max_requests: int, window: int = 60):
    hits: DefaultDict[str, deque] = defaultdict(deque)

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            now = time()
            # left-most entry after ProxyFix = real client
            ip = (
                request.access_route[0] if request.access_route else request.remote_addr
            ) or "unknown"

            dq = hits[ip]
            while dq and now - dq[0] > window:
                dq.popleft()

            if len(dq) >= max_requests:
                retry_after = int(window - (now - dq[0]))
                return Response(
                    "Too many requests – try again later.",
                    status=429,
                    headers={"Retry-After": str(retry_after)},
                )

            dq.append(now)
            return view(*args, **kwargs)

        return wrapped

    return decorator


def _csrf_token() -> str:
    """One token per session (rotates on login)."""
    return session.get("csrf", "")


def nav_items() -> list[tuple[str, str]]:
    items = [("home", "Home"), ("blog", "Blog")]
    if current_user():
        items += [("posts", "Posts"), ("categories", "Categories"), ("history", "History")]
    return items


app.jinja_env.globals.update(
    csrf_token=_csrf_token,
    current_user=current_user,
    nav_items=nav_items,
    site_name=SITE_NAME,
    version=__version__,
)

SAFE_METHODS = {"GET", "HEAD", "OPTIONS", "TRACE"}


@app.before_request
def csrf_protect():
    # anonymous forms (login, register) carry no token
    if request.method in SAFE_METHODS or not current_user():
        return

    token = session.get("csrf", "")
    sent = request.form.get("csrf") or request.headers.get("X-CSRFToken", "")
    if not token or not secrets.compare_digest(token, sent):
        abort(403)


@app.after_request
def sec_headers(resp):
    resp.headers.update(
        {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }
    )
    return resp


###############################################################################
# Templates
###############################################################################
def wrap(body: str) -> str:
    """Glue prolog + page-specific body + epilog."""
    return TEMPL_PROLOG + body + TEMPL_EPILOG


TEMPL_PROLOG = """
<!doctype html>
<html lang="en">
<title>{{ title or site_name }}</title>
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta charset="utf-8">
<style>
html{font-family:-apple-system,BlinkMacSystemFont,"Segoe UI",Roboto,"Helvetica Neue",Arial,sans-serif}
body{max-width:44em;margin:auto;padding:13px;line-height:1.6;color:#c9c9c9;background:#222}
a{color:#fff}a:hover{color:#c9c9c9}
nav a{margin-right:.8em;text-decoration:none}nav a[aria-current=page]{border-bottom:2px solid #fff}
input,textarea,select{color:#c9c9c9;background:#4a4a4a;border:1px solid #4a4a4a;border-radius:4px;padding:6px 10px;margin-bottom:10px;box-sizing:border-box}
textarea{width:100%}label{display:block;font-weight:600}
button{padding:5px 10px;background:#fff;color:#222;border:1px solid #fff;cursor:pointer}
table{width:100%;border-collapse:collapse}td,th{padding:.4em;border-bottom:1px solid #4a4a4a;text-align:left}
.flash{background:#4a4a4a;padding:.5em 1em;border-left:4px solid #c93}
.pill{display:inline-block;padding:.05em .6em;border-radius:1em;background:#444;font-size:.75em}
form.inline{display:inline}
img.feature{max-width:100%;height:auto}
</style>
<body>
<header style="display:flex;justify-content:space-between;align-items:baseline;">
    <h1 style="margin:.2em 0;"><a href="{{ url_for('home') }}" style="text-decoration:none;">{{ site_name }}</a></h1>
    <small>
    {% if current_user() %}
        {{ current_user()['user_name'] }} · <a href="{{ url_for('logout') }}">Log out</a>
    {% else %}
        <a href="{{ url_for('login') }}">Log in</a> · <a href="{{ url_for('register') }}">Register</a>
    {% endif %}
    </small>
</header>
<nav aria-label="Main">
    {% for ep, label in nav_items() %}
        <a href="{{ url_for(ep) }}"
        {% if request.endpoint == ep %}aria-current="page"{% endif %}>{{ label }}</a>
    {% endfor %}
</nav>
<main>
{% with msgs = get_flashed_messages() %}
  {% for m in msgs %}<p class="flash">{{ m }}</p>{% endfor %}
{% endwith %}
"""

TEMPL_EPILOG = """
</main>
<footer style="margin-top:2em;padding-top:1em;font-size:.8em;color:#888;border-top:1px solid #444;">
    {{ site_name }} <span>v{{ version }}</span>
</footer>
</body>
</html>
"""

TEMPL_HOME = wrap("""
<hr>
<h2>Welcome</h2>
<ul>
  <li>Users:
    {% if errors.users %}<em>unavailable</em>{% else %}{{ counts.users }}{% endif %}</li>
  <li>Categories:
    {% if errors.categories %}<em>unavailable</em>{% else %}{{ counts.categories }}{% endif %}</li>
  <li>Published posts:
    {% if errors.posts %}<em>unavailable</em>{% else %}{{ counts.posts }}{% endif %}</li>
</ul>
""")

TEMPL_BLOG = wrap("""
<hr>
<div style="display:flex;gap:2em;">
<section style="flex:3;">
  {% if errors.posts %}<p>{{ errors.posts }}</p>{% endif %}
  {% for p in posts %}
    <article>
      <h2><a href="{{ url_for('blog_post', post_id=p['id']) }}">{{ p['title'] or 'Untitled' }}</a></h2>
      <small>{{ p['post_date']|ts }}
        {% if p['category_name'] %}· <span class="pill">{{ p['category_name'] }}</span>{% endif %}
      </small>
      {% if p['feature_image'] %}<img class="feature" src="{{ p['feature_image'] }}" alt="">{% endif %}
    </article>
  {% else %}
    {% if not errors.posts %}<p>No results.</p>{% endif %}
  {% endfor %}
  {% if errors.pages %}<p><small>{{ errors.pages }}</small></p>{% endif %}

  {% if pages|length > 1 %}
  <nav style="margin-top:2em;font-size:.85em;">
    {% for n in pages %}
      {% if n == page %}
        <span style="border-bottom:2px solid #aaa;">{{ n }}</span>
      {% else %}
        <a href="{{ url_for('blog', page=n, category=category) }}">{{ n }}</a>
      {% endif %}
    {% endfor %}
  </nav>
  {% endif %}
</section>
<aside style="flex:1;">
  <h3>Categories</h3>
  {% if errors.categories %}<p>{{ errors.categories }}</p>{% endif %}
  <ul>
    <li><a href="{{ url_for('blog') }}">All</a></li>
    {% for c in categories %}
      <li><a href="{{ url_for('blog', category=c['id']) }}"
          {% if category == c['id'] %}aria-current="page"{% endif %}>{{ c['category'] }}</a></li>
    {% endfor %}
  </ul>
</aside>
</div>
""")

TEMPL_BLOG_POST = wrap("""
<hr>
<article>
  <h2>{{ p['title'] or 'Untitled' }}</h2>
  <small>{{ p['post_date']|ts }}
    {% if p['is_updated'] %}· edited {{ p['last_update']|ts }}{% endif %}
    {% if p['category_name'] %}· <span class="pill">{{ p['category_name'] }}</span>{% endif %}
    {% if not p['published'] %}· <span class="pill">draft</span>{% endif %}
  </small>
  {% if p['feature_image'] %}<p><img class="feature" src="{{ p['feature_image'] }}" alt=""></p>{% endif %}
  <div class="e-content">{{ p['body']|md }}</div>
</article>
""")

TEMPL_POSTS = wrap("""
<hr>
<p><a href="{{ url_for('add_post') }}">+ Add post</a></p>
<form method="get" style="display:flex;gap:.6em;">
  <select name="category">
    <option value="">All categories</option>
    {% for c in categories %}
      <option value="{{ c['id'] }}" {% if request.args.get('category') == c['id']|string %}selected{% endif %}>{{ c['category'] }}</option>
    {% endfor %}
  </select>
  <input type="date" name="minDate" value="{{ request.args.get('minDate', '') }}">
  <button>Filter</button>
</form>
{% if message %}
  <p>{{ message }}</p>
{% else %}
<table>
  <tr><th>Title</th><th>Category</th><th>Date</th><th>Published</th><th></th></tr>
  {% for p in posts %}
  <tr>
    <td><a href="{{ url_for('blog_post', post_id=p['id']) }}">{{ p['title'] or 'Untitled' }}</a></td>
    <td>{{ p['category_name'] or '' }}</td>
    <td>{{ p['post_date']|ts }}</td>
    <td>{{ 'yes' if p['published'] else 'no' }}</td>
    <td>
      {% if p['is_owned_by_viewer'] %}
        <a href="{{ url_for('edit_post', post_id=p['id']) }}">edit</a>
        <form class="inline" method="post" action="{{ url_for('delete_post', post_id=p['id']) }}">
          <input type="hidden" name="csrf" value="{{ csrf_token() }}">
          <button>delete</button>
        </form>
      {% endif %}
    </td>
  </tr>
  {% endfor %}
</table>
{% endif %}
""")

TEMPL_POST_FORM = wrap("""
<hr>
<h2>{{ 'Edit post' if post else 'Add post' }}</h2>
<form method="post" enctype="multipart/form-data">
  <input type="hidden" name="csrf" value="{{ csrf_token() }}">
  <label for="title">Title</label>
  <input id="title" name="title" value="{{ post['title'] if post and post['title'] else '' }}" style="width:100%;">
  <label for="body">Body</label>
  <textarea id="body" name="body" rows="12">{{ post['body'] if post and post['body'] else '' }}</textarea>
  <label for="category">Category</label>
  <select id="category" name="category">
    <option value="">(none)</option>
    {% for c in categories %}
      <option value="{{ c['id'] }}" {% if post and post['category'] == c['id'] %}selected{% endif %}>{{ c['category'] }}</option>
    {% endfor %}
  </select>
  <label for="featureImage">Feature image</label>
  {% if post and post['feature_image'] %}<p><img class="feature" src="{{ post['feature_image'] }}" alt="" style="max-height:8em;"></p>{% endif %}
  <input id="featureImage" name="featureImage" type="file" accept="image/*">
  <label><input type="checkbox" name="published" {% if post and post['published'] %}checked{% endif %}> Published</label>
  <button>Save</button>
</form>
""")

TEMPL_CATEGORIES = wrap("""
<hr>
<p><a href="{{ url_for('add_category') }}">+ Add category</a></p>
{% if message %}
  <p>{{ message }}</p>
{% else %}
<table>
  {% for c in categories %}
  <tr>
    <td><a href="{{ url_for('posts', category=c['id']) }}">{{ c['category'] }}</a></td>
    <td>
      {% if c['is_owned_by_viewer'] %}
      <form class="inline" method="post" action="{{ url_for('delete_category', category_id=c['id']) }}">
        <input type="hidden" name="csrf" value="{{ csrf_token() }}">
        <button>delete</button>
      </form>
      {% endif %}
    </td>
  </tr>
  {% endfor %}
</table>
{% endif %}
""")

TEMPL_CATEGORY_FORM = wrap("""
<hr>
<h2>Add category</h2>
<form method="post">
  <input type="hidden" name="csrf" value="{{ csrf_token() }}">
  <label for="category">Name</label>
  <input id="category" name="category" style="width:100%;">
  <button>Save</button>
</form>
""")

TEMPL_HISTORY = wrap("""
<hr>
<h2>Login history for {{ user['user_name'] }}</h2>
<p>{{ user['email'] or '' }}</p>
<table>
  <tr><th>When</th><th>Client</th></tr>
  {% for h in user['login_history'] %}
    <tr><td>{{ h['date_time'] }}</td><td>{{ h['user_agent'] }}</td></tr>
  {% endfor %}
</table>
""")

TEMPL_LOGIN = wrap("""
<hr>
<h2>Log in</h2>
<form method="post">
  <label for="user_name">User name</label>
  <input id="user_name" name="user_name" value="{{ user_name or '' }}" autocomplete="username">
  <label for="password">Password</label>
  <input id="password" name="password" type="password" autocomplete="current-password">
  <button>Log in</button>
</form>
""")

TEMPL_REGISTER = wrap("""
<hr>
<h2>Register</h2>
{% if success %}
  <p>{{ success }} – <a href="{{ url_for('login') }}">log in</a>.</p>
{% else %}
<form method="post">
  <label for="user_name">User name</label>
  <input id="user_name" name="user_name" value="{{ user_name or '' }}" autocomplete="username">
  <label for="email">Email</label>
  <input id="email" name="email" type="email">
  <label for="password">Password</label>
  <input id="password" name="password" type="password" autocomplete="new-password">
  <label for="password2">Confirm password</label>
  <input id="password2" name="password2" type="password" autocomplete="new-password">
  <button>Register</button>
</form>
{% endif %}
""")


###############################################################################
# Auth views
###############################################################################
@app.route("/login", methods=["GET", "POST"])
@rate_limit(max_requests=5, window=60)
def login():
    user_name = request.form.get("user_name", "").strip()

    if request.method == "POST":
        try:
            user = accounts.authenticate(
                {
                    "user_name": user_name,
                    "password": request.form.get("password", ""),
                    "user_agent": request.headers.get("User-Agent", ""),
                },
                db=get_user_db(),
            )
        except (NotFoundError, InvalidCredentialsError) as exc:
            app.logger.warning("Failed login for %r: %s", user_name, exc)
            flash(str(exc))
        else:
            session.clear()
            session.permanent = True
            session["user"] = accounts.session_user(user)
            session["csrf"] = secrets.token_hex(16)
            app.logger.info("User %s logged in", user_name)
            return redirect(url_for("posts"))

    return render_template_string(TEMPL_LOGIN, title="Log in", user_name=user_name)


@app.route("/logout")
def logout():
    user = current_user()
    session.clear()
    if user:
        app.logger.info("User %s logged out", user["user_name"])
    return redirect(url_for("home"))


@app.route("/register", methods=["GET", "POST"])
def register():
    user_name = request.form.get("user_name", "").strip()
    success = None

    if request.method == "POST":
        try:
            success = accounts.register(request.form.to_dict(), db=get_user_db())
        except (ValidationError, DuplicateUserError) as exc:
            flash(str(exc))
        else:
            app.logger.info("Registered user %s", user_name)

    return render_template_string(
        TEMPL_REGISTER, title="Register", user_name=user_name, success=success
    )


@app.route("/history")
def history():
    user = login_required()
    try:
        record = accounts.get_user(user["id"], db=get_user_db())
    except NotFoundError:
        # account is gone; the session is stale
        session.clear()
        return redirect(url_for("login"))
    return render_template_string(TEMPL_HISTORY, title="Login history", user=record)


###############################################################################
# Public views
###############################################################################
@app.route("/")
def index():
    return redirect(url_for("home"))


@app.route("/home")
def home():
    counts, errors = {}, {}
    for key, count, conn in (
        ("users", accounts.get_user_count, get_user_db),
        ("categories", content.get_category_count, get_db),
        ("posts", content.get_post_count, get_db),
    ):
        try:
            counts[key] = count(db=conn())
        except PersistenceError as exc:
            app.logger.exception("Counting %s failed", key)
            errors[key] = str(exc)

    return render_template_string(TEMPL_HOME, counts=counts, errors=errors)


@app.route("/blog")
def blog():
    page = max(request.args.get("page", 1, type=int), 1)
    category = request.args.get("category", type=int)
    per_page = app.config["BLOG_PAGE_SIZE"]
    db = get_db()

    # each piece degrades to a message on its own
    view = {"pages": [], "posts": [], "categories": []}
    errors = {}
    for key, load, fallback in (
        ("pages", lambda: content.get_pagination_page_count(per_page, category, db=db),
         "Unable to determine needed pages"),
        ("posts", lambda: content.get_paginated_posts(per_page, page, category, db=db),
         "No results"),
        ("categories", lambda: content.list_categories(db=db), "No Categories"),
    ):
        try:
            view[key] = load()
        except PersistenceError:
            app.logger.exception("Loading blog %s failed", key)
            errors[key] = fallback

    return render_template_string(
        TEMPL_BLOG,
        title="Blog",
        page=page,
        category=category,
        errors=errors,
        **view,
    )


@app.route("/blog/<int:post_id>")
def blog_post(post_id):
    try:
        post = content.get_post_by_id(post_id, db=get_db())
    except NotFoundError:
        abort(404)

    user = current_user()
    if not post["published"] and not (user and user["id"] == post["owner"]):
        abort(404)
    return render_template_string(TEMPL_BLOG_POST, title=post["title"], p=post)


###############################################################################
# Posts (owner views)
###############################################################################
def _post_form() -> dict:
    """Editable post fields from the submitted form; never owner/image."""
    return {
        k: v
        for k, v in request.form.items()
        if k in content.POST_FIELDS and k != "feature_image"
    }


def _upload_feature_image() -> str | None:
    f = request.files.get("featureImage")
    if not f or not f.filename:
        return None
    return uploads.upload_image(f.stream, filename=f.filename, mimetype=f.mimetype)["url"]


@app.route("/posts")
def posts():
    user = login_required()
    db = get_db()
    category = request.args.get("category", "").strip()
    min_date = request.args.get("minDate", "").strip()

    try:
        if category:
            rows = content.list_posts_by_category(category, user["id"], db=db)
        elif min_date:
            rows = content.list_posts_by_min_date(min_date, user["id"], db=db)
        else:
            rows = content.list_all_posts(user["id"], db=db)
    except ValidationError as exc:
        flash(str(exc))
        rows = []

    return render_template_string(
        TEMPL_POSTS,
        title="Posts",
        posts=rows,
        message=None if rows else "no results",
        categories=content.list_categories(user["id"], db=db),
    )


@app.route("/post/<int:post_id>")
def post_json(post_id):
    login_required()
    try:
        return content.get_post_by_id(post_id, db=get_db())
    except NotFoundError as exc:
        return {"message": str(exc)}, 404


@app.route("/posts/add", methods=["GET", "POST"])
def add_post():
    user = login_required()
    db = get_db()

    if request.method == "POST":
        data = _post_form()
        try:
            data["feature_image"] = _upload_feature_image()
            post = content.create_post(data, user["id"], db=db)
        except UploadError as exc:
            app.logger.exception("Feature image upload failed")
            return {"error": str(exc)}, 502
        except ValidationError as exc:
            flash(str(exc))
        else:
            app.logger.info("User %s created post %s", user["user_name"], post["id"])
            return redirect(url_for("posts"))

    return render_template_string(
        TEMPL_POST_FORM,
        title="Add post",
        post=None,
        categories=content.list_categories(user["id"], db=db),
    )


@app.route("/posts/edit/<int:post_id>", methods=["GET", "POST"])
def edit_post(post_id):
    user = login_required()
    db = get_db()

    origin = content.get_post_origin(post_id, db=db)
    if origin is None:
        abort(404)
    if origin != user["id"]:
        app.logger.warning(
            "User %s tried to edit post %s owned by %s", user["id"], post_id, origin
        )
        abort(403)

    if request.method == "POST":
        data = _post_form()
        try:
            image = _upload_feature_image()
            if image:
                data["feature_image"] = image
            content.update_post(post_id, data, user["id"], db=db)
        except UploadError as exc:
            app.logger.exception("Feature image upload failed")
            return {"error": str(exc)}, 502
        except ValidationError as exc:
            flash(str(exc))
        except NotFoundError:
            # removed or re-owned between the check and the update
            abort(404)
        else:
            return redirect(url_for("posts"))

    return render_template_string(
        TEMPL_POST_FORM,
        title="Edit post",
        post=content.get_post_by_id(post_id, db=db),
        categories=content.list_categories(user["id"], db=db),
    )


@app.route("/posts/delete/<int:post_id>", methods=["POST"])
def delete_post(post_id):
    user = login_required()
    content.delete_post_by_id(post_id, user["id"], db=get_db())
    return redirect(url_for("posts"))


###############################################################################
# Categories
###############################################################################
@app.route("/categories")
def categories():
    user = login_required()
    rows = content.list_categories(user["id"], db=get_db())
    return render_template_string(
        TEMPL_CATEGORIES,
        title="Categories",
        categories=rows,
        message=None if rows else "no results",
    )


@app.route("/categories/add", methods=["GET", "POST"])
def add_category():
    user = login_required()

    if request.method == "POST":
        try:
            content.add_category(request.form.to_dict(), user["id"], db=get_db())
        except ValidationError as exc:
            flash(str(exc))
        else:
            return redirect(url_for("categories"))

    return render_template_string(TEMPL_CATEGORY_FORM, title="Add category")


@app.route("/categories/delete/<int:category_id>", methods=["POST"])
def delete_category(category_id):
    user = login_required()
    content.delete_category_by_id(category_id, user["id"], db=get_db())
    return redirect(url_for("categories"))


###############################################################################
# Error pages
###############################################################################
@app.errorhandler(404)
@app.errorhandler(NotFoundError)
def not_found(exc):
    """Site-wide “Not Found” page."""
    return render_template_string(TEMPL_404, title="Not found"), 404


@app.errorhandler(PersistenceError)
def storage_error(exc):
    app.logger.exception("Storage failure: %s", exc)
    return render_template_string(TEMPL_500, title="Error"), 500


@app.errorhandler(500)
def internal_error(exc):
    """
    Generic 500 page for production.
    In debug mode Flask bypasses this handler and shows the traceback.
    """
    return render_template_string(TEMPL_500, title="Error"), 500


TEMPL_404 = wrap("""
<hr>
<h2 style="margin-top:0">Page not found</h2>
<p>The URL you asked for doesn’t exist.
   <a href="{{ url_for('home') }}">Back to the front page</a>.</p>
""")

TEMPL_500 = wrap("""
<hr>
<h2 style="margin-top:0">Internal Server Error</h2>
<p>Our fault, not yours. Please try again in a minute.</p>
""")


###############################################################################
# main
###############################################################################
if __name__ == "__main__":
    app.run(debug=True)
