"""
Posts and categories.

Every row carries an ``owner`` tag (the creator's user id as a string).
Reads add a per-viewer ``is_owned_by_viewer`` flag; writes that need
ownership put the owner into the same WHERE clause as the id.
"""

from datetime import date, datetime, time, timezone

from penboard import storage
from penboard.errors import NotFoundError, ValidationError

POST_FIELDS = ("title", "body", "feature_image", "published", "category")

POST_SQL = """
    SELECT p.*, c.category AS category_name
      FROM post p
      LEFT JOIN category c ON c.id = p.category
"""


# -------------------------------------------------------------------------
# Row helpers
# -------------------------------------------------------------------------
def _post_dict(row, viewer_id: str | None = None) -> dict:
    post = dict(row)
    post["published"] = bool(post["published"])
    post["is_updated"] = bool(post["is_updated"])
    post["is_owned_by_viewer"] = viewer_id is not None and post["owner"] == viewer_id
    return post


def _category_dict(row, viewer_id: str | None = None) -> dict:
    cat = dict(row)
    cat["is_owned_by_viewer"] = viewer_id is not None and cat["owner"] == viewer_id
    return cat


def _normalize(post_data: dict) -> dict:
    """Known columns only; "" → None; published → bool; category → int."""
    clean = {}
    for key in POST_FIELDS:
        if key not in post_data:
            continue
        val = post_data[key]
        clean[key] = None if val == "" else val

    clean["published"] = bool(clean.get("published"))

    if clean.get("category") is not None:
        try:
            clean["category"] = int(clean["category"])
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid category: {clean['category']!r}")
    return clean


def _parse_min_date(min_date) -> str:
    if isinstance(min_date, datetime):
        dt = min_date
    elif isinstance(min_date, date):
        dt = datetime.combine(min_date, time.min)
    else:
        try:
            dt = datetime.fromisoformat(str(min_date).strip())
        except ValueError:
            raise ValidationError(f"Invalid date: {min_date!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


# -------------------------------------------------------------------------
# Queries
# -------------------------------------------------------------------------
def list_all_posts(viewer_id: str | None, *, db) -> list[dict]:
    with storage.store_errors("no results returned"):
        rows = db.execute(f"{POST_SQL} ORDER BY p.post_date DESC, p.id DESC").fetchall()
    return [_post_dict(r, viewer_id) for r in rows]


def list_posts_by_category(category, viewer_id: str | None, *, db) -> list[dict]:
    with storage.store_errors("no results returned"):
        rows = db.execute(
            f"{POST_SQL} WHERE p.category = ? ORDER BY p.post_date DESC, p.id DESC",
            (category,),
        ).fetchall()
    return [_post_dict(r, viewer_id) for r in rows]


def list_posts_by_min_date(min_date, viewer_id: str | None, *, db) -> list[dict]:
    since = _parse_min_date(min_date)
    with storage.store_errors("no results returned"):
        rows = db.execute(
            f"{POST_SQL} WHERE p.post_date >= ? ORDER BY p.post_date DESC, p.id DESC",
            (since,),
        ).fetchall()
    return [_post_dict(r, viewer_id) for r in rows]


def list_categories(viewer_id: str | None = None, *, db) -> list[dict]:
    with storage.store_errors("no results returned"):
        rows = db.execute(
            "SELECT * FROM category ORDER BY category COLLATE NOCASE, id"
        ).fetchall()
    return [_category_dict(r, viewer_id) for r in rows]


def get_post_by_id(post_id, *, db) -> dict:
    with storage.store_errors("no results returned"):
        row = db.execute(f"{POST_SQL} WHERE p.id = ?", (post_id,)).fetchone()
    if row is None:
        raise NotFoundError(f"Post {post_id} not found")
    return _post_dict(row)


def get_post_origin(post_id, *, db) -> str | None:
    with storage.store_errors("unable to read post"):
        row = db.execute("SELECT owner FROM post WHERE id = ?", (post_id,)).fetchone()
    return row["owner"] if row else None


# -------------------------------------------------------------------------
# Writes
# -------------------------------------------------------------------------
def create_post(post_data: dict, owner_id: str, *, db) -> dict:
    """
    Insert a post owned by *owner_id*.

    Client-supplied ``owner``/``post_date`` keys are ignored.
    """
    data = _normalize(post_data)
    now = storage.now_iso()
    with storage.store_errors("unable to create post"):
        cur = db.execute(
            """INSERT INTO post (title, body, feature_image, published, category,
                                 owner, post_date, last_update, is_updated)
                    VALUES (?,?,?,?,?,?,?,?,0)""",
            (
                data.get("title"),
                data.get("body"),
                data.get("feature_image"),
                int(data["published"]),
                data.get("category"),
                owner_id,
                now,
                now,
            ),
        )
        db.commit()
    return get_post_by_id(cur.lastrowid, db=db)


def update_post(post_id, post_data: dict, owner_id: str | None = None, *, db) -> dict:
    """
    Apply an edit and flag the post as updated.

    Only the columns present in *post_data* change, except ``published``
    which is always written (an unchecked box means unpublished). With
    *owner_id* the row must also belong to that owner.
    """
    data = _normalize(post_data)
    data["published"] = int(data["published"])
    sets = [f"{col}=?" for col in data]
    params = list(data.values())
    sets += ["is_updated=1", "last_update=?"]
    params.append(storage.now_iso())

    where = "id=?"
    params.append(post_id)
    if owner_id is not None:
        where += " AND owner=?"
        params.append(owner_id)

    with storage.store_errors("unable to update post"):
        cur = db.execute(f"UPDATE post SET {', '.join(sets)} WHERE {where}", params)
        db.commit()
    if cur.rowcount == 0:
        raise NotFoundError(f"Post {post_id} not found")
    return get_post_by_id(post_id, db=db)


def delete_post_by_id(post_id, owner_id: str, *, db) -> None:
    """Remove the post if *owner_id* owns it; otherwise do nothing."""
    with storage.store_errors("Unable to Remove Post"):
        db.execute("DELETE FROM post WHERE id=? AND owner=?", (post_id, owner_id))
        db.commit()


def add_category(category_data: dict, owner_id: str, *, db) -> dict:
    label = (category_data.get("category") or "").strip()
    if not label:
        raise ValidationError("Category name is required")
    with storage.store_errors("unable to create category"):
        cur = db.execute(
            "INSERT INTO category (category, owner, created_at) VALUES (?,?,?)",
            (label, owner_id, storage.now_iso()),
        )
        db.commit()
        row = db.execute(
            "SELECT * FROM category WHERE id=?", (cur.lastrowid,)
        ).fetchone()
    return _category_dict(row, owner_id)


def delete_category_by_id(category_id, owner_id: str, *, db) -> None:
    """Same contract as delete_post_by_id; posts keep the stale id."""
    with storage.store_errors("Unable to Remove Category"):
        db.execute(
            "DELETE FROM category WHERE id=? AND owner=?", (category_id, owner_id)
        )
        db.commit()


# -------------------------------------------------------------------------
# Pagination + counts
# -------------------------------------------------------------------------
def get_pagination_page_count(page_size: int, category=None, *, db) -> list[int]:
    """Page numbers ``[1 … ceil(total / page_size)]``; ``[]`` when empty."""
    if page_size <= 0:
        raise ValidationError("page size must be positive")
    with storage.store_errors("Error on calculating pagination page count"):
        if category:
            total = db.execute(
                "SELECT COUNT(*) FROM post WHERE category = ?", (category,)
            ).fetchone()[0]
        else:
            total = db.execute("SELECT COUNT(*) FROM post").fetchone()[0]
    pages = (total + page_size - 1) // page_size
    return list(range(1, pages + 1))


def get_paginated_posts(page_size: int, page_number: int, category=None, *, db) -> list[dict]:
    """One page of published posts, most recently updated first."""
    if page_size <= 0:
        raise ValidationError("page size must be positive")
    if page_number < 1:
        return []

    sql = f"{POST_SQL} WHERE p.published = 1"
    params: tuple = ()
    if category:
        sql += " AND p.category = ?"
        params = (category,)
    sql += " ORDER BY p.last_update DESC, p.id DESC LIMIT ? OFFSET ?"

    with storage.store_errors("Error fetching paginated posts"):
        rows = db.execute(
            sql, params + (page_size, (page_number - 1) * page_size)
        ).fetchall()
    return [_post_dict(r) for r in rows]


def get_post_count(*, db) -> int:
    with storage.store_errors("Error fetching number of posts"):
        return db.execute("SELECT COUNT(*) FROM post WHERE published = 1").fetchone()[0]


def get_category_count(*, db) -> int:
    with storage.store_errors("Error fetching number of categories"):
        return db.execute("SELECT COUNT(*) FROM category").fetchone()[0]
