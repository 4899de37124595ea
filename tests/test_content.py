"""
tests/test_content.py
"""
from __future__ import annotations

import math

import pytest

from penboard import content
from penboard.errors import NotFoundError, ValidationError

ALICE = "1"
BOB = "2"


# ───────────────────────── helpers ────────────────────────────────────
def _post(db, owner=ALICE, **fields) -> dict:
    data = {"title": "T", "body": "B", **fields}
    return content.create_post(data, owner, db=db)


def _category(db, label="News", owner=ALICE) -> dict:
    return content.add_category({"category": label}, owner, db=db)


# ───────────────────────── ownership annotation ───────────────────────
def test_list_all_posts_annotates_per_viewer(db):
    mine = _post(db, ALICE)
    theirs = _post(db, BOB)

    as_alice = {p["id"]: p["is_owned_by_viewer"] for p in content.list_all_posts(ALICE, db=db)}
    as_bob = {p["id"]: p["is_owned_by_viewer"] for p in content.list_all_posts(BOB, db=db)}

    assert as_alice == {mine["id"]: True, theirs["id"]: False}
    assert as_bob == {mine["id"]: False, theirs["id"]: True}


def test_anonymous_viewer_owns_nothing(db):
    _post(db, ALICE)
    assert not any(p["is_owned_by_viewer"] for p in content.list_all_posts(None, db=db))


def test_list_posts_by_category(db):
    news = _category(db, "News")
    misc = _category(db, "Misc")
    a = _post(db, ALICE, category=str(news["id"]))
    _post(db, BOB, category=str(misc["id"]))

    rows = content.list_posts_by_category(news["id"], BOB, db=db)
    assert [p["id"] for p in rows] == [a["id"]]
    assert rows[0]["is_owned_by_viewer"] is False
    assert rows[0]["category_name"] == "News"

    # query-string form of the id works too
    assert len(content.list_posts_by_category(str(news["id"]), BOB, db=db)) == 1


def test_list_posts_by_min_date(db):
    _post(db, title="old")
    middle = _post(db, title="middle")
    _post(db, title="new")

    rows = content.list_posts_by_min_date(middle["post_date"], ALICE, db=db)
    assert {p["title"] for p in rows} == {"middle", "new"}
    assert all(p["is_owned_by_viewer"] for p in rows)


def test_list_posts_by_min_date_accepts_plain_date(db):
    _post(db)
    assert len(content.list_posts_by_min_date("2000-01-01", ALICE, db=db)) == 1
    assert content.list_posts_by_min_date("2200-01-01", ALICE, db=db) == []


def test_list_posts_by_min_date_rejects_garbage(db):
    with pytest.raises(ValidationError):
        content.list_posts_by_min_date("yesterday-ish", ALICE, db=db)


def test_list_categories_sorted_and_annotated(db):
    _category(db, "zeta", ALICE)
    _category(db, "Alpha", BOB)
    cats = content.list_categories(ALICE, db=db)
    assert [c["category"] for c in cats] == ["Alpha", "zeta"]
    assert [c["is_owned_by_viewer"] for c in cats] == [False, True]


# ───────────────────────── create / read ──────────────────────────────
def test_create_post_published_defaults_false(db):
    post = _post(db)
    assert post["published"] is False


def test_create_post_checkbox_on_means_published(db):
    post = _post(db, published="on")
    assert post["published"] is True


def test_create_post_blank_fields_become_none(db):
    post = _post(db, title="", feature_image="", category="")
    assert post["title"] is None
    assert post["feature_image"] is None
    assert post["category"] is None


def test_create_post_ignores_client_owner_and_dates(db):
    post = content.create_post(
        {"title": "x", "owner": BOB, "post_date": "1999-01-01", "is_updated": 1},
        ALICE,
        db=db,
    )
    assert post["owner"] == ALICE
    assert post["post_date"] != "1999-01-01"
    assert post["is_updated"] is False
    assert post["last_update"] == post["post_date"]


def test_create_post_bad_category(db):
    with pytest.raises(ValidationError):
        _post(db, category="not-a-number")


def test_get_post_by_id_missing(db):
    with pytest.raises(NotFoundError):
        content.get_post_by_id(999, db=db)


def test_get_post_by_id_ignores_owner_and_published(db):
    draft = _post(db, BOB)
    assert content.get_post_by_id(draft["id"], db=db)["title"] == "T"


def test_get_post_origin(db):
    post = _post(db, BOB)
    assert content.get_post_origin(post["id"], db=db) == BOB
    assert content.get_post_origin(12345, db=db) is None


# ───────────────────────── update ─────────────────────────────────────
def test_update_post_flags_and_refreshes_timestamp(db):
    post = _post(db, published="on")
    updated = content.update_post(post["id"], {"title": "New"}, db=db)

    assert updated["title"] == "New"
    assert updated["body"] == "B"                # untouched column
    assert updated["is_updated"] is True
    assert updated["last_update"] > post["last_update"]
    assert updated["post_date"] == post["post_date"]
    assert updated["published"] is False         # unchecked box → unpublished


def test_update_post_can_publish(db):
    post = _post(db)
    assert content.update_post(post["id"], {"published": "on"}, db=db)["published"] is True


def test_update_post_never_changes_owner(db):
    post = _post(db, ALICE)
    content.update_post(post["id"], {"owner": BOB, "title": "x"}, db=db)
    assert content.get_post_origin(post["id"], db=db) == ALICE


def test_update_post_with_wrong_owner_is_rejected(db):
    post = _post(db, ALICE, title="keep")
    with pytest.raises(NotFoundError):
        content.update_post(post["id"], {"title": "hijack"}, BOB, db=db)
    unchanged = content.get_post_by_id(post["id"], db=db)
    assert unchanged["title"] == "keep"
    assert unchanged["is_updated"] is False


def test_update_missing_post(db):
    with pytest.raises(NotFoundError):
        content.update_post(404, {"title": "x"}, db=db)


# ───────────────────────── delete ─────────────────────────────────────
def test_delete_post_by_non_owner_is_noop(db):
    post = _post(db, ALICE)
    content.delete_post_by_id(post["id"], BOB, db=db)        # no exception
    assert content.get_post_by_id(post["id"], db=db)["id"] == post["id"]


def test_delete_post_by_owner(db):
    post = _post(db, ALICE)
    content.delete_post_by_id(post["id"], ALICE, db=db)
    with pytest.raises(NotFoundError):
        content.get_post_by_id(post["id"], db=db)


def test_delete_missing_post_is_noop(db):
    content.delete_post_by_id(9999, ALICE, db=db)


def test_delete_category_keeps_posts(db):
    cat = _category(db, "Gone", ALICE)
    post = _post(db, ALICE, category=cat["id"])

    content.delete_category_by_id(cat["id"], BOB, db=db)     # not Bob's
    assert content.get_category_count(db=db) == 1

    content.delete_category_by_id(cat["id"], ALICE, db=db)
    assert content.get_category_count(db=db) == 0
    survivor = content.get_post_by_id(post["id"], db=db)
    assert survivor["category"] == cat["id"]                 # dangling id
    assert survivor["category_name"] is None


def test_add_category_requires_label(db):
    with pytest.raises(ValidationError):
        content.add_category({"category": "  "}, ALICE, db=db)


def test_add_category_stamps_owner(db):
    cat = content.add_category({"category": "Tech", "owner": BOB}, ALICE, db=db)
    assert cat["owner"] == ALICE


# ───────────────────────── pagination ─────────────────────────────────
@pytest.mark.parametrize("total,size", [(0, 3), (1, 3), (3, 3), (4, 3), (7, 2), (5, 10)])
def test_pagination_page_count(db, total, size):
    for _ in range(total):
        _post(db, published="on")
    pages = content.get_pagination_page_count(size, db=db)
    assert pages == list(range(1, math.ceil(total / size) + 1))


def test_pagination_page_count_by_category(db):
    cat = _category(db)
    for _ in range(3):
        _post(db, category=cat["id"])
    _post(db)
    assert content.get_pagination_page_count(2, cat["id"], db=db) == [1, 2]
    assert content.get_pagination_page_count(2, db=db) == [1, 2]
    assert content.get_pagination_page_count(3, cat["id"], db=db) == [1]


def test_pagination_page_size_must_be_positive(db):
    with pytest.raises(ValidationError):
        content.get_pagination_page_count(0, db=db)


def test_paginated_posts_published_only_newest_first(db):
    created = [_post(db, title=f"p{i}", published="on") for i in range(5)]
    _post(db, title="draft")

    first = content.get_paginated_posts(2, 1, db=db)
    second = content.get_paginated_posts(2, 2, db=db)
    third = content.get_paginated_posts(2, 3, db=db)

    assert [p["title"] for p in first] == ["p4", "p3"]
    assert [p["title"] for p in second] == ["p2", "p1"]
    assert [p["title"] for p in third] == ["p0"]
    assert all(p["published"] for p in first + second + third)

    # an edit moves the post to the front
    content.update_post(created[0]["id"], {"published": "on"}, db=db)
    assert content.get_paginated_posts(2, 1, db=db)[0]["title"] == "p0"


def test_paginated_posts_out_of_range_is_empty(db):
    _post(db, published="on")
    assert content.get_paginated_posts(5, 2, db=db) == []
    assert content.get_paginated_posts(5, 0, db=db) == []


def test_paginated_posts_by_category(db):
    cat = _category(db)
    _post(db, title="in", published="on", category=cat["id"])
    _post(db, title="out", published="on")
    rows = content.get_paginated_posts(10, 1, cat["id"], db=db)
    assert [p["title"] for p in rows] == ["in"]


# ───────────────────────── counts ─────────────────────────────────────
def test_counts(db):
    _category(db)
    _category(db, "Other")
    _post(db, published="on")
    _post(db)
    assert content.get_post_count(db=db) == 1       # drafts are not counted
    assert content.get_category_count(db=db) == 2
