from sqlalchemy import select, func

from app.issues.models import Issue
from app.timeline.models import TimelineEntry


def _count_issues(db, email):
    db.expire_all()
    return db.scalar(select(func.count(Issue.id)).where(Issue.reporter_email == email))

def _timeline(db, issue_id):
    db.expire_all()
    return db.scalars(select(TimelineEntry).where(TimelineEntry.issue_id == issue_id)).all()

def _setup(client, make_user, auth, issue_payload):
    make_user("alice@civic.org")
    make_user("sam@civic.org", role="staff")
    make_user("ada@civic.org", role="admin")
    r = client.post("/issues", json=issue_payload(), headers=auth("alice@civic.org"))
    assert r.status_code == 201
    return r.json()["id"]

def _assign(client, auth, issue_id, staff="sam@civic.org"):
    return client.patch(f"/issues/{issue_id}/assign", json={"staff_email": staff}, headers=auth("ada@civic.org"))


# --- creation & quota ---

def test_create_issue_starts_pending_with_timeline(client, db, make_user, auth, issue_payload):
    make_user("alice@civic.org", name="Alice")
    r = client.post("/issues", json=issue_payload(image="https://img.test/a.png"), headers=auth("alice@civic.org"))
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "pending"
    assert body["priority"] == "normal" and body["is_boosted"] is False
    assert body["reporter_email"] == "alice@civic.org"
    assert body["reporter_name"] == "Alice"
    assert body["image"] == "https://img.test/a.png"
    assert body["assigned_staff_email"] == ""
    entries = _timeline(db, body["id"])
    assert len(entries) == 1
    assert entries[0].updated_by_role == "citizen" and entries[0].status == "pending"

def test_free_citizen_blocked_on_fourth_issue(client, db, make_user, auth, issue_payload):
    make_user("alice@civic.org")
    for n in range(3):
        assert client.post("/issues", json=issue_payload(n), headers=auth("alice@civic.org")).status_code == 201

    r = client.post("/issues", json=issue_payload(4), headers=auth("alice@civic.org"))
    assert r.status_code == 429
    assert r.json()["needs_subscription"] is True
    assert r.json()["error"]["code"] == "quota_exceeded"
    assert _count_issues(db, "alice@civic.org") == 3

def test_premium_citizen_has_no_quota(client, db, make_user, auth, issue_payload):
    make_user("pat@civic.org", premium=True)
    for n in range(10):
        assert client.post("/issues", json=issue_payload(n), headers=auth("pat@civic.org")).status_code == 201
    assert client.post("/issues", json=issue_payload(11), headers=auth("pat@civic.org")).status_code == 201
    assert _count_issues(db, "pat@civic.org") == 11

def test_only_citizens_create_issues(client, make_user, auth, issue_payload):
    make_user("sam@civic.org", role="staff")
    make_user("ada@civic.org", role="admin")
    assert client.post("/issues", json=issue_payload(), headers=auth("sam@civic.org")).status_code == 403
    assert client.post("/issues", json=issue_payload(), headers=auth("ada@civic.org")).status_code == 403

def test_create_requires_credential(client, issue_payload):
    r = client.post("/issues", json=issue_payload())
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "unauthorized"

def test_blocked_citizen_cannot_create(client, make_user, auth, issue_payload):
    make_user("bob@civic.org", blocked=True)
    r = client.post("/issues", json=issue_payload(), headers=auth("bob@civic.org"))
    assert r.status_code == 403


# --- staff assignment ---

def test_admin_assigns_staff(client, db, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    r = _assign(client, auth, issue_id)
    assert r.status_code == 200
    body = r.json()
    assert body["assigned_staff_email"] == "sam@civic.org"
    assert body["assigned_staff_name"] == "Sam"
    assert body["assigned_staff_photo"] == "https://img.test/sam.png"
    assert len(body["assigned_staff_id"]) == 32
    assert body["status"] == "pending"
    entries = _timeline(db, issue_id)
    assert len(entries) == 2
    assert sum(1 for e in entries if e.updated_by_role == "admin") == 1

def test_second_assignment_conflicts(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    make_user("sue@civic.org", role="staff")
    assert _assign(client, auth, issue_id).status_code == 200
    r = _assign(client, auth, issue_id, staff="sue@civic.org")
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "already_assigned"

def test_assign_unknown_staff_is_404(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    # a citizen is not a staff member
    assert _assign(client, auth, issue_id, staff="alice@civic.org").status_code == 404
    assert _assign(client, auth, issue_id, staff="ghost@civic.org").status_code == 404

def test_assign_unknown_issue_is_404(client, make_user, auth, issue_payload):
    _setup(client, make_user, auth, issue_payload)
    assert _assign(client, auth, "0" * 32).status_code == 404


# --- status advance ---

def test_staff_advance_follows_table(client, db, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    _assign(client, auth, issue_id)
    before = len(_timeline(db, issue_id))

    r = client.patch(f"/issues/{issue_id}/status", json={"status": "working"}, headers=auth("sam@civic.org"))
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "invalid_transition"
    assert "pending" in err["message"] and "working" in err["message"]
    assert len(_timeline(db, issue_id)) == before

    r = client.patch(f"/issues/{issue_id}/status", json={"status": "in_progress"}, headers=auth("sam@civic.org"))
    assert r.status_code == 200
    assert r.json()["status"] == "in_progress"
    entries = _timeline(db, issue_id)
    assert len(entries) == before + 1
    newest = max(entries, key=lambda e: e.created_at)
    assert newest.updated_by_role == "staff" and newest.status == "in_progress"

def test_staff_walks_issue_to_closed(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    _assign(client, auth, issue_id)
    for status in ("in_progress", "working", "resolved", "closed"):
        r = client.patch(f"/issues/{issue_id}/status", json={"status": status}, headers=auth("sam@civic.org"))
        assert r.status_code == 200, r.json()
    r = client.patch(f"/issues/{issue_id}/status", json={"status": "pending"}, headers=auth("sam@civic.org"))
    assert r.status_code == 400

def test_unassigned_staff_cannot_advance(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    make_user("sue@civic.org", role="staff")
    _assign(client, auth, issue_id)
    r = client.patch(f"/issues/{issue_id}/status", json={"status": "in_progress"}, headers=auth("sue@civic.org"))
    assert r.status_code == 403

def test_admin_cannot_call_staff_operation(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    _assign(client, auth, issue_id)
    r = client.patch(f"/issues/{issue_id}/status", json={"status": "in_progress"}, headers=auth("ada@civic.org"))
    assert r.status_code == 403

def test_unknown_status_value_rejected_at_boundary(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    _assign(client, auth, issue_id)
    r = client.patch(f"/issues/{issue_id}/status", json={"status": "done"}, headers=auth("sam@civic.org"))
    assert r.status_code == 422


# --- rejection ---

def test_admin_rejects_pending_issue(client, db, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    r = client.patch(f"/issues/{issue_id}/reject", headers=auth("ada@civic.org"))
    assert r.status_code == 200
    assert r.json()["status"] == "rejected"
    roles = [e.updated_by_role for e in _timeline(db, issue_id)]
    assert roles.count("admin") == 1

def test_reject_only_from_pending(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    _assign(client, auth, issue_id)
    client.patch(f"/issues/{issue_id}/status", json={"status": "in_progress"}, headers=auth("sam@civic.org"))
    r = client.patch(f"/issues/{issue_id}/reject", headers=auth("ada@civic.org"))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid_state"

def test_reject_twice_fails(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    assert client.patch(f"/issues/{issue_id}/reject", headers=auth("ada@civic.org")).status_code == 200
    assert client.patch(f"/issues/{issue_id}/reject", headers=auth("ada@civic.org")).status_code == 400

def test_staff_cannot_reject(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    assert client.patch(f"/issues/{issue_id}/reject", headers=auth("sam@civic.org")).status_code == 403


# --- citizen edit / delete ---

def test_reporter_edits_pending_issue(client, db, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    r = client.patch(
        f"/issues/{issue_id}",
        json=issue_payload(9, title="Pothole", category="Road"),
        headers=auth("alice@civic.org"),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["title"] == "Pothole" and body["category"] == "Road"
    assert body["status"] == "pending"
    entries = _timeline(db, issue_id)
    assert len(entries) == 2
    assert all(e.updated_by_role == "citizen" and e.status == "pending" for e in entries)

def test_edit_keeps_image_unless_supplied(client, make_user, auth, issue_payload):
    make_user("alice@civic.org")
    issue_id = client.post("/issues", json=issue_payload(image="https://img.test/1.png"),
                           headers=auth("alice@civic.org")).json()["id"]
    r = client.patch(f"/issues/{issue_id}", json=issue_payload(), headers=auth("alice@civic.org"))
    assert r.json()["image"] == "https://img.test/1.png"
    r = client.patch(f"/issues/{issue_id}", json=issue_payload(image="https://img.test/2.png"),
                     headers=auth("alice@civic.org"))
    assert r.json()["image"] == "https://img.test/2.png"

def test_edit_in_progress_issue_is_invalid_state(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    make_user("carl@civic.org")
    _assign(client, auth, issue_id)
    client.patch(f"/issues/{issue_id}/status", json={"status": "in_progress"}, headers=auth("sam@civic.org"))

    r = client.patch(f"/issues/{issue_id}", json=issue_payload(), headers=auth("alice@civic.org"))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid_state"

def test_edit_in_progress_issue_is_invalid_state_for_any_citizen(client, db, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    make_user("carl@civic.org")
    _assign(client, auth, issue_id)
    client.patch(f"/issues/{issue_id}/status", json={"status": "in_progress"}, headers=auth("sam@civic.org"))
    before = len(_timeline(db, issue_id))

    r = client.patch(f"/issues/{issue_id}", json=issue_payload(9), headers=auth("carl@civic.org"))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid_state"
    assert len(_timeline(db, issue_id)) == before
    assert client.get(f"/issues/{issue_id}").json()["title"] == "Broken streetlight #1"

def test_only_reporter_edits(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    make_user("carl@civic.org")
    r = client.patch(f"/issues/{issue_id}", json=issue_payload(), headers=auth("carl@civic.org"))
    assert r.status_code == 403

def test_delete_issue_cascades_timeline(client, db, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    client.patch(f"/issues/{issue_id}", json=issue_payload(), headers=auth("alice@civic.org"))
    assert len(_timeline(db, issue_id)) == 2

    assert client.delete(f"/issues/{issue_id}", headers=auth("alice@civic.org")).status_code == 200
    assert client.get(f"/issues/{issue_id}").status_code == 404
    assert _timeline(db, issue_id) == []

def test_only_reporter_deletes(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    make_user("carl@civic.org")
    assert client.delete(f"/issues/{issue_id}", headers=auth("carl@civic.org")).status_code == 403


# --- upvotes ---

def test_upvote_once(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    make_user("carl@civic.org")
    r = client.post(f"/issues/{issue_id}/upvote", headers=auth("carl@civic.org"))
    assert r.status_code == 200
    assert r.json()["upvote_count"] == 1 and r.json()["upvotes"] == ["carl@civic.org"]
    r = client.post(f"/issues/{issue_id}/upvote", headers=auth("carl@civic.org"))
    assert r.status_code == 400

def test_reporter_cannot_upvote_own_issue(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    assert client.post(f"/issues/{issue_id}/upvote", headers=auth("alice@civic.org")).status_code == 400


# --- reads ---

def test_list_filters_and_boosted_first(client, db, make_user, auth, issue_payload):
    make_user("pat@civic.org", premium=True)
    ids = [
        client.post("/issues", json=issue_payload(n, category="Road" if n % 2 else "Water"),
                    headers=auth("pat@civic.org")).json()["id"]
        for n in range(4)
    ]
    issue = db.get(Issue, ids[0])
    issue.is_boosted, issue.priority = True, "high"
    db.commit()

    body = client.get("/issues").json()
    assert body["total"] == 4
    assert body["items"][0]["id"] == ids[0]

    assert client.get("/issues", params={"category": "Road"}).json()["total"] == 2
    assert client.get("/issues", params={"priority": "high"}).json()["total"] == 1
    assert client.get("/issues", params={"search": "main st 3"}).json()["total"] == 1
    assert client.get("/issues", params={"status": "resolved"}).json()["total"] == 0

    page = client.get("/issues", params={"limit": 3, "page": 2}).json()
    assert len(page["items"]) == 1

def test_mine_and_assigned(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    _assign(client, auth, issue_id)
    mine = client.get("/issues/mine", headers=auth("alice@civic.org")).json()
    assert [i["id"] for i in mine] == [issue_id]
    assigned = client.get("/issues/assigned", headers=auth("sam@civic.org")).json()
    assert [i["id"] for i in assigned] == [issue_id]
    assert client.get("/issues/assigned", headers=auth("alice@civic.org")).status_code == 403

def test_timeline_endpoint_newest_first(client, make_user, auth, issue_payload):
    issue_id = _setup(client, make_user, auth, issue_payload)
    _assign(client, auth, issue_id)
    client.patch(f"/issues/{issue_id}/status", json={"status": "in_progress"}, headers=auth("sam@civic.org"))
    items = client.get(f"/issues/{issue_id}/timeline").json()["items"]
    assert [i["updated_by_role"] for i in items] == ["staff", "admin", "citizen"]
    assert client.get(f"/issues/{'f' * 32}/timeline").status_code == 404
