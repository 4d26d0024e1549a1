from review_engine.core.config import settings


def create_pending(client, student_id="S", exercise_id="E3", lesson_id="L2") -> str:
    r = client.post(
        "/submissions",
        json={"student_id": student_id, "exercise_id": exercise_id, "lesson_id": lesson_id},
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


def lock(client, sid, teacher_id):
    return client.post(f"/submissions/{sid}/lock", json={"teacher_id": teacher_id})


def decide(client, sid, teacher_id, outcome, reason=None, attachment=None):
    body = {"teacher_id": teacher_id, "outcome": outcome}
    if reason is not None:
        body["reason"] = reason
    if attachment is not None:
        body["attachment"] = attachment
    return client.post(f"/submissions/{sid}/decision", json=body)


def reopen(client, sid, teacher_id):
    return client.post(f"/submissions/{sid}/reopen", json={"teacher_id": teacher_id})


def test_approve_records_decision_and_clears_lock(client):
    sid = create_pending(client)
    lock(client, sid, "T1")

    r = decide(client, sid, "T1", "approved")
    assert r.status_code == 200, r.text
    sub = r.json()["submission"]
    assert sub["status"] == "approved"
    assert sub["decided_by"] == "T1"
    assert sub["decided_at"] is not None
    assert sub["lock_owner_id"] is None
    assert sub["lock_acquired_at"] is None


def test_decide_without_lock_is_forbidden(client):
    sid = create_pending(client)

    r = decide(client, sid, "T1", "approved")
    assert r.status_code == 403

    lock(client, sid, "T1")
    r = decide(client, sid, "T2", "approved")
    assert r.status_code == 403
    assert r.json()["owner"] == "T1"

    assert client.get(f"/submissions/{sid}").json()["status"] == "locked"


def test_decide_unknown_submission(client):
    assert decide(client, "nope", "T1", "approved").status_code == 404


def test_second_decide_is_invalid_state_and_unlocks_once(client):
    sid = create_pending(client)
    lock(client, sid, "T1")

    first = decide(client, sid, "T1", "approved")
    assert first.status_code == 200
    assert len(first.json()["unlocks"]) == 1

    second = decide(client, sid, "T1", "approved")
    assert second.status_code == 409
    assert second.json()["error"] == "invalid_state"

    unlocks = client.get("/students/S/unlocks").json()
    assert len(unlocks) == 1


def test_reject_requires_reason_or_attachment(client):
    sid = create_pending(client)
    lock(client, sid, "T1")

    r = decide(client, sid, "T1", "rejected")
    assert r.status_code == 422
    assert r.json()["error"] == "justification_required"

    r = decide(client, sid, "T1", "rejected", reason="   ")
    assert r.status_code == 422

    # still locked, nothing recorded
    assert client.get(f"/submissions/{sid}").json()["status"] == "locked"

    r = decide(client, sid, "T1", "rejected", attachment="voice-notes/t1/e3.webm")
    assert r.status_code == 200, r.text
    sub = r.json()["submission"]
    assert sub["status"] == "rejected"
    assert sub["decision_attachment"] == "voice-notes/t1/e3.webm"
    assert r.json()["unlocks"] == []


def test_reject_without_justification_when_enforcement_disabled(client, monkeypatch):
    monkeypatch.setattr(settings, "require_rejection_justification", False)
    sid = create_pending(client)
    lock(client, sid, "T1")

    r = decide(client, sid, "T1", "rejected")
    assert r.status_code == 200, r.text
    assert r.json()["submission"]["decision_reason"] == ""


def test_unknown_outcome_is_rejected_by_schema(client):
    sid = create_pending(client)
    lock(client, sid, "T1")
    assert decide(client, sid, "T1", "maybe").status_code == 422


def test_reopen_by_decider_relocks_and_clears_decision(client):
    sid = create_pending(client)
    lock(client, sid, "T1")
    decide(client, sid, "T1", "rejected", reason="incomplet")

    r = reopen(client, sid, "T1")
    assert r.status_code == 200, r.text
    sub = r.json()
    assert sub["status"] == "locked"
    assert sub["lock_owner_id"] == "T1"
    assert sub["decided_by"] is None
    assert sub["decision_reason"] is None

    r = decide(client, sid, "T1", "approved")
    assert r.status_code == 200
    assert r.json()["submission"]["status"] == "approved"


def test_reopen_by_other_teacher_is_forbidden_in_any_state(client):
    sid = create_pending(client)
    assert reopen(client, sid, "T2").status_code == 403

    lock(client, sid, "T1")
    assert reopen(client, sid, "T2").status_code == 403

    decide(client, sid, "T1", "approved")
    assert reopen(client, sid, "T2").status_code == 403

    reopen(client, sid, "T1")
    assert reopen(client, sid, "T2").status_code == 403


def test_reopen_of_open_submission_by_decider_is_invalid_state(client):
    sid = create_pending(client)
    lock(client, sid, "T1")
    decide(client, sid, "T1", "approved")

    # taken back through the lock: already locked by the decider, nothing to reopen
    assert lock(client, sid, "T1").status_code == 200
    r = reopen(client, sid, "T1")
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_state"

    assert reopen(client, "nope", "T1").status_code == 404


def test_reopen_after_resubmission_is_conflict(client):
    sid = create_pending(client)
    lock(client, sid, "T1")
    decide(client, sid, "T1", "rejected", reason="incomplet")
    newer = create_pending(client)

    r = reopen(client, sid, "T1")
    assert r.status_code == 409
    assert r.json()["error"] == "conflict"

    # both rows untouched
    old = client.get(f"/submissions/{sid}").json()
    assert old["status"] == "rejected"
    assert old["decided_by"] == "T1"
    assert client.get(f"/submissions/{newer}").json()["status"] == "pending"
    assert [d["outcome"] for d in client.get(f"/submissions/{sid}/decisions").json()] == ["rejected"]


def test_unjustified_rejection_by_non_holder_is_forbidden(client):
    sid = create_pending(client)
    lock(client, sid, "T1")

    r = decide(client, sid, "T2", "rejected")
    assert r.status_code == 403
    assert r.json()["owner"] == "T1"

    r = decide(client, sid, "T1", "rejected")
    assert r.status_code == 422
    assert client.get(f"/submissions/{sid}").json()["lock_owner_id"] == "T1"


def test_decision_history_keeps_every_decision(client):
    sid = create_pending(client)
    lock(client, sid, "T1")
    decide(client, sid, "T1", "approved")
    reopen(client, sid, "T1")
    decide(client, sid, "T1", "rejected", reason="incomplet")

    r = client.get(f"/submissions/{sid}/decisions")
    assert r.status_code == 200
    history = r.json()
    assert [d["outcome"] for d in history] == ["approved", "reopened", "rejected"]
    assert history[-1]["reason"] == "incomplet"
    assert all(d["teacher_id"] == "T1" for d in history)

    assert client.get("/submissions/nope/decisions").status_code == 404


def test_review_scenario_end_to_end(client):
    # S submits E3 under L2
    sid = create_pending(client)

    assert lock(client, sid, "T1").status_code == 200
    r = lock(client, sid, "T2")
    assert r.status_code == 409
    assert r.json()["owner"] == "T1"

    r = decide(client, sid, "T1", "approved")
    assert r.status_code == 200
    assert r.json()["submission"]["decided_by"] == "T1"
    unlocks = r.json()["unlocks"]
    assert len(unlocks) == 1
    assert unlocks[0]["student_id"] == "S"
    assert unlocks[0]["unlocked_lesson_id"] == "L3"
    assert unlocks[0]["cause_submission_id"] == sid

    r = reopen(client, sid, "T1")
    assert r.json()["status"] == "locked"
    assert r.json()["lock_owner_id"] == "T1"
    assert r.json()["decided_by"] is None

    r = decide(client, sid, "T1", "rejected", reason="incomplet")
    assert r.json()["submission"]["status"] == "rejected"
    assert r.json()["submission"]["decision_reason"] == "incomplet"

    assert reopen(client, sid, "T2").status_code == 403

    # the earlier unlock stays on record
    assert [u["unlocked_lesson_id"] for u in client.get("/students/S/unlocks").json()] == ["L3"]
