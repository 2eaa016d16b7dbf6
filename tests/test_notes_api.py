import pytest
from fastapi.testclient import TestClient

from audionotes.api import chat as chat_api
from audionotes.api import deps as api_deps
from audionotes.api import notes as notes_api
from audionotes.core.config import Settings
from audionotes.main import app
from audionotes.services.audio_utils import AudioMetadata
from audionotes.worker.queue import ProcessingQueue

USER = {"X-User-Id": "user-1"}


@pytest.fixture()
def client(fakes, monkeypatch):
    fakes.forward_updates = True
    monkeypatch.setattr(notes_api, "extract_audio_metadata", lambda path: AudioMetadata(duration=12.5, format="mp3"))

    queue = ProcessingQueue(fakes.deps(), sleep=fakes.sleep)
    fakes.queue = queue
    app.state.processing_queue = queue
    with TestClient(app) as c:
        yield c
    queue.shutdown(wait=True, timeout=5)
    app.state.processing_queue = None


def _upload(client, name="talk.mp3", content_type="audio/mpeg", headers=USER, **form):
    return client.post(
        "/notes/upload",
        files={"file": (name, b"ID3 fake mp3 bytes", content_type)},
        data=form,
        headers=headers,
    )


def test_upload_queues_job_and_completes_note(client, fakes):
    fakes.transcript = "first line\nsecond line"

    r = _upload(client, language="de")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    note_id = body["note_id"]

    assert app.state.processing_queue.wait_idle(timeout=5)

    p = client.get(f"/notes/{note_id}/progress", headers=USER)
    assert p.status_code == 200
    assert p.json() == {"queue_progress": 100.0, "process_progress": 100.0, "status": "Complete"}

    n = client.get(f"/notes/{note_id}", headers=USER).json()["note"]
    assert n["status"] == "completed"
    assert n["title"] == "Title"
    assert n["content"] == fakes.summary.content
    assert n["duration"] == 12.5
    assert n["language"] == "de"
    assert n["original_file_name"] == "talk.mp3"

    t = client.get(f"/notes/{note_id}/transcript", headers=USER)
    assert t.status_code == 200
    assert t.text == "first line\nsecond line"
    assert f"transcript-{note_id}.txt" in t.headers["content-disposition"]

    # the stt variant followed the upload's language hint
    assert fakes.transcribe_calls[0][1].language == "de"


def test_failed_job_is_visible_on_note_and_progress(client, fakes):
    fakes.convert_error = RuntimeError("Invalid data found when processing input")

    note_id = _upload(client).json()["note_id"]
    assert app.state.processing_queue.wait_idle(timeout=5)

    progress = client.get(f"/notes/{note_id}/progress", headers=USER).json()
    assert progress["status"].startswith("Error: Unsupported audio format")

    note = client.get(f"/notes/{note_id}", headers=USER).json()["note"]
    assert note["status"] == "error"
    assert note["error"].startswith("Unsupported audio format")


def test_upload_rejects_non_audio(client):
    r = _upload(client, name="notes.pdf", content_type="application/pdf")
    assert r.status_code == 400


def test_requests_without_user_are_unauthorized(client):
    assert _upload(client, headers={}).status_code == 401
    assert client.get("/notes", headers={}).status_code == 401


def test_progress_for_unknown_note(client):
    r = client.get("/notes/does-not-exist/progress", headers=USER)
    assert r.json()["status"] == "not found"


def test_notes_are_scoped_to_owner(client):
    note_id = _upload(client).json()["note_id"]
    assert app.state.processing_queue.wait_idle(timeout=5)

    assert client.get(f"/notes/{note_id}", headers={"X-User-Id": "intruder"}).status_code == 404
    listed = client.get("/notes", headers=USER).json()["notes"]
    assert [n["id"] for n in listed] == [note_id]

    assert client.delete(f"/notes/{note_id}", headers=USER).json()["ok"] is True
    assert client.get(f"/notes/{note_id}", headers=USER).status_code == 404


def test_study_requires_a_kind(client):
    note_id = _upload(client).json()["note_id"]
    assert app.state.processing_queue.wait_idle(timeout=5)
    r = client.post(f"/notes/{note_id}/study", headers=USER)
    assert r.status_code == 400


def test_study_generates_flashcards(client, monkeypatch):
    note_id = _upload(client).json()["note_id"]
    assert app.state.processing_queue.wait_idle(timeout=5)

    # no model settings yet
    assert client.post(f"/notes/{note_id}/study?flashcards=true", headers=USER).status_code == 500

    monkeypatch.setattr(api_deps, "settings", Settings(admin_user_ids="admin"))
    client.put("/settings/models", json={"stt": {}, "llm": {}}, headers={"X-User-Id": "admin"})

    seen = {}

    def fake_flashcards(content, llm):
        seen["content"] = content
        return [{"front": "Q", "back": "A"}]

    monkeypatch.setattr(notes_api, "generate_flashcards", fake_flashcards)
    r = client.post(f"/notes/{note_id}/study?flashcards=true", headers=USER)
    assert r.status_code == 200
    assert r.json() == {"flashcards": [{"front": "Q", "back": "A"}], "quiz_questions": []}
    assert seen["content"] == "# Notes\n\n- point one\n"


def test_categories_endpoints(client):
    assert client.post("/categories", json={"name": "Chemistry"}, headers=USER).status_code == 200
    assert client.post("/categories", json={"name": "Chemistry"}, headers=USER).status_code == 400

    names = [c["name"] for c in client.get("/categories", headers=USER).json()["categories"]]
    assert names == ["Chemistry"]


def test_model_settings_admin_only_and_masked(client, monkeypatch):
    payload = {
        "stt": {"base_url": "http://stt", "api_key": "sk-stt-1234567890"},
        "llm": {"base_url": "http://llm", "api_key": "sk-llm-1234567890", "summarization_model": "big"},
    }
    assert client.put("/settings/models", json=payload, headers=USER).status_code == 403

    monkeypatch.setattr(api_deps, "settings", Settings(admin_user_ids="admin, other-admin"))
    r = client.put("/settings/models", json=payload, headers={"X-User-Id": "admin"})
    assert r.status_code == 200
    assert r.json()["llm"]["api_key"] == "sk-...7890"

    got = client.get("/settings/models", headers=USER).json()
    assert got["llm"]["summarization_model"] == "big"
    assert got["stt"]["api_key"] == "sk-...7890"

    # echoing the masked key back keeps the stored one
    got["llm"]["summarization_model"] = "bigger"
    client.put("/settings/models", json=got, headers={"X-User-Id": "admin"})
    from audionotes.db.session import SessionLocal
    from audionotes.services.model_settings import load_model_settings

    db = SessionLocal()
    try:
        stored = load_model_settings(db)
    finally:
        db.close()
    assert stored.llm.api_key == "sk-llm-1234567890"
    assert stored.llm.summarization_model == "bigger"


def test_queue_stats(client):
    _upload(client)
    assert app.state.processing_queue.wait_idle(timeout=5)

    body = client.get("/queue", headers=USER).json()
    assert body["queue_length"] == 0
    assert body["running"] is None
    assert body["counts"]["completed"] == 1


def _configure_models(client, monkeypatch):
    monkeypatch.setattr(api_deps, "settings", Settings(admin_user_ids="admin"))
    r = client.put("/settings/models", json={"stt": {}, "llm": {"chat_model": "chatty"}}, headers={"X-User-Id": "admin"})
    assert r.status_code == 200


def test_upload_rejects_overlong_language_hint(client):
    r = _upload(client, language="x" * (notes_api.MAX_LANGUAGE_LEN + 1))
    assert r.status_code == 400
    assert client.get("/notes", headers=USER).json()["notes"] == []


@pytest.mark.parametrize("user_id", ["../x", "a/b", "a\\b", ".."])
def test_path_like_user_ids_are_rejected(client, user_id):
    assert client.get("/notes", headers={"X-User-Id": user_id}).status_code == 400
    assert _upload(client, headers={"X-User-Id": user_id}).status_code == 400


def test_chat_with_note(client, monkeypatch):
    note_id = _upload(client).json()["note_id"]
    assert app.state.processing_queue.wait_idle(timeout=5)

    assert client.post(f"/notes/{note_id}/chat", json={"message": "hi"}, headers=USER).status_code == 500
    _configure_models(client, monkeypatch)

    seen = {}

    def fake_answer(note, message, history, llm):
        seen.update(content=note.content, message=message, history=history, model=llm.chat_model)
        return "Here is the answer."

    monkeypatch.setattr(chat_api, "answer_about_note", fake_answer)
    body = {"message": "What was point one?", "history": [{"role": "user", "content": "earlier"}]}
    r = client.post(f"/notes/{note_id}/chat", json=body, headers=USER)

    assert r.status_code == 200
    assert r.json() == {"message": "Here is the answer."}
    assert seen["content"] == "# Notes\n\n- point one\n"
    assert seen["model"] == "chatty"
    assert [(t.role, t.content) for t in seen["history"]] == [("user", "earlier")]

    assert client.post(f"/notes/{note_id}/chat", json={"message": "  "}, headers=USER).status_code == 400
    assert client.post("/notes/missing/chat", json={"message": "hi"}, headers=USER).status_code == 404


def test_chat_across_notes(client, monkeypatch):
    first = _upload(client).json()["note_id"]
    second = _upload(client).json()["note_id"]
    assert app.state.processing_queue.wait_idle(timeout=5)
    _configure_models(client, monkeypatch)

    seen = {}

    def fake_answer(notes, message, history, llm):
        seen["ids"] = [n.id for n in notes]
        return "Combined answer."

    monkeypatch.setattr(chat_api, "answer_about_notes", fake_answer)

    r = client.post("/chat", json={"message": "compare", "note_ids": [second, "nope", first]}, headers=USER)
    assert r.status_code == 200
    assert r.json()["message"] == "Combined answer."
    assert seen["ids"] == [second, first]

    assert client.post("/chat", json={"message": "compare", "note_ids": []}, headers=USER).status_code == 400
    assert client.post("/chat", json={"message": "compare", "note_ids": ["nope"]}, headers=USER).status_code == 404
    other = {"X-User-Id": "someone-else"}
    assert client.post("/chat", json={"message": "compare", "note_ids": [first]}, headers=other).status_code == 404


def test_shortcut_token_upload(client):
    created = client.post("/user/shortcut-tokens", json={"name": "iPhone"}, headers=USER).json()["token"]
    token = created["token"]
    assert len(token) == 64
    assert client.post("/user/shortcut-tokens", json={"name": "iPhone"}, headers=USER).status_code == 400

    listed = client.get("/user/shortcut-tokens", headers=USER).json()["tokens"]
    assert [t["token"] for t in listed] == [f"...{token[-4:]}"]

    r = client.put("/shortcuts", content=b"raw m4a bytes", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    note_id = r.json()["note_id"]
    assert app.state.processing_queue.wait_idle(timeout=5)

    note = client.get(f"/notes/{note_id}", headers=USER).json()["note"]
    assert note["status"] == "completed"
    assert note["original_file_name"] == "recording.m4a"
    assert client.get("/user/shortcut-tokens", headers=USER).json()["tokens"][0]["last_used_at"] is not None


def test_shortcut_upload_multipart_and_auth(client):
    token = client.post("/user/shortcut-tokens", json={"name": "Watch"}, headers=USER).json()["token"]
    auth = {"Authorization": f"Bearer {token['token']}"}

    r = client.put("/shortcuts", files={"recording": ("memo.m4a", b"audio", "audio/mp4")}, headers=auth)
    assert r.status_code == 200
    assert r.json()["file_name"] == "memo.m4a"
    assert app.state.processing_queue.wait_idle(timeout=5)

    assert client.put("/shortcuts", content=b"audio").status_code == 401
    assert client.put("/shortcuts", content=b"audio", headers={"Authorization": "Bearer nope"}).status_code == 401
    assert client.put("/shortcuts", content=b"", headers=auth).status_code == 400

    assert client.delete(f"/user/shortcut-tokens/{token['id']}", headers=USER).json()["ok"] is True
    assert client.put("/shortcuts", content=b"audio", headers=auth).status_code == 401
