"""Tests for thread and Project Brain routes."""

BASE = "/documents/doc-1"


async def _create_thread(client, content="hi", highlighted_text="the cat"):
    response = await client.post(
        f"{BASE}/threads", json={"content": content, "highlightedText": highlighted_text}
    )
    assert response.status_code == 201
    return response.json()


async def test_create_and_list_threads(client):
    created = await _create_thread(client)

    response = await client.get(f"{BASE}/threads")

    assert response.status_code == 200
    threads = response.json()
    assert [t["id"] for t in threads] == [created["id"]]
    assert threads[0]["documentId"] == "doc-1"
    assert threads[0]["highlightedText"] == "the cat"
    assert threads[0]["isAIThread"] is False
    assert threads[0]["messages"][0]["author"] == "user"


async def test_reply_round_trip(client):
    thread = await _create_thread(client, content="hi")

    reply = await client.post(f"{BASE}/threads/{thread['id']}/replies", json={"content": "hello"})
    fetched = await client.get(f"{BASE}/threads/{thread['id']}")

    assert reply.status_code == 201
    assert [m["content"] for m in fetched.json()["messages"]] == ["hi", "hello"]


async def test_reply_to_resolved_thread_conflicts(client):
    thread = await _create_thread(client)

    resolved = await client.post(f"{BASE}/threads/{thread['id']}/resolve")
    reply = await client.post(f"{BASE}/threads/{thread['id']}/replies", json={"content": "late"})

    assert resolved.json() == {"resolved": True}
    assert reply.status_code == 409


async def test_unknown_thread_is_404(client):
    assert (await client.get(f"{BASE}/threads/missing")).status_code == 404
    assert (await client.delete(f"{BASE}/threads/missing")).status_code == 404
    assert (await client.post(f"{BASE}/threads/missing/replies", json={"content": "x"})).status_code == 404


async def test_empty_content_is_rejected(client):
    response = await client.post(f"{BASE}/threads", json={"content": ""})

    assert response.status_code == 422


async def test_edit_and_delete_messages(client):
    thread = await _create_thread(client, content="only")
    message_id = thread["messages"][0]["id"]

    edited = await client.patch(
        f"{BASE}/threads/{thread['id']}/messages/{message_id}", json={"content": "edited"}
    )
    missing = await client.patch(f"{BASE}/threads/{thread['id']}/messages/nope", json={"content": "x"})
    deleted = await client.delete(f"{BASE}/threads/{thread['id']}/messages/{message_id}")

    assert edited.json()["content"] == "edited"
    assert missing.status_code == 404
    assert deleted.json() == {"threadDeleted": True}
    assert (await client.get(f"{BASE}/threads/{thread['id']}")).status_code == 404


async def test_delete_thread(client):
    thread = await _create_thread(client)

    response = await client.delete(f"{BASE}/threads/{thread['id']}")

    assert response.status_code == 204
    assert (await client.get(f"{BASE}/threads")).json() == []


async def test_ai_thread_creation_and_mode_switch(client):
    response = await client.post(f"{BASE}/ai-threads", json={"mode": "critique", "highlightedText": "x"})
    thread = response.json()

    switched = await client.patch(f"{BASE}/threads/{thread['id']}/mode", json={"mode": "synthesize"})

    assert response.status_code == 201
    assert thread["isAIThread"] is True
    assert thread["messages"] == []
    assert switched.json()["aiMode"] == "synthesize"


async def test_mode_switch_rejects_human_thread(client):
    thread = await _create_thread(client)

    response = await client.patch(f"{BASE}/threads/{thread['id']}/mode", json={"mode": "synthesize"})

    assert response.status_code == 409
    assert "aiMode" not in (await client.get(f"{BASE}/threads/{thread['id']}")).json()


# =============================================================================
# PROJECT BRAIN
# =============================================================================


async def test_brain_defaults_to_empty(client):
    response = await client.get("/brains/doc-1")

    assert response.status_code == 200
    assert response.json() == {"goal": "", "constraints": [], "glossary": [], "decisions": []}


async def test_brain_put_patch_delete(client):
    await client.put("/brains/doc-1", json={"goal": "Persuade", "constraints": ["short"]})

    patched = await client.patch("/brains/doc-1", json={"goal": "Inform"})
    assert patched.json()["goal"] == "Inform"
    assert patched.json()["constraints"] == ["short"]

    assert (await client.delete("/brains/doc-1")).status_code == 204
    assert (await client.get("/brains/doc-1")).json()["goal"] == ""


async def test_brain_list_entries(client):
    await client.post("/brains/doc-1/constraints", json={"text": "formal"})
    await client.post("/brains/doc-1/glossary", json={"term": "CI", "definition": "Categorical imperative"})
    added = await client.post("/brains/doc-1/decisions", json={"text": "First person"})

    brain = added.json()
    assert added.status_code == 201
    assert brain["constraints"] == ["formal"]
    assert brain["glossary"] == [{"term": "CI", "definition": "Categorical imperative"}]
    assert brain["decisions"][0]["text"] == "First person"
    assert "createdAt" in brain["decisions"][0]

    removed = await client.delete("/brains/doc-1/constraints/0")
    assert removed.json()["constraints"] == []
    assert (await client.delete("/brains/doc-1/constraints/0")).status_code == 404
    assert (await client.delete("/brains/doc-1/glossary/0")).status_code == 200
    assert (await client.delete("/brains/doc-1/decisions/0")).status_code == 200
    assert (await client.delete("/brains/doc-1/decisions/-1")).status_code == 422
