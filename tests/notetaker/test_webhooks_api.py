import pytest
from fastapi import status

from conftest import GRANT_ID, MEETING_URL, RECORDING_URL, TRANSCRIPT_DOC, TRANSCRIPT_URL, add_session, webhook
from src.notetaker.domain.models.recording_session import SessionStatus


async def test_challenge_is_echoed_as_plain_text(client):
    response = await client.get("/api/v1/webhooks/notetaker", params={"challenge": "abc123"})

    assert response.status_code == status.HTTP_200_OK
    assert response.text == "abc123"
    assert response.headers["content-type"].startswith("text/plain")


async def test_challenge_missing_returns_400(client):
    response = await client.get("/api/v1/webhooks/notetaker")
    assert response.status_code == status.HTTP_400_BAD_REQUEST


async def test_created_event_links_bot_by_account(client, repository):
    add_session(repository, "meeting_1")

    response = await client.post(
        "/api/v1/webhooks/notetaker",
        json=webhook("notetaker.created", id="bot-42", grant_id=GRANT_ID),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"received": True}
    session = repository.get("meeting_1")
    assert session.bot_id == "bot-42"
    assert session.status == SessionStatus.JOINING
    assert session.progress.percentage == 20


async def test_full_lifecycle_through_webhooks(client, dispatch_client):
    created = await client.post("/api/v1/sessions/", json={"meeting_url": MEETING_URL, "account_id": GRANT_ID})
    session_id = created.json()["id"]
    dispatch_client.media_documents[TRANSCRIPT_URL] = TRANSCRIPT_DOC

    await client.post(
        "/api/v1/webhooks/notetaker",
        json=webhook("notetaker.meeting_state", id="bot-1", grant_id=GRANT_ID, meeting_state="attending"),
    )
    recording = (await client.get(f"/api/v1/sessions/{session_id}")).json()
    assert recording["status"] == SessionStatus.RECORDING.value
    assert recording["progress"]["percentage"] == 60

    await client.post(
        "/api/v1/webhooks/notetaker",
        json=webhook("notetaker.meeting_state", id="bot-1", grant_id=GRANT_ID, meeting_state="meeting_ended"),
    )
    await client.post(
        "/api/v1/webhooks/notetaker",
        json=webhook(
            "notetaker.media",
            id="bot-1",
            grant_id=GRANT_ID,
            state="available",
            media={"transcript": TRANSCRIPT_URL, "recording": RECORDING_URL},
        ),
    )

    completed = (await client.get(f"/api/v1/sessions/{session_id}")).json()
    assert completed["status"] == SessionStatus.COMPLETED.value
    assert completed["progress"] == {"message": "Summary generated successfully!", "percentage": 100}
    assert completed["recording_ref"] == RECORDING_URL

    summary_response = await client.get(f"/api/v1/sessions/{session_id}/summary")
    assert summary_response.status_code == status.HTTP_200_OK
    body = summary_response.json()
    assert body["transcript"] == TRANSCRIPT_DOC
    assert body["summary"]["participants"] == ["Alice", "Bob"]
    assert body["summary"]["duration"] == 12


async def test_event_for_unknown_notetaker_is_acknowledged(client, repository):
    add_session(repository, "meeting_1", status=SessionStatus.JOINING, bot_id="bot-1")

    response = await client.post(
        "/api/v1/webhooks/notetaker",
        json=webhook("notetaker.meeting_state", id="bot-unknown", meeting_state="attending"),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"received": True}
    assert repository.get("meeting_1").status == SessionStatus.JOINING


async def test_malformed_event_is_acknowledged(client):
    response = await client.post("/api/v1/webhooks/notetaker", json={"type": "notetaker.media", "data": "oops"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"received": True}


@pytest.mark.parametrize("body", [b'[{"type": "notetaker.created"}]', b'"notetaker.created"', b"null", b"not json"])
async def test_non_object_body_is_acknowledged(client, repository, body):
    add_session(repository, "meeting_1")

    response = await client.post(
        "/api/v1/webhooks/notetaker",
        content=body,
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"received": True}
    assert repository.get("meeting_1").status == SessionStatus.PENDING
