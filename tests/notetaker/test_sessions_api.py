from fastapi import status

from conftest import GRANT_ID, MEETING_URL, TRANSCRIPT_DOC, add_session
from src.notetaker.domain.models.recording_session import SessionStatus
from src.notetaker.services.notetaker.client import NotetakerInfo, NotetakerUnavailableError


async def test_create_session_dispatches_bot(client, dispatch_client):
    response = await client.post("/api/v1/sessions/", json={"meeting_url": MEETING_URL, "account_id": GRANT_ID})

    assert response.status_code == status.HTTP_201_CREATED
    session = response.json()
    assert session["id"].startswith("meeting_")
    assert session["status"] == SessionStatus.JOINING.value
    assert session["bot_id"] == "bot-1"
    assert session["progress"] == {"message": "Bot deployed. Joining meeting...", "percentage": 20}
    assert dispatch_client.calls == [("deploy_notetaker", (GRANT_ID, MEETING_URL))]


async def test_create_session_accepts_camel_case_fields(client):
    response = await client.post("/api/v1/sessions/", json={"meetingUrl": MEETING_URL, "grantId": GRANT_ID})

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["account_id"] == GRANT_ID


async def test_create_session_rejects_non_meet_url(client, repository, dispatch_client):
    response = await client.post(
        "/api/v1/sessions/",
        json={"meeting_url": "https://zoom.us/j/123456", "account_id": GRANT_ID},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Invalid Google Meet URL"
    assert repository.list_all() == []
    assert dispatch_client.calls == []


async def test_create_session_requires_account(client):
    response = await client.post("/api/v1/sessions/", json={"meeting_url": MEETING_URL})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "account_id" in response.json()["detail"]


async def test_create_session_rejects_non_string_fields(client, repository, dispatch_client):
    response = await client.post("/api/v1/sessions/", json={"meetingUrl": 123, "accountId": GRANT_ID})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "meeting_url must be a string"
    assert repository.list_all() == []
    assert dispatch_client.calls == []


async def test_create_session_dispatch_failure_marks_session_failed(client, dispatch_client):
    dispatch_client.deploy_error = NotetakerUnavailableError("Gateway error 504 - notetaker API is temporarily unavailable")

    response = await client.post("/api/v1/sessions/", json={"meeting_url": MEETING_URL, "account_id": GRANT_ID})

    assert response.status_code == status.HTTP_201_CREATED
    session = response.json()
    assert session["status"] == SessionStatus.FAILED.value
    assert session["bot_id"] is None
    assert session["progress"]["percentage"] == 0
    assert session["progress"]["message"].startswith("Error: Gateway error 504")


async def test_get_unknown_session_returns_404(client):
    response = await client.get("/api/v1/sessions/meeting_missing")
    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_list_sessions_newest_first(client, dispatch_client):
    first = await client.post("/api/v1/sessions/", json={"meeting_url": MEETING_URL, "account_id": GRANT_ID})
    dispatch_client.next_bot_id = "bot-2"
    second = await client.post("/api/v1/sessions/", json={"meeting_url": MEETING_URL, "account_id": GRANT_ID})

    response = await client.get("/api/v1/sessions/")

    assert response.status_code == status.HTTP_200_OK
    ids = [s["id"] for s in response.json()["sessions"]]
    assert ids == [second.json()["id"], first.json()["id"]]
    overview = response.json()["sessions"][0]
    assert set(overview) == {"id", "meeting_url", "status", "progress", "bot_id", "created_at", "updated_at"}


async def test_summary_not_ready_returns_409(client):
    created = await client.post("/api/v1/sessions/", json={"meeting_url": MEETING_URL, "account_id": GRANT_ID})

    response = await client.get(f"/api/v1/sessions/{created.json()['id']}/summary")

    assert response.status_code == status.HTTP_409_CONFLICT
    assert "joining" in response.json()["detail"]


async def test_summary_for_unknown_session_returns_404(client):
    response = await client.get("/api/v1/sessions/meeting_missing/summary")
    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_resync_applies_polled_state(client, dispatch_client):
    created = await client.post("/api/v1/sessions/", json={"meeting_url": MEETING_URL, "account_id": GRANT_ID})
    dispatch_client.notetakers["bot-1"] = NotetakerInfo(id="bot-1", grant_id=GRANT_ID, state="attending")

    response = await client.post(f"/api/v1/sessions/{created.json()['id']}/resync")

    assert response.status_code == status.HTTP_200_OK
    session = response.json()
    assert session["status"] == SessionStatus.RECORDING.value
    assert session["progress"]["percentage"] == 60


async def test_regenerate_summary_without_transcript_returns_409(client):
    created = await client.post("/api/v1/sessions/", json={"meeting_url": MEETING_URL, "account_id": GRANT_ID})

    response = await client.post(f"/api/v1/sessions/{created.json()['id']}/regenerate-summary")

    assert response.status_code == status.HTTP_409_CONFLICT


async def test_regenerate_summary_fetches_transcript_from_vendor(client, repository, dispatch_client):
    add_session(repository, "meeting_done", status=SessionStatus.FAILED, bot_id="bot-9")
    dispatch_client.transcripts["bot-9"] = TRANSCRIPT_DOC

    response = await client.post("/api/v1/sessions/meeting_done/regenerate-summary")

    assert response.status_code == status.HTTP_200_OK
    summary = response.json()["summary"]
    assert summary["participants"] == ["Alice", "Bob"]
    assert summary["generated_by"] == "basic"

    session = (await client.get("/api/v1/sessions/meeting_done")).json()
    assert session["status"] == SessionStatus.COMPLETED.value
    assert session["transcript"] == TRANSCRIPT_DOC

    summary_response = await client.get("/api/v1/sessions/meeting_done/summary")
    assert summary_response.status_code == status.HTTP_200_OK
    assert summary_response.json()["transcript"] == TRANSCRIPT_DOC
