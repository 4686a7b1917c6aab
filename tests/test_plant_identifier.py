import pytest
import requests

from core.exceptions import IdentificationError
from services.plant_identifier import PlantNetClient, Candidate, best_match_fields
from tests.conftest import FakeResponse, FakeSession, RecordingSleep, PLANTNET_BODY


def client_with(responses):
    session = FakeSession(responses)
    sleep = RecordingSleep()
    return PlantNetClient(api_key="key", session=session, sleep=sleep), session, sleep


async def test_sends_every_image_with_auto_organ():
    client, session, _ = client_with([FakeResponse(200, PLANTNET_BODY)])

    await client.identify([b"one", b"two"])

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://my-api.plantnet.org/v2/identify/all"
    assert kwargs["params"] == {"api-key": "key"}
    assert [f[1][0] for f in kwargs["files"]] == ["plant_0.jpg", "plant_1.jpg"]
    assert all(f[0] == "images" and f[1][2] == "image/jpeg" for f in kwargs["files"])
    assert kwargs["data"] == {"organs": ["auto", "auto"]}
    assert kwargs["timeout"] == 30


async def test_returns_candidates_best_first():
    client, _, sleep = client_with([FakeResponse(200, PLANTNET_BODY)])

    candidates = await client.identify([b"img"])

    assert [c.score for c in candidates] == [0.87, 0.05]
    assert candidates[0].species["scientificNameWithoutAuthor"] == "Monstera deliciosa"
    assert sleep.delays == []


async def test_two_failures_then_success():
    client, session, sleep = client_with([
        requests.ConnectionError("connection reset"),
        FakeResponse(503, {"message": "busy"}),
        FakeResponse(200, PLANTNET_BODY),
    ])

    candidates = await client.identify([b"img"])

    assert len(session.calls) == 3
    assert sleep.delays == [2, 4]
    assert candidates[0].score == 0.87


async def test_gives_up_after_three_attempts():
    client, session, sleep = client_with([
        requests.Timeout("first"),
        requests.Timeout("second"),
        requests.Timeout("read timed out"),
    ])

    with pytest.raises(IdentificationError) as excinfo:
        await client.identify([b"img"])

    assert len(session.calls) == 3
    assert sleep.delays == [2, 4]
    assert "after multiple attempts" in str(excinfo.value)
    assert "read timed out" in str(excinfo.value)


@pytest.mark.parametrize("body", [{}, {"results": []}, {"results": None}, ["not", "a", "dict"]])
async def test_empty_or_malformed_results_count_as_failures(body):
    client, session, _ = client_with([FakeResponse(200, body)])

    with pytest.raises(IdentificationError, match="Invalid response"):
        await client.identify([b"img"])

    assert len(session.calls) == 3


async def test_non_json_body_is_a_failure():
    client, session, _ = client_with([FakeResponse(200, None, text="<html>")])

    with pytest.raises(IdentificationError):
        await client.identify([b"img"])

    assert len(session.calls) == 3


def test_best_match_fields():
    match = best_match_fields(Candidate(species=PLANTNET_BODY["results"][0]["species"], score=0.87))

    assert match.scientific_name == "Monstera deliciosa"
    assert match.common_name == "Swiss cheese plant"
    assert match.family == "Araceae"
    assert match.confidence == 0.87


def test_best_match_defaults_to_unknown():
    match = best_match_fields(Candidate(species={"scientificNameWithoutAuthor": "Ficus lyrata"}, score=0.4))

    assert match.common_name == "Unknown"
    assert match.family == "Unknown"
