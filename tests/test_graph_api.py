import pytest
import requests
import responses

from socialconnect.services.social.errors import PublicationError, RetryablePublicationError, TokenExpiredError
from socialconnect.services.social.publishers import graph_api
from socialconnect.services.social.publishers.graph_api import (
    GRAPH_API_BASE,
    extract_graph_error_message,
    is_retryable_error,
    raise_for_graph_error,
    verify_facebook_post_published,
    verify_instagram_post_published,
    wait_for_status,
)


def test_error_message_prefers_user_facing_text():
    assert extract_graph_error_message({"message": "(#100) bad", "error_user_msg": "Image too small"}) == "Image too small"
    assert extract_graph_error_message({"message": "(#100) bad"}) == "(#100) bad"
    assert extract_graph_error_message({"code": 2}) == "Graph API error (code: 2)"
    assert extract_graph_error_message(None) == "Unknown error"


@pytest.mark.parametrize("error", [
    {"code": 4, "message": "Application request limit reached"},
    {"code": 613},
    {"code": 9007, "message": "Media ID is not available", "error_user_msg": "The media is not ready for publishing, please wait"},
    {"code": 9007, "message": "Medya yayınlanmaya hazır değil"},
])
def test_retryable_errors(error):
    assert is_retryable_error(error) is True


def test_other_errors_are_not_retryable():
    assert is_retryable_error({"code": 100, "message": "Invalid parameter"}) is False
    assert is_retryable_error(None) is False


def test_raise_for_graph_error_classifies():
    raise_for_graph_error({"id": "1"}, "ok")

    with pytest.raises(TokenExpiredError):
        raise_for_graph_error({"error": {"code": 190, "message": "Session has expired"}}, "post")

    with pytest.raises(RetryablePublicationError) as exc:
        raise_for_graph_error({"error": {"code": 4, "message": "limit"}}, "post")
    assert exc.value.original_error == {"code": 4, "message": "limit"}

    with pytest.raises(PublicationError) as exc:
        raise_for_graph_error({"error": {"code": 100, "message": "Invalid parameter"}}, "Failed to post FB photo")
    assert not isinstance(exc.value, RetryablePublicationError)
    assert exc.value.message == "Failed to post FB photo: Invalid parameter"

    # no error envelope but no id either
    with pytest.raises(PublicationError):
        raise_for_graph_error({}, "post")


def test_wait_for_status_reaches_target(no_sleep):
    answers = iter([{"status_code": "IN_PROGRESS"}, {}, {"status_code": "FINISHED"}])
    assert wait_for_status("c1", lambda: next(answers), ["FINISHED"], ["ERROR"]) == "FINISHED"


def test_wait_for_status_error_is_terminal(no_sleep):
    with pytest.raises(PublicationError) as exc:
        wait_for_status("c1", lambda: {"status_code": "ERROR"}, ["FINISHED"], ["ERROR"])
    assert exc.value.code == "PROCESSING_FAILED"
    assert not isinstance(exc.value, RetryablePublicationError)


def test_wait_for_status_timeout_is_retryable(no_sleep):
    calls = []

    def checker():
        calls.append(1)
        return {"status": "PROCESSING"}

    with pytest.raises(RetryablePublicationError) as exc:
        wait_for_status("c1", checker, ["FINISHED"], ["ERROR"], max_attempts=4)
    assert len(calls) == 4
    assert "PROCESSING" in exc.value.message


def test_wait_for_status_tolerates_failed_checks(no_sleep):
    answers = iter([RetryablePublicationError("network"), {"status_code": "FINISHED"}])

    def checker():
        answer = next(answers)
        if isinstance(answer, Exception):
            raise answer
        return answer

    assert wait_for_status("c1", checker, ["FINISHED"], ["ERROR"]) == "FINISHED"


@responses.activate
def test_graph_post_serializes_booleans_and_drops_none():
    responses.add(responses.POST, f"{GRAPH_API_BASE}/page-1/photos", json={"id": "p1"})

    data = graph_api.graph_post("/page-1/photos", {"published": False, "caption": None}, "tok")

    assert data == {"id": "p1"}
    body = responses.calls[0].request.body
    assert "published=false" in body
    assert "caption" not in body
    assert "access_token=tok" in body


@responses.activate
def test_verify_facebook_post(no_sleep):
    responses.add(responses.GET, f"{GRAPH_API_BASE}/post-1",
                  json={"id": "post-1", "permalink_url": "https://facebook.com/post-1"})
    responses.add(responses.GET, f"{GRAPH_API_BASE}/post-2",
                  json={"error": {"code": 100, "message": "Unsupported get request"}})

    assert verify_facebook_post_published("post-1", "tok") == {"exists": True, "permalink": "https://facebook.com/post-1"}
    assert verify_facebook_post_published("post-2", "tok") == {"exists": False}


@responses.activate
def test_verify_instagram_treats_field_errors_as_existing(no_sleep):
    responses.add(responses.GET, f"{GRAPH_API_BASE}/m-1",
                  json={"error": {"code": 100, "message": "Tried accessing nonexisting field (permalink)"}})
    responses.add(responses.GET, f"{GRAPH_API_BASE}/m-2",
                  json={"error": {"code": 100, "message": "Object with ID 'm-2' does not exist"}})

    assert verify_instagram_post_published("m-1", "tok")["exists"] is True
    assert verify_instagram_post_published("m-2", "tok") == {"exists": False}


@responses.activate
def test_verify_survives_network_failures(no_sleep):
    responses.add(responses.GET, f"{GRAPH_API_BASE}/post-1", body=requests.ConnectionError("reset"))
    responses.add(responses.GET, f"{GRAPH_API_BASE}/post-1", json={"id": "post-1", "permalink_url": "https://facebook.com/post-1"})
    responses.add(responses.GET, f"{GRAPH_API_BASE}/m-1", body=requests.ConnectionError("reset"))

    assert verify_facebook_post_published("post-1", "tok")["exists"] is True
    assert verify_instagram_post_published("m-1", "tok") == {"exists": False}
    assert len([c for c in responses.calls if c.request.url.startswith(f"{GRAPH_API_BASE}/m-1")]) == 3
