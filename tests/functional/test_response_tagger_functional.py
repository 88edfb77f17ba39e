"""Functional tests for the framework-neutral ResponseTagger.

Covers digest eligibility, steady tags across volatile tokens, session
identity, Cache-Control policy and body close propagation. Responses are
built directly; no ASGI server is involved.
"""

from __future__ import annotations

import io
import os
import tempfile

import pytest

from steady_etag.http.body import ChunkedBody, FileBody, ReplayBody
from steady_etag.middleware.tagger import DEFAULT_CACHE_CONTROL, Response, ResponseTagger

HELLO_ETAG = 'W/"dffd6021bb2bd5b0af676290809ec3a5"'


def _html_response(html: str, *, headers: dict | None = None, request: dict | None = None,
                   tagger: ResponseTagger | None = None) -> Response:
    merged = {"Content-Type": "text/html"}
    merged.update(headers or {})
    response = Response(200, merged, ChunkedBody([html]))
    return (tagger or ResponseTagger()).process(request or {}, response)


def _session(session_id: str) -> dict:
    return {"session": {"session_id": session_id}}


def _text_response(status: int, chunks, headers: dict | None = None, tagger: ResponseTagger | None = None) -> Response:
    merged = {"Content-Type": "text/plain"}
    merged.update(headers or {})
    return (tagger or ResponseTagger()).process({}, Response(status, merged, ChunkedBody(chunks)))


# ----------------------------------------------------------------------------
# Steady digests
# ----------------------------------------------------------------------------


def test_equal_bodies_get_equal_etags():
    first = _html_response("Foo")
    second = _html_response("Foo")
    assert first.headers["ETag"]
    assert first.headers["ETag"] == second.headers["ETag"]


def test_different_bodies_get_different_etags():
    assert _html_response("Foo").headers["ETag"] != _html_response("Bar").headers["ETag"]


def test_csrf_meta_tag_is_ignored():
    first = _html_response('<head>\n  <meta name="csrf-token" content="6EueAlhls9P" />\n</head>\n')
    second = _html_response('<head>\n  <meta name="csrf-token" content="qMN0fkVqOg" />\n</head>\n')
    assert first.headers["ETag"] == second.headers["ETag"]


def test_authenticity_token_input_is_ignored():
    first = _html_response('<form>\n  <input type="hidden" name="authenticity_token" content="123" />\n</form>\n')
    second = _html_response('<form>\n  <input type="hidden" name="authenticity_token" value="456" />\n</form>\n')
    assert first.headers["ETag"] == second.headers["ETag"]


def test_csp_nonce_meta_tag_is_ignored():
    first = _html_response('<head>\n  <meta name="csp-nonce" content="123" />\n</head>\n')
    second = _html_response('<head>\n  <meta name="csrf-token" content="456" />\n</head>\n')
    assert first.headers["ETag"] == second.headers["ETag"]


def test_script_nonce_attribute_is_ignored():
    first = _html_response('<script nonce="123">console.log("hi world")</script>\n')
    second = _html_response('<script nonce="456">console.log("hi world")</script>\n')
    assert first.headers["ETag"] == second.headers["ETag"]


def test_returned_body_is_not_normalised():
    html = '<head>\n  <meta name="csrf-token" content="6EueAlhls9P" />\n</head>\n'
    response = _html_response(html)
    assert response.read() == html.encode("utf-8")


def test_etags_are_weak():
    assert _html_response("Foo").headers["ETag"].startswith('W/"')


# ----------------------------------------------------------------------------
# Session identity
# ----------------------------------------------------------------------------


def test_session_and_no_session_differ():
    with_session = _html_response("content", request=_session("1"))
    without = _html_response("content", request={})
    assert with_session.headers["ETag"] != without.headers["ETag"]


def test_different_sessions_differ():
    first = _html_response("content", request=_session("1"))
    second = _html_response("content", request=_session("2"))
    assert first.headers["ETag"] != second.headers["ETag"]


def test_same_session_is_steady():
    first = _html_response("content", request=_session("abc"))
    second = _html_response("content", request=_session("abc"))
    assert first.headers["ETag"] == second.headers["ETag"]


def test_empty_session_id_counts_as_no_session():
    assert _html_response("content", request=_session("")).headers["ETag"] == _html_response("content").headers["ETag"]


def test_custom_session_key():
    tagger = ResponseTagger(session_key="sid")
    keyed = _html_response("content", request={"session": {"sid": "7"}}, tagger=tagger)
    plain = _html_response("content", tagger=tagger)
    assert keyed.headers["ETag"] != plain.headers["ETag"]


# ----------------------------------------------------------------------------
# Eligibility
# ----------------------------------------------------------------------------


@pytest.mark.parametrize("status", [200, 201])
def test_digest_statuses_get_fixed_etag(status):
    response = _text_response(status, ["Hello, World!"])
    assert response.headers["ETag"] == HELLO_ETAG


def test_chunking_does_not_change_etag():
    response = _text_response(200, ["Hello, ", "World!"])
    assert response.headers["ETag"] == HELLO_ETAG


def test_existing_etag_is_kept():
    response = _text_response(200, ["Hello, World!"], headers={"ETag": '"abc"'})
    assert response.headers["ETag"] == '"abc"'


def test_existing_etag_lookup_is_case_insensitive():
    response = _text_response(200, ["Hello, World!"], headers={"etag": '"abc"'})
    assert response.headers.get_all("ETag") == ['"abc"']


def test_empty_body_gets_no_etag():
    response = _text_response(200, [])
    assert "ETag" not in response.headers


def test_empty_body_with_last_modified_gets_no_etag():
    response = _text_response(200, [], headers={"Last-Modified": "Sat, 17 Oct 2026 10:00:00 GMT"})
    assert "ETag" not in response.headers


def test_last_modified_skips_etag():
    response = _text_response(200, ["Hello, World!"], headers={"Last-Modified": "Sat, 17 Oct 2026 10:00:00 GMT"})
    assert "ETag" not in response.headers


def test_non_digest_status_skips_etag():
    response = _text_response(401, ["Access denied."])
    assert "ETag" not in response.headers


def test_no_cache_directive_does_not_skip_etag():
    response = _text_response(200, ["Hello, World!"], headers={"Cache-Control": "no-cache, must-revalidate"})
    assert response.headers["ETag"] == HELLO_ETAG
    assert response.headers["Cache-Control"] == "no-cache, must-revalidate"


def test_zero_copy_body_is_untouched():
    fd, path = tempfile.mkstemp()
    os.close(fd)
    try:
        body = FileBody.open(path)
        response = ResponseTagger().process({}, Response(200, {"Content-Type": "text/plain"}, body))
        assert "ETag" not in response.headers
        assert response.body is body
        assert not body.closed
        body.close()
    finally:
        os.unlink(path)


# ----------------------------------------------------------------------------
# Cache-Control policy
# ----------------------------------------------------------------------------


def test_default_cache_control_when_digested():
    response = _text_response(201, ["Hello, World!"])
    assert response.headers["Cache-Control"] == DEFAULT_CACHE_CONTROL == "max-age=0, private, must-revalidate"


def test_chosen_cache_control_when_digested():
    response = _text_response(201, ["Hello, World!"], tagger=ResponseTagger(None, "public"))
    assert response.headers["Cache-Control"] == "public"


def test_no_digest_cache_control_for_empty_body():
    response = _text_response(200, [], tagger=ResponseTagger("no-cache"))
    assert "ETag" not in response.headers
    assert response.headers["Cache-Control"] == "no-cache"


def test_no_digest_cache_control_for_error_status():
    response = _text_response(500, ["Hello, World!"], tagger=ResponseTagger("no-store"))
    assert "ETag" not in response.headers
    assert response.headers["Cache-Control"] == "no-store"


def test_error_status_without_fallback_has_no_cache_control():
    response = _text_response(500, ["Hello, World!"])
    assert "Cache-Control" not in response.headers


def test_existing_cache_control_is_kept():
    response = _text_response(201, ["Hello, World!"], headers={"Cache-Control": "public"})
    assert response.headers["Cache-Control"] == "public"


def test_cache_control_can_be_disabled():
    response = _text_response(200, ["Hello, World!"], tagger=ResponseTagger(None, None))
    assert response.headers["ETag"] == HELLO_ETAG
    assert "Cache-Control" not in response.headers


# ----------------------------------------------------------------------------
# Body lifecycle
# ----------------------------------------------------------------------------


def test_original_body_closed_only_through_replay():
    source = io.BytesIO()
    response = ResponseTagger().process({}, Response(200, {}, ChunkedBody(source)))
    assert isinstance(response.body, ReplayBody)
    assert not source.closed
    response.body.close()
    assert source.closed


def test_replay_close_reaches_original_once(counting_body):
    original = counting_body([b"Hello, ", b"World!"])
    response = _text_response(200, original)
    assert original.close_calls == 0
    response.body.close()
    response.body.close()
    assert original.close_calls == 1


def test_ineligible_body_is_not_wrapped(counting_body):
    original = counting_body([b"oops"])
    response = _text_response(500, original)
    assert isinstance(response.body, ChunkedBody)
    assert response.body.source is original
    assert original.close_calls == 0


def test_read_failure_closes_original_and_propagates(counting_body):
    original = counting_body([b"a", b"b"], fail_after=1)
    with pytest.raises(OSError):
        _text_response(200, original)
    assert original.close_calls == 1


def test_close_failure_propagates_from_replay(counting_body):
    original = counting_body([b"Hello, World!"], fail_close=True)
    response = _text_response(200, original)
    assert response.headers["ETag"] == HELLO_ETAG
    with pytest.raises(OSError, match="upstream body close failed"):
        response.body.close()
    assert original.close_calls == 1
    response.body.close()
    assert original.close_calls == 1
