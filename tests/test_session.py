"""Tests for cookie-based session resolution."""

from ratemate.src.core.session import ResolvedSession, SessionResolver


class RecordingResponse:
    def __init__(self):
        self.cookies = []

    def set_cookie(self, **kwargs):
        self.cookies.append(kwargs)


class TestSessionResolver:
    def test_existing_cookie_is_reused(self):
        resolver = SessionResolver(cookie_name="session_id", max_age=604800, secure=False)

        session = resolver.resolve({"session_id": "abc"})

        assert session == ResolvedSession(id="abc", is_new=False)

    def test_missing_cookie_mints_unique_ids(self):
        resolver = SessionResolver(cookie_name="session_id", max_age=604800, secure=False)

        first = resolver.resolve({})
        second = resolver.resolve({"other": "x"})

        assert first.is_new and second.is_new
        assert first.id != second.id
        assert len(first.id) == 36

    def test_empty_cookie_counts_as_missing(self):
        resolver = SessionResolver(cookie_name="session_id", max_age=604800, secure=False)

        assert resolver.resolve({"session_id": ""}).is_new

    def test_issue_sets_cookie_for_new_session(self):
        resolver = SessionResolver(cookie_name="session_id", max_age=604800, secure=True)
        response = RecordingResponse()

        resolver.issue(response, ResolvedSession(id="fresh", is_new=True))

        assert response.cookies == [{"key": "session_id", "value": "fresh", "max_age": 604800, "path": "/", "secure": True, "httponly": True, "samesite": "lax"}]

    def test_issue_skips_existing_session(self):
        resolver = SessionResolver(cookie_name="session_id", max_age=604800, secure=False)
        response = RecordingResponse()

        resolver.issue(response, ResolvedSession(id="abc", is_new=False))

        assert response.cookies == []

    def test_from_settings(self, dev_settings, prod_settings):
        assert SessionResolver.from_settings(dev_settings).secure is False
        assert SessionResolver.from_settings(prod_settings).secure is True
        assert SessionResolver.from_settings(dev_settings).max_age == 604800
