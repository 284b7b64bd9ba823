import base64

import pytest
from unittest.mock import MagicMock, patch

from evidence_harness.browser_interaction.http_session import HttpSession, decode_data_url, extract_title


def test_extract_title():
    assert extract_title("<html><head><TITLE>\n  The &amp; Internet \n</TITLE></head></html>") == "The & Internet"
    assert extract_title("<p>no title</p>") == ""


def test_decode_data_url():
    assert decode_data_url("data:text/html,<h1>Hi%20there</h1>") == "<h1>Hi there</h1>"
    encoded = base64.b64encode(b"<title>B64</title>").decode()
    assert decode_data_url(f"data:text/html;base64,{encoded}") == "<title>B64</title>"


def test_offline_navigation():
    with HttpSession() as session:
        assert session.url == "about:blank"
        assert session.title == ""
        session.navigate("data:text/html,<title>Offline</title><h1>Hello</h1>")
        assert session.title == "Offline"
        assert "<h1>Hello</h1>" in session.page_source


def test_navigation_over_http():
    response = MagicMock()
    response.url = "https://the-internet.herokuapp.com/login"
    response.text = "<title>The Internet</title>"
    with patch("evidence_harness.browser_interaction.http_session.requests.Session") as mock_session:
        mock_session.return_value.get.return_value = response
        mock_session.return_value.headers = {}
        session = HttpSession(timeout=5)
        session.navigate("https://the-internet.herokuapp.com/login")

        mock_session.return_value.get.assert_called_once_with("https://the-internet.herokuapp.com/login", timeout=5)
        response.raise_for_status.assert_called_once()
        assert session.url == "https://the-internet.herokuapp.com/login"
        assert session.title == "The Internet"
        session.close()
        mock_session.return_value.close.assert_called_once()


def test_cannot_capture_pixels():
    session = HttpSession().start()
    assert session.can_capture_pixels is False
    with pytest.raises(RuntimeError):
        session.screenshot()
    session.close()


def test_requires_start():
    session = HttpSession()
    with pytest.raises(RuntimeError, match="Session not started"):
        session.url
