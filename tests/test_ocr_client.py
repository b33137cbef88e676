import asyncio

import pytest
import requests

from mispark.utils import ocr_client
from mispark.utils.ocr_client import OcrError, OcrSpaceClient


class FakeResponse:
    def __init__(self, status_code=200, body=None, invalid=False):
        self.status_code = status_code
        self.body = body
        self.invalid = invalid

    def json(self):
        if self.invalid:
            raise ValueError("no json")
        return self.body


def read(monkeypatch, response=None, error=None):
    calls = []

    def fake_post(url, **kwargs):
        calls.append((url, kwargs))
        if error:
            raise error
        return response

    monkeypatch.setattr(ocr_client.requests, "post", fake_post)
    client = OcrSpaceClient(url="https://ocr.test/parse/image", api_key="k", timeout=1)
    return asyncio.run(client.read_text(b"img")), calls


def test_parsed_text_is_returned(monkeypatch):
    text, calls = read(monkeypatch, FakeResponse(body={"ParsedResults": [{"ParsedText": "1AB 2345\r\n"}]}))

    assert text == "1AB 2345\r\n"
    url, kwargs = calls[0]
    assert url == "https://ocr.test/parse/image"
    assert kwargs["headers"] == {"apikey": "k"}
    assert kwargs["data"]["language"] == "eng"


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(status_code=500, body={}),
        FakeResponse(invalid=True),
        FakeResponse(body={"ParsedResults": [], "ErrorMessage": ["quota"]}),
        FakeResponse(body=["unexpected"]),
    ],
)
def test_bad_responses_raise(monkeypatch, response):
    with pytest.raises(OcrError):
        read(monkeypatch, response)


def test_transport_errors_raise(monkeypatch):
    with pytest.raises(OcrError):
        read(monkeypatch, error=requests.ConnectionError("offline"))
