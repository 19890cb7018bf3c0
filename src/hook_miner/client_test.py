import pytest
import requests

from hook_miner import client
from hook_miner.errors import RemoteMiningError


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self):
        return self._body


class TestMineRemote:
    """Test the HTTP client against a stubbed requests.post"""

    def test_posts_payload(self, monkeypatch):
        calls = []

        def fake_post(url, json, timeout):
            calls.append((url, json, timeout))
            return FakeResponse(200, {"status": "found", "salt": 1})

        monkeypatch.setattr(client.requests, "post", fake_post)
        body = client.mine_remote("http://miner:8000/", "0x" + "ab" * 32, ["arb"], max_iterations=10, timeout=5)

        assert body == {"status": "found", "salt": 1}
        url, payload, timeout = calls[0]
        assert url == "http://miner:8000/api/mine"
        assert payload == {"init_code_hash": "0x" + "ab" * 32, "flags": ["arb"], "max_iterations": 10}
        assert timeout == 5

    def test_deployer_forwarded(self, monkeypatch):
        calls = []
        monkeypatch.setattr(
            client.requests, "post", lambda url, json, timeout: calls.append(json) or FakeResponse(200, {})
        )
        client.mine_remote("http://miner", "0x" + "ab" * 32, 1, deployer="0x" + "11" * 20)
        assert calls[0]["deployer"] == "0x" + "11" * 20

    def test_error_status(self, monkeypatch):
        monkeypatch.setattr(client.requests, "post", lambda url, json, timeout: FakeResponse(400, {"detail": "bad"}))
        with pytest.raises(RemoteMiningError, match="400"):
            client.mine_remote("http://miner", "0x00", 1)

    def test_connection_error(self, monkeypatch):
        def fail(url, json, timeout):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(client.requests, "post", fail)
        with pytest.raises(RemoteMiningError, match="refused"):
            client.mine_remote("http://miner", "0x00", 1)
