import pytest
import requests

from puzzle_leaderboard.models import Submission
from puzzle_leaderboard.scoring import Leaderboard
from puzzle_leaderboard.store import StoreError, UpstashClient, UpstashStore

URL = "https://example-store.upstash.io"
_INVALID = object()


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=""):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self.payload is _INVALID:
            raise ValueError("no JSON")
        return self.payload


class FakeSession:
    def __init__(self, *responses):
        self.headers = {}
        self.calls = []
        self.responses = list(responses)

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def make_store(*responses, timeout=None):
    session = FakeSession(*responses)
    client = UpstashClient(URL + "/", "s3cret", timeout=timeout, session=session)
    return UpstashStore(client, prefix="puzzle"), session


def test_client_sends_bearer_token_and_timeout():
    store, session = make_store(FakeResponse({"result": 1}), timeout=2.5)
    store.record_if_better("Eve", 4500)
    assert session.headers["Authorization"] == "Bearer s3cret"
    assert session.calls[0]["url"] == URL
    assert session.calls[0]["timeout"] == 2.5


def test_record_if_better_uses_atomic_lt_zadd():
    store, session = make_store(FakeResponse({"result": 1}), FakeResponse({"result": 0}))
    assert store.record_if_better("Eve", 4500) is True
    assert store.record_if_better("Eve", 9000) is False
    assert session.calls[0]["json"] == ["ZADD", "puzzle:best_time", "LT", "CH", 4500, "Eve"]


def test_top_n_parses_flat_withscores_reply():
    store, session = make_store(FakeResponse({"result": ["C", "3000", "B", "3000", "A", "5000"]}))
    assert store.top_n(10) == [("C", 3000), ("B", 3000), ("A", 5000)]
    assert session.calls[0]["json"] == ["ZRANGE", "puzzle:best_time", 0, 9, "WITHSCORES"]


def test_top_n_empty_set():
    store, _ = make_store(FakeResponse({"result": []}))
    assert store.top_n(10) == []


def test_get_turns_hgetall_into_dict():
    store, session = make_store(FakeResponse({"result": ["moves", "12", "last_submit", "1700000000000"]}))
    assert store.get("Bob") == {"moves": "12", "last_submit": "1700000000000"}
    assert session.calls[0]["json"] == ["HGETALL", "puzzle:user:Bob"]


def test_upsert_sends_one_hset():
    store, session = make_store(FakeResponse({"result": 3}))
    store.upsert("Bob", {"moves": 12, "updated": 5, "last_submit": 5})
    assert session.calls[0]["json"] == [
        "HSET", "puzzle:user:Bob", "moves", 12, "updated", 5, "last_submit", 5,
    ]


def test_moves_for_uses_one_pipeline_round_trip():
    store, session = make_store(FakeResponse([{"result": "15"}, {"result": None}]))
    assert store.moves_for(["C", "B"]) == [15, 0]
    assert session.calls[0]["url"] == URL + "/pipeline"
    assert session.calls[0]["json"] == [
        ["HGET", "puzzle:user:C", "moves"],
        ["HGET", "puzzle:user:B", "moves"],
    ]


@pytest.mark.parametrize("response", [
    FakeResponse({"error": "WRONGTYPE Operation against a key"}),
    FakeResponse(None, status_code=401, text="Unauthorized"),
    FakeResponse(_INVALID),
    FakeResponse(["not", "a", "dict"]),
    requests.ConnectionError("connection refused"),
])
def test_store_failures_raise_store_error(response):
    store, _ = make_store(response)
    with pytest.raises(StoreError):
        store.top_n(10)


def test_pipeline_item_error_raises():
    store, _ = make_store(FakeResponse([{"result": "1"}, {"error": "ERR boom"}]))
    with pytest.raises(StoreError, match="ERR boom"):
        store.moves_for(["A", "B"])


def test_pipeline_length_mismatch_raises():
    store, _ = make_store(FakeResponse([{"result": "1"}]))
    with pytest.raises(StoreError):
        store.moves_for(["A", "B"])


def test_leaderboard_over_upstash_degrades_moves():
    store, session = make_store(
        FakeResponse({"result": ["B", "3000", "A", "5000"]}),
        FakeResponse(None, status_code=500, text="pipeline down"),
    )
    top = Leaderboard(store, store).top()
    assert [(e.name, e.time, e.moves) for e in top] == [("B", 3000, 0), ("A", 5000, 0)]
    assert len(session.calls) == 2


def test_leaderboard_submit_over_upstash():
    store, session = make_store(
        FakeResponse({"result": []}),
        FakeResponse({"result": 1}),
        FakeResponse({"result": 4}),
    )
    lb = Leaderboard(store, store, clock=lambda: 1000)
    assert lb.submit(Submission(name="Eve", time=4500, moves=33)) is None
    assert [c["json"][0] for c in session.calls] == ["HGETALL", "ZADD", "HSET"]
    assert session.calls[2]["json"] == [
        "HSET", "puzzle:user:Eve",
        "moves", 33, "updated", 1000, "last_submit", 1000, "time", 4500,
    ]
