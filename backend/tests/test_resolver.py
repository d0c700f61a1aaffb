from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from layers.errors import MalformedCollection, SourceFetchError, SourceUnavailable
from layers.resolver import SourceResolver
from layers.transport import DefaultTransport, FileTransport, HttpTransport


def _fc_text(name: str) -> str:
    return json.dumps(
        {
            "type": "FeatureCollection",
            "name": name,
            "features": [
                {
                    "type": "Feature",
                    "geometry": {"type": "Point", "coordinates": [-117.16, 32.73]},
                    "properties": {"Name": name},
                }
            ],
        }
    )


class FakeTransport:
    """Serves canned responses; an Exception value is raised instead of returned."""

    def __init__(self, responses: dict[str, object]):
        self.responses = responses
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight: dict[str, int] = {}

    async def fetch(self, location: str) -> str:
        self.calls.append(location)
        key = location.split("/", 1)[0]
        self.in_flight += 1
        self.max_in_flight[key] = max(self.max_in_flight.get(key, 0), self.in_flight)
        try:
            await asyncio.sleep(0)
            resp = self.responses[location]
            if isinstance(resp, Exception):
                raise resp
            return resp
        finally:
            self.in_flight -= 1


_BAD = [
    SourceFetchError("x", "HTTP 404"),
    "<!doctype html><title>Not Found</title>",
    "{not json",
    json.dumps({"type": "Feature"}),
]


@pytest.mark.parametrize("k", [0, 1, 2, 3])
def test_first_valid_candidate_wins(k):
    n = 4
    candidates = [f"poi/{i}" for i in range(n)]
    responses: dict[str, object] = {c: _fc_text(c) for c in candidates}
    for i in range(k):
        responses[candidates[i]] = _BAD[i]
    transport = FakeTransport(responses)

    fc = asyncio.run(SourceResolver(transport).resolve("poi", candidates))

    assert fc.name == candidates[k]
    assert transport.calls == candidates[: k + 1]


def test_all_candidates_failing_raises_typed_error():
    candidates = ["poi/a", "poi/b", "poi/c"]
    transport = FakeTransport({c: SourceFetchError(c, "timeout") for c in candidates})

    with pytest.raises(SourceUnavailable) as exc:
        asyncio.run(SourceResolver(transport).resolve("poi", candidates))

    assert exc.value.key == "poi"
    assert exc.value.attempts == 3
    assert len(exc.value.causes) == 3
    assert transport.calls == candidates


def test_arbitrary_transport_errors_are_wrapped():
    transport = FakeTransport({"poi/a": RuntimeError("socket closed"), "poi/b": _fc_text("poi/b")})

    async def run():
        resolver = SourceResolver(transport)
        fc = await resolver.resolve("poi", ["poi/a", "poi/b"])
        with pytest.raises(SourceUnavailable) as exc:
            await resolver.resolve("poi", ["poi/a"])
        return fc, exc.value

    fc, err = asyncio.run(run())
    assert fc.name == "poi/b"
    assert isinstance(err.causes[0], SourceFetchError)
    assert "RuntimeError" in str(err.causes[0])


def test_markup_cause_is_reported_as_malformed():
    transport = FakeTransport({"poi/a": "<html>Not Found</html>"})
    with pytest.raises(SourceUnavailable) as exc:
        asyncio.run(SourceResolver(transport).resolve("poi", ["poi/a"]))
    assert isinstance(exc.value.causes[0], MalformedCollection)


def test_empty_candidate_list_is_a_configuration_error():
    with pytest.raises(ValueError):
        asyncio.run(SourceResolver(FakeTransport({})).resolve("poi", []))


def test_candidates_of_one_key_are_never_fetched_concurrently():
    candidates = [f"rides/{i}" for i in range(3)]
    responses: dict[str, object] = {c: SourceFetchError(c, "boom") for c in candidates[:-1]}
    responses[candidates[-1]] = _fc_text("rides")
    transport = FakeTransport(responses)

    asyncio.run(SourceResolver(transport).resolve("rides", candidates))

    assert transport.max_in_flight["rides"] == 1


def test_resolve_all_degrades_per_key():
    transport = FakeTransport(
        {
            "poi/release": "<!doctype html>",
            "poi/local": _fc_text("poi"),
            "food/a": SourceFetchError("food/a", "HTTP 500"),
            "food/b": "[]",
            "rides/a": _fc_text("rides"),
        }
    )
    results = asyncio.run(
        SourceResolver(transport).resolve_all(
            {
                "poi": ["poi/release", "poi/local"],
                "food": ["food/a", "food/b"],
                "rides": ["rides/a"],
            }
        )
    )

    assert list(results) == ["poi", "food", "rides"]
    assert results["poi"].ok and results["poi"].collection.name == "poi"
    assert results["rides"].ok
    assert not results["food"].ok
    assert results["food"].collection is None
    assert results["food"].error.attempts == 2


def test_file_transport_reads_relative_and_absolute_paths(tmp_path):
    (tmp_path / "data").mkdir()
    target = tmp_path / "data" / "nodes.geojson"
    target.write_text(_fc_text("nodes"), encoding="utf-8")
    transport = FileTransport(root=tmp_path)

    async def run():
        return (
            await transport.fetch("data/nodes.geojson"),
            await transport.fetch("/data/nodes.geojson"),
            await transport.fetch(str(target)),
            await transport.fetch(f"file://{target}"),
        )

    texts = asyncio.run(run())
    assert len(set(texts)) == 1


def test_file_transport_missing_file_is_a_fetch_error(tmp_path):
    with pytest.raises(SourceFetchError):
        asyncio.run(FileTransport(root=tmp_path).fetch("nope.geojson"))


def test_http_transport_status_errors_are_fetch_errors():
    seen_headers: list[httpx.Headers] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_headers.append(request.headers)
        if request.url.path == "/poi.geojson":
            return httpx.Response(200, text=_fc_text("remote"))
        return httpx.Response(404, text="<html>missing</html>")

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            http = HttpTransport(client=client, user_agent="story-test")
            resolver = SourceResolver(DefaultTransport(http=http, files=FakeTransport({})))
            fc = await resolver.resolve(
                "poi",
                ["https://cdn.example.test/missing.geojson", "https://cdn.example.test/poi.geojson"],
            )
            with pytest.raises(SourceFetchError):
                await http.fetch("https://cdn.example.test/missing.geojson")
            return fc

    fc = asyncio.run(run())
    assert fc.name == "remote"
    assert seen_headers[0]["user-agent"] == "story-test"


def test_default_transport_dispatches_on_scheme():
    http = FakeTransport({"https://x.test/a": _fc_text("http")})
    files = FakeTransport({"data/a.geojson": _fc_text("file")})
    transport = DefaultTransport(http=http, files=files)

    async def run():
        return await transport.fetch("https://x.test/a"), await transport.fetch("data/a.geojson")

    a, b = asyncio.run(run())
    assert json.loads(a)["name"] == "http"
    assert json.loads(b)["name"] == "file"
    assert http.calls == ["https://x.test/a"]
    assert files.calls == ["data/a.geojson"]


def test_hostile_documents_fall_through_to_the_next_candidate():
    huge = "1" + "0" * 400
    overflowing = (
        '{"type":"FeatureCollection","name":"poi/a","features":[{"type":"Feature",'
        f'"geometry":{{"type":"Point","coordinates":[{huge}, 1]}},"properties":{{}}}}]}}'
    )
    transport = FakeTransport(
        {
            "poi/deep": "[" * 100_000 + "]" * 100_000,
            "poi/a": overflowing,
            "poi/b": _fc_text("poi/b"),
        }
    )
    resolver = SourceResolver(transport)

    fc = asyncio.run(resolver.resolve("poi", ["poi/deep", "poi/b"]))
    assert fc.name == "poi/b"
    assert transport.calls == ["poi/deep", "poi/b"]

    # The overflowing coordinate only invalidates that feature's geometry.
    fc = asyncio.run(resolver.resolve("poi", ["poi/a", "poi/b"]))
    assert fc.name == "poi/a"
    assert fc.features[0].geometry is None


def test_parser_failures_outside_the_error_family_become_malformed(monkeypatch):
    import layers.resolver as resolver_mod

    def explode(text, *, location):
        raise RecursionError("maximum recursion depth exceeded")

    monkeypatch.setattr(resolver_mod, "parse_feature_collection", explode)
    transport = FakeTransport({"food/a": _fc_text("food")})

    results = asyncio.run(SourceResolver(transport).resolve_all({"food": ["food/a"]}))

    assert not results["food"].ok
    assert isinstance(results["food"].error.causes[0], MalformedCollection)
