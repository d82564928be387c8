# tests.py
import asyncio
import json

import aiohttp
import pytest
from aiohttp.test_utils import TestServer

from Route import Route
from RouteStore import InMemoryRouteStore
from realtime_runner import create_app


def make_route(route_id, legs):
    steps = [
        {"start_location": {"lat": s[0], "lng": s[1]},
         "end_location": {"lat": e[0], "lng": e[1]}}
        for s, e in legs
    ]
    return Route(route_id=route_id, name=route_id,
                 directions={"routes": [{"legs": [{"steps": steps}]}]})


async def recvj(ws, t=5):
    m = await asyncio.wait_for(ws.receive(), t)
    if m.type != aiohttp.WSMsgType.TEXT:
        raise RuntimeError(m.type)
    return json.loads(m.data)


async def wait_clients(app, n, t=5):
    for _ in range(int(t / 0.01)):
        if len(app["registry"]) == n:
            return
        await asyncio.sleep(0.01)
    raise RuntimeError(f"expected {n} clients, have {len(app['registry'])}")


async def _with_two_clients(store, delay_s, body):
    app = create_app(store, delay_s=delay_s)
    server = TestServer(app)
    await server.start_server()
    s = aiohttp.ClientSession()
    a = b = None
    try:
        a = await s.ws_connect(server.make_url("/ws"))
        b = await s.ws_connect(server.make_url("/ws"))
        await wait_clients(app, 2)
        await body(app, a, b)
    finally:
        for ws in (a, b):
            if ws is not None:
                await ws.close()
        await s.close()
        await server.close()


def request(route_id):
    return {"event": "client:new-points", "data": {"route_id": route_id}}


async def _test_replay_reaches_sender_and_others(app, a, b):
    await a.send_json(request("R1"))

    got_a = [await recvj(a) for _ in range(2)]
    got_b = [await recvj(b) for _ in range(2)]

    assert got_a == [
        {"event": "server:new-points/R1:list", "data": {"route_id": "R1", "lat": 10.0, "lng": 20.0}},
        {"event": "server:new-points/R1:list", "data": {"route_id": "R1", "lat": 11.0, "lng": 21.0}},
    ]
    assert got_b == [
        {"event": "server:new-points:list", "data": {"route_id": "R1", "lat": 10.0, "lng": 20.0}},
        {"event": "server:new-points:list", "data": {"route_id": "R1", "lat": 11.0, "lng": 21.0}},
    ]


async def _test_invalid_payload_emits_nothing(app, a, b):
    await a.send_json({"event": "client:new-points", "data": {"foo": 1}})
    await a.send_json({"event": "client:new-points", "data": None})
    await a.send_str("not json")
    await a.send_json(request("R1"))

    # first thing anyone hears about is the valid request
    first = await recvj(a)
    assert first["event"] == "server:new-points/R1:list"
    assert first["data"]["lat"] == 10.0
    assert (await recvj(b))["data"]["lat"] == 10.0


async def _test_unknown_route_reports_error(app, a, b):
    await a.send_json(request("missing"))

    err = await recvj(a)
    assert err["event"] == "server:new-points:error"
    assert err["data"]["kind"] == "RouteNotFound"
    assert err["data"]["route_id"] == "missing"

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(b.receive(), 0.2)
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(a.receive(), 0.2)


async def _test_disconnect_cancels_replay(app, a, b):
    await a.send_json(request("R1"))
    assert (await recvj(a))["data"]["lat"] == 10.0
    assert (await recvj(b))["data"]["lat"] == 10.0

    await a.close()
    await wait_clients(app, 1)

    # only b's (empty) task set remains
    assert len(app["registry"].tasks) == 1
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(b.receive(), 0.3)


async def collect(ws, n, t=5):
    loop = asyncio.get_running_loop()
    got = []
    for _ in range(n):
        o = await recvj(ws, t)
        got.append((loop.time(), o))
    return got


async def _test_concurrent_replays_interleave(app, a, b):
    await a.send_json(request("R1"))
    await b.send_json(request("R2"))

    # each side gets its own 4 points plus 4 broadcast from the other replay
    got_a, got_b = await asyncio.gather(collect(a, 8), collect(b, 8))

    uni_a = [(ts, o["data"]) for ts, o in got_a if o["event"] == "server:new-points/R1:list"]
    uni_b = [(ts, o["data"]) for ts, o in got_b if o["event"] == "server:new-points/R2:list"]
    assert [(d["lat"], d["lng"]) for _, d in uni_a] == [(10, 20), (11, 21), (12, 22), (13, 23)]
    assert [(d["lat"], d["lng"]) for _, d in uni_b] == [(50, 60), (51, 61), (52, 62), (53, 63)]

    # b's stream starts before a's finishes: the delay does not block b
    assert uni_b[0][0] < uni_a[-1][0]
    assert uni_a[0][0] < uni_b[-1][0]

    cast_a = [o["data"]["route_id"] for _, o in got_a if o["event"] == "server:new-points:list"]
    cast_b = [o["data"]["route_id"] for _, o in got_b if o["event"] == "server:new-points:list"]
    assert cast_a == ["R2"] * 4
    assert cast_b == ["R1"] * 4


def store_r1():
    return InMemoryRouteStore(make_route("R1", [((10, 20), (11, 21))]))


def test_replay_reaches_sender_and_others():
    asyncio.run(_with_two_clients(store_r1(), 0.01, _test_replay_reaches_sender_and_others))


def test_invalid_payload_emits_nothing():
    asyncio.run(_with_two_clients(store_r1(), 0.01, _test_invalid_payload_emits_nothing))


def test_unknown_route_reports_error():
    asyncio.run(_with_two_clients(store_r1(), 0.01, _test_unknown_route_reports_error))


def test_disconnect_cancels_replay():
    asyncio.run(_with_two_clients(store_r1(), 10.0, _test_disconnect_cancels_replay))


def test_concurrent_replays_interleave():
    store = InMemoryRouteStore(
        make_route("R1", [((10, 20), (11, 21)), ((12, 22), (13, 23))]),
        make_route("R2", [((50, 60), (51, 61)), ((52, 62), (53, 63))]),
    )
    asyncio.run(_with_two_clients(store, 0.1, _test_concurrent_replays_interleave))


if __name__ == "__main__":
    test_replay_reaches_sender_and_others()
    test_invalid_payload_emits_nothing()
    test_unknown_route_reports_error()
    test_disconnect_cancels_replay()
    test_concurrent_replays_interleave()
