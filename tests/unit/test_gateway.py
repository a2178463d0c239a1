"""
Unit tests for the service gateways. HTTP traffic goes to httpx.MockTransport.
"""
import threading

import httpx

from celpip_prep.delivery.completion import finish_test
from celpip_prep.delivery.machine import initial_state
from celpip_prep.schemas.attempt import Attempt
from celpip_prep.schemas.practice_set import PracticeSet
from celpip_prep.utils.gateway import HttpGateway, LocalGateway, published_sets


def gateway_for(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpGateway("http://test/", client=client)


class TestHttpGateway:
    async def test_get_sets(self, full_set_payload):
        def handler(request):
            assert request.url.path == "/api/sets"
            return httpx.Response(200, json=[full_set_payload])

        sets = await gateway_for(handler).get_sets()
        assert [s.id for s in sets] == ["set-full"]

    async def test_login_failure_is_none(self):
        gw = gateway_for(lambda request: httpx.Response(401, json={"detail": "no"}))
        assert await gw.login("a@b.com", "x") is None

    async def test_network_error_degrades(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        gw = gateway_for(handler)
        assert await gw.get_sets() == []
        assert await gw.evaluate_writing("p", "r") is None

    async def test_evaluate_sends_camel_case(self):
        seen = {}

        def handler(request):
            seen["body"] = request.read()
            return httpx.Response(200, json={"bandScore": 7, "feedback": "ok"})

        result = await gateway_for(handler).evaluate_writing("Task", "Answer")
        assert result.band_score == 7
        assert b'"questionText"' in seen["body"]
        assert b'"userResponse"' in seen["body"]


class TestLocalGateway:
    async def test_attempts_round_trip(self, session_factory):
        gw = LocalGateway(session_factory)
        await gw.save_attempt(Attempt(id="a1", user_id="u1", set_id="s", set_title="S", date="2026-01-01"))
        # a second write of the same id is logged and dropped
        await gw.save_attempt(Attempt(id="a1", user_id="u1", set_id="s", set_title="S", date="2026-01-01"))
        assert [a.id for a in await gw.get_attempts("u1")] == ["a1"]

    async def test_no_evaluator(self, session_factory):
        assert await LocalGateway(session_factory).evaluate_writing("p", "r") is None

    async def test_sets(self, session_factory, full_set):
        gw = LocalGateway(session_factory)
        assert await gw.save_set(full_set)
        assert [s.id for s in published_sets(await gw.get_sets())] == ["set-full"]
        await gw.delete_set("set-full")
        assert await gw.get_sets() == []

    async def test_signup_then_login(self, session_factory):
        gw = LocalGateway(session_factory)
        user = await gw.signup("a@mail.com", "pw", "A")
        assert (await gw.login("a@mail.com", "pw")).id == user.id
        assert await gw.signup("a@mail.com", "pw", "A") is None

    async def test_finished_sittings_list_newest_first(self, session_factory):
        gw = LocalGateway(session_factory)
        practice_set = PracticeSet(id="s", title="S")
        ids = []
        for _ in range(5):
            result = await finish_test(practice_set, initial_state(), "u1", gw)
            ids.append(result.attempt.id)
        assert [a.id for a in await gw.get_attempts("u1")] == list(reversed(ids))

    async def test_database_work_leaves_event_loop_thread(self, session_factory):
        seen = []

        def factory():
            seen.append(threading.get_ident())
            return session_factory()

        await LocalGateway(factory).get_sets()
        assert seen and seen[0] != threading.get_ident()
