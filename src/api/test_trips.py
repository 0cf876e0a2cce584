"""HTTP-level tests for the itinerary router."""

from typing import AsyncIterator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from api.deps import get_planner
from config import Settings
from gateway import PersistenceError, StaleRevisionError
from itinerary import DayItemCache
from main import create_app
from services import ItineraryPlanner
from test_utils.memory_gateway import InMemoryGateway

TRIP = {
    "owner_id": "user-1",
    "title": "Taipei",
    "start_date": "2025-06-01",
    "end_date": "2025-06-03",
}


@pytest.fixture
def app(settings: Settings, planner: ItineraryPlanner) -> FastAPI:
    app = create_app(settings)
    app.dependency_overrides[get_planner] = lambda: planner
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create_trip(client: httpx.AsyncClient) -> dict:
    response = await client.post("/trips", json=TRIP)
    assert response.status_code == 201
    return response.json()


async def add_item(client: httpx.AsyncClient, day_id: int, **body) -> dict:
    response = await client.post(f"/days/{day_id}/items", json=body)
    assert response.status_code == 201, response.text
    return response.json()


class TestTrips:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        assert [d["day_number"] for d in plan["days"]] == [1, 2, 3]

        response = await client.get(f"/trips/{plan['trip']['id']}")
        assert response.status_code == 200
        assert response.json()["trip"]["title"] == "Taipei"

    @pytest.mark.asyncio
    async def test_end_before_start_is_rejected(self, client: httpx.AsyncClient):
        response = await client.post(
            "/trips", json={**TRIP, "start_date": "2025-06-05"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_trip(self, client: httpx.AsyncClient):
        response = await client.get("/trips/999")
        assert response.status_code == 404
        assert response.json()["detail"] == "Trip 999 not found"

    @pytest.mark.asyncio
    async def test_settings_update(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        response = await client.patch(
            f"/trips/{plan['trip']['id']}", json={"is_24hr": False}
        )
        assert response.status_code == 200
        assert response.json()["is_24hr"] is False

    @pytest.mark.asyncio
    async def test_share_link(self, client: httpx.AsyncClient):
        plan = await create_trip(client)

        shared = (await client.post(f"/trips/{plan['trip']['id']}/share")).json()
        assert shared["share_url"].endswith(f"/share/{shared['share_token']}")

        response = await client.get(f"/share/{shared['share_token']}")
        assert response.status_code == 200
        assert response.json()["trip"]["id"] == plan["trip"]["id"]

    @pytest.mark.asyncio
    async def test_delete(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        response = await client.delete(f"/trips/{plan['trip']['id']}")
        assert response.status_code == 204
        assert (await client.get(f"/trips/{plan['trip']['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_trip_list_splits_upcoming_and_past(self, client: httpx.AsyncClient):
        for title, start, end in [
            ("Old", "2020-01-01", "2020-01-03"),
            ("Later", "2099-05-01", "2099-05-02"),
            ("Sooner", "2098-05-01", "2098-05-02"),
        ]:
            await client.post(
                "/trips",
                json={**TRIP, "title": title, "start_date": start, "end_date": end},
            )
        await client.post("/trips", json={**TRIP, "owner_id": "someone-else"})

        response = await client.get("/trips", params={"owner_id": "user-1"})

        assert response.status_code == 200
        overview = response.json()
        assert [s["trip"]["title"] for s in overview["upcoming"]] == ["Sooner", "Later"]
        assert [s["trip"]["title"] for s in overview["past"]] == ["Old"]

    @pytest.mark.asyncio
    async def test_destinations_and_members(self, client: httpx.AsyncClient):
        response = await client.post(
            "/trips",
            json={**TRIP, "destinations": "大阪, 京都，奈良", "members": "amy@example.com"},
        )
        plan = response.json()
        trip_id = plan["trip"]["id"]
        assert [d["location_name"] for d in plan["destinations"]] == ["大阪", "京都", "奈良"]
        assert {d["country_code"] for d in plan["destinations"]} == {"XX"}

        await client.patch(
            f"/trips/{trip_id}", json={"members": ["bob@example.com", "cy@example.com"]}
        )
        plan = (await client.get(f"/trips/{trip_id}")).json()
        assert [m["email"] for m in plan["members"]] == ["bob@example.com", "cy@example.com"]
        assert {m["role"] for m in plan["members"]} == {"editor"}

        token = (await client.post(f"/trips/{trip_id}/share")).json()["share_token"]
        shared = (await client.get(f"/share/{token}")).json()
        assert shared["members"] == []
        assert len(shared["destinations"]) == 3

    @pytest.mark.asyncio
    async def test_cards_follow_the_clock_setting(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        trip_id, day_id = plan["trip"]["id"], plan["days"][0]["id"]
        await add_item(client, day_id, name="Lunch", start_time="13:30", end_time="15:00")

        cards = (await client.get(f"/trips/{trip_id}")).json()["cards_by_day"]
        assert cards[str(day_id)][0]["start_text"] == "13:30"
        assert cards[str(day_id)][0]["duration_text"] == "1h 30m"

        await client.patch(f"/trips/{trip_id}", json={"is_24hr": False})
        cards = (await client.get(f"/trips/{trip_id}")).json()["cards_by_day"]
        assert cards[str(day_id)][0]["start_text"] == "下午 01:30"
        assert cards[str(day_id)][0]["kind"] == "general"


class TestItems:
    @pytest.mark.asyncio
    async def test_overnight_flight_creates_arrival_card(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        day1, day2 = plan["days"][0]["id"], plan["days"][1]["id"]

        created = await add_item(
            client,
            day1,
            category="transport",
            name="CI100",
            start_time="23:00",
            end_time="01:00",
            details={"sub_type": "flight_train", "arrival_day_offset": 1},
        )

        assert created["item"]["details"]["duration_text"] == "2h 0m"
        assert [c["trip_day_id"] for c in created["companions"]] == [day2]

        items = (await client.get(f"/days/{day2}/items")).json()
        assert items[0]["details"]["is_arrival_card"] is True
        assert items[0]["start_time"] == "01:00:00"

    @pytest.mark.asyncio
    async def test_insert_after(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        day_id = plan["days"][0]["id"]
        first = await add_item(client, day_id, name="first")
        await add_item(client, day_id, name="last")

        response = await client.post(
            f"/days/{day_id}/items",
            params={"after_item_id": first["item"]["id"]},
            json={"name": "middle"},
        )

        assert response.json()["item"]["sort_order"] == 1536

    @pytest.mark.asyncio
    async def test_reorder(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        day_id = plan["days"][0]["id"]
        ids = [(await add_item(client, day_id, name=n))["item"]["id"] for n in "abc"]

        response = await client.post(
            f"/days/{day_id}/reorder", json={"item_id": ids[2], "target_index": 0}
        )

        assert response.status_code == 200
        assert [i["name"] for i in response.json()] == ["c", "a", "b"]

    @pytest.mark.asyncio
    async def test_reorder_unknown_item(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        response = await client.post(
            f"/days/{plan['days'][0]['id']}/reorder",
            json={"item_id": 4242, "target_index": 0},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,status_code",
        [
            (StaleRevisionError(1, 0, 1), 409),
            (PersistenceError("connection reset"), 503),
        ],
    )
    async def test_reorder_write_failures(
        self,
        client: httpx.AsyncClient,
        memory_gateway: InMemoryGateway,
        error: PersistenceError,
        status_code: int,
    ):
        plan = await create_trip(client)
        day_id = plan["days"][0]["id"]
        ids = [(await add_item(client, day_id, name=n))["item"]["id"] for n in "ab"]
        memory_gateway.batch_error = error

        response = await client.post(
            f"/days/{day_id}/reorder", json={"item_id": ids[1], "target_index": 0}
        )

        assert response.status_code == status_code

    @pytest.mark.asyncio
    async def test_suggested_time_on_flight_is_rejected(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        created = await add_item(
            client,
            plan["days"][0]["id"],
            category="transport",
            name="CI100",
            details={"sub_type": "flight_train"},
        )

        response = await client.post(f"/items/{created['item']['id']}/suggested-time")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        created = await add_item(client, plan["days"][0]["id"], name="Night market")
        item_id = created["item"]["id"]

        response = await client.patch(f"/items/{item_id}", json={"notes": "Shilin"})
        assert response.json()["item"]["notes"] == "Shilin"

        assert (await client.delete(f"/items/{item_id}")).status_code == 204
        assert (await client.delete(f"/items/{item_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_details_patch_is_rejected(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        created = await add_item(
            client,
            plan["days"][0]["id"],
            category="transport",
            name="Bus",
            details={"sub_type": "car_bus"},
        )

        response = await client.patch(
            f"/items/{created['item']['id']}", json={"details": {"sub_type": "rocket"}}
        )
        assert response.status_code == 422


class TestAttachments:
    @pytest.mark.asyncio
    async def test_upload_without_storage(self, client: httpx.AsyncClient):
        plan = await create_trip(client)
        created = await add_item(client, plan["days"][0]["id"], name="Museum")

        response = await client.post(
            f"/items/{created['item']['id']}/attachment",
            params={"filename": "ticket.png"},
            content=b"\x89PNG",
            headers={"Content-Type": "image/png"},
        )
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_upload(
        self,
        app: FastAPI,
        client: httpx.AsyncClient,
        memory_gateway: InMemoryGateway,
        day_cache: DayItemCache,
        settings: Settings,
    ):
        class Storage:
            async def upload(self, data: bytes, content_type: str, filename: str) -> str:
                return f"https://files.example.com/{filename}"

        planner = ItineraryPlanner(memory_gateway, day_cache, settings, storage=Storage())
        app.dependency_overrides[get_planner] = lambda: planner
        plan = await create_trip(client)
        created = await add_item(client, plan["days"][0]["id"], name="Museum")

        response = await client.post(
            f"/items/{created['item']['id']}/attachment",
            params={"filename": "ticket.png"},
            content=b"\x89PNG",
            headers={"Content-Type": "image/png"},
        )

        assert response.status_code == 200
        assert response.json()["attachment_type"] == "image"
        assert response.json()["attachment_url"].endswith(".png")
