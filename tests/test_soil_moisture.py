"""Tests for SoilMoistureService."""

import pytest

from graincalc.data.farms import FarmService
from graincalc.data.soil_moisture import SoilMoistureService


@pytest.fixture
def soil(store):
    return SoilMoistureService(store)


@pytest.fixture
async def farm(store):
    return await FarmService(store).create("u1", "Home Place")


@pytest.fixture
async def site(soil, farm):
    return await soil.save_field("u1", farm.id, "River bottom")


class TestSites:
    async def test_create_and_rename(self, soil, farm, site):
        assert site.name == "River bottom"
        assert site.readings == ()

        renamed = await soil.save_field("u1", farm.id, " Creek bottom ", field_id=site.id)
        assert renamed.name == "Creek bottom"
        assert [s.id for s in await soil.get_all_fields("u1", farm.id)] == [site.id]

    async def test_rename_missing(self, soil, farm):
        with pytest.raises(LookupError):
            await soil.save_field("u1", farm.id, "X", field_id="missing")

    async def test_name_required(self, soil, farm):
        with pytest.raises(ValueError):
            await soil.save_field("u1", farm.id, " ")

    async def test_delete(self, soil, farm, site):
        assert await soil.delete_field("u1", farm.id, site.id) is True
        assert await soil.get_field_by_id("u1", farm.id, site.id) is None

    async def test_hidden_from_non_members(self, soil, farm, site):
        assert await soil.get_all_fields("stranger", farm.id) == []
        assert await soil.delete_field("stranger", farm.id, site.id) is False


class TestReadings:
    async def test_readings_kept_newest_first(self, soil, farm, site):
        await soil.save_reading("u1", farm.id, site.id, {"date": "2024-05-01", "moisture": 30})
        await soil.save_reading("u1", farm.id, site.id, {"date": "2024-06-01", "moisture": 22, "depth": 12})
        await soil.save_reading("u1", farm.id, site.id, {"date": "2024-04-01", "moisture": 35})

        site = await soil.get_field_by_id("u1", farm.id, site.id)
        assert [r.moisture for r in site.readings] == [22, 30, 35]
        assert site.readings[0].depth == 12
        assert site.readings[1].depth is None

    async def test_save_reading_assigns_id_and_date(self, soil, farm, site):
        reading = await soil.save_reading("u1", farm.id, site.id, {"moisture": 28})
        assert reading.id
        assert reading.date.endswith("Z")

    async def test_same_id_replaces(self, soil, farm, site):
        first = await soil.save_reading("u1", farm.id, site.id, {"date": "2024-05-01", "moisture": 30})
        await soil.save_reading("u1", farm.id, site.id, {"id": first.id, "date": "2024-05-01", "moisture": 31})

        site = await soil.get_field_by_id("u1", farm.id, site.id)
        assert [(r.id, r.moisture) for r in site.readings] == [(first.id, 31)]

    async def test_reading_for_missing_site(self, soil, farm):
        with pytest.raises(LookupError):
            await soil.save_reading("u1", farm.id, "missing", {"moisture": 10})

    async def test_delete_reading(self, soil, farm, site):
        reading = await soil.save_reading("u1", farm.id, site.id, {"moisture": 28})
        assert await soil.delete_reading("u1", farm.id, site.id, reading.id) is True
        assert await soil.delete_reading("u1", farm.id, site.id, reading.id) is False
        assert (await soil.get_field_by_id("u1", farm.id, site.id)).readings == ()
