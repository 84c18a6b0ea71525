"""Tests for FieldService."""

import pytest

from graincalc.core.client import DocumentStoreError
from graincalc.data.farms import FarmAccessError, FarmService
from graincalc.data.fields import FieldService
from graincalc.data.models import FARMS, FIELDS


@pytest.fixture
def fields(store):
    return FieldService(store)


@pytest.fixture
async def farm(store):
    return await FarmService(store).create("u1", "Home Place")


class TestCreate:
    async def test_create_links_field_to_farm(self, fields, store, farm):
        field = await fields.create("u1", farm.id, " Back 40 ", 40)

        assert field.name == "Back 40"
        assert field.acres == 40
        assert field.farm_id == farm.id
        assert field.calculations == ()
        assert (await store.get(FARMS, farm.id)).data["fieldIds"] == [field.id]

    @pytest.mark.parametrize("acres", [0, -5, "40", True, None])
    async def test_invalid_acres(self, fields, farm, acres):
        with pytest.raises(ValueError, match="acres"):
            await fields.create("u1", farm.id, "Back 40", acres)

    async def test_name_required(self, fields, farm):
        with pytest.raises(ValueError, match="name"):
            await fields.create("u1", farm.id, "", 40)

    async def test_non_member_rejected(self, fields, farm):
        with pytest.raises(FarmAccessError):
            await fields.create("stranger", farm.id, "Back 40", 40)

    async def test_farm_link_failure_is_not_fatal(self, fields, store, farm, monkeypatch, caplog):
        async def broken_update(*args, **kwargs):
            raise DocumentStoreError("write rejected")

        monkeypatch.setattr(store, "update", broken_update)
        field = await fields.create("u1", farm.id, "Back 40", 40)

        assert await store.get(FIELDS, field.id) is not None
        assert "Failed to add field" in caplog.text


class TestRead:
    async def test_get_all_scoped_to_farm(self, fields, store, farm):
        mine = await fields.create("u1", farm.id, "Back 40", 40)
        await store.set(FIELDS, "elsewhere", {"farmId": "other-farm", "name": "Other", "acres": 10})
        assert [f.id for f in await fields.get_all("u1", farm.id)] == [mine.id]

    async def test_get_all_requires_membership(self, fields, farm):
        await fields.create("u1", farm.id, "Back 40", 40)
        assert await fields.get_all("stranger", farm.id) == []

    async def test_get_by_id_checks_farm(self, fields, store, farm):
        await store.set(FIELDS, "elsewhere", {"farmId": "other-farm", "name": "Other", "acres": 10})
        assert await fields.get_by_id("u1", farm.id, "elsewhere") is None
        assert await fields.get_by_id("u1", farm.id, "missing") is None


class TestUpdateDelete:
    async def test_update(self, fields, farm):
        field = await fields.create("u1", farm.id, "Back 40", 40)
        updated = await fields.update("u1", farm.id, field.id, {"acres": 42.5, "farmId": "hijack"})
        assert updated.acres == 42.5
        assert updated.farm_id == farm.id

    async def test_update_missing_field(self, fields, farm):
        with pytest.raises(LookupError):
            await fields.update("u1", farm.id, "missing", {"acres": 1})

    async def test_update_invalid_acres(self, fields, farm):
        field = await fields.create("u1", farm.id, "Back 40", 40)
        with pytest.raises(ValueError):
            await fields.update("u1", farm.id, field.id, {"acres": -1})

    async def test_delete_unlinks_from_farm(self, fields, store, farm):
        field = await fields.create("u1", farm.id, "Back 40", 40)
        assert await fields.delete("u1", farm.id, field.id) is True
        assert await store.get(FIELDS, field.id) is None
        assert (await store.get(FARMS, farm.id)).data["fieldIds"] == []

    async def test_delete_missing(self, fields, farm):
        assert await fields.delete("u1", farm.id, "missing") is False
