"""Tests for EquipmentService."""

import pytest

from graincalc.data.equipment import EquipmentService
from graincalc.data.farms import FarmAccessError, FarmService


@pytest.fixture
def equipment(store):
    return EquipmentService(store)


@pytest.fixture
async def farm(store):
    return await FarmService(store).create("u1", "Home Place")


class TestEquipment:
    async def test_create(self, equipment, farm):
        item = await equipment.save("u1", farm.id, {"name": " Dryer ", "kind": "dryer", "totalHours": 120})
        assert item.name == "Dryer"
        assert item.kind == "dryer"
        assert item.total_hours == 120
        assert item.farm_id == farm.id

    async def test_name_required(self, equipment, farm):
        with pytest.raises(ValueError, match="name"):
            await equipment.save("u1", farm.id, {"kind": "cart"})

    async def test_listed_by_name(self, equipment, farm):
        for name in ["combine", "Auger", "dryer"]:
            await equipment.save("u1", farm.id, {"name": name})
        assert [e.name for e in await equipment.get_all("u1", farm.id)] == ["Auger", "combine", "dryer"]

    async def test_save_existing_merges(self, equipment, farm):
        item = await equipment.save("u1", farm.id, {"name": "Dryer", "notes": "GSI"})
        updated = await equipment.save("u1", farm.id, {"totalHours": 300, "farmId": "other"}, equipment_id=item.id)
        assert updated.total_hours == 300
        assert updated.notes == "GSI"
        assert updated.farm_id == farm.id

    async def test_save_missing_item(self, equipment, farm):
        with pytest.raises(LookupError):
            await equipment.save("u1", farm.id, {"name": "Dryer"}, equipment_id="missing")

    async def test_update_hours(self, equipment, farm):
        item = await equipment.save("u1", farm.id, {"name": "Dryer"})
        assert (await equipment.update_hours("u1", farm.id, item.id, 42.5)).total_hours == 42.5
        assert await equipment.update_hours("u1", farm.id, "missing", 1) is None
        with pytest.raises(ValueError):
            await equipment.update_hours("u1", farm.id, item.id, -1)

    async def test_delete(self, equipment, farm):
        item = await equipment.save("u1", farm.id, {"name": "Dryer"})
        assert await equipment.delete("u1", farm.id, item.id) is True
        assert await equipment.get_by_id("u1", farm.id, item.id) is None
        assert await equipment.delete("u1", farm.id, item.id) is False

    async def test_members_only(self, equipment, farm):
        await equipment.save("u1", farm.id, {"name": "Dryer"})
        assert await equipment.get_all("stranger", farm.id) == []
        with pytest.raises(FarmAccessError):
            await equipment.save("stranger", farm.id, {"name": "Cart"})
