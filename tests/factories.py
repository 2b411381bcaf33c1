"""
AddressKit — Test Factories

Factory Boy factories producing stored unit records (camelCase dicts).

@file tests/factories.py
"""

from datetime import datetime, timezone

import factory

from addresskit.models.unit import make_unique_key


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------

class UnitFactory(factory.DictFactory):
    schemaVersion = "v1"
    code = factory.Sequence(lambda n: f"{n:05d}")
    name = factory.Sequence(lambda n: f"Xã Thử Nghiệm {n}")
    level = "commune"
    parentCode = None
    uniqueKey = factory.LazyAttribute(
        lambda o: make_unique_key(o.schemaVersion, o.level, o.code)
    )
    createdAt = factory.LazyFunction(lambda: datetime(2025, 1, 1, tzinfo=timezone.utc))
    updatedAt = factory.LazyFunction(lambda: datetime(2025, 1, 1, tzinfo=timezone.utc))
    isDeleted = False
    deletedAt = None


class ProvinceFactory(UnitFactory):
    code = factory.Sequence(lambda n: f"{n + 10:02d}")
    name = factory.Sequence(lambda n: f"Tỉnh Thử Nghiệm {n}")
    level = "province"


class DistrictFactory(UnitFactory):
    code = factory.Sequence(lambda n: f"{n + 100:03d}")
    name = factory.Sequence(lambda n: f"Huyện Thử Nghiệm {n}")
    level = "district"


class CommuneFactory(UnitFactory):
    level = "commune"
