import unittest

from shared.types import Role
from sikuwat.db import (
    ArticleRecord,
    InMemoryDbClient,
    MarketPriceRecord,
    PlantingRecord,
    PostgresDbClient,
    ProfileRecord,
    TipRecord,
)


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_requires_database_url(self):
        with self.assertRaises(ValueError):
            PostgresDbClient("")

    def test_market_prices_are_listed_newest_first(self):
        self.db.add_market_price(
            MarketPriceRecord(
                id="price_1",
                commodity="Cabai",
                price=45000,
                unit="kg",
                date="2024-05-01",
                created_at="2024-05-01T08:00:00+00:00",
            )
        )
        self.db.add_market_price(
            MarketPriceRecord(
                id="price_2",
                commodity="Bawang",
                price=30000,
                unit="kg",
                date="2024-05-02",
                created_at="2024-05-02T08:00:00+00:00",
            )
        )
        self.assertEqual(
            [p.id for p in self.db.list_market_prices()], ["price_2", "price_1"]
        )
        self.assertEqual([p.id for p in self.db.list_market_prices(limit=1)], ["price_2"])

    def test_equal_timestamps_list_newest_insert_first(self):
        for db in (self.db, InMemoryDbClient()):
            with self.subTest(adapter=type(db).__name__):
                for tip_id in ("tip_a", "tip_b", "tip_c"):
                    db.add_tip(
                        TipRecord(
                            id=tip_id,
                            title="Menyiram cabai",
                            content="Siram pagi hari.",
                            created_at="2024-05-01T08:00:00+00:00",
                        )
                    )
                self.assertEqual(
                    [t.id for t in db.list_tips()], ["tip_c", "tip_b", "tip_a"]
                )
                self.assertEqual([t.id for t in db.list_tips(limit=1)], ["tip_c"])

    def test_update_and_delete(self):
        self.db.add_tip(
            TipRecord(id="tip_1", title="Menyiram cabai", content="Siram pagi hari.")
        )
        updated = self.db.update_tip("tip_1", {"category": "irigasi"})
        self.assertEqual(updated.category, "irigasi")
        self.assertIsNotNone(updated.updated_at)
        self.assertEqual(self.db.get_tip("tip_1").category, "irigasi")

        self.assertIsNone(self.db.update_tip("tip_missing", {"category": "x"}))
        self.assertTrue(self.db.delete_tip("tip_1"))
        self.assertFalse(self.db.delete_tip("tip_1"))
        self.assertIsNone(self.db.get_tip("tip_1"))

    def test_search_is_case_insensitive_and_limited(self):
        for index in range(4):
            self.db.add_article(
                ArticleRecord(
                    id=f"article_{index}",
                    title=f"Pemupukan Padi bagian {index}",
                    content="Isi artikel",
                    created_at=f"2024-01-0{index + 1}T00:00:00+00:00",
                )
            )
        self.db.add_article(
            ArticleRecord(id="article_x", title="Irigasi tetes", content="Hemat air")
        )
        found = self.db.search_articles("PEMUPUKAN", limit=3)
        self.assertEqual([a.id for a in found], ["article_3", "article_2", "article_1"])
        self.assertEqual([a.id for a in self.db.search_articles("hemat")], ["article_x"])

    def test_search_escapes_like_wildcards(self):
        self.db.add_tip(TipRecord(id="tip_1", title="Diskon 50%", content="Promo pupuk"))
        self.db.add_tip(TipRecord(id="tip_2", title="Diskon 50 persen", content="Lain"))
        self.assertEqual([t.id for t in self.db.search_tips("50%")], ["tip_1"])

    def test_plantings_filter_by_user_and_harvest(self):
        self.db.add_planting(
            PlantingRecord(
                id="planting_1",
                user_id="u1",
                user_name="Budi",
                seed_type="Padi",
                seed_count=100,
                planting_date="2024-01-01",
            )
        )
        self.db.add_planting(
            PlantingRecord(
                id="planting_2",
                user_id="u1",
                user_name="Budi",
                seed_type="Jagung",
                seed_count=50,
                planting_date="2024-01-02",
                harvest_date="2024-04-01",
                harvest_yield=75.5,
            )
        )
        self.db.add_planting(
            PlantingRecord(
                id="planting_3",
                user_id="u2",
                user_name="Siti",
                seed_type="Cabai",
                seed_count=20,
                planting_date="2024-01-03",
            )
        )
        self.assertEqual(len(self.db.list_plantings()), 3)
        self.assertEqual(
            {p.id for p in self.db.list_plantings("u1")}, {"planting_1", "planting_2"}
        )
        self.assertEqual(
            [p.id for p in self.db.list_plantings("u1", unharvested_only=True)],
            ["planting_1"],
        )
        self.assertEqual(self.db.get_planting("planting_2").harvest_yield, 75.5)

    def test_profiles_pending_and_approval(self):
        self.db.save_profile(
            ProfileRecord(
                id="u1",
                email="budi@sikuwat.id",
                name="Budi",
                role=Role.USER,
                created_at="2024-01-02T00:00:00+00:00",
            )
        )
        self.db.save_profile(
            ProfileRecord(
                id="u2",
                email="siti@sikuwat.id",
                name="Siti",
                role=Role.USER,
                created_at="2024-01-01T00:00:00+00:00",
            )
        )
        self.db.save_profile(
            ProfileRecord(
                id="a1",
                email="admin@sikuwat.id",
                name="Admin",
                role=Role.ADMIN,
                is_approved=True,
            )
        )
        self.assertEqual([p.id for p in self.db.list_pending_profiles()], ["u2", "u1"])

        approved = self.db.approve_profile("u1")
        self.assertTrue(approved.is_approved)
        self.assertEqual(approved.role, Role.USER)
        self.assertEqual([p.id for p in self.db.list_pending_profiles()], ["u2"])
        self.assertIsNone(self.db.approve_profile("missing"))

        self.assertTrue(self.db.delete_profile("u2"))
        self.assertEqual(self.db.list_pending_profiles(), [])
        self.assertEqual(self.db.get_profile("a1").role, Role.ADMIN)


if __name__ == "__main__":
    unittest.main()
