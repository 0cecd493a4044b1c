import tempfile
import unittest
from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import requests
from fastapi.testclient import TestClient

from models.gemini import GeminiInvalidResponseException
from sikuwat.app import create_app
from sikuwat.auth import InMemoryAuthClient, SupabaseAuthClient
from sikuwat.config import Settings, get_settings
from sikuwat.db import InMemoryDbClient, PostgresDbClient
from sikuwat.dependencies import get_auth_client, get_db_client, get_storage_client
from sikuwat.fetch_utils import ArticlePreview, FetchError
from sikuwat.storage import InMemoryStorageClient

PASSWORD = "rahasia123"

VALID_ARTICLE = {
    "title": "Panduan pemupukan padi sawah",
    "content": "Pemupukan padi dilakukan tiga kali dengan dosis bertahap sesuai umur.",
    "source": "Dinas Pertanian",
    "url": "https://example.com/pemupukan-padi",
}
VALID_TIP = {
    "title": "Menyiram cabai di musim kemarau",
    "content": "Siram cabai pagi hari dan gunakan mulsa agar tanah tetap lembap.",
    "category": "irigasi",
}


class SikuwatApiTestCase(unittest.TestCase):
    def setUp(self):
        self.app = create_app()
        self.client = TestClient(self.app)
        self.settings = Settings(gemini_api_key=None, use_in_memory_backends=True)
        self.app.dependency_overrides[get_settings] = lambda: self.settings

        self.db = get_db_client()
        if isinstance(self.db, InMemoryDbClient):
            self.db.reset()
        self.auth = get_auth_client()
        if isinstance(self.auth, InMemoryAuthClient):
            self.auth.reset()

    def sign_up(self, email, role="user", name="Pak Budi"):
        return self.client.post(
            "/api/auth/signup",
            json={"email": email, "password": PASSWORD, "name": name, "role": role},
        )

    def sign_in(self, email):
        return self.client.post(
            "/api/auth/signin", json={"email": email, "password": PASSWORD}
        )

    def headers_for(self, token):
        return {"Authorization": f"Bearer {token}"}

    def admin_headers(self, email="admin@sikuwat.id"):
        self.sign_up(email, role="admin", name="Admin")
        return self.headers_for(self.sign_in(email).json()["data"]["access_token"])

    def farmer_headers(self, email="budi@sikuwat.id", name="Pak Budi"):
        user_id = self.sign_up(email, name=name).json()["data"]["user"]["id"]
        self.db.approve_profile(user_id)
        return self.headers_for(self.sign_in(email).json()["data"]["access_token"])


class AuthApiTests(SikuwatApiTestCase):
    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_signup_requires_all_fields(self):
        response = self.client.post(
            "/api/auth/signup", json={"email": "a@b.id", "password": PASSWORD}
        )
        self.assertEqual(response.status_code, 400)

    def test_signup_rejects_unknown_role(self):
        response = self.sign_up("a@b.id", role="superuser")
        self.assertEqual(response.status_code, 400)

    def test_admin_signup_can_be_disabled(self):
        self.settings.allow_admin_signup = False
        response = self.sign_up("boss@sikuwat.id", role="admin")
        self.assertEqual(response.status_code, 403)

    def test_duplicate_signup_is_rejected(self):
        self.sign_up("budi@sikuwat.id")
        response = self.sign_up("budi@sikuwat.id")
        self.assertEqual(response.status_code, 400)

    def test_farmer_signin_waits_for_approval(self):
        signup = self.sign_up("budi@sikuwat.id")
        self.assertEqual(signup.status_code, 201)
        self.assertTrue(signup.json()["data"]["requires_approval"])
        user_id = signup.json()["data"]["user"]["id"]

        blocked = self.sign_in("budi@sikuwat.id")
        self.assertEqual(blocked.status_code, 403)
        self.assertEqual(self.auth.sessions, {})

        admin = self.admin_headers()
        pending = self.client.get("/api/admin/pending-users", headers=admin)
        self.assertEqual([p["id"] for p in pending.json()["data"]], [user_id])

        approve = self.client.post(f"/api/admin/users/{user_id}/approve", headers=admin)
        self.assertEqual(approve.status_code, 200)
        self.assertTrue(approve.json()["data"]["is_approved"])

        allowed = self.sign_in("budi@sikuwat.id")
        self.assertEqual(allowed.status_code, 200)
        self.assertEqual(allowed.json()["data"]["role"], "user")

    def test_signin_with_wrong_password(self):
        self.sign_up("admin@sikuwat.id", role="admin")
        response = self.client.post(
            "/api/auth/signin",
            json={"email": "admin@sikuwat.id", "password": "salah-sandi"},
        )
        self.assertEqual(response.status_code, 401)

    def test_session_and_signout(self):
        self.assertEqual(
            self.client.get("/api/auth/session").json(), {"authenticated": False}
        )
        headers = self.admin_headers()
        session = self.client.get("/api/auth/session", headers=headers)
        self.assertEqual(session.status_code, 200)
        self.assertEqual(session.json()["role"], "admin")

        self.client.post("/api/auth/signout", headers=headers)
        self.assertEqual(
            self.client.get("/api/auth/session", headers=headers).status_code, 401
        )

    def test_signout_and_pending_signin_survive_auth_outage(self):
        supabase = SupabaseAuthClient(
            url="https://project.supabase.co",
            anon_key="anon",
            service_role_key="service",
        )
        supabase._session = MagicMock()
        self.app.dependency_overrides[get_auth_client] = lambda: supabase

        supabase._session.post.side_effect = requests.ConnectionError("down")
        response = self.client.post("/api/auth/signout", headers=self.headers_for("jwt"))
        self.assertEqual(response.status_code, 200)

        token_response = MagicMock(ok=True, status_code=200)
        token_response.json.return_value = {
            "access_token": "jwt",
            "user": {
                "id": "u-pending",
                "email": "budi@sikuwat.id",
                "user_metadata": {"role": "user"},
            },
        }
        supabase._session.post.side_effect = [
            token_response,
            requests.ConnectionError("down"),
        ]
        response = self.sign_in("budi@sikuwat.id")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"], "Account pending admin approval")

    def test_reject_pending_user(self):
        user_id = self.sign_up("budi@sikuwat.id").json()["data"]["user"]["id"]
        admin = self.admin_headers()
        response = self.client.delete(f"/api/admin/users/{user_id}", headers=admin)
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(self.db.get_profile(user_id))
        missing = self.client.delete(f"/api/admin/users/{user_id}", headers=admin)
        self.assertEqual(missing.status_code, 404)


class ContentApiTests(SikuwatApiTestCase):
    def test_admin_routes_require_admin(self):
        response = self.client.post(
            "/api/admin/market-prices",
            json={"commodity": "Cabai", "price": 45000, "unit": "kg"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            response.json()["detail"], "Unauthorized - Admin access required"
        )
        farmer = self.farmer_headers()
        response = self.client.get("/api/admin/user-data", headers=farmer)
        self.assertEqual(response.status_code, 401)

    def test_market_price_crud(self):
        admin = self.admin_headers()
        created = self.client.post(
            "/api/admin/market-prices",
            json={"commodity": "Cabai Rawit", "price": 45000, "unit": "kg"},
            headers=admin,
        )
        self.assertEqual(created.status_code, 201)
        price = created.json()["data"]
        self.assertTrue(price["id"].startswith("price_"))
        self.assertEqual(created.json()["warnings"], [])

        pricey = self.client.post(
            "/api/admin/market-prices",
            json={"commodity": "Vanili", "price": 2_500_000, "unit": "kg"},
            headers=admin,
        )
        self.assertEqual(len(pricey.json()["warnings"]), 1)

        listed = self.client.get("/api/market-prices").json()["data"]
        self.assertEqual([p["commodity"] for p in listed], ["Vanili", "Cabai Rawit"])

        updated = self.client.put(
            f"/api/admin/market-prices/{price['id']}",
            json={"price": 47000},
            headers=admin,
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["data"]["price"], 47000)
        self.assertEqual(updated.json()["data"]["commodity"], "Cabai Rawit")
        self.assertIsNotNone(updated.json()["data"]["updated_at"])

        deleted = self.client.delete(
            f"/api/admin/market-prices/{price['id']}", headers=admin
        )
        self.assertEqual(deleted.status_code, 200)
        self.assertTrue(deleted.json()["success"])
        self.assertEqual(
            self.client.get(f"/api/market-prices/{price['id']}").status_code, 404
        )
        self.assertEqual(
            self.client.delete(
                f"/api/admin/market-prices/{price['id']}", headers=admin
            ).status_code,
            404,
        )

    def test_market_price_validation_errors(self):
        response = self.client.post(
            "/api/admin/market-prices",
            json={"commodity": "Ca", "price": 0, "unit": ""},
            headers=self.admin_headers(),
        )
        self.assertEqual(response.status_code, 400)
        details = response.json()["detail"]["details"]
        self.assertIn("Nama komoditas minimal 3 karakter", details)
        self.assertIn("Harga harus diisi dan lebih dari 0", details)
        self.assertIn("Satuan harus diisi", details)

    def test_tip_without_category_defaults_to_general(self):
        response = self.client.post(
            "/api/admin/tips",
            json={**VALID_TIP, "category": ""},
            headers=self.admin_headers(),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["category"], "general")
        self.assertEqual(
            response.json()["warnings"],
            ["Kategori sebaiknya diisi untuk organisasi yang lebih baik"],
        )

    def test_tip_update_of_missing_row(self):
        response = self.client.put(
            "/api/admin/tips/tip_missing",
            json=VALID_TIP,
            headers=self.admin_headers(),
        )
        self.assertEqual(response.status_code, 404)

    def test_article_accepts_camel_case_image_url(self):
        admin = self.admin_headers()
        response = self.client.post(
            "/api/admin/articles",
            json={**VALID_ARTICLE, "imageUrl": "https://example.com/padi.jpg"},
            headers=admin,
        )
        self.assertEqual(response.status_code, 201)
        article = response.json()["data"]
        self.assertEqual(article["image_url"], "https://example.com/padi.jpg")

        fetched = self.client.get(f"/api/articles/{article['id']}")
        self.assertEqual(fetched.json()["data"]["title"], VALID_ARTICLE["title"])

    def test_article_with_short_title_is_rejected(self):
        response = self.client.post(
            "/api/admin/articles",
            json={**VALID_ARTICLE, "title": "Padi"},
            headers=self.admin_headers(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("Judul minimal 5 karakter", response.json()["detail"]["details"])

    def test_dashboard_respects_limit(self):
        admin = self.admin_headers()
        for commodity in ("Cabai", "Bawang", "Tomat"):
            self.client.post(
                "/api/admin/market-prices",
                json={"commodity": commodity, "price": 20000, "unit": "kg"},
                headers=admin,
            )
        self.client.post("/api/admin/tips", json=VALID_TIP, headers=admin)

        response = self.client.get("/api/dashboard", params={"limit": 2})
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual([p["commodity"] for p in data["market_prices"]], ["Tomat", "Bawang"])
        self.assertEqual(len(data["tips"]), 1)
        self.assertEqual(data["articles"], [])

    def test_upload_image(self):
        admin = self.admin_headers()
        response = self.client.post(
            "/api/admin/uploads/images",
            files={"file": ("daun.png", b"\x89PNG fake image", "image/png")},
            headers=admin,
        )
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertRegex(payload["path"], r"^articles/\d+\.png$")
        self.assertTrue(payload["url"].endswith(payload["path"]))

        storage = get_storage_client()
        if isinstance(storage, InMemoryStorageClient):
            self.assertEqual(storage.get_bytes(payload["path"]), b"\x89PNG fake image")

    def test_upload_extension_comes_from_image_type(self):
        admin = self.admin_headers()
        for filename in ("photo./../x", "evil.html", "daun"):
            with self.subTest(filename=filename):
                response = self.client.post(
                    "/api/admin/uploads/images",
                    files={"file": (filename, b"\x89PNG fake image", "image/png")},
                    headers=admin,
                )
                self.assertEqual(response.status_code, 201)
                self.assertRegex(response.json()["path"], r"^articles/\d+\.png$")

    def test_upload_rejects_non_images_and_large_files(self):
        admin = self.admin_headers()
        response = self.client.post(
            "/api/admin/uploads/images",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=admin,
        )
        self.assertEqual(response.status_code, 400)

        self.settings.max_upload_bytes = 4
        response = self.client.post(
            "/api/admin/uploads/images",
            files={"file": ("daun.jpg", b"too many bytes", "image/jpeg")},
            headers=admin,
        )
        self.assertEqual(response.status_code, 413)

    def test_article_preview(self):
        preview = ArticlePreview(
            title="Tanam jagung",
            content="Isi ringkas artikel.",
            source="example.com",
            url="https://example.com/jagung",
            image_url="https://example.com/jagung.jpg",
        )
        with patch(
            "sikuwat.routes.fetch_article_preview", return_value=preview
        ) as fetch:
            response = self.client.post(
                "/api/admin/articles/preview",
                json={"url": "https://example.com/jagung"},
                headers=self.admin_headers(),
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["title"], "Tanam jagung")
        fetch.assert_called_once_with(
            "https://example.com/jagung", timeout=self.settings.request_timeout
        )

    def test_article_preview_fetch_failure(self):
        with patch(
            "sikuwat.routes.fetch_article_preview",
            side_effect=FetchError("Tidak bisa fetch HTML dari URL"),
        ):
            response = self.client.post(
                "/api/admin/articles/preview",
                json={"url": "https://example.com/404"},
                headers=self.admin_headers(),
            )
        self.assertEqual(response.status_code, 502)


class PlantingApiTests(SikuwatApiTestCase):
    def create_planting(self, headers, **overrides):
        body = {"seedType": "Padi IR64", "seedCount": 200, "plantingDate": "2024-01-10"}
        body.update(overrides)
        return self.client.post("/api/user/plantings", json=body, headers=headers)

    def test_create_and_list_plantings(self):
        farmer = self.farmer_headers()
        created = self.create_planting(farmer)
        self.assertEqual(created.status_code, 201)
        planting = created.json()["data"]
        self.assertTrue(planting["id"].startswith("planting_"))
        self.assertEqual(planting["user_name"], "Pak Budi")
        self.assertEqual(planting["seed_count"], 200)
        self.assertIsNone(planting["harvest_date"])

        self.create_planting(farmer, seedType="Jagung Manis", seedCount=50)
        listed = self.client.get("/api/user/plantings", headers=farmer).json()["data"]
        self.assertEqual([p["seed_type"] for p in listed], ["Jagung Manis", "Padi IR64"])

    def test_unapproved_farmer_cannot_log_plantings(self):
        self.sign_up("baru@sikuwat.id")
        token = self.auth.sign_in("baru@sikuwat.id", PASSWORD).access_token
        response = self.create_planting(self.headers_for(token))
        self.assertEqual(response.status_code, 403)

    def test_admin_cannot_log_plantings(self):
        response = self.create_planting(self.admin_headers())
        self.assertEqual(response.status_code, 401)

    def test_planting_validation(self):
        farmer = self.farmer_headers()
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        response = self.create_planting(farmer, plantingDate=tomorrow, seedCount=2.5)
        self.assertEqual(response.status_code, 400)
        details = response.json()["detail"]["details"]
        self.assertIn("Tanggal tanam tidak boleh di masa depan", details)
        self.assertIn("Jumlah bibit harus berupa angka bulat", details)

    def test_harvest_flow(self):
        farmer = self.farmer_headers()
        planting_id = self.create_planting(farmer).json()["data"]["id"]

        unharvested = self.client.get("/api/user/plantings/unharvested", headers=farmer)
        self.assertEqual([p["id"] for p in unharvested.json()["data"]], [planting_id])

        harvest = self.client.post(
            f"/api/user/plantings/{planting_id}/harvest",
            json={"harvestDate": "2024-03-15", "harvestYield": 120, "sellingPrice": 5000},
            headers=farmer,
        )
        self.assertEqual(harvest.status_code, 200)
        self.assertEqual(harvest.json()["data"]["sales_amount"], 600000)

        again = self.client.post(
            f"/api/user/plantings/{planting_id}/harvest",
            json={"harvestDate": "2024-03-16", "harvestYield": 10},
            headers=farmer,
        )
        self.assertEqual(again.status_code, 409)
        unharvested = self.client.get("/api/user/plantings/unharvested", headers=farmer)
        self.assertEqual(unharvested.json()["data"], [])

        stats = self.client.get("/api/user/stats", headers=farmer).json()["data"]
        self.assertEqual(stats["stats"]["total_plantings"], 1)
        self.assertEqual(stats["stats"]["total_harvested"], 1)
        self.assertEqual(stats["stats"]["total_revenue"], 600000)
        self.assertEqual(stats["stats"]["success_rate"], 100)
        self.assertEqual(stats["monthly"][0]["month"], "2024-03")

    def test_harvest_before_planting_date_is_rejected(self):
        farmer = self.farmer_headers()
        planting_id = self.create_planting(farmer).json()["data"]["id"]
        response = self.client.post(
            f"/api/user/plantings/{planting_id}/harvest",
            json={"harvestDate": "2023-12-01", "harvestYield": 10},
            headers=farmer,
        )
        self.assertEqual(response.status_code, 400)

    def test_other_farmers_cannot_touch_plantings(self):
        owner = self.farmer_headers()
        planting_id = self.create_planting(owner).json()["data"]["id"]
        other = self.farmer_headers(email="siti@sikuwat.id", name="Bu Siti")

        response = self.client.put(
            f"/api/user/plantings/{planting_id}",
            json={"seedCount": 10},
            headers=other,
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            response.json()["detail"], "Planting data not found or unauthorized"
        )
        response = self.client.delete(f"/api/user/plantings/{planting_id}", headers=other)
        self.assertEqual(response.status_code, 404)
        self.assertIsNotNone(self.db.get_planting(planting_id))

    def test_update_and_delete_planting(self):
        farmer = self.farmer_headers()
        planting_id = self.create_planting(farmer).json()["data"]["id"]
        updated = self.client.put(
            f"/api/user/plantings/{planting_id}",
            json={"seedCount": 150, "user_id": "someone-else"},
            headers=farmer,
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["data"]["seed_count"], 150)
        self.assertEqual(updated.json()["data"]["seed_type"], "Padi IR64")
        self.assertNotEqual(updated.json()["data"]["user_id"], "someone-else")

        deleted = self.client.delete(f"/api/user/plantings/{planting_id}", headers=farmer)
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get("/api/user/plantings", headers=farmer).json()["data"], [])

    def test_clearing_harvest_date_keeps_planting_unharvested(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        sql_db = PostgresDbClient(f"sqlite+pysqlite:///{tmp.name}/sikuwat.db")
        self.addCleanup(sql_db.engine.dispose)

        for index, db in enumerate([InMemoryDbClient(), sql_db]):
            with self.subTest(adapter=type(db).__name__):
                self.app.dependency_overrides[get_db_client] = (lambda bound: lambda: bound)(db)
                self.db = db
                farmer = self.farmer_headers(email=f"tani{index}@sikuwat.id")
                planting_id = self.create_planting(farmer).json()["data"]["id"]
                url = f"/api/user/plantings/{planting_id}"

                self.client.put(url, json={"harvestDate": "2024-04-10"}, headers=farmer)
                unharvested = self.client.get(
                    "/api/user/plantings/unharvested", headers=farmer
                )
                self.assertEqual(unharvested.json()["data"], [])

                cleared = self.client.put(url, json={"harvestDate": "  "}, headers=farmer)
                self.assertEqual(cleared.status_code, 200)
                self.assertIsNone(cleared.json()["data"]["harvest_date"])
                self.assertIsNone(db.get_planting(planting_id).harvest_date)
                unharvested = self.client.get(
                    "/api/user/plantings/unharvested", headers=farmer
                )
                self.assertEqual(
                    [p["id"] for p in unharvested.json()["data"]], [planting_id]
                )

    def test_export_csv(self):
        farmer = self.farmer_headers()
        self.create_planting(
            farmer,
            seedType="Cabai Merah",
            harvestDate="2024-03-01",
            harvestYield=80,
            salesAmount=1500000,
        )
        self.create_planting(farmer, seedType="Padi IR64")

        response = self.client.get("/api/user/plantings/export", headers=farmer)
        self.assertEqual(response.status_code, 200)
        self.assertIn("text/csv", response.headers["content-type"])
        self.assertIn("attachment", response.headers["content-disposition"])
        lines = response.text.strip().splitlines()
        self.assertEqual(
            lines[0],
            "Jenis Bibit,Tanggal Tanam,Jumlah Bibit,Status,Tanggal Panen,"
            "Hasil Panen (kg),Pendapatan (Rp)",
        )
        self.assertEqual(len(lines), 3)

        harvested = self.client.get(
            "/api/user/plantings/export",
            params={"status": "harvested", "search": "cabai"},
            headers=farmer,
        )
        lines = harvested.text.strip().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertIn("Sudah Panen", lines[1])
        self.assertIn("1.500.000", lines[1])

    def test_admin_sees_all_plantings(self):
        self.create_planting(self.farmer_headers())
        self.create_planting(self.farmer_headers(email="siti@sikuwat.id", name="Bu Siti"))
        admin = self.admin_headers()

        user_data = self.client.get("/api/admin/user-data", headers=admin).json()["data"]
        self.assertEqual({p["user_name"] for p in user_data}, {"Pak Budi", "Bu Siti"})
        stats = self.client.get("/api/admin/stats", headers=admin).json()["data"]
        self.assertEqual(stats["stats"]["total_plantings"], 2)
        self.assertEqual(stats["stats"]["total_seeds"], 400)


class ChatApiTests(SikuwatApiTestCase):
    def add_article(self):
        self.client.post(
            "/api/admin/articles", json=VALID_ARTICLE, headers=self.admin_headers()
        )

    def test_chat_requires_message(self):
        response = self.client.post("/api/chat", json={"message": "   "})
        self.assertEqual(response.status_code, 400)
        response = self.client.post("/api/chat", json={"message": "a" * 2001})
        self.assertEqual(response.status_code, 422)

    def test_chat_without_api_key_answers_locally(self):
        self.add_article()
        response = self.client.post(
            "/api/chat", json={"message": "Bagaimana pemupukan padi yang baik?"}
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertTrue(payload["is_local"])
        self.assertEqual(payload["model"], "local-knowledge-base")
        self.assertIn("**Artikel Terkait**: Panduan pemupukan padi sawah", payload["response"])

    def test_chat_context_with_numeric_titles(self):
        response = self.client.post(
            "/api/chat",
            json={
                "message": "Bagaimana irigasi tetes?",
                "context": {"articles": [{"title": 42}], "tips": [{"title": 3.5}]},
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("**Artikel Terkait**: 42", response.json()["response"])
        self.assertIn("**Tips Berguna**: 3.5", response.json()["response"])

    def test_chat_uses_gemini_with_database_context(self):
        self.add_article()
        self.settings.gemini_api_key = "test-key"
        with patch(
            "sikuwat.chat.gemini.call_predict", return_value="Gunakan pupuk bertahap."
        ) as call_predict:
            response = self.client.post(
                "/api/chat",
                json={"message": "Kapan pemupukan padi?", "detail": "concise"},
            )
        payload = response.json()
        self.assertFalse(payload["is_local"])
        self.assertEqual(payload["response"], "Gunakan pupuk bertahap.")
        self.assertEqual(payload["model"], self.settings.gemini_model)

        prompt = call_predict.call_args.args[0]
        self.assertIn("Context - Relevant Articles:", prompt)
        self.assertIn("Panduan pemupukan padi sawah", prompt)
        self.assertIn("User question:\n\nKapan pemupukan padi?", prompt)
        self.assertEqual(call_predict.call_args.kwargs["api_key"], "test-key")

    def test_chat_falls_back_when_gemini_fails(self):
        self.settings.gemini_api_key = "test-key"
        with patch(
            "sikuwat.chat.gemini.call_predict",
            side_effect=GeminiInvalidResponseException("empty response"),
        ):
            response = self.client.post(
                "/api/chat", json={"message": "Cara mengatasi hama wereng?"}
            )
        payload = response.json()
        self.assertTrue(payload["is_local"])
        self.assertEqual(payload["error"], "empty response")
        self.assertIn("hama", payload["response"].lower())

    def test_local_chat_endpoint(self):
        response = self.client.post(
            "/api/chat/local",
            json={
                "message": "Info harga pasar",
                "detail": "concise",
                "context": {"tips": [{"title": "Jual bertahap"}]},
            },
        )
        payload = response.json()
        self.assertTrue(payload["is_local"])
        self.assertTrue(payload["response"].startswith("Harga:"))
        self.assertIn("**Tips Berguna**: Jual bertahap", payload["response"])


if __name__ == "__main__":
    unittest.main()
