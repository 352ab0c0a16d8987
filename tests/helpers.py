# tests/helpers.py
from fastapi.testclient import TestClient

from shopapi.config import Settings
from shopapi.database import InMemoryAdminStore, InMemoryProductStore
from shopapi.images import LocalAssetHost
from shopapi.main import create_app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def make_client(tmp_path, store=None, **overrides) -> TestClient:
    settings = Settings(
        jwt_secret="test-secret",
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        upload_dir=str(tmp_path / "uploads"),
        **overrides,
    )
    host = LocalAssetHost(tmp_path / "uploads", "/uploads")
    app = create_app(
        settings,
        store=store if store is not None else InMemoryProductStore(),
        admins=InMemoryAdminStore(),
        asset_host=host,
    )
    return TestClient(app)


def auth_headers(client: TestClient) -> dict:
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['token']}"}


def create(client: TestClient, headers: dict, name: str, price: float, category: str = "Other", **extra) -> dict:
    r = client.post("/api/products", json={"name": name, "price": price, "category": category, **extra},
                    headers=headers)
    assert r.status_code == 201, r.text
    return r.json()
