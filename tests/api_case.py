"""Base test case for HTTP tests: fresh schema, seeded administrator and a TestClient."""

from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.main import app
from app.services.seed import ensure_seed_identity
from tests.db_case import DatabaseTestCase


class ApiTestCase(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.settings = get_settings()
        self.seed_user = ensure_seed_identity(self.db, self.settings)
        self.client = TestClient(app)

    def login(self, username: str, password: str) -> dict:
        resp = self.client.post(
            "/api/auth/login", json={"username": username, "password": password}
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()

    def auth_headers(self, username: str = "adrian", password: str = "jopo") -> dict[str, str]:
        return {"Authorization": f"Bearer {self.login(username, password)['accessToken']}"}
