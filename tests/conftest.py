import os
import tempfile

# must be set before the app modules are imported, they read the environment at import time
_db_dir = tempfile.mkdtemp(prefix="twofa-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["ADMIN_SECRET"] = "test-admin-secret"
os.environ["RATE_LIMIT_ENABLED"] = "FALSE"
os.environ.pop("TOTP_ISSUER", None)
os.environ.pop("DEV", None)

import pytest
from fastapi.testclient import TestClient


ADMIN_SECRET = os.environ["ADMIN_SECRET"]


@pytest.fixture(scope="session")
def client():
    from main import app

    with TestClient(app) as c:
        yield c
