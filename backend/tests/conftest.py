import os, sys, pytest
# Ensure the backend directory is on path so 'dsr' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from datetime import datetime, timezone
from dsr import create_app, get_db
from dsr.core.clock import FixedClock
from dsr.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import dsr.services.record_store  # noqa: F401
import dsr.models.audit  # noqa: F401
from tests.test_utils_seed import seed_org

TEST_SECRET = 'test-secret-key-that-is-long-enough-for-hs256'


@pytest.fixture()
def clock():
    return FixedClock(datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture()
def app_instance(clock):
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': TEST_SECRET,
        'DSR_CLOCK': clock,
        'LOG_JSON': False,
        'TESTING': True,
    })
    # Fresh in-memory database per test
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app
    get_db().close()


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def org(app_instance):
    """Two stores and one user per role; see seed_org for the layout."""
    with app_instance.app_context():
        return seed_org()


@pytest.fixture()
def auth(app_instance, org):
    """auth('cashier1') -> Authorization header for that seeded user."""
    from tests.test_lifecycle_helpers import jwt_headers

    def _headers(username: str):
        return jwt_headers(app_instance, org['users'][username])
    return _headers
