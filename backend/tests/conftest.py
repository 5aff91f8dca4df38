import os, sys, pytest
# Ensure the backend directory is on path so 'fieldledger' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from fieldledger import create_app, get_db
from fieldledger.models.base import Base
from fieldledger.services.notify import OUTBOX

TEST_CONFIG = {
    'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
    'JWT_SECRET_KEY': 'test-secret-key-that-is-long-enough-for-hs256',
    'MAIL_SUPPRESS_SEND': True,
    'FILE_STORE_DELETE_URL': None,
    'SEED_SUPER_ADMIN': False,
}


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app(TEST_CONFIG)
    # Blueprints import every model module, so metadata is complete here
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def session(app_instance):
    return get_db()


@pytest.fixture()
def app_ctx(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def outbox():
    OUTBOX.clear()
    yield OUTBOX
    OUTBOX.clear()
