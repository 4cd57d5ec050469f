import os, sys, pytest
# Ensure backend directory is on path so 'repairdesk' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from repairdesk import create_app, get_db
from repairdesk.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import repairdesk.models.audit  # noqa: F401
import repairdesk.models.customer  # noqa: F401
import repairdesk.models.job  # noqa: F401
import repairdesk.models.inventory_item  # noqa: F401
import repairdesk.models.part_usage  # noqa: F401
import repairdesk.models.invoice  # noqa: F401
import repairdesk.models.message  # noqa: F401
import repairdesk.models.kv_entry  # noqa: F401
import repairdesk.models.notification  # noqa: F401
import repairdesk.models.repair_log  # noqa: F401

@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'repairdesk-test-secret-0123456789abcdef',
        'SHOP_NAME': 'Test Repairs',
        'TESTING': True,
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app

@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
