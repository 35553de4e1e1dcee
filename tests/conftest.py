import pytest

from app import create_app
from extensions import db
from models.tenant import Tenant


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "OA_SYNC_ENABLED": False,
        }
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def make_tenant(app):
    def _make(name, org_id=None):
        tenant = Tenant(name=name, slug=name.lower().replace(" ", "-"), openaudit_org_id=org_id)
        db.session.add(tenant)
        db.session.commit()
        return tenant

    return _make
