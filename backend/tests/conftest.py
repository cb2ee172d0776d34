"""
Pytest fixtures for storefront backend tests.

Provides an in-memory database, a test client, customer/admin accounts with
bearer tokens, catalog rows, and an in-memory image storage.
"""

import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.models import Address, Brand, Category, Product, User
from storefront.services import session_service
from storefront.services.auth_service import hash_password
from storefront.services.image_storage import ImageStorage, ImageStorageError


PASSWORD = "Password123!"


class FakeImageStorage(ImageStorage):
    """Keeps uploads in memory; `fail_uploads` / `fail_deletes` simulate outages."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_uploads = False
        self.fail_deletes = False

    def upload(self, data, *, folder, filename=None):
        if self.fail_uploads:
            raise ImageStorageError("upload unavailable")
        public_id = f"storefront/{folder}/{len(self.files) + 1}"
        self.files[public_id] = data
        return f"https://images.test/{public_id}.jpg"

    def delete(self, public_id):
        if self.fail_deletes:
            raise ImageStorageError("delete unavailable")
        self.files.pop(public_id, None)
        self.deleted.append(public_id)

    def public_id_from_url(self, url):
        prefix = "https://images.test/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix):].rsplit(".", 1)[0]


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def image_storage(app):
    storage = FakeImageStorage()
    app.extensions["image_storage"] = storage
    return storage


@pytest.fixture(scope='function')
def db_session(app, image_storage):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


def make_user(session, password_hash, *, email, name=None, role="customer") -> User:
    user = User(email=email, name=name, password_hash=password_hash, role=role, is_active=True)
    session.add(user)
    session.commit()
    return user


def auth_headers(user: User) -> dict:
    """Helper to create Authorization headers with a fresh session token."""
    _, token = session_service.create_session(user_id=user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def customer(db_session, password_hash):
    return make_user(db_session, password_hash, email="casey@example.com", name="Casey Customer")


@pytest.fixture(scope='function')
def other_customer(db_session, password_hash):
    return make_user(db_session, password_hash, email="olive@example.com", name="Olive Other")


@pytest.fixture(scope='function')
def admin(db_session, password_hash):
    return make_user(db_session, password_hash, email="admin@example.com", name="Ada Admin", role="admin")


@pytest.fixture(scope='function')
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture(scope='function')
def other_headers(other_customer):
    return auth_headers(other_customer)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Toys", slug="toys", image="https://images.test/storefront/categories/toys.jpg")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def brand(db_session):
    brand = Brand(name="Acme", slug="acme", logo="https://images.test/storefront/brands/acme.jpg")
    db_session.add(brand)
    db_session.commit()
    return brand


def make_product(session, category, **overrides) -> Product:
    values = {
        "name": "Wooden Train",
        "slug": "wooden-train",
        "price_cents": 2500,
        "stock": 5,
        "category_id": category.id,
    }
    values.update(overrides)
    product = Product(**values)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session, category):
    return make_product(db_session, category)


@pytest.fixture(scope='function')
def second_product(db_session, category):
    return make_product(db_session, category, name="Puzzle Box", slug="puzzle-box", price_cents=1000, stock=10)


def make_address(session, user, **overrides) -> Address:
    values = {
        "user_id": user.id,
        "first_name": "Casey",
        "last_name": "Customer",
        "street": "12 Lake Road",
        "city": "Dhaka",
        "state": "Dhaka",
        "postal_code": "1207",
        "country": "Bangladesh",
        "phone": "01700000000",
        "is_default": True,
    }
    values.update(overrides)
    address = Address(**values)
    session.add(address)
    session.commit()
    return address


@pytest.fixture(scope='function')
def address(db_session, customer):
    return make_address(db_session, customer)


def stock_of(product_id: int) -> int:
    """Read stock from the database, bypassing anything cached in the session."""
    db.session.expire_all()
    return db.session.get(Product, product_id).stock
