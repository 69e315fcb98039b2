import pytest
from fastapi.testclient import TestClient

from gridcrud.api import GridRegistry
from gridcrud.database import SQLiteDatabase, reset_database
from gridcrud.grid import Grid
from gridcrud.main import create_app

CONTACTS_SCHEMA = """
CREATE TABLE contacts (
    pkID INTEGER PRIMARY KEY,
    fldName VARCHAR(100),
    fldEmail VARCHAR(150),
    fldStatus TEXT CHECK (fldStatus IN ('active','pending')),
    fldAge INTEGER,
    fldPrice DECIMAL(10,2),
    fldBirthday DATE,
    fldNotes TEXT
)
"""

CATEGORIES_SCHEMA = """
CREATE TABLE categories (
    catID INTEGER PRIMARY KEY,
    catName VARCHAR(50),
    catVisible INTEGER
)
"""

PRODUCTS_SCHEMA = """
CREATE TABLE products (
    prodID INTEGER PRIMARY KEY,
    prodName VARCHAR(50),
    prodCategory INTEGER
)
"""


@pytest.fixture
def database():
    """An in-memory SQLite database with the contacts, categories and products tables."""
    db = SQLiteDatabase({"type": "sqlite", "url": "sqlite://"})
    db.create_db_and_tables()

    db.execute(CONTACTS_SCHEMA)
    db.execute(
        "INSERT INTO contacts (pkID, fldName, fldEmail, fldStatus, fldAge, fldPrice) VALUES (?, ?, ?, ?, ?, ?)",
        [1, "Alice", "alice@example.com", "pending", 30, 9.5],
    )
    db.execute(
        "INSERT INTO contacts (pkID, fldName, fldEmail, fldStatus, fldAge, fldPrice) VALUES (?, ?, ?, ?, ?, ?)",
        [2, "Bob", "bob@example.com", "active", 40, 12.25],
    )

    db.execute(CATEGORIES_SCHEMA)
    db.execute("INSERT INTO categories (catID, catName, catVisible) VALUES (1, 'Books', 1)")
    db.execute("INSERT INTO categories (catID, catName, catVisible) VALUES (2, 'Games', 1)")
    db.execute("INSERT INTO categories (catID, catName, catVisible) VALUES (3, 'Hidden', 0)")

    db.execute(PRODUCTS_SCHEMA)
    db.execute("INSERT INTO products (prodID, prodName, prodCategory) VALUES (1, 'Novel', 1)")
    db.execute("INSERT INTO products (prodID, prodName, prodCategory) VALUES (2, 'Chess', 2)")

    yield db
    db.close()


@pytest.fixture
def contacts_grid(database):
    return Grid("Contact", "contacts", database=database, ajax_url="/grids/contacts/ajax")


@pytest.fixture
def products_grid(database):
    grid = Grid("Product", "products", database=database, ajax_url="/grids/products/ajax")
    grid.define_relationship("prodCategory", "categories", "catID", "catName")
    return grid


@pytest.fixture
def registry(database):
    registry = GridRegistry()
    registry.register("contacts", lambda request: Grid("Contact", "contacts", database=database), title="Contacts")
    return registry


@pytest.fixture
def client(registry, database):
    """A TestClient running the full application against the test database."""
    app = create_app(registry=registry, database=database)
    with TestClient(app) as test_client:
        yield test_client
    reset_database()
