import unittest

from sharepic.documents import (
    COMMENTS,
    PHOTOS,
    RATINGS,
    Aggregate,
    AggregateFn,
    DocumentQuery,
    InMemoryDocumentStore,
    SqlDocumentStore,
    SubstringMatch,
    default_collections,
)
from sharepic.errors import ConflictError, NotFound, StorageError, ValidationError


def photo(doc_id, title, created_at, **extra):
    return {"id": doc_id, "title": title, "createdAt": created_at, **extra}


def rating(doc_id, photo_id, value):
    return {
        "id": doc_id,
        "photoId": photo_id,
        "rating": value,
        "createdAt": f"2024-01-01T00:00:0{doc_id[-1]}Z",
    }


class DocumentStoreContract:
    """Behaviour shared by every DocumentStore implementation."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()
        self.store.provision()

    def test_provision_is_idempotent(self):
        self.store.insert(PHOTOS, photo("p1", "Sunset", "2024-01-01T00:00:01Z"))
        self.store.provision()
        self.assertEqual(self.store.point_read(PHOTOS, "p1", "p1")["title"], "Sunset")

    def test_insert_and_point_read(self):
        doc = photo("p1", "Sunset", "2024-01-01T00:00:01Z", people=["a", "a"])
        self.store.insert(PHOTOS, doc)
        self.assertEqual(self.store.point_read(PHOTOS, "p1", "p1"), doc)

    def test_point_read_checks_partition(self):
        self.store.insert(RATINGS, rating("r1", "p1", 4))
        self.assertEqual(self.store.point_read(RATINGS, "p1", "r1")["rating"], 4)
        with self.assertRaises(NotFound):
            self.store.point_read(RATINGS, "p2", "r1")

    def test_missing_document(self):
        with self.assertRaises(NotFound):
            self.store.point_read(PHOTOS, "nope", "nope")

    def test_duplicate_identity_conflicts(self):
        doc = photo("p1", "Sunset", "2024-01-01T00:00:01Z")
        self.store.insert(PHOTOS, doc)
        with self.assertRaises(ConflictError):
            self.store.insert(PHOTOS, doc)

    def test_document_needs_partition_key(self):
        with self.assertRaises(ValidationError):
            self.store.insert(COMMENTS, {"id": "c1", "createdAt": "x"})

    def test_query_orders_by_recency(self):
        self.store.insert(PHOTOS, photo("p1", "Old", "2024-01-01T00:00:01Z"))
        self.store.insert(PHOTOS, photo("p3", "New", "2024-01-01T00:00:03Z"))
        self.store.insert(PHOTOS, photo("p2", "Mid", "2024-01-01T00:00:02Z"))
        results = self.store.query(PHOTOS, DocumentQuery())
        self.assertEqual([d["id"] for d in results], ["p3", "p2", "p1"])
        oldest_first = self.store.query(PHOTOS, DocumentQuery(descending=False))
        self.assertEqual([d["id"] for d in oldest_first], ["p1", "p2", "p3"])

    def test_query_substring_match(self):
        self.store.insert(
            PHOTOS, photo("p1", "Sunset Beach", "2024-01-01T00:00:01Z", caption="")
        )
        self.store.insert(PHOTOS, photo("p2", "Mountain View", "2024-01-01T00:00:02Z"))
        self.store.insert(
            PHOTOS,
            photo("p3", "Hike", "2024-01-01T00:00:03Z", location="SUNNY hills"),
        )
        match = SubstringMatch(fields=("title", "caption", "location"), term="SUN")
        results = self.store.query(PHOTOS, DocumentQuery(match=match))
        self.assertEqual([d["id"] for d in results], ["p3", "p1"])

    def test_query_treats_wildcards_literally(self):
        self.store.insert(PHOTOS, photo("p1", "50% off", "2024-01-01T00:00:01Z"))
        self.store.insert(PHOTOS, photo("p2", "Sunset", "2024-01-01T00:00:02Z"))
        self.store.insert(PHOTOS, photo("p3", "snake_case", "2024-01-01T00:00:03Z"))
        for term, expected in (("%", ["p1"]), ("_", ["p3"]), ("'", [])):
            match = SubstringMatch(fields=("title",), term=term)
            results = self.store.query(PHOTOS, DocumentQuery(match=match))
            self.assertEqual([d["id"] for d in results], expected, term)

    def test_query_by_partition(self):
        self.store.insert(RATINGS, rating("r1", "p1", 4))
        self.store.insert(RATINGS, rating("r2", "p2", 1))
        self.store.insert(RATINGS, rating("r3", "p1", 2))
        results = self.store.query(RATINGS, DocumentQuery(partition_key="p1"))
        self.assertEqual([d["id"] for d in results], ["r3", "r1"])

    def test_aggregates(self):
        count = Aggregate(AggregateFn.COUNT)
        avg = Aggregate(AggregateFn.AVG, "rating")
        self.assertEqual(self.store.aggregate(RATINGS, "p1", count), 0)
        self.assertIsNone(self.store.aggregate(RATINGS, "p1", avg))

        self.store.insert(RATINGS, rating("r1", "p1", 4))
        self.store.insert(RATINGS, rating("r2", "p1", 2))
        self.store.insert(RATINGS, rating("r3", "p2", 5))
        self.assertEqual(self.store.aggregate(RATINGS, "p1", count), 2)
        self.assertEqual(self.store.aggregate(RATINGS, "p1", avg), 3)
        self.assertEqual(self.store.aggregate(RATINGS, "p2", avg), 5)


class InMemoryDocumentStoreTests(DocumentStoreContract, unittest.TestCase):
    def make_store(self):
        return InMemoryDocumentStore()

    def test_unprovisioned_collection(self):
        store = InMemoryDocumentStore()
        with self.assertRaises(StorageError):
            store.insert(PHOTOS, photo("p1", "Sunset", "2024-01-01T00:00:01Z"))

    def test_returned_documents_are_copies(self):
        self.store.insert(PHOTOS, photo("p1", "Sunset", "x", tags=["a"]))
        fetched = self.store.point_read(PHOTOS, "p1", "p1")
        fetched["tags"].append("b")
        self.assertEqual(self.store.point_read(PHOTOS, "p1", "p1")["tags"], ["a"])


class SqlDocumentStoreTests(DocumentStoreContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL store.
    """

    def make_store(self):
        return SqlDocumentStore("sqlite+pysqlite:///:memory:")

    def test_unprovisioned_collection(self):
        store = SqlDocumentStore("sqlite+pysqlite:///:memory:")
        with self.assertRaises(StorageError):
            store.insert(PHOTOS, photo("p1", "Sunset", "2024-01-01T00:00:01Z"))

    def test_physical_table_names(self):
        store = SqlDocumentStore(
            "sqlite+pysqlite:///:memory:",
            default_collections(photos_table="pics"),
        )
        self.assertEqual(store.tables[PHOTOS].name, "pics")
        store.provision()
        store.insert(PHOTOS, photo("p1", "Sunset", "2024-01-01T00:00:01Z"))
        self.assertEqual(store.point_read(PHOTOS, "p1", "p1")["id"], "p1")

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            SqlDocumentStore("")


if __name__ == "__main__":
    unittest.main()
