import unittest
from unittest.mock import patch

from botocore.exceptions import ClientError, EndpointConnectionError

from sharepic.errors import StorageError
from sharepic.media import InMemoryMediaStore, S3MediaStore, new_object_key


def client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class ObjectKeyTests(unittest.TestCase):
    def test_keeps_extension(self):
        self.assertTrue(new_object_key("holiday.photo.JPG").endswith(".jpg"))

    def test_default_extension(self):
        for name in (None, "", "noext", "bad.ext/../x", "weird.!!"):
            self.assertTrue(new_object_key(name).endswith(".bin"), name)

    def test_keys_are_unique(self):
        keys = {new_object_key("a.png") for _ in range(100)}
        self.assertEqual(len(keys), 100)


class InMemoryMediaStoreTests(unittest.TestCase):
    def test_store_and_delete(self):
        store = InMemoryMediaStore()
        locator = store.store(b"bytes", "a.gif", None)
        self.assertTrue(store.container_ready)
        self.assertEqual(store.get(locator).content_type, "application/octet-stream")
        store.delete(locator)
        self.assertIsNone(store.get(locator))


@patch("sharepic.media.boto3.client")
class S3MediaStoreTests(unittest.TestCase):
    def make_store(self, **kwargs):
        kwargs.setdefault("bucket", "images")
        kwargs.setdefault("endpoint", "http://minio:9000")
        return S3MediaStore(**kwargs)

    def test_existing_bucket_is_not_created(self, mock_client):
        store = self.make_store()
        store.ensure_container()
        store.ensure_container()
        s3 = mock_client.return_value
        s3.head_bucket.assert_called_once_with(Bucket="images")
        s3.create_bucket.assert_not_called()

    def test_missing_bucket_is_created_in_region(self, mock_client):
        s3 = mock_client.return_value
        s3.head_bucket.side_effect = client_error("404", "HeadBucket")
        store = self.make_store(region="eu-west-1")
        store.ensure_container()
        s3.create_bucket.assert_called_once_with(
            Bucket="images",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    def test_bucket_created_concurrently_is_fine(self, mock_client):
        s3 = mock_client.return_value
        s3.head_bucket.side_effect = client_error("NoSuchBucket", "HeadBucket")
        s3.create_bucket.side_effect = client_error(
            "BucketAlreadyOwnedByYou", "CreateBucket"
        )
        self.make_store().ensure_container()

    def test_forbidden_bucket_is_a_storage_error(self, mock_client):
        s3 = mock_client.return_value
        s3.head_bucket.side_effect = client_error("403", "HeadBucket")
        with self.assertRaises(StorageError):
            self.make_store().ensure_container()
        s3.create_bucket.assert_not_called()

    def test_store_writes_object_and_returns_locator(self, mock_client):
        s3 = mock_client.return_value
        store = self.make_store()
        locator = store.store(b"data", "cat.png", "image/png")

        s3.put_object.assert_called_once()
        params = s3.put_object.call_args.kwargs
        self.assertEqual(params["Bucket"], "images")
        self.assertEqual(params["Body"], b"data")
        self.assertEqual(params["ContentType"], "image/png")
        self.assertEqual(params["ACL"], "public-read")
        self.assertTrue(params["Key"].endswith(".png"))
        self.assertEqual(locator, f"http://minio:9000/images/{params['Key']}")

    def test_private_objects_have_no_acl(self, mock_client):
        store = self.make_store(public_read=False)
        store.store(b"data", "cat.png", None)
        params = mock_client.return_value.put_object.call_args.kwargs
        self.assertNotIn("ACL", params)
        self.assertEqual(params["ContentType"], "application/octet-stream")

    def test_transport_failure_is_a_storage_error(self, mock_client):
        s3 = mock_client.return_value
        s3.put_object.side_effect = EndpointConnectionError(
            endpoint_url="http://minio:9000"
        )
        with self.assertRaises(StorageError):
            self.make_store().store(b"data", "cat.png", "image/png")
        self.assertEqual(s3.put_object.call_count, 1)

    def test_delete_uses_key_from_locator(self, mock_client):
        store = self.make_store()
        store.delete("http://minio:9000/images/abc.png")
        mock_client.return_value.delete_object.assert_called_once_with(
            Bucket="images", Key="abc.png"
        )

    def test_locator_variants(self, mock_client):
        self.assertEqual(
            self.make_store(public_base_url="https://cdn.test/media/").locator_for("k.jpg"),
            "https://cdn.test/media/k.jpg",
        )
        self.assertEqual(
            self.make_store(endpoint=None, region="eu-west-1").locator_for("k.jpg"),
            "https://images.s3.eu-west-1.amazonaws.com/k.jpg",
        )


if __name__ == "__main__":
    unittest.main()
