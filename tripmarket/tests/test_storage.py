import unittest
from unittest.mock import patch

from shared import constants
from tripmarket import storage
from tripmarket.errors import NotFoundError, ValidationError

ORDER_ID = "6f1c2b9e-3d4a-4f5b-8c7d-1e2f3a4b5c6d"


class StorageTests(unittest.TestCase):
    def setUp(self):
        self.client = storage.InMemoryStorageClient()

    def test_upload_stores_under_user_prefix(self):
        stored = storage.upload(
            self.client,
            kind="license",
            user_id="u1",
            filename="license.PNG",
            data=b"png",
            content_type="image/png",
        )
        self.assertEqual(stored["bucket"], constants.LICENSES_BUCKET)
        self.assertTrue(stored["path"].startswith("u1/"))
        self.assertTrue(stored["path"].endswith(".png"))
        self.assertEqual(self.client.get_bytes(stored["bucket"], stored["path"]), b"png")
        self.assertTrue(storage.owns_path("u1", stored["path"]))
        self.assertFalse(storage.owns_path("u2", stored["path"]))

    def test_id_card_uploads_need_an_order(self):
        with self.assertRaises(ValidationError):
            storage.upload(
                self.client,
                kind="id_card",
                user_id="u1",
                filename="front.jpg",
                data=b"jpg",
                content_type="image/jpeg",
            )
        stored = storage.upload(
            self.client,
            kind="id_card",
            user_id="u1",
            filename="front.jpg",
            data=b"jpg",
            content_type="image/jpeg",
            order_id=ORDER_ID,
        )
        self.assertTrue(stored["path"].startswith(f"u1/{ORDER_ID}/"))

    def test_order_id_must_be_a_uuid(self):
        with self.assertRaises(ValidationError):
            storage.build_path("id_card", "attacker", "a.jpg", order_id="../victim/o")

    def test_filename_cannot_escape_user_prefix(self):
        path = storage.build_path("avatar", "attacker", "x./../../victim/evil")
        self.assertTrue(path.startswith("attacker/"))
        self.assertTrue(path.endswith(".bin"))
        self.assertTrue(storage.is_safe_path(path))

    def test_owns_path_rejects_dot_segments(self):
        self.assertFalse(storage.owns_path("attacker", "attacker/../victim/o1/123.jpg"))
        self.assertFalse(storage.owns_path("attacker", "attacker//victim.jpg"))
        self.assertFalse(storage.owns_path("attacker", "/attacker/a.jpg"))
        self.assertFalse(storage.owns_path("attacker", "attacker/./a.jpg"))
        self.assertTrue(storage.owns_path("attacker", "attacker/o1/123.jpg"))

    def test_rejects_unknown_kind_and_oversized_files(self):
        with self.assertRaises(ValidationError):
            storage.build_path("resume", "u1", "cv.pdf")
        with self.assertRaises(ValidationError):
            storage.upload(
                self.client,
                kind="avatar",
                user_id="u1",
                filename="big.png",
                data=b"x" * 2048,
                content_type="image/png",
                max_size_mb=0.001,
            )

    def test_presign_and_delete(self):
        url = self.client.upload_bytes("avatars", "u1/a.png", b"x", "image/png")
        self.assertIn("avatars/u1/a.png", url)
        self.assertIn("expires=60", self.client.presign_get("avatars", "u1/a.png", 60))
        self.client.delete("avatars", "u1/a.png")
        with self.assertRaises(NotFoundError):
            self.client.presign_get("avatars", "u1/a.png")

    @patch("tripmarket.storage.boto3.client")
    def test_cos_client_prefixes_keys_with_bucket(self, mock_client):
        cos = storage.CosStorageClient(
            bucket="tripmarket-1250000000",
            region="ap-shanghai",
            endpoint="https://cos.ap-shanghai.myqcloud.com",
            access_key_id="id",
            secret_access_key="secret",
        )
        url = cos.upload_bytes("avatars", "u1/a.png", b"x", "image/png")
        mock_client.return_value.put_object.assert_called_once_with(
            Bucket="tripmarket-1250000000",
            Key="avatars/u1/a.png",
            Body=b"x",
            ContentType="image/png",
        )
        self.assertEqual(
            url, "https://cos.ap-shanghai.myqcloud.com/tripmarket-1250000000/avatars/u1/a.png"
        )
        cos.delete("avatars", "u1/a.png")
        mock_client.return_value.delete_object.assert_called_once_with(
            Bucket="tripmarket-1250000000", Key="avatars/u1/a.png"
        )


if __name__ == "__main__":
    unittest.main()
