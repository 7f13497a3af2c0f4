from __future__ import annotations

import os
import unittest
from unittest.mock import MagicMock, patch

import httpx

from app.errors import ValidationError
from app.services.storage import (
    StorageClient,
    StorageError,
    build_object_path,
    resolve_bucket,
    validate_image,
)
from app.settings import get_settings


class UploadValidationTests(unittest.TestCase):
    def setUp(self) -> None:
        get_settings.cache_clear()

    def tearDown(self) -> None:
        get_settings.cache_clear()

    def test_known_kinds_map_to_configured_buckets(self) -> None:
        with patch.dict(os.environ, {"BUCKET_SELFIES": "selfies-prod"}, clear=False):
            get_settings.cache_clear()
            self.assertEqual(resolve_bucket("selfie"), "selfies-prod")
            self.assertEqual(resolve_bucket("avatar"), get_settings().bucket_avatars)

    def test_unknown_kind_lists_allowed_values(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            resolve_bucket("invoice")
        self.assertEqual(ctx.exception.code, "INVALID_UPLOAD_KIND")
        self.assertEqual(ctx.exception.details, {"allowed": ["avatar", "form_photo", "material", "selfie"]})

    def test_image_types_are_accepted(self) -> None:
        self.assertEqual(validate_image("image/jpeg", 1024), "jpg")
        self.assertEqual(validate_image("image/PNG; charset=binary", 1024), "png")

    def test_non_image_is_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_image("application/pdf", 1024)
        self.assertEqual(ctx.exception.code, "UNSUPPORTED_FILE_TYPE")

    def test_empty_and_oversized_files_are_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_image("image/webp", 0)
        self.assertEqual(ctx.exception.code, "EMPTY_FILE")

        with patch.dict(os.environ, {"UPLOAD_MAX_BYTES": "2048"}, clear=False):
            get_settings.cache_clear()
            with self.assertRaises(ValidationError) as ctx:
                validate_image("image/webp", 2049)
            self.assertEqual(ctx.exception.code, "FILE_TOO_LARGE")

    def test_object_path_is_namespaced_by_org_and_user(self) -> None:
        path = build_object_path("org-1", "exec-1", "jpg")
        self.assertTrue(path.startswith("org-1/exec-1/"))
        self.assertTrue(path.endswith(".jpg"))
        self.assertNotEqual(path, build_object_path("org-1", "exec-1", "jpg"))


class StorageClientTests(unittest.TestCase):
    def _client_returning(self, response: httpx.Response) -> MagicMock:
        http_client = MagicMock()
        http_client.__enter__.return_value = http_client
        http_client.post.return_value = response
        return http_client

    def test_upload_returns_public_url(self) -> None:
        storage = StorageClient("http://storage.local/storage/v1/", service_key="svc")
        http_client = self._client_returning(httpx.Response(200, json={"Key": "selfies/a.jpg"}))

        with patch("app.services.storage.httpx.Client", return_value=http_client):
            stored = storage.upload("selfies", "org-1/exec-1/a.jpg", b"img", "image/jpeg")

        self.assertEqual(stored.url, "http://storage.local/storage/v1/object/public/selfies/org-1/exec-1/a.jpg")
        _, kwargs = http_client.post.call_args
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer svc")
        self.assertEqual(kwargs["content"], b"img")

    def test_rejected_upload_raises_storage_error(self) -> None:
        storage = StorageClient("http://storage.local/storage/v1", service_key="svc")
        http_client = self._client_returning(httpx.Response(400, json={"error": "Duplicate"}))

        with patch("app.services.storage.httpx.Client", return_value=http_client):
            with self.assertRaises(StorageError) as ctx:
                storage.upload("selfies", "org-1/exec-1/a.jpg", b"img", "image/jpeg")
        self.assertEqual(ctx.exception.status_code, 502)

    def test_network_failure_raises_storage_error(self) -> None:
        storage = StorageClient("http://storage.local/storage/v1", service_key="svc")
        http_client = MagicMock()
        http_client.__enter__.return_value = http_client
        http_client.post.side_effect = httpx.ConnectError("connection refused")

        with patch("app.services.storage.httpx.Client", return_value=http_client):
            with self.assertRaises(StorageError):
                storage.upload("selfies", "org-1/exec-1/a.jpg", b"img", "image/jpeg")


if __name__ == "__main__":
    unittest.main()
