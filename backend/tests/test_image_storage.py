"""
Local image storage tests: files land under the upload folder, are served
from /uploads, and only URLs the storage issued can be deleted.
"""

import os

import pytest

from storefront.services.image_storage import ImageStorage, ImageStorageError, LocalImageStorage


@pytest.fixture
def storage(tmp_path):
    return LocalImageStorage(upload_folder=str(tmp_path), base_url="/uploads/", root="storefront")


class TestLocalImageStorage:

    def test_upload_and_delete(self, storage, tmp_path):
        url = storage.upload(b"png-bytes", folder="brands", filename="Logo.PNG")
        assert url.startswith("/uploads/storefront/brands/")
        assert url.endswith(".png")

        public_id = storage.public_id_from_url(url)
        path = os.path.join(str(tmp_path), *public_id.split("/")) + ".png"
        with open(path, "rb") as fh:
            assert fh.read() == b"png-bytes"

        storage.delete(public_id)
        assert not os.path.exists(path)

    def test_default_extension(self, storage):
        assert storage.upload(b"data", folder="preorders").endswith(".jpg")

    @pytest.mark.parametrize("data,filename", [(b"", "a.jpg"), (b"x", "script.exe")])
    def test_rejected_uploads(self, storage, data, filename):
        with pytest.raises(ImageStorageError):
            storage.upload(data, folder="products", filename=filename)

    def test_foreign_urls_have_no_public_id(self, storage):
        assert storage.public_id_from_url("https://cdn.example.com/x.jpg") is None
        assert storage.public_id_from_url("/uploads/other/x.jpg") is None
        assert storage.public_id_from_url(None) is None

    def test_delete_missing(self, storage):
        with pytest.raises(ImageStorageError):
            storage.delete("storefront/products/missing")

    @pytest.mark.parametrize("url", [
        "/uploads/storefront/../../secrets/keep.jpg",
        "/uploads/storefront/products/../../../keep.jpg",
        "/uploads/storefront//keep.jpg",
    ])
    def test_traversal_urls_have_no_public_id(self, storage, url):
        assert storage.public_id_from_url(url) is None

    @pytest.mark.parametrize("public_id", [
        "storefront/../../secrets/keep",
        "storefront/products/../../../secrets/keep",
        "../secrets/keep",
        "storefront//keep",
    ])
    def test_delete_stays_inside_upload_folder(self, tmp_path, public_id):
        uploads = tmp_path / "uploads"
        (uploads / "storefront" / "products").mkdir(parents=True)
        secrets = tmp_path / "secrets"
        secrets.mkdir()
        kept = secrets / "keep.jpg"
        kept.write_bytes(b"keep me")

        storage = LocalImageStorage(upload_folder=str(uploads), base_url="/uploads/", root="storefront")
        with pytest.raises(ImageStorageError):
            storage.delete(public_id)
        assert kept.exists()

    def test_abstract_backend_cannot_be_built(self):
        class UploadOnly(ImageStorage):
            def upload(self, data, *, folder, filename=None):
                return "https://images.test/x.jpg"

        with pytest.raises(TypeError):
            UploadOnly()


class TestServeUploads:

    def test_uploaded_file_is_served(self, app, client):
        storage = LocalImageStorage(
            upload_folder=app.config["UPLOAD_FOLDER"],
            base_url=app.config["IMAGE_BASE_URL"],
            root=app.config["IMAGE_STORAGE_ROOT"],
        )
        url = storage.upload(b"served-bytes", folder="categories", filename="c.jpg")

        resp = client.get(url)
        assert resp.status_code == 200
        assert resp.data == b"served-bytes"
