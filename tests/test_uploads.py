"""Tests for upload storage."""

import io

import pytest
from werkzeug.datastructures import FileStorage

from friplass.services.uploads import UploadError, UploadStore


def make_file(name="bilde.PNG", data=b"\x89PNG"):
    return FileStorage(stream=io.BytesIO(data), filename=name)


class TestUploadStore:
    """Tests for UploadStore."""

    def test_save(self, upload_store):
        result = upload_store.save(make_file())

        assert result["url"].startswith("/uploads/")
        assert result["url"].endswith(".png")
        path = upload_store.path_for(result["url"])
        assert path.read_bytes() == b"\x89PNG"

    def test_default_extension(self, upload_store):
        assert upload_store.save(make_file(name="bilde")).get("url").endswith(".jpg")

    def test_names_are_unique(self, upload_store):
        first = upload_store.save(make_file())
        second = upload_store.save(make_file())
        assert first["url"] != second["url"]

    def test_missing_file(self, upload_store):
        with pytest.raises(UploadError) as exc_info:
            upload_store.save(None)
        assert exc_info.value.status == 400
        assert exc_info.value.to_dict() == {"error": "Ingen filer mottatt"}

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        store = UploadStore(str(blocker / "uploads"))

        with pytest.raises(UploadError) as exc_info:
            store.save(make_file())
        assert exc_info.value.status == 500

    @pytest.mark.parametrize(
        "url",
        ["/elsewhere/a.jpg", "/uploads/", "/uploads/../secret", "/uploads/.hidden", None, 5],
    )
    def test_path_for_rejects_foreign_urls(self, upload_store, url):
        assert upload_store.path_for(url) is None


class TestDeleteBestEffort:
    """Tests for best-effort upload removal."""

    def test_deletes_stored_file(self, upload_store):
        url = upload_store.save(make_file())["url"]

        assert upload_store.delete_best_effort(url) is True
        assert not upload_store.path_for(url).exists()

    def test_missing_file_does_not_raise(self, upload_store):
        assert upload_store.delete_best_effort("/uploads/gone.jpg") is False

    def test_foreign_url_does_not_raise(self, upload_store):
        assert upload_store.delete_best_effort("https://example.com/a.jpg") is False
