"""Tests for the media catalog."""

import pytest

from optimized_versions.services.catalog import MediaCatalog


def test_register_and_lookup():
    catalog = MediaCatalog({"movie-1": "/media/movie.mkv"})
    catalog.register("show-1", "/media/show.mkv")

    assert catalog.get_source_path("movie-1") == "/media/movie.mkv"
    assert catalog.get_source_path("show-1") == "/media/show.mkv"
    assert catalog.get_source_path("unknown") is None
    assert len(catalog) == 2
    assert "show-1" in catalog


def test_from_file(tmp_path):
    catalog_file = tmp_path / "catalog.yaml"
    catalog_file.write_text("movie-1: /media/movie.mkv\n42: /media/answer.mkv\n")

    catalog = MediaCatalog.from_file(str(catalog_file))

    assert catalog.get_source_path("movie-1") == "/media/movie.mkv"
    assert catalog.get_source_path("42") == "/media/answer.mkv"


def test_missing_or_unset_file_is_empty(tmp_path):
    assert len(MediaCatalog.from_file(None)) == 0
    assert len(MediaCatalog.from_file(str(tmp_path / "missing.yaml"))) == 0


def test_non_mapping_file_rejected(tmp_path):
    catalog_file = tmp_path / "catalog.yaml"
    catalog_file.write_text("- just\n- a list\n")

    with pytest.raises(ValueError):
        MediaCatalog.from_file(str(catalog_file))
