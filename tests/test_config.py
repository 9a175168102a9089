"""Tests for settings defaults."""

from sqlalchemy.engine import make_url

from parcelflow.config import Settings


class TestDatabaseUrls:
    def test_sync_url_uses_the_psycopg2_driver(self):
        url = make_url(Settings.model_fields["database_url_sync"].default)
        assert url.drivername == "postgresql+psycopg2"

    def test_async_url_uses_the_asyncpg_driver(self):
        url = make_url(Settings.model_fields["database_url"].default)
        assert url.drivername == "postgresql+asyncpg"

    def test_both_urls_point_at_the_same_database(self):
        sync_url = make_url(Settings.model_fields["database_url_sync"].default)
        async_url = make_url(Settings.model_fields["database_url"].default)
        assert sync_url.set(drivername="postgresql") == async_url.set(drivername="postgresql")
