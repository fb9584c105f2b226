"""
Unit tests for the build-time manifest generation script.
"""

import json
from unittest.mock import patch

import pytest

from shared.config import BaseConfig
from shared.errors import GenerationFailure
from scripts import generate_static_data
from service_catalog.tests.helpers import FakeProductStore, create_test_records


class RecordingStore(FakeProductStore):
    """Fake store that accepts the Postgres constructor arguments."""

    instances = []

    def __init__(self, dsn, *, command_timeout=30.0):
        super().__init__(create_test_records())
        self.dsn = dsn
        self.stopped = False
        RecordingStore.instances.append(self)

    async def stop(self):
        self.stopped = True


class TestGenerateStaticData:
    """Test cases for the generate_static_data script."""

    @pytest.fixture(autouse=True)
    def reset_instances(self):
        RecordingStore.instances = []

    @pytest.mark.asyncio
    async def test_generate_writes_manifest(self, tmp_path):
        """Test that the manifest is written and summarized."""
        output = tmp_path / "data" / "manifest.json"

        with patch.object(generate_static_data, "PostgresProductStore", RecordingStore):
            summary = await generate_static_data.generate(
                dsn="postgres://build/catalog",
                output=output,
                config=BaseConfig(),
                dry_run=False,
            )

        document = json.loads(output.read_text())
        assert document["version"] == summary["version"]
        assert summary["products"] == 4
        assert RecordingStore.instances[0].dsn == "postgres://build/catalog"
        assert RecordingStore.instances[0].stopped is True

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, tmp_path):
        """Test that a dry run only summarizes."""
        output = tmp_path / "manifest.json"

        with patch.object(generate_static_data, "PostgresProductStore", RecordingStore):
            summary = await generate_static_data.generate(
                dsn="postgres://build/catalog",
                output=output,
                config=BaseConfig(),
                dry_run=True,
            )

        assert not output.exists()
        assert summary["categories"] == 2

    @pytest.mark.asyncio
    async def test_store_closed_on_failure(self, tmp_path):
        """Test that the store is stopped even when generation fails."""
        class FailingStore(RecordingStore):
            async def fetch_published_products(self):
                raise GenerationFailure("database down")

        with patch.object(generate_static_data, "PostgresProductStore", FailingStore):
            with pytest.raises(GenerationFailure):
                await generate_static_data.generate(
                    dsn="postgres://build/catalog",
                    output=tmp_path / "manifest.json",
                    config=BaseConfig(),
                    dry_run=False,
                )

        assert RecordingStore.instances[0].stopped is True

    def test_main_reports_failure(self, tmp_path, capsys):
        """Test the exit code when generation fails."""
        with patch.object(generate_static_data, "generate", side_effect=GenerationFailure("database down")), \
                patch("sys.argv", ["generate_static_data", "--output", str(tmp_path / "m.json")]):
            exit_code = generate_static_data.main()

        assert exit_code == 1
        assert "database down" in capsys.readouterr().err
