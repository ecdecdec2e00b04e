"""
Tests for the import runner entry point
"""

import pytest

from engmetrics.run_imports import parse_arguments, run_imports


class TestParseArguments:
    """Tests for parse_arguments"""

    def test_defaults(self):
        """Test that no arguments imports everything"""
        args = parse_arguments([])

        assert args.data_source is None
        assert args.cleanup_stale is False
        assert args.database is None

    def test_all_options(self):
        """Test every option"""
        args = parse_arguments(["--data-source", "ds_1", "--cleanup-stale", "--database", "/tmp/metrics.db"])

        assert args.data_source == "ds_1"
        assert args.cleanup_stale is True
        assert args.database == "/tmp/metrics.db"


class TestRunImports:
    """Tests for run_imports"""

    @pytest.mark.asyncio
    async def test_empty_database(self, tmp_path):
        """Test that a database without data sources runs nothing"""
        args = parse_arguments(["--database", str(tmp_path / "metrics.db"), "--cleanup-stale"])

        assert await run_imports(args) == []
        assert (tmp_path / "metrics.db").exists()
