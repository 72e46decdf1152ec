"""
Integration tests for the photo-triage CLI.

These tests run the commands end-to-end against a manifest and a JSON state
directory.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from photo_triage.cli.main import cli
from photo_triage.storage import JsonFileStore


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def manifest(temp_dir: Path, manifest_data) -> Path:
    path = temp_dir / "manifest.json"
    path.write_text(json.dumps(manifest_data))
    return path


@pytest.fixture
def state_dir(temp_dir: Path) -> Path:
    return temp_dir / "state"


def invoke(cli_runner: CliRunner, state_dir: Path, *args: str, **kwargs):
    return cli_runner.invoke(
        cli, ["--state-dir", str(state_dir), "--backend", "json", *args], **kwargs
    )


def stored_state(state_dir: Path) -> JsonFileStore:
    return JsonFileStore(state_dir / "cleanup_state.json")


class TestStatusCommand:
    """Tests for the status command."""

    def test_lists_collections(self, cli_runner, state_dir, manifest) -> None:
        result = invoke(cli_runner, state_dir, "status", str(manifest))

        assert result.exit_code == 0
        assert "Trip" in result.output
        assert "Beach" in result.output

    def test_missing_manifest(self, cli_runner, state_dir, temp_dir) -> None:
        result = invoke(cli_runner, state_dir, "status", str(temp_dir / "none.json"))
        assert result.exit_code != 0

    def test_invalid_manifest(self, cli_runner, state_dir, temp_dir) -> None:
        """Test an unreadable manifest is reported with exit code 1."""
        path = temp_dir / "broken.json"
        path.write_text("{not json")

        result = invoke(cli_runner, state_dir, "status", str(path))
        assert result.exit_code == 1
        assert "Error" in result.output


class TestAnalyzeCommand:
    """Tests for the analyze command."""

    def test_analyze_persists_groups(self, cli_runner, state_dir, manifest) -> None:
        """Test analysis results land in the state file."""
        result = invoke(cli_runner, state_dir, "-q", "analyze", str(manifest), "Trip")

        assert result.exit_code == 0
        record = stored_state(state_dir).get("catalog/Trip")
        assert [len(g["photo_ids"]) for g in record["groups"]] == [4, 3, 3]

    def test_manifest_without_collection_key(
        self, cli_runner, state_dir, manifest
    ) -> None:
        """Test photos inherit their collection from the manifest."""
        result = invoke(cli_runner, state_dir, "analyze", str(manifest), "Beach")

        assert result.exit_code == 0
        record = stored_state(state_dir).get("catalog/Beach")
        assert [len(g["photo_ids"]) for g in record["groups"]] == [2, 1]

    def test_unknown_collection(self, cli_runner, state_dir, manifest) -> None:
        result = invoke(cli_runner, state_dir, "analyze", str(manifest), "Nowhere")

        assert result.exit_code == 1
        assert "unknown collection" in result.output


class TestReviewCommand:
    """Tests for the review command."""

    def test_review_all_batches(self, cli_runner, state_dir, manifest) -> None:
        """Test accepting every batch completes the collection."""
        result = invoke(cli_runner, state_dir, "review", str(manifest), "Trip", "--yes")

        assert result.exit_code == 0
        assert "Nothing left to review" in result.output

        record = stored_state(state_dir).get("catalog/Trip")
        assert all(g["processed"] for g in record["groups"])

    def test_limit(self, cli_runner, state_dir, manifest) -> None:
        """Test --limit stops after the given number of batches."""
        result = invoke(
            cli_runner,
            state_dir,
            "--batch-size",
            "5",
            "review",
            str(manifest),
            "Trip",
            "-y",
            "--limit",
            "1",
        )

        assert result.exit_code == 0
        record = stored_state(state_dir).get("catalog/Trip")
        assert [g["processed"] for g in record["groups"]] == [True, False, False]

    def test_stop_saves_position(self, cli_runner, state_dir, manifest) -> None:
        """Test declining a batch checkpoints the chosen photo."""
        result = invoke(
            cli_runner,
            state_dir,
            "--batch-size",
            "5",
            "review",
            str(manifest),
            "Trip",
            input="n\n2\n",
        )

        assert result.exit_code == 0
        assert "Saved position 2" in result.output
        checkpoint = stored_state(state_dir).get("checkpoint/Trip")
        assert checkpoint["index"] == 2
        assert len(checkpoint["orderedGroupIds"]) == 1

    def test_round_robin(self, cli_runner, state_dir, manifest) -> None:
        """Test review continues into other analyzed collections."""
        invoke(cli_runner, state_dir, "-q", "analyze", str(manifest), "Beach")

        result = invoke(
            cli_runner,
            state_dir,
            "review",
            str(manifest),
            "Trip",
            "--yes",
            "--round-robin",
        )

        assert result.exit_code == 0
        store = stored_state(state_dir)
        for collection_id in ["Trip", "Beach"]:
            record = store.get(f"catalog/{collection_id}")
            assert all(g["processed"] for g in record["groups"])


class TestResetCommand:
    """Tests for the reset command."""

    def test_reset(self, cli_runner, state_dir, manifest) -> None:
        """Test reset clears progress and flags re-analysis."""
        invoke(cli_runner, state_dir, "review", str(manifest), "Trip", "--yes")

        result = invoke(cli_runner, state_dir, "reset", str(manifest), "Trip", "--yes")

        assert result.exit_code == 0
        record = stored_state(state_dir).get("catalog/Trip")
        assert record["needs_analysis"] is True
        assert not any(g["processed"] for g in record["groups"])

    def test_reset_declined(self, cli_runner, state_dir, manifest) -> None:
        invoke(cli_runner, state_dir, "-q", "analyze", str(manifest), "Trip")

        result = invoke(
            cli_runner, state_dir, "reset", str(manifest), "Trip", input="n\n"
        )

        assert result.exit_code == 0
        assert stored_state(state_dir).get("catalog/Trip")["needs_analysis"] is False


class TestMonthsCommand:
    """Tests for the months command."""

    def test_months(self, cli_runner, state_dir, manifest) -> None:
        result = invoke(cli_runner, state_dir, "months", str(manifest))

        assert result.exit_code == 0
        assert "2024-07" in result.output
        assert "2024-06" in result.output
        assert result.output.index("2024-07") < result.output.index("2024-06")


class TestGlobalOptions:
    """Tests for options on the command group."""

    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_invalid_batch_size(self, cli_runner, state_dir, manifest) -> None:
        """Test invalid settings are reported with exit code 1."""
        result = invoke(
            cli_runner, state_dir, "--batch-size", "0", "status", str(manifest)
        )
        assert result.exit_code == 1
