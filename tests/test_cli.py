"""Tests for the click command-line interface."""

import json

import pytest
from click.testing import CliRunner
from unittest.mock import patch

from main import cli
from store import JsonFilePersistence, VersionedOverviewStore

from conftest import IDEA_ID, make_overview, make_feedback


@pytest.fixture
def run(tmp_path, service):
    runner = CliRunner()

    def invoke(*args, input=None):
        with patch("main.LLMGenerationService", return_value=service):
            return runner.invoke(cli, ["--store-dir", str(tmp_path), *args], input=input)

    return invoke


@pytest.fixture
def overview_file(tmp_path):
    path = tmp_path / "inputs" / "overview.json"
    path.parent.mkdir()
    path.write_text(json.dumps(make_overview().model_dump()), encoding="utf-8")
    return str(path)


@pytest.fixture
def initialized(run, overview_file):
    result = run("init", IDEA_ID, "--overview", overview_file, "--target-market", "UK dental clinics")
    assert result.exit_code == 0, result.output
    return result


def _stored(tmp_path):
    return VersionedOverviewStore(JsonFilePersistence(str(tmp_path))).read(IDEA_ID)


class TestInit:
    """Test the init command."""

    def test_creates_idea(self, initialized, tmp_path):
        assert "Created" in initialized.output
        assert "Overall confidence" in initialized.output
        record = _stored(tmp_path)
        assert record.version == 1
        assert record.context.target_market == "UK dental clinics"

    def test_invalid_json(self, run, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        result = run("init", IDEA_ID, "--overview", str(bad))
        assert result.exit_code == 1
        assert "ValidationError" in result.output

    def test_duplicate_idea(self, run, initialized, overview_file):
        result = run("init", IDEA_ID, "--overview", overview_file)
        assert result.exit_code == 1
        assert "already exists" in result.output


class TestRefine:
    """Test the directions and refine commands."""

    def test_directions(self, run, initialized):
        result = run("directions", IDEA_ID, "competition")
        assert result.exit_code == 0, result.output
        assert "direction-1" in result.output

    def test_refine_auto(self, run, initialized, tmp_path, service):
        service.score_queue.append(make_feedback(pricing_potential=70))
        result = run("refine", IDEA_ID, "pricingPotential", "--direction", "auto")
        assert result.exit_code == 0, result.output
        assert "v2" in result.output
        assert "Problem Summary" in result.output
        assert _stored(tmp_path).version == 2

    def test_refine_interactive_selection(self, run, initialized, tmp_path):
        result = run("refine", IDEA_ID, "competition", input="direction-2\n")
        assert result.exit_code == 0, result.output
        record = _stored(tmp_path)
        assert record.history[0].direction.id == "direction-2"

    def test_overall_drop_is_flagged(self, run, initialized, service):
        service.score_queue.append(make_feedback(competition=80, market_demand=40))
        result = run("refine", IDEA_ID, "competition", "-d", "auto")
        assert result.exit_code == 0, result.output
        assert "Overall confidence dropped" in result.output

    def test_unknown_pillar(self, run, initialized):
        result = run("refine", IDEA_ID, "virality", "-d", "auto")
        assert result.exit_code == 2

    def test_failure_exits_with_error(self, run, initialized, service, tmp_path):
        from contracts import GenerationError
        service.rewrite_queue.append(GenerationError("model unavailable"))
        result = run("refine", IDEA_ID, "competition", "-d", "auto")
        assert result.exit_code == 1
        assert "GenerationError" in result.output
        assert _stored(tmp_path).version == 1


class TestAutoImproveAndUndo:
    """Test auto-improve, undo, history and show."""

    def test_auto_improve(self, run, initialized, tmp_path):
        result = run("auto-improve", IDEA_ID, "--target", "99", "--max-iterations", "2")
        assert result.exit_code == 0, result.output
        assert "iteration_limit" in result.output
        assert "Iterations: 2/2" in result.output
        assert _stored(tmp_path).version == 3

    def test_undo_and_history(self, run, initialized, tmp_path):
        run("refine", IDEA_ID, "feasibility", "-d", "auto")

        result = run("undo", IDEA_ID)
        assert result.exit_code == 0, result.output
        assert "version 3" in result.output
        assert _stored(tmp_path).feedback_stale is True

        history = run("history", IDEA_ID)
        assert history.exit_code == 0
        assert "Feasibility" in history.output

        again = run("undo", IDEA_ID)
        assert again.exit_code == 1
        assert "EmptyUndoError" in again.output

    def test_undo_with_rescore(self, run, initialized, tmp_path):
        run("refine", IDEA_ID, "feasibility", "-d", "auto")
        result = run("undo", IDEA_ID, "--rescore")
        assert result.exit_code == 0, result.output
        assert _stored(tmp_path).feedback_stale is False

    def test_history_empty(self, run, initialized):
        result = run("history", IDEA_ID)
        assert "No improvements yet" in result.output

    def test_show(self, run, initialized):
        result = run("show", IDEA_ID)
        assert result.exit_code == 0, result.output
        assert "Unique Value Proposition" in result.output

    def test_show_json(self, run, initialized):
        result = run("show", IDEA_ID, "--json")
        data = json.loads(result.output)
        assert data["version"] == 1
        assert data["idea_id"] == IDEA_ID

    def test_unknown_idea(self, run):
        result = run("show", "missing")
        assert result.exit_code == 1
        assert "IdeaNotFoundError" in result.output


def test_list_providers(run, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    result = run("list-providers")
    assert result.exit_code == 0
    assert "openai" in result.output
