"""
CLI Evals -- the pagesmith command line, run in-process with typer's CliRunner.

CODE-BASED graders on exit codes and printed summaries. The generate
command gets a fake completion client; nothing leaves the process.
"""

import json

from typer.testing import CliRunner

from pagesmith.cli import app

from evals.stubs import SAMPLE_ARTIFACT, SAMPLE_CONTENT, FakeCompletionClient

runner = CliRunner()


class TestScoreCommand:
    """Eval: Does `score` exit non-zero exactly when the gate fails?"""

    def test_bare_markup_fails(self, tmp_path):
        """Markup with no responsive or interaction patterns does not pass."""
        artifact = tmp_path / "page.jsx"
        artifact.write_text("<div>Hello</div>")
        result = runner.invoke(app, ["score", str(artifact)])
        assert result.exit_code == 1
        assert "NOT PASSED" in result.output

    def test_missing_file(self, tmp_path):
        """An unreadable artifact is reported, not raised."""
        result = runner.invoke(app, ["score", str(tmp_path / "absent.jsx")])
        assert result.exit_code == 1
        assert "cannot read" in result.output

    def test_invalid_content_json(self, tmp_path):
        """A broken content payload file is reported."""
        artifact = tmp_path / "page.jsx"
        artifact.write_text(SAMPLE_ARTIFACT)
        content = tmp_path / "content.json"
        content.write_text("{oops")
        result = runner.invoke(app, ["score", str(artifact), "--content", str(content)])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestUtilizationCommand:
    """Eval: Does `utilization` report the matching outcome?"""

    def test_full_utilization(self, tmp_path):
        """The sample artifact uses all of the sample content."""
        content = tmp_path / "content.json"
        content.write_text(json.dumps(SAMPLE_CONTENT))
        artifact = tmp_path / "page.jsx"
        artifact.write_text(SAMPLE_ARTIFACT)
        result = runner.invoke(app, ["utilization", str(content), str(artifact)])
        assert result.exit_code == 0
        assert "Content utilization: 100%" in result.output

    def test_empty_artifact(self, tmp_path):
        """Nothing used exits 1 with the critical recommendation."""
        content = tmp_path / "content.json"
        content.write_text(json.dumps(SAMPLE_CONTENT))
        artifact = tmp_path / "page.jsx"
        artifact.write_text("<main></main>")
        result = runner.invoke(app, ["utilization", str(content), str(artifact)])
        assert result.exit_code == 1
        assert "CRITICAL" in result.output


class TestRulesCommand:
    """Eval: Does `rules` list the packaged catalog?"""

    def test_lists_rules(self):
        result = runner.invoke(app, ["rules"])
        assert result.exit_code == 0
        assert "UI/UX rules" in result.output

    def test_bad_config_file(self, tmp_path):
        """An invalid --config file stops before any command runs."""
        config = tmp_path / "pagesmith.json"
        config.write_text(json.dumps({"max_attempts": 0}))
        result = runner.invoke(app, ["--config", str(config), "rules"])
        assert result.exit_code == 1
        assert "Invalid config file" in result.output


class TestGenerateCommand:
    """Eval: Does `generate` run the pipeline and write the artifact?"""

    def test_writes_artifact(self, tmp_path, monkeypatch):
        """A fake client drives the whole pipeline; the artifact lands in --out."""
        client = FakeCompletionClient()
        monkeypatch.setattr("pagesmith.llm.create_client", lambda provider=None, model=None: client)
        out = tmp_path / "page.jsx"

        result = runner.invoke(
            app, ["generate", "A landing page for a dental clinic in Portland", "--out", str(out)]
        )
        assert result.exit_code == 0, result.output
        assert "Care that fits your schedule" in out.read_text()
        assert "Tokens: 0" in result.output
        assert client.stages[0] == "specification"

    def test_rejects_short_request(self, monkeypatch):
        """Request text below the minimum length is refused before any stage runs."""
        client = FakeCompletionClient()
        monkeypatch.setattr("pagesmith.llm.create_client", lambda provider=None, model=None: client)
        result = runner.invoke(app, ["generate", "hi"])
        assert result.exit_code == 1
        assert "Invalid request" in result.output
        assert client.stages == []
