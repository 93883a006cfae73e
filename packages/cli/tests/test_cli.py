"""Tests for the CLI entry point."""

import io
import subprocess
import zipfile
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from mindpalace_cli.cli import _build_store, main
from mindpalace_core.config import DEFAULT_CONFIG
from mindpalace_core.errors import AuthError, TransportError
from mindpalace_core.utils.markdown import sectionize
from mindpalace_store.models import ProgressRecord, Repository, ReviewEvent
from mindpalace_store.sqlite import SQLiteStore

PROSE = "This paragraph is long enough to be worth studying on its own merits."
NOTES = {"docs/a.md": f"# Alpha\n{PROSE}\n# Beta\n{PROSE}", "drafts/b.md": f"# Draft\n{PROSE}"}


def _make_config(tmp_path, github_token="tok", **overrides):
    config = dict(DEFAULT_CONFIG, store_path=str(tmp_path / "test.db"), github_token=github_token)
    config.update(overrides)
    return config


def _patch_common(mocker, tmp_path, token="tok", **overrides):
    """Patch load_config and resolve_github_token; the store is a real SQLite file under tmp_path."""
    cfg = _make_config(tmp_path, github_token=token, **overrides)
    mocker.patch("mindpalace_core.config.load_config", return_value=cfg)
    mocker.patch("mindpalace_cli.auth.resolve_github_token", return_value=token)
    return cfg


def _open_store(tmp_path):
    return SQLiteStore(db_path=str(tmp_path / "test.db"))


def _seed(tmp_path, files=None, **repo_kwargs):
    """Store a repository with already-synced documents; return the section ids."""
    store = _open_store(tmp_path)
    repo = store.add_repository(Repository(owner="alice", name="notes", **repo_kwargs))
    for path, text in (files or NOTES).items():
        store.upsert_document(
            repository_id=repo.id,
            path=path,
            name=path.rsplit("/", 1)[-1],
            raw_text=text,
            version_token="t",
            sections=sectionize(text),
            updated_at=datetime.now(timezone.utc),
        )
    ids = [s.id for s in store.list_sections()]
    store.close()
    return ids


def _zip(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(f"notes-main/{name}", content)
    return buffer.getvalue()


def _fake_provider(mocker, files=None):
    provider = MagicMock()
    provider.get_default_branch.return_value = "main"
    provider.download_archive.return_value = _zip(files or NOTES)
    mocker.patch("mindpalace_cli.services.build_provider", return_value=provider)
    return provider


def test_build_store_uses_store_path(tmp_path):
    store = _build_store({"store_path": str(tmp_path / "x.db")})
    assert isinstance(store, SQLiteStore)
    store.close()
    assert (tmp_path / "x.db").exists()


# ---------------------------------------------------------------------------
# repo
# ---------------------------------------------------------------------------


class TestRepoCommands:
    def test_add_and_list(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)

        result = CliRunner().invoke(main, ["repo", "add", "https://github.com/alice/notes"])
        assert result.exit_code == 0
        assert "Added alice/notes" in result.output

        result = CliRunner().invoke(main, ["repo", "list"])
        assert "alice/notes" in result.output
        assert "never" in result.output

    def test_add_duplicate(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        CliRunner().invoke(main, ["repo", "add", "alice/notes"])

        result = CliRunner().invoke(main, ["repo", "add", "alice/notes"])
        assert "already added" in result.output
        store = _open_store(tmp_path)
        assert len(store.list_repositories()) == 1
        store.close()

    def test_add_invalid_reference(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        result = CliRunner().invoke(main, ["repo", "add", "not a repo"])
        assert result.exit_code != 0

    def test_list_empty(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        result = CliRunner().invoke(main, ["repo", "list"])
        assert "No repositories" in result.output

    def test_remove_with_yes(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        _seed(tmp_path)

        result = CliRunner().invoke(main, ["repo", "remove", "alice/notes", "--yes"])

        assert result.exit_code == 0
        store = _open_store(tmp_path)
        assert store.list_repositories() == []
        assert store.list_sections() == []
        store.close()

    def test_remove_unknown_repository(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        result = CliRunner().invoke(main, ["repo", "remove", "alice/missing", "--yes"])
        assert result.exit_code != 0
        assert "Unknown repository" in result.output

    def test_paths_updates_preferences(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        _seed(tmp_path)

        result = CliRunner().invoke(
            main, ["repo", "paths", "alice/notes", "--exclude", "drafts/", "--favorite", "docs"]
        )

        assert result.exit_code == 0
        store = _open_store(tmp_path)
        repo = store.find_repository("alice", "notes")
        assert repo.exclude_paths == ["drafts"]
        assert repo.favorite_paths == ["docs"]
        store.close()

    def test_paths_none_then_include(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        _seed(tmp_path)

        CliRunner().invoke(main, ["repo", "paths", "alice/notes", "--none"])
        store = _open_store(tmp_path)
        assert store.find_repository("alice", "notes").include_paths == ["__NONE__"]
        store.close()

        CliRunner().invoke(main, ["repo", "paths", "alice/notes", "--include", "docs"])
        store = _open_store(tmp_path)
        assert store.find_repository("alice", "notes").include_paths == ["docs"]
        store.close()


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


class TestSyncCommand:
    def test_first_sync_downloads_snapshot(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        store = _open_store(tmp_path)
        store.add_repository(Repository(owner="alice", name="notes", exclude_paths=["drafts"]))
        store.close()
        provider = _fake_provider(mocker)

        result = CliRunner().invoke(main, ["sync"])

        assert result.exit_code == 0, result.output
        assert "snapshot" in result.output
        assert "1 document(s), 1 fetched" in result.output
        provider.download_archive.assert_called_once()
        store = _open_store(tmp_path)
        assert [s.title for s in store.list_sections()] == ["Alpha", "Beta"]
        store.close()

    def test_no_repositories(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        result = CliRunner().invoke(main, ["sync"])
        assert "No repositories" in result.output

    def test_auth_error_aborts(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        _seed(tmp_path)
        provider = _fake_provider(mocker)
        provider.get_default_branch.side_effect = AuthError("Bad credentials.")

        result = CliRunner().invoke(main, ["sync"])

        assert result.exit_code != 0
        assert "GITHUB_TOKEN" in result.output

    def test_transport_error_reported(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        _seed(tmp_path)
        provider = _fake_provider(mocker)
        provider.get_default_branch.side_effect = TransportError("connection reset")

        result = CliRunner().invoke(main, ["sync", "--repo", "alice/notes"])

        assert result.exit_code != 0
        assert "connection reset" in result.output
        assert "1 repository sync(s) failed" in result.output


# ---------------------------------------------------------------------------
# study / section
# ---------------------------------------------------------------------------


class TestStudyCommand:
    def test_nothing_to_review(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        result = CliRunner().invoke(main, ["study"])
        assert "Nothing to review" in result.output

    def test_once_shows_a_section(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        _seed(tmp_path, files={"docs/a.md": NOTES["docs/a.md"]})

        result = CliRunner().invoke(main, ["study", "--once"])

        assert result.exit_code == 0
        assert "Alpha" in result.output or "Beta" in result.output
        assert "alice/notes:docs/a.md" in result.output

    def test_rating_records_review(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        _seed(tmp_path)

        result = CliRunner().invoke(main, ["study"], input="4\nq\n")

        assert result.exit_code == 0
        assert "1 section(s) reviewed" in result.output
        store = _open_store(tmp_path)
        events = store.list_review_events()
        assert len(events) == 1
        assert events[0].quality == 4
        store.close()

    def test_ignore_from_study(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        _seed(tmp_path, files={"a.md": f"# Only\n{PROSE}"})

        result = CliRunner().invoke(main, ["study"], input="i\n")

        assert "Section ignored" in result.output
        assert "Nothing to review" in result.output
        store = _open_store(tmp_path)
        assert store.list_sections()[0].ignored is True
        store.close()

    def test_contents_and_parent_chapter(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        _seed(tmp_path, files={"guide.md": f"# Guide\n{PROSE}\n## Setup\n{PROSE}"})

        result = CliRunner().invoke(main, ["study"], input="t\np\nq\n")

        assert result.exit_code == 0
        assert "› Guide" in result.output
        assert "1. Guide\n  2. Setup" in result.output
        assert f"# Guide\n\n{PROSE}\n\n## Setup" in result.output
        assert "0 section(s) reviewed" in result.output


class TestSectionCommands:
    def test_ignore_and_list(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        ids = _seed(tmp_path)

        result = CliRunner().invoke(main, ["section", "ignore", str(ids[0])])
        assert result.exit_code == 0
        assert "Ignored" in result.output

        result = CliRunner().invoke(main, ["section", "list", "--ignored"])
        assert "Alpha" in result.output

    def test_favorite(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        ids = _seed(tmp_path)

        CliRunner().invoke(main, ["section", "favorite", str(ids[1])])

        store = _open_store(tmp_path)
        assert store.get_section(ids[1]).favorite is True
        store.close()

    def test_unknown_section(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        result = CliRunner().invoke(main, ["section", "ignore", "999"])
        assert result.exit_code != 0
        assert "No section with id 999" in result.output


# ---------------------------------------------------------------------------
# stats / progress
# ---------------------------------------------------------------------------


class TestStatsCommand:
    def test_shows_counts(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        ids = _seed(tmp_path)
        store = _open_store(tmp_path)
        store.add_review_event(ReviewEvent(section_id=ids[0], reviewed_at=datetime.now(timezone.utc)))
        store.close()

        result = CliRunner().invoke(main, ["stats", "--goal", "1"])

        assert result.exit_code == 0
        assert "1 / 1" in result.output
        assert "Daily goal reached" in result.output


class TestProgressCommands:
    def test_reset(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        ids = _seed(tmp_path)
        store = _open_store(tmp_path)
        store.add_review_event(ReviewEvent(section_id=ids[0], reviewed_at=datetime.now(timezone.utc)))
        store.close()

        result = CliRunner().invoke(main, ["progress", "reset", "--yes"])

        assert "Deleted 1 review event(s)" in result.output
        store = _open_store(tmp_path)
        assert store.list_review_events() == []
        store.close()

    def test_reset_aborted(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        result = CliRunner().invoke(main, ["progress", "reset"], input="n\n")
        assert result.exit_code != 0

    def test_push_requires_token(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path, token=None)
        result = CliRunner().invoke(main, ["progress", "push"])
        assert result.exit_code != 0
        assert "gist" in result.output.lower()

    def test_push_creates_gist_and_saves_id(self, mocker, tmp_path):
        config_path = tmp_path / ".mindpalace.yml"
        _patch_common(mocker, tmp_path)
        _seed(tmp_path)
        gist = MagicMock(gist_id=None)
        gist.create.return_value = "g123"
        gist.save.return_value = True
        mocker.patch("mindpalace_store.gist.GistProgressStore", return_value=gist)

        result = CliRunner().invoke(main, ["--config", str(config_path), "progress", "push"])

        assert result.exit_code == 0, result.output
        assert "g123" in result.output
        assert "gist_id: g123" in config_path.read_text()
        gist.save.assert_called_once_with([])

    def test_push_failure_exits_nonzero(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path, gist_id="g123")
        gist = MagicMock(gist_id="g123")
        gist.save.return_value = False
        mocker.patch("mindpalace_store.gist.GistProgressStore", return_value=gist)

        result = CliRunner().invoke(main, ["progress", "push"])

        assert result.exit_code != 0
        gist.create.assert_not_called()

    def test_pull_imports_matching_records(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path, gist_id="g123")
        _seed(tmp_path)
        gist = MagicMock(gist_id="g123")
        gist.load.return_value = [
            ProgressRecord(section_key="alice/notes:docs/a.md:Beta:1", reviewed_at="2026-01-02T10:00:00+00:00"),
            ProgressRecord(section_key="bob/other:x.md:X:0", reviewed_at="2026-01-02T10:00:00+00:00"),
        ]
        mocker.patch("mindpalace_store.gist.GistProgressStore", return_value=gist)

        result = CliRunner().invoke(main, ["progress", "pull"])

        assert "Restored 1 of 2" in result.output
        store = _open_store(tmp_path)
        assert len(store.list_review_events()) == 1
        store.close()

    def test_pull_without_gist_id(self, mocker, tmp_path):
        _patch_common(mocker, tmp_path)
        mocker.patch("mindpalace_store.gist.GistProgressStore", return_value=MagicMock(gist_id=None))
        result = CliRunner().invoke(main, ["progress", "pull"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# auth.py
# ---------------------------------------------------------------------------


@pytest.fixture
def no_env_tokens(monkeypatch):
    monkeypatch.delenv("MINDPALACE_GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


class TestResolveGithubToken:
    def test_app_specific_env_var_wins(self, monkeypatch):
        from mindpalace_cli.auth import resolve_github_token

        monkeypatch.setenv("MINDPALACE_GITHUB_TOKEN", "app-token")
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "app-token"

    def test_returns_env_var_when_set(self, monkeypatch):
        from mindpalace_cli.auth import resolve_github_token

        monkeypatch.delenv("MINDPALACE_GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_falls_back_to_gh_cli(self, no_env_tokens):
        from mindpalace_cli.auth import resolve_github_token

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, no_env_tokens):
        from mindpalace_cli.auth import resolve_github_token

        with patch("subprocess.run", side_effect=FileNotFoundError):
            assert resolve_github_token() is None

    def test_returns_none_when_gh_times_out(self, no_env_tokens):
        from mindpalace_cli.auth import resolve_github_token

        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            assert resolve_github_token() is None

    def test_returns_none_when_gh_returns_error(self, no_env_tokens):
        from mindpalace_cli.auth import resolve_github_token

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            assert resolve_github_token() is None
