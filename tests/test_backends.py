"""
Tests for the unison/rsync/rclone backends -- command assembly,
validation, dry-run flags and outcome mapping.
"""

from __future__ import annotations

import sys
from unittest.mock import patch

import pytest

from synctools.backends import (
    CommandResult,
    RcloneBackend,
    RsyncBackend,
    UnisonBackend,
    _run,
    create_backend,
)
from synctools.errors import ConfigError
from synctools.models import BackendKind


class TestCommandAssembly:
    def test_unison_default(self, make_profile):
        profile = make_profile(backend="unison", unison_profile="desktop")
        cmd = UnisonBackend(profile).build_command(dry_run=False)
        assert cmd == ["unison", "-sortbysize", "-batch", "-times", "desktop"]

    def test_unison_dry_run_tests_server(self, make_profile):
        """Unison's dry run probes the server instead of previewing changes."""
        profile = make_profile(backend="unison", unison_profile="desktop")
        cmd = UnisonBackend(profile).build_command(dry_run=True)
        assert cmd[-2:] == ["-testserver", "desktop"]
        assert "--dry-run" not in cmd

    def test_rsync_default(self, make_profile):
        cmd = RsyncBackend(make_profile()).build_command(dry_run=False)
        assert cmd == ["rsync", "-avz", "--progress", "/data/src/", "backup:/data/dst/"]

    def test_rsync_dry_run(self, make_profile):
        cmd = RsyncBackend(make_profile()).build_command(dry_run=True)
        assert "--dry-run" in cmd
        assert cmd[-2:] == ["/data/src/", "backup:/data/dst/"]

    def test_rclone_dry_run(self, make_profile):
        profile = make_profile(backend="rclone", rclone_destination="gdrive:backup/")
        cmd = RcloneBackend(profile).build_command(dry_run=True)
        assert cmd[:2] == ["rclone", "sync"]
        assert "--dry-run" in cmd
        assert cmd[-2:] == ["/data/src/", "gdrive:backup/"]

    def test_options_passed_verbatim_as_arguments(self, make_profile):
        """Options are split into argv; shell metacharacters stay literal."""
        profile = make_profile(rsync_options="-a --exclude='.git/' --log-file=$HOME/x; rm")
        cmd = RsyncBackend(profile).build_command(dry_run=False)
        assert cmd[1:5] == ["-a", "--exclude=.git/", "--log-file=$HOME/x;", "rm"]

    def test_paths_with_spaces_stay_single_arguments(self, make_profile):
        profile = make_profile(rsync_source="/home/me/My Documents/")
        cmd = RsyncBackend(profile).build_command(dry_run=False)
        assert "/home/me/My Documents/" in cmd

    def test_empty_options_string(self, make_profile):
        cmd = RsyncBackend(make_profile(rsync_options="")).build_command(dry_run=False)
        assert cmd == ["rsync", "/data/src/", "backup:/data/dst/"]

    def test_each_tool_reads_only_its_own_parameters(self, make_profile):
        profile = make_profile(
            backend="rsync",
            rsync_source="/a/",
            rsync_destination="/b/",
            rclone_source="/cloud-src/",
            rclone_destination="remote:dst/",
            rclone_options="--transfers 8",
        )
        cmd = create_backend(profile).build_command(dry_run=False)
        assert cmd == ["rsync", "-avz", "--progress", "/a/", "/b/"]

    def test_unbalanced_quotes_are_config_error(self, make_profile):
        with pytest.raises(ConfigError):
            RsyncBackend(make_profile(rsync_options="--exclude='oops")).options()


class TestValidation:
    def test_unison_requires_profile(self, make_profile):
        with pytest.raises(ConfigError, match="Unison profile"):
            UnisonBackend(make_profile(backend="unison")).validate()

    @pytest.mark.parametrize("field", ["rsync_source", "rsync_destination"])
    def test_rsync_requires_both_ends(self, make_profile, field):
        with pytest.raises(ConfigError, match="source and destination"):
            RsyncBackend(make_profile(**{field: ""})).validate()

    def test_rclone_requires_both_ends(self, make_profile):
        with pytest.raises(ConfigError):
            RcloneBackend(make_profile(backend="rclone", rclone_source="  ")).validate()


class TestRun:
    @patch("synctools.backends._run")
    def test_zero_exit_is_success(self, mock_run, make_profile):
        mock_run.return_value = CommandResult(returncode=0, tail=["done"])
        outcome = RsyncBackend(make_profile()).run(make_profile(), dry_run=False)
        assert outcome.success is True

    @patch("synctools.backends._run")
    def test_non_zero_exit_carries_status_and_output(self, mock_run, make_profile):
        mock_run.return_value = CommandResult(
            returncode=23, tail=["sending incremental file list", "rsync error: some files"]
        )
        outcome = RsyncBackend(make_profile()).run(make_profile(), dry_run=False)

        assert outcome.success is False
        assert outcome.returncode == 23
        assert "rsync error: some files" in outcome.reason
        assert outcome.output_tail[-1] == "rsync error: some files"

    @pytest.mark.parametrize("backend", ["rsync", "rclone"])
    @patch("synctools.backends._run")
    def test_dry_run_success_always_carries_no_op_flag(self, mock_run, make_profile, backend):
        mock_run.return_value = CommandResult(returncode=0)
        profile = make_profile(backend=backend, dry_run=True)

        outcome = create_backend(profile).run(profile, dry_run=True)

        assert outcome.success
        assert "--dry-run" in mock_run.call_args.args[0]


class TestRunHelper:
    def test_captures_exit_status_and_tail(self):
        result = _run([sys.executable, "-c", "print('one'); print('two'); raise SystemExit(3)"])
        assert result.returncode == 3
        assert result.tail == ["one", "two"]

    def test_missing_executable(self):
        result = _run(["definitely-not-a-real-sync-tool"])
        assert result.returncode == 127


class TestBackendFactory:
    @pytest.mark.parametrize(
        "kind,cls",
        [
            (BackendKind.UNISON, UnisonBackend),
            (BackendKind.RSYNC, RsyncBackend),
            (BackendKind.RCLONE, RcloneBackend),
        ],
    )
    def test_creates_variant(self, make_profile, kind, cls):
        backend = create_backend(make_profile(backend=kind))
        assert isinstance(backend, cls)
        assert backend.name == kind.value

    def test_available_checks_path(self, make_profile):
        with patch("synctools.backends.shutil.which", return_value=None):
            assert create_backend(make_profile()).available() is False
