"""Tests for the pg-backup command line."""

import pytest

from pg_backup import __version__
from pg_backup.cli import DEFAULT_SPLIT, EXIT_FATAL, build_parser, main


@pytest.fixture
def config_file(tmp_path, fake_tools, backups_dir):
    """TOML config pointing at the fake tools and the test backups dir."""
    tools = fake_tools.tools
    path = tmp_path / "backup.toml"
    path.write_text(
        "[backup]\n"
        f'backups_dir = "{backups_dir}"\n'
        "\n"
        "[tools]\n"
        f'pg_dump = "{tools.pg_dump}"\n'
        f'pg_restore = "{tools.pg_restore}"\n'
        f'psql = "{tools.psql}"\n'
    )
    return path


class TestParser:
    def test_split_without_value(self):
        args = build_parser().parse_args(["backup", "--format", "sql", "--split"])
        assert args.split == DEFAULT_SPLIT

    def test_split_with_value(self):
        args = build_parser().parse_args(["backup", "--split", "1GB", "app"])
        assert args.split == "1GB"
        assert args.databases == ["app"]

    def test_backup_defaults(self):
        args = build_parser().parse_args(["backup"])
        assert args.split is None
        assert args.format is None
        assert args.databases == []

    def test_restore_join(self):
        args = build_parser().parse_args(["restore", "--format", "sql", "--join", "a", "b"])
        assert args.join is True
        assert args.databases == ["a", "b"]

    def test_global_options(self):
        args = build_parser().parse_args(["-v", "--backups-dir", "/srv/pg", "list"])
        assert args.verbose is True
        assert args.backups_dir == "/srv/pg"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_unknown_format(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["backup", "--format", "tar"])


class TestVersion:
    def test_short(self, capsys):
        assert main(["version"]) == 0
        assert capsys.readouterr().out == f"pg-backup version {__version__}\n"

    def test_verbose(self, capsys):
        assert main(["-v", "version"]) == 0
        out = capsys.readouterr().out
        assert out.startswith(f"pg-backup version {__version__}\n")
        assert "built with" in out

    @pytest.mark.parametrize("flag", ["--verbose", "-v"])
    def test_verbose_after_command(self, capsys, flag):
        assert main(["version", flag]) == 0
        out = capsys.readouterr().out
        assert out.startswith(f"pg-backup version {__version__}\n")
        assert "built with" in out

    def test_global_verbose_kept_by_version_command(self):
        args = build_parser().parse_args(["-v", "version"])
        assert args.verbose is True
        assert args.version_verbose is False


class TestBackupCommand:
    def test_backup_named(self, config_file, backups_dir, capsys):
        assert main(["--config", str(config_file), "backup", "app"]) == 0
        out = capsys.readouterr().out
        assert "Finished app" in out
        assert (backups_dir / "app.backup" / "toc.dat").exists()

    def test_backup_split_scripts(self, config_file, backups_dir):
        argv = ["--config", str(config_file), "backup", "app", "--format", "sql", "--split", "16B"]
        assert main(argv) == 0
        assert (backups_dir / "app.chunk" / "hash.app.sha512").exists()

    def test_job_failures_do_not_change_status(self, config_file, fake_tools, capsys):
        fake_tools.flag("fail_dump")
        assert main(["--config", str(config_file), "backup", "app"]) == 0
        assert "[WARN] Backing up app failed" in capsys.readouterr().out

    def test_invalid_split(self, config_file, capsys):
        argv = ["--config", str(config_file), "backup", "--format", "sql", "--split", "lots"]
        assert main(argv) == EXIT_FATAL
        assert "[ERROR] Invalid split_size" in capsys.readouterr().out

    def test_missing_config(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "nope.toml"), "backup"]) == EXIT_FATAL
        assert "Backup config not found" in capsys.readouterr().out

    def test_unusable_backups_dir(self, config_file, tmp_path, capsys):
        blocker = tmp_path / "file"
        blocker.write_text("")
        argv = ["--config", str(config_file), "--backups-dir", str(blocker / "b"), "backup"]
        assert main(argv) == EXIT_FATAL
        assert "Cannot create backups directory" in capsys.readouterr().out

    def test_listing_failure(self, config_file, fake_tools, capsys):
        (fake_tools.bin / "listing.txt").unlink()
        assert main(["--config", str(config_file), "backup"]) == EXIT_FATAL
        assert "[ERROR] Backup failed" in capsys.readouterr().out


class TestRestoreCommand:
    def test_restore_all(self, config_file, backups_dir, fake_tools):
        (backups_dir / "app.backup").mkdir()
        assert main(["--config", str(config_file), "restore"]) == 0
        assert fake_tools.calls()[-1].startswith("pg_restore -Fd")


class TestListCommand:
    def test_prints_names(self, config_file, capsys):
        assert main(["--config", str(config_file), "list", "--regexp", "^tenant"]) == 0
        assert capsys.readouterr().out.splitlines() == ["tenant_a", "tenant_b"]


class TestClearCommand:
    def test_clear(self, backups_dir, capsys):
        (backups_dir / "a.sql").write_text("")
        (backups_dir / "keep.txt").write_text("")

        assert main(["--backups-dir", str(backups_dir), "clear"]) == 0

        assert [p.name for p in backups_dir.iterdir()] == ["keep.txt"]
        assert "Removing a.sql" in capsys.readouterr().out
