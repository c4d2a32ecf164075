"""Tests for get/put transfers over SFTP."""

import io
import posixpath
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock, patch

import asyncssh
import pytest

from ssh_steps.errors import InvalidFieldError, MissingFieldError, TransferError, TransportError
from ssh_steps.models import TransferResult
from ssh_steps.services.output import SessionOutput
from ssh_steps.services.session import RemoteSessionService

REMOTE = {"name": "files", "host": "10.0.0.9", "user": "deploy", "allowAnyHosts": True}


class FakeSFTP:
    """In-memory SFTP client holding text files by absolute path."""

    def __init__(self, files: dict[str, str] | None = None, dirs: tuple[str, ...] = ()):
        self.files = dict(files or {})
        self.dirs = set(dirs)
        for path in self.files:
            parent = posixpath.dirname(path)
            while parent not in ("", "/"):
                self.dirs.add(parent)
                parent = posixpath.dirname(parent)
        self.made: list[str] = []

    def _entry(self, name: str, kind: int) -> SimpleNamespace:
        return SimpleNamespace(filename=name, attrs=SimpleNamespace(type=kind))

    async def isdir(self, path: str) -> bool:
        return path.rstrip("/") in self.dirs

    async def exists(self, path: str) -> bool:
        return path in self.files or path.rstrip("/") in self.dirs

    async def readdir(self, path: str) -> list[SimpleNamespace]:
        entries = [
            self._entry(".", asyncssh.FILEXFER_TYPE_DIRECTORY),
            self._entry("..", asyncssh.FILEXFER_TYPE_DIRECTORY),
        ]
        for child in sorted(self.dirs):
            if posixpath.dirname(child) == path:
                entries.append(
                    self._entry(posixpath.basename(child), asyncssh.FILEXFER_TYPE_DIRECTORY)
                )
        for child in sorted(self.files):
            if posixpath.dirname(child) == path:
                entries.append(
                    self._entry(posixpath.basename(child), asyncssh.FILEXFER_TYPE_REGULAR)
                )
        return entries

    async def get(self, remote_path: str, local_path: str) -> None:
        if remote_path not in self.files:
            raise asyncssh.SFTPNoSuchFile(f"No such file: {remote_path}")
        Path(local_path).write_text(self.files[remote_path])

    async def put(self, local_path: str, remote_path: str) -> None:
        self.files[remote_path] = Path(local_path).read_text()

    async def makedirs(self, path: str, exist_ok: bool = False) -> None:
        self.made.append(path)
        self.dirs.add(path)


def session_with(sftp: FakeSFTP) -> Any:
    @asynccontextmanager
    async def _start_sftp_client() -> AsyncIterator[FakeSFTP]:
        yield sftp

    conn = MagicMock()
    conn.start_sftp_client = _start_sftp_client

    @asynccontextmanager
    async def _open(remote: Any) -> AsyncIterator[MagicMock]:
        yield conn

    return patch("ssh_steps.services.session.open_session", _open)


class TestGet:
    """Downloads."""

    @pytest.mark.asyncio
    async def test_single_file(self, tmp_path: Path) -> None:
        sftp = FakeSFTP({"/etc/app.conf": "port=80\n"})
        service = RemoteSessionService.create(REMOTE)
        target = tmp_path / "app.conf"

        with session_with(sftp):
            result = await service.get("/etc/app.conf", str(target))

        assert isinstance(result, TransferResult)
        assert result.success
        assert result.items_transferred == 1
        assert target.read_text() == "port=80\n"

    @pytest.mark.asyncio
    async def test_file_into_existing_directory(self, tmp_path: Path) -> None:
        sftp = FakeSFTP({"/etc/app.conf": "port=80\n"})
        service = RemoteSessionService.create(REMOTE)

        with session_with(sftp):
            await service.get("/etc/app.conf", str(tmp_path))

        assert (tmp_path / "app.conf").read_text() == "port=80\n"

    @pytest.mark.asyncio
    async def test_directory_tree(self, tmp_path: Path) -> None:
        sftp = FakeSFTP(
            {
                "/var/log/app/a.log": "a",
                "/var/log/app/old/b.log": "b",
                "/var/log/app/readme.txt": "r",
            }
        )
        service = RemoteSessionService.create(REMOTE)

        with session_with(sftp):
            result = await service.get("/var/log/app", str(tmp_path))

        assert result.items_transferred == 3
        assert (tmp_path / "app" / "a.log").read_text() == "a"
        assert (tmp_path / "app" / "old" / "b.log").read_text() == "b"
        assert (tmp_path / "app" / "readme.txt").exists()

    @pytest.mark.asyncio
    async def test_name_filter(self, tmp_path: Path) -> None:
        sftp = FakeSFTP(
            {
                "/var/log/app/a.log": "a",
                "/var/log/app/old/b.log": "b",
                "/var/log/app/readme.txt": "r",
            }
        )
        service = RemoteSessionService.create(REMOTE)
        target = tmp_path / "logs"

        with session_with(sftp):
            result = await service.get("/var/log/app", str(target), "name", r"\.log$")

        assert result.items_transferred == 2
        assert (target / "a.log").exists()
        assert (target / "old" / "b.log").exists()
        assert not (target / "readme.txt").exists()

    @pytest.mark.asyncio
    async def test_path_filter(self, tmp_path: Path) -> None:
        sftp = FakeSFTP({"/data/keep/x.csv": "x", "/data/skip/y.csv": "y"})
        service = RemoteSessionService.create(REMOTE)
        target = tmp_path / "data"

        with session_with(sftp):
            result = await service.get("/data", str(target), "path", "/keep/")

        assert result.items_transferred == 1
        assert (target / "keep" / "x.csv").exists()
        assert not (target / "skip" / "y.csv").exists()

    @pytest.mark.asyncio
    async def test_no_match_is_failure(self, tmp_path: Path) -> None:
        sftp = FakeSFTP({"/data/a.txt": "a"})
        service = RemoteSessionService.create(REMOTE)

        with session_with(sftp):
            with pytest.raises(TransferError, match="No file under /data matched"):
                await service.get("/data", str(tmp_path / "out"), "name", r"\.zip$")

    @pytest.mark.asyncio
    async def test_no_match_without_fail_on_error(self, tmp_path: Path) -> None:
        sftp = FakeSFTP({"/data/a.txt": "a"})
        service = RemoteSessionService.create(REMOTE, fail_on_error=False)

        with session_with(sftp):
            result = await service.get("/data", str(tmp_path / "out"), "name", r"\.zip$")

        assert not result.success
        assert "No file under /data" in result.message

    @pytest.mark.asyncio
    async def test_missing_remote_path(self, tmp_path: Path) -> None:
        service = RemoteSessionService.create(REMOTE)

        with session_with(FakeSFTP()):
            with pytest.raises(TransferError, match="/nope does not exist"):
                await service.get("/nope", str(tmp_path / "x"))

    @pytest.mark.asyncio
    async def test_sftp_error_wrapped(self, tmp_path: Path) -> None:
        sftp = FakeSFTP()

        async def exists(path: str) -> bool:
            return True

        sftp.exists = exists  # type: ignore[method-assign]
        service = RemoteSessionService.create(REMOTE)

        with session_with(sftp):
            with pytest.raises(TransferError) as exc_info:
                await service.get("/etc/app.conf", str(tmp_path / "app.conf"))

        assert isinstance(exc_info.value.__cause__, asyncssh.SFTPError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [asyncssh.SFTPConnectionLost("Connection lost"), ConnectionResetError("reset by peer")],
    )
    async def test_connection_drop_always_raises(
        self, tmp_path: Path, error: Exception
    ) -> None:
        """A lost connection is a transport failure even when failures are tolerated."""
        sftp = FakeSFTP({"/etc/app.conf": "port=80\n"})

        async def get(remote_path: str, local_path: str) -> None:
            raise error

        sftp.get = get  # type: ignore[method-assign]
        service = RemoteSessionService.create(REMOTE, fail_on_error=False)

        with session_with(sftp):
            with pytest.raises(TransportError) as exc_info:
                await service.get("/etc/app.conf", str(tmp_path / "app.conf"))

        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_content_never_logged(self, tmp_path: Path) -> None:
        """Transfer sessions drop remote output echoed while they run."""
        outputs: list[SessionOutput] = []

        class RecordingOutput(SessionOutput):
            def __init__(self, *args: Any, **kwargs: Any) -> None:
                super().__init__(*args, **kwargs)
                outputs.append(self)

        sftp = FakeSFTP({"/secrets/token": "TOPSECRET-VALUE"})
        fetch = sftp.get

        async def get(remote_path: str, local_path: str) -> None:
            await fetch(remote_path, local_path)
            outputs[-1].echo(sftp.files[remote_path])

        sftp.get = get  # type: ignore[method-assign]
        sink = io.StringIO()
        service = RemoteSessionService.create(REMOTE, sink=sink)

        with session_with(sftp), patch(
            "ssh_steps.services.session.SessionOutput", RecordingOutput
        ):
            await service.get("/secrets/token", str(tmp_path / "token"))

        log = sink.getvalue()
        assert len(outputs) == 1
        assert "Received 1 file(s) from /secrets/token" in log
        assert "TOPSECRET-VALUE" not in log

    @pytest.mark.asyncio
    async def test_command_output_reaches_sink(self) -> None:
        """The same echo path does reach the sink for command sessions."""
        sink = io.StringIO()
        service = RemoteSessionService.create(REMOTE, sink=sink)
        output = SessionOutput(service.remote, interaction=True)

        with service._log_scope():
            output.echo("VISIBLE-LINE")

        assert "VISIBLE-LINE" in sink.getvalue()

    @pytest.mark.asyncio
    async def test_unknown_filter_by(self, tmp_path: Path) -> None:
        service = RemoteSessionService.create(REMOTE)

        with pytest.raises(InvalidFieldError) as exc_info:
            await service.get("/data", str(tmp_path), "size", ".*")

        assert exc_info.value.field == "filterBy"

    @pytest.mark.asyncio
    async def test_dry_run(self, tmp_path: Path) -> None:
        service = RemoteSessionService.create(REMOTE, dry_run=True)
        opener = MagicMock()

        with patch("ssh_steps.services.session.open_session", opener):
            result = await service.get("/data", str(tmp_path / "out"))

        assert result.dry_run
        assert result.success
        opener.assert_not_called()
        assert not (tmp_path / "out").exists()


class TestPut:
    """Uploads."""

    @pytest.mark.asyncio
    async def test_file_into_remote_directory(self, tmp_path: Path) -> None:
        source = tmp_path / "app.conf"
        source.write_text("port=80\n")
        sftp = FakeSFTP(dirs=("/srv/app",))
        service = RemoteSessionService.create(REMOTE)

        with session_with(sftp):
            result = await service.put(str(source), "/srv/app")

        assert result.items_transferred == 1
        assert sftp.files["/srv/app/app.conf"] == "port=80\n"

    @pytest.mark.asyncio
    async def test_file_to_new_name(self, tmp_path: Path) -> None:
        source = tmp_path / "app.conf"
        source.write_text("port=80\n")
        sftp = FakeSFTP(dirs=("/srv",))
        service = RemoteSessionService.create(REMOTE)

        with session_with(sftp):
            await service.put(str(source), "/srv/app.conf.new")

        assert "/srv/app.conf.new" in sftp.files

    @pytest.mark.asyncio
    async def test_directory_tree_with_filter(self, tmp_path: Path) -> None:
        site = tmp_path / "site"
        (site / "css").mkdir(parents=True)
        (site / "index.html").write_text("<html/>")
        (site / "css" / "main.css").write_text("body{}")
        (site / "notes.txt").write_text("draft")
        sftp = FakeSFTP(dirs=("/var/www",))
        service = RemoteSessionService.create(REMOTE)

        with session_with(sftp):
            result = await service.put(str(site), "/var/www", "name", r"\.(html|css)$")

        assert result.items_transferred == 2
        assert set(sftp.files) == {"/var/www/site/index.html", "/var/www/site/css/main.css"}
        assert sftp.made == ["/var/www/site", "/var/www/site/css"]

    @pytest.mark.asyncio
    async def test_no_match_is_failure(self, tmp_path: Path) -> None:
        site = tmp_path / "site"
        site.mkdir()
        (site / "index.html").write_text("<html/>")
        service = RemoteSessionService.create(REMOTE)

        with session_with(FakeSFTP(dirs=("/var/www",))):
            with pytest.raises(TransferError, match="matched"):
                await service.put(str(site), "/var/www", "name", r"\.zip$")

    @pytest.mark.asyncio
    async def test_missing_source(self, tmp_path: Path) -> None:
        service = RemoteSessionService.create(REMOTE)

        with pytest.raises(TransferError, match="does not exist"):
            await service.put(str(tmp_path / "nope"), "/srv")

    @pytest.mark.asyncio
    async def test_missing_source_without_fail_on_error(self, tmp_path: Path) -> None:
        service = RemoteSessionService.create(REMOTE, fail_on_error=False)

        result = await service.put(str(tmp_path / "nope"), "/srv")

        assert not result.success
        assert result.items_transferred == 0

    @pytest.mark.asyncio
    async def test_empty_into(self, tmp_path: Path) -> None:
        service = RemoteSessionService.create(REMOTE)

        with pytest.raises(MissingFieldError, match="into is null or empty"):
            await service.put(str(tmp_path), "")
