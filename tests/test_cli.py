"""Command-line interface tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

from clipnest import cli
from clipnest.errors import UpstreamFetchError
from clipnest.models import ImageDescriptor
from clipnest.store import ImageRecordStore


def test_parse_harvest_arguments(tmp_path: Path) -> None:
    args = cli.parse_args(
        ["harvest", "https://x.test/", "--collect", "--download", str(tmp_path), "--db", str(tmp_path / "c.db")]
    )

    assert args.command == "harvest"
    assert args.collect
    assert args.download == tmp_path
    assert cli._build_config(args).db_path == (tmp_path / "c.db").resolve()


def test_list_prints_records(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db = tmp_path / "c.db"
    ImageRecordStore(db).insert(ImageDescriptor("https://x.test/a.png", "a"), "https://x.test/")

    assert cli.main(["list", "--db", str(db)]) == 0

    out = capsys.readouterr().out
    assert "https://x.test/a.png" in out
    assert "from https://x.test/" in out


def test_harvest_collects_listed_images(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    """harvest --collect stores every unique image from the relayed page."""
    db = tmp_path / "c.db"

    def fake_fetch(self, url: str) -> str:
        return '<img src="/a.png" alt="a"><img src="/a.png"><img src="/b.gif">'

    monkeypatch.setattr(cli.RelayClient, "fetch", fake_fetch)

    code = cli.main(["harvest", "https://x.test/page", "--collect", "--db", str(db)])

    assert code == 0
    assert sorted(r.url for r in ImageRecordStore(db).list()) == [
        "https://x.test/a.png",
        "https://x.test/b.gif",
    ]
    assert "https://x.test/b.gif" in capsys.readouterr().out


def test_harvest_failure_exits_nonzero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_fetch(self, url: str) -> str:
        raise UpstreamFetchError(url, "refused")

    monkeypatch.setattr(cli.RelayClient, "fetch", fake_fetch)

    assert cli.main(["harvest", "https://x.test/page", "--db", str(tmp_path / "c.db")]) == 1


def test_harvest_collects_and_downloads_together(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """--collect and --download on one run both take effect for every image."""
    db = tmp_path / "c.db"
    out = tmp_path / "out"

    def fake_fetch(self, url: str) -> str:
        return '<img src="/a.png"><img src="/b.png">'

    image = Mock(content=b"\x89PNG\r\n\x1a\n" + b"\x00" * 64, headers={"Content-Type": "image/png"})
    monkeypatch.setattr(cli.RelayClient, "fetch", fake_fetch)
    monkeypatch.setattr(requests, "get", Mock(return_value=image))

    code = cli.main(
        ["harvest", "https://x.test/page", "--collect", "--download", str(out), "--db", str(db)]
    )

    assert code == 0
    assert sorted(r.url for r in ImageRecordStore(db).list()) == [
        "https://x.test/a.png",
        "https://x.test/b.png",
    ]
    assert sorted(p.name for p in out.iterdir()) == ["a.png", "b.png"]
