# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides in-memory fake resolvers for a handful of standards bodies, a
registry wired with them, a controllable clock, and temp cache directories.
No network access; every resolver answers from a fixed catalog.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from datetime import date
from pathlib import Path
from typing import Any

import pytest
from pydantic import BaseModel

from relatondb.config.settings import Settings
from relatondb.db.engine import Db
from relatondb.registry.base_resolver import BaseResolver, ResolverFetchError
from relatondb.registry.registry import ResolverRegistry

TODAY = date(2026, 2, 16)


# === Fake bibliographic items and resolvers ===


class FakeItem(BaseModel):
    """Stand-in for a family's bibliographic item."""

    docid: str
    docid_type: str
    project_number: str
    title: str = ""
    year: str | None = None

    def model_dump_xml(self) -> str:
        root = ET.Element("bibitem", {"id": re.sub(r"\W", "", self.docid), "type": "standard"})
        ET.SubElement(root, "docidentifier", {"type": self.docid_type}).text = self.docid
        ET.SubElement(root, "project-number").text = self.project_number
        if self.title:
            ET.SubElement(root, "title").text = self.title
        if self.year:
            ET.SubElement(root, "date", {"type": "published"}).text = self.year
        return ET.tostring(root, encoding="unicode")


class FakeResolver(BaseResolver):
    """Resolver answering from an in-memory catalog and counting calls."""

    def __init__(
        self,
        prefix: str,
        catalog: dict[str, FakeItem],
        version: str = "v1",
        default_prefix: str | None = None,
        fail_with: Exception | None = None,
    ) -> None:
        self._prefix = prefix
        self._catalog = catalog
        self._default_prefix = re.compile(default_prefix) if default_prefix else None
        self.version = version
        self.fail_with = fail_with
        self.calls: list[tuple[str, str | None, bool, dict[str, str]]] = []

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def default_prefix(self) -> re.Pattern[str] | None:
        return self._default_prefix

    @property
    def schema_version(self) -> str:
        return self.version

    def fetch(
        self, code: str, year: str | None, all_parts: bool, opts: dict[str, str]
    ) -> FakeItem | None:
        self.calls.append((code, year, all_parts, opts))
        if self.fail_with is not None:
            raise self.fail_with
        item = self._catalog.get(code)
        if item is None:
            return None
        if year is not None:
            return item.model_copy(update={"year": year})
        return item

    def serialize(self, item: Any) -> str:
        return item.model_dump_xml()

    def deserialize(self, payload: str) -> FakeItem:
        try:
            root = ET.fromstring(payload)
        except ET.ParseError as exc:
            raise ValueError(f"Not a bibitem payload: {exc}") from exc
        docid = root.find("docidentifier")
        if docid is None:
            raise ValueError("Payload has no docidentifier")
        date_el = root.find("date")
        return FakeItem(
            docid=docid.text or "",
            docid_type=docid.get("type", ""),
            project_number=root.findtext("project-number", ""),
            title=root.findtext("title", ""),
            year=date_el.text if date_el is not None else None,
        )


# === FIXTURES: Resolvers and registry ===


@pytest.fixture
def iso_resolver() -> FakeResolver:
    return FakeResolver(
        "ISO",
        {
            "ISO 19115-1": FakeItem(
                docid="ISO 19115-1", docid_type="ISO", project_number="ISO 19115",
                title="Geographic information -- Metadata -- Part 1",
            ),
            "ISO 19115-2": FakeItem(
                docid="ISO 19115-2", docid_type="ISO", project_number="ISO 19115",
                title="Geographic information -- Metadata -- Part 2",
            ),
            "ISO 19115": FakeItem(
                docid="ISO 19115", docid_type="ISO", project_number="ISO 19115",
            ),
            "ISO 19133": FakeItem(
                docid="ISO 19133", docid_type="ISO", project_number="ISO 19133",
            ),
        },
    )


@pytest.fixture
def nist_resolver() -> FakeResolver:
    return FakeResolver(
        "NIST",
        {
            "NIST SP 800-38B": FakeItem(
                docid="NIST SP 800-38B", docid_type="NIST", project_number="SP 800-38B",
            ),
        },
    )


@pytest.fixture
def gb_resolver() -> FakeResolver:
    return FakeResolver(
        "CN",
        {
            "GB/T 20223": FakeItem(
                docid="GB/T 20223", docid_type="Chinese Standard", project_number="GB/T 20223",
            ),
        },
        default_prefix=r"^GB\s",
    )


@pytest.fixture
def ietf_resolver() -> FakeResolver:
    return FakeResolver(
        "IETF",
        {
            "RFC 8341": FakeItem(
                docid="RFC 8341", docid_type="IETF", project_number="RFC 8341",
            ),
        },
        default_prefix=r"^RFC ",
    )


@pytest.fixture
def registry(
    iso_resolver: FakeResolver,
    nist_resolver: FakeResolver,
    gb_resolver: FakeResolver,
    ietf_resolver: FakeResolver,
) -> ResolverRegistry:
    return ResolverRegistry([iso_resolver, nist_resolver, gb_resolver, ietf_resolver])


@pytest.fixture
def make_resolver():
    """Factory for ad-hoc FakeResolver instances."""

    def _make(prefix: str, catalog: dict[str, Any] | None = None, **kwargs: Any) -> FakeResolver:
        return FakeResolver(prefix, catalog or {}, **kwargs)

    return _make


@pytest.fixture
def make_item():
    """Factory for FakeItem instances."""

    def _make(docid: str, project_number: str | None = None, docid_type: str = "ISO") -> FakeItem:
        return FakeItem(docid=docid, docid_type=docid_type, project_number=project_number or docid)

    return _make


# === FIXTURES: Clock, settings, temp dirs ===


class FakeClock:
    """Callable returning a settable "today"."""

    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(TODAY)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def tmp_cache_dirs(tmp_path: Path) -> tuple[Path, Path]:
    """Global and local tier directories (not created yet)."""
    return tmp_path / "testcache", tmp_path / "testcache2"


@pytest.fixture
def make_db(tmp_cache_dirs, registry, settings, clock):
    """Factory building a Db over the temp tiers; closes every Db it made."""
    made: list[Db] = []

    def _make(**kwargs: Any) -> Db:
        global_dir, local_dir = tmp_cache_dirs
        kwargs.setdefault("registry", registry)
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("clock", clock)
        db = Db(global_dir, local_dir, **kwargs)
        made.append(db)
        return db

    yield _make
    for db in made:
        db.close()


@pytest.fixture
def db(make_db) -> Db:
    return make_db()


@pytest.fixture
def resolver_error() -> Exception:
    return ResolverFetchError("upstream returned 503")
