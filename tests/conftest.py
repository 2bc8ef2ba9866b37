"""Pytest configuration and fixtures for tsgraph tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator

import pytest

from tsgraph.graph_builder import ProjectGraphBuilder
from tsgraph.lsif import build_reference_results, index_file
from tsgraph.models import SourceFile, dialect_for_path
from tsgraph.orchestrator import collect_files
from tsgraph.parser import SourceParser
from tsgraph.storage import IndexStore, ProjectManager


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the TOML config at an empty temp file so user settings never leak in."""
    config_dir = tmp_path_factory.mktemp("config")
    monkeypatch.setattr("tsgraph.config_manager.CONFIG_FILE", config_dir / "config.toml")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def sample_files(sample_project_path: Path) -> Dict[str, str]:
    """The sample project as a ``{relative path: content}`` map."""
    return collect_files(sample_project_path)


@pytest.fixture
def parser() -> SourceParser:
    """Strict parser, independent of user configuration."""
    return SourceParser(tolerate_syntax_errors=False)


@pytest.fixture
def temp_project_manager(temp_dir: Path, monkeypatch) -> ProjectManager:
    """Create a ProjectManager with temporary storage."""
    memory_dir = temp_dir / "memory"
    state_file = temp_dir / "state.json"

    # Patch both config AND storage modules (storage imports at module load)
    monkeypatch.setattr("tsgraph.config.BASE_DIR", temp_dir)
    monkeypatch.setattr("tsgraph.config.MEMORY_DIR", memory_dir)
    monkeypatch.setattr("tsgraph.config.STATE_FILE", state_file)
    monkeypatch.setattr("tsgraph.storage.MEMORY_DIR", memory_dir)
    monkeypatch.setattr("tsgraph.storage.STATE_FILE", state_file)

    return ProjectManager()


@pytest.fixture
def temp_store(temp_dir: Path) -> Generator[IndexStore, None, None]:
    """Create an IndexStore with temporary storage."""
    store = IndexStore(temp_dir / "test_project")
    yield store
    store.close()


@pytest.fixture
def sample_aliases() -> Dict[str, str]:
    return {"@/*": "src/*"}


@pytest.fixture
def sample_sources(sample_files: Dict[str, str], parser: SourceParser) -> Dict[str, SourceFile]:
    """Every supported sample file, parsed."""
    return {
        path: parser.parse(path, text)
        for path, text in sample_files.items()
        if dialect_for_path(path) is not None
    }


@pytest.fixture
def sample_builder(
    sample_files: Dict[str, str], sample_aliases: Dict[str, str], parser: SourceParser,
) -> ProjectGraphBuilder:
    """A builder that has already built the sample project graph."""
    builder = ProjectGraphBuilder(sample_files, aliases=sample_aliases, parser=parser)
    builder.build()
    return builder


@pytest.fixture
def indexed_store(temp_store: IndexStore, sample_sources: Dict[str, SourceFile]) -> IndexStore:
    """An IndexStore holding the full code-intelligence index of the sample project."""
    results = [index_file(sample_sources[path]) for path in sorted(sample_sources)]
    ref_vertices, ref_edges = build_reference_results(results)
    assert temp_store.replace_documents(results, ref_vertices, ref_edges)
    return temp_store
