"""Template corpus retrieval.

A corpus is a directory tree holding every template under ``/templates/...``.
It is either a local checkout (``LocalCorpus``) or the ``amp-templates``
GitHub archive, downloaded on demand and unpacked into a temporary directory
(``GitHubCorpus``).  Both expose the same two-step protocol:

    await corpus.prepare(descriptors)
    root = corpus.locate(descriptor)
"""

from __future__ import annotations

import asyncio
import shutil
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import IO, Optional, Protocol, Sequence

import httpx

from create_amp.config import Settings
from create_amp.domain import TemplateDescriptor
from create_amp.errors import CorpusDownloadError
from create_amp.utils import console

_CHUNK_SIZE = 64 * 1024


class TemplateCorpus(Protocol):
    async def prepare(self, descriptors: Sequence[TemplateDescriptor]) -> None: ...

    def locate(self, descriptor: TemplateDescriptor) -> Path: ...

    async def close(self) -> None: ...

    async def __aenter__(self) -> "TemplateCorpus": ...

    async def __aexit__(self, *exc_info: object) -> None: ...


# ---------------------------------------------------------------------------
# Local corpus
# ---------------------------------------------------------------------------


class LocalCorpus:
    """A corpus already present on disk, e.g. a clone of ``amp-templates``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    async def prepare(self, descriptors: Sequence[TemplateDescriptor]) -> None:
        return None

    def locate(self, descriptor: TemplateDescriptor) -> Path:
        return self.root.joinpath(*descriptor.segments)

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> "LocalCorpus":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# Remote corpus
# ---------------------------------------------------------------------------


class GitHubCorpus:
    """Downloads the template archive and extracts the selected directories.

    Only members under ``<archive_root>/<descriptor.directory>/`` are
    written.  Members with absolute paths or ``..`` components abort the
    extraction; links and device files are ignored.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._root: Optional[Path] = None
        self._workdir: Optional[Path] = None

    @property
    def root(self) -> Path:
        if self._root is None:
            raise CorpusDownloadError(
                "Template archive has not been downloaded yet", url=self.settings.templates_url
            )
        return self._root

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.download_timeout, connect=10.0),
            follow_redirects=True,
            transport=self._transport,
        )

    async def prepare(self, descriptors: Sequence[TemplateDescriptor]) -> None:
        """Download the archive and unpack the directories *descriptors* need.

        Raises:
            CorpusDownloadError: on HTTP errors, timeouts or a corrupt archive.
        """
        url = self.settings.templates_url
        workdir = Path(await asyncio.to_thread(tempfile.mkdtemp, prefix="create-amp-"))
        archive_path = workdir / "templates.tar.gz"
        extract_root = workdir / "corpus"

        console.print(f"  Downloading templates from [cyan]{url}[/cyan]")
        try:
            await self._download(url, archive_path)
            wanted = [d.directory for d in descriptors]
            await asyncio.to_thread(
                extract_templates, archive_path, extract_root, self.settings.archive_root, wanted
            )
        except BaseException:
            await asyncio.to_thread(shutil.rmtree, workdir, True)
            raise

        await asyncio.to_thread(archive_path.unlink)
        self._workdir = workdir
        self._root = extract_root

    async def _download(self, url: str, destination: Path) -> None:
        try:
            async with self._client() as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with destination.open("wb") as handle:
                        async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                            handle.write(chunk)
        except httpx.TimeoutException as exc:
            raise CorpusDownloadError(
                f"Downloading templates timed out after {self.settings.download_timeout}s",
                url=url,
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise CorpusDownloadError(
                f"Template download returned HTTP {exc.response.status_code}", url=url
            ) from exc
        except httpx.HTTPError as exc:
            raise CorpusDownloadError(f"Failed to download templates: {exc}", url=url) from exc

    def locate(self, descriptor: TemplateDescriptor) -> Path:
        return self.root.joinpath(*descriptor.segments)

    async def close(self) -> None:
        """Remove the temporary extraction directory."""
        if self._workdir is not None:
            await asyncio.to_thread(shutil.rmtree, self._workdir, True)
            self._workdir = None
        self._root = None

    async def __aenter__(self) -> "GitHubCorpus":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def _member_path(name: str, archive_root: str) -> Optional[PurePosixPath]:
    """Return *name* relative to *archive_root*, or ``None`` if outside it.

    Raises:
        CorpusDownloadError: for absolute paths or ``..`` components.
    """
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise CorpusDownloadError(f"Refusing unsafe archive member: {name}")
    if not path.parts or path.parts[0] != archive_root:
        return None
    return PurePosixPath(*path.parts[1:]) if len(path.parts) > 1 else PurePosixPath(".")


def extract_templates(
    archive_path: Path,
    destination: Path,
    archive_root: str,
    directories: Sequence[str],
) -> list[Path]:
    """Extract the members under *directories* from a ``.tar.gz`` archive.

    Paths are written relative to *archive_root*, so the member
    ``amp-templates-main/templates/nextjs/package.json`` lands at
    ``destination/templates/nextjs/package.json``.

    Returns:
        The files written.
    """
    prefixes = [PurePosixPath(d.strip("/")) for d in directories]
    written: list[Path] = []
    destination.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive_path, mode="r:*") as archive:
            for member in archive:
                rel = _member_path(member.name, archive_root)
                if rel is None or not any(_is_within(rel, p) for p in prefixes):
                    continue
                if member.issym() or member.islnk():
                    continue
                target = destination.joinpath(*rel.parts)
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    source = archive.extractfile(member)
                    if source is None:
                        continue
                    _write_member(source, target, member.mode)
                    written.append(target)
    except (tarfile.TarError, EOFError, OSError) as exc:
        raise CorpusDownloadError(f"Template archive is corrupt or unreadable: {exc}") from exc
    return written


def _is_within(path: PurePosixPath, prefix: PurePosixPath) -> bool:
    return path == prefix or prefix in path.parents


def _write_member(source: IO[bytes], target: Path, mode: int) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with source, target.open("wb") as handle:
        shutil.copyfileobj(source, handle)
    if mode & 0o111:
        target.chmod(0o755)


def create_corpus(settings: Settings) -> LocalCorpus | GitHubCorpus:
    """Pick the corpus implementation *settings* ask for."""
    if settings.templates_dir is not None:
        return LocalCorpus(settings.templates_dir)
    return GitHubCorpus(settings)
