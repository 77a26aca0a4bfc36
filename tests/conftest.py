"""Shared fakes for pipeline tests."""

from __future__ import annotations

import io
import re
from typing import Iterable, Union

import pytest
from pypdf import PdfReader, PdfWriter

from printgen.core.config import MM_TO_PT
from printgen.pipeline.models import (
    InlineResult,
    MergeRequest,
    MergeResult,
    PointerResult,
    RenderResult,
)
from printgen.pipeline.planner import layout_for

A4_PT = (210.0 * MM_TO_PT, 297.0 * MM_TO_PT)

_SOURCE_RE = re.compile(r"/(?P<kind>[a-z-]+)/(?P<start>\d+)/(?P<stop>\d+)\?")


def make_pdf(pages: int, width_pt: float = A4_PT[0], height_pt: float = A4_PT[1]) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width_pt, height=height_pt)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def pages_for_url(url: str) -> int:
    match = _SOURCE_RE.search(url)
    assert match, url
    layout = layout_for(match["kind"])
    items = int(match["stop"]) - int(match["start"])
    return -(-items // layout.items_per_page) * layout.pages_per_item


class FakeStore:
    """In-memory artifact store recording reads and deletes."""

    def __init__(self, bucket: str = "test-bucket") -> None:
        self._bucket = bucket
        self.objects: dict[str, bytes] = {}
        self.reads: list[str] = []
        self.deleted: list[str] = []
        self.fail_deletes = False

    @property
    def bucket(self) -> str:
        return self._bucket

    async def put_bytes(self, key: str, data: bytes) -> PointerResult:
        self.objects[key] = data
        return PointerResult(store=self._bucket, key=key, size=len(data))

    async def get_bytes(self, pointer: PointerResult) -> bytes:
        self.reads.append(pointer.key)
        return self.objects[pointer.key]

    async def delete(self, target: Union[PointerResult, str]) -> None:
        key = target.key if isinstance(target, PointerResult) else target
        if self.fail_deletes:
            raise RuntimeError(f"delete refused for {key}")
        self.objects.pop(key, None)
        self.deleted.append(key)

    async def cleanup_keys_best_effort(
        self, targets: Iterable[Union[PointerResult, str]]
    ) -> int:
        failures = 0
        for target in targets:
            try:
                await self.delete(target)
            except Exception:
                failures += 1
        return failures


class FakeRenderFunction:
    """Render/merge port producing real blank-page PDFs.

    Args:
        store: Store the "remote" side writes pointer results to
        pointer_results: Return pointers instead of inline bytes
        page_size: Page size of rendered chunks in points
    """

    def __init__(
        self,
        store: FakeStore,
        pointer_results: bool = True,
        page_size: tuple[float, float] = A4_PT,
    ) -> None:
        self.store = store
        self.pointer_results = pointer_results
        self.page_size = page_size
        self.render_calls: list[str] = []
        self.merge_requests: list[MergeRequest] = []
        self.fail_urls: set[str] = set()
        self.fail_merge = False

    async def render(self, url: str, options: dict) -> RenderResult:
        self.render_calls.append(url)
        if any(fragment in url for fragment in self.fail_urls):
            raise ConnectionError(f"render function unavailable for {url}")
        data = make_pdf(pages_for_url(url), *self.page_size)
        if self.pointer_results:
            key = f"remote/{len(self.render_calls)}.pdf"
            return await self.store.put_bytes(key, data)
        return InlineResult(data=data)

    async def merge(self, request: MergeRequest) -> MergeResult:
        self.merge_requests.append(request)
        if self.fail_merge:
            raise ConnectionError("merge function unavailable")
        writer = PdfWriter()
        for key in request.keys:
            writer.append(PdfReader(io.BytesIO(self.store.objects[key])))
        buffer = io.BytesIO()
        writer.write(buffer)
        pointer = await self.store.put_bytes("remote/merged.pdf", buffer.getvalue())
        return MergeResult(pointer=pointer, page_count=len(writer.pages))


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def render_function(store: FakeStore) -> FakeRenderFunction:
    return FakeRenderFunction(store)
