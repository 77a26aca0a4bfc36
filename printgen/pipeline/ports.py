"""Ports the generation pipeline depends on.

Implementations live in printgen.clients; tests substitute fakes.
"""

from __future__ import annotations

from typing import Iterable, Protocol, Union

from printgen.pipeline.models import MergeRequest, MergeResult, PointerResult, RenderResult


class RenderPort(Protocol):
    """One remote render attempt and one remote merge call."""

    async def render(self, url: str, options: dict) -> RenderResult: ...

    async def merge(self, request: MergeRequest) -> MergeResult: ...


class ArtifactStorePort(Protocol):
    """Durable store holding intermediate documents."""

    @property
    def bucket(self) -> str: ...

    async def put_bytes(self, key: str, data: bytes) -> PointerResult: ...

    async def get_bytes(self, pointer: PointerResult) -> bytes: ...

    async def delete(self, target: Union[PointerResult, str]) -> None: ...

    async def cleanup_keys_best_effort(self, targets: Iterable[Union[PointerResult, str]]) -> int: ...
