from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from linkwatch.core.snapshot import StatusSnapshot

CandidateSource = Literal["push", "poll", "action", "manual"]


@dataclass(frozen=True, slots=True)
class ConnectionUpdate:
    snapshot: StatusSnapshot
    previous: StatusSnapshot
    source: CandidateSource

    @property
    def state_changed(self) -> bool:
        return self.snapshot.state is not self.previous.state


@dataclass(frozen=True, slots=True)
class CodeArtifact:
    handle: str  # data: URL, http(s) URL or artifact:// handle
    snapshot_key: tuple[str, str | None]
    source: Literal["inline", "url", "fetched", "rendered"]
    content_type: str | None = None


@dataclass(frozen=True, slots=True)
class ArtifactEvent:
    kind: Literal["issued", "released"]
    artifact: CodeArtifact
