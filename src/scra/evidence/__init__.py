"""Run-scoped artifact storage and the central error log."""

from scra.evidence.storage import ArtifactStore, RunContext, build_artifact_store, write_json_atomic

__all__ = ["ArtifactStore", "RunContext", "build_artifact_store", "write_json_atomic"]
