from smriti.models.draft import Draft
from smriti.models.snapshot import Snapshot

__all__ = ["Draft", "Snapshot"]
