"""State/store layer.

This package holds the single process-wide reference to the currently
published :class:`~pyphonedata.models.Snapshot`. Everything that changes
what readers see goes through :meth:`SnapshotStore.publish`.
"""
