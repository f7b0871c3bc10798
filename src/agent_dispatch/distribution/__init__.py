"""Task distribution engine.

Two policies share one result type:

- ``flat.distribute_flat`` splits a batch evenly across top-level agents with
  plain modulo assignment; it is a pure function of its inputs.
- ``rotation.RotationDistributor`` rotates a batch across an owner's active
  sub-agents, honours per-worker capacity, and keeps a persisted cursor per
  owner so consecutive uploads continue where the previous one stopped.

The cursor lives behind ``cursor_store.RotationCursorStore`` so the rotation
logic runs unchanged against SQLite or an in-memory dict.
"""
