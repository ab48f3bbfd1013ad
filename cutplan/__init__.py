"""
cutplan - Timeline document engine with an AI-assisted edit pipeline.

Hydrates a versioned multi-track video timeline from its persisted blob,
applies atomic operation batches guarded by structural invariants, and
turns natural-language edit requests into either applied changes or
constrained suggestions depending on planner confidence.
"""

__version__ = "0.1.0"
