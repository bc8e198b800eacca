"""Real-time synchronization layer.

Fan-out of committed store mutations to live observers, and the
snapshot-then-stream protocol that lets a new observer join without
missing an update.
"""
