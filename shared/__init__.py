"""
Shared Kernel

Building blocks shared by the domain apps: domain events, the unit of
work that publishes them after commit, and the in-process message bus.
"""
