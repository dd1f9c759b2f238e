"""Aurora — a small simulated operating system.

A shared memory arena, frozen services, single-run processes, and ONFS,
a virtual filesystem that persists itself, wired together by a kernel.
"""
