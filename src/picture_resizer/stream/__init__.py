"""
Stream Module
=============

Byte-stream plumbing for the transforms.

This module provides:
    - ChunkBuffer: Bounded async queue with backpressure between stages
    - ByteSink / BufferSink / QueueSink: Output destinations
    - run_pipeline: source -> stage -> sink wiring with cancellation

Example:
    from picture_resizer.stream import BufferSink, collect, run_pipeline

    sink = BufferSink()
    await run_pipeline(source, collect, sink)
    await sink.close()
"""

from picture_resizer.stream.buffer import ChunkBuffer
from picture_resizer.stream.sink import BufferSink, ByteSink, QueueSink
from picture_resizer.stream.pipe import collect, pump, run_pipeline, write_chunks


__all__ = [
    "ChunkBuffer",
    "ByteSink",
    "BufferSink",
    "QueueSink",
    "collect",
    "pump",
    "run_pipeline",
    "write_chunks",
]
