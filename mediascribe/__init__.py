"""Chunked media uploads, a transcription job server and transcript summaries."""

__version__ = "0.1.0"