"""Challenge, commitment and verification protocol; no I/O beyond injected collaborators."""
