"""I/O adapters: inference transport, audit trail, persistence, and logging."""
