"""Per-host probes run independently of discovery."""
