"""Discovery pipeline: sources, job registry, stream publisher, resolver."""
