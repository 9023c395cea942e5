"""toolcall-guard CLI."""
