"""pm command implementations, one module per operation flag."""
