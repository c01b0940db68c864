"""Repository operations, discovered by name through operations.registry."""
