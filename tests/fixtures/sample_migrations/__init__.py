"""Migration modules loaded by test_migrations via load_migrations()."""
