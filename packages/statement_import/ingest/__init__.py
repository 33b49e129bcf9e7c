"""Reference-data seeders for the shared database."""
