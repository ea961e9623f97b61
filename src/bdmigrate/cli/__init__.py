"""bd-migrate command-line interface."""
