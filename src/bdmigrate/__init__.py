"""bd-migrate: audit and migrate Polaris/Coverity CI integrations to Black Duck."""

__version__ = "0.1.0"
