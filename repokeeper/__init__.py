"""repokeeper: a registry of local repositories for development automation."""
