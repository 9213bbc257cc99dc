"""Transform factories for Obsidian Exporter."""
