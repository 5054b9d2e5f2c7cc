"""Bundled node packs, discovered through the `flowgraph.nodepacks` entry point group."""
