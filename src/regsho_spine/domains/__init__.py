"""Domain packages built on regsho_spine.core."""
