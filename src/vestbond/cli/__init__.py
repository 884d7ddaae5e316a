"""vestbond command line interface."""
