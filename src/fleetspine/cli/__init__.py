"""fleet-spine command line interface."""
