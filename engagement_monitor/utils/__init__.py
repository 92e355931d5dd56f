"""Configuration, logging and support utilities."""
