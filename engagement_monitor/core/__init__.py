"""Core analysis stages of the engagement pipeline."""
