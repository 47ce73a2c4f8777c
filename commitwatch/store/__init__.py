"""Persistence for the watermark and the cycle output file."""
