"""Regions and their per-region configuration."""