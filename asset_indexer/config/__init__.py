"""
Configuration package.

Import settings from asset_indexer.config.settings; constants stay importable
without environment configuration.
"""
