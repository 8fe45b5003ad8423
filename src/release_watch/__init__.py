"""
release-watch: release notifications for installed Datasette plugins.

A background service that compares installed plugin versions against the
latest GitHub releases and sends a Mattermost direct message the first time
a newer release shows up.
"""

__version__ = "0.1.0"
