"""
Mirror Sync — Keep local copies of every GitHub repository up to date.

This module lists repositories from GitHub, clones or fast-forwards
a local mirror for each one, and serializes runs with a lock file.
"""
