"""Slack Integration Package.

- client: singleton Slack WebClient used for sends and roster reads.
"""
