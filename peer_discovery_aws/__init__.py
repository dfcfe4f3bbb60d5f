"""Cluster peer discovery for message-broker nodes running on AWS EC2."""

__version__ = "0.1.0"
