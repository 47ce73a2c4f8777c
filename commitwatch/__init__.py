"""commitwatch: poll a GitHub organization for new commits and post them to Discord."""

__version__ = "0.1.0"
