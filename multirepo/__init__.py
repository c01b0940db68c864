"""multirepo: run one git operation across many local repositories."""

__version__ = "0.1.0"
