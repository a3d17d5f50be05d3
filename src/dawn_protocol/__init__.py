"""Dawn Protocol - guided morning alertness protocol with reaction-time scoring."""

__version__ = "0.1.0"
