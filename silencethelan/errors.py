"""Exceptions raised by silencethelan."""


class SilenceTheLANError(Exception):
    """Base class for all silencethelan errors."""


class StoreUnavailable(SilenceTheLANError):
    """The rule store could not be read from or written to."""


class RuleNameError(SilenceTheLANError):
    """A rule name does not carry one of the managed prefixes."""
