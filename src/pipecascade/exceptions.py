class CascadingException(Exception):
    """Root of all errors raised by pipecascade"""


class PlannerException(CascadingException):
    """Element or process graph construction failed"""


class FlowException(CascadingException):
    """A flow or one of its steps failed, or a resource it depends on is missing"""


class CascadeException(CascadingException):
    """Cascade misconfiguration (cycles, duplicate names, loops) or a failed flow"""
