"""Error taxonomy shared by the request service, the proxy and the dashboard."""


class DataScopeError(RuntimeError):
    """Base class for every failure surfaced to the user as an advisory message."""


class MissingCredentialError(DataScopeError):
    """No local key is stored and no server proxy is available."""


class UpstreamError(DataScopeError):
    """The LLM call failed or returned text that is not a usable JSON array."""


class TransportError(DataScopeError):
    """The proxy could not be reached or answered with an HTTP error."""


class MalformedInputError(DataScopeError):
    """The raw input is blank or the model could not structure it."""
