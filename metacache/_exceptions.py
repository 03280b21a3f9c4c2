__all__ = ("MetaCacheError", "ResolveError", "ValidationError")


class MetaCacheError(Exception): ...


class ResolveError(MetaCacheError): ...


class ValidationError(MetaCacheError): ...
