"""Exceptions raised by provider adapters and the aggregation layer."""


class ProviderError(RuntimeError):
    """A single provider call failed. `source` names the call (e.g. "cuisine:thai")."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class PageTokenNotReadyError(ProviderError):
    """Google rejected a next_page_token that has not become active yet."""


class AggregationError(RuntimeError):
    """Every call that mattered failed; carries each (source, error) pair."""

    def __init__(self, scope: str, failures: list[tuple[str, BaseException]]):
        self.scope = scope
        self.failures = failures
        detail = "; ".join(f"{source}: {_describe(err)}" for source, err in failures)
        super().__init__(f"{scope} failed: {detail}")

    @property
    def sources(self) -> list[str]:
        return [source for source, _ in self.failures]


def _describe(err: BaseException) -> str:
    if isinstance(err, ProviderError):
        # message already starts with the source
        return str(err).split(": ", 1)[-1]
    return str(err) or type(err).__name__
