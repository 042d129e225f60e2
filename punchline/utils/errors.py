"""
Engine error types.

Malformed caption text is never an error: it is data to repair. The only
exception the engine raises on its own is ConfigurationError, which means the
static tables it was deployed with are broken (empty bucket table, a rating
with no voices, a non-positive cooldown window). Callers should treat it as
fatal for the batch.
"""


class ConfigurationError(RuntimeError):
    """Raised when a static engine table or setting cannot be used."""

    def __init__(self, message: str, setting: str = ""):
        super().__init__(message)
        self.setting = setting

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} (setting: {self.setting})" if self.setting else base
