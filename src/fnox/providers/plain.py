"""Plain provider: the stored value is the secret."""

from fnox.providers.base import Provider, ProviderCapability


class PlainProvider(Provider):
    display_name = "plain"

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.ENCRYPTION}

    async def get_secret(self, reference: str) -> str:
        return reference

    async def encrypt(self, plaintext: str) -> str:
        return plaintext
