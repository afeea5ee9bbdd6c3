import pytest

from fnox.config import parse_config
from fnox.errors import (
    ProviderConfigCycleError,
    ProviderConfigResolutionError,
    ProviderNotConfiguredError,
)
from fnox.providers.resolver import ResolutionContext, resolve_provider_config
from fnox.settings import Settings


def _cycle_config(length: int) -> str:
    """Vault providers p0..pN whose tokens come from secrets served by the next one."""
    lines = ["[providers]"]
    for i in range(length):
        lines.append(
            f'p{i} = {{ type = "vault", address = "http://vault", token = {{ secret = "T{i}" }} }}'
        )
    lines.append("[secrets]")
    for i in range(length):
        lines.append(f'T{i} = {{ provider = "p{(i + 1) % length}", value = "token" }}')
    return "\n".join(lines) + "\n"


async def _resolve(config, name, profile="default", context=None):
    return await resolve_provider_config(
        config,
        profile,
        name,
        config.get_providers(profile)[name],
        context=context,
        settings=Settings.load(),
    )


class TestCycleDetection:
    """Provider configs that reference each other in a loop."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("length", [1, 2, 3, 4, 5])
    async def test_cycle_reported_with_full_path(self, length):
        config = parse_config(_cycle_config(length))

        with pytest.raises(ProviderConfigCycleError) as exc_info:
            await _resolve(config, "p0")

        names = [f"p{i}" for i in range(length)] + ["p0"]
        expected = " -> ".join(names)
        assert exc_info.value.cycle == expected
        assert exc_info.value.provider == "p0"
        assert f"Resolution path: {expected}" in exc_info.value.render()

    @pytest.mark.asyncio
    async def test_context_is_clean_after_cycle(self):
        config = parse_config(_cycle_config(3))
        context = ResolutionContext()

        with pytest.raises(ProviderConfigCycleError):
            await _resolve(config, "p0", context=context)

        assert context.provider_stack == set()
        assert context.resolution_path == []

    @pytest.mark.asyncio
    async def test_cycle_error_is_stable(self):
        config = parse_config(_cycle_config(2))

        errors = []
        for _ in range(2):
            with pytest.raises(ProviderConfigCycleError) as exc_info:
                await _resolve(config, "p1")
            errors.append(exc_info.value.cycle)

        assert errors == ["p1 -> p0 -> p1", "p1 -> p0 -> p1"]

    @pytest.mark.asyncio
    async def test_cycle_detected_before_any_provider_is_built(self, install_fake):
        built = install_fake("vault", {"token": "t"})
        config = parse_config(_cycle_config(3))

        with pytest.raises(ProviderConfigCycleError):
            await _resolve(config, "p0")

        assert built == []


class TestReferenceResolution:
    @pytest.mark.asyncio
    async def test_literals_pass_through(self):
        config = parse_config(
            '[providers]\nv = { type = "vault", address = "http://vault", path = "kv/app" }\n'
        )

        resolved = await _resolve(config, "v")

        assert resolved.type == "vault"
        assert resolved.address == "http://vault"
        assert resolved.path == "kv/app"
        assert resolved.token is None

    @pytest.mark.asyncio
    async def test_nested_provider_supplies_field(self, install_fake):
        age_built = install_fake("age", {"ENCRYPTED": "root-token"})
        config = parse_config(
            """
[providers]
age = { type = "age", recipients = ["age1x"] }
vault = { type = "vault", address = "http://vault", token = { secret = "VAULT_TOKEN" } }

[secrets]
VAULT_TOKEN = { provider = "age", value = "ENCRYPTED" }
"""
        )

        resolved = await _resolve(config, "vault")

        assert resolved.token == "root-token"
        assert len(age_built) == 1
        assert age_built[0].recipients == ["age1x"]

    @pytest.mark.asyncio
    async def test_default_then_environment(self, monkeypatch):
        config = parse_config(
            """
[providers]
v = { type = "vault", address = { secret = "ADDR" }, token = { secret = "TOKEN" } }

[secrets]
ADDR = { default = "http://from-default" }
"""
        )
        monkeypatch.setenv("TOKEN", "from-env")

        resolved = await _resolve(config, "v")

        assert resolved.address == "http://from-default"
        assert resolved.token == "from-env"

    @pytest.mark.asyncio
    async def test_undeclared_secret_read_from_environment(self, monkeypatch):
        config = parse_config(
            '[providers]\nv = { type = "vault", address = "http://v", token = { secret = "ONLY_ENV" } }\n'
        )
        monkeypatch.setenv("ONLY_ENV", "env-token")

        assert (await _resolve(config, "v")).token == "env-token"

    @pytest.mark.asyncio
    async def test_unresolvable_reference(self, monkeypatch):
        monkeypatch.delenv("NOWHERE", raising=False)
        config = parse_config(
            '[providers]\nv = { type = "vault", address = "http://v", token = { secret = "NOWHERE" } }\n'
        )

        with pytest.raises(ProviderConfigResolutionError) as exc_info:
            await _resolve(config, "v")

        assert exc_info.value.provider == "v"
        assert exc_info.value.secret == "NOWHERE"

    @pytest.mark.asyncio
    async def test_reference_to_unknown_provider(self):
        config = parse_config(
            """
[providers]
vault = { type = "vault", address = "http://v", token = { secret = "TOKEN" } }

[secrets]
TOKEN = { provider = "vaultt", value = "x" }
"""
        )

        with pytest.raises(ProviderNotConfiguredError) as exc_info:
            await _resolve(config, "vault")

        assert exc_info.value.provider == "vaultt"
        assert exc_info.value.suggestion == "Did you mean 'vault'?"

    @pytest.mark.asyncio
    async def test_profile_secrets_used_for_references(self, install_fake):
        install_fake("plain", {"prod-ref": "prod-token"})
        config = parse_config(
            """
[providers]
plain = { type = "plain" }
v = { type = "vault", address = "http://v", token = { secret = "TOKEN" } }

[secrets]
TOKEN = { default = "dev-token" }

[profiles.prod.secrets]
TOKEN = { provider = "plain", value = "prod-ref" }
"""
        )

        assert (await _resolve(config, "v")).token == "dev-token"
        assert (await _resolve(config, "v", profile="prod")).token == "prod-token"

    @pytest.mark.asyncio
    async def test_resolution_is_idempotent(self, install_fake):
        install_fake("age", {"ENC": "secret-token"})
        config = parse_config(
            """
[providers]
age = { type = "age" }
v = { type = "vault", address = "http://v", token = { secret = "TOKEN" } }

[secrets]
TOKEN = { provider = "age", value = "ENC" }
"""
        )

        first = await _resolve(config, "v")
        second = await _resolve(config, "v")

        assert first == second
