"""
Provider configuration variants.

``ProviderConfig`` is a closed union discriminated on ``type``; one model
per backend. Fields typed ``StringOrSecretRef`` may name another secret
instead of holding a literal. For every variant a ``Resolved`` twin is
derived in which those fields are plain strings; only resolved configs
are ever turned into provider instances.
"""

from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, create_model

from fnox.providers.secret_ref import SecretRef, StringOrSecretRef, is_secret_ref_annotation


class ProviderConfigBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str

    #: Environment variables the provider reads at run time. A secret with
    #: one of these names is resolved, and exported, before this provider runs.
    env_dependencies: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def ref_fields(cls) -> list[str]:
        return [
            name
            for name, info in cls.model_fields.items()
            if is_secret_ref_annotation(info.annotation)
        ]

    def secret_refs(self) -> dict[str, str]:
        """Map of field name -> referenced secret name."""
        refs = {}
        for name in self.ref_fields():
            value = getattr(self, name)
            if isinstance(value, SecretRef):
                refs[name] = value.secret
        return refs


class OnePasswordProviderConfig(ProviderConfigBase):
    type: Literal["1password"] = "1password"
    env_dependencies = ("OP_SERVICE_ACCOUNT_TOKEN", "FNOX_OP_SERVICE_ACCOUNT_TOKEN")
    vault: Optional[StringOrSecretRef] = None
    account: Optional[StringOrSecretRef] = None
    token: Optional[StringOrSecretRef] = None


class AgeProviderConfig(ProviderConfigBase):
    type: Literal["age"] = "age"
    recipients: list[str] = Field(default_factory=list)
    key_file: Optional[StringOrSecretRef] = None


class AwsKmsProviderConfig(ProviderConfigBase):
    type: Literal["aws-kms"] = "aws-kms"
    key_id: StringOrSecretRef
    region: StringOrSecretRef


class AwsSecretsManagerProviderConfig(ProviderConfigBase):
    type: Literal["aws-sm"] = "aws-sm"
    region: StringOrSecretRef
    prefix: Optional[StringOrSecretRef] = None


class AwsParameterStoreProviderConfig(ProviderConfigBase):
    type: Literal["aws-ps"] = "aws-ps"
    region: StringOrSecretRef
    prefix: Optional[StringOrSecretRef] = None


class AzureKmsProviderConfig(ProviderConfigBase):
    type: Literal["azure-kms"] = "azure-kms"
    vault_url: StringOrSecretRef
    key_name: StringOrSecretRef


class AzureSecretsManagerProviderConfig(ProviderConfigBase):
    type: Literal["azure-sm"] = "azure-sm"
    vault_url: StringOrSecretRef
    prefix: Optional[StringOrSecretRef] = None


class BitwardenProviderConfig(ProviderConfigBase):
    type: Literal["bitwarden"] = "bitwarden"
    env_dependencies = ("BW_SESSION",)
    collection: Optional[StringOrSecretRef] = None
    organization_id: Optional[StringOrSecretRef] = None
    profile: Optional[StringOrSecretRef] = None
    backend: Literal["bw", "rbw"] = "bw"


class BitwardenSecretsManagerProviderConfig(ProviderConfigBase):
    type: Literal["bitwarden-sm"] = "bitwarden-sm"
    env_dependencies = ("FNOX_BWS_ACCESS_TOKEN", "BWS_ACCESS_TOKEN")
    project_id: Optional[StringOrSecretRef] = None
    profile: Optional[StringOrSecretRef] = None


class GcpKmsProviderConfig(ProviderConfigBase):
    type: Literal["gcp-kms"] = "gcp-kms"
    project: StringOrSecretRef
    location: StringOrSecretRef
    keyring: StringOrSecretRef
    key: StringOrSecretRef


class GcpSecretManagerProviderConfig(ProviderConfigBase):
    type: Literal["gcp-sm"] = "gcp-sm"
    project: StringOrSecretRef
    prefix: Optional[StringOrSecretRef] = None


class InfisicalProviderConfig(ProviderConfigBase):
    type: Literal["infisical"] = "infisical"
    env_dependencies = ("FNOX_INFISICAL_TOKEN", "INFISICAL_TOKEN")
    project_id: Optional[StringOrSecretRef] = None
    environment: Optional[StringOrSecretRef] = None
    path: Optional[StringOrSecretRef] = None


class KeePassProviderConfig(ProviderConfigBase):
    type: Literal["keepass"] = "keepass"
    env_dependencies = ("KEEPASS_PASSWORD", "FNOX_KEEPASS_PASSWORD")
    database: StringOrSecretRef
    keyfile: Optional[StringOrSecretRef] = None
    password: Optional[StringOrSecretRef] = None


class KeychainProviderConfig(ProviderConfigBase):
    type: Literal["keychain"] = "keychain"
    service: StringOrSecretRef
    prefix: Optional[StringOrSecretRef] = None


class PasswordStoreProviderConfig(ProviderConfigBase):
    type: Literal["password-store"] = "password-store"
    prefix: Optional[StringOrSecretRef] = None
    store_dir: Optional[StringOrSecretRef] = None
    gpg_opts: Optional[StringOrSecretRef] = None


class PasswordstateProviderConfig(ProviderConfigBase):
    type: Literal["passwordstate"] = "passwordstate"
    env_dependencies = ("PASSWORDSTATE_API_KEY",)
    base_url: StringOrSecretRef
    api_key: Optional[StringOrSecretRef] = None
    password_list_id: StringOrSecretRef
    verify_ssl: Optional[StringOrSecretRef] = None


class PlainProviderConfig(ProviderConfigBase):
    type: Literal["plain"] = "plain"


class VaultProviderConfig(ProviderConfigBase):
    type: Literal["vault"] = "vault"
    env_dependencies = ("FNOX_VAULT_TOKEN", "VAULT_TOKEN")
    address: StringOrSecretRef
    path: Optional[StringOrSecretRef] = None
    token: Optional[StringOrSecretRef] = None
    namespace: Optional[StringOrSecretRef] = None


PROVIDER_CONFIG_TYPES: tuple[type[ProviderConfigBase], ...] = (
    OnePasswordProviderConfig,
    AgeProviderConfig,
    AwsKmsProviderConfig,
    AwsSecretsManagerProviderConfig,
    AwsParameterStoreProviderConfig,
    AzureKmsProviderConfig,
    AzureSecretsManagerProviderConfig,
    BitwardenProviderConfig,
    BitwardenSecretsManagerProviderConfig,
    GcpKmsProviderConfig,
    GcpSecretManagerProviderConfig,
    InfisicalProviderConfig,
    KeePassProviderConfig,
    KeychainProviderConfig,
    PasswordStoreProviderConfig,
    PasswordstateProviderConfig,
    PlainProviderConfig,
    VaultProviderConfig,
)

ProviderConfig = Annotated[
    Union[
        OnePasswordProviderConfig,
        AgeProviderConfig,
        AwsKmsProviderConfig,
        AwsSecretsManagerProviderConfig,
        AwsParameterStoreProviderConfig,
        AzureKmsProviderConfig,
        AzureSecretsManagerProviderConfig,
        BitwardenProviderConfig,
        BitwardenSecretsManagerProviderConfig,
        GcpKmsProviderConfig,
        GcpSecretManagerProviderConfig,
        InfisicalProviderConfig,
        KeePassProviderConfig,
        KeychainProviderConfig,
        PasswordStoreProviderConfig,
        PasswordstateProviderConfig,
        PlainProviderConfig,
        VaultProviderConfig,
    ],
    Field(discriminator="type"),
]


class ResolvedProviderConfig(BaseModel):
    """Base of every resolved variant: no field can hold a secret reference."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str


def _derive_resolved(config_cls: type[ProviderConfigBase]) -> type[ResolvedProviderConfig]:
    fields: dict[str, Any] = {}
    for name, info in config_cls.model_fields.items():
        if is_secret_ref_annotation(info.annotation):
            if info.is_required():
                fields[name] = (str, ...)
            else:
                fields[name] = (Optional[str], None)
        elif info.default_factory is not None:
            fields[name] = (info.annotation, Field(default_factory=info.default_factory))
        elif info.is_required():
            fields[name] = (info.annotation, ...)
        else:
            fields[name] = (info.annotation, info.default)
    resolved_name = "Resolved" + config_cls.__name__
    model = create_model(resolved_name, __base__=ResolvedProviderConfig, **fields)
    model.__module__ = __name__
    return model


RESOLVED_CONFIG_TYPES: dict[str, type[ResolvedProviderConfig]] = {}
for _config_cls in PROVIDER_CONFIG_TYPES:
    _resolved = _derive_resolved(_config_cls)
    RESOLVED_CONFIG_TYPES[_config_cls.model_fields["type"].default] = _resolved
del _config_cls, _resolved


def resolved_model_for(config: ProviderConfigBase) -> type[ResolvedProviderConfig]:
    return RESOLVED_CONFIG_TYPES[config.type]
