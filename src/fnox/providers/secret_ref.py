"""Provider config fields that may hold a literal or a reference to a secret."""

from typing import Any, Union, get_args

from pydantic import BaseModel, ConfigDict


class SecretRef(BaseModel):
    """``{ secret = "NAME" }``: take the field's value from secret ``NAME``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    secret: str

    def __str__(self) -> str:
        return f"{{ secret = {self.secret!r} }}"


StringOrSecretRef = Union[str, SecretRef]


def is_secret_ref_annotation(annotation: Any) -> bool:
    """True for ``StringOrSecretRef`` and ``Optional[StringOrSecretRef]``."""
    return SecretRef in get_args(annotation)
