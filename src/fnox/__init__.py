"""fnox - layered secret management.

Secrets are declared in ``fnox.toml`` files as references (an encrypted
blob, a path in a remote secret manager, an item in a password manager)
and resolved at run time through pluggable providers.
"""

from fnox.version import PACKAGE_NAME, PACKAGE_VERSION

__version__ = PACKAGE_VERSION

__all__ = ["PACKAGE_NAME", "PACKAGE_VERSION", "__version__"]
