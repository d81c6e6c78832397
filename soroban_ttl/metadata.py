# Copyright © Soroban TTL contributors
# SPDX-License-Identifier: Apache-2.0

"""
Client identification headers sent with every RPC request.

Stellar RPC providers use the ``X-Client-Name`` / ``X-Client-Version`` pair to
attribute traffic to SDKs; the version comes from the installed package
metadata.
"""

import importlib.metadata as metadata
from typing import Dict

PACKAGE_NAME = "soroban-ttl"


class Metadata:
    CLIENT_NAME_HEADER = "X-Client-Name"
    CLIENT_VERSION_HEADER = "X-Client-Version"
    CLIENT_NAME = "soroban-ttl-python"

    @staticmethod
    def get_client_version() -> str:
        """Version of the installed distribution.

        Raises:
            PackageNotFoundError: If the package is not installed.
        """
        return metadata.version(PACKAGE_NAME)

    @staticmethod
    def get_headers() -> Dict[str, str]:
        return {
            Metadata.CLIENT_NAME_HEADER: Metadata.CLIENT_NAME,
            Metadata.CLIENT_VERSION_HEADER: Metadata.get_client_version(),
        }
